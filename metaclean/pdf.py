"""
PDF cleaning with pikepdf.

The document info dictionary fields in CLEARED_INFO_FIELDS are overwritten with
empty strings. Everything else in the file (pages, XMP stream, other info keys)
is saved back unchanged.

Output is never written in place: the cleaned document goes to a staging file
in the temp directory first and is then renamed onto the output path. Saving
is retried a few times because viewers and virus scanners like to hold files
open for a moment; a PDF that pikepdf refuses to open is not retried.

    Stage.VALIDATE_INPUT -> VALIDATE_OUTPUT_DIR -> REMOVE_STALE_OUTPUT -> STAGE_TEMP
        -> (SAVE -> PROMOTE) x attempts -> CLEANUP -> DONE

CLEANUP runs on every exit.
"""
import enum
import errno
import logging
import os
import shutil
import tempfile
import time
from contextlib import contextmanager
from pathlib import Path

import pikepdf

from metaclean.errors import (
    CorruptOrProtectedPdfError,
    InputAccessError,
    InputNotFoundError,
    InvalidOutputPathError,
    MetaCleanError,
    OutputDeleteError,
    PdfWriteExhaustedError,
    UnexpectedError,
)

log = logging.getLogger(__name__)

MAX_ATTEMPTS = 3
RETRY_DELAY_SECONDS = 0.5
CLEARED_INFO_FIELDS = ("/Author", "/Creator", "/Keywords", "/Subject", "/Title")


class Stage(enum.Enum):
    VALIDATE_INPUT = "validate input"
    VALIDATE_OUTPUT_DIR = "validate output directory"
    REMOVE_STALE_OUTPUT = "remove existing output"
    STAGE_TEMP = "allocate staging file"
    SAVE = "save"
    PROMOTE = "promote"
    CLEANUP = "cleanup"
    DONE = "done"


# ----------------------------
# Staging file
# ----------------------------
def _discard(path: Path):
    try:
        path.unlink(missing_ok=True)
    except OSError as e:
        log.debug("[pdf] could not remove staging file %s: %s", path, e)


@contextmanager
def staging_file(temp_dir=None):
    """Yield a fresh, uniquely named file path that is removed again on exit."""
    fd, name = tempfile.mkstemp(prefix="metaclean_", suffix="_temp.pdf", dir=temp_dir)
    os.close(fd)
    path = Path(name)
    try:
        yield path
    finally:
        _discard(path)


# ----------------------------
# Steps
# ----------------------------
def _validate_input(input_path: Path, output_path: Path):
    if not input_path.is_file():
        raise InputNotFoundError(f"Input PDF file does not exist: {input_path}",
                                 input_path=input_path, output_path=output_path)
    try:
        with input_path.open("rb"):
            pass
    except OSError as e:
        raise InputAccessError(f"Cannot access input PDF file {input_path}: {e}",
                               input_path=input_path, output_path=output_path) from e


def _prepare_output_dir(input_path: Path, output_path: Path):
    output_dir = os.path.dirname(str(output_path))
    if not output_dir:
        raise InvalidOutputPathError(f"Output directory path is invalid: {output_path}",
                                     input_path=input_path, output_path=output_path)
    try:
        os.makedirs(output_dir, exist_ok=True)
    except OSError as e:
        raise InvalidOutputPathError(f"Cannot create output directory {output_dir}: {e}",
                                     input_path=input_path, output_path=output_path) from e


def _remove_stale_output(input_path: Path, output_path: Path):
    if not output_path.exists():
        return
    try:
        output_path.unlink()
    except OSError as e:
        raise OutputDeleteError(f"Cannot delete existing output file {output_path}: {e}",
                                input_path=input_path, output_path=output_path) from e


def _save_clean_copy(input_path: Path, temp_path: Path, output_path: Path):
    try:
        pdf = pikepdf.open(input_path)
    except pikepdf.PasswordError as e:
        raise CorruptOrProtectedPdfError(
            f"PDF processing error for {input_path}: {e}. The PDF is encrypted or password-protected.",
            input_path=input_path, output_path=output_path,
        ) from e
    except pikepdf.PdfError as e:
        raise CorruptOrProtectedPdfError(
            f"PDF processing error for {input_path}: {e}. Possible causes: PDF is corrupted "
            "or has an unsupported format.",
            input_path=input_path, output_path=output_path,
        ) from e
    with pdf:
        info = pdf.docinfo
        for key in CLEARED_INFO_FIELDS:
            info[key] = ""
        pdf.save(temp_path)


def _promote(temp_path: Path, output_path: Path):
    try:
        os.replace(temp_path, output_path)
        return
    except OSError as e:
        if e.errno != errno.EXDEV:
            raise
    # temp dir lives on another filesystem: copy beside the output, then rename
    sibling = output_path.with_name(f".{temp_path.name}")
    try:
        shutil.copyfile(temp_path, sibling)
        os.replace(sibling, output_path)
    finally:
        _discard(sibling)


# ----------------------------
# Entry point
# ----------------------------
def clean_pdf(input_path, output_path, *, attempts: int = MAX_ATTEMPTS,
              delay: float = RETRY_DELAY_SECONDS, temp_dir=None) -> None:
    """Blank the author/creator/keywords/subject/title fields of a PDF into ``output_path``.

    Args:
        input_path: PDF to read. Never modified.
        output_path: destination; an existing file there is replaced.
        attempts: total save attempts against transient I/O failures.
        delay: seconds to wait between attempts.
        temp_dir: where the staging file goes (system temp dir by default).

    Raises:
        MetaCleanError subclasses only; anything unforeseen comes out as UnexpectedError.
    """
    if attempts < 1:
        raise ValueError("attempts must be at least 1")
    input_path = Path(input_path)
    output_path = Path(output_path)
    stage = Stage.VALIDATE_INPUT
    try:
        _validate_input(input_path, output_path)
        stage = Stage.VALIDATE_OUTPUT_DIR
        _prepare_output_dir(input_path, output_path)
        stage = Stage.REMOVE_STALE_OUTPUT
        _remove_stale_output(input_path, output_path)
        stage = Stage.STAGE_TEMP
        with staging_file(temp_dir) as temp_path:
            for attempt in range(1, attempts + 1):
                try:
                    stage = Stage.SAVE
                    _save_clean_copy(input_path, temp_path, output_path)
                    stage = Stage.PROMOTE
                    _promote(temp_path, output_path)
                    break
                except OSError as e:
                    if attempt >= attempts:
                        raise PdfWriteExhaustedError(
                            f"Failed to process PDF {input_path} to {output_path} after {attempts} attempts: {e}",
                            input_path=input_path, output_path=output_path, attempts=attempts,
                        ) from e
                    log.warning("[pdf] attempt %d/%d for %s failed (%s); retrying in %.1fs",
                                attempt, attempts, input_path.name, e, delay)
                    time.sleep(delay)
            stage = Stage.CLEANUP
        stage = Stage.DONE
    except MetaCleanError as e:
        log.debug("[pdf] %s failed at stage '%s': %s", input_path, stage.value, e)
        raise
    except Exception as e:
        log.debug("[pdf] %s failed at stage '%s': %r", input_path, stage.value, e)
        raise UnexpectedError(e, input_path=input_path, output_path=output_path) from e
    log.info("[pdf] %s -> %s", input_path.name, output_path)
