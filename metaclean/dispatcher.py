"""Pick the cleaner for a file by its extension and name the cleaned copy."""
import logging
import os
from functools import partial
from pathlib import Path

from metaclean.errors import MetaCleanError, UnexpectedError, UnsupportedFormatError
from metaclean.ooxml import PackageKind, strip_package_metadata
from metaclean.pdf import clean_pdf

log = logging.getLogger(__name__)

OUTPUT_SUFFIX = "_meta_clean"

_STRATEGIES = {
    ".docx": partial(strip_package_metadata, kind=PackageKind.WORD_PROCESSING),
    ".xlsx": partial(strip_package_metadata, kind=PackageKind.SPREADSHEET),
    ".pptx": partial(strip_package_metadata, kind=PackageKind.PRESENTATION),
    ".pdf": clean_pdf,
}

SUPPORTED_EXTENSIONS = tuple(_STRATEGIES)


def extension_of(path) -> str:
    return os.path.splitext(str(path))[1].lower()


def is_supported(path) -> bool:
    return extension_of(path) in _STRATEGIES


def output_path_for(input_path, output_folder) -> Path:
    """``{output_folder}/{stem}_meta_clean{ext}`` with the extension lower-cased."""
    base, ext = os.path.splitext(os.path.basename(str(input_path)))
    return Path(output_folder) / f"{base}{OUTPUT_SUFFIX}{ext.lower()}"


def strategy_for(input_path):
    ext = extension_of(input_path)
    try:
        return _STRATEGIES[ext]
    except KeyError:
        raise UnsupportedFormatError(ext, input_path=input_path) from None


def clean(input_path, output_folder) -> Path:
    """Write a metadata-free copy of ``input_path`` into ``output_folder``.

    Returns the output path. Unsupported extensions fail before touching the disk.
    """
    strategy = strategy_for(input_path)
    output_path = output_path_for(input_path, output_folder)
    log.info("[dispatch] %s -> %s", input_path, output_path)
    try:
        strategy(input_path, output_path)
    except MetaCleanError:
        raise
    except Exception as e:
        raise UnexpectedError(e, input_path=input_path, output_path=output_path) from e
    return output_path
