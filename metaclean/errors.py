"""
Error kinds raised by the cleaners.

Every error carries the input and output path it was raised for so a batch
front end can report the destination even when cleaning failed.
"""
from typing import Optional


class MetaCleanError(Exception):
    """Base class for everything ``metaclean.clean`` raises."""

    retryable = False

    def __init__(self, message: str, input_path=None, output_path=None):
        super().__init__(message)
        self.message = message
        self.input_path = str(input_path) if input_path is not None else None
        self.output_path = str(output_path) if output_path is not None else None

    def __str__(self) -> str:
        return self.message


class UnsupportedFormatError(MetaCleanError):
    """Extension is not one of .docx/.xlsx/.pptx/.pdf."""

    def __init__(self, extension: str, input_path=None):
        super().__init__(
            f"File extension {extension or '(none)'} is not supported.",
            input_path=input_path,
        )
        self.extension = extension


class PackageOpenError(MetaCleanError):
    """Input is not a valid package of the expected kind."""


class InputNotFoundError(MetaCleanError):
    pass


class InputAccessError(MetaCleanError):
    pass


class InvalidOutputPathError(MetaCleanError):
    pass


class OutputDeleteError(MetaCleanError):
    pass


class CorruptOrProtectedPdfError(MetaCleanError):
    """The PDF reader rejected the file. Retrying cannot help."""


class PdfWriteExhaustedError(MetaCleanError):
    retryable = True

    hint = (
        "Output file is probably locked by another process (e.g. a PDF viewer or "
        "antivirus). Ensure it is not open and try again or pick a different output folder."
    )

    def __init__(self, message: str, input_path=None, output_path=None, attempts: int = 0):
        super().__init__(f"{message}. {self.hint}", input_path=input_path, output_path=output_path)
        self.attempts = attempts


class UnexpectedError(MetaCleanError):
    """Anything else, wrapped with path context.

    ``io_error`` tells file-access failures apart from everything else.
    """

    def __init__(self, cause: BaseException, input_path=None, output_path=None,
                 io_error: Optional[bool] = None):
        if io_error is None:
            io_error = isinstance(cause, OSError)
        if io_error:
            message = f"File access error for {input_path} or {output_path}: {cause} (Type: {type(cause).__name__})"
        else:
            message = f"Unexpected error processing {input_path}: {cause} (Type: {type(cause).__name__})"
        super().__init__(message, input_path=input_path, output_path=output_path)
        self.io_error = io_error
