"""Strip author/creation metadata from Office Open XML and PDF files."""
from metaclean.dispatcher import OUTPUT_SUFFIX, SUPPORTED_EXTENSIONS, clean, output_path_for
from metaclean.errors import (
    CorruptOrProtectedPdfError,
    InputAccessError,
    InputNotFoundError,
    InvalidOutputPathError,
    MetaCleanError,
    OutputDeleteError,
    PackageOpenError,
    PdfWriteExhaustedError,
    UnexpectedError,
    UnsupportedFormatError,
)

__version__ = "1.0.0"
