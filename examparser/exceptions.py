"""
Exceptions
==========
Fatal errors raised while opening or reading a document.

Structural shortfalls (missing answers, empty options, duplicate numbers)
are never raised; they are reported by the ValidationEngine instead.
"""


class ExamParseError(Exception):
    """Base class for fatal parse failures."""


class ArchiveFormatError(ExamParseError):
    """Raised when the input bytes are not a readable zip archive."""


class MissingEntryError(ExamParseError):
    """Raised when the archive has no document body entry."""

    def __init__(self, entry: str):
        super().__init__(f"Archive has no entry named {entry!r}")
        self.entry = entry


class MalformedDocumentError(ExamParseError):
    """Raised when the document body is not well-formed XML."""
