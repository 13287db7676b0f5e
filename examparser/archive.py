"""
Archive Reader
==============
Opens a .docx (zip) container held in memory and returns the raw XML of the
document body. Performs no file or network I/O of its own.
"""

from __future__ import annotations

import io
import logging
import zipfile
import zlib

from .exceptions import ArchiveFormatError, MissingEntryError

logger = logging.getLogger(__name__)

DOCUMENT_ENTRY = "word/document.xml"


def _open_archive(data: bytes) -> zipfile.ZipFile:
    if not data:
        raise ArchiveFormatError("Input is empty, expected a .docx archive")
    try:
        return zipfile.ZipFile(io.BytesIO(data))
    except (zipfile.BadZipFile, ValueError) as e:
        raise ArchiveFormatError(f"Not a valid .docx archive: {e}") from e


def list_entries(data: bytes) -> list[str]:
    """Return the names of all entries in the archive."""
    with _open_archive(data) as zf:
        return zf.namelist()


def read_document_xml(data: bytes, entry: str = DOCUMENT_ENTRY) -> bytes:
    """
    Extract the document body XML from .docx bytes.

    Args:
        data: Raw bytes of the archive.
        entry: Path of the body entry inside the archive.

    Returns:
        The raw entry bytes. Decoding is left to the XML parser, which
        honours the encoding declared by the part.

    Raises:
        ArchiveFormatError: If the bytes are not a readable zip archive.
        MissingEntryError: If the archive does not contain `entry`.
    """
    with _open_archive(data) as zf:
        if entry not in zf.namelist():
            raise MissingEntryError(entry)
        try:
            raw = zf.read(entry)
        except (
            zipfile.BadZipFile,
            zlib.error,
            EOFError,
            OSError,
            RuntimeError,
            NotImplementedError,
            ValueError,
        ) as e:
            # Central directory parsed but the member itself cannot be extracted
            raise ArchiveFormatError(f"Cannot decompress {entry}: {e}") from e

    logger.debug(f"Read {len(raw)} bytes from {entry}")
    return raw
