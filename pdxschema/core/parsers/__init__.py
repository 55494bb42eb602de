from typing import Optional, Protocol
import codecs
import logging
import os
import zipfile

from pdxschema.core.exceptions import DocumentReadError, EmptyDocumentError
from pdxschema.core.parsers.reader import SaveReader
from pdxschema.models.document import Document

logger = logging.getLogger(__name__)

DEFAULT_ARCHIVE_ENTRY = "gamestate"


def parse(text: str) -> Document:
    """Parse save text into a document. The root is always an Object.

    Raises:
        ParseError: If the text is syntactically malformed
    """
    return SaveReader(text).read()


def decode_save_bytes(data: bytes, source: str | None = None) -> str:
    """Decode raw save bytes as UTF-8 or UTF-16.

    UTF-16 is recognised by its byte order mark, or by the NUL pattern ASCII
    text has when written as UTF-16 without one.
    """
    if data.startswith(codecs.BOM_UTF8):
        encoding = "utf-8-sig"
    elif data.startswith((codecs.BOM_UTF16_LE, codecs.BOM_UTF16_BE)):
        encoding = "utf-16"
    elif len(data) >= 2 and data[0] != 0 and data[1] == 0:
        encoding = "utf-16-le"
    elif len(data) >= 2 and data[0] == 0 and data[1] != 0:
        encoding = "utf-16-be"
    else:
        encoding = "utf-8"

    try:
        return data.decode(encoding)
    except UnicodeDecodeError as e:
        raise DocumentReadError(
            f"Could not decode save data as {encoding}: {e.reason} at byte {e.start}",
            source,
        ) from e


def parse_bytes(data: bytes) -> Document:
    """Decode and parse raw save bytes."""
    return parse(decode_save_bytes(data))


class SourceReader(Protocol):
    """Protocol for readers that turn a save file on disk into save text."""

    def can_read(self, file_path: str) -> bool:
        """Check if this reader can handle the given file."""
        ...

    def read_text(self, file_path: str, entry: Optional[str] = None) -> str:
        """Return the save text stored in the file."""
        ...


class TextSourceReader:
    """Reader for plain-text saves (uncompressed ``.sav``, ``.txt`` and friends)."""

    def can_read(self, file_path: str) -> bool:
        return not zipfile.is_zipfile(file_path)

    def read_text(self, file_path: str, entry: Optional[str] = None) -> str:
        with open(file_path, "rb") as f:
            return decode_save_bytes(f.read(), file_path)


class ArchiveSourceReader:
    """Reader for zipped saves holding ``gamestate``/``meta`` members."""

    def can_read(self, file_path: str) -> bool:
        return zipfile.is_zipfile(file_path)

    def read_text(self, file_path: str, entry: Optional[str] = None) -> str:
        entry = entry or DEFAULT_ARCHIVE_ENTRY
        with zipfile.ZipFile(file_path) as archive:
            names = archive.namelist()
            if entry not in names:
                raise DocumentReadError(
                    f"Archive has no '{entry}' member. "
                    f"Members: {', '.join(names) or 'none'}",
                    file_path,
                )
            data = archive.read(entry)
        logger.debug(f"Read {len(data)} bytes from {file_path}:{entry}")
        return decode_save_bytes(data, f"{file_path}:{entry}")


class ReaderRegistry:
    """Registry that selects the appropriate source reader for a file."""

    def __init__(self):
        self._readers: list[SourceReader] = []

    def register(self, reader: SourceReader) -> None:
        """Register a reader with the registry."""
        self._readers.append(reader)

    def get_reader(self, file_path: str) -> SourceReader:
        """Get the appropriate reader for a file.

        Raises:
            DocumentReadError: If the file is missing or no reader handles it
        """
        if not os.path.isfile(file_path):
            raise DocumentReadError(f"File not found: {file_path}", file_path)
        for reader in self._readers:
            if reader.can_read(file_path):
                return reader
        raise DocumentReadError(f"No reader available for '{file_path}'", file_path)

    def read_text(self, file_path: str, entry: Optional[str] = None) -> str:
        """Read save text from a file, rejecting files without content."""
        text = self.get_reader(file_path).read_text(file_path, entry)
        if not text.strip():
            raise EmptyDocumentError(f"Document is empty: {file_path}", file_path)
        return text


# Global registry instance
_registry = ReaderRegistry()


def register_reader(reader: SourceReader) -> None:
    """Register a reader with the global registry."""
    _registry.register(reader)


def get_registry() -> ReaderRegistry:
    """Get the global reader registry."""
    return _registry


def read_source(file_path: str, entry: Optional[str] = None) -> Document:
    """Read and parse a save file, plain or zipped."""
    return parse(_registry.read_text(file_path, entry))


def read_document(file_path: str) -> Document:
    """Read and parse a plain-text save file."""
    text = TextSourceReader().read_text(file_path)
    if not text.strip():
        raise EmptyDocumentError(f"Document is empty: {file_path}", file_path)
    return parse(text)


def read_archive(file_path: str, entry: str = DEFAULT_ARCHIVE_ENTRY) -> Document:
    """Read and parse one member of a zipped save archive."""
    if not zipfile.is_zipfile(file_path):
        raise DocumentReadError(f"Not a zip archive: {file_path}", file_path)
    text = ArchiveSourceReader().read_text(file_path, entry)
    if not text.strip():
        raise EmptyDocumentError(f"Archive member '{entry}' is empty: {file_path}", file_path)
    return parse(text)


# Register built-in readers, archives first
register_reader(ArchiveSourceReader())
register_reader(TextSourceReader())
