"""Custom exceptions for pdxschema."""


class PdxSchemaError(Exception):
    """Base exception for all pdxschema errors."""
    pass


class ConfigError(PdxSchemaError):
    """Configuration-related errors."""
    pass


class ParseError(PdxSchemaError):
    """Save text is syntactically malformed.

    A tree from a failed parse must never be trusted, so the parser raises
    this instead of returning a partial document.
    """

    def __init__(self, offset: int, message: str, text: str | None = None):
        self.offset = offset
        self.message = message
        self.line, self.column = _line_and_column(text, offset)
        super().__init__(f"{message} (line {self.line}, column {self.column}, offset {offset})")


class DocumentReadError(PdxSchemaError):
    """Input could not be turned into save text (encoding, missing archive entry)."""

    def __init__(self, message: str, file_path: str | None = None):
        self.file_path = file_path
        super().__init__(message)


class EmptyDocumentError(DocumentReadError):
    """Document has no content to analyze."""
    pass


class SchemaError(PdxSchemaError):
    """Schema model errors."""
    pass


class DescriptorError(SchemaError):
    """A type descriptor is malformed or not of the expected collection form."""

    def __init__(self, message: str, descriptor: str | None = None):
        self.descriptor = descriptor
        super().__init__(message)


class AnalysisCancelled(SchemaError):
    """The host asked the analyzer to stop."""
    pass


def _line_and_column(text: str | None, offset: int) -> tuple[int, int]:
    if not text:
        return 1, offset + 1
    offset = max(0, min(offset, len(text)))
    line = text.count("\n", 0, offset) + 1
    line_start = text.rfind("\n", 0, offset) + 1
    return line, offset - line_start + 1
