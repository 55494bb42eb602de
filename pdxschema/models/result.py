from enum import Enum
from typing import Optional, Any
from pydantic import BaseModel, Field


class DiagnosticCode:
    """Stable codes for soft problems, grouped by stage."""
    PARSE_FAILED = "PDXSA100"
    EMPTY_DOCUMENT = "PDXSA101"
    EMPTY_OBJECT_EXPANDED = "PDXSA300"
    EMPTY_OBJECT_NO_SHAPE = "PDXSA301"
    EMPTY_ARRAY_NO_SHAPE = "PDXSA302"
    DATA_DICTIONARY = "PDXSA310"
    PAIR_DICTIONARY_FALLBACK = "PDXSA311"
    MIXED_DICTIONARY_VALUES = "PDXSA312"
    CONFLICTING_SCALARS = "PDXSA320"
    HETEROGENEOUS_ARRAY = "PDXSA321"
    NUMERIC_PROMOTION = "PDXSA330"
    TYPES_MERGED = "PDXSA340"
    DEPTH_LIMIT = "PDXSA401"
    TYPE_LIMIT = "PDXSA402"


class Severity(str, Enum):
    """How much a diagnostic degrades the inferred schema."""
    INFO = "info"          # A heuristic decided the shape
    WARNING = "warning"    # Shape is a best guess, review recommended
    ERROR = "error"        # Input was skipped or a subtree was cut short


class Diagnostic(BaseModel):
    """A soft problem found while parsing a batch or inferring a schema."""

    code: str = Field(description="Stable diagnostic code, e.g. PDXSA401")
    severity: Severity = Field(description="Severity of the problem")
    message: str = Field(description="Human-readable explanation")
    path: str = Field(default="", description="Structural path the diagnostic refers to")

    def __str__(self) -> str:
        location = f" at '{self.path}'" if self.path else ""
        return f"{self.code} [{self.severity.value}]{location}: {self.message}"


class FieldReport(BaseModel):
    """One field of an exported record type."""

    source_key: str = Field(description="Key as written in the save")
    name: str = Field(description="Allocated field name")
    type: str = Field(description="Type descriptor signature, e.g. list<ref<Country>>")
    nullable: bool = Field(default=False, description="Absent from some instances")
    repeated: bool = Field(default=False, description="Collected from a repeated key")


class TypeReport(BaseModel):
    """One exported record type."""

    name: str
    qualified_name: str
    scope: Optional[str] = None
    source_path: str = ""
    fields: list[FieldReport] = Field(default_factory=list)


class SourceReport(BaseModel):
    """Outcome of reading one input file."""

    source_file: str
    success: bool
    char_count: int = 0
    duration_ms: int = 0
    error: Optional[str] = None


class SchemaReport(BaseModel):
    """The JSON document written for one schema run."""

    schema_name: str = Field(description="Name of the schema in config")
    root: str = Field(description="Qualified name of the root type")
    types: list[TypeReport] = Field(default_factory=list)
    diagnostics: list[Diagnostic] = Field(default_factory=list)
    sources: list[SourceReport] = Field(default_factory=list)

    @classmethod
    def from_graph(
        cls,
        schema_name: str,
        graph: Any,
        diagnostics: list[Diagnostic],
        sources: Optional[list[SourceReport]] = None,
    ) -> "SchemaReport":
        """Build a report from a SchemaGraph."""
        graph_dict = graph.to_dict()
        return cls(
            schema_name=schema_name,
            root=graph_dict["root"],
            types=[TypeReport(**t) for t in graph_dict["types"]],
            diagnostics=list(diagnostics),
            sources=list(sources or []),
        )

    def graph_dict(self) -> dict[str, Any]:
        """The part of the report that SchemaGraph.from_dict accepts."""
        return {
            "root": self.root,
            "types": [t.model_dump() for t in self.types],
        }

    def to_output_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON output."""
        result = {
            "_schema": self.schema_name,
            "root": self.root,
            "types": [t.model_dump() for t in self.types],
            "diagnostics": [d.model_dump(mode="json") for d in self.diagnostics],
        }
        if self.sources:
            result["_sources"] = [s.model_dump(exclude_none=True) for s in self.sources]
        return result

    @classmethod
    def from_output_dict(cls, data: dict[str, Any]) -> "SchemaReport":
        return cls(
            schema_name=data.get("_schema", ""),
            root=data["root"],
            types=data.get("types", []),
            diagnostics=data.get("diagnostics", []),
            sources=data.get("_sources", []),
        )
