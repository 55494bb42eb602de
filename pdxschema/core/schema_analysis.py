"""Schema analysis utilities for summaries of an inferred graph."""

from collections import Counter
from dataclasses import dataclass, field

from pdxschema.models.schema import (
    DictionaryOf,
    ListOf,
    Primitive,
    PrimitiveKind,
    Reference,
    SchemaGraph,
    walk_descriptor,
)


@dataclass
class TypeInfo:
    """Information about one record type in a graph."""
    name: str
    field_count: int
    nullable_count: int
    referenced_by: int = 0


@dataclass
class SchemaAnalysis:
    """Analysis of an inferred schema graph."""
    name: str
    total_types: int
    total_fields: int
    nullable_fields: int
    repeated_fields: int
    list_fields: int
    dictionary_fields: int
    opaque_fields: int  # fields whose type contains 'any'
    types: list[TypeInfo] = field(default_factory=list)
    primitive_counts: dict[str, int] = field(default_factory=dict)

    @property
    def largest_types(self) -> list[TypeInfo]:
        return sorted(self.types, key=lambda t: t.field_count, reverse=True)[:5]

    @property
    def most_referenced(self) -> list[TypeInfo]:
        referenced = [t for t in self.types if t.referenced_by]
        return sorted(referenced, key=lambda t: t.referenced_by, reverse=True)[:5]

    def format_summary(self) -> str:
        """Format analysis as human-readable summary."""
        lines = [
            f"  Types: {self.total_types}",
            f"  Fields: {self.total_fields} ({self.nullable_fields} nullable, {self.repeated_fields} from repeated keys)",
            f"  Collections: {self.list_fields} lists, {self.dictionary_fields} dictionaries",
        ]

        if self.opaque_fields:
            lines.append(f"  Opaque fields (any): {self.opaque_fields}")

        if self.primitive_counts:
            details = ", ".join(f"{k}: {v}" for k, v in sorted(self.primitive_counts.items()))
            lines.append(f"  Primitives: {details}")

        if self.types:
            largest = ", ".join(f"{t.name} ({t.field_count})" for t in self.largest_types)
            lines.append(f"  Largest types: {largest}")

        if self.most_referenced:
            shared = ", ".join(f"{t.name} ({t.referenced_by})" for t in self.most_referenced)
            lines.append(f"  Most referenced: {shared}")

        return "\n".join(lines)


def analyze_graph(graph: SchemaGraph, name: str = None) -> SchemaAnalysis:
    """Count types, fields and collection shapes in a schema graph.

    Args:
        graph: Inferred schema graph
        name: Optional name override (defaults to the root type's name)

    Returns:
        SchemaAnalysis with counts per category
    """
    if name is None:
        name = graph.root.qualified_name

    references: Counter[str] = Counter()
    primitives: Counter[str] = Counter()
    type_infos = []
    total_fields = nullable = repeated = lists = dictionaries = opaque = 0

    for schema_type in graph.types:
        type_infos.append(TypeInfo(
            name=schema_type.qualified_name,
            field_count=len(schema_type.fields),
            nullable_count=sum(1 for f in schema_type.fields if f.nullable),
        ))
        for f in schema_type.fields:
            total_fields += 1
            nullable += f.nullable
            repeated += f.represents_repeated_key
            if isinstance(f.type, ListOf):
                lists += 1
            elif isinstance(f.type, DictionaryOf):
                dictionaries += 1

            is_opaque = False
            for descriptor in walk_descriptor(f.type):
                if isinstance(descriptor, Reference):
                    references[descriptor.target.qualified_name] += 1
                elif isinstance(descriptor, Primitive):
                    primitives[descriptor.kind.value] += 1
                    is_opaque = is_opaque or descriptor.kind == PrimitiveKind.ANY
            opaque += is_opaque

    for info in type_infos:
        info.referenced_by = references[info.name]

    return SchemaAnalysis(
        name=name,
        total_types=len(graph.types),
        total_fields=total_fields,
        nullable_fields=nullable,
        repeated_fields=repeated,
        list_fields=lists,
        dictionary_fields=dictionaries,
        opaque_fields=opaque,
        types=type_infos,
        primitive_counts=dict(primitives),
    )
