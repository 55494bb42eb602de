"""Tests for schema analysis utilities."""

import pytest

from pdxschema.core.schema_analysis import SchemaAnalysis, TypeInfo, analyze_graph
from pdxschema.models.schema import (
    ANY,
    DictionaryOf,
    KeyKind,
    ListOf,
    Primitive,
    PrimitiveKind,
    Reference,
    SchemaField,
    SchemaGraph,
    SchemaType,
)

STRING = Primitive(PrimitiveKind.STRING)


@pytest.fixture
def graph():
    flag = SchemaType(name="Flag", qualified_name="Flag")
    flag.fields.append(SchemaField("colors", "Colors", ListOf(STRING)))
    country = SchemaType(name="Country", qualified_name="Country")
    country.fields.extend([
        SchemaField("name", "Name", STRING),
        SchemaField("flag", "Flag", Reference(flag), nullable=True),
        SchemaField("trait", "Trait", ListOf(STRING), represents_repeated_key=True),
    ])
    root = SchemaType(name="Root", qualified_name="Root")
    root.fields.extend([
        SchemaField("country", "Country", DictionaryOf(KeyKind.INT, Reference(country))),
        SchemaField("misc", "Misc", ANY, nullable=True),
    ])
    return SchemaGraph(root=root, types=[root, country, flag])


class TestAnalyzeGraph:
    """Tests for analyze_graph function."""

    def test_counts(self, graph):
        """Test field and type counts."""
        analysis = analyze_graph(graph)

        assert analysis.name == "Root"
        assert analysis.total_types == 3
        assert analysis.total_fields == 6
        assert analysis.nullable_fields == 2
        assert analysis.repeated_fields == 1

    def test_collections(self, graph):
        """Test lists and dictionaries are counted by a field's outer shape."""
        analysis = analyze_graph(graph)

        assert analysis.list_fields == 2
        assert analysis.dictionary_fields == 1

    def test_opaque_and_primitives(self, graph):
        """Test that 'any' fields are counted and primitives tallied through collections."""
        analysis = analyze_graph(graph)

        assert analysis.opaque_fields == 1
        assert analysis.primitive_counts == {"string": 3, "any": 1}

    def test_references(self, graph):
        """Test that each type knows how often it is referenced."""
        analysis = analyze_graph(graph)
        referenced = {info.name: info.referenced_by for info in analysis.types}

        assert referenced == {"Root": 0, "Country": 1, "Flag": 1}

    def test_largest_types(self, graph):
        """Test that the largest types come first."""
        analysis = analyze_graph(graph)
        assert [t.name for t in analysis.largest_types] == ["Country", "Root", "Flag"]

    def test_custom_name(self, graph):
        """Test providing custom name."""
        assert analyze_graph(graph, name="gamestate").name == "gamestate"


class TestSchemaAnalysisFormatting:
    """Tests for SchemaAnalysis formatting."""

    def test_format_summary(self, graph):
        """Test formatting a full analysis."""
        summary = analyze_graph(graph).format_summary()

        assert "Types: 3" in summary
        assert "Fields: 6 (2 nullable, 1 from repeated keys)" in summary
        assert "Collections: 2 lists, 1 dictionaries" in summary
        assert "Opaque fields (any): 1" in summary
        assert "Primitives: any: 1, string: 3" in summary
        assert "Largest types: Country (3)" in summary
        assert "Most referenced: Country (1), Flag (1)" in summary

    def test_format_summary_minimal(self):
        """Test formatting without types or opaque fields."""
        analysis = SchemaAnalysis(
            name="Test",
            total_types=1,
            total_fields=0,
            nullable_fields=0,
            repeated_fields=0,
            list_fields=0,
            dictionary_fields=0,
            opaque_fields=0,
        )
        summary = analysis.format_summary()

        assert "Types: 1" in summary
        assert "Opaque" not in summary
        assert "Largest" not in summary
        assert "Most referenced" not in summary

    def test_largest_types_capped(self):
        """Test that only five types are listed."""
        analysis = SchemaAnalysis(
            name="Test", total_types=7, total_fields=0, nullable_fields=0, repeated_fields=0,
            list_fields=0, dictionary_fields=0, opaque_fields=0,
            types=[TypeInfo(name=f"T{i}", field_count=i, nullable_count=0) for i in range(7)],
        )
        assert [t.name for t in analysis.largest_types] == ["T6", "T5", "T4", "T3", "T2"]

    def test_most_referenced_skips_unreferenced(self, graph):
        """Test that types nothing points at are left out."""
        analysis = analyze_graph(graph)
        assert [t.name for t in analysis.most_referenced] == ["Country", "Flag"]
