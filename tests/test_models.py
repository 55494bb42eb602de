"""Tests for data models."""

from datetime import datetime, timedelta

import pytest

from pdxschema.core.exceptions import DescriptorError, SchemaError
from pdxschema.models.document import Array, Object, Scalar, ScalarKind, is_non_empty_composite
from pdxschema.models.metadata import FileMetadata, RunMetadata
from pdxschema.models.result import Diagnostic, DiagnosticCode, SchemaReport, Severity
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
    dictionary_value,
    parse_descriptor,
)


def _int(value: int) -> Scalar:
    return Scalar(ScalarKind.INT32, str(value), value)


@pytest.fixture
def sample_graph():
    """Root -> Country (dict) -> Flag, with a list and a nullable field."""
    flag = SchemaType(name="RootCountryFlag", qualified_name="RootCountryFlag", scope="RootCountry")
    flag.fields.append(SchemaField("colors", "Colors", ListOf(Primitive(PrimitiveKind.STRING))))
    country = SchemaType(name="RootCountry", qualified_name="RootCountry", scope="Root", source_path="country.*")
    country.fields.extend([
        SchemaField("name", "Name", Primitive(PrimitiveKind.STRING)),
        SchemaField("flag", "Flag", Reference(flag), nullable=True),
        SchemaField("trait", "Trait", ListOf(Primitive(PrimitiveKind.STRING)), represents_repeated_key=True),
    ])
    root = SchemaType(name="Root", qualified_name="Root")
    root.fields.append(SchemaField("country", "Country", DictionaryOf(KeyKind.INT, Reference(country))))
    return SchemaGraph(root=root, types=[root, country, flag])


class TestDocumentNodes:
    """Tests for Object, Array and Scalar."""

    def test_object_accessors(self):
        obj = Object((("a", _int(1)), ("b", _int(2)), ("a", _int(3))))

        assert len(obj) == 3
        assert obj.keys() == ["a", "b"]
        assert obj.get("a").value == 1
        assert obj.get("missing") is None
        assert [v.value for v in obj.get_all("a")] == [1, 3]
        assert list(obj.grouped()) == ["a", "b"]

    def test_empty_nodes(self):
        assert Object().is_empty
        assert Array().is_empty
        assert not is_non_empty_composite(Object())
        assert is_non_empty_composite(Array((_int(1),)))

    def test_scalar_kind_helpers(self):
        assert _int(1).is_numeric
        assert _int(1).is_integral
        assert Scalar(ScalarKind.FLOAT, "1.5", 1.5).is_numeric
        assert not Scalar(ScalarKind.FLOAT, "1.5", 1.5).is_integral
        assert not Scalar(ScalarKind.STRING, "x", "x").is_numeric

    def test_nodes_are_frozen(self):
        obj = Object()
        with pytest.raises(AttributeError):
            obj.properties = ()


class TestDescriptors:
    """Tests for type descriptors and their signatures."""

    def test_signatures(self, sample_graph):
        country = sample_graph.get("RootCountry")

        assert Primitive(PrimitiveKind.INT).signature == "int"
        assert ListOf(Primitive(PrimitiveKind.STRING)).signature == "list<string>"
        assert DictionaryOf(KeyKind.INT, Reference(country)).signature == "dict<int,ref<RootCountry>>"
        assert DictionaryOf(KeyKind.LONG, ANY, pair_encoded=True).signature == "pairdict<long,any>"

    def test_descriptor_equality(self):
        assert ListOf(Primitive(PrimitiveKind.INT)) == ListOf(Primitive(PrimitiveKind.INT))
        assert ANY == Primitive(PrimitiveKind.ANY)

    def test_references_compare_by_target_identity(self):
        a = SchemaType(name="A", qualified_name="A")
        b = SchemaType(name="A", qualified_name="A")
        assert Reference(a) == Reference(a)
        assert Reference(a) != Reference(b)

    def test_parse_descriptor(self, sample_graph):
        types = {t.qualified_name: t for t in sample_graph.types}
        descriptor = parse_descriptor("dict<int,list<ref<RootCountry>>>", types)

        assert isinstance(descriptor, DictionaryOf)
        assert descriptor.key_kind == KeyKind.INT
        assert descriptor.value == ListOf(Reference(sample_graph.get("RootCountry")))

    def test_parse_pair_dictionary(self):
        descriptor = parse_descriptor("pairdict<long,float>")
        assert descriptor == DictionaryOf(KeyKind.LONG, Primitive(PrimitiveKind.FLOAT), pair_encoded=True)

    @pytest.mark.parametrize("text", [
        "",
        "list<int",
        "dict<int>",
        "dict<float,int>",
        "map<int>",
        "int>",
        "ref<Missing>",
    ])
    def test_parse_descriptor_errors(self, text):
        with pytest.raises(DescriptorError):
            parse_descriptor(text, {})

    def test_dictionary_value(self):
        assert dictionary_value("dict<string,bool>") == Primitive(PrimitiveKind.BOOL)
        assert dictionary_value(DictionaryOf(KeyKind.INT, ANY)) == ANY

    def test_dictionary_value_rejects_other_forms(self):
        with pytest.raises(DescriptorError, match="Expected a dictionary"):
            dictionary_value("list<int>")

    def test_dictionary_value_broken_descriptor(self):
        with pytest.raises(DescriptorError, match="Malformed"):
            dictionary_value("dict<int,")


class TestSchemaGraph:
    """Tests for SchemaGraph lookups, validation and JSON form."""

    def test_get(self, sample_graph):
        assert sample_graph.get("RootCountryFlag").name == "RootCountryFlag"
        assert sample_graph.get("Nope") is None

    def test_validate_ok(self, sample_graph):
        sample_graph.validate()

    def test_validate_dangling_reference(self, sample_graph):
        outsider = SchemaType(name="Outsider", qualified_name="Outsider")
        sample_graph.root.fields.append(SchemaField("x", "X", Reference(outsider)))

        with pytest.raises(SchemaError, match="outside the graph"):
            sample_graph.validate()

    def test_validate_duplicate_names(self, sample_graph):
        sample_graph.types.append(SchemaType(name="Root", qualified_name="Root"))
        with pytest.raises(SchemaError, match="Duplicate"):
            sample_graph.validate()

    def test_json_round_trip(self, sample_graph):
        restored = SchemaGraph.from_json(sample_graph.to_json())

        assert restored.root.qualified_name == "Root"
        assert [t.qualified_name for t in restored.types] == ["Root", "RootCountry", "RootCountryFlag"]
        assert restored.to_dict() == sample_graph.to_dict()
        country = restored.get("RootCountry")
        assert country.get_field("flag").type.target is restored.get("RootCountryFlag")
        restored.validate()

    def test_to_dict_field_form(self, sample_graph):
        country = sample_graph.to_dict()["types"][1]
        trait = country["fields"][2]

        assert country["source_path"] == "country.*"
        assert trait == {
            "source_key": "trait",
            "name": "Trait",
            "type": "list<string>",
            "nullable": False,
            "repeated": True,
        }

    def test_from_dict_unknown_root(self, sample_graph):
        data = sample_graph.to_dict()
        data["root"] = "Missing"
        with pytest.raises(SchemaError, match="Root type"):
            SchemaGraph.from_dict(data)


class TestDiagnostics:
    """Tests for the pydantic result models."""

    def test_diagnostic_str(self):
        diagnostic = Diagnostic(
            code=DiagnosticCode.DEPTH_LIMIT,
            severity=Severity.WARNING,
            message="too deep",
            path="a.b",
        )
        assert str(diagnostic) == "PDXSA401 [warning] at 'a.b': too deep"

    def test_diagnostic_serialization(self):
        diagnostic = Diagnostic(code="PDXSA330", severity=Severity.INFO, message="promoted")
        data = diagnostic.model_dump(mode="json")
        assert data == {"code": "PDXSA330", "severity": "info", "message": "promoted", "path": ""}

    def test_report_round_trip(self, sample_graph):
        report = SchemaReport.from_graph(
            "gamestate",
            sample_graph,
            [Diagnostic(code="PDXSA300", severity=Severity.INFO, message="m", path="x")],
        )
        restored = SchemaReport.from_output_dict(report.to_output_dict())

        assert restored.schema_name == "gamestate"
        assert restored.root == "Root"
        assert len(restored.types) == 3
        assert restored.diagnostics[0].severity == Severity.INFO
        assert SchemaGraph.from_dict(restored.graph_dict()).to_dict() == sample_graph.to_dict()

    def test_output_dict_keys(self, sample_graph):
        output = SchemaReport.from_graph("gamestate", sample_graph, []).to_output_dict()
        assert output["_schema"] == "gamestate"
        assert "_sources" not in output
        assert output["types"][0]["fields"][0]["type"] == "dict<int,ref<RootCountry>>"


class TestRunMetadata:
    """Tests for run metadata aggregation."""

    def test_record_counts(self):
        started = datetime(2024, 1, 1, 12, 0, 0)
        run = RunMetadata(schema_name="gamestate", started_at=started)
        run.record(FileMetadata("a.sav", started, started + timedelta(milliseconds=250), True, char_count=100))
        run.record(FileMetadata("b.sav", started, started, False, error="boom"))
        run.completed_at = started + timedelta(seconds=1)

        assert run.files_processed == 2
        assert run.files_succeeded == 1
        assert run.files_failed == 1
        assert run.files[0].duration_ms == 250
        assert run.duration_ms == 1000

        summary = run.to_summary_dict()
        assert summary["_type"] == "run_summary"
        assert summary["total_chars"] == 100
        assert summary["duration_ms"] == 1000

    def test_file_to_dict(self):
        now = datetime(2024, 1, 1)
        data = FileMetadata("a.sav", now, now, False, archive_entry="meta", error="boom").to_dict()
        assert data["archive_entry"] == "meta"
        assert data["error"] == "boom"
