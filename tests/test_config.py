"""Tests for configuration loading."""

import pytest

from pdxschema.config.loader import (
    DEFAULT_CONFIG,
    MAX_DEPTH_DEFAULT,
    AnalysisOptions,
    KeywordSet,
    SchemaConfig,
    load_config,
    parse_analysis_options,
)
from pdxschema.core.exceptions import ConfigError


class TestSchemaConfig:
    """Tests for SchemaConfig dataclass."""

    def test_paths_from_name(self):
        """Test that all paths are derived from schema name."""
        config = SchemaConfig(name="gamestate")

        assert config.sources_path == "sources/gamestate/"
        assert config.output_path == "outputs/gamestate.schema.json"
        assert config.source_patterns == ["sources/gamestate/"]

    def test_overrides(self):
        """Test that explicit sources and output win over convention."""
        config = SchemaConfig(name="gamestate", sources=["saves/*.sav"], output="out.json")

        assert config.source_patterns == ["saves/*.sav"]
        assert config.output_path == "out.json"

    def test_defaults(self):
        """Test root name and archive entry defaults."""
        config = SchemaConfig(name="gamestate")
        assert config.root_name == "Root"
        assert config.entry is None


class TestLoadConfig:
    """Tests for load_config function."""

    def test_load_sample(self, sample_config_file):
        """Test loading the shared sample config."""
        config = load_config(str(sample_config_file))

        assert [s.name for s in config.schemas] == ["gamestate"]
        assert config.analysis.max_depth == 32
        assert config.analysis.keywords == KeywordSet.PYTHON

    def test_load_schema_with_options(self, temp_dir):
        """Test loading config with schema options."""
        config_yaml = """schemas:
  - name: gamestate
    root_name: GameState
    entry: gamestate
    sources: saves/
    output: schemas/gamestate.json
  - meta
"""
        config_file = temp_dir / "pdxschema.yml"
        config_file.write_text(config_yaml)

        config = load_config(str(config_file))
        gamestate = config.get_schema("gamestate")

        assert gamestate.root_name == "GameState"
        assert gamestate.entry == "gamestate"
        assert gamestate.sources == ["saves/"]
        assert gamestate.output_path == "schemas/gamestate.json"
        assert config.get_schema("meta").root_name == "Root"
        assert config.get_schema("nonexistent") is None

    def test_default_analysis_options(self, temp_dir):
        """Test that a missing analysis section gives defaults."""
        config_file = temp_dir / "pdxschema.yml"
        config_file.write_text("schemas:\n  - gamestate\n")

        config = load_config(str(config_file))

        assert config.analysis.max_depth == MAX_DEPTH_DEFAULT
        assert config.analysis.keywords == KeywordSet.CSHARP
        assert config.analysis.dictionary.min_entries == 5

    def test_default_config_template_loads(self, temp_dir):
        """Test that the template written by 'init' is a valid config."""
        config_file = temp_dir / "pdxschema.yml"
        config_file.write_text(DEFAULT_CONFIG)

        config = load_config(str(config_file))
        assert config.schemas[0].name == "gamestate"

    def test_env_var_substitution(self, temp_dir, monkeypatch):
        """Test that ${VAR} patterns are replaced from the environment."""
        monkeypatch.setenv("SAVE_DIR", "/games/saves")
        config_file = temp_dir / "pdxschema.yml"
        config_file.write_text("schemas:\n  - name: gamestate\n    sources: ${SAVE_DIR}/*.sav\n")

        config = load_config(str(config_file))
        assert config.schemas[0].sources == ["/games/saves/*.sav"]

    def test_missing_config_file(self, temp_dir):
        """Test error when config file doesn't exist."""
        with pytest.raises(ConfigError) as exc_info:
            load_config(str(temp_dir / "nonexistent.yml"))

        assert "Configuration file not found" in str(exc_info.value)

    def test_empty_config_file(self, temp_dir):
        """Test error for empty config file."""
        config_file = temp_dir / "pdxschema.yml"
        config_file.write_text("")

        with pytest.raises(ConfigError) as exc_info:
            load_config(str(config_file))

        assert "empty" in str(exc_info.value)

    def test_invalid_yaml(self, temp_dir):
        """Test error for invalid YAML syntax."""
        config_file = temp_dir / "pdxschema.yml"
        config_file.write_text("schemas:\n  - [invalid")

        with pytest.raises(ConfigError) as exc_info:
            load_config(str(config_file))

        assert "Invalid YAML" in str(exc_info.value)

    def test_not_a_mapping(self, temp_dir):
        """Test error when the file holds a list."""
        config_file = temp_dir / "pdxschema.yml"
        config_file.write_text("- gamestate\n")

        with pytest.raises(ConfigError, match="must contain a mapping"):
            load_config(str(config_file))

    def test_empty_schemas_list(self, temp_dir):
        """Test error for empty schemas list."""
        config_file = temp_dir / "pdxschema.yml"
        config_file.write_text("schemas: []\n")

        with pytest.raises(ConfigError) as exc_info:
            load_config(str(config_file))

        assert "cannot be empty" in str(exc_info.value)

    def test_schemas_not_list(self, temp_dir):
        """Test error when schemas is not a list."""
        config_file = temp_dir / "pdxschema.yml"
        config_file.write_text("schemas:\n  name: not_a_list\n")

        with pytest.raises(ConfigError) as exc_info:
            load_config(str(config_file))

        assert "must be a list" in str(exc_info.value)

    def test_missing_name_in_extended_format(self, temp_dir):
        """Test error when extended format is missing 'name'."""
        config_file = temp_dir / "pdxschema.yml"
        config_file.write_text("schemas:\n  - root_name: Meta\n")

        with pytest.raises(ConfigError) as exc_info:
            load_config(str(config_file))

        assert "Missing 'name'" in str(exc_info.value)

    def test_invalid_schema_entry(self, temp_dir):
        """Test error for a schema entry that is neither string nor mapping."""
        config_file = temp_dir / "pdxschema.yml"
        config_file.write_text("schemas:\n  - 42\n")

        with pytest.raises(ConfigError, match="Invalid schema entry"):
            load_config(str(config_file))

    def test_duplicate_schema_names(self, temp_dir):
        """Test error when two schemas share a name."""
        config_file = temp_dir / "pdxschema.yml"
        config_file.write_text("schemas:\n  - gamestate\n  - name: gamestate\n")

        with pytest.raises(ConfigError, match="Duplicate schema names: gamestate"):
            load_config(str(config_file))

    def test_no_schemas_config(self, temp_dir):
        """Test error when no schema config is provided."""
        config_file = temp_dir / "pdxschema.yml"
        config_file.write_text("analysis:\n  max_depth: 10\n")

        with pytest.raises(ConfigError) as exc_info:
            load_config(str(config_file))

        assert "Missing schema configuration" in str(exc_info.value)


class TestAnalysisOptions:
    """Tests for the analysis section."""

    def test_parse_full_section(self):
        """Test every analysis setting is read."""
        options = parse_analysis_options({
            "max_depth": 20,
            "max_types": 100,
            "keywords": "NONE",
            "dictionary": {"numeric_key_ratio": 0.5, "min_entries": 3, "max_field_key": 999},
        })

        assert options.max_depth == 20
        assert options.max_types == 100
        assert options.keywords == KeywordSet.NONE
        assert options.dictionary.numeric_key_ratio == 0.5
        assert options.dictionary.min_entries == 3
        assert options.dictionary.max_field_key == 999

    def test_invalid_keywords(self):
        """Test error for an unknown keyword set."""
        with pytest.raises(ConfigError, match="Invalid analysis.keywords"):
            parse_analysis_options({"keywords": "cobol"})

    def test_invalid_number(self):
        """Test error for a non-numeric bound."""
        with pytest.raises(ConfigError, match="Invalid number"):
            parse_analysis_options({"max_depth": "deep"})

    @pytest.mark.parametrize("section,message", [
        ({"max_depth": 0}, "max_depth"),
        ({"max_depth": 151}, "max_depth"),
        ({"max_types": 0}, "max_types"),
        ({"dictionary": {"numeric_key_ratio": 1.5}}, "numeric_key_ratio"),
        ({"dictionary": {"min_entries": 0}}, "min_entries"),
        ({"dictionary": {"max_field_key": -1}}, "max_field_key"),
    ])
    def test_out_of_range(self, section, message):
        """Test that bounds are validated."""
        with pytest.raises(ConfigError, match=message):
            parse_analysis_options(section)

    def test_depth_cap_is_allowed(self):
        """Test that the maximum depth itself is accepted."""
        AnalysisOptions(max_depth=150).validate()
