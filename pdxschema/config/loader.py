import yaml
import os
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Any

from pdxschema.core.exceptions import ConfigError

MAX_DEPTH_LIMIT = 150
MAX_DEPTH_DEFAULT = 48
MAX_TYPES_DEFAULT = 5000


def _substitute_env_vars(value: Any) -> Any:
    """Substitute ${VAR} patterns with environment variables."""
    if isinstance(value, str):
        pattern = r'\$\{([^}]+)\}'
        matches = re.findall(pattern, value)
        for var_name in matches:
            env_value = os.environ.get(var_name, "")
            value = value.replace(f"${{{var_name}}}", env_value)
        return value
    elif isinstance(value, dict):
        return {k: _substitute_env_vars(v) for k, v in value.items()}
    elif isinstance(value, list):
        return [_substitute_env_vars(v) for v in value]
    return value


class KeywordSet(str, Enum):
    """Target language whose reserved words generated names must avoid."""
    CSHARP = "csharp"
    PYTHON = "python"
    NONE = "none"


@dataclass
class DictionaryHeuristics:
    """When an object with some numeric keys is treated as a data dictionary."""
    numeric_key_ratio: float = 0.75  # share of numeric keys above which it is a dictionary
    min_entries: int = 5             # ...provided it has at least this many keys
    max_field_key: int = 1_000_000   # any numeric key outside [0, max] means dictionary


@dataclass
class AnalysisOptions:
    """Bounds and heuristics for one analysis run."""
    max_depth: int = MAX_DEPTH_DEFAULT
    max_types: int = MAX_TYPES_DEFAULT
    keywords: KeywordSet = KeywordSet.CSHARP
    dictionary: DictionaryHeuristics = field(default_factory=DictionaryHeuristics)

    def validate(self) -> None:
        """Raises ConfigError if a bound or heuristic is out of range."""
        if not 1 <= self.max_depth <= MAX_DEPTH_LIMIT:
            raise ConfigError(
                f"max_depth must be between 1 and {MAX_DEPTH_LIMIT}, got {self.max_depth}"
            )
        if self.max_types < 1:
            raise ConfigError(f"max_types must be at least 1, got {self.max_types}")
        if not 0 < self.dictionary.numeric_key_ratio <= 1:
            raise ConfigError(
                f"dictionary.numeric_key_ratio must be in (0, 1], "
                f"got {self.dictionary.numeric_key_ratio}"
            )
        if self.dictionary.min_entries < 1:
            raise ConfigError(
                f"dictionary.min_entries must be at least 1, got {self.dictionary.min_entries}"
            )
        if self.dictionary.max_field_key < 0:
            raise ConfigError(
                f"dictionary.max_field_key cannot be negative, got {self.dictionary.max_field_key}"
            )


@dataclass
class SchemaConfig:
    """Configuration for one schema inference run.

    Convention: schema name determines paths:
    - Sources: sources/<name>/ (default, if no sources override)
    - Output: outputs/<name>.schema.json (default, if no output override)
    """
    name: str  # Schema name - the single source of truth
    root_name: str = "Root"  # Name of the root type
    entry: Optional[str] = None  # Member to read from zipped .sav archives
    sources: list[str] = field(default_factory=list)  # Paths or globs, overrides convention
    output: Optional[str] = None  # Output file, overrides convention

    @property
    def sources_path(self) -> str:
        """Default path to sources directory (used if no sources override)."""
        return f"sources/{self.name}/"

    @property
    def output_path(self) -> str:
        """Path to the schema JSON file."""
        return self.output or f"outputs/{self.name}.schema.json"

    @property
    def source_patterns(self) -> list[str]:
        """Effective source paths: the override list, or the convention directory."""
        return self.sources or [self.sources_path]


@dataclass
class Config:
    """Main configuration object.

    Uses convention-based schema configuration where the schema name
    determines the default source directory and output file.
    """
    schemas: list[SchemaConfig]
    analysis: AnalysisOptions = field(default_factory=AnalysisOptions)

    def get_schema(self, name: str) -> Optional[SchemaConfig]:
        """Get a schema config by name."""
        for schema in self.schemas:
            if schema.name == name:
                return schema
        return None


DEFAULT_CONFIG = """# pdxschema Configuration
# Schema name determines all paths by convention:
#   sources/<name>/, outputs/<name>.schema.json

analysis:
  max_depth: 48
  max_types: 5000
  keywords: csharp  # csharp | python | none

schemas:
  - gamestate  # Simple: just the schema name
"""


def load_config(path: str = "pdxschema.yml") -> Config:
    """Loads configuration from a YAML file.

    Args:
        path: Path to the config file

    Returns:
        Parsed Config object

    Raises:
        ConfigError: If config file is missing, invalid YAML, or has invalid values
    """
    if not os.path.exists(path):
        raise ConfigError(
            f"Configuration file not found: {path}\n"
            f"Run 'pdxschema init' to create a new project."
        )

    try:
        with open(path, 'r') as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(
            f"Invalid YAML in {path}:\n{e}"
        )

    if data is None:
        raise ConfigError(f"Config file {path} is empty.")
    if not isinstance(data, dict):
        raise ConfigError(f"Config file {path} must contain a mapping.")

    # Substitute environment variables
    data = _substitute_env_vars(data)

    schemas = _parse_schemas(data)
    analysis = parse_analysis_options(data.get("analysis"))

    return Config(schemas=schemas, analysis=analysis)


def parse_analysis_options(data: Optional[dict]) -> AnalysisOptions:
    """Build validated AnalysisOptions from the 'analysis' config section."""
    if data is None:
        return AnalysisOptions()
    if not isinstance(data, dict):
        raise ConfigError("'analysis' must be a mapping.")

    keywords_str = data.get("keywords", KeywordSet.CSHARP.value)
    try:
        keywords = KeywordSet(str(keywords_str).lower())
    except ValueError:
        valid = ", ".join(k.value for k in KeywordSet)
        raise ConfigError(
            f"Invalid analysis.keywords '{keywords_str}'. Valid options: {valid}"
        )

    dict_data = data.get("dictionary") or {}
    if not isinstance(dict_data, dict):
        raise ConfigError("'analysis.dictionary' must be a mapping.")

    try:
        options = AnalysisOptions(
            max_depth=int(data.get("max_depth", MAX_DEPTH_DEFAULT)),
            max_types=int(data.get("max_types", MAX_TYPES_DEFAULT)),
            keywords=keywords,
            dictionary=DictionaryHeuristics(
                numeric_key_ratio=float(dict_data.get("numeric_key_ratio", 0.75)),
                min_entries=int(dict_data.get("min_entries", 5)),
                max_field_key=int(dict_data.get("max_field_key", 1_000_000)),
            ),
        )
    except (TypeError, ValueError) as e:
        raise ConfigError(f"Invalid number in 'analysis' section: {e}")

    options.validate()
    return options


def _parse_schemas(data: dict) -> list[SchemaConfig]:
    """Parse schema configurations from config data."""
    if "schemas" not in data:
        raise ConfigError(
            "Missing schema configuration.\n\n"
            "Add a 'schemas' section:\n\n"
            "schemas:\n"
            "  - gamestate\n"
            "  - meta\n\n"
            "Schema name determines all paths:\n"
            "  sources/<name>/\n"
            "  outputs/<name>.schema.json"
        )

    schemas_data = data["schemas"]
    if not isinstance(schemas_data, list):
        raise ConfigError(
            "'schemas' must be a list.\n"
            "Example:\n\n"
            "schemas:\n"
            "  - gamestate\n"
            "  - meta"
        )
    if not schemas_data:
        raise ConfigError("'schemas' list cannot be empty.")

    schemas = []
    for i, item in enumerate(schemas_data):
        if isinstance(item, str):
            # Simple format: just schema name
            schemas.append(SchemaConfig(name=item))
        elif isinstance(item, dict):
            # Extended format: schema with options
            if "name" not in item:
                raise ConfigError(
                    f"Missing 'name' in schemas[{i}].\n"
                    "Use either:\n"
                    "  - schema_name\n"
                    "Or:\n"
                    "  - name: schema_name\n"
                    "    root_name: Gamestate"
                )
            sources = item.get("sources", [])
            if isinstance(sources, str):
                sources = [sources]
            if not isinstance(sources, list):
                raise ConfigError(f"'sources' in schemas[{i}] must be a path or a list of paths.")

            schemas.append(SchemaConfig(
                name=item["name"],
                root_name=item.get("root_name", "Root"),
                entry=item.get("entry"),
                sources=[str(s) for s in sources],
                output=item.get("output"),
            ))
        else:
            raise ConfigError(
                f"Invalid schema entry at index {i}. "
                "Must be a string or object with 'name' field."
            )

    names = [s.name for s in schemas]
    duplicates = sorted({n for n in names if names.count(n) > 1})
    if duplicates:
        raise ConfigError(f"Duplicate schema names: {', '.join(duplicates)}")
    return schemas
