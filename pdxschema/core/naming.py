"""Name allocation for inferred types and fields.

Names are PascalCase identifiers, safe against the reserved words of the
configured target language, and unique within their scope. A scope is
either the global namespace (``None``) or the qualified name of the
enclosing type.
"""

import keyword
import logging
import re
from typing import Optional

from pdxschema.core.exceptions import ConfigError

logger = logging.getLogger(__name__)

RESERVED_PREFIX = "Pdx"
NUMERIC_NAME = "Entry"
UNNAMED = "Unnamed"

CSHARP_RESERVED = frozenset(word.lower() for word in (
    # keywords
    "abstract", "as", "base", "bool", "break", "byte", "case", "catch", "char", "checked",
    "class", "const", "continue", "decimal", "default", "delegate", "do", "double", "else",
    "enum", "event", "explicit", "extern", "false", "finally", "fixed", "float", "for",
    "foreach", "goto", "if", "implicit", "in", "int", "interface", "internal", "is", "lock",
    "long", "namespace", "new", "null", "object", "operator", "out", "override", "params",
    "private", "protected", "public", "readonly", "ref", "return", "sbyte", "sealed",
    "short", "sizeof", "stackalloc", "static", "string", "struct", "switch", "this", "throw",
    "true", "try", "typeof", "uint", "ulong", "unchecked", "unsafe", "ushort", "using",
    "virtual", "void", "volatile", "while",
    # framework types a generated class must not shadow
    "DateTime", "TimeSpan", "Guid", "Uri", "Version", "Type", "Exception",
    "List", "Dictionary", "HashSet", "Queue", "Stack", "Tuple", "Task",
))

PYTHON_RESERVED = frozenset(
    word.lower() for word in keyword.kwlist + getattr(keyword, "softkwlist", [])
)

RESERVED_WORDS = {
    "csharp": CSHARP_RESERVED,
    "python": PYTHON_RESERVED,
    "none": frozenset(),
}

_WORD_SPLIT = re.compile(r"[\W_]+")


def reserved_words(target: str) -> frozenset[str]:
    """Lower-cased reserved words for a target language.

    Raises:
        ConfigError: If the target is not known
    """
    try:
        return RESERVED_WORDS[target]
    except KeyError:
        raise ConfigError(
            f"Unknown keyword set '{target}'. Choose one of: {', '.join(RESERVED_WORDS)}"
        ) from None


def to_pascal_case(text: str) -> str:
    """``country_name`` -> ``CountryName``; ``0`` -> ``Entry``; ``1st_army`` -> ``N1stArmy``.

    Existing capitals inside a word are kept (``countryID`` -> ``CountryID``).
    """
    parts = [part for part in _WORD_SPLIT.split(text) if part]
    if not parts:
        return UNNAMED
    if all(part.isdigit() for part in parts):
        return NUMERIC_NAME

    name = "".join(part[0].upper() + part[1:] for part in parts)
    if name[0].isdigit():
        name = "N" + name
    return name


def singularize(name: str) -> str:
    """Best-effort English singular of a PascalCase name, or "" when there is none."""
    lower = name.lower()
    if lower.endswith("ies") and len(name) > 3:
        return name[:-3] + "y"
    if lower.endswith(("sses", "uses", "xes", "zes", "ches", "shes")) and not lower.endswith("ouses"):
        return name[:-2]
    if lower.endswith("s") and not lower.endswith(("ss", "us", "is")) and len(name) > 1:
        return name[:-1]
    return ""


def element_name(name: str) -> str:
    """Natural name for the element type of a collection called ``name``.

    ``Planets`` -> ``Planet``, ``Countries`` -> ``Country``, ``Items`` -> ``Item``,
    anything without a plural form -> ``<name>Item``.
    """
    if name.endswith("Item"):
        return name
    singular = singularize(name)
    if singular:
        return singular
    return f"{name}Item"


class NameAllocator:
    """Hands out unique names per scope. One allocator per analysis run."""

    def __init__(self, keywords: str = "csharp"):
        self.keywords = keywords
        self.reserved = reserved_words(keywords)
        self._scopes: dict[Optional[str], set[str]] = {}
        self._qualified: set[str] = set()
        self._fields: dict[str, set[str]] = {}

    def sanitize(self, base_name: str) -> str:
        """PascalCase the base name and escape reserved words."""
        name = to_pascal_case(base_name)
        if name.lower() in self.reserved:
            name = RESERVED_PREFIX + name
        return name

    def allocate(self, base_name: str, scope: Optional[str] = None) -> str:
        """Unique type name in ``scope``: ``Name``, then ``NameType2``, ``NameType3``..."""
        name = self.sanitize(base_name)
        taken = self._scopes.setdefault(scope, set())
        candidate = _first_free(name, "Type", taken)
        taken.add(candidate)
        if candidate != name:
            logger.debug(f"Name '{name}' taken in scope {scope or '<global>'}, using '{candidate}'")
        return candidate

    def qualify(self, name: str) -> str:
        """Reserve a globally unique qualified name derived from ``name``."""
        candidate = _first_free(name, "Type", self._qualified)
        self._qualified.add(candidate)
        return candidate

    def field_name(self, key: str, owner: str) -> str:
        """Unique field name within the type whose qualified name is ``owner``."""
        name = self.sanitize(key)
        taken = self._fields.setdefault(owner, set())
        candidate = _first_free(name, "Field", taken)
        taken.add(candidate)
        return candidate


def _first_free(name: str, suffix: str, taken: set[str]) -> str:
    if name not in taken:
        return name
    count = 2
    while f"{name}{suffix}{count}" in taken:
        count += 1
    return f"{name}{suffix}{count}"
