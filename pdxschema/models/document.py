"""Document tree produced by the save parser.

A parsed save is a tree of three node kinds: ``Object`` (ordered key/value
pairs, keys may repeat), ``Array`` (ordered items) and ``Scalar``. Nodes are
frozen once the parser hands them out.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterator, Union


class ScalarKind(str, Enum):
    """Lexical kind of a scalar value."""
    STRING = "string"          # quoted text
    IDENTIFIER = "identifier"  # unquoted bare token, typed like a string
    BOOL = "bool"
    INT32 = "int32"
    INT64 = "int64"
    FLOAT = "float"
    DATE = "date"
    GUID = "guid"


NUMERIC_KINDS = frozenset({ScalarKind.INT32, ScalarKind.INT64, ScalarKind.FLOAT})
INTEGRAL_KINDS = frozenset({ScalarKind.INT32, ScalarKind.INT64})


@dataclass(frozen=True)
class Scalar:
    kind: ScalarKind
    raw: str  # text as written, without quotes
    value: Any

    @property
    def is_numeric(self) -> bool:
        return self.kind in NUMERIC_KINDS

    @property
    def is_integral(self) -> bool:
        return self.kind in INTEGRAL_KINDS


@dataclass(frozen=True)
class Array:
    items: tuple["Node", ...] = ()

    def __len__(self) -> int:
        return len(self.items)

    def __iter__(self) -> Iterator["Node"]:
        return iter(self.items)

    @property
    def is_empty(self) -> bool:
        return not self.items


@dataclass(frozen=True)
class Object:
    """Ordered ``(key, value)`` pairs.

    A key that appears more than once is a repeated field, not an error, so
    ``properties`` is a tuple of pairs rather than a mapping.
    """
    properties: tuple[tuple[str, "Node"], ...] = ()

    def __len__(self) -> int:
        return len(self.properties)

    @property
    def is_empty(self) -> bool:
        return not self.properties

    def keys(self) -> list[str]:
        """Distinct keys in first-seen order."""
        return list(dict.fromkeys(key for key, _ in self.properties))

    def get(self, key: str, default: "Node | None" = None) -> "Node | None":
        """First value stored under ``key``."""
        for k, value in self.properties:
            if k == key:
                return value
        return default

    def get_all(self, key: str) -> list["Node"]:
        """Every value stored under ``key``, in document order."""
        return [value for k, value in self.properties if k == key]

    def grouped(self) -> dict[str, list["Node"]]:
        """Values grouped by key, keys in first-seen order."""
        groups: dict[str, list[Node]] = {}
        for key, value in self.properties:
            groups.setdefault(key, []).append(value)
        return groups


Node = Union[Object, Array, Scalar]

# The root of a parsed save is always an Object.
Document = Object


def is_non_empty_composite(node: Node) -> bool:
    return isinstance(node, (Object, Array)) and not node.is_empty
