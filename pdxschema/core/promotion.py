"""Numeric promotion across every scalar observed at one path."""

from dataclasses import dataclass
from typing import Iterable

from pdxschema.models.document import ScalarKind
from pdxschema.models.schema import PrimitiveKind

PRIMITIVE_FOR_SCALAR = {
    ScalarKind.STRING: PrimitiveKind.STRING,
    ScalarKind.IDENTIFIER: PrimitiveKind.STRING,
    ScalarKind.BOOL: PrimitiveKind.BOOL,
    ScalarKind.INT32: PrimitiveKind.INT,
    ScalarKind.INT64: PrimitiveKind.LONG,
    ScalarKind.FLOAT: PrimitiveKind.FLOAT,
    ScalarKind.DATE: PrimitiveKind.DATETIME,
    ScalarKind.GUID: PrimitiveKind.GUID,
}

# Widening order; promotion only ever moves right
NUMERIC_RANK = {
    PrimitiveKind.INT: 0,
    PrimitiveKind.LONG: 1,
    PrimitiveKind.FLOAT: 2,
}


@dataclass(frozen=True)
class Promotion:
    kind: PrimitiveKind
    promoted: bool = False     # numeric kinds were widened
    conflicting: bool = False  # incompatible kinds, fell back to string


def widen(current: PrimitiveKind, other: PrimitiveKind) -> PrimitiveKind:
    """Widest of two numeric kinds: int+long is long, anything+float is float."""
    return current if NUMERIC_RANK[current] >= NUMERIC_RANK[other] else other


def promote(kinds: Iterable[ScalarKind]) -> Promotion:
    """Single primitive kind for all scalar kinds seen at a path.

    Numeric kinds widen to the largest one. Kinds that cannot be reconciled
    (a bool next to a string, a number next to an identifier) become STRING
    and are flagged as conflicting.
    """
    primitives = {PRIMITIVE_FOR_SCALAR[kind] for kind in kinds}
    if not primitives:
        return Promotion(PrimitiveKind.ANY)
    if len(primitives) == 1:
        return Promotion(next(iter(primitives)))

    if all(kind in NUMERIC_RANK for kind in primitives):
        result = PrimitiveKind.INT
        for kind in primitives:
            result = widen(result, kind)
        return Promotion(result, promoted=True)

    return Promotion(PrimitiveKind.STRING, conflicting=True)
