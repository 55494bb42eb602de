"""Signatures for document nodes and schema types, plus graph deduplication.

Two signatures live here:

* the node signature, a canonical string for the shape of one parsed node
  (``{id:int;name:string}``). While the analyzer runs, a record is reused
  only for a node of the same signature at the same path.
* the structural signature of a finished ``SchemaType``: its sorted
  ``name:typeSignature`` pairs with references expanded. Recursion is written
  positionally (``^1`` is the type itself, ``^2`` its parent on the current
  path) so cyclic graphs still get a finite, comparable signature.
"""

import hashlib
import logging
from dataclasses import dataclass
from typing import Optional

from pdxschema.models.document import Array, Node, Object, Scalar, ScalarKind
from pdxschema.models.schema import (
    DictionaryOf,
    ListOf,
    Primitive,
    Reference,
    SchemaGraph,
    SchemaType,
    TypeDescriptor,
)

logger = logging.getLogger(__name__)

SCALAR_SIGNATURES = {
    ScalarKind.STRING: "string",
    ScalarKind.IDENTIFIER: "string",
    ScalarKind.BOOL: "bool",
    ScalarKind.INT32: "int",
    ScalarKind.INT64: "long",
    ScalarKind.FLOAT: "float",
    ScalarKind.DATE: "datetime",
    ScalarKind.GUID: "guid",
}

EMPTY_LIST_SIGNATURE = "list<empty>"
COMPACT_THRESHOLD = 96


def node_signature(node: Node, cache: Optional[dict[int, str]] = None) -> str:
    """Canonical shape string for a node.

    Objects list every ``key:signature`` pair sorted; arrays are typed by
    their first item. Computed iteratively, post-order, so deep trees are
    fine. Signatures longer than ``COMPACT_THRESHOLD`` are replaced by a
    digest, so equal shapes still compare equal without parents growing with
    the size of their subtree. ``cache`` maps ``id(node)`` to a computed
    signature and is only valid while the nodes are alive.
    """
    if cache is None:
        cache = {}
    if isinstance(node, Scalar):
        return SCALAR_SIGNATURES[node.kind]

    stack: list[tuple[Node, bool]] = [(node, False)]
    while stack:
        current, children_done = stack.pop()
        if isinstance(current, Scalar) or id(current) in cache:
            continue

        children = _children(current)
        if not children_done:
            stack.append((current, True))
            for child in children:
                if not isinstance(child, Scalar) and id(child) not in cache:
                    stack.append((child, False))
            continue

        if isinstance(current, Array):
            if current.is_empty:
                cache[id(current)] = EMPTY_LIST_SIGNATURE
            else:
                cache[id(current)] = _compact(f"list<{_cached(current.items[0], cache)}>")
        else:
            pairs = sorted(f"{key}:{_cached(value, cache)}" for key, value in current.properties)
            cache[id(current)] = _compact("{" + ";".join(pairs) + "}")

    return cache[id(node)]


def _children(node: Node) -> list[Node]:
    if isinstance(node, Object):
        return [value for _, value in node.properties]
    if isinstance(node, Array):
        return list(node.items[:1])  # only the first item takes part in the signature
    return []


def _cached(node: Node, cache: dict[int, str]) -> str:
    if isinstance(node, Scalar):
        return SCALAR_SIGNATURES[node.kind]
    return cache[id(node)]


def _compact(signature: str) -> str:
    # Parents embed child signatures, so long ones are folded into a digest
    if len(signature) <= COMPACT_THRESHOLD:
        return signature
    return "#" + hashlib.blake2b(signature.encode("utf-8"), digest_size=16).hexdigest()


class StructuralSignatures:
    """Computes structural signatures of schema types, memoizing closed ones."""

    def __init__(self):
        self._memo: dict[int, str] = {}

    def of_type(self, schema_type: SchemaType) -> str:
        return self._type(schema_type, [])

    def _type(self, schema_type: SchemaType, visiting: list[SchemaType]) -> str:
        memo = self._memo.get(id(schema_type))
        if memo is not None:
            return memo

        for depth, ancestor in enumerate(reversed(visiting), start=1):
            if ancestor is schema_type:
                return f"^{depth}"

        visiting.append(schema_type)
        pairs = [f"{f.name}:{self._descriptor(f.type, visiting)}" for f in schema_type.fields]
        visiting.pop()

        signature = "{" + ";".join(sorted(pairs)) + "}"
        if "^" not in signature:
            # No back-reference escapes this type, so the signature is context free
            self._memo[id(schema_type)] = signature
        return signature

    def _descriptor(self, descriptor: TypeDescriptor, visiting: list[SchemaType]) -> str:
        if isinstance(descriptor, Primitive):
            return descriptor.signature
        if isinstance(descriptor, ListOf):
            return f"list<{self._descriptor(descriptor.element, visiting)}>"
        if isinstance(descriptor, DictionaryOf):
            prefix = "pairdict" if descriptor.pair_encoded else "dict"
            return f"{prefix}<{descriptor.key_kind.value},{self._descriptor(descriptor.value, visiting)}>"
        return self._type(descriptor.target, visiting)


@dataclass
class MergedType:
    removed: SchemaType
    kept: SchemaType
    signature: str


def rewrite_descriptor(descriptor: TypeDescriptor, replacements: dict[int, SchemaType]) -> TypeDescriptor:
    """Return ``descriptor`` with references to replaced types redirected."""
    if isinstance(descriptor, Reference):
        target = replacements.get(id(descriptor.target))
        return Reference(target) if target is not None else descriptor
    if isinstance(descriptor, ListOf):
        element = rewrite_descriptor(descriptor.element, replacements)
        return descriptor if element is descriptor.element else ListOf(element)
    if isinstance(descriptor, DictionaryOf):
        value = rewrite_descriptor(descriptor.value, replacements)
        if value is descriptor.value:
            return descriptor
        return DictionaryOf(descriptor.key_kind, value, pair_encoded=descriptor.pair_encoded)
    return descriptor


def _merge_field_flags(kept: SchemaType, removed: SchemaType) -> None:
    removed_fields = {f.name: f for f in removed.fields}
    for f in kept.fields:
        other = removed_fields.get(f.name)
        if other is not None:
            f.nullable = f.nullable or other.nullable
            f.represents_repeated_key = f.represents_repeated_key or other.represents_repeated_key


def deduplicate_types(graph: SchemaGraph) -> list[MergedType]:
    """Merge non-root types that ended up structurally identical.

    The first type in graph order survives; references to the others are
    rewritten in place and the others are dropped from ``graph.types``.
    Signatures ignore field flags, so a surviving field becomes nullable or
    repeated if any merged counterpart was.
    """
    signatures = StructuralSignatures()
    kept_by_signature: dict[str, SchemaType] = {}
    replacements: dict[int, SchemaType] = {}
    merged: list[MergedType] = []

    for schema_type in graph.types:
        if schema_type is graph.root:
            continue
        signature = signatures.of_type(schema_type)
        kept = kept_by_signature.get(signature)
        if kept is None:
            kept_by_signature[signature] = schema_type
            continue
        replacements[id(schema_type)] = kept
        merged.append(MergedType(schema_type, kept, signature))
        _merge_field_flags(kept, schema_type)

    if not merged:
        return merged

    graph.types = [t for t in graph.types if id(t) not in replacements]
    for schema_type in graph.types:
        for f in schema_type.fields:
            f.type = rewrite_descriptor(f.type, replacements)

    logger.info(f"Merged {len(merged)} structurally identical types")
    return merged
