"""Inferred schema: record types, field descriptors and the type graph."""

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterator, List, Mapping, Optional, Union

from pdxschema.core.exceptions import DescriptorError, SchemaError


class PrimitiveKind(str, Enum):
    STRING = "string"
    BOOL = "bool"
    INT = "int"
    LONG = "long"
    FLOAT = "float"
    DATETIME = "datetime"
    GUID = "guid"
    ANY = "any"  # opaque: nothing known, or a bound was hit


class KeyKind(str, Enum):
    INT = "int"
    LONG = "long"
    STRING = "string"


@dataclass(frozen=True)
class Primitive:
    kind: PrimitiveKind

    @property
    def signature(self) -> str:
        return self.kind.value


@dataclass(frozen=True)
class ListOf:
    element: "TypeDescriptor"

    @property
    def signature(self) -> str:
        return f"list<{self.element.signature}>"


@dataclass(frozen=True)
class DictionaryOf:
    key_kind: KeyKind
    value: "TypeDescriptor"
    pair_encoded: bool = False  # stored as { {key {...}} {key {...}} } rather than key={...}

    @property
    def signature(self) -> str:
        prefix = "pairdict" if self.pair_encoded else "dict"
        return f"{prefix}<{self.key_kind.value},{self.value.signature}>"


@dataclass(frozen=True)
class Reference:
    target: "SchemaType"

    @property
    def signature(self) -> str:
        return f"ref<{self.target.qualified_name}>"


TypeDescriptor = Union[Primitive, ListOf, DictionaryOf, Reference]

ANY = Primitive(PrimitiveKind.ANY)


@dataclass
class SchemaField:
    source_key: str  # key as written in the save
    name: str
    type: TypeDescriptor
    nullable: bool = False
    represents_repeated_key: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "source_key": self.source_key,
            "name": self.name,
            "type": self.type.signature,
            "nullable": self.nullable,
            "repeated": self.represents_repeated_key,
        }


@dataclass(eq=False)
class SchemaType:
    """A record type. Compared by identity: two types are equal only if they are the same object."""
    name: str
    qualified_name: str
    fields: List[SchemaField] = field(default_factory=list)
    scope: Optional[str] = None  # qualified name of the enclosing type, None for top level
    source_path: str = ""

    def get_field(self, source_key: str) -> Optional[SchemaField]:
        for f in self.fields:
            if f.source_key == source_key:
                return f
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "qualified_name": self.qualified_name,
            "scope": self.scope,
            "source_path": self.source_path,
            "fields": [f.to_dict() for f in self.fields],
        }

    def __repr__(self) -> str:
        return f"SchemaType({self.qualified_name!r}, fields={len(self.fields)})"


@dataclass
class SchemaGraph:
    root: SchemaType
    types: List[SchemaType] = field(default_factory=list)

    def get(self, qualified_name: str) -> Optional[SchemaType]:
        for schema_type in self.types:
            if schema_type.qualified_name == qualified_name:
                return schema_type
        return None

    def references(self) -> Iterator[Reference]:
        for schema_type in self.types:
            for f in schema_type.fields:
                for descriptor in walk_descriptor(f.type):
                    if isinstance(descriptor, Reference):
                        yield descriptor

    def validate(self) -> None:
        """Check that the root and every referenced type belong to the graph.

        Raises:
            SchemaError: If a reference dangles or a qualified name is reused
        """
        members = {id(t) for t in self.types}
        if id(self.root) not in members:
            raise SchemaError(f"Root type '{self.root.qualified_name}' is not part of the graph")

        seen: set[str] = set()
        for schema_type in self.types:
            if schema_type.qualified_name in seen:
                raise SchemaError(f"Duplicate qualified name '{schema_type.qualified_name}'")
            seen.add(schema_type.qualified_name)

        for reference in self.references():
            if id(reference.target) not in members:
                raise SchemaError(
                    f"Reference to '{reference.target.qualified_name}' points outside the graph"
                )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "root": self.root.qualified_name,
            "types": [t.to_dict() for t in self.types],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SchemaGraph":
        try:
            types = [
                SchemaType(
                    name=t["name"],
                    qualified_name=t["qualified_name"],
                    scope=t.get("scope"),
                    source_path=t.get("source_path", ""),
                )
                for t in data["types"]
            ]
        except (KeyError, TypeError) as e:
            raise SchemaError(f"Invalid schema graph: missing {e}") from e

        by_name = {t.qualified_name: t for t in types}
        for schema_type, raw in zip(types, data["types"]):
            for f in raw.get("fields", []):
                schema_type.fields.append(SchemaField(
                    source_key=f["source_key"],
                    name=f["name"],
                    type=parse_descriptor(f["type"], by_name),
                    nullable=f.get("nullable", False),
                    represents_repeated_key=f.get("repeated", False),
                ))

        root = by_name.get(data.get("root", ""))
        if root is None:
            raise SchemaError(f"Root type '{data.get('root')}' not found in graph")
        return cls(root=root, types=types)

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), indent=2)

    @classmethod
    def from_json(cls, json_str: str) -> "SchemaGraph":
        return cls.from_dict(json.loads(json_str))


def walk_descriptor(descriptor: TypeDescriptor) -> Iterator[TypeDescriptor]:
    """Yield a descriptor and every descriptor nested in it. References are not followed."""
    stack = [descriptor]
    while stack:
        current = stack.pop()
        yield current
        if isinstance(current, ListOf):
            stack.append(current.element)
        elif isinstance(current, DictionaryOf):
            stack.append(current.value)


class _DescriptorParser:
    """Recursive-descent reader for descriptor signatures such as ``dict<int,list<ref<Root>>>``."""

    def __init__(self, text: str, types_by_name: Optional[Mapping[str, SchemaType]]):
        self.text = text
        self.pos = 0
        self.types_by_name = types_by_name or {}

    def parse(self) -> TypeDescriptor:
        descriptor = self._descriptor()
        if self.pos != len(self.text):
            self._fail(f"unexpected trailing text '{self.text[self.pos:]}'")
        return descriptor

    def _word(self) -> str:
        start = self.pos
        while self.pos < len(self.text) and (self.text[self.pos].isalnum() or self.text[self.pos] in "_."):
            self.pos += 1
        return self.text[start:self.pos]

    def _expect(self, char: str) -> None:
        if self.pos >= len(self.text) or self.text[self.pos] != char:
            found = self.text[self.pos] if self.pos < len(self.text) else "end of descriptor"
            self._fail(f"expected '{char}', found '{found}'")
        self.pos += 1

    def _descriptor(self) -> TypeDescriptor:
        word = self._word()
        if not word:
            self._fail("expected a type name")

        if word == "list":
            self._expect("<")
            element = self._descriptor()
            self._expect(">")
            return ListOf(element)

        if word in ("dict", "pairdict"):
            self._expect("<")
            key = self._word()
            try:
                key_kind = KeyKind(key)
            except ValueError:
                self._fail(f"'{key}' is not a dictionary key kind")
            self._expect(",")
            value = self._descriptor()
            self._expect(">")
            return DictionaryOf(key_kind, value, pair_encoded=word == "pairdict")

        if word == "ref":
            self._expect("<")
            name = self._word()
            self._expect(">")
            target = self.types_by_name.get(name)
            if target is None:
                self._fail(f"unknown type '{name}'")
            return Reference(target)

        try:
            return Primitive(PrimitiveKind(word))
        except ValueError:
            self._fail(f"unknown type name '{word}'")

    def _fail(self, reason: str):
        raise DescriptorError(f"Malformed type descriptor '{self.text}': {reason}", self.text)


def parse_descriptor(
    signature: str,
    types_by_name: Optional[Mapping[str, SchemaType]] = None,
) -> TypeDescriptor:
    """Parse a descriptor signature back into a descriptor.

    ``ref<...>`` targets are resolved against ``types_by_name``.

    Raises:
        DescriptorError: If the signature is malformed or names an unknown type
    """
    return _DescriptorParser(signature, types_by_name).parse()


def dictionary_value(
    descriptor: Union[TypeDescriptor, str],
    types_by_name: Optional[Mapping[str, SchemaType]] = None,
) -> TypeDescriptor:
    """Value type of a dictionary descriptor.

    Raises:
        DescriptorError: If the descriptor is broken or not a dictionary
    """
    if isinstance(descriptor, str):
        descriptor = parse_descriptor(descriptor, types_by_name)
    if not isinstance(descriptor, DictionaryOf):
        raise DescriptorError(
            f"Expected a dictionary descriptor, got '{descriptor.signature}'",
            descriptor.signature,
        )
    return descriptor.value
