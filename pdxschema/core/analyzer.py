"""Schema inference over parsed save documents.

Analysis runs in two stages. First every document is walked once and each
node is recorded in a ``SchemaRegistry`` by structural path. Then the
analyzer walks the documents again and turns each node into a type
descriptor, consulting the registry whenever the node in hand is empty or
incomplete. All mutable state of a run lives in one ``AnalysisContext``.
"""

import logging
from dataclasses import dataclass, field
from typing import Callable, Iterable, Optional

from pdxschema.config.loader import AnalysisOptions
from pdxschema.core.exceptions import AnalysisCancelled
from pdxschema.core.naming import NameAllocator, element_name, to_pascal_case
from pdxschema.core.parsers.reader import INT32_MAX, INT32_MIN, INT64_MAX, INT64_MIN
from pdxschema.core.promotion import promote
from pdxschema.core.registry import (
    ROOT_PATH,
    SchemaRegistry,
    child_path,
    is_integer_key,
    item_path,
)
from pdxschema.core.signatures import deduplicate_types, node_signature
from pdxschema.models.document import Array, Document, Node, Object, Scalar, is_non_empty_composite
from pdxschema.models.result import Diagnostic, DiagnosticCode, Severity
from pdxschema.models.schema import (
    ANY,
    DictionaryOf,
    KeyKind,
    ListOf,
    Primitive,
    Reference,
    SchemaField,
    SchemaGraph,
    SchemaType,
    TypeDescriptor,
)

logger = logging.getLogger(__name__)


class AnalysisContext:
    """Everything one analysis run owns. Never share a context between runs."""

    def __init__(
        self,
        options: Optional[AnalysisOptions] = None,
        cancel_check: Optional[Callable[[], bool]] = None,
    ):
        self.options = options or AnalysisOptions()
        self.options.validate()
        self.registry = SchemaRegistry()
        self.allocator = NameAllocator(self.options.keywords)
        self.types_by_signature: dict[tuple[str, str], SchemaType] = {}
        self.types: list[SchemaType] = []
        self.diagnostics: list[Diagnostic] = []
        self.signature_cache: dict[int, str] = {}
        self.cancel_check = cancel_check
        self._reported: set[tuple[str, str]] = set()

    def report(self, code: str, severity: Severity, message: str, path: str = "") -> None:
        """Record a diagnostic once per (code, path)."""
        if (code, path) in self._reported:
            return
        self._reported.add((code, path))
        self.diagnostics.append(Diagnostic(code=code, severity=severity, message=message, path=path))
        if severity == Severity.INFO:
            logger.debug(f"{code} at '{path}': {message}")
        else:
            logger.warning(f"{code} at '{path}': {message}")

    def check_cancelled(self) -> None:
        if self.cancel_check is not None and self.cancel_check():
            raise AnalysisCancelled("Schema analysis was cancelled")


@dataclass
class AnalysisResult:
    graph: SchemaGraph
    diagnostics: list[Diagnostic] = field(default_factory=list)

    @property
    def codes(self) -> set[str]:
        return {d.code for d in self.diagnostics}


def _key_kind(keys: Iterable[str]) -> Optional[KeyKind]:
    """INT if every key fits 32 bits, LONG if 64, None if some key is wider."""
    kind = KeyKind.INT
    for key in keys:
        number = int(key)
        if INT32_MIN <= number <= INT32_MAX:
            continue
        if INT64_MIN <= number <= INT64_MAX:
            kind = KeyKind.LONG
            continue
        return None
    return kind


class SchemaAnalyzer:
    """Turns document nodes into type descriptors.

    Records become ``SchemaType``s registered in the context; dictionaries,
    lists and scalars become descriptors that reference them.
    """

    def __init__(self, context: AnalysisContext):
        self.context = context
        self.registry = context.registry
        self.options = context.options

    def analyze_document(self, document: Document, root_name: str = "Root") -> SchemaType:
        """Build the root record for ``document``.

        The root is always a record, never shared with another location, and
        takes the union of keys from every document registered at the root.
        """
        allocator = self.context.allocator
        name = allocator.allocate(root_name, None)
        root = SchemaType(name=name, qualified_name=allocator.qualify(name), source_path=ROOT_PATH)
        self.context.types.append(root)
        self._populate(root, document, ROOT_PATH, depth=0)
        logger.debug(f"Root type '{root.qualified_name}' has {len(root.fields)} fields")
        return root

    def analyze_node(
        self,
        node: Node,
        preferred_name: str,
        scope: Optional[str],
        path: str,
        depth: int = 0,
    ) -> TypeDescriptor:
        """Descriptor for ``node`` found at ``path``.

        ``preferred_name`` is the base name for a record created here and
        ``scope`` the qualified name of the enclosing type (None at top level).
        """
        self.context.check_cancelled()

        if isinstance(node, Scalar):
            return self._analyze_scalar(node, path)

        if depth > self.options.max_depth:
            self.context.report(
                DiagnosticCode.DEPTH_LIMIT, Severity.WARNING,
                f"Nesting deeper than max_depth={self.options.max_depth}; subtree typed as '{ANY.signature}'",
                path,
            )
            return ANY

        if isinstance(node, Object):
            return self._analyze_object(node, preferred_name, scope, path, depth)
        return self._analyze_array(node, preferred_name, scope, path, depth)

    def _analyze_scalar(self, node: Scalar, path: str) -> TypeDescriptor:
        kinds = self.registry.scalar_kinds_at(path)
        kinds.add(node.kind)
        promotion = promote(kinds)
        if promotion.promoted:
            self.context.report(
                DiagnosticCode.NUMERIC_PROMOTION, Severity.INFO,
                f"Mixed numeric values promoted to {promotion.kind.value}",
                path,
            )
        elif promotion.conflicting:
            observed = ", ".join(sorted(kind.value for kind in kinds))
            self.context.report(
                DiagnosticCode.CONFLICTING_SCALARS, Severity.WARNING,
                f"Incompatible scalar kinds ({observed}); typed as {promotion.kind.value}",
                path,
            )
        return Primitive(promotion.kind)

    def _analyze_object(
        self, node: Object, preferred_name: str, scope: Optional[str], path: str, depth: int
    ) -> TypeDescriptor:
        if node.is_empty:
            sibling = self.registry.first_non_empty(path)
            if sibling is None:
                self.context.report(
                    DiagnosticCode.EMPTY_OBJECT_NO_SHAPE, Severity.INFO,
                    "Only empty objects seen; typed as an empty record",
                    path,
                )
            else:
                self.context.report(
                    DiagnosticCode.EMPTY_OBJECT_EXPANDED, Severity.INFO,
                    f"Empty object takes its shape from a sibling {type(sibling).__name__.lower()}",
                    path,
                )
                if isinstance(sibling, Array):
                    return self._analyze_array(sibling, preferred_name, scope, path, depth)
                node = sibling

        keys = node.keys()
        if keys and all(is_integer_key(key) for key in keys):
            key_kind = _key_kind(keys)
            if key_kind is not None:
                return self._analyze_dictionary(node, key_kind, preferred_name, scope, path, depth)

        if self._is_data_dictionary(keys):
            self.context.report(
                DiagnosticCode.DATA_DICTIONARY, Severity.INFO,
                "Keys look like data rather than field names; typed as a string-keyed dictionary",
                path,
            )
            return self._analyze_dictionary(node, KeyKind.STRING, preferred_name, scope, path, depth)

        return self._analyze_record(node, preferred_name, scope, path, depth)

    def _is_data_dictionary(self, keys: list[str]) -> bool:
        numeric = [int(key) for key in keys if is_integer_key(key)]
        if not numeric:
            return False
        heuristics = self.options.dictionary
        if any(key < 0 or key > heuristics.max_field_key for key in numeric):
            return True
        return (
            len(keys) >= heuristics.min_entries
            and len(numeric) / len(keys) > heuristics.numeric_key_ratio
        )

    def _analyze_dictionary(
        self,
        node: Object,
        key_kind: KeyKind,
        preferred_name: str,
        scope: Optional[str],
        path: str,
        depth: int,
    ) -> TypeDescriptor:
        key, value = node.properties[0]
        if isinstance(value, Scalar):
            # A placeholder such as `none` may come before the real entries
            for other_key, other in node.properties:
                if not isinstance(other, Scalar):
                    self.context.report(
                        DiagnosticCode.MIXED_DICTIONARY_VALUES, Severity.WARNING,
                        "Dictionary mixes scalar and composite values; typed by the composite ones",
                        path,
                    )
                    key, value = other_key, other
                    break

        value_type = self.analyze_node(
            value, element_name(preferred_name), scope, child_path(path, key), depth + 1
        )
        return DictionaryOf(key_kind, value_type)

    def _analyze_record(
        self, node: Object, preferred_name: str, scope: Optional[str], path: str, depth: int
    ) -> TypeDescriptor:
        # Only reuse a record built at this same path: a type from elsewhere has not
        # seen the union of keys and scalar kinds recorded here
        signature_key = (path, node_signature(node, self.context.signature_cache))
        existing = self.context.types_by_signature.get(signature_key)
        if existing is not None:
            return Reference(existing)

        if len(self.context.types) >= self.options.max_types:
            self.context.report(
                DiagnosticCode.TYPE_LIMIT, Severity.WARNING,
                f"More than max_types={self.options.max_types} types; record typed as '{ANY.signature}'",
                path,
            )
            return ANY

        allocator = self.context.allocator
        name = allocator.allocate(preferred_name, scope)
        schema_type = SchemaType(
            name=name,
            qualified_name=allocator.qualify(name),
            scope=scope,
            source_path=path,
        )
        # Registered before its fields so nested occurrences of the same shape resolve to it
        self.context.types_by_signature[signature_key] = schema_type
        self.context.types.append(schema_type)
        shapes = len(set(self.registry.signatures_at(path)))
        if shapes > 1:
            logger.debug(f"Record '{schema_type.qualified_name}' unifies {shapes} shapes seen at '{path}'")
        self._populate(schema_type, node, path, depth)
        return Reference(schema_type)

    def _populate(self, schema_type: SchemaType, node: Object, path: str, depth: int) -> None:
        groups = node.grouped()
        keys = list(groups)
        for key in self.registry.child_keys(path):
            if key not in groups:
                keys.append(key)

        for key in keys:
            values = groups.get(key, [])
            key_path = child_path(path, key)
            repeated = len(values) > 1 or self.registry.is_key_repeated(path, key)
            representative = self._representative(values, key_path)
            base_name = schema_type.name + to_pascal_case(key)

            if repeated:
                element = self.analyze_node(
                    representative, element_name(base_name), schema_type.qualified_name,
                    key_path, depth + 1,
                )
                descriptor: TypeDescriptor = ListOf(element)
            else:
                descriptor = self.analyze_node(
                    representative, base_name, schema_type.qualified_name, key_path, depth + 1
                )

            schema_type.fields.append(SchemaField(
                source_key=key,
                name=self.context.allocator.field_name(key, schema_type.qualified_name),
                type=descriptor,
                nullable=self.registry.is_key_optional(path, key) or descriptor == ANY,
                represents_repeated_key=repeated,
            ))

    def _representative(self, values: list[Node], path: str) -> Node:
        """The value that best describes a field: a composite with content wins over a scalar."""
        for value in values:
            if is_non_empty_composite(value):
                return value
        sibling = self.registry.first_non_empty(path)
        if values:
            if sibling is not None and isinstance(values[0], Scalar):
                self.context.report(
                    DiagnosticCode.CONFLICTING_SCALARS, Severity.WARNING,
                    "Scalar placeholder next to composite values; typed by the composite ones",
                    path,
                )
                return sibling
            return values[0]
        if sibling is not None:
            return sibling
        return self.registry.instances_at(path)[0]

    def _analyze_array(
        self, node: Array, preferred_name: str, scope: Optional[str], path: str, depth: int
    ) -> TypeDescriptor:
        if node.is_empty:
            sibling = self.registry.first_non_empty(path, kinds=(Array,))
            if sibling is None:
                self.context.report(
                    DiagnosticCode.EMPTY_ARRAY_NO_SHAPE, Severity.INFO,
                    f"Only empty arrays seen; typed as list<{ANY.signature}>",
                    path,
                )
                return ListOf(ANY)
            node = sibling

        pair_dictionary = self._analyze_pair_dictionary(node, preferred_name, scope, path, depth)
        if pair_dictionary is not None:
            return pair_dictionary

        items_path = item_path(path)
        scalars = [item for item in node.items if isinstance(item, Scalar)]
        composites = [item for item in node.items if not isinstance(item, Scalar)]
        if scalars and composites:
            self.context.report(
                DiagnosticCode.HETEROGENEOUS_ARRAY, Severity.WARNING,
                f"Array mixes scalars and blocks; typed as list<{ANY.signature}>",
                path,
            )
            return ListOf(ANY)
        if composites and len({type(item) for item in composites}) > 1:
            self.context.report(
                DiagnosticCode.HETEROGENEOUS_ARRAY, Severity.WARNING,
                "Array mixes objects and arrays; typed by the first non-empty item",
                path,
            )

        representative = self._representative(list(node.items), items_path)
        element = self.analyze_node(
            representative, element_name(preferred_name), scope, items_path, depth + 1
        )
        return ListOf(element)

    def _analyze_pair_dictionary(
        self, node: Array, preferred_name: str, scope: Optional[str], path: str, depth: int
    ) -> Optional[TypeDescriptor]:
        """``{ {1 {...}} {2 {...}} }``: a dictionary written as [key, object] pairs."""
        matches = [_is_pair(item) for item in node.items]
        if not any(matches):
            return None
        if not all(matches):
            self.context.report(
                DiagnosticCode.PAIR_DICTIONARY_FALLBACK, Severity.WARNING,
                "Some items look like [key, object] pairs and some do not; typed as a list",
                path,
            )
            return None

        keys = [item.items[0].raw for item in node.items]
        key_kind = _key_kind(keys) or KeyKind.STRING
        values = [item.items[1] for item in node.items]
        pair_path = item_path(item_path(path))
        representative = self._representative(values, pair_path)
        value_type = self.analyze_node(
            representative, element_name(preferred_name), scope, pair_path, depth + 1
        )
        return DictionaryOf(key_kind, value_type, pair_encoded=True)


def _is_pair(node: Node) -> bool:
    return (
        isinstance(node, Array)
        and len(node.items) == 2
        and isinstance(node.items[0], Scalar)
        and node.items[0].is_integral
        and isinstance(node.items[1], Object)
    )


def analyze_documents(
    documents: Iterable[Document],
    root_name: str = "Root",
    options: Optional[AnalysisOptions] = None,
    cancel_check: Optional[Callable[[], bool]] = None,
) -> AnalysisResult:
    """Infer one schema graph from one or more parsed documents.

    Args:
        documents: Parsed save documents of the same kind
        root_name: Base name for the root type
        options: Bounds and heuristics, defaults when omitted
        cancel_check: Polled at every node; returning True aborts the run

    Returns:
        AnalysisResult with the deduplicated graph and the diagnostics

    Raises:
        AnalysisCancelled: If ``cancel_check`` asked to stop
    """
    context = AnalysisContext(options, cancel_check)
    documents = list(documents)
    for document in documents:
        context.registry.collect(document, context.signature_cache)

    non_empty = [document for document in documents if not document.is_empty]
    if not non_empty:
        context.report(
            DiagnosticCode.EMPTY_DOCUMENT, Severity.WARNING,
            "No document has content; the root type is empty",
        )
    first = non_empty[0] if non_empty else Object()

    analyzer = SchemaAnalyzer(context)
    root = analyzer.analyze_document(first, root_name)
    graph = SchemaGraph(root=root, types=list(context.types))
    created = len(graph.types)

    for merged in deduplicate_types(graph):
        context.report(
            DiagnosticCode.TYPES_MERGED, Severity.INFO,
            f"'{merged.removed.qualified_name}' has the same shape as "
            f"'{merged.kept.qualified_name}' and was merged into it",
            merged.removed.source_path,
        )

    graph.validate()
    logger.info(
        f"Inferred {len(graph.types)} types ({created} created) from {len(documents)} document(s), "
        f"{len(context.diagnostics)} diagnostics"
    )
    return AnalysisResult(graph=graph, diagnostics=list(context.diagnostics))
