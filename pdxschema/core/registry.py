"""Schema registry: everything seen at each structural path of a corpus.

The registry is filled in one full pass before analysis so the analyzer can
look sideways at sibling instances when the instance in hand is empty or
incomplete.

Paths: the root is ``""``; a child key appends ``.key`` (no leading dot at
the root); array items append ``[]``. Integer-like keys are normalized to
``*`` so every entry of an indexed dictionary shares one path.
"""

import logging
import re
from collections import Counter
from typing import Iterable, Optional

from pdxschema.core.signatures import node_signature
from pdxschema.models.document import Array, Node, Object, Scalar, ScalarKind

logger = logging.getLogger(__name__)

ROOT_PATH = ""
WILDCARD = "*"
ITEM_SUFFIX = "[]"

_INTEGER_KEY = re.compile(r"-?\d+\Z")


def is_integer_key(key: str) -> bool:
    return bool(_INTEGER_KEY.match(key))


def child_path(path: str, key: str) -> str:
    segment = WILDCARD if is_integer_key(key) else key
    return f"{path}.{segment}" if path else segment


def item_path(path: str) -> str:
    return f"{path}{ITEM_SUFFIX}"


class SchemaRegistry:
    """Per-run record of node instances, object signatures and scalar kinds by path."""

    def __init__(self):
        self._instances: dict[str, list[Node]] = {}
        self._signatures: dict[str, dict[str, None]] = {}
        self._scalar_kinds: dict[str, dict[ScalarKind, None]] = {}
        self._child_keys: dict[str, dict[str, None]] = {}
        self._object_counts: Counter = Counter()
        self._key_counts: dict[str, Counter] = {}
        self._repeated_keys: dict[str, set[str]] = {}

    def register_instance(self, path: str, node: Node) -> None:
        """Record one occurrence of ``node`` at ``path``."""
        self._instances.setdefault(path, []).append(node)
        if isinstance(node, Scalar):
            self._scalar_kinds.setdefault(path, {})[node.kind] = None
        elif isinstance(node, Object):
            self._object_counts[path] += 1
            keys = self._child_keys.setdefault(path, {})
            counts = self._key_counts.setdefault(path, Counter())
            occurrences = Counter(key for key, _ in node.properties)
            for key, times in occurrences.items():
                keys[key] = None
                counts[key] += 1
                if times > 1:
                    self._repeated_keys.setdefault(path, set()).add(key)

    def register_object_signature(self, path: str, signature: str) -> None:
        self._signatures.setdefault(path, {})[signature] = None

    def collect(self, document: Object, signature_cache: Optional[dict[int, str]] = None) -> None:
        """Register the document and every node below it."""
        if signature_cache is None:
            signature_cache = {}
        stack: list[tuple[str, Node]] = [(ROOT_PATH, document)]
        count = 0
        while stack:
            path, node = stack.pop()
            self.register_instance(path, node)
            count += 1
            if isinstance(node, Object):
                self.register_object_signature(path, node_signature(node, signature_cache))
                # Reversed so children are registered in document order
                for key, value in reversed(node.properties):
                    stack.append((child_path(path, key), value))
            elif isinstance(node, Array):
                items = item_path(path)
                for value in reversed(node.items):
                    stack.append((items, value))
        logger.debug(f"Registered {count} nodes, {len(self._instances)} paths")

    def instances_at(self, path: str) -> list[Node]:
        return list(self._instances.get(path, ()))

    def has_non_empty_instance(self, path: str) -> bool:
        """True if some Object or Array at ``path`` has content."""
        return self.first_non_empty(path) is not None

    def first_non_empty(self, path: str, kinds: Iterable[type] = (Object, Array)) -> Optional[Node]:
        """First composite instance at ``path`` with content, limited to node ``kinds``."""
        kinds = tuple(kinds)
        for node in self._instances.get(path, ()):
            if isinstance(node, kinds) and not node.is_empty:
                return node
        return None

    def signatures_at(self, path: str) -> list[str]:
        """Distinct node signatures of the Objects at ``path``, first-seen order."""
        return list(self._signatures.get(path, ()))

    def scalar_kinds_at(self, path: str) -> set[ScalarKind]:
        return set(self._scalar_kinds.get(path, ()))

    def child_keys(self, path: str) -> list[str]:
        """Keys of every Object seen at ``path``, first-seen order."""
        return list(self._child_keys.get(path, ()))

    def object_count(self, path: str) -> int:
        return self._object_counts[path]

    def key_count(self, path: str, key: str) -> int:
        """Number of Objects at ``path`` that contain ``key``."""
        counts = self._key_counts.get(path)
        return counts[key] if counts else 0

    def is_key_repeated(self, path: str, key: str) -> bool:
        """True if some Object at ``path`` holds ``key`` more than once."""
        return key in self._repeated_keys.get(path, ())

    def is_key_optional(self, path: str, key: str) -> bool:
        """True if some Object at ``path`` lacks ``key``."""
        return self.key_count(path, key) < self.object_count(path)

    def paths_starting_with(self, prefix: str) -> set[str]:
        """Registered paths below ``prefix``, for inspecting a subtree of the corpus.

        The analyzer never needs this for sibling lookups. Indices are already
        stripped when paths are built (``*`` and ``[]``), so every occurrence of a
        location shares one exact path.
        """
        return {path for path in self._instances if path.startswith(prefix)}

    @property
    def paths(self) -> list[str]:
        return list(self._instances)

    def summary(self, sample_objects: int = 3, sample_keys: int = 5) -> str:
        """Human-readable dump of every registered path, for debugging."""
        lines = [f"Schema registry has {len(self._instances)} registered paths:"]
        for path in sorted(self._instances):
            instances = self._instances[path]
            kinds = Counter(type(node).__name__ for node in instances)
            kind_text = ", ".join(f"{name}({count})" for name, count in kinds.items())
            lines.append(f"- {path or '<root>'}: {len(instances)} instances [{kind_text}]")

            objects = [node for node in instances if isinstance(node, Object)]
            for obj in objects[:sample_objects]:
                keys = obj.keys()
                lines.append(f"  - keys: {', '.join(keys[:sample_keys])}")
                if len(keys) > sample_keys:
                    lines.append("    (more keys...)")
        return "\n".join(lines)
