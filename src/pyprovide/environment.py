"""Scoped key/value bindings over a ``NodeTree``.

A binding declared at a node is visible to that node and its whole
subtree. Lookups walk from the requesting node towards the root and the
nearest declaration wins, so a descendant may shadow an ancestor's
binding for its own subtree only. Siblings never see each other's
declarations.
"""

from __future__ import annotations

import enum
import logging
import threading
from collections.abc import Hashable, Mapping
from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar

from pyprovide.config import ProviderConfig
from pyprovide.exceptions import BindingNotFoundError, NodeNotFoundError
from pyprovide.tree import NodeId, NodeTree

_logger = logging.getLogger(__name__)

T = TypeVar("T")


class _Missing(enum.Enum):
    MISSING = enum.auto()


MISSING = _Missing.MISSING
"""Marker for "no default configured" on a ``ContextKey``."""


@dataclass(frozen=True, eq=False, slots=True)
class ContextKey(Generic[T]):
    """A binding channel.

    Keys compare by identity, like the objects they stand for: two keys
    with the same name are still different channels. A key created with
    an explicit ``default`` resolves to it when no ancestor declares the
    key; without one, an unbound lookup is an error.
    """

    name: str
    default: T | _Missing = field(default=MISSING)

    @property
    def has_default(self) -> bool:
        return self.default is not MISSING

    def __repr__(self) -> str:
        return f"ContextKey({self.name!r})"


@dataclass(frozen=True, slots=True)
class Binding:
    """A resolved binding.

    Attributes:
        key: The channel the value is bound to.
        value: The bound value (shared by reference, never copied).
        provider: The declaring node, or ``None`` for a key default.

    """

    key: Hashable
    value: Any
    provider: NodeId | None

    @property
    def is_default(self) -> bool:
        return self.provider is None


class ScopedEnvironment:
    """Nearest-ancestor-wins resolution of bindings declared on tree nodes.

    Resolutions are memoised per ``(node, key)``. The memo is stamped with
    the tree revision and the environment's own declaration revision and
    dropped as soon as either moves, so a resolver never keeps a provider
    that was removed, withdrawn or re-parented away.
    """

    def __init__(self, tree: NodeTree, *, config: ProviderConfig | None = None) -> None:
        self._tree = tree
        self._config = config or ProviderConfig()
        self._declarations: dict[NodeId, dict[Hashable, Binding]] = {}
        self._revision = 0
        self._cache: dict[tuple[NodeId, Hashable], Binding | None] = {}
        self._cache_stamp: tuple[int, int] = (-1, -1)
        self._lock = threading.RLock()
        tree.add_removal_listener(self.release)

    @property
    def tree(self) -> NodeTree:
        return self._tree

    @property
    def revision(self) -> int:
        """Counter bumped on every declaration change."""
        return self._revision

    # ------------------------------------------------------------------
    # Declarations
    # ------------------------------------------------------------------

    def declare(self, node: NodeId, key: Hashable, value: Any) -> Binding:
        """Bind *key* to *value* for *node* and its subtree.

        Declaring a key the node already declares replaces the value.
        """
        if not self._tree.contains(node):
            raise NodeNotFoundError(node)
        binding = Binding(key=key, value=value, provider=node)
        with self._lock:
            self._declarations.setdefault(node, {})[key] = binding
            self._revision += 1
        _logger.debug("Declared key=%r at node=%d", key, node)
        return binding

    def undeclare(self, node: NodeId, key: Hashable) -> bool:
        """Withdraw *node*'s declaration of *key*. Returns whether one existed."""
        with self._lock:
            declared = self._declarations.get(node)
            if declared is None or key not in declared:
                return False
            del declared[key]
            if not declared:
                del self._declarations[node]
            self._revision += 1
        _logger.debug("Withdrew key=%r at node=%d", key, node)
        return True

    def release(self, node: NodeId) -> int:
        """Drop every declaration made at *node*. Returns how many were dropped."""
        with self._lock:
            declared = self._declarations.pop(node, None)
            if not declared:
                return 0
            self._revision += 1
        _logger.debug("Released %d declaration(s) at node=%d", len(declared), node)
        return len(declared)

    def declared_keys(self, node: NodeId) -> frozenset[Hashable]:
        with self._lock:
            return frozenset(self._declarations.get(node, {}))

    def declarations(self, node: NodeId) -> Mapping[Hashable, Binding]:
        """Snapshot of the bindings declared directly at *node*."""
        with self._lock:
            return dict(self._declarations.get(node, {}))

    # ------------------------------------------------------------------
    # Resolution
    # ------------------------------------------------------------------

    def lookup(self, node: NodeId, key: Hashable) -> Binding | None:
        """Return the nearest declared binding for *key*, or ``None``.

        Key defaults are not consulted here; see ``resolve_binding``.
        """
        with self._lock:
            if not self._config.cache_resolutions:
                return self._walk(node, key)

            stamp = (self._tree.revision, self._revision)
            if stamp != self._cache_stamp:
                self._cache.clear()
                self._cache_stamp = stamp

            cache_key = (node, key)
            if cache_key in self._cache:
                return self._cache[cache_key]
            binding = self._walk(node, key)
            self._cache[cache_key] = binding
            return binding

    def _walk(self, node: NodeId, key: Hashable) -> Binding | None:
        for ancestor in self._tree.ancestors(node):
            declared = self._declarations.get(ancestor)
            if declared is not None and key in declared:
                return declared[key]
        return None

    def resolve_binding(self, node: NodeId, key: Hashable) -> Binding:
        """Resolve *key* from *node*, falling back to the key's explicit default.

        Raises ``BindingNotFoundError`` when nothing is declared and the key
        has no default.
        """
        binding = self.lookup(node, key)
        if binding is not None:
            return binding
        if isinstance(key, ContextKey) and key.has_default:
            return Binding(key=key, value=key.default, provider=None)
        raise BindingNotFoundError(key, node=node)

    def resolve(self, node: NodeId, key: Hashable) -> Any:
        """Resolve the value bound to *key* as seen from *node*."""
        return self.resolve_binding(node, key).value

    def is_bound(self, node: NodeId, key: Hashable) -> bool:
        """Whether an ancestor (inclusive) declares *key*. Defaults do not count."""
        return self.lookup(node, key) is not None
