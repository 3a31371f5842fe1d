"""Provider composition.

Collapses what would otherwise be N nested provider scopes into a single
attachment point. Keys inside one composition must be distinct: with
nesting, the order would silently decide which duplicate wins.
"""

from __future__ import annotations

import logging
from collections.abc import Hashable, Iterable, Iterator
from dataclasses import dataclass, field
from typing import Any

from pyprovide.environment import Binding, ScopedEnvironment
from pyprovide.exceptions import DuplicateBindingKeyError
from pyprovide.tree import NodeId

_logger = logging.getLogger(__name__)

BindingSpec = tuple[Hashable, Any]


def _duplicates(keys: Iterable[Hashable]) -> list[Hashable]:
    seen: set[Hashable] = set()
    duplicates: list[Hashable] = []
    for key in keys:
        if key in seen and key not in duplicates:
            duplicates.append(key)
        seen.add(key)
    return duplicates


@dataclass(frozen=True, slots=True)
class ComposedProvider:
    """An ordered, duplicate-free set of bindings ready to attach.

    Attaching declares every binding at one node, which resolves exactly
    like declaring them as nested scopes, outermost first.
    """

    bindings: tuple[BindingSpec, ...]
    environment: ScopedEnvironment = field(compare=False, repr=False)

    def __len__(self) -> int:
        return len(self.bindings)

    def __iter__(self) -> Iterator[BindingSpec]:
        return iter(self.bindings)

    @property
    def keys(self) -> tuple[Hashable, ...]:
        return tuple(key for key, _ in self.bindings)

    def attach(self, node: NodeId) -> tuple[Binding, ...]:
        """Declare every binding at *node*.

        Raises ``DuplicateBindingKeyError`` without declaring anything when
        *node* already declares one of the keys.
        """
        clashes = sorted(self.environment.declared_keys(node) & set(self.keys), key=repr)
        if clashes:
            raise DuplicateBindingKeyError(clashes, node=node)
        declared = tuple(self.environment.declare(node, key, value) for key, value in self.bindings)
        _logger.debug("Attached %d composed binding(s) at node=%d", len(declared), node)
        return declared

    def mount(self, parent: NodeId, label: str = "provider") -> NodeId:
        """Create a provider node under *parent* and attach to it."""
        node = self.environment.tree.add_child(parent, label)
        self.attach(node)
        return node


class ProviderComposer:
    """Builds ``ComposedProvider`` units for one environment."""

    def __init__(self, environment: ScopedEnvironment) -> None:
        self._environment = environment

    @property
    def environment(self) -> ScopedEnvironment:
        return self._environment

    def compose(self, bindings: Iterable[BindingSpec | ComposedProvider]) -> ComposedProvider:
        """Combine *bindings* (pairs or other compositions, flattened in order).

        Raises ``DuplicateBindingKeyError`` when a key appears twice; no
        composition is produced in that case.
        """
        flattened: list[BindingSpec] = []
        for item in bindings:
            if isinstance(item, ComposedProvider):
                flattened.extend(item.bindings)
            else:
                key, value = item
                flattened.append((key, value))

        duplicates = _duplicates(key for key, _ in flattened)
        if duplicates:
            raise DuplicateBindingKeyError(duplicates)
        return ComposedProvider(bindings=tuple(flattened), environment=self._environment)
