"""Tree-layer integration.

``ProviderScope`` is the surface a tree-construction layer talks to. It
wires a ``NodeTree``, a ``ScopedEnvironment`` and a ``SubscriptionBus``
together by explicit injection (there is no global context) and keeps
every consumer's resolution current as providers come and go:

- ``provide`` / ``compose`` + ``attach`` declare bindings on provider nodes.
- ``use`` resolves a binding for a consumer node and, when the bound value
  is a ``ReducerStore``, subscribes the node to it.
- Removing, re-parenting or withdrawing a provider re-resolves the
  consumers below it. A consumer whose binding disappears falls through
  to a higher ancestor declaring the same key, or becomes unbound.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Hashable, Iterable
from typing import Any

from pyprovide.bus import SubscriptionBus, SubscriptionToken
from pyprovide.composer import BindingSpec, ComposedProvider, ProviderComposer
from pyprovide.config import ProviderConfig
from pyprovide.environment import Binding, ScopedEnvironment
from pyprovide.exceptions import BindingNotFoundError, ListenerError, NodeNotFoundError
from pyprovide.reducer import Reducer
from pyprovide.store import ReducerStore
from pyprovide.tree import NodeId, NodeTree

_logger = logging.getLogger(__name__)

ChangeCallback = Callable[["Consumer"], None]


def _store_of(binding: Binding | None) -> ReducerStore[Any, Any] | None:
    if binding is not None and isinstance(binding.value, ReducerStore):
        return binding.value
    return None


def _same_binding(old: Binding | None, new: Binding | None) -> bool:
    if old is None or new is None:
        return old is new
    return old.provider == new.provider and old.value is new.value


class Consumer:
    """A node's live handle on one binding.

    ``read`` always re-resolves through the environment, so it observes the
    latest declaration and, for store bindings, the latest state.
    """

    __slots__ = ("_binding", "_on_change", "_released", "_scope", "key", "node")

    def __init__(self, scope: ProviderScope, node: NodeId, key: Hashable, on_change: ChangeCallback | None) -> None:
        self._scope = scope
        self.node = node
        self.key = key
        self._on_change = on_change
        self._binding: Binding | None = None
        self._released = False

    def __repr__(self) -> str:
        return f"Consumer(node={self.node}, key={self.key!r}, bound={self.bound})"

    @property
    def binding(self) -> Binding | None:
        """The binding this consumer currently tracks (``None`` when unbound)."""
        return self._binding

    @property
    def bound(self) -> bool:
        return self._binding is not None

    @property
    def released(self) -> bool:
        return self._released

    @property
    def store(self) -> ReducerStore[Any, Any] | None:
        return _store_of(self._binding)

    def read(self) -> Any:
        """Resolve the binding now and return its value.

        For a store binding the store's current state is returned.
        """
        if self._released:
            raise NodeNotFoundError(self.node)
        value = self._scope.environment.resolve(self.node, self.key)
        if isinstance(value, ReducerStore):
            return value.state
        return value

    def dispatch(self, action: Any) -> Any:
        """Dispatch *action* to the store this consumer is bound to."""
        store = self.store
        if store is None:
            if self._binding is None:
                raise BindingNotFoundError(self.key, node=self.node)
            raise TypeError(f"binding for {self.key!r} is not a ReducerStore")
        return store.dispatch(action)

    def release(self) -> None:
        """Stop tracking the binding. Idempotent."""
        self._scope.release(self)

    def _changed(self) -> None:
        if self._on_change is not None:
            self._on_change(self)


class ProviderScope:
    """Tree, environment and bus for one hierarchy of nodes."""

    def __init__(self, *, config: ProviderConfig | None = None, tree: NodeTree | None = None) -> None:
        self._config = config or ProviderConfig()
        self._tree = tree if tree is not None else NodeTree()
        self._environment = ScopedEnvironment(self._tree, config=self._config)
        self._bus = SubscriptionBus(config=self._config)
        self._composer = ProviderComposer(self._environment)
        self._consumers: dict[NodeId, list[Consumer]] = {}
        # One bus subscription per (node, store), shared by that node's consumers.
        self._subscriptions: dict[tuple[NodeId, int], tuple[SubscriptionToken, int]] = {}
        self._tree.add_removal_listener(self._on_node_removed)
        self._tree.add_move_listener(self._on_node_moved)

    @property
    def config(self) -> ProviderConfig:
        return self._config

    @property
    def tree(self) -> NodeTree:
        return self._tree

    @property
    def environment(self) -> ScopedEnvironment:
        return self._environment

    @property
    def bus(self) -> SubscriptionBus:
        return self._bus

    @property
    def composer(self) -> ProviderComposer:
        return self._composer

    # ------------------------------------------------------------------
    # Tree construction
    # ------------------------------------------------------------------

    def create_root(self, label: str = "root") -> NodeId:
        return self._tree.create_root(label)

    def add_child(self, parent: NodeId, label: str = "") -> NodeId:
        return self._tree.add_child(parent, label)

    def remove(self, node: NodeId) -> tuple[NodeId, ...]:
        """Destroy a subtree, releasing its declarations, subscriptions and consumers."""
        return self._tree.remove(node)

    def move(self, node: NodeId, new_parent: NodeId) -> None:
        """Re-parent a subtree and re-resolve every consumer inside it.

        Moving through ``tree.move`` directly has the same effect.
        """
        self._tree.move(node, new_parent)

    def create_store(self, reducer: Reducer[Any, Any], initial_state: Any, *, name: str | None = None) -> ReducerStore[Any, Any]:
        """A store that notifies this scope's bus (see ``take_dirty``)."""
        return ReducerStore(reducer, initial_state, name=name, bus=self._bus, config=self._config)

    # ------------------------------------------------------------------
    # Providers
    # ------------------------------------------------------------------

    def provide(self, node: NodeId, key: Hashable, value: Any) -> Binding:
        binding = self._environment.declare(node, key, value)
        self._refresh(self._tree.walk(node), keys={key})
        return binding

    def withdraw(self, node: NodeId, key: Hashable) -> bool:
        removed = self._environment.undeclare(node, key)
        if removed:
            self._refresh(self._tree.walk(node), keys={key})
        return removed

    def compose(self, bindings: Iterable[BindingSpec | ComposedProvider]) -> ComposedProvider:
        return self._composer.compose(bindings)

    def attach(self, node: NodeId, provider: ComposedProvider) -> tuple[Binding, ...]:
        declared = provider.attach(node)
        self._refresh(self._tree.walk(node), keys=set(provider.keys))
        return declared

    # ------------------------------------------------------------------
    # Consumers
    # ------------------------------------------------------------------

    def use(self, node: NodeId, key: Hashable, on_change: ChangeCallback | None = None) -> Consumer:
        """Resolve *key* for *node* and keep the resolution current.

        Raises ``BindingNotFoundError`` when nothing provides *key* (and the
        key has no default). *on_change* is called with the consumer after
        its store changed or its binding moved to another provider.
        """
        binding = self._environment.resolve_binding(node, key)
        consumer = Consumer(self, node, key, on_change)
        self._rebind(consumer, binding)
        self._consumers.setdefault(node, []).append(consumer)
        _logger.debug("node=%d consumes key=%r from provider=%s", node, key, binding.provider)
        return consumer

    def consumers(self, node: NodeId) -> tuple[Consumer, ...]:
        return tuple(self._consumers.get(node, ()))

    def release(self, consumer: Consumer) -> None:
        if consumer.released:
            return
        self._rebind(consumer, None)
        consumer._released = True  # noqa: SLF001
        remaining = self._consumers.get(consumer.node)
        if remaining is not None and consumer in remaining:
            remaining.remove(consumer)
            if not remaining:
                del self._consumers[consumer.node]

    def take_dirty(self) -> tuple[NodeId, ...]:
        """Nodes signalled by stores on this scope's bus since the last call."""
        return self._bus.take_dirty()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _rebind(self, consumer: Consumer, binding: Binding | None) -> None:
        old_store = consumer.store
        consumer._binding = binding  # noqa: SLF001
        new_store = consumer.store
        if old_store is new_store:
            return
        if old_store is not None:
            self._release_subscription(consumer.node, old_store)
        if new_store is not None:
            self._acquire_subscription(consumer.node, new_store)

    def _acquire_subscription(self, node: NodeId, store: ReducerStore[Any, Any]) -> None:
        slot = (node, id(store))
        entry = self._subscriptions.get(slot)
        if entry is not None:
            token, count = entry
            self._subscriptions[slot] = (token, count + 1)
            return
        token = store.bus.subscribe(node, store, self._deliver)
        self._subscriptions[slot] = (token, 1)

    def _release_subscription(self, node: NodeId, store: ReducerStore[Any, Any]) -> None:
        slot = (node, id(store))
        entry = self._subscriptions.get(slot)
        if entry is None:
            return
        token, count = entry
        if count > 1:
            self._subscriptions[slot] = (token, count - 1)
            return
        del self._subscriptions[slot]
        store.bus.unsubscribe(token)

    def _deliver(self, node: NodeId, store: Any) -> None:
        for consumer in tuple(self._consumers.get(node, ())):
            if consumer.store is store:
                consumer._changed()  # noqa: SLF001

    def _refresh(self, nodes: Iterable[NodeId], *, keys: set[Hashable] | None) -> None:
        errors: list[BaseException] = []
        for node in nodes:
            for consumer in tuple(self._consumers.get(node, ())):
                if keys is not None and consumer.key not in keys:
                    continue
                try:
                    binding: Binding | None = self._environment.resolve_binding(node, consumer.key)
                except BindingNotFoundError:
                    binding = None
                if _same_binding(consumer.binding, binding):
                    continue

                _logger.debug(
                    "node=%d key=%r rebound provider=%s",
                    node,
                    consumer.key,
                    binding.provider if binding is not None else "<unbound>",
                )
                self._rebind(consumer, binding)
                try:
                    consumer._changed()  # noqa: SLF001
                except Exception as exc:
                    _logger.warning("Change callback for node=%d failed", node, exc_info=True)
                    errors.append(exc)

        if errors and self._config.propagate_listener_errors:
            raise ListenerError(errors, store="<rebind>")

    def _on_node_moved(self, node: NodeId) -> None:
        self._refresh(self._tree.walk(node), keys=None)

    def _on_node_removed(self, node: NodeId) -> None:
        for consumer in self._consumers.pop(node, []):
            self._rebind(consumer, None)
            consumer._released = True  # noqa: SLF001
        self._bus.unsubscribe_node(node)
