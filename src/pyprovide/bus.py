"""Subscription bus: targeted change signals from stores to nodes.

Only nodes that subscribed to a store are signalled when it changes;
nothing is broadcast to the whole tree. Each signal marks the node dirty
(see ``take_dirty``) and calls the node's listener, if it registered one.
"""

from __future__ import annotations

import itertools
import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from pyprovide.config import ProviderConfig
from pyprovide.exceptions import ListenerError
from pyprovide.tree import NodeId

_logger = logging.getLogger(__name__)

Listener = Callable[[NodeId, Any], None]


@dataclass(frozen=True, slots=True)
class SubscriptionToken:
    """Handle returned by ``SubscriptionBus.subscribe``.

    Attributes:
        id: Bus-unique subscription id.
        node: The subscribed node.
        store: The store the node listens to (compared by identity).

    """

    id: int
    node: NodeId
    store: Any = field(compare=False, hash=False, repr=False)


@dataclass(slots=True)
class _Subscription:
    token: SubscriptionToken
    listener: Listener | None


class SubscriptionBus:
    """Registry of ``(node, store)`` subscriptions.

    One subscription exists per pair. ``notify`` signals subscribers in the
    order they subscribed; listeners run on a snapshot, outside the bus
    lock, so they may subscribe or unsubscribe freely. ``ReducerStore``
    notifies while holding its own lock (see its docstring for what that
    means for dispatching from a listener).

    Thread-safe: registry protected by a lock.
    """

    def __init__(self, *, config: ProviderConfig | None = None) -> None:
        self._config = config or ProviderConfig()
        self._by_store: dict[Any, dict[NodeId, _Subscription]] = {}
        self._by_id: dict[int, _Subscription] = {}
        self._dirty: dict[NodeId, None] = {}
        self._ids = itertools.count(1)
        self._lock = threading.Lock()

    @property
    def subscription_count(self) -> int:
        """Total number of active subscriptions across all stores."""
        with self._lock:
            return len(self._by_id)

    def subscribe(self, node: NodeId, store: Any, listener: Listener | None = None) -> SubscriptionToken:
        """Register *node*'s interest in *store*.

        Subscribing an already-subscribed pair returns the existing token;
        a given *listener* replaces the previous one.
        """
        with self._lock:
            per_store = self._by_store.setdefault(store, {})
            existing = per_store.get(node)
            if existing is not None:
                if listener is not None:
                    existing.listener = listener
                return existing.token

            token = SubscriptionToken(id=next(self._ids), node=node, store=store)
            subscription = _Subscription(token=token, listener=listener)
            per_store[node] = subscription
            self._by_id[token.id] = subscription
        _logger.debug("Subscribed node=%d to %r token=%d", node, store, token.id)
        return token

    def unsubscribe(self, token: SubscriptionToken) -> bool:
        """Remove a subscription. Idempotent; returns whether it was active."""
        with self._lock:
            subscription = self._by_id.pop(token.id, None)
            if subscription is None:
                return False
            per_store = self._by_store.get(token.store)
            if per_store is not None:
                per_store.pop(token.node, None)
                if not per_store:
                    del self._by_store[token.store]
        _logger.debug("Unsubscribed node=%d token=%d", token.node, token.id)
        return True

    def unsubscribe_node(self, node: NodeId) -> int:
        """Remove every subscription held by *node* and forget its dirty mark."""
        with self._lock:
            tokens = [s.token for s in self._by_id.values() if s.token.node == node]
            self._dirty.pop(node, None)
        return sum(1 for token in tokens if self.unsubscribe(token))

    def is_subscribed(self, node: NodeId, store: Any) -> bool:
        with self._lock:
            return node in self._by_store.get(store, {})

    def subscribers(self, store: Any) -> tuple[NodeId, ...]:
        """Subscribed nodes for *store*, in subscription order."""
        with self._lock:
            return tuple(self._by_store.get(store, {}))

    def notify(self, store: Any) -> int:
        """Signal every current subscriber of *store*.

        Returns:
            Number of nodes signalled.

        """
        with self._lock:
            snapshot = list(self._by_store.get(store, {}).values())

        errors: list[BaseException] = []
        delivered = 0
        for subscription in snapshot:
            with self._lock:
                # An earlier listener may have unsubscribed this one.
                if subscription.token.id not in self._by_id:
                    continue
                self._dirty[subscription.token.node] = None
            delivered += 1
            if subscription.listener is None:
                continue
            try:
                subscription.listener(subscription.token.node, store)
            except Exception as exc:
                _logger.warning("Listener for node=%d failed on %r", subscription.token.node, store, exc_info=True)
                errors.append(exc)

        _logger.debug("Notified %d subscriber(s) of %r", delivered, store)
        if errors and self._config.propagate_listener_errors:
            raise ListenerError(errors, store=getattr(store, "name", repr(store)))
        return delivered

    def take_dirty(self) -> tuple[NodeId, ...]:
        """Return nodes signalled since the last call, in signal order, and clear them."""
        with self._lock:
            dirty = tuple(self._dirty)
            self._dirty.clear()
        return dirty
