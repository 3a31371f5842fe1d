"""Reducer-driven state store.

This is the only component allowed to replace a piece of shared state.
Consumers read ``state`` and request changes with ``dispatch``; the new
state is always computed by the store's own transition function.
"""

from __future__ import annotations

import logging
import threading
from collections import deque
from collections.abc import Callable
from typing import Generic, TypeVar

from pyprovide._logsafe import summarize_for_log
from pyprovide.actions import action_kind
from pyprovide.bus import SubscriptionBus
from pyprovide.config import ProviderConfig
from pyprovide.reducer import Reducer

_logger = logging.getLogger(__name__)

S = TypeVar("S")
A = TypeVar("A")


class ReducerStore(Generic[S, A]):
    """Single state value transitioned by a pure reducer.

    ``dispatch`` computes ``reducer(state, action)``, swaps the result in
    and then notifies the bus. The swap is a single assignment, so no
    observer ever sees a partially-applied transition; if the reducer
    raises, the state is left exactly as it was.

    Dispatches are serialised per store. A dispatch issued from inside a
    notification (a listener reacting to a change) is queued and applied
    once the current notification round finishes, so actions always apply
    in the order they were dispatched.

    Listeners are notified while the store's lock is held. A listener may
    dispatch to the same store from its own thread (the action is queued),
    but it must not block waiting on another thread that dispatches to this
    store: that thread waits for the lock and the two deadlock. Hand such
    work off (for example through ``ActionQueue``) instead of joining it.
    """

    def __init__(
        self,
        reducer: Reducer[S, A],
        initial_state: S,
        *,
        name: str | None = None,
        bus: SubscriptionBus | None = None,
        config: ProviderConfig | None = None,
    ) -> None:
        self._config = config or ProviderConfig()
        self._reducer = reducer
        self._state = initial_state
        self._name = name or getattr(reducer, "name", None) or getattr(reducer, "__name__", "store")
        self._bus = bus if bus is not None else SubscriptionBus(config=self._config)
        self._version = 0
        self._history: deque[A] = deque(maxlen=self._config.history_limit)
        self._pending: deque[A] = deque()
        self._draining = False
        self._lock = threading.RLock()

    def __repr__(self) -> str:
        return f"ReducerStore({self._name!r}, version={self._version})"

    @property
    def name(self) -> str:
        return self._name

    @property
    def state(self) -> S:
        """Current state. Shared read-only: never mutate it in place."""
        return self._state

    @property
    def version(self) -> int:
        """Number of transitions applied so far."""
        return self._version

    @property
    def bus(self) -> SubscriptionBus:
        return self._bus

    @property
    def history(self) -> tuple[A, ...]:
        """Most recently applied actions, oldest first (bounded by config)."""
        with self._lock:
            return tuple(self._history)

    @property
    def dispatcher(self) -> Callable[[A], S]:
        """The ``dispatch`` callable, for handing to event-handling code."""
        return self.dispatch

    def dispatch(self, action: A) -> S:
        """Apply *action* and notify subscribers.

        Returns the state after this call. For a dispatch nested inside a
        notification that is the state *before* the queued action is
        applied; the outer dispatch applies it before returning.
        """
        with self._lock:
            self._pending.append(action)
            if self._draining:
                _logger.debug("store=%s queued nested action kind=%s", self._name, action_kind(action))
                return self._state

            self._draining = True
            try:
                while self._pending:
                    self._apply(self._pending.popleft())
            except BaseException:
                dropped = len(self._pending)
                self._pending.clear()
                if dropped:
                    _logger.warning("store=%s discarded %d queued action(s) after a failed dispatch", self._name, dropped)
                raise
            finally:
                self._draining = False
            return self._state

    def _apply(self, action: A) -> None:
        previous = self._state
        try:
            next_state = self._reducer(previous, action)
        except Exception:
            _logger.debug("store=%s rejected action kind=%s", self._name, action_kind(action), exc_info=True)
            raise

        self._state = next_state
        self._version += 1
        self._history.append(action)

        if _logger.isEnabledFor(logging.DEBUG):
            _logger.debug(
                "store=%s applied kind=%s version=%d state=%s",
                self._name,
                action_kind(action),
                self._version,
                summarize_for_log(next_state, max_string=self._config.log_max_string),
            )

        if next_state is previous and not self._config.notify_unchanged:
            return
        self._bus.notify(self)
