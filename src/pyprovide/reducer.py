"""Pure transition functions.

A reducer computes the next state from the current state and an action:
no side effects, no IO, deterministic. Given the same sequence of actions
it produces the same state every time, which is what makes ``replay``
and testing tractable.
"""

from __future__ import annotations

import functools
from collections.abc import Callable, Iterable, Mapping
from typing import Any, Generic, TypeVar

from pyprovide.actions import Action, ActionSchema, action_kind, kind_of
from pyprovide.exceptions import ActionValidationError, ProviderConfigError, UnknownActionKindError

S = TypeVar("S")
A = TypeVar("A")

Reducer = Callable[[S, A], S]
Handler = Callable[[S, Any], S]


class ActionReducer(Generic[S]):
    """Transition function assembled from one handler per action kind.

    Usage::

        todo_reducer = ActionReducer[tuple[str, ...]]("todos")

        @todo_reducer.on(TodoAdded)
        def _added(state, action):
            return (*state, action.text)

    An action whose kind has no handler raises ``UnknownActionKindError``
    rather than passing the state through unchanged.

    Handlers always receive ``Action`` instances. A raw mapping is
    validated through *schema* first; without a schema (or for any other
    type) it is rejected with ``ActionValidationError``.
    """

    def __init__(self, name: str = "reducer", *, schema: ActionSchema | None = None) -> None:
        self.name = name
        self.schema = schema
        self._handlers: dict[str, Handler[S]] = {}

    @property
    def kinds(self) -> frozenset[str]:
        return frozenset(self._handlers)

    def on(self, kind: str | type[Action]) -> Callable[[Handler[S]], Handler[S]]:
        """Register the decorated function as the handler for *kind*."""
        key = kind if isinstance(kind, str) else kind_of(kind)

        def decorator(handler: Handler[S]) -> Handler[S]:
            if key in self._handlers:
                raise ProviderConfigError(f"reducer {self.name!r} already handles kind {key!r}")
            self._handlers[key] = handler
            return handler

        return decorator

    def __call__(self, state: S, action: Any) -> S:
        kind = action_kind(action)
        handler = self._handlers.get(kind) if isinstance(kind, str) else None
        if handler is None:
            raise UnknownActionKindError(kind, reducer=self.name)
        if not isinstance(action, Action):
            if self.schema is None or not isinstance(action, Mapping):
                raise ActionValidationError(
                    f"reducer {self.name!r} needs an Action instance, got {type(action).__name__}", kind=kind
                )
            action = self.schema.parse(action)
        return handler(state, action)

    def __repr__(self) -> str:
        return f"ActionReducer({self.name!r}, kinds={sorted(self._handlers)})"


def replay(reducer: Reducer[S, A], initial: S, actions: Iterable[A]) -> S:
    """Rebuild state by folding *actions* over *initial*.

    ``replay(r, s, [a1, a2])`` equals ``r(r(s, a1), a2)``. The first
    failing action aborts the replay with its error.
    """
    return functools.reduce(reducer, actions, initial)
