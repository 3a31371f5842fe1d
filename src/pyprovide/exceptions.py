"""Custom exception hierarchy for pyprovide."""

from __future__ import annotations

from collections.abc import Hashable, Sequence
from typing import Any


class ProviderError(Exception):
    """Base exception for all pyprovide errors."""


class ProviderConfigError(ProviderError):
    """Invalid configuration (settings, handler tables, action schemas)."""


class NodeNotFoundError(ProviderError, LookupError):
    """The node id is unknown or the node has been removed from its tree."""

    def __init__(self, node: int) -> None:
        self.node = node
        super().__init__(f"node {node} does not exist or was removed")


class TreeStructureError(ProviderError):
    """A tree mutation would break the single-parent hierarchy."""


class BindingNotFoundError(ProviderError, LookupError):
    """No ancestor declares the key and the key has no explicit default.

    This is a usage error in a well-formed tree: a consumer was created
    outside of the provider it depends on.
    """

    def __init__(self, key: Hashable, *, node: int) -> None:
        self.key = key
        self.node = node
        super().__init__(f"no binding for {key!r} visible from node {node}")


class UnknownActionKindError(ProviderError):
    """A transition function received an action kind it does not handle.

    The store state is left unchanged when this is raised from ``dispatch``.
    """

    def __init__(self, kind: Any, *, reducer: str = "") -> None:
        self.kind = kind
        self.reducer = reducer
        where = f" in reducer {reducer!r}" if reducer else ""
        super().__init__(f"unknown action kind {kind!r}{where}")


class ActionValidationError(ProviderError, ValueError):
    """An externally-sourced action has a known kind but an invalid payload."""

    def __init__(self, message: str, *, kind: str = "") -> None:
        self.kind = kind
        super().__init__(message)


class DuplicateBindingKeyError(ProviderError):
    """The same key was bound twice in one composition or attach point.

    Raised before any binding is declared, so a failed composition never
    leaves a partial set of bindings behind.
    """

    def __init__(self, keys: Sequence[Hashable], *, node: int | None = None) -> None:
        self.keys = tuple(keys)
        self.node = node
        listed = ", ".join(repr(k) for k in self.keys)
        where = f" at node {node}" if node is not None else ""
        super().__init__(f"duplicate binding key(s){where}: {listed}")


class ListenerError(ProviderError):
    """One or more subscription listeners failed during a notification.

    Only raised when ``ProviderConfig.propagate_listener_errors`` is set;
    every subscriber has already been signalled when this surfaces.
    """

    def __init__(self, errors: Sequence[BaseException], *, store: str = "") -> None:
        self.errors = tuple(errors)
        self.store = store
        super().__init__(f"{len(self.errors)} listener(s) failed while notifying store {store!r}")
