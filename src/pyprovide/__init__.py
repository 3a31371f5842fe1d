"""pyprovide - Scoped value propagation and reducer stores for node trees."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("pyprovide")
except PackageNotFoundError:
    __version__ = "0+local"
from pyprovide.actions import Action, ActionSchema, kind_of
from pyprovide.bus import SubscriptionBus, SubscriptionToken
from pyprovide.composer import ComposedProvider, ProviderComposer
from pyprovide.config import ProviderConfig
from pyprovide.dispatch_queue import ActionQueue
from pyprovide.environment import MISSING, Binding, ContextKey, ScopedEnvironment
from pyprovide.exceptions import (
    ActionValidationError,
    BindingNotFoundError,
    DuplicateBindingKeyError,
    ListenerError,
    NodeNotFoundError,
    ProviderConfigError,
    ProviderError,
    TreeStructureError,
    UnknownActionKindError,
)
from pyprovide.reducer import ActionReducer, Reducer, replay
from pyprovide.scope import Consumer, ProviderScope
from pyprovide.store import ReducerStore
from pyprovide.tree import NodeId, NodeTree

__all__ = [
    "__version__",
    "MISSING",
    "Action",
    "ActionQueue",
    "ActionReducer",
    "ActionSchema",
    "ActionValidationError",
    "Binding",
    "BindingNotFoundError",
    "ComposedProvider",
    "Consumer",
    "ContextKey",
    "DuplicateBindingKeyError",
    "ListenerError",
    "NodeId",
    "NodeNotFoundError",
    "NodeTree",
    "ProviderComposer",
    "ProviderConfig",
    "ProviderConfigError",
    "ProviderError",
    "ProviderScope",
    "Reducer",
    "ReducerStore",
    "ScopedEnvironment",
    "SubscriptionBus",
    "SubscriptionToken",
    "TreeStructureError",
    "UnknownActionKindError",
    "kind_of",
    "replay",
]
