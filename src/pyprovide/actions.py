"""Actions: immutable descriptions of intended state changes.

Every request to change store state is expressed as an ``Action``. Only a
store's transition function interprets them.
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel, ConfigDict, ValidationError

from pyprovide.exceptions import ActionValidationError, ProviderConfigError, UnknownActionKindError


class Action(BaseModel):
    """Base for tagged actions.

    Subclasses pin ``kind`` with a ``Literal`` default::

        class QuestDeleted(Action):
            kind: Literal["deleted"] = "deleted"
            id: int
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    kind: str


def kind_of(action_type: type[Action]) -> str:
    """Return the kind an action class is pinned to."""
    field_info = action_type.model_fields.get("kind")
    default = field_info.default if field_info is not None else None
    if not isinstance(default, str) or not default:
        raise ProviderConfigError(f"{action_type.__name__} does not pin a default 'kind'")
    return default


def action_kind(action: Any) -> Any:
    """Best-effort kind of an action instance or raw mapping (``None`` if absent)."""
    if isinstance(action, Mapping):
        return action.get("kind")
    return getattr(action, "kind", None)


class ActionSchema:
    """Closed set of action classes for externally-sourced payloads.

    In-process code constructs action instances directly; payloads that
    arrive as dicts or JSON (replay files, network, queues) go through
    ``parse`` so an unknown kind fails loudly instead of being ignored.
    """

    def __init__(self, *action_types: type[Action]) -> None:
        self._types: dict[str, type[Action]] = {}
        for action_type in action_types:
            kind = kind_of(action_type)
            existing = self._types.get(kind)
            if existing is not None and existing is not action_type:
                raise ProviderConfigError(
                    f"kind {kind!r} registered by both {existing.__name__} and {action_type.__name__}"
                )
            self._types[kind] = action_type

    @property
    def kinds(self) -> frozenset[str]:
        return frozenset(self._types)

    def type_for(self, kind: Any) -> type[Action]:
        action_type = self._types.get(kind) if isinstance(kind, str) else None
        if action_type is None:
            raise UnknownActionKindError(kind)
        return action_type

    def parse(self, data: Mapping[str, Any] | Action) -> Action:
        """Validate *data* into the action class registered for its kind."""
        if isinstance(data, Action):
            if self._types.get(data.kind) is not type(data):
                raise UnknownActionKindError(data.kind)
            return data

        kind = action_kind(data)
        action_type = self.type_for(kind)
        try:
            return action_type.model_validate(data)
        except ValidationError as exc:
            raise ActionValidationError(f"invalid {kind!r} action: {exc}", kind=kind) from exc

    def parse_json(self, text: str | bytes) -> Action:
        try:
            data = json.loads(text)
        except json.JSONDecodeError as exc:
            raise ActionValidationError(f"action is not valid JSON: {exc}") from exc
        if not isinstance(data, dict):
            raise ActionValidationError("action JSON must be an object")
        return self.parse(data)
