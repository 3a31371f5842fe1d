"""Library configuration for pyprovide."""

from __future__ import annotations

import dataclasses
import os
from typing import Any

from pyprovide._constants import DEFAULT_HISTORY_LIMIT, DEFAULT_LOG_MAX_STRING, ENV_PREFIX
from pyprovide.exceptions import ProviderConfigError


def _env_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "y", "on"}:
        return True
    if normalized in {"0", "false", "no", "n", "off"}:
        return False
    raise ProviderConfigError(f"expected a boolean, got {value!r}")


def _env_int(name: str, value: str) -> int:
    try:
        return int(value.strip())
    except ValueError as exc:
        raise ProviderConfigError(f"{name} must be an integer, got {value!r}") from exc


@dataclasses.dataclass(frozen=True)
class ProviderConfig:
    """Behaviour switches shared by stores, buses and environments.

    Parameters
    ----------
    history_limit : int
        Number of applied actions each ``ReducerStore`` keeps in its
        ``history``. ``0`` disables history.
    notify_unchanged : bool
        Notify subscribers even when a transition returns the identical
        state object. Disable to bail out of no-op transitions.
    propagate_listener_errors : bool
        Raise ``ListenerError`` after a notification round in which one or
        more listeners failed. When off, failures are only logged.
    cache_resolutions : bool
        Memoise ``ScopedEnvironment`` lookups until the tree or the
        declarations change.
    log_max_string : int
        Longest string emitted when state values are summarised in debug
        logs.
    """

    history_limit: int = DEFAULT_HISTORY_LIMIT
    notify_unchanged: bool = True
    propagate_listener_errors: bool = False
    cache_resolutions: bool = True
    log_max_string: int = DEFAULT_LOG_MAX_STRING

    def __post_init__(self) -> None:
        if self.history_limit < 0:
            raise ProviderConfigError(f"history_limit must be >= 0, got {self.history_limit}")
        if self.log_max_string < 1:
            raise ProviderConfigError(f"log_max_string must be >= 1, got {self.log_max_string}")

    @classmethod
    def from_env(cls, **overrides: Any) -> ProviderConfig:
        """Create configuration from environment variables.

        Reads ``PYPROVIDE_HISTORY_LIMIT``, ``PYPROVIDE_NOTIFY_UNCHANGED``,
        ``PYPROVIDE_PROPAGATE_LISTENER_ERRORS``,
        ``PYPROVIDE_CACHE_RESOLUTIONS`` and ``PYPROVIDE_LOG_MAX_STRING``.
        Explicit keyword arguments override environment values.

        Parameters
        ----------
        **overrides
            Explicit field values that take precedence over env vars.

        Returns
        -------
        ProviderConfig
            Populated configuration.
        """
        env = os.environ
        config_kwargs: dict[str, Any] = {}

        _ENV_INT_MAP = {
            f"{ENV_PREFIX}HISTORY_LIMIT": "history_limit",
            f"{ENV_PREFIX}LOG_MAX_STRING": "log_max_string",
        }
        for env_key, field_name in _ENV_INT_MAP.items():
            val = env.get(env_key)
            if val is not None and field_name not in overrides:
                config_kwargs[field_name] = _env_int(env_key, val)

        _ENV_BOOL_MAP = {
            f"{ENV_PREFIX}NOTIFY_UNCHANGED": "notify_unchanged",
            f"{ENV_PREFIX}PROPAGATE_LISTENER_ERRORS": "propagate_listener_errors",
            f"{ENV_PREFIX}CACHE_RESOLUTIONS": "cache_resolutions",
        }
        defaults = cls()
        for env_key, field_name in _ENV_BOOL_MAP.items():
            if field_name in overrides:
                continue
            config_kwargs[field_name] = _env_bool(env.get(env_key), getattr(defaults, field_name))

        unknown = set(overrides) - {f.name for f in dataclasses.fields(cls)}
        if unknown:
            raise ProviderConfigError(f"unknown config field(s): {', '.join(sorted(unknown))}")
        config_kwargs.update(overrides)

        return cls(**config_kwargs)
