from __future__ import annotations

import pytest

from pyprovide.config import ProviderConfig
from pyprovide.exceptions import ProviderConfigError


def test_defaults() -> None:
    config = ProviderConfig()

    assert config.history_limit == 100
    assert config.notify_unchanged is True
    assert config.propagate_listener_errors is False
    assert config.cache_resolutions is True


def test_from_env_reads_prefixed_variables(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("PYPROVIDE_HISTORY_LIMIT", "5")
    monkeypatch.setenv("PYPROVIDE_NOTIFY_UNCHANGED", "off")
    monkeypatch.setenv("PYPROVIDE_PROPAGATE_LISTENER_ERRORS", "yes")
    monkeypatch.setenv("PYPROVIDE_CACHE_RESOLUTIONS", "0")

    config = ProviderConfig.from_env()

    assert config.history_limit == 5
    assert config.notify_unchanged is False
    assert config.propagate_listener_errors is True
    assert config.cache_resolutions is False


def test_from_env_overrides_win(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("PYPROVIDE_HISTORY_LIMIT", "5")
    monkeypatch.setenv("PYPROVIDE_NOTIFY_UNCHANGED", "false")

    config = ProviderConfig.from_env(history_limit=7, notify_unchanged=True)

    assert config.history_limit == 7
    assert config.notify_unchanged is True


@pytest.mark.parametrize(
    ("name", "value"),
    [
        ("PYPROVIDE_HISTORY_LIMIT", "many"),
        ("PYPROVIDE_HISTORY_LIMIT", "-1"),
        ("PYPROVIDE_CACHE_RESOLUTIONS", "maybe"),
        ("PYPROVIDE_LOG_MAX_STRING", "0"),
    ],
)
def test_from_env_rejects_invalid_values(monkeypatch: pytest.MonkeyPatch, name: str, value: str) -> None:
    monkeypatch.setenv(name, value)

    with pytest.raises(ProviderConfigError):
        ProviderConfig.from_env()


def test_from_env_rejects_unknown_overrides() -> None:
    with pytest.raises(ProviderConfigError):
        ProviderConfig.from_env(colour="blue")
