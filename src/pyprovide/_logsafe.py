"""Helpers for safe debug logging.

Store states can be arbitrarily large (long lists of records, nested
models). This module provides a small utility to summarise values before
emitting DEBUG logs, so a single dispatch never floods the log.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any

from pydantic import BaseModel

from pyprovide._constants import DEFAULT_LOG_MAX_ITEMS, DEFAULT_LOG_MAX_STRING


def summarize_for_log(
    value: Any,
    *,
    max_string: int = DEFAULT_LOG_MAX_STRING,
    max_items: int = DEFAULT_LOG_MAX_ITEMS,
    _depth: int = 0,
) -> Any:
    """Return a bounded, JSON-like copy of *value* suitable for debug logs."""
    if _depth > 10:
        return "<max-depth>"

    if value is None or isinstance(value, (bool, int, float)):
        return value

    if isinstance(value, str):
        if len(value) > max_string:
            return f"{value[:max_string]}…<truncated>"
        return value

    if isinstance(value, bytes):
        return f"<bytes:{len(value)}b>"

    if isinstance(value, BaseModel):
        value = value.model_dump()

    if isinstance(value, Mapping):
        summary: dict[str, Any] = {}
        for index, (k, v) in enumerate(value.items()):
            if index >= max_items:
                summary["…"] = f"<{len(value) - max_items} more>"
                break
            summary[str(k)] = summarize_for_log(v, max_string=max_string, max_items=max_items, _depth=_depth + 1)
        return summary

    if isinstance(value, Sequence):
        items = [
            summarize_for_log(v, max_string=max_string, max_items=max_items, _depth=_depth + 1)
            for v in value[:max_items]
        ]
        if len(value) > max_items:
            items.append(f"<{len(value) - max_items} more>")
        return items

    # Fallback: represent unknown objects without dumping internals.
    text = repr(value)
    if len(text) > max_string:
        return f"{text[:max_string]}…<truncated>"
    return text
