"""Application-wide settings store.

Settings are grouped per *application* (any hashable name, typically a
schema name or a package name) and read by the :class:`~specwise.AppEnv`
source and by the options bootstrap.
"""

from __future__ import annotations

import threading
from typing import Any, Hashable

from ._types import UNDEFINED

_lock = threading.Lock()
_settings: dict[Hashable, dict[str, Any]] = {}


def put_env(application: Hashable, key: str, value: Any) -> None:
    """Set *key* of *application* to *value*."""
    with _lock:
        entries = dict(_settings.get(application, {}))
        entries[key] = value
        _settings[application] = entries


def get_env(application: Hashable, key: str, default: Any = UNDEFINED) -> Any:
    """Return the value of *key* in *application*, or *default*."""
    return _settings.get(application, {}).get(key, default)


def get_all_env(application: Hashable) -> dict[str, Any]:
    """Return a copy of every entry of *application* (empty if unknown)."""
    return dict(_settings.get(application, {}))


def delete_env(application: Hashable, key: str) -> None:
    """Remove *key* from *application*; missing keys are ignored."""
    with _lock:
        entries = dict(_settings.get(application, {}))
        entries.pop(key, None)
        if entries:
            _settings[application] = entries
        else:
            _settings.pop(application, None)


def snapshot() -> dict[Hashable, dict[str, Any]]:
    """Return a copy of the whole store."""
    return {application: dict(entries) for application, entries in _settings.items()}


def restore(state: dict[Hashable, dict[str, Any]]) -> None:
    """Replace the whole store with *state* (as returned by :func:`snapshot`)."""
    with _lock:
        _settings.clear()
        _settings.update({application: dict(entries) for application, entries in state.items()})
