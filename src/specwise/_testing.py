"""Test utilities for specwise."""

from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Hashable, Iterator, Mapping

from . import _settings


@contextmanager
def override_settings(
    settings: Mapping[Hashable, Mapping[str, Any]] | None = None,
    *,
    replace: bool = False,
) -> Iterator[None]:
    """Temporarily change the application-wide settings store.

    *settings* maps application names to entries; they are merged into the
    current store, or replace it entirely when *replace* is set. The previous
    store is restored on exit.

    Usage::

        with override_settings({"Pet": {"name": "Timmy"}}):
            assert Pet.load(sources=[AppEnv()]).name == "Timmy"
            put_env("Pet", "kind", "cat")  # discarded on exit
    """
    previous = _settings.snapshot()
    state = {} if replace else _settings.snapshot()
    for application, entries in (settings or {}).items():
        merged = dict(state.get(application, {}))
        merged.update(entries)
        state[application] = merged
    _settings.restore(state)
    try:
        yield
    finally:
        _settings.restore(previous)
