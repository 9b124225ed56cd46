"""Configuration source protocol and the built-in sources."""

from __future__ import annotations

import os
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any, Hashable, Protocol, runtime_checkable

from . import _settings
from ._schema import Schema
from ._types import UNDEFINED, Err, LoadFailure, Ok, _Undefined

LoadResult = Ok[Mapping[str, Any]] | Err


@runtime_checkable
class Provider(Protocol):
    """Abstraction over where configuration values come from.

    ``load`` returns ``Ok(mapping)`` with the fields the source could find
    (missing fields are fine), ``Err(LoadFailure.NOT_FOUND)`` when the
    backing store does not exist, or ``Err(LoadFailure.MALFORMED)`` when it
    exists but does not hold a configuration mapping.

    Sources may set ``optional = True`` to be skipped quietly when missing.
    """

    def load(self, schema: Schema) -> LoadResult:
        ...


def _as_config(value: Any) -> LoadResult:
    """Classify a raw stored value as a configuration mapping."""
    if isinstance(value, _Undefined):
        return Err(LoadFailure.NOT_FOUND)
    if isinstance(value, Mapping):
        return Ok(dict(value))
    if isinstance(value, Sequence) and not isinstance(value, (str, bytes)):
        try:
            return Ok(dict(value))
        except (TypeError, ValueError):
            return Err(LoadFailure.MALFORMED)
    return Err(LoadFailure.MALFORMED)


def load_source(source: Any, schema: Schema) -> LoadResult:
    """Load *source* for *schema*.

    Plain mappings and sequences of ``(field, value)`` pairs are sources of
    their own; anything else must implement :class:`Provider`.
    """
    if isinstance(source, (Mapping, list, tuple)):
        return _as_config(source)
    if not isinstance(source, type) and isinstance(source, Provider):
        return source.load(schema)
    return Err(LoadFailure.MALFORMED)


# ---------------------------------------------------------------------------
# Environment variables
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SystemEnv:
    """Reads ``{PREFIX}_{FIELD}`` environment variables.

    ``prefix`` defaults to the upper-cased schema name and the field part to
    the upper-cased field name, unless the field declares an ``env_name``.
    ``environ`` replaces ``os.environ``, mostly for tests. With
    ``SystemEnv("PET")`` the field ``name`` is read from ``PET_NAME``.
    """

    prefix: str | None = None
    optional: bool = False
    environ: Mapping[str, str] | None = None

    def load(self, schema: Schema) -> LoadResult:
        environ = os.environ if self.environ is None else self.environ
        prefix = self.prefix if self.prefix is not None else schema.name.upper()

        found = {}
        for name in schema.field_names:
            env_name = schema.field_metadata[name].get("env_name") or name.upper()
            key = f"{prefix}_{env_name}" if prefix else env_name
            if key in environ:
                found[name] = environ[key]

        if not found:
            return Err(LoadFailure.NOT_FOUND)
        return Ok(found)


# ---------------------------------------------------------------------------
# Application-wide settings
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class AppEnv:
    """Reads the application-wide settings store.

    Without ``key``, every entry of ``application`` (default: the schema
    name) is used. With ``key``, the single entry ``key`` must hold a mapping
    or a list of ``(field, value)`` pairs.
    """

    application: Hashable | None = None
    key: str | None = None
    optional: bool = False

    def load(self, schema: Schema) -> LoadResult:
        application = self.application if self.application is not None else schema.name
        if self.key is None:
            entries = _settings.get_all_env(application)
            if not entries:
                return Err(LoadFailure.NOT_FOUND)
            return Ok(entries)
        return _as_config(_settings.get_env(application, self.key, UNDEFINED))


# ---------------------------------------------------------------------------
# Explicit scopes
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ScopeSource:
    """Reads one entry of a caller-owned mapping.

    The entry is ``scope[key]``, with ``key`` defaulting to the schema name.
    Scopes are passed around explicitly instead of living in ambient
    thread-local state.
    """

    scope: Mapping[Any, Any]
    key: Hashable | None = None
    optional: bool = False

    def load(self, schema: Schema) -> LoadResult:
        key = self.key if self.key is not None else schema.name
        return _as_config(self.scope.get(key, UNDEFINED))
