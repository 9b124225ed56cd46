"""Options accepted by ``load``, and how they are resolved.

``Options`` is itself a :class:`~specwise.Specification`, so the options of a
``load`` call cascade like any other configuration. From lowest to highest
precedence they come from:

1. the ``Options`` defaults below;
2. the application-wide settings of application ``"specwise"``;
3. the ``"specwise"`` entry of the ``scope`` mapping passed to ``load``;
4. the options declared with the schema (``Meta.options`` or
   ``Schema.build(..., **options)``);
5. the options passed to ``load`` itself.

Options can only come from sources after the sources are known, so resolving
``Options`` itself takes a fixed path (``_bootstrap``) that reads levels 1-3
directly and never consults the configured sources.
"""

from __future__ import annotations

import inspect
import sys
from collections.abc import Mapping
from typing import Annotated, Any, Callable

from . import _settings
from ._combinators import construct_parser
from ._errors import MissingRequiredFieldsError, ParsingError
from ._parsers import ParseResult
from ._providers import Provider
from ._schema import Parser, Schema, Specification
from ._types import Err, Ok

OPTIONS_KEY = "specwise"

# Options read from the call site only when bootstrapping; the other levels
# reach them through the inherited sources.
_CALL_ONLY = frozenset({"sources", "explicit_values", "explain"})

# Per-call options the application-wide and scoped entries never supply.
_NOT_INHERITED = frozenset({"explicit_values", "explain"})


# ---------------------------------------------------------------------------
# Option parsers
# ---------------------------------------------------------------------------


def list_of_sources(value: Any) -> ParseResult:
    """Parse a list of sources.

    Each entry can be:

    - a source instance, e.g. ``SystemEnv(prefix="APP")``;
    - a mapping, or a list of ``(field, value)`` pairs;
    - a source class with a zero-argument constructor, e.g. ``SystemEnv``;
    - a ``(factory, kwargs)`` pair, e.g. ``(SystemEnv, {"prefix": "APP"})``;
    - a ``(module, function, kwargs)`` triple naming a factory in an already
      imported module, e.g. ``("myapp.config", "make_source", {})``.
    """
    if isinstance(value, (str, bytes)) or not isinstance(value, (list, tuple)):
        return Err(f"{value!r} is not a list of sources.")

    sources = []
    for entry in value:
        if isinstance(entry, type):
            try:
                inspect.signature(entry).bind()
            except (TypeError, ValueError):
                return Err(
                    f"{entry.__qualname__} has no zero-argument constructor. "
                    "Pass an instance or a (class, kwargs) pair instead."
                )
            entry = entry()
        elif _is_factory_call(entry):
            *target, kwargs = entry
            factory = _resolve_factory(*target)
            if factory is None:
                return Err(f"{entry!r} does not name a source factory.")
            try:
                entry = factory(**kwargs)
            except TypeError as exc:
                return Err(f"Cannot build a source from {entry!r}: {exc}")
        elif isinstance(entry, (Mapping, list)):
            sources.append(entry)
            continue

        if isinstance(entry, type) or not isinstance(entry, Provider):
            return Err(f"{entry!r} is not a configuration source.")
        sources.append(entry)
    return Ok(tuple(sources))


def _is_factory_call(entry: Any) -> bool:
    if not isinstance(entry, tuple) or not entry or not isinstance(entry[-1], Mapping):
        return False
    if len(entry) == 2:
        return callable(entry[0])
    return len(entry) == 3 and isinstance(entry[0], str) and isinstance(entry[1], str)


def _resolve_factory(*target: Any) -> Callable[..., Any] | None:
    if len(target) == 1:
        return target[0]
    module_name, function_name = target
    module = sys.modules.get(module_name)
    factory = getattr(module, function_name, None) if module is not None else None
    return factory if callable(factory) else None


def exception_class(value: Any) -> ParseResult:
    """Accept an exception class."""
    if isinstance(value, type) and issubclass(value, Exception):
        return Ok(value)
    return Err(f"{value!r} is not an exception class.")


# ---------------------------------------------------------------------------
# Options
# ---------------------------------------------------------------------------


class Options(Specification):
    """The options of a ``load`` call."""

    class Meta:
        docs = {
            "sources": "Sources to load from; later entries take precedence over earlier ones.",
            "explicit_values": "Values taking precedence over every source.",
            "missing_fields_error": "Raised when required fields have no value.",
            "parsing_error": "Raised when a value cannot be parsed.",
            "explain": "Return the candidate values per field instead of the record.",
        }

    sources: Annotated[tuple, Parser(list_of_sources)] = ()
    explicit_values: Annotated[Any, Parser("term")] = ()
    missing_fields_error: Annotated[type, Parser(exception_class)] = MissingRequiredFieldsError
    parsing_error: Annotated[type, Parser(exception_class)] = ParsingError
    explain: bool = False


def resolve_options(schema: Schema, call_options: Mapping[str, Any], scope: Any = None) -> Options:
    """Return the effective options for loading *schema*."""
    options = {**schema.default_options, **call_options}
    if schema is Options.config_schema():
        return _bootstrap(options, scope)

    from ._engine import load

    return load(Options, explicit_values=options, scope=scope)


def _bootstrap(call_options: Mapping[str, Any], scope: Any) -> Options:
    schema = Options.config_schema()
    scoped = scope.get(OPTIONS_KEY) if isinstance(scope, Mapping) else None
    scoped = dict(scoped) if isinstance(scoped, Mapping) else {}
    app_wide = _settings.get_all_env(OPTIONS_KEY)

    values: dict[str, Any] = {}
    for name in schema.field_names:
        layers = [call_options] if name in _CALL_ONLY else [call_options, scoped, app_wide]
        raw = next(
            (layer[name] for layer in layers if name in layer),
            schema.defaults[name],
        )
        result = construct_parser(schema.parsers[name])(raw)
        if not isinstance(result, Ok):
            reason = result.reason if isinstance(result, Err) else result
            raise ParsingError(
                f"{reason} (required for loading the option {name!r})",
                field=name,
                reason=reason,
                schema_name=schema.name,
            )
        values[name] = result.value

    # The application-wide and scoped entries are the lowest sources of the
    # options being loaded, so they cascade below the call-site options.
    inherited = [
        {key: value for key, value in layer.items() if key not in _NOT_INHERITED}
        for layer in (app_wide, scoped)
        if layer
    ]
    values["sources"] = (*inherited, *values["sources"])
    return Options.model_construct(**values)
