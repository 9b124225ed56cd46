"""``load()``: resolves a schema against its configuration sources.

Resolution order, lowest to highest precedence:

1. Field defaults
2. Each configured source, in list order
3. Explicit values passed to the call

The highest-precedence value of every field is then run through the field's
parser. Missing required fields are all reported at once; the first value
that fails to parse aborts the call.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from typing import Any, Iterable

from ._combinators import construct_parser, describe_parser
from ._errors import (
    ImproperExplicitValueError,
    MalformedParserResultError,
    MalformedSourceResultError,
    MissingRequiredFieldsError,
    ParsingError,
)
from ._options import Options, resolve_options
from ._providers import load_source
from ._schema import Schema, schema_of
from ._types import Err, LoadFailure, Ok

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Explicit values
# ---------------------------------------------------------------------------


def _explicit_values(raw: Any) -> dict[Any, Any]:
    if raw is None:
        return {}
    if isinstance(raw, Mapping):
        return dict(raw)
    if isinstance(raw, Sequence) and not isinstance(raw, (str, bytes)):
        try:
            return dict(raw)
        except (TypeError, ValueError):
            pass
    raise ImproperExplicitValueError(
        f"Explicit values must be a mapping or a list of (field, value) pairs, got {raw!r}."
    )


def _prevent_improper_explicit_values(schema: Schema, explicit_values: Mapping[Any, Any]) -> None:
    improper = [name for name in explicit_values if not schema.is_field(name)]
    if improper:
        raise ImproperExplicitValueError(
            f"The following fields passed as explicit values are not part of "
            f"{schema.name!r}'s fields: {', '.join(repr(name) for name in improper)}.",
            fields=improper,
        )


# ---------------------------------------------------------------------------
# Sources
# ---------------------------------------------------------------------------


def _warn_unloadable(schema: Schema, source: Any, failure: Any) -> None:
    level = logging.DEBUG if getattr(source, "optional", False) else logging.WARNING
    if failure == LoadFailure.NOT_FOUND:
        message = (
            "While loading the configuration %r, the source %r could not be found. "
            "If this source is not needed, remove it from the sources list."
        )
    else:
        message = (
            "While loading the configuration %r, the source %r did not contain "
            "a configuration mapping. This usually indicates a serious problem."
        )
    logger.log(
        level,
        message,
        schema.name,
        source,
        extra={"source": source, "failure": failure},
    )


def _accumulate(schema: Schema, sources: Iterable[Any]) -> dict[str, list[Any]]:
    """Collect every candidate value per field, lowest precedence first."""
    accumulator = schema.begin_accumulator()
    for source in sources:
        result = load_source(source, schema)
        if isinstance(result, Err):
            _warn_unloadable(schema, source, result.reason)
            continue

        if not (isinstance(result, Ok) and isinstance(result.value, Mapping)):
            raise MalformedSourceResultError(
                f"Improper result of source {source!r} while loading {schema.name!r}. "
                "Sources are supposed to return Ok(mapping) or Err(LoadFailure), "
                f"but returned {result!r}.",
                source=source,
                result=result,
            )

        found = result.value
        logger.debug("Loaded %d value(s) for %r from %r", len(found), schema.name, source)
        for name, candidates in accumulator.items():
            if name in found:
                candidates.append(found[name])
    return accumulator


# ---------------------------------------------------------------------------
# Validation and parsing
# ---------------------------------------------------------------------------


def _raise_missing_fields(schema: Schema, missing: list[str], options: Options) -> None:
    error_cls = options.missing_fields_error
    message = (
        f"Missing required fields for {schema.name!r}: "
        f"{', '.join(repr(name) for name in missing)}."
    )
    if issubclass(error_cls, MissingRequiredFieldsError):
        raise error_cls(message, fields=missing, schema_name=schema.name)
    raise error_cls(message)


def _parse_field(schema: Schema, name: str, candidates: list[Any], options: Options) -> Any:
    spec = schema.parsers[name]
    result = construct_parser(spec)(candidates[-1])

    if isinstance(result, Ok):
        return result.value

    if isinstance(result, Err):
        error_cls = options.parsing_error
        message = (
            f"{result.reason} (required for loading the field {name!r} of {schema.name!r})"
        )
        if issubclass(error_cls, ParsingError):
            raise error_cls(message, field=name, reason=result.reason, schema_name=schema.name)
        raise error_cls(message)

    raise MalformedParserResultError(
        f"Improper parser result for field {name!r} of {schema.name!r}. "
        f"Parser {describe_parser(spec)} is supposed to return Ok(value) or Err(reason), "
        f"but returned {result!r}.",
        field=name,
        result=result,
    )


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def load(spec: Any, *, scope: Mapping[Any, Any] | None = None, **options: Any) -> Any:
    """Load, parse and validate the configuration described by *spec*.

    Parameters
    ----------
    spec:
        A :class:`~specwise.Schema` or a :class:`~specwise.Specification`
        subclass.
    scope:
        Caller-owned mapping; its ``"specwise"`` entry provides option
        defaults for this call.
    sources:
        Sources to consult, lowest precedence first. See
        :func:`specwise.list_of_sources` for the accepted forms.
    explicit_values:
        Mapping (or list of pairs) of field values taking precedence over
        every source. Unknown field names raise
        ``ImproperExplicitValueError`` before any source is consulted.
    missing_fields_error / parsing_error:
        Exception classes raised instead of ``MissingRequiredFieldsError`` /
        ``ParsingError``.
    explain:
        Return ``{field: [candidates, lowest precedence first]}`` instead of
        the parsed record.
    """
    schema = schema_of(spec)
    # Explicit values come from the call, falling back to the schema options.
    declared = {**schema.default_options, **options}
    explicit_values = _explicit_values(declared.get("explicit_values"))
    _prevent_improper_explicit_values(schema, explicit_values)

    resolved = resolve_options(schema, options, scope)

    # Explicit values always form the last, highest-precedence source.
    accumulator = _accumulate(schema, [*resolved.sources, explicit_values])

    if resolved.explain:
        return accumulator

    missing = [name for name, candidates in accumulator.items() if not candidates]
    if missing:
        _raise_missing_fields(schema, missing, resolved)

    values = {
        name: _parse_field(schema, name, candidates, resolved)
        for name, candidates in accumulator.items()
    }
    return schema.record_type.model_construct(**values)


def load_explicit(spec: Any, explicit_values: Any, **options: Any) -> Any:
    """Like :func:`load`, with *explicit_values* passed positionally.

    Prefer this when the values come from the call site itself, e.g. when
    validating keyword arguments passed to a function.
    """
    return load(spec, explicit_values=explicit_values, **options)
