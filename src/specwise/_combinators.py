"""Parser spec normalisation and composite parser construction.

A parser spec is one of:

- a callable taking the raw value (or, for collection parsers, the raw value
  and an element parser);
- a shorthand name of one of the built-in parsers, e.g. ``"integer"``;
- a ``(collection_parser, element_parser)`` pair, e.g. ``("list", "atom")``;
- a list of alternative specs, tried in order.

Shorthands are resolved once, when the schema is defined.
"""

from __future__ import annotations

from typing import Any, Callable

from ._errors import SchemaDefinitionError
from ._parsers import PARSERS, ParseResult, accepts_arity
from ._types import Err

NO_VALIDATING_PARSER = "no validating parser found"


def normalize_parser(spec: Any, arity: int = 1) -> Any:
    """Resolve shorthands in *spec*, checking each parser's arity.

    Raises ``SchemaDefinitionError`` for unknown shorthands, parsers of the
    wrong arity, and values that are not parser specs at all.
    """
    if isinstance(spec, list):
        if arity != 1:
            raise SchemaDefinitionError(
                f"A list of alternative parsers cannot be used as a collection parser: {spec!r}."
            )
        if not spec:
            raise SchemaDefinitionError("A list of alternative parsers must not be empty.")
        return [normalize_parser(alternative) for alternative in spec]

    if isinstance(spec, tuple):
        if arity != 1 or len(spec) != 2:
            raise SchemaDefinitionError(
                f"Compound parser {spec!r} must be a (collection_parser, element_parser) pair."
            )
        collection_parser, element_parser = spec
        return (normalize_parser(collection_parser, 2), normalize_parser(element_parser, 1))

    if isinstance(spec, str):
        try:
            fn, fn_arity = PARSERS[spec]
        except KeyError:
            raise SchemaDefinitionError(
                f"Parser shorthand {spec!r} was not recognized. "
                f"Known shorthands are: {', '.join(sorted(PARSERS))}."
            ) from None
        if fn_arity != arity:
            raise SchemaDefinitionError(
                f"Parser shorthand {spec!r} takes {fn_arity} argument(s), "
                f"but is used where {arity} is expected."
            )
        return fn

    if callable(spec):
        if not accepts_arity(spec, arity):
            raise SchemaDefinitionError(
                f"Parser {spec!r} cannot be called with {arity} argument(s)."
            )
        return spec

    raise SchemaDefinitionError(f"{spec!r} is not a parser specification.")


def construct_parser(spec: Any) -> Callable[[Any], ParseResult]:
    """Build a one-argument parser from a normalised spec."""
    if isinstance(spec, list):
        return alternatives([construct_parser(alternative) for alternative in spec])
    if isinstance(spec, tuple):
        collection_parser, element_spec = spec
        return collection(collection_parser, construct_parser(element_spec))
    return spec


def collection(
    collection_parser: Callable[[Any, Callable], ParseResult],
    element_parser: Callable[[Any], ParseResult],
) -> Callable[[Any], ParseResult]:
    """Bind *element_parser* as the second argument of *collection_parser*."""

    def parse(value: Any) -> ParseResult:
        return collection_parser(value, element_parser)

    return parse


def alternatives(parsers: list[Callable[[Any], ParseResult]]) -> Callable[[Any], ParseResult]:
    """Try each parser in order; the first ``Ok`` wins.

    When every parser fails, the result is an ``Err`` whose ``details`` hold
    the individual reasons in the order the parsers were tried.
    """

    def parse(value: Any) -> ParseResult:
        reasons = []
        for parser in parsers:
            result = parser(value)
            if isinstance(result, Err):
                reasons.append(result.reason)
                continue
            return result
        return Err(NO_VALIDATING_PARSER, tuple(reasons))

    return parse


def describe_parser(spec: Any) -> str:
    """Return a short human-readable rendering of a normalised spec."""
    if isinstance(spec, list):
        return "[" + ", ".join(describe_parser(alternative) for alternative in spec) + "]"
    if isinstance(spec, tuple):
        return f"({describe_parser(spec[0])}, {describe_parser(spec[1])})"
    return getattr(spec, "__qualname__", repr(spec))
