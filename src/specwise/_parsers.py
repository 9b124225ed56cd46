"""Built-in parser functions.

Every parser receives a raw value and returns ``Ok(parsed)`` or
``Err(reason)``. Depending on where a value was loaded from, the raw value may
be text (environment variables) or already the target Python type (explicit
values, application settings), so each parser accepts both.

Parsers never raise for bad input; failures are reported as ``Err``.
"""

from __future__ import annotations

import ast
import enum
import inspect
import os
import re
import sys
from typing import Any, Callable

from ._types import INFINITY, Atom, Err, Ok, existing_atom, is_registered

ParseResult = Ok[Any] | Err
ParserFn = Callable[[Any], ParseResult]

_INTEGER_RE = re.compile(r"[+-]?[0-9]+")
_FLOAT_RE = re.compile(r"[+-]?(?:[0-9]+(?:\.[0-9]*)?|\.[0-9]+)(?:[eE][+-]?[0-9]+)?")


# ---------------------------------------------------------------------------
# Numbers
# ---------------------------------------------------------------------------


def integer(value: Any) -> ParseResult:
    """Parse an ``int``, or text consisting entirely of an integer literal."""
    if isinstance(value, int) and not isinstance(value, bool):
        return Ok(value)
    if isinstance(value, str):
        if _INTEGER_RE.fullmatch(value):
            return Ok(int(value))
        return Err(f"the text {value!r} cannot be parsed to an integer.")
    return Err(f"{value!r} is not an integer.")


def positive_integer(value: Any) -> ParseResult:
    """Like :func:`integer`, but only accepts integers larger than 0."""
    result = integer(value)
    if isinstance(result, Err):
        return result
    if result.value > 0:
        return result
    return Err(f"integer {result.value} is not a positive integer.")


def nonnegative_integer(value: Any) -> ParseResult:
    """Like :func:`integer`, but only accepts integers larger than or equal to 0."""
    result = integer(value)
    if isinstance(result, Err):
        return result
    if result.value >= 0:
        return result
    return Err(f"integer {result.value} is not a nonnegative integer.")


def float_(value: Any) -> ParseResult:
    """Parse a ``float``, an ``int`` (converted), or text representing either."""
    if isinstance(value, float):
        return Ok(value)
    if isinstance(value, int) and not isinstance(value, bool):
        return Ok(float(value))
    if isinstance(value, str):
        if _FLOAT_RE.fullmatch(value) or value in {"inf", "-inf", "+inf"}:
            return Ok(float(value))
        return Err(f"the text {value!r} cannot be parsed to a float.")
    return Err(f"{value!r} is not a float.")


def positive_float(value: Any) -> ParseResult:
    """Like :func:`float_`, but only accepts floats larger than 0."""
    result = float_(value)
    if isinstance(result, Err):
        return result
    if result.value > 0:
        return result
    return Err(f"float {result.value} is not a positive float.")


def nonnegative_float(value: Any) -> ParseResult:
    """Like :func:`float_`, but only accepts floats larger than or equal to 0."""
    result = float_(value)
    if isinstance(result, Err):
        return result
    if result.value >= 0:
        return result
    return Err(f"float {result.value} is not a nonnegative float.")


# ---------------------------------------------------------------------------
# Text, booleans, atoms
# ---------------------------------------------------------------------------

_TEXTLESS = (list, tuple, dict, set, frozenset)


def string(value: Any) -> ParseResult:
    """Accept text as-is and turn anything with a textual form into text.

    Containers, ``None`` and objects that only have the default ``object``
    representation are rejected.
    """
    if isinstance(value, str):
        return Ok(str(value))
    if isinstance(value, bool):
        return Ok("true" if value else "false")
    if isinstance(value, bytes):
        try:
            return Ok(value.decode("utf-8"))
        except UnicodeDecodeError:
            return Err(f"{value!r} is not valid UTF-8 text.")
    if isinstance(value, os.PathLike):
        return Ok(os.fspath(value))
    if value is None or isinstance(value, _TEXTLESS):
        return Err(f"{value!r} cannot be converted to a string.")
    cls = type(value)
    if cls.__str__ is object.__str__ and cls.__repr__ is object.__repr__:
        return Err(f"{value!r} cannot be converted to a string because it has no textual form.")
    return Ok(str(value))


def term(value: Any) -> ParseResult:
    """Accept any value as-is.

    Only use this as a last resort; a dedicated parser is usually better.
    """
    return Ok(value)


_TRUE = "true"
_FALSE = "false"


def boolean(value: Any) -> ParseResult:
    """Parse a ``bool``, or the text ``true`` / ``false`` in any letter case."""
    if isinstance(value, bool):
        return Ok(value)
    if isinstance(value, str):
        token = value.strip().lower()
        if token == _TRUE:
            return Ok(True)
        if token == _FALSE:
            return Ok(False)
        return Err(f"{value!r} cannot be parsed to a boolean.")
    return Err(f"{value!r} is not a boolean.")


def atom(value: Any) -> ParseResult:
    """Parse an ``Atom`` (or enum member), or text naming an existing atom.

    Never registers new atoms; see :func:`unsafe_atom`.
    """
    if isinstance(value, (Atom, enum.Enum)):
        return Ok(value)
    if isinstance(value, str):
        try:
            return Ok(existing_atom(value))
        except KeyError:
            return Err(f"{value!r} is not an existing atom.")
    return Err(f"{value!r} is not an (existing) atom.")


def unsafe_atom(value: Any) -> ParseResult:
    """Parse an ``Atom``, or text naming a possibly not yet existing atom.

    Registers new atoms, so only use it for trusted input.
    """
    if isinstance(value, (Atom, enum.Enum)):
        return Ok(value)
    if isinstance(value, str):
        return Ok(Atom(value))
    return Err(f"{value!r} is not convertible to an atom.")


def timeout(value: Any) -> ParseResult:
    """Parse a positive integer or the special value ``infinity``."""
    result = positive_integer(value)
    if isinstance(result, Ok):
        return result
    if value == INFINITY and isinstance(value, str):
        return Ok(INFINITY)
    return Err(f"{value!r} is neither a positive integer nor the special value `infinity`.")


# ---------------------------------------------------------------------------
# Collections
# ---------------------------------------------------------------------------


def list_(value: Any, elem_parser: ParserFn) -> ParseResult:
    """Parse a list whose elements are each parsed with *elem_parser*.

    Text is first read as a literal list, e.g. ``"[1, 2, 3]"`` or
    ``"[red, 'green']"``, where bare names refer to existing atoms. Parsing
    stops at the first element that fails.
    """
    if isinstance(value, str):
        literal = _text_to_literal(value)
        if isinstance(literal, Err):
            return literal
        if not isinstance(literal.value, list):
            return Err(f"{value!r}, while a valid literal, does not represent a list.")
        value = literal.value

    if not isinstance(value, (list, tuple)):
        return Err(f"{value!r} is not a list.")

    parsed = []
    for element in value:
        result = elem_parser(element)
        if isinstance(result, Err):
            return Err(
                f"One of the elements of input list {value!r} failed to parse: \n{result.reason}",
                (result.reason,),
            )
        if not isinstance(result, Ok):
            return result
        parsed.append(result.value)
    return Ok(parsed)


# ---------------------------------------------------------------------------
# Functions
# ---------------------------------------------------------------------------


def mfa(value: Any) -> ParseResult:
    """Parse a ``(module, function, arity)`` triple.

    Accepts a tuple or its literal text, e.g. ``"('os.path', 'join', 2)"``.
    The module must already be imported and expose a callable of that name
    accepting *arity* positional arguments.
    """
    if isinstance(value, str):
        literal = _text_to_literal(value, dotted_names=True)
        if isinstance(literal, Err):
            return literal
        candidate = literal.value
        if not (isinstance(candidate, tuple) and len(candidate) == 3):
            return Err(
                f"{value!r}, while a valid literal, does not represent a "
                "(module, function, arity) tuple."
            )
        value = candidate

    if not (
        isinstance(value, tuple)
        and len(value) == 3
        and isinstance(value[0], str)
        and isinstance(value[1], str)
        and isinstance(value[2], int)
        and not isinstance(value[2], bool)
        and value[2] >= 0
    ):
        return Err(f"{value!r} is not a (module, function, arity) tuple.")

    module_name, function_name, arity = value
    if _lookup_function(module_name, function_name, arity) is None:
        return Err(f"function {module_name}.{function_name}/{arity} does not exist.")
    return Ok((str(module_name), str(function_name), arity))


def function(value: Any) -> ParseResult:
    """Parse a callable, or a ``(module, function, arity)`` triple naming one.

    For text, only the triple format is supported.
    """
    if isinstance(value, (str, tuple)):
        result = mfa(value)
        if isinstance(result, Err):
            return result
        return Ok(_lookup_function(*result.value))
    if callable(value):
        return Ok(value)
    return Err(f"{value!r} cannot be parsed as a function.")


def _lookup_function(module_name: str, function_name: str, arity: int) -> Callable | None:
    module = sys.modules.get(str(module_name))
    if module is None:
        return None
    fn = getattr(module, str(function_name), None)
    if not callable(fn):
        return None
    if not accepts_arity(fn, arity):
        return None
    return fn


def accepts_arity(fn: Callable, arity: int) -> bool:
    """Return whether *fn* can be called with *arity* positional arguments.

    Callables without an inspectable signature are assumed to accept it.
    """
    try:
        signature = inspect.signature(fn)
    except (TypeError, ValueError):
        return True
    try:
        signature.bind(*([None] * arity))
    except TypeError:
        return False
    return True


# ---------------------------------------------------------------------------
# Literal text
# ---------------------------------------------------------------------------


class _LiteralError(Exception):
    pass


def _text_to_literal(text: str, *, dotted_names: bool = False) -> ParseResult:
    """Read *text* as a restricted Python literal.

    Supported: numbers, strings, booleans, ``None``, lists, and bare names.
    Bare names become existing atoms, or dotted strings when *dotted_names*
    is set (used for module paths). Tuples are only accepted together with
    *dotted_names*.
    """
    try:
        tree = ast.parse(text.strip(), mode="eval")
    except SyntaxError as exc:
        return Err(f"{text!r} is not a valid literal: {exc.msg}.")
    try:
        return Ok(_node_to_term(tree.body, dotted_names))
    except _LiteralError as exc:
        return Err(f"{text!r} is not a supported literal: {exc}")


def _node_to_term(node: ast.AST, dotted_names: bool) -> Any:
    if isinstance(node, ast.Constant):
        if isinstance(node.value, (bool, int, float, str)) or node.value is None:
            return node.value
        raise _LiteralError(f"constant {node.value!r} is not allowed.")
    if isinstance(node, ast.UnaryOp) and isinstance(node.op, (ast.UAdd, ast.USub)):
        operand = _node_to_term(node.operand, dotted_names)
        if isinstance(operand, bool) or not isinstance(operand, (int, float)):
            raise _LiteralError("unary sign on a non-number.")
        return -operand if isinstance(node.op, ast.USub) else operand
    if isinstance(node, ast.List):
        return [_node_to_term(element, dotted_names) for element in node.elts]
    if isinstance(node, ast.Tuple) and dotted_names:
        return tuple(_node_to_term(element, dotted_names) for element in node.elts)
    if isinstance(node, ast.Name):
        if dotted_names:
            return node.id
        if not is_registered(node.id):
            raise _LiteralError(f"`{node.id}` is not an existing atom.")
        return existing_atom(node.id)
    if isinstance(node, ast.Attribute) and dotted_names:
        return f"{_node_to_term(node.value, dotted_names)}.{node.attr}"
    raise _LiteralError(f"`{ast.dump(node)}` is not allowed.")


# ---------------------------------------------------------------------------
# Shorthand registry
# ---------------------------------------------------------------------------

PARSERS: dict[str, tuple[Callable[..., ParseResult], int]] = {
    "integer": (integer, 1),
    "positive_integer": (positive_integer, 1),
    "nonnegative_integer": (nonnegative_integer, 1),
    "float": (float_, 1),
    "positive_float": (positive_float, 1),
    "nonnegative_float": (nonnegative_float, 1),
    "string": (string, 1),
    "boolean": (boolean, 1),
    "atom": (atom, 1),
    "unsafe_atom": (unsafe_atom, 1),
    "term": (term, 1),
    "timeout": (timeout, 1),
    "list": (list_, 2),
    "mfa": (mfa, 1),
    "function": (function, 1),
}
