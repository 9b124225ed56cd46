"""Foundation types for specwise.

Provides the sentinel value, parser result wrappers, the ``Atom`` symbol type
and the source load-failure kinds.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from enum import Enum
from typing import Any, Generic, TypeVar

T = TypeVar("T")


# ---------------------------------------------------------------------------
# Sentinel
# ---------------------------------------------------------------------------


class _Undefined:
    """Sentinel for missing values (distinct from ``None``)."""

    _instance: _Undefined | None = None

    def __new__(cls) -> _Undefined:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "UNDEFINED"

    def __bool__(self) -> bool:
        return False


UNDEFINED = _Undefined()


# ---------------------------------------------------------------------------
# Parser results
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Ok(Generic[T]):
    """Successful parser outcome wrapping the parsed value."""

    value: T


@dataclass(frozen=True)
class Err:
    """Failed parser outcome.

    ``reason`` is a human-readable description of what was wrong with the raw
    value. ``details`` optionally carries the reasons of nested failures, e.g.
    each alternative tried by an alternatives parser.
    """

    reason: Any
    details: tuple[Any, ...] = ()


class LoadFailure(str, Enum):
    """Why a source could not contribute a configuration map."""

    NOT_FOUND = "not_found"
    MALFORMED = "malformed"


# ---------------------------------------------------------------------------
# Atom
# ---------------------------------------------------------------------------

_atom_lock = threading.Lock()
_atoms: dict[str, Atom] = {}


class Atom(str):
    """An interned symbol.

    Constructing ``Atom("name")`` registers the symbol process-wide. Text from
    configuration sources only maps onto atoms that already exist (see
    :func:`existing_atom`), so untrusted input cannot grow the registry.

    >>> Atom("red") is Atom("red")
    True
    """

    __slots__ = ()

    def __new__(cls, name: str) -> Atom:
        existing = _atoms.get(name)
        if existing is not None:
            return existing
        with _atom_lock:
            existing = _atoms.get(name)
            if existing is None:
                existing = super().__new__(cls, name)
                _atoms[name] = existing
            return existing

    def __repr__(self) -> str:
        return f":{str(self)}"

    def __reduce__(self) -> tuple[Any, ...]:
        return (Atom, (str(self),))


def atom(name: str) -> Atom:
    """Return the atom called *name*, registering it if needed."""
    return Atom(name)


def existing_atom(name: str) -> Atom:
    """Return the already-registered atom called *name*.

    Raises ``KeyError`` if no such atom has been registered.
    """
    return _atoms[name]


def is_registered(name: str) -> bool:
    return name in _atoms


INFINITY = Atom("infinity")
