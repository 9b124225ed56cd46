"""Exception classes raised by specwise."""

from __future__ import annotations

from typing import Any, Iterable


class SpecwiseError(Exception):
    """Base exception for specwise errors."""


class SchemaDefinitionError(SpecwiseError, TypeError):
    """Raised while defining a schema, e.g. for an unknown parser shorthand."""


class ImproperExplicitValueError(SpecwiseError, ValueError):
    """Raised when explicit values name fields the schema does not have."""

    def __init__(self, message: str, *, fields: Iterable[Any] = ()) -> None:
        self.fields = tuple(fields)
        super().__init__(message)


class MissingRequiredFieldsError(SpecwiseError):
    """Raised when required fields have no value in any configuration source."""

    def __init__(
        self,
        message: str,
        *,
        fields: Iterable[str] = (),
        schema_name: str | None = None,
    ) -> None:
        self.fields = tuple(fields)
        self.schema_name = schema_name
        super().__init__(message)


class ParsingError(SpecwiseError, ValueError):
    """Raised when the winning value of a field is rejected by its parser."""

    def __init__(
        self,
        message: str,
        *,
        field: str | None = None,
        reason: Any = None,
        schema_name: str | None = None,
    ) -> None:
        self.field = field
        self.reason = reason
        self.schema_name = schema_name
        super().__init__(message)


class MalformedParserResultError(SpecwiseError, TypeError):
    """Raised when a parser returns something other than ``Ok`` or ``Err``.

    This points at a bug in the parser function, not at bad input data.
    """

    def __init__(self, message: str, *, field: str | None = None, result: Any = None) -> None:
        self.field = field
        self.result = result
        super().__init__(message)


class MalformedSourceResultError(SpecwiseError, TypeError):
    """Raised when a source's ``load`` returns something other than ``Ok(mapping)`` or ``Err``."""

    def __init__(self, message: str, *, source: Any = None, result: Any = None) -> None:
        self.source = source
        self.result = result
        super().__init__(message)
