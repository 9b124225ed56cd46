"""Explicit, multi-layered configuration specifications.

Declare which fields a configuration has and how each is parsed, then load
it from environment variables, application-wide settings, caller-owned
scopes and explicit values, with fail-fast errors on missing or malformed
values.
"""

from . import _parsers as parsers
from ._engine import load, load_explicit
from ._errors import (
    ImproperExplicitValueError,
    MalformedParserResultError,
    MalformedSourceResultError,
    MissingRequiredFieldsError,
    ParsingError,
    SchemaDefinitionError,
    SpecwiseError,
)
from ._options import OPTIONS_KEY, Options, exception_class, list_of_sources
from ._providers import AppEnv, Provider, ScopeSource, SystemEnv, load_source
from ._schema import FieldSpec, Parser, Schema, Specification, schema_of
from ._settings import delete_env, get_all_env, get_env, put_env
from ._testing import override_settings
from ._types import INFINITY, UNDEFINED, Atom, Err, LoadFailure, Ok, atom
from ._version import __version__

__all__ = [
    "__version__",
    # Core
    "load",
    "load_explicit",
    "Options",
    "OPTIONS_KEY",
    # Schemas
    "Schema",
    "FieldSpec",
    "Specification",
    "Parser",
    "schema_of",
    # Parsers
    "parsers",
    "Ok",
    "Err",
    "Atom",
    "atom",
    "INFINITY",
    "UNDEFINED",
    "list_of_sources",
    "exception_class",
    # Sources
    "Provider",
    "LoadFailure",
    "load_source",
    "SystemEnv",
    "AppEnv",
    "ScopeSource",
    # Application-wide settings
    "put_env",
    "get_env",
    "get_all_env",
    "delete_env",
    # Errors
    "SpecwiseError",
    "SchemaDefinitionError",
    "ImproperExplicitValueError",
    "MissingRequiredFieldsError",
    "ParsingError",
    "MalformedParserResultError",
    "MalformedSourceResultError",
    # Testing
    "override_settings",
]
