"""Configuration schemas.

A :class:`Schema` is the immutable description of a configuration: its field
names, defaults, required fields, parsers and per-field metadata. Schemas are
built either explicitly::

    pet = Schema.build(
        "Pet",
        [
            FieldSpec("name", "string", default="Jabberwocky"),
            FieldSpec("age", "integer"),
            FieldSpec("colors", ("list", "atom"), default=[]),
        ],
    )

or declaratively, by subclassing :class:`Specification`::

    class Pet(Specification):
        class Meta:
            env_names = {"age": "PET_YEARS"}
            options = {"sources": [SystemEnv()]}

        name: str = "Jabberwocky"
        age: int
        colors: Annotated[list, Parser(("list", "atom"))] = []

    pet = Pet.load_explicit({"age": 42})
    pet.age        # 42, the record is frozen
"""

from __future__ import annotations

import copy
import typing
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, ClassVar, Iterable, Mapping

from pydantic import BaseModel, ConfigDict, create_model
from pydantic_core import PydanticUndefined

from ._combinators import normalize_parser
from ._errors import SchemaDefinitionError
from ._types import UNDEFINED, Atom, _Undefined

_RECORD_CONFIG = ConfigDict(frozen=True, arbitrary_types_allowed=True)


# ---------------------------------------------------------------------------
# Field declarations
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Parser:
    """``Annotated`` marker selecting the parser of a ``Specification`` field."""

    spec: Any


@dataclass(frozen=True)
class FieldSpec:
    """One field of a schema built with :meth:`Schema.build`.

    Leaving *default* unset makes the field required.
    """

    name: str
    parser: Any = "string"
    default: Any = UNDEFINED
    env_name: str | None = None
    doc: str = ""

    @property
    def required(self) -> bool:
        return isinstance(self.default, _Undefined)

    def metadata(self) -> dict[str, Any]:
        meta: dict[str, Any] = {"doc": self.doc}
        if self.env_name:
            meta["env_name"] = self.env_name
        return meta


# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Schema:
    """Immutable schema metadata consumed by the resolution engine and by sources."""

    name: str
    field_names: tuple[str, ...]
    defaults: Mapping[str, Any]
    required_fields: frozenset[str]
    parsers: Mapping[str, Any]
    field_metadata: Mapping[str, Mapping[str, Any]]
    default_options: Mapping[str, Any] = field(default_factory=dict)
    record_type: type[BaseModel] | None = None

    def __post_init__(self) -> None:
        names = set(self.field_names)
        if len(names) != len(self.field_names):
            raise SchemaDefinitionError(f"Schema {self.name!r} declares a field more than once.")
        if set(self.parsers) != names:
            raise SchemaDefinitionError(
                f"Schema {self.name!r} must declare exactly one parser per field."
            )
        both = self.required_fields & set(self.defaults)
        if both:
            raise SchemaDefinitionError(
                f"Fields of {self.name!r} cannot be both required and defaulted: {sorted(both)}."
            )
        if self.required_fields | set(self.defaults) != names:
            raise SchemaDefinitionError(
                f"Every field of {self.name!r} must either have a default or be required."
            )

        object.__setattr__(self, "defaults", MappingProxyType(dict(self.defaults)))
        object.__setattr__(self, "parsers", MappingProxyType(dict(self.parsers)))
        field_metadata = {
            name: MappingProxyType(dict(self.field_metadata.get(name, {})))
            for name in self.field_names
        }
        object.__setattr__(self, "field_metadata", MappingProxyType(field_metadata))
        object.__setattr__(self, "default_options", MappingProxyType(dict(self.default_options)))

    @classmethod
    def build(cls, name: str, fields: Iterable[FieldSpec], **default_options: Any) -> Schema:
        """Build a schema from field declarations.

        *default_options* are used as defaults for the options of every
        ``load`` of this schema (for instance its ``sources``).
        """
        fields = list(fields)
        for spec in fields:
            if not isinstance(spec, FieldSpec):
                raise SchemaDefinitionError(f"{spec!r} is not a FieldSpec.")
            if not isinstance(spec.name, str) or not spec.name.isidentifier():
                raise SchemaDefinitionError(f"Field name {spec.name!r} is not a valid identifier.")
            if spec.name.startswith("_"):
                raise SchemaDefinitionError(
                    f"Field name {spec.name!r} must not start with an underscore."
                )

        record_type = create_model(
            name,
            __config__=_RECORD_CONFIG,
            **{spec.name: (Any, ...) for spec in fields},
        )
        return cls(
            name=name,
            field_names=tuple(spec.name for spec in fields),
            defaults={spec.name: spec.default for spec in fields if not spec.required},
            required_fields=frozenset(spec.name for spec in fields if spec.required),
            parsers={spec.name: normalize_parser(spec.parser) for spec in fields},
            field_metadata={spec.name: spec.metadata() for spec in fields},
            default_options=default_options,
            record_type=record_type,
        )

    def is_field(self, name: Any) -> bool:
        return name in self.parsers

    def begin_accumulator(self) -> dict[str, list[Any]]:
        """Return a fresh accumulator: ``[default]`` per optional field, ``[]`` per required one.

        Defaults are deep-copied so records never share mutable defaults.
        """
        return {
            name: [copy.deepcopy(self.defaults[name])] if name in self.defaults else []
            for name in self.field_names
        }


# ---------------------------------------------------------------------------
# Specification
# ---------------------------------------------------------------------------

_INFERRED_PARSERS: dict[Any, str] = {
    str: "string",
    bool: "boolean",
    int: "integer",
    float: "float",
    Atom: "atom",
}


def _infer_parser(annotation: Any) -> Any:
    """Pick a parser spec for a field declared without a ``Parser`` marker."""
    if annotation in _INFERRED_PARSERS:
        return _INFERRED_PARSERS[annotation]
    if annotation is list:
        return ("list", "term")
    if typing.get_origin(annotation) is list:
        args = typing.get_args(annotation)
        return ("list", _infer_parser(args[0]) if args else "term")
    return "term"


class Specification(BaseModel):
    """Base class for declarative configuration specifications.

    Subclasses are frozen pydantic models; instances are the resolved
    records returned by :meth:`load`.
    """

    model_config = _RECORD_CONFIG

    _specwise_schema: ClassVar[Schema | None] = None

    class Meta:
        name: str = ""
        env_names: dict[str, str] = {}
        docs: dict[str, str] = {}
        options: dict[str, Any] = {}

    @classmethod
    def __pydantic_init_subclass__(cls, **kwargs: Any) -> None:
        super().__pydantic_init_subclass__(**kwargs)
        cls._specwise_schema = _schema_from_model(cls)

    @classmethod
    def config_schema(cls) -> Schema:
        """Return the :class:`Schema` describing this specification."""
        schema = cls._specwise_schema
        if schema is None:
            raise SchemaDefinitionError(f"{cls.__name__} declares no configuration schema.")
        return schema

    @classmethod
    def load(cls, **options: Any) -> Any:
        """Load, parse and validate this configuration from its sources.

        See :func:`specwise.load` for the supported options.
        """
        from ._engine import load

        return load(cls, **options)

    @classmethod
    def load_explicit(cls, explicit_values: Any, **options: Any) -> Any:
        """Like :meth:`load`, with *explicit_values* taking the highest precedence."""
        from ._engine import load_explicit

        return load_explicit(cls, explicit_values, **options)


def _schema_from_model(model: type[Specification]) -> Schema:
    meta = getattr(model, "Meta", Specification.Meta)
    env_names = getattr(meta, "env_names", {})
    docs = getattr(meta, "docs", {})

    field_names = []
    defaults: dict[str, Any] = {}
    required = set()
    parsers = {}
    metadata = {}

    for name, info in model.model_fields.items():
        field_names.append(name)

        markers = [item for item in info.metadata if isinstance(item, Parser)]
        spec = markers[-1].spec if markers else _infer_parser(info.annotation)
        try:
            parsers[name] = normalize_parser(spec)
        except SchemaDefinitionError as exc:
            raise SchemaDefinitionError(f"Field {name!r} of {model.__name__}: {exc}") from exc

        if info.default is not PydanticUndefined:
            defaults[name] = info.default
        elif info.default_factory is not None:
            defaults[name] = info.default_factory()
        else:
            required.add(name)

        field_meta: dict[str, Any] = {"doc": docs.get(name, info.description or "")}
        if name in env_names:
            field_meta["env_name"] = env_names[name]
        metadata[name] = field_meta

    unknown = (set(env_names) | set(docs)) - set(field_names)
    if unknown:
        raise SchemaDefinitionError(
            f"{model.__name__}.Meta refers to unknown fields: {sorted(unknown)}."
        )

    return Schema(
        name=getattr(meta, "name", "") or model.__name__,
        field_names=tuple(field_names),
        defaults=defaults,
        required_fields=frozenset(required),
        parsers=parsers,
        field_metadata=metadata,
        default_options=dict(getattr(meta, "options", {})),
        record_type=model,
    )


def schema_of(spec: Any) -> Schema:
    """Return the :class:`Schema` for a ``Schema`` or a ``Specification`` subclass."""
    if isinstance(spec, Schema):
        return spec
    if isinstance(spec, type) and issubclass(spec, Specification):
        return spec.config_schema()
    raise TypeError(f"{spec!r} is neither a Schema nor a Specification subclass.")
