"""
Checked schema representation.

A `RootSchema` is what the registry and the validator work with. It is
obtained from a `SerdeSchema` (or any parsed mapping of the same shape) with
`RootSchema.from_serde` / `parse_schema`, which enforce the rules about which
keywords may appear together. Each schema takes on exactly one of eight forms;
the forms are a pydantic discriminated union on `kind`.
"""

import logging
import re
from collections.abc import Iterator, Mapping
from enum import StrEnum
from types import MappingProxyType
from typing import Annotated, Any, Literal, Self

from pydantic import AfterValidator, BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from jsl.errors import AmbiguousPropertyError, InvalidFormError, NoSuchDefinitionError
from jsl.serde import SerdeDiscriminator, SerdeSchema

logger = logging.getLogger(__name__)

# Anything with a URI scheme is taken as a reference to another document.
_URI_SCHEME = re.compile(r"^[A-Za-z][A-Za-z0-9+.\-]*:")


def _freeze(value: dict[str, Any]) -> Mapping[str, Any]:
    return MappingProxyType(value)


# Mapping fields are read-only views once validated.
FrozenSchemas = Annotated[dict[str, "Schema"], AfterValidator(_freeze)]
FrozenMetadata = Annotated[dict[str, Any], AfterValidator(_freeze)]


class PrimitiveType(StrEnum):
    """The values the `type` keyword may check for."""

    BOOLEAN = "boolean"
    NUMBER = "number"
    FLOAT32 = "float32"
    FLOAT64 = "float64"
    INT8 = "int8"
    UINT8 = "uint8"
    INT16 = "int16"
    UINT16 = "uint16"
    INT32 = "int32"
    UINT32 = "uint32"
    STRING = "string"
    TIMESTAMP = "timestamp"
    NULL = "null"


class EmptyForm(BaseModel):
    """Accepts any instance."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["empty"] = "empty"


class RefForm(BaseModel):
    """
    Defers to another schema.

    `uri` is None when the target lives in the same document. `definition` is
    None when the target is a document root rather than one of its
    definitions.
    """

    model_config = ConfigDict(frozen=True)

    kind: Literal["ref"] = "ref"
    uri: str | None = None
    definition: str | None = None


class TypeForm(BaseModel):
    """Asserts the instance is of a primitive type."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["type"] = "type"
    type: PrimitiveType


class EnumForm(BaseModel):
    """Asserts the instance is one of a set of strings."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["enum"] = "enum"
    values: tuple[str, ...]


class ElementsForm(BaseModel):
    """Asserts the instance is an array whose elements all match `subschema`."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["elements"] = "elements"
    subschema: "Schema"


class PropertiesForm(BaseModel):
    """
    Asserts the instance is an object with the given properties.

    `has_required` records whether the `properties` keyword itself was given,
    as opposed to only `optionalProperties`.
    """

    model_config = ConfigDict(frozen=True)

    kind: Literal["properties"] = "properties"
    required: FrozenSchemas = Field(default_factory=dict, validate_default=True)
    optional: FrozenSchemas = Field(default_factory=dict, validate_default=True)
    additional: bool | None = None
    has_required: bool = True


class ValuesForm(BaseModel):
    """Asserts the instance is an object whose values all match `subschema`."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["values"] = "values"
    subschema: "Schema"


class DiscriminatorForm(BaseModel):
    """Selects a properties schema based on the string value of `tag`."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["discriminator"] = "discriminator"
    tag: str
    mapping: FrozenSchemas = Field(default_factory=dict, validate_default=True)


Form = Annotated[
    EmptyForm
    | RefForm
    | TypeForm
    | EnumForm
    | ElementsForm
    | PropertiesForm
    | ValuesForm
    | DiscriminatorForm,
    Field(discriminator="kind"),
]


class Schema(BaseModel):
    """A schema in one of the eight forms, optionally nullable."""

    model_config = ConfigDict(frozen=True)

    form: Form = Field(default_factory=EmptyForm)
    nullable: bool = False
    metadata: FrozenMetadata = Field(default_factory=dict, validate_default=True)

    def iter_subschemas(self) -> Iterator["Schema"]:
        """Yield the direct child schemas of this schema, in document order."""
        form = self.form
        if isinstance(form, (ElementsForm, ValuesForm)):
            yield form.subschema
        elif isinstance(form, PropertiesForm):
            yield from form.required.values()
            yield from form.optional.values()
        elif isinstance(form, DiscriminatorForm):
            yield from form.mapping.values()

    def to_dict(self) -> dict[str, Any]:
        """Render back to the keyword-named document shape."""
        data = _form_to_dict(self.form)
        if self.nullable:
            data["nullable"] = True
        if self.metadata:
            data["metadata"] = dict(self.metadata)
        return data

    def to_serde(self) -> SerdeSchema:
        return SerdeSchema.model_validate(self.to_dict())


class RootSchema(Schema):
    """
    The top-level schema of a document.

    Only a root carries an `id` (its URI in a registry; None for the
    anonymous document) and `definitions`, the targets of local refs.
    """

    id: str | None = None
    definitions: FrozenSchemas = Field(default_factory=dict, validate_default=True)

    @classmethod
    def from_serde(cls, serde: SerdeSchema) -> Self:
        """
        Check a parsed schema document and build its root.

        Args:
            serde: The permissive, parsed document.

        Returns:
            RootSchema: The checked schema.

        Raises:
            InvalidFormError: If keywords are combined illegally or misplaced.
            AmbiguousPropertyError: If a property is declared twice.
            NoSuchDefinitionError: If a local ref names a missing definition.
        """
        return _SchemaBuilder(serde).build(cls)

    def external_references(self) -> set[str]:
        """Collect the URIs of all other documents this one refers to."""
        found: set[str] = set()
        pending: list[Schema] = [self, *self.definitions.values()]
        while pending:
            schema = pending.pop()
            if isinstance(schema.form, RefForm) and schema.form.uri is not None:
                found.add(schema.form.uri)
            pending.extend(schema.iter_subschemas())
        return found

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        if self.id is not None:
            data = {"id": self.id, **data}
        if self.definitions:
            data["definitions"] = {
                name: schema.to_dict() for name, schema in self.definitions.items()
            }
        return data


for _model in (ElementsForm, PropertiesForm, ValuesForm, DiscriminatorForm):
    _model.model_rebuild()
Schema.model_rebuild()
RootSchema.model_rebuild()


class _SchemaBuilder:
    """Converts one `SerdeSchema` document into a `RootSchema`."""

    def __init__(self, serde: SerdeSchema) -> None:
        self._root = serde
        self._id = serde.id
        self._definition_names = set(serde.definitions or {})

    def build(self, root_cls: type[RootSchema]) -> RootSchema:
        definitions = {
            name: self._build(sub_schema)
            for name, sub_schema in (self._root.definitions or {}).items()
        }
        root = root_cls(
            id=self._id,
            definitions=definitions,
            form=self._form(self._root),
            nullable=bool(self._root.nullable),
            metadata=self._root.metadata or {},
        )
        logger.debug(
            "Built schema %s with %d definition(s)",
            self._id or "<anonymous>",
            len(definitions),
        )
        return root

    def _build(self, serde: SerdeSchema) -> Schema:
        if serde.definitions is not None:
            raise InvalidFormError(
                "definitions may only appear at the root of a schema document"
            )
        if serde.id is not None:
            raise InvalidFormError(
                "id may only appear at the root of a schema document"
            )
        return Schema(
            form=self._form(serde),
            nullable=bool(serde.nullable),
            metadata=serde.metadata or {},
        )

    def _form(self, serde: SerdeSchema) -> Form:
        keywords = []
        if serde.ref is not None:
            keywords.append("ref")
        if serde.type is not None:
            keywords.append("type")
        if serde.enum is not None:
            keywords.append("enum")
        if serde.elements is not None:
            keywords.append("elements")
        if (
            serde.properties is not None
            or serde.optional_properties is not None
            or serde.additional_properties is not None
        ):
            keywords.append("properties")
        if serde.values is not None:
            keywords.append("values")
        if serde.discriminator is not None:
            keywords.append("discriminator")

        if len(keywords) > 1:
            raise InvalidFormError(
                f"invalid schema form: keywords of {', '.join(keywords)} combined"
            )
        if not keywords:
            return EmptyForm()

        match keywords[0]:
            case "ref":
                return self._ref_form(serde.ref)
            case "type":
                return self._type_form(serde.type)
            case "enum":
                return self._enum_form(serde.enum)
            case "elements":
                return ElementsForm(subschema=self._build(serde.elements))
            case "properties":
                return self._properties_form(serde)
            case "values":
                return ValuesForm(subschema=self._build(serde.values))
            case _:
                return self._discriminator_form(serde.discriminator)

    def _ref_form(self, ref: str) -> RefForm:
        if ref in self._definition_names:
            return RefForm(definition=ref)
        if ref in ("", "#"):
            return RefForm()
        if ref.startswith("#"):
            return self._local_ref(ref[1:])
        if _URI_SCHEME.match(ref):
            uri, _, fragment = ref.partition("#")
            if uri == self._id:
                return self._local_ref(fragment) if fragment else RefForm()
            return RefForm(uri=uri, definition=fragment or None)
        return self._local_ref(ref)

    def _local_ref(self, name: str) -> RefForm:
        if name not in self._definition_names:
            raise NoSuchDefinitionError(name)
        return RefForm(definition=name)

    @staticmethod
    def _type_form(name: str) -> TypeForm:
        try:
            return TypeForm(type=PrimitiveType(name))
        except ValueError:
            raise InvalidFormError(f"unknown type: {name!r}") from None

    @staticmethod
    def _enum_form(values: list[Any]) -> EnumForm:
        if not values:
            raise InvalidFormError("enum must contain at least one value")
        seen: set[str] = set()
        for value in values:
            if not isinstance(value, str):
                raise InvalidFormError(f"enum values must be strings, got {value!r}")
            if value in seen:
                raise InvalidFormError(f"enum value repeated: {value!r}")
            seen.add(value)
        return EnumForm(values=tuple(values))

    def _properties_form(self, serde: SerdeSchema) -> PropertiesForm:
        if serde.properties is None and serde.optional_properties is None:
            raise InvalidFormError(
                "additionalProperties requires properties or optionalProperties"
            )

        required = {
            name: self._build(sub_schema)
            for name, sub_schema in (serde.properties or {}).items()
        }
        optional = {}
        for name, sub_schema in (serde.optional_properties or {}).items():
            if name in required:
                raise AmbiguousPropertyError(name)
            optional[name] = self._build(sub_schema)

        return PropertiesForm(
            required=required,
            optional=optional,
            additional=serde.additional_properties,
            has_required=serde.properties is not None,
        )

    def _discriminator_form(
        self, discriminator: SerdeDiscriminator
    ) -> DiscriminatorForm:
        tag = discriminator.tag
        mapping = {}
        for value, sub_schema in discriminator.mapping.items():
            schema = self._build(sub_schema)
            if not isinstance(schema.form, PropertiesForm):
                raise InvalidFormError(
                    f"discriminator mapping {value!r} must be a properties schema"
                )
            if schema.nullable:
                raise InvalidFormError(
                    f"discriminator mapping {value!r} must not be nullable"
                )
            if tag in schema.form.required or tag in schema.form.optional:
                raise AmbiguousPropertyError(tag)
            mapping[value] = schema
        return DiscriminatorForm(tag=tag, mapping=mapping)


def _form_to_dict(form: Form) -> dict[str, Any]:
    match form:
        case RefForm(uri=None, definition=None):
            return {"ref": "#"}
        case RefForm(uri=None, definition=definition):
            return {"ref": definition}
        case RefForm(uri=uri, definition=None):
            return {"ref": uri}
        case RefForm(uri=uri, definition=definition):
            return {"ref": f"{uri}#{definition}"}
        case TypeForm():
            return {"type": form.type.value}
        case EnumForm():
            return {"enum": list(form.values)}
        case ElementsForm() | ValuesForm():
            return {form.kind: form.subschema.to_dict()}
        case PropertiesForm():
            data: dict[str, Any] = {}
            if form.has_required:
                data["properties"] = {k: v.to_dict() for k, v in form.required.items()}
            if form.optional or not form.has_required:
                data["optionalProperties"] = {
                    k: v.to_dict() for k, v in form.optional.items()
                }
            if form.additional is not None:
                data["additionalProperties"] = form.additional
            return data
        case DiscriminatorForm():
            return {
                "discriminator": {
                    "tag": form.tag,
                    "mapping": {k: v.to_dict() for k, v in form.mapping.items()},
                }
            }
        case _:
            return {}


def parse_schema(
    data: RootSchema | SerdeSchema | Mapping[str, Any],
) -> RootSchema:
    """
    Build a root schema from an already-decoded document.

    Args:
        data: A decoded mapping (e.g. from `json.loads`), a `SerdeSchema`,
            or an already-checked `RootSchema`, which is returned as-is.

    Returns:
        RootSchema: The checked schema.

    Raises:
        InvalidSchemaError: If the document is malformed.
    """
    if isinstance(data, RootSchema):
        return data
    if isinstance(data, SerdeSchema):
        return RootSchema.from_serde(data)
    try:
        serde = SerdeSchema.model_validate(data)
    except PydanticValidationError as exc:
        raise InvalidFormError(f"malformed schema document: {exc}") from exc
    return RootSchema.from_serde(serde)


def parse_schema_json(text: str | bytes) -> RootSchema:
    """Decode a JSON schema document and build its root schema."""
    try:
        serde = SerdeSchema.model_validate_json(text)
    except PydanticValidationError as exc:
        raise InvalidFormError(f"malformed schema document: {exc}") from exc
    return RootSchema.from_serde(serde)
