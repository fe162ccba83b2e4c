"""Tests for building checked schemas from parsed documents."""

import pytest
from pydantic import ValidationError as PydanticValidationError

from jsl.errors import (
    AmbiguousPropertyError,
    InvalidFormError,
    InvalidSchemaError,
    NoSuchDefinitionError,
)
from jsl.schema import (
    DiscriminatorForm,
    ElementsForm,
    EmptyForm,
    EnumForm,
    PrimitiveType,
    PropertiesForm,
    RefForm,
    RootSchema,
    Schema,
    TypeForm,
    ValuesForm,
    parse_schema,
    parse_schema_json,
)
from jsl.serde import SerdeSchema


def test_empty_document_is_empty_form_root() -> None:
    """An empty document is an anonymous root in the empty form."""
    root = parse_schema({})
    assert isinstance(root, RootSchema)
    assert root.id is None
    assert root.definitions == {}
    assert isinstance(root.form, EmptyForm)
    assert root.nullable is False


def test_root_with_id_and_definitions() -> None:
    """Definitions are built as plain (non-root) schemas."""
    root = parse_schema(
        {
            "id": "http://example.com/foo",
            "definitions": {"a": {"type": "string"}},
        }
    )
    assert root.id == "http://example.com/foo"
    assert type(root.definitions["a"]) is Schema
    assert root.definitions["a"].form == TypeForm(type=PrimitiveType.STRING)


@pytest.mark.parametrize("name", [t.value for t in PrimitiveType])
def test_type_form_accepts_known_types(name: str) -> None:
    """Every primitive type name is accepted."""
    root = parse_schema({"type": name})
    assert root.form == TypeForm(type=PrimitiveType(name))


def test_type_form_rejects_unknown_type() -> None:
    """An unknown type name is a malformed schema."""
    with pytest.raises(InvalidFormError, match="unknown type"):
        parse_schema({"type": "nonsense"})


def test_mixing_forms_is_rejected() -> None:
    """Keywords from two forms may not be combined."""
    with pytest.raises(InvalidFormError, match="type, elements"):
        parse_schema({"type": "string", "elements": {}})
    with pytest.raises(InvalidFormError):
        parse_schema({"ref": "#", "properties": {}})


def test_additional_properties_alone_is_rejected() -> None:
    """additionalProperties needs properties or optionalProperties."""
    with pytest.raises(InvalidFormError, match="additionalProperties requires"):
        parse_schema({"additionalProperties": True})


def test_elements_and_values_forms() -> None:
    """Elements and values wrap a single sub-schema."""
    elements = parse_schema({"elements": {"type": "boolean"}})
    values = parse_schema({"values": {"type": "boolean"}})
    assert isinstance(elements.form, ElementsForm)
    assert isinstance(values.form, ValuesForm)
    assert elements.form.subschema.form == TypeForm(type=PrimitiveType.BOOLEAN)


def test_properties_form_keeps_keyword_order() -> None:
    """Required and optional properties keep their document order."""
    root = parse_schema(
        {
            "properties": {"b": {}, "a": {}},
            "optionalProperties": {"d": {}, "c": {}},
            "additionalProperties": False,
        }
    )
    form = root.form
    assert isinstance(form, PropertiesForm)
    assert list(form.required) == ["b", "a"]
    assert list(form.optional) == ["d", "c"]
    assert form.additional is False
    assert form.has_required is True


def test_optional_properties_only() -> None:
    """A schema with only optionalProperties is still the properties form."""
    form = parse_schema({"optionalProperties": {"a": {}}}).form
    assert isinstance(form, PropertiesForm)
    assert form.has_required is False
    assert form.additional is None


def test_overlapping_required_and_optional_is_ambiguous() -> None:
    """A property may not be both required and optional."""
    with pytest.raises(AmbiguousPropertyError) as exc_info:
        parse_schema(
            {
                "properties": {"a": {"type": "string"}},
                "optionalProperties": {"a": {"type": "string"}},
            }
        )
    assert exc_info.value.property == "a"


@pytest.mark.parametrize(
    "enum, message",
    [
        ([], "at least one value"),
        (["a", 1], "must be strings"),
        (["a", "b", "a"], "repeated"),
    ],
)
def test_bad_enums_are_rejected(enum: list, message: str) -> None:
    """Enums must be non-empty, string-only and distinct."""
    with pytest.raises(InvalidFormError, match=message):
        parse_schema({"enum": enum})


def test_enum_form_keeps_values() -> None:
    """A valid enum keeps its values in order."""
    assert parse_schema({"enum": ["b", "a"]}).form == EnumForm(values=("b", "a"))


def test_discriminator_form() -> None:
    """Discriminator mappings are properties schemas."""
    root = parse_schema(
        {
            "discriminator": {
                "tag": "kind",
                "mapping": {
                    "a": {"properties": {}},
                    "b": {"optionalProperties": {"x": {}}},
                },
            }
        }
    )
    form = root.form
    assert isinstance(form, DiscriminatorForm)
    assert form.tag == "kind"
    assert list(form.mapping) == ["a", "b"]


def test_discriminator_accepts_property_name_alias() -> None:
    """`propertyName` is accepted in place of `tag`."""
    root = parse_schema(
        {
            "discriminator": {
                "propertyName": "kind",
                "mapping": {"a": {"properties": {}}},
            }
        }
    )
    assert root.form.tag == "kind"


def test_discriminator_mapping_must_be_properties_form() -> None:
    """A mapping to anything but a properties schema is rejected."""
    with pytest.raises(InvalidFormError, match="must be a properties schema"):
        parse_schema(
            {"discriminator": {"tag": "foo", "mapping": {"a": {"type": "null"}}}}
        )


def test_discriminator_mapping_must_not_be_nullable() -> None:
    """Mapped schemas cannot be nullable."""
    with pytest.raises(InvalidFormError, match="nullable"):
        parse_schema(
            {
                "discriminator": {
                    "tag": "foo",
                    "mapping": {"a": {"properties": {}, "nullable": True}},
                }
            }
        )


def test_discriminator_tag_may_not_be_a_mapped_property() -> None:
    """The tag cannot also be declared as a property of a mapped schema."""
    with pytest.raises(AmbiguousPropertyError, match="foo"):
        parse_schema(
            {
                "discriminator": {
                    "tag": "foo",
                    "mapping": {
                        "a": {"properties": {"foo": {"type": "string"}}},
                    },
                }
            }
        )


def test_definitions_below_root_are_rejected() -> None:
    """definitions are only legal at the root of a document."""
    with pytest.raises(InvalidFormError, match="definitions may only appear"):
        parse_schema({"elements": {"definitions": {"a": {}}}})
    with pytest.raises(InvalidFormError, match="definitions may only appear"):
        parse_schema({"definitions": {"a": {"definitions": {}}}})


def test_nested_id_is_rejected() -> None:
    """id is only legal at the root of a document."""
    with pytest.raises(InvalidFormError, match="id may only appear"):
        parse_schema({"values": {"id": "http://example.com/x"}})


@pytest.mark.parametrize(
    "ref, expected",
    [
        ("a", RefForm(definition="a")),
        ("#a", RefForm(definition="a")),
        ("#", RefForm()),
        ("", RefForm()),
        ("http://example.com/bar", RefForm(uri="http://example.com/bar")),
        (
            "http://example.com/bar#baz",
            RefForm(uri="http://example.com/bar", definition="baz"),
        ),
        ("urn:example:bar", RefForm(uri="urn:example:bar")),
    ],
)
def test_ref_forms(ref: str, expected: RefForm) -> None:
    """Refs resolve to local definitions, the own root, or other documents."""
    root = parse_schema({"definitions": {"a": {}}, "ref": ref})
    assert root.form == expected


def test_ref_to_own_id_is_local() -> None:
    """A ref spelled with the document's own URI stays local."""
    root = parse_schema(
        {
            "id": "http://example.com/foo",
            "definitions": {"a": {}},
            "ref": "http://example.com/foo#a",
        }
    )
    assert root.form == RefForm(definition="a")
    assert root.external_references() == set()


def test_ref_to_missing_definition_is_rejected() -> None:
    """Local refs must name an existing definition."""
    with pytest.raises(NoSuchDefinitionError) as exc_info:
        parse_schema({"definitions": {"a": {}}, "elements": {"ref": "b"}})
    assert exc_info.value.definition == "b"


def test_external_references_include_definitions() -> None:
    """All cross-document refs are collected, including those in definitions."""
    root = parse_schema(
        {
            "definitions": {"a": {"ref": "http://example.com/a"}},
            "properties": {
                "x": {"elements": {"ref": "http://example.com/b#thing"}},
                "y": {"ref": "a"},
            },
        }
    )
    assert root.external_references() == {
        "http://example.com/a",
        "http://example.com/b",
    }


def test_wrongly_shaped_keyword_is_invalid_form() -> None:
    """Shape errors from the parsed document surface as InvalidFormError."""
    with pytest.raises(InvalidFormError, match="malformed schema document"):
        parse_schema({"properties": ["not", "a", "mapping"]})
    with pytest.raises(InvalidSchemaError):
        parse_schema({"nullable": "yes"})


def test_metadata_and_unknown_keys_pass_through() -> None:
    """metadata is kept on the schema and unknown keys are tolerated."""
    serde = SerdeSchema.model_validate(
        {"type": "string", "metadata": {"description": "a name"}, "x-extra": 1}
    )
    assert serde.model_extra == {"x-extra": 1}
    root = parse_schema(serde)
    assert root.metadata == {"description": "a name"}


def test_schemas_are_frozen() -> None:
    """Schemas cannot be modified after construction."""
    root = parse_schema({"type": "string"})
    with pytest.raises(PydanticValidationError):
        root.nullable = True  # type: ignore[misc]


def test_schema_mappings_are_read_only() -> None:
    """Nested mappings of a checked schema cannot be modified either."""
    root = parse_schema(
        {
            "definitions": {"d": {"metadata": {"note": "x"}}},
            "properties": {"a": {}},
            "optionalProperties": {"b": {}},
        }
    )
    disc = parse_schema(
        {"discriminator": {"tag": "t", "mapping": {"x": {"properties": {}}}}}
    )
    for mapping in (
        root.definitions,
        root.definitions["d"].metadata,
        root.metadata,
        root.form.required,
        root.form.optional,
        disc.form.mapping,
    ):
        with pytest.raises(TypeError):
            mapping["new"] = Schema()  # type: ignore[index]
    assert root.definitions["d"].metadata == {"note": "x"}


def test_snake_case_keywords_are_unknown_keys() -> None:
    """Only the camelCase spellings are schema keywords."""
    root = parse_schema({"optional_properties": {"a": {}}})
    assert isinstance(root.form, EmptyForm)
    serde = SerdeSchema.model_validate({"additional_properties": False})
    assert serde.additional_properties is None
    assert serde.model_extra == {"additional_properties": False}


def test_to_dict_reproduces_document() -> None:
    """A checked schema renders back to an equivalent document."""
    document = {
        "id": "http://example.com/person",
        "properties": {
            "name": {"type": "string", "metadata": {"description": "full name"}},
            "kind": {"enum": ["a", "b"]},
            "tags": {"values": {"ref": "tag"}},
            "next": {"ref": "http://example.com/other#node", "nullable": True},
        },
        "optionalProperties": {"phones": {"elements": {"type": "string"}}},
        "additionalProperties": True,
        "definitions": {
            "tag": {
                "discriminator": {
                    "tag": "t",
                    "mapping": {"x": {"optionalProperties": {}}},
                }
            }
        },
    }
    root = parse_schema(document)
    assert root.to_dict() == document
    assert parse_schema(root.to_serde()) == root


def test_parse_schema_json() -> None:
    """JSON text can be decoded and checked in one step."""
    root = parse_schema_json('{"elements": {"type": "uint8"}}')
    assert root.form.subschema.form == TypeForm(type=PrimitiveType.UINT8)
    with pytest.raises(InvalidFormError):
        parse_schema_json("[1, 2]")
