"""Pydantic models for the parsed, not-yet-checked form of a schema document."""

from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, StrictBool, StrictStr


class SerdeDiscriminator(BaseModel):
    """The `discriminator` keyword: a tag property name and its mapping."""

    tag: str = Field(
        ...,
        validation_alias=AliasChoices("tag", "propertyName"),
        description="Name of the property holding the tag value.",
    )
    mapping: dict[str, "SerdeSchema"] = Field(
        ..., description="Tag value to the schema applied for that value."
    )


class SerdeSchema(BaseModel):
    """
    A permissive representation of a schema document.

    This is what a JSON (or YAML, or any other) decoder output is shaped into
    before the semantic rules are enforced. Keyword shapes are checked here;
    which keywords may appear together is not. Unknown keys are kept as extra
    data. For the checked representation, convert with `RootSchema.from_serde`.
    """

    model_config = ConfigDict(extra="allow")

    id: StrictStr | None = None
    definitions: dict[str, "SerdeSchema"] | None = None
    ref: StrictStr | None = None
    type: StrictStr | None = None
    enum: list[Any] | None = None
    elements: "SerdeSchema | None" = None
    properties: dict[str, "SerdeSchema"] | None = None
    optional_properties: dict[str, "SerdeSchema"] | None = Field(
        None, alias="optionalProperties"
    )
    additional_properties: StrictBool | None = Field(
        None, alias="additionalProperties"
    )
    values: "SerdeSchema | None" = None
    discriminator: SerdeDiscriminator | None = None
    nullable: StrictBool | None = None
    metadata: dict[str, Any] | None = None

    def to_dict(self) -> dict[str, Any]:
        """Dump to a keyword-named mapping, omitting absent keywords."""
        return self.model_dump(by_alias=True, exclude_none=True)


SerdeDiscriminator.model_rebuild()
SerdeSchema.model_rebuild()
