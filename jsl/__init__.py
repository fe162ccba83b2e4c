from jsl.config import ValidatorConfig
from jsl.errors import (
    AmbiguousPropertyError,
    DuplicateSchemaError,
    InvalidFormError,
    InvalidSchemaError,
    JslError,
    MaxDepthExceededError,
    NoSuchDefinitionError,
    UnresolvedReferenceError,
)
from jsl.json_pointer import JsonPointer
from jsl.registry import Registry
from jsl.schema import (
    PrimitiveType,
    RootSchema,
    Schema,
    parse_schema,
    parse_schema_json,
)
from jsl.serde import SerdeDiscriminator, SerdeSchema
from jsl.validator import ValidationError, Validator

__all__ = [
    "AmbiguousPropertyError",
    "DuplicateSchemaError",
    "InvalidFormError",
    "InvalidSchemaError",
    "JslError",
    "JsonPointer",
    "MaxDepthExceededError",
    "NoSuchDefinitionError",
    "PrimitiveType",
    "Registry",
    "RootSchema",
    "Schema",
    "SerdeDiscriminator",
    "SerdeSchema",
    "UnresolvedReferenceError",
    "ValidationError",
    "Validator",
    "ValidatorConfig",
    "parse_schema",
    "parse_schema_json",
]
