"""
Validate input data against schemas.

This module contains logic related to *validation*, the process of taking a
piece of input data (called an "instance") and checking whether it is valid
according to a schema. See `Validator` for the entry point.
"""

import logging
import re
from collections.abc import Iterator, Mapping
from contextlib import contextmanager, nullcontext
from datetime import datetime
from types import MappingProxyType
from typing import Any, Self

from pydantic import BaseModel, ConfigDict, Field, field_serializer

from jsl.config import ValidatorConfig
from jsl.errors import MaxDepthExceededError, UnresolvedReferenceError
from jsl.json_pointer import JsonPointer
from jsl.registry import Registry
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
)
from jsl.serde import SerdeSchema

logger = logging.getLogger(__name__)

_INTEGER_RANGES: dict[PrimitiveType, tuple[int, int]] = {
    PrimitiveType.INT8: (-(2**7), 2**7 - 1),
    PrimitiveType.UINT8: (0, 2**8 - 1),
    PrimitiveType.INT16: (-(2**15), 2**15 - 1),
    PrimitiveType.UINT16: (0, 2**16 - 1),
    PrimitiveType.INT32: (-(2**31), 2**31 - 1),
    PrimitiveType.UINT32: (0, 2**32 - 1),
}

_FLOAT_TYPES = frozenset(
    {PrimitiveType.NUMBER, PrimitiveType.FLOAT32, PrimitiveType.FLOAT64}
)

# RFC 3339 date-time.
_TIMESTAMP = re.compile(
    r"(\d{4})-(\d{2})-(\d{2})[Tt](\d{2}):(\d{2}):(\d{2})(?:\.\d+)?"
    r"(?:[Zz]|[+-](\d{2}):(\d{2}))",
    re.ASCII,
)


class ValidationError(BaseModel):
    """
    A single problem with an instance, as judged by a schema.

    Despite the name this is not an exception: it is ordinary output data.
    `instance_path` points at the rejected part of the input and
    `schema_path` at the schema keyword that rejected it. `schema_uri` is the
    URI of the document that keyword lives in (None for the anonymous one).
    """

    model_config = ConfigDict(frozen=True)

    instance_path: JsonPointer = Field(
        default_factory=JsonPointer, serialization_alias="instancePath"
    )
    schema_path: JsonPointer = Field(
        default_factory=JsonPointer, serialization_alias="schemaPath"
    )
    schema_uri: str | None = Field(None, serialization_alias="schemaURI")

    @classmethod
    def new(
        cls, instance_path: str, schema_path: str, schema_uri: str | None = None
    ) -> Self:
        """Build an error from the string forms of its pointers."""
        return cls(
            instance_path=JsonPointer.parse(instance_path),
            schema_path=JsonPointer.parse(schema_path),
            schema_uri=schema_uri,
        )

    @field_serializer("instance_path", "schema_path")
    def serialize_pointer(self, value: JsonPointer, _info) -> str:
        """Serialize pointers to their string form."""
        return str(value)

    def to_dict(self) -> dict[str, str]:
        """Render as `{"instancePath": ..., "schemaPath": ...}`."""
        return self.model_dump(by_alias=True, exclude_none=True)

    def sort_key(self) -> tuple[str, str]:
        return str(self.schema_path), str(self.instance_path)

    def __str__(self) -> str:
        return f"{self.instance_path or '(root)'} rejected by {self.schema_path}"


class _ErrorLimitReached(Exception):
    """Raised internally once `max_errors` errors have been produced."""


class _Evaluation:
    """
    The state of a single validation call.

    Holds the instance and schema path stacks, the current document, the
    reference depth, and the errors found so far. Never shared between calls.
    """

    def __init__(
        self,
        documents: Mapping[str | None, RootSchema],
        config: ValidatorConfig,
        root: RootSchema,
        max_errors: int,
    ) -> None:
        self._documents = documents
        self._config = config
        self._max_errors = max_errors
        self._document_stack: list[RootSchema] = [root]
        self._instance_tokens: list[str] = []
        self._schema_tokens: list[str] = []
        self._depth = 0
        self.errors: list[ValidationError] = []

    def run(self, instance: Any) -> list[ValidationError]:
        try:
            self._eval(self._document_stack[0], instance)
        except _ErrorLimitReached:
            pass
        return self.errors

    @contextmanager
    def _schema_token(self, token: str) -> Iterator[None]:
        self._schema_tokens.append(token)
        try:
            yield
        finally:
            self._schema_tokens.pop()

    @contextmanager
    def _instance_token(self, token: str | int) -> Iterator[None]:
        self._instance_tokens.append(str(token))
        try:
            yield
        finally:
            self._instance_tokens.pop()

    def _push_error(self) -> None:
        self.errors.append(
            ValidationError(
                instance_path=JsonPointer(tokens=tuple(self._instance_tokens)),
                schema_path=JsonPointer(tokens=tuple(self._schema_tokens)),
                schema_uri=self._document_stack[-1].id,
            )
        )
        if self._max_errors and len(self.errors) >= self._max_errors:
            raise _ErrorLimitReached()

    def _eval(self, schema: Schema, instance: Any, exempt: str | None = None) -> None:
        if schema.nullable and instance is None:
            return

        form = schema.form
        match form:
            case EmptyForm():
                pass
            case RefForm():
                self._eval_ref(form, instance)
            case TypeForm():
                if not _matches_type(form.type, instance):
                    with self._schema_token("type"):
                        self._push_error()
            case EnumForm():
                if not isinstance(instance, str) or instance not in form.values:
                    with self._schema_token("enum"):
                        self._push_error()
            case ElementsForm():
                self._eval_elements(form, instance)
            case PropertiesForm():
                self._eval_properties(form, instance, exempt)
            case ValuesForm():
                self._eval_values(form, instance)
            case DiscriminatorForm():
                self._eval_discriminator(form, instance)

    def _eval_ref(self, form: RefForm, instance: Any) -> None:
        if self._depth >= self._config.max_depth:
            raise MaxDepthExceededError(self._config.max_depth)

        if form.uri is None:
            document = self._document_stack[-1]
        else:
            document = self._documents.get(form.uri)
            if document is None:
                raise UnresolvedReferenceError([form.uri])

        if form.definition is None:
            target: Schema = document
        else:
            target = document.definitions.get(form.definition)
            if target is None:
                raise UnresolvedReferenceError(
                    [document.id], detail=f"no definition {form.definition!r}"
                )

        self._depth += 1
        self._document_stack.append(document)
        try:
            self._eval(target, instance)
        finally:
            self._document_stack.pop()
            self._depth -= 1

    def _eval_elements(self, form: ElementsForm, instance: Any) -> None:
        with self._schema_token("elements"):
            if not isinstance(instance, (list, tuple)):
                self._push_error()
                return
            for index, element in enumerate(instance):
                with self._instance_token(index):
                    self._eval(form.subschema, element)

    def _eval_properties(
        self, form: PropertiesForm, instance: Any, exempt: str | None
    ) -> None:
        if not isinstance(instance, Mapping):
            # With no `properties` keyword the error belongs to
            # `optionalProperties` instead.
            keyword = "properties" if form.has_required else "optionalProperties"
            with self._schema_token(keyword):
                self._push_error()
            return

        with self._schema_token("properties"):
            for name, sub_schema in form.required.items():
                with self._schema_token(name):
                    if name in instance:
                        with self._instance_token(name):
                            self._eval(sub_schema, instance[name])
                    else:
                        self._push_error()

        with self._schema_token("optionalProperties"):
            for name, sub_schema in form.optional.items():
                if name in instance:
                    with self._schema_token(name), self._instance_token(name):
                        self._eval(sub_schema, instance[name])

        if form.additional is False:
            scope = self._schema_token("additionalProperties")
        elif form.additional is None and self._config.strict_instance:
            scope = nullcontext()
        else:
            return

        with scope:
            for name in instance:
                if name in form.required or name in form.optional or name == exempt:
                    continue
                with self._instance_token(name):
                    self._push_error()

    def _eval_values(self, form: ValuesForm, instance: Any) -> None:
        with self._schema_token("values"):
            if not isinstance(instance, Mapping):
                self._push_error()
                return
            for name, value in instance.items():
                with self._instance_token(name):
                    self._eval(form.subschema, value)

    def _eval_discriminator(self, form: DiscriminatorForm, instance: Any) -> None:
        with self._schema_token("discriminator"):
            if not isinstance(instance, Mapping) or form.tag not in instance:
                self._push_error()
                return

            tag_value = instance[form.tag]
            with self._instance_token(form.tag):
                if not isinstance(tag_value, str):
                    self._push_error()
                    return
                if tag_value not in form.mapping:
                    with self._schema_token("mapping"):
                        self._push_error()
                    return

            with self._schema_token("mapping"), self._schema_token(tag_value):
                self._eval(form.mapping[tag_value], instance, exempt=form.tag)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _is_timestamp(value: str) -> bool:
    match = _TIMESTAMP.fullmatch(value)
    if match is None:
        return False
    year, month, day, hour, minute, second = (int(g) for g in match.groups()[:6])
    offset_hour, offset_minute = match.group(7), match.group(8)
    if offset_hour is not None:
        if int(offset_hour) > 23 or int(offset_minute) > 59:
            return False
    if second > 60:
        return False
    try:
        # Leap seconds are allowed; datetime itself has no room for them.
        datetime(year, month, day, hour, minute, min(second, 59))
    except ValueError:
        return False
    return True


def _matches_type(expected: PrimitiveType, instance: Any) -> bool:
    if expected is PrimitiveType.BOOLEAN:
        return isinstance(instance, bool)
    if expected is PrimitiveType.STRING:
        return isinstance(instance, str)
    if expected is PrimitiveType.TIMESTAMP:
        return isinstance(instance, str) and _is_timestamp(instance)
    if expected is PrimitiveType.NULL:
        return instance is None
    if not _is_number(instance):
        return False
    if expected in _FLOAT_TYPES:
        return True

    if isinstance(instance, float) and not instance.is_integer():
        return False
    low, high = _INTEGER_RANGES[expected]
    return low <= instance <= high


class Validator:
    """
    Validates instances against a registry of schemas.

    A validator copies the registry's contents when it is built, so schemas
    registered afterwards are not visible to it. It keeps no state between
    calls and can be shared between threads.

    By default every schema referenced from the registry must be present when
    the validator is built. With `ValidatorConfig(lazy_references=True)`
    missing schemas are tolerated until validation actually reaches one.
    """

    def __init__(self, registry: Registry, config: ValidatorConfig | None = None):
        self._config = config or ValidatorConfig()

        missing = registry.missing_uris
        if missing:
            if not self._config.lazy_references:
                raise UnresolvedReferenceError(
                    missing, detail="registry is missing referenced schemas"
                )
            logger.warning(
                f"Building validator over a registry missing {len(missing)} "
                f"schema(s): {', '.join(sorted(missing))}"
            )

        self._documents = MappingProxyType(registry.snapshot())

    @property
    def config(self) -> ValidatorConfig:
        return self._config

    def validate(self, instance: Any, uri: str | None = None) -> list[ValidationError]:
        """
        Validate an instance against a registered schema.

        Args:
            instance: Decoded JSON-like data (dicts, lists, str, int, float,
                bool, None).
            uri: URI of the schema to validate against. None selects the
                anonymous schema.

        Returns:
            list[ValidationError]: Problems found, in schema keyword order.
                Empty if the instance is valid.

        Raises:
            UnresolvedReferenceError: If `uri`, or a schema reached through a
                reference, is not registered.
            MaxDepthExceededError: If more than `max_depth` references were
                nested.
        """
        return self._run(self._document(uri), instance, self._config.max_errors)

    def validate_schema(
        self,
        schema: RootSchema | SerdeSchema | Mapping[str, Any],
        instance: Any,
    ) -> list[ValidationError]:
        """
        Validate an instance against a schema that need not be registered.

        References to other documents still go through the registry.
        """
        return self._run(parse_schema(schema), instance, self._config.max_errors)

    def is_valid(self, instance: Any, uri: str | None = None) -> bool:
        """Check validity, stopping at the first error."""
        return not self._run(self._document(uri), instance, 1)

    def _document(self, uri: str | None) -> RootSchema:
        try:
            return self._documents[uri]
        except KeyError:
            raise UnresolvedReferenceError([uri]) from None

    def _run(
        self, root: RootSchema, instance: Any, max_errors: int
    ) -> list[ValidationError]:
        evaluation = _Evaluation(self._documents, self._config, root, max_errors)
        try:
            return evaluation.run(instance)
        except RecursionError:
            logger.warning(
                "Interpreter recursion limit reached while validating against %s",
                root.id or "<anonymous>",
            )
            raise MaxDepthExceededError(self._config.max_depth) from None
        except MaxDepthExceededError:
            logger.warning(
                "Validation against %s aborted after %d nested references",
                root.id or "<anonymous>",
                self._config.max_depth,
            )
            raise
