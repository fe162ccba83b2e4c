"""Logic related to holding a collection of schemas together."""

import logging
from collections.abc import Mapping
from typing import Any

from jsl.errors import DuplicateSchemaError, UnresolvedReferenceError
from jsl.schema import RootSchema, parse_schema
from jsl.serde import SerdeSchema

logger = logging.getLogger(__name__)


class Registry:
    """
    An append-only collection of root schemas keyed by URI.

    Schemas in a registry may refer to one another by URI. Registering a
    schema never fails because of such references; instead `register` reports
    the URIs that are still missing, so the caller can fetch and register
    them in turn:

        registry = Registry()
        missing = registry.register(initial_schema)
        while missing:
            missing |= registry.register(fetch(missing.pop()))

    The anonymous document (a root without an `id`) is stored under None.

    Registration is not thread-safe. Register everything first, then build
    validators from the registry.
    """

    def __init__(self) -> None:
        self._schemas: dict[str | None, RootSchema] = {}
        self._references: dict[str | None, frozenset[str]] = {}

    def register(
        self, schema: RootSchema | SerdeSchema | Mapping[str, Any]
    ) -> set[str]:
        """
        Add a schema to the registry.

        Args:
            schema: A checked root schema, or a document to check first.

        Returns:
            set[str]: URIs this schema refers to that are not registered yet.

        Raises:
            InvalidSchemaError: If the document is malformed.
            DuplicateSchemaError: If a schema with the same URI is present.
        """
        root = parse_schema(schema)
        uri = root.id
        if uri in self._schemas:
            raise DuplicateSchemaError(uri)

        references = frozenset(root.external_references())
        logger.debug(
            "Schema %s refers to %d other document(s)",
            uri or "<anonymous>",
            len(references),
        )
        self._schemas[uri] = root
        self._references[uri] = references

        missing = {ref for ref in references if ref not in self._schemas}
        logger.info(
            f"Registered schema {uri or '<anonymous>'}; "
            f"{len(missing)} referenced schema(s) missing"
        )
        return missing

    def get(self, uri: str | None) -> RootSchema | None:
        """Return the schema registered under `uri`, or None."""
        return self._schemas.get(uri)

    def lookup(self, uri: str | None) -> RootSchema:
        """
        Return the schema registered under `uri`.

        Raises:
            UnresolvedReferenceError: If nothing is registered under `uri`.
        """
        try:
            return self._schemas[uri]
        except KeyError:
            raise UnresolvedReferenceError([uri]) from None

    @property
    def missing_uris(self) -> set[str]:
        """URIs referred to by registered schemas but not registered themselves."""
        return {
            ref
            for references in self._references.values()
            for ref in references
            if ref not in self._schemas
        }

    @property
    def is_satisfied(self) -> bool:
        """True when every cross-document reference can be resolved."""
        return not self.missing_uris

    def uris(self) -> list[str | None]:
        """Registered URIs, in registration order."""
        return list(self._schemas)

    def snapshot(self) -> dict[str | None, RootSchema]:
        """A copy of the URI to schema mapping as it stands now."""
        return dict(self._schemas)

    def __contains__(self, uri: object) -> bool:
        return uri in self._schemas

    def __len__(self) -> int:
        return len(self._schemas)
