"""Exceptions raised while building schemas, registering them, or validating."""

from collections.abc import Iterable


class JslError(Exception):
    """Base exception for all JSL-related failures."""

    pass


class InvalidSchemaError(JslError):
    """A schema document is malformed and cannot be turned into a Schema."""

    pass


class InvalidFormError(InvalidSchemaError):
    """
    A schema-like object did not take on a valid form.

    Only certain combinations of keywords make for valid schemas. Mixing
    keywords from two forms, giving a keyword a value of the wrong shape, or
    using `definitions` below the root all end up here.
    """

    pass


class AmbiguousPropertyError(InvalidSchemaError):
    """A property is declared more than once within the same schema."""

    def __init__(self, property: str) -> None:
        self.property = property
        super().__init__(f"ambiguous property: {property}")


class NoSuchDefinitionError(InvalidSchemaError):
    """A schema refers to a definition its root does not have."""

    def __init__(self, definition: str) -> None:
        self.definition = definition
        super().__init__(f"no such definition: {definition}")


class DuplicateSchemaError(JslError):
    """A schema with the same URI is already in the registry."""

    def __init__(self, uri: str | None) -> None:
        self.uri = uri
        label = uri if uri is not None else "<anonymous>"
        super().__init__(f"schema already registered: {label}")


class UnresolvedReferenceError(JslError):
    """One or more referenced schemas are not available in the registry."""

    def __init__(self, uris: Iterable[str | None], detail: str | None = None) -> None:
        self.uris = frozenset(uris)
        labels = ", ".join(
            sorted(uri if uri is not None else "<anonymous>" for uri in self.uris)
        )
        message = f"unresolved reference(s): {labels}"
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message)


class MaxDepthExceededError(JslError):
    """
    The maximum reference depth was exceeded during validation.

    This likely means the configured `max_depth` is too small for the input,
    or that the schemas define an unbounded cycle of references.
    """

    def __init__(self, max_depth: int) -> None:
        self.max_depth = max_depth
        super().__init__(
            f"maximum reference depth ({max_depth}) exceeded during validation"
        )
