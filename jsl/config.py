"""Configuration for how validation should proceed."""

import os
from typing import Self

from pydantic import BaseModel, ConfigDict, Field

DEFAULT_MAX_DEPTH = 32


class ValidatorConfig(BaseModel):
    """Validator settings. Immutable once built."""

    model_config = ConfigDict(frozen=True)

    max_depth: int = Field(
        DEFAULT_MAX_DEPTH,
        ge=1,
        description=(
            "Maximum number of nested references to follow before aborting. "
            "Exceeding it fails the call instead of returning errors."
        ),
    )
    max_errors: int = Field(
        0,
        ge=0,
        description=(
            "Stop after producing this many errors; 0 produces all of them. "
            "Set to 1 to only learn whether an instance is valid."
        ),
    )
    strict_instance: bool = Field(
        False,
        description="Reject unknown properties when additionalProperties is unset.",
    )
    lazy_references: bool = Field(
        False,
        description=(
            "Allow building a validator over a registry with missing schemas; "
            "only traversing a missing reference fails."
        ),
    )

    @classmethod
    def from_env(cls, prefix: str = "JSL_") -> Self:
        """
        Build a config from environment variables.

        Reads `<prefix>MAX_DEPTH`, `<prefix>MAX_ERRORS`, `<prefix>STRICT_INSTANCE`
        and `<prefix>LAZY_REFERENCES`. Unset variables keep their defaults.

        Raises:
            pydantic.ValidationError: If a variable holds an invalid value.
        """
        values = {
            "max_depth": os.getenv(f"{prefix}MAX_DEPTH"),
            "max_errors": os.getenv(f"{prefix}MAX_ERRORS"),
            "strict_instance": os.getenv(f"{prefix}STRICT_INSTANCE"),
            "lazy_references": os.getenv(f"{prefix}LAZY_REFERENCES"),
        }
        return cls.model_validate({k: v for k, v in values.items() if v is not None})
