"""JSON Pointer (RFC 6901) paths into instances and schemas."""

from collections.abc import Iterable
from typing import Self

from pydantic import BaseModel, ConfigDict


def escape_token(token: str) -> str:
    """Escape a single reference token."""
    return token.replace("~", "~0").replace("/", "~1")


def unescape_token(token: str) -> str:
    """Undo `escape_token`."""
    return token.replace("~1", "/").replace("~0", "~")


class JsonPointer(BaseModel):
    """An ordered sequence of reference tokens, rendered as a JSON Pointer."""

    model_config = ConfigDict(frozen=True)

    tokens: tuple[str, ...] = ()

    @classmethod
    def from_tokens(cls, tokens: Iterable[str]) -> Self:
        return cls(tokens=tuple(tokens))

    @classmethod
    def parse(cls, text: str) -> Self:
        """
        Parse the string form of a pointer.

        Args:
            text: Either the empty string (the whole document) or a string
                starting with "/".

        Returns:
            JsonPointer: The parsed pointer.

        Raises:
            ValueError: If the text is not a valid JSON Pointer.
        """
        if text == "":
            return cls()
        if not text.startswith("/"):
            raise ValueError(f"JSON Pointer must be empty or start with '/': {text!r}")
        return cls(tokens=tuple(unescape_token(t) for t in text[1:].split("/")))

    def __truediv__(self, token: str | int) -> Self:
        return type(self)(tokens=(*self.tokens, str(token)))

    def __str__(self) -> str:
        return "".join(f"/{escape_token(token)}" for token in self.tokens)

    def __len__(self) -> int:
        return len(self.tokens)
