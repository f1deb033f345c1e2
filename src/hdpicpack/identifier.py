"""Validation of the two-letter variable prefix used for every appvar name."""
from __future__ import annotations

PREFIX_LENGTH = 2


class VarPrefixError(ValueError):
    """Raised when a variable prefix cannot be used to name appvars."""


class WrongLengthError(VarPrefixError):
    def __init__(self, length: int):
        super().__init__(
            f"var_prefix must be exactly {PREFIX_LENGTH} characters, but is {length}"
        )
        self.length = length


class NonAlphabeticCharacterError(VarPrefixError):
    def __init__(self, character: str, index: int):
        super().__init__(
            f"{character!r} at var_prefix position {index} is not an alphabetic character"
        )
        self.character = character
        self.index = index


def _is_ascii_alpha(char: str) -> bool:
    return char.isascii() and char.isalpha()


def validate_var_prefix(text: str) -> str:
    """Return ``text`` unchanged if it is two ASCII letters.

    Length is counted in characters (code points), so ``"é"`` is one character
    and is rejected for being non-ASCII rather than for its encoded size.
    """

    if len(text) != PREFIX_LENGTH:
        raise WrongLengthError(len(text))

    for index, char in enumerate(text):
        if not _is_ascii_alpha(char):
            raise NonAlphabeticCharacterError(char, index)

    return text
