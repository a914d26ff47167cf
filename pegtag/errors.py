# pegtag/errors.py
"""Error taxonomy shared by the template assembler and the PEG compiler."""

from __future__ import annotations
from typing import Optional, Sequence, Tuple, TYPE_CHECKING

if TYPE_CHECKING:
    from .context import SourceLocation


class PegTagError(Exception):
    """Base class for every error raised by pegtag."""


class InvalidActionError(PegTagError, TypeError):
    """An interpolated template value is not callable."""

    def __init__(self, value: object, index: int):
        self.value = value
        self.index = index
        super().__init__(
            f"Interpolated expression #{index} must be callable: {value!r}"
        )


class SignatureParseError(PegTagError, ValueError):
    """No positional parameter list could be recovered from an action."""

    def __init__(self, action: object, reason: str):
        self.action = action
        self.reason = reason
        super().__init__(
            f"Couldn't determine parameters of {action!r}: {reason}"
        )


class GrammarSyntaxError(PegTagError, SyntaxError):
    """The assembled grammar text was rejected by the compiler."""


class RuntimeBindingError(PegTagError, NameError):
    """A generated action block referenced a name unknown at parse time.

    Raised by a compiled parser during `parse`, never during assembly.
    """

    def __init__(self, message: str, name: Optional[str] = None):
        super().__init__(message)
        self.name = name


class InputSyntaxError(PegTagError, SyntaxError):
    """Parser input did not match the grammar."""

    def __init__(
        self,
        message: str,
        location: "SourceLocation",
        expected: Sequence[str] = (),
        found: Optional[str] = None,
    ):
        super().__init__(message)
        self.location = location
        self.expected: Tuple[str, ...] = tuple(expected)
        self.found = found

    def __str__(self) -> str:
        return self.msg
