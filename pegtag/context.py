# pegtag/context.py
"""Context object handed to semantic actions as their leading parameter."""

from __future__ import annotations
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Callable, Mapping


@dataclass(frozen=True)
class Position:
    """A concrete source position.

    Offsets are 0-based; line/column are 1-based for user-facing messages.
    """
    offset: int
    line: int
    column: int


@dataclass(frozen=True)
class SourceLocation:
    """Half-open range [start, end) of the parser input."""
    start: Position
    end: Position


def position_at(src: str, offset: int) -> Position:
    line = src.count("\n", 0, offset) + 1
    col = offset - (src.rfind("\n", 0, offset) + 1) + 1
    return Position(offset=offset, line=line, column=col)


def location_of(src: str, start: int, end: int) -> SourceLocation:
    return SourceLocation(position_at(src, start), position_at(src, end))


class ActionContext:
    """What an action sees through its first parameter.

    - `text()`     : text matched by the rule expression carrying the action
    - `location()` : `SourceLocation` of that match
    - `options`    : read-only view of the options given to `parse`
    """

    __slots__ = ("_text", "_location", "options")

    def __init__(
        self,
        text: Callable[[], str],
        location: Callable[[], SourceLocation],
        options: Mapping[str, Any],
    ):
        self._text = text
        self._location = location
        if not isinstance(options, MappingProxyType):
            options = MappingProxyType(dict(options))
        self.options = options

    def text(self) -> str:
        return self._text()

    def location(self) -> SourceLocation:
        return self._location()

    def __repr__(self) -> str:
        return f"ActionContext(text={self.text()!r})"
