# pegtag/__init__.py
"""Author PEG grammars as templates of grammar text and Python actions."""

from .context import ActionContext, Position, SourceLocation
from .errors import (
    PegTagError, InvalidActionError, SignatureParseError, GrammarSyntaxError,
    RuntimeBindingError, InputSyntaxError,
)
from .helpers import AlternatingList
from .peg import GrammarCompiler, PegCompiler, PegParser
from .template import (
    ActionEntry, ActionSlot, Literal, assemble, introspect_parameters,
    peg_grammar, register_actions, render_action_block, split_template,
)

__all__ = [
    "ActionContext",
    "ActionEntry",
    "ActionSlot",
    "AlternatingList",
    "GrammarCompiler",
    "GrammarSyntaxError",
    "InputSyntaxError",
    "InvalidActionError",
    "Literal",
    "PegCompiler",
    "PegParser",
    "PegTagError",
    "Position",
    "RuntimeBindingError",
    "SignatureParseError",
    "SourceLocation",
    "assemble",
    "introspect_parameters",
    "peg_grammar",
    "register_actions",
    "render_action_block",
    "split_template",
]
