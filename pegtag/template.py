# pegtag/template.py
"""Grammar templates: literal PEG text interleaved with Python callables.

    parser = peg_grammar(
        "start = n:number ", lambda ctx, n: int(n), "\n",
        "number = $[0-9]+\n",
    )
    parser.parse("42")  # -> 42

Every callable becomes a semantic action. It is registered under a synthetic
name (`action<index>`) in the table handed to the grammar compiler, and a
`{ ... }` block calling it is spliced in where the callable appeared.

Parameter contract
------------------
- the first parameter (if any) receives an `ActionContext`
  (`text()`, `location()`, `options`)
- the remaining parameters receive the rule's label values, positionally;
  their names must be exactly the labels declared in the enclosing rule

The label/parameter correspondence is not checked here. A mismatch surfaces
as `RuntimeBindingError` when the compiled parser runs the action.
"""

from __future__ import annotations
import inspect
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple, Union

from .context import ActionContext
from .errors import InvalidActionError, SignatureParseError
from .peg.runtime import GrammarCompiler, PegCompiler

logger = logging.getLogger(__name__)

CONTEXT_FACTORY_NAME = "ActionContext"

_POSITIONAL = (
    inspect.Parameter.POSITIONAL_ONLY,
    inspect.Parameter.POSITIONAL_OR_KEYWORD,
)

# ------------------------------
# Template fragments
# ------------------------------

@dataclass(frozen=True)
class Literal:
    """Literal grammar text."""
    text: str


@dataclass(frozen=True)
class ActionSlot:
    """An action with an optional explicit parameter list.

    Passing `parameters` skips signature introspection, which makes callables
    without a recoverable signature usable as actions.
    """
    action: Callable[..., Any]
    parameters: Optional[Sequence[str]] = None


Part = Union[str, Literal, ActionSlot, Callable[..., Any]]


@dataclass(frozen=True)
class ActionEntry:
    synthetic_name: str
    source_action: Callable[..., Any]
    formal_parameters: Tuple[str, ...] = ()
    context_parameter_name: str = ""


def split_template(parts: Sequence[Part]) -> Tuple[List[str], List[Any]]:
    """Split interleaved parts into `segments` and `actions`.

    Adjacent literal parts are joined; an empty segment is implied between two
    adjacent actions and at either end, so `len(segments) == len(actions) + 1`.
    Anything that is not literal text is treated as an action.
    """
    segments: List[str] = [""]
    actions: List[Any] = []
    for part in parts:
        if isinstance(part, str):
            segments[-1] += part
        elif isinstance(part, Literal):
            segments[-1] += part.text
        else:
            actions.append(part)
            segments.append("")
    return segments, actions

# ------------------------------
# Registration and introspection
# ------------------------------

def introspect_parameters(action: Callable[..., Any]) -> Tuple[str, ...]:
    """Ordered names of the positional parameters declared by `action`."""
    try:
        sig = inspect.signature(action)
    except (TypeError, ValueError) as e:
        raise SignatureParseError(action, f"no signature available ({e})") from e
    names: List[str] = []
    for p in sig.parameters.values():
        if p.kind not in _POSITIONAL:
            raise SignatureParseError(
                action, f"parameter '{p}' can't be bound positionally to a label"
            )
        names.append(p.name)
    return tuple(names)


def register_actions(actions: Sequence[Any]) -> Tuple[List[ActionEntry], Dict[str, Any]]:
    """Name every action and build the name -> callable table for the compiler."""
    table: Dict[str, Any] = {CONTEXT_FACTORY_NAME: ActionContext}
    entries: List[ActionEntry] = []
    for index, action in enumerate(actions):
        explicit: Optional[Sequence[str]] = None
        if isinstance(action, ActionSlot):
            explicit = action.parameters
            action = action.action
        if not callable(action):
            raise InvalidActionError(action, index)

        name = f"action{index}"
        table[name] = action

        if explicit is not None:
            params = tuple(p.strip() for p in explicit)
            for p in params:
                if not p.isidentifier():
                    raise SignatureParseError(action, f"explicit parameter {p!r} is not an identifier")
        else:
            params = introspect_parameters(action)
        context_arg = params[0] if params else ""
        entries.append(ActionEntry(name, action, params, context_arg))
    return entries, table

# ------------------------------
# Assembly
# ------------------------------

def render_action_block(entry: ActionEntry) -> str:
    """The `{ ... }` block calling `entry` from the grammar."""
    if not entry.context_parameter_name:
        # no context parameter: skip building the context object
        return f"{{ return {entry.synthetic_name}() }}"
    return (
        "{\n"
        f"    {entry.context_parameter_name} = {CONTEXT_FACTORY_NAME}(text=text, location=location, options=options)\n"
        f"    return {entry.synthetic_name}({', '.join(entry.formal_parameters)})\n"
        "}"
    )


def assemble(segments: Sequence[str], entries: Sequence[ActionEntry]) -> str:
    """segments[0] + block(entries[0]) + segments[1] + ... + segments[k]"""
    if len(segments) != len(entries) + 1:
        raise ValueError(
            f"template needs len(actions) + 1 literal segments, "
            f"got {len(segments)} segments for {len(entries)} actions"
        )
    out = [segments[0]]
    for entry, seg in zip(entries, segments[1:]):
        out.append(render_action_block(entry))
        out.append(seg)
    return "".join(out)


def peg_grammar(*parts: Part, compiler: Optional[GrammarCompiler] = None, **compile_options: Any):
    """Assemble a grammar template and compile it into a parser.

    `parts` interleaves literal grammar text (`str` or `Literal`) with actions
    (callables or `ActionSlot`). `compile_options` configure the default
    `PegCompiler` (`allowed_start_rules`, `cache`) and must be empty when a
    custom `compiler` is given.

    Raises `InvalidActionError` or `SignatureParseError` before the compiler
    is called; `GrammarSyntaxError` comes from the compiler.
    """
    if compiler is None:
        compiler = PegCompiler(**compile_options)
    elif compile_options:
        raise TypeError(f"compile options {sorted(compile_options)} need the default compiler")

    segments, actions = split_template(parts)
    entries, table = register_actions(actions)
    grammar = assemble(segments, entries)
    logger.debug("assembled grammar: actions=%d bytes=%d", len(entries), len(grammar))
    return compiler.compile(grammar, table)
