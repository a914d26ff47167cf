# pegtag/peg/runtime.py
from __future__ import annotations
import ast
import logging
import textwrap
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Protocol, Sequence

from ..errors import GrammarSyntaxError, RuntimeBindingError
from .ast import Action, PegGrammar
from .engine import CompiledAction, Packrat
from .parser import parse_peg_grammar

logger = logging.getLogger(__name__)


def _normalize_code(code: str) -> str:
    lines = code.splitlines()
    while lines and not lines[0].strip():
        lines.pop(0)
    while lines and not lines[-1].strip():
        lines.pop()
    if not lines:
        return "pass"
    return textwrap.dedent("\n".join(lines)).rstrip()


def action_function_source(act: Action) -> str:
    """Python source of the function an action block compiles to."""
    params = ", ".join(("text", "location", "options") + act.labels)
    body = textwrap.indent(_normalize_code(act.code), "    ")
    return f"def _peg_action_{act.index}({params}):\n{body}\n"


def _unbound_arguments(src: str, labels: Sequence[str], context: Mapping[str, Any]) -> List[str]:
    """Positional bare names passed to context callables that are neither
    labels nor assigned inside the block.

    Such names would otherwise resolve to the function's own `text` /
    `location` / `options` parameters, a context entry or a builtin.
    """
    fn = ast.parse(src).body[0]
    bound = set(labels)
    for node in ast.walk(fn):
        if isinstance(node, ast.Name) and isinstance(node.ctx, ast.Store):
            bound.add(node.id)
    missing: List[str] = []
    for node in ast.walk(fn):
        if not (isinstance(node, ast.Call) and isinstance(node.func, ast.Name)
                and node.func.id in context):
            continue
        for arg in node.args:
            if isinstance(arg, ast.Name) and arg.id not in bound and arg.id not in missing:
                missing.append(arg.id)
    return missing


def _binding_failure(act: Action, name: str) -> CompiledAction:
    labels = ", ".join(act.labels) or "no labels"

    def fail(*args: Any) -> Any:
        raise RuntimeBindingError(
            f"action block #{act.index} forwards {name!r} which is not a label of its rule ({labels})",
            name,
        )
    return fail


def compile_actions(actions: Sequence[Action], context: Mapping[str, Any]) -> List[CompiledAction]:
    """Compile every action block; `context` names become their globals.

    A positional bare-name argument of a call to a context callable must be
    one of the rule's labels or a name assigned in the block. Otherwise the
    action raises `RuntimeBindingError` when it runs.
    """
    namespace: Dict[str, Any] = dict(context)
    out: List[CompiledAction] = []
    for act in actions:
        src = action_function_source(act)
        try:
            code = compile(src, f"<peg action {act.index}>", "exec")
        except SyntaxError as e:
            raise GrammarSyntaxError(
                f"invalid Python code in action block #{act.index}: {e.msg} (line {e.lineno})\n{src}"
            ) from e
        exec(code, namespace)
        fn = namespace.pop(f"_peg_action_{act.index}")
        missing = _unbound_arguments(src, act.labels, context)
        if missing:
            logger.debug("action block #%d forwards unbound names %s", act.index, missing)
            fn = _binding_failure(act, missing[0])
        out.append(fn)
    return out


@dataclass
class PegProgram:
    """Compiled PEG program."""
    grammar: PegGrammar
    source: str = ""

    @classmethod
    def from_source(cls, src: str) -> "PegProgram":
        g = parse_peg_grammar(src)
        return cls(g, src)


@dataclass
class PegParser:
    """Reusable parser handle returned by `PegCompiler.compile`."""
    program: PegProgram
    actions: List[CompiledAction] = field(default_factory=list)
    allowed_start_rules: Sequence[str] = ()
    cache: bool = True

    @property
    def grammar(self) -> PegGrammar:
        return self.program.grammar

    @property
    def source(self) -> str:
        return self.program.source

    def parse(self, text: str, options: Optional[Mapping[str, Any]] = None, *,
              start_rule: Optional[str] = None) -> Any:
        """Match the whole of `text` and return the start rule's value.

        Raises `InputSyntaxError` when the input does not match and
        `RuntimeBindingError` when an action block references an unknown name.
        """
        rule = start_rule or self.allowed_start_rules[0]
        if rule not in self.allowed_start_rules:
            raise ValueError(f"Can't start parsing from rule {rule!r}")
        engine = Packrat(self.grammar, self.actions, dict(options or {}), cache=self.cache)
        return engine.parse_all(rule, text)


class GrammarCompiler(Protocol):
    def compile(self, grammar_text: str, context: Mapping[str, Any]) -> Any:
        ...


class PegCompiler:
    """Default grammar compiler backed by the packrat engine."""

    def __init__(self, allowed_start_rules: Optional[Iterable[str]] = None, cache: bool = True):
        self.allowed_start_rules = list(allowed_start_rules) if allowed_start_rules else None
        self.cache = cache

    def compile(self, grammar_text: str, context: Optional[Mapping[str, Any]] = None) -> PegParser:
        program = PegProgram.from_source(grammar_text)
        g = program.grammar
        allowed = self.allowed_start_rules or [g.start]
        for name in allowed:
            if name not in g.rules:
                raise GrammarSyntaxError(f"PEG: allowed start rule '{name}' is not defined")
        actions = compile_actions(g.actions, context or {})
        logger.debug("compiled PEG grammar: rules=%d actions=%d start=%s",
                     len(g.rules), len(actions), allowed[0])
        return PegParser(program, actions, allowed, self.cache)
