# pegtag/peg/ast.py
from __future__ import annotations
from dataclasses import dataclass, field
from typing import List, Tuple, Dict, Optional, Union

from ..errors import GrammarSyntaxError

# ---- PEG AST node definitions ----

@dataclass(frozen=True)
class Literal:
    text: str  # unescaped text
    ignore_case: bool = False

@dataclass(frozen=True)
class CharClass:
    negated: bool
    # ranges are inclusive (lo..hi). singles is a list of single codepoints (as str of length 1)
    ranges: List[Tuple[int, int]] = field(default_factory=list)
    singles: List[str] = field(default_factory=list)
    ignore_case: bool = False
    raw: str = ""  # source spelling, used in "expected" reports

@dataclass(frozen=True)
class Any:
    pass

@dataclass(frozen=True)
class Ref:
    name: str

@dataclass(frozen=True)
class And:
    node: "Node"  # positive lookahead (&)

@dataclass(frozen=True)
class Not:
    node: "Node"  # negative lookahead (!)

@dataclass(frozen=True)
class Text:
    node: "Node"  # `$e`: value is the matched text

@dataclass(frozen=True)
class Labeled:
    label: str
    node: "Node"

@dataclass(frozen=True)
class Repeat:
    node: "Node"
    kind: str  # '?', '*', '+'

@dataclass(frozen=True)
class Seq:
    items: List["Node"]

@dataclass(frozen=True)
class Choice:
    alts: List["Node"]

@dataclass(frozen=True)
class Action:
    """Sequence followed by a `{ ... }` code block.

    `labels` lists the labels of `node` in declaration order; they become the
    positional parameters of the compiled action after text/location/options.
    """
    node: "Node"
    code: str
    labels: Tuple[str, ...]
    index: int  # position among the grammar's action blocks

Node = Union[Literal, CharClass, Any, Ref, And, Not, Text, Labeled, Repeat, Seq, Choice, Action]

@dataclass
class RuleDef:
    name: str
    expr: Node
    display: Optional[str] = None  # `rule "display name" = ...`, reported instead of inner failures

@dataclass
class PegGrammar:
    rules: Dict[str, RuleDef]
    start: str
    actions: List[Action] = field(default_factory=list)

    def require_rule(self, name: str) -> RuleDef:
        try:
            return self.rules[name]
        except KeyError:
            raise GrammarSyntaxError(f"PEG: undefined rule '{name}'") from None


def iter_refs(node: Node):
    """Yield every rule name referenced below `node`."""
    if isinstance(node, Ref):
        yield node.name
    elif isinstance(node, (And, Not, Text, Labeled, Repeat, Action)):
        yield from iter_refs(node.node)
    elif isinstance(node, Seq):
        for it in node.items:
            yield from iter_refs(it)
    elif isinstance(node, Choice):
        for it in node.alts:
            yield from iter_refs(it)
