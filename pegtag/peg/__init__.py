# pegtag/peg/__init__.py
"""PEG grammar compiler used by pegtag.

This package provides:
- AST nodes for the PEG dialect (labels, `$` text capture, `{ ... }` Python actions)
- A PEG grammar parser
- A Packrat (memoizing) PEG engine producing semantic values
- `PegCompiler`, turning grammar text plus an action table into a `PegParser`
"""

from .ast import (
    Literal, CharClass, Any, Seq, Choice, Repeat, And, Not, Ref, Text, Labeled,
    Action, RuleDef, PegGrammar,
)
from .parser import parse_peg_grammar
from .runtime import GrammarCompiler, PegCompiler, PegParser, PegProgram
