# pegtag/peg/parser.py
from __future__ import annotations
import keyword
from typing import Optional, List, Tuple, Dict

import regex

from ..context import position_at
from ..errors import GrammarSyntaxError
from .ast import (
    Literal, CharClass, Any, Ref, And, Not, Text, Labeled, Repeat, Seq, Choice,
    Action, RuleDef, PegGrammar, Node, iter_refs,
)

# Grammar we parse:
#   grammar  := (rule ";"?)*
#   rule     := IDENT ("=" | "<-") expr
#   expr     := alt ("/" alt)*
#   alt      := seq code?
#   seq      := (labeled)*
#   labeled  := (IDENT ":")? prefix
#   prefix   := ("&"|"!"|"$")? suffix
#   suffix   := primary ("?"|"*"|"+")?
#   primary  := IDENT | literal | class | "." | "(" expr ")"
#   code     := "{" python-code "}"     (braces balanced, strings skipped)
#
#   literal  := ' ... ' | " ... "  "i"?  (supports escapes \n \r \t \\ \" \' \xHH \uXXXX)
#   class    := "[" "^"? class_items "]" "i"?
#   class_items: (range | escaped | raw_char)*
#   range    := char "-" char
#   comments/space allowed between tokens:
#       - whitespace
#       - "#" ... endline
#       - "//" ... endline
#       - "/*" ... "*/"

_IDENT = regex.compile(r"[\p{XID_Start}_]\p{XID_Continue}*")

# names bound by every compiled action before its labels
RESERVED_LABELS = frozenset(("text", "location", "options"))


class _TS:
    def __init__(self, src: str):
        self.s = src
        self.i = 0
        self.n = len(src)
        self.actions: List[Action] = []

    def _peek(self, k: int = 0) -> Optional[str]:
        j = self.i + k
        if j >= self.n:
            return None
        return self.s[j]

    def _starts(self, lit: str) -> bool:
        return self.s.startswith(lit, self.i)

    def _bump(self, n: int = 1) -> None:
        self.i += n

    def _eof(self) -> bool:
        return self.i >= self.n

    def _err(self, msg: str, at: Optional[int] = None) -> GrammarSyntaxError:
        pos = position_at(self.s, self.i if at is None else at)
        return GrammarSyntaxError(f"PEG parse error at {pos.line}:{pos.column}: {msg}")

    def _skip_ws(self) -> None:
        while not self._eof():
            if self._starts("/*"):
                self._bump(2)
                j = self.s.find("*/", self.i)
                if j == -1:
                    raise self._err("unclosed block comment")
                self.i = j + 2
                continue
            ch = self._peek()
            if ch in " \t\r\n":
                self._bump(1)
                continue
            if self._starts("//") or ch == "#":
                while not self._eof() and self._peek() != "\n":
                    self._bump(1)
                continue
            break

    def _eat(self, lit: str) -> None:
        self._skip_ws()
        if not self._starts(lit):
            raise self._err(f"expected {lit!r}")
        self._bump(len(lit))

    def _try_eat(self, lit: str) -> bool:
        self._skip_ws()
        if self._starts(lit):
            self._bump(len(lit))
            return True
        return False

    def _ident_at(self) -> Optional[str]:
        m = _IDENT.match(self.s, self.i)
        return m.group(0) if m else None

    def _ident(self) -> str:
        self._skip_ws()
        name = self._ident_at()
        if name is None:
            raise self._err("expected IDENT")
        self._bump(len(name))
        return name

    def _at_rule_head(self) -> bool:
        """IDENT (display-string)? followed by '=' or '<-' (without consuming anything)."""
        save = self.i
        try:
            name = self._ident_at()
            if name is None:
                return False
            self._bump(len(name))
            self._skip_ws()
            if self._peek() in ("'", '"'):
                try:
                    self._literal()
                except GrammarSyntaxError:
                    return False
                self._skip_ws()
            return self._starts("<-") or (self._starts("=") and not self._starts("=="))
        finally:
            self.i = save

    def _hexval(self, ch: Optional[str]) -> int:
        if ch is None:
            raise self._err("unterminated escape")
        if "0" <= ch <= "9": return ord(ch) - ord("0")
        if "a" <= ch <= "f": return ord(ch) - ord("a") + 10
        if "A" <= ch <= "F": return ord(ch) - ord("A") + 10
        raise self._err("invalid hex digit")

    def _read_escape(self) -> str:
        c = self._peek()
        if c is None:
            raise self._err("unterminated escape")
        if c in "'\"\\": self._bump(1); return c
        if c == "n": self._bump(1); return "\n"
        if c == "r": self._bump(1); return "\r"
        if c == "t": self._bump(1); return "\t"
        if c == "0": self._bump(1); return "\0"
        if c == "x":
            self._bump(1)
            h1 = self._peek(); self._bump(1)
            h2 = self._peek(); self._bump(1)
            return chr(self._hexval(h1)*16 + self._hexval(h2))
        if c == "u":
            self._bump(1)
            val = 0
            for _ in range(4):
                h = self._peek(); self._bump(1)
                val = (val << 4) + self._hexval(h)
            return chr(val)
        # fallback: literal next char
        self._bump(1)
        return c

    def _ignore_case_flag(self) -> bool:
        # `i` glued to the closing quote/bracket, e.g. "select"i
        if self._peek() == "i":
            nxt = self._peek(1)
            if nxt is None or not _IDENT.match(nxt):
                self._bump(1)
                return True
        return False

    def _literal(self) -> Literal:
        self._skip_ws()
        q = self._peek()
        if q not in ("'", '"'):
            raise self._err("expected quote")
        self._bump(1)
        out = []
        while not self._eof():
            c = self._peek()
            if c == q:
                self._bump(1)
                break
            if c == "\\":
                self._bump(1)
                out.append(self._read_escape())
            else:
                out.append(c)
                self._bump(1)
        else:
            raise self._err("unterminated string")
        return Literal("".join(out), self._ignore_case_flag())

    def _class(self) -> CharClass:
        self._skip_ws()
        start = self.i
        self._eat("[")
        # no whitespace/comment skipping inside a class: ' ' and '#' are members
        neg = False
        if self._peek() == "^":
            self._bump(1)
            neg = True
        ranges: List[Tuple[int, int]] = []
        singles: List[str] = []

        def _read_char_in_class() -> str:
            if self._eof():
                raise self._err("unterminated char class")
            c = self._peek()
            if c == "\\":
                self._bump(1)
                return self._read_escape()
            self._bump(1)
            return c

        while True:
            if self._eof():
                raise self._err("unterminated char class", at=start)
            if self._peek() == "]":
                self._bump(1)
                break
            a = _read_char_in_class()
            if self._peek() == "-" and self._peek(1) not in ("]", None):
                # range
                self._bump(1)
                b = _read_char_in_class()
                if ord(a) > ord(b):
                    raise self._err(f"invalid character range {a!r}-{b!r}")
                ranges.append((ord(a), ord(b)))
            else:
                singles.append(a)

        icase = self._ignore_case_flag()
        return CharClass(negated=neg, ranges=ranges, singles=singles,
                         ignore_case=icase, raw=self.s[start:self.i])

    def _code(self) -> str:
        """Read a `{ ... }` block and return the text between the braces."""
        start = self.i
        self._eat("{")
        body_start = self.i
        depth = 1
        while not self._eof():
            c = self._peek()
            if self._starts("'''") or self._starts('"""'):
                q = self.s[self.i:self.i + 3]
                j = self.i + 3
                while True:
                    j = self.s.find(q, j)
                    if j == -1:
                        raise self._err("unterminated triple-quoted string in code block", at=self.i)
                    if self.s[j - 1] != "\\":
                        break
                    j += 1
                self.i = j + 3
                continue
            if c in ("'", '"'):
                self._bump(1)
                while not self._eof() and self._peek() not in (c, "\n"):
                    if self._peek() == "\\":
                        self._bump(1)
                    self._bump(1)
                self._bump(1)
                continue
            if c == "#":
                while not self._eof() and self._peek() != "\n":
                    self._bump(1)
                continue
            if c == "{":
                depth += 1
            elif c == "}":
                depth -= 1
                if depth == 0:
                    body = self.s[body_start:self.i]
                    self._bump(1)
                    return body
            self._bump(1)
        raise self._err("unterminated code block", at=start)

    # --- recursive descent for expressions ---

    def parse_grammar(self) -> PegGrammar:
        rules: Dict[str, RuleDef] = {}
        start_name: Optional[str] = None
        while True:
            self._skip_ws()
            if self._eof():
                break
            head = self.i
            name = self._ident()
            self._skip_ws()
            display = self._literal().text if self._peek() in ("'", '"') else None
            if not self._try_eat("<-"):
                self._eat("=")
            expr = self._parse_expr()
            self._try_eat(";")
            if name in rules:
                raise self._err(f"duplicate rule '{name}'", at=head)
            rules[name] = RuleDef(name, expr, display)
            if start_name is None:
                start_name = name
        if not rules:
            raise self._err("empty PEG grammar")
        for r in rules.values():
            for ref in iter_refs(r.expr):
                if ref not in rules:
                    raise GrammarSyntaxError(f"PEG: rule '{ref}' is not defined (referenced from '{r.name}')")
        return PegGrammar(rules=rules, start=start_name, actions=self.actions)  # type: ignore[arg-type]

    def _parse_expr(self) -> Node:
        alts = [self._parse_alt()]
        while self._try_eat("/"):
            alts.append(self._parse_alt())
        if len(alts) == 1:
            return alts[0]
        return Choice(alts)

    def _parse_alt(self) -> Node:
        seq = self._parse_seq()
        self._skip_ws()
        if self._peek() != "{":
            return seq
        at = self.i
        code = self._code()
        items = seq.items if isinstance(seq, Seq) else [seq]
        labels: List[str] = []
        for it in items:
            if isinstance(it, Labeled):
                if it.label in labels:
                    raise self._err(f"label '{it.label}' is already defined", at=at)
                labels.append(it.label)
        act = Action(seq, code, tuple(labels), len(self.actions))
        self.actions.append(act)
        return act

    def _parse_seq(self) -> Node:
        items: List[Node] = []
        while True:
            self._skip_ws()
            # stop at ) / { } ; or rule delimiter (EoF or next IDENT "=")
            ch = self._peek()
            if ch is None or ch in ")/{};":
                break
            if self._at_rule_head():
                break
            items.append(self._parse_labeled())
        if not items:
            return Seq([])  # empty sequence (epsilon)
        if len(items) == 1:
            return items[0]
        return Seq(items)

    def _parse_labeled(self) -> Node:
        save = self.i
        name = self._ident_at()
        if name is not None:
            self._bump(len(name))
            self._skip_ws()
            if self._peek() == ":":
                self._bump(1)
                if name in RESERVED_LABELS or keyword.iskeyword(name):
                    raise self._err(f"label can't be a reserved name '{name}'", at=save)
                return Labeled(name, self._parse_prefix())
            self.i = save
        return self._parse_prefix()

    def _parse_prefix(self) -> Node:
        self._skip_ws()
        if self._try_eat("&"):
            return And(self._parse_suffix())
        if self._try_eat("!"):
            return Not(self._parse_suffix())
        if self._try_eat("$"):
            return Text(self._parse_suffix())
        return self._parse_suffix()

    def _parse_suffix(self) -> Node:
        node = self._parse_primary()
        self._skip_ws()
        if self._try_eat("?"):
            return Repeat(node, "?")
        if self._try_eat("*"):
            return Repeat(node, "*")
        if self._try_eat("+"):
            return Repeat(node, "+")
        return node

    def _parse_primary(self) -> Node:
        self._skip_ws()
        ch = self._peek()
        if ch == "(":
            self._bump(1)
            e = self._parse_expr()
            self._eat(")")
            return e
        if ch == ".":
            self._bump(1)
            return Any()
        if ch in ("'", '"'):
            return self._literal()
        if ch == "[":
            return self._class()
        if self._ident_at() is None:
            raise self._err(f"unexpected {ch!r}")
        # IDENT (reference)
        return Ref(self._ident())


def parse_peg_grammar(src: str) -> PegGrammar:
    """Parse PEG grammar source into a `PegGrammar`."""
    ts = _TS(src)
    return ts.parse_grammar()
