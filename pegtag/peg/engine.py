# pegtag/peg/engine.py
from __future__ import annotations
from typing import Any as AnyValue, Callable, Dict, List, Mapping, Optional, Sequence, Tuple

from ..context import location_of
from ..errors import InputSyntaxError, RuntimeBindingError
from .ast import (
    Literal, CharClass, Any, Ref, And, Not, Text, Labeled, Repeat, Seq, Choice,
    Action, PegGrammar, Node
)

# Packrat engine:
# - Memoize only rule applications (rule_name, pos) -> (ok, end_pos, value)
# - Left recursion is not supported (typical PEG restriction).
# - Every evaluation returns (ok, end, value); value is None on failure.

Result = Tuple[bool, int, AnyValue]

# (text, location, options, *labels) -> value
CompiledAction = Callable[..., AnyValue]


def _class_match(cc: CharClass, ch: str) -> bool:
    cands = (ch, ch.lower(), ch.upper()) if cc.ignore_case else (ch,)
    ok = False
    for c in cands:
        cp = ord(c) if len(c) == 1 else -1
        for (lo, hi) in cc.ranges:
            if lo <= cp <= hi:
                ok = True
                break
        if not ok and c in cc.singles:
            ok = True
        if ok:
            break
    return (not ok) if cc.negated else ok


def _line_bounds(src: str, pos: int) -> Tuple[int, int]:
    """[start, end) of the line containing pos."""
    start = src.rfind("\n", 0, pos)
    start = 0 if start < 0 else start + 1
    end = src.find("\n", pos)
    end = len(src) if end < 0 else end
    return start, end


def _caret_snippet(src: str, pos: int) -> str:
    start, end = _line_bounds(src, pos)
    line = src[start:end]
    caret = " " * (pos - start) + "^"
    return f"{line}\n{caret}"


def _join_expected(descs: Sequence[str]) -> str:
    if len(descs) == 1:
        return descs[0]
    if len(descs) == 2:
        return f"{descs[0]} or {descs[1]}"
    return ", ".join(descs[:-1]) + ", or " + descs[-1]


def _innermost_code(exc: BaseException):
    tb = exc.__traceback__
    if tb is None:
        return None
    while tb.tb_next is not None:
        tb = tb.tb_next
    return tb.tb_frame.f_code


class Packrat:
    def __init__(
        self,
        g: PegGrammar,
        actions: Sequence[CompiledAction] = (),
        options: Optional[Mapping[str, AnyValue]] = None,
        cache: bool = True,
    ):
        self.g = g
        self.actions = actions
        self.options = options if options is not None else {}
        self.cache = cache
        # memo: (rule_name, pos) -> (visited_flag:int, ok:bool, end:int, value)
        # visited_flag: 1=in progress, 2=done
        self.memo: Dict[Tuple[str, int], Tuple[int, bool, int, AnyValue]] = {}
        self.text = ""
        # farthest failure bookkeeping for error messages
        self.max_fail_pos = 0
        self.max_fail_expected: List[str] = []
        self._silent = 0

    # ---- Public entrypoint for one rule ----
    def parse(self, rule_name: str, text: str, pos: int = 0) -> Result:
        """Apply `rule_name` at `pos` without requiring the whole input to match."""
        self.memo.clear()
        self.text = text
        self.max_fail_pos = pos
        self.max_fail_expected = []
        return self._apply_rule(rule_name, pos)

    def parse_all(self, rule_name: str, text: str) -> AnyValue:
        """Match the entire input with `rule_name` and return its value."""
        ok, end, value = self.parse(rule_name, text, 0)
        if ok and end == len(text):
            return value
        if ok:
            self._fail(end, "end of input")
        raise self._syntax_error()

    # ---- Failure tracking ----
    def _fail(self, pos: int, desc: str) -> None:
        if self._silent:
            return
        if pos > self.max_fail_pos:
            self.max_fail_pos = pos
            self.max_fail_expected = []
        if pos == self.max_fail_pos and desc not in self.max_fail_expected:
            self.max_fail_expected.append(desc)

    def _syntax_error(self) -> InputSyntaxError:
        pos = self.max_fail_pos
        text = self.text
        found = text[pos] if pos < len(text) else None
        expected = sorted(self.max_fail_expected)
        exp = _join_expected(expected) if expected else "nothing"
        fnd = repr(found) if found is not None else "end of input"
        loc = location_of(text, pos, pos + (1 if found is not None else 0))
        msg = (f"Expected {exp} but {fnd} found "
               f"(line {loc.start.line}, column {loc.start.column})\n"
               f"{_caret_snippet(text, pos)}")
        return InputSyntaxError(msg, loc, expected, found)

    # ---- Rule application with memoization ----
    def _apply_rule(self, name: str, pos: int) -> Result:
        key = (name, pos)
        m = self.memo.get(key)
        if m is not None:
            flag, ok, end, value = m
            if flag == 1:
                # left recursion or re-entry -> fail (PEG disallows left recursion)
                return False, pos, None
            return ok, end, value

        # mark in-progress
        self.memo[key] = (1, False, pos, None)
        rule = self.g.require_rule(name)
        if rule.display is None:
            ok, end, value = self._eval(rule.expr, pos)
        else:
            ok, end, value = self._eval_silent(rule.expr, pos)
            if not ok:
                self._fail(pos, rule.display)
        if self.cache:
            self.memo[key] = (2, ok, end, value)
        else:
            del self.memo[key]
        return ok, end, value

    # ---- Action invocation ----
    def _run_action(self, node: Action, start: int, end: int, labels: List[AnyValue]) -> AnyValue:
        fn = self.actions[node.index]
        text = self.text

        def matched_text() -> str:
            return text[start:end]

        def matched_location():
            return location_of(text, start, end)

        try:
            return fn(matched_text, matched_location, self.options, *labels)
        except RuntimeBindingError:
            raise
        except NameError as e:
            # only names unresolved by the generated block itself; errors
            # raised deeper inside user code propagate untouched
            if _innermost_code(e) is not getattr(fn, "__code__", None):
                raise
            name = getattr(e, "name", None)
            raise RuntimeBindingError(
                f"action block #{node.index} references {name or 'a name'!r} which is neither "
                f"a label of its rule ({', '.join(node.labels) or 'no labels'}) nor a context name: {e}",
                name,
            ) from e

    # ---- Evaluator for expressions ----
    def _eval_silent(self, node: Node, pos: int) -> Result:
        """Evaluate without recording failures (lookaheads, display-named rules)."""
        self._silent += 1
        try:
            return self._eval(node, pos)
        finally:
            self._silent -= 1

    def _eval(self, node: Node, pos: int) -> Result:
        text = self.text
        if isinstance(node, Literal):
            n = len(node.text)
            chunk = text[pos:pos + n]
            if node.ignore_case:
                if chunk.lower() == node.text.lower():
                    return True, pos + n, chunk
                self._fail(pos, repr(node.text) + "i")
            else:
                if chunk == node.text:
                    return True, pos + n, chunk
                self._fail(pos, repr(node.text))
            return False, pos, None

        if isinstance(node, Any):
            if pos < len(text):
                # Python string index is already char-based
                return True, pos + 1, text[pos]
            self._fail(pos, "any character")
            return False, pos, None

        if isinstance(node, CharClass):
            if pos < len(text):
                c = text[pos]
                if _class_match(node, c):
                    return True, pos + 1, c
            self._fail(pos, node.raw or "character class")
            return False, pos, None

        if isinstance(node, Ref):
            return self._apply_rule(node.name, pos)

        if isinstance(node, Labeled):
            return self._eval(node.node, pos)

        if isinstance(node, Text):
            ok, end, _ = self._eval(node.node, pos)
            if ok:
                return True, end, text[pos:end]
            return False, pos, None

        if isinstance(node, And):
            ok, _, _ = self._eval_silent(node.node, pos)
            return ok, pos, None

        if isinstance(node, Not):
            ok, _, _ = self._eval_silent(node.node, pos)
            return (not ok), pos, None

        if isinstance(node, Repeat):
            if node.kind == "?":
                ok, end, value = self._eval(node.node, pos)
                return (True, end, value) if ok else (True, pos, None)
            elif node.kind in ("*", "+"):
                cur = pos
                values: List[AnyValue] = []
                while True:
                    ok, end, value = self._eval(node.node, cur)
                    if not ok:
                        break
                    values.append(value)
                    if end == cur:
                        break
                    cur = end
                if node.kind == "+" and not values:
                    return False, pos, None
                return True, cur, values
            else:
                raise AssertionError(f"unknown repeat kind {node.kind!r}")

        if isinstance(node, Seq):
            cur = pos
            values = []
            for it in node.items:
                ok, end, value = self._eval(it, cur)
                if not ok:
                    return False, pos, None
                values.append(value)
                cur = end
            return True, cur, values

        if isinstance(node, Choice):
            for it in node.alts:
                ok, end, value = self._eval(it, pos)
                if ok:
                    return True, end, value
            return False, pos, None

        if isinstance(node, Action):
            items = node.node.items if isinstance(node.node, Seq) else [node.node]
            cur = pos
            labels: List[AnyValue] = []
            for it in items:
                ok, end, value = self._eval(it, cur)
                if not ok:
                    return False, pos, None
                if isinstance(it, Labeled):
                    labels.append(value)
                cur = end
            return True, cur, self._run_action(node, pos, cur, labels)

        raise AssertionError(f"unknown node: {node!r}")
