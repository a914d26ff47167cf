from __future__ import annotations

import pytest
from hypothesis import given
from hypothesis import strategies as st

from pegtag import (
    ActionContext,
    ActionSlot,
    GrammarSyntaxError,
    InputSyntaxError,
    InvalidActionError,
    Literal,
    RuntimeBindingError,
    SignatureParseError,
    assemble,
    introspect_parameters,
    peg_grammar,
    register_actions,
    render_action_block,
    split_template,
)


class RecordingCompiler:
    def __init__(self) -> None:
        self.calls: list = []

    def compile(self, grammar_text, context):
        self.calls.append((grammar_text, context))
        return "handle"


def test_split_template_implies_empty_segments() -> None:
    f, g = (lambda: 1), (lambda: 2)
    segments, actions = split_template([f, "a", Literal("b"), g, g])
    assert segments == ["", "ab", "", ""]
    assert actions == [f, g, g]


@given(st.lists(st.text(), min_size=1, max_size=6))
def test_assembled_text_interleaves_segments_and_blocks(segments: list) -> None:
    actions = [(lambda ctx, a: a) if i % 2 else (lambda: None) for i in range(len(segments) - 1)]
    entries, _ = register_actions(actions)

    expected = segments[0]
    for entry, seg in zip(entries, segments[1:]):
        expected += render_action_block(entry) + seg
    assert assemble(segments, entries) == expected


def test_assemble_requires_one_more_segment_than_actions() -> None:
    entries, _ = register_actions([lambda: 1])
    with pytest.raises(ValueError):
        assemble(["a", "b", "c"], entries)


def test_register_assigns_positional_names() -> None:
    f = lambda ctx, x: x  # noqa: E731
    entries, table = register_actions([f, lambda: 0])
    assert [e.synthetic_name for e in entries] == ["action0", "action1"]
    assert table["action0"] is f
    assert table["ActionContext"] is ActionContext
    assert entries[0].formal_parameters == ("ctx", "x")
    assert entries[0].context_parameter_name == "ctx"
    assert entries[1].context_parameter_name == ""


def test_block_without_parameters_omits_context() -> None:
    entries, _ = register_actions([lambda: 1])
    block = render_action_block(entries[0])
    assert block == "{ return action0() }"
    assert "ActionContext" not in block


def test_block_with_context_forwards_labels() -> None:
    entries, _ = register_actions([lambda ctx, a, b: None])
    block = render_action_block(entries[0])
    assert "ctx = ActionContext(text=text, location=location, options=options)" in block
    assert "return action0(ctx, a, b)" in block


def test_introspect_parameters() -> None:
    def action(context, left, right=None):
        return left

    assert introspect_parameters(action) == ("context", "left", "right")
    assert introspect_parameters(lambda: 0) == ()


@pytest.mark.parametrize(
    "action",
    [
        lambda *labels: labels,
        lambda ctx, **labels: labels,
        lambda ctx, *, value: value,
    ],
)
def test_unbindable_signature_is_rejected(action) -> None:
    with pytest.raises(SignatureParseError):
        introspect_parameters(action)


def test_non_callable_fails_before_compilation() -> None:
    compiler = RecordingCompiler()
    with pytest.raises(InvalidActionError) as e:
        peg_grammar("start = 'a' ", lambda: 1, " / 'b' ", 42, "\n", compiler=compiler)
    assert e.value.index == 1
    assert compiler.calls == []


def test_custom_compiler_receives_grammar_and_table() -> None:
    compiler = RecordingCompiler()
    act = lambda: 1  # noqa: E731
    assert peg_grammar("start = 'a' ", act, "\n", compiler=compiler) == "handle"
    [(text, table)] = compiler.calls
    assert text == "start = 'a' { return action0() }\n"
    assert table["action0"] is act


def test_compile_options_need_default_compiler() -> None:
    with pytest.raises(TypeError):
        peg_grammar("start = 'a'", compiler=RecordingCompiler(), cache=False)


def test_action_value_becomes_rule_value() -> None:
    parser = peg_grammar(
        "start = value:number ", lambda ctx, value: ("num", int(value)), "\n",
        "number = $[0-9]+\n",
    )
    assert parser.parse("42") == ("num", 42)


def test_action_without_parameters() -> None:
    parser = peg_grammar("start = 'a' ", lambda: "matched", "\n")
    assert parser.parse("a") == "matched"


def test_context_exposes_text_location_and_options() -> None:
    seen = {}

    def pair(ctx, a, b):
        seen["ctx"] = ctx
        return (a, b)

    parser = peg_grammar(
        "start = ws a:word ws b:word ", pair, "\n",
        "word = $[a-z]+\n",
        "ws = ' '*\n",
    )
    assert parser.parse(" hello world", {"mode": "strict"}) == ("hello", "world")

    ctx = seen["ctx"]
    assert ctx.text() == " hello world"
    loc = ctx.location()
    assert (loc.start.offset, loc.end.offset) == (0, 12)
    assert (loc.end.line, loc.end.column) == (1, 13)
    assert ctx.options["mode"] == "strict"
    with pytest.raises(TypeError):
        ctx.options["mode"] = "lax"


def test_nested_actions_compose() -> None:
    parser = peg_grammar(
        "list = head:item tail:(',' item:item ", lambda ctx, item: item, ")* ",
        lambda ctx, head, tail: [head] + tail, "\n",
        "item = digits:$[0-9]+ ", lambda ctx, digits: int(digits), "\n",
    )
    assert parser.parse("1,22,333") == [1, 22, 333]


def test_explicit_action_slot_skips_introspection() -> None:
    parser = peg_grammar(
        "start = a:'x' ", ActionSlot(lambda *args: args[1:], parameters=["ctx", "a"]), "\n",
    )
    assert parser.parse("x") == ("x",)


def test_label_mismatch_surfaces_at_parse_time() -> None:
    parser = peg_grammar("start = value:'x' ", lambda ctx, missing: missing, "\n")
    with pytest.raises(RuntimeBindingError) as e:
        parser.parse("x")
    assert "missing" in str(e.value)


@pytest.mark.parametrize(
    "action, name",
    [
        (lambda ctx, type: type, "type"),
        (lambda ctx, max: max, "max"),
        (lambda ctx, input: input, "input"),
        (lambda ctx, text: text, "text"),
        (lambda ctx, location: location, "location"),
        (lambda ctx, options: options, "options"),
        (lambda ctx, ActionContext: ActionContext, "ActionContext"),
    ],
)
def test_label_mismatch_shadowed_by_other_names(action, name: str) -> None:
    parser = peg_grammar("start = kind:'x' ", action, "\n")
    with pytest.raises(RuntimeBindingError) as e:
        parser.parse("x")
    assert e.value.name == name
    assert "kind" in str(e.value)


def test_context_parameter_may_use_reserved_name() -> None:
    parser = peg_grammar("start = v:'x' ", lambda text, v: (text.text(), v), "\n")
    assert parser.parse("x") == ("x", "x")


@pytest.mark.parametrize("params", [["", "a"], ["ctx", ""], ["ctx", "a b"]])
def test_explicit_parameters_must_be_identifiers(params: list) -> None:
    compiler = RecordingCompiler()
    with pytest.raises(SignatureParseError):
        peg_grammar("start = a:'x' ", ActionSlot(lambda *args: args, parameters=params), "\n",
                    compiler=compiler)
    assert compiler.calls == []


def test_name_error_inside_action_is_not_rewrapped() -> None:
    def broken(ctx):
        return undefined_helper()  # noqa: F821

    parser = peg_grammar("start = 'x' ", broken, "\n")
    with pytest.raises(NameError) as e:
        parser.parse("x")
    assert not isinstance(e.value, RuntimeBindingError)


def test_grammar_errors_come_from_compiler() -> None:
    with pytest.raises(GrammarSyntaxError):
        peg_grammar("start = 'a' ( ", lambda: 1, "\n")


def test_input_mismatch() -> None:
    parser = peg_grammar("start = 'a' ", lambda: 1, "\n")
    with pytest.raises(InputSyntaxError) as e:
        parser.parse("b")
    assert e.value.expected == ("'a'",)
    assert e.value.found == "b"


def test_parser_is_reusable() -> None:
    calls = []
    parser = peg_grammar("start = v:$[a-z]+ ", lambda ctx, v: calls.append(v) or v.upper(), "\n")
    assert parser.parse("abc") == "ABC"
    assert parser.parse("xyz") == "XYZ"
    assert calls == ["abc", "xyz"]
