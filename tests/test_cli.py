from __future__ import annotations

from pathlib import Path

import pytest

from pegtag.pegc import main

GRAMMAR = """\
sum = head:num tail:("+" n:num { return n })* { return head + sum(tail) }
num = d:$[0-9]+ { return int(d) }
"""


@pytest.fixture
def grammar_file(tmp_path: Path) -> Path:
    p = tmp_path / "sum.peg"
    p.write_text(GRAMMAR, encoding="utf-8")
    return p


def test_check_ok(grammar_file: Path, capsys) -> None:
    assert main(["check", str(grammar_file)]) == 0
    out = capsys.readouterr().out
    assert "[CHECK OK] rules=2 actions=3 start=sum" in out


def test_check_debug_lists_rules(grammar_file: Path, capsys) -> None:
    assert main(["check", str(grammar_file), "-D"]) == 0
    err = capsys.readouterr().err
    assert "[Rules]" in err
    assert "num:" in err


def test_check_reports_syntax_error(tmp_path: Path, capsys) -> None:
    bad = tmp_path / "bad.peg"
    bad.write_text("start = (", encoding="utf-8")
    assert main(["check", str(bad)]) == 2
    assert "[SYNTAX ERROR]" in capsys.readouterr().err


def test_parse_text(grammar_file: Path, capsys) -> None:
    assert main(["parse", str(grammar_file), "--text", "1+2+39"]) == 0
    assert capsys.readouterr().out.strip() == "42"


def test_parse_input_file_and_start_rule(grammar_file: Path, tmp_path: Path, capsys) -> None:
    inp = tmp_path / "in.txt"
    inp.write_text("7", encoding="utf-8")
    assert main(["parse", str(grammar_file), "--input", str(inp), "--start-rule", "num"]) == 0
    assert capsys.readouterr().out.strip() == "7"


def test_parse_error(grammar_file: Path, capsys) -> None:
    assert main(["parse", str(grammar_file), "--text", "1+"]) == 2
    assert "[PARSE ERROR]" in capsys.readouterr().err


def test_missing_grammar_file(tmp_path: Path, capsys) -> None:
    assert main(["check", str(tmp_path / "nope.peg")]) == 2
    assert "FileNotFoundError" in capsys.readouterr().err
