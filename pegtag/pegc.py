# pegtag/pegc.py
"""pegc – pegtag CLI

사용 예)
    $ pegc check grammars/arith.peg -D
    $ pegc parse grammars/arith.peg --text "1+2*3"
    $ pegc parse grammars/arith.peg --input expr.txt --start-rule term

기능
----
- check : 문법 파일을 컴파일해 규칙/액션 수 요약 출력
- parse : 문법으로 입력을 파싱하고 결과 값(repr)을 출력

문법 파일의 `{ ... }` 액션 블록은 일반 Python 코드로 실행된다(내장 함수만 사용 가능).
디버그 모드(-D/--debug)를 켜면 규칙 목록과 DEBUG 로그를 출력합니다.
"""

from __future__ import annotations
import argparse
import logging
import sys
from pathlib import Path
from typing import Optional

from .errors import GrammarSyntaxError, InputSyntaxError, RuntimeBindingError
from .peg import PegCompiler, PegParser

# ------------------------------
# 헬퍼
# ------------------------------

def _eprint(*args, **kw) -> None:
    print(*args, file=sys.stderr, **kw)


def _load_text(path: str) -> str:
    """파일(또는 '-' 이면 stdin)을 읽고 줄바꿈을 '\\n'으로 통일."""
    if path == "-":
        text = sys.stdin.read()
    else:
        text = Path(path).read_text(encoding="utf-8")
    return text.replace("\r\n", "\n").replace("\r", "\n")


def _compile(path: str, debug: bool, start_rules: Optional[list] = None) -> PegParser:
    src = _load_text(path)
    parser = PegCompiler(allowed_start_rules=start_rules).compile(src)
    if debug:
        g = parser.grammar
        _eprint(f"[DEBUG] grammar ready | rules={len(g.rules)} actions={len(g.actions)} start={g.start}")
    return parser


def _print_rules(parser: PegParser) -> None:
    _eprint("\n[Rules]")
    for name, rule in parser.grammar.rules.items():
        _eprint(f"  {name}: {rule.expr!r}")

# ------------------------------
# 커맨드 구현
# ------------------------------

def cmd_check(args) -> int:
    try:
        parser = _compile(args.file, args.debug)
    except GrammarSyntaxError as e:
        _eprint("[SYNTAX ERROR]")
        _eprint(str(e))
        return 2
    except OSError as e:
        _eprint("[ERROR]", type(e).__name__, str(e))
        return 2

    if args.debug:
        _print_rules(parser)

    g = parser.grammar
    print(f"[CHECK OK] rules={len(g.rules)} actions={len(g.actions)} start={g.start}")
    return 0


def cmd_parse(args) -> int:
    """문법으로 입력 텍스트를 파싱해 결과 값을 표준출력으로 보여줍니다."""
    start_rules = [args.start_rule] if args.start_rule else None
    try:
        parser = _compile(args.file, args.debug, start_rules)
        if args.text is not None:
            text = args.text
        else:
            text = _load_text(args.input)
        result = parser.parse(text)
    except GrammarSyntaxError as e:
        _eprint("[SYNTAX ERROR]")
        _eprint(str(e))
        return 2
    except InputSyntaxError as e:
        _eprint("[PARSE ERROR]", str(e))
        return 2
    except (RuntimeBindingError, OSError) as e:
        _eprint("[ERROR]", type(e).__name__, str(e))
        return 2

    print(repr(result))
    return 0

# ------------------------------
# 엔트리포인트
# ------------------------------

def main(argv: Optional[list[str]] = None) -> int:
    ap = argparse.ArgumentParser(prog="pegc", description="pegtag PEG grammar CLI")
    sub = ap.add_subparsers(dest="cmd", required=True)

    p_check = sub.add_parser("check", help="문법을 컴파일해 오류 유무를 확인합니다")
    p_check.add_argument("file", help="PEG 문법 파일 ('-' 이면 stdin)")
    p_check.add_argument("-D", "--debug", action="store_true", help="디버그 정보를 상세 출력")
    p_check.set_defaults(func=cmd_check)

    p_parse = sub.add_parser("parse", help="문법으로 입력 텍스트를 파싱합니다")
    p_parse.add_argument("file", help="PEG 문법 파일")
    src_group = p_parse.add_mutually_exclusive_group(required=True)
    src_group.add_argument("--text", help="직접 입력 텍스트")
    src_group.add_argument("--input", help="입력 텍스트 파일 경로")
    p_parse.add_argument("--start-rule", help="시작 규칙(미지정시 첫 규칙)")
    p_parse.add_argument("-D", "--debug", action="store_true", help="디버그 정보를 상세 출력")
    p_parse.set_defaults(func=cmd_parse)

    args = ap.parse_args(argv)
    if args.debug:
        logging.basicConfig(level=logging.DEBUG, stream=sys.stderr)
    return int(args.func(args))

if __name__ == "__main__":
    sys.exit(main())
