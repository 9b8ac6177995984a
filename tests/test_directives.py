from __future__ import annotations

import sys

import pytest

from config import CalcRangeError
from directives import next_decimal_number, next_decimal_number64, path_to
from lexer import Lexer
from parser import Parser


def _arguments(calc, text: str) -> Parser:
    return Parser(Lexer(calc.config, text, "<test>"), calc.context)


@pytest.mark.parametrize("base", [0, 1, 2, 10, 16, 36, 37, 100])
def test_base_accepts_only_valid_values(calc, base: int) -> None:
    calc.run(")base 8")
    calc.run(f")base {base}")
    if base == 0 or 2 <= base <= 36:
        assert calc.outcome.ok
        assert calc.config.base() == (base, base)
    else:
        assert f"<stdin>:2: illegal base {base}" in calc.errors
        assert calc.config.base() == (8, 8)


def test_base_query(calc) -> None:
    calc.run(")ibase 16\n)obase 10")
    assert calc.run(")base") == "ibase\t16\nobase\t10\n"


def test_ibase_and_obase_are_independent(calc) -> None:
    calc.run(")ibase 2")
    assert calc.config.base() == (2, 0)
    calc.run(")obase 8")
    assert calc.config.base() == (2, 8)


def test_arguments_are_decimal_whatever_the_input_base(calc) -> None:
    calc.run(")ibase 16")
    calc.run(")prec 10")
    assert calc.config.float_prec == 10
    calc.run(")base 16")
    assert calc.config.base() == (16, 16)


def test_arguments_accept_c_prefixes(calc) -> None:
    calc.run(")prec 0x10")
    assert calc.config.float_prec == 16
    calc.run(")prec 010")
    assert calc.config.float_prec == 8


def test_32_bit_reader(calc) -> None:
    assert next_decimal_number(_arguments(calc, "2147483647")) == 2147483647
    assert next_decimal_number(_arguments(calc, "0")) == 0
    with pytest.raises(CalcRangeError, match="value too large: 2147483648"):
        next_decimal_number(_arguments(calc, "2147483648"))
    with pytest.raises(CalcRangeError, match="value must be a positive integer: -5"):
        next_decimal_number(_arguments(calc, "-5"))
    with pytest.raises(CalcRangeError, match="value must be a positive integer: 1.5"):
        next_decimal_number(_arguments(calc, "1.5"))


def test_64_bit_reader(calc) -> None:
    assert next_decimal_number64(_arguments(calc, "9223372036854775807")) == (1 << 63) - 1
    with pytest.raises(CalcRangeError, match="value out of range: 9223372036854775808"):
        next_decimal_number64(_arguments(calc, "9223372036854775808"))


def test_reader_restores_base(calc) -> None:
    calc.config.set_base(16, 16)
    assert next_decimal_number(_arguments(calc, "10")) == 10
    assert calc.config.base() == (16, 16)


def test_reader_errors_through_directives(calc) -> None:
    calc.run(")maxbits 2147483648")
    assert "value too large: 2147483648" in calc.errors
    calc.run(")maxbits -1")
    assert "value must be a positive integer: -1" in calc.errors
    calc.run(")seed 9223372036854775808")
    assert "value out of range" in calc.errors
    assert calc.config.max_bits == 1_000_000_000
    assert calc.config.random_seed == 0


def test_debug_toggle_pair(calc) -> None:
    assert calc.run(")debug cpu") == "1\n"
    assert calc.config.debug("cpu")
    assert calc.run(")debug cpu") == "0\n"
    assert not calc.config.debug("cpu")


def test_debug_listing(calc) -> None:
    calc.run(")debug parse 1")
    assert calc.run(")debug") == "cpu\t0\npanic\t0\nparse\t1\ntokens\t0\ntypes\t0\n"


def test_unknown_debug_flag_does_not_abort(calc) -> None:
    assert calc.run(")debug bogus\n1") == "no such debug flag: bogus\n1\n"
    assert calc.outcome.ok
    assert "bogus" not in calc.config.debug_flags()


def test_op_listing_empty(calc) -> None:
    assert calc.run(")op") == ""


def test_op_listing_sorted_by_group(calc) -> None:
    calc.run("op sin x = x\nop a plus b = a + b\nop cos x = x\nop a and2 b = b")
    assert calc.run(")ops") == "\nUnary:\n\tcos\n\tsin\n\nBinary:\n\tand2\n\tplus\n"


def test_op_shows_definition(calc) -> None:
    calc.run("op sin x = x * 2")
    assert calc.run(")op sin") == "op sin x = x * 2\n"
    calc.run(")op cos")
    assert '"cos" not defined' in calc.errors


def test_not_recognized(calc) -> None:
    calc.run(")bogus")
    assert "<stdin>:1: )bogus: not recognized" in calc.errors


def test_trailing_tokens_are_a_syntax_error(calc) -> None:
    calc.run(")cpu 3")
    assert "unexpected NUMBER 3" in calc.errors
    calc.run(")origin 1 2")
    assert "unexpected NUMBER 2" in calc.errors


def test_origin_and_prec_ranges(calc) -> None:
    calc.run(")origin 2")
    assert "illegal origin 2" in calc.errors
    calc.run(")prec 0")
    assert "illegal prec 0" in calc.errors
    calc.run(")prec 1000001")
    assert "illegal prec 1000001" in calc.errors
    assert calc.run(")origin\n)prec") == "1\n256\n"


def test_format_query_is_quoted(calc) -> None:
    calc.run(')format "%.3f"')
    assert calc.run(")format") == '"%.3f"\n'


def test_prompt_query_prints_format(calc) -> None:
    # The no-argument form shows the format string, not the prompt.
    calc.run(')format "%d"\n)prompt "> "')
    assert calc.config.prompt == "> "
    assert calc.run(")prompt") == '"%d"\n'


def test_seed_query(calc) -> None:
    calc.run(")seed 12345678901234")
    assert calc.run(")seed") == "12345678901234\n"


def test_cpu_reports_last_evaluation(calc) -> None:
    calc.run("2 ** 10")
    assert " user, " in calc.run(")cpu")


def test_maxdigits_switches_to_e_notation(calc) -> None:
    calc.run(")maxdigits 5")
    assert calc.run("123456") == "1.2345e+5\n"
    assert calc.run("12345") == "12345\n"


def test_directive_error_restores_base(calc) -> None:
    calc.run(")ibase 16")
    calc.run(")origin 7")
    assert calc.config.base() == (16, 0)
    assert calc.run("a") == "10\n"


def test_help_overview(calc) -> None:
    output = calc.run(")help")
    assert output.startswith("\nOverview:\n")


def test_path_to_prefers_current_directory(tmp_path, monkeypatch) -> None:
    demo_dir = tmp_path / "root" / "share" / "basecalc" / "demo"
    demo_dir.mkdir(parents=True)
    (demo_dir / "demo.py").write_text("print('demo')\n")
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("BASECALC_PATH", str(tmp_path / "root"))
    assert path_to("demo.py") == str(demo_dir / "demo.py")
    (tmp_path / "demo.py").write_text("print('local')\n")
    assert path_to("demo.py") == "demo.py"
    assert path_to("missing.py") == "missing.py"


def test_demo_reports_missing_script(calc, tmp_path, monkeypatch) -> None:
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("BASECALC_PATH", raising=False)
    assert calc.run(")demo\n1") == "1\n"
    assert "<stdin>:1: demo:" in calc.errors
    assert not calc.outcome.ok


def test_demo_reports_failing_script(calc, tmp_path, monkeypatch) -> None:
    monkeypatch.chdir(tmp_path)
    (tmp_path / "demo.py").write_text("import sys\nsys.exit(3)\n")
    calc.run(")demo")
    assert "non-zero exit status 3" in calc.errors


def test_demo_reports_launch_failure(calc, tmp_path, monkeypatch) -> None:
    monkeypatch.chdir(tmp_path)
    (tmp_path / "demo.py").write_text("")
    monkeypatch.setattr(sys, "executable", str(tmp_path / "no-python"))
    assert calc.run(")demo\n2") == "2\n"
    assert "demo:" in calc.errors
