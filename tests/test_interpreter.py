from __future__ import annotations

import pytest


@pytest.mark.parametrize(
    "text, expected",
    [
        ("3*4+5", "27"),
        ("1 2 3 + 1", "2 3 4"),
        ("iota 5", "1 2 3 4 5"),
        ("1/3", "1/3"),
        ("6/3", "2"),
        ("2 ** -2", "1/4"),
        ("2 ** 100", "1267650600228229401496703205376"),
        ("(2 ** 64) * 1 2", "18446744073709551616 36893488147419103232"),
        ("1 2 3 == 1 5 3", "1 0 1"),
        ("10 div 3", "3"),
        ("10 mod 3", "1"),
        ("3 min 7", "3"),
        ("sqrt 16", "4"),
        ("sqrt 2", "1.4142135623730951"),
        ("rho 1 2 3", "3"),
        ("1 , 2 3", "1 2 3"),
        ("'abc'", "abc"),
        ("not 0 4", "1 0"),
        ("floor 7/2", "3"),
    ],
)
def test_evaluates(calc, text: str, expected: str) -> None:
    assert calc.run(text) == expected + "\n"
    assert calc.outcome.ok


def test_assignment_is_not_printed(calc) -> None:
    assert calc.run("x = 5") == ""
    assert calc.run("x * 2") == "10\n"


def test_statements_on_one_line(calc) -> None:
    assert calc.run("x = 2; x + 1; x") == "3\n2\n"


def test_unary_definition(calc) -> None:
    assert calc.run("op double x = x + x") == ""
    assert calc.run("double 21") == "42\n"
    assert calc.context.unary_fn["double"].text == "op double x = x + x"


def test_binary_definition(calc) -> None:
    calc.run("op a plus b = a + b")
    assert calc.run("2 plus 3") == "5\n"
    assert calc.context.defs == [("plus", True)]


def test_builtin_cannot_be_redefined(calc) -> None:
    calc.run("op iota x = x")
    assert "cannot redefine builtin operator iota" in calc.errors


def test_origin_zero_iota(calc) -> None:
    assert calc.run(")origin 0\niota 3") == "0 1 2\n"


def test_output_base(calc) -> None:
    assert calc.run(")obase 16\n255") == "ff\n"


def test_input_base(calc) -> None:
    assert calc.run(")ibase 16\nff + 1") == "256\n"


def test_format(calc) -> None:
    assert calc.run(')format "%.2f"\n1/3') == "0.33\n"


def test_roll_is_reproducible_from_seed(calc) -> None:
    first = calc.run(")seed 7\n? 100 100 100")
    second = calc.run(")seed 7\n? 100 100 100")
    assert first == second
    assert all(1 <= int(n) <= 100 for n in first.split())


@pytest.mark.parametrize(
    "text, message",
    [
        ("y", "<stdin>:1: undefined variable y"),
        ("1/0", "division by zero"),
        ("1 2 + 1 2 3", "length mismatch"),
        ("1 + 'a'", "expected number, got string"),
        ("1 +", "unexpected NEWLINE"),
    ],
)
def test_errors(calc, text: str, message: str) -> None:
    calc.run(text)
    assert message in calc.errors
    assert not calc.outcome.ok


def test_maxbits_limits_results(calc) -> None:
    calc.run(")maxbits 64")
    assert calc.run("2 ** 63") == "9223372036854775808\n"
    calc.run("2 ** 64")
    assert "result too large" in calc.errors
    calc.run("2 ** 1000")
    assert "result too large" in calc.errors


def test_error_abandons_only_its_line(calc) -> None:
    assert calc.run("1 +\n2\ny\n3") == "2\n3\n"
    assert calc.errors.count("\n") == 2


def test_debug_types_and_parse(calc) -> None:
    calc.run(")debug types 1")
    assert calc.run("1/2") == "rational\n1/2\n"
    calc.run(")debug types 0\n)debug parse 1")
    assert calc.run("1 + 2 * 3") == "(1 + (2 * 3))\n7\n"


def test_debug_tokens(calc) -> None:
    calc.run(")debug tokens 1")
    assert "NUMBER 1\n" in calc.run("1")


def test_state_log_records_steps(calc) -> None:
    calc.run("1 + 2\n)origin")
    rules = [entry.rule for entry in calc.context.logger.entries]
    assert rules == ["BinaryExpr", "directive"]
    assert '"rule": "directive"' in calc.context.logger.to_json()


def test_maxbits_limits_rational_results(calc) -> None:
    calc.run(")maxbits 64")
    calc.run("(1/3) ** 100000000")
    assert "result too large" in calc.errors
    calc.run("(1/3) ** -100000000")
    assert "result too large" in calc.errors
    calc.run("(1/3) ** 50")
    assert "result too large" in calc.errors
    assert calc.run("(1/3) ** 2") == "1/9\n"


def _broken_abs(ctx, x):
    raise KeyError("boom")


def test_unexpected_error_is_reported_as_internal(calc, monkeypatch) -> None:
    monkeypatch.setattr(calc.context.builtins.unary["abs"], "impl", _broken_abs)
    assert calc.run("abs 1\n2") == "2\n"
    assert "internal error: 'boom'" in calc.errors


def test_panic_flag_reraises_unexpected_errors(calc, monkeypatch) -> None:
    monkeypatch.setattr(calc.context.builtins.unary["abs"], "impl", _broken_abs)
    calc.run(")debug panic 1")
    with pytest.raises(KeyError):
        calc.run("abs 1")
