from __future__ import annotations

import pytest

from config import Config
from lexer import CalcSyntaxError, Lexer


def _types(text: str, conf: Config | None = None) -> list:
    return [token.type for token in Lexer(conf or Config(), text, "<test>").tokenize()]


def test_basic_tokens() -> None:
    assert _types("x = 1 + (2) ; 'a'") == [
        "IDENT", "ASSIGN", "NUMBER", "OP", "LPAREN", "NUMBER", "RPAREN", "SEMICOLON", "STRING", "EOF",
    ]


def test_comment_runs_to_end_of_line() -> None:
    assert _types("1 # note\n2") == ["NUMBER", "NEWLINE", "NUMBER", "EOF"]


def test_longest_operator_wins() -> None:
    tokens = Lexer(Config(), "2**3<=4", "<test>").tokenize()
    assert [token.value for token in tokens if token.type == "OP"] == ["**", "<="]


def test_decimal_exponent_is_part_of_number() -> None:
    tokens = Lexer(Config(), "1e-3", "<test>").tokenize()
    assert tokens[0].type == "NUMBER"
    assert tokens[0].value == "1e-3"


def test_hex_words_are_numbers_in_base_16() -> None:
    conf = Config()
    conf.set_base(16, 0)
    tokens = Lexer(conf, "ff fg 1e-3", "<test>").tokenize()
    assert [(token.type, token.value) for token in tokens[:-1]] == [
        ("NUMBER", "ff"),
        ("IDENT", "fg"),
        ("NUMBER", "1e"),
        ("OP", "-"),
        ("NUMBER", "3"),
    ]


def test_tokens_use_base_in_effect_when_scanned() -> None:
    conf = Config()
    conf.set_base(16, 0)
    lexer = Lexer(conf, "ff ff", "<test>")
    assert lexer.next_token().type == "NUMBER"
    conf.set_base(0, 0)
    assert lexer.next_token().type == "IDENT"


def test_unterminated_string() -> None:
    with pytest.raises(CalcSyntaxError, match="unterminated string"):
        Lexer(Config(), "'abc\n", "<test>").tokenize()


def test_unexpected_character_reports_line() -> None:
    lexer = Lexer(Config(), "1\n@", "<test>")
    with pytest.raises(CalcSyntaxError) as info:
        lexer.tokenize()
    assert info.value.location.line == 2
    assert info.value.location.prefix() == "<test>:2: "


def test_token_str() -> None:
    tokens = Lexer(Config(), "abc\n", "<test>").tokenize()
    assert [str(token) for token in tokens] == ["IDENT abc", "NEWLINE", "EOF"]
