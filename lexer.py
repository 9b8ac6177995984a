from __future__ import annotations
from dataclasses import dataclass
from typing import Any, List, Optional


class CalcError(Exception):
    """Base class for session diagnostics."""

    def __init__(self, message: str, *, location: Optional["SourceLocation"] = None) -> None:
        super().__init__(message)
        self.message = message
        self.location = location


class CalcSyntaxError(CalcError):
    """Raised when scanning or parsing fails."""


@dataclass
class SourceLocation:
    file: str
    line: int
    column: int
    statement: str

    def prefix(self) -> str:
        return f"{self.file}:{self.line}: "


@dataclass
class Token:
    type: str
    value: str
    line: int
    column: int

    def __str__(self) -> str:
        if self.type in ("NEWLINE", "EOF"):
            return self.type
        return f"{self.type} {self.value}"


SYMBOLS = {
    "(": "LPAREN",
    ")": "RPAREN",
    ";": "SEMICOLON",
}

DIGITS = "0123456789"

# Longest first so "**" wins over "*".
OPERATORS = ("**", "==", "!=", "<=", ">=", "+", "-", "*", "/", "<", ">", ",", "?")


class Lexer:
    """Scans tokens on demand.

    Numbers are classified with the input base in effect at the moment the
    token is scanned, so a directive that changes the base changes how the
    rest of the input reads.
    """

    def __init__(self, config: Any, text: str, filename: str, first_line: int = 1) -> None:
        self.config = config
        self.text = text
        self.filename = filename
        self.index = 0
        self.line = first_line
        self.column = 1

    def tokenize(self) -> List[Token]:
        tokens: List[Token] = []
        while True:
            token = self.next_token()
            tokens.append(token)
            if token.type == "EOF":
                return tokens

    def next_token(self) -> Token:
        text = self.text
        n = len(text)
        _advance = self._advance

        while self.index < n:
            ch: str = text[self.index]
            if ch == " " or ch == "\t" or ch == "\r":
                _advance()
                continue
            if ch == "#":
                self._consume_comment()
                continue
            if ch == "\n":
                token = Token("NEWLINE", "\n", self.line, self.column)
                _advance()
                return token
            if ch in SYMBOLS:
                token = Token(SYMBOLS[ch], ch, self.line, self.column)
                _advance()
                return token
            if ch in ('"', "'"):
                return self._consume_string()
            if ch in DIGITS or (ch == "." and self._digit_at(1)):
                return self._consume_number()
            if ch.isalpha() or ch == "_":
                return self._consume_identifier()
            for op in OPERATORS:
                if text.startswith(op, self.index):
                    token = Token("OP", op, self.line, self.column)
                    for _ in op:
                        _advance()
                    return token
            if ch == "=":
                token = Token("ASSIGN", "=", self.line, self.column)
                _advance()
                return token
            location = self._here()
            _advance()
            raise CalcSyntaxError(f"unexpected character {ch!r}", location=location)
        return Token("EOF", "", self.line, self.column)

    def _consume_comment(self) -> None:
        text = self.text
        n = len(text)
        _advance = self._advance
        while self.index < n and text[self.index] != "\n":
            _advance()

    def _consume_number(self) -> Token:
        line, col = self.line, self.column
        chars: List[str] = []
        while not self._eof:
            ch = self._peek()
            if not (ch.isalnum() or ch in "._"):
                break
            chars.append(ch)
            self._advance()
            # A signed exponent belongs to the number only for decimal input.
            if ch in "eE" and self._decimal_input("".join(chars)):
                sign = "" if self._eof else self._peek()
                if sign in ("+", "-") and self._digit_at(1):
                    chars.append(sign)
                    self._advance()
        return Token("NUMBER", "".join(chars), line, col)

    def _consume_string(self) -> Token:
        line, col = self.line, self.column
        opening = self._peek()
        self._advance()  # consume opening quote
        chars: List[str] = [opening]
        while not self._eof:
            ch = self._peek()
            if ch == "\\":
                chars.append(ch)
                self._advance()
                if self._eof:
                    break
                chars.append(self._peek())
                self._advance()
                continue
            if ch == opening:
                chars.append(ch)
                self._advance()
                return Token("STRING", "".join(chars), line, col)
            if ch == "\n":
                break
            chars.append(ch)
            self._advance()
        raise CalcSyntaxError("unterminated string", location=self._location(line, col))

    def _consume_identifier(self) -> Token:
        line, col = self.line, self.column
        chars: List[str] = []
        while not self._eof:
            ch = self._peek()
            if not (ch.isalnum() or ch == "_"):
                break
            chars.append(ch)
            self._advance()
        value = "".join(chars)
        token_type = "NUMBER" if self._digits_in_base(value) else "IDENT"
        return Token(token_type, value, line, col)

    def _digits_in_base(self, word: str) -> bool:
        # In bases above ten, letters are digits, so a word may be a number.
        base = self.config.ibase
        if base <= 10:
            return False
        for ch in word:
            if not ch.isalnum() or not ch.isascii() or int(ch, 36) >= base:
                return False
        return True

    def _decimal_input(self, prefix: str) -> bool:
        if self.config.ibase not in (0, 10):
            return False
        return not prefix.lower().startswith(("0x", "0b"))

    def _here(self) -> SourceLocation:
        return self._location(self.line, self.column)

    def _location(self, line: int, column: int) -> SourceLocation:
        return SourceLocation(file=self.filename, line=line, column=column, statement="")

    @property
    def _eof(self) -> bool:
        return self.index >= len(self.text)

    def _peek(self) -> str:
        return self.text[self.index]

    def _peek_at(self, offset: int) -> str:
        i = self.index + offset
        return self.text[i] if i < len(self.text) else ""

    def _digit_at(self, offset: int) -> bool:
        ch = self._peek_at(offset)
        return ch != "" and ch in DIGITS

    def _advance(self) -> None:
        if self.text[self.index] == "\n":
            self.line += 1
            self.column = 1
        else:
            self.column += 1
        self.index += 1
