from __future__ import annotations
from dataclasses import dataclass
from typing import Any, List, Optional, Tuple

from lexer import CalcSyntaxError, Lexer, SourceLocation, Token
from values import parse_number, parse_string, quote


@dataclass
class Node:
    location: SourceLocation


class Expression(Node):
    pass


@dataclass
class Literal(Expression):
    value: Any


@dataclass
class VectorLiteral(Expression):
    items: List[Expression]


@dataclass
class Variable(Expression):
    name: str


@dataclass
class UnaryExpr(Expression):
    op: str
    right: Expression


@dataclass
class BinaryExpr(Expression):
    left: Expression
    op: str
    right: Expression


@dataclass
class AssignmentExpr(Expression):
    name: str
    expression: Expression


@dataclass
class OpDefinition(Expression):
    name: str
    is_binary: bool
    left: Optional[str]
    right: str
    body: List[Expression]
    text: str
    ibase: int


UNARY_SYMBOLS = {"-", "+", ",", "?"}
BINARY_SYMBOLS = {"+", "-", "*", "/", "**", ",", "==", "!=", "<", "<=", ">", ">="}

EOL_TYPES = ("NEWLINE", "EOF")


def expr_string(expr: Expression) -> str:
    """Render an expression fully parenthesized, for the parse debug flag."""
    if isinstance(expr, Literal):
        return quote(expr.value) if isinstance(expr.value, str) else str(expr.value)
    if isinstance(expr, VectorLiteral):
        return "(" + " ".join(expr_string(item) for item in expr.items) + ")"
    if isinstance(expr, Variable):
        return expr.name
    if isinstance(expr, UnaryExpr):
        return f"({expr.op} {expr_string(expr.right)})"
    if isinstance(expr, BinaryExpr):
        return f"({expr_string(expr.left)} {expr.op} {expr_string(expr.right)})"
    if isinstance(expr, AssignmentExpr):
        return f"{expr.name} = {expr_string(expr.expression)}"
    if isinstance(expr, OpDefinition):
        return expr.text
    return repr(expr)


class Parser:
    """Reads one input line at a time from a lazily scanned token stream.

    A line whose first token is ')' is a directive and is handed to the
    context's directive dispatcher.
    """

    def __init__(self, lexer: Lexer, context: Any) -> None:
        self.lexer = lexer
        self.context = context
        self.config = context.config
        self.filename = lexer.filename
        self.source_lines = lexer.text.splitlines()
        self._first_line = lexer.line
        self._lookahead: Optional[Token] = None
        self._last: Optional[Token] = None
        self._mid_line = False
        self._defining: Optional[Tuple[str, bool]] = None

    def line(self) -> Tuple[List[Expression], bool]:
        """Parse one line; the flag is False once the input is exhausted."""
        token = self.peek()
        if token.type == "EOF":
            return [], False
        if token.type == "NEWLINE":
            self.next()
            return [], True
        if token.type == "RPAREN":
            self.context.directives.dispatch(self)
            return [], True
        if token.type == "IDENT" and token.value == "op":
            exprs: List[Expression] = [self._definition()]
        else:
            exprs = self._statement_list()
        self.need_eol()
        if self.config.debug("parse"):
            for expr in exprs:
                print(expr_string(expr), file=self.config.output)
        return exprs, True

    # Token stream

    def peek(self) -> Token:
        if self._lookahead is None:
            try:
                self._lookahead = self.lexer.next_token()
            except CalcSyntaxError:
                self._mid_line = True
                raise
            if self._lookahead.type not in EOL_TYPES:
                self._mid_line = True
        return self._lookahead

    def next(self) -> Token:
        token = self.peek()
        self._lookahead = None
        self._last = token
        if token.type == "NEWLINE":
            self._mid_line = False
        if self.config.debug("tokens"):
            print(token, file=self.config.output)
        return token

    def need(self, *want: str) -> Token:
        token = self.next()
        if token.type in want:
            return token
        expected = want[0] if len(want) == 1 else "one of " + ", ".join(want)
        raise CalcSyntaxError(f"expected {expected}, got {token}", location=self._location_from_token(token))

    def at_eol(self) -> bool:
        return self.peek().type in EOL_TYPES

    def need_eol(self) -> None:
        token = self.next()
        if token.type not in EOL_TYPES:
            raise CalcSyntaxError(f"unexpected {token}", location=self._location_from_token(token))

    def flush_line(self) -> None:
        """Discard what is left of a line abandoned after an error."""
        while self._mid_line:
            try:
                token = self.next()
            except CalcSyntaxError:
                continue
            if token.type == "EOF":
                return

    def location(self) -> SourceLocation:
        token = self._lookahead or self._last
        if token is None:
            return SourceLocation(file=self.filename, line=self.lexer.line, column=self.lexer.column, statement="")
        return self._location_from_token(token)

    # Grammar

    def _definition(self) -> OpDefinition:
        keyword = self.next()
        names: List[str] = []
        while self.peek().type in ("IDENT", "NUMBER"):
            names.append(self.next().value)
        self.need("ASSIGN")
        location = self._location_from_token(keyword)
        if len(names) == 2:
            left, (name, right), is_binary = None, names, False
        elif len(names) == 3:
            left, name, right = names
            is_binary = True
        else:
            raise CalcSyntaxError("operator definition needs a name and one or two arguments", location=location)
        if self.context.builtins.has(name, is_binary):
            raise CalcSyntaxError(f"cannot redefine builtin operator {name}", location=location)
        self._defining = (name, is_binary)
        try:
            body = self._statement_list()
        finally:
            self._defining = None
        return OpDefinition(
            location=location,
            name=name,
            is_binary=is_binary,
            left=left,
            right=right,
            body=body,
            text=self._source_text(keyword.line),
            ibase=self.config.ibase,
        )

    def _statement_list(self) -> List[Expression]:
        exprs: List[Expression] = [self._statement()]
        while self.peek().type == "SEMICOLON":
            self.next()
            if self.at_eol():
                break
            exprs.append(self._statement())
        return exprs

    def _statement(self) -> Expression:
        expr = self._expression()
        if self.peek().type != "ASSIGN":
            return expr
        equals = self.next()
        if not isinstance(expr, Variable):
            raise CalcSyntaxError(f"cannot assign to {expr_string(expr)}", location=self._location_from_token(equals))
        value = self._statement()
        return AssignmentExpr(location=expr.location, name=expr.name, expression=value)

    def _expression(self) -> Expression:
        left = self._operand()
        token = self.peek()
        name = self._binary_name(token)
        if name is None:
            return left
        self.next()
        right = self._expression()
        return BinaryExpr(location=self._location_from_token(token), left=left, op=name, right=right)

    def _operand(self) -> Expression:
        token = self.peek()
        name = self._unary_name(token)
        if name is not None:
            self.next()
            right = self._expression()
            return UnaryExpr(location=self._location_from_token(token), op=name, right=right)
        items: List[Expression] = [self._primary()]
        while self._starts_primary(self.peek()):
            items.append(self._primary())
        if len(items) == 1:
            return items[0]
        return VectorLiteral(location=items[0].location, items=items)

    def _primary(self) -> Expression:
        token = self.next()
        location = self._location_from_token(token)
        if token.type == "NUMBER":
            return Literal(location=location, value=parse_number(self.config, token.value))
        if token.type == "STRING":
            return Literal(location=location, value=parse_string(token.value))
        if token.type == "IDENT":
            return Variable(location=location, name=token.value)
        if token.type == "LPAREN":
            expr = self._expression()
            self.need("RPAREN")
            return expr
        raise CalcSyntaxError(f"unexpected {token}", location=location)

    def _starts_primary(self, token: Token) -> bool:
        if token.type in ("NUMBER", "STRING", "LPAREN"):
            return True
        return token.type == "IDENT" and not self._is_operator(token.value)

    def _unary_name(self, token: Token) -> Optional[str]:
        if token.type == "OP":
            return token.value if token.value in UNARY_SYMBOLS else None
        if token.type == "IDENT" and self._is_unary(token.value):
            return token.value
        return None

    def _binary_name(self, token: Token) -> Optional[str]:
        if token.type == "OP":
            return token.value if token.value in BINARY_SYMBOLS else None
        if token.type == "IDENT" and self._is_binary(token.value):
            return token.value
        return None

    def _is_unary(self, name: str) -> bool:
        return self._defining == (name, False) or self.context.is_unary(name)

    def _is_binary(self, name: str) -> bool:
        return self._defining == (name, True) or self.context.is_binary(name)

    def _is_operator(self, name: str) -> bool:
        return self._is_unary(name) or self._is_binary(name)

    def _source_text(self, line: int) -> str:
        index = line - self._first_line
        if 0 <= index < len(self.source_lines):
            return self.source_lines[index].strip()
        return ""

    def _location_from_token(self, token: Token) -> SourceLocation:
        return SourceLocation(
            file=self.filename,
            line=token.line,
            column=token.column,
            statement=self._source_text(token.line),
        )
