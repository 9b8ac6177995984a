from __future__ import annotations
import json
import math
from dataclasses import dataclass, field
from fractions import Fraction
from typing import Any, Callable, Dict, Iterator, List, Optional, Tuple

import numpy as np

from config import Config
from lexer import SourceLocation
from parser import (
    AssignmentExpr,
    BinaryExpr,
    Expression,
    Literal,
    OpDefinition,
    UnaryExpr,
    Variable,
    VectorLiteral,
)
from values import CalcRuntimeError, Vector, normalize, type_name


@dataclass
class Assignment:
    """Result of an assignment; evaluated but never printed."""

    value: Any


@dataclass
class Environment:
    parent: Optional["Environment"] = None
    values: Dict[str, Any] = field(default_factory=dict)

    def _find_env(self, name: str) -> Optional["Environment"]:
        env: Optional[Environment] = self
        while env is not None:
            if name in env.values:
                return env
            env = env.parent
        return None

    def set(self, name: str, value: Any) -> None:
        self.values[name] = value

    def get(self, name: str) -> Any:
        env = self._find_env(name)
        if env is not None:
            return env.values[name]
        raise CalcRuntimeError(f"undefined variable {name}")

    def has(self, name: str) -> bool:
        return self._find_env(name) is not None


@dataclass
class StateEntry:
    step_index: int
    rule: str
    source_location: Optional[SourceLocation]
    detail: Optional[Dict[str, Any]]


class StateLogger:
    def __init__(self) -> None:
        self.entries: List[StateEntry] = []
        self.next_state_index = 0

    def record(
        self,
        *,
        rule: str,
        location: Optional[SourceLocation],
        detail: Optional[Dict[str, Any]] = None,
    ) -> StateEntry:
        entry = StateEntry(
            step_index=self.next_state_index,
            rule=rule,
            source_location=location,
            detail=detail,
        )
        self.entries.append(entry)
        self.next_state_index += 1
        return entry

    def to_json(self) -> str:
        steps: List[Dict[str, Any]] = []
        for entry in self.entries:
            step: Dict[str, Any] = {"step_index": entry.step_index, "rule": entry.rule}
            if entry.source_location:
                step["source_location"] = {
                    "file": entry.source_location.file,
                    "line": entry.source_location.line,
                    "statement": entry.source_location.statement,
                }
            if entry.detail:
                step["detail"] = entry.detail
            steps.append(step)
        return json.dumps({"steps": steps}, indent=2)


OperatorImpl = Callable[..., Any]


@dataclass
class BuiltinOperator:
    name: str
    arity: int
    impl: OperatorImpl
    elementwise: bool = True


def _as_object(value: Any) -> Any:
    # Wrap scalars so numpy hands Python objects, not fixed-width ints, to the ufunc.
    if isinstance(value, Vector):
        return value.data
    cell = np.empty((), dtype=object)
    cell[()] = value
    return cell


def _number(value: Any, rule: str) -> Any:
    if isinstance(value, (int, Fraction, float)) and not isinstance(value, bool):
        return value
    raise CalcRuntimeError(f"{rule}: expected number, got {type_name(value)}")


def _integer(value: Any, rule: str) -> int:
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    raise CalcRuntimeError(f"{rule}: expected integer, got {type_name(value)}")


def _bit_length(value: Any) -> int:
    if isinstance(value, int):
        return value.bit_length()
    if isinstance(value, Fraction):
        return max(value.numerator.bit_length(), value.denominator.bit_length())
    return 0


def _nonzero(value: Any) -> Any:
    if value == 0:
        raise CalcRuntimeError("division by zero")
    return value


class Builtins:
    def __init__(self) -> None:
        self.unary: Dict[str, BuiltinOperator] = {}
        self.binary: Dict[str, BuiltinOperator] = {}
        self._register_unary("-", lambda ctx, x: -_number(x, "-"))
        self._register_unary("+", lambda ctx, x: _number(x, "+"))
        self._register_unary(",", self._ravel, elementwise=False)
        self._register_unary("?", self._roll)
        self._register_unary("iota", self._iota, elementwise=False)
        self._register_unary("rho", self._rho, elementwise=False)
        self._register_unary("abs", lambda ctx, x: abs(_number(x, "abs")))
        self._register_unary("floor", lambda ctx, x: math.floor(_number(x, "floor")))
        self._register_unary("ceil", lambda ctx, x: math.ceil(_number(x, "ceil")))
        self._register_unary("sqrt", self._sqrt)
        self._register_unary("not", lambda ctx, x: int(_number(x, "not") == 0))
        self._register_unary("float", lambda ctx, x: float(_number(x, "float")))
        self._register_binary("+", lambda ctx, a, b: _number(a, "+") + _number(b, "+"))
        self._register_binary("-", lambda ctx, a, b: _number(a, "-") - _number(b, "-"))
        self._register_binary("*", lambda ctx, a, b: _number(a, "*") * _number(b, "*"))
        self._register_binary("/", self._divide)
        self._register_binary("**", self._power)
        self._register_binary(",", self._catenate, elementwise=False)
        self._register_binary("div", lambda ctx, a, b: _integer(a, "div") // _nonzero(_integer(b, "div")))
        self._register_binary("mod", lambda ctx, a, b: _number(a, "mod") % _nonzero(_number(b, "mod")))
        self._register_binary("min", lambda ctx, a, b: min(_number(a, "min"), _number(b, "min")))
        self._register_binary("max", lambda ctx, a, b: max(_number(a, "max"), _number(b, "max")))
        self._register_binary("and", lambda ctx, a, b: int(bool(_number(a, "and")) and bool(_number(b, "and"))))
        self._register_binary("or", lambda ctx, a, b: int(bool(_number(a, "or")) or bool(_number(b, "or"))))
        self._register_binary("==", lambda ctx, a, b: int(a == b))
        self._register_binary("!=", lambda ctx, a, b: int(a != b))
        self._register_binary("<", lambda ctx, a, b: int(self._ordered(a, b, "<") < 0))
        self._register_binary("<=", lambda ctx, a, b: int(self._ordered(a, b, "<=") <= 0))
        self._register_binary(">", lambda ctx, a, b: int(self._ordered(a, b, ">") > 0))
        self._register_binary(">=", lambda ctx, a, b: int(self._ordered(a, b, ">=") >= 0))

    def _register_unary(self, name: str, impl: OperatorImpl, *, elementwise: bool = True) -> None:
        self.unary[name] = BuiltinOperator(name=name, arity=1, impl=impl, elementwise=elementwise)

    def _register_binary(self, name: str, impl: OperatorImpl, *, elementwise: bool = True) -> None:
        self.binary[name] = BuiltinOperator(name=name, arity=2, impl=impl, elementwise=elementwise)

    def has(self, name: str, is_binary: bool) -> bool:
        return name in (self.binary if is_binary else self.unary)

    def invoke_unary(self, context: "Context", name: str, right: Any) -> Any:
        op = self.unary[name]
        if not op.elementwise:
            return self._checked(context, op.impl(context, right))
        if isinstance(right, Vector):
            fn = np.frompyfunc(lambda x: self._checked(context, op.impl(context, x)), 1, 1)
            return Vector(np.asarray(fn(right.data), dtype=object).reshape(-1))
        return self._checked(context, op.impl(context, right))

    def invoke_binary(self, context: "Context", name: str, left: Any, right: Any) -> Any:
        op = self.binary[name]
        if not op.elementwise:
            return op.impl(context, left, right)
        if isinstance(left, Vector) or isinstance(right, Vector):
            if isinstance(left, Vector) and isinstance(right, Vector) and len(left) != len(right):
                raise CalcRuntimeError(f"{name}: length mismatch {len(left)} != {len(right)}")
            fn = np.frompyfunc(lambda a, b: self._checked(context, op.impl(context, a, b)), 2, 1)
            result = fn(_as_object(left), _as_object(right))
            return Vector(np.asarray(result, dtype=object).reshape(-1))
        return self._checked(context, op.impl(context, left, right))

    def _checked(self, context: "Context", value: Any) -> Any:
        value = normalize(value)
        max_bits = context.config.max_bits
        if max_bits and _bit_length(value) > max_bits:
            raise CalcRuntimeError("result too large")
        if isinstance(value, complex):
            raise CalcRuntimeError("result is not a real number")
        return value

    def _ordered(self, a: Any, b: Any, rule: str) -> int:
        if isinstance(a, str) and isinstance(b, str):
            pass
        else:
            a, b = _number(a, rule), _number(b, rule)
        return (a > b) - (a < b)

    def _divide(self, ctx: "Context", a: Any, b: Any) -> Any:
        a, b = _number(a, "/"), _nonzero(_number(b, "/"))
        if isinstance(a, float) or isinstance(b, float):
            return a / b
        return Fraction(a) / Fraction(b)

    def _power(self, ctx: "Context", a: Any, b: Any) -> Any:
        a, b = _number(a, "**"), _number(b, "**")
        if isinstance(a, (int, Fraction)) and isinstance(b, int):
            max_bits = ctx.config.max_bits
            # Refuse before computing; the exact size is checked on the result.
            size = abs(a) if isinstance(a, int) else max(abs(a.numerator), a.denominator)
            if max_bits and size > 1 and math.log2(size) * abs(b) > max_bits + 1:
                raise CalcRuntimeError("result too large")
            if b < 0:
                return Fraction(1) / Fraction(_nonzero(a)) ** -b
        return a ** b

    def _catenate(self, ctx: "Context", a: Any, b: Any) -> Vector:
        left = a.items() if isinstance(a, Vector) else [a]
        right = b.items() if isinstance(b, Vector) else [b]
        return Vector.of(left + right)

    def _ravel(self, ctx: "Context", x: Any) -> Vector:
        return x if isinstance(x, Vector) else Vector.of([x])

    def _roll(self, ctx: "Context", x: Any) -> int:
        n = _integer(x, "?")
        if n <= 0 or n > np.iinfo(np.int64).max:
            raise CalcRuntimeError(f"?: illegal limit {n}")
        return ctx.config.origin + int(ctx.config.rng.integers(n))

    def _iota(self, ctx: "Context", x: Any) -> Vector:
        n = _integer(x, "iota")
        if n < 0:
            raise CalcRuntimeError(f"iota: negative count {n}")
        origin = ctx.config.origin
        return Vector.of(range(origin, origin + n))

    def _rho(self, ctx: "Context", x: Any) -> Vector:
        if isinstance(x, Vector):
            return Vector.of([len(x)])
        return Vector.of([])

    def _sqrt(self, ctx: "Context", x: Any) -> Any:
        x = _number(x, "sqrt")
        if x < 0:
            raise CalcRuntimeError("sqrt of negative number")
        if isinstance(x, int):
            root = math.isqrt(x)
            if root * root == x:
                return root
        return math.sqrt(x)


class Context:
    """Execution context shared by a session and every file it includes."""

    def __init__(self, config: Optional[Config] = None) -> None:
        self.config = config or Config()
        self.globals = Environment()
        self.builtins = Builtins()
        self.unary_fn: Dict[str, OpDefinition] = {}
        self.binary_fn: Dict[str, OpDefinition] = {}
        # Definition order, for saving.
        self.defs: List[Tuple[str, bool]] = []
        self.run_depth = 0
        self.logger = StateLogger()
        # Installed by the session.
        self.directives: Any = None

    def is_unary(self, name: str) -> bool:
        return name in self.unary_fn or self.builtins.has(name, False)

    def is_binary(self, name: str) -> bool:
        return name in self.binary_fn or self.builtins.has(name, True)

    def define(self, definition: OpDefinition) -> None:
        table = self.binary_fn if definition.is_binary else self.unary_fn
        key = (definition.name, definition.is_binary)
        if key not in self.defs:
            self.defs.append(key)
        table[definition.name] = definition

    def evaluate_line(self, exprs: List[Expression]) -> Iterator[Any]:
        """Evaluate a parsed line, yielding each result that should be printed."""
        for expr in exprs:
            try:
                value = self.evaluate(expr, self.globals)
            except RecursionError:
                raise CalcRuntimeError("recursion too deep", location=expr.location)
            self.logger.record(rule=type(expr).__name__, location=expr.location)
            if value is None or isinstance(value, Assignment):
                continue
            if self.config.debug("types"):
                print(type_name(value), file=self.config.output)
            yield value

    def evaluate(self, expr: Expression, env: Environment) -> Any:
        try:
            return self._evaluate(expr, env)
        except CalcRuntimeError as error:
            if error.location is None:
                error.location = expr.location
            raise
        except (ArithmeticError, ValueError) as exc:
            raise CalcRuntimeError(str(exc), location=expr.location)

    def _evaluate(self, expr: Expression, env: Environment) -> Any:
        if isinstance(expr, Literal):
            return expr.value
        if isinstance(expr, Variable):
            return env.get(expr.name)
        if isinstance(expr, VectorLiteral):
            items: List[Any] = []
            for item in expr.items:
                value = self._value(item, env)
                if isinstance(value, Vector):
                    items.extend(value.items())
                else:
                    items.append(value)
            return Vector.of(items)
        if isinstance(expr, AssignmentExpr):
            value = self._value(expr.expression, env)
            env.set(expr.name, value)
            return Assignment(value)
        if isinstance(expr, UnaryExpr):
            right = self._value(expr.right, env)
            definition = self.unary_fn.get(expr.op)
            if definition is not None:
                return self._call(definition, None, right)
            return self.builtins.invoke_unary(self, expr.op, right)
        if isinstance(expr, BinaryExpr):
            # Right to left: the right operand is evaluated first.
            right = self._value(expr.right, env)
            left = self._value(expr.left, env)
            definition = self.binary_fn.get(expr.op)
            if definition is not None:
                return self._call(definition, left, right)
            return self.builtins.invoke_binary(self, expr.op, left, right)
        if isinstance(expr, OpDefinition):
            self.define(expr)
            return None
        raise CalcRuntimeError(f"cannot evaluate {type(expr).__name__}")

    def _value(self, expr: Expression, env: Environment) -> Any:
        value = self.evaluate(expr, env)
        if isinstance(value, Assignment):
            return value.value
        if value is None:
            raise CalcRuntimeError("expression has no value", location=expr.location)
        return value

    def _call(self, definition: OpDefinition, left: Any, right: Any) -> Any:
        local = Environment(parent=self.globals)
        if definition.left is not None:
            local.set(definition.left, left)
        local.set(definition.right, right)
        result: Any = None
        for statement in definition.body:
            result = self.evaluate(statement, local)
        if isinstance(result, Assignment):
            return result.value
        return result
