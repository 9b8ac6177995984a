from __future__ import annotations
import json
import math
from dataclasses import dataclass
from fractions import Fraction
from typing import Any, Iterable, List, Union

import numpy as np
from numpy.typing import NDArray

from lexer import CalcError, CalcSyntaxError


class CalcRuntimeError(CalcError):
    """Raised for evaluation faults."""


@dataclass(frozen=True)
class Vector:
    data: NDArray[Any]

    @classmethod
    def of(cls, items: Iterable[Any]) -> "Vector":
        items = list(items)
        data = np.empty(len(items), dtype=object)
        for i, item in enumerate(items):
            data[i] = item
        return cls(data)

    def __len__(self) -> int:
        return len(self.data)

    def items(self) -> List[Any]:
        return list(self.data)


Number = Union[int, Fraction, float]

STR_DIGITS_LIMIT = 4000

_PREFIXES = {"0x": 16, "0b": 2, "0o": 8}


def parse_number(config: Any, text: str) -> Number:
    """Parse a numeric literal in the configured input base.

    Base 0 reads decimal but also accepts C-style 0x, 0b, 0o and leading-zero
    octal literals.
    """
    base = config.ibase
    cleaned = text.replace("_", "")
    try:
        if base == 0:
            return _parse_c_literal(cleaned)
        if base == 10:
            return _parse_decimal(cleaned)
        return int(cleaned, base)
    except ValueError:
        raise CalcSyntaxError(f"bad number syntax: {text}")


def _parse_c_literal(text: str) -> Number:
    lowered = text.lower()
    base = _PREFIXES.get(lowered[:2])
    if base is not None:
        return int(lowered[2:], base)
    if len(text) > 1 and text.startswith("0") and text.isdigit():
        return int(text, 8)
    return _parse_decimal(text)


def _parse_decimal(text: str) -> Number:
    if any(ch in text for ch in ".eE"):
        return float(text)
    return int(text, 10)


def parse_string(text: str) -> str:
    """Strip the quotes from a string token and interpret backslash escapes."""
    body = text[1:-1]
    try:
        return body.encode("latin-1", "backslashreplace").decode("unicode_escape")
    except UnicodeDecodeError as exc:
        raise CalcSyntaxError(f"bad string {text}: {exc.reason}")


def quote(text: str) -> str:
    return json.dumps(text, ensure_ascii=False)


def normalize(value: Any) -> Any:
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, np.integer):
        return int(value)
    if isinstance(value, np.floating):
        return float(value)
    if isinstance(value, Fraction) and value.denominator == 1:
        return value.numerator
    return value


def type_name(value: Any) -> str:
    if isinstance(value, Vector):
        return "vector"
    if isinstance(value, str):
        return "string"
    if isinstance(value, int):
        return "int"
    if isinstance(value, Fraction):
        return "rational"
    if isinstance(value, float):
        return "float"
    return type(value).__name__


def format_value(config: Any, value: Any) -> str:
    if isinstance(value, Vector):
        return " ".join(format_value(config, item) for item in value.data)
    if isinstance(value, str):
        return value
    if isinstance(value, int):
        return _format_int(config, value)
    if isinstance(value, Fraction):
        if config.format:
            return _apply_format(config.format, float(value))
        return f"{_format_int(config, value.numerator)}/{_format_int(config, value.denominator)}"
    if isinstance(value, float):
        return _format_float(config, value)
    raise CalcRuntimeError(f"cannot format {type_name(value)}")


def _format_int(config: Any, value: int) -> str:
    if config.format:
        return _apply_format(config.format, value)
    if config.obase not in (0, 10):
        return np.base_repr(value, config.obase).lower()
    if config.max_digits and decimal_digits(value) > config.max_digits:
        return _scientific(value, config.max_digits)
    return decimal_string(value)


def _format_float(config: Any, value: float) -> str:
    if config.format:
        return _apply_format(config.format, value)
    digits = max(1, int(config.float_prec * math.log10(2)))
    if digits >= 17:
        return repr(value)
    return format(value, f".{digits}g")


def _apply_format(fmt: str, value: Any) -> str:
    try:
        return fmt % value
    except (TypeError, ValueError, OverflowError) as exc:
        raise CalcRuntimeError(f"bad format {quote(fmt)}: {exc}")


def decimal_string(value: int) -> str:
    # str() refuses very long ints; base_repr does not.
    if decimal_digits(value) < STR_DIGITS_LIMIT:
        return str(value)
    return np.base_repr(value, 10)


def decimal_digits(value: int) -> int:
    n = abs(value)
    if n == 0:
        return 1
    digits = int(n.bit_length() * math.log10(2)) + 1
    if 10 ** (digits - 1) > n:
        digits -= 1
    return digits


def _scientific(value: int, max_digits: int) -> str:
    sign = "-" if value < 0 else ""
    n = abs(value)
    exponent = decimal_digits(n) - 1
    keep = max(1, min(max_digits, 16))
    lead = str(n // 10 ** max(exponent - keep + 1, 0)).rstrip("0") or "0"
    mantissa = lead[0] if len(lead) == 1 else f"{lead[0]}.{lead[1:]}"
    return f"{sign}{mantissa}e+{exponent}"
