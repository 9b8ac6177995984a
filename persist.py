from __future__ import annotations
from fractions import Fraction
from typing import Any, List

from lexer import CalcError
from values import Vector, decimal_digits, quote, STR_DIGITS_LIMIT


class CalcIOError(CalcError):
    """Raised when a file cannot be opened, read or written."""


def save(context: Any, filename: str) -> None:
    """Write the session to filename as input lines that `)get` replays.

    Definitions are written under the input base they were typed in; variables
    are written in base 0 and the real bases are set again at the end.
    """
    lines = _encode(context)
    try:
        with open(filename, "w", encoding="utf-8") as handle:
            for line in lines:
                handle.write(line + "\n")
    except OSError as exc:
        raise CalcIOError(f"{filename}: {exc.strerror or exc}")
    context.logger.record(rule="save", location=None, detail={"file": filename, "lines": len(lines)})


def _encode(context: Any) -> List[str]:
    conf = context.config
    lines = [
        f")prec {conf.float_prec}",
        f")maxbits {conf.max_bits}",
        f")maxdigits {conf.max_digits}",
        f")origin {conf.origin}",
        f")prompt {quote(conf.prompt)}",
        f")format {quote(conf.format)}",
        f")seed {conf.random_seed}",
    ]
    for name, is_binary in context.defs:
        table = context.binary_fn if is_binary else context.unary_fn
        definition = table[name]
        lines.append(f")ibase {definition.ibase}")
        lines.append(definition.text)
    lines.append(")ibase 0")
    lines.append(")obase 0")
    for name, value in context.globals.values.items():
        lines.append(f"{name} = {_literal(value, nested=False)}")
    ibase, obase = conf.base()
    lines.append(f")ibase {ibase}")
    lines.append(f")obase {obase}")
    return lines


def _literal(value: Any, *, nested: bool) -> str:
    if isinstance(value, Vector):
        if len(value) == 0:
            return "iota 0"
        items = " ".join(_literal(item, nested=True) for item in value.items())
        if len(value) == 1:
            items = ", " + items
        return f"({items})" if nested else items
    if isinstance(value, str):
        return quote(value)
    if isinstance(value, int):
        text = _integer(value)
    elif isinstance(value, Fraction):
        text = f"{_integer(value.numerator)}/{_integer(value.denominator)}"
    else:
        text = repr(float(value))
    if nested and (text.startswith("-") or isinstance(value, Fraction)):
        return f"({text})"
    return text


def _integer(value: int) -> str:
    # Base 0 reads hex, which has no length limit on conversion.
    if decimal_digits(value) < STR_DIGITS_LIMIT:
        return str(value)
    return hex(value)
