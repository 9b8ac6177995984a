from __future__ import annotations
import sys
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Dict, Iterator, Optional, TextIO, Tuple

import numpy as np

from lexer import CalcError


DEBUG_FLAGS = ("cpu", "panic", "parse", "tokens", "types")

MAX_FLOAT_PREC = 1_000_000
MAX_SEED = (1 << 63) - 1


class CalcRangeError(CalcError):
    """Raised when a setting or numeric argument is out of range."""


def check_base(base: int) -> int:
    if base != 0 and (base < 2 or base > 36):
        raise CalcRangeError(f"illegal base {base}")
    return base


@dataclass
class BaseState:
    ibase: int
    obase: int


class Config:
    """Session-wide settings.

    Every setter validates its argument before assigning, so a rejected value
    leaves the configuration untouched.
    """

    def __init__(self, output: Optional[TextIO] = None, err_output: Optional[TextIO] = None) -> None:
        self.output: TextIO = output if output is not None else sys.stdout
        self.err_output: TextIO = err_output if err_output is not None else sys.stderr
        self.ibase = 0
        self.obase = 0
        self.origin = 1
        self.max_bits = 1_000_000_000
        self.max_digits = 10_000
        self.float_prec = 256
        self.format = ""
        self.prompt = ""
        self.random_seed = 0
        self.rng = np.random.default_rng(0)
        self._debug: Dict[str, bool] = {name: False for name in DEBUG_FLAGS}
        self.cpu_time: Tuple[float, float, float] = (0.0, 0.0, 0.0)

    def base(self) -> Tuple[int, int]:
        return self.ibase, self.obase

    def set_base(self, ibase: int, obase: int) -> None:
        check_base(ibase)
        check_base(obase)
        self.ibase = ibase
        self.obase = obase

    @contextmanager
    def base_override(self, ibase: int, obase: Optional[int] = None) -> Iterator[BaseState]:
        """Temporarily set the base; restore whatever the yielded state holds on exit."""
        saved = BaseState(self.ibase, self.obase)
        self.set_base(ibase, saved.obase if obase is None else obase)
        try:
            yield saved
        finally:
            self.set_base(saved.ibase, saved.obase)

    def set_origin(self, origin: int) -> None:
        if origin not in (0, 1):
            raise CalcRangeError(f"illegal origin {origin}")
        self.origin = origin

    def set_max_bits(self, max_bits: int) -> None:
        if max_bits < 0:
            raise CalcRangeError(f"illegal maxbits {max_bits}")
        self.max_bits = max_bits

    def set_max_digits(self, max_digits: int) -> None:
        if max_digits < 0:
            raise CalcRangeError(f"illegal maxdigits {max_digits}")
        self.max_digits = max_digits

    def set_float_prec(self, prec: int) -> None:
        if prec == 0 or prec > MAX_FLOAT_PREC:
            raise CalcRangeError(f"illegal prec {prec}")
        self.float_prec = prec

    def set_format(self, fmt: str) -> None:
        self.format = fmt

    def set_prompt(self, prompt: str) -> None:
        self.prompt = prompt

    def set_random_seed(self, seed: int) -> None:
        if seed < 0 or seed > MAX_SEED:
            raise CalcRangeError(f"illegal seed {seed}")
        self.random_seed = seed
        self.rng = np.random.default_rng(seed)

    def debug(self, name: str) -> bool:
        return self._debug.get(name, False)

    def set_debug(self, name: str, state: bool) -> bool:
        """Set a debug flag; report False for an unknown name instead of creating it."""
        if name not in self._debug:
            return False
        self._debug[name] = state
        return True

    def debug_flags(self) -> Dict[str, bool]:
        return dict(self._debug)

    def set_cpu_time(self, real: float, user: float, system: float) -> None:
        self.cpu_time = (real, user, system)

    def print_cpu_time(self) -> str:
        real, user, system = self.cpu_time
        return f"{_duration(real)} ({_duration(user)} user, {_duration(system)} sys)"


def _duration(seconds: float) -> str:
    if seconds >= 1:
        return f"{seconds:.3f}s"
    if seconds >= 1e-3:
        return f"{seconds * 1e3:.3f}ms"
    return f"{seconds * 1e6:.3f}us"
