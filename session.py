from __future__ import annotations
import os
import time
from dataclasses import dataclass, field
from typing import List, Optional, TextIO, Tuple

from config import Config
from directives import DirectiveDispatcher
from interpreter import Context
from lexer import CalcError, Lexer, SourceLocation
from parser import Parser
from values import format_value


@dataclass
class Outcome:
    """What one call to Session.execute printed and reported."""

    values: List[str] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors


class Session:
    def __init__(
        self,
        config: Optional[Config] = None,
        *,
        output: Optional[TextIO] = None,
        err_output: Optional[TextIO] = None,
    ) -> None:
        self.config = config or Config(output=output, err_output=err_output)
        self.context = Context(self.config)
        self.context.directives = DirectiveDispatcher(self.context)
        self.line_count = 0

    def execute(self, text: str, filename: str = "<stdin>") -> Outcome:
        """Run text line by line; an error abandons only the line it occurs on."""
        outcome = Outcome()
        conf = self.config
        lexer = Lexer(conf, text, filename, first_line=self.line_count + 1)
        parser = Parser(lexer, self.context)
        more = True
        while more:
            started = self._clock()
            exprs: list = []
            try:
                exprs, more = parser.line()
                for value in self.context.evaluate_line(exprs):
                    printed = format_value(conf, value)
                    print(printed, file=conf.output)
                    outcome.values.append(printed)
            except CalcError as error:
                self._report(outcome, error.location or parser.location(), error.message)
                parser.flush_line()
            except Exception as exc:
                if conf.debug("panic"):
                    raise
                self._report(outcome, parser.location(), f"internal error: {exc}")
                parser.flush_line()
            if exprs:
                self._record_cpu(started)
                if conf.debug("cpu"):
                    print(conf.print_cpu_time(), file=conf.output)
        self.line_count += len(text.splitlines()) or 1
        return outcome

    def run_file(self, filename: str) -> Outcome:
        with open(filename, "r", encoding="utf-8") as handle:
            text = handle.read()
        saved = self.line_count
        self.line_count = 0
        try:
            return self.execute(text, filename)
        finally:
            self.line_count = saved

    def _report(self, outcome: Outcome, location: SourceLocation, message: str) -> None:
        diagnostic = f"{location.prefix()}{message}"
        print(diagnostic, file=self.config.err_output)
        outcome.errors.append(diagnostic)

    def _clock(self) -> Tuple[float, float, float]:
        times = os.times()
        return time.perf_counter(), times.user, times.system

    def _record_cpu(self, started: Tuple[float, float, float]) -> None:
        real, user, system = self._clock()
        self.config.set_cpu_time(real - started[0], user - started[1], system - started[2])
