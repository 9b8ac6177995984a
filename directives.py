"""The ')' directives: session commands that configure rather than evaluate."""

from __future__ import annotations
import os
import subprocess
import sys
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterator, Optional

import helpdocs
import persist
from config import BaseState, CalcRangeError, check_base
from lexer import CalcError, CalcSyntaxError, Lexer, SourceLocation
from parser import Parser
from persist import CalcIOError
from values import CalcRuntimeError, format_value, parse_number, parse_string, quote


MAX_RUN_DEPTH = 10
DEFAULT_FILE = "save.calc"

MAX_INT32 = (1 << 31) - 1
MAX_INT64 = (1 << 63) - 1


class CalcNotFoundError(CalcError):
    """Raised for an unknown directive or operator name."""


class CalcDepthError(CalcError):
    """Raised when included files nest too deeply."""


@dataclass
class DirectiveCall:
    name: str
    parser: Parser
    saved: BaseState
    location: SourceLocation


Handler = Callable[..., None]


@dataclass
class Directive:
    query: Optional[Handler] = None
    update: Optional[Handler] = None
    # What the update form reads: number, number64, string, name or raw.
    argument: str = "raw"


def next_decimal_number(parser: Parser) -> int:
    """Read a non-negative integer that fits in 32 bits, whatever the input base."""
    return _read_number(parser, MAX_INT32, "value too large")


def next_decimal_number64(parser: Parser) -> int:
    return _read_number(parser, MAX_INT64, "value out of range")


def _read_number(parser: Parser, limit: int, message: str) -> int:
    conf = parser.config
    with conf.base_override(0):
        token = parser.next()
        sign = ""
        if token.type == "OP" and token.value == "-":
            sign = "-"
            token = parser.next()
        location = parser.location()
        if token.type != "NUMBER":
            raise CalcSyntaxError(f"expected number, got {token}", location=location)
        text = sign + token.value
        try:
            value = parse_number(conf, token.value)
        except CalcError as error:
            error.location = location
            raise
        if sign:
            value = -value
        if not isinstance(value, int) or value < 0:
            raise CalcRangeError(f"value must be a positive integer: {text}", location=location)
        if value > limit:
            raise CalcRangeError(f"{message}: {text}", location=location)
        return value


@contextmanager
def _run_depth(context: Any) -> Iterator[int]:
    context.run_depth += 1
    try:
        yield context.run_depth
    finally:
        context.run_depth -= 1


def run_from_file(context: Any, filename: str, location: Optional[SourceLocation] = None) -> None:
    """Evaluate a file in the given context, printing each result.

    Session diagnostics raised while the file runs are reported here and end
    the file early; the caller carries on. Other exceptions propagate.
    """
    if context.run_depth >= MAX_RUN_DEPTH:
        raise CalcDepthError(f"get {quote(filename)} nested too deep", location=location)
    conf = context.config
    with _run_depth(context) as depth:
        context.logger.record(rule="include", location=location, detail={"file": filename, "depth": depth})
        try:
            with open(filename, "r", encoding="utf-8") as handle:
                text = handle.read()
        except OSError as exc:
            raise CalcIOError(f"{filename}: {exc.strerror or exc}", location=location)
        parser = Parser(Lexer(conf, text, filename), context)
        try:
            while True:
                exprs, more = parser.line()
                for value in context.evaluate_line(exprs):
                    print(format_value(conf, value), file=conf.output)
                if not more:
                    return
        except CalcError as error:
            where = error.location or parser.location()
            print(f"{where.prefix()}{error.message}", file=conf.err_output)


def path_to(file: str) -> str:
    """Find a helper file in the current directory or under BASECALC_PATH."""
    if os.path.isfile(file):
        return file
    for root in os.environ.get("BASECALC_PATH", "").split(os.pathsep):
        if not root:
            continue
        name = os.path.join(root, "share", "basecalc", "demo", file)
        if os.path.isfile(name):
            return name
    # Running it reports the missing file.
    return file


class DirectiveDispatcher:
    def __init__(self, context: Any) -> None:
        self.context = context
        self.config = context.config
        self.table: Dict[str, Directive] = {}
        self._register("help", query=self._help, update=self._help)
        for name in ("base", "ibase", "obase"):
            self._register(name, query=self._show_base, update=self._set_base, argument="number")
        self._register("cpu", query=self._cpu)
        self._register("debug", query=self._show_debug, update=self._set_debug)
        self._register("demo", query=self._demo)
        self._register("format", query=self._show_format, update=self._set_format, argument="string")
        self._register("get", query=self._get_default, update=self._get, argument="string")
        self._register("maxbits", query=self._show_max_bits, update=self._set_max_bits, argument="number")
        self._register("maxdigits", query=self._show_max_digits, update=self._set_max_digits, argument="number")
        for name in ("op", "ops"):
            self._register(name, query=self._list_ops, update=self._show_op, argument="name")
        self._register("origin", query=self._show_origin, update=self._set_origin, argument="number")
        self._register("prec", query=self._show_prec, update=self._set_prec, argument="number")
        self._register("prompt", query=self._show_prompt, update=self._set_prompt, argument="string")
        self._register("save", query=self._save_default, update=self._save, argument="string")
        self._register("seed", query=self._show_seed, update=self._set_seed, argument="number64")

    def _register(
        self,
        name: str,
        *,
        query: Optional[Handler] = None,
        update: Optional[Handler] = None,
        argument: str = "raw",
    ) -> None:
        self.table[name] = Directive(query=query, update=update, argument=argument)

    def dispatch(self, parser: Parser) -> None:
        """Run the directive at the head of the parser's current line.

        Arguments are read in base 0 whatever the session's input base. The
        base held in the call's saved state is restored on every exit, so a
        handler commits a new base by writing it there.
        """
        parser.need("RPAREN")
        conf = self.config
        with conf.base_override(0, 0) as saved:
            token = parser.need("IDENT", "NUMBER", "OP")
            location = parser.location()
            directive = self.table.get(token.value)
            if directive is None:
                raise CalcNotFoundError(f"){token.value}: not recognized", location=location)
            call = DirectiveCall(name=token.value, parser=parser, saved=saved, location=location)
            self.context.logger.record(rule="directive", location=location, detail={"name": token.value})
            try:
                self._invoke(directive, call)
            except CalcError as error:
                if error.location is None:
                    error.location = location
                raise
        parser.need_eol()

    def _invoke(self, directive: Directive, call: DirectiveCall) -> None:
        parser = call.parser
        if parser.at_eol() and directive.query is not None:
            directive.query(call)
            return
        if directive.update is None:
            token = parser.next()
            raise CalcSyntaxError(f"unexpected {token}", location=parser.location())
        if directive.argument == "raw":
            directive.update(call)
        else:
            directive.update(call, self._argument(parser, directive.argument))

    def _argument(self, parser: Parser, kind: str) -> Any:
        if kind == "number":
            return next_decimal_number(parser)
        if kind == "number64":
            return next_decimal_number64(parser)
        if kind == "string":
            return parse_string(parser.need("STRING").value)
        if kind == "name":
            return parser.need("OP", "IDENT", "NUMBER").value
        raise ValueError(f"unknown argument kind {kind}")

    def _print(self, *items: Any) -> None:
        print(*items, file=self.config.output)

    # help

    def _help(self, call: DirectiveCall) -> None:
        out = self.config.output
        parser = call.parser
        self._print("")
        if parser.at_eol():
            helpdocs.help_overview(out)
            return
        topic = parser.next().value.strip().lower()
        if topic == "help":
            helpdocs.help_overview(out)
        elif topic == "about":
            if parser.at_eol():
                helpdocs.help_overview(out)
                return
            helpdocs.help_about(out, parser.next().value)
        else:
            helpdocs.show_topic(out, topic)

    # base, ibase, obase

    def _show_base(self, call: DirectiveCall) -> None:
        self._print("ibase\t%d" % call.saved.ibase)
        self._print("obase\t%d" % call.saved.obase)

    def _set_base(self, call: DirectiveCall, base: int) -> None:
        check_base(base)
        if call.name in ("base", "ibase"):
            call.saved.ibase = base
        if call.name in ("base", "obase"):
            call.saved.obase = base

    def _cpu(self, call: DirectiveCall) -> None:
        self._print(self.config.print_cpu_time())

    # debug

    def _show_debug(self, call: DirectiveCall) -> None:
        for name, state in self.config.debug_flags().items():
            self._print("%s\t%d" % (name, state))

    def _set_debug(self, call: DirectiveCall) -> None:
        conf = self.config
        parser = call.parser
        name = parser.need("IDENT").value
        if parser.at_eol():
            if not conf.set_debug(name, not conf.debug(name)):
                self._print("no such debug flag:", name)
                return
            self._print(int(conf.debug(name)))
            return
        number = next_decimal_number(parser)
        if not conf.set_debug(name, number != 0):
            self._print("no such debug flag:", name)

    def _demo(self, call: DirectiveCall) -> None:
        command = [sys.executable, path_to("demo.py")]
        try:
            subprocess.run(command, check=True)
        except OSError as exc:
            raise CalcIOError(f"demo: {exc}")
        except subprocess.CalledProcessError as exc:
            raise CalcRuntimeError(f"demo: {exc}")

    def _show_format(self, call: DirectiveCall) -> None:
        self._print(quote(self.config.format))

    def _set_format(self, call: DirectiveCall, fmt: str) -> None:
        self.config.set_format(fmt)

    # get, save

    def _get_default(self, call: DirectiveCall) -> None:
        self._get(call, DEFAULT_FILE)

    def _get(self, call: DirectiveCall, filename: str) -> None:
        # The file runs under the real base and may change it, as a save file does.
        conf = self.config
        conf.set_base(call.saved.ibase, call.saved.obase)
        try:
            run_from_file(self.context, filename, call.location)
        finally:
            call.saved.ibase, call.saved.obase = conf.base()

    def _save_default(self, call: DirectiveCall) -> None:
        self._save(call, DEFAULT_FILE)

    def _save(self, call: DirectiveCall, filename: str) -> None:
        self.config.set_base(call.saved.ibase, call.saved.obase)
        persist.save(self.context, filename)

    def _show_max_bits(self, call: DirectiveCall) -> None:
        self._print(self.config.max_bits)

    def _set_max_bits(self, call: DirectiveCall, value: int) -> None:
        self.config.set_max_bits(value)

    def _show_max_digits(self, call: DirectiveCall) -> None:
        self._print(self.config.max_digits)

    def _set_max_digits(self, call: DirectiveCall, value: int) -> None:
        self.config.set_max_digits(value)

    # op, ops

    def _list_ops(self, call: DirectiveCall) -> None:
        unary = sorted(name for name, is_binary in self.context.defs if not is_binary)
        binary = sorted(name for name, is_binary in self.context.defs if is_binary)
        for title, names in (("Unary:", unary), ("Binary:", binary)):
            if not names:
                continue
            self._print("")
            self._print(title)
            for name in names:
                self._print("\t" + name)

    def _show_op(self, call: DirectiveCall, name: str) -> None:
        found = False
        for table in (self.context.unary_fn, self.context.binary_fn):
            definition = table.get(name)
            if definition is not None:
                self._print(definition.text)
                found = True
        if not found:
            raise CalcNotFoundError(f"{quote(name)} not defined", location=call.parser.location())

    def _show_origin(self, call: DirectiveCall) -> None:
        self._print(self.config.origin)

    def _set_origin(self, call: DirectiveCall, origin: int) -> None:
        self.config.set_origin(origin)

    def _show_prec(self, call: DirectiveCall) -> None:
        self._print(self.config.float_prec)

    def _set_prec(self, call: DirectiveCall, prec: int) -> None:
        self.config.set_float_prec(prec)

    def _show_prompt(self, call: DirectiveCall) -> None:
        # Prints the format, not the prompt; kept for compatibility.
        self._print(quote(self.config.format))

    def _set_prompt(self, call: DirectiveCall, prompt: str) -> None:
        self.config.set_prompt(prompt)

    def _show_seed(self, call: DirectiveCall) -> None:
        self._print(self.config.random_seed)

    def _set_seed(self, call: DirectiveCall, seed: int) -> None:
        self.config.set_random_seed(seed)
