"""basecalc entry point and REPL wiring."""

from __future__ import annotations
import argparse
import sys
from typing import List, Optional

from config import Config
from lexer import CalcError
from session import Session


def run_repl(session: Session) -> int:
    conf = session.config
    while True:
        try:
            line = input(conf.prompt)
        except EOFError:
            print()
            break
        except KeyboardInterrupt:
            print()
            continue
        session.execute(line + "\n")
    return 0


def _configure(conf: Config, args: argparse.Namespace) -> None:
    if args.format is not None:
        conf.set_format(args.format)
    if args.maxbits is not None:
        conf.set_max_bits(args.maxbits)
    if args.maxdigits is not None:
        conf.set_max_digits(args.maxdigits)
    if args.origin is not None:
        conf.set_origin(args.origin)
    if args.prec is not None:
        conf.set_float_prec(args.prec)
    if args.prompt is not None:
        conf.set_prompt(args.prompt)
    for name in filter(None, (args.debug or "").split(",")):
        if not conf.set_debug(name.strip(), True):
            raise CalcError(f"no such debug flag: {name.strip()}")


def run_cli(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="basecalc: an interactive numeric calculator")
    parser.add_argument("files", nargs="*", help="Script files to run; standard input if none")
    parser.add_argument("-e", dest="expressions", action="store_true", help="Evaluate the arguments as input lines")
    parser.add_argument("--format", help="Output format, as for )format")
    parser.add_argument("--maxbits", type=int, help="Largest integer size in bits (0 for no limit)")
    parser.add_argument("--maxdigits", type=int, help="Digits printed before switching to e notation")
    parser.add_argument("--origin", type=int, help="Index origin, 0 or 1")
    parser.add_argument("--prec", type=int, help="Float precision in bits")
    parser.add_argument("--prompt", help="Interactive prompt")
    parser.add_argument("--debug", help="Comma-separated debug flags to enable")
    parser.add_argument("--state-log", dest="state_log", help="Write the JSON step log to this file on exit")
    args = parser.parse_args(argv)

    session = Session()
    try:
        _configure(session.config, args)
    except CalcError as error:
        print(error.message, file=sys.stderr)
        return 2

    status = 0
    if args.expressions:
        outcome = session.execute("\n".join(args.files) + "\n", "<args>")
        status = 0 if outcome.ok else 1
    elif args.files:
        for filename in args.files:
            try:
                outcome = session.run_file(filename)
            except OSError as exc:
                print(f"Failed to read {filename}: {exc}", file=sys.stderr)
                return 1
            if not outcome.ok:
                status = 1
    elif sys.stdin.isatty():
        status = run_repl(session)
    else:
        outcome = session.execute(sys.stdin.read())
        status = 0 if outcome.ok else 1

    if args.state_log:
        with open(args.state_log, "w", encoding="utf-8") as handle:
            handle.write(session.context.logger.to_json())
    return status


if __name__ == "__main__":
    raise SystemExit(run_cli())
