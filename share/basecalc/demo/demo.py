"""A guided tour of basecalc, run by the )demo directive.

Each step shows an input line, waits for Enter, then evaluates it.
Type q and Enter to stop early.
"""

from __future__ import annotations
import sys

from session import Session

STEPS = [
    ("Expressions evaluate right to left, with no precedence.", "3*4+5"),
    ("Juxtaposed numbers make a vector; arithmetic applies element by element.", "1 2 3 * 10"),
    ("Integer division is exact.", "1/3 + 1/6"),
    ("Integers have no fixed size.", "2 ** 100"),
    ("iota counts from the index origin.", "iota 10"),
    ("Directives start with a closing parenthesis. Set the output base to 16:", ")obase 16"),
    ("Now results print in hex.", "255 256 4096"),
    ("Arguments to directives are always decimal.", ")obase 10"),
    ("Define your own operators.", "op sq x = x * x"),
    ("And use them.", "sq iota 5"),
    ("List them with )op.", ")op"),
    ("That's the tour. Try )help for more.", ")help"),
]


def main() -> int:
    session = Session()
    for note, line in STEPS:
        print(note)
        print(f"\t{line}", end="")
        reply = sys.stdin.readline()
        if reply.strip().lower() == "q":
            break
        session.execute(line + "\n", "<demo>")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
