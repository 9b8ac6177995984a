"""Help text and lookup for the )help directive."""

from __future__ import annotations
from typing import Dict, List, Optional, TextIO, Tuple

from values import quote


HELP_TEXT = """\
basecalc evaluates numeric expressions one line at a time.
Expressions are evaluated right to left with no precedence, so
3*4+5 is 27. Parentheses group. Juxtaposed values form a vector.

Unary operators

Name            Meaning
-               negation
+               identity
,               ravel: make a vector of the operand
?               roll: random integer from origin to origin+n-1
iota            the integers from origin, n of them
rho             length of a vector, as a vector; empty for a scalar
abs             absolute value
floor           largest integer not greater than the operand
ceil            smallest integer not less than the operand
sqrt            square root, exact for perfect squares
not             1 if the operand is zero, else 0
float           convert to floating point

Binary operators

Name            Meaning
+               addition
-               subtraction
*               multiplication
/               division, exact for integers and rationals
**              exponentiation
,               catenation
==              1 if equal, else 0
!=              1 if not equal, else 0
<               1 if less, else 0
<=              1 if less or equal, else 0
>               1 if greater, else 0
>=              1 if greater or equal, else 0
div             integer division, rounding down
mod             remainder, with the sign of the divisor
min             smaller of the operands
max             larger of the operands
and             1 if both operands are non-zero, else 0
or              1 if either operand is non-zero, else 0

Number formats

Integers have unlimited size, bounded only by )maxbits.
Division of integers yields an exact rational such as 1/3.
A number with a decimal point or exponent is a float.
With )ibase 0, input is decimal but also accepts 0x1f, 0b101,
0o17 and C-style octal such as 017. With )ibase 16, words made
of hex digits, such as ff, are numbers.

Vectors

Values written next to each other form a vector: 1 2 3.
Arithmetic applies element by element; a scalar is combined with
every element. Vectors combined element by element must have the
same length. Use , to catenate and iota to generate.

Character data

Strings are written in single or double quotes with backslash
escapes: "hello\\n". Strings may be compared and catenated.

User-defined operators

op name x = body            defines unary operator name
op x name y = body          defines binary operator name
The body is one or more expressions separated by semicolons; the
value of the last is the result. Definitions may be recursive.
Use )op to list definitions and )op name to show one.

Special commands

)help                       print this overview
)help topic                 print the section for a topic
)help about word            print help lines mentioning word
)base [n]                   set ibase and obase; print them if no n
)ibase [n]                  set input base (0 or 2 to 36)
)obase [n]                  set output base (0 or 2 to 36)
)cpu                        print CPU time of the last evaluation
)debug [name [0|1]]         print, toggle or set debug flags
)demo                       run the demo
)format ["%.4f"]            print or set the output format
)get ["save.calc"]          read input from a file
)maxbits [n]                print or set the largest integer size in bits
)maxdigits [n]              print or set digits printed before using e notation
)op [name]                  list user-defined operators or show one
)origin [0|1]               print or set the index origin
)prec [n]                   print or set the float precision in bits
)prompt ["text"]            set the prompt
)save ["save.calc"]         write definitions, variables and settings
)seed [n]                   print or set the random seed
"""

HELP_LINES: List[str] = HELP_TEXT.splitlines()

END = "$$EOF$$"

# Topic aliases mapped to the section that starts the block and the one that ends it.
TOPICS: Dict[str, Tuple[str, str]] = {}
for _aliases, _block in (
    (("intro",), ("", "Unary operators")),
    (("unary",), ("Unary operators", "Binary operators")),
    (("binary",), ("Binary operators", "Number formats")),
    (("number", "numbers", "base", "bases"), ("Number formats", "Vectors")),
    (("vector", "vectors"), ("Vectors", "Character data")),
    (("char", "character", "string", "strings"), ("Character data", "User-defined operators")),
    (("op", "ops", "operator", "operators"), ("User-defined operators", "Special commands")),
    (("special", "directive", "directives"), ("Special commands", END)),
):
    for _alias in _aliases:
        TOPICS[_alias] = _block


def _index(title: str) -> int:
    if title == "":
        return 0
    if title == END:
        return len(HELP_LINES)
    return HELP_LINES.index(title)


def print_help_block(out: TextIO, start: str, end: str) -> None:
    for line in HELP_LINES[_index(start):_index(end)]:
        print(line, file=out)


def help_overview(out: TextIO) -> None:
    print("Overview:", file=out)
    print("\t)help intro", file=out)
    print("\t)help unary", file=out)
    print("\t)help binary", file=out)
    print("\t)help numbers", file=out)
    print("\t)help vectors", file=out)
    print("\t)help char", file=out)
    print("\t)help op", file=out)
    print("\t)help special", file=out)
    print("\t)help about <word>", file=out)
    print("\t)help <operator>", file=out)
    print("More at the start of each section of )help intro.", file=out)


def help_about(out: TextIO, word: str) -> None:
    word = word.lower()
    found = False
    for line in HELP_LINES:
        if word in line.lower():
            print(line, file=out)
            found = True
    if not found:
        print(f"no help about {quote(word)}", file=out)


def _operator_lines(name: str) -> List[str]:
    lines = []
    for line in HELP_LINES:
        fields = line.split()
        if fields and fields[0] in (name, ")" + name):
            lines.append(line)
    return lines


def show_topic(out: TextIO, topic: str) -> None:
    """Print the section for a topic, or the help lines for an operator or directive."""
    topic = topic.strip().lower()
    block: Optional[Tuple[str, str]] = TOPICS.get(topic)
    if block is not None:
        print_help_block(out, *block)
        return
    lines = _operator_lines(topic)
    if not lines:
        print(f"no help for {quote(topic)}", file=out)
        return
    for line in lines:
        print(line, file=out)
