"""Pytest configuration to make the project root importable.

The modules live at the repository root, so tests import them directly
(``import session``) whichever directory pytest is started from.
"""

import io
import os
import sys

import pytest

# Project root = parent directory of this tests/ folder
PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))

if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

from session import Session  # noqa: E402


class Calc:
    """A session with captured sinks; each run returns only its own output."""

    def __init__(self) -> None:
        self.out = io.StringIO()
        self.err = io.StringIO()
        self.session = Session(output=self.out, err_output=self.err)
        self.config = self.session.config
        self.context = self.session.context
        self.outcome = None

    def run(self, text: str) -> str:
        for sink in (self.out, self.err):
            sink.seek(0)
            sink.truncate()
        if not text.endswith("\n"):
            text += "\n"
        self.outcome = self.session.execute(text)
        return self.out.getvalue()

    @property
    def errors(self) -> str:
        return self.err.getvalue()


@pytest.fixture
def calc() -> Calc:
    return Calc()
