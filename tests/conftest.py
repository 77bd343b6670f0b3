import io

import pytest
from rich.console import Console

from ctk.prompts import Prompter


def scripted(*lines: str) -> io.StringIO:
    return io.StringIO("".join(f"{line}\n" for line in lines))


@pytest.fixture
def console():
    return Console(file=io.StringIO(), width=200, color_system=None)


@pytest.fixture
def make_prompter(console):
    """Builds a Prompter that answers from the given lines, then hits end of input."""

    def factory(*lines: str) -> Prompter:
        return Prompter(console=console, stream=scripted(*lines))

    return factory


@pytest.fixture
def output(console):
    def read() -> str:
        return console.file.getvalue()

    return read
