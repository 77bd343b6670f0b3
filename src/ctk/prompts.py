import re
from collections import deque
from typing import Callable, Sequence, TextIO, TypeVar

from pydantic import ValidationError
from rich.console import Console
from rich.markup import escape

T = TypeVar("T")

YES_ANSWERS = {"y", "yes"}
NO_ANSWERS = {"n", "no"}

_RECALL = re.compile(r"^!(!|\d+)$")
_TOGGLE_SEPARATORS = re.compile(r"[\s,]+")


class History:
    """Accepted answers, most recent first, for `!!` / `!N` recall."""

    def __init__(self):
        self._entries: deque[str] = deque()

    def push(self, value: str) -> None:
        self._entries.appendleft(value)

    def read(self, pos: int) -> str | None:
        if 0 <= pos < len(self._entries):
            return self._entries[pos]
        return None

    def recall(self, token: str) -> str | None:
        """Resolves `!!` or `!N`, or returns None when `token` is not a recall."""
        match = _RECALL.match(token)
        if not match:
            return None
        pos = 0 if match.group(1) == "!" else int(match.group(1)) - 1
        value = self.read(pos)
        if value is None:
            raise ValueError(f"No history entry for {token} ({len(self)} entries)")
        return value

    def __len__(self) -> int:
        return len(self._entries)


def describe_error(error: Exception) -> str:
    if isinstance(error, ValidationError):
        return "; ".join(
            str(err["msg"]).removeprefix("Value error, ") for err in error.errors()
        )
    return str(error)


class Prompter:
    """
    Loop-until-valid terminal prompts.

    Every primitive returns only once it has a valid answer. Validation and
    read failures are reported and the question is asked again. End of input
    is the exception: EOFError propagates, since retrying a closed stream
    would spin forever.
    """

    def __init__(self, console: Console | None = None, stream: TextIO | None = None):
        self.console = console or Console()
        self.stream = stream

    def read_line(self, label: str, password: bool = False) -> str:
        self.console.print(f"[bold cyan]?[/bold cyan] [bold]{escape(label)}[/bold] ", end="")
        if self.stream is None:
            return self.console.input(password=password)

        line = self.stream.readline()
        if not line:
            raise EOFError(f"Input closed while waiting for: {label}")
        self.console.print()
        return line.rstrip("\r\n")

    def retry(self, attempt: Callable[[], T]) -> T:
        while True:
            try:
                return attempt()
            except (ValueError, OSError) as e:
                self.console.print(f"[red]Error:[/red] {escape(describe_error(e))}")

    def text(
        self,
        label: str,
        *,
        default: str | None = None,
        allow_empty: bool = False,
        parse: Callable[[str], T] | None = None,
        validate: Callable[[T], None] | None = None,
        history: History | None = None,
    ):
        """
        Asks for one line of text.

        Args:
            default: Used when the answer is empty.
            allow_empty: Accept an empty answer (returned as "") when there is no default.
            parse: Converts the raw answer; raise ValueError to reject it.
            validate: Checks the converted answer; raise ValueError to reject it.
            history: Accepted answers are recorded here and can be recalled with !! or !N.
        """
        shown = f"{label} [{default}]" if default is not None else label

        def attempt():
            raw = self.read_line(shown).strip()
            if history is not None:
                raw = history.recall(raw) or raw
            if not raw:
                if default is not None:
                    raw = default
                elif allow_empty:
                    return ""
                else:
                    raise ValueError("An answer is required")
            value = parse(raw) if parse else raw
            if validate:
                validate(value)
            if history is not None:
                history.push(raw)
            return value

        return self.retry(attempt)

    def integer(
        self,
        label: str,
        *,
        minimum: int,
        maximum: int,
        default: int | None = None,
    ) -> int:
        def to_int(raw: str) -> int:
            try:
                return int(raw)
            except ValueError:
                raise ValueError(f"'{raw}' is not a whole number") from None

        def in_bounds(value: int) -> None:
            if not minimum <= value <= maximum:
                raise ValueError(f"Value must be between {minimum} and {maximum}")

        return self.text(
            f"{label} ({minimum}-{maximum})",
            default=None if default is None else str(default),
            parse=to_int,
            validate=in_bounds,
        )

    def confirm(self, label: str, *, default: bool | None = None) -> bool:
        hint = {True: "[Y/n]", False: "[y/N]", None: "(y/n)"}[default]

        def attempt() -> bool:
            answer = self.read_line(f"{label} {hint}").strip().lower()
            if not answer and default is not None:
                return default
            if answer in YES_ANSWERS:
                return True
            if answer in NO_ANSWERS:
                return False
            raise ValueError("Please answer yes or no")

        return self.retry(attempt)

    def select(self, label: str, items: Sequence[str], *, default: int | None = None) -> int:
        """Numbered single choice. Returns the 0-based index of the chosen item."""
        self.console.print(f"[bold]{escape(label)}[/bold]")
        for number, item in enumerate(items, 1):
            self.console.print(f"  [cyan]{number:>2})[/cyan] {escape(item)}")

        def attempt() -> int:
            hint = f" [{default + 1}]" if default is not None else ""
            answer = self.read_line(f"Enter a number{hint}").strip()
            if not answer and default is not None:
                return default
            return self._item_number(answer, len(items))

        return self.retry(attempt)

    def multi_select(
        self,
        label: str,
        items: Sequence[str],
        *,
        min_selected: int = 0,
    ) -> list[int]:
        """
        Checkbox menu. Each answer toggles the listed item numbers ("2 4",
        "2,4", "all" or "none"); an empty answer confirms the selection.
        Returns the selected 0-based indices in ascending order.
        """
        selected: set[int] = set()

        def attempt() -> set[int] | None:
            answer = self.read_line("Toggle numbers, empty to confirm").strip().lower()
            if not answer:
                if len(selected) < min_selected:
                    raise ValueError(f"Select at least {min_selected} item(s)")
                return None
            if answer == "all":
                return set(range(len(items))) - selected
            if answer == "none":
                return set(selected)
            return {
                self._item_number(token, len(items))
                for token in _TOGGLE_SEPARATORS.split(answer)
                if token
            }

        while True:
            self._render_checklist(label, items, selected)
            toggles = self.retry(attempt)
            if toggles is None:
                return sorted(selected)
            selected ^= toggles

    def secret(self, label: str, *, allow_empty: bool = True) -> str:
        """Reads text without echoing it."""

        def attempt() -> str:
            value = self.read_line(label, password=True)
            if not value and not allow_empty:
                raise ValueError("An answer is required")
            return value

        return self.retry(attempt)

    def _render_checklist(self, label: str, items: Sequence[str], selected: set[int]) -> None:
        self.console.print(f"[bold]{escape(label)}[/bold]")
        for index, item in enumerate(items):
            marker = "[green]\\[x][/green]" if index in selected else "\\[ ]"
            self.console.print(f"  {marker} [cyan]{index + 1:>2})[/cyan] {escape(item)}")

    @staticmethod
    def _item_number(answer: str, count: int) -> int:
        if not answer.isdigit() or not 1 <= int(answer) <= count:
            raise ValueError(f"'{answer}' is not a number between 1 and {count}")
        return int(answer) - 1
