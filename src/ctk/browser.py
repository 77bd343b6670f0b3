import os
import shlex
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

from loguru import logger
from rich.console import Console
from rich.markup import escape

from ctk.fuzzy import rank
from ctk.prompts import Prompter
from ctk.schema import AppTarget

EXIT_COMMANDS = {"done", "quit", "q"}
MAX_SEARCH_RESULTS = 200

HELP_TEXT = """\
[bold]Commands[/bold]
  [cyan]cd[/cyan] [path]        change directory
  [cyan]ls[/cyan] [path]        pick executables and folders in a directory
  [cyan]search[/cyan] <keyword> fuzzy-search everything below the current directory
  [cyan]pwd[/cyan]              show the current directory
  [cyan]done[/cyan] | quit | q  finish adding executables and folders"""


@contextmanager
def preserve_cwd() -> Iterator[str]:
    """Snapshots the working directory and always restores it on exit."""
    original = os.getcwd()
    try:
        yield original
    finally:
        os.chdir(original)


def to_target(path: Path) -> AppTarget | None:
    """Classifies a path as a folder or file target; None if it is neither."""
    if path.is_dir():
        return AppTarget.folder(path.as_posix())
    if path.is_file():
        return AppTarget.file(path.as_posix())
    return None


class FileBrowser:
    """A tiny shell for picking executables and folders to block."""

    def __init__(
        self,
        prompter: Prompter,
        executable_extensions: list[str] | tuple[str, ...] = (".exe",),
        workers: int = 1,
        max_results: int = MAX_SEARCH_RESULTS,
    ):
        self.prompter = prompter
        self.console: Console = prompter.console
        self.extensions = {ext.lower() for ext in executable_extensions}
        self.workers = workers
        self.max_results = max_results
        self.targets: list[AppTarget] = []

    def browse(self) -> list[AppTarget]:
        """Runs the shell until `done` and returns the picked targets in order."""
        self.targets = []
        with preserve_cwd() as original:
            logger.debug(f"Browsing for executables, starting in {original}")
            self.console.print(HELP_TEXT)
            keep_going = True
            while keep_going:
                self.pwd([])
                line = self.prompter.text(">", allow_empty=True)
                keep_going = self.run_command(line)
        logger.debug(f"Browser picked {len(self.targets)} target(s)")
        return list(self.targets)

    def run_command(self, line: str) -> bool:
        """Executes one command line. Returns False when the shell should exit."""
        try:
            tokens = shlex.split(line)
        except ValueError as e:
            self.console.print(f"[red]Cannot parse the command:[/red] {escape(str(e))}")
            return True

        if not tokens:
            self.console.print("Enter a command (type [cyan]help[/cyan] for a list).")
            return True

        command, args = tokens[0], tokens[1:]
        if command in EXIT_COMMANDS:
            return False

        handlers = {
            "cd": self.cd,
            "ls": self.ls,
            "search": self.search,
            "pwd": self.pwd,
            "help": self.help,
        }
        handler = handlers.get(command)
        if handler is None:
            self.console.print(
                f"[red]Unknown command:[/red] {escape(command)} "
                "(type [cyan]help[/cyan] for a list)"
            )
            return True

        try:
            handler(args)
        except OSError as e:
            logger.warning(f"Browser command '{command}' failed: {e}")
            self.console.print(f"[red]Error:[/red] {escape(str(e))}")
        return True

    def cd(self, args: list[str]) -> None:
        if len(args) > 1:
            self.console.print("[red]Usage:[/red] cd [path]")
            return
        target = os.path.expanduser(args[0]) if args else "."
        os.chdir(target)

    def pwd(self, args: list[str]) -> None:
        self.console.print(f"[dim]{escape(Path.cwd().as_posix())}[/dim]")

    def help(self, args: list[str]) -> None:
        self.console.print(HELP_TEXT)

    def ls(self, args: list[str]) -> None:
        if len(args) > 1:
            self.console.print("[red]Usage:[/red] ls [path]")
            return
        directory = Path(os.path.expanduser(args[0])) if args else Path.cwd()
        directory = directory.absolute()

        entries = [directory] + sorted(directory.iterdir())
        candidates = [p for p in entries if self._is_candidate(p)]
        self._choose(
            [(p.as_posix(), p) for p in candidates],
            "Which executables or folders would you like to add?",
        )

    def search(self, args: list[str]) -> None:
        if not args:
            self.console.print("[red]Usage:[/red] search <keyword>")
            return
        keyword = " ".join(args)
        root = Path.cwd()

        with self.console.status("Finding possible matches ..."):
            paths = {p.relative_to(root).as_posix(): p for p in self._walk(root)}
        with self.console.status(f"Ranking {len(paths)} paths ..."):
            matches = rank(keyword, paths, workers=self.workers)
        logger.debug(f"search '{keyword}': {len(matches)} of {len(paths)} paths matched")

        if len(matches) > self.max_results:
            self.console.print(
                f"Showing the best {self.max_results} of {len(matches)} matches."
            )
            matches = matches[: self.max_results]
        self._choose(
            [(m.path, paths[m.path]) for m in matches],
            "Given the keyword, which executables or folders do you want to block?",
        )

    def _is_candidate(self, path: Path) -> bool:
        return path.is_dir() or path.suffix.lower() in self.extensions

    def _walk(self, root: Path) -> Iterator[Path]:
        """Yields the root and every candidate below it, in sorted order."""

        def report(error: OSError) -> None:
            self.console.print(f"[yellow]Skipping:[/yellow] {escape(str(error))}")

        yield root
        for dirpath, dirnames, filenames in os.walk(root, onerror=report):
            dirnames.sort()
            base = Path(dirpath)
            for name in dirnames:
                yield base / name
            for name in sorted(filenames):
                path = base / name
                if self._is_candidate(path):
                    yield path

    def _choose(self, options: list[tuple[str, Path]], label: str) -> None:
        if not options:
            self.console.print("[yellow]No executables or folders found.[/yellow]")
            return

        picked = self.prompter.multi_select(label, [shown for shown, _ in options])
        for index in picked:
            target = to_target(options[index][1])
            if target is None:
                self.console.print(f"[yellow]Skipping {escape(options[index][0])}[/yellow]")
                continue
            if target not in self.targets:
                self.targets.append(target)
                self.console.print(
                    f"Added {target.kind.name.lower()} [magenta]{escape(target.value)}[/magenta]"
                )
