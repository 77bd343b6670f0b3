from datetime import time
from pathlib import Path
from typing import Callable

from loguru import logger
from pydantic import SecretStr
from rich.markup import escape

from ctk.browser import FileBrowser
from ctk.catalog import SYSTEM_APPS
from ctk.prompts import History, Prompter
from ctk.schema import (
    DAYS_OF_WEEK,
    SCHEDULE_GRANULARITY_MINUTES,
    Allowance,
    AppTarget,
    BlockPolicy,
    BreakPolicy,
    LockMethod,
    NoBreak,
    Pomodoro,
    PolicySet,
    ScheduleKind,
    TimeWindow,
    check_schedule_times,
)
from ctk.serializer import save
from ctk.settings import settings
from ctk.summary import describe_entry, summary_table
from ctk.utils.time import format_time, is_on_granularity, parse_time

LOCK_OPTIONS = ["No Lock", "Random Text", "Time Range", "Restart", "Password"]
LOCK_METHODS = [
    LockMethod.NONE,
    LockMethod.RANDOM_TEXT,
    LockMethod.TIME_WINDOW,
    LockMethod.RESTART,
    LockMethod.PASSWORD,
]

BREAK_OPTIONS = ["No Breaks", "Allowance", "Pomodoro"]

MAX_RANDOM_TEXT_LENGTH = 999
MAX_BREAK_MINUTES = 99


def default_browser_factory(prompter: Prompter) -> FileBrowser:
    return FileBrowser(
        prompter,
        executable_extensions=settings.executable_extensions,
        workers=settings.search_workers,
    )


def on_schedule_granularity(value: time) -> None:
    if not is_on_granularity(value, SCHEDULE_GRANULARITY_MINUTES):
        raise ValueError(
            f"Minutes must be a multiple of {SCHEDULE_GRANULARITY_MINUTES} "
            f"(got {format_time(value)})"
        )


class PolicyBuilder:
    """Asks the questions that fill in one BlockPolicy."""

    def __init__(
        self,
        prompter: Prompter,
        browser_factory: Callable[[Prompter], FileBrowser] = default_browser_factory,
    ):
        self.prompter = prompter
        self.console = prompter.console
        self.browser_factory = browser_factory
        self.web_history = History()
        self.title_history = History()

    def build_policy(self) -> BlockPolicy:
        policy = BlockPolicy()

        self.choose_lock_method(policy)
        policy.break_policy = self.choose_break_policy()

        if self.prompter.confirm("Do you want to add websites to the blocklist?"):
            policy.web_rules = policy.web_rules + self.collect_list(
                "Add a new website [empty to finish]", history=self.web_history
            )

        if self.prompter.confirm("Do you want to add websites to the exceptions list?"):
            policy.web_exceptions = policy.web_exceptions + self.collect_list(
                "Add a new website exception [empty to finish]", history=self.web_history
            )

        if self.prompter.confirm("Do you want to add executables or folders to the block?"):
            self._merge_targets(policy, self.choose_app_targets())

        if self.prompter.confirm("Do you want to add Windows 10 applications?"):
            self._merge_targets(policy, self.choose_system_apps())

        if self.prompter.confirm("Do you want to block windows with certain titles?"):
            self._merge_targets(policy, self.collect_window_titles())

        self.build_schedule(policy)
        return policy

    def choose_lock_method(self, policy: BlockPolicy) -> LockMethod:
        """
        Activates one lock method and asks for its settings.

        Only the chosen method's fields are touched; settings of the other
        methods keep whatever value they had.
        """
        method = LOCK_METHODS[self.prompter.select("Choose a lock method", LOCK_OPTIONS)]

        if method is LockMethod.RANDOM_TEXT:
            policy.random_text_length = self.prompter.integer(
                "Enter a random string length", minimum=0, maximum=MAX_RANDOM_TEXT_LENGTH
            )
        elif method is LockMethod.TIME_WINDOW:
            start = self.prompter.text("Enter start time", parse=parse_time)
            end = self.prompter.text("Enter end time", parse=parse_time)
            lock_during_range = self.prompter.confirm(
                "Do you want to lock during that time range?"
            )
            policy.window = TimeWindow(
                lock_during_range=lock_during_range, start=start, end=end
            )
        elif method is LockMethod.RESTART:
            policy.restart_unblock = self.prompter.confirm(
                "Do you want the block to be unblocked after a restart?"
            )
        elif method is LockMethod.PASSWORD:
            policy.password = SecretStr(
                self.prompter.secret("Enter a password", allow_empty=False)
            )

        policy.lock_method = method
        logger.debug(f"Lock method set to {method.value}")
        return method

    def choose_break_policy(self) -> BreakPolicy:
        choice = self.prompter.select("Choose a break method", BREAK_OPTIONS)
        if choice == 1:
            return Allowance(
                minutes=self.prompter.integer(
                    "Enter allowance minutes", minimum=0, maximum=MAX_BREAK_MINUTES
                )
            )
        if choice == 2:
            block_minutes = self.prompter.integer(
                "Enter block minutes", minimum=0, maximum=MAX_BREAK_MINUTES
            )
            break_minutes = self.prompter.integer(
                "Enter break minutes", minimum=0, maximum=MAX_BREAK_MINUTES
            )
            return Pomodoro(block_minutes=block_minutes, break_minutes=break_minutes)
        return NoBreak()

    def collect_list(self, label: str, history: History | None = None) -> list[str]:
        """Keeps asking until an empty answer; returns the answers in order."""
        values = []
        while True:
            value = self.prompter.text(label, allow_empty=True, history=history)
            if not value:
                return values
            values.append(value)

    def choose_app_targets(self) -> list[AppTarget]:
        try:
            return self.browser_factory(self.prompter).browse()
        except OSError as e:
            logger.warning(f"Skipping executables and folders: {e}")
            self.console.print(
                f"[red]Cannot browse the filesystem:[/red] {escape(str(e))}. "
                "No executables or folders were added."
            )
            return []

    def choose_system_apps(self) -> list[AppTarget]:
        picked = self.prompter.multi_select("Choose your Windows 10 apps", SYSTEM_APPS)
        return [AppTarget.system_app(SYSTEM_APPS[i]) for i in picked]

    def collect_window_titles(self) -> list[AppTarget]:
        titles = self.collect_list(
            "Add a new window title [empty to finish]", history=self.title_history
        )
        return [AppTarget.window_title(title) for title in titles]

    def prompt_schedule_time(self, label: str) -> time:
        return self.prompter.text(label, parse=parse_time, validate=on_schedule_granularity)

    def build_schedule(self, policy: BlockPolicy) -> None:
        if not self.prompter.confirm("Do you want to add a schedule to this block?"):
            policy.schedule_kind = ScheduleKind.CONTINUOUS
            return

        policy.schedule_kind = ScheduleKind.SCHEDULED
        while self.prompter.confirm("Do you want to add new schedule entries?"):
            days = self.prompter.multi_select(
                "Choose the days of the week applied", DAYS_OF_WEEK, min_selected=1
            )
            start, end = self.prompter.retry(self._schedule_times)
            break_policy = self.choose_break_policy()

            for entry in policy.add_schedule_entries(days, start, end, break_policy):
                self.console.print(f"Created schedule entry {escape(describe_entry(entry))}")

        if policy.schedule_entries and self.prompter.confirm(
            "Do you want to remove any schedule entries?"
        ):
            doomed = self.prompter.multi_select(
                "Choose the schedule entries to remove",
                [describe_entry(entry) for entry in policy.schedule_entries],
            )
            removed = policy.remove_schedule_entries(doomed)
            self.console.print(f"Removed {removed} schedule entries")

        logger.debug(f"Schedule has {len(policy.schedule_entries)} entries")

    def _schedule_times(self) -> tuple[time, time]:
        start = self.prompt_schedule_time("Enter start time")
        end = self.prompt_schedule_time("Enter end time")
        check_schedule_times(start, end)
        return start, end

    @staticmethod
    def _merge_targets(policy: BlockPolicy, targets: list[AppTarget]) -> None:
        new = [t for t in targets if t not in policy.app_targets]
        policy.app_targets = policy.app_targets + new


def run_session(prompter: Prompter, builder: PolicyBuilder | None = None) -> PolicySet:
    """
    Builds blocks until the user stops, then shows a summary.

    EOFError from the prompter is not handled here: once input is closed the
    session cannot continue.
    """
    builder = builder or PolicyBuilder(prompter)
    policies = PolicySet()

    def unique_name(name: str) -> None:
        if name in policies:
            raise ValueError(f"Block {name} already exists")

    while True:
        name = prompter.text("Enter a new Cold Turkey block name", validate=unique_name)
        policies.add(name, builder.build_policy())
        logger.info(f"Block {name} added")
        prompter.console.print(f"[green]Block {escape(name)} added[/green]")
        if not prompter.confirm("Do you want to add new blocks?"):
            break

    prompter.console.print(summary_table(policies))
    return policies


def offer_save(
    prompter: Prompter,
    policies: PolicySet,
    directory: Path | None = None,
) -> Path | None:
    """Asks whether to save, writes the file and offers another name on failure."""
    console = prompter.console
    if not prompter.confirm(
        f"Do you want to save these settings in a {settings.file_extension} file?"
    ):
        return None

    while True:
        file_name = prompter.text(
            "Enter a new file name [empty for a random name]", allow_empty=True
        )
        try:
            path = save(policies, file_name or None, directory=directory)
        except OSError as e:
            logger.error(f"Could not save block list: {e}")
            console.print(f"[red]Could not save the block list:[/red] {escape(str(e))}")
            if not prompter.confirm("Do you want to try another file name?"):
                return None
            continue

        console.print(f"[green]Successfully saved to[/green] {escape(str(path))}")
        return path
