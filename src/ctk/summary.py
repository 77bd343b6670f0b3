from rich.table import Table

from ctk.schema import (
    Allowance,
    BlockPolicy,
    BreakPolicy,
    LockMethod,
    Pomodoro,
    PolicySet,
    ScheduleEntry,
    ScheduleKind,
)
from ctk.utils.time import format_time


def describe_break(break_policy: BreakPolicy) -> str:
    if isinstance(break_policy, Allowance):
        return f"Allowance {break_policy.minutes}m"
    if isinstance(break_policy, Pomodoro):
        return f"Pomodoro {break_policy.block_minutes}m / {break_policy.break_minutes}m"
    return "No Breaks"


def describe_lock(policy: BlockPolicy) -> str:
    method = policy.lock_method
    if method is LockMethod.RANDOM_TEXT:
        return f"Random Text ({policy.random_text_length} chars)"
    if method is LockMethod.TIME_WINDOW:
        window = policy.window
        mode = "lock" if window.lock_during_range else "unlock"
        return f"Time Range ({mode} {format_time(window.start)}-{format_time(window.end)})"
    if method is LockMethod.RESTART:
        after = "unblocked" if policy.restart_unblock else "blocked"
        return f"Restart ({after} after restart)"
    if method is LockMethod.PASSWORD:
        return "Password"
    return "No Lock"


def describe_entry(entry: ScheduleEntry) -> str:
    return f"#{entry.id} {entry.start} - {entry.end} ({describe_break(entry.break_policy)})"


def summary_table(policies: PolicySet, title: str = "Suggested Blocks") -> Table:
    """One row per block with its lock, break and what it blocks."""
    table = Table(title=title)
    table.add_column("Block", style="cyan", no_wrap=True)
    table.add_column("Lock", style="magenta")
    table.add_column("Break", style="blue")
    table.add_column("Websites", justify="right", style="green")
    table.add_column("Exceptions", justify="right", style="green")
    table.add_column("Apps", justify="right", style="yellow")
    table.add_column("Schedule", style="white")

    for name, policy in policies.items():
        if policy.schedule_kind is ScheduleKind.SCHEDULED:
            schedule = f"{len(policy.schedule_entries)} entries"
        else:
            schedule = "Continuous"
        table.add_row(
            name,
            describe_lock(policy),
            describe_break(policy.break_policy),
            str(len(policy.web_rules)),
            str(len(policy.web_exceptions)),
            str(len(policy.app_targets)),
            schedule,
        )
    return table
