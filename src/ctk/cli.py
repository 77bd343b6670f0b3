from pathlib import Path

import typer
from loguru import logger
from rich.console import Console
from rich.table import Table

from ctk.blocker import BlockerError, ColdTurkey, minutes_until, read_settings_export
from ctk.builder import offer_save, run_session
from ctk.prompts import Prompter
from ctk.serializer import load
from ctk.settings import settings
from ctk.summary import describe_break, describe_entry, summary_table
from ctk.utils import banner
from ctk.utils.logging import setup_logging
from ctk.utils.time import parse_date, parse_time

app = typer.Typer(help="ctk - A better CLI interface for Cold Turkey")
console = Console()


def get_blocker() -> ColdTurkey:
    return ColdTurkey(settings.blocker_path)


@app.command()
def suggest(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    """Interactively suggest what blocks you want Cold Turkey to have."""
    setup_logging(verbose=verbose)
    banner.display(console, subtitle="Let's build some Cold Turkey blocks.")

    prompter = Prompter(console)
    try:
        policies = run_session(prompter)
        offer_save(prompter, policies)
    except EOFError:
        logger.warning("Input closed before the suggestion session finished")
        console.print("\n[red]Input closed:[/red] nothing was saved.")
        raise typer.Exit(1) from None
    except KeyboardInterrupt:
        console.print("\n[yellow]Suggestion session cancelled.[/yellow]")
        raise typer.Exit(130) from None


@app.command()
def show(
    file: Path = typer.Argument(..., help="A saved block list (.ctbbl) file"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    """Show the blocks stored in a block list file."""
    setup_logging(verbose=verbose)
    try:
        policies = load(file)
    except (OSError, ValueError) as e:
        console.print(f"[red]Error:[/red] Could not read {file}: {e}")
        raise typer.Exit(1) from None

    console.print(summary_table(policies, title=str(file)))
    for name, policy in policies.items():
        if not policy.schedule_entries:
            continue
        table = Table(title=f"Schedule: {name}")
        table.add_column("Entry", style="cyan")
        table.add_column("Break", style="blue")
        for entry in policy.schedule_entries:
            table.add_row(describe_entry(entry), describe_break(entry.break_policy))
        console.print(table)


@app.command()
def start(
    block_name: str = typer.Argument(..., help="The name of the Cold Turkey block"),
    minutes: int | None = typer.Option(
        None, "--minutes", "-m", min=1, help="Lock the block for this many minutes"
    ),
    until: str | None = typer.Option(
        None, "--until", "-u", help="Lock the block until this time (e.g. 17:30, 5:30pm)"
    ),
    end_date: str | None = typer.Option(
        None, "--date", "-d", help="Date for --until (e.g. 2024-03-05, 5 March 2024)"
    ),
    password: bool = typer.Option(
        False, "--password", "-p", help="Lock the block with its password"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    """Start a block."""
    setup_logging(verbose=verbose)

    if minutes is not None and until is not None:
        console.print("[red]Error:[/red] Use either --minutes or --until, not both.")
        raise typer.Exit(1)
    if end_date is not None and until is None:
        console.print("[red]Error:[/red] --date only makes sense with --until.")
        raise typer.Exit(1)

    try:
        if until is not None:
            minutes = minutes_until(
                parse_time(until), parse_date(end_date) if end_date else None
            )
        get_blocker().start(block_name, minutes=minutes, password=password)
    except ValueError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from None
    except BlockerError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from None

    locked = f" for {minutes} minutes" if minutes else ""
    console.print(f"[green]Started block[/green] {block_name}{locked}")


@app.command()
def stop(
    block_name: str = typer.Argument(..., help="The name of the Cold Turkey block"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    """Stop a block."""
    setup_logging(verbose=verbose)
    try:
        get_blocker().stop(block_name)
    except BlockerError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from None
    console.print(f"[green]Stopped block[/green] {block_name}")


@app.command()
def add(
    block_name: str = typer.Argument(..., help="The name of the Cold Turkey block"),
    url: str = typer.Argument(..., help="The url to add to the block"),
    exception: bool = typer.Option(
        False, "--except", "-e", help="Add the url as an exception"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    """Add a website to a block."""
    setup_logging(verbose=verbose)
    try:
        get_blocker().add(block_name, url, exception=exception)
    except BlockerError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from None
    kind = "an exception" if exception else "a website"
    console.print(f"[green]Added[/green] {url} to {block_name} as {kind}")


@app.command()
def toggle(
    block_name: str = typer.Argument(..., help="The name of the Cold Turkey block"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    """Turn a block on if it is off, off if it is on."""
    setup_logging(verbose=verbose)
    try:
        get_blocker().toggle(block_name)
    except BlockerError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from None
    console.print(f"[green]Toggled block[/green] {block_name}")


@app.command(name="list")
def list_blocks(
    all_blocks: bool = typer.Option(
        False, "--all", "-a", help="Include blocks that were never configured"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    """List Cold Turkey's blocks in alphabetical order."""
    setup_logging(verbose=verbose)
    try:
        ct_settings = read_settings_export(settings.settings_export_command)
    except BlockerError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from None

    names = ct_settings.block_names(include_dormant=all_blocks)
    if not names:
        console.print("[yellow]No blocks found.[/yellow]")
        return
    for name in names:
        console.print(name)


if __name__ == "__main__":
    app()
