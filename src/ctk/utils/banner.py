import pyfiglet
from rich.align import Align
from rich.console import Console
from rich.text import Text


def render_banner(title: str = "ctk", subtitle: str | None = None) -> Text:
    """Builds the figlet title shown when the suggestion wizard starts."""
    font = pyfiglet.Figlet(font="small")
    art_text = font.renderText(title)

    banner = Text.from_markup(f"[bold green]{art_text}[/bold green]")
    if subtitle:
        banner += Text(subtitle, justify="center", style="bold yellow")
    return banner


def display(console: Console | None = None, subtitle: str | None = None) -> None:
    """Prints the centered banner."""
    console = console or Console()
    console.print(Align.center(render_banner(subtitle=subtitle)))
