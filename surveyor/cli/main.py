"""
Surveyor CLI Main Entry Point

The main Typer application that assembles all command groups.
"""

import logging
from typing import Annotated

import structlog
import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from surveyor import __version__
from surveyor.config import settings


def configure_logging(level: str) -> None:
    """Configure structlog on top of the stdlib logging module."""
    logging.basicConfig(level=getattr(logging, level.upper(), logging.INFO), format="%(message)s")
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.dev.ConsoleRenderer(colors=True),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


console = Console()

app = typer.Typer(
    name="surveyor",
    help="Surveyor - asset discovery with rate-limited, TTL-cached data source connectors",
    no_args_is_help=True,
    rich_markup_mode="rich",
)


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(
            Panel(
                Text.from_markup(f"[bold cyan]Surveyor[/bold cyan] v{__version__}"),
                title="Version",
                border_style="cyan",
            )
        )
        raise typer.Exit()


@app.callback()
def main(
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            "-V",
            help="Show version and exit.",
            callback=version_callback,
            is_eager=True,
        ),
    ] = False,
    verbose: Annotated[
        bool,
        typer.Option(
            "--verbose",
            "-v",
            help="Enable verbose output.",
        ),
    ] = False,
) -> None:
    """
    Surveyor - discover the subdomains of an organization's domains.
    """
    configure_logging("DEBUG" if verbose else settings.log_level)


from surveyor.cli.enum_cmd import enumerate_domain
from surveyor.cli.plugins_cmd import app as plugins_app

app.add_typer(plugins_app, name="plugins", help="Manage plugins")
app.command("enum")(enumerate_domain)


@app.command()
def info() -> None:
    """Show information about Surveyor."""
    from surveyor.plugins.registry import get_registry

    registry = get_registry()

    table = Table(title="Surveyor Information", show_header=False, border_style="cyan")
    table.add_column("Property", style="cyan")
    table.add_column("Value", style="white")

    table.add_row("Version", __version__)
    table.add_row("Plugins Loaded", str(len(registry)))
    table.add_row("Config Path", str(settings.config_path or "-"))

    console.print(table)


if __name__ == "__main__":
    app()
