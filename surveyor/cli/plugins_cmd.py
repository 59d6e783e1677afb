"""
Plugin Management CLI Commands

Commands for listing and inspecting plugins.
"""

from typing import Annotated

import structlog
import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from surveyor.plugins.base import PluginCategory
from surveyor.plugins.registry import PluginLoadError, PluginNotFoundError, get_registry

logger = structlog.get_logger(__name__)
console = Console()

app = typer.Typer(
    name="plugins",
    help="Manage Surveyor plugins",
    no_args_is_help=True,
)


@app.command("list")
def list_plugins(
    category: Annotated[
        str | None,
        typer.Option(
            "--category",
            "-c",
            help="Filter by category: api, dns, scrape, custom",
        ),
    ] = None,
    verbose: Annotated[
        bool,
        typer.Option(
            "--verbose",
            "-v",
            help="Show detailed plugin information",
        ),
    ] = False,
) -> None:
    """
    List all available plugins.

    Example:
        surveyor plugins list
        surveyor plugins list --category api
    """
    registry = get_registry()

    if category:
        try:
            cat_enum = PluginCategory(category.lower())
        except ValueError:
            console.print(f"[red]Invalid category:[/red] {category}")
            console.print("Valid categories: " + ", ".join(c.value for c in PluginCategory))
            raise typer.Exit(1)
        plugins = registry.get_plugins_by_category(cat_enum)
    else:
        plugins = registry.list_plugins()

    if not plugins:
        console.print("[yellow]No plugins found[/yellow]")
        return

    table = Table(
        title=f"Surveyor Plugins ({len(plugins)} total)",
        show_header=True,
        header_style="bold cyan",
    )

    table.add_column("Name", style="cyan", no_wrap=True)
    table.add_column("Category", style="magenta")
    table.add_column("Description", style="white")

    if verbose:
        table.add_column("Input Types", style="green")
        table.add_column("Output Types", style="yellow")

    for plugin in plugins:
        row = [plugin.name, plugin.category.value, plugin.description]
        if verbose:
            row.append(", ".join(t.value for t in plugin.input_types))
            row.append(", ".join(t.value for t in plugin.output_types))
        table.add_row(*row)

    console.print(table)


@app.command("info")
def plugin_info(
    name: Annotated[str, typer.Argument(help="Plugin name to inspect")],
) -> None:
    """
    Show detailed information about a plugin.

    Example:
        surveyor plugins info DomainsProject
    """
    registry = get_registry()

    try:
        info = registry.get_plugin_info(name)
    except (PluginNotFoundError, PluginLoadError):
        console.print(f"[red]Plugin not found:[/red] {name}")
        console.print("\n[dim]Available plugins:[/dim]")
        for plugin_name in registry.list_plugin_names():
            console.print(f"  - {plugin_name}")
        raise typer.Exit(1)

    info_text = (
        f"[bold cyan]Name:[/bold cyan] {info['name']}\n"
        f"[bold cyan]Category:[/bold cyan] {info['category']}\n"
        f"[bold cyan]Description:[/bold cyan] {info['description']}\n\n"
        f"[bold green]Input Types:[/bold green] {', '.join(info['input_types'])}\n"
        f"[bold yellow]Output Types:[/bold yellow] {', '.join(info['output_types'])}\n"
    )

    if info.get("required_config"):
        info_text += f"\n[bold red]Required Config:[/bold red] {', '.join(info['required_config'])}"

    if info.get("rate_limit"):
        rl = info["rate_limit"]
        info_text += (
            f"\n\n[bold]Rate Limit:[/bold]\n"
            f"  One request every {rl['interval_seconds']}s\n"
            f"  Burst: {rl['burst']}"
        )

    console.print(Panel(info_text, title=f"Plugin: {name}", border_style="cyan"))
