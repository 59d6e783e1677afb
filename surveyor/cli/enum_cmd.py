"""
Enumeration CLI Commands

Run a discovery session seeded with a domain and report what the
data source connectors found.
"""

import asyncio
from pathlib import Path
from typing import Annotated

import structlog
import typer
from rich.console import Console
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

from surveyor.config import ConfigError, EngineConfig, load_config, settings
from surveyor.engine import DiscoveryEvent, Dispatcher, Session
from surveyor.models.assets import AssetType, Entity
from surveyor.plugins.registry import PluginRegistry, get_registry

logger = structlog.get_logger(__name__)
console = Console()


async def run_enumeration(
    domain: str,
    config: EngineConfig,
    registry: PluginRegistry | None = None,
    timeout: float | None = None,
) -> list[Entity]:
    """
    Enumerate a domain with every started plugin.

    The domain is added to the session scope and dispatched as the seed
    event. Forwarded findings are handled until the dispatcher goes idle
    or the timeout expires, at which point the session is killed.

    Returns:
        FQDN entities in the session store, oldest first
    """
    registry = registry or get_registry()
    registry.start_plugins()

    dispatcher = Dispatcher(registry)
    session = Session(config, dispatcher=dispatcher)
    session.scope.add_domain(domain)

    seed = await session.store.upsert_fqdn(domain)
    await dispatcher.dispatch(
        DiscoveryEvent(name=seed.asset.key, entity=seed, session=session)
    )

    try:
        if not await dispatcher.wait_idle(timeout):
            logger.warning("Enumeration timed out", domain=domain, timeout=timeout)
            session.kill()
            await dispatcher.wait_idle()
    finally:
        dispatcher.forget_session(session.id)
        await registry.aclose()

    for name, error in dispatcher.errors:
        logger.error("Handler error during enumeration", handler=name, error=str(error))

    return await session.store.list_entities(AssetType.FQDN)


def enumerate_domain(
    domain: Annotated[str, typer.Argument(help="Root domain to enumerate")],
    config_path: Annotated[
        Path | None,
        typer.Option(
            "--config",
            "-c",
            help="Engine config JSON (defaults to SURVEYOR_CONFIG_PATH)",
        ),
    ] = None,
    timeout: Annotated[
        float | None,
        typer.Option("--timeout", "-t", help="Stop after this many seconds"),
    ] = None,
) -> None:
    """
    Enumerate subdomains of a domain.

    Example:
        surveyor enum example.com --config surveyor.json
    """
    path = config_path or settings.config_path
    try:
        config = load_config(path) if path else EngineConfig()
    except ConfigError as e:
        console.print(f"[red]Config error:[/red] {e}")
        raise typer.Exit(1)

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        console=console,
        transient=True,
    ) as progress:
        progress.add_task(f"Enumerating {domain}...", total=None)
        entities = asyncio.run(run_enumeration(domain, config, timeout=timeout))

    table = Table(
        title=f"Discovered names for {domain} ({len(entities)} total)",
        show_header=True,
        header_style="bold cyan",
    )
    table.add_column("Name", style="cyan", no_wrap=True)
    table.add_column("First Seen", style="white")

    for entity in entities:
        table.add_row(entity.asset.key, entity.created_at.isoformat(timespec="seconds"))

    console.print(table)
