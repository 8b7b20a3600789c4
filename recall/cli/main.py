"""
Recall CLI entry point.

Commands:
    recall put KEY VALUE      — Store a value
    recall get KEY            — Print a value
    recall delete KEY         — Delete a key
    recall exists KEY         — Check whether a key exists
    recall clear --yes        — Delete every key in the namespace
    recall keys               — Stream all keys
    recall search QUERY       — Stream search results
    recall config             — Show the resolved configuration
    recall version            — Show version

Configuration comes from ~/.recall/config.toml, ./recall.toml and RECALL_*
environment variables; --namespace and --base-url override them.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, TypeVar

import typer
from rich.console import Console
from rich.table import Table
from rich.text import Text

from recall.client.remote import RemoteMemoryClient
from recall.core.config import RecallConfig
from recall.core.errors import RecallError
from recall.core.logging import setup_logging
from recall.core.types import SearchOptions

app = typer.Typer(
    name="recall",
    help="Recall — typed, resilient client for remote memory stores.",
    add_completion=False,
)

console = Console()
logger = logging.getLogger("recall.cli")

T = TypeVar("T")

NamespaceOption = typer.Option(None, "--namespace", "-n", help="Override namespace")
BaseUrlOption = typer.Option(None, "--base-url", help="Override API base URL")


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug output"),
) -> None:
    """Configure logging before any command runs."""
    setup_logging(console_level=logging.DEBUG if verbose else logging.WARNING)


def _build_client(namespace: str | None, base_url: str | None) -> RemoteMemoryClient:
    """Load config with CLI overrides and create a client."""
    overrides: dict[str, Any] = {}
    if namespace:
        overrides["namespace"] = namespace
    if base_url:
        overrides["base_url"] = base_url
    config = RecallConfig.load(overrides=overrides)
    logger.debug(f"Config loaded: {config.redacted()}")
    return RemoteMemoryClient(config)


def _run(
    namespace: str | None,
    base_url: str | None,
    action: Callable[[RemoteMemoryClient], Awaitable[T]],
) -> T:
    """Run one async action against a fresh client, rendering Recall errors."""

    async def runner() -> T:
        async with _build_client(namespace, base_url) as client:
            return await action(client)

    try:
        return asyncio.run(runner())
    except RecallError as e:
        console.print(f"[red]Error:[/red] {e.message}", highlight=False)
        raise typer.Exit(1)


@app.command()
def version() -> None:
    """Show Recall version."""
    from recall import __version__

    console.print(f"recall {__version__}")


@app.command()
def put(
    key: str = typer.Argument(..., help="Memory key"),
    value: str = typer.Argument(..., help="Value to store"),
    namespace: str = NamespaceOption,
    base_url: str = BaseUrlOption,
) -> None:
    """Store a value under KEY."""
    _run(namespace, base_url, lambda client: client.put(key, value))
    console.print(f"[green]Stored[/green] {key}", highlight=False)


@app.command()
def get(
    key: str = typer.Argument(..., help="Memory key"),
    namespace: str = NamespaceOption,
    base_url: str = BaseUrlOption,
) -> None:
    """Print the value stored under KEY."""
    value = _run(namespace, base_url, lambda client: client.get(key))
    if value is None:
        console.print(f"[yellow]No memory for '{key}'[/yellow]", highlight=False)
        raise typer.Exit(1)
    console.print(value, markup=False, highlight=False)


@app.command()
def delete(
    key: str = typer.Argument(..., help="Memory key"),
    namespace: str = NamespaceOption,
    base_url: str = BaseUrlOption,
) -> None:
    """Delete KEY (succeeds even if it does not exist)."""
    _run(namespace, base_url, lambda client: client.delete(key))
    console.print(f"[green]Deleted[/green] {key}", highlight=False)


@app.command()
def exists(
    key: str = typer.Argument(..., help="Memory key"),
    namespace: str = NamespaceOption,
    base_url: str = BaseUrlOption,
) -> None:
    """Print whether KEY exists."""
    found = _run(namespace, base_url, lambda client: client.exists(key))
    console.print("yes" if found else "no")


@app.command()
def clear(
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
    namespace: str = NamespaceOption,
    base_url: str = BaseUrlOption,
) -> None:
    """Delete every key in the namespace."""
    if not yes and not typer.confirm("Delete every memory in this namespace?"):
        raise typer.Exit(1)
    _run(namespace, base_url, lambda client: client.clear())
    console.print("[green]Namespace cleared[/green]")


@app.command()
def keys(
    limit: int = typer.Option(0, "--limit", "-l", help="Stop after N keys (0 = all)"),
    namespace: str = NamespaceOption,
    base_url: str = BaseUrlOption,
) -> None:
    """Stream every key in the namespace."""

    async def action(client: RemoteMemoryClient) -> list[str]:
        stream = await client.list_all_keys()
        if limit > 0:
            return await stream.take(limit)
        return await stream.collect()

    for key in _run(namespace, base_url, action):
        console.print(key, markup=False, highlight=False)


@app.command()
def search(
    query: str = typer.Argument(..., help="Search query"),
    limit: int = typer.Option(10, "--limit", "-l", min=1, max=100, help="Maximum results"),
    namespace: str = NamespaceOption,
    base_url: str = BaseUrlOption,
) -> None:
    """Stream search results for QUERY."""

    async def action(client: RemoteMemoryClient) -> list:
        stream = await client.stream_search(query, SearchOptions(limit=limit))
        return await stream.take(limit)

    results = _run(namespace, base_url, action)
    if not results:
        console.print("[dim]No results[/dim]")
        return

    table = Table(show_header=True, header_style="bold")
    table.add_column("Key")
    table.add_column("Score", justify="right")
    table.add_column("Value")
    for result in results:
        table.add_row(
            Text(result.memory.key),
            f"{result.relevance_score:.2f}",
            Text(result.memory.value),
        )
    console.print(table)


@app.command()
def config(
    namespace: str = NamespaceOption,
    base_url: str = BaseUrlOption,
) -> None:
    """Show the resolved configuration (API key masked)."""
    try:
        client = _build_client(namespace, base_url)
    except RecallError as e:
        console.print(f"[red]Error:[/red] {e.message}", highlight=False)
        raise typer.Exit(1)
    for name, value in client.config.redacted().items():
        console.print(f"{name} = {value}", markup=False, highlight=False)


if __name__ == "__main__":
    app()
