"""Typer CLI for streamlens live log panels and traffic explorer."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from typing import Annotated, Optional

import httpx
import typer
from rich.console import Console, Group, RenderableType
from rich.live import Live
from rich.text import Text

from streamlens.cli.render import (
    render_advisories,
    render_call,
    render_calls,
    render_edges,
    render_panel_configs,
    render_panels,
    render_services,
)
from streamlens.config import StreamlensConfig
from streamlens.core.persistence import QueryLocation
from streamlens.core.services import DirectoryError, ServicePalette, fetch_services
from streamlens.core.state import ClientState
from streamlens.core.stream import StreamClient
from streamlens.core.traffic import filter_edges
from streamlens.core.url_state import (
    build_query_string,
    parse_panel_config,
    read_state_from_query,
    serialize_panels_config,
)
from streamlens.logging_setup import setup_logging, verbosity_level
from streamlens.models.enums import EdgeSort, StatusFilter, StreamName

app = typer.Typer(
    name="streamlens",
    help="Live log panels and traffic explorer for compose event streams.",
    no_args_is_help=True,
)
console = Console(stderr=True)

UrlOption = Annotated[Optional[str], typer.Option("--url", "-u", help="Server base URL")]
PanelOption = Annotated[
    Optional[list[str]],
    typer.Option("--panel", "-p", help="Panel filters, e.g. 'svc=api~db,inc=error,follow=0'"),
]
SecondsOption = Annotated[
    float, typer.Option("--seconds", help="Stop after this many seconds (0 = until Ctrl+C)")
]


@app.callback()
def _main(
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Debug logging")] = False,
) -> None:
    setup_logging(verbosity_level(verbose))


def _config(url: str | None = None) -> StreamlensConfig:
    return StreamlensConfig.load(url=url)


def _http_client(config: StreamlensConfig) -> httpx.AsyncClient:
    return httpx.AsyncClient(timeout=config.server.timeout)


def _query_part(value: str) -> str:
    _, sep, query = value.partition("?")
    return query if sep else value


def _panel_query(specs: list[str] | None, view: str | None) -> str:
    """Merge ``--view`` with any ``--panel`` specs into one query string."""
    query = _query_part(view) if view else ""
    if not specs:
        return query
    panels, active = read_state_from_query(query)
    configs = (panels or []) + [parse_panel_config(spec) for spec in specs]
    return build_query_string(query, serialize_panels_config(configs), active)


async def _watch(
    state: ClientState,
    streams: tuple[StreamName, ...],
    render: Callable[[], RenderableType],
    seconds: float,
    load_services: bool = False,
) -> None:
    async with _http_client(state.config) as http:
        if load_services:
            await state.load_services(http)
        client = StreamClient(state, http)
        runner = asyncio.create_task(client.run(streams))
        loop = asyncio.get_running_loop()
        deadline = loop.time() + seconds if seconds > 0 else None
        try:
            with Live(render(), console=console, refresh_per_second=4, transient=True) as live:
                while not runner.done():
                    if deadline is not None and loop.time() >= deadline:
                        break
                    live.update(render())
                    await asyncio.sleep(0.25)
        finally:
            client.close()
            await runner


def _run(state: ClientState, coro_factory: Callable[[], object]) -> None:
    try:
        asyncio.run(coro_factory())  # type: ignore[arg-type]
    except KeyboardInterrupt:
        console.print("\n[dim]Stopped.[/dim]")
    finally:
        state.close()


@app.command()
def services(url: UrlOption = None) -> None:
    """List services from the directory with their endpoints."""
    config = _config(url)

    async def _load():
        async with _http_client(config) as http:
            return await fetch_services(http, config.server.url)

    try:
        svcs = asyncio.run(_load())
    except DirectoryError as exc:
        console.print(f"[red]Failed to load services:[/red] {exc}")
        raise typer.Exit(1)

    if not svcs:
        console.print("[dim]No services reported.[/dim]")
        return
    console.print(render_services(svcs, ServicePalette()))


@app.command()
def tail(
    url: UrlOption = None,
    panel: PanelOption = None,
    view: Annotated[
        Optional[str], typer.Option("--view", help="Restore panels from a share link or query")
    ] = None,
    lines: Annotated[int, typer.Option("--lines", "-n", help="Lines shown per panel")] = 20,
    seconds: SecondsOption = 0,
) -> None:
    """Follow the log stream in one or more filtered panels."""
    config = _config(url)
    state = ClientState(config, QueryLocation(_panel_query(panel, view)))
    state.start()

    def render() -> RenderableType:
        share = state.location.query or "(default view)"
        return Group(render_panels(state, lines), Text(f"share: {share}", style="dim"))

    _run(state, lambda: _watch(state, (StreamName.LOGS,), render, seconds, load_services=True))
    console.print(render_panels(state, lines))
    if state.location.query:
        console.print(f"[dim]View:[/dim] {config.server.url.rstrip('/')}/{state.location.query}")


@app.command()
def traffic(
    url: UrlOption = None,
    status: Annotated[StatusFilter, typer.Option("--status", "-s", help="Call status class")] = StatusFilter.ALL,
    query: Annotated[str, typer.Option("--query", "-q", help="Search edges and calls")] = "",
    sort: Annotated[EdgeSort, typer.Option("--sort", help="Rank edges by")] = EdgeSort.COUNT,
    limit: Annotated[int, typer.Option("--limit", "-n", help="Rows per table")] = 25,
    inspect: Annotated[
        Optional[int], typer.Option("--inspect", "-i", help="Pin a call by sequence number")
    ] = None,
    seconds: SecondsOption = 0,
) -> None:
    """Explore observed traffic: ranked edges, recent calls, call inspector."""
    config = _config(url)
    state = ClientState(config)
    state.status_filter = status
    state.call_query = query
    state.pinned_call = inspect

    def render() -> RenderableType:
        edges = filter_edges(state.traffic.ranked_view(sort), query)[:limit]
        calls = state.filtered_calls()
        selected = state.selected_call()
        parts: list[RenderableType] = [
            *render_advisories(state),
            render_edges(edges),
            render_calls(calls[:limit], selected),
        ]
        if selected is not None:
            parts.append(render_call(selected))
        return Group(*parts)

    _run(state, lambda: _watch(state, (StreamName.TRAFFIC, StreamName.CALLS), render, seconds))
    console.print(render())


@app.command()
def link(
    panel: PanelOption = None,
    active: Annotated[
        Optional[int], typer.Option("--active", "-a", help="1-based active panel")
    ] = None,
    url: UrlOption = None,
) -> None:
    """Compose a shareable view link from panel filters."""
    configs = [parse_panel_config(spec) for spec in panel or []]
    if not configs:
        console.print("[red]At least one --panel is required.[/red]")
        raise typer.Exit(1)
    if active is not None and not 1 <= active <= len(configs):
        console.print(f"[red]--active must be between 1 and {len(configs)}.[/red]")
        raise typer.Exit(1)

    query = build_query_string(
        "", serialize_panels_config(configs), active - 1 if active is not None else None
    )
    typer.echo(f"{url.rstrip('/')}/{query}" if url else query)


@app.command()
def decode(share: Annotated[str, typer.Argument(help="Share link or query string")]) -> None:
    """Show the panels encoded in a share link."""
    panels, active = read_state_from_query(_query_part(share))
    if not panels:
        console.print("[yellow]No panel state in that link.[/yellow]")
        raise typer.Exit(1)
    console.print(render_panel_configs(panels, active))


def main() -> None:
    """Entry point for the streamlens CLI."""
    app()


if __name__ == "__main__":
    main()
