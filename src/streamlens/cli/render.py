"""Rich renderables for panels, the traffic table and the call inspector."""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime, timezone

from rich.console import Group, RenderableType
from rich.panel import Panel as Box
from rich.table import Table
from rich.text import Text

from streamlens.core.filters import panel_meta
from streamlens.core.services import ServicePalette, endpoint_label, endpoints_of
from streamlens.core.state import ClientState
from streamlens.core.traffic import entity_label, status_text
from streamlens.models.enums import AdvisoryLevel
from streamlens.models.logs import Panel, PanelConfig, ServiceInfo
from streamlens.models.traffic import TrafficCall, TrafficEdge

_ADVISORY_STYLE = {
    AdvisoryLevel.INFO: "cyan",
    AdvisoryLevel.WARNING: "yellow",
    AdvisoryLevel.BLOCKING: "bold red",
}


def _dash(value: object) -> str:
    return "—" if value is None else str(value)


def _bytes(value: int | None) -> str:
    if value is None:
        return "—"
    size = float(value)
    for unit in ("B", "KB", "MB"):
        if size < 1024:
            return f"{size:.0f}{unit}" if unit == "B" else f"{size:.1f}{unit}"
        size /= 1024
    return f"{size:.1f}GB"


def _clock(ms: int) -> str:
    return datetime.fromtimestamp(ms / 1000, tz=timezone.utc).strftime("%H:%M:%S")


def _status_style(status: int | None) -> str:
    if status is None or status >= 500:
        return "red"
    if status >= 400:
        return "yellow"
    if status >= 300:
        return "cyan"
    return "green"


def render_services(services: Sequence[ServiceInfo], palette: ServicePalette) -> Table:
    table = Table(title="Services")
    table.add_column("Service", style="bold")
    table.add_column("Endpoints")

    for service in services:
        color = palette.color_for(service.name)
        endpoints = endpoints_of(service)
        links = ", ".join(endpoint_label(e) for e in endpoints) if endpoints else "[dim]internal[/dim]"
        table.add_row(Text("● ", style=color) + Text(service.name), links)
    return table


def render_panel(
    panel: Panel,
    palette: ServicePalette,
    lines: int = 20,
    active: bool = False,
) -> Box:
    # Following shows the newest lines; a paused panel stays on the oldest.
    window = list(panel.logs)
    window = window[-lines:] if panel.auto_scroll else window[:lines]

    body = Text()
    for index, event in enumerate(window):
        if index:
            body.append("\n")
        body.append(f"{event.service:>12} ", style=f"bold {palette.color_for(event.service)}")
        body.append(event.line)
    if not window:
        body.append("waiting for logs…", style="dim")

    follow = "" if panel.auto_scroll else "  [yellow]Paused[/yellow]"
    return Box(
        body,
        title=f"{panel.title} · {panel_meta(panel)}{follow}",
        title_align="left",
        border_style="bright_white" if active else "dim",
    )


def render_panels(state: ClientState, lines: int = 20) -> RenderableType:
    router = state.router
    active = router.active_panel
    boxes = [
        render_panel(panel, state.palette, lines, active is not None and panel.id == active.id)
        for panel in router.panels
    ]
    return Group(*render_advisories(state), *boxes)


def render_advisories(state: ClientState) -> list[Text]:
    return [
        Text(advisory.message, style=_ADVISORY_STYLE[advisory.level])
        for advisory in state.advisories.values()
    ]


def render_edges(edges: Sequence[TrafficEdge]) -> Table:
    table = Table(title=f"Traffic edges ({len(edges)})")
    table.add_column("Kind")
    table.add_column("From", style="bold")
    table.add_column("To", style="bold")
    table.add_column("Detail")
    table.add_column("Count", justify="right")
    table.add_column("Errors", justify="right")
    table.add_column("In", justify="right")
    table.add_column("Out", justify="right")
    table.add_column("p50", justify="right")
    table.add_column("p95", justify="right")
    table.add_column("Tier")
    table.add_column("Seen")

    for edge in edges:
        stats = edge.stats
        errors = f"[red]{stats.errors}[/red]" if stats.errors else "0"
        table.add_row(
            edge.key.kind,
            entity_label(edge.key.src),
            entity_label(edge.key.dst),
            edge.key.detail,
            str(stats.count),
            errors,
            _bytes(stats.bytes_in),
            _bytes(stats.bytes_out),
            _dash(stats.p50_ms),
            _dash(stats.p95_ms),
            stats.visibility.value,
            _clock(edge.last_seen_ms),
        )
    return table


def render_calls(calls: Sequence[TrafficCall], selected: TrafficCall | None = None) -> Table:
    table = Table(title=f"Calls ({len(calls)})")
    table.add_column("#", justify="right")
    table.add_column("Time")
    table.add_column("Status")
    table.add_column("Method")
    table.add_column("Path")
    table.add_column("From")
    table.add_column("To")
    table.add_column("ms", justify="right")

    for call in calls:
        marker = "▶" if selected is not None and call.seq == selected.seq else ""
        table.add_row(
            f"{marker}{call.seq}",
            _clock(call.at_ms),
            Text(status_text(call.status), style=_status_style(call.status)),
            call.method or "—",
            call.path or "—",
            entity_label(call.peer.src),
            entity_label(call.peer.dst),
            _dash(call.duration_ms),
        )
    return table


def _headers(title: str, headers: tuple[tuple[str, str], ...]) -> Table:
    table = Table(title=title, show_header=False, box=None)
    table.add_column("Header", style="bold")
    table.add_column("Value")
    for key, value in headers:
        table.add_row(key, value)
    if not headers:
        table.add_row("[dim]none captured[/dim]", "")
    return table


def render_call(call: TrafficCall, body_limit: int = 2000) -> Box:
    """Request/response inspector for one call."""
    summary = Table(show_header=False, box=None)
    summary.add_column("Field", style="bold")
    summary.add_column("Value")
    summary.add_row("Request", f"{call.method or '?'} {call.path or '/'}")
    summary.add_row("Status", Text(status_text(call.status), style=_status_style(call.status)))
    summary.add_row("Duration", f"{_dash(call.duration_ms)} ms")
    summary.add_row("Bytes", f"in {_bytes(call.bytes_in)} / out {_bytes(call.bytes_out)}")
    summary.add_row("From", entity_label(call.peer.src))
    summary.add_row("To", entity_label(call.peer.dst))
    if call.peer.raw is not None:
        raw = call.peer.raw
        summary.add_row(
            "Flow",
            f"{raw.src.ip}:{raw.src.port} → {raw.dst.ip}:{raw.dst.port} ({raw.transport.label})",
        )
    corr = call.correlation
    summary.add_row("Request ID", _dash(corr.request_id))
    summary.add_row("Trace", f"{_dash(corr.trace_id)} / span {_dash(corr.span_id)}")
    summary.add_row(
        "Observed",
        f"{call.attrs.visibility.value}, {call.attrs.confidence.value} confidence",
    )
    if call.attrs.tags:
        summary.add_row("Tags", ", ".join(f"{k}={v}" for k, v in call.attrs.tags))

    parts: list[RenderableType] = [
        summary,
        _headers("Request headers", call.request_headers),
        _headers("Response headers", call.response_headers),
    ]
    for label, body in (("Request body", call.request_body), ("Response body", call.response_body)):
        if body:
            clipped = body if len(body) <= body_limit else body[:body_limit] + "…"
            parts.append(Box(Text(clipped), title=label, title_align="left", border_style="dim"))

    return Box(Group(*parts), title=f"Call #{call.seq}", title_align="left")


def render_panel_configs(configs: Sequence[PanelConfig], active_index: int | None) -> Table:
    table = Table(title="Panels")
    table.add_column("#", justify="right")
    table.add_column("Services")
    table.add_column("Include")
    table.add_column("Exclude")
    table.add_column("Follow")

    for index, config in enumerate(configs):
        number = f"*{index + 1}" if index == active_index else str(index + 1)
        table.add_row(
            number,
            ", ".join(config.services) if config.services else "all",
            ", ".join(config.include) or "—",
            ", ".join(config.exclude) or "—",
            "yes" if config.follow else "no",
        )
    return table
