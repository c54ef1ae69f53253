"""Tests for the rich renderables."""

from rich.console import Console

from streamlens.cli.render import (
    render_call,
    render_calls,
    render_edges,
    render_panel_configs,
    render_panels,
    render_services,
)
from streamlens.core.services import ServicePalette
from streamlens.core.state import ClientState
from streamlens.models.enums import AdvisoryLevel
from streamlens.models.logs import LogEvent, PanelConfig, ServiceInfo
from streamlens.models.traffic import (
    Correlation,
    EdgeStats,
    HttpEdgeKey,
    Peer,
    TrafficCall,
    TrafficEdge,
    WorkloadEntity,
)


def _text(renderable) -> str:
    console = Console(record=True, width=160)
    console.print(renderable)
    return console.export_text()


def test_services_table():
    out = _text(
        render_services(
            [
                ServiceInfo(name="web", endpoints=("http://localhost:3000",)),
                ServiceInfo(name="db"),
            ],
            ServicePalette(),
        )
    )
    assert "localhost:3000" in out
    assert "internal" in out


def test_panels_with_advisory():
    state = ClientState()
    panel = state.router.create_panel(PanelConfig(services=("api",), follow=False))
    state.router.ingest(LogEvent(seq=1, service="api", line="listening on :80"))
    state.raise_advisory("logs", AdvisoryLevel.WARNING, "Log stream disconnected; reconnecting.")

    out = _text(render_panels(state))
    assert panel.title in out
    assert "Paused" in out
    assert "listening on :80" in out
    assert "reconnecting" in out


def test_empty_panel():
    state = ClientState()
    state.router.create_panel()
    assert "waiting for logs" in _text(render_panels(state))


def test_edges_and_calls():
    edge = TrafficEdge(
        key=HttpEdgeKey(
            src=WorkloadEntity(name="web"),
            dst=WorkloadEntity(name="api"),
            method="GET",
            route="/users",
        ),
        stats=EdgeStats(count=12, errors=2, bytes_in=2048),
        last_seen_ms=0,
    )
    out = _text(render_edges([edge]))
    assert "Traffic edges (1)" in out
    assert "/users" in out
    assert "2.0KB" in out

    calls = [TrafficCall(seq=4, method="GET", path="/users", status=502), TrafficCall(seq=5)]
    out = _text(render_calls(calls, calls[0]))
    assert "Calls (2)" in out
    assert "▶4" in out
    assert "no status" in out


def test_call_inspector():
    call = TrafficCall(
        seq=9,
        method="POST",
        path="/orders",
        status=201,
        peer=Peer(src=WorkloadEntity(name="web"), dst=WorkloadEntity(name="api")),
        request_headers=(("Content-Type", "application/json"),),
        request_body='{"id": 1}',
        correlation=Correlation(request_id="req-1"),
    )
    out = _text(render_call(call))
    assert "Call #9" in out
    assert "POST /orders" in out
    assert "Content-Type" in out
    assert "req-1" in out
    assert "none captured" in out


def test_panel_configs():
    out = _text(
        render_panel_configs(
            [PanelConfig(services=("api", "db"), include=("error",)), PanelConfig(follow=False)],
            1,
        )
    )
    assert "api, db" in out
    assert "*2" in out
    assert "all" in out
