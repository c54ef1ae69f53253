"""Tests for SSE framing and the stream client."""

import json

import httpx
import pytest

from streamlens.core.state import ClientState
from streamlens.core.stream import (
    TRAFFIC_DISABLED,
    SseMessage,
    StreamClient,
    iter_sse,
)
from streamlens.models.enums import AdvisoryLevel, StreamName
from streamlens.models.logs import PanelConfig


async def _lines(*lines):
    for line in lines:
        yield line


async def _collect(*lines):
    return [message async for message in iter_sse(_lines(*lines))]


def _sse(*messages: tuple[str | None, object]) -> bytes:
    chunks = []
    for event, payload in messages:
        if event:
            chunks.append(f"event: {event}\n")
        data = payload if isinstance(payload, str) else json.dumps(payload)
        chunks.append(f"data: {data}\n\n")
    return "".join(chunks).encode()


def _edge(route: str, count: int) -> dict:
    return {
        "key": {
            "kind": "http",
            "from": {"kind": "workload", "name": "web"},
            "to": {"kind": "workload", "name": "api"},
            "method": "GET",
            "route": route,
        },
        "stats": {"count": count, "bytes_in": 0, "bytes_out": 0, "errors": 0, "visibility": "l7_semantics"},
        "last_seen_ms": count,
    }


def _client(state: ClientState, routes: dict) -> StreamClient:
    def handler(request: httpx.Request) -> httpx.Response:
        body = routes.get(request.url.path)
        if isinstance(body, Exception):
            raise body
        if body is None:
            return httpx.Response(404)
        return httpx.Response(200, headers={"content-type": "text/event-stream"}, content=body)

    http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return StreamClient(state, http, base_url="http://compose", reconnect_delay=0)


class TestIterSse:
    @pytest.mark.asyncio
    async def test_named_and_default(self):
        messages = await _collect("event: history", "data: []", "", "data: {}", "")
        assert messages == [SseMessage(data="[]", event="history"), SseMessage(data="{}")]

    @pytest.mark.asyncio
    async def test_multiline_data_and_comments(self):
        messages = await _collect(": keepalive", "data: a", "data:b", "", "")
        assert messages == [SseMessage(data="a\nb")]

    @pytest.mark.asyncio
    async def test_id_and_retry(self):
        messages = await _collect("id: 7", "retry: 1500", "data: x", "", "data: y", "")
        assert messages[0].id == "7"
        assert messages[0].retry == 1500
        assert messages[1].id == "7"
        assert messages[1].retry is None

    @pytest.mark.asyncio
    async def test_partial_message_dropped(self):
        assert await _collect("data: x") == []


class TestConsume:
    @pytest.mark.asyncio
    async def test_logs_history_then_events(self):
        state = ClientState()
        panel = state.router.create_panel(PanelConfig(services=("auth",)))
        body = _sse(
            ("history", [{"seq": 1, "service": "auth", "line": "a"}, {"seq": 2, "service": "db", "line": "b"}]),
            (None, {"seq": 3, "service": "auth", "line": "c"}),
            (None, {"seq": 4, "service": "db", "line": "d"}),
        )
        client = _client(state, {"/events": body})
        assert await client.consume(StreamName.LOGS)

        assert [e.seq for e in state.router.history] == [1, 2, 3, 4]
        assert [e.seq for e in panel.logs] == [1, 3]
        health = state.health[StreamName.LOGS]
        assert health.connects == 1
        assert health.messages == 3
        assert health.connected is False

    @pytest.mark.asyncio
    async def test_malformed_payload_dropped(self):
        state = ClientState()
        body = _sse(
            (None, "{broken"),
            (None, {"service": "api"}),
            (None, {"seq": 5, "service": "api", "line": "ok"}),
        )
        client = _client(state, {"/events": body})
        assert await client.consume(StreamName.LOGS)
        assert [e.seq for e in state.router.history] == [5]
        assert state.health[StreamName.LOGS].dropped == 2

    @pytest.mark.asyncio
    async def test_deeply_nested_payload_dropped(self):
        state = ClientState()
        body = _sse(
            (None, "[" * 100_000 + "]" * 100_000),
            (None, {"seq": 6, "service": "api", "line": "still here"}),
        )
        client = _client(state, {"/events": body})
        assert await client.consume(StreamName.LOGS)
        assert [e.seq for e in state.router.history] == [6]
        assert state.health[StreamName.LOGS].dropped == 1

    @pytest.mark.asyncio
    async def test_traffic_snapshot_and_updates(self):
        state = ClientState()
        body = _sse(
            ("snapshot", [_edge("/a", 1), _edge("/b", 2)]),
            (None, _edge("/a", 9)),
        )
        client = _client(state, {"/traffic": body})
        assert await client.consume(StreamName.TRAFFIC)
        ranked = state.traffic.ranked_view()
        assert [(e.key.route, e.stats.count) for e in ranked] == [("/a", 9), ("/b", 2)]

    @pytest.mark.asyncio
    async def test_calls_snapshot_and_append(self):
        state = ClientState()
        body = _sse(("snapshot", [{"seq": 1}, {"seq": 2}]), (None, {"seq": 3, "status": 500}))
        client = _client(state, {"/traffic/calls": body})
        assert await client.consume(StreamName.CALLS)
        assert [c.seq for c in state.traffic.recent_calls()] == [3, 2, 1]

    @pytest.mark.asyncio
    async def test_traffic_unavailable_is_advisory(self):
        state = ClientState()
        client = _client(state, {})
        assert not await client.consume(StreamName.TRAFFIC)
        advisory = state.advisories["traffic"]
        assert advisory.level == AdvisoryLevel.INFO
        assert advisory.message == TRAFFIC_DISABLED
        assert "404" in state.health[StreamName.TRAFFIC].last_error

    @pytest.mark.asyncio
    async def test_traffic_error_after_edges_is_disconnect(self):
        state = ClientState()
        client = _client(state, {"/traffic": _sse(("snapshot", [_edge("/a", 1)]))})
        await client.consume(StreamName.TRAFFIC)
        client = _client(state, {"/traffic": httpx.ReadError("reset")})
        assert not await client.consume(StreamName.TRAFFIC)
        assert state.advisories["traffic"].level == AdvisoryLevel.WARNING

    @pytest.mark.asyncio
    async def test_log_transport_error(self):
        state = ClientState()
        client = _client(state, {"/events": httpx.ConnectError("refused")})
        assert not await client.consume(StreamName.LOGS)
        assert state.advisories["logs"].level == AdvisoryLevel.WARNING

    @pytest.mark.asyncio
    async def test_reconnect_clears_advisory(self):
        state = ClientState()
        await _client(state, {"/events": httpx.ConnectError("refused")}).consume(StreamName.LOGS)
        await _client(state, {"/events": _sse()}).consume(StreamName.LOGS)
        assert "logs" not in state.advisories


class TestDispatch:
    def test_deeply_nested_payload(self):
        state = ClientState()
        client = StreamClient(state, httpx.AsyncClient(), base_url="http://x")
        message = SseMessage(data="[" * 100_000 + "]" * 100_000)
        assert not client.dispatch(StreamName.LOGS, message)
        assert state.health[StreamName.LOGS].dropped == 1

    def test_closed_client_ignores_events(self):
        state = ClientState()
        client = StreamClient(state, httpx.AsyncClient(), base_url="http://x")
        client.close()
        message = SseMessage(data=json.dumps({"seq": 1, "service": "a", "line": "x"}))
        assert not client.dispatch(StreamName.LOGS, message)
        assert len(state.router.history) == 0

    def test_closed_state_ignores_events(self):
        state = ClientState()
        client = StreamClient(state, httpx.AsyncClient(), base_url="http://x")
        state.close()
        message = SseMessage(data=json.dumps({"seq": 1, "service": "a", "line": "x"}))
        assert not client.dispatch(StreamName.LOGS, message)

    def test_retry_updates_delay(self):
        state = ClientState()
        client = StreamClient(state, httpx.AsyncClient(), base_url="http://x")
        client.dispatch(StreamName.LOGS, SseMessage(data="[]", event="history", retry=500))
        assert client._delays[StreamName.LOGS] == 0.5


class TestRun:
    @pytest.mark.asyncio
    async def test_run_until_close(self):
        state = ClientState()
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request.url.path)
            if len(seen) >= 3:
                client.close()
            return httpx.Response(200, content=_sse((None, {"seq": len(seen), "service": "a", "line": "x"})))

        client = StreamClient(
            state,
            httpx.AsyncClient(transport=httpx.MockTransport(handler)),
            base_url="http://compose",
            reconnect_delay=0,
        )
        await client.run((StreamName.LOGS,))
        assert seen[:3] == ["/events"] * 3
        assert client.closed
