"""Server-sent event subscriptions feeding the router and the aggregator."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Callable
from dataclasses import dataclass
from typing import Any

import httpx

from streamlens.core.parser import (
    PayloadError,
    load_json,
    parse_call,
    parse_calls,
    parse_edge,
    parse_edges,
    parse_log_event,
    parse_log_history,
)
from streamlens.core.state import ClientState
from streamlens.models.enums import AdvisoryLevel, StreamName

logger = logging.getLogger("streamlens.stream")

STREAM_PATHS: dict[StreamName, str] = {
    StreamName.LOGS: "/events",
    StreamName.TRAFFIC: "/traffic",
    StreamName.CALLS: "/traffic/calls",
}

TRAFFIC_DISABLED = "Traffic capture is not enabled for this run."


@dataclass(frozen=True, slots=True)
class SseMessage:
    data: str
    event: str = "message"
    id: str | None = None
    retry: int | None = None


async def iter_sse(lines: AsyncIterator[str]) -> AsyncIterator[SseMessage]:
    """Split an event-stream body into messages. A trailing partial message is dropped."""
    event = "message"
    data: list[str] = []
    last_id: str | None = None
    retry: int | None = None

    async for raw in lines:
        line = raw.rstrip("\r")
        if not line:
            if data:
                yield SseMessage(data="\n".join(data), event=event, id=last_id, retry=retry)
            event, data, retry = "message", [], None
            continue
        if line.startswith(":"):
            continue

        name, _, value = line.partition(":")
        if value.startswith(" "):
            value = value[1:]
        if name == "event":
            event = value or "message"
        elif name == "data":
            data.append(value)
        elif name == "id":
            last_id = value
        elif name == "retry" and value.isdigit():
            retry = int(value)


class StreamUnavailable(Exception):
    """The server answered a stream request with something other than 200."""


class StreamClient:
    """Runs the three subscriptions against one server.

    Payloads are validated into models before they touch ``state``; a bad
    payload is logged and skipped, a transport failure becomes an advisory
    and a reconnect. After ``close()`` nothing more is applied.
    """

    def __init__(
        self,
        state: ClientState,
        client: httpx.AsyncClient,
        base_url: str | None = None,
        reconnect_delay: float | None = None,
    ) -> None:
        self.state = state
        self.client = client
        self.base_url = (base_url or state.config.server.url).rstrip("/")
        self.reconnect_delay = (
            state.config.stream.reconnect_delay if reconnect_delay is None else reconnect_delay
        )
        self._delays: dict[StreamName, float] = {}
        self._tasks: list[asyncio.Task[None]] = []
        self._closed = False
        self._handlers: dict[StreamName, Callable[[str, Any], None]] = {
            StreamName.LOGS: self._on_log,
            StreamName.TRAFFIC: self._on_traffic,
            StreamName.CALLS: self._on_call,
        }

    @property
    def closed(self) -> bool:
        return self._closed or self.state.closed

    # -- lifecycle ---------------------------------------------------------

    async def run(self, streams: tuple[StreamName, ...] = tuple(StreamName)) -> None:
        """Subscribe to ``streams`` until ``close()`` or cancellation."""
        self._tasks = [
            asyncio.create_task(self.subscribe(name), name=f"stream-{name.value}")
            for name in streams
        ]
        try:
            # close() cancels the subscriptions; that ends run() without raising
            results = await asyncio.gather(*self._tasks, return_exceptions=True)
            for name, result in zip(streams, results):
                if isinstance(result, Exception):
                    logger.error("%s subscription failed", name.value, exc_info=result)
        finally:
            self.close()

    def close(self) -> None:
        self._closed = True
        for task in self._tasks:
            if not task.done():
                task.cancel()

    async def subscribe(self, stream: StreamName) -> None:
        while not self.closed:
            await self.consume(stream)
            if self.closed:
                break
            delay = self._delays.get(stream, self.reconnect_delay)
            logger.info("Reconnecting %s stream in %.1fs", stream.value, delay)
            await asyncio.sleep(delay)

    async def consume(self, stream: StreamName) -> bool:
        """One connection: read until the server closes. False on transport error."""
        url = self.base_url + STREAM_PATHS[stream]
        health = self.state.health[stream]
        try:
            async with self.client.stream(
                "GET",
                url,
                headers={"Accept": "text/event-stream"},
                timeout=httpx.Timeout(self.state.config.server.timeout, read=None),
            ) as response:
                if response.status_code != 200:
                    raise StreamUnavailable(f"{url} answered {response.status_code}")
                health.connected = True
                health.connects += 1
                health.last_error = None
                self.state.clear_advisory(stream.value)
                async for message in iter_sse(response.aiter_lines()):
                    if self.closed:
                        return True
                    self.dispatch(stream, message)
        except (httpx.HTTPError, StreamUnavailable) as exc:
            health.connected = False
            self._transport_error(stream, exc)
            return False

        health.connected = False
        if not self.closed:
            logger.info("%s stream closed by server", stream.value)
        return True

    # -- dispatch ----------------------------------------------------------

    def dispatch(self, stream: StreamName, message: SseMessage) -> bool:
        """Apply one message. Returns False when it was dropped."""
        if self.closed:
            return False
        health = self.state.health[stream]
        if message.retry is not None:
            self._delays[stream] = message.retry / 1000
        try:
            self._handlers[stream](message.event, load_json(message.data))
        except PayloadError as exc:
            health.dropped += 1
            logger.warning("Dropping %s %r payload: %s", stream.value, message.event, exc)
            return False
        health.messages += 1
        return True

    def _on_log(self, event: str, payload: Any) -> None:
        router = self.state.router
        if event == "history":
            router.replace_history(parse_log_history(payload))
        else:
            router.ingest(parse_log_event(payload))

    def _on_traffic(self, event: str, payload: Any) -> None:
        traffic = self.state.traffic
        if event == "snapshot":
            traffic.apply_snapshot(parse_edges(payload))
        else:
            traffic.apply_update(parse_edge(payload))
        self.state.clear_advisory(StreamName.TRAFFIC.value)

    def _on_call(self, event: str, payload: Any) -> None:
        traffic = self.state.traffic
        if event == "snapshot":
            traffic.replace_calls(parse_calls(payload))
        else:
            traffic.append_call(parse_call(payload))

    def _transport_error(self, stream: StreamName, exc: Exception) -> None:
        health = self.state.health[stream]
        health.last_error = str(exc) or type(exc).__name__
        logger.warning("%s stream error: %s", stream.value, health.last_error)

        if stream == StreamName.LOGS:
            self.state.raise_advisory(
                stream.value, AdvisoryLevel.WARNING, "Log stream disconnected; reconnecting."
            )
        elif self.state.traffic.edges_received == 0:
            # Capture is optional on the producer side; an idle run never sent an edge.
            self.state.raise_advisory(
                StreamName.TRAFFIC.value, AdvisoryLevel.INFO, TRAFFIC_DISABLED
            )
        else:
            self.state.raise_advisory(
                stream.value, AdvisoryLevel.WARNING, "Traffic stream disconnected; reconnecting."
            )
