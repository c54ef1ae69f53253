"""The client-wide state object: created at startup, closed on shutdown."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone

import httpx

from streamlens.config import StreamlensConfig
from streamlens.core.persistence import QueryLocation, UrlStateSync
from streamlens.core.router import LogRouter
from streamlens.core.services import DirectoryError, ServicePalette, fetch_services
from streamlens.core.traffic import TrafficAggregator, filter_calls, select_call
from streamlens.models.enums import AdvisoryLevel, StatusFilter, StreamName
from streamlens.models.logs import ServiceInfo
from streamlens.models.traffic import TrafficCall

logger = logging.getLogger("streamlens.state")


def _now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True, slots=True)
class Advisory:
    """A non-fatal banner shown to the operator."""

    source: str
    level: AdvisoryLevel
    message: str
    raised_at: datetime = field(default_factory=_now)


@dataclass(slots=True)
class StreamHealth:
    """Connection signals for one subscription."""

    connected: bool = False
    connects: int = 0
    messages: int = 0
    dropped: int = 0
    last_error: str | None = None


class ClientState:
    """Owns the router, the aggregator and everything the views derive from.

    Nothing here is process-global; tests and the CLI each build their own.
    """

    def __init__(
        self,
        config: StreamlensConfig | None = None,
        location: QueryLocation | None = None,
    ) -> None:
        self.config = config or StreamlensConfig()
        buffers = self.config.buffers
        self.router = LogRouter(buffers.history_limit, buffers.panel_limit)
        self.traffic = TrafficAggregator(buffers.call_limit, self.config.traffic.ranked_limit)
        self.location = location or QueryLocation()
        self.url_sync = UrlStateSync(
            self.router, self.location, self.config.stream.debounce_seconds
        )
        self.palette = ServicePalette()
        self.services: list[ServiceInfo] = []
        self.advisories: dict[str, Advisory] = {}
        self.health: dict[StreamName, StreamHealth] = {name: StreamHealth() for name in StreamName}
        self.status_filter = StatusFilter.ALL
        self.call_query = ""
        self.pinned_call: int | None = None
        self.closed = False

    # -- lifecycle ---------------------------------------------------------

    def start(self) -> None:
        """Restore panels from the location, or open a default one."""
        if not self.url_sync.restore() and not self.router.panels:
            self.router.create_panel()
        self.url_sync.start()

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        self.url_sync.flush()
        self.url_sync.close()

    async def load_services(self, client: httpx.AsyncClient) -> list[ServiceInfo]:
        try:
            self.services = await fetch_services(client, self.config.server.url)
        except DirectoryError as exc:
            logger.warning("%s", exc)
            self.services = []
            self.raise_advisory("services", AdvisoryLevel.BLOCKING, "Failed to load services.")
        else:
            self.clear_advisory("services")
            for service in self.services:
                self.palette.color_for(service.name)
        return self.services

    # -- advisories --------------------------------------------------------

    def raise_advisory(self, source: str, level: AdvisoryLevel, message: str) -> None:
        current = self.advisories.get(source)
        if current is None or current.message != message or current.level != level:
            self.advisories[source] = Advisory(source=source, level=level, message=message)

    def clear_advisory(self, source: str) -> None:
        self.advisories.pop(source, None)

    # -- call explorer -----------------------------------------------------

    def filtered_calls(self) -> list[TrafficCall]:
        return filter_calls(self.traffic.recent_calls(), self.status_filter, self.call_query)

    def selected_call(self) -> TrafficCall | None:
        return select_call(self.filtered_calls(), self.pinned_call)
