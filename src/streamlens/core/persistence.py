"""Debounced write-back of panel state into the share link."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable

from streamlens.core.router import LogRouter
from streamlens.core.url_state import (
    build_query_string,
    read_state_from_query,
    serialize_panels_config,
    state_signature,
)

logger = logging.getLogger("streamlens.url_state")


class Debouncer:
    """Run ``callback`` once, ``delay`` seconds after the last ``schedule()``."""

    def __init__(self, delay: float, callback: Callable[[], None]) -> None:
        self.delay = delay
        self._callback = callback
        self._handle: asyncio.TimerHandle | None = None

    @property
    def pending(self) -> bool:
        return self._handle is not None

    def schedule(self) -> None:
        """Restart the window. Without a running loop the callback runs at once."""
        self.cancel()
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            self._callback()
            return
        self._handle = loop.call_later(self.delay, self._fire)

    def cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def flush(self) -> None:
        """Fire now if a call is pending."""
        if self._handle is not None:
            self.cancel()
            self._callback()

    def _fire(self) -> None:
        self._handle = None
        self._callback()


class QueryLocation:
    """The current query string, standing in for the browser address bar."""

    def __init__(self, query: str = "", on_write: Callable[[str], None] | None = None) -> None:
        self.query = query
        self.writes = 0
        self._on_write = on_write

    def replace(self, query: str) -> None:
        self.query = query
        self.writes += 1
        if self._on_write is not None:
            self._on_write(query)


class UrlStateSync:
    """Keeps ``location`` in step with the router's panels.

    Mutations reschedule a single debounced write; a write is skipped when
    its signature matches the last one written, and no writes are scheduled
    while a restore from the location is running.
    """

    def __init__(self, router: LogRouter, location: QueryLocation, delay: float = 0.25) -> None:
        self.router = router
        self.location = location
        self.restoring = False
        self.last_signature: str | None = None
        self._debouncer = Debouncer(delay, self.write_now)
        self._unsubscribe: Callable[[], None] | None = None

    def start(self) -> None:
        if self._unsubscribe is None:
            self._unsubscribe = self.router.subscribe(self.schedule)

    def close(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        self._debouncer.cancel()

    def schedule(self) -> None:
        if self.restoring:
            return
        self._debouncer.schedule()

    def flush(self) -> None:
        self._debouncer.flush()

    def restore(self) -> bool:
        """Rebuild panels from the location. Returns False if it held none."""
        panels, active_index = read_state_from_query(self.location.query)
        if not panels:
            return False

        self.restoring = True
        try:
            self.router.restore(panels, active_index)
        finally:
            self.restoring = False
        self.last_signature = state_signature(self.router.panels, self.router.active_index)
        logger.debug("Restored %d panels from query", len(panels))
        return True

    def write_now(self) -> bool:
        panels = self.router.panels
        active_index = self.router.active_index
        signature = state_signature(panels, active_index)
        if signature == self.last_signature:
            return False

        query = build_query_string(
            self.location.query, serialize_panels_config(panels), active_index
        )
        self.location.replace(query)
        self.last_signature = signature
        logger.debug("Wrote panel state: %s", query)
        return True
