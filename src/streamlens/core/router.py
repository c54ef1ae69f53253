"""Bounded log history fanned out to filtered panels."""

from __future__ import annotations

import logging
from collections import Counter, deque
from collections.abc import Callable, Iterable

from streamlens.core.filters import matches
from streamlens.core.tokens import normalize_service_token, normalize_tokens
from streamlens.models.logs import LogEvent, Panel, PanelConfig

logger = logging.getLogger("streamlens.router")

HISTORY_LIMIT = 2000
PANEL_LIMIT = 800


class LogRouter:
    """Owns the global history and every panel's buffer.

    Panel buffers are derived: appended to per event, rebuilt from history
    whenever the history is replaced or the panel's filter changes. Readers
    get panels back but must not mutate ``logs`` themselves.
    """

    def __init__(self, history_limit: int = HISTORY_LIMIT, panel_limit: int = PANEL_LIMIT) -> None:
        self.history_limit = max(1, history_limit)
        self.panel_limit = max(1, min(panel_limit, self.history_limit))
        self.history: deque[LogEvent] = deque()
        self.panels: list[Panel] = []
        self.active_panel_id: str | None = None
        self._seqs: Counter[int] = Counter()
        self._panel_counter = 0
        self._listeners: list[Callable[[], None]] = []

    # -- observers ---------------------------------------------------------

    def subscribe(self, callback: Callable[[], None]) -> Callable[[], None]:
        """Call ``callback`` after every panel configuration change."""
        self._listeners.append(callback)

        def unsubscribe() -> None:
            if callback in self._listeners:
                self._listeners.remove(callback)

        return unsubscribe

    def _changed(self) -> None:
        for callback in list(self._listeners):
            callback()

    # -- history -----------------------------------------------------------

    def ingest(self, event: LogEvent) -> bool:
        """Append one event and route it. Returns False for a replayed seq."""
        if self._seqs[event.seq]:
            logger.debug("Dropping duplicate seq %d from %s", event.seq, event.service)
            return False

        evicted = self._push_history(event)
        for panel in self.panels:
            # A panel buffer is an ordered subset of history, so anything
            # evicted from history can only sit at the front of it.
            for old in evicted:
                if panel.logs and panel.logs[0] is old:
                    panel.logs.popleft()
            if matches(panel, event):
                panel.logs.append(event)
        return True

    def replace_history(self, events: Iterable[LogEvent]) -> None:
        """Seed history from an authoritative snapshot and rebuild every panel."""
        self.history = deque()
        self._seqs.clear()
        for event in events:
            self._push_history(event)
        for panel in self.panels:
            self._rebuild(panel)
        logger.debug("History replaced with %d events", len(self.history))

    def _push_history(self, event: LogEvent) -> list[LogEvent]:
        self.history.append(event)
        self._seqs[event.seq] += 1
        evicted = []
        while len(self.history) > self.history_limit:
            old = self.history.popleft()
            evicted.append(old)
            self._seqs[old.seq] -= 1
            if not self._seqs[old.seq]:
                del self._seqs[old.seq]
        return evicted

    def _rebuild(self, panel: Panel) -> None:
        panel.logs = deque(
            (event for event in self.history if matches(panel, event)),
            maxlen=self.panel_limit,
        )

    # -- panels ------------------------------------------------------------

    def get_panel(self, panel_id: str) -> Panel | None:
        for panel in self.panels:
            if panel.id == panel_id:
                return panel
        return None

    @property
    def active_panel(self) -> Panel | None:
        """The marked panel, or the first one when none is marked."""
        if self.active_panel_id is None:
            return self.panels[0] if self.panels else None
        return self.get_panel(self.active_panel_id)

    @property
    def active_index(self) -> int | None:
        for index, panel in enumerate(self.panels):
            if panel.id == self.active_panel_id:
                return index
        return None

    def create_panel(self, config: PanelConfig | None = None) -> Panel:
        self._panel_counter += 1
        number = self._panel_counter
        panel = Panel(
            id=f"panel-{number}",
            title=f"Panel {number}",
            logs=deque(maxlen=self.panel_limit),
            animation_delay=min(number * 0.05, 0.3),
        )
        if config is not None:
            services = [normalize_service_token(name) for name in config.services or ()]
            panel.filter = {name for name in services if name} or None
            panel.include = normalize_tokens(config.include)
            panel.exclude = normalize_tokens(config.exclude)
            panel.auto_scroll = config.follow
        self._rebuild(panel)

        self.panels.append(panel)
        if self.active_panel_id is None:
            self.active_panel_id = panel.id
        logger.debug("Created %s", panel.id)
        self._changed()
        return panel

    def close_panel(self, panel_id: str) -> bool:
        """Remove a panel. The last remaining panel cannot be closed."""
        panel = self.get_panel(panel_id)
        if panel is None or len(self.panels) <= 1:
            return False

        self.panels.remove(panel)
        if self.active_panel_id == panel_id:
            self.active_panel_id = self.panels[0].id if self.panels else None
        self._changed()
        return True

    def set_active(self, panel_id: str) -> Panel | None:
        panel = self.get_panel(panel_id)
        if panel is not None and self.active_panel_id != panel_id:
            self.active_panel_id = panel_id
            self._changed()
        return panel

    def restore(self, configs: Iterable[PanelConfig], active_index: int | None = None) -> list[Panel]:
        """Replace all panels with ones built from ``configs``."""
        self.panels = []
        self.active_panel_id = None
        created = [self.create_panel(config) for config in configs]
        if active_index is not None and 0 <= active_index < len(created):
            self.active_panel_id = created[active_index].id
        self._changed()
        return created

    # -- filters -----------------------------------------------------------

    def toggle_service(self, panel_id: str, name: str) -> Panel | None:
        """Add or remove ``name``. Removing the last member resets to all services."""
        panel = self.get_panel(panel_id)
        if panel is None:
            return None

        if panel.filter is None:
            panel.filter = {name}
        else:
            if name in panel.filter:
                panel.filter.discard(name)
            else:
                panel.filter.add(name)
            if not panel.filter:
                panel.filter = None
        return self._reconfigured(panel)

    def set_all_services(self, panel_id: str) -> Panel | None:
        panel = self.get_panel(panel_id)
        if panel is None:
            return None
        panel.filter = None
        return self._reconfigured(panel)

    def set_services(self, panel_id: str, names: Iterable[str]) -> Panel | None:
        panel = self.get_panel(panel_id)
        if panel is None:
            return None
        cleaned = {normalize_service_token(name) for name in names}
        cleaned.discard("")
        panel.filter = cleaned or None
        return self._reconfigured(panel)

    def focus_service(self, name: str) -> Panel:
        """Point the active panel (creating one if needed) at a single service."""
        panel = self.active_panel or self.create_panel()
        self.set_services(panel.id, [name])
        return panel

    def set_include(self, panel_id: str, tokens: Iterable[str]) -> Panel | None:
        panel = self.get_panel(panel_id)
        if panel is None:
            return None
        panel.include = normalize_tokens(tokens)
        return self._reconfigured(panel)

    def set_exclude(self, panel_id: str, tokens: Iterable[str]) -> Panel | None:
        panel = self.get_panel(panel_id)
        if panel is None:
            return None
        panel.exclude = normalize_tokens(tokens)
        return self._reconfigured(panel)

    def toggle_follow(self, panel_id: str) -> Panel | None:
        panel = self.get_panel(panel_id)
        if panel is None:
            return None
        panel.auto_scroll = not panel.auto_scroll
        self._changed()
        return panel

    def _reconfigured(self, panel: Panel) -> Panel:
        self._rebuild(panel)
        self._changed()
        return panel
