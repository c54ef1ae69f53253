"""Log stream and panel models."""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field


@dataclass(frozen=True, slots=True)
class LogEvent:
    """One captured container output line. Ordered by producer-assigned ``seq``."""

    seq: int
    service: str
    line: str
    timestamp: str | None = None


@dataclass(frozen=True, slots=True)
class ServiceInfo:
    """An entry from the services directory."""

    name: str
    endpoints: tuple[str, ...] = ()
    endpoint: str | None = None
    exposed: bool = False


@dataclass(frozen=True, slots=True)
class PanelConfig:
    """The persisted subset of a panel: what goes into the share link."""

    services: tuple[str, ...] | None = None
    include: tuple[str, ...] = ()
    exclude: tuple[str, ...] = ()
    follow: bool = True


@dataclass(slots=True)
class Panel:
    """An independently filtered live view over the shared history.

    ``filter`` is ``None`` for all services and otherwise never empty.
    ``logs`` is a cache of the history filtered by this panel; the router
    owns it.
    """

    id: str
    title: str
    filter: set[str] | None = None
    include: list[str] = field(default_factory=list)
    exclude: list[str] = field(default_factory=list)
    auto_scroll: bool = True
    logs: deque[LogEvent] = field(default_factory=deque)
    animation_delay: float = 0.0

    def to_config(self) -> PanelConfig:
        return PanelConfig(
            services=tuple(sorted(self.filter)) if self.filter else None,
            include=tuple(self.include),
            exclude=tuple(self.exclude),
            follow=self.auto_scroll,
        )
