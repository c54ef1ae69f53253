"""Traffic aggregation: latest stats per edge and a ring buffer of calls."""

from __future__ import annotations

import json
import logging
from collections import deque
from collections.abc import Iterable, Sequence
from dataclasses import fields
from enum import Enum

from streamlens.models.enums import EdgeSort, StatusFilter
from streamlens.models.traffic import (
    EdgeKey,
    EntityId,
    FlowEdgeKey,
    TrafficCall,
    TrafficEdge,
)

logger = logging.getLogger("streamlens.traffic")

RANKED_LIMIT = 200
CALL_LIMIT = 500


def _plain(value: object) -> object:
    """Reduce a model to JSON-able primitives, tagging union members by kind."""
    if hasattr(value, "__dataclass_fields__"):
        data: dict[str, object] = {}
        kind = getattr(type(value), "kind", None)
        if isinstance(kind, str):
            data["kind"] = kind
        for f in fields(value):  # type: ignore[arg-type]
            data[f.name] = _plain(getattr(value, f.name))
        return data
    if isinstance(value, tuple):
        return [_plain(item) for item in value]
    if isinstance(value, Enum):
        return value.value
    return value


def canonical_key(key: EdgeKey) -> str:
    """Stable string for an edge key; structurally equal keys give equal strings."""
    return json.dumps(_plain(key), sort_keys=True, separators=(",", ":"))


def entity_label(entity: EntityId | None) -> str:
    return entity.label if entity is not None else "unknown"


def _sort_value(edge: TrafficEdge, sort: EdgeSort) -> int:
    stats = edge.stats
    if sort == EdgeSort.ERRORS:
        return stats.errors
    if sort == EdgeSort.BYTES:
        return stats.bytes_in + stats.bytes_out
    if sort == EdgeSort.P95:
        return stats.p95_ms if stats.p95_ms is not None else -1
    if sort == EdgeSort.LAST_SEEN:
        return edge.last_seen_ms
    return stats.count


class TrafficAggregator:
    """Latest snapshot per edge plus the most recent calls.

    Stats arrive already cumulative; an update replaces what is stored for
    its key rather than adding to it.
    """

    def __init__(self, call_limit: int = CALL_LIMIT, ranked_limit: int = RANKED_LIMIT) -> None:
        self.ranked_limit = ranked_limit
        self._edges: dict[str, TrafficEdge] = {}
        self._calls: deque[TrafficCall] = deque(maxlen=max(1, call_limit))
        self.edges_received = 0

    def __len__(self) -> int:
        return len(self._edges)

    @property
    def call_limit(self) -> int:
        return self._calls.maxlen or 0

    def apply_snapshot(self, edges: Iterable[TrafficEdge]) -> None:
        self._edges.clear()
        for edge in edges:
            self._edges[canonical_key(edge.key)] = edge
            self.edges_received += 1
        logger.debug("Traffic snapshot with %d edges", len(self._edges))

    def apply_update(self, edge: TrafficEdge) -> None:
        self._edges[canonical_key(edge.key)] = edge
        self.edges_received += 1

    def get_edge(self, key: EdgeKey | str) -> TrafficEdge | None:
        return self._edges.get(key if isinstance(key, str) else canonical_key(key))

    def ranked_view(self, sort: EdgeSort = EdgeSort.COUNT, limit: int | None = None) -> list[TrafficEdge]:
        """Top edges by ``sort`` descending, most recently seen first on ties.

        Returns a fresh list each call; the stored map is never reordered.
        """
        ranked = sorted(
            self._edges.values(),
            key=lambda edge: (_sort_value(edge, sort), edge.last_seen_ms),
            reverse=True,
        )
        return ranked[: self.ranked_limit if limit is None else limit]

    def append_call(self, call: TrafficCall) -> None:
        self._calls.append(call)

    def replace_calls(self, calls: Iterable[TrafficCall]) -> None:
        self._calls = deque(calls, maxlen=self._calls.maxlen)

    def calls(self) -> list[TrafficCall]:
        """Buffered calls, oldest first."""
        return list(self._calls)

    def recent_calls(self) -> list[TrafficCall]:
        return list(reversed(self._calls))


def filter_edges(edges: Iterable[TrafficEdge], query: str) -> list[TrafficEdge]:
    needle = query.strip().lower()
    if not needle:
        return list(edges)
    return [edge for edge in edges if needle in edge_search_text(edge)]


def edge_search_text(edge: TrafficEdge) -> str:
    key = edge.key
    parts = [key.kind, entity_label(key.src), entity_label(key.dst), key.detail]
    if isinstance(key, FlowEdgeKey):
        parts.append(str(key.port))
    return " ".join(parts).lower()


def status_text(status: int | None) -> str:
    return str(status) if status is not None else "no status"


def call_search_text(call: TrafficCall) -> str:
    """Everything a free-text call search looks at, lowercased."""
    parts = [
        call.method or "",
        call.path or "",
        call.request_header("host") or "",
        call.correlation.request_id or "",
        entity_label(call.peer.src),
        entity_label(call.peer.dst),
        status_text(call.status),
    ]
    return " ".join(parts).lower()


def matches_status(call: TrafficCall, status_filter: StatusFilter | str) -> bool:
    status_filter = StatusFilter(status_filter)
    if status_filter == StatusFilter.ALL:
        return True
    if status_filter == StatusFilter.ERROR:
        return call.status is None or call.status >= 400
    if call.status is None:
        return False
    floor = int(status_filter.value[0]) * 100
    return floor <= call.status < floor + 100


def filter_calls(
    calls: Iterable[TrafficCall],
    status_filter: StatusFilter | str = StatusFilter.ALL,
    query: str = "",
) -> list[TrafficCall]:
    needle = query.strip().lower()
    return [
        call
        for call in calls
        if matches_status(call, status_filter) and (not needle or needle in call_search_text(call))
    ]


def select_call(filtered: Sequence[TrafficCall], pinned_seq: int | None) -> TrafficCall | None:
    """The pinned call if it survived filtering, else the first one."""
    if pinned_seq is not None:
        for call in filtered:
            if call.seq == pinned_seq:
                return call
    return filtered[0] if filtered else None
