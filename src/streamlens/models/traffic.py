"""Frozen dataclass models for observed network traffic."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import ClassVar, Union

from streamlens.models.enums import Confidence, TransportKind, Visibility


@dataclass(frozen=True, slots=True)
class WorkloadEntity:
    """A compose service container, optionally a specific replica."""

    kind: ClassVar[str] = "workload"
    name: str
    instance: str | None = None

    @property
    def label(self) -> str:
        return f"{self.name}/{self.instance}" if self.instance else self.name


@dataclass(frozen=True, slots=True)
class ExternalEntity:
    """An address outside the compose project."""

    kind: ClassVar[str] = "external"
    ip: str
    dns_name: str | None = None

    @property
    def label(self) -> str:
        return self.dns_name or self.ip


@dataclass(frozen=True, slots=True)
class HostEntity:
    kind: ClassVar[str] = "host"
    name: str

    @property
    def label(self) -> str:
        return self.name


@dataclass(frozen=True, slots=True)
class UnknownEntity:
    kind: ClassVar[str] = "unknown"

    @property
    def label(self) -> str:
        return "unknown"


EntityId = Union[WorkloadEntity, ExternalEntity, HostEntity, UnknownEntity]


@dataclass(frozen=True, slots=True)
class Socket:
    ip: str
    port: int


@dataclass(frozen=True, slots=True)
class Transport:
    """tcp, udp, or another IP protocol identified by its number."""

    kind: TransportKind = TransportKind.TCP
    code: int | None = None

    @property
    def label(self) -> str:
        if self.kind == TransportKind.OTHER:
            return f"proto-{self.code}"
        return self.kind.value


@dataclass(frozen=True, slots=True)
class FlowKey:
    src: Socket
    dst: Socket
    transport: Transport = field(default_factory=Transport)


@dataclass(frozen=True, slots=True)
class FlowEdgeKey:
    """A raw L4 relationship between two entities on one destination port."""

    kind: ClassVar[str] = "flow"
    src: EntityId
    dst: EntityId
    transport: Transport
    port: int

    @property
    def detail(self) -> str:
        return f"{self.transport.label}/{self.port}"


@dataclass(frozen=True, slots=True)
class HttpEdgeKey:
    kind: ClassVar[str] = "http"
    src: EntityId
    dst: EntityId
    method: str
    route: str

    @property
    def detail(self) -> str:
        return f"{self.method} {self.route}"


@dataclass(frozen=True, slots=True)
class GrpcEdgeKey:
    kind: ClassVar[str] = "grpc"
    src: EntityId
    dst: EntityId
    service: str
    method: str

    @property
    def detail(self) -> str:
        return f"{self.service}/{self.method}"


EdgeKey = Union[FlowEdgeKey, HttpEdgeKey, GrpcEdgeKey]


@dataclass(frozen=True, slots=True)
class EdgeStats:
    """Cumulative counters as reported by the producer."""

    count: int = 0
    bytes_in: int = 0
    bytes_out: int = 0
    errors: int = 0
    p50_ms: int | None = None
    p95_ms: int | None = None
    visibility: Visibility = Visibility.L4_FLOW


@dataclass(frozen=True, slots=True)
class TrafficEdge:
    key: EdgeKey
    stats: EdgeStats
    last_seen_ms: int


@dataclass(frozen=True, slots=True)
class Peer:
    src: EntityId | None = None
    dst: EntityId | None = None
    raw: FlowKey | None = None


@dataclass(frozen=True, slots=True)
class Correlation:
    request_id: str | None = None
    trace_id: str | None = None
    span_id: str | None = None


@dataclass(frozen=True, slots=True)
class ObservationAttrs:
    visibility: Visibility = Visibility.L4_FLOW
    confidence: Confidence = Confidence.UNCERTAIN
    tags: tuple[tuple[str, str], ...] = ()


@dataclass(frozen=True, slots=True)
class TrafficCall:
    """One observed request/response exchange. Headers keep wire order."""

    seq: int
    at_ms: int = 0
    peer: Peer = field(default_factory=Peer)
    method: str | None = None
    path: str | None = None
    status: int | None = None
    duration_ms: int | None = None
    bytes_in: int | None = None
    bytes_out: int | None = None
    request_headers: tuple[tuple[str, str], ...] = ()
    response_headers: tuple[tuple[str, str], ...] = ()
    request_body: str | None = None
    response_body: str | None = None
    correlation: Correlation = field(default_factory=Correlation)
    attrs: ObservationAttrs = field(default_factory=ObservationAttrs)

    def request_header(self, name: str) -> str | None:
        """Case-insensitive lookup of a captured request header."""
        wanted = name.lower()
        for key, value in self.request_headers:
            if key.lower() == wanted:
                return value
        return None
