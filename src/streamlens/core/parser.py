"""Decoding of stream payloads into typed records.

Every parser either returns a fully built model or raises ``PayloadError``;
nothing half-parsed reaches the router or the aggregator.
"""

from __future__ import annotations

import json
from typing import Any

from streamlens.models.enums import Confidence, TransportKind, Visibility
from streamlens.models.logs import LogEvent, ServiceInfo
from streamlens.models.traffic import (
    Correlation,
    EdgeKey,
    EdgeStats,
    EntityId,
    ExternalEntity,
    FlowEdgeKey,
    FlowKey,
    GrpcEdgeKey,
    HostEntity,
    HttpEdgeKey,
    ObservationAttrs,
    Peer,
    Socket,
    TrafficCall,
    TrafficEdge,
    Transport,
    UnknownEntity,
    WorkloadEntity,
)


class PayloadError(ValueError):
    """A stream payload had the wrong shape."""


def load_json(data: str) -> Any:
    try:
        return json.loads(data)
    except (ValueError, RecursionError) as exc:
        raise PayloadError(f"invalid JSON: {exc}") from exc


def _object(value: Any, what: str) -> dict[str, Any]:
    if not isinstance(value, dict):
        raise PayloadError(f"{what} must be an object, got {type(value).__name__}")
    return value


def _array(value: Any, what: str) -> list[Any]:
    if not isinstance(value, list):
        raise PayloadError(f"{what} must be an array, got {type(value).__name__}")
    return value


def _str(data: dict[str, Any], key: str) -> str:
    value = data.get(key)
    if not isinstance(value, str):
        raise PayloadError(f"{key!r} must be a string")
    return value


def _opt_str(data: dict[str, Any], key: str) -> str | None:
    value = data.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise PayloadError(f"{key!r} must be a string or null")
    return value


def _int(data: dict[str, Any], key: str) -> int:
    value = data.get(key)
    # bool is an int subclass; reject it explicitly
    if not isinstance(value, int) or isinstance(value, bool):
        raise PayloadError(f"{key!r} must be an integer")
    return value


def _opt_int(data: dict[str, Any], key: str) -> int | None:
    if data.get(key) is None:
        return None
    return _int(data, key)


def _pairs(data: dict[str, Any], key: str) -> tuple[tuple[str, str], ...]:
    value = data.get(key) or {}
    mapping = _object(value, key)
    return tuple((str(k), str(v)) for k, v in mapping.items())


def _enum(enum_cls: type, value: Any, what: str) -> Any:
    try:
        return enum_cls(value)
    except ValueError as exc:
        raise PayloadError(f"unknown {what} {value!r}") from exc


# -- logs -----------------------------------------------------------------


def parse_log_event(value: Any) -> LogEvent:
    data = _object(value, "log event")
    return LogEvent(
        seq=_int(data, "seq"),
        service=_str(data, "service"),
        line=str(data.get("line", "")),
        timestamp=_opt_str(data, "container_ts" if "container_ts" in data else "timestamp"),
    )


def parse_log_history(value: Any) -> list[LogEvent]:
    return [parse_log_event(item) for item in _array(value, "history")]


def parse_services(value: Any) -> list[ServiceInfo]:
    data = _object(value, "services response")
    services = []
    for item in _array(data.get("services", []), "services"):
        entry = _object(item, "service")
        endpoints = entry.get("endpoints") or []
        services.append(
            ServiceInfo(
                name=_str(entry, "name"),
                endpoints=tuple(str(e) for e in _array(endpoints, "endpoints")),
                endpoint=_opt_str(entry, "endpoint"),
                exposed=bool(entry.get("exposed", False)),
            )
        )
    return services


# -- traffic --------------------------------------------------------------


def parse_entity(value: Any) -> EntityId:
    data = _object(value, "entity")
    kind = data.get("kind")
    if kind == "workload":
        return WorkloadEntity(name=_str(data, "name"), instance=_opt_str(data, "instance"))
    if kind == "external":
        return ExternalEntity(ip=_str(data, "ip"), dns_name=_opt_str(data, "dns_name"))
    if kind == "host":
        return HostEntity(name=_str(data, "name"))
    if kind == "unknown":
        return UnknownEntity()
    raise PayloadError(f"unknown entity kind {kind!r}")


def _opt_entity(data: dict[str, Any], key: str) -> EntityId | None:
    value = data.get(key)
    return parse_entity(value) if value is not None else None


def parse_transport(value: Any) -> Transport:
    data = _object(value, "transport")
    kind = _enum(TransportKind, data.get("kind"), "transport")
    if kind == TransportKind.OTHER:
        return Transport(kind=kind, code=_int(data, "code"))
    return Transport(kind=kind)


def _socket(value: Any) -> Socket:
    data = _object(value, "socket")
    return Socket(ip=_str(data, "ip"), port=_int(data, "port"))


def parse_flow_key(value: Any) -> FlowKey:
    data = _object(value, "flow key")
    return FlowKey(
        src=_socket(data.get("src")),
        dst=_socket(data.get("dst")),
        transport=parse_transport(data.get("transport")),
    )


def parse_edge_key(value: Any) -> EdgeKey:
    data = _object(value, "edge key")
    kind = data.get("kind")
    src = parse_entity(data.get("from"))
    dst = parse_entity(data.get("to"))
    if kind == "flow":
        return FlowEdgeKey(
            src=src, dst=dst, transport=parse_transport(data.get("transport")), port=_int(data, "port")
        )
    if kind == "http":
        return HttpEdgeKey(src=src, dst=dst, method=_str(data, "method"), route=_str(data, "route"))
    if kind == "grpc":
        return GrpcEdgeKey(src=src, dst=dst, service=_str(data, "service"), method=_str(data, "method"))
    raise PayloadError(f"unknown edge kind {kind!r}")


def parse_edge(value: Any) -> TrafficEdge:
    data = _object(value, "edge")
    stats = _object(data.get("stats"), "stats")
    return TrafficEdge(
        key=parse_edge_key(data.get("key")),
        stats=EdgeStats(
            count=_int(stats, "count"),
            bytes_in=_opt_int(stats, "bytes_in") or 0,
            bytes_out=_opt_int(stats, "bytes_out") or 0,
            errors=_opt_int(stats, "errors") or 0,
            p50_ms=_opt_int(stats, "p50_ms"),
            p95_ms=_opt_int(stats, "p95_ms"),
            visibility=_enum(Visibility, stats.get("visibility", "l4_flow"), "visibility"),
        ),
        last_seen_ms=_int(data, "last_seen_ms"),
    )


def parse_edges(value: Any) -> list[TrafficEdge]:
    return [parse_edge(item) for item in _array(value, "edges")]


def _peer(value: Any) -> Peer:
    data = _object(value or {}, "peer")
    raw = data.get("raw")
    return Peer(
        src=_opt_entity(data, "src"),
        dst=_opt_entity(data, "dst"),
        raw=parse_flow_key(raw) if raw is not None else None,
    )


def _attrs(value: Any) -> ObservationAttrs:
    data = _object(value or {}, "attrs")
    return ObservationAttrs(
        visibility=_enum(Visibility, data.get("visibility", "l4_flow"), "visibility"),
        confidence=_enum(Confidence, data.get("confidence", "uncertain"), "confidence"),
        tags=_pairs(data, "tags"),
    )


def parse_call(value: Any) -> TrafficCall:
    data = _object(value, "call")
    correlation = _object(data.get("correlation") or {}, "correlation")
    return TrafficCall(
        seq=_int(data, "seq"),
        at_ms=_opt_int(data, "at_ms") or 0,
        peer=_peer(data.get("peer")),
        method=_opt_str(data, "method"),
        path=_opt_str(data, "path"),
        status=_opt_int(data, "status"),
        duration_ms=_opt_int(data, "duration_ms"),
        bytes_in=_opt_int(data, "bytes_in"),
        bytes_out=_opt_int(data, "bytes_out"),
        request_headers=_pairs(data, "request_headers"),
        response_headers=_pairs(data, "response_headers"),
        request_body=_opt_str(data, "request_body"),
        response_body=_opt_str(data, "response_body"),
        correlation=Correlation(
            request_id=_opt_str(correlation, "request_id"),
            trace_id=_opt_str(correlation, "trace_id"),
            span_id=_opt_str(correlation, "span_id"),
        ),
        attrs=_attrs(data.get("attrs")),
    )


def parse_calls(value: Any) -> list[TrafficCall]:
    return [parse_call(item) for item in _array(value, "calls")]
