"""streamlens data models."""

from streamlens.models.enums import (
    AdvisoryLevel,
    Confidence,
    EdgeSort,
    StatusFilter,
    StreamName,
    TransportKind,
    Visibility,
)
from streamlens.models.logs import LogEvent, Panel, PanelConfig, ServiceInfo
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

__all__ = [
    "AdvisoryLevel",
    "Confidence",
    "EdgeSort",
    "StatusFilter",
    "StreamName",
    "TransportKind",
    "Visibility",
    "LogEvent",
    "Panel",
    "PanelConfig",
    "ServiceInfo",
    "Correlation",
    "EdgeKey",
    "EdgeStats",
    "EntityId",
    "ExternalEntity",
    "FlowEdgeKey",
    "FlowKey",
    "GrpcEdgeKey",
    "HostEntity",
    "HttpEdgeKey",
    "ObservationAttrs",
    "Peer",
    "Socket",
    "TrafficCall",
    "TrafficEdge",
    "Transport",
    "UnknownEntity",
    "WorkloadEntity",
]
