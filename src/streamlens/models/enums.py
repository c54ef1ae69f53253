"""Enumerations for streamlens models."""

from __future__ import annotations

from enum import Enum


class Visibility(str, Enum):
    """How deep the capture understood an observation, shallowest first."""

    L4_FLOW = "l4_flow"
    L7_ENVELOPE = "l7_envelope"
    L7_SEMANTICS = "l7_semantics"

    @property
    def depth(self) -> int:
        return _VISIBILITY_ORDER.index(self)

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, Visibility):
            return NotImplemented
        return self.depth < other.depth

    def __gt__(self, other: object) -> bool:
        if not isinstance(other, Visibility):
            return NotImplemented
        return self.depth > other.depth

    def __le__(self, other: object) -> bool:
        if not isinstance(other, Visibility):
            return NotImplemented
        return self.depth <= other.depth

    def __ge__(self, other: object) -> bool:
        if not isinstance(other, Visibility):
            return NotImplemented
        return self.depth >= other.depth

    @classmethod
    def merge(cls, current: Visibility, incoming: Visibility) -> Visibility:
        """Return the deeper of two tiers."""
        return incoming if current < incoming else current


_VISIBILITY_ORDER = (Visibility.L4_FLOW, Visibility.L7_ENVELOPE, Visibility.L7_SEMANTICS)


class Confidence(str, Enum):
    """Certainty of peer and correlation attribution."""

    EXACT = "exact"
    LIKELY = "likely"
    UNCERTAIN = "uncertain"


class TransportKind(str, Enum):
    TCP = "tcp"
    UDP = "udp"
    OTHER = "other"


class StatusFilter(str, Enum):
    """Status classes offered by the call table."""

    ALL = "all"
    S2XX = "2xx"
    S3XX = "3xx"
    S4XX = "4xx"
    S5XX = "5xx"
    ERROR = "error"


class EdgeSort(str, Enum):
    """Columns the ranked edge view can be ordered by."""

    COUNT = "count"
    ERRORS = "errors"
    BYTES = "bytes"
    P95 = "p95"
    LAST_SEEN = "last_seen"


class StreamName(str, Enum):
    """The three server-push channels."""

    LOGS = "logs"
    TRAFFIC = "traffic"
    CALLS = "calls"


class AdvisoryLevel(str, Enum):
    """Severity of a user-visible advisory banner."""

    INFO = "info"
    WARNING = "warning"
    BLOCKING = "blocking"
