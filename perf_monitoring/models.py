"""Data models used by the monitoring subsystem."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from types import MappingProxyType
from typing import Any, Callable, Dict, List, Mapping, NamedTuple, Optional, Tuple


class MetricKind(Enum):
    """Kind of observation captured by the collector."""

    RENDER = "render"
    MEMORY = "memory"
    NETWORK = "network"
    CUSTOM = "custom"


class AlertSeverity(Enum):
    """Severity for thresholds and the alerts they raise."""

    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


MetricCallback = Callable[[float], None]


@dataclass(frozen=True)
class Metric:
    """A single timestamped observation. ``timestamp`` is epoch milliseconds."""

    id: str
    timestamp: int
    type: MetricKind
    value: float
    metadata: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "metadata", MappingProxyType(dict(self.metadata)))


def metric_to_dict(metric: Metric) -> Dict[str, Any]:
    """Convert a metric into a JSON-friendly dictionary."""

    metadata: Dict[str, Any] = {}
    for key, value in metric.metadata.items():
        metadata[key] = dict(value) if isinstance(value, Mapping) else value
    return {
        "id": metric.id,
        "timestamp": metric.timestamp,
        "type": metric.type.value,
        "value": metric.value,
        "metadata": metadata,
    }


@dataclass
class CollectedMetrics:
    """Buffer contents partitioned by metric kind."""

    renders: List[Metric] = field(default_factory=list)
    memory: List[Metric] = field(default_factory=list)
    network: List[Metric] = field(default_factory=list)
    custom: List[Metric] = field(default_factory=list)

    def all(self) -> List[Metric]:
        merged = self.renders + self.memory + self.network + self.custom
        return sorted(merged, key=lambda metric: metric.timestamp)


@dataclass(frozen=True)
class MemoryStats:
    used: float
    total: float
    limit: float


@dataclass(frozen=True)
class NetworkStats:
    requests: int
    errors: int
    average_time: float


@dataclass(frozen=True)
class AlertThreshold:
    """Numeric bound plus severity evaluated against one metric kind.

    ``metric_name`` binds a custom threshold to a metric channel explicitly;
    without it the name is derived from ``name``.
    """

    id: str
    name: str
    description: str
    type: MetricKind
    severity: AlertSeverity
    value: float
    metric_name: Optional[str] = None


class AlertKey(NamedTuple):
    """Identity of an active alert: owning threshold plus ordered context."""

    threshold_id: str
    context: Tuple[str, ...]

    def render(self) -> str:
        return ":".join((self.threshold_id,) + self.context)


@dataclass(frozen=True)
class Alert:
    """State of one threshold being exceeded for one context."""

    id: str
    threshold_id: str
    message: str
    severity: AlertSeverity
    timestamp: int
    value: float
    resolved: bool = False
    resolved_at: Optional[int] = None
    context: Tuple[str, ...] = ()

    def resolve(self, resolved_at: int) -> "Alert":
        return replace(self, resolved=True, resolved_at=resolved_at)


@dataclass
class AlertConfig:
    """Shorthand used by ``configure_alert`` to build a custom threshold."""

    threshold: float
    level: AlertSeverity = AlertSeverity.WARNING
    description: Optional[str] = None
    on_trigger: Optional[Callable[[str, AlertSeverity], None]] = None
    on_resolve: Optional[Callable[[], None]] = None

    def __post_init__(self) -> None:
        if isinstance(self.level, str):
            self.level = AlertSeverity(self.level.lower())

    @classmethod
    def coerce(cls, value: "AlertConfig | Mapping[str, Any]") -> "AlertConfig":
        if isinstance(value, AlertConfig):
            return value
        return cls(**dict(value))


@dataclass(frozen=True)
class ComponentMetrics:
    last_render_time: float
    average_render_time: float = 0.0
    render_count: int = 0


@dataclass(frozen=True)
class NetworkRequest:
    url: str
    duration: float
    status: Optional[int] = None


@dataclass(frozen=True)
class MemoryUsage:
    used: float = 0.0
    total: float = 0.0


@dataclass
class MetricsSnapshot:
    """Aggregated view handed to :meth:`AlertManager.check_thresholds`."""

    components: Dict[str, ComponentMetrics] = field(default_factory=dict)
    network: List[NetworkRequest] = field(default_factory=list)
    memory: MemoryUsage = field(default_factory=MemoryUsage)
    custom: Dict[str, float] = field(default_factory=dict)

    @classmethod
    def coerce(cls, value: "MetricsSnapshot | Mapping[str, Any]") -> "MetricsSnapshot":
        """Accept a snapshot or a plain mapping in the same shape."""

        if isinstance(value, MetricsSnapshot):
            return value

        components: Dict[str, ComponentMetrics] = {}
        for component_id, item in (value.get("components") or {}).items():
            if isinstance(item, ComponentMetrics):
                components[component_id] = item
            else:
                components[component_id] = ComponentMetrics(**dict(item))

        network: List[NetworkRequest] = []
        for item in value.get("network") or []:
            network.append(item if isinstance(item, NetworkRequest) else NetworkRequest(**dict(item)))

        memory = value.get("memory") or {}
        if not isinstance(memory, MemoryUsage):
            memory = MemoryUsage(**dict(memory))

        custom: Dict[str, float] = {}
        for name, item in (value.get("custom") or {}).items():
            custom[name] = float(item["value"]) if isinstance(item, Mapping) else float(item)

        return cls(components=components, network=network, memory=memory, custom=custom)


__all__ = [
    "Alert",
    "AlertConfig",
    "AlertKey",
    "AlertSeverity",
    "AlertThreshold",
    "CollectedMetrics",
    "ComponentMetrics",
    "MemoryStats",
    "MemoryUsage",
    "Metric",
    "MetricCallback",
    "MetricKind",
    "MetricsSnapshot",
    "NetworkRequest",
    "NetworkStats",
    "metric_to_dict",
]
