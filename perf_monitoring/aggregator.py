"""Summary statistics and tabular views over collected metrics."""
from __future__ import annotations

from collections import Counter
from typing import Any, Dict, List, Optional, Sequence

import numpy as np
import pandas as pd

from .models import (
    CollectedMetrics,
    ComponentMetrics,
    MemoryUsage,
    Metric,
    MetricsSnapshot,
    NetworkRequest,
    metric_to_dict,
)

SLOWEST_ENDPOINT_LIMIT = 5
_BASE_COLUMNS = ["id", "timestamp", "type", "value"]


def _describe(values: Sequence[float]) -> Dict[str, float]:
    array = np.asarray(values, dtype=float)
    if array.size == 0:
        return {"count": 0, "average": 0.0, "max": 0.0, "min": 0.0}
    return {
        "count": int(array.size),
        "average": float(array.mean()),
        "max": float(array.max()),
        "min": float(array.min()),
    }


class MetricsAggregator:
    """Namespace of helpers that summarise a :class:`CollectedMetrics`."""

    @staticmethod
    def aggregate(collected: CollectedMetrics) -> Dict[str, Any]:
        return {
            "renders": MetricsAggregator.aggregate_renders(collected.renders),
            "memory": MetricsAggregator.aggregate_memory(collected.memory),
            "network": MetricsAggregator.aggregate_network(collected.network),
            "custom": MetricsAggregator.aggregate_custom(collected.custom),
        }

    @staticmethod
    def aggregate_renders(metrics: Sequence[Metric]) -> Dict[str, Any]:
        by_component: Dict[str, List[float]] = {}
        for metric in metrics:
            by_component.setdefault(str(metric.metadata.get("component_id", "")), []).append(metric.value)

        stats = _describe([metric.value for metric in metrics])
        return {
            "count": stats["count"],
            "average_duration": stats["average"],
            "max_duration": stats["max"],
            "min_duration": stats["min"],
            "component_breakdown": {
                component_id: {
                    "count": len(durations),
                    "average_duration": float(np.mean(durations)),
                }
                for component_id, durations in by_component.items()
            },
        }

    @staticmethod
    def aggregate_memory(metrics: Sequence[Metric]) -> Dict[str, float]:
        used = _describe([float(m.metadata.get("heap_used", m.value)) for m in metrics])
        total = _describe([float(m.metadata.get("heap_total", 0.0)) for m in metrics])
        return {
            "average_heap_used": used["average"],
            "max_heap_used": used["max"],
            "min_heap_used": used["min"],
            "average_heap_total": total["average"],
        }

    @staticmethod
    def aggregate_network(metrics: Sequence[Metric]) -> Dict[str, Any]:
        stats = _describe([metric.value for metric in metrics])
        by_status = Counter(int(metric.metadata.get("status") or 0) for metric in metrics)
        slowest = sorted(metrics, key=lambda metric: metric.value, reverse=True)[:SLOWEST_ENDPOINT_LIMIT]
        return {
            "count": stats["count"],
            "average_duration": stats["average"],
            "max_duration": stats["max"],
            "min_duration": stats["min"],
            "by_status": dict(by_status),
            "slowest_endpoints": [
                {"url": str(metric.metadata.get("url", "")), "duration": metric.value} for metric in slowest
            ],
        }

    @staticmethod
    def aggregate_custom(metrics: Sequence[Metric]) -> Dict[str, Any]:
        by_name: Dict[str, List[float]] = {}
        for metric in metrics:
            by_name.setdefault(str(metric.metadata.get("name", "")), []).append(metric.value)

        summary: Dict[str, Dict[str, float]] = {}
        for name, values in by_name.items():
            stats = _describe(values)
            summary[name] = {
                "count": stats["count"],
                "latest": values[-1],
                "average": stats["average"],
                "max": stats["max"],
                "min": stats["min"],
            }
        return {"by_name": summary}

    @staticmethod
    def build_alert_snapshot(
        collected: CollectedMetrics,
        network_after: Optional[str] = None,
    ) -> MetricsSnapshot:
        """Build the snapshot evaluated by :class:`AlertManager`.

        ``network_after`` is the id of the last network metric already
        evaluated; only requests recorded after it are included. When the id
        is no longer buffered every buffered request is newer than it.
        """

        components: Dict[str, ComponentMetrics] = {}
        render_values: Dict[str, List[float]] = {}
        for metric in collected.renders:
            render_values.setdefault(str(metric.metadata.get("component_id", "")), []).append(metric.value)
        for component_id, durations in render_values.items():
            components[component_id] = ComponentMetrics(
                last_render_time=durations[-1],
                average_render_time=float(np.mean(durations)),
                render_count=len(durations),
            )

        network_metrics = list(collected.network)
        if network_after is not None:
            for index, metric in enumerate(network_metrics):
                if metric.id == network_after:
                    network_metrics = network_metrics[index + 1:]
                    break
        network = [
            NetworkRequest(
                url=str(metric.metadata.get("url", "")),
                duration=metric.value,
                status=metric.metadata.get("status"),
            )
            for metric in network_metrics
        ]

        memory = MemoryUsage()
        if collected.memory:
            latest = collected.memory[-1]
            memory = MemoryUsage(
                used=float(latest.metadata.get("heap_used", latest.value)),
                total=float(latest.metadata.get("heap_total", 0.0)),
            )

        custom: Dict[str, float] = {}
        for metric in collected.custom:
            custom[str(metric.metadata.get("name", ""))] = metric.value

        return MetricsSnapshot(components=components, network=network, memory=memory, custom=custom)

    @staticmethod
    def to_dataframe(collected: CollectedMetrics) -> pd.DataFrame:
        """Flatten metrics into a DataFrame with ``metadata.*`` columns."""

        records = [metric_to_dict(metric) for metric in collected.all()]
        if not records:
            return pd.DataFrame(columns=_BASE_COLUMNS)
        frame = pd.json_normalize(records)
        frame["timestamp"] = pd.to_datetime(frame["timestamp"], unit="ms")
        return frame


__all__ = ["MetricsAggregator", "SLOWEST_ENDPOINT_LIMIT"]
