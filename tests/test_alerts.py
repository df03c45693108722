"""Tests for threshold evaluation in AlertManager."""
from __future__ import annotations

from perf_monitoring.alerts import AlertManager, derive_metric_name
from perf_monitoring.models import (
    AlertConfig,
    AlertSeverity,
    AlertThreshold,
    ComponentMetrics,
    MemoryUsage,
    MetricKind,
    MetricsSnapshot,
    NetworkRequest,
)


def _render_snapshot(**components: float) -> MetricsSnapshot:
    return MetricsSnapshot(
        components={
            name: ComponentMetrics(last_render_time=value, average_render_time=value, render_count=1)
            for name, value in components.items()
        },
        memory=MemoryUsage(used=10.0, total=100.0),
    )


def test_default_thresholds_are_installed():
    manager = AlertManager()
    ids = [threshold.id for threshold in manager.get_thresholds()]
    assert ids == ["default_render_time", "default_memory_usage", "default_network_time"]

    assert AlertManager(include_defaults=False).get_thresholds() == []


def test_slow_render_triggers_then_resolves():
    manager = AlertManager()
    received = []
    manager.subscribe(received.append)

    manager.check_thresholds(_render_snapshot(Header=20.0))
    manager.check_thresholds(_render_snapshot(Header=25.0))
    manager.check_thresholds(_render_snapshot(Header=10.0))
    manager.check_thresholds(_render_snapshot(Header=10.0))

    assert [alert.resolved for alert in received] == [False, True]
    triggered, resolved = received
    assert triggered.threshold_id == "default_render_time"
    assert triggered.severity is AlertSeverity.WARNING
    assert triggered.value == 20.0
    assert triggered.message == (
        "Slow Render: Component render time exceeded threshold (20 > 16) in component Header"
    )
    assert resolved.id == triggered.id
    assert resolved.resolved_at is not None
    assert not triggered.resolved
    assert manager.get_active_alerts() == []


def test_render_alerts_are_tracked_per_component():
    manager = AlertManager()

    emitted = manager.check_thresholds(_render_snapshot(Header=20.0, Footer=30.0, Body=5.0))
    assert len(emitted) == 2
    assert {alert.context for alert in manager.get_active_alerts()} == {
        ("component", "Header"),
        ("component", "Footer"),
    }

    emitted = manager.check_thresholds(_render_snapshot(Header=5.0, Footer=30.0))
    assert [(alert.context, alert.resolved) for alert in emitted] == [(("component", "Header"), True)]


def test_memory_threshold_uses_percentage():
    manager = AlertManager()

    emitted = manager.check_thresholds(MetricsSnapshot(memory=MemoryUsage(used=80.0, total=100.0)))
    assert emitted == []

    emitted = manager.check_thresholds(MetricsSnapshot(memory=MemoryUsage(used=95.0, total=100.0)))
    assert len(emitted) == 1
    assert emitted[0].severity is AlertSeverity.ERROR
    assert emitted[0].value == 95.0

    emitted = manager.check_thresholds(MetricsSnapshot(memory=MemoryUsage(used=0.0, total=0.0)))
    assert [alert.resolved for alert in emitted] == [True]


def test_network_alert_reports_worst_request():
    manager = AlertManager()

    emitted = manager.check_thresholds(
        MetricsSnapshot(
            network=[
                NetworkRequest(url="/fast", duration=20.0),
                NetworkRequest(url="/slow", duration=1_500.0),
                NetworkRequest(url="/slower", duration=2_500.0, status=504),
            ]
        )
    )

    assert len(emitted) == 1
    alert = emitted[0]
    assert alert.value == 2_500.0
    assert alert.context == ("network",)
    assert "for request /slower" in alert.message
    assert "(2 slow requests)" in alert.message

    emitted = manager.check_thresholds(MetricsSnapshot(network=[NetworkRequest(url="/fast", duration=20.0)]))
    assert [alert.resolved for alert in emitted] == [True]


def test_custom_threshold_by_explicit_metric_name():
    manager = AlertManager(include_defaults=False)
    manager.add_threshold(
        AlertThreshold(
            id="queue",
            name="Queue depth",
            description="Queue too deep",
            type=MetricKind.CUSTOM,
            severity=AlertSeverity.CRITICAL,
            value=10.0,
            metric_name="queue_depth",
        )
    )

    emitted = manager.check_thresholds({"custom": {"queue_depth": {"value": 12}}})
    assert len(emitted) == 1
    assert emitted[0].context == ("metric", "queue_depth")
    assert emitted[0].severity is AlertSeverity.CRITICAL


def test_custom_threshold_name_derivation():
    assert derive_metric_name("Latency Alert") == "latency"
    assert derive_metric_name("cpu") == "cpu"

    manager = AlertManager(include_defaults=False)
    manager.add_threshold(
        AlertThreshold(
            id="lat",
            name="Latency Alert",
            description="slow",
            type=MetricKind.CUSTOM,
            severity=AlertSeverity.WARNING,
            value=100.0,
        )
    )
    emitted = manager.check_thresholds({"custom": {"latency": 150.0}})
    assert len(emitted) == 1


def test_remove_threshold_purges_active_alerts_without_emitting():
    manager = AlertManager()
    received = []
    manager.subscribe(received.append)

    manager.check_thresholds(_render_snapshot(Header=50.0))
    assert len(received) == 1

    manager.remove_threshold("default_render_time")
    manager.remove_threshold("does-not-exist")

    assert manager.get_active_alerts() == []
    assert len(received) == 1
    assert "default_render_time" not in [threshold.id for threshold in manager.get_thresholds()]


def test_configure_alert_routes_trigger_and_resolve():
    manager = AlertManager()
    triggers = []
    resolves = []

    dispose = manager.configure_alert(
        "latency",
        AlertConfig(
            threshold=100,
            level="error",
            on_trigger=lambda message, severity: triggers.append((message, severity)),
            on_resolve=lambda: resolves.append(True),
        ),
    )

    manager.check_thresholds({"custom": {"latency": 150}})
    manager.check_thresholds({"custom": {"latency": 150}})
    manager.check_thresholds({"custom": {"latency": 50}})
    manager.check_thresholds({"custom": {"latency": 50}})

    assert len(triggers) == 1
    assert triggers[0][1] is AlertSeverity.ERROR
    assert triggers[0][0].startswith("latency Alert: latency exceeded threshold of 100 (150 > 100)")
    assert resolves == [True]

    thresholds_before = len(manager.get_thresholds())
    dispose()
    assert len(manager.get_thresholds()) == thresholds_before - 1
    manager.check_thresholds({"custom": {"latency": 500}})
    assert len(triggers) == 1


def test_subscriber_errors_are_isolated():
    manager = AlertManager()
    received = []

    def broken(_alert):
        raise ValueError("bad subscriber")

    manager.subscribe(broken)
    unsubscribe = manager.subscribe(received.append)

    manager.check_thresholds(_render_snapshot(Header=50.0))
    assert len(received) == 1

    unsubscribe()
    manager.check_thresholds(_render_snapshot(Header=1.0))
    assert len(received) == 1


def test_subscriber_may_change_subscriptions_while_notified():
    manager = AlertManager()
    calls = []

    def late(alert):
        calls.append(("late", alert.resolved))

    def first(alert):
        calls.append(("first", alert.resolved))
        unsubscribe_first()
        manager.subscribe(late)

    unsubscribe_first = manager.subscribe(first)

    manager.check_thresholds(_render_snapshot(Header=20.0))
    manager.check_thresholds(_render_snapshot(Header=5.0))

    assert calls == [("first", False), ("late", True)]


def test_custom_memory_threshold_triggers_and_resolves():
    manager = AlertManager(include_defaults=False)
    manager.add_threshold(
        AlertThreshold(
            id="memory_80",
            name="High Memory",
            description="Memory above 80%",
            type=MetricKind.MEMORY,
            severity=AlertSeverity.ERROR,
            value=80.0,
        )
    )
    received = []
    manager.subscribe(received.append)

    manager.check_thresholds(MetricsSnapshot(memory=MemoryUsage(used=90.0, total=100.0)))
    assert len(received) == 1
    assert received[0].threshold_id == "memory_80"
    assert received[0].value == 90.0
    assert not received[0].resolved
    assert len(manager.get_active_alerts()) == 1

    manager.check_thresholds(MetricsSnapshot(memory=MemoryUsage(used=50.0, total=100.0)))
    assert [alert.resolved for alert in received] == [False, True]
    assert received[1].id == received[0].id
    assert manager.get_active_alerts() == []
