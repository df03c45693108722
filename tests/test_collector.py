"""Tests for MetricsCollector recording, validation and subscriptions."""
from __future__ import annotations

import re
import time

import pytest

from perf_monitoring.collector import MetricsCollector
from perf_monitoring.constants import MEMORY_MIN_INTERVAL_MS, NETWORK_MAX_URL_LENGTH
from perf_monitoring.models import MetricKind
from perf_monitoring.probes import NullMemoryProbe


def test_track_render_with_duration_records_and_notifies(collector):
    seen = []
    collector.subscribe_to_metric("render", seen.append)

    cancel = collector.track_render("Button", 12.5)
    cancel()

    renders = collector.get_metrics().renders
    assert len(renders) == 1
    assert renders[0].type is MetricKind.RENDER
    assert renders[0].value == 12.5
    assert renders[0].metadata["component_id"] == "Button"
    assert seen == [12.5]


def test_track_render_completion_records_elapsed_once(collector):
    complete = collector.track_render("List")
    complete()
    complete()

    renders = collector.get_metrics().renders
    assert len(renders) == 1
    assert renders[0].value >= 0
    assert renders[0].metadata["component_id"] == "List"


@pytest.mark.parametrize(
    "name, value",
    [
        ("", 1.0),
        ("   ", 1.0),
        (None, 1.0),
        ("ok", -1.0),
        ("ok", float("nan")),
        ("ok", float("inf")),
        ("ok", True),
        ("ok", "12"),
    ],
)
def test_invalid_input_is_a_silent_noop(collector, name, value):
    seen = []
    collector.subscribe_to_metric("render", seen.append)
    collector.subscribe_to_metric("ok", seen.append)

    collector.track_render(name, value)()
    collector.track_custom_metric(name, value)

    assert collector.get_metrics().all() == []
    assert seen == []


def test_metric_ids_are_unique(collector):
    for _ in range(50):
        collector.track_render("Card", 1.0)

    ids = [metric.id for metric in collector.get_metrics().renders]
    assert len(set(ids)) == 50


def test_metadata_is_read_only(collector):
    collector.track_render("Card", 1.0)
    metric = collector.get_metrics().renders[0]

    with pytest.raises(TypeError):
        metric.metadata["component_id"] = "Other"


def test_track_memory_uses_probe(collector, memory_probe):
    seen = []
    collector.subscribe_to_metric("memory", seen.append)

    stats = collector.track_memory()

    assert stats.used == 80.0
    assert stats.total == 100.0
    assert stats.limit == 100.0
    memory = collector.get_metrics().memory
    assert memory[0].metadata["heap_used"] == 80.0
    assert memory[0].metadata["heap_total"] == 100.0
    assert seen == [80.0]


def test_track_memory_without_memory_api_reports_zeros():
    collector = MetricsCollector(memory_probe=NullMemoryProbe())

    stats = collector.track_memory()

    assert (stats.used, stats.total, stats.limit) == (0.0, 0.0, 0.0)
    assert collector.get_metrics().memory[0].value == 0.0


def test_memory_tracking_start_stop_is_idempotent(collector):
    collector.start_memory_tracking(10)
    assert collector.is_memory_tracking
    first_task = collector._memory_task
    assert first_task.interval_ms == MEMORY_MIN_INTERVAL_MS

    collector.start_memory_tracking(2_000)
    assert collector._memory_task is not first_task
    assert not first_task.running

    collector.stop_memory_tracking()
    collector.stop_memory_tracking()
    assert not collector.is_memory_tracking


def test_disable_stops_recording_and_memory_tracking(collector):
    collector.start_memory_tracking()
    collector.disable()

    collector.track_render("Card", 1.0)
    collector.track_network_request("/api", 10.0)
    collector.track_custom_metric("latency", 5.0)
    stats = collector.track_memory()

    assert not collector.is_enabled
    assert not collector.is_memory_tracking
    assert stats.used == 0.0
    assert collector.get_metrics().all() == []

    collector.enable()
    collector.track_render("Card", 1.0)
    assert len(collector.get_metrics().renders) == 1


def test_track_network_request_truncates_url(collector):
    collector.track_network_request("/x" * NETWORK_MAX_URL_LENGTH, 10.0, 200)

    metric = collector.get_metrics().network[0]
    assert len(metric.metadata["url"]) == NETWORK_MAX_URL_LENGTH
    assert metric.metadata["status"] == 200


def test_track_network_accumulates_matching_requests(collector):
    updates = []
    unsubscribe = collector.track_network(re.compile(r"/api/"), updates.append)

    collector.track_network_request("/api/users", 100.0, 200)
    collector.track_network_request("/static/app.js", 5.0, 200)
    collector.track_network_request("/api/orders", 300.0, 500)

    assert len(updates) == 2
    assert updates[-1].requests == 2
    assert updates[-1].errors == 1
    assert updates[-1].average_time == 200.0

    unsubscribe()
    collector.track_network_request("/api/users", 100.0, 200)
    assert len(updates) == 2


def test_track_network_unsubscribe_keeps_other_subscribers(collector):
    seen = []
    collector.subscribe_to_metric("network", seen.append)
    unsubscribe = collector.track_network("api")

    unsubscribe()
    collector.track_network_request("/api", 42.0)

    assert seen == [42.0]
    assert collector.subscriber_count("network") == 1
    assert collector.network_tracker_count() == 0


def test_track_network_counts_only_network_requests(collector):
    updates = []
    collector.track_network(on_stats=updates.append)

    collector.track_network_request("/api", 10.0, 200)
    collector.track_custom_metric("network", 5.0)

    assert [update.requests for update in updates] == [1]
    assert updates[0].average_time == pytest.approx(10.0)
    assert collector.network_tracker_count() == 1


def test_subscriber_may_change_subscriptions_while_notified(collector):
    calls = []

    def late(value):
        calls.append(("late", value))

    def first(value):
        calls.append(("first", value))
        unsubscribe_first()
        collector.subscribe_to_metric("render", late)

    unsubscribe_first = collector.subscribe_to_metric("render", first)

    collector.track_render("Card", 1.0)
    collector.track_render("Card", 2.0)

    assert calls == [("first", 1.0), ("late", 2.0)]
    assert collector.subscriber_count("render") == 1


def test_timed_render_matches_explicit_duration(collector, monkeypatch):
    readings = iter([100.0, 100.012])
    monkeypatch.setattr(time, "perf_counter", lambda: next(readings))

    complete = collector.track_render("Card")
    complete()
    collector.track_render("Card", 12.0)

    timed, explicit = collector.get_metrics().renders
    assert timed.value == pytest.approx(12.0)
    assert timed.value == pytest.approx(explicit.value)
    assert timed.metadata["component_id"] == explicit.metadata["component_id"] == "Card"


def test_custom_metric_metadata_merges_tags(collector):
    seen = []
    collector.subscribe_to_metric("cache_hits", seen.append)

    collector.track_custom_metric(
        "cache_hits",
        3,
        {"tags": {"region": "eu"}, "tag": 7, "source": "redis", "name": "ignored"},
    )

    metric = collector.get_metrics().custom[0]
    assert metric.metadata["name"] == "cache_hits"
    assert dict(metric.metadata["tags"]) == {"region": "eu", "tag": "7"}
    assert metric.metadata["source"] == "redis"
    assert seen == [3.0]


def test_subscriber_errors_do_not_block_siblings(collector):
    seen = []

    def broken(_value):
        raise RuntimeError("boom")

    collector.subscribe_to_metric("render", broken)
    collector.subscribe_to_metric("render", seen.append)

    collector.track_render("Card", 4.0)

    assert seen == [4.0]
    assert len(collector.get_metrics().renders) == 1


def test_unsubscribe_from_metric(collector):
    seen = []
    other = []
    collector.subscribe_to_metric("render", seen.append)
    collector.subscribe_to_metric("render", other.append)

    collector.unsubscribe_from_metric("render", seen.append)
    collector.track_render("Card", 1.0)
    assert seen == []
    assert other == [1.0]

    collector.unsubscribe_from_metric("render")
    collector.unsubscribe_from_metric("unknown")
    collector.track_render("Card", 2.0)
    assert other == [1.0]


def test_subscriber_is_called_after_metric_is_buffered(collector):
    sizes = []
    collector.subscribe_to_metric("render", lambda _value: sizes.append(len(collector.get_metrics().renders)))

    collector.track_render("Card", 1.0)

    assert sizes == [1]


def test_clear_metrics(collector):
    collector.track_render("Card", 1.0)
    collector.track_custom_metric("latency", 1.0)
    collector.clear_metrics()

    assert collector.get_metrics().all() == []
