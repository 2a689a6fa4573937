"""Unit tests for the metric lifecycle and the sensor registry."""

from __future__ import annotations

import time
from threading import Barrier, Thread

from datastore.registry import Metric, SensorRegistry
from models.records import SensorIdentity
from services.ingest import IngestService
from services.sink import PrometheusSink
from storage.name_mapping import NameMapping

IDENTITY = SensorIdentity(vendor="Oregon", id="abcd")
LABELS = {"vendor": "oregon", "id": "abcd", "type": "temp", "name": "garden"}


def _metric(sink: PrometheusSink, clock) -> Metric:
    return Metric(IDENTITY, "temp", LABELS, sink, clock=clock)


def _exposed(sink: PrometheusSink, name: str = "rflink_temp", labels=None):
    return sink.registry.get_sample_value(name, labels or LABELS)


def test_new_metric_is_not_registered_until_set(sink, clock) -> None:
    metric = _metric(sink, clock)

    assert metric.registered is False
    assert metric.value is None
    assert metric.last_seen == clock.now
    assert _exposed(sink) is None


def test_set_registers_and_publishes_value(sink, clock) -> None:
    metric = _metric(sink, clock)
    clock.advance(5)

    metric.set(26.6)

    assert metric.registered is True
    assert metric.value == 26.6
    assert metric.last_seen == clock.now
    assert _exposed(sink) == 26.6


def test_has_expired_boundaries(sink, clock) -> None:
    metric = _metric(sink, clock)
    metric.set(1.0)

    clock.advance(180 - 0.001)
    assert metric.has_expired(180) is False

    clock.advance(0.002)
    assert metric.has_expired(180) is True


def test_enforce_expiration_unregisters_idle_metric(sink, clock) -> None:
    metric = _metric(sink, clock)
    metric.set(1.0)
    clock.advance(181)

    assert metric.enforce_expiration(180) is True

    assert metric.registered is False
    assert metric.value == 1.0
    assert _exposed(sink) is None


def test_enforce_expiration_keeps_live_metric(sink, clock) -> None:
    metric = _metric(sink, clock)
    metric.set(1.0)
    clock.advance(60)

    assert metric.enforce_expiration(180) is False
    assert metric.registered is True
    assert _exposed(sink) == 1.0


def test_enforce_expiration_ignores_unregistered_metric(sink, clock) -> None:
    metric = _metric(sink, clock)
    clock.advance(500)

    assert metric.enforce_expiration(180) is False


def test_set_after_expiration_revives_metric(sink, clock) -> None:
    metric = _metric(sink, clock)
    metric.set(1.0)
    clock.advance(200)
    metric.enforce_expiration(180)

    metric.set(2.0)

    assert metric.registered is True
    assert metric.last_seen == clock.now
    assert metric.has_expired(180) is False
    assert _exposed(sink) == 2.0


def test_snapshot_reflects_state(sink, clock) -> None:
    metric = _metric(sink, clock)
    metric.set(3.5)

    snapshot = metric.snapshot()

    assert snapshot.identity == IDENTITY
    assert snapshot.field == "temp"
    assert snapshot.name == "garden"
    assert snapshot.value == 3.5
    assert snapshot.registered is True


def test_get_or_create_returns_same_instance(sink, clock) -> None:
    registry = SensorRegistry(clock=clock)
    calls: list[int] = []

    def factory() -> Metric:
        calls.append(1)
        return _metric(sink, clock)

    first = registry.get_or_create(IDENTITY.key, "temp", factory)
    second = registry.get_or_create(IDENTITY.key, "temp", factory)

    assert first is second
    assert len(calls) == 1
    assert registry.get(IDENTITY.key, "temp") is first
    assert len(registry) == 1


def test_get_or_create_is_idempotent_under_concurrency(sink, clock) -> None:
    registry = SensorRegistry(clock=clock)
    workers = 8
    barrier = Barrier(workers)
    results: list[Metric] = []

    def worker() -> None:
        barrier.wait()
        results.append(registry.get_or_create(IDENTITY.key, "temp", lambda: _metric(sink, clock)))

    threads = [Thread(target=worker) for _ in range(workers)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=5)

    assert len(results) == workers
    assert all(result is results[0] for result in results)
    assert len(registry) == 1


def test_registry_lists_metrics_by_sensor(sink, clock) -> None:
    registry = SensorRegistry(clock=clock)
    other = SensorIdentity(vendor="Cresta", id="0001")
    registry.get_or_create(IDENTITY.key, "temp", lambda: _metric(sink, clock))
    registry.get_or_create(IDENTITY.key, "bat", lambda: Metric(IDENTITY, "bat", {**LABELS, "type": "bat"}, sink, clock))
    registry.get_or_create(other.key, "hum", lambda: Metric(other, "hum", LABELS, sink, clock))

    sensors = registry.sensors()

    assert set(sensors) == {"Oregon abcd", "Cresta 0001"}
    assert set(sensors["Oregon abcd"]) == {"temp", "bat"}
    assert len(registry.metrics()) == 3


def test_sink_keeps_one_family_per_field(sink) -> None:
    first = sink.register("temp", LABELS)
    second_labels = {**LABELS, "id": "ef01", "name": "ef01"}
    second = sink.register("temp", second_labels)
    sink.set_value(first, 10.0)
    sink.set_value(second, 20.0)

    sink.unregister(first)
    sink.unregister(first)

    assert _exposed(sink) is None
    assert _exposed(sink, labels=second_labels) == 20.0
    assert b"rflink_temp" in sink.render()


def test_set_racing_expiration_keeps_metric_registered(sink, clock) -> None:
    metric = _metric(sink, clock)
    metric.set(1.0)
    clock.advance(181)
    results: list[bool] = []

    metric._lock.acquire()
    try:
        sweeper = Thread(target=lambda: results.append(metric.enforce_expiration(180)))
        sweeper.start()
        # Let the sweeper pass its unlocked check and block on the lock.
        time.sleep(0.1)
        metric.last_seen = clock()
    finally:
        metric._lock.release()
    sweeper.join(timeout=5)

    assert results == [False]
    assert metric.registered is True
    assert _exposed(sink) == 1.0


def test_colliding_labels_share_child_until_last_holder_expires(sink, clock) -> None:
    service = IngestService(SensorRegistry(clock=clock), sink, NameMapping())
    labels = {"vendor": "oregon_temp", "id": "1", "type": "hum", "name": "1"}

    service.process_line("20;01;Oregon Temp;ID=1;HUM=40;")
    clock.advance(100)
    service.process_line("20;02;oregon_temp;ID=1;HUM=50;")
    first = service.registry.get("Oregon Temp 1", "hum")
    second = service.registry.get("oregon_temp 1", "hum")
    assert first is not None and second is not None and first is not second

    clock.advance(100)
    assert first.enforce_expiration(180) is True
    assert second.enforce_expiration(180) is False

    assert second.registered is True
    assert _exposed(sink, "rflink_hum", labels) == 50.0

    clock.advance(100)
    assert second.enforce_expiration(180) is True
    assert _exposed(sink, "rflink_hum", labels) is None


def test_sink_counts_holders_per_handle(sink) -> None:
    first = sink.register("temp", LABELS)
    second = sink.register("temp", LABELS)

    assert first == second
    assert sink.holders(first) == 2

    sink.unregister(first)
    assert sink.holders(first) == 1
    sink.set_value(second, 4.0)
    assert _exposed(sink) == 4.0

    sink.unregister(second)
    assert sink.holders(first) == 0
    assert _exposed(sink) is None
