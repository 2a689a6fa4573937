from __future__ import annotations

import pytest
from prometheus_client import CollectorRegistry

from datastore.registry import SensorRegistry
from services.ingest import IngestService
from services.sink import PrometheusSink
from storage.name_mapping import NameMapping


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def sink() -> PrometheusSink:
    return PrometheusSink(namespace="rflink", registry=CollectorRegistry())


@pytest.fixture()
def registry(clock: FakeClock) -> SensorRegistry:
    return SensorRegistry(clock=clock)


@pytest.fixture()
def service(registry: SensorRegistry, sink: PrometheusSink) -> IngestService:
    return IngestService(registry=registry, sink=sink, name_mapping=NameMapping({"abcd": "garden"}))
