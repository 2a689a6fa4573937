"""Live registry of per-sensor, per-field metrics."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from threading import Lock
from typing import Callable, Dict, Mapping, Optional

from models.records import SensorIdentity
from services.sink import MetricHandle, PrometheusSink

logger = logging.getLogger(__name__)

Clock = Callable[[], float]


@dataclass(frozen=True)
class MetricSnapshot:
    identity: SensorIdentity
    field: str
    name: str
    value: Optional[float]
    last_seen: float
    registered: bool


class Metric:
    """Exposed state of one (sensor, field) pair.

    ``value``, ``last_seen`` and ``registered`` form one consistency unit
    guarded by the metric's own lock. An unregistered metric keeps its last
    value and comes back on the next ``set``.
    """

    def __init__(
        self,
        identity: SensorIdentity,
        field: str,
        labels: Mapping[str, str],
        sink: PrometheusSink,
        clock: Clock = time.monotonic,
    ) -> None:
        self.identity = identity
        self.field = field
        self.labels = dict(labels)
        self.value: Optional[float] = None
        self.last_seen = clock()
        self.registered = False
        self._sink = sink
        self._clock = clock
        self._handle: Optional[MetricHandle] = None
        self._lock = Lock()

    @property
    def name(self) -> str:
        return self.labels.get("name", self.identity.id)

    def _log_extra(self) -> dict:
        return {"vendor": self.identity.vendor, "sensor_id": self.identity.id, "field": self.field}

    def set(self, value: float) -> None:
        with self._lock:
            if not self.registered:
                self._handle = self._sink.register(self.field, self.labels)
                self.registered = True
                logger.info("Registered metric %s", self._sink.metric_name(self.field), extra=self._log_extra())
            assert self._handle is not None
            self._sink.set_value(self._handle, value)
            self.value = value
            self.last_seen = self._clock()
        logger.debug("New value set", extra={**self._log_extra(), "value": value})

    def has_expired(self, timeout: float) -> bool:
        return self._clock() - self.last_seen > timeout

    def enforce_expiration(self, timeout: float) -> bool:
        """Unregister the metric if it has been idle for longer than ``timeout``.

        The unlocked pre-check keeps the sweeper off the lock for live
        metrics; the locked re-check catches a ``set`` that revived the
        metric in between.
        """
        if not self.registered or not self.has_expired(timeout):
            return False

        with self._lock:
            if not self.registered or not self.has_expired(timeout):
                return False
            if self._handle is not None:
                self._sink.unregister(self._handle)
            self.registered = False

        logger.info("Unregistered metric due to timeout", extra={**self._log_extra(), "timeout": timeout})
        return True

    def snapshot(self) -> MetricSnapshot:
        with self._lock:
            return MetricSnapshot(
                identity=self.identity,
                field=self.field,
                name=self.name,
                value=self.value,
                last_seen=self.last_seen,
                registered=self.registered,
            )


class SensorRegistry:
    """Two-level store: sensor key -> field name -> ``Metric``.

    Entries are never removed. Inserts are serialized by the registry lock so
    that at most one ``Metric`` ever exists per (sensor key, field).
    """

    def __init__(self, clock: Clock = time.monotonic) -> None:
        self.clock = clock
        self._sensors: Dict[str, Dict[str, Metric]] = {}
        self._lock = Lock()

    def get(self, sensor_key: str, field: str) -> Optional[Metric]:
        with self._lock:
            return self._sensors.get(sensor_key, {}).get(field)

    def get_or_create(self, sensor_key: str, field: str, factory: Callable[[], Metric]) -> Metric:
        with self._lock:
            fields = self._sensors.setdefault(sensor_key, {})
            metric = fields.get(field)
            if metric is None:
                metric = factory()
                fields[field] = metric
                logger.debug("Created metric entry", extra={"sensor_id": sensor_key, "field": field})
            return metric

    def metrics(self) -> list[Metric]:
        with self._lock:
            return [metric for fields in self._sensors.values() for metric in fields.values()]

    def sensors(self) -> Dict[str, Dict[str, Metric]]:
        with self._lock:
            return {key: dict(fields) for key, fields in self._sensors.items()}

    def __len__(self) -> int:
        with self._lock:
            return sum(len(fields) for fields in self._sensors.values())
