"""Prometheus exposition of sensor gauges."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from threading import Lock
from typing import Dict, Mapping, Optional, Tuple

from prometheus_client import CollectorRegistry, Gauge, generate_latest

logger = logging.getLogger(__name__)

LABEL_NAMES: Tuple[str, ...] = ("vendor", "id", "type", "name")


@dataclass(frozen=True)
class MetricHandle:
    """Reference to one labelled gauge child published by the sink."""

    name: str
    label_values: Tuple[str, ...]


class PrometheusSink:
    """Publishes one gauge family per field, one child per sensor.

    Families are named ``<namespace>_<field>`` (``rflink_temp``) and share the
    label set ``vendor, id, type, name``.
    """

    def __init__(self, namespace: str = "rflink", registry: Optional[CollectorRegistry] = None) -> None:
        self.namespace = namespace
        self.registry = registry if registry is not None else CollectorRegistry()
        self._families: Dict[str, Gauge] = {}
        self._refcounts: Dict[MetricHandle, int] = {}
        self._lock = Lock()

    def metric_name(self, field: str) -> str:
        return f"{self.namespace}_{field}"

    def register(self, field: str, labels: Mapping[str, str]) -> MetricHandle:
        """Publish the child for ``labels``.

        Distinct sensors can normalize to the same label tuple (``"Oregon
        Temp"`` and ``"oregon_temp"``); they then share one child, which is
        only removed once every holder has unregistered.
        """
        name = self.metric_name(field)
        family = self._family(name)
        label_values = tuple(labels[label] for label in LABEL_NAMES)
        handle = MetricHandle(name=name, label_values=label_values)
        with self._lock:
            holders = self._refcounts.get(handle, 0) + 1
            self._refcounts[handle] = holders
            family.labels(*label_values)
        if holders > 1:
            logger.warning(
                "Gauge %s%s is shared by %d sensors",
                name,
                dict(zip(LABEL_NAMES, label_values)),
                holders,
                extra={"field": field},
            )
        return handle

    def set_value(self, handle: MetricHandle, value: float) -> None:
        self._family(handle.name).labels(*handle.label_values).set(value)

    def unregister(self, handle: MetricHandle) -> None:
        with self._lock:
            family = self._families.get(handle.name)
            holders = self._refcounts.get(handle, 0)
            if family is None or holders == 0:
                return
            if holders > 1:
                self._refcounts[handle] = holders - 1
                return
            del self._refcounts[handle]
            try:
                family.remove(*handle.label_values)
            except KeyError:
                pass

    def holders(self, handle: MetricHandle) -> int:
        with self._lock:
            return self._refcounts.get(handle, 0)

    def render(self) -> bytes:
        return generate_latest(self.registry)

    def _family(self, name: str) -> Gauge:
        with self._lock:
            family = self._families.get(name)
            if family is None:
                family = Gauge(
                    name,
                    f"RFLink sensor reading {name}",
                    labelnames=LABEL_NAMES,
                    registry=self.registry,
                )
                self._families[name] = family
            return family
