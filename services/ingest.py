"""Ingestion of RFLink messages into the sensor registry."""

from __future__ import annotations

import logging
import os
import signal
from dataclasses import asdict, dataclass
from functools import lru_cache
from pathlib import Path
from threading import Thread
from typing import Callable, Iterable, Iterator, Optional, Protocol

from datastore.registry import Metric, SensorRegistry
from models.records import ParsedMessage, SensorIdentity
from services.parser import ParseError, parse_message
from services.sink import PrometheusSink
from settings import get_settings
from storage.name_mapping import NameMapping, load_name_mapping
from storage.transport import TransportError

logger = logging.getLogger(__name__)


class LineTransport(Protocol):
    def __iter__(self) -> Iterator[str]: ...

    def close(self) -> None: ...


@dataclass
class IngestStats:
    lines_received: int = 0
    lines_rejected: int = 0
    fields_skipped: int = 0
    readings_applied: int = 0

    def as_dict(self) -> dict[str, int]:
        return asdict(self)


class IngestService:
    """Turns protocol lines into metric updates.

    All registry inserts go through ``process_line``, which must only be
    called from a single ingestion path; the sweeper only touches existing
    metrics.
    """

    def __init__(
        self,
        registry: SensorRegistry,
        sink: PrometheusSink,
        name_mapping: Optional[NameMapping] = None,
    ) -> None:
        self.registry = registry
        self.sink = sink
        self.name_mapping = name_mapping or NameMapping()
        self.stats = IngestStats()

    def process_line(self, line: str) -> Optional[ParsedMessage]:
        self.stats.lines_received += 1
        logger.debug("Received from rflink: %s", line)
        try:
            message = parse_message(line)
        except ParseError as exc:
            self.stats.lines_rejected += 1
            logger.error("Cannot update metrics from message: %s, skipping", exc, extra={"reason": exc.reason})
            return None

        self.stats.fields_skipped += len(message.issues)
        identity = message.identity
        for field, value in message.values.items():
            metric = self.registry.get_or_create(
                identity.key, field, lambda f=field: self._new_metric(identity, f)
            )
            metric.set(value)
            self.stats.readings_applied += 1
        return message

    def run(self, lines: Iterable[str]) -> None:
        for line in lines:
            self.process_line(line)

    def _new_metric(self, identity: SensorIdentity, field: str) -> Metric:
        name = self.name_mapping.lookup(identity.id)
        if name is None:
            logger.debug("No name mapping for sensor ID %s", identity.id)
            name = identity.id
        labels = {
            "vendor": identity.label_vendor,
            "id": identity.id,
            "type": field,
            "name": name,
        }
        logger.info(
            "Created new gauge %s",
            self.sink.metric_name(field),
            extra={"vendor": identity.vendor, "sensor_id": identity.id, "field": field},
        )
        return Metric(identity, field, labels, self.sink, clock=self.registry.clock)


def _terminate_process(exc: BaseException) -> None:
    # No reconnect: a lost bridge takes the whole exporter down so a
    # supervisor can restart it. Retry with backoff would go here.
    os.kill(os.getpid(), signal.SIGTERM)


class IngestWorker:
    """Runs an ``IngestService`` over a transport on a background thread."""

    def __init__(
        self,
        service: IngestService,
        transport: LineTransport,
        on_fatal: Optional[Callable[[BaseException], None]] = None,
    ) -> None:
        self.service = service
        self.transport = transport
        self.on_fatal = on_fatal or _terminate_process
        self.error: Optional[BaseException] = None
        self._stopping = False
        self._thread: Optional[Thread] = None

    @property
    def failed(self) -> bool:
        return self.error is not None

    def start(self) -> None:
        if self._thread is not None and self._thread.is_alive():
            return
        self._stopping = False
        self._thread = Thread(target=self._run, name="rflink-ingest", daemon=True)
        self._thread.start()

    def stop(self, timeout: Optional[float] = 5.0) -> None:
        self._stopping = True
        try:
            self.transport.close()
        except (OSError, TransportError) as exc:
            logger.debug("Error while closing transport: %s", exc)
        if self._thread is not None:
            self._thread.join(timeout=timeout)
        self._thread = None

    def join(self, timeout: Optional[float] = None) -> None:
        if self._thread is not None:
            self._thread.join(timeout=timeout)

    def _run(self) -> None:
        try:
            self.service.run(self.transport)
        except TransportError as exc:
            if self._stopping:
                return
            self.error = exc
            logger.error("Transport failure, stopping exporter: %s", exc)
            self.on_fatal(exc)
            return
        if not self._stopping:
            logger.info("Transport reached end of input")


@lru_cache
def build_default_ingest_service() -> IngestService:
    """Factory that wires the service from environment settings."""
    settings = get_settings()
    mapping_path = Path(settings.name_map_path) if settings.name_map_path else None
    return IngestService(
        registry=SensorRegistry(),
        sink=PrometheusSink(namespace=settings.metric_namespace),
        name_mapping=load_name_mapping(mapping_path),
    )
