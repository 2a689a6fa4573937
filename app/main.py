from __future__ import annotations
from contextlib import asynccontextmanager
from typing import AsyncIterator, Callable, Optional

from fastapi import FastAPI

from app.api import router
from logging_config import configure_logging
from services.ingest import IngestService, IngestWorker, LineTransport, build_default_ingest_service
from services.sweeper import ExpirationSweeper
from settings import get_settings

VERSION = "0.1.0"


def create_app(
    service: Optional[IngestService] = None,
    transport: Optional[LineTransport] = None,
    timeout: Optional[float] = None,
    on_fatal: Optional[Callable[[BaseException], None]] = None,
) -> FastAPI:
    """Build the exporter application.

    The sweeper always runs while the app is up. Ingestion only starts when a
    ``transport`` is supplied; without one the registry is fed by whoever
    owns ``service``.
    """
    configure_logging()
    settings = get_settings()
    ingest_service = service if service is not None else build_default_ingest_service()
    metric_timeout = timeout if timeout is not None else settings.metric_timeout

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        sweeper = ExpirationSweeper(ingest_service.registry, metric_timeout)
        worker: Optional[IngestWorker] = None
        if transport is not None:
            worker = IngestWorker(ingest_service, transport, on_fatal=on_fatal)
        app.state.sweeper = sweeper
        app.state.ingest_worker = worker
        sweeper.start()
        if worker is not None:
            worker.start()
        try:
            yield
        finally:
            if worker is not None:
                worker.stop()
            sweeper.stop()

    app = FastAPI(
        title="RFLink Exporter",
        description="Prometheus exporter for sensors received through an RFLink radio bridge.",
        version=VERSION,
        lifespan=lifespan,
    )
    app.state.ingest_service = ingest_service
    app.state.metric_timeout = metric_timeout
    app.state.ingest_worker = None
    app.include_router(router)
    return app
