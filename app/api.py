"""HTTP route definitions for the service."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request, Response, status
from prometheus_client import CONTENT_TYPE_LATEST

from app.schemas import IngestStatistics, SensorListing, SensorMetric
from services.ingest import IngestService

router = APIRouter()


def get_service(request: Request) -> IngestService:
    return request.app.state.ingest_service


def get_timeout(request: Request) -> float:
    return request.app.state.metric_timeout


@router.get(
    "/metrics",
    summary="Prometheus exposition of live sensor gauges.",
    response_class=Response,
)
async def metrics(service: IngestService = Depends(get_service)) -> Response:
    return Response(service.sink.render(), media_type=CONTENT_TYPE_LATEST)


@router.get(
    "/sensors",
    response_model=SensorListing,
    summary="List every known sensor metric, including expired ones.",
)
async def list_sensors(
    service: IngestService = Depends(get_service),
    timeout: float = Depends(get_timeout),
) -> SensorListing:
    now = service.registry.clock()
    items: list[SensorMetric] = []
    for sensor_key, fields in sorted(service.registry.sensors().items()):
        for field, metric in sorted(fields.items()):
            snapshot = metric.snapshot()
            items.append(
                SensorMetric(
                    sensor_key=sensor_key,
                    vendor=snapshot.identity.vendor,
                    id=snapshot.identity.id,
                    name=snapshot.name,
                    field=field,
                    value=snapshot.value,
                    registered=snapshot.registered,
                    seconds_since_seen=max(0.0, now - snapshot.last_seen),
                )
            )
    return SensorListing(timeout=timeout, metrics=items)


@router.get(
    "/stats",
    response_model=IngestStatistics,
    summary="Ingestion counters since startup.",
)
async def stats(service: IngestService = Depends(get_service)) -> IngestStatistics:
    return IngestStatistics(**service.stats.as_dict(), known_metrics=len(service.registry))


@router.get(
    "/health",
    summary="Health check endpoint.",
    status_code=status.HTTP_200_OK,
)
async def healthcheck() -> dict[str, str]:
    return {"status": "ok"}


@router.get(
    "/",
    summary="Root endpoint mirrors health information.",
    status_code=status.HTTP_200_OK,
)
async def root() -> dict[str, str]:
    return {"status": "ok", "detail": "See /metrics for sensor gauges and /health for service status."}
