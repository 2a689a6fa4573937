"""Pydantic schemas for the HTTP API layer."""

from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, Field


class SensorMetric(BaseModel):
    """Current state of one (sensor, field) pair."""

    sensor_key: str = Field(..., description="Vendor and id joined by a space.")
    vendor: str
    id: str
    name: str = Field(..., description="Friendly name, or the raw id when unmapped.")
    field: str
    value: Optional[float] = None
    registered: bool = Field(..., description="Whether the gauge is currently exposed.")
    seconds_since_seen: float = Field(..., ge=0)


class SensorListing(BaseModel):
    """All metrics known to the registry, exposed or expired."""

    timeout: float = Field(..., gt=0, description="Idle seconds before a metric is withdrawn.")
    metrics: List[SensorMetric] = Field(default_factory=list)


class IngestStatistics(BaseModel):
    lines_received: int = Field(..., ge=0)
    lines_rejected: int = Field(..., ge=0)
    fields_skipped: int = Field(..., ge=0)
    readings_applied: int = Field(..., ge=0)
    known_metrics: int = Field(..., ge=0)
