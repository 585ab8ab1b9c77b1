"""Pydantic schemas for geofence operations."""
from __future__ import annotations

from pydantic import BaseModel, Field


class GeofenceSetRequest(BaseModel):
    coordinates: list[list[float]] = Field(..., min_length=3)


class GeofenceResponse(BaseModel):
    geofence: list[list[float]]
    is_default: bool
