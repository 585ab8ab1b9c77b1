"""Pydantic schemas for alert ledger, recipients and watchlist operations."""
from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field

from vesselwatch.models.base import AnomalyKind


class AlertClearRequest(BaseModel):
    kind: AnomalyKind
    entity_id: str = Field(..., min_length=1)


class AlertRecipientsRequest(BaseModel):
    user_email: Optional[str] = None
    coast_guard_email: Optional[str] = None


class WatchlistAddRequest(BaseModel):
    mmsi: str = Field(..., min_length=1)
