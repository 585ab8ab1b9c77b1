"""Shared enums for all models."""
from __future__ import annotations

import enum


class AnomalyKind(str, enum.Enum):
    ROUTE_DEVIATION = "route_deviation"
    SIGNAL_SHUTOFF = "signal_shutoff"


class CycleState(str, enum.Enum):
    IDLE = "idle"
    FETCHING = "fetching"
    DIFFING = "diffing"
    ANALYZING = "analyzing"
    DISPATCHING = "dispatching"
