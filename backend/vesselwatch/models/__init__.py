"""Re-export the in-memory domain records."""
from vesselwatch.models.base import AnomalyKind, CycleState
from vesselwatch.models.position import PositionReport
from vesselwatch.models.anomaly import (
    NOT_DEVIATED,
    AnomalySnapshot,
    DeviationResult,
    MissingEntity,
    RouteDeviation,
)

__all__ = [
    "AnomalyKind",
    "AnomalySnapshot",
    "CycleState",
    "DeviationResult",
    "MissingEntity",
    "NOT_DEVIATED",
    "PositionReport",
    "RouteDeviation",
]
