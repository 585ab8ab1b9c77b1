"""Anomaly records produced by a detection tick."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from vesselwatch.models.position import PositionReport


@dataclass(frozen=True)
class DeviationResult:
    has_deviated: bool
    distance_nm: float | None = None

    def __post_init__(self) -> None:
        if self.has_deviated != (self.distance_nm is not None):
            raise ValueError("distance_nm is present iff has_deviated")


NOT_DEVIATED = DeviationResult(has_deviated=False)


@dataclass(frozen=True)
class MissingEntity:
    """An entity seen in the previous cycle but absent from the current fetch."""

    entity_id: str
    last_report: PositionReport
    missing_at_ms: int
    last_seen_ms: int

    def to_dict(self) -> dict[str, Any]:
        return {
            **self.last_report.to_dict(),
            "missing_at_ms": self.missing_at_ms,
            "last_seen_ms": self.last_seen_ms,
        }


@dataclass(frozen=True)
class RouteDeviation:
    report: PositionReport
    distance_nm: float

    @property
    def entity_id(self) -> str:
        return self.report.entity_id

    def to_dict(self) -> dict[str, Any]:
        return {**self.report.to_dict(), "deviation_nm": round(self.distance_nm, 3)}


@dataclass(frozen=True)
class AnomalySnapshot:
    """What the latest successful detection tick saw."""

    vessels: tuple[PositionReport, ...] = ()
    missing: tuple[MissingEntity, ...] = ()
    route_deviations: tuple[RouteDeviation, ...] = ()
    signal_shutoffs: tuple[MissingEntity, ...] = ()
    last_updated_ms: int | None = None
    stats: dict[str, Any] = field(default_factory=dict, compare=False)

    def find_vessel(self, entity_id: str) -> PositionReport | None:
        for report in self.vessels:
            if report.entity_id == entity_id:
                return report
        return None
