"""Normalized vessel position report."""
from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Mapping


@dataclass(frozen=True)
class PositionReport:
    """One upstream sighting of a vessel, immutable once produced.

    ``metadata`` carries provider fields the detection core does not use
    (destination, name, vessel type, heading ...) through unmodified.
    """

    entity_id: str
    latitude: float
    longitude: float
    speed_knots: float
    observed_at_ms: int
    course_degrees: float | None = None
    metadata: Mapping[str, Any] = field(default_factory=dict, compare=False)

    def __post_init__(self) -> None:
        if not self.entity_id:
            raise ValueError("entity_id must be non-empty")
        if self.speed_knots < 0:
            raise ValueError(f"speed_knots must be >= 0, got {self.speed_knots}")
        # Freeze the metadata view so the report stays immutable end-to-end
        object.__setattr__(self, "metadata", MappingProxyType(dict(self.metadata)))

    def to_dict(self) -> dict[str, Any]:
        return {
            "mmsi": self.entity_id,
            "lat": self.latitude,
            "lon": self.longitude,
            "speed": self.speed_knots,
            "course": self.course_degrees,
            "observed_at_ms": self.observed_at_ms,
            **{k: v for k, v in self.metadata.items() if k not in _CORE_KEYS},
        }


_CORE_KEYS = frozenset({"mmsi", "lat", "lon", "speed", "course", "observed_at_ms"})
