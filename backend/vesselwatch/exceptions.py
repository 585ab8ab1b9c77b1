"""Domain exceptions raised by the detection core and its collaborators."""
from __future__ import annotations


class VesselWatchError(Exception):
    """Base class for all VesselWatch errors."""


class UpstreamFetchError(VesselWatchError):
    """The vessel-data provider could not deliver a position set.

    Distinct from an empty result: callers keep their previous snapshot
    when this is raised.
    """

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class InvalidPolygonError(VesselWatchError, ValueError):
    """A geofence ring was rejected; the previously active region stays in force."""
