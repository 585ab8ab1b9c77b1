from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException

from vesselwatch.exceptions import InvalidPolygonError
from vesselwatch.monitor import Monitor, get_monitor
from vesselwatch.schemas.alerts import (
    AlertClearRequest,
    AlertRecipientsRequest,
    WatchlistAddRequest,
)
from vesselwatch.schemas.error import ErrorResponse
from vesselwatch.schemas.geofence import GeofenceResponse, GeofenceSetRequest

logger = logging.getLogger(__name__)

router = APIRouter()

_NOT_FOUND = {404: {"model": ErrorResponse}}


# ---------------------------------------------------------------------------
# Vessels
# ---------------------------------------------------------------------------

@router.get("/vessels", tags=["vessels"])
def list_vessels(monitor: Monitor = Depends(get_monitor)):
    """Vessels inside the geofence as of the latest successful poll."""
    snap = monitor.snapshot()
    return {
        "vessels": [v.to_dict() for v in snap.vessels],
        "count": len(snap.vessels),
        "last_updated_ms": snap.last_updated_ms,
    }


@router.get("/vessels/{entity_id}", tags=["vessels"], responses=_NOT_FOUND)
def get_vessel(entity_id: str, monitor: Monitor = Depends(get_monitor)):
    vessel = monitor.snapshot().find_vessel(entity_id)
    if vessel is None:
        raise HTTPException(status_code=404, detail="Vessel not found")
    return vessel.to_dict()


# ---------------------------------------------------------------------------
# Anomalies
# ---------------------------------------------------------------------------

@router.get("/anomalies", tags=["anomalies"])
def get_anomalies(monitor: Monitor = Depends(get_monitor)):
    snap = monitor.snapshot()
    return {
        "anomalies": {
            "route_deviations": [d.to_dict() for d in snap.route_deviations],
            "ais_shutoffs": [m.to_dict() for m in snap.signal_shutoffs],
        },
        "last_updated_ms": snap.last_updated_ms,
    }


@router.get("/anomalies/deviations", tags=["anomalies"])
def get_deviations(monitor: Monitor = Depends(get_monitor)):
    snap = monitor.snapshot()
    return {
        "deviations": [d.to_dict() for d in snap.route_deviations],
        "count": len(snap.route_deviations),
        "last_updated_ms": snap.last_updated_ms,
    }


@router.get("/anomalies/shutoffs", tags=["anomalies"])
def get_shutoffs(monitor: Monitor = Depends(get_monitor)):
    snap = monitor.snapshot()
    return {
        "shutoffs": [m.to_dict() for m in snap.signal_shutoffs],
        "count": len(snap.signal_shutoffs),
        "last_updated_ms": snap.last_updated_ms,
    }


@router.post("/detection/run", tags=["anomalies"])
def run_detection(monitor: Monitor = Depends(get_monitor)):
    """Run one detection tick now (skipped if a tick is already in flight)."""
    return monitor.run_detection()


# ---------------------------------------------------------------------------
# Geofence
# ---------------------------------------------------------------------------

@router.get("/geofence", tags=["geofence"], response_model=GeofenceResponse, responses=_NOT_FOUND)
def get_geofence(monitor: Monitor = Depends(get_monitor)):
    ring = monitor.region.vertices
    if ring is None:
        raise HTTPException(status_code=404, detail="No geofence set")
    return {"geofence": [list(v) for v in ring], "is_default": monitor.region.is_default}


@router.post("/geofence", tags=["geofence"], status_code=201)
def set_geofence(body: GeofenceSetRequest, monitor: Monitor = Depends(get_monitor)):
    """Replace the monitoring polygon. Takes effect on the next detection tick."""
    try:
        monitor.set_region(body.coordinates)
    except InvalidPolygonError as exc:
        raise HTTPException(status_code=422, detail=str(exc))
    return {
        "message": "Geofence set successfully",
        "geofence": [list(v) for v in monitor.region.vertices],
    }


# ---------------------------------------------------------------------------
# Alert ledger
# ---------------------------------------------------------------------------

@router.get("/alerts", tags=["alerts"])
def list_alerts(monitor: Monitor = Depends(get_monitor)):
    """Outstanding (deduplicated) alerts awaiting an operator clear."""
    entries = [{"kind": kind.value, "entity_id": eid} for kind, eid in monitor.ledger.entries()]
    return {"alerts": entries, "count": len(entries)}


@router.post("/alerts/clear", tags=["alerts"], responses=_NOT_FOUND)
def clear_alert(body: AlertClearRequest, monitor: Monitor = Depends(get_monitor)):
    if not monitor.clear_alert(body.kind, body.entity_id):
        raise HTTPException(status_code=404, detail="No outstanding alert for that vessel")
    return {"status": "cleared", "kind": body.kind.value, "entity_id": body.entity_id}


@router.post("/alerts/reset", tags=["alerts"])
def reset_alerts(monitor: Monitor = Depends(get_monitor)):
    return {"status": "reset", "cleared": monitor.reset_alerts()}


# ---------------------------------------------------------------------------
# Alert recipients
# ---------------------------------------------------------------------------

@router.get("/alert-recipients", tags=["alerts"])
def get_alert_recipients(monitor: Monitor = Depends(get_monitor)):
    return monitor.recipients.as_dict()


@router.post("/alert-recipients", tags=["alerts"])
def set_alert_recipients(body: AlertRecipientsRequest, monitor: Monitor = Depends(get_monitor)):
    for addr in (body.user_email, body.coast_guard_email):
        if addr is not None and "@" not in addr:
            raise HTTPException(status_code=400, detail=f"Invalid email address: {addr}")
    if not body.user_email and not body.coast_guard_email:
        raise HTTPException(status_code=400, detail="At least one email address is required")
    return monitor.recipients.update(body.user_email, body.coast_guard_email)


@router.post("/alert-recipients/test", tags=["alerts"])
def send_test_alert(monitor: Monitor = Depends(get_monitor)):
    result = monitor.send_test_alert()
    if not result.success:
        raise HTTPException(status_code=502, detail=result.reason or "Notification failed")
    return {"status": "sent", "recipients": monitor.recipients.recipients()}


# ---------------------------------------------------------------------------
# Watchlist (tracked vessels)
# ---------------------------------------------------------------------------

@router.get("/watchlist", tags=["watchlist"])
def list_watchlist(monitor: Monitor = Depends(get_monitor)):
    tracked = []
    for mmsi in monitor.watchlist.tracked():
        entry = monitor.watchlist.latest(mmsi)
        tracked.append({
            "mmsi": mmsi,
            "latest": entry.report.to_dict() if entry else None,
            "last_seen_ms": entry.last_seen_ms if entry else None,
        })
    return {"vessels": tracked, "count": len(tracked)}


@router.post("/watchlist", tags=["watchlist"], status_code=201)
def add_to_watchlist(body: WatchlistAddRequest, monitor: Monitor = Depends(get_monitor)):
    added = monitor.track(body.mmsi)
    return {"mmsi": body.mmsi.strip(), "status": "added" if added else "already_tracked"}


@router.get("/watchlist/{mmsi}", tags=["watchlist"], responses=_NOT_FOUND)
def get_watchlist_vessel(mmsi: str, monitor: Monitor = Depends(get_monitor)):
    if mmsi not in monitor.watchlist.tracked():
        raise HTTPException(status_code=404, detail="Vessel is not being tracked")
    entry = monitor.watchlist.latest(mmsi)
    return {
        "mmsi": mmsi,
        "latest": entry.report.to_dict() if entry else None,
        "first_seen_ms": entry.first_seen_ms if entry else None,
        "last_seen_ms": entry.last_seen_ms if entry else None,
        "track": [p.to_dict() for p in monitor.watchlist.track_of(mmsi)],
    }


@router.delete("/watchlist/{mmsi}", tags=["watchlist"], responses=_NOT_FOUND)
def remove_from_watchlist(mmsi: str, monitor: Monitor = Depends(get_monitor)):
    if not monitor.untrack(mmsi):
        raise HTTPException(status_code=404, detail="Vessel is not being tracked")
    return {"mmsi": mmsi, "status": "removed"}
