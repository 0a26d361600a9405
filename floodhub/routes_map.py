# ================================
# FILE: floodhub/routes_map.py
# ================================
import logging
from dataclasses import asdict
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from floodhub.config import TILE_PROVIDERS, get_tile_provider, DEFAULT_LAT, DEFAULT_LNG, DEFAULT_LOCATION_NAME
from floodhub.context import AppContext, get_context
from floodhub.database import get_db
from floodhub.models import FloodZone, Profile
from floodhub.routes_auth import Identity, get_identity
from floodhub.schemas import FloodZoneOut, LocationReport
from floodhub.utils import utcnow

log = logging.getLogger("uvicorn.error").getChild("routes_map")
router = APIRouter(tags=["map"])


@router.post("/me/location")
def report_location(
    req: LocationReport,
    identity: Identity = Depends(get_identity),
    db: Session = Depends(get_db),
    ctx: AppContext = Depends(get_context),
):
    """Persist the caller's position, at most once per throttle window per session."""
    key = identity.sid or f"user:{identity.user.id}"
    if not ctx.throttle.allow(key, force=req.forced):
        return {"persisted": False}

    profile = db.query(Profile).filter(Profile.user_id == identity.user.id).first()
    if not profile:
        raise HTTPException(status_code=404, detail="Profile not found")
    profile.last_known_lat = req.latitude
    profile.last_known_lng = req.longitude
    profile.last_active_at = utcnow()
    db.commit()
    log.info("[location] user=%s forced=%s", identity.user.id, req.forced)
    return {"persisted": True, "last_active_at": profile.last_active_at}


@router.get("/route")
def driving_route(
    from_lat: float = Query(ge=-90, le=90),
    from_lng: float = Query(ge=-180, le=180),
    to_lat: float = Query(ge=-90, le=90),
    to_lng: float = Query(ge=-180, le=180),
    ctx: AppContext = Depends(get_context),
):
    return asdict(ctx.routing.route(from_lat, from_lng, to_lat, to_lng))


@router.get("/map/tiles")
def tile_providers():
    return {
        "default": "street",
        "center": {"lat": DEFAULT_LAT, "lng": DEFAULT_LNG, "name": DEFAULT_LOCATION_NAME},
        "providers": [{"key": k, **v} for k, v in TILE_PROVIDERS.items()],
    }


@router.get("/map/tiles/{key}")
def tile_provider(key: str):
    provider = get_tile_provider(key)
    if provider is None:
        raise HTTPException(status_code=404, detail=f"Unknown tile provider '{key}'")
    return {"key": key.lower().strip(), **provider}


@router.get("/flood_zones", response_model=list[FloodZoneOut])
def flood_zones(db: Session = Depends(get_db), identity: Identity = Depends(get_identity)):
    return db.query(FloodZone).order_by(FloodZone.zone_name).all()
