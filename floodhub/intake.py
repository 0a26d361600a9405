# ================================
# FILE: floodhub/intake.py
# ================================
import logging
from dataclasses import dataclass

from sqlalchemy import or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from floodhub import models
from floodhub.geolocation import GeolocationProvider, ResolvedLocation, best_known_location
from floodhub.policy import highest_alert_priority, priority_score
from floodhub.schemas import RescueRequestCreate
from floodhub.utils import as_utc, normalize, utcnow

log = logging.getLogger("uvicorn.error").getChild("intake")


class Unauthenticated(Exception):
    pass


class IntakeError(Exception):
    """Persistence failed; the caller may resubmit."""


@dataclass
class IntakeResult:
    request: models.RescueRequest
    location: ResolvedLocation
    ambient_alert_priority: str


def ambient_alert_priority(db: Session, zone: str | None) -> str:
    """Most severe active, unexpired alert that targets `zone` (or every zone)."""
    now = utcnow()
    rows = (db.query(models.WeatherAlert)
              .filter(models.WeatherAlert.is_active.is_(True))
              .filter(or_(models.WeatherAlert.expires_at.is_(None), models.WeatherAlert.expires_at > now))
              .all())
    n_zone = normalize(zone)
    applicable = []
    for a in rows:
        # sqlite drops tzinfo, so re-check expiry in python
        if a.expires_at is not None and as_utc(a.expires_at) <= now:
            continue
        zones = a.target_zones or []
        if not zones or (n_zone and n_zone in {normalize(z) for z in zones}):
            applicable.append(a.priority)
    return highest_alert_priority(applicable)


def submit_rescue_request(
    db: Session,
    user: models.User | None,
    req: RescueRequestCreate,
    provider: GeolocationProvider,
) -> IntakeResult:
    if user is None:
        raise Unauthenticated("You must be logged in to submit a request")

    profile = db.query(models.Profile).filter(models.Profile.user_id == user.id).first()
    stored_address = req.address or (profile.address if profile else None)
    location = best_known_location(provider, stored_address)

    ambient = ambient_alert_priority(db, profile.barangay_zone if profile else None)
    needs = sorted(set(req.special_needs))
    score = priority_score(
        is_quick_sos=req.is_quick_sos,
        severity=req.severity,
        household_count=req.household_count,
        special_needs_count=len(needs),
        ambient_alert_priority=ambient,
    )

    row = models.RescueRequest(
        requester_id=user.id,
        severity=req.severity,
        status="pending",
        is_quick_sos=req.is_quick_sos,
        household_count=req.household_count,
        special_needs=needs or None,
        situation_description=req.situation_description or None,
        location_lat=location.latitude,
        location_lng=location.longitude,
        location_address=location.address,
        priority_score=score,
    )
    try:
        db.add(row); db.commit(); db.refresh(row)
    except SQLAlchemyError as e:
        db.rollback()
        log.warning("[intake] persist failed for user=%s: %s", user.id, e)
        raise IntakeError("Failed to submit request") from e

    log.info("[intake] request id=%s user=%s quick=%s severity=%s score=%d ambient=%s loc=%s",
             row.id, user.id, req.is_quick_sos, req.severity, score, ambient, location.source)
    return IntakeResult(request=row, location=location, ambient_alert_priority=ambient)
