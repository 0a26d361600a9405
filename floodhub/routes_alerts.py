# ================================
# FILE: floodhub/routes_alerts.py
# ================================
import logging
from datetime import date
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from floodhub.database import get_db
from floodhub.intake import ambient_alert_priority
from floodhub.models import Profile, WeatherAlert, WeatherForecast
from floodhub.policy import ALERT_RANK
from floodhub.routes_auth import Identity, get_identity, require_roles
from floodhub.schemas import AlertCreate, AlertOut, ForecastIn, ForecastOut
from floodhub.utils import as_utc, normalize, utcnow

log = logging.getLogger("uvicorn.error").getChild("routes_alerts")
router = APIRouter(tags=["alerts"])

ADMIN = "mdrrmo_admin"


def _alert_out(a: WeatherAlert) -> dict:
    return AlertOut.model_validate(a).model_dump()


def _applies_to(a: WeatherAlert, zone: str | None) -> bool:
    zones = a.target_zones or []
    return not zones or normalize(zone) in {normalize(z) for z in zones}


@router.get("/alerts/active")
def active_alerts(identity: Identity = Depends(get_identity), db: Session = Depends(get_db)):
    """Alerts currently broadcast to the caller's zone, newest first."""
    profile = db.query(Profile).filter(Profile.user_id == identity.user.id).first()
    zone = profile.barangay_zone if profile else None
    now = utcnow()
    rows = (db.query(WeatherAlert)
              .filter(WeatherAlert.is_active.is_(True))
              .order_by(WeatherAlert.created_at.desc(), WeatherAlert.id.desc())
              .all())
    alerts = [a for a in rows
              if (a.expires_at is None or as_utc(a.expires_at) > now) and _applies_to(a, zone)]
    return {
        "alerts": [_alert_out(a) for a in alerts],
        "ambient_priority": ambient_alert_priority(db, zone),
    }


@router.get("/alerts")
def all_alerts(identity: Identity = Depends(require_roles(ADMIN)), db: Session = Depends(get_db)):
    rows = db.query(WeatherAlert).order_by(WeatherAlert.created_at.desc(), WeatherAlert.id.desc()).all()
    return {
        "alerts": [_alert_out(a) for a in rows],
        "counts": {p: sum(1 for a in rows if a.priority == p) for p in ALERT_RANK if p != "none"},
        "active": sum(1 for a in rows if a.is_active),
    }


@router.post("/alerts", status_code=201)
def broadcast_alert(req: AlertCreate, identity: Identity = Depends(require_roles(ADMIN)), db: Session = Depends(get_db)):
    zones = [z.strip() for z in (req.target_zones or []) if z.strip()]
    alert = WeatherAlert(
        title=req.title.strip(),
        message=req.message.strip(),
        priority=req.priority,
        target_zones=zones or None,
        created_by=identity.user.id,
        expires_at=req.expires_at,
        is_active=True,
    )
    db.add(alert); db.commit(); db.refresh(alert)
    log.info("[alerts] broadcast id=%s priority=%s zones=%s", alert.id, alert.priority, zones or "all")
    return _alert_out(alert)


@router.post("/alerts/{alert_id}/toggle")
def toggle_alert(alert_id: int, identity: Identity = Depends(require_roles(ADMIN)), db: Session = Depends(get_db)):
    alert = db.get(WeatherAlert, alert_id)
    if not alert:
        raise HTTPException(status_code=404, detail="Alert not found")
    alert.is_active = not alert.is_active
    db.commit(); db.refresh(alert)
    return _alert_out(alert)


@router.delete("/alerts/{alert_id}")
def delete_alert(alert_id: int, identity: Identity = Depends(require_roles(ADMIN)), db: Session = Depends(get_db)):
    alert = db.get(WeatherAlert, alert_id)
    if not alert:
        raise HTTPException(status_code=404, detail="Alert not found")
    db.delete(alert); db.commit()
    return {"msg": "Alert deleted", "id": alert_id}


# --- Forecast (cached by admins) ---

@router.get("/weather/forecast", response_model=list[ForecastOut])
def forecast(days: int = Query(default=7, ge=1, le=14), db: Session = Depends(get_db)):
    return (db.query(WeatherForecast)
              .filter(WeatherForecast.forecast_date >= date.today())
              .order_by(WeatherForecast.forecast_date.asc())
              .limit(days)
              .all())


@router.put("/weather/forecast", response_model=ForecastOut)
def upsert_forecast(req: ForecastIn, identity: Identity = Depends(require_roles(ADMIN)), db: Session = Depends(get_db)):
    row = db.query(WeatherForecast).filter(WeatherForecast.forecast_date == req.forecast_date).first()
    if row is None:
        row = WeatherForecast(**req.model_dump())
        db.add(row)
    else:
        for key, value in req.model_dump().items():
            setattr(row, key, value)
    db.commit(); db.refresh(row)
    return row
