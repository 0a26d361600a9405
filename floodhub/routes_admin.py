# ================================
# FILE: floodhub/routes_admin.py
# ================================
import logging
from datetime import timedelta
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from floodhub.database import get_db
from floodhub.models import EvacuationCenter, Profile, RescueRequest, User, UserRole
from floodhub.policy import ACTIVE_STATUSES
from floodhub.routes_auth import Identity, require_roles
from floodhub.schemas import RoleUpdate
from floodhub.utils import activity_bucket, as_utc, utcnow

router = APIRouter(tags=["admin"])
log = logging.getLogger("uvicorn.error").getChild("routes_admin")

ADMIN = "mdrrmo_admin"


@router.get("/admin/analytics")
def analytics(identity: Identity = Depends(require_roles(ADMIN)), db: Session = Depends(get_db)):
    requests = db.query(RescueRequest).all()
    centers = db.query(EvacuationCenter).all()
    rescuers = db.query(UserRole).filter(UserRole.role == "rescuer").count()

    completed = [r for r in requests if r.status == "completed" and r.completed_at]
    response_minutes = [
        (as_utc(r.completed_at) - as_utc(r.created_at)).total_seconds() / 60 for r in completed
    ]

    today = utcnow().date()
    trend = []
    for offset in range(6, -1, -1):
        day = today - timedelta(days=offset)
        trend.append({
            "date": day.isoformat(),
            "requests": sum(1 for r in requests if as_utc(r.created_at).date() == day),
            "completed": sum(1 for r in completed if as_utc(r.completed_at).date() == day),
        })

    return {
        "total_requests": len(requests),
        "pending": sum(1 for r in requests if r.status == "pending"),
        "completed": len(completed),
        "people_in_requests": sum(r.household_count or 1 for r in requests),
        "total_evacuees": sum(c.current_occupancy or 0 for c in centers),
        "active_centers": sum(1 for c in centers if c.status == "operational"),
        "rescuers": rescuers,
        "avg_response_minutes": round(sum(response_minutes) / len(response_minutes)) if response_minutes else 0,
        "by_severity": {s: sum(1 for r in requests if r.severity == s) for s in ("critical", "high", "medium")},
        "by_status": {s: sum(1 for r in requests if r.status == s)
                      for s in ("pending", "assigned", "in_progress", "completed", "cancelled")},
        "trend": trend,
    }


@router.get("/admin/rescuers")
def rescuers(identity: Identity = Depends(require_roles(ADMIN)), db: Session = Depends(get_db)):
    roles = db.query(UserRole).filter(UserRole.role == "rescuer").all()
    out = []
    for role in roles:
        profile = db.query(Profile).filter(Profile.user_id == role.user_id).first()
        done = (db.query(RescueRequest)
                  .filter(RescueRequest.assigned_rescuer_id == role.user_id, RescueRequest.status == "completed")
                  .count())
        active = (db.query(RescueRequest)
                    .filter(RescueRequest.assigned_rescuer_id == role.user_id,
                            RescueRequest.status.in_(("assigned", "in_progress")))
                    .count())
        out.append({
            "user_id": role.user_id,
            "full_name": profile.full_name if profile else None,
            "phone_number": profile.phone_number if profile else None,
            "assigned_zone": role.assigned_zone,
            "completed_missions": done,
            "active_missions": active,
            "status": "on_mission" if active else "available",
            "success_rate": round(done / (done + active) * 100) if (done + active) else None,
            "activity": activity_bucket(profile.last_active_at if profile else None),
        })
    return {
        "rescuers": out,
        "on_mission": sum(1 for r in out if r["active_missions"] > 0),
        "available": sum(1 for r in out if r["active_missions"] == 0),
        "completed_missions": sum(r["completed_missions"] for r in out),
    }


@router.get("/residents")
def registered_residents(
    zone: str | None = Query(default=None),
    identity: Identity = Depends(require_roles(ADMIN, "barangay_official")),
    db: Session = Depends(get_db),
):
    """Residents with their last known position and how recently they were active."""
    if zone is None and identity.role == "barangay_official":
        mine = db.query(UserRole).filter(UserRole.user_id == identity.user.id).first()
        zone = mine.assigned_zone if mine else None

    q = (db.query(Profile)
           .join(UserRole, UserRole.user_id == Profile.user_id)
           .filter(UserRole.role == "resident"))
    if zone:
        q = q.filter(Profile.barangay_zone == zone)
    profiles = q.order_by(Profile.full_name).all()

    now = utcnow()
    residents = []
    for p in profiles:
        active_requests = (db.query(RescueRequest)
                             .filter(RescueRequest.requester_id == p.user_id,
                                     RescueRequest.status.in_(ACTIVE_STATUSES))
                             .count())
        residents.append({
            "user_id": p.user_id,
            "full_name": p.full_name,
            "phone_number": p.phone_number,
            "address": p.address,
            "barangay_zone": p.barangay_zone,
            "last_known_lat": p.last_known_lat,
            "last_known_lng": p.last_known_lng,
            "last_active_at": p.last_active_at,
            "activity": activity_bucket(p.last_active_at, now),
            "active_requests": active_requests,
        })
    return {
        "residents": residents,
        "online": sum(1 for r in residents if r["activity"]["bucket"] == "online"),
        "recent": sum(1 for r in residents if r["activity"]["bucket"] == "recent"),
    }


@router.put("/admin/users/{user_id}/role")
def set_role(user_id: int, req: RoleUpdate, identity: Identity = Depends(require_roles(ADMIN)),
             db: Session = Depends(get_db)):
    if not db.get(User, user_id):
        raise HTTPException(status_code=404, detail="User not found")
    if req.assigned_evacuation_center_id is not None and not db.get(EvacuationCenter, req.assigned_evacuation_center_id):
        raise HTTPException(status_code=400, detail="Evacuation center not found")
    row = db.query(UserRole).filter(UserRole.user_id == user_id).first()
    if row is None:
        row = UserRole(user_id=user_id)
        db.add(row)
    row.role = req.role
    row.assigned_zone = req.assigned_zone
    row.assigned_evacuation_center_id = req.assigned_evacuation_center_id
    db.commit(); db.refresh(row)
    log.info("[admin] user=%s role=%s zone=%s center=%s", user_id, row.role, row.assigned_zone,
             row.assigned_evacuation_center_id)
    return {
        "user_id": user_id,
        "role": row.role,
        "assigned_zone": row.assigned_zone,
        "assigned_evacuation_center_id": row.assigned_evacuation_center_id,
    }
