# ================================
# FILE: floodhub/routes_requests.py
# ================================
import logging
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import and_, or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from floodhub import realtime
from floodhub.database import get_db
from floodhub.geolocation import Position, ReportedPosition
from floodhub.intake import IntakeError, Unauthenticated, submit_rescue_request
from floodhub.models import Profile, RescueRequest, User, UserRole
from floodhub.policy import ACTIVE_STATUSES, InvalidTransition, check_transition
from floodhub.routes_auth import Identity, get_identity, get_optional_user, require_roles
from floodhub.schemas import AssignRequest, CompleteRequest, RescueRequestCreate, RescueRequestOut
from floodhub.utils import haversine_m, mission_duration, utcnow

log = logging.getLogger("uvicorn.error").getChild("routes_requests")
router = APIRouter(tags=["requests"])

ADMIN = "mdrrmo_admin"


def _out(row: RescueRequest) -> dict:
    return RescueRequestOut.model_validate(row).model_dump()


def _get_or_404(db: Session, request_id: int) -> RescueRequest:
    row = db.get(RescueRequest, request_id)
    if not row:
        raise HTTPException(status_code=404, detail="Rescue request not found")
    return row


def apply_transition(db: Session, row: RescueRequest, action: str, values: dict | None = None,
                     extra_filter=None) -> RescueRequest:
    """Move `row` through `action` with a conditional UPDATE.

    The UPDATE only matches while the row is still in one of the action's
    source states, so a concurrent writer that got there first makes this
    one fail with 409 instead of silently overwriting it.
    """
    try:
        t = check_transition(action, row.status)
    except InvalidTransition as e:
        raise HTTPException(status_code=409, detail=str(e))

    update = {"status": t.target, **(values or {})}
    if t.closes:
        update["completed_at"] = utcnow()

    q = db.query(RescueRequest).filter(RescueRequest.id == row.id, RescueRequest.status.in_(t.sources))
    if extra_filter is not None:
        q = q.filter(extra_filter)
    try:
        n = q.update(update, synchronize_session=False)
        if n == 0:
            db.rollback()
            log.info("[transition] lost race id=%s action=%s", row.id, action)
            raise HTTPException(status_code=409, detail="Request was already updated by someone else")
        db.refresh(row)
        realtime.mark_changed(db, row)
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        log.warning("[transition] persist failed id=%s action=%s: %s", row.id, action, e)
        raise HTTPException(status_code=500, detail="Failed to update status")
    db.refresh(row)
    log.info("[transition] id=%s %s -> %s", row.id, action, row.status)
    return row


def _check_assigned_or_admin(identity: Identity, row: RescueRequest) -> None:
    if identity.role == ADMIN:
        return
    if identity.role == "rescuer" and row.assigned_rescuer_id == identity.user.id:
        return
    raise HTTPException(status_code=403, detail="Only the assigned rescuer or an admin may do this")


# --- Residents ---

@router.post("/rescue_requests", status_code=201)
def create_rescue_request(
    req: RescueRequestCreate,
    user: User | None = Depends(get_optional_user),
    db: Session = Depends(get_db),
):
    position = Position(**req.position.model_dump()) if req.position else None
    provider = ReportedPosition(position=position, error=req.position_error)
    try:
        result = submit_rescue_request(db, user, req, provider)
    except Unauthenticated as e:
        raise HTTPException(status_code=401, detail=str(e))
    except IntakeError as e:
        raise HTTPException(status_code=503, detail=str(e))

    return {
        "msg": "Rescue request submitted",
        "request": _out(result.request),
        "location_warning": result.location.warning,
        "ambient_alert_priority": result.ambient_alert_priority,
    }


@router.get("/rescue_requests/mine")
def my_requests(identity: Identity = Depends(get_identity), db: Session = Depends(get_db)):
    rows = (db.query(RescueRequest)
              .filter(RescueRequest.requester_id == identity.user.id)
              .order_by(RescueRequest.created_at.desc(), RescueRequest.id.desc())
              .all())
    return [_out(r) for r in rows]


@router.get("/rescue_requests/{request_id}")
def get_request(request_id: int, identity: Identity = Depends(get_identity), db: Session = Depends(get_db)):
    row = _get_or_404(db, request_id)
    if identity.role in (ADMIN, "rescuer") or row.requester_id == identity.user.id:
        return _out(row)
    raise HTTPException(status_code=403, detail="Not your request")


# --- Rescuers ---

@router.get("/missions")
def mission_board(identity: Identity = Depends(require_roles("rescuer")), db: Session = Depends(get_db)):
    """Open requests plus the caller's own active missions, most urgent first."""
    me = identity.user.id
    rows = (db.query(RescueRequest)
              .filter(or_(RescueRequest.status == "pending",
                          and_(RescueRequest.status.in_(("assigned", "in_progress")),
                               RescueRequest.assigned_rescuer_id == me)))
              .order_by(RescueRequest.priority_score.desc(), RescueRequest.created_at.asc())
              .all())

    my_profile = db.query(Profile).filter(Profile.user_id == me).first()
    requester_ids = {r.requester_id for r in rows if r.requester_id}
    profiles = {p.user_id: p for p in db.query(Profile).filter(Profile.user_id.in_(requester_ids)).all()} if requester_ids else {}

    missions = []
    for r in rows:
        item = _out(r)
        p = profiles.get(r.requester_id)
        item["requester_name"] = p.full_name if p else None
        item["requester_phone"] = p.phone_number if p else None
        item["distance_m"] = None
        if (my_profile and my_profile.last_known_lat is not None and my_profile.last_known_lng is not None
                and r.location_lat is not None and r.location_lng is not None):
            item["distance_m"] = round(haversine_m(my_profile.last_known_lat, my_profile.last_known_lng,
                                                   r.location_lat, r.location_lng), 1)
        missions.append(item)

    return {
        "available": [m for m in missions if m["status"] == "pending"],
        "mine": [m for m in missions if m["status"] != "pending"],
    }


@router.post("/rescue_requests/{request_id}/claim")
def claim(request_id: int, identity: Identity = Depends(require_roles("rescuer")), db: Session = Depends(get_db)):
    row = _get_or_404(db, request_id)
    row = apply_transition(db, row, "claim", {"assigned_rescuer_id": identity.user.id},
                           extra_filter=RescueRequest.assigned_rescuer_id.is_(None))
    return _out(row)


@router.post("/rescue_requests/{request_id}/start")
def start(request_id: int, identity: Identity = Depends(require_roles("rescuer", ADMIN)), db: Session = Depends(get_db)):
    row = _get_or_404(db, request_id)
    _check_assigned_or_admin(identity, row)
    return _out(apply_transition(db, row, "start"))


@router.post("/rescue_requests/{request_id}/complete")
def complete(request_id: int, req: CompleteRequest | None = None,
             identity: Identity = Depends(require_roles("rescuer", ADMIN)), db: Session = Depends(get_db)):
    row = _get_or_404(db, request_id)
    _check_assigned_or_admin(identity, row)
    values = {"completion_notes": req.completion_notes} if req and req.completion_notes else None
    return _out(apply_transition(db, row, "complete", values))


@router.get("/missions/history")
def mission_history(identity: Identity = Depends(require_roles("rescuer")), db: Session = Depends(get_db)):
    rows = (db.query(RescueRequest)
              .filter(RescueRequest.assigned_rescuer_id == identity.user.id,
                      RescueRequest.status == "completed")
              .order_by(RescueRequest.completed_at.desc())
              .all())
    missions = []
    for r in rows:
        item = _out(r)
        item["duration"] = mission_duration(r.created_at, r.completed_at)
        missions.append(item)

    return {
        "missions": missions,
        "stats": {
            "total": len(rows),
            "people_rescued": sum(r.household_count or 1 for r in rows),
            "critical": sum(1 for r in rows if r.severity == "critical"),
            "avg_score": round(sum(r.priority_score or 0 for r in rows) / len(rows)) if rows else 0,
            "by_severity": {s: sum(1 for r in rows if r.severity == s) for s in ("critical", "high", "medium")},
        },
    }


# --- Admin ---

@router.get("/rescue_requests")
def all_requests(
    status: str | None = Query(default=None),
    severity: str | None = Query(default=None),
    identity: Identity = Depends(require_roles(ADMIN)),
    db: Session = Depends(get_db),
):
    rows = db.query(RescueRequest).order_by(RescueRequest.created_at.desc(), RescueRequest.id.desc()).all()
    counts = {s: sum(1 for r in rows if r.status == s) for s in ("pending", "assigned", "in_progress", "completed", "cancelled")}
    filtered = [r for r in rows if (not status or r.status == status) and (not severity or r.severity == severity)]
    return {
        "counts": counts,
        "active": sum(counts[s] for s in ACTIVE_STATUSES),
        "total": len(rows),
        "requests": [_out(r) for r in filtered],
    }


@router.post("/rescue_requests/{request_id}/assign")
def assign(request_id: int, req: AssignRequest, identity: Identity = Depends(require_roles(ADMIN)),
           db: Session = Depends(get_db)):
    row = _get_or_404(db, request_id)
    rescuer_role = db.query(UserRole).filter(UserRole.user_id == req.rescuer_id).first()
    if not rescuer_role or rescuer_role.role != "rescuer":
        raise HTTPException(status_code=400, detail=f"User {req.rescuer_id} is not a rescuer")
    return _out(apply_transition(db, row, "assign", {"assigned_rescuer_id": req.rescuer_id}))


@router.post("/rescue_requests/{request_id}/cancel")
def cancel(request_id: int, identity: Identity = Depends(require_roles(ADMIN)), db: Session = Depends(get_db)):
    row = _get_or_404(db, request_id)
    return _out(apply_transition(db, row, "cancel"))
