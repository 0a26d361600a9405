# ================================
# FILE: floodhub/routes_centers.py
# ================================
import logging
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import case
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from floodhub import realtime
from floodhub.database import get_db
from floodhub.models import EvacuationCenter, Evacuee, User, UserRole
from floodhub.policy import available_spaces, occupancy_level, occupancy_pct
from floodhub.routes_auth import Identity, get_identity, require_roles
from floodhub.schemas import CenterCreate, CenterOut, CenterUpdate, EvacueeCreate, EvacueeOut, OccupancyAdjust
from floodhub.utils import utcnow

log = logging.getLogger("uvicorn.error").getChild("routes_centers")
router = APIRouter(tags=["centers"])

ADMIN = "mdrrmo_admin"
OFFICIAL = "barangay_official"
NULLABLE_CENTER_FIELDS = ("location_lat", "location_lng", "assigned_official_id")


def center_out(c: EvacuationCenter) -> dict:
    out = CenterOut.model_validate(c).model_dump()
    out["occupancy_pct"] = occupancy_pct(c.current_occupancy, c.max_capacity)
    out["occupancy_level"] = occupancy_level(c.current_occupancy, c.max_capacity)
    out["available_spaces"] = available_spaces(c.current_occupancy, c.max_capacity)
    return out


def _get_center(db: Session, center_id: int) -> EvacuationCenter:
    c = db.get(EvacuationCenter, center_id)
    if not c:
        raise HTTPException(status_code=404, detail="Evacuation center not found")
    return c


def official_center(db: Session, user_id: int) -> EvacuationCenter | None:
    role = db.query(UserRole).filter(UserRole.user_id == user_id).first()
    if role and role.assigned_evacuation_center_id:
        c = db.get(EvacuationCenter, role.assigned_evacuation_center_id)
        if c:
            return c
    return db.query(EvacuationCenter).filter(EvacuationCenter.assigned_official_id == user_id).first()


def _check_center_access(db: Session, identity: Identity, center: EvacuationCenter) -> None:
    if identity.role == ADMIN:
        return
    mine = official_center(db, identity.user.id)
    if identity.role == OFFICIAL and mine is not None and mine.id == center.id:
        return
    raise HTTPException(status_code=403, detail="Not assigned to this evacuation center")


def adjust_occupancy(db: Session, center: EvacuationCenter, delta: int) -> EvacuationCenter:
    """Single UPDATE, clamped at zero; the caller commits."""
    new_value = EvacuationCenter.current_occupancy + delta
    (db.query(EvacuationCenter)
       .filter(EvacuationCenter.id == center.id)
       .update({"current_occupancy": case((new_value < 0, 0), else_=new_value)}, synchronize_session=False))
    db.refresh(center)
    realtime.mark_changed(db, center)
    return center


@router.get("/centers")
def list_centers(identity: Identity = Depends(get_identity), db: Session = Depends(get_db)):
    centers = db.query(EvacuationCenter).order_by(EvacuationCenter.name).all()
    total_capacity = sum(c.max_capacity for c in centers)
    total_occupancy = sum(c.current_occupancy for c in centers)
    return {
        "centers": [center_out(c) for c in centers],
        "total_capacity": total_capacity,
        "total_occupancy": total_occupancy,
        "overall_pct": occupancy_pct(total_occupancy, total_capacity) if total_capacity else 0,
    }


@router.get("/centers/mine")
def my_center(identity: Identity = Depends(require_roles(OFFICIAL)), db: Session = Depends(get_db)):
    c = official_center(db, identity.user.id)
    if not c:
        raise HTTPException(status_code=404, detail="No center assigned")
    return center_out(c)


@router.get("/centers/{center_id}")
def get_center(center_id: int, identity: Identity = Depends(get_identity), db: Session = Depends(get_db)):
    return center_out(_get_center(db, center_id))


@router.post("/centers", status_code=201)
def create_center(req: CenterCreate, identity: Identity = Depends(require_roles(ADMIN)), db: Session = Depends(get_db)):
    c = EvacuationCenter(**req.model_dump(), current_occupancy=0, status="operational", supplies_status="adequate")
    db.add(c); db.commit(); db.refresh(c)
    log.info("[centers] created id=%s name=%r capacity=%d", c.id, c.name, c.max_capacity)
    return center_out(c)


@router.patch("/centers/{center_id}")
def update_center(center_id: int, req: CenterUpdate, identity: Identity = Depends(get_identity),
                  db: Session = Depends(get_db)):
    c = _get_center(db, center_id)
    _check_center_access(db, identity, c)
    changes = req.model_dump(exclude_unset=True)
    if identity.role != ADMIN:
        # officials report status only
        changes = {k: v for k, v in changes.items() if k in ("status", "supplies_status")}
    if changes.get("assigned_official_id") is not None and not db.get(User, changes["assigned_official_id"]):
        raise HTTPException(status_code=400, detail="Official not found")
    for key, value in changes.items():
        if value is None and key not in NULLABLE_CENTER_FIELDS:
            continue
        setattr(c, key, value)
    db.commit(); db.refresh(c)
    return center_out(c)


@router.delete("/centers/{center_id}")
def delete_center(center_id: int, identity: Identity = Depends(require_roles(ADMIN)), db: Session = Depends(get_db)):
    c = _get_center(db, center_id)
    checked_in = (db.query(Evacuee)
                    .filter(Evacuee.evacuation_center_id == c.id, Evacuee.checked_out_at.is_(None))
                    .count())
    if checked_in:
        raise HTTPException(status_code=409, detail=f"{checked_in} evacuee families are still checked in")
    try:
        # sqlite does not enforce ON DELETE SET NULL
        (db.query(Evacuee)
           .filter(Evacuee.evacuation_center_id == c.id)
           .update({"evacuation_center_id": None}, synchronize_session=False))
        (db.query(UserRole)
           .filter(UserRole.assigned_evacuation_center_id == c.id)
           .update({"assigned_evacuation_center_id": None}, synchronize_session=False))
        db.delete(c); db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        log.warning("[centers] delete failed id=%s: %s", center_id, e)
        raise HTTPException(status_code=500, detail="Failed to delete center")
    log.info("[centers] deleted id=%s", center_id)
    return {"msg": "Center deleted", "id": center_id}


@router.post("/centers/{center_id}/occupancy")
def change_occupancy(center_id: int, req: OccupancyAdjust, identity: Identity = Depends(get_identity),
                     db: Session = Depends(get_db)):
    c = _get_center(db, center_id)
    _check_center_access(db, identity, c)
    try:
        adjust_occupancy(db, c, req.delta)
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        log.warning("[centers] occupancy update failed id=%s: %s", center_id, e)
        raise HTTPException(status_code=500, detail="Failed to update occupancy")
    db.refresh(c)
    return center_out(c)


# --- Evacuees ---

@router.get("/centers/{center_id}/evacuees")
def list_evacuees(center_id: int, include_checked_out: bool = False,
                  identity: Identity = Depends(get_identity), db: Session = Depends(get_db)):
    c = _get_center(db, center_id)
    _check_center_access(db, identity, c)
    q = db.query(Evacuee).filter(Evacuee.evacuation_center_id == c.id)
    if not include_checked_out:
        q = q.filter(Evacuee.checked_out_at.is_(None))
    rows = q.order_by(Evacuee.checked_in_at.desc(), Evacuee.id.desc()).all()
    return {
        "center": center_out(c),
        "families": len(rows),
        "people": sum(e.adults_count + e.children_count for e in rows),
        "evacuees": [EvacueeOut.model_validate(e).model_dump() for e in rows],
    }


@router.post("/centers/{center_id}/evacuees", status_code=201)
def register_evacuee(center_id: int, req: EvacueeCreate, identity: Identity = Depends(get_identity),
                     db: Session = Depends(get_db)):
    c = _get_center(db, center_id)
    _check_center_access(db, identity, c)
    needs = sorted(set(req.special_needs))
    evacuee = Evacuee(
        family_name=req.family_name.strip(),
        adults_count=req.adults_count,
        children_count=req.children_count,
        home_address=(req.home_address or "").strip() or None,
        contact_number=(req.contact_number or "").strip() or None,
        special_needs=needs or None,
        evacuation_center_id=c.id,
        registered_by=identity.user.id,
    )
    try:
        db.add(evacuee); db.flush()
        # registration and occupancy share one transaction
        adjust_occupancy(db, c, req.adults_count + req.children_count)
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        log.warning("[evacuees] register failed center=%s: %s", center_id, e)
        raise HTTPException(status_code=500, detail="Failed to register evacuee")
    db.refresh(evacuee); db.refresh(c)
    log.info("[evacuees] %s family registered at center=%s (+%d)", evacuee.family_name, c.id,
             req.adults_count + req.children_count)
    return {"evacuee": EvacueeOut.model_validate(evacuee).model_dump(), "center": center_out(c)}


@router.post("/evacuees/{evacuee_id}/checkout")
def checkout_evacuee(evacuee_id: int, identity: Identity = Depends(get_identity), db: Session = Depends(get_db)):
    evacuee = db.get(Evacuee, evacuee_id)
    if not evacuee:
        raise HTTPException(status_code=404, detail="Evacuee not found")
    if evacuee.checked_out_at is not None:
        raise HTTPException(status_code=409, detail="Evacuee already checked out")
    # the center may be gone; then only an admin can check the family out
    c = db.get(EvacuationCenter, evacuee.evacuation_center_id) if evacuee.evacuation_center_id else None
    if c is not None:
        _check_center_access(db, identity, c)
    elif identity.role != ADMIN:
        raise HTTPException(status_code=403, detail="Not assigned to this evacuation center")

    try:
        n = (db.query(Evacuee)
               .filter(Evacuee.id == evacuee.id, Evacuee.checked_out_at.is_(None))
               .update({"checked_out_at": utcnow()}, synchronize_session=False))
        if n == 0:
            db.rollback()
            raise HTTPException(status_code=409, detail="Evacuee already checked out")
        db.refresh(evacuee)
        realtime.mark_changed(db, evacuee)
        if c is not None:
            adjust_occupancy(db, c, -(evacuee.adults_count + evacuee.children_count))
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        log.warning("[evacuees] checkout failed id=%s: %s", evacuee_id, e)
        raise HTTPException(status_code=500, detail="Failed to check out evacuee")
    db.refresh(evacuee)
    out = {"evacuee": EvacueeOut.model_validate(evacuee).model_dump()}
    if c is not None:
        db.refresh(c)
        out["center"] = center_out(c)
    return out
