# ================================
# FILE: floodhub/routes_equipment.py
# ================================
import logging
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from floodhub.database import get_db
from floodhub.models import EQUIPMENT_CONDITIONS, Profile, RescuerEquipment, UserRole
from floodhub.routes_auth import Identity, require_roles
from floodhub.schemas import EquipmentIn, EquipmentOut

log = logging.getLogger("uvicorn.error").getChild("routes_equipment")
router = APIRouter(tags=["equipment"])

NEEDS_REPAIR = ("fair", "poor")


def condition_summary(items) -> dict:
    return {
        "excellent": sum(1 for i in items if i.condition == "excellent"),
        "good": sum(1 for i in items if i.condition == "good"),
        "needs_repair": sum(1 for i in items if i.condition in NEEDS_REPAIR),
        "total_quantity": sum(i.quantity for i in items),
    }


def _own_item(db: Session, identity: Identity, item_id: int) -> RescuerEquipment:
    item = db.get(RescuerEquipment, item_id)
    if not item or item.rescuer_id != identity.user.id:
        raise HTTPException(status_code=404, detail="Equipment not found")
    return item


@router.get("/equipment")
def my_equipment(identity: Identity = Depends(require_roles("rescuer")), db: Session = Depends(get_db)):
    items = (db.query(RescuerEquipment)
               .filter(RescuerEquipment.rescuer_id == identity.user.id)
               .order_by(RescuerEquipment.equipment_name)
               .all())
    return {
        "items": [EquipmentOut.model_validate(i).model_dump() for i in items],
        "summary": condition_summary(items),
    }


@router.post("/equipment", status_code=201)
def add_equipment(req: EquipmentIn, identity: Identity = Depends(require_roles("rescuer")), db: Session = Depends(get_db)):
    item = RescuerEquipment(rescuer_id=identity.user.id, **req.model_dump())
    db.add(item); db.commit(); db.refresh(item)
    return EquipmentOut.model_validate(item).model_dump()


@router.put("/equipment/{item_id}")
def update_equipment(item_id: int, req: EquipmentIn, identity: Identity = Depends(require_roles("rescuer")),
                     db: Session = Depends(get_db)):
    item = _own_item(db, identity, item_id)
    for key, value in req.model_dump().items():
        setattr(item, key, value)
    db.commit(); db.refresh(item)
    return EquipmentOut.model_validate(item).model_dump()


@router.delete("/equipment/{item_id}")
def delete_equipment(item_id: int, identity: Identity = Depends(require_roles("rescuer")), db: Session = Depends(get_db)):
    item = _own_item(db, identity, item_id)
    db.delete(item); db.commit()
    return {"msg": "Equipment deleted", "id": item_id}


@router.get("/admin/inventory")
def inventory(identity: Identity = Depends(require_roles("mdrrmo_admin")), db: Session = Depends(get_db)):
    """Equipment of every rescuer, grouped per rescuer with condition counts."""
    rescuer_ids = [r.user_id for r in db.query(UserRole).filter(UserRole.role == "rescuer").all()]
    names = {p.user_id: p.full_name for p in db.query(Profile).filter(Profile.user_id.in_(rescuer_ids)).all()} if rescuer_ids else {}
    items = db.query(RescuerEquipment).filter(RescuerEquipment.rescuer_id.in_(rescuer_ids)).all() if rescuer_ids else []

    groups = []
    for rid in rescuer_ids:
        mine = [i for i in items if i.rescuer_id == rid]
        groups.append({
            "rescuer_id": rid,
            "rescuer_name": names.get(rid),
            "items": [EquipmentOut.model_validate(i).model_dump() for i in mine],
            "summary": condition_summary(mine),
        })
    return {
        "summary": condition_summary(items),
        "conditions": {c: sum(1 for i in items if i.condition == c) for c in EQUIPMENT_CONDITIONS},
        "rescuers": groups,
    }
