# Script to seed one login per role plus a demo evacuation center and flood zone.
# Safe to re-run: existing accounts are updated, not duplicated.

from floodhub.database import Base, SessionLocal, engine
from floodhub.models import EvacuationCenter, FloodZone, Profile, User, UserRole
from floodhub.utils import utcnow
from auth import get_password_hash

PASSWORD = "password123"
ZONE = "Poblacion"

accounts = [
    {"email": "resident@test.com", "role": "resident", "full_name": "Juan Dela Cruz",
     "phone_number": "09171234567", "address": "123 Rizal St, Poblacion, San Juan, Batangas"},
    {"email": "rescuer@test.com", "role": "rescuer", "full_name": "Pedro Rescuer",
     "phone_number": "09181234567", "address": None},
    {"email": "admin@test.com", "role": "mdrrmo_admin", "full_name": "Maria Admin",
     "phone_number": "09191234567", "address": None},
    {"email": "official@test.com", "role": "barangay_official", "full_name": "Jose Official",
     "phone_number": "09201234567", "address": None},
]


def upsert_user(db, account, center_id=None):
    user = db.query(User).filter(User.email == account["email"]).first()
    if user is None:
        user = User(email=account["email"], hashed_password=get_password_hash(PASSWORD))
        db.add(user); db.flush()

    profile = db.query(Profile).filter(Profile.user_id == user.id).first() or Profile(user_id=user.id)
    profile.full_name = account["full_name"]
    profile.phone_number = account["phone_number"]
    profile.address = account["address"]
    profile.barangay_zone = ZONE
    db.add(profile)

    role = db.query(UserRole).filter(UserRole.user_id == user.id).first() or UserRole(user_id=user.id)
    role.role = account["role"]
    role.assigned_zone = ZONE if account["role"] in ("rescuer", "barangay_official") else None
    role.assigned_evacuation_center_id = center_id if account["role"] == "barangay_official" else None
    db.add(role)
    return user


def main():
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        center = db.query(EvacuationCenter).filter(EvacuationCenter.name == "San Juan Central School").first()
        if center is None:
            center = EvacuationCenter(
                name="San Juan Central School",
                address="Gen. Luna St, Poblacion, San Juan, Batangas",
                location_lat=13.8280, location_lng=121.3955,
                max_capacity=250,
            )
            db.add(center); db.flush()

        users = {account["role"]: upsert_user(db, account, center.id) for account in accounts}
        center.assigned_official_id = users["barangay_official"].id

        if not db.query(FloodZone).filter(FloodZone.zone_name == ZONE).first():
            db.add(FloodZone(
                zone_name=ZONE, risk_level="moderate", current_water_level=0.4, last_reading_at=utcnow(),
                polygon_coordinates=[[13.831, 121.392], [13.831, 121.400], [13.822, 121.400], [13.822, 121.392]],
            ))
        db.commit()
    finally:
        db.close()

    for account in accounts:
        print(f'{account["role"]:<18} {account["email"]:<20} {PASSWORD}')
    print("Seed data written successfully.")


if __name__ == "__main__":
    main()
