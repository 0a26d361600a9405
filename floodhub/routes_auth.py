# =============================
# FILE: floodhub/routes_auth.py
# =============================
import logging
from dataclasses import dataclass
from fastapi import APIRouter, Depends, HTTPException
from fastapi.security import OAuth2PasswordBearer, OAuth2PasswordRequestForm
from sqlalchemy.orm import Session
from jose import JWTError

from floodhub.context import AppContext, get_context
from floodhub.database import get_db
from floodhub.models import User, Profile, UserRole
from floodhub.schemas import RegisterRequest, ProfileUpdate, ProfileOut
from auth import get_password_hash, verify_password, create_access_token, decode_access_token

log = logging.getLogger("uvicorn.error").getChild("routes_auth")

router = APIRouter(tags=["auth"])
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/token")
optional_oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/token", auto_error=False)


@dataclass
class Identity:
    user: User
    role: str
    sid: str | None


def user_from_token(token: str, db: Session) -> tuple[User, str | None]:
    try:
        payload = decode_access_token(token)
        user_id = payload.get("sub")
        if not user_id:
            raise HTTPException(status_code=401, detail="Invalid token payload")
    except JWTError:
        raise HTTPException(status_code=401, detail="Invalid token")
    user = db.get(User, int(user_id))
    if not user:
        raise HTTPException(status_code=401, detail="User not found")
    return user, payload.get("sid")


def role_of(db: Session, user_id: int) -> str:
    row = db.query(UserRole).filter(UserRole.user_id == user_id).first()
    return row.role if row else "resident"


def get_identity(token: str = Depends(oauth2_scheme), db: Session = Depends(get_db)) -> Identity:
    user, sid = user_from_token(token, db)
    return Identity(user=user, role=role_of(db, user.id), sid=sid)


def get_current_user(identity: Identity = Depends(get_identity)) -> User:
    return identity.user


def get_optional_user(token: str | None = Depends(optional_oauth2_scheme),
                      db: Session = Depends(get_db)) -> User | None:
    """None when no bearer token was sent; a bad token is still a 401."""
    if not token:
        return None
    user, _ = user_from_token(token, db)
    return user


def require_roles(*roles: str):
    def dependency(identity: Identity = Depends(get_identity)) -> Identity:
        if identity.role not in roles:
            raise HTTPException(status_code=403, detail="Not allowed for role " + identity.role)
        return identity
    return dependency


@router.post("/register")
def register(req: RegisterRequest, db: Session = Depends(get_db)):
    email = req.email.strip().lower()
    existing = db.query(User).filter(User.email == email).first()
    if existing:
        raise HTTPException(status_code=400, detail="Email already registered")
    user = User(email=email, hashed_password=get_password_hash(req.password))
    db.add(user); db.flush()
    # every sign-up starts as a resident; admins promote later
    db.add(Profile(user_id=user.id, full_name=req.full_name.strip()))
    db.add(UserRole(user_id=user.id, role="resident"))
    db.commit(); db.refresh(user)
    log.info("[auth] registered user id=%s", user.id)
    return {"msg": "User registered successfully", "user_id": user.id}


@router.post("/token")
def login(form_data: OAuth2PasswordRequestForm = Depends(), db: Session = Depends(get_db),
          ctx: AppContext = Depends(get_context)):
    user = db.query(User).filter(User.email == form_data.username.strip().lower()).first()
    if not user or not verify_password(form_data.password, user.hashed_password):
        raise HTTPException(status_code=401, detail="Invalid credentials")
    role = role_of(db, user.id)
    token = create_access_token(data={"sub": str(user.id), "role": role})
    ctx.publish_auth_event("SIGNED_IN", user.id, decode_access_token(token).get("sid"))
    return {"access_token": token, "token_type": "bearer", "role": role}


@router.post("/logout")
def logout(identity: Identity = Depends(get_identity), ctx: AppContext = Depends(get_context)):
    ctx.publish_auth_event("SIGNED_OUT", identity.user.id, identity.sid)
    log.info("[auth] signed out user id=%s", identity.user.id)
    return {"msg": "Signed out"}


@router.get("/me")
def me(identity: Identity = Depends(get_identity), db: Session = Depends(get_db)):
    role = db.query(UserRole).filter(UserRole.user_id == identity.user.id).first()
    profile = db.query(Profile).filter(Profile.user_id == identity.user.id).first()
    return {
        "id": identity.user.id,
        "email": identity.user.email,
        "role": identity.role,
        "assigned_zone": role.assigned_zone if role else None,
        "assigned_evacuation_center_id": role.assigned_evacuation_center_id if role else None,
        "profile": ProfileOut.model_validate(profile).model_dump() if profile else None,
    }


@router.get("/me/profile", response_model=ProfileOut)
def get_profile(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    profile = db.query(Profile).filter(Profile.user_id == user.id).first()
    if not profile:
        raise HTTPException(status_code=404, detail="Profile not found")
    return profile


@router.patch("/me/profile", response_model=ProfileOut)
def update_profile(req: ProfileUpdate, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    profile = db.query(Profile).filter(Profile.user_id == user.id).first()
    if not profile:
        profile = Profile(user_id=user.id)
        db.add(profile)
    for key, value in req.model_dump(exclude_unset=True).items():
        if key == "full_name" and value is None:
            continue  # not nullable
        setattr(profile, key, value)
    db.commit(); db.refresh(profile)
    return profile
