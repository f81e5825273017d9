from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from callcontrol.core.database import get_db
from callcontrol.core.deps import get_current_user, require_admin
from callcontrol.core.security import hash_password
from callcontrol.models import User
from callcontrol.schemas import UserBase, UserCreate
from callcontrol.services.audit import log_event

router = APIRouter(prefix="/users", tags=["users"])


@router.get("/me", response_model=UserBase)
def get_me(user: User = Depends(get_current_user)):
    return user


@router.post("", response_model=UserBase)
def create_user(payload: UserCreate, db: Session = Depends(get_db), admin: User = Depends(require_admin)):
    existing = db.query(User).filter(User.username == payload.username).first()
    if existing:
        raise HTTPException(status_code=400, detail="Username already exists")
    user = User(
        org_id=admin.org_id,
        username=payload.username,
        name=payload.name,
        hashed_password=hash_password(payload.password),
        role=payload.role,
    )
    db.add(user)
    db.commit()
    log_event(db, "create_user", "success", user=admin, details={"username": user.username})
    return user


@router.get("", response_model=list[UserBase])
def list_users(db: Session = Depends(get_db), admin: User = Depends(require_admin)):
    return db.query(User).filter(User.org_id == admin.org_id).order_by(User.id).all()
