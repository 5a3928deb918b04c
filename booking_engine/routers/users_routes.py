# booking_engine/routers/users_routes.py

from fastapi import APIRouter, Depends, HTTPException
from sqlmodel import Session, select

from booking_engine.auth import get_current_user, hash_password
from booking_engine.db import get_session
from booking_engine.models import User
from booking_engine.provisioning import provision_provider
from booking_engine.schemas import UserCreate, UserPublic, UserRole

router = APIRouter(
    tags=["users"],
)


@router.get("/me", response_model=UserPublic)
def me(current_user: dict = Depends(get_current_user)):
    return {
        "id": current_user["id"],
        "email": current_user["email"],
        "role": current_user["role"],
    }


@router.post("/users", status_code=201, response_model=UserPublic)
def create_user(
    user: UserCreate,
    session: Session = Depends(get_session),
):
    # 1) Check if email already exists
    existing = session.exec(
        select(User).where(User.email == user.email)
    ).first()
    if existing is not None:
        raise HTTPException(status_code=409, detail="Email already registered")

    # 2) Create user in DB
    db_user = User(
        email=user.email,
        password_hash=hash_password(user.password),
        role=user.role.value,
    )
    session.add(db_user)
    session.commit()
    session.refresh(db_user)  # fills db_user.id

    # 3) Barbers get their provider profile at onboarding
    if user.role == UserRole.barber:
        provision_provider(session, db_user, display_name=user.display_name)

    return {
        "id": db_user.id,
        "email": db_user.email,
        "role": db_user.role,
    }
