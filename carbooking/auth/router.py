import uuid

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from ..db import get_db
from ..models.models import User
from ..schemas.auth import LoginRequest, MeResponse, TokenResponse
from .identity import Credentials, InvalidCredentials, get_identity_provider, provision_user
from .security import create_access_token, create_refresh_token, decode_token, get_current_user


router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/login", response_model=TokenResponse)
def login(req: LoginRequest, db: Session = Depends(get_db)):
    provider = get_identity_provider()
    try:
        identity = provider.authenticate(db, Credentials(identifier=req.identifier, password=req.password))
    except InvalidCredentials:
        raise HTTPException(status_code=401, detail="Invalid credentials")
    user = provision_user(db, identity)
    if not user.is_active:
        raise HTTPException(status_code=403, detail="Account disabled")
    access = create_access_token(str(user.id), role=user.role)
    refresh = create_refresh_token(str(user.id))
    return TokenResponse(access_token=access, refresh_token=refresh)


@router.post("/refresh", response_model=TokenResponse)
def refresh(token: str, db: Session = Depends(get_db)):
    # Refresh tokens are not persisted or rotated server-side
    payload = decode_token(token)
    if payload.get("type") != "refresh":
        raise HTTPException(status_code=400, detail="Invalid refresh token")
    try:
        user_id = uuid.UUID(str(payload.get("sub")))
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid refresh token")
    user = db.query(User).filter(User.id == user_id).first()
    if user is None or not user.is_active:
        raise HTTPException(status_code=401, detail="User not active")
    # Re-read the role so a changed role reaches the next access token
    access = create_access_token(str(user.id), role=user.role)
    refresh_token = create_refresh_token(str(user.id))
    return TokenResponse(access_token=access, refresh_token=refresh_token)


@router.get("/me", response_model=MeResponse)
def me(user: User = Depends(get_current_user)):
    return MeResponse(
        id=user.id,
        name=user.name,
        email=user.email,
        role=user.role,
        manager_id=user.manager_id,
        department_id=user.department_id,
    )
