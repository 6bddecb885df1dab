from fastapi import APIRouter, Depends, HTTPException, status, Header
from jwt import PyJWTError
from sqlalchemy.orm import Session
from typing import Optional

from core.config import settings
from core.db import get_db
from core.logging import get_logger
from models.subscription import Subscription
from models.user import User
from schemas.auth import (
    RegisterRequest,
    LoginRequest,
    TokenPair,
    RefreshTokenRequest,
)
from schemas.users import UserOut
from security.password import hash_password, verify_password
from security import jwt as jwt_utils

logger = get_logger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


def _user_from_subject(db: Session, sub: Optional[str]) -> Optional[User]:
    try:
        user_id = int(sub)
    except (TypeError, ValueError):
        return None
    return db.query(User).filter(User.id == user_id).one_or_none()


def get_current_user(
    db: Session = Depends(get_db), authorization: Optional[str] = Header(default=None, alias="Authorization")
) -> User:
    if not authorization or not authorization.lower().startswith("bearer "):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")
    token = authorization.split(" ", 1)[1]
    try:
        payload = jwt_utils.decode_access(token)
    except PyJWTError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")
    user = _user_from_subject(db, payload.get("sub"))
    if not user:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User not found")
    return user


@router.post("/register", response_model=UserOut, status_code=201)
def register(data: RegisterRequest, db: Session = Depends(get_db)):
    existing = db.query(User).filter(User.email == data.email.lower()).one_or_none()
    if existing:
        raise HTTPException(status_code=400, detail="Email already registered")
    user = User(
        name=data.name.strip(),
        email=data.email.lower(),
        password_hash=hash_password(data.password),
    )
    # Every new owner starts on a free trial
    user.subscription = Subscription(**Subscription.start_trial(settings.TRIAL_DAYS))
    db.add(user)
    db.commit()
    db.refresh(user)
    logger.info("Registered owner %s with a %s-day trial", user.id, settings.TRIAL_DAYS)
    return user


@router.post("/login", response_model=TokenPair)
def login(data: LoginRequest, db: Session = Depends(get_db)):
    user = db.query(User).filter(User.email == data.email.lower()).one_or_none()
    if not user or not verify_password(data.password, user.password_hash):
        raise HTTPException(status_code=400, detail="Invalid credentials")
    access = jwt_utils.create_access_token(str(user.id))
    refresh = jwt_utils.create_refresh_token(str(user.id))
    return TokenPair(access_token=access, refresh_token=refresh)


@router.post("/refresh-token", response_model=TokenPair)
def refresh_token(data: RefreshTokenRequest, db: Session = Depends(get_db)):
    try:
        payload = jwt_utils.decode_refresh(data.refresh_token)
    except PyJWTError:
        raise HTTPException(status_code=401, detail="Invalid refresh token")
    user = _user_from_subject(db, payload.get("sub"))
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    access = jwt_utils.create_access_token(str(user.id))
    refresh = jwt_utils.create_refresh_token(str(user.id))
    return TokenPair(access_token=access, refresh_token=refresh)


@router.get("/me", response_model=UserOut)
def me(current_user: User = Depends(get_current_user)):
    return current_user
