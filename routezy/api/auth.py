"""
Routes d'authentification / Authentication routes.
Login, refresh token, inscription, profil utilisateur.
"""

import json
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from routezy.api.deps import get_current_user
from routezy.config import settings
from routezy.database import get_db
from routezy.models.audit import AuditLog
from routezy.models.user import AppRole, Profile, User, UserRole
from routezy.rate_limit import limiter
from routezy.schemas.auth import LoginRequest, RefreshRequest, SignupRequest, TokenResponse
from routezy.schemas.user import ProfileRead, ProfileUpdate, UserMe
from routezy.utils.auth import (
    create_access_token,
    create_refresh_token,
    decode_token,
    hash_password,
    verify_password,
)

router = APIRouter()


def client_ip(request: Request) -> str:
    """Extraire l'IP client / Extract client IP (supports X-Forwarded-For behind proxy)."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


def audit(db: AsyncSession, entity_type: str, entity_id: int, action: str, changes: dict, user: str | None) -> None:
    """Ajouter une trace d'audit / Add an audit trail row."""
    db.add(AuditLog(
        entity_type=entity_type,
        entity_id=entity_id,
        action=action,
        changes=json.dumps(changes, ensure_ascii=False),
        user=user,
        timestamp=datetime.now(timezone.utc).isoformat(timespec="seconds"),
    ))


def _tokens(user: User) -> TokenResponse:
    return TokenResponse(
        access_token=create_access_token(user.id),
        refresh_token=create_refresh_token(user.id),
    )


@router.post("/login", response_model=TokenResponse)
@limiter.limit(settings.RATE_LIMIT_LOGIN)
async def login(request: Request, data: LoginRequest, db: AsyncSession = Depends(get_db)):
    """Connexion par e-mail / Login with e-mail and password."""
    email = data.email.lower()
    result = await db.execute(select(User).where(User.email == email))
    user = result.scalar_one_or_none()
    ip = client_ip(request)

    if user is None or not verify_password(data.password, user.hashed_password):
        # Journal de tentative échouée / Log failed login attempt
        audit(db, "auth", user.id if user else 0, "LOGIN_FAILED", {"email": email, "ip": ip}, email)
        await db.commit()
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid credentials")

    if not user.is_active:
        audit(db, "auth", user.id, "LOGIN_DISABLED", {"ip": ip}, user.email)
        await db.commit()
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Account disabled")

    audit(db, "auth", user.id, "LOGIN", {"ip": ip}, user.email)
    return _tokens(user)


@router.post("/signup", response_model=TokenResponse, status_code=201)
@limiter.limit(settings.RATE_LIMIT_REGISTER)
async def signup(request: Request, data: SignupRequest, db: AsyncSession = Depends(get_db)):
    """Inscription d'un expéditeur / Sender self sign-up."""
    email = data.email.lower()
    existing = await db.execute(select(User.id).where(User.email == email))
    if existing.scalar_one_or_none() is not None:
        raise HTTPException(status_code=409, detail="Email already registered")

    user = User(email=email, hashed_password=hash_password(data.password), is_active=True)
    user.roles = [UserRole(role=AppRole.SENDER)]
    user.profile = Profile(full_name=data.full_name, phone=data.phone)
    db.add(user)
    await db.flush()
    audit(db, "auth", user.id, "SIGNUP", {"ip": client_ip(request)}, email)
    return _tokens(user)


@router.post("/refresh", response_model=TokenResponse)
async def refresh(data: RefreshRequest, db: AsyncSession = Depends(get_db)):
    """Rafraîchir les tokens / Refresh tokens."""
    payload = decode_token(data.refresh_token)
    if payload is None or payload.get("type") != "refresh":
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid refresh token")

    user_id = int(payload["sub"])
    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()

    if user is None or not user.is_active:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User not found or inactive")

    return _tokens(user)


def _me(user: User) -> UserMe:
    return UserMe(
        id=user.id,
        email=user.email,
        is_superadmin=user.is_superadmin,
        roles=user.role_names,
        profile=ProfileRead.model_validate(user.profile) if user.profile else None,
    )


@router.get("/me", response_model=UserMe)
async def me(user: User = Depends(get_current_user)):
    """Profil de l'utilisateur connecté avec rôles / Current user profile with roles."""
    return _me(user)


@router.put("/me/profile", response_model=UserMe)
async def update_profile(
    data: ProfileUpdate,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """Modifier son profil / Update own profile."""
    if user.profile is None:
        user.profile = Profile()
    for key, value in data.model_dump(exclude_unset=True).items():
        setattr(user.profile, key, value)
    await db.flush()
    return _me(user)
