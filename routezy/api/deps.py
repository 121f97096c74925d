"""
Dépendances d'authentification et d'autorisation / Authentication and authorization dependencies.
Injectées dans les routes via Depends().
"""

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from routezy.database import get_db
from routezy.models.user import AppRole, User
from routezy.utils.auth import decode_token

security = HTTPBearer()

STAFF_ROLES = (AppRole.ADMIN, AppRole.MANAGER)


async def get_user_from_token(db: AsyncSession, token: str) -> User | None:
    """Utilisateur actif d'un access token, sinon None / Active user of an access token, else None."""
    payload = decode_token(token) if token else None
    if payload is None or payload.get("type") != "access":
        return None
    result = await db.execute(select(User).where(User.id == int(payload["sub"])))
    user = result.scalar_one_or_none()
    if user is None or not user.is_active:
        return None
    return user


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: AsyncSession = Depends(get_db),
) -> User:
    """Extraire et valider l'utilisateur depuis le JWT / Extract and validate user from JWT."""
    payload = decode_token(credentials.credentials)
    if payload is None or payload.get("type") != "access":
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid or expired token")

    user_id = int(payload["sub"])
    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()

    if user is None or not user.is_active:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User not found or inactive")

    return user


def is_staff(user: User) -> bool:
    """Admin, manager ou superadmin / Admin, manager or superadmin."""
    return user.is_superadmin or user.has_role(*STAFF_ROLES)


def require_roles(*roles: AppRole):
    """Factory de dépendance qui vérifie un rôle / Dependency factory that checks a role.

    Superadmin bypass tous les rôles / Superadmin bypasses every role check.
    """

    async def _check(user: User = Depends(get_current_user)) -> User:
        if user.is_superadmin or user.has_role(*roles):
            return user

        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"Role required: {' or '.join(r.value for r in roles)}",
        )

    return _check


require_staff = require_roles(*STAFF_ROLES)
require_driver = require_roles(AppRole.DRIVER)
