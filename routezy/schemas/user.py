"""
Schémas User et profil / User and profile schemas.
"""

from pydantic import BaseModel


class ProfileRead(BaseModel):
    full_name: str | None = None
    phone: str | None = None
    avatar_url: str | None = None
    model_config = {"from_attributes": True}


class ProfileUpdate(BaseModel):
    full_name: str | None = None
    phone: str | None = None
    avatar_url: str | None = None


class UserMe(BaseModel):
    """Utilisateur connecté avec rôles / Current user with roles."""
    id: int
    email: str
    is_superadmin: bool
    roles: list[str]
    profile: ProfileRead | None = None
