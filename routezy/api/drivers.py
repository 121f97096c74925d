"""
Routes chauffeurs / Driver management routes.
Candidatures, approbation, ajout direct et affectation de vehicule.
Applications, approval, direct add and vehicle assignment.
"""

import logging
import secrets
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from routezy.api.auth import audit
from routezy.api.deps import get_current_user, require_staff
from routezy.config import settings
from routezy.database import get_db
from routezy.models.driver_request import DriverRequest, DriverRequestStatus
from routezy.models.fleet_vehicle import FleetVehicle
from routezy.models.user import AppRole, Profile, User, UserRole
from routezy.rate_limit import limiter
from routezy.schemas.driver import (
    DriverAdd,
    DriverAddResult,
    DriverRead,
    DriverRequestCreate,
    DriverRequestRead,
    DriverRequestReject,
    VehicleAssignment,
)
from routezy.schemas.fleet import VehicleRead
from routezy.utils.auth import hash_password

logger = logging.getLogger(__name__)

router = APIRouter()


def _now() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _grant_driver_role(user: User) -> bool:
    """Ajouter le role driver, idempotent / Add the driver role, idempotent."""
    if user.has_role(AppRole.DRIVER):
        return False
    user.roles.append(UserRole(role=AppRole.DRIVER))
    return True


def _upsert_profile(user: User, full_name: str | None, phone: str | None) -> None:
    if user.profile is None:
        user.profile = Profile(full_name=full_name, phone=phone)
        return
    if full_name:
        user.profile.full_name = full_name
    if phone:
        user.profile.phone = phone


# ─── Candidatures / Applications ───

@router.post("/requests", response_model=DriverRequestRead, status_code=201)
@limiter.limit(settings.RATE_LIMIT_REGISTER)
async def submit_request(
    request: Request,
    data: DriverRequestCreate,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """Deposer une candidature chauffeur / Submit a driver application."""
    existing = await db.execute(select(DriverRequest).where(DriverRequest.user_id == user.id))
    if existing.scalar_one_or_none() is not None:
        raise HTTPException(status_code=409, detail="You have already submitted a driver registration request")

    driver_request = DriverRequest(
        user_id=user.id,
        email=user.email,
        full_name=data.full_name.strip(),
        phone=data.phone.strip() if data.phone else None,
        license_number=(data.license_number or "").strip() or None,
        status=DriverRequestStatus.PENDING,
    )
    db.add(driver_request)
    _upsert_profile(user, driver_request.full_name, driver_request.phone)
    await db.flush()
    await db.refresh(driver_request)
    return driver_request


@router.get("/requests/me", response_model=DriverRequestRead)
async def my_request(
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """Statut de sa candidature / Own application status."""
    result = await db.execute(select(DriverRequest).where(DriverRequest.user_id == user.id))
    driver_request = result.scalar_one_or_none()
    if driver_request is None:
        raise HTTPException(status_code=404, detail="No driver request found")
    return driver_request


@router.get("/requests", response_model=list[DriverRequestRead])
async def list_requests(
    status: DriverRequestStatus | None = DriverRequestStatus.PENDING,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(require_staff),
):
    """Candidatures, PENDING par defaut / Applications, PENDING by default."""
    query = select(DriverRequest).order_by(DriverRequest.created_at.desc(), DriverRequest.id.desc())
    if status is not None:
        query = query.where(DriverRequest.status == status)
    result = await db.execute(query)
    return result.scalars().all()


async def _get_request(db: AsyncSession, request_id: int) -> DriverRequest:
    driver_request = await db.get(DriverRequest, request_id)
    if driver_request is None:
        raise HTTPException(status_code=404, detail="Driver request not found")
    return driver_request


@router.post("/requests/{request_id}/approve", response_model=DriverRequestRead)
async def approve_request(
    request_id: int,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(require_staff),
):
    """Approuver : statut APPROVED et role driver / Approve: APPROVED status and driver role."""
    driver_request = await _get_request(db, request_id)
    applicant = await db.get(User, driver_request.user_id)
    if applicant is None:
        raise HTTPException(status_code=404, detail="User not found")

    driver_request.status = DriverRequestStatus.APPROVED
    driver_request.reviewed_by = user.id
    driver_request.reviewed_at = _now()
    granted = _grant_driver_role(applicant)
    audit(db, "driver_request", driver_request.id, "APPROVE",
          {"user_id": applicant.id, "role_granted": granted}, user.email)
    await db.flush()
    await db.refresh(driver_request)
    logger.info("Driver request %d approved by %s", driver_request.id, user.email)
    return driver_request


@router.post("/requests/{request_id}/reject", response_model=DriverRequestRead)
async def reject_request(
    request_id: int,
    data: DriverRequestReject,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(require_staff),
):
    """Rejeter avec un motif / Reject with a reason."""
    driver_request = await _get_request(db, request_id)
    driver_request.status = DriverRequestStatus.REJECTED
    driver_request.reviewed_by = user.id
    driver_request.reviewed_at = _now()
    driver_request.rejection_reason = data.reason
    audit(db, "driver_request", driver_request.id, "REJECT", {"reason": data.reason}, user.email)
    await db.flush()
    await db.refresh(driver_request)
    return driver_request


# ─── Gestion / Management ───

@router.post("/", response_model=DriverAddResult)
async def add_driver(
    data: DriverAdd,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(require_staff),
):
    """Ajouter un chauffeur par e-mail, compte cree si absent / Add a driver by e-mail, creating the account when missing."""
    email = data.email.lower()
    result = await db.execute(select(User).where(User.email == email))
    driver = result.scalar_one_or_none()
    is_new_user = driver is None

    if driver is None:
        # Mot de passe temporaire / Temporary password
        password = data.password or secrets.token_urlsafe(9)
        driver = User(email=email, hashed_password=hash_password(password), is_active=True)
        driver.roles = [UserRole(role=AppRole.DRIVER)]
        driver.profile = Profile(full_name=data.full_name, phone=data.phone)
        db.add(driver)
    else:
        if driver.has_role(AppRole.DRIVER):
            raise HTTPException(status_code=400, detail="This user is already a driver")
        _grant_driver_role(driver)
        _upsert_profile(driver, data.full_name, data.phone)

    await db.flush()
    audit(db, "driver", driver.id, "CREATE" if is_new_user else "GRANT", {"email": email}, user.email)
    return DriverAddResult(
        user_id=driver.id,
        is_new_user=is_new_user,
        message=(
            f"Driver account created. They can login with email: {email}"
            if is_new_user else "Driver role assigned to existing user"
        ),
    )


@router.get("/", response_model=list[DriverRead])
async def list_drivers(
    db: AsyncSession = Depends(get_db),
    user: User = Depends(require_staff),
):
    """Chauffeurs avec profil et vehicule affecte / Drivers with profile and assigned vehicle."""
    result = await db.execute(
        select(User)
        .join(UserRole, UserRole.user_id == User.id)
        .where(UserRole.role == AppRole.DRIVER)
        .order_by(User.id)
    )
    drivers = result.scalars().unique().all()
    vehicles = await db.execute(
        select(FleetVehicle.current_driver_id, FleetVehicle.id).where(FleetVehicle.current_driver_id.is_not(None))
    )
    assigned = {driver_id: vehicle_id for driver_id, vehicle_id in vehicles.all()}

    return [
        DriverRead(
            user_id=d.id,
            email=d.email,
            full_name=d.profile.full_name if d.profile else None,
            phone=d.profile.phone if d.profile else None,
            avatar_url=d.profile.avatar_url if d.profile else None,
            assigned_vehicle_id=assigned.get(d.id),
        )
        for d in drivers
    ]


@router.put("/{driver_id}/vehicle", response_model=VehicleRead | None)
async def assign_vehicle(
    driver_id: int,
    data: VehicleAssignment,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(require_staff),
):
    """Affecter ou retirer un vehicule / Assign or unassign a vehicle.

    Le chauffeur est d'abord retire de tout autre vehicule.
    The driver is first unassigned from any other vehicle.
    """
    driver = await db.get(User, driver_id)
    if driver is None or not driver.has_role(AppRole.DRIVER):
        raise HTTPException(status_code=404, detail="Driver not found")

    await db.execute(
        update(FleetVehicle)
        .where(FleetVehicle.current_driver_id == driver_id)
        .values(current_driver_id=None)
        .execution_options(synchronize_session="fetch")
    )
    if data.vehicle_id is None:
        return None

    vehicle = await db.get(FleetVehicle, data.vehicle_id)
    if vehicle is None:
        raise HTTPException(status_code=404, detail="Vehicle not found")
    vehicle.current_driver_id = driver_id
    await db.flush()
    await db.refresh(vehicle)
    return vehicle
