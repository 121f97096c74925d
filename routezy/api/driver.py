"""
Routes service chauffeur / Driver self-service routes.
Prise et fin de service, session, signalement de dommages, notifications.
Check-in, check-out, session, damage reports, notifications.
"""

import logging
from datetime import date

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from routezy.api.deps import require_driver
from routezy.api.shipments import shipment_view
from routezy.database import get_db
from routezy.models.damage_report import DamageReport
from routezy.models.fleet_vehicle import FleetVehicle
from routezy.models.user import User
from routezy.schemas.driver import (
    CheckInRequest,
    CheckOutRequest,
    CheckOutSummary,
    DamageReportCreate,
    DamageReportRead,
    DriverSessionRead,
    ShiftRead,
)
from routezy.schemas.shipment import ShipmentRead
from routezy.services.change_feed import ChangeEvent, hub
from routezy.services.driver_session import DriverRepository, ShiftError

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/check-in", response_model=ShiftRead, status_code=201)
async def check_in(
    data: CheckInRequest,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(require_driver),
):
    """Prise de service / Check in."""
    try:
        shift = await DriverRepository(db).check_in(user.id, data.odometer_reading, data.fuel_level)
    except ShiftError as exc:
        raise HTTPException(status_code=exc.status_code, detail=exc.message)
    logger.info("Driver %s checked in (vehicle %s)", user.id, shift.vehicle_id)
    return shift


@router.post("/check-out", response_model=CheckOutSummary)
async def check_out(
    data: CheckOutRequest,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(require_driver),
):
    """Fin de service ; l'odometre ne peut pas diminuer / Check out; the odometer cannot decrease."""
    try:
        shift, totals = await DriverRepository(db).check_out(user.id, data.odometer_reading, data.fuel_level)
    except ShiftError as exc:
        raise HTTPException(status_code=exc.status_code, detail=exc.message)
    return CheckOutSummary(shift=ShiftRead.model_validate(shift), **totals)


@router.get("/session", response_model=DriverSessionRead)
async def get_session(
    db: AsyncSession = Depends(get_db),
    user: User = Depends(require_driver),
):
    """Session explicite du chauffeur / Explicit driver session."""
    session = await DriverRepository(db).load_session(user.id)
    return DriverSessionRead(
        driver_id=session.driver_id,
        is_online=session.is_online,
        vehicle_id=session.vehicle_id,
        lat=session.lat,
        lng=session.lng,
        current_shipment=shipment_view(session.current_shipment, user) if session.current_shipment else None,
        total_deliveries=session.total_deliveries,
        total_carbon_saved=session.total_carbon_saved,
        pending_pickups=[shipment_view(s, user) for s in session.pending_pickups],
    )


@router.get("/notifications", response_model=list[ShipmentRead])
async def notifications(
    db: AsyncSession = Depends(get_db),
    user: User = Depends(require_driver),
):
    """Expeditions affectees en attente d'enlevement / Assigned shipments awaiting pickup."""
    session = await DriverRepository(db).load_session(user.id)
    return [shipment_view(s, user) for s in session.pending_pickups]


@router.post("/damage-reports", response_model=DamageReportRead, status_code=201)
async def report_damage(
    data: DamageReportCreate,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(require_driver),
):
    """Signaler un dommage, vehicule affecte par defaut / Report damage, assigned vehicle by default."""
    if data.vehicle_id is not None:
        vehicle = await db.get(FleetVehicle, data.vehicle_id)
        if vehicle is None:
            raise HTTPException(status_code=404, detail="Vehicle not found")
    else:
        vehicle = await DriverRepository(db).assigned_vehicle(user.id)

    report = DamageReport(
        vehicle_id=vehicle.id if vehicle else None,
        driver_id=user.id,
        vehicle_number=vehicle.vehicle_number if vehicle else None,
        damage_description=data.damage_description,
        damage_severity=data.damage_severity,
        damage_date=data.damage_date or date.today().isoformat(),
        location=data.location,
    )
    db.add(report)
    await db.flush()
    await db.refresh(report)
    hub.publish_on_commit(db, "damage_reports", ChangeEvent.INSERT, new=report)
    logger.info("Damage report %d filed by driver %s", report.id, user.id)
    return report
