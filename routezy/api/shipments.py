"""
Routes expeditions / Shipment routes.

Regles de visibilite : l'expediteur voit ses expeditions, le chauffeur celles
qui lui sont affectees, les managers voient tout.
Visibility rules: senders see their own shipments, drivers the ones assigned
to them, managers see everything.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from routezy.api.deps import get_current_user, is_staff, require_roles, require_staff
from routezy.config import settings
from routezy.database import get_db
from routezy.models.fleet_vehicle import FleetVehicle, VehicleType
from routezy.models.invoice import Invoice
from routezy.models.shipment import Shipment, ShipmentStatus
from routezy.models.user import AppRole, User
from routezy.rate_limit import limiter
from routezy.schemas.payment import InvoiceRead
from routezy.schemas.shipment import (
    DeliveryConfirm,
    DeliveryResponse,
    LocationUpdate,
    PickupConfirm,
    ShipmentAssign,
    ShipmentCreate,
    ShipmentRead,
    SustainabilityMetrics,
)
from routezy.services import delivery_service
from routezy.services.change_feed import ChangeEvent, hub, row_to_dict
from routezy.services.delivery_service import DeliveryError
from routezy.services.driver_session import ACTIVE_STATUSES, DriverRepository
from routezy.services.eco_score import EcoScoreConflict
from routezy.services.pricing_service import PricingService
from routezy.utils.geo import road_distance_km

logger = logging.getLogger(__name__)

router = APIRouter()

# kg CO2 absorbes par un arbre en un an / kg CO2 absorbed by one tree in a year
TREE_CO2_KG_PER_YEAR = 21

CLOSED_STATUSES = (ShipmentStatus.DELIVERED, ShipmentStatus.CANCELLED)


def visibility_filter(user: User):
    """Clause WHERE selon les roles, None pour les managers / WHERE clause by role, None for staff."""
    if is_staff(user):
        return None
    clauses = [Shipment.sender_id == user.id]
    if user.has_role(AppRole.DRIVER):
        clauses.append(Shipment.driver_id == user.id)
    return or_(*clauses)


def can_see(user: User, shipment: Shipment) -> bool:
    return is_staff(user) or shipment.sender_id == user.id or shipment.driver_id == user.id


def can_see_otps(user: User, shipment: Shipment) -> bool:
    return is_staff(user) or shipment.sender_id == user.id


def shipment_view(shipment: Shipment, user: User) -> ShipmentRead:
    """Vue selon l'utilisateur, OTP masques pour le chauffeur / Per-user view, OTPs hidden from the driver."""
    view = ShipmentRead.model_validate(shipment)
    if not can_see_otps(user, shipment):
        view.pickup_otp = None
        view.delivery_otp = None
    return view


async def get_visible_shipment(db: AsyncSession, shipment_id: int, user: User) -> Shipment:
    shipment = await db.get(Shipment, shipment_id)
    if shipment is None or not can_see(user, shipment):
        raise HTTPException(status_code=404, detail="Shipment not found")
    return shipment


def _ensure_driver_or_staff(user: User, shipment: Shipment) -> None:
    if shipment.driver_id != user.id and not is_staff(user):
        raise HTTPException(status_code=403, detail="Only the assigned driver can do this")


# ─── Reservation / Booking ───

@router.post("/", response_model=ShipmentRead, status_code=201)
async def create_shipment(
    data: ShipmentCreate,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(require_roles(AppRole.SENDER, AppRole.MANAGER, AppRole.ADMIN)),
):
    """Reserver une expedition / Book a shipment.

    Cout estime depuis la grille tarifaire s'il n'est pas fourni.
    The estimated cost comes from pricing when not supplied.
    """
    fields = data.model_dump()
    route_type = fields.pop("route_type")

    if fields["distance_km"] is None:
        fields["distance_km"] = road_distance_km(
            data.pickup_lat, data.pickup_lng, data.delivery_lat, data.delivery_lng
        )
    if fields["estimated_cost"] is None and fields["distance_km"] is not None:
        estimate = await PricingService.estimate(
            db, fields["distance_km"], data.vehicle_type or VehicleType.MINI_TRUCK, route_type
        )
        fields["estimated_cost"] = estimate["total_cost"]

    shipment = await delivery_service.create_shipment(db, user.id, **fields)
    hub.publish_on_commit(db, "shipments", ChangeEvent.INSERT, new=shipment)
    return shipment_view(shipment, user)


@router.get("/", response_model=list[ShipmentRead])
async def list_shipments(
    status: ShipmentStatus | None = None,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """Expeditions visibles, plus recentes d'abord / Visible shipments, newest first."""
    query = select(Shipment).order_by(Shipment.created_at.desc(), Shipment.id.desc())
    clause = visibility_filter(user)
    if clause is not None:
        query = query.where(clause)
    if status is not None:
        query = query.where(Shipment.status == status)
    result = await db.execute(query)
    return [shipment_view(s, user) for s in result.scalars().all()]


@router.get("/metrics", response_model=SustainabilityMetrics)
async def sustainability_metrics(
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """Indicateurs de durabilite sur les expeditions visibles / Sustainability metrics over visible shipments."""
    delivered = Shipment.status == ShipmentStatus.DELIVERED
    query = select(
        func.count(Shipment.id),
        func.count(Shipment.id).filter(delivered),
        func.count(Shipment.id).filter(Shipment.status.in_(ACTIVE_STATUSES)),
        func.coalesce(func.sum(Shipment.distance_km).filter(delivered), 0),
        func.coalesce(func.sum(Shipment.carbon_score).filter(delivered), 0),
    )
    clause = visibility_filter(user)
    if clause is not None:
        query = query.where(clause)
    total, done, active, distance, carbon = (await db.execute(query)).one()
    return SustainabilityMetrics(
        total_shipments=total,
        delivered_shipments=done,
        active_deliveries=active,
        total_distance_km=round(float(distance), 2),
        total_carbon_saved=round(float(carbon), 2),
        trees_equivalent=round(float(carbon) / TREE_CO2_KG_PER_YEAR),
    )


@router.get("/{shipment_id}", response_model=ShipmentRead)
async def get_shipment(
    shipment_id: int,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    shipment = await get_visible_shipment(db, shipment_id, user)
    return shipment_view(shipment, user)


@router.get("/{shipment_id}/invoice", response_model=InvoiceRead)
async def get_shipment_invoice(
    shipment_id: int,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """Facture de l'expedition / Shipment invoice."""
    shipment = await get_visible_shipment(db, shipment_id, user)
    result = await db.execute(
        select(Invoice).where(Invoice.shipment_id == shipment.id).order_by(Invoice.id.desc()).limit(1)
    )
    invoice = result.scalar_one_or_none()
    if invoice is None:
        raise HTTPException(status_code=404, detail="Invoice not found")
    return invoice


# ─── Cycle de vie / Lifecycle ───

@router.put("/{shipment_id}/assign", response_model=ShipmentRead)
async def assign_shipment(
    shipment_id: int,
    data: ShipmentAssign,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(require_staff),
):
    """Affecter chauffeur et vehicule ; statut PICKUP_READY / Assign driver and vehicle; status PICKUP_READY."""
    shipment = await get_visible_shipment(db, shipment_id, user)
    if shipment.status in CLOSED_STATUSES or shipment.status == ShipmentStatus.IN_TRANSIT:
        raise HTTPException(status_code=409, detail=f"Shipment is {shipment.status.value}")

    driver = await db.get(User, data.driver_id)
    if driver is None or not driver.has_role(AppRole.DRIVER):
        raise HTTPException(status_code=404, detail="Driver not found")

    vehicle_id = data.vehicle_id
    if vehicle_id is None:
        # Vehicule affecte au chauffeur / Vehicle assigned to the driver
        vehicle = await DriverRepository(db).assigned_vehicle(driver.id)
        vehicle_id = vehicle.id if vehicle else None
    elif await db.get(FleetVehicle, vehicle_id) is None:
        raise HTTPException(status_code=404, detail="Vehicle not found")

    old = row_to_dict(shipment)
    shipment.driver_id = driver.id
    shipment.vehicle_id = vehicle_id
    shipment.status = ShipmentStatus.PICKUP_READY
    await db.flush()
    await db.refresh(shipment)
    hub.publish_on_commit(db, "shipments", ChangeEvent.UPDATE, new=shipment, old=old)
    logger.info("Shipment %s assigned to driver %s", shipment.tracking_id, driver.id)
    return shipment_view(shipment, user)


@router.post("/{shipment_id}/cancel", response_model=ShipmentRead)
async def cancel_shipment(
    shipment_id: int,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """Annuler avant l'enlevement / Cancel before pickup."""
    shipment = await get_visible_shipment(db, shipment_id, user)
    if not can_see_otps(user, shipment):
        raise HTTPException(status_code=403, detail="Only the sender can cancel")
    if shipment.status in CLOSED_STATUSES or shipment.status == ShipmentStatus.IN_TRANSIT:
        raise HTTPException(status_code=409, detail=f"Shipment is {shipment.status.value}")

    old = row_to_dict(shipment)
    shipment.status = ShipmentStatus.CANCELLED
    await db.flush()
    await db.refresh(shipment)
    hub.publish_on_commit(db, "shipments", ChangeEvent.UPDATE, new=shipment, old=old)
    return shipment_view(shipment, user)


@router.post("/{shipment_id}/pickup", response_model=ShipmentRead)
async def confirm_pickup(
    shipment_id: int,
    data: PickupConfirm,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """Enlevement par OTP ; statut IN_TRANSIT / OTP pickup; status IN_TRANSIT."""
    shipment = await get_visible_shipment(db, shipment_id, user)
    _ensure_driver_or_staff(user, shipment)
    old = row_to_dict(shipment)
    try:
        shipment = await delivery_service.confirm_pickup(db, shipment, data.otp)
    except DeliveryError as exc:
        raise HTTPException(status_code=exc.status_code, detail=exc.message)
    hub.publish_on_commit(db, "shipments", ChangeEvent.UPDATE, new=shipment, old=old)
    return shipment_view(shipment, user)


@router.post("/{shipment_id}/deliver", response_model=DeliveryResponse)
async def complete_delivery(
    shipment_id: int,
    data: DeliveryConfirm,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """Livraison par OTP puis chaine de livraison / OTP delivery, then the delivery pipeline."""
    shipment = await get_visible_shipment(db, shipment_id, user)
    _ensure_driver_or_staff(user, shipment)
    old = row_to_dict(shipment)
    try:
        result = await delivery_service.complete_delivery(
            db,
            shipment,
            data.otp,
            distance_km=data.distance_km,
            proof_of_delivery_url=data.proof_of_delivery_url,
            fuel_used=data.fuel_used,
            idle_minutes=data.idle_minutes,
        )
    except DeliveryError as exc:
        raise HTTPException(status_code=exc.status_code, detail=exc.message)
    except EcoScoreConflict as exc:
        logger.error("%s", exc)
        raise HTTPException(status_code=409, detail="Concurrent eco score update, please retry")

    hub.publish_on_commit(db, "shipments", ChangeEvent.UPDATE, new=result.shipment, old=old)
    return DeliveryResponse(
        shipment=shipment_view(result.shipment, user),
        invoice=InvoiceRead.model_validate(result.invoice),
        carbon_saved=result.carbon_saved,
    )


@router.put("/{shipment_id}/location", response_model=ShipmentRead)
@limiter.limit(settings.RATE_LIMIT_LOCATION)
async def update_location(
    request: Request,
    shipment_id: int,
    data: LocationUpdate,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """Position du chauffeur sur l'expedition / Driver position on the shipment."""
    shipment = await get_visible_shipment(db, shipment_id, user)
    if shipment.driver_id != user.id:
        raise HTTPException(status_code=403, detail="Only the assigned driver can do this")
    if shipment.status in CLOSED_STATUSES:
        raise HTTPException(status_code=409, detail=f"Shipment is {shipment.status.value}")

    old = row_to_dict(shipment)
    shipment.driver_lat = data.lat
    shipment.driver_lng = data.lng
    await DriverRepository(db).update_location(user.id, data.lat, data.lng)
    await db.flush()
    await db.refresh(shipment)
    hub.publish_on_commit(db, "shipments", ChangeEvent.UPDATE, new=shipment, old=old)
    return shipment_view(shipment, user)
