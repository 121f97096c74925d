"""
Session chauffeur / Driver session.

Etat de travail d'un chauffeur (expedition courante, en ligne, position, cumuls),
construit a la demande depuis le depot au lieu d'un etat global.
A driver's working state (current shipment, online flag, location, totals),
built on demand from the repository instead of global state.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from routezy.models.driver_shift import DriverShift
from routezy.models.fleet_vehicle import FleetVehicle
from routezy.models.shipment import Shipment, ShipmentStatus

ACTIVE_STATUSES = (ShipmentStatus.CONFIRMED, ShipmentStatus.PICKUP_READY, ShipmentStatus.IN_TRANSIT)


class ShiftError(Exception):
    """Refus de prise/fin de service / Check-in or check-out rejection."""

    def __init__(self, message: str, status_code: int = 400):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


@dataclass
class DriverSession:
    driver_id: int
    is_online: bool = False
    vehicle_id: int | None = None
    lat: float | None = None
    lng: float | None = None
    current_shipment: Shipment | None = None
    total_deliveries: int = 0
    total_carbon_saved: float = 0.0
    pending_pickups: list[Shipment] = field(default_factory=list)


class DriverRepository:
    """Acces aux donnees chauffeur / Driver data access."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def open_shift(self, driver_id: int) -> DriverShift | None:
        result = await self.db.execute(
            select(DriverShift)
            .where(DriverShift.driver_id == driver_id, DriverShift.checked_out_at.is_(None))
            .order_by(DriverShift.id.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def assigned_vehicle(self, driver_id: int) -> FleetVehicle | None:
        result = await self.db.execute(
            select(FleetVehicle).where(FleetVehicle.current_driver_id == driver_id).limit(1)
        )
        return result.scalar_one_or_none()

    async def active_shipments(self, driver_id: int) -> list[Shipment]:
        result = await self.db.execute(
            select(Shipment)
            .where(Shipment.driver_id == driver_id, Shipment.status.in_(ACTIVE_STATUSES))
            .order_by(Shipment.id)
        )
        return list(result.scalars().all())

    async def delivery_totals(self, driver_id: int) -> tuple[int, float]:
        result = await self.db.execute(
            select(func.count(Shipment.id), func.coalesce(func.sum(Shipment.carbon_score), 0))
            .where(Shipment.driver_id == driver_id, Shipment.status == ShipmentStatus.DELIVERED)
        )
        count, carbon = result.one()
        return int(count or 0), float(carbon or 0)

    async def load_session(self, driver_id: int) -> DriverSession:
        shift = await self.open_shift(driver_id)
        active = await self.active_shipments(driver_id)
        deliveries, carbon = await self.delivery_totals(driver_id)

        # En transit d'abord / In-transit shipment first
        current = next((s for s in active if s.status == ShipmentStatus.IN_TRANSIT), None)
        if current is None and active:
            current = active[0]

        return DriverSession(
            driver_id=driver_id,
            is_online=bool(shift and shift.is_online),
            vehicle_id=shift.vehicle_id if shift else None,
            lat=shift.last_lat if shift else None,
            lng=shift.last_lng if shift else None,
            current_shipment=current,
            total_deliveries=deliveries,
            total_carbon_saved=round(carbon, 2),
            pending_pickups=[s for s in active if s.status == ShipmentStatus.PICKUP_READY],
        )

    async def check_in(self, driver_id: int, odometer: float, fuel_level: float) -> DriverShift:
        if await self.open_shift(driver_id) is not None:
            raise ShiftError("Driver is already checked in", status_code=409)
        vehicle = await self.assigned_vehicle(driver_id)
        shift = DriverShift(
            driver_id=driver_id,
            vehicle_id=vehicle.id if vehicle else None,
            checkin_odometer=odometer,
            checkin_fuel_level=fuel_level,
            is_online=True,
        )
        self.db.add(shift)
        await self.db.flush()
        await self.db.refresh(shift)
        return shift

    async def check_out(self, driver_id: int, odometer: float, fuel_level: float) -> tuple[DriverShift, dict]:
        """Fin de service / Check-out.

        L'odometre ne peut pas diminuer / The odometer cannot go backwards.
        """
        shift = await self.open_shift(driver_id)
        if shift is None:
            raise ShiftError("Driver is not checked in", status_code=409)
        if odometer < shift.checkin_odometer:
            raise ShiftError("Check-out odometer reading cannot be less than check-in reading")

        km_driven = odometer - shift.checkin_odometer
        fuel_used = shift.checkin_fuel_level - fuel_level
        shift.checkout_odometer = odometer
        shift.checkout_fuel_level = fuel_level
        shift.checked_out_at = datetime.now(timezone.utc).replace(tzinfo=None)
        shift.is_online = False
        await self.db.flush()
        await self.db.refresh(shift)
        return shift, {
            "km_driven": round(km_driven, 2),
            "fuel_used_percent": round(fuel_used, 2),
            "km_per_fuel_percent": round(km_driven / fuel_used, 2) if fuel_used > 0 else 0,
        }

    async def update_location(self, driver_id: int, lat: float, lng: float) -> DriverShift | None:
        shift = await self.open_shift(driver_id)
        if shift is not None:
            shift.last_lat = lat
            shift.last_lng = lng
        return shift
