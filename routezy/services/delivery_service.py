"""
Service de livraison / Delivery service.

Reservation, enlevement par OTP, livraison par OTP puis chaine de livraison :
entree carburant, eco-score du chauffeur, cumuls du vehicule.
Booking, OTP pickup, OTP delivery, then the delivery pipeline:
fuel entry, driver eco score, vehicle totals.
"""

import logging
import secrets
import string
from dataclasses import dataclass
from datetime import date, datetime, timezone

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from routezy.config import settings
from routezy.models.fleet_vehicle import FleetVehicle
from routezy.models.fuel_entry import FuelEntry
from routezy.models.invoice import Invoice
from routezy.models.shipment import Shipment, ShipmentStatus
from routezy.services.eco_score import DeliveryMetrics, record_delivery
from routezy.services.emissions import (
    calculate_co2_from_fuel,
    estimate_fuel_from_distance,
    get_emission_factors,
)

logger = logging.getLogger(__name__)

_TRACKING_ALPHABET = string.ascii_uppercase + string.digits


class DeliveryError(Exception):
    """Refus metier / Business-rule rejection."""

    def __init__(self, message: str, status_code: int = 400):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


@dataclass
class DeliveryResult:
    shipment: Shipment
    invoice: Invoice
    carbon_saved: float
    fuel_entry: FuelEntry | None = None


def generate_otp() -> str:
    """OTP a 4 chiffres / 4-digit OTP (1000-9999)."""
    return str(1000 + secrets.randbelow(9000))


def generate_tracking_id(today: date | None = None) -> str:
    """RTZ-YYMMDD-XXXXXX."""
    today = today or date.today()
    suffix = "".join(secrets.choice(_TRACKING_ALPHABET) for _ in range(6))
    return f"RTZ-{today.strftime('%y%m%d')}-{suffix}"


def generate_invoice_number(today: date | None = None) -> str:
    """INV-YYYYMM-NNNN."""
    today = today or date.today()
    return f"INV-{today.strftime('%Y%m')}-{secrets.randbelow(10000):04d}"


def _now() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


async def _unique_value(db: AsyncSession, column, factory) -> str:
    """Tirer une valeur absente de la colonne / Draw a value not yet present in the column."""
    while True:
        candidate = factory()
        exists = await db.scalar(select(func.count()).where(column == candidate))
        if not exists:
            return candidate


async def create_shipment(db: AsyncSession, sender_id: int | None, **fields) -> Shipment:
    """Creer une reservation PENDING / Create a PENDING booking."""
    shipment = Shipment(
        tracking_id=await _unique_value(db, Shipment.tracking_id, generate_tracking_id),
        sender_id=sender_id,
        pickup_otp=generate_otp(),
        delivery_otp=generate_otp(),
        status=ShipmentStatus.PENDING,
        **fields,
    )
    db.add(shipment)
    await db.flush()
    await db.refresh(shipment)
    logger.info("Shipment %s booked by user %s", shipment.tracking_id, sender_id)
    return shipment


async def confirm_pickup(db: AsyncSession, shipment: Shipment, otp: str) -> Shipment:
    """Valider l'OTP d'enlevement / Validate the pickup OTP; the shipment moves to IN_TRANSIT."""
    if shipment.status in (ShipmentStatus.DELIVERED, ShipmentStatus.CANCELLED, ShipmentStatus.IN_TRANSIT):
        raise DeliveryError(f"Shipment is {shipment.status.value}", status_code=409)
    if shipment.pickup_otp != otp:
        raise DeliveryError("Invalid OTP")

    shipment.status = ShipmentStatus.IN_TRANSIT
    shipment.picked_up_at = _now()
    await db.flush()
    await db.refresh(shipment)
    return shipment


async def complete_delivery(
    db: AsyncSession,
    shipment: Shipment,
    otp: str,
    distance_km: float | None = None,
    proof_of_delivery_url: str | None = None,
    fuel_used: float | None = None,
    idle_minutes: float | None = None,
) -> DeliveryResult:
    """Valider l'OTP de livraison et derouler la chaine / Validate the delivery OTP and run the pipeline."""
    if shipment.status in (ShipmentStatus.DELIVERED, ShipmentStatus.CANCELLED):
        raise DeliveryError(f"Shipment is {shipment.status.value}", status_code=409)
    if shipment.delivery_otp != otp:
        raise DeliveryError("Invalid OTP")

    distance = distance_km if distance_km is not None else shipment.distance_km
    if distance is None:
        distance = settings.DEFAULT_DELIVERY_DISTANCE_KM
    carbon_saved = round(distance * settings.CARBON_SAVED_PER_KM, 2)
    amount = shipment.estimated_cost if shipment.estimated_cost is not None else settings.DEFAULT_SHIPMENT_COST

    shipment.status = ShipmentStatus.DELIVERED
    shipment.delivered_at = _now()
    shipment.distance_km = distance
    shipment.carbon_score = carbon_saved
    shipment.final_cost = amount
    if proof_of_delivery_url:
        shipment.proof_of_delivery_url = proof_of_delivery_url

    tax = round(amount * settings.INVOICE_TAX_RATE, 2)
    invoice = Invoice(
        invoice_number=await _unique_value(db, Invoice.invoice_number, generate_invoice_number),
        shipment_id=shipment.id,
        sender_id=shipment.sender_id,
        amount=amount,
        tax_amount=tax,
        total_amount=round(amount + tax, 2),
        is_paid=False,
    )
    db.add(invoice)
    await db.flush()

    fuel_entry = await _record_emissions(db, shipment, distance, fuel_used, idle_minutes)

    await db.refresh(shipment)
    await db.refresh(invoice)
    logger.info(
        "Shipment %s delivered (%.1f km, %.2f kg CO2 saved, invoice %s)",
        shipment.tracking_id, distance, carbon_saved, invoice.invoice_number,
    )
    return DeliveryResult(shipment=shipment, invoice=invoice, carbon_saved=carbon_saved, fuel_entry=fuel_entry)


async def _record_emissions(
    db: AsyncSession,
    shipment: Shipment,
    distance: float,
    fuel_used: float | None,
    idle_minutes: float | None,
) -> FuelEntry | None:
    """Entree carburant, eco-score, cumuls vehicule / Fuel entry, eco score, vehicle totals."""
    factors = await get_emission_factors(db)
    vehicle = await db.get(FleetVehicle, shipment.vehicle_id) if shipment.vehicle_id else None

    fuel_entry = None
    fuel_type = "DIESEL"
    # Sans vehicule, l'eco-score estime comme un camion / Without a vehicle the eco score estimates as a truck
    liters = fuel_used
    if vehicle is not None:
        fuel_type = (vehicle.fuel_type or "DIESEL").upper()
        liters = fuel_used or estimate_fuel_from_distance(
            distance, vehicle.vehicle_type, vehicle.fuel_efficiency_lpk
        )
        co2 = calculate_co2_from_fuel(liters, fuel_type, factors)
        fuel_entry = FuelEntry(
            vehicle_id=vehicle.id,
            driver_id=shipment.driver_id,
            shipment_id=shipment.id,
            fuel_type=fuel_type,
            fuel_liters=liters,
            trip_distance_km=distance,
            co2_emitted_kg=co2,
            entry_date=date.today().isoformat(),
            notes=f"Delivery {shipment.tracking_id}",
        )
        db.add(fuel_entry)

        # Moyenne ponderee par les km / Distance-weighted running average
        previous_km = vehicle.total_km_driven or 0
        previous_avg = vehicle.avg_co2_per_km if vehicle.avg_co2_per_km is not None else settings.DEFAULT_CO2_PER_KM
        vehicle.total_km_driven = previous_km + distance
        if vehicle.total_km_driven > 0:
            vehicle.avg_co2_per_km = round(
                (previous_avg * previous_km + co2) / vehicle.total_km_driven, 4
            )
        await db.flush()

    if shipment.driver_id:
        await record_delivery(
            db,
            shipment.driver_id,
            DeliveryMetrics(
                distance_km=distance,
                fuel_used=liters,
                fuel_type=fuel_type,
                idle_minutes=idle_minutes,
            ),
            factors,
        )
    return fuel_entry
