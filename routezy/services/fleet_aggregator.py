"""
Agregation des emissions de flotte / Fleet emissions aggregation.

Fonctions pures sur des entrees carburant deja chargees, plus les chargeurs async.
Pure folds over already-loaded fuel entries, plus the async loaders feeding them.
"""

from collections import defaultdict
from datetime import date, timedelta
from typing import Iterable

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from routezy.config import settings
from routezy.models.fleet_vehicle import FleetVehicle, FuelType
from routezy.models.fuel_entry import FuelEntry
from routezy.models.shipment import Shipment, ShipmentStatus
from routezy.schemas.emissions import (
    EmissionsSummary,
    FuelTypeEmission,
    PeriodEmission,
    VehicleEmission,
)
from routezy.services.emissions import calculate_ev_savings


def _co2(entry) -> float:
    return entry.co2_emitted_kg or 0.0


def _distance(entry) -> float:
    return entry.trip_distance_km or 0.0


def month_bounds(reference: date, offset: int = 0) -> tuple[str, str]:
    """Premier et dernier jour du mois decale / First and last day of the offset month.

    offset=-1 -> mois precedent / previous calendar month.
    """
    month_index = reference.year * 12 + (reference.month - 1) + offset
    year, month = divmod(month_index, 12)
    start = date(year, month + 1, 1)
    next_year, next_month = divmod(month_index + 1, 12)
    end = date(next_year, next_month + 1, 1) - timedelta(days=1)
    return start.isoformat(), end.isoformat()


def monthly_trend(current_co2: float, prior_co2: float) -> int:
    """Variation mensuelle en % entier / Month-over-month change as an integer %."""
    if prior_co2 <= 0:
        return 0
    return round((current_co2 - prior_co2) / prior_co2 * 100)


def summarize(
    entries: Iterable,
    delivered_shipments: Iterable = (),
    prior_month_entries: Iterable = (),
) -> EmissionsSummary:
    """Resume flotte / Fleet emissions summary."""
    entries = list(entries)
    total_co2 = sum(_co2(e) for e in entries)
    total_fuel = sum(e.fuel_liters or 0.0 for e in entries)
    total_distance = sum(_distance(e) for e in entries)
    total_saved = sum(s.carbon_score or 0.0 for s in delivered_shipments)
    prior_co2 = sum(_co2(e) for e in prior_month_entries)

    ev_savings = calculate_ev_savings(total_distance) if total_distance > 0 else 0.0

    return EmissionsSummary(
        total_co2_emitted=round(total_co2, 2),
        total_co2_saved=round(total_saved, 2),
        co2_per_km=round(total_co2 / total_distance, 3) if total_distance > 0 else 0,
        total_distance_km=round(total_distance, 2),
        total_fuel_liters=round(total_fuel, 2),
        total_trips=len(entries),
        monthly_trend=monthly_trend(total_co2, prior_co2),
        ev_savings=round(ev_savings, 2),
    )


def by_vehicle(vehicles: Iterable[FleetVehicle], entries: Iterable) -> list[VehicleEmission]:
    """Emissions par vehicule / Emissions per vehicle.

    Le CO2 cumule stocke sur le vehicule s'ajoute a celui des entrees.
    The vehicle's stored lifetime CO2 is added to the entries' CO2.
    """
    sums: dict[int, list[float]] = defaultdict(lambda: [0.0, 0.0])
    for e in entries:
        bucket = sums[e.vehicle_id]
        bucket[0] += _co2(e)
        bucket[1] += _distance(e)

    result = []
    for v in vehicles:
        co2, distance = sums.get(v.id, (0.0, 0.0))
        if distance > 0:
            avg = co2 / distance
        elif v.avg_co2_per_km is not None:
            avg = v.avg_co2_per_km
        else:
            avg = settings.DEFAULT_CO2_PER_KM
        vehicle_type = getattr(v.vehicle_type, "value", v.vehicle_type)
        result.append(VehicleEmission(
            vehicle_id=v.id,
            vehicle_number=v.vehicle_number,
            vehicle_type=vehicle_type,
            fuel_type=v.fuel_type or FuelType.DIESEL.value,
            total_co2=co2 + (v.lifetime_co2_kg or 0.0),
            avg_co2_per_km=avg,
            is_ev=(v.fuel_type or "").upper() == FuelType.ELECTRIC.value,
        ))
    return result


def by_fuel_type(entries: Iterable) -> list[FuelTypeEmission]:
    """Repartition par carburant / Breakdown by fuel type (0 % when the total is zero)."""
    buckets: dict[str, float] = {}
    total = 0.0
    for e in entries:
        co2 = _co2(e)
        buckets[e.fuel_type] = buckets.get(e.fuel_type, 0.0) + co2
        total += co2

    return [
        FuelTypeEmission(
            fuel_type=fuel_type,
            total_co2=round(co2, 2),
            percentage=round(co2 / total * 100) if total > 0 else 0,
        )
        for fuel_type, co2 in buckets.items()
    ]


def by_period(entries: Iterable, reference: date, months: int = 6) -> list[PeriodEmission]:
    """Tendance sur les N derniers mois calendaires / Trend over the last N calendar months."""
    entries = list(entries)
    result = []
    for offset in range(-(months - 1), 1):
        start, end = month_bounds(reference, offset)
        in_month = [e for e in entries if start <= e.entry_date <= end]
        total_co2 = sum(_co2(e) for e in in_month)
        total_distance = sum(_distance(e) for e in in_month)
        total_fuel = sum(e.fuel_liters or 0.0 for e in in_month)
        result.append(PeriodEmission(
            period=date.fromisoformat(start).strftime("%b %y"),
            total_co2=round(total_co2, 2),
            total_distance=round(total_distance, 2),
            avg_efficiency=round(total_fuel / total_distance * 100, 2) if total_distance > 0 else 0,
        ))
    return result


# ─── Chargeurs / Loaders ───

async def load_entries(
    db: AsyncSession,
    vehicle_id: int | None = None,
    driver_id: int | None = None,
    start: str | None = None,
    end: str | None = None,
) -> list[FuelEntry]:
    """Entrees carburant filtrees / Filtered fuel entries, newest first."""
    query = select(FuelEntry).order_by(FuelEntry.entry_date.desc(), FuelEntry.id.desc())
    if vehicle_id:
        query = query.where(FuelEntry.vehicle_id == vehicle_id)
    if driver_id:
        query = query.where(FuelEntry.driver_id == driver_id)
    if start:
        query = query.where(FuelEntry.entry_date >= start)
    if end:
        query = query.where(FuelEntry.entry_date <= end)
    result = await db.execute(query)
    return list(result.scalars().all())


async def load_summary(
    db: AsyncSession,
    start: str | None = None,
    end: str | None = None,
    today: date | None = None,
) -> EmissionsSummary:
    today = today or date.today()
    entries = await load_entries(db, start=start, end=end)
    delivered = await db.execute(select(Shipment).where(Shipment.status == ShipmentStatus.DELIVERED))
    prior_start, prior_end = month_bounds(today, -1)
    prior = await load_entries(db, start=prior_start, end=prior_end)
    return summarize(entries, delivered.scalars().all(), prior)


async def load_by_vehicle(db: AsyncSession) -> list[VehicleEmission]:
    vehicles = await db.execute(select(FleetVehicle).order_by(FleetVehicle.vehicle_number))
    entries = await load_entries(db)
    return by_vehicle(vehicles.scalars().all(), entries)


async def load_by_fuel_type(db: AsyncSession) -> list[FuelTypeEmission]:
    return by_fuel_type(await load_entries(db))


async def load_trend(db: AsyncSession, months: int = 6, today: date | None = None) -> list[PeriodEmission]:
    today = today or date.today()
    start, _ = month_bounds(today, -(months - 1))
    _, end = month_bounds(today, 0)
    entries = await load_entries(db, start=start, end=end)
    return by_period(entries, today, months)
