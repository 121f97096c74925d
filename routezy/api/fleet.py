"""Routes flotte et carburant / Fleet and fuel routes."""

from collections import Counter
from datetime import date

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from routezy.api.deps import require_staff
from routezy.database import get_db
from routezy.models.fleet_vehicle import FleetVehicle
from routezy.models.fuel_entry import FuelEntry
from routezy.models.user import User
from routezy.schemas.fleet import (
    FleetStats,
    FuelEntryCreate,
    FuelEntryRead,
    FuelEntryUpdate,
    VehicleCreate,
    VehicleRead,
    VehicleUpdate,
)
from routezy.services.change_feed import ChangeEvent, hub, row_to_dict
from routezy.services.emissions import calculate_co2_from_fuel, get_emission_factors
from routezy.services.fleet_aggregator import load_entries

router = APIRouter()


def _plain(values: dict) -> dict:
    """Enums -> valeurs pour les colonnes String / Enums to values for String columns."""
    if values.get("fuel_type") is not None:
        values["fuel_type"] = getattr(values["fuel_type"], "value", values["fuel_type"])
    return values


# ─── Vehicules / Vehicles ───

@router.get("/vehicles", response_model=list[VehicleRead])
async def list_vehicles(
    vehicle_type: str | None = None,
    is_active: bool | None = None,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(require_staff),
):
    """Lister les vehicules / List vehicles."""
    query = select(FleetVehicle).order_by(FleetVehicle.vehicle_number)
    if vehicle_type is not None:
        query = query.where(FleetVehicle.vehicle_type == vehicle_type)
    if is_active is not None:
        query = query.where(FleetVehicle.is_active.is_(is_active))
    result = await db.execute(query)
    return result.scalars().all()


@router.get("/vehicles/active", response_model=list[VehicleRead])
async def list_active_vehicles(
    db: AsyncSession = Depends(get_db),
    user: User = Depends(require_staff),
):
    """Vehicules actifs pour les listes deroulantes / Active vehicles for dropdowns."""
    result = await db.execute(
        select(FleetVehicle).where(FleetVehicle.is_active.is_(True)).order_by(FleetVehicle.vehicle_number)
    )
    return result.scalars().all()


@router.get("/stats", response_model=FleetStats)
async def fleet_stats(
    db: AsyncSession = Depends(get_db),
    user: User = Depends(require_staff),
):
    """Total, actifs, repartition par type / Total, active, count by type."""
    result = await db.execute(select(FleetVehicle.vehicle_type, FleetVehicle.is_active))
    rows = result.all()
    return FleetStats(
        total=len(rows),
        active=sum(1 for _, active in rows if active),
        by_type=dict(Counter(vt.value for vt, _ in rows)),
    )


@router.get("/vehicles/{vehicle_id}", response_model=VehicleRead)
async def get_vehicle(
    vehicle_id: int,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(require_staff),
):
    """Voir un vehicule / Get vehicle detail."""
    vehicle = await db.get(FleetVehicle, vehicle_id)
    if not vehicle:
        raise HTTPException(status_code=404, detail="Vehicle not found")
    return vehicle


@router.post("/vehicles", response_model=VehicleRead, status_code=201)
async def create_vehicle(
    data: VehicleCreate,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(require_staff),
):
    """Creer un vehicule / Create vehicle."""
    existing = await db.execute(
        select(FleetVehicle.id).where(FleetVehicle.vehicle_number == data.vehicle_number)
    )
    if existing.scalar_one_or_none() is not None:
        raise HTTPException(status_code=409, detail="Vehicle number already exists")

    vehicle = FleetVehicle(**_plain(data.model_dump()))
    db.add(vehicle)
    await db.flush()
    await db.refresh(vehicle)
    hub.publish_on_commit(db, "fleet_vehicles", ChangeEvent.INSERT, new=vehicle)
    return vehicle


@router.put("/vehicles/{vehicle_id}", response_model=VehicleRead)
async def update_vehicle(
    vehicle_id: int,
    data: VehicleUpdate,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(require_staff),
):
    """Modifier un vehicule / Update vehicle."""
    vehicle = await db.get(FleetVehicle, vehicle_id)
    if not vehicle:
        raise HTTPException(status_code=404, detail="Vehicle not found")

    old = row_to_dict(vehicle)
    for key, value in _plain(data.model_dump(exclude_unset=True)).items():
        setattr(vehicle, key, value)

    await db.flush()
    await db.refresh(vehicle)
    hub.publish_on_commit(db, "fleet_vehicles", ChangeEvent.UPDATE, new=vehicle, old=old)
    return vehicle


@router.delete("/vehicles/{vehicle_id}", status_code=204)
async def delete_vehicle(
    vehicle_id: int,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(require_staff),
):
    """Supprimer un vehicule / Delete vehicle."""
    vehicle = await db.get(FleetVehicle, vehicle_id)
    if not vehicle:
        raise HTTPException(status_code=404, detail="Vehicle not found")
    old = row_to_dict(vehicle)
    await db.delete(vehicle)
    await db.flush()
    hub.publish_on_commit(db, "fleet_vehicles", ChangeEvent.DELETE, old=old)


# ─── Carburant / Fuel entries ───

@router.get("/fuel-entries", response_model=list[FuelEntryRead])
async def list_fuel_entries(
    vehicle_id: int | None = None,
    driver_id: int | None = None,
    date_from: str | None = Query(default=None, description="YYYY-MM-DD"),
    date_to: str | None = Query(default=None, description="YYYY-MM-DD"),
    db: AsyncSession = Depends(get_db),
    user: User = Depends(require_staff),
):
    """Entrees carburant filtrees / Filtered fuel entries."""
    return await load_entries(db, vehicle_id=vehicle_id, driver_id=driver_id, start=date_from, end=date_to)


@router.post("/fuel-entries", response_model=FuelEntryRead, status_code=201)
async def create_fuel_entry(
    data: FuelEntryCreate,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(require_staff),
):
    """Ajouter une entree ; CO2 derive / Add an entry; CO2 is derived."""
    vehicle = await db.get(FleetVehicle, data.vehicle_id)
    if vehicle is None:
        raise HTTPException(status_code=404, detail="Vehicle not found")

    values = _plain(data.model_dump())
    values["fuel_type"] = (values["fuel_type"] or vehicle.fuel_type or "DIESEL").upper()
    values["entry_date"] = values["entry_date"] or date.today().isoformat()
    factors = await get_emission_factors(db)
    values["co2_emitted_kg"] = calculate_co2_from_fuel(values["fuel_liters"], values["fuel_type"], factors)

    entry = FuelEntry(**values)
    db.add(entry)
    await db.flush()
    await db.refresh(entry)
    hub.publish_on_commit(db, "fuel_entries", ChangeEvent.INSERT, new=entry)
    return entry


@router.put("/fuel-entries/{entry_id}", response_model=FuelEntryRead)
async def update_fuel_entry(
    entry_id: int,
    data: FuelEntryUpdate,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(require_staff),
):
    """Modifier une entree ; CO2 recalcule / Update an entry; CO2 is recomputed."""
    entry = await db.get(FuelEntry, entry_id)
    if entry is None:
        raise HTTPException(status_code=404, detail="Fuel entry not found")

    old = row_to_dict(entry)
    for key, value in _plain(data.model_dump(exclude_unset=True)).items():
        setattr(entry, key, value)
    entry.fuel_type = (entry.fuel_type or "DIESEL").upper()
    factors = await get_emission_factors(db)
    entry.co2_emitted_kg = calculate_co2_from_fuel(entry.fuel_liters, entry.fuel_type, factors)

    await db.flush()
    await db.refresh(entry)
    hub.publish_on_commit(db, "fuel_entries", ChangeEvent.UPDATE, new=entry, old=old)
    return entry


@router.delete("/fuel-entries/{entry_id}", status_code=204)
async def delete_fuel_entry(
    entry_id: int,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(require_staff),
):
    """Supprimer une entree / Delete an entry."""
    entry = await db.get(FuelEntry, entry_id)
    if entry is None:
        raise HTTPException(status_code=404, detail="Fuel entry not found")
    old = row_to_dict(entry)
    await db.delete(entry)
    await db.flush()
    hub.publish_on_commit(db, "fuel_entries", ChangeEvent.DELETE, old=old)
