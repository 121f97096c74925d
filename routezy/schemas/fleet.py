"""Schemas gestion de flotte / Fleet management schemas."""

from datetime import datetime

from pydantic import BaseModel, Field

from routezy.models.fleet_vehicle import FuelType, VehicleType


# --- Vehicules / Vehicles ---

class VehicleCreate(BaseModel):
    vehicle_number: str = Field(min_length=1, max_length=20)
    vehicle_type: VehicleType = VehicleType.MINI_TRUCK
    make: str | None = None
    model: str | None = None
    year: int | None = Field(default=None, ge=1950, le=2100)
    fuel_type: FuelType = FuelType.PETROL
    is_active: bool = True
    current_driver_id: int | None = None
    last_maintenance_date: str | None = None
    next_maintenance_date: str | None = None
    fuel_efficiency_lpk: float = Field(default=12, gt=0)
    lifetime_co2_kg: float = Field(default=0, ge=0)


class VehicleUpdate(BaseModel):
    vehicle_number: str | None = Field(default=None, min_length=1, max_length=20)
    vehicle_type: VehicleType | None = None
    make: str | None = None
    model: str | None = None
    year: int | None = Field(default=None, ge=1950, le=2100)
    fuel_type: FuelType | None = None
    is_active: bool | None = None
    current_driver_id: int | None = None
    last_maintenance_date: str | None = None
    next_maintenance_date: str | None = None
    fuel_efficiency_lpk: float | None = Field(default=None, gt=0)
    avg_co2_per_km: float | None = Field(default=None, ge=0)
    lifetime_co2_kg: float | None = Field(default=None, ge=0)


class VehicleRead(BaseModel):
    id: int
    vehicle_number: str
    vehicle_type: VehicleType
    make: str | None = None
    model: str | None = None
    year: int | None = None
    fuel_type: str
    is_active: bool
    current_driver_id: int | None = None
    last_maintenance_date: str | None = None
    next_maintenance_date: str | None = None
    total_km_driven: float
    fuel_efficiency_lpk: float
    avg_co2_per_km: float
    lifetime_co2_kg: float
    is_ev: bool
    created_at: datetime | None = None
    model_config = {"from_attributes": True}


class FleetStats(BaseModel):
    total: int
    active: int
    by_type: dict[str, int]


# --- Carburant / Fuel ---

class FuelEntryCreate(BaseModel):
    vehicle_id: int
    driver_id: int | None = None
    shipment_id: int | None = None
    fuel_type: FuelType | None = None  # type du vehicule par defaut / defaults to the vehicle's fuel type
    fuel_liters: float = Field(ge=0)
    fuel_cost: float | None = Field(default=None, ge=0)
    odometer_reading: float | None = Field(default=None, ge=0)
    trip_distance_km: float | None = Field(default=None, ge=0)
    entry_date: str | None = None  # YYYY-MM-DD
    notes: str | None = None


class FuelEntryUpdate(BaseModel):
    driver_id: int | None = None
    fuel_type: FuelType | None = None
    fuel_liters: float | None = Field(default=None, ge=0)
    fuel_cost: float | None = Field(default=None, ge=0)
    odometer_reading: float | None = Field(default=None, ge=0)
    trip_distance_km: float | None = Field(default=None, ge=0)
    entry_date: str | None = None
    notes: str | None = None


class FuelEntryRead(BaseModel):
    id: int
    vehicle_id: int
    driver_id: int | None = None
    shipment_id: int | None = None
    fuel_type: str
    fuel_liters: float
    fuel_cost: float | None = None
    odometer_reading: float | None = None
    trip_distance_km: float | None = None
    co2_emitted_kg: float | None = None
    entry_date: str
    notes: str | None = None
    created_at: datetime | None = None
    model_config = {"from_attributes": True}
