"""Schémas chauffeurs / Driver schemas."""

from datetime import datetime

from pydantic import BaseModel, EmailStr, Field

from routezy.models.driver_request import DriverRequestStatus
from routezy.schemas.shipment import ShipmentRead


# --- Candidatures / Applications ---

class DriverRequestCreate(BaseModel):
    full_name: str = Field(min_length=1, max_length=150)
    phone: str | None = Field(default=None, max_length=30)
    license_number: str | None = Field(default=None, max_length=50)


class DriverRequestRead(BaseModel):
    id: int
    user_id: int
    email: str
    full_name: str | None = None
    phone: str | None = None
    license_number: str | None = None
    status: DriverRequestStatus
    reviewed_by: int | None = None
    reviewed_at: datetime | None = None
    rejection_reason: str | None = None
    created_at: datetime | None = None
    model_config = {"from_attributes": True}


class DriverRequestReject(BaseModel):
    reason: str = Field(min_length=1, max_length=500)


# --- Gestion / Management ---

class DriverAdd(BaseModel):
    """Ajout d'un chauffeur par e-mail / Add a driver by e-mail."""
    email: EmailStr
    full_name: str | None = None
    phone: str | None = None
    password: str | None = Field(default=None, min_length=6)


class DriverRead(BaseModel):
    user_id: int
    email: str
    full_name: str | None = None
    phone: str | None = None
    avatar_url: str | None = None
    assigned_vehicle_id: int | None = None


class VehicleAssignment(BaseModel):
    vehicle_id: int | None = None


# --- Service chauffeur / Driver self-service ---

class CheckInRequest(BaseModel):
    odometer_reading: float = Field(ge=0)
    fuel_level: float = Field(ge=0, le=100)


class CheckOutRequest(CheckInRequest):
    pass


class ShiftRead(BaseModel):
    id: int
    driver_id: int
    vehicle_id: int | None = None
    checkin_odometer: float
    checkin_fuel_level: float
    checkout_odometer: float | None = None
    checkout_fuel_level: float | None = None
    checked_in_at: datetime | None = None
    checked_out_at: datetime | None = None
    is_online: bool
    model_config = {"from_attributes": True}


class CheckOutSummary(BaseModel):
    shift: ShiftRead
    km_driven: float
    fuel_used_percent: float
    km_per_fuel_percent: float


class DamageReportCreate(BaseModel):
    vehicle_id: int | None = None
    damage_description: str = Field(min_length=1)
    damage_severity: str = Field(default="minor", pattern="^(minor|moderate|severe)$")
    damage_date: str | None = None  # YYYY-MM-DD, aujourd'hui par défaut / defaults to today
    location: str | None = None


class DamageReportResolve(BaseModel):
    repair_cost: float | None = Field(default=None, ge=0)
    manager_notes: str | None = None


class DamageReportRead(BaseModel):
    id: int
    vehicle_id: int | None = None
    driver_id: int | None = None
    vehicle_number: str | None = None
    damage_description: str
    damage_severity: str
    damage_date: str
    location: str | None = None
    is_resolved: bool
    resolved_at: datetime | None = None
    resolved_by: int | None = None
    repair_cost: float | None = None
    manager_notes: str | None = None
    created_at: datetime | None = None
    model_config = {"from_attributes": True}


class DriverAddResult(BaseModel):
    success: bool = True
    user_id: int
    is_new_user: bool
    message: str


class DriverSessionRead(BaseModel):
    """Etat de travail du chauffeur / Driver working state."""
    driver_id: int
    is_online: bool
    vehicle_id: int | None = None
    lat: float | None = None
    lng: float | None = None
    current_shipment: ShipmentRead | None = None
    total_deliveries: int
    total_carbon_saved: float
    pending_pickups: list[ShipmentRead] = []
