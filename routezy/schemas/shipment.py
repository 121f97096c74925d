"""Schémas expéditions / Shipment schemas."""

from datetime import datetime

from pydantic import BaseModel, Field

from routezy.models.fleet_vehicle import VehicleType
from routezy.models.pricing import RouteType
from routezy.models.shipment import PackageType, ShipmentStatus
from routezy.schemas.payment import InvoiceRead

OTP_PATTERN = r"^\d{4}$"


class ShipmentCreate(BaseModel):
    pickup_address: str = Field(min_length=1)
    pickup_city: str | None = None
    pickup_pincode: str | None = Field(default=None, max_length=10)
    pickup_date: str | None = None  # YYYY-MM-DD
    pickup_time_slot: str | None = None
    pickup_contact_name: str | None = None
    pickup_contact_phone: str | None = None
    pickup_lat: float | None = Field(default=None, ge=-90, le=90)
    pickup_lng: float | None = Field(default=None, ge=-180, le=180)

    delivery_address: str = Field(min_length=1)
    delivery_city: str | None = None
    delivery_pincode: str | None = Field(default=None, max_length=10)
    receiver_name: str | None = None
    receiver_phone: str | None = None
    delivery_lat: float | None = Field(default=None, ge=-90, le=90)
    delivery_lng: float | None = Field(default=None, ge=-180, le=180)

    package_type: PackageType = PackageType.PARCEL
    weight_kg: float | None = Field(default=None, gt=0)
    dimensions: str | None = None
    is_fragile: bool = False
    description: str | None = None
    vehicle_type: VehicleType | None = None
    route_type: RouteType = RouteType.STANDARD

    distance_km: float | None = Field(default=None, ge=0)
    estimated_cost: float | None = Field(default=None, ge=0)


class ShipmentRead(BaseModel):
    id: int
    tracking_id: str
    sender_id: int | None = None
    pickup_address: str
    pickup_city: str | None = None
    pickup_pincode: str | None = None
    pickup_date: str | None = None
    pickup_time_slot: str | None = None
    pickup_contact_name: str | None = None
    pickup_contact_phone: str | None = None
    pickup_lat: float | None = None
    pickup_lng: float | None = None
    delivery_address: str
    delivery_city: str | None = None
    delivery_pincode: str | None = None
    receiver_name: str | None = None
    receiver_phone: str | None = None
    delivery_lat: float | None = None
    delivery_lng: float | None = None
    package_type: PackageType
    weight_kg: float | None = None
    dimensions: str | None = None
    is_fragile: bool
    description: str | None = None
    vehicle_type: VehicleType | None = None
    status: ShipmentStatus
    driver_id: int | None = None
    vehicle_id: int | None = None
    driver_lat: float | None = None
    driver_lng: float | None = None
    distance_km: float | None = None
    carbon_score: float | None = None
    estimated_cost: float | None = None
    final_cost: float | None = None
    proof_of_delivery_url: str | None = None
    pickup_otp: str | None = None  # expediteur et managers seulement / sender and staff only
    delivery_otp: str | None = None
    picked_up_at: datetime | None = None
    delivered_at: datetime | None = None
    created_at: datetime | None = None
    model_config = {"from_attributes": True}


class ShipmentAssign(BaseModel):
    driver_id: int
    vehicle_id: int | None = None


class PickupConfirm(BaseModel):
    otp: str = Field(pattern=OTP_PATTERN)


class DeliveryConfirm(BaseModel):
    otp: str = Field(pattern=OTP_PATTERN)
    distance_km: float | None = Field(default=None, ge=0)
    fuel_used: float | None = Field(default=None, ge=0)
    idle_minutes: float | None = Field(default=None, ge=0)
    proof_of_delivery_url: str | None = Field(default=None, max_length=500)


class DeliveryResponse(BaseModel):
    shipment: ShipmentRead
    invoice: InvoiceRead
    carbon_saved: float


class LocationUpdate(BaseModel):
    lat: float = Field(ge=-90, le=90)
    lng: float = Field(ge=-180, le=180)


class SustainabilityMetrics(BaseModel):
    total_shipments: int
    delivered_shipments: int
    active_deliveries: int
    total_distance_km: float
    total_carbon_saved: float
    trees_equivalent: int  # kg CO2 absorbe par arbre et par an = 21 / kg absorbed per tree per year
