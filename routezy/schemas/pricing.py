"""Schémas tarification / Pricing schemas."""

from datetime import datetime

from pydantic import BaseModel, Field

from routezy.models.fleet_vehicle import VehicleType
from routezy.models.pricing import RouteType


class PricingUpdate(BaseModel):
    vehicle_type: VehicleType
    route_type: RouteType = RouteType.STANDARD
    cost_per_km: float = Field(gt=0)
    base_fare: float = Field(ge=0)
    min_weight: float = Field(default=0, ge=0)
    max_weight: float = Field(default=1000, gt=0)


class PricingRead(BaseModel):
    id: int
    vehicle_type: VehicleType
    route_type: RouteType
    cost_per_km: float
    base_fare: float
    min_weight: float
    max_weight: float
    effective_from: str
    effective_to: str | None = None
    is_active: bool
    created_by: int | None = None
    created_at: datetime | None = None
    model_config = {"from_attributes": True}


class CostEstimate(BaseModel):
    vehicle_type: VehicleType
    route_type: RouteType
    distance_km: float
    base_fare: float
    distance_cost: float
    total_cost: float
    cost_per_km: float
    fallback: bool
