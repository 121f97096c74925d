"""Routes tarification / Pricing routes."""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from routezy.api.auth import audit
from routezy.api.deps import get_current_user, require_staff
from routezy.database import get_db
from routezy.models.fleet_vehicle import VehicleType
from routezy.models.pricing import RouteType
from routezy.models.user import User
from routezy.schemas.pricing import CostEstimate, PricingRead, PricingUpdate
from routezy.services.pricing_service import PricingService

router = APIRouter()


@router.get("/", response_model=list[PricingRead])
async def list_active_pricing(
    route_type: RouteType | None = None,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """Grilles actives / Active pricing rows."""
    return await PricingService.get_active(db, route_type)


@router.get("/estimate", response_model=CostEstimate)
async def estimate_cost(
    distance_km: float = Query(ge=0),
    vehicle_type: VehicleType = VehicleType.MINI_TRUCK,
    route_type: RouteType = RouteType.STANDARD,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """Estimer un cout / Estimate a cost."""
    result = await PricingService.estimate(db, distance_km, vehicle_type, route_type)
    return CostEstimate(vehicle_type=vehicle_type, route_type=route_type, distance_km=distance_km, **result)


@router.put("/", response_model=PricingRead)
async def replace_pricing(
    data: PricingUpdate,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(require_staff),
):
    """Remplacer la grille active / Replace the active pricing row."""
    pricing = await PricingService.replace(
        db,
        data.vehicle_type,
        data.cost_per_km,
        data.base_fare,
        route_type=data.route_type,
        min_weight=data.min_weight,
        max_weight=data.max_weight,
        created_by=user.id,
    )
    audit(db, "pricing", pricing.id, "UPDATE", data.model_dump(mode="json"), user.email)
    return pricing


@router.get("/history/{vehicle_type}", response_model=list[PricingRead])
async def pricing_history(
    vehicle_type: VehicleType,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(require_staff),
):
    """Historique, plus recent d'abord / History, newest first."""
    return await PricingService.history(db, vehicle_type)
