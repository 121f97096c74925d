"""
Service de tarification / Pricing service.
Une seule grille active par (type de vehicule, type de trajet).
One active pricing row per (vehicle type, route type).
"""

import logging
from datetime import date

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from routezy.config import settings
from routezy.models.fleet_vehicle import VehicleType
from routezy.models.pricing import PricingConfig, RouteType

logger = logging.getLogger(__name__)


class PricingService:
    """Grilles et estimation de cout / Pricing rows and cost estimate."""

    @staticmethod
    async def get_active(db: AsyncSession, route_type: RouteType | None = None) -> list[PricingConfig]:
        query = select(PricingConfig).where(PricingConfig.is_active.is_(True))
        if route_type:
            query = query.where(PricingConfig.route_type == route_type)
        result = await db.execute(query.order_by(PricingConfig.cost_per_km))
        return list(result.scalars().all())

    @staticmethod
    async def get_for_vehicle(
        db: AsyncSession,
        vehicle_type: VehicleType,
        route_type: RouteType = RouteType.STANDARD,
    ) -> PricingConfig | None:
        result = await db.execute(
            select(PricingConfig).where(
                PricingConfig.vehicle_type == vehicle_type,
                PricingConfig.route_type == route_type,
                PricingConfig.is_active.is_(True),
            ).order_by(PricingConfig.id.desc()).limit(1)
        )
        return result.scalar_one_or_none()

    @staticmethod
    def compute(distance_km: float, base_fare: float, cost_per_km: float) -> dict:
        """Detail du cout / Cost breakdown."""
        distance_cost = round(distance_km * cost_per_km, 2)
        return {
            "base_fare": base_fare,
            "distance_cost": distance_cost,
            "total_cost": round(base_fare + distance_cost, 2),
            "cost_per_km": cost_per_km,
        }

    @staticmethod
    async def estimate(
        db: AsyncSession,
        distance_km: float,
        vehicle_type: VehicleType,
        route_type: RouteType = RouteType.STANDARD,
    ) -> dict:
        """Estimer un cout, repli 50 + 5/km sans grille / Estimate a cost, fallback 50 + 5/km."""
        pricing = await PricingService.get_for_vehicle(db, vehicle_type, route_type)
        if pricing is None:
            logger.info("No active pricing for %s/%s, using fallback", vehicle_type.value, route_type.value)
            result = PricingService.compute(
                distance_km, settings.FALLBACK_BASE_FARE, settings.FALLBACK_COST_PER_KM
            )
            result["fallback"] = True
            return result
        result = PricingService.compute(distance_km, pricing.base_fare, pricing.cost_per_km)
        result["fallback"] = False
        return result

    @staticmethod
    async def replace(
        db: AsyncSession,
        vehicle_type: VehicleType,
        cost_per_km: float,
        base_fare: float,
        route_type: RouteType = RouteType.STANDARD,
        min_weight: float = 0,
        max_weight: float = 1000,
        created_by: int | None = None,
    ) -> PricingConfig:
        """Desactiver la grille courante et en inserer une nouvelle, dans la meme transaction.
        Deactivate the current row and insert the new one within the same transaction.
        """
        today = date.today().isoformat()
        await db.execute(
            update(PricingConfig)
            .where(
                PricingConfig.vehicle_type == vehicle_type,
                PricingConfig.route_type == route_type,
                PricingConfig.is_active.is_(True),
            )
            .values(is_active=False, effective_to=today)
            .execution_options(synchronize_session=False)
        )
        pricing = PricingConfig(
            vehicle_type=vehicle_type,
            route_type=route_type,
            cost_per_km=cost_per_km,
            base_fare=base_fare,
            min_weight=min_weight,
            max_weight=max_weight,
            effective_from=today,
            is_active=True,
            created_by=created_by,
        )
        db.add(pricing)
        await db.flush()
        await db.refresh(pricing)
        return pricing

    @staticmethod
    async def history(db: AsyncSession, vehicle_type: VehicleType) -> list[PricingConfig]:
        result = await db.execute(
            select(PricingConfig)
            .where(PricingConfig.vehicle_type == vehicle_type)
            .order_by(PricingConfig.id.desc())
        )
        return list(result.scalars().all())
