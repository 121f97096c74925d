"""
Données initiales / Initial data.
Superadmin, facteurs d'émission et grille tarifaire par défaut au premier démarrage.
Superadmin, emission factors and default pricing on first startup.
"""

import logging
from datetime import date

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from routezy.config import settings
from routezy.models.emission_factor import EmissionFactor
from routezy.models.fleet_vehicle import VehicleType
from routezy.models.pricing import PricingConfig, RouteType
from routezy.models.user import AppRole, Profile, User, UserRole
from routezy.services.emissions import EMISSION_FACTORS
from routezy.utils.auth import hash_password

logger = logging.getLogger(__name__)

FACTOR_DESCRIPTIONS = {
    "DIESEL": "Diesel fuel combustion",
    "PETROL": "Petrol/gasoline combustion",
    "CNG": "Compressed natural gas",
    "LPG": "Liquefied petroleum gas",
    "ELECTRIC": "Zero tailpipe emissions",
    "HYBRID": "Blended petrol/electric average",
}

# (cout/km, prise en charge, poids max) / (cost per km, base fare, max weight)
DEFAULT_PRICING = {
    VehicleType.BIKE: (3, 30, 1000),
    VehicleType.THREE_WHEELER: (5, 50, 1000),
    VehicleType.MINI_TRUCK: (8, 100, 1000),
    VehicleType.TRUCK: (12, 150, 1000),
    VehicleType.LARGE_TRUCK: (18, 200, 5000),
}


async def seed_superadmin(session: AsyncSession) -> None:
    """Créer le superadmin si aucun utilisateur n'existe / Create superadmin if no users exist."""
    count = await session.scalar(select(func.count(User.id)))
    if count:
        logger.info("%d existing user(s), superadmin seed skipped", count)
        return

    admin = User(
        email=settings.SUPERADMIN_EMAIL,
        hashed_password=hash_password(settings.SUPERADMIN_PASSWORD),
        is_active=True,
        is_superadmin=True,
    )
    admin.roles = [UserRole(role=AppRole.ADMIN)]
    admin.profile = Profile(full_name="Administrator")
    session.add(admin)
    await session.flush()
    logger.info("Superadmin created: %s", settings.SUPERADMIN_EMAIL)


async def seed_emission_factors(session: AsyncSession) -> None:
    """Insérer les facteurs manquants / Insert missing emission factors."""
    result = await session.execute(select(EmissionFactor.fuel_type))
    existing = {row[0] for row in result.all()}
    for fuel_type, factor in EMISSION_FACTORS.items():
        if fuel_type not in existing:
            session.add(EmissionFactor(
                fuel_type=fuel_type,
                co2_kg_per_liter=factor,
                description=FACTOR_DESCRIPTIONS.get(fuel_type),
            ))
    await session.flush()


async def seed_pricing(session: AsyncSession) -> None:
    """Grille standard si aucune tarification / Standard pricing when the table is empty."""
    if await session.scalar(select(func.count(PricingConfig.id))):
        return
    today = date.today().isoformat()
    for vehicle_type, (cost_per_km, base_fare, max_weight) in DEFAULT_PRICING.items():
        session.add(PricingConfig(
            vehicle_type=vehicle_type,
            route_type=RouteType.STANDARD,
            cost_per_km=cost_per_km,
            base_fare=base_fare,
            min_weight=0,
            max_weight=max_weight,
            effective_from=today,
            is_active=True,
        ))
    await session.flush()
    logger.info("Default pricing seeded for %d vehicle types", len(DEFAULT_PRICING))


async def seed_all(session: AsyncSession) -> None:
    await seed_superadmin(session)
    await seed_emission_factors(session)
    await seed_pricing(session)
    await session.commit()
