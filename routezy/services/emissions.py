"""
Calcul des emissions CO2 / CO2 emissions calculation.
Facteurs d'emission, estimation carburant par distance, economies.
Emission factors, fuel-from-distance estimate, savings helpers.
"""

import logging

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from routezy.config import settings
from routezy.models.emission_factor import EmissionFactor

logger = logging.getLogger(__name__)

# kg CO2 par litre / kg CO2 per liter
EMISSION_FACTORS: dict[str, float] = {
    "DIESEL": 2.68,
    "PETROL": 2.31,
    "CNG": 1.93,
    "LPG": 1.51,
    "ELECTRIC": 0.0,
    "HYBRID": 1.85,
}

# Consommation moyenne L/100km par classe / Average L/100km per vehicle class
FUEL_EFFICIENCY_LPK: dict[str, float] = {
    "BIKE": 3,
    "THREE_WHEELER": 6,
    "MINI_TRUCK": 10,
    "TRUCK": 15,
    "LARGE_TRUCK": 25,
}

ROUTE_OPTIMIZATION_FACTOR = 0.3


def _key(value) -> str:
    """Normaliser un enum ou une chaine / Normalize an enum or a string."""
    return str(getattr(value, "value", value) or "").upper()


def calculate_co2_from_fuel(
    fuel_liters: float,
    fuel_type: str,
    factors: dict[str, float] | None = None,
) -> float:
    """CO2 emis en kg / Emitted CO2 in kg.

    Type inconnu -> facteur DIESEL / Unknown type falls back to the DIESEL factor.
    """
    table = factors or EMISSION_FACTORS
    factor = table.get(_key(fuel_type))
    if factor is None:
        factor = table.get("DIESEL", EMISSION_FACTORS["DIESEL"])
    return round(fuel_liters * factor, 2)


def estimate_fuel_from_distance(
    distance_km: float,
    vehicle_type: str,
    fallback_efficiency: float | None = None,
) -> float:
    """Estimer les litres consommes / Estimate liters consumed over a distance."""
    if fallback_efficiency is None:
        fallback_efficiency = settings.DEFAULT_FUEL_EFFICIENCY_LPK
    efficiency = FUEL_EFFICIENCY_LPK.get(_key(vehicle_type), fallback_efficiency)
    return round(distance_km * efficiency / 100, 2)


def calculate_co2_savings(
    distance_km: float,
    fuel_type: str,
    optimization_factor: float = ROUTE_OPTIMIZATION_FACTOR,
) -> float:
    """CO2 economise par un trajet optimise / CO2 saved by an optimized route (truck baseline)."""
    standard = calculate_co2_from_fuel(estimate_fuel_from_distance(distance_km, "TRUCK"), fuel_type)
    return round(standard * optimization_factor, 2)


def calculate_ev_savings(distance_km: float) -> float:
    """CO2 qu'un camion diesel aurait emis / CO2 a diesel truck would have emitted."""
    return calculate_co2_from_fuel(estimate_fuel_from_distance(distance_km, "TRUCK"), "DIESEL")


async def get_emission_factors(db: AsyncSession) -> dict[str, float]:
    """Charger les facteurs persistes / Load persisted factors.

    Repli sur la table statique si la requete echoue ou est vide.
    Falls back to the static table when the query fails or returns nothing.
    """
    try:
        result = await db.execute(select(EmissionFactor))
        rows = result.scalars().all()
    except SQLAlchemyError:
        logger.exception("Failed to load emission factors, using defaults")
        return dict(EMISSION_FACTORS)

    if not rows:
        return dict(EMISSION_FACTORS)
    return {row.fuel_type.upper(): row.co2_kg_per_liter for row in rows}
