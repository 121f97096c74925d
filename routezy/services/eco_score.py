"""
Service Eco-score chauffeur / Driver eco-score service.

Machine a etats par chauffeur : Uninitialized -> Tracked a la premiere livraison,
puis Tracked -> Tracked a chaque livraison terminee.
Per-driver state machine: Uninitialized -> Tracked on the first delivery,
then Tracked -> Tracked on every completed delivery.
"""

import logging
from dataclasses import dataclass

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from routezy.config import settings
from routezy.models.driver_eco_score import DriverEcoScore
from routezy.models.user import Profile
from routezy.schemas.emissions import EcoScoreRead, LeaderboardEntry
from routezy.services.emissions import calculate_co2_from_fuel, estimate_fuel_from_distance

logger = logging.getLogger(__name__)

DEFAULT_SCORE = 50.0
DEFAULT_RANK = "Beginner"

# Ponderations du score global / Overall score weights
WEIGHT_FUEL = 0.4
WEIGHT_IDLING = 0.3
WEIGHT_ACCELERATION = 0.15
WEIGHT_BRAKING = 0.15

# Seuils de rang, du plus haut au plus bas / Rank thresholds, highest first
RANKS: list[tuple[int, str]] = [
    (90, "Eco Champion"),
    (75, "Green Driver"),
    (60, "Eco Learner"),
    (40, "Developing"),
]

BADGE_CENTURY = "Century Driver"
BADGE_ECO_STAR = "Eco Star"
BADGE_LOW_EMISSION = "Low Emission Hero"


@dataclass
class DeliveryMetrics:
    """Donnees d'une livraison terminee / Metrics of one completed delivery."""
    distance_km: float
    fuel_used: float | None = None
    fuel_type: str = "DIESEL"
    idle_minutes: float | None = None


class EcoScoreConflict(Exception):
    """Conflit de version persistant / Version conflict that survived every retry."""


def _clamp(value: float, low: float = 0, high: float = 100) -> float:
    return min(high, max(low, value))


def overall_score(fuel: float, idling: float, acceleration: float, braking: float) -> int:
    """Score global pondere / Weighted overall score, rounded and clamped to [0, 100]."""
    raw = (
        fuel * WEIGHT_FUEL
        + idling * WEIGHT_IDLING
        + acceleration * WEIGHT_ACCELERATION
        + braking * WEIGHT_BRAKING
    )
    return int(_clamp(round(raw)))


def eco_rank(score: float) -> str:
    """Rang eco (borne inferieure inclusive) / Eco rank, inclusive lower bound."""
    for threshold, rank in RANKS:
        if score >= threshold:
            return rank
    return DEFAULT_RANK


def _delivery_fuel_and_co2(delivery: DeliveryMetrics, factors: dict[str, float] | None) -> tuple[float, float]:
    # Sans carburant mesure, estimation comme un camion / Without measured fuel, estimate as a truck
    fuel = delivery.fuel_used
    if not fuel:
        fuel = estimate_fuel_from_distance(delivery.distance_km, "TRUCK")
    return fuel, calculate_co2_from_fuel(fuel, delivery.fuel_type or "DIESEL", factors)


def _award_badges(
    current: list[str] | None,
    total_deliveries: int,
    overall: int,
    co2_per_km: float | None,
) -> list[str]:
    """Badges ajoutes une seule fois, jamais retires / Badges added once, never removed."""
    badges = list(current or [])
    if total_deliveries >= 100 and BADGE_CENTURY not in badges:
        badges.append(BADGE_CENTURY)
    if overall >= 90 and BADGE_ECO_STAR not in badges:
        badges.append(BADGE_ECO_STAR)
    if co2_per_km is not None and co2_per_km < 0.2 and BADGE_LOW_EMISSION not in badges:
        badges.append(BADGE_LOW_EMISSION)
    return badges


def apply_delivery(
    score: DriverEcoScore | None,
    driver_id: int,
    delivery: DeliveryMetrics,
    factors: dict[str, float] | None = None,
) -> DriverEcoScore:
    """Appliquer une livraison a l'eco-score / Fold one delivery into the eco score.

    Retourne une nouvelle ligne si score est None, sinon modifie score en place.
    Returns a new row when score is None, otherwise mutates score in place.
    """
    fuel, co2 = _delivery_fuel_and_co2(delivery, factors)

    if score is None:
        overall = overall_score(DEFAULT_SCORE, DEFAULT_SCORE, DEFAULT_SCORE, DEFAULT_SCORE)
        first_co2_per_km = co2 / delivery.distance_km if delivery.distance_km > 0 else None
        return DriverEcoScore(
            driver_id=driver_id,
            fuel_efficiency_score=DEFAULT_SCORE,
            idling_score=DEFAULT_SCORE,
            acceleration_score=DEFAULT_SCORE,
            braking_score=DEFAULT_SCORE,
            overall_eco_score=overall,
            total_deliveries=1,
            total_distance_km=delivery.distance_km,
            total_fuel_liters=fuel,
            total_co2_emitted_kg=co2,
            avg_fuel_efficiency=0,
            monthly_deliveries=1,
            monthly_distance_km=delivery.distance_km,
            monthly_fuel_liters=fuel,
            monthly_co2_emitted_kg=co2,
            eco_rank=eco_rank(overall),
            badges=_award_badges([], 1, overall, first_co2_per_km),
        )

    total_deliveries = (score.total_deliveries or 0) + 1
    total_distance = (score.total_distance_km or 0) + delivery.distance_km
    total_fuel = (score.total_fuel_liters or 0) + fuel
    total_co2 = (score.total_co2_emitted_kg or 0) + co2

    avg_co2_per_km = total_co2 / total_distance if total_distance > 0 else settings.DEFAULT_CO2_PER_KM
    fuel_score = _clamp(100 - avg_co2_per_km * 200)
    idling = score.idling_score if score.idling_score is not None else DEFAULT_SCORE
    if delivery.idle_minutes is not None:
        idling = _clamp(100 - delivery.idle_minutes / 2)
    acceleration = score.acceleration_score if score.acceleration_score is not None else DEFAULT_SCORE
    braking = score.braking_score if score.braking_score is not None else DEFAULT_SCORE
    overall = overall_score(fuel_score, idling, acceleration, braking)

    badges = _award_badges(
        score.badges, total_deliveries, overall, avg_co2_per_km if total_distance > 0 else None
    )

    score.total_deliveries = total_deliveries
    score.total_distance_km = total_distance
    score.total_fuel_liters = total_fuel
    score.total_co2_emitted_kg = total_co2
    score.avg_fuel_efficiency = total_fuel / total_distance * 100 if total_distance > 0 else 0
    score.fuel_efficiency_score = fuel_score
    score.idling_score = idling
    score.overall_eco_score = overall
    score.eco_rank = eco_rank(overall)
    score.badges = badges
    score.monthly_deliveries = (score.monthly_deliveries or 0) + 1
    score.monthly_distance_km = (score.monthly_distance_km or 0) + delivery.distance_km
    score.monthly_fuel_liters = (score.monthly_fuel_liters or 0) + fuel
    score.monthly_co2_emitted_kg = (score.monthly_co2_emitted_kg or 0) + co2
    return score


# ─── Persistance / Persistence ───

async def get_eco_score(db: AsyncSession, driver_id: int) -> DriverEcoScore | None:
    result = await db.execute(select(DriverEcoScore).where(DriverEcoScore.driver_id == driver_id))
    return result.scalar_one_or_none()


async def record_delivery(
    db: AsyncSession,
    driver_id: int,
    delivery: DeliveryMetrics,
    factors: dict[str, float] | None = None,
) -> DriverEcoScore:
    """Enregistrer une livraison avec verrouillage optimiste / Record a delivery with optimistic locking.

    Chaque tentative tourne dans un savepoint ; un conflit de version (ou une
    creation concurrente) relit la ligne et reapplique la livraison.
    Each attempt runs in a savepoint; a version conflict (or a concurrent
    first insert) reloads the row and re-applies the delivery.
    """
    for attempt in range(1, settings.ECO_SCORE_MAX_RETRIES + 1):
        try:
            async with db.begin_nested():
                result = await db.execute(
                    select(DriverEcoScore)
                    .where(DriverEcoScore.driver_id == driver_id)
                    .execution_options(populate_existing=True)
                )
                current = result.scalar_one_or_none()
                score = apply_delivery(current, driver_id, delivery, factors)
                if current is None:
                    db.add(score)
                await db.flush()
            return score
        except (StaleDataError, IntegrityError):
            logger.warning(
                "Eco score conflict for driver %s (attempt %d/%d)",
                driver_id, attempt, settings.ECO_SCORE_MAX_RETRIES,
            )
    raise EcoScoreConflict(f"Eco score update for driver {driver_id} kept conflicting")


async def reset_monthly_counters(db: AsyncSession) -> int:
    """Remise a zero mensuelle / Monthly reset of the monthly counters. Returns rows touched."""
    result = await db.execute(
        update(DriverEcoScore)
        .values(
            monthly_deliveries=0,
            monthly_distance_km=0,
            monthly_fuel_liters=0,
            monthly_co2_emitted_kg=0,
            version=DriverEcoScore.version + 1,
        )
        .execution_options(synchronize_session=False)
    )
    logger.info("Reset monthly eco-score counters on %d drivers", result.rowcount)
    return result.rowcount


async def leaderboard(db: AsyncSession, limit: int = 10) -> list[LeaderboardEntry]:
    """Classement par score global / Leaderboard by overall score."""
    result = await db.execute(
        select(DriverEcoScore)
        .order_by(DriverEcoScore.overall_eco_score.desc(), DriverEcoScore.id)
        .limit(limit)
    )
    scores = result.scalars().all()
    if not scores:
        return []

    profiles = await db.execute(
        select(Profile).where(Profile.user_id.in_([s.driver_id for s in scores]))
    )
    names = {p.user_id: p.full_name for p in profiles.scalars().all() if p.full_name}

    return [
        LeaderboardEntry(
            **EcoScoreRead.model_validate(s).model_dump(),
            rank=idx,
            driver_name=names.get(s.driver_id, "Unknown Driver"),
        )
        for idx, s in enumerate(scores, 1)
    ]
