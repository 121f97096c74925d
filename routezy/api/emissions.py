"""
Routes emissions / Emissions API routes.
Synthese flotte, classement eco-score, insights, rapport et facteurs.
Fleet summary, eco-score leaderboard, insights, report and factors.
"""

import io
from datetime import date

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import StreamingResponse
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from routezy.api.auth import audit
from routezy.api.deps import get_current_user, is_staff, require_staff
from routezy.database import get_db
from routezy.models.emission_factor import EmissionFactor
from routezy.models.user import User
from routezy.schemas.emissions import (
    CalculationRequest,
    CalculationResult,
    EcoScoreRead,
    EmissionFactorRead,
    EmissionFactorUpdate,
    EmissionInsight,
    EmissionReport,
    EmissionsSummary,
    FuelTypeEmission,
    LeaderboardEntry,
    PeriodEmission,
    VehicleEmission,
)
from routezy.services import fleet_aggregator
from routezy.services.eco_score import get_eco_score, leaderboard
from routezy.services.emissions import (
    calculate_co2_from_fuel,
    calculate_co2_savings,
    calculate_ev_savings,
    estimate_fuel_from_distance,
    get_emission_factors,
)
from routezy.services.export_service import ExportService
from routezy.services.insights import build_report, generate_insights

router = APIRouter()

DATE_PATTERN = r"^\d{4}-\d{2}-\d{2}$"


@router.get("/summary", response_model=EmissionsSummary)
async def summary(
    start: str | None = Query(default=None, pattern=DATE_PATTERN),
    end: str | None = Query(default=None, pattern=DATE_PATTERN),
    db: AsyncSession = Depends(get_db),
    user: User = Depends(require_staff),
):
    """Synthese des emissions / Emissions summary."""
    return await fleet_aggregator.load_summary(db, start, end)


@router.get("/by-vehicle", response_model=list[VehicleEmission])
async def by_vehicle(
    db: AsyncSession = Depends(get_db),
    user: User = Depends(require_staff),
):
    return await fleet_aggregator.load_by_vehicle(db)


@router.get("/by-fuel-type", response_model=list[FuelTypeEmission])
async def by_fuel_type(
    db: AsyncSession = Depends(get_db),
    user: User = Depends(require_staff),
):
    return await fleet_aggregator.load_by_fuel_type(db)


@router.get("/trend", response_model=list[PeriodEmission])
async def trend(
    months: int = Query(default=6, ge=1, le=24),
    db: AsyncSession = Depends(get_db),
    user: User = Depends(require_staff),
):
    """Tendance des N derniers mois / Last N months trend."""
    return await fleet_aggregator.load_trend(db, months)


@router.get("/leaderboard", response_model=list[LeaderboardEntry])
async def get_leaderboard(
    limit: int = Query(default=10, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """Classement eco-score / Eco-score leaderboard."""
    return await leaderboard(db, limit)


@router.get("/drivers/{driver_id}", response_model=EcoScoreRead)
async def driver_score(
    driver_id: int,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """Eco-score d'un chauffeur (le sien ou vue manager) / A driver's eco score (own, or staff view)."""
    if driver_id != user.id and not is_staff(user):
        raise HTTPException(status_code=403, detail="Not allowed to view this driver")
    score = await get_eco_score(db, driver_id)
    if score is None:
        raise HTTPException(status_code=404, detail="No eco score yet for this driver")
    return score


async def _insights(db: AsyncSession) -> tuple[EmissionsSummary, list[VehicleEmission], list[EmissionInsight]]:
    summary_ = await fleet_aggregator.load_summary(db)
    vehicles = await fleet_aggregator.load_by_vehicle(db)
    ranking = await leaderboard(db, 5)
    return summary_, vehicles, generate_insights(summary_, vehicles, ranking)


@router.get("/insights", response_model=list[EmissionInsight])
async def insights(
    db: AsyncSession = Depends(get_db),
    user: User = Depends(require_staff),
):
    """Conseils generes / Generated advisories."""
    _, _, result = await _insights(db)
    return result


async def _report(db: AsyncSession, start: str | None, end: str | None) -> EmissionReport:
    summary_ = await fleet_aggregator.load_summary(db, start, end)
    vehicles = await fleet_aggregator.load_by_vehicle(db)
    ranking = await leaderboard(db, 5)
    return build_report(
        summary_,
        vehicles,
        await fleet_aggregator.load_by_fuel_type(db),
        await fleet_aggregator.load_trend(db),
        generate_insights(summary_, vehicles, ranking),
        start,
        end,
    )


@router.get("/report", response_model=EmissionReport)
async def report(
    start: str | None = Query(default=None, pattern=DATE_PATTERN),
    end: str | None = Query(default=None, pattern=DATE_PATTERN),
    db: AsyncSession = Depends(get_db),
    user: User = Depends(require_staff),
):
    """Rapport de conformite / Compliance report."""
    return await _report(db, start, end)


@router.get("/report/export")
async def export_report(
    format: str = Query("csv", pattern="^(csv|xlsx)$"),
    start: str | None = Query(default=None, pattern=DATE_PATTERN),
    end: str | None = Query(default=None, pattern=DATE_PATTERN),
    db: AsyncSession = Depends(get_db),
    user: User = Depends(require_staff),
):
    """Exporter le rapport en CSV ou XLSX / Export the report to CSV or XLSX."""
    data = await _report(db, start, end)
    stamp = date.today().isoformat()

    if format == "csv":
        content = ExportService.report_to_csv(data)
        media_type = "text/csv; charset=utf-8"
        filename = f"emission-report-{stamp}.csv"
    else:
        content = ExportService.report_to_xlsx(data)
        media_type = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
        filename = f"emission-report-{stamp}.xlsx"

    return StreamingResponse(
        io.BytesIO(content),
        media_type=media_type,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


# ─── Facteurs / Factors ───

@router.get("/factors", response_model=list[EmissionFactorRead])
async def list_factors(
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    result = await db.execute(select(EmissionFactor).order_by(EmissionFactor.fuel_type))
    return result.scalars().all()


@router.put("/factors/{fuel_type}", response_model=EmissionFactorRead)
async def update_factor(
    fuel_type: str,
    data: EmissionFactorUpdate,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(require_staff),
):
    """Creer ou modifier un facteur / Create or update a factor."""
    key = fuel_type.upper()
    result = await db.execute(select(EmissionFactor).where(EmissionFactor.fuel_type == key))
    factor = result.scalar_one_or_none()
    if factor is None:
        factor = EmissionFactor(fuel_type=key, co2_kg_per_liter=data.co2_kg_per_liter)
        db.add(factor)
    for field, value in data.model_dump(exclude_unset=True).items():
        setattr(factor, field, value)
    await db.flush()
    audit(db, "emission_factor", factor.id, "UPDATE", {"fuel_type": key, **data.model_dump()}, user.email)
    return factor


@router.post("/calculate", response_model=CalculationResult)
async def calculate(
    data: CalculationRequest,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """Apercu calculateur CO2 / CO2 calculator preview."""
    if data.fuel_liters is None and data.distance_km is None:
        raise HTTPException(status_code=400, detail="fuel_liters or distance_km is required")

    estimated = data.fuel_liters is None
    liters = (
        estimate_fuel_from_distance(data.distance_km, data.vehicle_type)
        if estimated else data.fuel_liters
    )
    factors = await get_emission_factors(db)
    return CalculationResult(
        fuel_type=data.fuel_type.upper(),
        fuel_liters=liters,
        estimated=estimated,
        co2_kg=calculate_co2_from_fuel(liters, data.fuel_type, factors),
        co2_savings_kg=calculate_co2_savings(data.distance_km, data.fuel_type) if data.distance_km else None,
        ev_savings_kg=calculate_ev_savings(data.distance_km) if data.distance_km else None,
    )
