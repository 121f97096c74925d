"""
Generateur d'insights emissions / Emission insight generator.
Regles evaluees dans un ordre fixe, independamment les unes des autres.
Rules are evaluated in a fixed order, independently of one another.
"""

from datetime import datetime, timezone

from routezy.config import settings
from routezy.schemas.emissions import (
    EmissionInsight,
    EmissionReport,
    EmissionsSummary,
    FuelTypeEmission,
    LeaderboardEntry,
    PeriodEmission,
    ReportPeriod,
    VehicleEmission,
)

HIGH_EMISSION_CO2_PER_KM = 0.35
ROUTE_OPTIMIZATION_SHARE = 0.15
TREND_IMPROVEMENT = -5
TREND_INCREASE = 10

AT_RISK_CO2_PER_KM = 0.3
NON_COMPLIANT_CO2_PER_KM = 0.4


def generate_insights(
    summary: EmissionsSummary,
    vehicles: list[VehicleEmission],
    leaderboard: list[LeaderboardEntry],
) -> list[EmissionInsight]:
    """Produire les conseils / Produce advisories."""
    insights: list[EmissionInsight] = []

    high = [v for v in vehicles if v.avg_co2_per_km > HIGH_EMISSION_CO2_PER_KM and not v.is_ev]
    if high:
        names = ", ".join(v.vehicle_number for v in high[:3])
        insights.append(EmissionInsight(
            id="high-emission-vehicles",
            type="warning",
            title=f"{len(high)} vehicles have high emissions",
            description=(
                f"Vehicles {names} are emitting above average CO2. "
                "Consider maintenance or route optimization."
            ),
            potential_savings=sum(
                (v.avg_co2_per_km - settings.DEFAULT_CO2_PER_KM) * 1000 for v in high
            ),
            icon="AlertTriangle",
        ))

    diesel = [v for v in vehicles if v.fuel_type.upper() == "DIESEL"]
    if diesel and summary.ev_savings > 0:
        insights.append(EmissionInsight(
            id="ev-opportunity",
            type="suggestion",
            title="EV fleet transition opportunity",
            description=(
                f"Switching {len(diesel)} diesel vehicles to electric could save "
                f"{summary.ev_savings:.0f} kg CO2. Consider EV alternatives for short-distance routes."
            ),
            potential_savings=summary.ev_savings,
            icon="Zap",
        ))

    if summary.total_distance_km > 0:
        savings = summary.total_co2_emitted * ROUTE_OPTIMIZATION_SHARE
        insights.append(EmissionInsight(
            id="route-optimization",
            type="suggestion",
            title="Route optimization can reduce emissions",
            description=(
                f"Optimizing delivery routes could reduce emissions by up to "
                f"{savings:.0f} kg CO2 (15% reduction)."
            ),
            potential_savings=savings,
            icon="Route",
        ))

    if leaderboard:
        top = leaderboard[0]
        insights.append(EmissionInsight(
            id="top-driver",
            type="achievement",
            title=f"{top.driver_name} is your eco champion!",
            description=(
                f"With an eco-score of {top.overall_eco_score:.0f}/100, "
                "they're setting the standard for sustainable driving."
            ),
            icon="Trophy",
        ))

    if summary.monthly_trend < TREND_IMPROVEMENT:
        insights.append(EmissionInsight(
            id="monthly-improvement",
            type="achievement",
            title=f"Emissions down {abs(summary.monthly_trend)}% this month!",
            description=(
                "Great progress on reducing your fleet's carbon footprint. "
                "Keep up the sustainable practices!"
            ),
            icon="TrendingDown",
        ))
    elif summary.monthly_trend > TREND_INCREASE:
        insights.append(EmissionInsight(
            id="monthly-increase",
            type="warning",
            title=f"Emissions increased {summary.monthly_trend}% this month",
            description=(
                "Consider reviewing driver behavior, route efficiency, "
                "and vehicle maintenance to reduce emissions."
            ),
            icon="TrendingUp",
        ))

    return insights


def compliance_status(co2_per_km: float) -> str:
    if co2_per_km > NON_COMPLIANT_CO2_PER_KM:
        return "non-compliant"
    if co2_per_km > AT_RISK_CO2_PER_KM:
        return "at-risk"
    return "compliant"


def recommendations(summary: EmissionsSummary, vehicles: list[VehicleEmission]) -> list[str]:
    result = []
    if summary.co2_per_km > AT_RISK_CO2_PER_KM:
        result.append("Review and optimize delivery routes to reduce fuel consumption")
    if any(v.avg_co2_per_km > NON_COMPLIANT_CO2_PER_KM for v in vehicles):
        result.append("Schedule maintenance for high-emission vehicles")
    if not any(v.is_ev for v in vehicles):
        result.append("Consider adding electric vehicles to your fleet for short-distance routes")
    result.append("Implement driver training programs focused on eco-driving techniques")
    result.append("Set monthly emission reduction targets and track progress")
    return result


def build_report(
    summary: EmissionsSummary,
    vehicles: list[VehicleEmission],
    fuel_types: list[FuelTypeEmission],
    trend: list[PeriodEmission],
    insights: list[EmissionInsight],
    start: str | None = None,
    end: str | None = None,
) -> EmissionReport:
    """Rapport de conformite / Compliance report."""
    return EmissionReport(
        report_date=datetime.now(timezone.utc).isoformat(timespec="seconds"),
        report_period=ReportPeriod(start=start, end=end),
        summary=summary,
        by_vehicle=vehicles,
        by_fuel_type=fuel_types,
        monthly_trend=trend,
        insights=insights,
        compliance_status=compliance_status(summary.co2_per_km),
        recommendations=recommendations(summary, vehicles),
    )
