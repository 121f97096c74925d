"""Tests insights et rapport / Insights and report tests."""

import pytest

from routezy.schemas.emissions import EmissionsSummary, LeaderboardEntry, VehicleEmission
from routezy.services.insights import (
    build_report,
    compliance_status,
    generate_insights,
    recommendations,
)


def vehicle(number="KA01", fuel_type="DIESEL", avg=0.25, is_ev=False) -> VehicleEmission:
    return VehicleEmission(
        vehicle_id=1,
        vehicle_number=number,
        vehicle_type="TRUCK",
        fuel_type=fuel_type,
        total_co2=100,
        avg_co2_per_km=avg,
        is_ev=is_ev,
    )


def champion(name="Divya Driver", score=82.0) -> LeaderboardEntry:
    return LeaderboardEntry(
        driver_id=1,
        fuel_efficiency_score=80,
        idling_score=80,
        acceleration_score=80,
        braking_score=80,
        overall_eco_score=score,
        total_deliveries=10,
        total_distance_km=500,
        total_fuel_liters=50,
        total_co2_emitted_kg=134,
        avg_fuel_efficiency=10,
        monthly_deliveries=3,
        monthly_distance_km=150,
        monthly_fuel_liters=15,
        monthly_co2_emitted_kg=40.2,
        eco_rank="Green Driver",
        badges=[],
        rank=1,
        driver_name=name,
    )


def test_no_data_no_insights():
    assert generate_insights(EmissionsSummary(), [], []) == []


def test_rules_fire_in_fixed_order():
    summary = EmissionsSummary(
        total_co2_emitted=1000, total_distance_km=2000, ev_savings=804, monthly_trend=-12,
    )
    vehicles = [vehicle("KA01", avg=0.5), vehicle("KA02", avg=0.2)]
    insights = generate_insights(summary, vehicles, [champion()])
    assert [i.id for i in insights] == [
        "high-emission-vehicles",
        "ev-opportunity",
        "route-optimization",
        "top-driver",
        "monthly-improvement",
    ]
    high = insights[0]
    assert high.type == "warning"
    assert high.title == "1 vehicles have high emissions"
    assert high.potential_savings == pytest.approx(250)
    assert insights[2].potential_savings == 150
    assert insights[3].title == "Divya Driver is your eco champion!"
    assert insights[4].title == "Emissions down 12% this month!"


def test_electric_vehicles_never_flagged():
    insights = generate_insights(
        EmissionsSummary(ev_savings=40),
        [vehicle("EV01", fuel_type="ELECTRIC", avg=0.9, is_ev=True)],
        [],
    )
    assert insights == []


def test_ev_opportunity_needs_diesel_vehicles():
    summary = EmissionsSummary(ev_savings=40)
    assert generate_insights(summary, [vehicle(fuel_type="CNG")], []) == []
    ids = [i.id for i in generate_insights(summary, [vehicle(fuel_type="diesel")], [])]
    assert ids == ["ev-opportunity"]


@pytest.mark.parametrize("trend,expected", [
    (-6, ["monthly-improvement"]),
    (-5, []),
    (10, []),
    (11, ["monthly-increase"]),
])
def test_trend_thresholds(trend, expected):
    ids = [i.id for i in generate_insights(EmissionsSummary(monthly_trend=trend), [], [])]
    assert ids == expected


@pytest.mark.parametrize("co2_per_km,status", [
    (0.2, "compliant"),
    (0.3, "compliant"),
    (0.31, "at-risk"),
    (0.4, "at-risk"),
    (0.41, "non-compliant"),
])
def test_compliance_status(co2_per_km, status):
    assert compliance_status(co2_per_km) == status


def test_recommendations_for_polluting_fleet():
    result = recommendations(EmissionsSummary(co2_per_km=0.45), [vehicle(avg=0.5)])
    assert result == [
        "Review and optimize delivery routes to reduce fuel consumption",
        "Schedule maintenance for high-emission vehicles",
        "Consider adding electric vehicles to your fleet for short-distance routes",
        "Implement driver training programs focused on eco-driving techniques",
        "Set monthly emission reduction targets and track progress",
    ]


def test_recommendations_for_clean_fleet():
    result = recommendations(EmissionsSummary(co2_per_km=0.1), [vehicle(fuel_type="ELECTRIC", avg=0, is_ev=True)])
    assert len(result) == 2


def test_build_report():
    summary = EmissionsSummary(co2_per_km=0.35)
    report = build_report(summary, [], [], [], [], start="2026-01-01", end="2026-01-31")
    assert report.compliance_status == "at-risk"
    assert report.report_period.start == "2026-01-01"
    assert report.recommendations[0].startswith("Review")
