"""Tests calcul CO2 et estimation carburant / CO2 calculator and fuel estimator tests."""

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from routezy.models.fleet_vehicle import VehicleType
from routezy.services.emissions import (
    EMISSION_FACTORS,
    calculate_co2_from_fuel,
    calculate_co2_savings,
    calculate_ev_savings,
    estimate_fuel_from_distance,
    get_emission_factors,
)


def test_zero_fuel_emits_nothing():
    for fuel_type in [*EMISSION_FACTORS, "UNKNOWN"]:
        assert calculate_co2_from_fuel(0, fuel_type) == 0


def test_diesel_factor():
    assert calculate_co2_from_fuel(10, "DIESEL") == 26.8


def test_fuel_type_is_case_insensitive():
    assert calculate_co2_from_fuel(10, "petrol") == 23.1


def test_unknown_fuel_falls_back_to_diesel():
    assert calculate_co2_from_fuel(10, "KEROSENE") == 26.8


def test_electric_is_zero():
    assert calculate_co2_from_fuel(40, "ELECTRIC") == 0


def test_custom_factor_table():
    assert calculate_co2_from_fuel(10, "DIESEL", {"DIESEL": 3.0}) == 30.0


def test_truck_consumption():
    assert estimate_fuel_from_distance(100, "TRUCK") == 15.0


def test_vehicle_classes():
    assert estimate_fuel_from_distance(100, VehicleType.BIKE) == 3
    assert estimate_fuel_from_distance(100, "three_wheeler") == 6
    assert estimate_fuel_from_distance(100, "MINI_TRUCK") == 10
    assert estimate_fuel_from_distance(100, "LARGE_TRUCK") == 25


def test_unknown_vehicle_uses_fallback_efficiency():
    assert estimate_fuel_from_distance(100, "HOVERCRAFT") == 12
    assert estimate_fuel_from_distance(100, "HOVERCRAFT", 20) == 20


def test_savings_helpers():
    # 100 km camion = 15 L diesel = 40.2 kg / 100 km truck = 15 L diesel = 40.2 kg
    assert calculate_ev_savings(100) == 40.2
    assert calculate_co2_savings(100, "DIESEL") == pytest.approx(12.06)


async def test_persisted_factors_override_defaults(db):
    factors = await get_emission_factors(db)
    assert factors["DIESEL"] == 2.68
    assert set(factors) == set(EMISSION_FACTORS)


async def test_empty_factor_table_falls_back(engine):
    factory = async_sessionmaker(engine, class_=AsyncSession)
    async with factory() as session:
        assert await get_emission_factors(session) == EMISSION_FACTORS
