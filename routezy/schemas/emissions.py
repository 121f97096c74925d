"""Schemas emissions et eco-score / Emissions and eco-score schemas."""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field


# --- Agregats flotte / Fleet aggregates ---

class EmissionsSummary(BaseModel):
    total_co2_emitted: float = 0
    total_co2_saved: float = 0
    co2_per_km: float = 0
    total_distance_km: float = 0
    total_fuel_liters: float = 0
    total_trips: int = 0
    monthly_trend: int = 0  # %
    ev_savings: float = 0


class VehicleEmission(BaseModel):
    vehicle_id: int
    vehicle_number: str
    vehicle_type: str
    fuel_type: str
    total_co2: float
    avg_co2_per_km: float
    is_ev: bool


class FuelTypeEmission(BaseModel):
    fuel_type: str
    total_co2: float
    percentage: int


class PeriodEmission(BaseModel):
    period: str  # ex. "Jan 26"
    total_co2: float
    total_distance: float
    avg_efficiency: float  # L/100km


# --- Eco-score ---

class EcoScoreRead(BaseModel):
    driver_id: int
    fuel_efficiency_score: float
    idling_score: float
    acceleration_score: float
    braking_score: float
    overall_eco_score: float
    total_deliveries: int
    total_distance_km: float
    total_fuel_liters: float
    total_co2_emitted_kg: float
    avg_fuel_efficiency: float
    monthly_deliveries: int
    monthly_distance_km: float
    monthly_fuel_liters: float
    monthly_co2_emitted_kg: float
    eco_rank: str
    badges: list[str] = []
    updated_at: datetime | None = None

    model_config = {"from_attributes": True}


class LeaderboardEntry(EcoScoreRead):
    rank: int
    driver_name: str


# --- Insights et rapport / Insights and report ---

class EmissionInsight(BaseModel):
    id: str
    type: Literal["warning", "suggestion", "achievement"]
    title: str
    description: str
    potential_savings: float | None = None
    icon: str


class ReportPeriod(BaseModel):
    start: str | None = None
    end: str | None = None


class EmissionReport(BaseModel):
    report_date: str
    report_period: ReportPeriod
    summary: EmissionsSummary
    by_vehicle: list[VehicleEmission]
    by_fuel_type: list[FuelTypeEmission]
    monthly_trend: list[PeriodEmission]
    insights: list[EmissionInsight]
    compliance_status: Literal["compliant", "at-risk", "non-compliant"]
    recommendations: list[str]


# --- Facteurs et calculateur / Factors and calculator ---

class EmissionFactorRead(BaseModel):
    id: int
    fuel_type: str
    co2_kg_per_liter: float
    description: str | None = None
    source: str | None = None

    model_config = {"from_attributes": True}


class EmissionFactorUpdate(BaseModel):
    co2_kg_per_liter: float = Field(ge=0)
    description: str | None = None
    source: str | None = None


class CalculationRequest(BaseModel):
    """Apercu calculateur / Calculator preview.

    Si fuel_liters est absent, estimation depuis distance_km et vehicle_type.
    When fuel_liters is missing, fuel is estimated from distance_km and vehicle_type.
    """
    fuel_type: str = "DIESEL"
    fuel_liters: float | None = Field(default=None, ge=0)
    distance_km: float | None = Field(default=None, ge=0)
    vehicle_type: str = "TRUCK"


class CalculationResult(BaseModel):
    fuel_type: str
    fuel_liters: float
    estimated: bool
    co2_kg: float
    co2_savings_kg: float | None = None
    ev_savings_kg: float | None = None
