"""Modele Eco-score chauffeur / Driver eco-score model."""

from datetime import datetime

from sqlalchemy import JSON, DateTime, Float, ForeignKey, Integer, String, func
from sqlalchemy.orm import Mapped, mapped_column

from routezy.database import Base


class DriverEcoScore(Base):
    """Agregat cumulatif par chauffeur / Accumulating per-driver aggregate.

    Une ligne par chauffeur, creee a la premiere livraison.
    One row per driver, created on the first completed delivery.
    `version` sert au controle de concurrence optimiste / drives optimistic locking.
    """
    __tablename__ = "driver_eco_scores"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    driver_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False
    )

    # --- Scores (0-100) ---
    fuel_efficiency_score: Mapped[float] = mapped_column(Float, default=50)
    idling_score: Mapped[float] = mapped_column(Float, default=50)
    acceleration_score: Mapped[float] = mapped_column(Float, default=50)
    braking_score: Mapped[float] = mapped_column(Float, default=50)
    overall_eco_score: Mapped[float] = mapped_column(Float, default=50)

    # --- Cumuls / Lifetime totals ---
    total_deliveries: Mapped[int] = mapped_column(Integer, default=0)
    total_distance_km: Mapped[float] = mapped_column(Float, default=0)
    total_fuel_liters: Mapped[float] = mapped_column(Float, default=0)
    total_co2_emitted_kg: Mapped[float] = mapped_column(Float, default=0)
    avg_fuel_efficiency: Mapped[float] = mapped_column(Float, default=0)  # L/100km

    # --- Compteurs mensuels (remis a zero en externe) / Monthly counters (reset externally) ---
    monthly_deliveries: Mapped[int] = mapped_column(Integer, default=0)
    monthly_distance_km: Mapped[float] = mapped_column(Float, default=0)
    monthly_fuel_liters: Mapped[float] = mapped_column(Float, default=0)
    monthly_co2_emitted_kg: Mapped[float] = mapped_column(Float, default=0)

    eco_rank: Mapped[str] = mapped_column(String(30), default="Beginner")
    badges: Mapped[list[str]] = mapped_column(JSON, default=list)

    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now(), onupdate=func.now())

    __mapper_args__ = {"version_id_col": version}

    def __repr__(self) -> str:
        return f"<DriverEcoScore driver={self.driver_id} overall={self.overall_eco_score}>"
