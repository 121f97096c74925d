"""Modele Tarification / Pricing configuration model.

Une seule ligne active par (vehicle_type, route_type) ; les anciennes sont conservees.
One active row per (vehicle_type, route_type); superseded rows are kept as history.
"""

import enum
from datetime import datetime

from sqlalchemy import Boolean, DateTime, Enum, Float, ForeignKey, String, func
from sqlalchemy.orm import Mapped, mapped_column

from routezy.database import Base
from routezy.models.fleet_vehicle import VehicleType


class RouteType(str, enum.Enum):
    """Type de trajet / Route type."""
    ECO = "eco"
    STANDARD = "standard"
    EXPRESS = "express"


class PricingConfig(Base):
    """Grille tarifaire / Pricing row."""
    __tablename__ = "pricing_config"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    vehicle_type: Mapped[VehicleType] = mapped_column(Enum(VehicleType), nullable=False)
    route_type: Mapped[RouteType] = mapped_column(Enum(RouteType), nullable=False, default=RouteType.STANDARD)
    cost_per_km: Mapped[float] = mapped_column(Float, nullable=False)
    base_fare: Mapped[float] = mapped_column(Float, nullable=False)
    min_weight: Mapped[float] = mapped_column(Float, default=0)
    max_weight: Mapped[float] = mapped_column(Float, default=1000)
    effective_from: Mapped[str] = mapped_column(String(10), nullable=False)  # YYYY-MM-DD
    effective_to: Mapped[str | None] = mapped_column(String(10))
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_by: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"))
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())

    def __repr__(self) -> str:
        return f"<PricingConfig {self.vehicle_type.value}/{self.route_type.value} {self.cost_per_km}/km>"
