"""Modele Vehicule de flotte / Fleet vehicle model.

Entite physique du parc, avec cumul d'emissions et chauffeur affecte.
Physical fleet entity, with accumulated emission totals and assigned driver.
"""

import enum
from datetime import datetime

from sqlalchemy import Boolean, DateTime, Enum, Float, ForeignKey, Integer, String, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from routezy.database import Base


class VehicleType(str, enum.Enum):
    """Type de vehicule / Vehicle class."""
    BIKE = "BIKE"
    THREE_WHEELER = "THREE_WHEELER"
    MINI_TRUCK = "MINI_TRUCK"
    TRUCK = "TRUCK"
    LARGE_TRUCK = "LARGE_TRUCK"


class FuelType(str, enum.Enum):
    """Type de carburant / Fuel type."""
    DIESEL = "DIESEL"
    PETROL = "PETROL"
    CNG = "CNG"
    LPG = "LPG"
    ELECTRIC = "ELECTRIC"
    HYBRID = "HYBRID"


class FleetVehicle(Base):
    """Vehicule du parc / Fleet vehicle."""
    __tablename__ = "fleet_vehicles"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)

    # --- Identification ---
    vehicle_number: Mapped[str] = mapped_column(String(20), unique=True, nullable=False)
    vehicle_type: Mapped[VehicleType] = mapped_column(
        Enum(VehicleType), nullable=False, default=VehicleType.MINI_TRUCK
    )
    make: Mapped[str | None] = mapped_column(String(50))
    model: Mapped[str | None] = mapped_column(String(50))
    year: Mapped[int | None] = mapped_column(Integer)
    fuel_type: Mapped[str] = mapped_column(String(20), default=FuelType.PETROL.value)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    # --- Affectation / Assignment ---
    current_driver_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"))

    # --- Entretien / Maintenance ---
    last_maintenance_date: Mapped[str | None] = mapped_column(String(10))  # YYYY-MM-DD
    next_maintenance_date: Mapped[str | None] = mapped_column(String(10))

    # --- Kilometrage et emissions / Mileage and emissions ---
    total_km_driven: Mapped[float] = mapped_column(Float, default=0)
    fuel_efficiency_lpk: Mapped[float] = mapped_column(Float, default=12)  # L/100km
    avg_co2_per_km: Mapped[float] = mapped_column(Float, default=0.25)
    lifetime_co2_kg: Mapped[float] = mapped_column(Float, default=0)

    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now(), onupdate=func.now())

    # --- Relations ---
    current_driver: Mapped["User | None"] = relationship()
    fuel_entries: Mapped[list["FuelEntry"]] = relationship(
        back_populates="vehicle", cascade="all, delete-orphan"
    )

    @property
    def is_ev(self) -> bool:
        return (self.fuel_type or "").upper() == FuelType.ELECTRIC.value

    def __repr__(self) -> str:
        return f"<FleetVehicle {self.vehicle_number} - {self.vehicle_type.value}>"
