"""Modele suivi carburant / Fuel tracking model."""

from datetime import datetime

from sqlalchemy import DateTime, Float, ForeignKey, Index, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from routezy.database import Base


class FuelEntry(Base):
    """Entree carburant ou trajet / Refuel or trip fuel entry.

    co2_emitted_kg est derive de fuel_type et fuel_liters a chaque ecriture.
    co2_emitted_kg is derived from fuel_type and fuel_liters on every write.
    """
    __tablename__ = "fuel_entries"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    vehicle_id: Mapped[int] = mapped_column(ForeignKey("fleet_vehicles.id", ondelete="CASCADE"), nullable=False)
    driver_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"))
    shipment_id: Mapped[int | None] = mapped_column(ForeignKey("shipments.id", ondelete="SET NULL"))
    fuel_type: Mapped[str] = mapped_column(String(20), nullable=False, default="DIESEL")
    fuel_liters: Mapped[float] = mapped_column(Float, nullable=False)
    fuel_cost: Mapped[float | None] = mapped_column(Float)
    odometer_reading: Mapped[float | None] = mapped_column(Float)
    trip_distance_km: Mapped[float | None] = mapped_column(Float)
    co2_emitted_kg: Mapped[float | None] = mapped_column(Float)
    entry_date: Mapped[str] = mapped_column(String(10), nullable=False)  # YYYY-MM-DD
    notes: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now(), onupdate=func.now())

    # Relations
    vehicle: Mapped["FleetVehicle"] = relationship(back_populates="fuel_entries")

    __table_args__ = (
        Index("ix_fuel_entries_entry_date", "entry_date"),
        Index("ix_fuel_entries_vehicle", "vehicle_id"),
    )

    def __repr__(self) -> str:
        return f"<FuelEntry {self.entry_date} - {self.fuel_liters}L - vehicle {self.vehicle_id}>"
