"""Modele Rapport de dommage / Vehicle damage report model."""

from datetime import datetime

from sqlalchemy import Boolean, DateTime, Float, ForeignKey, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from routezy.database import Base


class DamageReport(Base):
    """Dommage declare par un chauffeur / Damage reported by a driver."""
    __tablename__ = "damage_reports"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    vehicle_id: Mapped[int | None] = mapped_column(ForeignKey("fleet_vehicles.id", ondelete="SET NULL"))
    driver_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"))
    vehicle_number: Mapped[str | None] = mapped_column(String(20))
    damage_description: Mapped[str] = mapped_column(Text, nullable=False)
    damage_severity: Mapped[str] = mapped_column(String(20), default="minor")  # minor / moderate / severe
    damage_date: Mapped[str] = mapped_column(String(10), nullable=False)  # YYYY-MM-DD
    location: Mapped[str | None] = mapped_column(String(255))

    # --- Traitement manager / Manager follow-up ---
    is_resolved: Mapped[bool] = mapped_column(Boolean, default=False)
    resolved_at: Mapped[datetime | None] = mapped_column(DateTime)
    resolved_by: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"))
    repair_cost: Mapped[float | None] = mapped_column(Float)
    manager_notes: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())

    def __repr__(self) -> str:
        return f"<DamageReport {self.id} - {self.damage_severity}>"
