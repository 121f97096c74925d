"""Modele Service chauffeur / Driver shift (check-in / check-out) model."""

from datetime import datetime

from sqlalchemy import Boolean, DateTime, Float, ForeignKey, Index, func
from sqlalchemy.orm import Mapped, mapped_column

from routezy.database import Base


class DriverShift(Base):
    """Prise et fin de service / Check-in and check-out of a driver on a vehicle."""
    __tablename__ = "driver_shifts"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    driver_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    vehicle_id: Mapped[int | None] = mapped_column(ForeignKey("fleet_vehicles.id", ondelete="SET NULL"))

    checkin_odometer: Mapped[float] = mapped_column(Float, nullable=False)
    checkin_fuel_level: Mapped[float] = mapped_column(Float, nullable=False)  # 0-100 %
    checkout_odometer: Mapped[float | None] = mapped_column(Float)
    checkout_fuel_level: Mapped[float | None] = mapped_column(Float)

    checked_in_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())
    checked_out_at: Mapped[datetime | None] = mapped_column(DateTime)
    is_online: Mapped[bool] = mapped_column(Boolean, default=True)
    last_lat: Mapped[float | None] = mapped_column(Float)
    last_lng: Mapped[float | None] = mapped_column(Float)

    __table_args__ = (
        Index("ix_driver_shifts_driver", "driver_id"),
    )

    def __repr__(self) -> str:
        return f"<DriverShift driver={self.driver_id} online={self.is_online}>"
