"""Modele Expedition / Shipment model.

Cycle de vie : PENDING -> CONFIRMED -> PICKUP_READY -> IN_TRANSIT -> DELIVERED (ou CANCELLED).
Lifecycle: PENDING -> CONFIRMED -> PICKUP_READY -> IN_TRANSIT -> DELIVERED (or CANCELLED).
"""

import enum
from datetime import datetime

from sqlalchemy import Boolean, DateTime, Enum, Float, ForeignKey, Index, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from routezy.database import Base
from routezy.models.fleet_vehicle import VehicleType


class ShipmentStatus(str, enum.Enum):
    """Statut d'expedition / Shipment status."""
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    PICKUP_READY = "PICKUP_READY"
    IN_TRANSIT = "IN_TRANSIT"
    DELIVERED = "DELIVERED"
    CANCELLED = "CANCELLED"


class PackageType(str, enum.Enum):
    """Type de colis / Package type."""
    DOCUMENTS = "DOCUMENTS"
    PARCEL = "PARCEL"
    FRAGILE = "FRAGILE"
    HEAVY = "HEAVY"
    PERISHABLE = "PERISHABLE"


class Shipment(Base):
    """Expedition / Shipment."""
    __tablename__ = "shipments"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    tracking_id: Mapped[str] = mapped_column(String(30), unique=True, nullable=False)
    sender_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"))

    # --- Enlevement / Pickup ---
    pickup_address: Mapped[str] = mapped_column(Text, nullable=False)
    pickup_city: Mapped[str | None] = mapped_column(String(100))
    pickup_pincode: Mapped[str | None] = mapped_column(String(10))
    pickup_date: Mapped[str | None] = mapped_column(String(10))  # YYYY-MM-DD
    pickup_time_slot: Mapped[str | None] = mapped_column(String(30))
    pickup_contact_name: Mapped[str | None] = mapped_column(String(150))
    pickup_contact_phone: Mapped[str | None] = mapped_column(String(30))
    pickup_lat: Mapped[float | None] = mapped_column(Float)
    pickup_lng: Mapped[float | None] = mapped_column(Float)

    # --- Livraison / Delivery ---
    delivery_address: Mapped[str] = mapped_column(Text, nullable=False)
    delivery_city: Mapped[str | None] = mapped_column(String(100))
    delivery_pincode: Mapped[str | None] = mapped_column(String(10))
    receiver_name: Mapped[str | None] = mapped_column(String(150))
    receiver_phone: Mapped[str | None] = mapped_column(String(30))
    delivery_lat: Mapped[float | None] = mapped_column(Float)
    delivery_lng: Mapped[float | None] = mapped_column(Float)

    # --- Colis / Package ---
    package_type: Mapped[PackageType] = mapped_column(Enum(PackageType), default=PackageType.PARCEL)
    weight_kg: Mapped[float | None] = mapped_column(Float)
    dimensions: Mapped[str | None] = mapped_column(String(50))
    is_fragile: Mapped[bool] = mapped_column(Boolean, default=False)
    description: Mapped[str | None] = mapped_column(Text)
    vehicle_type: Mapped[VehicleType | None] = mapped_column(Enum(VehicleType))

    # --- OTP ---
    pickup_otp: Mapped[str] = mapped_column(String(4), nullable=False)
    delivery_otp: Mapped[str] = mapped_column(String(4), nullable=False)

    # --- Affectation / Assignment ---
    status: Mapped[ShipmentStatus] = mapped_column(
        Enum(ShipmentStatus), nullable=False, default=ShipmentStatus.PENDING
    )
    driver_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"))
    vehicle_id: Mapped[int | None] = mapped_column(ForeignKey("fleet_vehicles.id", ondelete="SET NULL"))
    driver_lat: Mapped[float | None] = mapped_column(Float)
    driver_lng: Mapped[float | None] = mapped_column(Float)

    # --- Metriques / Metrics ---
    distance_km: Mapped[float | None] = mapped_column(Float)
    carbon_score: Mapped[float | None] = mapped_column(Float)
    estimated_cost: Mapped[float | None] = mapped_column(Float)
    final_cost: Mapped[float | None] = mapped_column(Float)
    proof_of_delivery_url: Mapped[str | None] = mapped_column(String(500))

    picked_up_at: Mapped[datetime | None] = mapped_column(DateTime)
    delivered_at: Mapped[datetime | None] = mapped_column(DateTime)
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        Index("ix_shipments_status", "status"),
        Index("ix_shipments_driver", "driver_id"),
    )

    def __repr__(self) -> str:
        return f"<Shipment {self.tracking_id} - {self.status.value}>"
