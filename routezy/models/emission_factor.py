"""Modèle Facteur d'émission / Emission factor model."""

from sqlalchemy import Float, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from routezy.database import Base


class EmissionFactor(Base):
    """kg CO2 par litre pour un carburant / kg CO2 per liter for a fuel type."""
    __tablename__ = "emission_factors"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    fuel_type: Mapped[str] = mapped_column(String(20), unique=True, nullable=False)
    co2_kg_per_liter: Mapped[float] = mapped_column(Float, nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    source: Mapped[str | None] = mapped_column(String(100), default="IPCC Guidelines")

    def __repr__(self) -> str:
        return f"<EmissionFactor {self.fuel_type} = {self.co2_kg_per_liter}>"
