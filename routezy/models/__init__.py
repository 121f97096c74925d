"""
Modèles SQLAlchemy / SQLAlchemy models.
Importer tous les modèles ici pour que create_all les détecte.
Import all models here so create_all registers them.
"""

from routezy.models.user import AppRole, Profile, User, UserRole
from routezy.models.driver_request import DriverRequest, DriverRequestStatus
from routezy.models.fleet_vehicle import FleetVehicle, FuelType, VehicleType
from routezy.models.fuel_entry import FuelEntry
from routezy.models.emission_factor import EmissionFactor
from routezy.models.driver_eco_score import DriverEcoScore
from routezy.models.shipment import PackageType, Shipment, ShipmentStatus
from routezy.models.invoice import Invoice
from routezy.models.pricing import PricingConfig, RouteType
from routezy.models.damage_report import DamageReport
from routezy.models.driver_shift import DriverShift
from routezy.models.audit import AuditLog

__all__ = [
    "AppRole",
    "Profile",
    "User",
    "UserRole",
    "DriverRequest",
    "DriverRequestStatus",
    "FleetVehicle",
    "FuelType",
    "VehicleType",
    "FuelEntry",
    "EmissionFactor",
    "DriverEcoScore",
    "PackageType",
    "Shipment",
    "ShipmentStatus",
    "Invoice",
    "PricingConfig",
    "RouteType",
    "DamageReport",
    "DriverShift",
    "AuditLog",
]
