"""Routes API / API routes."""

from fastapi import APIRouter

from routezy.api import (
    assistant,
    auth,
    damage_reports,
    driver,
    drivers,
    emissions,
    fleet,
    geocoding,
    payments,
    pricing,
    shipments,
)

api_router = APIRouter(prefix="/api")

api_router.include_router(auth.router, prefix="/auth", tags=["auth"])
api_router.include_router(drivers.router, prefix="/drivers", tags=["drivers"])
api_router.include_router(driver.router, prefix="/driver", tags=["driver"])
api_router.include_router(fleet.router, prefix="/fleet", tags=["fleet"])
api_router.include_router(emissions.router, prefix="/emissions", tags=["emissions"])
api_router.include_router(shipments.router, prefix="/shipments", tags=["shipments"])
api_router.include_router(pricing.router, prefix="/pricing", tags=["pricing"])
api_router.include_router(payments.router, prefix="/payments", tags=["payments"])
api_router.include_router(geocoding.router, prefix="/geocoding", tags=["geocoding"])
api_router.include_router(assistant.router, prefix="/assistant", tags=["assistant"])
api_router.include_router(damage_reports.router, prefix="/damage-reports", tags=["damage-reports"])
