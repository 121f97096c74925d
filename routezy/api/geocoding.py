"""Routes geocodage / Geocoding routes."""

from fastapi import APIRouter, Depends, Query

from routezy.api.deps import get_current_user
from routezy.models.user import User
from routezy.schemas.assistant import AddressSuggestion
from routezy.services.geocoding import GeocodingClient, get_geocoding_client

router = APIRouter()


@router.get("/search", response_model=list[AddressSuggestion])
async def search(
    q: str = Query(default="", max_length=200),
    limit: int = Query(default=5, ge=1, le=10),
    user: User = Depends(get_current_user),
    client: GeocodingClient = Depends(get_geocoding_client),
):
    """Autocompletion d'adresse, liste vide en cas d'echec / Address autocomplete, empty list on failure."""
    return await client.search(q, limit)


@router.get("/reverse", response_model=AddressSuggestion | None)
async def reverse(
    lat: float = Query(ge=-90, le=90),
    lng: float = Query(ge=-180, le=180),
    user: User = Depends(get_current_user),
    client: GeocodingClient = Depends(get_geocoding_client),
):
    """Adresse d'un point ou null / Address of a point, or null."""
    return await client.reverse(lat, lng)
