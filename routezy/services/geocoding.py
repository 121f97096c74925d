"""
Geocodage Nominatim / Nominatim geocoding.
Au mieux : toute erreur donne une liste vide ou None.
Best effort: any failure yields an empty list or None.
"""

import logging

import httpx

from routezy.config import settings

logger = logging.getLogger(__name__)


class GeocodingClient:
    """Client autocompletion et geocodage inverse / Autocomplete and reverse geocoding client."""

    def __init__(self, base_url: str | None = None, transport: httpx.AsyncBaseTransport | None = None):
        self.base_url = (base_url or settings.GEOCODING_URL).rstrip("/")
        self.transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url,
            headers={"User-Agent": settings.GEOCODING_USER_AGENT},
            timeout=settings.GEOCODING_TIMEOUT_SECONDS,
            transport=self.transport,
        )

    async def search(self, query: str, limit: int = 5) -> list[dict]:
        """Suggestions d'adresses / Address suggestions."""
        if len(query.strip()) < 3:
            return []
        params = {
            "format": "json",
            "countrycodes": settings.GEOCODING_COUNTRY_CODE,
            "q": query,
            "addressdetails": 1,
            "limit": limit,
        }
        try:
            async with self._client() as client:
                response = await client.get("/search", params=params)
            response.raise_for_status()
            rows = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning("Geocoding search failed for %r: %s", query, exc)
            return []

        return [
            {
                "display_name": row.get("display_name", ""),
                "lat": float(row["lat"]),
                "lng": float(row["lon"]),
                "city": _city(row.get("address") or {}),
                "pincode": (row.get("address") or {}).get("postcode"),
            }
            for row in rows
            if "lat" in row and "lon" in row
        ]

    async def reverse(self, lat: float, lng: float) -> dict | None:
        """Adresse d'un point / Address of a point."""
        params = {"format": "json", "lat": lat, "lon": lng, "addressdetails": 1}
        try:
            async with self._client() as client:
                response = await client.get("/reverse", params=params)
            response.raise_for_status()
            row = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning("Reverse geocoding failed for %s,%s: %s", lat, lng, exc)
            return None

        if not row or "display_name" not in row:
            return None
        address = row.get("address") or {}
        return {
            "display_name": row["display_name"],
            "lat": lat,
            "lng": lng,
            "city": _city(address),
            "pincode": address.get("postcode"),
        }


def _city(address: dict) -> str | None:
    return address.get("city") or address.get("town") or address.get("village") or address.get("state_district")


def get_geocoding_client() -> GeocodingClient:
    """Dependance FastAPI / FastAPI dependency."""
    return GeocodingClient()
