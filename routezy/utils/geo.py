"""Utilitaires géographiques / Geographic utilities."""

import math

# Facteur route / vol d'oiseau / Road-to-crow-flies factor
ROAD_FACTOR = 1.3


def haversine(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Distance Haversine en km / Haversine distance in km."""
    R = 6371.0
    dlat = math.radians(lat2 - lat1)
    dlon = math.radians(lon2 - lon1)
    a = math.sin(dlat / 2) ** 2 + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(dlon / 2) ** 2
    return R * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def road_distance_km(lat1: float | None, lon1: float | None, lat2: float | None, lon2: float | None) -> float | None:
    """Distance routiere estimee, None sans coordonnees / Estimated road distance, None without coordinates."""
    if None in (lat1, lon1, lat2, lon2):
        return None
    return round(haversine(lat1, lon1, lat2, lon2) * ROAD_FACTOR, 2)
