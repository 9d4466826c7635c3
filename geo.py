# geo.py
import math
from typing import Dict, Optional, Tuple

EARTH_RADIUS_MILES = 3958.8

# (city, state) -> (longitude, latitude); keys are lower-case
GEO_CACHE: Dict[Tuple[str, str], Tuple[float, float]] = {
    ("toms river", "nj"): (-74.1979, 39.9537),
    ("atlantic city", "nj"): (-74.4229, 39.3643),
    ("newark", "nj"): (-74.1724, 40.7357),
    ("jersey city", "nj"): (-74.074, 40.7282),
    ("trenton", "nj"): (-74.7439, 40.2171),
    ("camden", "nj"): (-75.1196, 39.9259),
    ("cherry hill", "nj"): (-75.0379, 39.9268),
    ("philadelphia", "pa"): (-75.1652, 39.9526),
    ("king of prussia", "pa"): (-75.3899, 40.1013),
    ("wilmington", "de"): (-75.5467, 39.7447),
}


def resolve_coordinates(city: Optional[str], state: Optional[str]) -> Optional[Tuple[float, float]]:
    """Return (longitude, latitude) for a known city/state pair, else None."""
    if not city or not state:
        return None
    return GEO_CACHE.get((city.strip().lower(), state.strip().lower()))


def haversine_miles(lng1: float, lat1: float, lng2: float, lat2: float) -> float:
    """Great-circle distance between two points in miles."""
    dlat = math.radians(lat2 - lat1)
    dlng = math.radians(lng2 - lng1)
    a = (
        math.sin(dlat / 2) ** 2
        + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(dlng / 2) ** 2
    )
    return EARTH_RADIUS_MILES * 2 * math.asin(math.sqrt(a))
