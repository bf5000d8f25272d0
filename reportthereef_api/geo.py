"""Great-circle distance and coordinate validation."""
import math
from numbers import Real

from .errors import InvalidInput

EARTH_RADIUS_KM = 6371.0


def distance_km(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Haversine distance in kilometres between two WGS84 points."""
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lng2 - lng1)

    a = math.sin(d_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    # Rounding can push a a hair above 1 for antipodal points
    a = min(1.0, max(0.0, a))
    return 2 * EARTH_RADIUS_KM * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def require_coordinates(lat, lng, label: str = 'GPS coordinates') -> None:
    """Reject anything that is not a finite real number. Nothing is coerced."""
    for value in (lat, lng):
        if isinstance(value, bool) or not isinstance(value, Real) or not math.isfinite(value):
            raise InvalidInput(f'{label} are required')
    if not (-90 <= lat <= 90 and -180 <= lng <= 180):
        raise InvalidInput(f'{label} are out of range')
