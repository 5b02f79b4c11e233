"""
Small helpers shared by the store, classifier and HTTP layer.
"""
import math
import random
import re
import string
import time
from typing import Any, Dict, Optional

EARTH_RADIUS_METERS = 6371e3

_BASE36 = string.digits + string.ascii_lowercase


def normalize_text(text: str) -> str:
    """Standardize text for consistent comparison."""
    if not text:
        return ''
    return text.strip().lower()


def normalize_email(email: str) -> str:
    return normalize_text(email)


def validate_email(email: str) -> bool:
    if not email or not isinstance(email, str):
        return False
    return re.match(r'^[\w\.+-]+@[\w\.-]+\.\w+$', email.strip()) is not None


def parse_coordinate(value) -> Optional[float]:
    """Parse a value to float, return None if invalid."""
    if isinstance(value, bool):
        return None
    try:
        result = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(result) or math.isinf(result):
        return None
    return result


def validate_coordinates(lat: float, lng: float) -> bool:
    """Check that a coordinate pair lies on the globe."""
    return -90.0 <= lat <= 90.0 and -180.0 <= lng <= 180.0


def parse_location(value: Any) -> Optional[Dict[str, float]]:
    """
    Parse a {lat, lng} mapping.

    Returns None when no location was given and raises ValueError when
    one was given but is malformed or out of range.
    """
    if value is None:
        return None
    if not isinstance(value, dict):
        raise ValueError('location must be an object with lat and lng')

    lat = parse_coordinate(value.get('lat'))
    lng = parse_coordinate(value.get('lng'))
    if lat is None or lng is None or not validate_coordinates(lat, lng):
        raise ValueError('location has invalid coordinates')
    return {'lat': lat, 'lng': lng}


def haversine_meters(a: Dict[str, float], b: Dict[str, float]) -> float:
    """Great-circle distance in meters between two {lat, lng} points."""
    phi1 = math.radians(a['lat'])
    phi2 = math.radians(b['lat'])
    d_phi = math.radians(b['lat'] - a['lat'])
    d_lambda = math.radians(b['lng'] - a['lng'])

    s = (math.sin(d_phi / 2) ** 2
         + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2)
    c = 2 * math.atan2(math.sqrt(s), math.sqrt(1 - s))
    return EARTH_RADIUS_METERS * c


def now_ms() -> int:
    return int(time.time() * 1000)


def _to_base36(number: int) -> str:
    if number == 0:
        return '0'
    digits = []
    while number:
        number, rem = divmod(number, 36)
        digits.append(_BASE36[rem])
    return ''.join(reversed(digits))


def new_id() -> str:
    """Random base36 chunk followed by the current time in base36."""
    return _to_base36(random.getrandbits(52)) + _to_base36(now_ms())
