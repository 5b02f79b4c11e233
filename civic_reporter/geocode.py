"""
Reverse geocoding of report locations through the Nominatim API.
"""
import logging
import threading
import time

import requests

from civic_reporter import config

logger = logging.getLogger(__name__)

# Simple in-process rate limiter: Nominatim allows one request per second
_last_request_time = 0.0
_request_lock = threading.Lock()


class GeocodeRateLimited(Exception):
    """Upstream answered 429."""


class GeocodeUnavailable(Exception):
    """Upstream could not be reached."""


def _wait_for_slot():
    global _last_request_time
    with _request_lock:
        elapsed = time.time() - _last_request_time
        if elapsed < config.GEOCODER_MIN_INTERVAL:
            time.sleep(config.GEOCODER_MIN_INTERVAL - elapsed)
        _last_request_time = time.time()


def format_place(address: dict) -> str:
    """Build a 'suburb, city' label from a Nominatim address block."""
    suburb = (address.get('suburb') or address.get('neighbourhood') or address.get('locality')
              or address.get('village') or address.get('town') or address.get('city_district') or '')
    city = (address.get('city') or address.get('town') or address.get('village')
            or address.get('county') or address.get('state') or '')
    if suburb and city and suburb != city:
        return f'{suburb}, {city}'
    return suburb or city


def reverse_geocode(lat: float, lng: float) -> str:
    """
    Resolve a coordinate to a human readable place name.

    Returns '' when nothing useful comes back. Raises GeocodeRateLimited
    and GeocodeUnavailable so callers can report those to the client.
    """
    _wait_for_slot()

    params = {'format': 'json', 'lat': lat, 'lon': lng, 'zoom': 14, 'addressdetails': 1}
    headers = {'Accept-Language': 'en', 'User-Agent': config.GEOCODER_USER_AGENT}

    try:
        response = requests.get(config.GEOCODER_URL, params=params, headers=headers,
                                timeout=config.GEOCODER_TIMEOUT)
    except requests.exceptions.Timeout:
        logger.warning(f"Timeout reverse geocoding lat={lat}, lng={lng}")
        return ''
    except requests.exceptions.ConnectionError as e:
        logger.warning(f"Connection error reverse geocoding: {str(e)[:100]}")
        raise GeocodeUnavailable(str(e)) from e
    except requests.exceptions.RequestException as e:
        logger.warning(f"Request error reverse geocoding: {str(e)[:100]}")
        return ''

    if response.status_code == 429:
        logger.warning("Rate limited by Nominatim API")
        raise GeocodeRateLimited()

    if not response.ok:
        logger.warning(f"Nominatim returned HTTP {response.status_code}")
        return ''

    try:
        data = response.json()
    except ValueError:
        logger.warning("Nominatim returned a non-JSON body")
        return ''

    if data and isinstance(data, dict) and data.get('address'):
        return format_place(data['address'])
    return ''
