"""
Geographic math utilities.

Pure functions: distance, bearing, interpolation and display formatting.
haversine_distance() is the single distance function used by both the
speed guard and route drift detection.
"""

import math
from typing import Dict

# Mean Earth radius in meters
EARTH_RADIUS_M = 6371000.0


def haversine_distance(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """
    Calculate the great-circle distance between two points on Earth.

    Args:
        lat1, lng1: First point coordinates (degrees)
        lat2, lng2: Second point coordinates (degrees)

    Returns:
        Distance in meters
    """
    lat1_rad = math.radians(lat1)
    lat2_rad = math.radians(lat2)
    dlat = math.radians(lat2 - lat1)
    dlng = math.radians(lng2 - lng1)

    a = math.sin(dlat / 2) ** 2 + math.cos(lat1_rad) * math.cos(lat2_rad) * math.sin(dlng / 2) ** 2
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))

    return EARTH_RADIUS_M * c


def calculate_bearing(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """
    Initial bearing from the first point to the second.

    Returns:
        Bearing in degrees, normalized to [0, 360)
    """
    dlng = math.radians(lng2 - lng1)
    lat1_rad = math.radians(lat1)
    lat2_rad = math.radians(lat2)

    y = math.sin(dlng) * math.cos(lat2_rad)
    x = math.cos(lat1_rad) * math.sin(lat2_rad) - math.sin(lat1_rad) * math.cos(lat2_rad) * math.cos(dlng)

    bearing = math.degrees(math.atan2(y, x)) % 360.0
    # tiny negative angles can round up to exactly 360.0
    return bearing if bearing < 360.0 else 0.0


def lerp(a: float, b: float, t: float) -> float:
    """Linear interpolation. t is not clamped."""
    return a + (b - a) * t


def lerp_coords(start: Dict[str, float], end: Dict[str, float], t: float) -> Dict[str, float]:
    """Interpolate between two {"latitude", "longitude"} points. t is not clamped."""
    return {
        "latitude": lerp(start["latitude"], end["latitude"], t),
        "longitude": lerp(start["longitude"], end["longitude"], t),
    }


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def format_distance(meters: float) -> str:
    """"850m" below one kilometer, "1.2km" above."""
    if meters < 1000:
        return f"{_round_half_up(meters)}m"
    return f"{meters / 1000:.1f}km"


def format_duration(seconds: float) -> str:
    """
    Human-readable ETA.

    "< 1 min" under a minute, "N min" under an hour, otherwise "Hh Mm"
    ("Hh" when the minutes round to zero).
    """
    if seconds < 60:
        return "< 1 min"
    if seconds < 3600:
        return f"{_round_half_up(seconds / 60)} min"

    hours = int(seconds // 3600)
    minutes = _round_half_up((seconds % 3600) / 60)
    if minutes == 60:
        hours += 1
        minutes = 0
    return f"{hours}h {minutes}m" if minutes > 0 else f"{hours}h"
