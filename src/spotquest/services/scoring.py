"""Distance and score computation for guesses."""

import math

EARTH_RADIUS_METERS = 6_371_000.0
MAX_SCORE = 5000
PERFECT_DISTANCE_METERS = 10.0
DECAY_PER_KM = 0.15

_DIRECTION_LABELS = ("N", "NE", "E", "SE", "S", "SW", "W", "NW")


def distance_meters(
    guess_lat: float, guess_lon: float, actual_lat: float, actual_lon: float
) -> float:
    """Return the great-circle distance between two points in meters."""
    for value in (guess_lat, guess_lon, actual_lat, actual_lon):
        if not math.isfinite(value):
            raise ValueError(f"Coordinates must be finite, got {value!r}")
    phi1 = math.radians(guess_lat)
    phi2 = math.radians(actual_lat)
    d_phi = math.radians(actual_lat - guess_lat)
    d_lambda = math.radians(actual_lon - guess_lon)
    a = (
        math.sin(d_phi / 2) ** 2
        + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    )
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_METERS * c


def score(distance: float) -> int:
    """Return the local score in [0, 5000] for a distance in meters."""
    if not math.isfinite(distance) or distance < 0:
        raise ValueError(f"Distance must be finite and non-negative, got {distance!r}")
    if distance <= PERFECT_DISTANCE_METERS:
        return MAX_SCORE
    distance_km = distance / 1000
    return max(0, round(MAX_SCORE * math.exp(-DECAY_PER_KM * distance_km)))


def normalized_score(raw_score: int) -> int:
    """Scale a [0, 5000] score to [0, 100]."""
    return round(raw_score * 100 / MAX_SCORE)


def direction_label(azimuth: float) -> str:
    """Return the 8-point compass label for an azimuth in degrees."""
    normalized = azimuth % 360
    index = int(((normalized + 22.5) % 360) // 45)
    return _DIRECTION_LABELS[index]


def azimuth_error(guess_azimuth: float, actual_azimuth: float) -> float:
    """Return the smallest angle between two azimuths, in [0, 180]."""
    delta = abs(guess_azimuth - actual_azimuth) % 360
    return min(delta, 360 - delta)
