import math
from dataclasses import dataclass
from typing import Optional, Union

EARTH_RADIUS_KM = 6371.0
# Points fall to ~70% after 1 km and ~3% after 10 km
DECAY_PER_KM = 0.35
DEFAULT_MAX_POINTS = 5000


@dataclass(frozen=True)
class Measured:
    """A guess that was placed on the map, ``km`` away from the target."""
    km: float

    timed_out = False

    def sort_key(self) -> float:
        return self.km

    def to_json(self) -> Optional[float]:
        return self.km


@dataclass(frozen=True)
class TimedOut:
    """No guess was placed before time ran out: the distance is unbounded."""

    timed_out = True

    def sort_key(self) -> float:
        return math.inf

    def to_json(self) -> Optional[float]:
        return None


TIMED_OUT = TimedOut()

Outcome = Union[Measured, TimedOut]


def distance(guess_lat: float, guess_lng: float, target_lat: float, target_lng: float) -> float:
    """Great-circle (haversine) distance in kilometers."""
    lat1, lng1, lat2, lng2 = map(math.radians, [guess_lat, guess_lng, target_lat, target_lng])
    dlat = lat2 - lat1
    dlng = lng2 - lng1
    a = math.sin(dlat / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(dlng / 2) ** 2
    # Float error can push a a hair past 1 for antipodal points
    a = min(1.0, max(0.0, a))
    return EARTH_RADIUS_KM * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def points(result: Union[Outcome, float, None], max_points: int = DEFAULT_MAX_POINTS) -> int:
    """Map a distance (or an outcome) to round points in ``[0, max_points]``.

    Accepts a ``Measured``/``TimedOut`` outcome or a raw number of
    kilometers; timeouts and non-finite distances score 0.
    """
    if isinstance(result, TimedOut) or result is None:
        return 0
    km = result.km if isinstance(result, Measured) else result
    if not math.isfinite(km):
        return 0
    raw = max_points * math.exp(-DECAY_PER_KM * km)
    clamped = max(0.0, min(float(max_points), raw))
    # Halves round up, not to even
    return int(math.floor(clamped + 0.5))


def measure(guess_lat: float, guess_lng: float, target_lat: float, target_lng: float) -> Outcome:
    km = distance(guess_lat, guess_lng, target_lat, target_lng)
    if not math.isfinite(km):
        return TIMED_OUT
    return Measured(km)
