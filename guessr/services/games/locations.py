import secrets
from typing import Dict, List, Mapping, MutableSequence

from guessr.models import RoundLocation

_system_random = secrets.SystemRandom()


def shuffle(items: MutableSequence, rng=None) -> MutableSequence:
    """In-place Fisher-Yates shuffle; defaults to the OS CSPRNG."""
    rng = rng or _system_random
    for i in range(len(items) - 1, 0, -1):
        j = rng.randrange(i + 1)
        items[i], items[j] = items[j], items[i]
    return items


def random_in_range(low: float, high: float, rng=None) -> float:
    rng = rng or _system_random
    return low + rng.random() * (high - low)


def generate_locations(city_areas: Mapping[str, Dict[str, float]], rounds: int, rng=None) -> List[RoundLocation]:
    """Pick one city per round and a uniform point inside its bounding box.

    Cities are dealt from a shuffled pool; once the pool runs dry it is
    reshuffled, so a city can repeat only after every city has been used.
    """
    if not city_areas:
        raise ValueError('No city areas configured')
    locations = []
    pool = shuffle(list(city_areas), rng)
    for _ in range(rounds):
        if not pool:
            pool = shuffle(list(city_areas), rng)
        city = pool.pop()
        area = city_areas[city]
        locations.append(RoundLocation(
            city=city,
            lat=random_in_range(area['min_lat'], area['max_lat'], rng),
            lng=random_in_range(area['min_lng'], area['max_lng'], rng),
        ))
    return locations
