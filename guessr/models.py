"""In-memory game records. Nothing here outlives the process."""
import math
from dataclasses import dataclass
from typing import Optional, Tuple

from guessr.services.games.scoring import Outcome

# Room states; transitions only go forward
WAITING = 'waiting'
PLAYING = 'playing'
FINISHED = 'finished'


@dataclass
class Player:
    id: str
    name: str
    sid: Optional[str] = None
    score: int = 0
    room_code: Optional[str] = None

    def to_dict(self, host_id: Optional[str] = None):
        return {
            'id': self.id,
            'name': self.name,
            'score': self.score,
            'isHost': self.id == host_id,
        }


@dataclass
class RoundLocation:
    city: str
    lat: float
    lng: float
    # Set once a client has resolved a real panorama near (lat, lng)
    actual_lat: Optional[float] = None
    actual_lng: Optional[float] = None
    pano_id: Optional[str] = None

    @property
    def confirmed(self) -> bool:
        return self.actual_lat is not None and self.actual_lng is not None

    @property
    def target(self) -> Tuple[float, float]:
        if self.confirmed:
            return self.actual_lat, self.actual_lng
        return self.lat, self.lng

    def confirm(self, lat: float, lng: float, pano_id: Optional[str]) -> bool:
        """Record the resolved panorama. Only the first confirmation sticks."""
        if self.confirmed:
            return False
        self.actual_lat = lat
        self.actual_lng = lng
        self.pano_id = pano_id
        return True

    def to_dict(self, reveal_target: bool = True):
        payload = {'city': self.city}
        if reveal_target:
            payload['lat'] = self.lat
            payload['lng'] = self.lng
        return payload

    def answer_dict(self):
        lat, lng = self.target
        return {'lat': lat, 'lng': lng, 'city': self.city, 'panoId': self.pano_id}


@dataclass
class GuessRecord:
    outcome: Outcome
    points: int
    timestamp: float
    lat: Optional[float] = None
    lng: Optional[float] = None

    @property
    def timed_out(self) -> bool:
        return self.outcome.timed_out

    @property
    def distance(self) -> float:
        """Kilometers for sorting; ``inf`` when timed out."""
        return self.outcome.sort_key()

    @property
    def finite_distance(self) -> float:
        km = self.distance
        return km if math.isfinite(km) else 0.0

    def guess_dict(self):
        if self.lat is None or self.lng is None:
            return None
        return {'lat': self.lat, 'lng': self.lng}

