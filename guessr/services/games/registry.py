import logging
import secrets
import time
from typing import Callable, Dict, Iterator, List, Optional

from guessr.models import PLAYING
from guessr.services.games.room import Room

logger = logging.getLogger(__name__)

DEFAULT_CODE_ALPHABET = 'ABCDEFGHJKLMNPQRSTUVWXYZ23456789'


def normalize_room_code(code) -> str:
    if not isinstance(code, str):
        return ''
    return code.strip().upper()


class RoomRegistry:
    """Owns every live room, keyed by its join code."""

    def __init__(self, room_factory: Callable[[str], Room], code_length: int = 6,
                 alphabet: str = DEFAULT_CODE_ALPHABET, rng=None, clock=time.time):
        self._room_factory = room_factory
        self._rooms: Dict[str, Room] = {}
        self.code_length = code_length
        self.alphabet = alphabet
        self._rng = rng or secrets.SystemRandom()
        self._clock = clock

    def __len__(self) -> int:
        return len(self._rooms)

    def __iter__(self) -> Iterator[Room]:
        return iter(list(self._rooms.values()))

    def __contains__(self, code) -> bool:
        return normalize_room_code(code) in self._rooms

    def generate_code(self) -> str:
        """Draw a code no live room is using."""
        while True:
            code = ''.join(self._rng.choice(self.alphabet) for _ in range(self.code_length))
            if code not in self._rooms:
                return code

    def create_room(self) -> Room:
        code = self.generate_code()
        room = self._room_factory(code)
        self._rooms[code] = room
        logger.info(f"[room-created] room={code} rooms={len(self._rooms)}")
        return room

    def get(self, code) -> Optional[Room]:
        return self._rooms.get(normalize_room_code(code))

    def remove(self, code) -> Optional[Room]:
        room = self._rooms.pop(normalize_room_code(code), None)
        if room:
            logger.info(f"[room-removed] room={room.code} rooms={len(self._rooms)}")
        return room

    def sweep_idle(self, now: Optional[float] = None, idle_threshold: float = 30 * 60) -> List[Room]:
        """Evict rooms older than ``idle_threshold`` seconds that are not mid-game."""
        now = self._clock() if now is None else now
        evicted = []
        for code, room in list(self._rooms.items()):
            if room.state == PLAYING:
                continue
            if now - room.created_at > idle_threshold:
                del self._rooms[code]
                evicted.append(room)
                logger.info(f"[room-evicted] room={code} state={room.state} age={int(now - room.created_at)}s")
        return evicted

    def clear(self) -> None:
        self._rooms.clear()
