"""Process-scoped game state.

``GameServer`` owns the room registry and the session table. Everything
that reads or mutates them holds ``lock``, so inbound messages and the
idle sweep run one at a time to completion.
"""
import logging
import threading
import time
from typing import List, Mapping, Optional

from guessr.models import Player
from guessr.services.games.registry import RoomRegistry
from guessr.services.games.room import Room
from guessr.sessions import Emitter, SessionManager


class GameServer:
    def __init__(self, config: Mapping, emit: Emitter, logger: Optional[logging.Logger] = None,
                 rng=None, clock=time.time):
        self.config = config
        self.logger = logger or logging.getLogger(__name__)
        self.lock = threading.Lock()
        self._rng = rng
        self._clock = clock
        self.sessions = SessionManager(emit)
        self.registry = RoomRegistry(
            self._new_room,
            code_length=int(config.get('ROOM_CODE_LENGTH', 6)),
            alphabet=config.get('ROOM_CODE_ALPHABET') or 'ABCDEFGHJKLMNPQRSTUVWXYZ23456789',
            clock=clock,
        )
        self.sweeper_started = False
        self.closed = False

    def _new_room(self, code: str) -> Room:
        return Room(
            code,
            city_areas=self.config['CITY_AREAS'],
            rounds_per_game=int(self.config.get('ROUNDS_PER_GAME', 5)),
            max_points=int(self.config.get('MAX_POINTS_PER_ROUND', 5000)),
            min_players=int(self.config.get('MIN_PLAYERS', 2)),
            rng=self._rng,
            clock=self._clock,
        )

    def room_for(self, player: Player) -> Optional[Room]:
        if not player.room_code:
            return None
        room = self.registry.get(player.room_code)
        if room is None or room.get_player(player.id) is None:
            return None
        return room

    def sweep_idle(self, now: Optional[float] = None) -> List[Room]:
        threshold = float(self.config.get('ROOM_IDLE_TIMEOUT_SEC', 30 * 60))
        with self.lock:
            evicted = self.registry.sweep_idle(now, threshold)
            for room in evicted:
                for p in room.players:
                    if p.room_code == room.code:
                        p.room_code = None
        if evicted:
            self.logger.info(f"[sweep] evicted={len(evicted)} remaining={len(self.registry)}")
        return evicted

    def close(self) -> None:
        with self.lock:
            self.closed = True
            self.registry.clear()
            self.sessions.clear()
