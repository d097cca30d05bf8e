"""Connection bookkeeping and best-effort delivery.

Delivery is fire-and-forget: realtime game updates are only useful right
now, so a message to a closed or unknown connection is dropped rather
than queued or retried.
"""
import logging
from typing import Callable, Dict, Optional

from guessr.models import Player

logger = logging.getLogger(__name__)

# emit(event, payload, sid)
Emitter = Callable[[str, dict, str], None]


class SessionManager:
    def __init__(self, emit: Emitter):
        self._emit = emit
        self._players: Dict[str, Player] = {}
        self._sid_to_player: Dict[str, str] = {}

    def __len__(self) -> int:
        return len(self._players)

    def register(self, player_id: str, player: Player) -> None:
        self._players[player_id] = player
        if player.sid:
            self._sid_to_player[player.sid] = player_id

    def unregister(self, player_id: str) -> Optional[Player]:
        player = self._players.pop(player_id, None)
        if player and player.sid:
            self._sid_to_player.pop(player.sid, None)
        return player

    def get(self, player_id: str) -> Optional[Player]:
        return self._players.get(player_id)

    def by_sid(self, sid: str) -> Optional[Player]:
        player_id = self._sid_to_player.get(sid)
        return self._players.get(player_id) if player_id else None

    def is_connected(self, player: Player) -> bool:
        return bool(player.sid) and self._sid_to_player.get(player.sid) == player.id

    def send_to(self, player: Player, event: str, payload: dict) -> bool:
        if not self.is_connected(player):
            logger.debug(f"[send-drop] event={event} player={player.id} not connected")
            return False
        try:
            self._emit(event, payload, player.sid)
        except Exception as exc:
            logger.warning(f"[send-drop] event={event} player={player.id} error={exc}")
            return False
        return True

    def broadcast(self, room, event: str, payload: dict, exclude_id: Optional[str] = None) -> int:
        """Send to every roster member except ``exclude_id``. Returns how many were delivered."""
        delivered = 0
        for player in list(room.players):
            if player.id == exclude_id:
                continue
            if self.send_to(player, event, payload):
                delivered += 1
        return delivered

    def clear(self) -> None:
        self._players.clear()
        self._sid_to_player.clear()
