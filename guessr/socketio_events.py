import json
import math
import uuid
from typing import Any, Dict, Optional

from flask import current_app, request

from guessr import socketio
from guessr.errors import DuplicateSubmission, GameAlreadyStarted, GameError, MalformedMessage, RoomNotFound
from guessr.models import PLAYING, WAITING, Player
from guessr.services.games.registry import normalize_room_code
from guessr.services.games.scheduler import schedule_idle_sweep

INBOUND_KINDS = (
    'createRoom',
    'joinRoom',
    'startGame',
    'locationFound',
    'submitGuess',
    'timeOut',
    'requestNextRound',
)


def decode_message(data: Any) -> Dict[str, Any]:
    """Decode a raw frame (JSON text or an already-parsed object) into a dict."""
    if isinstance(data, (bytes, bytearray)):
        try:
            data = data.decode('utf-8')
        except UnicodeDecodeError as exc:
            raise MalformedMessage(f'Undecodable frame: {exc}')
    if isinstance(data, str):
        try:
            data = json.loads(data)
        except ValueError as exc:
            raise MalformedMessage(f'Invalid JSON: {exc}')
    if not isinstance(data, dict):
        raise MalformedMessage('Message must be a JSON object')
    return data


def _coordinate(payload: Dict[str, Any], key: str) -> float:
    value = payload.get(key)
    # bool is an int subclass; true/false are not coordinates
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise MalformedMessage(f'{key} must be a number')
    value = float(value)
    if not math.isfinite(value):
        raise MalformedMessage(f'{key} must be finite')
    return value


class Dispatcher:
    """Routes inbound messages to room operations and broadcasts the outcome.

    Holds no game state of its own; everything lives on the injected
    ``GameServer``.
    """

    def __init__(self, server, logger=None):
        self.server = server
        self.logger = logger or server.logger
        self.routes = {
            'createRoom': self._create_room,
            'joinRoom': self._join_room,
            'startGame': self._start_game,
            'locationFound': self._location_found,
            'submitGuess': self._submit_guess,
            'timeOut': self._time_out,
            'requestNextRound': self._next_round,
        }

    @property
    def sessions(self):
        return self.server.sessions

    @property
    def registry(self):
        return self.server.registry

    @property
    def config(self):
        return self.server.config

    # ---- Connection lifecycle ----

    def on_connect(self, sid: str) -> Player:
        with self.server.lock:
            player = Player(id=uuid.uuid4().hex, name=self.config.get('DEFAULT_PLAYER_NAME', 'Player'), sid=sid)
            self.sessions.register(player.id, player)
            self.sessions.send_to(player, 'connected', {'playerId': player.id})
        self.logger.info(f"[connect] player={player.id}")
        return player

    def on_disconnect(self, sid: str) -> None:
        with self.server.lock:
            player = self.sessions.by_sid(sid)
            if player is None:
                return
            self._leave_room(player)
            self.sessions.unregister(player.id)
        self.logger.info(f"[disconnect] player={player.id}")

    # ---- Inbound ----

    def handle_raw(self, sid: str, data: Any) -> None:
        """Entry point for the generic ``message`` event: ``{"type": kind, ...}``."""
        try:
            message = decode_message(data)
        except MalformedMessage as exc:
            self.logger.warning(f"[malformed] sid={sid} {exc.message}")
            return
        self.dispatch(sid, message.get('type'), message)

    def dispatch(self, sid: str, kind: Optional[str], payload: Any) -> None:
        handler = self.routes.get(kind) if isinstance(kind, str) else None
        if handler is None:
            self.logger.debug(f"[ignored] sid={sid} kind={kind!r}")
            return
        if payload is None:
            payload = {}
        if not isinstance(payload, dict):
            self.logger.warning(f"[malformed] sid={sid} kind={kind} payload is not an object")
            return

        with self.server.lock:
            player = self.sessions.by_sid(sid)
            if player is None:
                return
            try:
                handler(player, payload)
            except DuplicateSubmission:
                self.logger.debug(f"[duplicate] kind={kind} player={player.id} room={player.room_code}")
            except MalformedMessage as exc:
                self.logger.warning(f"[malformed] kind={kind} player={player.id} {exc.message}")
            except GameError as exc:
                self.sessions.send_to(player, 'error', {'message': exc.message})
            except Exception:
                self.logger.exception(f"[handler-error] kind={kind} player={player.id}")

    # ---- Helpers ----

    def _clean_name(self, value) -> str:
        default = self.config.get('DEFAULT_PLAYER_NAME', 'Player')
        if not isinstance(value, str):
            return default
        name = value.strip()[: int(self.config.get('MAX_PLAYER_NAME_LENGTH', 24))].strip()
        return name or default

    def _location_payload(self, location):
        return location.to_dict(reveal_target=bool(self.config.get('REVEAL_TARGET_AT_ROUND_START', True)))

    def _leave_room(self, player: Player) -> None:
        room = self.server.room_for(player)
        player.room_code = None
        if room is None:
            return
        host_changed = room.remove_player(player.id)
        if not room.players:
            # Nobody left to tell
            self.registry.remove(room.code)
            return
        self.sessions.broadcast(room, 'playerLeft', {
            'playerId': player.id,
            'playerName': player.name,
            'room': room.to_dict(),
        })
        if host_changed:
            self.sessions.broadcast(room, 'hostChanged', {'hostId': room.host_id})
        if room.state == PLAYING:
            self._check_round_complete(room)

    def _check_round_complete(self, room) -> None:
        results = room.complete_round()
        if results is None:
            return
        self.logger.info(f"[round-complete] room={room.code} round={room.current_round + 1}")
        self.sessions.broadcast(room, 'roundComplete', {
            'round': room.current_round + 1,
            'results': results,
            'actualLocation': room.current_location.answer_dict(),
        })

    # ---- Routes ----

    def _create_room(self, player: Player, payload: Dict[str, Any]) -> None:
        name = self._clean_name(payload.get('playerName'))
        self._leave_room(player)
        player.name = name
        player.score = 0
        room = self.registry.create_room()
        room.add_player(player)
        player.room_code = room.code
        self.logger.info(f"[create] room={room.code} host={player.id} name={player.name}")
        self.sessions.send_to(player, 'roomCreated', {'room': room.to_dict()})

    def _join_room(self, player: Player, payload: Dict[str, Any]) -> None:
        code = normalize_room_code(payload.get('roomCode'))
        room = self.registry.get(code) if code else None
        if room is None:
            raise RoomNotFound()
        if room.state != WAITING:
            raise GameAlreadyStarted()
        if room.get_player(player.id):
            self.sessions.send_to(player, 'roomJoined', {'room': room.to_dict()})
            return

        self._leave_room(player)
        player.name = self._clean_name(payload.get('playerName'))
        player.score = 0
        room.add_player(player)
        player.room_code = room.code
        self.logger.info(f"[join] room={room.code} player={player.id} name={player.name}")
        snapshot = room.to_dict()
        self.sessions.send_to(player, 'roomJoined', {'room': snapshot})
        self.sessions.broadcast(room, 'playerJoined', {'room': snapshot}, exclude_id=player.id)

    def _start_game(self, player: Player, payload: Dict[str, Any]) -> None:
        room = self.server.room_for(player)
        if room is None:
            return
        location = room.start_game(player.id)
        self.logger.info(f"[start] room={room.code} players={len(room.players)} rounds={room.total_rounds}")
        self.sessions.broadcast(room, 'gameStarted', {
            'room': room.to_dict(),
            'round': 1,
            'totalRounds': room.total_rounds,
            'timeLimit': self.config.get('TIME_PER_ROUND_SEC'),
            'location': self._location_payload(location),
        })

    def _location_found(self, player: Player, payload: Dict[str, Any]) -> None:
        room = self.server.room_for(player)
        if room is None or room.state != PLAYING:
            return
        lat = _coordinate(payload, 'lat')
        lng = _coordinate(payload, 'lng')
        pano_id = payload.get('panoId')
        if pano_id is not None and not isinstance(pano_id, str):
            raise MalformedMessage('panoId must be a string')
        if not room.confirm_location(room.current_round, lat, lng, pano_id):
            return
        self.sessions.broadcast(room, 'locationConfirmed', {'panoId': pano_id, 'lat': lat, 'lng': lng})

    def _submit_guess(self, player: Player, payload: Dict[str, Any]) -> None:
        room = self.server.room_for(player)
        if room is None or room.state != PLAYING:
            return
        lat = _coordinate(payload, 'lat')
        lng = _coordinate(payload, 'lng')
        record = room.submit_guess(player.id, lat, lng)
        if record is None:
            return
        self.logger.info(
            f"[guess] room={room.code} player={player.id} distance={record.distance:.2f}km points={record.points}"
        )
        self.sessions.send_to(player, 'guessResult', {
            'distance': record.outcome.to_json(),
            'points': record.points,
            'totalScore': player.score,
            'timedOut': record.timed_out,
        })
        self.sessions.broadcast(room, 'playerGuessed', {
            'playerId': player.id,
            'playerName': player.name,
            'timedOut': record.timed_out,
        })
        self._check_round_complete(room)

    def _time_out(self, player: Player, payload: Dict[str, Any]) -> None:
        room = self.server.room_for(player)
        if room is None or room.state != PLAYING:
            return
        record = room.submit_timeout(player.id)
        if record is None:
            return
        self.sessions.send_to(player, 'guessResult', {
            'distance': None,
            'points': 0,
            'totalScore': player.score,
            'timedOut': True,
        })
        self.sessions.broadcast(room, 'playerGuessed', {
            'playerId': player.id,
            'playerName': player.name,
            'timedOut': True,
        })
        self._check_round_complete(room)

    def _next_round(self, player: Player, payload: Dict[str, Any]) -> None:
        room = self.server.room_for(player)
        if room is None:
            return
        location = room.advance_round(player.id)
        if location is None:
            self.logger.info(f"[finish] room={room.code}")
            self.sessions.broadcast(room, 'gameFinished', {'results': room.final_results()})
            return
        self.logger.info(f"[next_round] room={room.code} round={room.current_round + 1}")
        self.sessions.broadcast(room, 'nextRound', {
            'round': room.current_round + 1,
            'totalRounds': room.total_rounds,
            'timeLimit': self.config.get('TIME_PER_ROUND_SEC'),
            'location': self._location_payload(location),
        })


# ---- Socket.IO bindings ----

def _get_sid() -> str:
    # type: ignore: request.sid exists in Socket.IO context
    return request.sid  # type: ignore


def _dispatcher() -> Dispatcher:
    return current_app.extensions['guessr_dispatcher']


def handle_connect(auth=None):
    dispatcher = _dispatcher()
    dispatcher.on_connect(_get_sid())
    schedule_idle_sweep(current_app._get_current_object(), dispatcher.server)


def handle_disconnect(reason=None):
    _dispatcher().on_disconnect(_get_sid())


def handle_message(data=None):
    _dispatcher().handle_raw(_get_sid(), data)


def _make_event_handler(kind: str):
    def _handler(data=None):
        _dispatcher().dispatch(_get_sid(), kind, data)
    _handler.__name__ = f'handle_{kind}'
    return _handler


def register_socketio_handlers(namespace: str = '/ws') -> None:
    """Register Socket.IO event handlers on ``namespace``.

    Every inbound kind is its own event; the generic ``message`` event
    carries raw ``{"type": ...}`` frames for plain-JSON clients.
    """
    socketio.on_event('connect', handle_connect, namespace=namespace)
    socketio.on_event('disconnect', handle_disconnect, namespace=namespace)
    socketio.on_event('message', handle_message, namespace=namespace)
    for kind in INBOUND_KINDS:
        socketio.on_event(kind, _make_event_handler(kind), namespace=namespace)
