"""Room state machine: roster, host, rounds and results for one game.

A room only moves forward: ``waiting -> playing -> finished``. Callers are
expected to serialize access (see ``GameServer.lock``); nothing in here
blocks or performs I/O.
"""
import math
import time
from typing import Dict, List, Optional, Set

from guessr.errors import DuplicateSubmission, GameAlreadyStarted, GameError, InsufficientPlayers, NotHost
from guessr.models import FINISHED, PLAYING, WAITING, GuessRecord, Player, RoundLocation
from guessr.services.games import scoring
from guessr.services.games.locations import generate_locations


class Room:
    def __init__(self, code: str, city_areas: Dict[str, Dict[str, float]], rounds_per_game: int = 5,
                 max_points: int = scoring.DEFAULT_MAX_POINTS, min_players: int = 2, rng=None, clock=time.time):
        self.code = code
        self.city_areas = city_areas
        self.rounds_per_game = rounds_per_game
        self.max_points = max_points
        self.min_players = min_players
        self._rng = rng
        self._clock = clock

        self.players: List[Player] = []
        self.state = WAITING
        self.current_round = 0
        self.round_locations: List[RoundLocation] = []
        self.round_results: Dict[int, Dict[str, GuessRecord]] = {}
        self.host_id: Optional[str] = None
        self.created_at = clock()
        self._announced_rounds: Set[int] = set()

    @property
    def total_rounds(self) -> int:
        return self.rounds_per_game

    @property
    def current_location(self) -> Optional[RoundLocation]:
        if 0 <= self.current_round < len(self.round_locations):
            return self.round_locations[self.current_round]
        return None

    def get_player(self, player_id: str) -> Optional[Player]:
        for p in self.players:
            if p.id == player_id:
                return p
        return None

    def is_host(self, player_id: str) -> bool:
        return self.host_id is not None and self.host_id == player_id

    # ---- Roster ----

    def add_player(self, player: Player) -> None:
        if self.state != WAITING:
            raise GameAlreadyStarted()
        if self.get_player(player.id):
            return
        self.players.append(player)
        if len(self.players) == 1:
            self.host_id = player.id

    def remove_player(self, player_id: str) -> bool:
        """Drop a player in any state. Returns True if the host moved to someone else."""
        remaining = [p for p in self.players if p.id != player_id]
        if len(remaining) == len(self.players):
            return False
        self.players = remaining
        if not self.players:
            self.host_id = None
            return False
        if self.host_id == player_id:
            # Earliest remaining joiner inherits the room
            self.host_id = self.players[0].id
            return True
        return False

    # ---- Lifecycle ----

    def start_game(self, requester_id: str) -> RoundLocation:
        if not self.is_host(requester_id):
            raise NotHost('Only the host can start the game')
        if self.state != WAITING:
            raise GameAlreadyStarted()
        if len(self.players) < self.min_players:
            raise InsufficientPlayers(f'At least {self.min_players} players are required to start')

        self.round_locations = generate_locations(self.city_areas, self.rounds_per_game, self._rng)
        self.round_results = {}
        self._announced_rounds = set()
        self.current_round = 0
        for p in self.players:
            p.score = 0
        self.state = PLAYING
        return self.current_location

    def confirm_location(self, round_index: int, lat: float, lng: float, pano_id: Optional[str]) -> bool:
        """Pin the panorama a client actually found for ``round_index``.

        Returns False (and changes nothing) if that round was already confirmed.
        """
        if self.state != PLAYING or not 0 <= round_index < len(self.round_locations):
            return False
        return self.round_locations[round_index].confirm(lat, lng, pano_id)

    def advance_round(self, requester_id: str) -> Optional[RoundLocation]:
        """Move to the next round. Returns its location, or None once the game is finished."""
        if not self.is_host(requester_id):
            raise NotHost('Only the host can advance the round')
        if self.state != PLAYING:
            raise GameError('The game is not in progress')
        self.current_round += 1
        if self.current_round >= self.rounds_per_game:
            self.current_round = self.rounds_per_game
            self.state = FINISHED
            return None
        return self.current_location

    # ---- Guesses ----

    def submit_guess(self, player_id: str, lat: float, lng: float) -> Optional[GuessRecord]:
        location = self.current_location
        if self.state != PLAYING or location is None:
            return None
        target_lat, target_lng = location.target
        outcome = scoring.measure(lat, lng, target_lat, target_lng)
        return self._record(player_id, outcome, lat, lng)

    def submit_timeout(self, player_id: str) -> Optional[GuessRecord]:
        if self.state != PLAYING or self.current_location is None:
            return None
        return self._record(player_id, scoring.TIMED_OUT, None, None)

    def _record(self, player_id, outcome, lat, lng) -> Optional[GuessRecord]:
        player = self.get_player(player_id)
        if player is None:
            return None
        records = self.round_results.setdefault(self.current_round, {})
        if player_id in records:
            raise DuplicateSubmission()
        record = GuessRecord(
            outcome=outcome,
            points=scoring.points(outcome, self.max_points),
            timestamp=self._clock(),
            lat=lat,
            lng=lng,
        )
        records[player_id] = record
        player.score += record.points
        return record

    def round_complete(self) -> bool:
        if self.state != PLAYING or not self.players:
            return False
        records = self.round_results.get(self.current_round, {})
        return all(p.id in records for p in self.players)

    def complete_round(self) -> Optional[List[dict]]:
        """Return ranked results the first time the current round is complete, else None.

        Call after anything that changes who has answered (guess, timeout,
        departure); the round is only ever announced once.
        """
        if self.current_round in self._announced_rounds or not self.round_complete():
            return None
        self._announced_rounds.add(self.current_round)
        return self.round_results_ranked()

    # ---- Results ----

    def round_results_ranked(self) -> List[dict]:
        records = self.round_results.get(self.current_round, {})
        rows = []
        for p in self.players:
            record = records.get(p.id)
            if record is None:
                rows.append((p, None, 0, math.inf, math.inf))
            else:
                rows.append((p, record, record.points, record.distance, record.timestamp))
        rows.sort(key=lambda row: (-row[2], row[3], row[4]))

        results = []
        for rank, (p, record, pts, _, timestamp) in enumerate(rows, start=1):
            results.append({
                'id': p.id,
                'name': p.name,
                'distance': record.outcome.to_json() if record else None,
                'points': pts,
                'guess': record.guess_dict() if record else None,
                'totalScore': p.score,
                'timedOut': record is None or record.timed_out,
                'timestamp': timestamp if math.isfinite(timestamp) else None,
                'rank': rank,
            })
        return results

    def _aggregate(self, player_id: str):
        total_distance = 0.0
        fastest = math.inf
        for records in self.round_results.values():
            record = records.get(player_id)
            if record is None:
                continue
            # Timeouts already cost their points; they add nothing here
            total_distance += record.finite_distance
            fastest = min(fastest, record.timestamp)
        return total_distance, fastest

    def final_results(self) -> List[dict]:
        rows = []
        for p in self.players:
            total_distance, fastest = self._aggregate(p.id)
            rows.append((p, total_distance, fastest))
        rows.sort(key=lambda row: (-row[0].score, row[1], row[2], row[0].name.casefold(), row[0].name))
        return [
            {
                'id': p.id,
                'name': p.name,
                'score': p.score,
                'totalDistance': total_distance,
                'fastestGuess': fastest if math.isfinite(fastest) else None,
                'rank': rank,
            }
            for rank, (p, total_distance, fastest) in enumerate(rows, start=1)
        ]

    def to_dict(self):
        return {
            'code': self.code,
            'state': self.state,
            'players': [p.to_dict(self.host_id) for p in self.players],
            'currentRound': self.current_round,
            'totalRounds': self.total_rounds,
            'hostId': self.host_id,
        }
