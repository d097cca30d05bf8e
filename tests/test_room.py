import math

import pytest

from guessr.errors import DuplicateSubmission, GameAlreadyStarted, GameError, InsufficientPlayers, NotHost
from guessr.models import FINISHED, PLAYING, WAITING, Player


def _players(*names):
    return [Player(id=f'p{i}', name=name) for i, name in enumerate(names, start=1)]


def _started_room(make_room, *names, **kwargs):
    room = make_room(**kwargs)
    players = _players(*names)
    for p in players:
        room.add_player(p)
    room.start_game(players[0].id)
    return room, players


def _host_count(room):
    return sum(1 for p in room.to_dict()['players'] if p['isHost'])


def test_first_player_is_host(make_room):
    room = make_room()
    a, b = _players('Ana', 'Beto')
    room.add_player(a)
    room.add_player(b)
    assert room.host_id == a.id
    assert [p.id for p in room.players] == [a.id, b.id]
    assert _host_count(room) == 1


def test_add_player_rejected_after_start(make_room):
    room, _ = _started_room(make_room, 'Ana', 'Beto')
    with pytest.raises(GameAlreadyStarted):
        room.add_player(Player(id='late', name='Late'))
    assert len(room.players) == 2


def test_host_reassigned_to_earliest_joiner(make_room):
    room = make_room()
    a, b, c = _players('Ana', 'Beto', 'Caro')
    for p in (a, b, c):
        room.add_player(p)
    assert room.remove_player(a.id) is True
    assert room.host_id == b.id
    assert _host_count(room) == 1
    # Non-host leaving keeps the host
    assert room.remove_player(c.id) is False
    assert room.host_id == b.id
    assert room.remove_player(b.id) is False
    assert room.players == []
    assert room.host_id is None
    assert room.remove_player('ghost') is False


def test_start_game_requires_host(make_room):
    room = make_room()
    a, b = _players('Ana', 'Beto')
    room.add_player(a)
    room.add_player(b)
    with pytest.raises(NotHost):
        room.start_game(b.id)
    assert room.state == WAITING


def test_start_game_requires_min_players(make_room):
    room = make_room()
    a, = _players('Ana')
    room.add_player(a)
    with pytest.raises(InsufficientPlayers):
        room.start_game(a.id)
    assert room.state == WAITING


def test_start_game_resets_scores_and_generates_rounds(make_room):
    room = make_room(rounds=3)
    a, b = _players('Ana', 'Beto')
    a.score = 99
    room.add_player(a)
    room.add_player(b)
    location = room.start_game(a.id)
    assert room.state == PLAYING
    assert room.current_round == 0
    assert a.score == 0
    assert len(room.round_locations) == 3
    assert location is room.round_locations[0]
    with pytest.raises(GameAlreadyStarted):
        room.start_game(a.id)


def test_exact_guess_and_timeout_scenario(make_room):
    room, (a, b) = _started_room(make_room, 'Ana', 'Beto')
    record = room.submit_guess(a.id, 0.0, 0.0)
    assert record.distance == 0
    assert record.points == 5000
    assert a.score == 5000
    assert not room.round_complete()
    assert room.complete_round() is None

    timeout = room.submit_timeout(b.id)
    assert timeout.timed_out
    assert timeout.points == 0
    assert math.isinf(timeout.distance)
    assert room.round_complete()

    results = room.complete_round()
    assert [(r['id'], r['rank']) for r in results] == [(a.id, 1), (b.id, 2)]
    assert results[0]['distance'] == 0
    assert results[1]['distance'] is None
    assert results[1]['timedOut'] is True
    # Announced once only
    assert room.complete_round() is None


def test_duplicate_guess_does_not_change_score(make_room):
    room, (a, b) = _started_room(make_room, 'Ana', 'Beto')
    room.submit_guess(a.id, 1.0, 1.0)
    score = a.score
    with pytest.raises(DuplicateSubmission):
        room.submit_guess(a.id, 0.0, 0.0)
    assert a.score == score
    # Timeout never overwrites a real guess
    with pytest.raises(DuplicateSubmission):
        room.submit_timeout(a.id)
    assert not room.round_results[0][a.id].timed_out


def test_guess_ignored_outside_playing(make_room):
    room = make_room()
    a, b = _players('Ana', 'Beto')
    room.add_player(a)
    room.add_player(b)
    assert room.submit_guess(a.id, 0, 0) is None
    assert room.submit_timeout(a.id) is None
    assert room.round_results == {}


def test_guess_from_unknown_player_ignored(make_room):
    room, _ = _started_room(make_room, 'Ana', 'Beto')
    assert room.submit_guess('stranger', 0, 0) is None


def test_confirmed_location_is_scoring_target(make_room):
    room, (a, b) = _started_room(make_room, 'Ana', 'Beto')
    assert room.confirm_location(0, 1.0, 1.0, 'pano-1') is True
    # First confirmation sticks
    assert room.confirm_location(0, 5.0, 5.0, 'pano-2') is False
    location = room.current_location
    assert location.target == (1.0, 1.0)
    assert location.pano_id == 'pano-1'
    # Generated point stays as it was
    assert (location.lat, location.lng) == (0.0, 0.0)

    record = room.submit_guess(a.id, 1.0, 1.0)
    assert record.points == 5000
    assert room.confirm_location(7, 0, 0, None) is False


def test_round_results_tiebreak_on_distance_then_time(make_room, clock):
    room, (a, b, c) = _started_room(make_room, 'Ana', 'Beto', 'Caro', max_points=10)
    # Far guesses all score 0 points
    room.submit_guess(c.id, 10.0, 10.0)
    clock.advance(1)
    room.submit_guess(a.id, 20.0, 20.0)
    clock.advance(1)
    room.submit_guess(b.id, 10.0, 10.0)
    results = room.complete_round()
    assert [r['points'] for r in results] == [0, 0, 0]
    # c and b tie on distance; c was earlier
    assert [r['id'] for r in results] == [c.id, b.id, a.id]
    assert [r['rank'] for r in results] == [1, 2, 3]


def test_departure_completes_round(make_room):
    room, (a, b, c) = _started_room(make_room, 'Ana', 'Beto', 'Caro')
    room.submit_guess(a.id, 0, 0)
    room.submit_guess(b.id, 0, 0)
    assert room.complete_round() is None
    room.remove_player(c.id)
    results = room.complete_round()
    assert [r['id'] for r in results] == [a.id, b.id]


def test_round_results_fill_missing_players(make_room):
    room, (a, b) = _started_room(make_room, 'Ana', 'Beto')
    room.submit_guess(a.id, 0, 0)
    results = room.round_results_ranked()
    missing = results[1]
    assert missing['id'] == b.id
    assert missing['points'] == 0
    assert missing['distance'] is None
    assert missing['timestamp'] is None


def test_advance_round_requires_host(make_room):
    room, (a, b) = _started_room(make_room, 'Ana', 'Beto')
    with pytest.raises(NotHost):
        room.advance_round(b.id)
    assert room.current_round == 0


def test_advance_through_to_finished(make_room):
    room, (a, b) = _started_room(make_room, 'Ana', 'Beto', rounds=2)
    location = room.advance_round(a.id)
    assert location is room.round_locations[1]
    assert room.current_round == 1
    assert room.state == PLAYING
    assert room.advance_round(a.id) is None
    assert room.state == FINISHED
    assert room.current_round == 2
    with pytest.raises(GameError):
        room.advance_round(a.id)
    assert room.state == FINISHED


def test_final_results_tiebreaks(make_room, clock):
    room, (a, b, c, d) = _started_room(make_room, 'Dani', 'Beto', 'Ana', 'Caro', max_points=10)
    # Round 1: everyone far away (0 points); distances differ for a vs others
    room.submit_guess(b.id, 10.0, 10.0)
    clock.advance(1)
    room.submit_guess(c.id, 10.0, 10.0)
    room.submit_guess(d.id, 10.0, 10.0)
    room.submit_timeout(a.id)
    room.advance_round(a.id)
    # Round 2: everyone times out
    for p in (a, b, c, d):
        room.submit_timeout(p.id)
    room.advance_round(a.id)

    results = room.final_results()
    # a has total distance 0 (timeouts add nothing) so ranks first
    assert results[0]['id'] == a.id
    # b guessed earliest among the tied b/c/d
    assert results[1]['id'] == b.id
    # c and d tie on everything but name
    assert [r['name'] for r in results[2:]] == ['Ana', 'Caro']
    assert [r['rank'] for r in results] == [1, 2, 3, 4]
    assert results[0]['totalDistance'] == 0


def test_final_results_rank_by_score_first(make_room):
    room, (a, b) = _started_room(make_room, 'Ana', 'Beto', rounds=1)
    room.submit_timeout(a.id)
    room.submit_guess(b.id, 0, 0)
    room.advance_round(a.id)
    results = room.final_results()
    assert [r['id'] for r in results] == [b.id, a.id]
    assert results[0]['score'] == 5000
    assert results[0]['fastestGuess'] is not None


def test_snapshot_shape(make_room):
    room = make_room()
    a, b = _players('Ana', 'Beto')
    room.add_player(a)
    room.add_player(b)
    snapshot = room.to_dict()
    assert snapshot == {
        'code': 'ABC234',
        'state': WAITING,
        'players': [
            {'id': a.id, 'name': 'Ana', 'score': 0, 'isHost': True},
            {'id': b.id, 'name': 'Beto', 'score': 0, 'isHost': False},
        ],
        'currentRound': 0,
        'totalRounds': 2,
        'hostId': a.id,
    }
