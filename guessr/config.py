import os

class Config:
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'you-will-never-guess'
    CORS_ORIGINS = os.environ.get('CORS_ORIGINS', 'http://localhost:5173,http://127.0.0.1:5173').split(',')
    SOCKETIO_NAMESPACE = os.environ.get('SOCKETIO_NAMESPACE', '/ws')
    # Game rules
    ROUNDS_PER_GAME = int(os.environ.get('ROUNDS_PER_GAME', '5'))
    MAX_POINTS_PER_ROUND = int(os.environ.get('MAX_POINTS_PER_ROUND', '5000'))
    # Advisory only: forwarded to clients, never enforced by the server
    TIME_PER_ROUND_SEC = int(os.environ.get('TIME_PER_ROUND_SEC', '120'))
    MIN_PLAYERS = int(os.environ.get('MIN_PLAYERS', '2'))
    # Idle room eviction (seconds)
    ROOM_IDLE_TIMEOUT_SEC = int(os.environ.get('ROOM_IDLE_TIMEOUT_SEC', str(30 * 60)))
    ROOM_SWEEP_INTERVAL_SEC = int(os.environ.get('ROOM_SWEEP_INTERVAL_SEC', str(5 * 60)))
    # Room codes skip look-alike characters (0/O, 1/I)
    ROOM_CODE_LENGTH = 6
    ROOM_CODE_ALPHABET = 'ABCDEFGHJKLMNPQRSTUVWXYZ23456789'
    DEFAULT_PLAYER_NAME = 'Player'
    MAX_PLAYER_NAME_LENGTH = 24
    # When False, round-start payloads carry the city label only
    REVEAL_TARGET_AT_ROUND_START = os.environ.get('REVEAL_TARGET_AT_ROUND_START', '1') != '0'
    CITY_AREAS = {
        'Asunción': {'min_lat': -25.32, 'max_lat': -25.24, 'min_lng': -57.67, 'max_lng': -57.54},
        'San Lorenzo': {'min_lat': -25.36, 'max_lat': -25.32, 'min_lng': -57.54, 'max_lng': -57.48},
        'Fernando de la Mora': {'min_lat': -25.34, 'max_lat': -25.30, 'min_lng': -57.58, 'max_lng': -57.53},
        'Lambaré': {'min_lat': -25.36, 'max_lat': -25.32, 'min_lng': -57.67, 'max_lng': -57.62},
    }
