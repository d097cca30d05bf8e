from flask import Blueprint, current_app, jsonify

main = Blueprint('main', __name__)


def _server():
    return current_app.extensions['guessr']


@main.route('/')
def index():
    return jsonify({'message': 'Welcome to the Guessr game server!'})


@main.route('/health')
def health():
    server = _server()
    with server.lock:
        rooms = len(server.registry)
        players = len(server.sessions)
    return jsonify({'status': 'ok', 'rooms': rooms, 'players': players})


@main.route('/api/rooms/<string:room_code>')
def get_room_state(room_code):
    """Lobby snapshot for a room code. Never includes round locations."""
    server = _server()
    with server.lock:
        room = server.registry.get(room_code)
        if room is None:
            return jsonify({'error': 'Room not found'}), 404
        payload = room.to_dict()
    return jsonify(payload)
