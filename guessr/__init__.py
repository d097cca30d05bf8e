from flask import Flask
from flask_cors import CORS
from flask_socketio import SocketIO
import click
from guessr.config import Config

socketio = SocketIO(async_mode=None)


def _socket_emitter(namespace):
    def emit(event, payload, sid):
        # Use socketio.emit since this may be called outside a request context
        socketio.emit(event, payload, to=sid, namespace=namespace)
    return emit


def create_app(config_class=Config):
    flask_app = Flask(__name__)
    flask_app.config.from_object(config_class)

    allowed_origins = flask_app.config.get('CORS_ORIGINS') or '*'
    namespace = flask_app.config.get('SOCKETIO_NAMESPACE', '/ws')
    CORS(flask_app, origins=allowed_origins)

    # Initialize Socket.IO after app is created
    socketio.init_app(flask_app, cors_allowed_origins=allowed_origins)

    # Game state is owned by one coordinator per app; handlers reach it through extensions
    from guessr.server import GameServer
    from guessr.socketio_events import Dispatcher, register_socketio_handlers
    server = GameServer(flask_app.config, _socket_emitter(namespace), logger=flask_app.logger)
    flask_app.extensions['guessr'] = server
    flask_app.extensions['guessr_dispatcher'] = Dispatcher(server)

    from guessr.main import main
    flask_app.register_blueprint(main)

    register_socketio_handlers(namespace)

    @click.command('list-cities')
    def list_cities_command():
        """Prints the city areas rounds are drawn from."""
        cfg = flask_app.config
        click.echo(f"{cfg['ROUNDS_PER_GAME']} rounds, up to {cfg['MAX_POINTS_PER_ROUND']} points each")
        for city, area in cfg['CITY_AREAS'].items():
            click.echo(
                f"{city}: lat {area['min_lat']}..{area['max_lat']}, lng {area['min_lng']}..{area['max_lng']}"
            )

    flask_app.cli.add_command(list_cities_command)

    return flask_app
