from flask import Flask, jsonify
from flask_sqlalchemy import SQLAlchemy
from flask_cors import CORS
from flask_migrate import Migrate
from flask_socketio import SocketIO
import click
from config import Config

db = SQLAlchemy()
migrate = Migrate()
allowed_origins = [
    "http://localhost:5173",
    "http://127.0.0.1:5173",
    "http://localhost:5174",
    "http://127.0.0.1:5174",
]
socketio = SocketIO(cors_allowed_origins=allowed_origins, async_mode=None)

def create_app(config_class=Config):
    flask_app = Flask(__name__)
    flask_app.config.from_object(config_class)

    db.init_app(flask_app)
    migrate.init_app(flask_app, db)
    CORS(flask_app, supports_credentials=True, origins=allowed_origins)

    socketio.init_app(flask_app, cors_allowed_origins=allowed_origins)

    # One set of phase machines per app, configured from the timer keys
    from puzzz.services.games.registry import build_machines
    flask_app.extensions['puzzz_machines'] = build_machines(flask_app.config)

    from puzzz.api.rooms import rooms
    flask_app.register_blueprint(rooms, url_prefix='/api/rooms')

    from puzzz.errors import RoomNotFound

    @flask_app.errorhandler(RoomNotFound)
    def room_not_found(exc):
        return jsonify({'error': 'room no longer exists', 'room_code': exc.room_code}), 404

    @flask_app.route('/api/health')
    def health():
        return jsonify({'status': 'ok'}), 200

    from puzzz.socketio_events import register_socketio_handlers
    register_socketio_handlers(testing=flask_app.config.get('TESTING', False))

    @click.command('db-reset')
    def db_reset_command():
        """Drops and recreates the database."""
        with flask_app.app_context():
            db.drop_all()
            db.create_all()
            print('Database has been reset!')

    @click.command('rooms-prune')
    def rooms_prune_command():
        """Deletes empty rooms and rooms idle longer than ROOM_TTL_SEC."""
        from puzzz.services.rooms import is_idle
        from puzzz.sql_store import SqlRoomStore
        ttl = int(flask_app.config.get('ROOM_TTL_SEC', 28800))
        with flask_app.app_context():
            store = SqlRoomStore(broadcast=False)
            removed = 0
            for code in store.room_codes():
                if is_idle(store.get(code), ttl):
                    store.delete(code)
                    removed += 1
            flask_app.logger.info(f"[rooms-prune] removed={removed} ttl={ttl}s")
            print(f'Pruned {removed} room(s).')

    flask_app.cli.add_command(db_reset_command)
    flask_app.cli.add_command(rooms_prune_command)

    return flask_app
