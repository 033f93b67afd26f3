from flask import Flask, current_app
from flask_sqlalchemy import SQLAlchemy
from flask_cors import CORS
from flask_migrate import Migrate
from flask_socketio import SocketIO
import click
from gang.config import Config

db = SQLAlchemy()
migrate = Migrate()
socketio = SocketIO(async_mode=None)


def get_services(app=None):
    """The per-app ``GangServices`` built by ``create_app``."""
    return (app or current_app).extensions['gang']


def create_app(config_class=Config):
    flask_app = Flask(__name__)
    flask_app.config.from_object(config_class)
    allowed_origins = flask_app.config.get('CORS_ORIGINS', [])

    db.init_app(flask_app)
    migrate.init_app(flask_app, db)
    CORS(flask_app, supports_credentials=True, origins=allowed_origins)

    # Initialize Socket.IO after app is created
    socketio.init_app(flask_app, cors_allowed_origins=allowed_origins)

    # One registry per app; handlers and routes reach it through extensions
    from gang.services.rooms import GangServices
    flask_app.extensions['gang'] = GangServices.build(socketio, flask_app.config)

    from gang.main import main
    flask_app.register_blueprint(main)

    from gang.api.rooms import rooms
    flask_app.register_blueprint(rooms, url_prefix='/api/rooms')

    from gang.socketio_events import register_socketio_handlers
    register_socketio_handlers()

    @click.command('db-reset')
    def db_reset_command():
        """Drops and recreates the database tables."""
        from gang import models  # noqa: F401
        with flask_app.app_context():
            db.drop_all()
            db.create_all()
            print('Database has been reset!')

    @click.command('rooms-sweep')
    def rooms_sweep_command():
        """Deletes stale rooms from the database now."""
        from gang.services.rooms.cleanup import run_cleanup
        removed = run_cleanup(flask_app, get_services(flask_app).sessions)
        print(f'Removed {len(removed)} room(s)')

    flask_app.cli.add_command(db_reset_command)
    flask_app.cli.add_command(rooms_sweep_command)

    return flask_app


def restore_rooms(flask_app) -> int:
    """Reload rooms persisted by a previous process into the registry."""
    from gang.services.rooms.persistence import load_all_rooms
    with flask_app.app_context():
        return get_services(flask_app).registry.restore(load_all_rooms())
