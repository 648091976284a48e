from flask import Flask
from flask_sqlalchemy import SQLAlchemy
from flask_login import LoginManager
from flask_cors import CORS
from flask_migrate import Migrate
from flask_socketio import SocketIO
import click
from config import Config

db = SQLAlchemy()
login_manager = LoginManager()
migrate = Migrate()
socketio = SocketIO(async_mode=None)

def create_app(config_class=Config):
    flask_app = Flask(__name__)
    flask_app.config.from_object(config_class)
    allowed_origins = flask_app.config.get('CORS_ORIGINS', [])

    db.init_app(flask_app)
    login_manager.init_app(flask_app)
    migrate.init_app(flask_app, db)
    CORS(flask_app, supports_credentials=True, origins=allowed_origins)

    # Initialize Socket.IO after app is created
    socketio.init_app(flask_app, cors_allowed_origins=allowed_origins)

    from peerrank.errors import register_error_handlers
    register_error_handlers(flask_app)

    # Import and register blueprints here
    from peerrank.routes import main
    flask_app.register_blueprint(main)

    from peerrank.api.games import games
    flask_app.register_blueprint(games, url_prefix='/api/games')

    from peerrank.api.cron import cron
    flask_app.register_blueprint(cron, url_prefix='/api/cron')

    from peerrank.socketio_events import register_socketio_handlers
    register_socketio_handlers(testing=flask_app.config.get('TESTING', False))

    # Identity comes from the upstream auth layer on every request
    from peerrank.auth import load_user_from_request, unauthorized
    login_manager.request_loader(load_user_from_request)
    login_manager.unauthorized_handler(unauthorized)

    @click.command('db-reset')
    def db_reset_command():
        """Drops and recreates the database tables."""
        import peerrank.models  # noqa: F401
        with flask_app.app_context():
            db.drop_all()
            db.create_all()
            click.echo('Database has been reset!')

    @click.command('complete-expired-games')
    def complete_expired_games_command():
        """Completes every ACTIVE game whose voting window has closed."""
        from peerrank.services.games.lifecycle import sweep_expired_games
        with flask_app.app_context():
            completed = sweep_expired_games()
            click.echo(f'Completed {len(completed)} expired games')

    flask_app.cli.add_command(db_reset_command)
    flask_app.cli.add_command(complete_expired_games_command)

    from peerrank.services.games.scheduler import start_expiry_sweeper
    start_expiry_sweeper(flask_app)

    return flask_app
