from flask import Flask, jsonify
from flask_sqlalchemy import SQLAlchemy
from flask_login import LoginManager
from flask_cors import CORS
from flask_migrate import Migrate
from flask_socketio import SocketIO
import click
from punchline.config import Config

db = SQLAlchemy()
login_manager = LoginManager()
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
    login_manager.init_app(flask_app)
    migrate.init_app(flask_app, db)
    CORS(flask_app, supports_credentials=True, origins=allowed_origins)

    # Initialize Socket.IO after app is created
    socketio.init_app(flask_app, cors_allowed_origins=allowed_origins)

    # Card catalog cache lives as long as the app
    from punchline.services.games.catalog import CardCatalog
    from punchline.services.games.gameplay import CATALOG_EXTENSION
    flask_app.extensions[CATALOG_EXTENSION] = CardCatalog()

    from punchline.api.games import games
    flask_app.register_blueprint(games, url_prefix='/api/games')

    from punchline.socketio_events import register_socketio_handlers
    register_socketio_handlers(testing=flask_app.config.get('TESTING', False))

    # Identity comes from the upstream auth gateway via request headers
    from punchline.auth import Actor

    @login_manager.request_loader
    def load_actor(request):
        return Actor.from_request(request)

    @login_manager.unauthorized_handler
    def unauthorized():
        return jsonify({'error': {
            'code': 'unauthenticated',
            'kind': 'authorization',
            'message': 'Sign in to play.',
            'retryable': False,
        }}), 401

    @click.command('db-reset')
    def db_reset_command():
        """Drops and recreates the database schema."""
        import punchline.models  # noqa: F401
        with flask_app.app_context():
            db.drop_all()
            db.create_all()
            flask_app.extensions[CATALOG_EXTENSION].invalidate()
            print('Database has been reset!')

    flask_app.cli.add_command(db_reset_command)

    return flask_app
