import logging

from flask import Flask
from flask_sqlalchemy import SQLAlchemy
from flask_bcrypt import Bcrypt
from flask_login import LoginManager
from flask_cors import CORS
from flask_migrate import Migrate
from flask_socketio import SocketIO
import click
from config import Config

db = SQLAlchemy()
bcrypt = Bcrypt()
login_manager = LoginManager()
migrate = Migrate()
socketio = SocketIO(async_mode=None)


def _allowed_origins(app):
    return [o.strip() for o in (app.config.get('ALLOWED_ORIGINS') or '').split(',') if o.strip()]


def create_app(config_class=Config, ticker=None):
    """Build the Flask app and its game engine.

    ``ticker`` replaces the Socket.IO background ticker that drives question
    timers (tests pass one they can advance by hand).
    """
    flask_app = Flask(__name__)
    flask_app.config.from_object(config_class)
    flask_app.logger.setLevel(flask_app.config.get('LOG_LEVEL', 'INFO'))
    logging.getLogger('trivia').setLevel(flask_app.config.get('LOG_LEVEL', 'INFO'))

    allowed_origins = _allowed_origins(flask_app)
    db.init_app(flask_app)
    bcrypt.init_app(flask_app)
    login_manager.init_app(flask_app)
    migrate.init_app(flask_app, db)
    CORS(flask_app, supports_credentials=True, origins=allowed_origins)

    # Initialize Socket.IO after app is created
    socketio.init_app(flask_app, cors_allowed_origins=allowed_origins)

    # One engine per app: runtime cache and timers live as long as the process
    from trivia.services.games import GameCache, GameEngine, GameRepository, SocketIOTicker
    repository = GameRepository(
        passcode_attempts=flask_app.config.get('PASSCODE_RANDOM_ATTEMPTS', 64),
        passcode_lock_key=flask_app.config.get('PASSCODE_LOCK_KEY', 424242),
        default_time_to_think=flask_app.config.get('DEFAULT_TIME_TO_THINK_SEC', 60),
        default_time_to_answer=flask_app.config.get('DEFAULT_TIME_TO_ANSWER_SEC', 10),
    )
    if ticker is None:
        ticker = SocketIOTicker(socketio, flask_app, interval=flask_app.config.get('TIMER_TICK_SEC', 1.0))
    flask_app.extensions['game_repository'] = repository
    flask_app.extensions['game_engine'] = GameEngine(
        repository,
        GameCache(repository),
        ticker,
        default_time_to_answer=flask_app.config.get('DEFAULT_TIME_TO_ANSWER_SEC', 10),
    )

    # Import and register blueprints here
    from trivia.main import main
    flask_app.register_blueprint(main)

    from trivia.api.games import games
    flask_app.register_blueprint(games, url_prefix='/api/games')

    # Register Socket.IO event handlers
    from trivia.socketio_events import register_socketio_handlers
    register_socketio_handlers()

    # Flask-Login user loader
    from trivia.models import User

    @login_manager.user_loader
    def load_user(user_id):
        return db.session.get(User, int(user_id))

    @click.command('db-reset')
    def db_reset_command():
        """Drops, recreates, and seeds the database."""
        with flask_app.app_context():
            db.drop_all()
            db.create_all()

            # Seed a host with one demo game
            host = User(email='host@example.com')
            host.set_password('password')
            db.session.add(host)
            db.session.commit()

            game = repository.create_game(
                host_id=host.id,
                name='Demo Quiz',
                settings={'time_to_think_sec': 60, 'time_to_answer_sec': 10, 'can_appeal': True},
                rounds=[
                    {'round_number': n, 'name': f'Round {n}', 'questions': [
                        {'question_number': q, 'text': f'Question {n}.{q}', 'answer': f'Answer {n}.{q}'}
                        for q in (1, 2, 3)
                    ]}
                    for n in (1, 2)
                ],
                teams=[{'name': name} for name in ('Owls', 'Foxes', 'Badgers')],
            )
            print(f'Database has been reset and seeded! Demo game passcode: {game.passcode}')

    flask_app.cli.add_command(db_reset_command)

    return flask_app
