from flask import Flask, jsonify
from flask_sqlalchemy import SQLAlchemy
from flask_login import LoginManager
from flask_cors import CORS
from flask_migrate import Migrate
from flask_socketio import SocketIO
from pydantic import ValidationError as PydanticValidationError
import json
import click
from config import Config

db = SQLAlchemy()
login_manager = LoginManager()
migrate = Migrate()
socketio = SocketIO(async_mode=None)

ADMIN_HEADER = 'X-Admin-Id'


def get_game_service():
    """Return the GameService built for the current app."""
    from flask import current_app
    return current_app.extensions['quizblast']


def _build_store(flask_app):
    if flask_app.config.get('GAME_STORE', 'sql') == 'memory':
        from quizblast.services.games.store import InMemoryStore
        return InMemoryStore()
    from quizblast.services.games.sql_store import SqlSessionStore
    return SqlSessionStore()


def create_app(config_class=Config):
    flask_app = Flask(__name__)
    flask_app.config.from_object(config_class)
    allowed_origins = flask_app.config.get('CORS_ORIGINS') or []

    db.init_app(flask_app)
    login_manager.init_app(flask_app)
    migrate.init_app(flask_app, db)
    CORS(flask_app, supports_credentials=True, origins=allowed_origins)

    # Initialize Socket.IO after app is created
    socketio.init_app(flask_app, cors_allowed_origins=allowed_origins)

    # One game service per app, shared by routes, socket handlers and timers
    from quizblast.services.games import GameService
    from quizblast.services.games.scheduler import question_timer_listener
    from quizblast.socketio_events import broadcast_state, register_socketio_handlers

    store = _build_store(flask_app)
    service = GameService.from_config(store, flask_app.config)
    store.subscribe(broadcast_state)
    store.subscribe(question_timer_listener(flask_app))
    flask_app.extensions['quizblast'] = service

    from quizblast.main import main
    flask_app.register_blueprint(main)

    from quizblast.api.quizzes import quizzes
    flask_app.register_blueprint(quizzes, url_prefix='/api/quizzes')

    from quizblast.api.games import games
    flask_app.register_blueprint(games, url_prefix='/api/games')

    register_socketio_handlers(testing=flask_app.config.get('TESTING', False))

    from quizblast.services.games.errors import GameError

    @flask_app.errorhandler(GameError)
    def handle_game_error(exc):
        flask_app.logger.info(f"[rejected] {type(exc).__name__}: {exc.message}")
        return jsonify(exc.to_dict()), exc.status_code

    @flask_app.errorhandler(PydanticValidationError)
    def handle_content_error(exc):
        return jsonify({'error': 'Invalid quiz content', 'details': json.loads(exc.json(include_url=False))}), 400

    # Admin identity comes from the identity provider in front of the API
    from quizblast.models import Admin

    @login_manager.request_loader
    def load_admin_from_request(req):
        external_id = (req.headers.get(ADMIN_HEADER) or '').strip()
        if not external_id:
            return None
        return Admin.get_or_create(external_id)

    @login_manager.unauthorized_handler
    def unauthorized():
        return jsonify({'error': 'Admin identity required'}), 401

    @click.command('db-reset')
    def db_reset_command():
        """Drops, recreates, and seeds the database."""
        from quizblast.models import Quiz
        from quizblast.services.games.content import Quiz as QuizContent
        with flask_app.app_context():
            db.drop_all()
            db.create_all()

            admin = Admin(external_id='demo-admin', display_name='Demo Host')
            db.session.add(admin)
            db.session.flush()

            demo = QuizContent.model_validate({
                'title': 'Solar System Warm-up',
                'questions': [
                    {
                        'kind': 'multiple-choice',
                        'text': 'Which planet is closest to the Sun?',
                        'answers': [
                            {'text': 'Mercury', 'is_correct': True},
                            {'text': 'Venus'},
                            {'text': 'Earth'},
                            {'text': 'Mars'},
                        ],
                    },
                    {
                        'kind': 'ordering',
                        'text': 'Order these planets from the Sun outwards',
                        'time_limit': 30,
                        'answers': [
                            {'text': 'Earth', 'target_position': 0},
                            {'text': 'Jupiter', 'target_position': 1},
                            {'text': 'Saturn', 'target_position': 2},
                            {'text': 'Neptune', 'target_position': 3},
                        ],
                    },
                ],
            })
            quiz = Quiz(owner_id=admin.id)
            quiz.set_content(demo)
            db.session.add(quiz)

            db.session.commit()
            print('Database has been reset and seeded!')

    flask_app.cli.add_command(db_reset_command)

    return flask_app
