from flask import Blueprint, jsonify, request, current_app
from flask_login import login_required, current_user
from quizblast import get_game_service
from quizblast.models import Quiz
from quizblast.services.games.errors import PermissionDenied, SessionNotFound, ValidationError
import time


games = Blueprint('games', __name__)

_last_controller_action: dict[str, float] = {}


def _debounced(action: str, game_code: str) -> bool:
    try:
        debounce_ms = int(current_app.config.get('CONTROLLER_DEBOUNCE_MS', 0))
    except (TypeError, ValueError):
        debounce_ms = 0
    if debounce_ms <= 0:
        return False
    key = f"{action}:{game_code.upper()}:{current_user.id}"
    now = time.time() * 1000.0
    last = _last_controller_action.get(key, 0)
    if now - last < debounce_ms:
        return True
    _last_controller_action[key] = now
    return False


def _int_field(data: dict, name: str) -> int:
    value = data.get(name)
    if isinstance(value, bool):
        raise ValidationError(f'{name} must be an integer')
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(f'{name} must be an integer')


def _game_view(session) -> dict:
    payload = session.to_dict()
    payload['remaining_seconds'] = get_game_service().remaining_seconds(session)
    return payload


@games.route('/create', methods=['POST'])
@login_required
def create_game():
    data = request.get_json(silent=True) or {}
    quiz_id = _int_field(data, 'quiz_id')
    quiz = Quiz.query.filter_by(id=quiz_id, owner_id=current_user.id).first()
    if quiz is None:
        raise SessionNotFound('Quiz not found')
    session = get_game_service().create_session(quiz.to_content(), host_id=current_user.id, quiz_ref=quiz.id)
    return jsonify({
        'message': 'New game created!',
        'game_code': session.game_code,
        'game': _game_view(session),
    }), 201


@games.route('/join', methods=['POST'])
def join_game():
    data = request.get_json(silent=True) or {}
    game_code = data.get('game_code')
    nickname = data.get('nickname')
    if not all([game_code, nickname]):
        return jsonify({'error': 'Game code and nickname are required'}), 400
    if not isinstance(game_code, str) or not isinstance(nickname, str):
        raise ValidationError('Game code and nickname must be text')
    player = get_game_service().join_session(game_code, nickname)
    payload = player.to_dict()
    payload['game_code'] = game_code.strip().upper()
    # Only the joining device gets this; it must accompany every answer
    payload['player_token'] = player.token
    return jsonify(payload), 201


@games.route('/<string:game_code>/state', methods=['GET'])
def get_game_state(game_code):
    session = get_game_service().get_session(game_code)
    return jsonify(_game_view(session))


def _host_action(game_code: str, action: str, handler):
    if _debounced(action, game_code):
        return jsonify({'message': 'debounced'}), 202
    session = handler(game_code, host_id=current_user.id)
    return jsonify(_game_view(session))


@games.route('/<string:game_code>/start', methods=['POST'])
@login_required
def start_game(game_code):
    return _host_action(game_code, 'start', get_game_service().start)


@games.route('/<string:game_code>/close', methods=['POST'])
@login_required
def close_question(game_code):
    return _host_action(game_code, 'close', get_game_service().close_question)


@games.route('/<string:game_code>/leaderboard', methods=['POST'])
@login_required
def show_leaderboard(game_code):
    return _host_action(game_code, 'leaderboard', get_game_service().show_leaderboard)


@games.route('/<string:game_code>/next', methods=['POST'])
@login_required
def next_question(game_code):
    return _host_action(game_code, 'next', get_game_service().next_question)


@games.route('/<string:game_code>/end', methods=['POST'])
@login_required
def end_game(game_code):
    return _host_action(game_code, 'end', get_game_service().end_session)


@games.route('/<string:game_code>/answers', methods=['POST'])
def submit_answer(game_code):
    data = request.get_json(silent=True) or {}
    player_id = _int_field(data, 'player_id')
    question_index = _int_field(data, 'question_index')
    player_token = data.get('player_token')
    if not player_token or not isinstance(player_token, str):
        raise PermissionDenied('player_token is required')
    outcome = get_game_service().submit_answer(
        player_id,
        question_index,
        answer_id=data.get('answer_id'),
        answer_order=data.get('answer_order'),
        game_code=game_code,
        player_token=player_token,
    )
    return jsonify(outcome.to_dict())


@games.route('/<string:game_code>/leaderboard', methods=['GET'])
def get_leaderboard(game_code):
    default_limit = int(current_app.config.get('LEADERBOARD_SIZE', 5))
    limit = request.args.get('limit', default_limit, type=int)
    rows = get_game_service().leaderboard(game_code, limit=limit if limit and limit > 0 else None)
    return jsonify({'game_code': game_code.upper(), 'leaderboard': rows})


@games.route('/<string:game_code>/questions/<int:question_index>/summary', methods=['GET'])
@login_required
def question_summary(game_code, question_index):
    return jsonify(get_game_service().question_summary(game_code, question_index, host_id=current_user.id))
