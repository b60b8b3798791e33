from flask import Blueprint, jsonify, request, current_app
from flask_login import login_required, current_user
from quizblast import db
from quizblast.models import Game, Quiz
from quizblast.services.games.content import Quiz as QuizContent
from quizblast.services.games.errors import SessionNotFound, StaleStateError


quizzes = Blueprint('quizzes', __name__)


def _own_quiz_or_404(quiz_id: int) -> Quiz:
    quiz = Quiz.query.filter_by(id=quiz_id, owner_id=current_user.id).first()
    if quiz is None:
        raise SessionNotFound('Quiz not found')
    return quiz


def _parse_content() -> QuizContent:
    data = request.get_json(silent=True) or {}
    return QuizContent.model_validate({
        'title': data.get('title', ''),
        'questions': data.get('questions') or [],
    })


@quizzes.route('', methods=['POST'])
@login_required
def create_quiz():
    parsed = _parse_content()
    quiz = Quiz(owner_id=current_user.id)
    quiz.set_content(parsed)
    db.session.add(quiz)
    db.session.commit()
    current_app.logger.info(f"[quiz-create] quiz={quiz.id} owner={current_user.id} questions={len(parsed.questions)}")
    return jsonify(quiz.to_dict()), 201


@quizzes.route('', methods=['GET'])
@login_required
def list_quizzes():
    own = Quiz.query.filter_by(owner_id=current_user.id).order_by(Quiz.created_at.desc()).all()
    return jsonify([
        {
            'id': q.id,
            'title': q.title,
            'question_count': len(q.questions),
            'created_at': q.created_at,
            'updated_at': q.updated_at,
        }
        for q in own
    ])


@quizzes.route('/<int:quiz_id>', methods=['GET'])
@login_required
def get_quiz(quiz_id):
    return jsonify(_own_quiz_or_404(quiz_id).to_dict())


@quizzes.route('/<int:quiz_id>', methods=['PUT'])
@login_required
def update_quiz(quiz_id):
    quiz = _own_quiz_or_404(quiz_id)
    if quiz.has_live_game():
        raise StaleStateError('This quiz is being played in a live game and cannot be edited')
    parsed = _parse_content()
    # Drop the old rows first so reused question/answer keys do not collide
    quiz.questions = []
    db.session.flush()
    quiz.set_content(parsed)
    db.session.commit()
    current_app.logger.info(f"[quiz-update] quiz={quiz.id} questions={len(parsed.questions)}")
    return jsonify(quiz.to_dict())


@quizzes.route('/<int:quiz_id>', methods=['DELETE'])
@login_required
def delete_quiz(quiz_id):
    quiz = _own_quiz_or_404(quiz_id)
    if quiz.has_live_game():
        raise StaleStateError('This quiz is being played in a live game and cannot be deleted')
    # Finished games keep their own snapshot of the content
    Game.query.filter_by(quiz_id=quiz.id).update({'quiz_id': None})
    db.session.delete(quiz)
    db.session.commit()
    current_app.logger.info(f"[quiz-delete] quiz={quiz_id}")
    return jsonify({'success': True})
