"""SQLAlchemy-backed session store.

Sessions, players and submissions live in the application database so every
worker process sees the same game. Progress updates are a single UPDATE on
the game row; submissions rely on the (player, question) unique constraint
so a second answer can never be scored twice.
"""
import json
import logging
from contextlib import contextmanager
from typing import List, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from quizblast import db
from quizblast import models
from .errors import CollaboratorError, DuplicateSubmission, SessionNotFound, StaleStateError
from .progression import SUBMISSION_STAGES
from .scoring import apply_to_player
from .state import GameSession, PlayerState, Submission
from .store import EVENT_ANSWER_SUBMITTED, EVENT_GAME_CREATED, EVENT_PLAYER_JOINED, SessionStore

logger = logging.getLogger(__name__)


def _player_state(player: models.Player) -> PlayerState:
    return PlayerState(
        id=player.id,
        nickname=player.nickname,
        score=player.score or 0,
        streak=player.streak or 0,
        joined_at=player.joined_at or 0.0,
        token=player.token or '',
    )


def _submission_state(row: models.Submission) -> Submission:
    return Submission(
        player_id=row.player_id,
        question_index=row.question_index,
        question_id=row.question_key,
        answer_id=row.answer_key,
        answer_order=row.decoded_order(),
        elapsed_seconds=row.elapsed_seconds,
        is_correct=bool(row.is_correct),
        points_earned=row.points_earned,
        correct_ratio=row.correct_ratio,
        submitted_at=row.submitted_at,
    )


def _session_state(game: models.Game) -> GameSession:
    return GameSession(
        game_code=game.game_code,
        quiz=game.quiz_content(),
        host_id=game.host_id,
        status=game.status,
        stage=game.stage,
        current_question_index=game.current_question_index,
        question_started_at=game.question_started_at,
        created_at=game.created_at or 0.0,
        ended_at=game.ended_at,
        quiz_ref=game.quiz_id,
        players=[_player_state(p) for p in game.players],
    )


class SqlSessionStore(SessionStore):

    @contextmanager
    def _transaction(self, what: str):
        try:
            yield
            db.session.commit()
        except IntegrityError:
            db.session.rollback()
            raise
        except SQLAlchemyError as exc:
            db.session.rollback()
            logger.error(f"[db-error] {what}: {exc}")
            raise CollaboratorError('The game could not be saved, please try again') from exc

    def _game(self, code: str) -> models.Game:
        game = models.Game.query.filter_by(game_code=code).first()
        if game is None:
            raise SessionNotFound(f'Game {code} not found')
        return game

    def code_in_use(self, code: str) -> bool:
        return db.session.query(models.Game.id).filter_by(game_code=code).first() is not None

    def add_session(self, session: GameSession) -> GameSession:
        game = models.Game(
            game_code=session.game_code,
            quiz_id=session.quiz_ref,
            host_id=session.host_id,
            status=session.status,
            stage=session.stage,
            current_question_index=session.current_question_index,
            created_at=session.created_at,
            quiz_snapshot=session.quiz.model_dump_json(),
        )
        with self._transaction('add_session'):
            db.session.add(game)
        stored = _session_state(game)
        self._publish(EVENT_GAME_CREATED, stored)
        return stored

    def get_session(self, code: str) -> Optional[GameSession]:
        game = models.Game.query.filter_by(game_code=code).first()
        return _session_state(game) if game else None

    def get_session_for_player(self, player_id) -> Optional[GameSession]:
        player = db.session.get(models.Player, player_id)
        return _session_state(player.game) if player else None

    def add_player(self, code: str, nickname: str, now: float, token: str = '') -> PlayerState:
        game = self._game(code)
        player = models.Player(nickname=nickname, game_id=game.id, joined_at=now, token=token or None)
        with self._transaction('add_player'):
            db.session.add(player)
        state = _player_state(player)
        self._publish(EVENT_PLAYER_JOINED, self.get_session(code))
        return state

    def update_progress(self, session: GameSession, event: str, expected_stage: str, expected_index: int) -> None:
        with self._transaction('update_progress'):
            updated = models.Game.query.filter_by(
                game_code=session.game_code,
                stage=expected_stage,
                current_question_index=expected_index,
            ).update(
                {
                    'stage': session.stage,
                    'status': session.status,
                    'current_question_index': session.current_question_index,
                    'question_started_at': session.question_started_at,
                    'ended_at': session.ended_at,
                },
                synchronize_session='fetch',
            )
        if not updated:
            if not self.code_in_use(session.game_code):
                raise SessionNotFound(f'Game {session.game_code} not found')
            raise StaleStateError('The game has moved on since this action was requested')
        self._publish(event, self.get_session(session.game_code))

    def get_submission(self, player_id, question_index: int) -> Optional[Submission]:
        row = models.Submission.query.filter_by(player_id=player_id, question_index=question_index).first()
        return _submission_state(row) if row else None

    def record_submission(self, code: str, submission: Submission) -> PlayerState:
        # Lock the game row so a host transition cannot land between this check and the insert
        game = (
            models.Game.query.filter_by(game_code=code)
            .with_for_update()
            .populate_existing()
            .first()
        )
        if game is None:
            db.session.rollback()
            raise SessionNotFound(f'Game {code} not found')
        if game.stage not in SUBMISSION_STAGES or game.current_question_index != submission.question_index:
            db.session.rollback()
            raise StaleStateError('Answers are not being accepted right now')
        player = models.Player.query.filter_by(id=submission.player_id, game_id=game.id).first()
        if player is None:
            db.session.rollback()
            raise SessionNotFound(f'Player {submission.player_id} is not in game {code}')
        row = models.Submission(
            game_id=game.id,
            player_id=player.id,
            question_index=submission.question_index,
            question_key=submission.question_id,
            answer_key=submission.answer_id,
            answer_order=json.dumps(submission.answer_order) if submission.answer_order is not None else None,
            elapsed_seconds=submission.elapsed_seconds,
            is_correct=submission.is_correct,
            points_earned=submission.points_earned,
            correct_ratio=submission.correct_ratio,
            submitted_at=submission.submitted_at,
        )
        state = _player_state(player)
        apply_to_player(state, submission)
        try:
            with self._transaction('record_submission'):
                db.session.add(row)
                player.score = state.score
                player.streak = state.streak
        except IntegrityError:
            existing = self.get_submission(submission.player_id, submission.question_index)
            if existing is None:
                raise
            raise DuplicateSubmission(existing)
        self._publish(EVENT_ANSWER_SUBMITTED, self.get_session(code))
        return state

    def list_submissions(self, code: str, question_index: Optional[int] = None) -> List[Submission]:
        game = self._game(code)
        query = models.Submission.query.filter_by(game_id=game.id)
        if question_index is not None:
            query = query.filter_by(question_index=question_index)
        return [_submission_state(row) for row in query.order_by(models.Submission.id).all()]
