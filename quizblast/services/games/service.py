"""Session and player registry for live games.

``GameService`` is built once per process around a store and a clock and
handed to the HTTP, Socket.IO and timer layers. It owns the rules for who
may join, who may drive a session and which submissions count.
"""
import hmac
import logging
import random
import secrets
import string
import time
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence

from . import progression
from .content import MULTIPLE_CHOICE, Quiz
from .errors import (
    DuplicateSubmission,
    PermissionDenied,
    SessionNotFound,
    StaleStateError,
    ValidationError,
)
from .scoring import score
from .state import AnswerChoice, GameSession, PlayerState, Submission, STAGE_LOBBY
from .store import SessionStore

logger = logging.getLogger(__name__)

JOIN_CODE_ALPHABET = string.ascii_uppercase + string.digits


@dataclass
class SubmissionOutcome:
    submission: Submission
    player: PlayerState
    already_answered: bool = False

    @property
    def is_correct(self) -> bool:
        return self.submission.is_correct

    @property
    def points_earned(self) -> int:
        return self.submission.points_earned

    def to_dict(self) -> dict:
        return {
            'is_correct': self.submission.is_correct,
            'points_earned': self.submission.points_earned,
            'correct_ratio': self.submission.correct_ratio,
            'question_index': self.submission.question_index,
            'already_answered': self.already_answered,
            'player': self.player.to_dict(),
        }


class GameService:

    def __init__(
        self,
        store: SessionStore,
        clock: Callable[[], float] = time.time,
        join_code_length: int = 6,
        min_players: int = 1,
        nickname_min_length: int = 2,
        nickname_max_length: int = 15,
    ) -> None:
        self.store = store
        self.clock = clock
        self.join_code_length = join_code_length
        self.min_players = min_players
        self.nickname_min_length = nickname_min_length
        self.nickname_max_length = nickname_max_length

    @classmethod
    def from_config(cls, store: SessionStore, config, clock: Callable[[], float] = time.time) -> 'GameService':
        return cls(
            store,
            clock=clock,
            join_code_length=int(config.get('JOIN_CODE_LENGTH', 6)),
            min_players=int(config.get('MIN_PLAYERS', 1)),
            nickname_min_length=int(config.get('NICKNAME_MIN_LENGTH', 2)),
            nickname_max_length=int(config.get('NICKNAME_MAX_LENGTH', 15)),
        )

    # ---- Sessions ----

    def generate_join_code(self) -> str:
        """Generate a unique, short join code."""
        while True:
            code = ''.join(random.choices(JOIN_CODE_ALPHABET, k=self.join_code_length))
            if not self.store.code_in_use(code):
                return code

    def create_session(self, quiz: Quiz, host_id=None, quiz_ref=None) -> GameSession:
        if quiz.question_count == 0:
            raise ValidationError('Add at least one question before hosting this quiz')
        session = GameSession(
            game_code=self.generate_join_code(),
            quiz=quiz,
            host_id=host_id,
            created_at=self.clock(),
            quiz_ref=quiz_ref,
        )
        session = self.store.add_session(session)
        logger.info(f"[game-create] game={session.game_code} quiz={quiz.id} host={host_id}")
        return session

    def get_session(self, code: str) -> GameSession:
        session = self.store.get_session(_normalize_code(code))
        if session is None:
            raise SessionNotFound('Game not found')
        return session

    def join_session(self, code: str, nickname: str) -> PlayerState:
        session = self.store.get_session(_normalize_code(code))
        if session is None or not session.is_active:
            raise SessionNotFound('No active game with this code')
        if session.stage != STAGE_LOBBY:
            raise StaleStateError('Game already started')
        nickname = (nickname or '').strip()
        if not (self.nickname_min_length <= len(nickname) <= self.nickname_max_length):
            raise ValidationError(
                f'Nickname must be {self.nickname_min_length}-{self.nickname_max_length} characters'
            )
        if any(p.nickname.lower() == nickname.lower() for p in session.players):
            raise ValidationError('That nickname is already taken in this game')
        player = self.store.add_player(session.game_code, nickname, self.clock(), secrets.token_urlsafe(24))
        logger.info(f"[join] game={session.game_code} player={player.id} nickname={nickname!r}")
        return player

    # ---- Host actions ----

    def _host_session(self, code: str, host_id) -> GameSession:
        session = self.get_session(code)
        if host_id is not None and session.host_id is not None and session.host_id != host_id:
            raise PermissionDenied('Only the host may control this game')
        return session

    def _advance(self, session: GameSession, transition) -> GameSession:
        """Apply ``transition`` and save it only if nobody moved the game meanwhile."""
        expected_stage, expected_index = session.stage, session.current_question_index
        event = transition(session)
        self.store.update_progress(session, event, expected_stage, expected_index)
        return session

    def start(self, code: str, host_id=None) -> GameSession:
        session = self._host_session(code, host_id)
        return self._advance(session, lambda s: progression.start(s, self.clock(), min_players=self.min_players))

    def close_question(self, code: str, host_id=None) -> GameSession:
        session = self._host_session(code, host_id)
        return self._advance(session, lambda s: progression.close_question(s, self.clock()))

    def show_leaderboard(self, code: str, host_id=None) -> GameSession:
        session = self._host_session(code, host_id)
        return self._advance(session, progression.show_leaderboard)

    def next_question(self, code: str, host_id=None) -> GameSession:
        session = self._host_session(code, host_id)
        return self._advance(session, lambda s: progression.next_question(s, self.clock()))

    def end_session(self, code: str, host_id=None) -> GameSession:
        session = self._host_session(code, host_id)
        return self._advance(session, lambda s: progression.end(s, self.clock()))

    def expire_question(self, code: str, expected_index: int) -> bool:
        """Close question ``expected_index`` if it is still the one running and its time is up."""
        session = self.store.get_session(_normalize_code(code))
        if session is None or session.current_question_index != expected_index:
            return False
        expected_stage = session.stage
        if not progression.expire(session, self.clock()):
            return False
        try:
            self.store.update_progress(session, progression.EVENT_QUESTION_CLOSED, expected_stage, expected_index)
        except StaleStateError:
            logger.info(f"[expire-skip] game={session.game_code} index={expected_index} host moved on first")
            return False
        return True

    def remaining_seconds(self, session: GameSession) -> int:
        return progression.remaining_seconds(session, self.clock())

    # ---- Players ----

    def submit_answer(
        self,
        player_id,
        question_index: int,
        answer_id: Optional[str] = None,
        answer_order: Optional[Sequence[str]] = None,
        game_code: Optional[str] = None,
        player_token: Optional[str] = None,
    ) -> SubmissionOutcome:
        """Score and record one answer.

        ``player_token`` is the secret handed out at join; when given it must
        match the player's own token.
        """
        session = self.store.get_session_for_player(player_id)
        if session is None or (game_code is not None and session.game_code != _normalize_code(game_code)):
            raise SessionNotFound('Player not found')
        player = session.player(player_id)
        if player_token is not None and not hmac.compare_digest(player.token.encode(), player_token.encode()):
            raise PermissionDenied('That player token is not valid for this player')
        if not session.is_active:
            raise StaleStateError('Game has finished')
        if question_index != session.current_question_index:
            raise StaleStateError('That question is no longer open')

        existing = self.store.get_submission(player_id, question_index)
        if existing is not None:
            return SubmissionOutcome(existing, player, already_answered=True)

        if not progression.accepts_submissions(session, question_index):
            raise StaleStateError('Answers are not being accepted right now')

        question = session.current_question
        choice = _build_choice(question, answer_id, answer_order)
        now = self.clock()
        elapsed = progression.elapsed_seconds(session, now)
        result = score(question, choice, elapsed)
        submission = Submission(
            player_id=player_id,
            question_index=question_index,
            question_id=question.id,
            answer_id=choice.answer_id,
            answer_order=choice.answer_order,
            elapsed_seconds=elapsed,
            is_correct=result.is_correct,
            points_earned=result.points_earned,
            correct_ratio=result.correct_ratio,
            submitted_at=now,
        )
        try:
            player = self.store.record_submission(session.game_code, submission)
        except DuplicateSubmission as dup:
            # Lost a race with the same player's earlier request
            return SubmissionOutcome(dup.existing, session.player(player_id), already_answered=True)
        logger.info(
            f"[answer] game={session.game_code} player={player_id} index={question_index} "
            f"correct={result.is_correct} points={result.points_earned}"
        )
        return SubmissionOutcome(submission, player)

    # ---- Read models ----

    def leaderboard(self, code: str, limit: Optional[int] = None) -> List[dict]:
        session = self.get_session(code)
        ranked = sorted(session.players, key=lambda p: (-p.score, p.nickname.lower()))
        if limit is not None:
            ranked = ranked[:limit]
        return [dict(p.to_dict(), rank=i + 1) for i, p in enumerate(ranked)]

    def question_summary(self, code: str, question_index: int, host_id=None) -> dict:
        session = self._host_session(code, host_id)
        if session.stage == STAGE_LOBBY or not (0 <= question_index <= session.current_question_index):
            raise StaleStateError('That question has not been played yet')
        question = session.quiz.question(question_index)
        submissions = self.store.list_submissions(session.game_code, question_index)
        summary = {
            'question_index': question_index,
            'question_id': question.id,
            'kind': question.kind,
            'players': len(session.players),
            'submissions': len(submissions),
            'correct': sum(1 for s in submissions if s.is_correct),
        }
        if question.kind == MULTIPLE_CHOICE:
            counts = {a.id: 0 for a in question.answers}
            for s in submissions:
                if s.answer_id in counts:
                    counts[s.answer_id] += 1
            summary['answer_counts'] = counts
        else:
            ratios = [s.correct_ratio for s in submissions]
            summary['average_ratio'] = sum(ratios) / len(ratios) if ratios else 0.0
        return summary


def _normalize_code(code: Optional[str]) -> str:
    return (code or '').strip().upper()


def _build_choice(question, answer_id, answer_order) -> AnswerChoice:
    if question.kind == MULTIPLE_CHOICE:
        if not answer_id or not isinstance(answer_id, str):
            raise ValidationError('Pick an answer')
        # An id that is not one of the question's answers is recorded as no answer
        return AnswerChoice(answer_id=answer_id if question.answer(answer_id) else None)
    if not isinstance(answer_order, (list, tuple)):
        raise ValidationError('Submit the full order of answers')
    order = list(answer_order)
    if not all(isinstance(answer, str) for answer in order) or sorted(order) != sorted(a.id for a in question.answers):
        raise ValidationError('The submitted order must contain every answer exactly once')
    return AnswerChoice(answer_order=order)
