"""Stage pipeline for a live game.

lobby -> question_active(i) -> question_results(i) -> [leaderboard(i)]
      -> question_active(i+1) -> ... -> finished

Each transition validates the current stage, mutates the session in place
and returns the event name the stores broadcast. Nothing here touches
storage or clocks; callers pass ``now`` in epoch seconds.
"""
import logging
import math

from .errors import StaleStateError, ValidationError
from .state import (
    STAGE_FINISHED,
    STAGE_LEADERBOARD,
    STAGE_LOBBY,
    STAGE_QUESTION_ACTIVE,
    STAGE_QUESTION_RESULTS,
    STATUS_FINISHED,
    STATUS_IN_PROGRESS,
    GameSession,
)

logger = logging.getLogger(__name__)

EVENT_QUESTION_STARTED = 'question_started'
EVENT_QUESTION_CLOSED = 'question_closed'
EVENT_LEADERBOARD = 'leaderboard_shown'
EVENT_FINISHED = 'game_finished'
EVENT_ENDED = 'game_ended'

SUBMISSION_STAGES = (STAGE_QUESTION_ACTIVE, STAGE_QUESTION_RESULTS)


def _require_stage(session: GameSession, *stages: str) -> None:
    if session.stage not in stages:
        raise StaleStateError(
            f"Cannot do that while the game is in '{session.stage}' (expected {', '.join(stages)})"
        )


def _open_question(session: GameSession, index: int, now: float) -> None:
    session.current_question_index = index
    session.stage = STAGE_QUESTION_ACTIVE
    session.status = STATUS_IN_PROGRESS
    session.question_started_at = now


def _finish(session: GameSession, now: float) -> None:
    session.stage = STAGE_FINISHED
    session.status = STATUS_FINISHED
    session.ended_at = now


def start(session: GameSession, now: float, min_players: int = 1) -> str:
    _require_stage(session, STAGE_LOBBY)
    if session.question_count == 0:
        raise ValidationError('Add at least one question before starting the game')
    if not session.players:
        raise ValidationError('Wait for at least one player to join before starting')
    if len(session.players) < min_players:
        raise ValidationError(f'At least {min_players} players are required to start')
    _open_question(session, 0, now)
    logger.info(
        f"[game-start] game={session.game_code} players={len(session.players)} questions={session.question_count}"
    )
    return EVENT_QUESTION_STARTED


def close_question(session: GameSession, now: float) -> str:
    _require_stage(session, STAGE_QUESTION_ACTIVE)
    session.stage = STAGE_QUESTION_RESULTS
    logger.info(f"[question-close] game={session.game_code} index={session.current_question_index}")
    return EVENT_QUESTION_CLOSED


def show_leaderboard(session: GameSession) -> str:
    _require_stage(session, STAGE_QUESTION_RESULTS)
    session.stage = STAGE_LEADERBOARD
    return EVENT_LEADERBOARD


def next_question(session: GameSession, now: float) -> str:
    _require_stage(session, STAGE_QUESTION_RESULTS, STAGE_LEADERBOARD)
    prev_index = session.current_question_index
    if prev_index + 1 < session.question_count:
        _open_question(session, prev_index + 1, now)
        logger.info(f"[next-question] game={session.game_code} advance {prev_index} -> {prev_index + 1}")
        return EVENT_QUESTION_STARTED
    _finish(session, now)
    logger.info(f"[finish] game={session.game_code} finished at index={prev_index}")
    return EVENT_FINISHED


def end(session: GameSession, now: float) -> str:
    if session.stage == STAGE_FINISHED:
        raise StaleStateError('Game has already finished')
    _finish(session, now)
    logger.info(f"[end] game={session.game_code} ended by host at index={session.current_question_index}")
    return EVENT_ENDED


def remaining_seconds(session: GameSession, now: float) -> int:
    """Whole seconds left on the current question, measured from the recorded start."""
    question = session.current_question
    if session.stage != STAGE_QUESTION_ACTIVE or question is None or session.question_started_at is None:
        return 0
    elapsed = max(0.0, now - session.question_started_at)
    return max(0, question.time_limit - int(math.floor(elapsed)))


def elapsed_seconds(session: GameSession, now: float) -> float:
    if session.question_started_at is None:
        return 0.0
    return now - session.question_started_at


def expire(session: GameSession, now: float) -> bool:
    """Close the active question once its countdown has reached zero."""
    if session.stage != STAGE_QUESTION_ACTIVE or remaining_seconds(session, now) > 0:
        return False
    close_question(session, now)
    return True


def accepts_submissions(session: GameSession, question_index: int) -> bool:
    return session.stage in SUBMISSION_STAGES and question_index == session.current_question_index
