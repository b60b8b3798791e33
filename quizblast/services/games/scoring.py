import logging
import math
from typing import NamedTuple, Optional, Sequence

from .content import MULTIPLE_CHOICE, Question
from .state import AnswerChoice, PlayerState

logger = logging.getLogger(__name__)


class ScoreResult(NamedTuple):
    is_correct: bool
    points_earned: int
    correct_ratio: float
    time_bonus: float


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def clamp_elapsed(elapsed_seconds: float, time_limit: int) -> float:
    return min(max(float(elapsed_seconds), 0.0), float(time_limit))


def time_bonus(time_limit: int, elapsed_seconds: float) -> float:
    """Fraction of the time limit left when the answer came in, in [0, 1]."""
    if time_limit <= 0:
        return 0.0
    return (time_limit - clamp_elapsed(elapsed_seconds, time_limit)) / time_limit


def ordering_ratio(question: Question, submitted_order: Optional[Sequence[str]]) -> float:
    canonical = question.canonical_order()
    if not canonical:
        return 0.0
    submitted = list(submitted_order or [])
    matches = sum(1 for i, answer_id in enumerate(canonical) if i < len(submitted) and submitted[i] == answer_id)
    return matches / len(canonical)


def score(question: Question, choice: AnswerChoice, elapsed_seconds: float) -> ScoreResult:
    """Score one answer to ``question`` given ``elapsed_seconds`` since it opened.

    Multiple-choice answers earn points only when correct. Ordering answers
    earn a share of the points for every position placed correctly, and are
    correct only when the whole order matches.
    """
    bonus = time_bonus(question.time_limit, elapsed_seconds)
    speed = 0.5 + 0.5 * bonus

    if question.kind == MULTIPLE_CHOICE:
        answer = question.answer(choice.answer_id)
        is_correct = bool(answer and answer.is_correct)
        ratio = 1.0 if is_correct else 0.0
        points = round_half_up(question.points * speed) if is_correct else 0
    else:
        ratio = ordering_ratio(question, choice.answer_order)
        is_correct = list(choice.answer_order or []) == question.canonical_order()
        points = round_half_up(question.points * ratio * speed)

    logger.debug(
        f"[score] question={question.id} kind={question.kind} elapsed={elapsed_seconds:.3f} "
        f"bonus={bonus:.3f} ratio={ratio:.3f} correct={is_correct} points={points}"
    )
    return ScoreResult(is_correct, points, ratio, bonus)


def apply_to_player(player: PlayerState, result) -> None:
    """Credit a correct answer to the player, or reset their streak.

    ``result`` is a ScoreResult or a recorded Submission. Partial ordering
    credit stays on the submission; only a correct answer changes the score.
    """
    if result.is_correct:
        player.score += result.points_earned
        player.streak += 1
    else:
        player.streak = 0
