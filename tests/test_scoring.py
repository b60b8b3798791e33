import pytest

from quizblast.services.games.content import Question
from quizblast.services.games.scoring import (
    apply_to_player,
    clamp_elapsed,
    round_half_up,
    score,
    time_bonus,
)
from quizblast.services.games.state import AnswerChoice, PlayerState


def _mc(points=1000, time_limit=20):
    return Question.model_validate({
        'id': 'q1',
        'kind': 'multiple-choice',
        'text': 'Capital of France?',
        'time_limit': time_limit,
        'points': points,
        'answers': [
            {'id': 'paris', 'text': 'Paris', 'is_correct': True},
            {'id': 'rome', 'text': 'Rome'},
        ],
    })


def _ordering(points=1000, time_limit=20):
    return Question.model_validate({
        'id': 'q2',
        'kind': 'ordering',
        'text': 'Alphabetical order',
        'time_limit': time_limit,
        'points': points,
        # Authored out of order on purpose; the target positions decide
        'answers': [
            {'id': 'C', 'text': 'C', 'target_position': 2},
            {'id': 'A', 'text': 'A', 'target_position': 0},
            {'id': 'D', 'text': 'D', 'target_position': 3},
            {'id': 'B', 'text': 'B', 'target_position': 1},
        ],
    })


def test_correct_answer_with_time_bonus():
    result = score(_mc(), AnswerChoice(answer_id='paris'), 5)
    assert result.is_correct
    assert result.time_bonus == 0.75
    assert result.points_earned == 875


def test_wrong_and_unknown_answers_score_nothing():
    wrong = score(_mc(), AnswerChoice(answer_id='rome'), 1)
    unknown = score(_mc(), AnswerChoice(answer_id='berlin'), 1)
    missing = score(_mc(), AnswerChoice(), 1)
    for result in (wrong, unknown, missing):
        assert not result.is_correct
        assert result.points_earned == 0


@pytest.mark.parametrize('elapsed', [0, 0.4, 3, 10, 19.9, 20])
def test_multiple_choice_points_positive_iff_correct(elapsed):
    right = score(_mc(), AnswerChoice(answer_id='paris'), elapsed)
    wrong = score(_mc(), AnswerChoice(answer_id='rome'), elapsed)
    assert right.points_earned > 0 and right.is_correct
    assert wrong.points_earned == 0 and not wrong.is_correct


def test_elapsed_is_clamped_to_the_time_limit():
    assert clamp_elapsed(-3, 20) == 0.0
    assert clamp_elapsed(45, 20) == 20.0
    assert time_bonus(20, -3) == 1.0
    assert time_bonus(20, 45) == 0.0
    # clock skew never pushes past the full points or below half
    assert score(_mc(), AnswerChoice(answer_id='paris'), -10).points_earned == 1000
    assert score(_mc(), AnswerChoice(answer_id='paris'), 500).points_earned == 500


def test_time_bonus_never_increases_with_elapsed_time():
    samples = [time_bonus(30, t / 4) for t in range(-20, 160)]
    assert all(0.0 <= b <= 1.0 for b in samples)
    assert all(later <= earlier for earlier, later in zip(samples, samples[1:]))


def test_rounding_is_half_up():
    assert round_half_up(875.5) == 876
    assert round_half_up(2.5) == 3
    # 5 points at zero bonus is exactly 2.5
    assert score(_mc(points=5, time_limit=10), AnswerChoice(answer_id='paris'), 10).points_earned == 3


def test_ordering_partial_credit():
    result = score(_ordering(), AnswerChoice(answer_order=['A', 'C', 'B', 'D']), 5)
    assert result.correct_ratio == 0.5
    assert not result.is_correct
    assert result.points_earned == round_half_up(1000 * 0.5 * 0.875) == 438


def test_ordering_exact_match_is_correct():
    result = score(_ordering(), AnswerChoice(answer_order=['A', 'B', 'C', 'D']), 0)
    assert result.is_correct
    assert result.correct_ratio == 1.0
    assert result.points_earned == 1000


def test_ordering_fully_reversed_earns_nothing():
    result = score(_ordering(), AnswerChoice(answer_order=['D', 'C', 'B', 'A']), 0)
    assert result.correct_ratio == 0.0
    assert result.points_earned == 0


def test_apply_to_player_tracks_streaks():
    player = PlayerState(id=1, nickname='Ada')
    apply_to_player(player, score(_mc(), AnswerChoice(answer_id='paris'), 0))
    apply_to_player(player, score(_mc(), AnswerChoice(answer_id='paris'), 10))
    assert player.streak == 2
    assert player.score == 1000 + 750

    apply_to_player(player, score(_mc(), AnswerChoice(answer_id='rome'), 0))
    assert player.streak == 0
    assert player.score == 1750


def test_partial_ordering_credit_leaves_score_and_breaks_streak():
    player = PlayerState(id=1, nickname='Ada', score=100, streak=3)
    result = score(_ordering(), AnswerChoice(answer_order=['A', 'C', 'B', 'D']), 5)
    apply_to_player(player, result)
    assert result.points_earned == 438
    assert player.score == 100
    assert player.streak == 0

    apply_to_player(player, score(_ordering(), AnswerChoice(answer_order=['A', 'B', 'C', 'D']), 0))
    assert player.score == 1100
    assert player.streak == 1
