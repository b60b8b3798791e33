"""Runtime state of live games: sessions, players and submissions."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional

from .content import Question, Quiz

STATUS_LOBBY = 'lobby'
STATUS_IN_PROGRESS = 'in_progress'
STATUS_FINISHED = 'finished'

STAGE_LOBBY = 'lobby'
STAGE_QUESTION_ACTIVE = 'question_active'
STAGE_QUESTION_RESULTS = 'question_results'
STAGE_LEADERBOARD = 'leaderboard'
STAGE_FINISHED = 'finished'

# Stages in which the correct answers may be shown to players
REVEAL_STAGES = (STAGE_QUESTION_RESULTS, STAGE_LEADERBOARD, STAGE_FINISHED)


@dataclass
class PlayerState:
    id: int
    nickname: str
    score: int = 0
    streak: int = 0
    joined_at: float = 0.0
    # Secret returned only to the joining device; never part of a public view
    token: str = field(default='', repr=False)

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'nickname': self.nickname,
            'score': self.score,
            'streak': self.streak,
        }


@dataclass(frozen=True)
class AnswerChoice:
    """What a player picked: one answer id, or a full order of answer ids."""
    answer_id: Optional[str] = None
    answer_order: Optional[List[str]] = None


@dataclass
class Submission:
    player_id: int
    question_index: int
    question_id: str
    answer_id: Optional[str]
    answer_order: Optional[List[str]]
    elapsed_seconds: float
    is_correct: bool
    points_earned: int
    correct_ratio: float
    submitted_at: float

    def to_dict(self) -> dict:
        return {
            'player_id': self.player_id,
            'question_index': self.question_index,
            'question_id': self.question_id,
            'answer_id': self.answer_id,
            'answer_order': self.answer_order,
            'elapsed_seconds': round(self.elapsed_seconds, 3),
            'is_correct': self.is_correct,
            'points_earned': self.points_earned,
            'correct_ratio': self.correct_ratio,
        }


@dataclass
class GameSession:
    game_code: str
    quiz: Quiz
    host_id: Optional[int] = None
    status: str = STATUS_LOBBY
    stage: str = STAGE_LOBBY
    current_question_index: int = -1
    question_started_at: Optional[float] = None
    created_at: float = 0.0
    ended_at: Optional[float] = None
    quiz_ref: Optional[int] = None
    players: List[PlayerState] = field(default_factory=list)

    @property
    def is_active(self) -> bool:
        return self.status != STATUS_FINISHED

    @property
    def question_count(self) -> int:
        return self.quiz.question_count

    @property
    def current_question(self) -> Optional[Question]:
        return self.quiz.question(self.current_question_index)

    def player(self, player_id) -> Optional[PlayerState]:
        for p in self.players:
            if p.id == player_id:
                return p
        return None

    def to_dict(self) -> dict:
        question = self.current_question
        return {
            'game_code': self.game_code,
            'quiz_title': self.quiz.title,
            'status': self.status,
            'stage': self.stage,
            'current_question_index': self.current_question_index,
            'question_count': self.question_count,
            'question_started_at': self.question_started_at,
            'current_question': (
                question.public_dict(reveal=self.stage in REVEAL_STAGES) if question and self.stage != STAGE_LOBBY else None
            ),
            'players': [p.to_dict() for p in self.players],
        }
