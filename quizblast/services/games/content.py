"""Quiz content: quizzes, questions and answers as authored by an admin.

Content objects are frozen pydantic models. A live session holds its own
validated copy, so editing the stored quiz never reaches a running game.
"""
from typing import List, Literal, Optional
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

MULTIPLE_CHOICE = 'multiple-choice'
ORDERING = 'ordering'

MIN_ANSWERS = 2
MAX_ANSWERS = 4
DEFAULT_TIME_LIMIT = 20
DEFAULT_POINTS = 1000


def _new_id() -> str:
    return uuid4().hex


def _require_text(value: str, what: str) -> str:
    value = value.strip()
    if not value:
        raise ValueError(f'{what} must not be empty')
    return value


class Answer(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=_new_id, min_length=1, max_length=64)
    text: str = Field(..., max_length=300)
    is_correct: bool = False
    target_position: Optional[int] = Field(default=None, ge=0)

    @field_validator('text')
    @classmethod
    def text_not_blank(cls, value: str) -> str:
        return _require_text(value, 'answer text')


class Question(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=_new_id, min_length=1, max_length=64)
    kind: Literal['multiple-choice', 'ordering'] = MULTIPLE_CHOICE
    text: str = Field(..., max_length=600)
    media_url: Optional[str] = Field(default=None, max_length=2048)
    time_limit: int = Field(default=DEFAULT_TIME_LIMIT, gt=0)
    points: int = Field(default=DEFAULT_POINTS, gt=0)
    answers: List[Answer] = Field(..., min_length=MIN_ANSWERS, max_length=MAX_ANSWERS)

    @field_validator('text')
    @classmethod
    def text_not_blank(cls, value: str) -> str:
        return _require_text(value, 'question text')

    @model_validator(mode='after')
    def check_answers(self) -> 'Question':
        ids = [a.id for a in self.answers]
        if len(set(ids)) != len(ids):
            raise ValueError('answer ids must be unique within a question')
        if self.kind == MULTIPLE_CHOICE:
            if not any(a.is_correct for a in self.answers):
                raise ValueError('multiple-choice questions need at least one correct answer')
        else:
            positions = [a.target_position for a in self.answers]
            if any(p is None for p in positions):
                raise ValueError('every ordering answer needs a target_position')
            if sorted(positions) != list(range(len(positions))):
                raise ValueError('ordering target positions must be 0..n-1 without gaps or repeats')
        return self

    def answer(self, answer_id: Optional[str]) -> Optional[Answer]:
        for a in self.answers:
            if a.id == answer_id:
                return a
        return None

    def canonical_order(self) -> List[str]:
        """Answer ids sorted by target position."""
        ranked = sorted(self.answers, key=lambda a: a.target_position if a.target_position is not None else 0)
        return [a.id for a in ranked]

    def public_dict(self, reveal: bool = False) -> dict:
        answers = []
        for a in self.answers:
            item = {'id': a.id, 'text': a.text}
            if reveal:
                if self.kind == MULTIPLE_CHOICE:
                    item['is_correct'] = a.is_correct
                else:
                    item['target_position'] = a.target_position
            answers.append(item)
        return {
            'id': self.id,
            'kind': self.kind,
            'text': self.text,
            'media_url': self.media_url,
            'time_limit': self.time_limit,
            'points': self.points,
            'answers': answers,
        }


class Quiz(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=_new_id, min_length=1, max_length=64)
    title: str = Field(..., max_length=120)
    questions: List[Question] = Field(default_factory=list, max_length=100)

    @field_validator('title')
    @classmethod
    def title_not_blank(cls, value: str) -> str:
        return _require_text(value, 'quiz title')

    @model_validator(mode='after')
    def unique_question_ids(self) -> 'Quiz':
        ids = [q.id for q in self.questions]
        if len(set(ids)) != len(ids):
            raise ValueError('question ids must be unique within a quiz')
        return self

    @property
    def question_count(self) -> int:
        return len(self.questions)

    def question(self, index: int) -> Optional[Question]:
        if 0 <= index < len(self.questions):
            return self.questions[index]
        return None
