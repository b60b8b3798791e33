from quizblast import db
from flask_login import UserMixin
import json
import time

from quizblast.services.games import content


class Admin(UserMixin, db.Model):
    """Quiz author/host. Identity is vouched for by the identity provider."""
    __tablename__ = 'admin'
    id = db.Column(db.Integer, primary_key=True)
    external_id = db.Column(db.String(128), unique=True, nullable=False, index=True)
    display_name = db.Column(db.String(64), nullable=True)
    created_at = db.Column(db.Float, default=time.time)
    quizzes = db.relationship('Quiz', back_populates='owner')

    @classmethod
    def get_or_create(cls, external_id, display_name=None):
        admin = cls.query.filter_by(external_id=external_id).first()
        if admin:
            return admin
        admin = cls(external_id=external_id, display_name=display_name)
        db.session.add(admin)
        db.session.commit()
        return admin

    def to_dict(self):
        return {
            'id': self.id,
            'external_id': self.external_id,
            'display_name': self.display_name,
        }


class Quiz(db.Model):
    __tablename__ = 'quiz'
    id = db.Column(db.Integer, primary_key=True)
    owner_id = db.Column(db.Integer, db.ForeignKey('admin.id'), nullable=False, index=True)
    title = db.Column(db.String(120), nullable=False)
    created_at = db.Column(db.Float, default=time.time)
    updated_at = db.Column(db.Float, default=time.time, onupdate=time.time)
    owner = db.relationship('Admin', back_populates='quizzes')
    questions = db.relationship(
        'Question',
        back_populates='quiz',
        order_by='Question.position',
        cascade='all, delete-orphan',
    )

    def set_content(self, quiz):
        """Replace title and questions from a validated content.Quiz."""
        self.title = quiz.title
        self.questions = [
            Question(
                key=q.id,
                position=i,
                kind=q.kind,
                text=q.text,
                media_url=q.media_url,
                time_limit=q.time_limit,
                points=q.points,
                answers=[
                    Answer(
                        key=a.id,
                        position=j,
                        text=a.text,
                        is_correct=a.is_correct,
                        target_position=a.target_position,
                    )
                    for j, a in enumerate(q.answers)
                ],
            )
            for i, q in enumerate(quiz.questions)
        ]

    def to_content(self):
        return content.Quiz(
            id=str(self.id),
            title=self.title,
            questions=[q.to_content() for q in self.questions],
        )

    def has_live_game(self):
        return Game.query.filter(Game.quiz_id == self.id, Game.status != 'finished').first() is not None

    def to_dict(self):
        data = self.to_content().model_dump()
        data['id'] = self.id
        data['owner_id'] = self.owner_id
        data['created_at'] = self.created_at
        data['updated_at'] = self.updated_at
        return data


class Question(db.Model):
    __tablename__ = 'question'
    id = db.Column(db.Integer, primary_key=True)
    key = db.Column(db.String(64), nullable=False)
    quiz_id = db.Column(db.Integer, db.ForeignKey('quiz.id'), nullable=False, index=True)
    position = db.Column(db.Integer, nullable=False)
    kind = db.Column(db.String(32), nullable=False, default=content.MULTIPLE_CHOICE)
    text = db.Column(db.Text, nullable=False)
    media_url = db.Column(db.String(2048), nullable=True)
    time_limit = db.Column(db.Integer, nullable=False, default=content.DEFAULT_TIME_LIMIT)
    points = db.Column(db.Integer, nullable=False, default=content.DEFAULT_POINTS)
    quiz = db.relationship('Quiz', back_populates='questions')
    answers = db.relationship(
        'Answer',
        back_populates='question',
        order_by='Answer.position',
        cascade='all, delete-orphan',
    )

    def to_content(self):
        return content.Question(
            id=self.key,
            kind=self.kind,
            text=self.text,
            media_url=self.media_url,
            time_limit=self.time_limit,
            points=self.points,
            answers=[
                content.Answer(
                    id=a.key,
                    text=a.text,
                    is_correct=bool(a.is_correct),
                    target_position=a.target_position,
                )
                for a in self.answers
            ],
        )


class Answer(db.Model):
    __tablename__ = 'answer'
    id = db.Column(db.Integer, primary_key=True)
    key = db.Column(db.String(64), nullable=False)
    question_id = db.Column(db.Integer, db.ForeignKey('question.id'), nullable=False, index=True)
    position = db.Column(db.Integer, nullable=False)
    text = db.Column(db.String(300), nullable=False)
    is_correct = db.Column(db.Boolean, default=False, nullable=False)
    target_position = db.Column(db.Integer, nullable=True)
    question = db.relationship('Question', back_populates='answers')


class Game(db.Model):
    __tablename__ = 'game'
    id = db.Column(db.Integer, primary_key=True)
    game_code = db.Column(db.String(12), unique=True, index=True, nullable=False)
    quiz_id = db.Column(db.Integer, db.ForeignKey('quiz.id'), nullable=True, index=True)
    host_id = db.Column(db.Integer, db.ForeignKey('admin.id'), nullable=True)
    status = db.Column(db.String(32), default='lobby', nullable=False)  # lobby, in_progress, finished
    stage = db.Column(db.String(32), default='lobby', nullable=False)  # lobby, question_active, question_results, leaderboard, finished
    current_question_index = db.Column(db.Integer, default=-1, nullable=False)
    question_started_at = db.Column(db.Float, nullable=True)
    created_at = db.Column(db.Float, default=time.time)
    ended_at = db.Column(db.Float, nullable=True)
    # Frozen copy of the quiz content taken when the game was created
    quiz_snapshot = db.Column(db.Text, nullable=False)
    players = db.relationship('Player', back_populates='game', order_by='Player.id')

    def quiz_content(self):
        return content.Quiz.model_validate_json(self.quiz_snapshot)


class Player(db.Model):
    __tablename__ = 'player'
    id = db.Column(db.Integer, primary_key=True)
    nickname = db.Column(db.String(32), nullable=False)
    game_id = db.Column(db.Integer, db.ForeignKey('game.id'), nullable=False, index=True)
    score = db.Column(db.Integer, default=0, nullable=False)
    streak = db.Column(db.Integer, default=0, nullable=False)
    joined_at = db.Column(db.Float, default=time.time)
    # Shared only with the joining device; required to answer as this player
    token = db.Column(db.String(64), unique=True, nullable=True)
    game = db.relationship('Game', back_populates='players')


class Submission(db.Model):
    __tablename__ = 'submission'
    __table_args__ = (
        db.UniqueConstraint('player_id', 'question_index', name='uq_submission_player_question'),
    )
    id = db.Column(db.Integer, primary_key=True)
    game_id = db.Column(db.Integer, db.ForeignKey('game.id'), nullable=False, index=True)
    player_id = db.Column(db.Integer, db.ForeignKey('player.id'), nullable=False)
    question_index = db.Column(db.Integer, nullable=False)
    question_key = db.Column(db.String(64), nullable=False)
    answer_key = db.Column(db.String(64), nullable=True)
    answer_order = db.Column(db.Text, nullable=True)  # JSON-encoded list of answer keys
    elapsed_seconds = db.Column(db.Float, nullable=False)
    is_correct = db.Column(db.Boolean, nullable=False)
    points_earned = db.Column(db.Integer, nullable=False)
    correct_ratio = db.Column(db.Float, nullable=False)
    submitted_at = db.Column(db.Float, default=time.time)

    def decoded_order(self):
        return json.loads(self.answer_order) if self.answer_order else None
