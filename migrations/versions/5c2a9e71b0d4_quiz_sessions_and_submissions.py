"""quiz content, live games, players and submissions

Revision ID: 5c2a9e71b0d4
Revises:
Create Date: 2026-10-19 00:00:00
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '5c2a9e71b0d4'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'admin',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('external_id', sa.String(length=128), nullable=False),
        sa.Column('display_name', sa.String(length=64), nullable=True),
        sa.Column('created_at', sa.Float(), nullable=True),
    )
    op.create_index('ix_admin_external_id', 'admin', ['external_id'], unique=True)

    op.create_table(
        'quiz',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('owner_id', sa.Integer(), sa.ForeignKey('admin.id'), nullable=False),
        sa.Column('title', sa.String(length=120), nullable=False),
        sa.Column('created_at', sa.Float(), nullable=True),
        sa.Column('updated_at', sa.Float(), nullable=True),
    )
    op.create_index('ix_quiz_owner_id', 'quiz', ['owner_id'])

    op.create_table(
        'question',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('key', sa.String(length=64), nullable=False),
        sa.Column('quiz_id', sa.Integer(), sa.ForeignKey('quiz.id'), nullable=False),
        sa.Column('position', sa.Integer(), nullable=False),
        sa.Column('kind', sa.String(length=32), nullable=False),
        sa.Column('text', sa.Text(), nullable=False),
        sa.Column('media_url', sa.String(length=2048), nullable=True),
        sa.Column('time_limit', sa.Integer(), nullable=False),
        sa.Column('points', sa.Integer(), nullable=False),
    )
    op.create_index('ix_question_quiz_id', 'question', ['quiz_id'])

    op.create_table(
        'answer',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('key', sa.String(length=64), nullable=False),
        sa.Column('question_id', sa.Integer(), sa.ForeignKey('question.id'), nullable=False),
        sa.Column('position', sa.Integer(), nullable=False),
        sa.Column('text', sa.String(length=300), nullable=False),
        sa.Column('is_correct', sa.Boolean(), nullable=False),
        sa.Column('target_position', sa.Integer(), nullable=True),
    )
    op.create_index('ix_answer_question_id', 'answer', ['question_id'])

    op.create_table(
        'game',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('game_code', sa.String(length=12), nullable=False),
        sa.Column('quiz_id', sa.Integer(), sa.ForeignKey('quiz.id'), nullable=True),
        sa.Column('host_id', sa.Integer(), sa.ForeignKey('admin.id'), nullable=True),
        sa.Column('status', sa.String(length=32), nullable=False),
        sa.Column('stage', sa.String(length=32), nullable=False),
        sa.Column('current_question_index', sa.Integer(), nullable=False),
        sa.Column('question_started_at', sa.Float(), nullable=True),
        sa.Column('created_at', sa.Float(), nullable=True),
        sa.Column('ended_at', sa.Float(), nullable=True),
        sa.Column('quiz_snapshot', sa.Text(), nullable=False),
    )
    op.create_index('ix_game_game_code', 'game', ['game_code'], unique=True)
    op.create_index('ix_game_quiz_id', 'game', ['quiz_id'])

    op.create_table(
        'player',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('nickname', sa.String(length=32), nullable=False),
        sa.Column('game_id', sa.Integer(), sa.ForeignKey('game.id'), nullable=False),
        sa.Column('score', sa.Integer(), nullable=False),
        sa.Column('streak', sa.Integer(), nullable=False),
        sa.Column('joined_at', sa.Float(), nullable=True),
        sa.Column('token', sa.String(length=64), nullable=True),
        sa.UniqueConstraint('token', name='uq_player_token'),
    )
    op.create_index('ix_player_game_id', 'player', ['game_id'])

    op.create_table(
        'submission',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('game_id', sa.Integer(), sa.ForeignKey('game.id'), nullable=False),
        sa.Column('player_id', sa.Integer(), sa.ForeignKey('player.id'), nullable=False),
        sa.Column('question_index', sa.Integer(), nullable=False),
        sa.Column('question_key', sa.String(length=64), nullable=False),
        sa.Column('answer_key', sa.String(length=64), nullable=True),
        sa.Column('answer_order', sa.Text(), nullable=True),
        sa.Column('elapsed_seconds', sa.Float(), nullable=False),
        sa.Column('is_correct', sa.Boolean(), nullable=False),
        sa.Column('points_earned', sa.Integer(), nullable=False),
        sa.Column('correct_ratio', sa.Float(), nullable=False),
        sa.Column('submitted_at', sa.Float(), nullable=True),
        sa.UniqueConstraint('player_id', 'question_index', name='uq_submission_player_question'),
    )
    op.create_index('ix_submission_game_id', 'submission', ['game_id'])


def downgrade():
    op.drop_index('ix_submission_game_id', table_name='submission')
    op.drop_table('submission')
    op.drop_index('ix_player_game_id', table_name='player')
    op.drop_table('player')
    op.drop_index('ix_game_quiz_id', table_name='game')
    op.drop_index('ix_game_game_code', table_name='game')
    op.drop_table('game')
    op.drop_index('ix_answer_question_id', table_name='answer')
    op.drop_table('answer')
    op.drop_index('ix_question_quiz_id', table_name='question')
    op.drop_table('question')
    op.drop_index('ix_quiz_owner_id', table_name='quiz')
    op.drop_table('quiz')
    op.drop_index('ix_admin_external_id', table_name='admin')
    op.drop_table('admin')
