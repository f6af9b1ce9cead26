"""initial trivia schema

Revision ID: 4c2a9e7d1b30
Revises:
Create Date: 2026-10-19 00:00:00
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '4c2a9e7d1b30'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'user',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('password_hash', sa.String(length=256), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_user_email', 'user', ['email'], unique=True)

    op.create_table(
        'game',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('host_id', sa.Integer(), sa.ForeignKey('user.id'), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('date', sa.DateTime(), nullable=True),
        sa.Column('passcode', sa.Integer(), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='DRAFT'),
        sa.Column('time_to_think', sa.Integer(), nullable=False, server_default='60'),
        sa.Column('time_to_answer', sa.Integer(), nullable=False, server_default='10'),
        sa.Column('time_to_dispute_end', sa.Integer(), nullable=True),
        sa.Column('show_leaderboard', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('show_questions', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('show_answer', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('can_appeal', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('modified_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_game_host_id', 'game', ['host_id'])
    op.create_index('ix_game_passcode', 'game', ['passcode'])

    op.create_table(
        'round',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('game_id', sa.Integer(), sa.ForeignKey('game.id'), nullable=False),
        sa.Column('round_number', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_round_game_id', 'round', ['game_id'])

    op.create_table(
        'question',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('round_id', sa.Integer(), sa.ForeignKey('round.id'), nullable=False),
        sa.Column('question_number', sa.Integer(), nullable=False),
        sa.Column('text', sa.Text(), nullable=False),
        sa.Column('answer', sa.Text(), nullable=True),
        sa.Column('time_to_think', sa.Integer(), nullable=False, server_default='60'),
        sa.Column('time_to_answer', sa.Integer(), nullable=False, server_default='10'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_question_round_id', 'question', ['round_id'])

    op.create_table(
        'team',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('team_code', sa.String(length=32), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )

    op.create_table(
        'game_participant',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('game_id', sa.Integer(), sa.ForeignKey('game.id'), nullable=False),
        sa.Column('team_id', sa.Integer(), sa.ForeignKey('team.id'), nullable=False),
        sa.Column('socket_id', sa.String(length=64), nullable=True),
        sa.Column('is_connected', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('is_available', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_game_participant_game_id', 'game_participant', ['game_id'])
    op.create_index('ix_game_participant_socket_id', 'game_participant', ['socket_id'])

    op.create_table(
        'answer',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('participant_id', sa.Integer(), sa.ForeignKey('game_participant.id'), nullable=False),
        sa.Column('question_id', sa.Integer(), sa.ForeignKey('question.id'), nullable=False),
        sa.Column('answer_text', sa.Text(), nullable=False),
        sa.Column('submitted_at', sa.DateTime(), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='UNSET'),
        sa.Column('is_late', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_answer_participant_id', 'answer', ['participant_id'])
    op.create_index('ix_answer_question_id', 'answer', ['question_id'])

    op.create_table(
        'answer_status_history',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('answer_id', sa.Integer(), sa.ForeignKey('answer.id'), nullable=False),
        sa.Column('old_status', sa.String(length=16), nullable=False),
        sa.Column('new_status', sa.String(length=16), nullable=False),
        sa.Column('changed_by_id', sa.Integer(), sa.ForeignKey('user.id'), nullable=True),
        sa.Column('changed_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_answer_status_history_answer_id', 'answer_status_history', ['answer_id'])

    op.create_table(
        'dispute',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('answer_id', sa.Integer(), sa.ForeignKey('answer.id'), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='OPEN'),
        sa.Column('comment', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_dispute_answer_id', 'dispute', ['answer_id'])


def downgrade():
    op.drop_index('ix_dispute_answer_id', table_name='dispute')
    op.drop_table('dispute')
    op.drop_index('ix_answer_status_history_answer_id', table_name='answer_status_history')
    op.drop_table('answer_status_history')
    op.drop_index('ix_answer_question_id', table_name='answer')
    op.drop_index('ix_answer_participant_id', table_name='answer')
    op.drop_table('answer')
    op.drop_index('ix_game_participant_socket_id', table_name='game_participant')
    op.drop_index('ix_game_participant_game_id', table_name='game_participant')
    op.drop_table('game_participant')
    op.drop_table('team')
    op.drop_index('ix_question_round_id', table_name='question')
    op.drop_table('question')
    op.drop_index('ix_round_game_id', table_name='round')
    op.drop_table('round')
    op.drop_index('ix_game_passcode', table_name='game')
    op.drop_index('ix_game_host_id', table_name='game')
    op.drop_table('game')
    op.drop_index('ix_user_email', table_name='user')
    op.drop_table('user')
