"""create user, game, participant and vote tables

Revision ID: 5c2a9e7d1b40
Revises:
Create Date: 2026-10-19 10:00:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '5c2a9e7d1b40'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'user',
        sa.Column('id', sa.String(length=128), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=True),
        sa.Column('name', sa.String(length=128), nullable=False),
        sa.Column('image_url', sa.String(length=512), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )

    op.create_table(
        'game',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('code', sa.String(length=6), nullable=False),
        sa.Column('title', sa.String(length=200), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False),
        sa.Column('time_limit', sa.Integer(), nullable=False),
        sa.Column('start_time', sa.DateTime(), nullable=True),
        sa.Column('end_time', sa.DateTime(), nullable=True),
        sa.Column('host_id', sa.String(length=128), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['host_id'], ['user.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    with op.batch_alter_table('game') as batch_op:
        batch_op.create_index('ix_game_code', ['code'], unique=True)
        batch_op.create_index('ix_game_status', ['status'], unique=False)
        batch_op.create_index('ix_game_end_time', ['end_time'], unique=False)
        batch_op.create_index('ix_game_host_id', ['host_id'], unique=False)

    op.create_table(
        'participant',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('game_id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.String(length=128), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False),
        sa.Column('rank', sa.String(length=1), nullable=True),
        sa.Column('vote_count', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['game_id'], ['game.id']),
        sa.ForeignKeyConstraint(['user_id'], ['user.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('game_id', 'user_id', name='uq_participant_game_user'),
    )
    with op.batch_alter_table('participant') as batch_op:
        batch_op.create_index('ix_participant_game_id', ['game_id'], unique=False)
        batch_op.create_index('ix_participant_user_id', ['user_id'], unique=False)

    op.create_table(
        'vote',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('game_id', sa.Integer(), nullable=False),
        sa.Column('from_participant_id', sa.Integer(), nullable=False),
        sa.Column('to_participant_id', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.CheckConstraint('from_participant_id <> to_participant_id', name='ck_vote_no_self_vote'),
        sa.ForeignKeyConstraint(['game_id'], ['game.id']),
        sa.ForeignKeyConstraint(['from_participant_id'], ['participant.id']),
        sa.ForeignKeyConstraint(['to_participant_id'], ['participant.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('game_id', 'from_participant_id', 'to_participant_id', name='uq_vote_game_from_to'),
    )
    with op.batch_alter_table('vote') as batch_op:
        batch_op.create_index('ix_vote_game_id', ['game_id'], unique=False)


def downgrade():
    with op.batch_alter_table('vote') as batch_op:
        batch_op.drop_index('ix_vote_game_id')
    op.drop_table('vote')

    with op.batch_alter_table('participant') as batch_op:
        batch_op.drop_index('ix_participant_user_id')
        batch_op.drop_index('ix_participant_game_id')
    op.drop_table('participant')

    with op.batch_alter_table('game') as batch_op:
        batch_op.drop_index('ix_game_host_id')
        batch_op.drop_index('ix_game_end_time')
        batch_op.drop_index('ix_game_status')
        batch_op.drop_index('ix_game_code')
    op.drop_table('game')

    op.drop_table('user')
