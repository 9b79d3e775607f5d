"""create user, club and pending_request tables

Revision ID: 4c7e1a9b2d10
Revises:
Create Date: 2026-09-14 10:12:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '4c7e1a9b2d10'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'user',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('username', sa.String(length=64), nullable=False),
        sa.Column('nickname', sa.String(length=64), nullable=True),
        sa.Column('password_hash', sa.String(length=256), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_user_username'), 'user', ['username'], unique=True)

    op.create_table(
        'club',
        sa.Column('id', sa.String(length=16), nullable=False),
        sa.Column('club_name', sa.String(length=128), nullable=True),
        sa.Column('host_owner_id', sa.Integer(), nullable=True),
        sa.Column('sport', sa.String(length=32), nullable=False),
        sa.Column('active_unit_count', sa.Integer(), nullable=False),
        sa.Column('pick_range', sa.Integer(), nullable=False),
        sa.Column('waiting_queue', sa.JSON(), nullable=False),
        sa.Column('unit_occupants', sa.JSON(), nullable=False),
        sa.Column('roster', sa.JSON(), nullable=False),
        sa.Column('match_history', sa.JSON(), nullable=False),
        sa.Column('saved_queue', sa.JSON(), nullable=False),
        sa.Column('join_secret', sa.String(length=256), nullable=True),
        sa.Column('elevated_guest_secret', sa.String(length=256), nullable=True),
        sa.Column('gender_balanced', sa.Boolean(), nullable=False),
        sa.Column('avoid_repeats', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['host_owner_id'], ['user.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_club_host_owner_id'), 'club', ['host_owner_id'], unique=False)

    op.create_table(
        'pending_request',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('club_id', sa.String(length=16), nullable=False),
        sa.Column('action', sa.String(length=32), nullable=False),
        sa.Column('payload', sa.JSON(), nullable=False),
        sa.Column('requester_name', sa.String(length=64), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['club_id'], ['club.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_pending_request_club_id'), 'pending_request', ['club_id'], unique=False)


def downgrade():
    op.drop_index(op.f('ix_pending_request_club_id'), table_name='pending_request')
    op.drop_table('pending_request')
    op.drop_index(op.f('ix_club_host_owner_id'), table_name='club')
    op.drop_table('club')
    op.drop_index(op.f('ix_user_username'), table_name='user')
    op.drop_table('user')
