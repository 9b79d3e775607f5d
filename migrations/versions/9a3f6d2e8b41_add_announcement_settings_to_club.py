"""add announcement settings to club

Revision ID: 9a3f6d2e8b41
Revises: 4c7e1a9b2d10
Create Date: 2026-09-28 18:40:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '9a3f6d2e8b41'
down_revision = '4c7e1a9b2d10'
branch_labels = None
depends_on = None


def upgrade():
    bind = op.get_bind()
    insp = sa.inspect(bind)
    cols = {c['name'] for c in insp.get_columns('club')}
    with op.batch_alter_table('club') as batch_op:
        if 'repeat_enabled' not in cols:
            batch_op.add_column(sa.Column('repeat_enabled', sa.Boolean(), nullable=False, server_default=sa.false()))
        if 'repeat_interval_sec' not in cols:
            batch_op.add_column(sa.Column('repeat_interval_sec', sa.Integer(), nullable=False, server_default='30'))
        if 'countdown_enabled' not in cols:
            batch_op.add_column(sa.Column('countdown_enabled', sa.Boolean(), nullable=False, server_default=sa.false()))
        if 'countdown_limit_sec' not in cols:
            batch_op.add_column(sa.Column('countdown_limit_sec', sa.Integer(), nullable=False, server_default='60'))
        if 'announce_voice' not in cols:
            batch_op.add_column(sa.Column('announce_voice', sa.String(length=16), nullable=False, server_default='en-US'))


def downgrade():
    with op.batch_alter_table('club') as batch_op:
        batch_op.drop_column('announce_voice')
        batch_op.drop_column('countdown_limit_sec')
        batch_op.drop_column('countdown_enabled')
        batch_op.drop_column('repeat_interval_sec')
        batch_op.drop_column('repeat_enabled')
