"""create room table

Revision ID: 5c2a9e1f7b3d
Revises: 
Create Date: 2026-10-17 10:00:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '5c2a9e1f7b3d'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    bind = op.get_bind()
    insp = sa.inspect(bind)
    if 'room' in set(insp.get_table_names()):
        return

    op.create_table(
        'room',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('room_code', sa.String(length=6), nullable=False),
        sa.Column('name', sa.String(length=80), nullable=False),
        sa.Column('host_player_id', sa.String(length=64), nullable=True),
        sa.Column('current_game', sa.String(length=32), nullable=False),
        sa.Column('game_state', sa.Text(), nullable=False),
        sa.Column('players', sa.Text(), nullable=False),
        sa.Column('version', sa.Integer(), nullable=False),
        sa.Column('updated_by', sa.String(length=64), nullable=True),
        sa.Column('created_at', sa.BigInteger(), nullable=False),
        sa.Column('updated_at', sa.BigInteger(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    with op.batch_alter_table('room') as batch_op:
        batch_op.create_index(batch_op.f('ix_room_room_code'), ['room_code'], unique=True)


def downgrade():
    with op.batch_alter_table('room') as batch_op:
        batch_op.drop_index(batch_op.f('ix_room_room_code'))
    op.drop_table('room')
