"""create room and player tables

Revision ID: 5b0e7c1d9a2f
Revises:
Create Date: 2026-10-17 12:00:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '5b0e7c1d9a2f'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    bind = op.get_bind()
    insp = sa.inspect(bind)
    existing_tables = set(insp.get_table_names())

    if 'room' not in existing_tables:
        op.create_table(
            'room',
            sa.Column('id', sa.String(length=6), nullable=False),
            sa.Column('phase', sa.String(length=32), nullable=False),
            sa.Column('host_id', sa.String(length=32), nullable=True),
            sa.Column('max_players', sa.Integer(), nullable=False),
            sa.Column('min_players', sa.Integer(), nullable=False),
            sa.Column('game_mode', sa.String(length=32), nullable=False),
            sa.Column('series_length', sa.Integer(), nullable=False),
            sa.Column('series_wins', sa.Integer(), nullable=False),
            sa.Column('series_losses', sa.Integer(), nullable=False),
            sa.Column('dealer_index', sa.Integer(), nullable=False),
            sa.Column('community_cards', sa.Text(), nullable=True),
            sa.Column('token_pool', sa.Text(), nullable=True),
            sa.Column('token_assignments', sa.Text(), nullable=True),
            sa.Column('betting_round_history', sa.Text(), nullable=True),
            sa.Column('action_log', sa.Text(), nullable=True),
            sa.Column('deck', sa.Text(), nullable=True),
            sa.Column('last_game_result', sa.Text(), nullable=True),
            sa.Column('current_turn', sa.String(length=32), nullable=True),
            sa.Column('state_version', sa.Integer(), nullable=False),
            sa.Column('created_at', sa.Float(), nullable=False),
            sa.Column('updated_at', sa.Float(), nullable=False),
            sa.Column('last_action', sa.Float(), nullable=True),
            sa.PrimaryKeyConstraint('id'),
        )
        op.create_index(op.f('ix_room_updated_at'), 'room', ['updated_at'], unique=False)

    if 'player' not in existing_tables:
        op.create_table(
            'player',
            sa.Column('id', sa.String(length=32), nullable=False),
            sa.Column('room_id', sa.String(length=6), nullable=False),
            sa.Column('seat', sa.Integer(), nullable=False),
            sa.Column('name', sa.String(length=64), nullable=False),
            sa.Column('connection_id', sa.String(length=64), nullable=True),
            sa.Column('pocket_cards', sa.Text(), nullable=True),
            sa.Column('ready', sa.Boolean(), nullable=False),
            sa.Column('connected', sa.Boolean(), nullable=False),
            sa.Column('at_table', sa.Boolean(), nullable=False),
            sa.Column('last_seen', sa.Float(), nullable=False),
            sa.ForeignKeyConstraint(['room_id'], ['room.id'], ondelete='CASCADE'),
            sa.PrimaryKeyConstraint('id'),
        )
        op.create_index(op.f('ix_player_room_id'), 'player', ['room_id'], unique=False)
        op.create_index(op.f('ix_player_connection_id'), 'player', ['connection_id'], unique=False)


def downgrade():
    op.drop_index(op.f('ix_player_connection_id'), table_name='player')
    op.drop_index(op.f('ix_player_room_id'), table_name='player')
    op.drop_table('player')
    op.drop_index(op.f('ix_room_updated_at'), table_name='room')
    op.drop_table('room')
