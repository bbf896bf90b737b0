"""create deck, card and game tables

Revision ID: 4b7e2d9c1a3f
Revises:
Create Date: 2026-10-18 00:00:00
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '4b7e2d9c1a3f'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    bind = op.get_bind()
    insp = sa.inspect(bind)
    existing_tables = set(insp.get_table_names())

    if 'deck' not in existing_tables:
        op.create_table(
            'deck',
            sa.Column('id', sa.String(length=64), primary_key=True),
            sa.Column('name', sa.String(length=128), nullable=False),
            sa.Column('description', sa.Text(), nullable=True),
            sa.Column('language', sa.String(length=16), nullable=False, server_default='en'),
            sa.Column('is_official', sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column('content_warning', sa.Boolean(), nullable=False, server_default=sa.false()),
        )

    if 'card' not in existing_tables:
        op.create_table(
            'card',
            sa.Column('id', sa.String(length=64), primary_key=True),
            sa.Column('deck_id', sa.String(length=64), sa.ForeignKey('deck.id'), nullable=False),
            sa.Column('card_type', sa.String(length=16), nullable=False),
            sa.Column('text', sa.Text(), nullable=False),
            sa.Column('pick', sa.Integer(), nullable=True),
            sa.Column('content_warning', sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column('position', sa.Integer(), nullable=False, server_default='0'),
        )
        op.create_index('ix_card_deck_id', 'card', ['deck_id'])

    if 'game' not in existing_tables:
        op.create_table(
            'game',
            sa.Column('id', sa.String(length=32), primary_key=True),
            sa.Column('status', sa.String(length=16), nullable=False, server_default='lobby'),
            sa.Column('host_id', sa.String(length=128), nullable=False),
            sa.Column('current_round', sa.Integer(), nullable=False, server_default='0'),
            sa.Column('state', sa.Text(), nullable=False),
            sa.Column('version', sa.Integer(), nullable=False),
            sa.Column('created_at', sa.Float(), nullable=False),
            sa.Column('updated_at', sa.Float(), nullable=False),
        )
        op.create_index('ix_game_status', 'game', ['status'])


def downgrade():
    op.drop_index('ix_game_status', table_name='game')
    op.drop_table('game')
    op.drop_index('ix_card_deck_id', table_name='card')
    op.drop_table('card')
    op.drop_table('deck')
