"""Markup rules and order records

Revision ID: faredesk_001
Revises:
Create Date: 2026-10-19
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = 'faredesk_001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # --- Markup rules ---
    op.create_table('markups',
        sa.Column('id', sa.UUID(), nullable=False, server_default=sa.text('gen_random_uuid()')),
        sa.Column('airline_code', sa.String(length=3), nullable=False),
        sa.Column('role', sa.String(length=20), nullable=False, server_default='USER'),
        sa.Column('from_airport', sa.String(length=3), nullable=True, server_default=''),
        sa.Column('to_airport', sa.String(length=3), nullable=True, server_default=''),
        sa.Column('markup', sa.Numeric(precision=6, scale=2), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='true'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('idx_markups_lookup', 'markups', ['airline_code', 'role', 'from_airport', 'to_airport'])

    # --- Order records ---
    op.create_table('order_records',
        sa.Column('id', sa.UUID(), nullable=False, server_default=sa.text('gen_random_uuid()')),
        sa.Column('reference', sa.String(length=50), nullable=False),
        sa.Column('airline_pnr', sa.String(length=20), nullable=False, server_default='N/A'),
        sa.Column('given_name', sa.String(length=100), nullable=False, server_default=''),
        sa.Column('surname', sa.String(length=100), nullable=False, server_default=''),
        sa.Column('adults', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('children', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('infants', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('route_from', sa.String(length=3), nullable=False, server_default='N/A'),
        sa.Column('route_to', sa.String(length=3), nullable=False, server_default='N/A'),
        sa.Column('airline', sa.String(length=3), nullable=False, server_default='N/A'),
        sa.Column('amount', sa.Numeric(precision=12, scale=2), nullable=False, server_default='0'),
        sa.Column('currency', sa.String(length=3), nullable=False, server_default='BDT'),
        sa.Column('status', sa.String(length=30), nullable=False, server_default='OnHold'),
        sa.Column('created_by', sa.String(length=255), nullable=False, server_default='anonymous'),
        sa.Column('fly_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('reference'),
    )
    op.create_index('idx_order_records_created_by', 'order_records', ['created_by'])


def downgrade() -> None:
    op.drop_index('idx_order_records_created_by', table_name='order_records')
    op.drop_table('order_records')
    op.drop_index('idx_markups_lookup', table_name='markups')
    op.drop_table('markups')
