"""Token, pending authorization, listing, message and job run tables

Revision ID: 0001_token_and_listing_tables
Revises:
Create Date: 2026-10-17

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '0001_token_and_listing_tables'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'api_tokens',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('service', sa.String(length=32), nullable=False),
        sa.Column('access_token', sa.Text(), nullable=False),
        sa.Column('refresh_token', sa.Text(), nullable=True),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('scopes', sa.JSON(), nullable=False),
        sa.Column('active', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
    )
    op.create_index('ix_api_tokens_service', 'api_tokens', ['service'])
    op.create_index('ix_api_tokens_active', 'api_tokens', ['active'])

    op.create_table(
        'pending_authorizations',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('service', sa.String(length=32), nullable=False),
        sa.Column('authorization_code', sa.Text(), nullable=False),
        sa.Column('state', sa.String(length=128), nullable=True),
        sa.Column('processed', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
    )
    op.create_index('ix_pending_authorizations_service', 'pending_authorizations', ['service'])
    op.create_index('ix_pending_authorizations_state', 'pending_authorizations', ['state'])
    op.create_index('ix_pending_authorizations_processed', 'pending_authorizations', ['processed'])

    op.create_table(
        'listings',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('supplier_product_id', sa.String(length=64), nullable=False),
        sa.Column('marketplace_product_id', sa.String(length=64), nullable=True),
        sa.Column('item_id_on_site', sa.String(length=64), nullable=True),
        sa.Column('channel_listing_id', sa.String(length=64), nullable=False, unique=True),
        sa.Column('sku', sa.String(length=64), nullable=False),
        sa.Column('title', sa.Text(), nullable=False),
        sa.Column('price', sa.Numeric(10, 2), nullable=False, server_default='0'),
        sa.Column('cost', sa.Numeric(10, 2), nullable=False, server_default='0'),
        sa.Column('stock', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('listed_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('ended_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('end_reason', sa.String(length=32), nullable=True),
    )
    op.create_index('ix_listings_supplier_product_id', 'listings', ['supplier_product_id'])
    op.create_index('ix_listings_item_id_on_site', 'listings', ['item_id_on_site'])
    op.create_index('ix_listings_sku', 'listings', ['sku'])
    op.create_index('ix_listings_active', 'listings', ['active'])

    op.create_table(
        'buyer_messages',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('message_id', sa.String(length=64), nullable=False, unique=True),
        sa.Column('buyer_username', sa.String(length=128), nullable=True),
        sa.Column('subject', sa.Text(), nullable=True),
        sa.Column('content', sa.Text(), nullable=True),
        sa.Column('received_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('responded', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('responded_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('response', sa.Text(), nullable=True),
        sa.Column('escalated', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('escalated_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('escalation_reason', sa.Text(), nullable=True),
        sa.Column('resolved', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
    )

    op.create_table(
        'job_runs',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('job_type', sa.String(length=64), nullable=False, unique=True),
        sa.Column('status', sa.String(length=32), nullable=False),
        sa.Column('message', sa.Text(), nullable=True),
        sa.Column('last_run_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
    )


def downgrade() -> None:
    op.drop_table('job_runs')
    op.drop_table('buyer_messages')
    op.drop_table('listings')
    op.drop_table('pending_authorizations')
    op.drop_table('api_tokens')
