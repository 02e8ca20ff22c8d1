"""Initial schema - creates the stock sync tables

Revision ID: 001_initial_schema
Revises:
Create Date: 2026-10-17

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = '001_initial_schema'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _json():
    return sa.JSON().with_variant(postgresql.JSONB(), "postgresql")


def upgrade() -> None:
    op.create_table(
        'marketplace_connections',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('user_id', sa.String(36), nullable=False),
        sa.Column('marketplace', sa.String(50), nullable=False),
        sa.Column('store_name', sa.String(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('credentials', _json(), nullable=True),
        sa.Column('last_sync_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index('ix_marketplace_connections_user_id', 'marketplace_connections', ['user_id'])
    op.create_index('ix_marketplace_connections_marketplace', 'marketplace_connections', ['marketplace'])
    op.create_index('ix_marketplace_connections_is_active', 'marketplace_connections', ['is_active'])
    op.create_index('ix_marketplace_connections_user_marketplace', 'marketplace_connections', ['user_id', 'marketplace'])

    op.create_table(
        'master_listings',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('user_id', sa.String(36), nullable=False),
        sa.Column('title', sa.String(), nullable=False),
        sa.Column('internal_sku', sa.String(), nullable=True),
        sa.Column('total_stock', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('low_stock_threshold', sa.Integer(), nullable=False, server_default='10'),
        sa.Column('stock_synced_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index('ix_master_listings_user_id', 'master_listings', ['user_id'])
    op.create_index('ix_master_listings_internal_sku', 'master_listings', ['internal_sku'])

    op.create_table(
        'marketplace_products',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('user_id', sa.String(36), nullable=False),
        sa.Column('master_listing_id', sa.String(36), sa.ForeignKey('master_listings.id'), nullable=False),
        sa.Column('marketplace_connection_id', sa.String(36), sa.ForeignKey('marketplace_connections.id'), nullable=False),
        sa.Column('remote_product_id', sa.String(), nullable=True),
        sa.Column('marketplace_specific_data', _json(), nullable=True),
        sa.Column('sync_status', sa.String(20), nullable=False, server_default='pending'),
        sa.Column('sync_error', sa.Text(), nullable=True),
        sa.Column('last_synced_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.UniqueConstraint('master_listing_id', 'marketplace_connection_id',
                            name='uq_marketplace_products_listing_connection'),
    )
    op.create_index('ix_marketplace_products_user_id', 'marketplace_products', ['user_id'])
    op.create_index('ix_marketplace_products_master_listing_id', 'marketplace_products', ['master_listing_id'])
    op.create_index('ix_marketplace_products_marketplace_connection_id', 'marketplace_products',
                    ['marketplace_connection_id'])
    op.create_index('ix_marketplace_products_sync_status', 'marketplace_products', ['sync_status'])

    op.create_table(
        'stock_sync_logs',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('user_id', sa.String(36), nullable=False),
        sa.Column('master_listing_id', sa.String(36), nullable=True),
        sa.Column('source_marketplace', sa.String(50), nullable=False),
        sa.Column('target_marketplace', sa.String(50), nullable=False),
        sa.Column('previous_stock', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('new_stock', sa.Integer(), nullable=False),
        sa.Column('sync_status', sa.String(20), nullable=False),
        sa.Column('error_message', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index('ix_stock_sync_logs_user_id', 'stock_sync_logs', ['user_id'])
    op.create_index('ix_stock_sync_logs_master_listing_id', 'stock_sync_logs', ['master_listing_id'])
    op.create_index('ix_stock_sync_logs_target_marketplace', 'stock_sync_logs', ['target_marketplace'])
    op.create_index('ix_stock_sync_logs_sync_status', 'stock_sync_logs', ['sync_status'])
    op.create_index('ix_stock_sync_logs_created_at', 'stock_sync_logs', ['created_at'])

    op.create_table(
        'low_stock_alerts',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('user_id', sa.String(36), nullable=False),
        sa.Column('master_listing_id', sa.String(36), nullable=True),
        sa.Column('variant_id', sa.String(36), nullable=True),
        sa.Column('product_title', sa.String(), nullable=False),
        sa.Column('variant_name', sa.String(), nullable=True),
        sa.Column('current_stock', sa.Integer(), nullable=False),
        sa.Column('threshold', sa.Integer(), nullable=False),
        sa.Column('is_read', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index('ix_low_stock_alerts_user_id', 'low_stock_alerts', ['user_id'])
    op.create_index('ix_low_stock_alerts_master_listing_id', 'low_stock_alerts', ['master_listing_id'])
    op.create_index('ix_low_stock_alerts_variant_id', 'low_stock_alerts', ['variant_id'])
    op.create_index('ix_low_stock_alerts_is_read', 'low_stock_alerts', ['is_read'])

    op.create_table(
        'activity_log',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('action', sa.String(50), nullable=False),
        sa.Column('entity_type', sa.String(50), nullable=False),
        sa.Column('entity_id', sa.String(100), nullable=False),
        sa.Column('platform', sa.String(50), nullable=True),
        sa.Column('details', _json(), nullable=True),
        sa.Column('user_id', sa.String(36), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    for column in ('action', 'entity_type', 'entity_id', 'platform', 'created_at'):
        op.create_index(f'ix_activity_log_{column}', 'activity_log', [column])


def downgrade() -> None:
    op.drop_table('activity_log')
    op.drop_table('low_stock_alerts')
    op.drop_table('stock_sync_logs')
    op.drop_table('marketplace_products')
    op.drop_table('master_listings')
    op.drop_table('marketplace_connections')
