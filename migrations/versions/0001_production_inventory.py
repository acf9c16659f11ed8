"""production batches, inventory stock/ledger and feature flags

Revision ID: 0001_production_inventory
Revises:
Create Date: 2026-10-01 00:00:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '0001_production_inventory'
down_revision = None
branch_labels = None
depends_on = None


def _timestamps():
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
    ]


def upgrade():
    op.create_table(
        'feature_flag',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('key', sa.String(length=128), nullable=False),
        sa.Column('tenant_id', sa.String(length=64), nullable=True),
        sa.Column('description', sa.String(length=255), nullable=True),
        sa.Column('enabled', sa.Boolean(), nullable=False, server_default=sa.false()),
        *_timestamps(),
        sa.UniqueConstraint('key', 'tenant_id', name='uq_feature_flag_key_tenant'),
    )
    op.create_index(op.f('ix_feature_flag_key'), 'feature_flag', ['key'])
    op.create_index(op.f('ix_feature_flag_tenant_id'), 'feature_flag', ['tenant_id'])

    op.create_table(
        'production_batch',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('tenant_id', sa.String(length=64), nullable=False),
        sa.Column('store_id', sa.String(length=64), nullable=False),
        sa.Column('network_id', sa.String(length=64), nullable=True),
        sa.Column('fulfillment_store_id', sa.String(length=64), nullable=True),
        sa.Column('source_type', sa.String(length=16), nullable=False),
        sa.Column('source_id', sa.String(length=128), nullable=False),
        sa.Column('method', sa.String(length=16), nullable=False),
        sa.Column('stage', sa.String(length=16), nullable=False),
        sa.Column('priority', sa.String(length=16), nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('due_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('inventory_status', sa.String(length=16), nullable=False),
        *_timestamps(),
    )
    op.create_index(op.f('ix_production_batch_tenant_id'), 'production_batch', ['tenant_id'])
    op.create_index(op.f('ix_production_batch_store_id'), 'production_batch', ['store_id'])
    op.create_index(op.f('ix_production_batch_network_id'), 'production_batch', ['network_id'])
    op.create_index(op.f('ix_production_batch_stage'), 'production_batch', ['stage'])
    op.create_index(op.f('ix_production_batch_due_at'), 'production_batch', ['due_at'])
    op.create_index('ix_production_batch_source', 'production_batch', ['store_id', 'source_type', 'source_id'])
    op.create_index('ix_production_batch_tenant_stage', 'production_batch', ['tenant_id', 'stage'])

    op.create_table(
        'production_batch_item',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('batch_id', sa.Integer(), sa.ForeignKey('production_batch.id'), nullable=False),
        sa.Column('order_id', sa.String(length=128), nullable=True),
        sa.Column('bulk_order_id', sa.String(length=128), nullable=True),
        sa.Column('campaign_id', sa.String(length=128), nullable=True),
        sa.Column('product_id', sa.String(length=128), nullable=False),
        sa.Column('variant_id', sa.String(length=128), nullable=True),
        sa.Column('design_id', sa.String(length=128), nullable=True),
        sa.Column('location', sa.String(length=64), nullable=False),
        sa.Column('qty', sa.Integer(), nullable=False),
        sa.Column('personalization_summary', sa.JSON(), nullable=True),
        sa.Column('asset_ref', sa.JSON(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
    )
    for column in ('batch_id', 'order_id', 'bulk_order_id', 'campaign_id'):
        op.create_index(op.f(f'ix_production_batch_item_{column}'), 'production_batch_item', [column])

    op.create_table(
        'production_batch_event',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('batch_id', sa.Integer(), sa.ForeignKey('production_batch.id'), nullable=False),
        sa.Column('type', sa.String(length=32), nullable=False),
        sa.Column('from_stage', sa.String(length=16), nullable=True),
        sa.Column('to_stage', sa.String(length=16), nullable=True),
        sa.Column('actor_id', sa.String(length=128), nullable=True),
        sa.Column('meta', sa.JSON(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index(op.f('ix_production_batch_event_batch_id'), 'production_batch_event', ['batch_id'])
    op.create_index(op.f('ix_production_batch_event_type'), 'production_batch_event', ['type'])

    op.create_table(
        'production_assignment',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('batch_id', sa.Integer(), sa.ForeignKey('production_batch.id'), nullable=False),
        sa.Column('user_id', sa.String(length=128), nullable=False),
        sa.Column('role', sa.String(length=16), nullable=False),
        sa.Column('assigned_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('released_at', sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index(op.f('ix_production_assignment_batch_id'), 'production_assignment', ['batch_id'])
    op.create_index('ix_production_assignment_open', 'production_assignment', ['batch_id', 'released_at'])

    op.create_table(
        'production_scan_token',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('batch_id', sa.Integer(), sa.ForeignKey('production_batch.id'), nullable=False),
        sa.Column('token', sa.String(length=64), nullable=False),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint('token', name='uq_production_scan_token_token'),
    )
    op.create_index(op.f('ix_production_scan_token_batch_id'), 'production_scan_token', ['batch_id'])

    op.create_table(
        'inventory_location',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('store_id', sa.String(length=64), nullable=False),
        sa.Column('code', sa.String(length=64), nullable=False),
        sa.Column('name', sa.String(length=128), nullable=False),
        sa.Column('type', sa.String(length=16), nullable=False),
        sa.Column('address', sa.JSON(), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint('store_id', 'code', name='uq_inventory_location_store_code'),
    )
    op.create_index(op.f('ix_inventory_location_store_id'), 'inventory_location', ['store_id'])

    op.create_table(
        'inventory_sku',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('store_id', sa.String(length=64), nullable=False),
        sa.Column('sku_code', sa.String(length=64), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('unit', sa.String(length=32), nullable=False),
        sa.Column('supplier_sku', sa.String(length=128), nullable=True),
        sa.Column('default_reorder_point', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('default_reorder_qty', sa.Integer(), nullable=False, server_default='0'),
        *_timestamps(),
        sa.UniqueConstraint('store_id', 'sku_code', name='uq_inventory_sku_store_code'),
    )
    op.create_index(op.f('ix_inventory_sku_store_id'), 'inventory_sku', ['store_id'])

    op.create_table(
        'product_material_map',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('store_id', sa.String(length=64), nullable=False),
        sa.Column('product_id', sa.String(length=128), nullable=False),
        sa.Column('variant_id', sa.String(length=128), nullable=True),
        sa.Column('sku_id', sa.Integer(), sa.ForeignKey('inventory_sku.id'), nullable=False),
        sa.Column('qty_per_unit', sa.Integer(), nullable=False, server_default='1'),
        *_timestamps(),
        sa.UniqueConstraint('store_id', 'product_id', 'variant_id', 'sku_id', name='uq_product_material_map_edge'),
        sa.CheckConstraint('qty_per_unit >= 1', name='ck_product_material_map_qty_positive'),
    )
    op.create_index(op.f('ix_product_material_map_store_id'), 'product_material_map', ['store_id'])
    op.create_index(op.f('ix_product_material_map_product_id'), 'product_material_map', ['product_id'])
    op.create_index(op.f('ix_product_material_map_sku_id'), 'product_material_map', ['sku_id'])

    op.create_table(
        'inventory_stock',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('store_id', sa.String(length=64), nullable=False),
        sa.Column('location_id', sa.Integer(), sa.ForeignKey('inventory_location.id'), nullable=False),
        sa.Column('sku_id', sa.Integer(), sa.ForeignKey('inventory_sku.id'), nullable=False),
        sa.Column('on_hand', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('reserved', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint('location_id', 'sku_id', name='uq_inventory_stock_location_sku'),
        sa.CheckConstraint('reserved >= 0 AND reserved <= on_hand', name='ck_inventory_stock_reserved_bounds'),
    )
    op.create_index(op.f('ix_inventory_stock_store_id'), 'inventory_stock', ['store_id'])
    op.create_index(op.f('ix_inventory_stock_sku_id'), 'inventory_stock', ['sku_id'])

    op.create_table(
        'inventory_reservation',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('store_id', sa.String(length=64), nullable=False),
        sa.Column('batch_id', sa.Integer(), sa.ForeignKey('production_batch.id'), nullable=False),
        sa.Column('sku_id', sa.Integer(), sa.ForeignKey('inventory_sku.id'), nullable=False),
        sa.Column('location_id', sa.Integer(), sa.ForeignKey('inventory_location.id'), nullable=False),
        sa.Column('qty', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('status', sa.String(length=16), nullable=False),
        sa.Column('fulfilled_at', sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint('batch_id', 'sku_id', name='uq_inventory_reservation_batch_sku'),
    )
    op.create_index(op.f('ix_inventory_reservation_store_id'), 'inventory_reservation', ['store_id'])
    op.create_index(op.f('ix_inventory_reservation_batch_id'), 'inventory_reservation', ['batch_id'])
    op.create_index('ix_inventory_reservation_batch_status', 'inventory_reservation', ['batch_id', 'status'])

    op.create_table(
        'inventory_ledger_entry',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('store_id', sa.String(length=64), nullable=False),
        sa.Column('location_id', sa.Integer(), sa.ForeignKey('inventory_location.id'), nullable=False),
        sa.Column('sku_id', sa.Integer(), sa.ForeignKey('inventory_sku.id'), nullable=False),
        sa.Column('type', sa.String(length=16), nullable=False),
        sa.Column('qty', sa.Integer(), nullable=False),
        sa.Column('on_hand_delta', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('reserved_delta', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('ref_type', sa.String(length=16), nullable=False),
        sa.Column('ref_id', sa.String(length=128), nullable=True),
        sa.Column('actor_id', sa.String(length=128), nullable=True),
        sa.Column('meta', sa.JSON(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
    )
    for column in ('store_id', 'location_id', 'sku_id', 'type', 'ref_id'):
        op.create_index(op.f(f'ix_inventory_ledger_entry_{column}'), 'inventory_ledger_entry', [column])


def downgrade():
    op.drop_table('inventory_ledger_entry')
    op.drop_table('inventory_reservation')
    op.drop_table('inventory_stock')
    op.drop_table('product_material_map')
    op.drop_table('inventory_sku')
    op.drop_table('inventory_location')
    op.drop_table('production_scan_token')
    op.drop_table('production_assignment')
    op.drop_table('production_batch_event')
    op.drop_table('production_batch_item')
    op.drop_table('production_batch')
    op.drop_table('feature_flag')
