"""Initial replenishment schema: reference, fact and derived tables

Revision ID: 4c1e9a7b52d0
Revises:
Create Date: 2026-10-19 09:12:41.318204

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '4c1e9a7b52d0'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _updated_at() -> sa.Column:
    return sa.Column('updated_at', sa.DateTime(), server_default=sa.func.now(), nullable=False)


def upgrade() -> None:
    # =========================================================================
    # Reference tables
    # =========================================================================
    op.create_table(
        'orgs',
        sa.Column('id', sa.String(length=64), nullable=False),
        sa.Column('name', sa.String(length=200), nullable=False),
        sa.Column('api_key', sa.String(length=128), nullable=False),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('api_key'),
    )
    op.create_table(
        'warehouses',
        sa.Column('id', sa.String(length=64), nullable=False),
        sa.Column('org_id', sa.String(length=64), nullable=False),
        sa.Column('name', sa.String(length=200), nullable=False),
        sa.Column('timezone', sa.String(length=64), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.ForeignKeyConstraint(['org_id'], ['orgs.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_warehouses_org_id', 'warehouses', ['org_id'])
    op.create_table(
        'suppliers',
        sa.Column('id', sa.String(length=64), nullable=False),
        sa.Column('org_id', sa.String(length=64), nullable=False),
        sa.Column('name', sa.String(length=200), nullable=False),
        sa.Column('lead_time_days_default', sa.Float(), nullable=True),
        sa.Column('contact', sa.String(length=200), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.ForeignKeyConstraint(['org_id'], ['orgs.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_suppliers_org_id', 'suppliers', ['org_id'])
    op.create_table(
        'catalog',
        sa.Column('org_id', sa.String(length=64), nullable=False),
        sa.Column('sku', sa.String(length=100), nullable=False),
        sa.Column('name', sa.String(length=300), nullable=False),
        sa.Column('category', sa.String(length=200), nullable=True),
        sa.Column('uom', sa.String(length=20), nullable=True),
        sa.Column('shelf_life_days', sa.Integer(), nullable=True),
        _updated_at(),
        sa.ForeignKeyConstraint(['org_id'], ['orgs.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('org_id', 'sku'),
    )
    op.create_table(
        'lead_time_stats',
        sa.Column('org_id', sa.String(length=64), nullable=False),
        sa.Column('supplier_id', sa.String(length=64), nullable=False),
        sa.Column('sku', sa.String(length=100), nullable=False),
        sa.Column('lead_time_days_median', sa.Float(), nullable=False),
        sa.Column('sample_size', sa.Integer(), nullable=False),
        _updated_at(),
        sa.PrimaryKeyConstraint('org_id', 'supplier_id', 'sku'),
    )

    # =========================================================================
    # Fact tables
    # =========================================================================
    op.create_table(
        'sales_events',
        sa.Column('org_id', sa.String(length=64), nullable=False),
        sa.Column('order_id', sa.String(length=100), nullable=False),
        sa.Column('line_id', sa.String(length=100), nullable=False),
        sa.Column('order_datetime', sa.DateTime(), nullable=False),
        sa.Column('sku', sa.String(length=100), nullable=False),
        sa.Column('qty', sa.Float(), nullable=False),
        sa.Column('unit_price', sa.Float(), nullable=True),
        sa.Column('discount_amount', sa.Float(), nullable=True),
        sa.Column('net_amount', sa.Float(), nullable=True),
        sa.Column('tax_amount', sa.Float(), nullable=True),
        sa.Column('currency', sa.String(length=8), nullable=True),
        sa.Column('warehouse_id', sa.String(length=64), nullable=True),
        sa.Column('channel', sa.String(length=64), nullable=True),
        sa.Column('status', sa.String(length=32), nullable=True),
        sa.Column('returned_qty', sa.Float(), nullable=True),
        sa.Column('canceled_qty', sa.Float(), nullable=True),
        sa.Column('promo_code', sa.String(length=64), nullable=True),
        _updated_at(),
        sa.PrimaryKeyConstraint('org_id', 'order_id', 'line_id'),
    )
    op.create_index('ix_sales_events_order_datetime', 'sales_events', ['order_datetime'])
    op.create_index('ix_sales_events_org_datetime', 'sales_events', ['org_id', 'order_datetime'])
    op.create_table(
        'stock_snapshots',
        sa.Column('org_id', sa.String(length=64), nullable=False),
        sa.Column('date', sa.Date(), nullable=False),
        sa.Column('sku', sa.String(length=100), nullable=False),
        sa.Column('warehouse_id', sa.String(length=64), nullable=False),
        sa.Column('batch_id', sa.String(length=100), nullable=False),
        sa.Column('qty_on_hand', sa.Float(), nullable=False),
        sa.Column('expiry_date', sa.Date(), nullable=True),
        _updated_at(),
        sa.PrimaryKeyConstraint('org_id', 'date', 'sku', 'warehouse_id', 'batch_id'),
    )
    op.create_index('ix_stock_org_wh_date', 'stock_snapshots', ['org_id', 'warehouse_id', 'date'])
    op.create_table(
        'purchase_orders',
        sa.Column('org_id', sa.String(length=64), nullable=False),
        sa.Column('po_id', sa.String(length=100), nullable=False),
        sa.Column('supplier_id', sa.String(length=64), nullable=False),
        sa.Column('ordered_at', sa.DateTime(), nullable=False),
        sa.Column('received_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint('org_id', 'po_id'),
    )
    op.create_index('ix_purchase_orders_supplier_id', 'purchase_orders', ['supplier_id'])
    op.create_table(
        'purchase_order_lines',
        sa.Column('org_id', sa.String(length=64), nullable=False),
        sa.Column('po_id', sa.String(length=100), nullable=False),
        sa.Column('sku', sa.String(length=100), nullable=False),
        sa.Column('qty', sa.Float(), nullable=False),
        sa.Column('moq', sa.Integer(), nullable=True),
        sa.Column('pack_size', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.ForeignKeyConstraint(
            ['org_id', 'po_id'],
            ['purchase_orders.org_id', 'purchase_orders.po_id'],
            ondelete='CASCADE',
        ),
        sa.PrimaryKeyConstraint('org_id', 'po_id', 'sku'),
    )
    op.create_index('ix_po_lines_org_sku', 'purchase_order_lines', ['org_id', 'sku'])

    # =========================================================================
    # Derived tables
    # =========================================================================
    op.create_table(
        'sales_daily',
        sa.Column('org_id', sa.String(length=64), nullable=False),
        sa.Column('date', sa.Date(), nullable=False),
        sa.Column('sku', sa.String(length=100), nullable=False),
        sa.Column('warehouse_id', sa.String(length=64), nullable=False),
        sa.Column('channel', sa.String(length=64), nullable=False),
        sa.Column('units', sa.Float(), nullable=False),
        sa.Column('revenue', sa.Float(), nullable=False),
        sa.Column('orders', sa.Integer(), nullable=False),
        _updated_at(),
        sa.PrimaryKeyConstraint('org_id', 'date', 'sku', 'warehouse_id', 'channel'),
    )
    op.create_index('ix_sales_daily_org_wh_date', 'sales_daily', ['org_id', 'warehouse_id', 'date'])
    op.create_table(
        'buffers',
        sa.Column('org_id', sa.String(length=64), nullable=False),
        sa.Column('sku', sa.String(length=100), nullable=False),
        sa.Column('warehouse_id', sa.String(length=64), nullable=False),
        sa.Column('lead_time_days', sa.Float(), nullable=False),
        sa.Column('avg_daily_demand', sa.Float(), nullable=False),
        sa.Column('buffer_qty', sa.Float(), nullable=False),
        sa.Column('red_th', sa.Float(), nullable=False),
        sa.Column('yellow_th', sa.Float(), nullable=False),
        _updated_at(),
        sa.PrimaryKeyConstraint('org_id', 'sku', 'warehouse_id'),
    )


def downgrade() -> None:
    op.drop_table('buffers')
    op.drop_index('ix_sales_daily_org_wh_date', table_name='sales_daily')
    op.drop_table('sales_daily')
    op.drop_index('ix_po_lines_org_sku', table_name='purchase_order_lines')
    op.drop_table('purchase_order_lines')
    op.drop_index('ix_purchase_orders_supplier_id', table_name='purchase_orders')
    op.drop_table('purchase_orders')
    op.drop_index('ix_stock_org_wh_date', table_name='stock_snapshots')
    op.drop_table('stock_snapshots')
    op.drop_index('ix_sales_events_org_datetime', table_name='sales_events')
    op.drop_index('ix_sales_events_order_datetime', table_name='sales_events')
    op.drop_table('sales_events')
    op.drop_table('lead_time_stats')
    op.drop_table('catalog')
    op.drop_index('ix_suppliers_org_id', table_name='suppliers')
    op.drop_table('suppliers')
    op.drop_index('ix_warehouses_org_id', table_name='warehouses')
    op.drop_table('warehouses')
    op.drop_table('orgs')
