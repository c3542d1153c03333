"""Create checkout, inventory ledger and discount tables

Revision ID: 20261018_create_checkout_schema
Revises:
Create Date: 2026-10-18
"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID, JSONB


# revision identifiers, used by Alembic.
revision = '20261018_create_checkout_schema'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        'users',
        sa.Column('id', UUID(as_uuid=True), primary_key=True),
        sa.Column('email', sa.String(255), nullable=False, unique=True, index=True),
        sa.Column('first_name', sa.String(100), nullable=False),
        sa.Column('last_name', sa.String(100), nullable=True),
        sa.Column('role', sa.String(50), nullable=False, server_default='CUSTOMER',
                  comment='ADMIN, CUSTOMER, DISTRIBUTOR, WHOLESALE_BUYER, RETAIL_REFERRER'),
        sa.Column('wholesale_eligibility', sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column('wholesale_approved_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('is_active', sa.Boolean, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )

    op.create_table(
        'products',
        sa.Column('id', UUID(as_uuid=True), primary_key=True),
        sa.Column('sku', sa.String(50), nullable=False, unique=True, index=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('price', sa.Numeric(12, 2), nullable=False),
        sa.Column('is_active', sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )

    op.create_table(
        'stock_locations',
        sa.Column('id', sa.String(50), primary_key=True),
        sa.Column('name', sa.String(200), nullable=False),
        sa.Column('province', sa.String(2), nullable=True),
        sa.Column('is_active', sa.Boolean, nullable=False, server_default=sa.true()),
    )

    op.create_table(
        'stock_levels',
        sa.Column('id', UUID(as_uuid=True), primary_key=True),
        sa.Column('product_id', UUID(as_uuid=True), sa.ForeignKey('products.id'), nullable=False, index=True),
        sa.Column('location_id', sa.String(50), sa.ForeignKey('stock_locations.id'), nullable=False, index=True),
        sa.Column('quantity', sa.Integer, nullable=False, server_default='0'),
        sa.Column('reserved_quantity', sa.Integer, nullable=False, server_default='0'),
        sa.Column('reorder_point', sa.Integer, nullable=True),
        sa.Column('reorder_quantity', sa.Integer, nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint('product_id', 'location_id', name='uq_stock_level_product_location'),
        sa.CheckConstraint('quantity >= 0', name='ck_stock_level_quantity_non_negative'),
        sa.CheckConstraint('reserved_quantity >= 0 AND reserved_quantity <= quantity',
                           name='ck_stock_level_reserved_within_quantity'),
    )

    op.create_table(
        'orders',
        sa.Column('id', UUID(as_uuid=True), primary_key=True),
        sa.Column('order_number', sa.String(30), nullable=False, unique=True, index=True),
        sa.Column('user_id', UUID(as_uuid=True), sa.ForeignKey('users.id', ondelete='RESTRICT'),
                  nullable=False, index=True),
        sa.Column('status', sa.String(50), nullable=False, server_default='PENDING_APPROVAL', index=True,
                  comment='PENDING_APPROVAL, APPROVED, PROCESSING, SHIPPED, DELIVERED, CANCELLED, REFUNDED'),
        sa.Column('location_id', sa.String(50), sa.ForeignKey('stock_locations.id'), nullable=False),
        sa.Column('is_wholesale', sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column('total_quantity', sa.Integer, nullable=False),
        sa.Column('subtotal', sa.Numeric(12, 2), nullable=False),
        sa.Column('discount_amount', sa.Numeric(12, 2), nullable=False, server_default='0'),
        sa.Column('shipping_cost', sa.Numeric(12, 2), nullable=False, server_default='0'),
        sa.Column('taxes', sa.Numeric(12, 2), nullable=False, server_default='0'),
        sa.Column('total_amount', sa.Numeric(12, 2), nullable=False),
        sa.Column('discount_code', sa.String(50), nullable=True),
        sa.Column('payment_method', sa.String(50), nullable=False,
                  comment='CREDIT_CARD, E_TRANSFER, BITCOIN, MANUAL'),
        sa.Column('payment_status', sa.String(50), nullable=False, server_default='PENDING',
                  comment='PENDING, AWAITING_CONFIRMATION, PROCESSING, COMPLETED, FAILED, REFUNDED'),
        sa.Column('payment_transaction_id', sa.String(100), nullable=True),
        sa.Column('shipping_address', JSONB, nullable=False),
        sa.Column('billing_address', JSONB, nullable=False),
        sa.Column('notes', sa.Text, nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index('ix_orders_payment_status_created', 'orders', ['payment_status', 'created_at'])

    op.create_table(
        'order_items',
        sa.Column('id', UUID(as_uuid=True), primary_key=True),
        sa.Column('order_id', UUID(as_uuid=True), sa.ForeignKey('orders.id', ondelete='CASCADE'),
                  nullable=False, index=True),
        sa.Column('product_id', UUID(as_uuid=True), sa.ForeignKey('products.id', ondelete='RESTRICT'),
                  nullable=False),
        sa.Column('product_name', sa.String(255), nullable=False),
        sa.Column('unit_price', sa.Numeric(12, 2), nullable=False),
        sa.Column('quantity', sa.Integer, nullable=False),
        sa.Column('total_amount', sa.Numeric(12, 2), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )

    op.create_table(
        'order_status_history',
        sa.Column('id', UUID(as_uuid=True), primary_key=True),
        sa.Column('order_id', UUID(as_uuid=True), sa.ForeignKey('orders.id', ondelete='CASCADE'), nullable=False),
        sa.Column('from_status', sa.String(50), nullable=True),
        sa.Column('to_status', sa.String(50), nullable=False),
        sa.Column('changed_by', UUID(as_uuid=True), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.Column('notes', sa.Text, nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )

    op.create_table(
        'payments',
        sa.Column('id', UUID(as_uuid=True), primary_key=True),
        sa.Column('order_id', UUID(as_uuid=True), sa.ForeignKey('orders.id', ondelete='CASCADE'),
                  nullable=False, index=True),
        sa.Column('amount', sa.Numeric(12, 2), nullable=False),
        sa.Column('method', sa.String(50), nullable=False),
        sa.Column('status', sa.String(50), nullable=False),
        sa.Column('transaction_id', sa.String(100), nullable=True),
        sa.Column('gateway', sa.String(50), nullable=True),
        sa.Column('message', sa.Text, nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )

    op.create_table(
        'stock_movements',
        sa.Column('id', UUID(as_uuid=True), primary_key=True),
        sa.Column('movement_type', sa.String(50), nullable=False, index=True,
                  comment='ORDER_PLACEMENT, RECEIPT, ADJUSTMENT_PLUS, ADJUSTMENT_MINUS, RESERVED, RELEASED, '
                          'FULFILLED, TRANSFER_OUT, TRANSFER_IN'),
        sa.Column('product_id', UUID(as_uuid=True), sa.ForeignKey('products.id'), nullable=False, index=True),
        sa.Column('location_id', sa.String(50), sa.ForeignKey('stock_locations.id'), nullable=False, index=True),
        sa.Column('quantity', sa.Integer, nullable=False, server_default='0',
                  comment='On-hand delta, negative for outgoing'),
        sa.Column('reserved_quantity', sa.Integer, nullable=False, server_default='0',
                  comment='Reserved delta'),
        sa.Column('reference_type', sa.String(50), nullable=True),
        sa.Column('reference_id', UUID(as_uuid=True), nullable=True),
        sa.Column('created_by', UUID(as_uuid=True), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('notes', sa.Text, nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now(), index=True),
    )

    op.create_table(
        'discount_codes',
        sa.Column('id', UUID(as_uuid=True), primary_key=True),
        sa.Column('code', sa.String(50), nullable=False, unique=True, index=True,
                  comment='Unique code, stored upper-case'),
        sa.Column('description', sa.Text, nullable=True),
        sa.Column('discount_type', sa.String(50), nullable=False, server_default='PERCENTAGE',
                  comment='PERCENTAGE, FIXED_AMOUNT'),
        sa.Column('discount_value', sa.Numeric(10, 2), nullable=False, server_default='0',
                  comment='Discount value (percentage or amount)'),
        sa.Column('max_discount_amount', sa.Numeric(10, 2), nullable=True,
                  comment='Cap on discount for PERCENTAGE type'),
        sa.Column('min_order_amount', sa.Numeric(10, 2), nullable=False, server_default='0',
                  comment='Minimum subtotal to apply the code'),
        sa.Column('usage_limit', sa.Integer, nullable=True,
                  comment='Total times this code can be used (null = unlimited)'),
        sa.Column('times_used', sa.Integer, nullable=False, server_default='0',
                  comment='Number of times the code has been redeemed'),
        sa.Column('start_date', sa.Date, nullable=False),
        sa.Column('end_date', sa.Date, nullable=True, comment='Last valid day (null = never expires)'),
        sa.Column('is_active', sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint('usage_limit IS NULL OR times_used <= usage_limit',
                           name='ck_discount_codes_usage_within_limit'),
    )

    op.create_table(
        'discount_redemptions',
        sa.Column('id', UUID(as_uuid=True), primary_key=True),
        sa.Column('discount_code_id', UUID(as_uuid=True),
                  sa.ForeignKey('discount_codes.id', ondelete='RESTRICT'), nullable=False, index=True),
        sa.Column('order_id', UUID(as_uuid=True), sa.ForeignKey('orders.id', ondelete='CASCADE'),
                  nullable=False, unique=True),
        sa.Column('user_id', UUID(as_uuid=True), sa.ForeignKey('users.id', ondelete='RESTRICT'), nullable=False),
        sa.Column('discount_amount', sa.Numeric(10, 2), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )

    op.create_table(
        'order_requirements',
        sa.Column('id', UUID(as_uuid=True), primary_key=True),
        sa.Column('role', sa.String(50), nullable=False, server_default='ALL', index=True,
                  comment='User role or ALL'),
        sa.Column('requirement_type', sa.String(50), nullable=False,
                  comment='MINIMUM_QUANTITY, WHOLESALE_MINIMUM_QUANTITY'),
        sa.Column('minimum_quantity', sa.Integer, nullable=False),
        sa.Column('is_active', sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )


def downgrade() -> None:
    op.drop_table('order_requirements')
    op.drop_table('discount_redemptions')
    op.drop_table('discount_codes')
    op.drop_table('stock_movements')
    op.drop_table('payments')
    op.drop_table('order_status_history')
    op.drop_table('order_items')
    op.drop_index('ix_orders_payment_status_created', table_name='orders')
    op.drop_table('orders')
    op.drop_table('stock_levels')
    op.drop_table('stock_locations')
    op.drop_table('products')
    op.drop_table('users')
