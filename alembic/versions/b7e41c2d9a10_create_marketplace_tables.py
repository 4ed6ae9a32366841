"""create_marketplace_tables

Revision ID: b7e41c2d9a10
Revises:
Create Date: 2026-01-04 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = 'b7e41c2d9a10'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


ORDER_STATUS = sa.Enum(
    'pending', 'accepted', 'rejected', 'preparing', 'ready',
    'ready_for_pickup', 'out_for_delivery', 'delivered', 'canceled',
    name='market_order_status_enum',
)
JSON_TYPE = sa.JSON().with_variant(postgresql.JSONB(), 'postgresql')

# market_order_status_history reuses the type created with market_orders
ORDER_STATUS_EXISTING = postgresql.ENUM(
    *ORDER_STATUS.enums, name='market_order_status_enum', create_type=False
)
ORDER_TYPE = sa.Enum('pickup', 'delivery', name='market_order_type_enum')
ORDER_SOURCE = sa.Enum('cart', 'direct', name='market_order_source_enum')
PAYMENT_STATUS = sa.Enum('pending', 'paid', 'failed', name='market_payment_status_enum')
PAYMENT_METHOD = sa.Enum(
    'cash_on_delivery', 'cash_on_pickup', 'gcash', 'gcash_manual',
    name='market_payment_method_enum',
)
CANCELED_BY = sa.Enum('customer', 'seller', name='market_canceled_by_enum')
PROOF_STATUS = sa.Enum(
    'pending_verification', 'approved', 'rejected',
    name='market_payment_proof_status_enum',
)


def upgrade() -> None:
    """Upgrade schema - Add marketplace catalog, cart, order and payment tables."""

    # Catalog
    op.create_table(
        'market_stores',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('owner_id', sa.String(length=255), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('image_url', sa.String(length=512), nullable=True),
        sa.Column('is_active', sa.Boolean(), server_default='1', nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id', name='pk_market_stores'),
    )
    op.create_index('ix_market_stores_owner_id', 'market_stores', ['owner_id'], unique=True)

    op.create_table(
        'market_products',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('store_id', sa.Uuid(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('image_url', sa.String(length=512), nullable=True),
        sa.Column('category', sa.String(length=100), nullable=True),
        sa.Column('base_price', sa.Numeric(12, 2), nullable=False),
        sa.Column('stock', sa.Integer(), server_default='0', nullable=False),
        sa.Column('is_available', sa.Boolean(), server_default='0', nullable=True),
        sa.Column('estimated_time', sa.Integer(), server_default='30', nullable=True),
        sa.Column('shipping_fee', sa.Numeric(12, 2), server_default='0', nullable=True),
        sa.Column('total_sold', sa.Integer(), server_default='0', nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint('stock >= 0', name='ck_market_products_product_positive_stock'),
        sa.CheckConstraint('base_price >= 0', name='ck_market_products_product_positive_price'),
        sa.ForeignKeyConstraint(
            ['store_id'], ['market_stores.id'],
            name='fk_market_products_store_id_market_stores', ondelete='CASCADE',
        ),
        sa.PrimaryKeyConstraint('id', name='pk_market_products'),
    )
    op.create_index('ix_market_products_store_id', 'market_products', ['store_id'])

    op.create_table(
        'market_variant_categories',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('product_id', sa.Uuid(), nullable=False),
        sa.Column('name', sa.String(length=100), nullable=False),
        sa.Column('is_required', sa.Boolean(), server_default='1', nullable=True),
        sa.Column('allow_multiple', sa.Boolean(), server_default='0', nullable=True),
        sa.Column('position', sa.Integer(), server_default='0', nullable=True),
        sa.ForeignKeyConstraint(
            ['product_id'], ['market_products.id'],
            name='fk_market_variant_categories_product_id_market_products', ondelete='CASCADE',
        ),
        sa.PrimaryKeyConstraint('id', name='pk_market_variant_categories'),
    )
    op.create_index(
        'ix_market_variant_categories_product_id', 'market_variant_categories', ['product_id']
    )

    op.create_table(
        'market_variant_choices',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('category_id', sa.Uuid(), nullable=False),
        sa.Column('name', sa.String(length=100), nullable=False),
        sa.Column('image_url', sa.String(length=512), nullable=True),
        sa.Column('sku', sa.String(length=100), nullable=True),
        sa.Column('price', sa.Numeric(12, 2), nullable=True),
        sa.Column('price_adjustment', sa.Numeric(12, 2), nullable=True),
        sa.Column('stock', sa.Integer(), server_default='0', nullable=False),
        sa.Column('is_available', sa.Boolean(), server_default='1', nullable=True),
        sa.Column('position', sa.Integer(), server_default='0', nullable=True),
        sa.CheckConstraint('stock >= 0', name='ck_market_variant_choices_choice_positive_stock'),
        sa.ForeignKeyConstraint(
            ['category_id'], ['market_variant_categories.id'],
            name='fk_market_variant_choices_category_id_market_variant_categories',
            ondelete='CASCADE',
        ),
        sa.PrimaryKeyConstraint('id', name='pk_market_variant_choices'),
    )
    op.create_index(
        'ix_market_variant_choices_category_id', 'market_variant_choices', ['category_id']
    )

    # Cart
    op.create_table(
        'market_carts',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('customer_id', sa.String(length=255), nullable=False),
        sa.Column('total', sa.Numeric(12, 2), server_default='0', nullable=True),
        sa.Column('line_count', sa.Integer(), server_default='0', nullable=True),
        sa.Column('item_count', sa.Integer(), server_default='0', nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id', name='pk_market_carts'),
    )
    op.create_index('ix_market_carts_customer_id', 'market_carts', ['customer_id'], unique=True)

    op.create_table(
        'market_cart_items',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('cart_id', sa.Uuid(), nullable=False),
        sa.Column('product_id', sa.Uuid(), nullable=False),
        sa.Column('product_snapshot', JSON_TYPE, nullable=False),
        sa.Column('variant_selections', JSON_TYPE, nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('unit_price', sa.Numeric(12, 2), nullable=False),
        sa.Column('subtotal', sa.Numeric(12, 2), nullable=False),
        sa.Column('is_modified', sa.Boolean(), server_default='0', nullable=True),
        sa.Column('modification_note', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint('quantity > 0', name='ck_market_cart_items_cart_positive_quantity'),
        sa.ForeignKeyConstraint(
            ['cart_id'], ['market_carts.id'],
            name='fk_market_cart_items_cart_id_market_carts', ondelete='CASCADE',
        ),
        sa.PrimaryKeyConstraint('id', name='pk_market_cart_items'),
    )
    op.create_index('ix_market_cart_items_cart_id', 'market_cart_items', ['cart_id'])
    op.create_index('ix_market_cart_items_product_id', 'market_cart_items', ['product_id'])

    # Orders
    op.create_table(
        'market_orders',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('order_number', sa.String(length=30), nullable=False),
        sa.Column('customer_id', sa.String(length=255), nullable=False),
        sa.Column('seller_id', sa.String(length=255), nullable=False),
        sa.Column('store_id', sa.Uuid(), nullable=False),
        sa.Column('subtotal', sa.Numeric(12, 2), nullable=False),
        sa.Column('shipping_fee', sa.Numeric(12, 2), server_default='0', nullable=True),
        sa.Column('total_amount', sa.Numeric(12, 2), nullable=False),
        sa.Column('order_type', ORDER_TYPE, nullable=False),
        sa.Column('status', ORDER_STATUS, server_default='pending', nullable=True),
        sa.Column('source', ORDER_SOURCE, server_default='cart', nullable=True),
        sa.Column('stock_deducted', sa.Boolean(), server_default='0', nullable=True),
        sa.Column('payment_status', PAYMENT_STATUS, server_default='pending', nullable=True),
        sa.Column('payment_method', PAYMENT_METHOD, nullable=False),
        sa.Column('payment_reference', sa.String(length=100), nullable=True),
        sa.Column('delivery_details', JSON_TYPE, nullable=True),
        sa.Column('pickup_details', JSON_TYPE, nullable=True),
        sa.Column('estimated_delivery_time', sa.Integer(), nullable=True),
        sa.Column('estimated_preparation_time', sa.Integer(), nullable=True),
        sa.Column('estimated_completion_time', sa.DateTime(timezone=True), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('seller_notes', sa.Text(), nullable=True),
        sa.Column('cancellation_reason', sa.Text(), nullable=True),
        sa.Column('canceled_by', CANCELED_BY, nullable=True),
        sa.Column('accepted_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('canceled_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('delivered_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('paid_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(
            ['store_id'], ['market_stores.id'],
            name='fk_market_orders_store_id_market_stores',
        ),
        sa.PrimaryKeyConstraint('id', name='pk_market_orders'),
    )
    op.create_index('ix_market_orders_order_number', 'market_orders', ['order_number'], unique=True)
    op.create_index('ix_market_orders_customer_id', 'market_orders', ['customer_id'])
    op.create_index('ix_market_orders_seller_id', 'market_orders', ['seller_id'])
    op.create_index('ix_market_orders_store_id', 'market_orders', ['store_id'])
    op.create_index('ix_market_orders_status', 'market_orders', ['status'])
    op.create_index(
        'ix_market_orders_customer_created', 'market_orders', ['customer_id', 'created_at']
    )
    op.create_index(
        'ix_market_orders_seller_created', 'market_orders', ['seller_id', 'created_at']
    )

    op.create_table(
        'market_order_items',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('order_id', sa.Uuid(), nullable=False),
        sa.Column('product_id', sa.Uuid(), nullable=False),
        sa.Column('product_snapshot', JSON_TYPE, nullable=False),
        sa.Column('variant_selections', JSON_TYPE, nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('unit_price', sa.Numeric(12, 2), nullable=False),
        sa.Column('subtotal', sa.Numeric(12, 2), nullable=False),
        sa.Column('position', sa.Integer(), server_default='0', nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint('quantity > 0', name='ck_market_order_items_order_positive_quantity'),
        sa.ForeignKeyConstraint(
            ['order_id'], ['market_orders.id'],
            name='fk_market_order_items_order_id_market_orders', ondelete='CASCADE',
        ),
        sa.PrimaryKeyConstraint('id', name='pk_market_order_items'),
    )
    op.create_index('ix_market_order_items_order_id', 'market_order_items', ['order_id'])
    op.create_index('ix_market_order_items_product_id', 'market_order_items', ['product_id'])

    op.create_table(
        'market_order_status_history',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('order_id', sa.Uuid(), nullable=False),
        sa.Column('status', ORDER_STATUS_EXISTING, nullable=False),
        sa.Column('note', sa.Text(), nullable=True),
        sa.Column('changed_by', sa.String(length=255), nullable=True),
        sa.Column('sequence', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(
            ['order_id'], ['market_orders.id'],
            name='fk_market_order_status_history_order_id_market_orders', ondelete='CASCADE',
        ),
        sa.PrimaryKeyConstraint('id', name='pk_market_order_status_history'),
    )
    op.create_index(
        'ix_market_order_status_history_order_id', 'market_order_status_history', ['order_id']
    )

    # Payments
    op.create_table(
        'market_payment_proofs',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('order_id', sa.Uuid(), nullable=False),
        sa.Column('reference', sa.String(length=100), nullable=False),
        sa.Column('proof_image_url', sa.String(length=512), nullable=False),
        sa.Column('status', PROOF_STATUS, server_default='pending_verification', nullable=True),
        sa.Column('uploaded_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('reviewed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('reviewed_by', sa.String(length=255), nullable=True),
        sa.Column('rejection_reason', sa.Text(), nullable=True),
        sa.ForeignKeyConstraint(
            ['order_id'], ['market_orders.id'],
            name='fk_market_payment_proofs_order_id_market_orders', ondelete='CASCADE',
        ),
        sa.PrimaryKeyConstraint('id', name='pk_market_payment_proofs'),
        sa.UniqueConstraint('order_id', name='uq_market_payment_proofs_order_id'),
    )


def downgrade() -> None:
    """Downgrade schema - Remove marketplace tables."""

    op.drop_table('market_payment_proofs')
    op.drop_table('market_order_status_history')
    op.drop_table('market_order_items')
    op.drop_table('market_orders')
    op.drop_table('market_cart_items')
    op.drop_table('market_carts')
    op.drop_table('market_variant_choices')
    op.drop_table('market_variant_categories')
    op.drop_table('market_products')
    op.drop_table('market_stores')

    bind = op.get_bind()
    for enum_type in (
        PROOF_STATUS, CANCELED_BY, PAYMENT_METHOD, PAYMENT_STATUS,
        ORDER_SOURCE, ORDER_TYPE, ORDER_STATUS,
    ):
        enum_type.drop(bind, checkfirst=True)
