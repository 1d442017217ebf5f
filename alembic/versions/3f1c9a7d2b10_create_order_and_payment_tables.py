"""create_order_and_payment_tables

Revision ID: 3f1c9a7d2b10
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = '3f1c9a7d2b10'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

MONEY = sa.Numeric(15, 4)
JSON = sa.JSON().with_variant(postgresql.JSONB(), 'postgresql')

payment_status = sa.Enum(
    'created', 'paid', 'failed', 'refunded', name='payment_order_status_enum'
)
refund_status = sa.Enum(
    'pending', 'processed', 'failed', name='payment_refund_status_enum'
)
refund_type = sa.Enum('full', 'partial', name='payment_refund_type_enum')


def _address_columns(prefix: str) -> list:
    return [
        sa.Column(f'{prefix}_firstname', sa.String(32), nullable=True),
        sa.Column(f'{prefix}_lastname', sa.String(32), nullable=True),
        sa.Column(f'{prefix}_address_1', sa.String(128), nullable=True),
        sa.Column(f'{prefix}_address_2', sa.String(128), nullable=True),
        sa.Column(f'{prefix}_city', sa.String(128), nullable=True),
        sa.Column(f'{prefix}_postcode', sa.String(10), nullable=True),
        sa.Column(f'{prefix}_country', sa.String(128), nullable=True),
        sa.Column(f'{prefix}_zone', sa.String(128), nullable=True),
        sa.Column(f'{prefix}_method', sa.String(128), nullable=True),
        sa.Column(f'{prefix}_code', sa.String(128), nullable=True),
    ]


def upgrade() -> None:
    """Upgrade schema - Orders, vendor mirrors and Razorpay tables."""

    # Orders
    op.create_table(
        'order_parent',
        sa.Column('parent_order_id', sa.String(32), nullable=False),
        sa.Column('customer_id', sa.Integer(), nullable=False),
        sa.Column('firstname', sa.String(32), nullable=True),
        sa.Column('lastname', sa.String(32), nullable=True),
        sa.Column('email', sa.String(96), nullable=True),
        sa.Column('telephone', sa.String(32), nullable=True),
        sa.Column('payment_method', sa.String(128), nullable=True),
        sa.Column('payment_code', sa.String(128), nullable=True),
        sa.Column('order_ids', JSON, nullable=True),
        sa.Column('courier_charges', MONEY, nullable=True),
        sa.Column('total', MONEY, nullable=True),
        sa.Column('ip', sa.String(40), nullable=True),
        sa.Column('user_agent', sa.String(255), nullable=True),
        sa.Column('date_added', sa.DateTime(timezone=True), nullable=True),
        sa.Column('date_modified', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('parent_order_id')
    )
    op.create_index('ix_order_parent_customer_id', 'order_parent', ['customer_id'])

    op.create_table(
        'order',
        sa.Column('order_id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('parent_order_id', sa.String(32), nullable=True),
        sa.Column('vendor_id', sa.Integer(), nullable=False),
        sa.Column('invoice_no', sa.Integer(), nullable=True),
        sa.Column('invoice_prefix', sa.String(26), nullable=True),
        sa.Column('store_name', sa.String(64), nullable=True),
        sa.Column('store_url', sa.String(255), nullable=True),
        sa.Column('customer_id', sa.Integer(), nullable=False),
        sa.Column('firstname', sa.String(32), nullable=True),
        sa.Column('lastname', sa.String(32), nullable=True),
        sa.Column('email', sa.String(96), nullable=True),
        sa.Column('telephone', sa.String(32), nullable=True),
        sa.Column('alternate_mobile', sa.String(32), nullable=True),
        sa.Column('gst_no', sa.String(32), nullable=True),
        *_address_columns('payment'),
        *_address_columns('shipping'),
        sa.Column('comment', sa.Text(), nullable=True),
        sa.Column('total', MONEY, nullable=True),
        sa.Column('courier_charge', MONEY, nullable=True),
        sa.Column('order_status_id', sa.Integer(), nullable=False),
        sa.Column('currency_code', sa.String(3), nullable=True),
        sa.Column('ip', sa.String(40), nullable=True),
        sa.Column('user_agent', sa.String(255), nullable=True),
        sa.Column('date_added', sa.DateTime(timezone=True), nullable=True),
        sa.Column('date_modified', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['parent_order_id'], ['order_parent.parent_order_id']),
        sa.PrimaryKeyConstraint('order_id')
    )
    op.create_index('ix_order_parent_order_id', 'order', ['parent_order_id'])
    op.create_index('ix_order_vendor_id', 'order', ['vendor_id'])
    op.create_index('ix_order_customer_id', 'order', ['customer_id'])
    op.create_index('ix_order_order_status_id', 'order', ['order_status_id'])

    op.create_table(
        'order_product',
        sa.Column('order_product_id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('order_id', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(255), nullable=True),
        sa.Column('model', sa.String(64), nullable=True),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('price', MONEY, nullable=False),
        sa.Column('total', MONEY, nullable=False),
        sa.Column('tax', MONEY, nullable=True),
        sa.Column('options', JSON, nullable=True),
        sa.ForeignKeyConstraint(['order_id'], ['order.order_id']),
        sa.PrimaryKeyConstraint('order_product_id')
    )
    op.create_index('ix_order_product_order_id', 'order_product', ['order_id'])

    op.create_table(
        'order_total',
        sa.Column('order_total_id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('order_id', sa.Integer(), nullable=False),
        sa.Column('code', sa.String(32), nullable=False),
        sa.Column('title', sa.String(255), nullable=True),
        sa.Column('value', MONEY, nullable=False),
        sa.Column('sort_order', sa.Integer(), nullable=True),
        sa.ForeignKeyConstraint(['order_id'], ['order.order_id']),
        sa.PrimaryKeyConstraint('order_total_id')
    )
    op.create_index('ix_order_total_order_id', 'order_total', ['order_id'])

    op.create_table(
        'order_history',
        sa.Column('order_history_id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('order_id', sa.Integer(), nullable=False),
        sa.Column('order_status_id', sa.Integer(), nullable=False),
        sa.Column('notify', sa.Boolean(), nullable=True),
        sa.Column('comment', sa.Text(), nullable=True),
        sa.Column('date_added', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['order_id'], ['order.order_id']),
        sa.PrimaryKeyConstraint('order_history_id')
    )
    op.create_index('ix_order_history_order_id', 'order_history', ['order_id'])

    # Vendor mirrors
    op.create_table(
        'vendor_order_product',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('vendor_id', sa.Integer(), nullable=False),
        sa.Column('order_id', sa.Integer(), nullable=False),
        sa.Column('order_product_id', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(255), nullable=True),
        sa.Column('model', sa.String(64), nullable=True),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('price', MONEY, nullable=False),
        sa.Column('total', MONEY, nullable=False),
        sa.Column('order_status_id', sa.Integer(), nullable=False),
        sa.Column('date_added', sa.DateTime(timezone=True), nullable=True),
        sa.Column('date_modified', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['order_id'], ['order.order_id']),
        sa.ForeignKeyConstraint(
            ['order_product_id'], ['order_product.order_product_id']
        ),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(
        'ix_vendor_order_product_vendor_id', 'vendor_order_product', ['vendor_id']
    )
    op.create_index(
        'ix_vendor_order_product_order_id', 'vendor_order_product', ['order_id']
    )

    op.create_table(
        'order_vendorhistory',
        sa.Column(
            'order_vendorhistory_id', sa.Integer(), autoincrement=True, nullable=False
        ),
        sa.Column('order_id', sa.Integer(), nullable=False),
        sa.Column('order_status_id', sa.Integer(), nullable=False),
        sa.Column('vendor_id', sa.Integer(), nullable=False),
        sa.Column('order_product_id', sa.Integer(), nullable=False),
        sa.Column('comment', sa.Text(), nullable=True),
        sa.Column('date_added', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['order_id'], ['order.order_id']),
        sa.PrimaryKeyConstraint('order_vendorhistory_id')
    )
    op.create_index(
        'ix_order_vendorhistory_order_line',
        'order_vendorhistory',
        ['order_id', 'order_product_id'],
    )

    # Razorpay
    op.create_table(
        'payment_order',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('razorpay_order_id', sa.String(64), nullable=False),
        sa.Column('customer_id', sa.Integer(), nullable=False),
        sa.Column('amount', sa.Integer(), nullable=False),
        sa.Column('amount_refunded', sa.Integer(), nullable=False),
        sa.Column('currency', sa.String(3), nullable=False),
        sa.Column('receipt', sa.String(40), nullable=False),
        sa.Column('status', payment_status, nullable=False),
        sa.Column('razorpay_payment_id', sa.String(64), nullable=True),
        sa.Column('razorpay_signature', sa.String(128), nullable=True),
        sa.Column('payment_method', sa.String(32), nullable=True),
        sa.Column('order_id', sa.Integer(), nullable=True),
        sa.Column('parent_order_id', sa.String(32), nullable=True),
        sa.Column('notes', JSON, nullable=True),
        sa.Column('error_description', sa.Text(), nullable=True),
        sa.Column('paid_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['order_id'], ['order.order_id']),
        sa.ForeignKeyConstraint(['parent_order_id'], ['order_parent.parent_order_id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('receipt')
    )
    op.create_index(
        'ix_payment_order_razorpay_order_id',
        'payment_order',
        ['razorpay_order_id'],
        unique=True,
    )
    op.create_index('ix_payment_order_customer_id', 'payment_order', ['customer_id'])
    op.create_index(
        'ix_payment_order_razorpay_payment_id', 'payment_order', ['razorpay_payment_id']
    )
    op.create_index('ix_payment_order_order_id', 'payment_order', ['order_id'])
    op.create_index(
        'ix_payment_order_parent_order_id', 'payment_order', ['parent_order_id']
    )

    op.create_table(
        'payment_webhook_log',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('event_id', sa.String(128), nullable=False),
        sa.Column('event_type', sa.String(64), nullable=False),
        sa.Column('entity_type', sa.String(32), nullable=True),
        sa.Column('entity_id', sa.String(64), nullable=True),
        sa.Column('payload', JSON, nullable=True),
        sa.Column('raw_body', sa.Text(), nullable=False),
        sa.Column('signature', sa.String(128), nullable=True),
        sa.Column('signature_verified', sa.Boolean(), nullable=True),
        sa.Column('processed', sa.Boolean(), nullable=True),
        sa.Column('processed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('retry_count', sa.Integer(), nullable=False),
        sa.Column('delivery_count', sa.Integer(), nullable=False),
        sa.Column('processing_error', sa.Text(), nullable=True),
        sa.Column('dead_lettered', sa.Boolean(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(
        'ix_payment_webhook_log_event_id',
        'payment_webhook_log',
        ['event_id'],
        unique=True,
    )
    op.create_index(
        'ix_payment_webhook_log_event_type', 'payment_webhook_log', ['event_type']
    )
    op.create_index(
        'ix_payment_webhook_log_entity_id', 'payment_webhook_log', ['entity_id']
    )
    op.create_index(
        'ix_payment_webhook_log_processed', 'payment_webhook_log', ['processed']
    )
    op.create_index(
        'ix_payment_webhook_log_dead_lettered', 'payment_webhook_log', ['dead_lettered']
    )

    op.create_table(
        'payment_refund',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('razorpay_refund_id', sa.String(64), nullable=False),
        sa.Column('razorpay_payment_id', sa.String(64), nullable=False),
        sa.Column('payment_record_id', sa.Integer(), nullable=False),
        sa.Column('order_id', sa.Integer(), nullable=True),
        sa.Column('amount', sa.Integer(), nullable=False),
        sa.Column('currency', sa.String(3), nullable=False),
        sa.Column('status', refund_status, nullable=False),
        sa.Column('refund_type', refund_type, nullable=False),
        sa.Column('reason', sa.Text(), nullable=True),
        sa.Column('receipt', sa.String(40), nullable=True),
        sa.Column('notes', JSON, nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('processed_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['payment_record_id'], ['payment_order.id']),
        sa.ForeignKeyConstraint(['order_id'], ['order.order_id']),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(
        'ix_payment_refund_razorpay_refund_id',
        'payment_refund',
        ['razorpay_refund_id'],
        unique=True,
    )
    op.create_index(
        'ix_payment_refund_razorpay_payment_id', 'payment_refund', ['razorpay_payment_id']
    )
    op.create_index(
        'ix_payment_refund_payment_record_id', 'payment_refund', ['payment_record_id']
    )


def downgrade() -> None:
    """Downgrade schema - Drop orders and Razorpay tables."""
    op.drop_table('payment_refund')
    op.drop_table('payment_webhook_log')
    op.drop_table('payment_order')
    op.drop_table('order_vendorhistory')
    op.drop_table('vendor_order_product')
    op.drop_table('order_history')
    op.drop_table('order_total')
    op.drop_table('order_product')
    op.drop_table('order')
    op.drop_table('order_parent')

    bind = op.get_bind()
    refund_type.drop(bind, checkfirst=True)
    refund_status.drop(bind, checkfirst=True)
    payment_status.drop(bind, checkfirst=True)
