"""initial udhaar schema

Revision ID: u001_initial
Revises:
Create Date: 2026-10-19 00:00:00.000000

Creates the complete schema:
- merchants: tenant root and receipt seller profile
- session_tokens: hashed bearer tokens per merchant terminal
- customers: udhaar accounts with advance balance
- products: catalog with per-merchant SKU and non-negative stock
- invoices / invoice_items: finalized sales with snapshots
- ledger_events: append-only audit trail
- ledger_discrepancies: operator-visible reconciliation gaps
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = 'u001_initial'
down_revision = None
branch_labels = None
depends_on = None


def _timestamps():
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
    ]


def upgrade():
    # ============================================================================
    # merchants: tenant root
    # ============================================================================
    op.create_table(
        'merchants',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('code', sa.String(length=32), nullable=True),
        sa.Column('business_name', sa.String(length=255), nullable=True),
        sa.Column('business_address', sa.String(length=512), nullable=True),
        sa.Column('business_phone', sa.String(length=32), nullable=True),
        sa.Column('gstin', sa.String(length=32), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_merchants_code', 'merchants', ['code'], unique=True)
    op.create_index('ix_merchants_is_active', 'merchants', ['is_active'])

    # ============================================================================
    # session_tokens: identity provider
    # ============================================================================
    op.create_table(
        'session_tokens',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('merchant_id', sa.Integer(), nullable=False),
        sa.Column('token_hash', sa.String(length=255), nullable=False),
        sa.Column('terminal', sa.String(length=64), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('last_used_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('is_revoked', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('revoked_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('revoked_reason', sa.String(length=255), nullable=True),
        sa.ForeignKeyConstraint(['merchant_id'], ['merchants.id']),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_session_tokens_merchant_id', 'session_tokens', ['merchant_id'])
    op.create_index('ix_session_tokens_token_hash', 'session_tokens', ['token_hash'], unique=True)
    op.create_index('ix_session_tokens_expires_at', 'session_tokens', ['expires_at'])
    op.create_index('ix_session_tokens_is_revoked', 'session_tokens', ['is_revoked'])
    op.create_index('ix_session_tokens_merchant_active', 'session_tokens', ['merchant_id', 'is_revoked'])

    # ============================================================================
    # customers: udhaar accounts
    # ============================================================================
    op.create_table(
        'customers',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('merchant_id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('phone', sa.String(length=32), nullable=False),
        sa.Column('business_name', sa.String(length=255), nullable=True),
        sa.Column('address', sa.String(length=512), nullable=True),
        sa.Column('gstin', sa.String(length=32), nullable=True),
        sa.Column('invoice_prefix', sa.String(length=16), nullable=True),
        sa.Column('advance_balance_cents', sa.Integer(), nullable=False, server_default='0'),
        *_timestamps(),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        sa.ForeignKeyConstraint(['merchant_id'], ['merchants.id']),
        sa.CheckConstraint('advance_balance_cents >= 0', name='ck_customers_advance_non_negative'),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_customers_merchant_id', 'customers', ['merchant_id'])
    op.create_index('ix_customers_merchant_name', 'customers', ['merchant_id', 'name'])
    op.create_index('ix_customers_merchant_phone', 'customers', ['merchant_id', 'phone'])

    # ============================================================================
    # products: catalog
    # ============================================================================
    op.create_table(
        'products',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('merchant_id', sa.Integer(), nullable=False),
        sa.Column('sku', sa.String(length=64), nullable=True),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('category', sa.String(length=64), nullable=False),
        sa.Column('unit', sa.String(length=16), nullable=False, server_default='pcs'),
        sa.Column('price_cents', sa.Integer(), nullable=False),
        sa.Column('cost_price_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('stock', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        *_timestamps(),
        sa.ForeignKeyConstraint(['merchant_id'], ['merchants.id']),
        sa.UniqueConstraint('merchant_id', 'sku', name='uq_products_merchant_sku'),
        sa.CheckConstraint('stock >= 0', name='ck_products_stock_non_negative'),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_products_merchant_id', 'products', ['merchant_id'])
    op.create_index('ix_products_merchant_name', 'products', ['merchant_id', 'name'])

    # ============================================================================
    # invoices: finalized sales
    # ============================================================================
    op.create_table(
        'invoices',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('merchant_id', sa.Integer(), nullable=False),
        sa.Column('customer_id', sa.Integer(), nullable=True),
        sa.Column('customer_name', sa.String(length=255), nullable=False),
        sa.Column('customer_phone', sa.String(length=32), nullable=True),
        sa.Column('invoice_prefix', sa.String(length=16), nullable=False),
        sa.Column('invoice_sequence', sa.Integer(), nullable=False),
        sa.Column('full_invoice_number', sa.String(length=64), nullable=False),
        sa.Column('sale_mode', sa.String(length=16), nullable=False, server_default='retail'),
        sa.Column('payment_method', sa.String(length=16), nullable=False),
        sa.Column('payment_status', sa.String(length=16), nullable=False),
        sa.Column('total_amount_cents', sa.Integer(), nullable=False),
        sa.Column('paid_amount_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('due_amount_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('cash_received_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('advance_used_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('advance_credited_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('previous_balance_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('change_due_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('created_by_session_id', sa.Integer(), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        sa.ForeignKeyConstraint(['merchant_id'], ['merchants.id']),
        sa.ForeignKeyConstraint(['customer_id'], ['customers.id']),
        sa.ForeignKeyConstraint(['created_by_session_id'], ['session_tokens.id']),
        sa.UniqueConstraint('merchant_id', 'invoice_prefix', 'invoice_sequence',
                            name='uq_invoices_merchant_prefix_seq'),
        sa.CheckConstraint('due_amount_cents >= 0', name='ck_invoices_due_non_negative'),
        sa.CheckConstraint('paid_amount_cents >= 0', name='ck_invoices_paid_non_negative'),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_invoices_merchant_id', 'invoices', ['merchant_id'])
    op.create_index('ix_invoices_customer_id', 'invoices', ['customer_id'])
    op.create_index('ix_invoices_payment_status', 'invoices', ['payment_status'])
    op.create_index('ix_invoices_created_at', 'invoices', ['created_at'])
    op.create_index('ix_invoices_full_number', 'invoices', ['merchant_id', 'full_invoice_number'])
    op.create_index('ix_invoices_customer_due_created', 'invoices',
                    ['customer_id', 'due_amount_cents', 'created_at'])

    op.create_table(
        'invoice_items',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('invoice_id', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=True),
        sa.Column('product_name', sa.String(length=255), nullable=False),
        sa.Column('unit', sa.String(length=16), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('price_cents', sa.Integer(), nullable=False),
        sa.Column('total_cents', sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(['invoice_id'], ['invoices.id']),
        sa.ForeignKeyConstraint(['product_id'], ['products.id']),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_invoice_items_invoice_id', 'invoice_items', ['invoice_id'])
    op.create_index('ix_invoice_items_product_id', 'invoice_items', ['product_id'])

    # ============================================================================
    # ledger_events: append-only audit trail
    # ============================================================================
    op.create_table(
        'ledger_events',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('merchant_id', sa.Integer(), nullable=False),
        sa.Column('event_type', sa.String(length=64), nullable=False),
        sa.Column('entity_type', sa.String(length=64), nullable=False),
        sa.Column('entity_id', sa.Integer(), nullable=False),
        sa.Column('customer_id', sa.Integer(), nullable=True),
        sa.Column('invoice_id', sa.Integer(), nullable=True),
        sa.Column('amount_cents', sa.Integer(), nullable=True),
        sa.Column('occurred_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('note', sa.String(length=255), nullable=True),
        sa.Column('payload', sa.Text(), nullable=True),
        sa.ForeignKeyConstraint(['merchant_id'], ['merchants.id']),
        sa.ForeignKeyConstraint(['customer_id'], ['customers.id']),
        sa.ForeignKeyConstraint(['invoice_id'], ['invoices.id']),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_ledger_events_merchant_id', 'ledger_events', ['merchant_id'])
    op.create_index('ix_ledger_events_event_type', 'ledger_events', ['event_type'])
    op.create_index('ix_ledger_events_customer_id', 'ledger_events', ['customer_id'])
    op.create_index('ix_ledger_events_invoice_id', 'ledger_events', ['invoice_id'])
    op.create_index('ix_ledger_events_occurred_at', 'ledger_events', ['occurred_at'])
    op.create_index('ix_ledger_events_merchant_occurred', 'ledger_events', ['merchant_id', 'occurred_at'])

    # ============================================================================
    # ledger_discrepancies: reconciliation gaps for operators
    # ============================================================================
    op.create_table(
        'ledger_discrepancies',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('merchant_id', sa.Integer(), nullable=False),
        sa.Column('customer_id', sa.Integer(), nullable=True),
        sa.Column('invoice_id', sa.Integer(), nullable=True),
        sa.Column('kind', sa.String(length=32), nullable=False),
        sa.Column('amount_cents', sa.Integer(), nullable=False),
        sa.Column('detail', sa.String(length=512), nullable=True),
        sa.Column('is_resolved', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('resolved_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('resolution_note', sa.String(length=255), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.ForeignKeyConstraint(['merchant_id'], ['merchants.id']),
        sa.ForeignKeyConstraint(['customer_id'], ['customers.id']),
        sa.ForeignKeyConstraint(['invoice_id'], ['invoices.id']),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_ledger_discrepancies_merchant_id', 'ledger_discrepancies', ['merchant_id'])
    op.create_index('ix_ledger_discrepancies_customer_id', 'ledger_discrepancies', ['customer_id'])
    op.create_index('ix_ledger_discrepancies_invoice_id', 'ledger_discrepancies', ['invoice_id'])
    op.create_index('ix_ledger_discrepancies_kind', 'ledger_discrepancies', ['kind'])
    op.create_index('ix_ledger_discrepancies_is_resolved', 'ledger_discrepancies', ['is_resolved'])


def downgrade():
    """Drop all tables (destructive operation)."""
    op.drop_table('ledger_discrepancies')
    op.drop_table('ledger_events')
    op.drop_table('invoice_items')
    op.drop_table('invoices')
    op.drop_table('products')
    op.drop_table('customers')
    op.drop_table('session_tokens')
    op.drop_table('merchants')
