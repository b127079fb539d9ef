"""initial settlement schema

Revision ID: b7c1e2d3f4a5
Revises:
Create Date: 2026-10-18 00:00:00.000000

Creates the settlement core schema:
- outlets, products: reference data
- inventory_movements: append-only stock ledger (+ stock_levels counter cache)
- register_sessions, register_ledger_entries: cash drawer per outlet and day
- orders, order_lines, document_sequences: counter sales and their numbering

Concurrency guards live in the schema, not only in code:
- one OPEN register session per (outlet, business_date) (partial unique index)
- one SALE ledger entry per order (partial unique index)
- one inventory movement per (outlet, reference, line)
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = 'b7c1e2d3f4a5'
down_revision = None
branch_labels = None
depends_on = None


def _created_at(name='created_at'):
    return sa.Column(name, sa.DateTime(timezone=True), nullable=False,
                     server_default=sa.text('CURRENT_TIMESTAMP'))


def upgrade():
    # ============================================================================
    # outlets / products
    # ============================================================================
    op.create_table(
        'outlets',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('code', sa.String(length=32), nullable=False),
        sa.Column('name', sa.String(length=128), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        _created_at(),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('code'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_outlets_is_active', 'outlets', ['is_active'])

    op.create_table(
        'products',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('sku', sa.String(length=64), nullable=True),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('price', sa.BigInteger(), nullable=True),
        sa.Column('is_trackable', sa.Boolean(), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        _created_at(),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('sku'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_products_name', 'products', ['name'])

    # ============================================================================
    # inventory_movements: append-only ledger
    # ============================================================================
    op.create_table(
        'inventory_movements',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('outlet_id', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=False),
        sa.Column('quantity_delta', sa.Integer(), nullable=False),
        sa.Column('movement_type', sa.String(length=16), nullable=False),
        sa.Column('reference_type', sa.String(length=16), nullable=True),
        sa.Column('reference_id', sa.String(length=64), nullable=True),
        sa.Column('reference_line', sa.Integer(), nullable=True),
        sa.Column('status', sa.String(length=16), nullable=False),
        sa.Column('note', sa.String(length=255), nullable=True),
        sa.Column('created_by_user_id', sa.Integer(), nullable=True),
        _created_at('occurred_at'),
        sa.ForeignKeyConstraint(['outlet_id'], ['outlets.id']),
        sa.ForeignKeyConstraint(['product_id'], ['products.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('outlet_id', 'reference_type', 'reference_id', 'reference_line',
                            name='uq_invmov_outlet_reference_line'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_inventory_movements_outlet_id', 'inventory_movements', ['outlet_id'])
    op.create_index('ix_inventory_movements_product_id', 'inventory_movements', ['product_id'])
    op.create_index('ix_inventory_movements_movement_type', 'inventory_movements', ['movement_type'])
    op.create_index('ix_inventory_movements_status', 'inventory_movements', ['status'])
    op.create_index('ix_inventory_movements_occurred_at', 'inventory_movements', ['occurred_at'])
    op.create_index('ix_invmov_outlet_product_occurred', 'inventory_movements',
                    ['outlet_id', 'product_id', 'occurred_at'])
    op.create_index('ix_invmov_reference', 'inventory_movements', ['reference_type', 'reference_id'])

    op.create_table(
        'stock_levels',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('outlet_id', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('last_movement_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('version_id', sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(['outlet_id'], ['outlets.id']),
        sa.ForeignKeyConstraint(['product_id'], ['products.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('outlet_id', 'product_id', name='uq_stock_levels_outlet_product'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_stock_levels_outlet_id', 'stock_levels', ['outlet_id'])
    op.create_index('ix_stock_levels_product_id', 'stock_levels', ['product_id'])

    # ============================================================================
    # register_sessions / register_ledger_entries
    # ============================================================================
    op.create_table(
        'register_sessions',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('outlet_id', sa.Integer(), nullable=False),
        sa.Column('business_date', sa.Date(), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False),
        sa.Column('opening_float', sa.BigInteger(), nullable=False),
        sa.Column('closing_count', sa.BigInteger(), nullable=True),
        sa.Column('theoretical_balance', sa.BigInteger(), nullable=True),
        sa.Column('variance', sa.BigInteger(), nullable=True),
        sa.Column('opened_by_user_id', sa.Integer(), nullable=True),
        sa.Column('closed_by_user_id', sa.Integer(), nullable=True),
        _created_at('opened_at'),
        sa.Column('closed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('opening_notes', sa.Text(), nullable=True),
        sa.Column('closing_notes', sa.Text(), nullable=True),
        sa.Column('version_id', sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(['outlet_id'], ['outlets.id']),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_register_sessions_outlet_id', 'register_sessions', ['outlet_id'])
    op.create_index('ix_register_sessions_business_date', 'register_sessions', ['business_date'])
    op.create_index('ix_register_sessions_status', 'register_sessions', ['status'])
    op.create_index('ix_register_sessions_opened_at', 'register_sessions', ['opened_at'])
    op.create_index('ix_register_sessions_outlet_date', 'register_sessions', ['outlet_id', 'business_date'])
    op.create_index(
        'uq_register_sessions_open_outlet_day',
        'register_sessions',
        ['outlet_id', 'business_date'],
        unique=True,
        sqlite_where=sa.text("status = 'OPEN'"),
        postgresql_where=sa.text("status = 'OPEN'"),
    )

    op.create_table(
        'register_ledger_entries',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('session_id', sa.Integer(), nullable=False),
        sa.Column('entry_type', sa.String(length=16), nullable=False),
        sa.Column('amount', sa.BigInteger(), nullable=False),
        sa.Column('payment_method', sa.String(length=16), nullable=False),
        sa.Column('reference_type', sa.String(length=16), nullable=True),
        sa.Column('reference_id', sa.String(length=64), nullable=True),
        sa.Column('description', sa.String(length=255), nullable=True),
        sa.Column('created_by_user_id', sa.Integer(), nullable=True),
        _created_at(),
        sa.ForeignKeyConstraint(['session_id'], ['register_sessions.id']),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_register_ledger_entries_session_id', 'register_ledger_entries', ['session_id'])
    op.create_index('ix_register_ledger_entries_entry_type', 'register_ledger_entries', ['entry_type'])
    op.create_index('ix_register_ledger_entries_payment_method', 'register_ledger_entries', ['payment_method'])
    op.create_index('ix_register_ledger_entries_created_at', 'register_ledger_entries', ['created_at'])
    op.create_index('ix_register_ledger_session_created', 'register_ledger_entries', ['session_id', 'created_at'])
    op.create_index(
        'uq_register_ledger_sale_reference',
        'register_ledger_entries',
        ['reference_type', 'reference_id'],
        unique=True,
        sqlite_where=sa.text("entry_type = 'SALE'"),
        postgresql_where=sa.text("entry_type = 'SALE'"),
    )

    # ============================================================================
    # orders / order_lines / document_sequences
    # ============================================================================
    op.create_table(
        'orders',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('outlet_id', sa.Integer(), nullable=False),
        sa.Column('session_id', sa.Integer(), nullable=False),
        sa.Column('number', sa.String(length=64), nullable=False),
        sa.Column('client_name', sa.String(length=255), nullable=True),
        sa.Column('client_email', sa.String(length=255), nullable=True),
        sa.Column('client_phone', sa.String(length=64), nullable=True),
        sa.Column('client_address', sa.String(length=255), nullable=True),
        sa.Column('status', sa.String(length=16), nullable=False),
        sa.Column('payment_status', sa.String(length=16), nullable=False),
        sa.Column('payment_method', sa.String(length=16), nullable=False),
        sa.Column('total_ht', sa.BigInteger(), nullable=False),
        sa.Column('total_ttc', sa.BigInteger(), nullable=False),
        sa.Column('tax_rate_bps', sa.Integer(), nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('created_by_user_id', sa.Integer(), nullable=True),
        _created_at(),
        sa.Column('confirmed_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['outlet_id'], ['outlets.id']),
        sa.ForeignKeyConstraint(['session_id'], ['register_sessions.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('outlet_id', 'number', name='uq_orders_outlet_number'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_orders_outlet_id', 'orders', ['outlet_id'])
    op.create_index('ix_orders_session_id', 'orders', ['session_id'])
    op.create_index('ix_orders_number', 'orders', ['number'])
    op.create_index('ix_orders_status', 'orders', ['status'])
    op.create_index('ix_orders_payment_status', 'orders', ['payment_status'])
    op.create_index('ix_orders_outlet_created', 'orders', ['outlet_id', 'created_at'])

    op.create_table(
        'order_lines',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('order_id', sa.Integer(), nullable=False),
        sa.Column('line_index', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=False),
        sa.Column('product_name', sa.String(length=255), nullable=False),
        sa.Column('description', sa.String(length=255), nullable=True),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('unit_price', sa.BigInteger(), nullable=False),
        sa.Column('total', sa.BigInteger(), nullable=False),
        sa.ForeignKeyConstraint(['order_id'], ['orders.id']),
        sa.ForeignKeyConstraint(['product_id'], ['products.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('order_id', 'line_index', name='uq_order_lines_order_index'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_order_lines_order_id', 'order_lines', ['order_id'])

    op.create_table(
        'document_sequences',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('outlet_id', sa.Integer(), nullable=False),
        sa.Column('document_type', sa.String(length=32), nullable=False),
        sa.Column('next_number', sa.Integer(), nullable=False),
        _created_at('updated_at'),
        sa.ForeignKeyConstraint(['outlet_id'], ['outlets.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('outlet_id', 'document_type', name='uq_doc_sequences_outlet_type'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_document_sequences_outlet_id', 'document_sequences', ['outlet_id'])
    op.create_index('ix_document_sequences_document_type', 'document_sequences', ['document_type'])


def downgrade():
    op.drop_table('document_sequences')
    op.drop_table('order_lines')
    op.drop_table('orders')
    op.drop_index('uq_register_ledger_sale_reference', table_name='register_ledger_entries')
    op.drop_table('register_ledger_entries')
    op.drop_index('uq_register_sessions_open_outlet_day', table_name='register_sessions')
    op.drop_table('register_sessions')
    op.drop_table('stock_levels')
    op.drop_table('inventory_movements')
    op.drop_table('products')
    op.drop_table('outlets')
