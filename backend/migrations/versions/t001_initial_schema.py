"""Initial schema: tenants, accounts, catalog, stock, clients, staff and sales

1. organizations (tenants) and stores (locations)
2. users, session_tokens, security_events
3. products -> characteristics -> characteristic_options
4. variants (unique per product and canonical option set) + variant_options
5. stock_entries (unique per variant and store, quantity >= 0)
6. clients + client_payments, employees
7. sales (idempotency key unique per org) + sale_lines

Revision ID: t001_initial_schema
Revises:
Create Date: 2026-10-19
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = 't001_initial_schema'
down_revision = None
branch_labels = None
depends_on = None


def _timestamps():
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    ]


def upgrade():
    # ==========================================================================
    # Tenancy
    # ==========================================================================
    op.create_table('organizations',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('code', sa.String(length=32), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='1'),
        sa.Column('billing_day', sa.Integer(), nullable=True),
        sa.Column('billing_amount_cents', sa.Integer(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_organizations_code', 'organizations', ['code'], unique=True)
    op.create_index('ix_organizations_is_active', 'organizations', ['is_active'])

    op.create_table('stores',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('org_id', sa.Integer(), sa.ForeignKey('organizations.id'), nullable=False),
        sa.Column('name', sa.String(length=120), nullable=False),
        sa.Column('address', sa.String(length=255), nullable=True),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('org_id', 'name', name='uq_stores_org_name'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_stores_org_id', 'stores', ['org_id'])

    # ==========================================================================
    # Accounts and security
    # ==========================================================================
    op.create_table('users',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('org_id', sa.Integer(), sa.ForeignKey('organizations.id'), nullable=True),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=True),
        sa.Column('password_hash', sa.String(length=255), nullable=False),
        sa.Column('role', sa.String(length=16), nullable=False, server_default='admin'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='1'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('last_login_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('email', name='uq_users_email'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_users_org_id', 'users', ['org_id'])
    op.create_index('ix_users_role', 'users', ['role'])

    op.create_table('session_tokens',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('org_id', sa.Integer(), sa.ForeignKey('organizations.id'), nullable=True),
        sa.Column('store_id', sa.Integer(), sa.ForeignKey('stores.id'), nullable=True),
        sa.Column('token_hash', sa.String(length=255), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('last_used_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('is_revoked', sa.Boolean(), nullable=False, server_default='0'),
        sa.Column('revoked_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('revoked_reason', sa.String(length=255), nullable=True),
        sa.Column('user_agent', sa.String(length=512), nullable=True),
        sa.Column('ip_address', sa.String(length=45), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_session_tokens_token_hash', 'session_tokens', ['token_hash'], unique=True)
    op.create_index('ix_session_tokens_user_id', 'session_tokens', ['user_id'])
    op.create_index('ix_session_tokens_org_id', 'session_tokens', ['org_id'])
    op.create_index('ix_session_tokens_store_id', 'session_tokens', ['store_id'])
    op.create_index('ix_session_tokens_expires_at', 'session_tokens', ['expires_at'])
    op.create_index('ix_session_tokens_is_revoked', 'session_tokens', ['is_revoked'])
    op.create_index('ix_session_tokens_user_active', 'session_tokens', ['user_id', 'is_revoked'])

    op.create_table('security_events',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('org_id', sa.Integer(), nullable=True),
        sa.Column('store_id', sa.Integer(), nullable=True),
        sa.Column('user_id', sa.Integer(), nullable=True),
        sa.Column('event_type', sa.String(length=64), nullable=False),
        sa.Column('resource', sa.String(length=128), nullable=True),
        sa.Column('action', sa.String(length=64), nullable=True),
        sa.Column('success', sa.Boolean(), nullable=False),
        sa.Column('reason', sa.Text(), nullable=True),
        sa.Column('ip_address', sa.String(length=45), nullable=True),
        sa.Column('user_agent', sa.String(length=512), nullable=True),
        sa.Column('occurred_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True,
    )
    for col in ('org_id', 'store_id', 'user_id', 'event_type', 'success', 'occurred_at'):
        op.create_index(f'ix_security_events_{col}', 'security_events', [col])
    op.create_index('ix_security_events_user_type', 'security_events', ['user_id', 'event_type'])
    op.create_index('ix_security_events_org_occurred', 'security_events', ['org_id', 'occurred_at'])

    # ==========================================================================
    # Catalog
    # ==========================================================================
    op.create_table('products',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('org_id', sa.Integer(), sa.ForeignKey('organizations.id'), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('category', sa.String(length=120), nullable=True),
        sa.Column('image_url', sa.String(length=512), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='1'),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_products_org_id', 'products', ['org_id'])
    op.create_index('ix_products_category', 'products', ['category'])
    op.create_index('ix_products_org_name', 'products', ['org_id', 'name'])
    op.create_index('ix_products_org_active', 'products', ['org_id', 'is_active'])

    op.create_table('characteristics',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('product_id', sa.Integer(), sa.ForeignKey('products.id'), nullable=False),
        sa.Column('name', sa.String(length=120), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('product_id', 'name', name='uq_characteristics_product_name'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_characteristics_product_id', 'characteristics', ['product_id'])

    op.create_table('characteristic_options',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('characteristic_id', sa.Integer(), sa.ForeignKey('characteristics.id'), nullable=False),
        sa.Column('value', sa.String(length=120), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('characteristic_id', 'value', name='uq_options_characteristic_value'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_characteristic_options_characteristic_id', 'characteristic_options', ['characteristic_id'])

    op.create_table('variants',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('org_id', sa.Integer(), sa.ForeignKey('organizations.id'), nullable=False),
        sa.Column('product_id', sa.Integer(), sa.ForeignKey('products.id'), nullable=False),
        sa.Column('option_key', sa.String(length=512), nullable=False, server_default=''),
        sa.Column('sku', sa.String(length=64), nullable=True),
        sa.Column('image_url', sa.String(length=512), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('product_id', 'option_key', name='uq_variants_product_option_key'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_variants_org_id', 'variants', ['org_id'])
    op.create_index('ix_variants_product_id', 'variants', ['product_id'])
    op.create_index('ix_variants_org_product', 'variants', ['org_id', 'product_id'])

    op.create_table('variant_options',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('variant_id', sa.Integer(), sa.ForeignKey('variants.id'), nullable=False),
        sa.Column('option_id', sa.Integer(), sa.ForeignKey('characteristic_options.id'), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('variant_id', 'option_id', name='uq_variant_options_variant_option'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_variant_options_variant_id', 'variant_options', ['variant_id'])
    op.create_index('ix_variant_options_option_id', 'variant_options', ['option_id'])

    # ==========================================================================
    # Stock
    # ==========================================================================
    op.create_table('stock_entries',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('org_id', sa.Integer(), sa.ForeignKey('organizations.id'), nullable=False),
        sa.Column('variant_id', sa.Integer(), sa.ForeignKey('variants.id'), nullable=False),
        sa.Column('store_id', sa.Integer(), sa.ForeignKey('stores.id'), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('price_cents', sa.Integer(), nullable=True),
        sa.Column('added_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('variant_id', 'store_id', name='uq_stock_variant_store'),
        sa.CheckConstraint('quantity >= 0', name='ck_stock_quantity_non_negative'),
        sa.CheckConstraint('price_cents IS NULL OR price_cents >= 0', name='ck_stock_price_non_negative'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_stock_entries_org_id', 'stock_entries', ['org_id'])
    op.create_index('ix_stock_entries_variant_id', 'stock_entries', ['variant_id'])
    op.create_index('ix_stock_entries_store_id', 'stock_entries', ['store_id'])
    op.create_index('ix_stock_org_store', 'stock_entries', ['org_id', 'store_id'])

    # ==========================================================================
    # Clients and staff
    # ==========================================================================
    op.create_table('clients',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('org_id', sa.Integer(), sa.ForeignKey('organizations.id'), nullable=False),
        sa.Column('name', sa.String(length=128), nullable=False),
        sa.Column('phone', sa.String(length=32), nullable=True),
        sa.Column('discount_percentage', sa.Numeric(7, 2), nullable=False, server_default='0'),
        sa.Column('balance_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('purchase_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('purchase_total_cents', sa.Integer(), nullable=False, server_default='0'),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint('purchase_count >= 0', name='ck_clients_purchase_count_non_negative'),
        sa.CheckConstraint('purchase_total_cents >= 0', name='ck_clients_purchase_total_non_negative'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_clients_org_id', 'clients', ['org_id'])
    op.create_index('ix_clients_org_name', 'clients', ['org_id', 'name'])

    op.create_table('client_payments',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('org_id', sa.Integer(), sa.ForeignKey('organizations.id'), nullable=False),
        sa.Column('client_id', sa.Integer(), sa.ForeignKey('clients.id'), nullable=False),
        sa.Column('type', sa.String(length=16), nullable=False),
        sa.Column('amount_cents', sa.Integer(), nullable=False),
        sa.Column('description', sa.String(length=255), nullable=True),
        sa.Column('created_by_user_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint('amount_cents > 0', name='ck_client_payments_amount_positive'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_client_payments_org_id', 'client_payments', ['org_id'])
    op.create_index('ix_client_payments_client_id', 'client_payments', ['client_id'])
    op.create_index('ix_client_payments_created_at', 'client_payments', ['created_at'])
    op.create_index('ix_client_payments_client_created', 'client_payments', ['client_id', 'created_at'])

    op.create_table('employees',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('org_id', sa.Integer(), sa.ForeignKey('organizations.id'), nullable=False),
        sa.Column('store_id', sa.Integer(), sa.ForeignKey('stores.id'), nullable=False),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('phone', sa.String(length=32), nullable=True),
        sa.Column('salary_cents', sa.Integer(), nullable=True),
        sa.Column('role', sa.String(length=16), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('user_id', name='uq_employees_user'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_employees_org_id', 'employees', ['org_id'])
    op.create_index('ix_employees_store_id', 'employees', ['store_id'])
    op.create_index('ix_employees_org_store', 'employees', ['org_id', 'store_id'])

    # ==========================================================================
    # Sales
    # ==========================================================================
    op.create_table('sales',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('org_id', sa.Integer(), sa.ForeignKey('organizations.id'), nullable=False),
        sa.Column('store_id', sa.Integer(), sa.ForeignKey('stores.id'), nullable=False),
        sa.Column('client_id', sa.Integer(), sa.ForeignKey('clients.id'), nullable=True),
        sa.Column('created_by_user_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('subtotal_cents', sa.Integer(), nullable=False),
        sa.Column('discount_percentage', sa.Numeric(7, 2), nullable=False, server_default='0'),
        sa.Column('discount_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('total_cents', sa.Integer(), nullable=False),
        sa.Column('idempotency_key', sa.String(length=128), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('org_id', 'idempotency_key', name='uq_sales_org_idempotency_key'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_sales_org_id', 'sales', ['org_id'])
    op.create_index('ix_sales_store_id', 'sales', ['store_id'])
    op.create_index('ix_sales_client_id', 'sales', ['client_id'])
    op.create_index('ix_sales_org_created', 'sales', ['org_id', 'created_at'])
    op.create_index('ix_sales_store_created', 'sales', ['store_id', 'created_at'])

    op.create_table('sale_lines',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('sale_id', sa.Integer(), sa.ForeignKey('sales.id'), nullable=False),
        sa.Column('variant_id', sa.Integer(), sa.ForeignKey('variants.id'), nullable=False),
        sa.Column('quantity_sold', sa.Integer(), nullable=False),
        sa.Column('unit_price_cents', sa.Integer(), nullable=False),
        sa.Column('line_total_cents', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint('quantity_sold > 0', name='ck_sale_lines_quantity_positive'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_sale_lines_sale_id', 'sale_lines', ['sale_id'])
    op.create_index('ix_sale_lines_variant_id', 'sale_lines', ['variant_id'])


def downgrade():
    for table in (
        'sale_lines',
        'sales',
        'employees',
        'client_payments',
        'clients',
        'stock_entries',
        'variant_options',
        'variants',
        'characteristic_options',
        'characteristics',
        'products',
        'security_events',
        'session_tokens',
        'users',
        'stores',
        'organizations',
    ):
        op.drop_table(table)
