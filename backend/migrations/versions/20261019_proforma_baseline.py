"""Baseline: catalog, accounts, stories, proforma requests, sequences, activity log

Revision ID: 20261019_baseline
Revises:
Create Date: 2026-10-19

This migration creates:
1. users (profile + role, is_active tombstone, separate account_status)
2. brands, categories, products, price_tiers (tiered bulk pricing)
3. stories
4. requests + request_lines (immutable priced snapshot)
5. request_sequences (one counter row per year)
6. activity_events (append-only)
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '20261019_baseline'
down_revision = None
branch_labels = None
depends_on = None


def _tombstone_columns():
    return [
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('deleted_at', sa.DateTime(timezone=True), nullable=True),
    ]


def _timestamps():
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    ]


def upgrade():
    # ==========================================================================
    # 1. USERS
    # ==========================================================================
    op.create_table('users',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('first_name', sa.String(length=100), nullable=True),
        sa.Column('last_name', sa.String(length=100), nullable=True),
        sa.Column('company_name', sa.String(length=255), nullable=True),
        sa.Column('phone', sa.String(length=40), nullable=True),
        sa.Column('role', sa.String(length=16), nullable=False, server_default='customer'),
        sa.Column('account_status', sa.String(length=16), nullable=False, server_default='active'),
        *_tombstone_columns(),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('email', name='uq_users_email'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_users_is_active', 'users', ['is_active'])

    # ==========================================================================
    # 2. CATALOG
    # ==========================================================================
    for table, unique_name in (('brands', 'uq_brands_slug'), ('categories', 'uq_categories_slug')):
        op.create_table(table,
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('name', sa.String(length=120), nullable=False),
            sa.Column('slug', sa.String(length=140), nullable=False),
            sa.Column('description', sa.Text(), nullable=True),
            *_tombstone_columns(),
            *_timestamps(),
            sa.PrimaryKeyConstraint('id'),
            sa.UniqueConstraint('slug', name=unique_name),
            sqlite_autoincrement=True,
        )
        op.create_index(f'ix_{table}_is_active', table, ['is_active'])

    op.create_table('products',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('brand_id', sa.Integer(), nullable=False),
        sa.Column('category_id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('slug', sa.String(length=280), nullable=False),
        sa.Column('short_description', sa.String(length=200), nullable=True),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('base_price_cents', sa.Integer(), nullable=False),
        sa.Column('currency', sa.String(length=3), nullable=False, server_default='GHS'),
        sa.Column('variants', sa.JSON(), nullable=True),
        sa.Column('is_featured', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('sort_order', sa.Integer(), nullable=False, server_default='0'),
        *_tombstone_columns(),
        *_timestamps(),
        sa.ForeignKeyConstraint(['brand_id'], ['brands.id']),
        sa.ForeignKeyConstraint(['category_id'], ['categories.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('slug', name='uq_products_slug'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_products_brand_id', 'products', ['brand_id'])
    op.create_index('ix_products_category_id', 'products', ['category_id'])
    op.create_index('ix_products_is_active', 'products', ['is_active'])
    op.create_index('ix_products_is_featured', 'products', ['is_featured'])
    op.create_index('ix_products_brand_active', 'products', ['brand_id', 'is_active'])
    op.create_index('ix_products_category_active', 'products', ['category_id', 'is_active'])

    op.create_table('price_tiers',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=False),
        sa.Column('min_quantity', sa.Integer(), nullable=False),
        sa.Column('max_quantity', sa.Integer(), nullable=True),
        sa.Column('price_cents', sa.Integer(), nullable=False),
        sa.CheckConstraint('min_quantity >= 1', name='ck_price_tiers_min_positive'),
        sa.CheckConstraint('max_quantity IS NULL OR max_quantity >= min_quantity', name='ck_price_tiers_band_order'),
        sa.CheckConstraint('price_cents >= 0', name='ck_price_tiers_price_nonnegative'),
        sa.ForeignKeyConstraint(['product_id'], ['products.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_price_tiers_product_id', 'price_tiers', ['product_id'])

    # ==========================================================================
    # 3. STORIES
    # ==========================================================================
    op.create_table('stories',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('title', sa.String(length=255), nullable=False),
        sa.Column('slug', sa.String(length=280), nullable=False),
        sa.Column('excerpt', sa.String(length=500), nullable=True),
        sa.Column('content', sa.Text(), nullable=True),
        sa.Column('is_featured', sa.Boolean(), nullable=False, server_default=sa.false()),
        *_tombstone_columns(),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('slug', name='uq_stories_slug'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_stories_is_active', 'stories', ['is_active'])

    # ==========================================================================
    # 4. REQUESTS
    # ==========================================================================
    op.create_table('requests',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('request_number', sa.String(length=32), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=True),
        sa.Column('customer_name', sa.String(length=255), nullable=False),
        sa.Column('customer_email', sa.String(length=255), nullable=True),
        sa.Column('customer_phone', sa.String(length=40), nullable=True),
        sa.Column('company_name', sa.String(length=255), nullable=True),
        sa.Column('customer_data', sa.JSON(), nullable=True),
        sa.Column('is_guest', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('currency', sa.String(length=3), nullable=False, server_default='GHS'),
        sa.Column('total_amount_cents', sa.Integer(), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='pending'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('notified_at', sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint(
            "status IN ('pending', 'approved', 'rejected', 'processing', 'completed')",
            name='ck_requests_status_valid',
        ),
        sa.ForeignKeyConstraint(['user_id'], ['users.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('request_number', name='uq_requests_request_number'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_requests_user_id', 'requests', ['user_id'])
    op.create_index('ix_requests_status', 'requests', ['status'])
    op.create_index('ix_requests_status_created', 'requests', ['status', 'created_at'])

    op.create_table('request_lines',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('request_id', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=False),
        sa.Column('product_name', sa.String(length=255), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('unit_price_cents', sa.Integer(), nullable=False),
        sa.Column('line_total_cents', sa.Integer(), nullable=False),
        sa.CheckConstraint('quantity >= 1', name='ck_request_lines_quantity_positive'),
        sa.ForeignKeyConstraint(['request_id'], ['requests.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['product_id'], ['products.id']),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_request_lines_request_id', 'request_lines', ['request_id'])
    op.create_index('ix_request_lines_product_id', 'request_lines', ['product_id'])

    # ==========================================================================
    # 5. REQUEST NUMBER COUNTERS
    # ==========================================================================
    op.create_table('request_sequences',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('year', sa.Integer(), nullable=False),
        sa.Column('last_issued', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('year', name='uq_request_sequences_year'),
        sqlite_autoincrement=True,
    )

    # ==========================================================================
    # 6. ACTIVITY LOG
    # ==========================================================================
    op.create_table('activity_events',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('event_type', sa.String(length=64), nullable=False),
        sa.Column('entity_type', sa.String(length=32), nullable=False),
        sa.Column('entity_id', sa.Integer(), nullable=True),
        sa.Column('actor_user_id', sa.Integer(), nullable=True),
        sa.Column('note', sa.String(length=255), nullable=True),
        sa.Column('payload', sa.JSON(), nullable=True),
        sa.Column('occurred_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_activity_events_event_type', 'activity_events', ['event_type'])
    op.create_index('ix_activity_events_actor_user_id', 'activity_events', ['actor_user_id'])
    op.create_index('ix_activity_events_occurred_at', 'activity_events', ['occurred_at'])
    op.create_index('ix_activity_events_entity', 'activity_events', ['entity_type', 'entity_id'])


def downgrade():
    op.drop_table('activity_events')
    op.drop_table('request_sequences')
    op.drop_table('request_lines')
    op.drop_table('requests')
    op.drop_table('stories')
    op.drop_table('price_tiers')
    op.drop_table('products')
    op.drop_table('categories')
    op.drop_table('brands')
    op.drop_table('users')
