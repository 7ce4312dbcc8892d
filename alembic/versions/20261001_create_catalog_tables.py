"""create_catalog_tables

Revision ID: 001_catalog
Revises:
Create Date: 2026-10-01

Creates the curated catalog: categories, marketplaces, badges, products,
affiliate links and the append-only audit log.

Slug uniqueness for products is enforced by the curation engine over live
(non-deleted) rows only, so products.slug carries a plain index rather than a
unique constraint.

"""
from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op


# revision identifiers, used by Alembic.
revision: str = '001_catalog'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('deleted_at', sa.DateTime(timezone=True), nullable=True),
    ]


def upgrade() -> None:
    op.create_table(
        'categories',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('name', sa.String(100), nullable=False),
        sa.Column('slug', sa.String(100), nullable=False, unique=True),
        sa.Column('icon', sa.String(50), nullable=True),
        sa.Column('sort_order', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('active', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('parent_id', sa.Integer(), sa.ForeignKey('categories.id'), nullable=True),
        *_timestamps(),
    )
    op.create_index('idx_categories_active', 'categories', ['active'])

    op.create_table(
        'marketplaces',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('name', sa.String(100), nullable=False),
        sa.Column('slug', sa.String(100), nullable=False, unique=True),
        sa.Column('icon', sa.String(100), nullable=True),
        sa.Column('color', sa.String(20), nullable=False, server_default='#64748b'),
        sa.Column('active', sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
    )

    op.create_table(
        'badges',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('label', sa.String(100), nullable=False),
        sa.Column('color', sa.String(20), nullable=True),
        *_timestamps(),
    )

    op.create_table(
        'marketplace_badges',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('label', sa.String(100), nullable=False),
        sa.Column('icon', sa.String(100), nullable=True),
        sa.Column('color', sa.String(20), nullable=True),
        *_timestamps(),
    )

    op.create_table(
        'products',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('slug', sa.String(100), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('market_price', sa.Numeric(12, 2), nullable=True),
        sa.Column('category_id', sa.Integer(), sa.ForeignKey('categories.id'), nullable=True),
        sa.Column('status', sa.String(30), nullable=False, server_default='draft'),
        sa.Column('image', sa.String(500), nullable=True),
        sa.Column('image_source_type', sa.String(10), nullable=False, server_default='upload'),
        sa.Column('view_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_by', sa.Integer(), nullable=True),
        sa.Column('verified_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('published_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('last_price_check', sa.DateTime(timezone=True), nullable=True),
        sa.Column('last_link_check', sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.CheckConstraint('market_price IS NULL OR market_price >= 0', name='chk_product_price_positive'),
        sa.CheckConstraint('view_count >= 0', name='chk_product_view_count_positive'),
    )
    op.create_index('idx_products_slug', 'products', ['slug'])
    op.create_index('idx_products_status', 'products', ['status'])
    op.create_index('idx_products_deleted_at', 'products', ['deleted_at'])

    op.create_table(
        'links',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('product_id', sa.Integer(), sa.ForeignKey('products.id'), nullable=False),
        sa.Column('marketplace_id', sa.Integer(), sa.ForeignKey('marketplaces.id'), nullable=False),
        sa.Column('store_name', sa.String(255), nullable=False),
        sa.Column('price', sa.Numeric(12, 2), nullable=False, server_default='0'),
        sa.Column('url', sa.String(500), nullable=True),
        sa.Column('rating', sa.Numeric(3, 2), nullable=False, server_default='0'),
        sa.Column('active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('clicks', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('sold_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('affiliate_revenue', sa.Numeric(15, 2), nullable=False, server_default='0'),
        sa.Column('marketplace_badge_id', sa.Integer(), sa.ForeignKey('marketplace_badges.id'), nullable=True),
        sa.Column('last_price_update', sa.DateTime(timezone=True), nullable=True),
        sa.Column('last_validation', sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.CheckConstraint('rating >= 0 AND rating <= 5', name='chk_link_rating_range'),
    )
    op.create_index('idx_links_product_active', 'links', ['product_id', 'active'])

    op.create_table(
        'audit_logs',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('admin_id', sa.Integer(), nullable=True),
        sa.Column('action', sa.String(50), nullable=False),
        sa.Column('entity_type', sa.String(50), nullable=False),
        sa.Column('entity_id', sa.Integer(), nullable=False),
        sa.Column('old_values', sa.JSON(), nullable=True),
        sa.Column('new_values', sa.JSON(), nullable=True),
        sa.Column('changes_summary', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index('idx_audit_logs_entity', 'audit_logs', ['entity_type', 'entity_id'])
    op.create_index('idx_audit_logs_admin', 'audit_logs', ['admin_id'])


def downgrade() -> None:
    # Children first because of foreign keys
    op.drop_index('idx_audit_logs_admin', table_name='audit_logs')
    op.drop_index('idx_audit_logs_entity', table_name='audit_logs')
    op.drop_table('audit_logs')

    op.drop_index('idx_links_product_active', table_name='links')
    op.drop_table('links')

    op.drop_index('idx_products_deleted_at', table_name='products')
    op.drop_index('idx_products_status', table_name='products')
    op.drop_index('idx_products_slug', table_name='products')
    op.drop_table('products')

    op.drop_table('marketplace_badges')
    op.drop_table('badges')
    op.drop_table('marketplaces')

    op.drop_index('idx_categories_active', table_name='categories')
    op.drop_table('categories')
