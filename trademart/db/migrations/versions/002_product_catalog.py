"""product catalog

Revision ID: 002_product_catalog
Revises: 001_initial
Create Date: 2026-10-19

Adds the supplier product catalog.
"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '002_product_catalog'
down_revision = '001_initial'
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table('products',
        sa.Column('id', sa.Integer(), primary_key=True, index=True),
        sa.Column('supplier_id', sa.Integer(), sa.ForeignKey('suppliers.id'), nullable=False, index=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('description', sa.Text(), nullable=False),
        sa.Column('category', sa.String(100), nullable=False, index=True),
        sa.Column('subcategory', sa.String(100)),
        sa.Column('price', sa.Float(), nullable=False),
        sa.Column('currency', sa.String(10), default='INR'),
        sa.Column('min_order_quantity', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('unit', sa.String(50), nullable=False),
        sa.Column('specifications', sa.JSON()),
        sa.Column('features', sa.JSON()),
        sa.Column('tags', sa.JSON()),
        sa.Column('images', sa.JSON()),
        sa.Column('in_stock', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('stock_quantity', sa.Integer()),
        sa.Column('lead_time', sa.String(100)),
        sa.Column('views', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True)),
    )


def downgrade() -> None:
    op.drop_table('products')
