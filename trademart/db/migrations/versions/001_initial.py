"""initial marketplace schema

Revision ID: 001_initial
Revises:
Create Date: 2026-10-19

Creates accounts, RFQ/quote, settlement (transactions, orders, escrow),
QC reports, notifications and audit tables for TradeMart.
"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '001_initial'
down_revision = None
branch_labels = None
depends_on = None


def _status(name, *values):
    # VARCHAR + CHECK, matching the non-native enums on the models
    return sa.Enum(*values, name=name, native_enum=False, create_constraint=True, length=20)


def upgrade() -> None:
    # Users
    op.create_table('users',
        sa.Column('id', sa.Integer(), primary_key=True, index=True),
        sa.Column('email', sa.String(255), unique=True, nullable=False, index=True),
        sa.Column('hashed_password', sa.String(255), nullable=False),
        sa.Column('name', sa.String(255)),
        sa.Column('phone', sa.String(50)),
        sa.Column('role', _status('userrole', 'buyer', 'supplier', 'admin'), nullable=False),
        sa.Column('is_active', sa.Boolean(), default=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('last_login', sa.DateTime(timezone=True)),
    )

    # Supplier profiles
    op.create_table('suppliers',
        sa.Column('id', sa.Integer(), primary_key=True, index=True),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id'), unique=True, nullable=False),
        sa.Column('company_name', sa.String(255), nullable=False),
        sa.Column('industry', sa.String(100)),
        sa.Column('description', sa.Text()),
        sa.Column('country', sa.String(100)),
        sa.Column('verified', sa.Boolean(), default=False),
        sa.Column('rating', sa.Float(), default=0.0),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True)),
    )

    # Audit logs
    op.create_table('audit_logs',
        sa.Column('id', sa.Integer(), primary_key=True, index=True),
        sa.Column('timestamp', sa.DateTime(timezone=True), server_default=sa.func.now(), index=True),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('action', sa.String(100), nullable=False, index=True),
        sa.Column('entity_type', sa.String(100), index=True),
        sa.Column('entity_id', sa.Integer()),
        sa.Column('details', sa.JSON()),
        sa.Column('ip_address', sa.String(50)),
    )

    # RFQs
    op.create_table('rfqs',
        sa.Column('id', sa.Integer(), primary_key=True, index=True),
        sa.Column('buyer_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False, index=True),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('description', sa.Text(), nullable=False),
        sa.Column('category', sa.String(100), index=True),
        sa.Column('quantity', sa.Float()),
        sa.Column('unit', sa.String(50)),
        sa.Column('budget', sa.Float()),
        sa.Column('currency', sa.String(10), default='INR'),
        sa.Column('status', _status('rfqstatus', 'open', 'quoted', 'closed'), nullable=False, index=True),
        sa.Column('expires_at', sa.DateTime(timezone=True)),
        sa.Column('closed_at', sa.DateTime(timezone=True)),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True)),
    )

    # Quotes
    op.create_table('quotes',
        sa.Column('id', sa.Integer(), primary_key=True, index=True),
        sa.Column('rfq_id', sa.Integer(), sa.ForeignKey('rfqs.id'), nullable=False, index=True),
        sa.Column('supplier_id', sa.Integer(), sa.ForeignKey('suppliers.id'), nullable=False, index=True),
        sa.Column('price', sa.Float(), nullable=False),
        sa.Column('currency', sa.String(10), default='INR'),
        sa.Column('lead_time_days', sa.Integer(), nullable=False),
        sa.Column('notes', sa.Text()),
        sa.Column('status', _status('quotestatus', 'pending', 'accepted', 'rejected'), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True)),
        sa.UniqueConstraint('rfq_id', 'supplier_id', name='uq_quote_rfq_supplier'),
    )

    # Transactions: one per RFQ, one per quote
    op.create_table('transactions',
        sa.Column('id', sa.Integer(), primary_key=True, index=True),
        sa.Column('buyer_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False, index=True),
        sa.Column('supplier_id', sa.Integer(), sa.ForeignKey('suppliers.id'), nullable=False, index=True),
        sa.Column('rfq_id', sa.Integer(), sa.ForeignKey('rfqs.id'), unique=True, nullable=False),
        sa.Column('quote_id', sa.Integer(), sa.ForeignKey('quotes.id'), unique=True, nullable=False),
        sa.Column('amount', sa.Float(), nullable=False),
        sa.Column('currency', sa.String(10), default='INR'),
        sa.Column('status', _status('transactionstatus', 'held', 'released'), nullable=False),
        sa.Column('released_at', sa.DateTime(timezone=True)),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    # Orders
    op.create_table('orders',
        sa.Column('id', sa.Integer(), primary_key=True, index=True),
        sa.Column('transaction_id', sa.Integer(), sa.ForeignKey('transactions.id'), unique=True, nullable=False),
        sa.Column('rfq_id', sa.Integer(), sa.ForeignKey('rfqs.id'), nullable=False),
        sa.Column('buyer_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False, index=True),
        sa.Column('supplier_id', sa.Integer(), sa.ForeignKey('suppliers.id'), nullable=False, index=True),
        sa.Column('amount', sa.Float(), nullable=False),
        sa.Column('currency', sa.String(10), default='INR'),
        sa.Column('status', _status('orderstatus', 'confirmed', 'shipped', 'delivered', 'disputed', 'cancelled'), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True)),
    )

    # Escrow accounts
    op.create_table('escrow_accounts',
        sa.Column('id', sa.Integer(), primary_key=True, index=True),
        sa.Column('order_id', sa.Integer(), sa.ForeignKey('orders.id'), unique=True, nullable=False),
        sa.Column('account_number', sa.String(20), unique=True, nullable=False),
        sa.Column('amount', sa.Float(), nullable=False),
        sa.Column('currency', sa.String(10), default='INR'),
        sa.Column('status', _status('escrowstatus', 'pending', 'funded', 'held', 'released', 'disputed', 'refunded'), nullable=False, index=True),
        sa.Column('qc_passed', sa.Boolean(), default=False),
        sa.Column('payment_method', sa.String(50)),
        sa.Column('payment_reference', sa.String(255)),
        sa.Column('funded_at', sa.DateTime(timezone=True)),
        sa.Column('released_at', sa.DateTime(timezone=True)),
        sa.Column('refunded_at', sa.DateTime(timezone=True)),
        sa.Column('refund_reason', sa.Text()),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True)),
    )

    # QC reports (append-only)
    op.create_table('qc_reports',
        sa.Column('id', sa.Integer(), primary_key=True, index=True),
        sa.Column('order_id', sa.Integer(), sa.ForeignKey('orders.id'), nullable=False),
        sa.Column('submitted_by', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('photos', sa.JSON()),
        sa.Column('videos', sa.JSON()),
        sa.Column('notes', sa.Text()),
        sa.Column('score', sa.Float(), nullable=False),
        sa.Column('status', _status('qcstatus', 'passed', 'failed'), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index('ix_qc_reports_order_created', 'qc_reports', ['order_id', 'created_at'])

    # Notifications
    op.create_table('notifications',
        sa.Column('id', sa.Integer(), primary_key=True, index=True),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False, index=True),
        sa.Column('type', sa.String(50), nullable=False),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('message', sa.Text(), nullable=False),
        sa.Column('data', sa.JSON()),
        sa.Column('read', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index('ix_notifications_user_read', 'notifications', ['user_id', 'read'])


def downgrade() -> None:
    op.drop_index('ix_notifications_user_read', table_name='notifications')
    op.drop_table('notifications')
    op.drop_index('ix_qc_reports_order_created', table_name='qc_reports')
    op.drop_table('qc_reports')
    op.drop_table('escrow_accounts')
    op.drop_table('orders')
    op.drop_table('transactions')
    op.drop_table('quotes')
    op.drop_table('rfqs')
    op.drop_table('audit_logs')
    op.drop_table('suppliers')
    op.drop_table('users')
