"""initial schema

Revision ID: sc001
Revises:
Create Date: 2026-10-19 00:00:00.000000

Creates the complete StockCycle schema:
- users / session_tokens: administrators, distributors and bearer sessions
- products: catalog with warehouse stock counter (optimistic version_id)
- orders / order_lines: distributor orders with snapshotted line prices
- weekly_reports / report_details: per-cycle sales and damage reports

order_lines.product_id and report_details.product_id carry no foreign key:
deleting a product must never rewrite order or report history.
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = 'sc001'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    # ============================================================================
    # users: administrators and distributors
    # ============================================================================
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('username', sa.String(length=64), nullable=False),
        sa.Column('password_hash', sa.String(length=255), nullable=False),
        sa.Column('name', sa.String(length=120), nullable=False),
        sa.Column('role', sa.String(length=16), nullable=False),
        sa.Column('group', sa.String(length=16), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='1'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('last_login_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id', name='pk_users'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_users_username', 'users', ['username'], unique=True)
    op.create_index('ix_users_role_group', 'users', ['role', 'group'])

    # ============================================================================
    # session_tokens: SHA-256 hashed bearer tokens
    # ============================================================================
    op.create_table(
        'session_tokens',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('token_hash', sa.String(length=64), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('is_revoked', sa.Boolean(), nullable=False, server_default='0'),
        sa.Column('revoked_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], name='fk_session_tokens_user_id_users'),
        sa.PrimaryKeyConstraint('id', name='pk_session_tokens'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_session_tokens_user_id', 'session_tokens', ['user_id'])
    op.create_index('ix_session_tokens_token_hash', 'session_tokens', ['token_hash'], unique=True)

    # ============================================================================
    # products: catalog + warehouse stock
    # ============================================================================
    op.create_table(
        'products',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('price_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('stock', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('category', sa.String(length=64), nullable=True),
        sa.Column('image_url', sa.String(length=512), nullable=True),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('id', name='pk_products'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_products_category_name', 'products', ['category', 'name'])

    # ============================================================================
    # orders / order_lines
    # ============================================================================
    op.create_table(
        'orders',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('distributor_id', sa.Integer(), nullable=False),
        sa.Column('total_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='PENDING'),
        sa.Column('is_received', sa.Boolean(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('reviewed_by_user_id', sa.Integer(), nullable=True),
        sa.Column('reviewed_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['distributor_id'], ['users.id'], name='fk_orders_distributor_id_users'),
        sa.ForeignKeyConstraint(['reviewed_by_user_id'], ['users.id'], name='fk_orders_reviewed_by_user_id_users'),
        sa.PrimaryKeyConstraint('id', name='pk_orders'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_orders_distributor_id', 'orders', ['distributor_id'])
    op.create_index('ix_orders_status', 'orders', ['status'])
    op.create_index('ix_orders_created_at', 'orders', ['created_at'])
    op.create_index('ix_orders_distributor_status_created', 'orders',
                    ['distributor_id', 'status', 'created_at'])

    op.create_table(
        'order_lines',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('order_id', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=False),
        sa.Column('product_name', sa.String(length=255), nullable=False),
        sa.Column('unit_price_cents', sa.Integer(), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(['order_id'], ['orders.id'], name='fk_order_lines_order_id_orders',
                                ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id', name='pk_order_lines'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_order_lines_order_id', 'order_lines', ['order_id'])
    op.create_index('ix_order_lines_product_id', 'order_lines', ['product_id'])

    # ============================================================================
    # weekly_reports / report_details
    # ============================================================================
    op.create_table(
        'weekly_reports',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('distributor_id', sa.Integer(), nullable=False),
        sa.Column('week_start_date', sa.Date(), nullable=False),
        sa.Column('total_revenue_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('total_sold', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('total_damaged', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='PENDING'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('reviewed_by_user_id', sa.Integer(), nullable=True),
        sa.Column('reviewed_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['distributor_id'], ['users.id'], name='fk_weekly_reports_distributor_id_users'),
        sa.ForeignKeyConstraint(['reviewed_by_user_id'], ['users.id'],
                                name='fk_weekly_reports_reviewed_by_user_id_users'),
        sa.PrimaryKeyConstraint('id', name='pk_weekly_reports'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_weekly_reports_distributor_id', 'weekly_reports', ['distributor_id'])
    op.create_index('ix_weekly_reports_week_start_date', 'weekly_reports', ['week_start_date'])
    op.create_index('ix_weekly_reports_status', 'weekly_reports', ['status'])
    op.create_index('ix_reports_distributor_week_status', 'weekly_reports',
                    ['distributor_id', 'week_start_date', 'status'])

    op.create_table(
        'report_details',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('report_id', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=False),
        sa.Column('product_name', sa.String(length=255), nullable=False),
        sa.Column('quantity_received', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('quantity_sold', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('quantity_damaged', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('revenue_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('remaining_stock', sa.Integer(), nullable=False, server_default='0'),
        sa.ForeignKeyConstraint(['report_id'], ['weekly_reports.id'],
                                name='fk_report_details_report_id_weekly_reports', ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id', name='pk_report_details'),
        sa.UniqueConstraint('report_id', 'product_id', name='uq_report_details_report_product'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_report_details_report_id', 'report_details', ['report_id'])
    op.create_index('ix_report_details_product_id', 'report_details', ['product_id'])


def downgrade():
    op.drop_table('report_details')
    op.drop_table('weekly_reports')
    op.drop_table('order_lines')
    op.drop_table('orders')
    op.drop_table('products')
    op.drop_table('session_tokens')
    op.drop_table('users')
