"""Create affiliate engine schema

Revision ID: 20261019_000001
Revises: 
Create Date: 2026-10-19

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = '20261019_000001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

MONEY = sa.DECIMAL(18, 8)
RATE = sa.DECIMAL(10, 4)
JSON_DOC = sa.JSON().with_variant(postgresql.JSONB(), 'postgresql')


def _timestamp(name: str, nullable: bool = False) -> sa.Column:
    return sa.Column(
        name,
        sa.DateTime(timezone=True),
        nullable=nullable,
        server_default=None if nullable else sa.func.now(),
    )


def upgrade() -> None:
    # Storefront snapshot tables
    op.create_table(
        'customers',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('name', sa.String(255), nullable=True),
        sa.Column('referred_by_affiliate_id', sa.Integer(), nullable=True),
        _timestamp('created_at'),
        _timestamp('deleted_at', nullable=True),
        sa.PrimaryKeyConstraint('id', name='pk_customers'),
        sa.UniqueConstraint('email', name='uq_customers_email'),
    )
    op.create_index('ix_customers_email', 'customers', ['email'])
    op.create_index(
        'ix_customers_referred_by_affiliate_id', 'customers', ['referred_by_affiliate_id']
    )

    # Groups and tiers
    op.create_table(
        'affiliate_groups',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('name', sa.String(100), nullable=False),
        sa.Column('commission_rate', RATE, nullable=True),
        sa.Column('commission_type', sa.String(20), nullable=False, server_default='PERCENTAGE'),
        sa.PrimaryKeyConstraint('id', name='pk_affiliate_groups'),
        sa.UniqueConstraint('name', name='uq_affiliate_groups_name'),
    )
    op.create_table(
        'affiliate_tiers',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('name', sa.String(100), nullable=False),
        sa.Column('commission_rate', RATE, nullable=True),
        sa.Column('commission_type', sa.String(20), nullable=False, server_default='PERCENTAGE'),
        sa.Column('min_sales_amount', MONEY, nullable=False, server_default='0'),
        sa.Column('min_sales_count', sa.Integer(), nullable=False, server_default='0'),
        sa.PrimaryKeyConstraint('id', name='pk_affiliate_tiers'),
        sa.UniqueConstraint('name', name='uq_affiliate_tiers_name'),
    )

    # Affiliate accounts
    op.create_table(
        'affiliate_accounts',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('slug', sa.String(64), nullable=False),
        sa.Column('status', sa.String(20), nullable=False, server_default='ACTIVE'),
        sa.Column('group_id', sa.Integer(), nullable=True),
        sa.Column('tier_id', sa.Integer(), nullable=True),
        sa.Column('balance', MONEY, nullable=False, server_default='0'),
        sa.Column('total_earnings', MONEY, nullable=False, server_default='0'),
        sa.Column('parent_id', sa.Integer(), nullable=True),
        sa.Column('risk_score', sa.Integer(), nullable=False, server_default='0'),
        _timestamp('created_at'),
        _timestamp('updated_at'),
        _timestamp('deleted_at', nullable=True),
        sa.CheckConstraint('balance >= 0', name='ck_affiliate_accounts_balance_non_negative'),
        sa.CheckConstraint(
            'total_earnings >= 0', name='ck_affiliate_accounts_total_earnings_non_negative'
        ),
        sa.CheckConstraint(
            'risk_score >= 0 AND risk_score <= 100', name='ck_affiliate_accounts_risk_score_range'
        ),
        sa.ForeignKeyConstraint(['user_id'], ['customers.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['group_id'], ['affiliate_groups.id'], ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['tier_id'], ['affiliate_tiers.id'], ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['parent_id'], ['affiliate_accounts.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id', name='pk_affiliate_accounts'),
        sa.UniqueConstraint('user_id', name='uq_affiliate_accounts_user_id'),
        sa.UniqueConstraint('slug', name='uq_affiliate_accounts_slug'),
    )
    op.create_index('ix_affiliate_accounts_status', 'affiliate_accounts', ['status'])
    op.create_index('ix_affiliate_accounts_parent_id', 'affiliate_accounts', ['parent_id'])
    op.create_index('ix_affiliate_accounts_deleted_at', 'affiliate_accounts', ['deleted_at'])

    # customers <-> affiliate_accounts reference each other
    op.create_foreign_key(
        'fk_customers_referred_by_affiliate_id_affiliate_accounts',
        'customers',
        'affiliate_accounts',
        ['referred_by_affiliate_id'],
        ['id'],
        ondelete='SET NULL',
    )

    op.create_table(
        'affiliate_clicks',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('affiliate_id', sa.Integer(), nullable=False),
        sa.Column('ip_address', sa.String(64), nullable=True),
        sa.Column('device_fingerprint', sa.String(128), nullable=True),
        _timestamp('created_at'),
        sa.ForeignKeyConstraint(['affiliate_id'], ['affiliate_accounts.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id', name='pk_affiliate_clicks'),
    )
    op.create_index('ix_affiliate_clicks_affiliate_id', 'affiliate_clicks', ['affiliate_id'])
    op.create_index('ix_affiliate_clicks_created_at', 'affiliate_clicks', ['created_at'])

    # Orders
    op.create_table(
        'orders',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('order_number', sa.String(64), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=True),
        sa.Column('guest_email', sa.String(255), nullable=True),
        sa.Column('ip_address', sa.String(64), nullable=True),
        sa.Column('affiliate_id', sa.Integer(), nullable=True),
        sa.Column('coupon_affiliate_id', sa.Integer(), nullable=True),
        sa.Column('subtotal', MONEY, nullable=False, server_default='0'),
        sa.Column('shipping_total', MONEY, nullable=False, server_default='0'),
        sa.Column('tax_total', MONEY, nullable=False, server_default='0'),
        sa.Column('total', MONEY, nullable=False, server_default='0'),
        _timestamp('created_at'),
        _timestamp('deleted_at', nullable=True),
        sa.ForeignKeyConstraint(['user_id'], ['customers.id'], ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['affiliate_id'], ['affiliate_accounts.id'], ondelete='SET NULL'),
        sa.ForeignKeyConstraint(
            ['coupon_affiliate_id'], ['affiliate_accounts.id'], ondelete='SET NULL'
        ),
        sa.PrimaryKeyConstraint('id', name='pk_orders'),
        sa.UniqueConstraint('order_number', name='uq_orders_order_number'),
    )
    op.create_index('ix_orders_user_id', 'orders', ['user_id'])
    op.create_index('ix_orders_affiliate_id', 'orders', ['affiliate_id'])
    op.create_index('ix_orders_created_at', 'orders', ['created_at'])

    op.create_table(
        'order_items',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('order_id', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=True),
        sa.Column('product_name', sa.String(255), nullable=True),
        sa.Column('category_id', sa.Integer(), nullable=True),
        sa.Column('quantity', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('price', MONEY, nullable=False, server_default='0'),
        sa.Column('total', MONEY, nullable=False, server_default='0'),
        sa.Column('tax', MONEY, nullable=False, server_default='0'),
        sa.Column('shipping', MONEY, nullable=False, server_default='0'),
        sa.Column('unit_cost', MONEY, nullable=True),
        sa.Column('cv_points', MONEY, nullable=True),
        sa.ForeignKeyConstraint(['order_id'], ['orders.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id', name='pk_order_items'),
    )
    op.create_index('ix_order_items_order_id', 'order_items', ['order_id'])

    # Program configuration
    op.create_table(
        'affiliate_program_settings',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('version', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='true'),
        sa.Column('holding_period_days', sa.Integer(), nullable=False, server_default='14'),
        sa.Column('allow_self_referral', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('zero_value_referrals', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column(
            'lifetime_link_on_purchase', sa.Boolean(), nullable=False, server_default='false'
        ),
        sa.Column('exclude_tax', sa.Boolean(), nullable=False, server_default='true'),
        sa.Column('exclude_shipping', sa.Boolean(), nullable=False, server_default='true'),
        sa.Column('commission_rate', RATE, nullable=False, server_default='10'),
        sa.Column('commission_type', sa.String(20), nullable=False, server_default='PERCENTAGE'),
        _timestamp('updated_at'),
        sa.CheckConstraint(
            'holding_period_days >= 0',
            name='ck_affiliate_program_settings_holding_non_negative',
        ),
        sa.PrimaryKeyConstraint('id', name='pk_affiliate_program_settings'),
    )
    op.create_table(
        'affiliate_mlm_config',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('is_enabled', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('max_levels', sa.Integer(), nullable=False, server_default='3'),
        sa.Column('commission_basis', sa.String(20), nullable=False, server_default='SALES'),
        sa.Column('level_rates', JSON_DOC, nullable=False),
        sa.CheckConstraint(
            'max_levels >= 1 AND max_levels <= 10',
            name='ck_affiliate_mlm_config_max_levels_range',
        ),
        sa.PrimaryKeyConstraint('id', name='pk_affiliate_mlm_config'),
    )
    op.create_table(
        'affiliate_fraud_rules',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('type', sa.String(40), nullable=False),
        sa.Column('value', MONEY, nullable=False),
        sa.Column('action', sa.String(20), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='true'),
        _timestamp('created_at'),
        sa.PrimaryKeyConstraint('id', name='pk_affiliate_fraud_rules'),
    )
    op.create_table(
        'affiliate_commission_rules',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('name', sa.String(100), nullable=False),
        sa.Column('priority', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='true'),
        sa.Column('conditions', JSON_DOC, nullable=False),
        sa.Column('action_type', sa.String(20), nullable=False, server_default='PERCENTAGE'),
        sa.Column('action_value', RATE, nullable=False),
        _timestamp('created_at'),
        sa.PrimaryKeyConstraint('id', name='pk_affiliate_commission_rules'),
    )
    op.create_index(
        'idx_commission_rules_active_priority',
        'affiliate_commission_rules',
        ['is_active', 'priority'],
    )
    op.create_table(
        'affiliate_product_rates',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=False),
        sa.Column('affiliate_id', sa.Integer(), nullable=True),
        sa.Column('group_id', sa.Integer(), nullable=True),
        sa.Column('rate', RATE, nullable=False, server_default='0'),
        sa.Column('type', sa.String(20), nullable=False, server_default='PERCENTAGE'),
        sa.Column('is_disabled', sa.Boolean(), nullable=False, server_default='false'),
        sa.CheckConstraint(
            '(affiliate_id IS NULL) <> (group_id IS NULL)',
            name='ck_affiliate_product_rates_single_scope',
        ),
        sa.ForeignKeyConstraint(['affiliate_id'], ['affiliate_accounts.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['group_id'], ['affiliate_groups.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id', name='pk_affiliate_product_rates'),
    )
    op.create_index(
        'idx_product_rates_product_affiliate',
        'affiliate_product_rates',
        ['product_id', 'affiliate_id'],
    )
    op.create_index(
        'idx_product_rates_product_group', 'affiliate_product_rates', ['product_id', 'group_id']
    )

    # Referrals and ledger
    op.create_table(
        'affiliate_referrals',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('affiliate_id', sa.Integer(), nullable=False),
        sa.Column('order_id', sa.Integer(), nullable=False),
        sa.Column('total_order_amount', MONEY, nullable=False, server_default='0'),
        sa.Column('net_order_amount', MONEY, nullable=False, server_default='0'),
        sa.Column('commission_amount', MONEY, nullable=False, server_default='0'),
        sa.Column('commission_rate', RATE, nullable=False, server_default='0'),
        sa.Column('commission_type', sa.String(20), nullable=False, server_default='PERCENTAGE'),
        sa.Column('commission_rule_id', sa.Integer(), nullable=True),
        sa.Column('status', sa.String(20), nullable=False, server_default='PENDING'),
        sa.Column('available_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('paid_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('is_mlm_reward', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('mlm_level', sa.Integer(), nullable=True),
        sa.Column('from_downline_id', sa.Integer(), nullable=True),
        sa.Column('is_flagged', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('note', sa.Text(), nullable=True),
        sa.Column('calculation_log', JSON_DOC, nullable=False),
        _timestamp('created_at'),
        _timestamp('updated_at'),
        sa.CheckConstraint(
            'commission_amount >= 0', name='ck_affiliate_referrals_commission_non_negative'
        ),
        sa.ForeignKeyConstraint(['affiliate_id'], ['affiliate_accounts.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['order_id'], ['orders.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(
            ['commission_rule_id'], ['affiliate_commission_rules.id'], ondelete='SET NULL'
        ),
        sa.ForeignKeyConstraint(
            ['from_downline_id'], ['affiliate_accounts.id'], ondelete='SET NULL'
        ),
        sa.PrimaryKeyConstraint('id', name='pk_affiliate_referrals'),
        sa.UniqueConstraint('order_id', 'affiliate_id', name='uq_referral_order_affiliate'),
    )
    op.create_index('ix_affiliate_referrals_order_id', 'affiliate_referrals', ['order_id'])
    op.create_index(
        'idx_referrals_status_available', 'affiliate_referrals', ['status', 'available_at']
    )
    op.create_index(
        'idx_referrals_affiliate_created', 'affiliate_referrals', ['affiliate_id', 'created_at']
    )

    op.create_table(
        'affiliate_ledger',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('affiliate_id', sa.Integer(), nullable=False),
        sa.Column('type', sa.String(20), nullable=False),
        sa.Column('amount', MONEY, nullable=False),
        sa.Column('balance_before', MONEY, nullable=False),
        sa.Column('balance_after', MONEY, nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('reference_id', sa.String(100), nullable=True),
        _timestamp('created_at'),
        sa.ForeignKeyConstraint(['affiliate_id'], ['affiliate_accounts.id'], ondelete='RESTRICT'),
        sa.PrimaryKeyConstraint('id', name='pk_affiliate_ledger'),
    )
    op.create_index('ix_affiliate_ledger_reference_id', 'affiliate_ledger', ['reference_id'])
    op.create_index(
        'idx_ledger_affiliate_created', 'affiliate_ledger', ['affiliate_id', 'created_at', 'id']
    )

    # Side effects: analytics, notifications, system log
    op.create_table(
        'affiliate_analytics_summary',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('affiliate_id', sa.Integer(), nullable=False),
        sa.Column('date', sa.Date(), nullable=False),
        sa.Column('conversions', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('revenue', MONEY, nullable=False, server_default='0'),
        sa.Column('commission', MONEY, nullable=False, server_default='0'),
        sa.ForeignKeyConstraint(['affiliate_id'], ['affiliate_accounts.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id', name='pk_affiliate_analytics_summary'),
        sa.UniqueConstraint('affiliate_id', 'date', name='uq_analytics_affiliate_date'),
    )
    op.create_table(
        'notification_queue',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('channel', sa.String(20), nullable=False, server_default='EMAIL'),
        sa.Column('recipient', sa.String(255), nullable=False),
        sa.Column('template_slug', sa.String(64), nullable=False),
        sa.Column('status', sa.String(20), nullable=False, server_default='PENDING'),
        sa.Column('user_id', sa.Integer(), nullable=True),
        sa.Column('content', sa.Text(), nullable=False, server_default=''),
        sa.Column('payload', JSON_DOC, nullable=False),
        _timestamp('created_at'),
        sa.ForeignKeyConstraint(['user_id'], ['customers.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id', name='pk_notification_queue'),
    )
    op.create_index('ix_notification_queue_template_slug', 'notification_queue', ['template_slug'])
    op.create_index('ix_notification_queue_status', 'notification_queue', ['status'])

    op.create_table(
        'system_logs',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('level', sa.String(16), nullable=False),
        sa.Column('source', sa.String(64), nullable=False),
        sa.Column('message', sa.Text(), nullable=False),
        sa.Column('context', JSON_DOC, nullable=True),
        _timestamp('created_at'),
        sa.PrimaryKeyConstraint('id', name='pk_system_logs'),
    )
    op.create_index('ix_system_logs_level', 'system_logs', ['level'])
    op.create_index('ix_system_logs_source', 'system_logs', ['source'])


def downgrade() -> None:
    op.drop_table('system_logs')
    op.drop_table('notification_queue')
    op.drop_table('affiliate_analytics_summary')
    op.drop_table('affiliate_ledger')
    op.drop_table('affiliate_referrals')
    op.drop_table('affiliate_product_rates')
    op.drop_table('affiliate_commission_rules')
    op.drop_table('affiliate_fraud_rules')
    op.drop_table('affiliate_mlm_config')
    op.drop_table('affiliate_program_settings')
    op.drop_table('order_items')
    op.drop_table('orders')
    op.drop_table('affiliate_clicks')

    op.drop_constraint(
        'fk_customers_referred_by_affiliate_id_affiliate_accounts',
        'customers',
        type_='foreignkey',
    )
    op.drop_table('affiliate_accounts')
    op.drop_table('affiliate_tiers')
    op.drop_table('affiliate_groups')
    op.drop_table('customers')
