"""create_billing_tables

Revision ID: 3f9c2b7d1a40
Revises:
Create Date: 2026-10-19 09:12:44.512031

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3f9c2b7d1a40'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""
    # Create subscriptions table
    op.create_table(
        'subscriptions',
        sa.Column('id', sa.BigInteger(), nullable=False),
        sa.Column('user_key', sa.String(length=36), nullable=False),
        sa.Column('email', sa.String(length=320), nullable=True),
        sa.Column('plan_id', sa.String(length=50), nullable=False),
        sa.Column('billing_interval', sa.String(length=20), nullable=False, server_default='MONTHLY'),
        sa.Column('amount', sa.Numeric(precision=10, scale=2), nullable=False, server_default='0'),
        sa.Column('currency', sa.String(length=3), nullable=False, server_default='USD'),
        sa.Column('external_subscription_ref', sa.String(length=255), nullable=True),
        sa.Column('external_customer_ref', sa.String(length=255), nullable=True),
        sa.Column('last_invoice_ref', sa.String(length=255), nullable=True),
        sa.Column('start_date', sa.DateTime(timezone=True), nullable=False),
        sa.Column('end_date', sa.DateTime(timezone=True), nullable=False),
        sa.Column('cancelled', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('cancelled_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('credits_remaining', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('credits_limit', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('credits_reset_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()')),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()')),
        sa.CheckConstraint(
            'credits_remaining >= 0 AND credits_remaining <= credits_limit',
            name=op.f('ck_subscriptions_credits_within_limit'),
        ),
        sa.CheckConstraint(
            'credits_reset_count >= 0',
            name=op.f('ck_subscriptions_reset_count_non_negative'),
        ),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_subscriptions'))
    )
    op.create_index(op.f('ix_subscriptions_id'), 'subscriptions', ['id'], unique=False)
    op.create_index(op.f('ix_subscriptions_user_key'), 'subscriptions', ['user_key'], unique=True)
    op.create_index(op.f('ix_subscriptions_plan_id'), 'subscriptions', ['plan_id'], unique=False)
    op.create_index(op.f('ix_subscriptions_external_subscription_ref'), 'subscriptions', ['external_subscription_ref'], unique=True)
    op.create_index(op.f('ix_subscriptions_external_customer_ref'), 'subscriptions', ['external_customer_ref'], unique=False)
    op.create_index('idx_subscription_end_date', 'subscriptions', ['end_date'], unique=False)

    # Create credit_ledger table
    op.create_table(
        'credit_ledger',
        sa.Column('id', sa.BigInteger(), nullable=False),
        sa.Column('subscription_id', sa.BigInteger(), nullable=False),
        sa.Column('operation', sa.String(length=20), nullable=False),
        sa.Column('amount', sa.Integer(), nullable=False),
        sa.Column('balance_after', sa.Integer(), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('now()')),
        sa.ForeignKeyConstraint(
            ['subscription_id'], ['subscriptions.id'],
            name=op.f('fk_credit_ledger_subscription_id_subscriptions'),
            ondelete='RESTRICT',
        ),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_credit_ledger'))
    )
    op.create_index(op.f('ix_credit_ledger_id'), 'credit_ledger', ['id'], unique=False)
    op.create_index(op.f('ix_credit_ledger_subscription_id'), 'credit_ledger', ['subscription_id'], unique=False)
    op.create_index('idx_credit_ledger_subscription_created', 'credit_ledger', ['subscription_id', 'created_at'], unique=False)

    # Create subscription_audit_log table
    op.create_table(
        'subscription_audit_log',
        sa.Column('id', sa.BigInteger(), nullable=False),
        sa.Column('subscription_id', sa.BigInteger(), nullable=False),
        sa.Column('action', sa.String(length=50), nullable=False),
        sa.Column('details', sa.JSON(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('now()')),
        sa.ForeignKeyConstraint(
            ['subscription_id'], ['subscriptions.id'],
            name=op.f('fk_subscription_audit_log_subscription_id_subscriptions'),
            ondelete='CASCADE',
        ),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_subscription_audit_log'))
    )
    op.create_index(op.f('ix_subscription_audit_log_id'), 'subscription_audit_log', ['id'], unique=False)
    op.create_index(op.f('ix_subscription_audit_log_subscription_id'), 'subscription_audit_log', ['subscription_id'], unique=False)
    op.create_index(op.f('ix_subscription_audit_log_action'), 'subscription_audit_log', ['action'], unique=False)

    # Create processed_webhook_events table
    op.create_table(
        'processed_webhook_events',
        sa.Column('id', sa.BigInteger(), nullable=False),
        sa.Column('event_id', sa.String(length=255), nullable=False),
        sa.Column('event_type', sa.String(length=100), nullable=False),
        sa.Column('processed_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('now()')),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_processed_webhook_events'))
    )
    op.create_index(op.f('ix_processed_webhook_events_id'), 'processed_webhook_events', ['id'], unique=False)
    op.create_index(op.f('ix_processed_webhook_events_event_id'), 'processed_webhook_events', ['event_id'], unique=True)


def downgrade() -> None:
    """Downgrade schema."""
    # Drop processed_webhook_events table
    op.drop_index(op.f('ix_processed_webhook_events_event_id'), table_name='processed_webhook_events')
    op.drop_index(op.f('ix_processed_webhook_events_id'), table_name='processed_webhook_events')
    op.drop_table('processed_webhook_events')

    # Drop subscription_audit_log table
    op.drop_index(op.f('ix_subscription_audit_log_action'), table_name='subscription_audit_log')
    op.drop_index(op.f('ix_subscription_audit_log_subscription_id'), table_name='subscription_audit_log')
    op.drop_index(op.f('ix_subscription_audit_log_id'), table_name='subscription_audit_log')
    op.drop_table('subscription_audit_log')

    # Drop credit_ledger table
    op.drop_index('idx_credit_ledger_subscription_created', table_name='credit_ledger')
    op.drop_index(op.f('ix_credit_ledger_subscription_id'), table_name='credit_ledger')
    op.drop_index(op.f('ix_credit_ledger_id'), table_name='credit_ledger')
    op.drop_table('credit_ledger')

    # Drop subscriptions table
    op.drop_index('idx_subscription_end_date', table_name='subscriptions')
    op.drop_index(op.f('ix_subscriptions_external_customer_ref'), table_name='subscriptions')
    op.drop_index(op.f('ix_subscriptions_external_subscription_ref'), table_name='subscriptions')
    op.drop_index(op.f('ix_subscriptions_plan_id'), table_name='subscriptions')
    op.drop_index(op.f('ix_subscriptions_user_key'), table_name='subscriptions')
    op.drop_index(op.f('ix_subscriptions_id'), table_name='subscriptions')
    op.drop_table('subscriptions')
