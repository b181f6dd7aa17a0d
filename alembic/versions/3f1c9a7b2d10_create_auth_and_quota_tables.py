"""create_auth_and_quota_tables

Revision ID: 3f1c9a7b2d10
Revises:
Create Date: 2026-10-19 09:30:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = '3f1c9a7b2d10'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

JSON_TYPE = sa.JSON().with_variant(postgresql.JSONB(), 'postgresql')


def _timestamps():
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    ]


def upgrade() -> None:
    """Create tenant, user, role, invitation, plan, subscription and usage tables."""
    op.create_table(
        'tenant',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('slug', sa.String(), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('suspended_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('suspended_reason', sa.String(), nullable=True),
        sa.Column('billing_timezone', sa.String(), nullable=False, server_default='UTC'),
        *_timestamps(),
    )
    op.create_index('ix_tenant_id', 'tenant', ['id'])
    op.create_index('ix_tenant_slug', 'tenant', ['slug'], unique=True)

    op.create_table(
        'role',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('kind', sa.Enum('system', 'custom', name='rolekind'), nullable=False),
        sa.Column('tenant_id', sa.Integer(), sa.ForeignKey('tenant.id', ondelete='CASCADE'), nullable=True),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('slug', sa.String(), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('permissions', JSON_TYPE, nullable=False),
        *_timestamps(),
        sa.UniqueConstraint('tenant_id', 'slug', name='uix_role_tenant_slug'),
        sa.CheckConstraint(
            "(kind = 'system' AND tenant_id IS NULL) OR (kind = 'custom' AND tenant_id IS NOT NULL)",
            name='ck_role_kind_owner',
        ),
    )
    op.create_index('ix_role_id', 'role', ['id'])
    op.create_index('ix_role_tenant_id', 'role', ['tenant_id'])
    op.create_index(
        'uix_role_system_slug', 'role', ['slug'], unique=True,
        postgresql_where=sa.text('tenant_id IS NULL'),
        sqlite_where=sa.text('tenant_id IS NULL'),
    )

    op.create_table(
        'user',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('email', sa.String(), nullable=False),
        sa.Column('phone', sa.String(), nullable=True),
        sa.Column('hashed_password', sa.String(), nullable=False),
        sa.Column('credential_version', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('tenant_id', sa.Integer(), sa.ForeignKey('tenant.id', ondelete='CASCADE'), nullable=True),
        sa.Column('role_id', sa.Integer(), sa.ForeignKey('role.id', ondelete='SET NULL'), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('suspended_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('suspended_reason', sa.String(), nullable=True),
        sa.Column('is_super_admin', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('last_login_at', sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.CheckConstraint('tenant_id IS NOT NULL OR is_super_admin', name='ck_user_tenant_or_super_admin'),
    )
    op.create_index('ix_user_id', 'user', ['id'])
    op.create_index('ix_user_email', 'user', ['email'], unique=True)
    op.create_index('ix_user_tenant_id', 'user', ['tenant_id'])

    op.create_table(
        'plan',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('slug', sa.String(), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('monthly_token_limit', sa.Integer(), nullable=False),
        sa.Column('daily_token_limit', sa.Integer(), nullable=False),
        sa.Column('request_limit_per_minute', sa.Integer(), nullable=False),
        sa.Column('ai_chat_enabled', sa.Boolean(), nullable=False),
        sa.Column('ai_autofill_enabled', sa.Boolean(), nullable=False),
        sa.Column('ai_summarize_enabled', sa.Boolean(), nullable=False),
        sa.Column('ai_lead_analysis_enabled', sa.Boolean(), nullable=False),
        sa.Column('ai_email_draft_enabled', sa.Boolean(), nullable=False),
        sa.Column('knowledge_base_enabled', sa.Boolean(), nullable=False),
        sa.Column('price_monthly', sa.Numeric(10, 2), nullable=False),
        sa.Column('sort_order', sa.Integer(), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        *_timestamps(),
    )
    op.create_index('ix_plan_id', 'plan', ['id'])
    op.create_index('ix_plan_slug', 'plan', ['slug'], unique=True)

    op.create_table(
        'subscription',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('tenant_id', sa.Integer(), sa.ForeignKey('tenant.id', ondelete='CASCADE'), nullable=False),
        sa.Column('plan_id', sa.Integer(), sa.ForeignKey('plan.id'), nullable=False),
        sa.Column(
            'status',
            sa.Enum('trial', 'active', 'past_due', 'cancelled', 'expired', name='subscriptionstatus'),
            nullable=False,
        ),
        sa.Column('starts_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('ends_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('cancelled_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('custom_monthly_token_limit', sa.Integer(), nullable=True),
        sa.Column('custom_daily_token_limit', sa.Integer(), nullable=True),
        *_timestamps(),
    )
    op.create_index('ix_subscription_id', 'subscription', ['id'])
    op.create_index('ix_subscription_tenant_id', 'subscription', ['tenant_id'])
    op.create_index(
        'uix_subscription_live_tenant', 'subscription', ['tenant_id'], unique=True,
        postgresql_where=sa.text("status IN ('trial', 'active')"),
        sqlite_where=sa.text("status IN ('trial', 'active')"),
    )

    op.create_table(
        'user_invitation',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('tenant_id', sa.Integer(), sa.ForeignKey('tenant.id', ondelete='CASCADE'), nullable=False),
        sa.Column('email', sa.String(), nullable=False),
        sa.Column('name', sa.String(), nullable=True),
        sa.Column('role_id', sa.Integer(), sa.ForeignKey('role.id', ondelete='CASCADE'), nullable=False),
        sa.Column('invited_by', sa.Integer(), sa.ForeignKey('user.id', ondelete='SET NULL'), nullable=True),
        sa.Column('token', sa.String(), nullable=False),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('accepted_at', sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )
    op.create_index('ix_user_invitation_id', 'user_invitation', ['id'])
    op.create_index('ix_user_invitation_tenant_id', 'user_invitation', ['tenant_id'])
    op.create_index('ix_user_invitation_email', 'user_invitation', ['email'])
    op.create_index('ix_user_invitation_token', 'user_invitation', ['token'], unique=True)

    op.create_table(
        'usage_counter',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('tenant_id', sa.Integer(), sa.ForeignKey('tenant.id', ondelete='CASCADE'), nullable=False),
        sa.Column('window', sa.Enum('minute', 'day', 'month', name='quotawindow'), nullable=False),
        sa.Column('window_key', sa.String(), nullable=False),
        sa.Column('used', sa.Integer(), nullable=False, server_default='0'),
        *_timestamps(),
        sa.UniqueConstraint('tenant_id', 'window', 'window_key', name='uix_usage_counter_bucket'),
    )
    op.create_index('ix_usage_counter_id', 'usage_counter', ['id'])


def downgrade() -> None:
    """Drop all tables and enum types."""
    op.drop_table('usage_counter')
    op.drop_table('user_invitation')
    op.drop_table('subscription')
    op.drop_table('plan')
    op.drop_table('user')
    op.drop_table('role')
    op.drop_table('tenant')
    sa.Enum(name='quotawindow').drop(op.get_bind(), checkfirst=True)
    sa.Enum(name='subscriptionstatus').drop(op.get_bind(), checkfirst=True)
    sa.Enum(name='rolekind').drop(op.get_bind(), checkfirst=True)
