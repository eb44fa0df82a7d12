"""Baseline migration - tenants, catalog, subscriptions and appointments

Revision ID: 0001_baseline
Revises:
Create Date: 2026-10-18

Creates the scheduling schema, including the partial unique index that
keeps one non-canceled appointment per (tenant, professional, start).
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '0001_baseline'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamp(name: str, nullable: bool = False) -> sa.Column:
    return sa.Column(name, sa.DateTime(timezone=True), nullable=nullable)


def upgrade() -> None:
    """Create scheduling tables."""

    # ==========================================================================
    # Tenants and users
    # ==========================================================================
    op.create_table(
        'tenants',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('slug', sa.String(100), nullable=False, unique=True),
        sa.Column('timezone', sa.String(50), nullable=False),
        sa.Column('currency', sa.String(3), nullable=False),
        sa.Column('locale', sa.String(10), nullable=False),
        sa.Column('config', sa.JSON(), nullable=False),
        _timestamp('created_at'),
        _timestamp('updated_at'),
    )

    op.create_table(
        'users',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('tenant_id', sa.Uuid(), sa.ForeignKey('tenants.id', ondelete='CASCADE'), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('phone', sa.String(30), nullable=True),
        sa.Column('role', sa.String(20), nullable=False),
        _timestamp('created_at'),
        sa.UniqueConstraint('tenant_id', 'email', name='uq_users_tenant_email'),
    )
    op.create_index('idx_users_tenant_role', 'users', ['tenant_id', 'role'])

    op.create_table(
        'locations',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('tenant_id', sa.Uuid(), sa.ForeignKey('tenants.id', ondelete='CASCADE'), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('address', sa.String(500), nullable=True),
        _timestamp('created_at'),
    )
    op.create_index('idx_locations_tenant', 'locations', ['tenant_id'])

    # ==========================================================================
    # Catalog
    # ==========================================================================
    op.create_table(
        'services',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('tenant_id', sa.Uuid(), sa.ForeignKey('tenants.id', ondelete='CASCADE'), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('duration_minutes', sa.Integer(), nullable=False),
        sa.Column('price', sa.Numeric(10, 2), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        _timestamp('created_at'),
        sa.CheckConstraint('price >= 0', name='ck_services_price_non_negative'),
        sa.CheckConstraint('duration_minutes > 0', name='ck_services_duration_positive'),
    )
    op.create_index('idx_services_tenant', 'services', ['tenant_id', 'is_active'])

    op.create_table(
        'professionals',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('tenant_id', sa.Uuid(), sa.ForeignKey('tenants.id', ondelete='CASCADE'), nullable=False),
        sa.Column('user_id', sa.Uuid(), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('email', sa.String(255), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        _timestamp('created_at'),
    )
    op.create_index('idx_professionals_tenant', 'professionals', ['tenant_id'])

    op.create_table(
        'professional_working_hours',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column(
            'professional_id', sa.Uuid(),
            sa.ForeignKey('professionals.id', ondelete='CASCADE'), nullable=False,
        ),
        sa.Column('day_of_week', sa.Integer(), nullable=False),
        sa.Column('start_time', sa.Time(), nullable=False),
        sa.Column('end_time', sa.Time(), nullable=False),
        sa.UniqueConstraint('professional_id', 'day_of_week', name='uq_professional_working_day'),
        sa.CheckConstraint('day_of_week >= 0 AND day_of_week <= 6', name='ck_valid_day_of_week'),
    )

    # ==========================================================================
    # Plans and subscriptions
    # ==========================================================================
    op.create_table(
        'plans',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('tenant_id', sa.Uuid(), sa.ForeignKey('tenants.id', ondelete='CASCADE'), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('price', sa.Numeric(10, 2), nullable=False),
        sa.Column('credits', sa.Integer(), nullable=False),
        sa.Column('interval', sa.String(20), nullable=False),
        _timestamp('created_at'),
    )
    op.create_index('idx_plans_tenant', 'plans', ['tenant_id'])

    op.create_table(
        'subscriptions',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('tenant_id', sa.Uuid(), sa.ForeignKey('tenants.id', ondelete='CASCADE'), nullable=False),
        sa.Column('client_id', sa.Uuid(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('plan_id', sa.Uuid(), sa.ForeignKey('plans.id', ondelete='RESTRICT'), nullable=False),
        sa.Column('status', sa.String(20), nullable=False),
        sa.Column('credits_remaining', sa.Integer(), nullable=False),
        _timestamp('starts_at'),
        _timestamp('ends_at', nullable=True),
        _timestamp('created_at'),
        _timestamp('updated_at'),
        sa.CheckConstraint('credits_remaining >= 0', name='ck_subscriptions_credits_non_negative'),
    )
    op.create_index('idx_subscriptions_client', 'subscriptions', ['tenant_id', 'client_id', 'status'])

    # ==========================================================================
    # Appointments
    # ==========================================================================
    op.create_table(
        'appointments',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('tenant_id', sa.Uuid(), sa.ForeignKey('tenants.id', ondelete='CASCADE'), nullable=False),
        sa.Column('client_id', sa.Uuid(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column(
            'professional_id', sa.Uuid(),
            sa.ForeignKey('professionals.id', ondelete='SET NULL'), nullable=True,
        ),
        sa.Column('location_id', sa.Uuid(), sa.ForeignKey('locations.id', ondelete='SET NULL'), nullable=True),
        _timestamp('scheduled_at'),
        sa.Column('status', sa.String(20), nullable=False),
        sa.Column('payment_method', sa.String(20), nullable=False),
        sa.Column('payment_gateway', sa.String(20), nullable=True),
        sa.Column('payment_status', sa.String(20), nullable=False),
        sa.Column(
            'subscription_id', sa.Uuid(),
            sa.ForeignKey('subscriptions.id', ondelete='SET NULL'), nullable=True,
        ),
        sa.Column('notes', sa.Text(), nullable=True),
        _timestamp('confirmed_at', nullable=True),
        _timestamp('completed_at', nullable=True),
        _timestamp('canceled_at', nullable=True),
        sa.Column('cancellation_reason', sa.Text(), nullable=True),
        _timestamp('created_at'),
        _timestamp('updated_at'),
    )
    op.create_index(
        'uq_appointments_professional_slot',
        'appointments',
        ['tenant_id', 'professional_id', 'scheduled_at'],
        unique=True,
        postgresql_where=sa.text("status <> 'canceled'"),
        sqlite_where=sa.text("status <> 'canceled'"),
    )
    op.create_index('idx_appointments_tenant_date', 'appointments', ['tenant_id', 'scheduled_at'])
    op.create_index('idx_appointments_tenant_status', 'appointments', ['tenant_id', 'status'])
    op.create_index('idx_appointments_client', 'appointments', ['tenant_id', 'client_id'])

    op.create_table(
        'appointment_services',
        sa.Column(
            'appointment_id', sa.Uuid(),
            sa.ForeignKey('appointments.id', ondelete='CASCADE'), primary_key=True,
        ),
        sa.Column('service_id', sa.Uuid(), sa.ForeignKey('services.id', ondelete='RESTRICT'), primary_key=True),
        sa.Column('position', sa.Integer(), nullable=False),
    )

    op.create_table(
        'appointment_events',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('tenant_id', sa.Uuid(), sa.ForeignKey('tenants.id', ondelete='CASCADE'), nullable=False),
        sa.Column(
            'appointment_id', sa.Uuid(),
            sa.ForeignKey('appointments.id', ondelete='CASCADE'), nullable=False,
        ),
        sa.Column('event_type', sa.String(30), nullable=False),
        sa.Column('status', sa.String(20), nullable=False),
        sa.Column('previous_status', sa.String(20), nullable=True),
        _timestamp('created_at'),
        _timestamp('dispatched_at', nullable=True),
    )
    op.create_index('idx_appointment_events_pending', 'appointment_events', ['tenant_id', 'dispatched_at'])
    op.create_index('idx_appointment_events_appt', 'appointment_events', ['appointment_id'])


def downgrade() -> None:
    """Drop scheduling tables."""
    for table in (
        'appointment_events',
        'appointment_services',
        'appointments',
        'subscriptions',
        'plans',
        'professional_working_hours',
        'professionals',
        'services',
        'locations',
        'users',
        'tenants',
    ):
        op.drop_table(table)
