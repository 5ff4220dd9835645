"""initial schema: authz, reference data, service tickets and approvals

Revision ID: 0001_initial_schema
Revises:
Create Date: 2026-10-19
"""
from __future__ import annotations
from alembic import op
import sqlalchemy as sa

revision = '0001_initial_schema'
down_revision = None
branch_labels = None
depends_on = None


def _updated_at():
    return sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'))


def upgrade():
    op.create_table('permissions',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('code', sa.String(length=64), nullable=False, unique=True),
        sa.Column('service', sa.String(length=32), nullable=False),
        sa.Column('action', sa.String(length=32), nullable=False),
        sa.Column('description', sa.String(length=255), nullable=True),
        _updated_at(),
    )
    op.create_index('ix_permissions_code', 'permissions', ['code'])
    op.create_index('ix_permissions_service', 'permissions', ['service'])

    op.create_table('roles',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('name', sa.String(length=64), nullable=False, unique=True),
        sa.Column('is_system', sa.Boolean(), nullable=False, server_default=sa.text('0')),
        sa.Column('description', sa.String(length=255), nullable=True),
        _updated_at(),
    )

    op.create_table('groups',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('name', sa.String(length=64), nullable=False, unique=True),
        sa.Column('description', sa.String(length=255), nullable=True),
        sa.Column('subsidiary_scope', sa.JSON(), nullable=True),
        _updated_at(),
    )

    op.create_table('users',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('full_name', sa.String(length=128), nullable=False),
        sa.Column('email', sa.String(length=128), nullable=False, unique=True),
        sa.Column('phone', sa.String(length=32)),
        sa.Column('password_hash', sa.String(length=255), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.text('1')),
        _updated_at(),
    )
    op.create_index('ix_users_email', 'users', ['email'])

    for name, left, right, uq in (
        ('role_permissions', ('role_id', 'roles'), ('permission_id', 'permissions'), 'uq_role_permission'),
        ('group_roles', ('group_id', 'groups'), ('role_id', 'roles'), 'uq_group_role'),
        ('user_groups', ('user_id', 'users'), ('group_id', 'groups'), 'uq_user_group'),
        ('user_roles', ('user_id', 'users'), ('role_id', 'roles'), 'uq_user_role'),
    ):
        op.create_table(name,
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column(left[0], sa.Integer(), sa.ForeignKey(f'{left[1]}.id', ondelete='CASCADE'), nullable=False),
            sa.Column(right[0], sa.Integer(), sa.ForeignKey(f'{right[1]}.id', ondelete='CASCADE'), nullable=False),
        )
        # unique constraint handled via batch for sqlite
        with op.batch_alter_table(name) as batch_op:
            batch_op.create_unique_constraint(uq, [left[0], right[0]])

    op.create_table('subsidiaries',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('name', sa.String(length=150), nullable=False),
        sa.Column('code', sa.String(length=32), nullable=False, unique=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.text('1')),
        _updated_at(),
    )

    op.create_table('vehicles',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('subsidiary_id', sa.Integer(), sa.ForeignKey('subsidiaries.id'), nullable=False),
        sa.Column('vehicle_number', sa.String(length=32), nullable=False),
        sa.Column('make', sa.String(length=64)),
        sa.Column('model', sa.String(length=64)),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='active'),
        _updated_at(),
        sa.UniqueConstraint('subsidiary_id', 'vehicle_number', name='uq_vehicle_number'),
    )
    op.create_index('ix_vehicles_subsidiary_id', 'vehicles', ['subsidiary_id'])

    op.create_table('vendors',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('subsidiary_id', sa.Integer(), sa.ForeignKey('subsidiaries.id'), nullable=False),
        sa.Column('name', sa.String(length=150), nullable=False),
        sa.Column('contact_email', sa.String(length=150)),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.text('1')),
        _updated_at(),
    )
    op.create_index('ix_vendors_subsidiary_id', 'vendors', ['subsidiary_id'])

    op.create_table('service_tickets',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('ticket_number', sa.String(length=32), nullable=False, unique=True),
        sa.Column('subsidiary_id', sa.Integer(), sa.ForeignKey('subsidiaries.id'), nullable=False),
        sa.Column('vehicle_id', sa.Integer(), sa.ForeignKey('vehicles.id'), nullable=False),
        sa.Column('created_by', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('assigned_vendor_id', sa.Integer(), sa.ForeignKey('vendors.id'), nullable=True),
        sa.Column('title', sa.String(length=200), nullable=False),
        sa.Column('description', sa.Text(), nullable=False),
        sa.Column('ticket_type', sa.String(length=16), nullable=False, server_default='breakdown'),
        sa.Column('priority', sa.String(length=16), nullable=False, server_default='medium'),
        sa.Column('urgency', sa.String(length=16), nullable=False, server_default='within_week'),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='draft'),
        sa.Column('estimated_labor_hours', sa.Numeric(8, 2)),
        sa.Column('estimated_labor_rate', sa.Numeric(12, 2)),
        sa.Column('estimated_labor_cost', sa.Numeric(12, 2)),
        sa.Column('estimated_parts_cost', sa.Numeric(12, 2)),
        sa.Column('estimated_total_cost', sa.Numeric(12, 2)),
        sa.Column('actual_total_cost', sa.Numeric(12, 2)),
        sa.Column('completion_notes', sa.Text()),
        sa.Column('requested_completion_date', sa.Date()),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP')),
        _updated_at(),
        sa.Column('submitted_at', sa.DateTime(timezone=True)),
        sa.Column('approved_at', sa.DateTime(timezone=True)),
        sa.Column('work_started_at', sa.DateTime(timezone=True)),
        sa.Column('completed_at', sa.DateTime(timezone=True)),
        sa.Column('version', sa.Integer(), nullable=False, server_default=sa.text('1')),
    )
    op.create_index('ix_service_tickets_ticket_number', 'service_tickets', ['ticket_number'])
    op.create_index('ix_service_tickets_subsidiary_id', 'service_tickets', ['subsidiary_id'])
    op.create_index('ix_service_tickets_vehicle_id', 'service_tickets', ['vehicle_id'])
    op.create_index('ix_service_tickets_status', 'service_tickets', ['status'])
    op.create_index('ix_service_tickets_priority', 'service_tickets', ['priority'])
    op.create_index('ix_service_tickets_submitted_at', 'service_tickets', ['submitted_at'])

    op.create_table('service_ticket_parts',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('ticket_id', sa.Integer(), sa.ForeignKey('service_tickets.id', ondelete='CASCADE'), nullable=False),
        sa.Column('description', sa.String(length=200), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False, server_default=sa.text('1')),
        sa.Column('estimated_unit_cost', sa.Numeric(12, 2), nullable=False, server_default=sa.text('0')),
    )
    op.create_index('ix_service_ticket_parts_ticket_id', 'service_ticket_parts', ['ticket_id'])

    op.create_table('service_ticket_approvals',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('ticket_id', sa.Integer(), sa.ForeignKey('service_tickets.id'), nullable=False),
        sa.Column('approver_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('subsidiary_id', sa.Integer(), sa.ForeignKey('subsidiaries.id'), nullable=False),
        sa.Column('action', sa.String(length=32), nullable=False),
        sa.Column('comments', sa.Text()),
        sa.Column('modifications', sa.Text()),
        sa.Column('modified_labor_cost_limit', sa.Numeric(12, 2)),
        sa.Column('modified_parts_cost_limit', sa.Numeric(12, 2)),
        sa.Column('modified_total_cost_limit', sa.Numeric(12, 2)),
        sa.Column('modified_completion_date', sa.Date()),
        sa.Column('modified_vendor_id', sa.Integer(), sa.ForeignKey('vendors.id'), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP')),
    )
    op.create_index('ix_service_ticket_approvals_ticket_id', 'service_ticket_approvals', ['ticket_id'])
    op.create_index('ix_service_ticket_approvals_approver_id', 'service_ticket_approvals', ['approver_id'])
    op.create_index('ix_service_ticket_approvals_subsidiary_id', 'service_ticket_approvals', ['subsidiary_id'])

    op.create_table('audit_logs',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('actor_user_id', sa.Integer(), nullable=False),
        sa.Column('subsidiary_id', sa.Integer(), nullable=True),
        sa.Column('action', sa.String(length=64), nullable=False),
        sa.Column('entity', sa.String(length=64)),
        sa.Column('entity_id', sa.String(length=64)),
        sa.Column('perms_snapshot', sa.JSON(), nullable=True),
        sa.Column('meta', sa.JSON(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'))
    )
    op.create_index('ix_audit_actor', 'audit_logs', ['actor_user_id'])
    op.create_index('ix_audit_action', 'audit_logs', ['action'])
    op.create_index('ix_audit_subsidiary', 'audit_logs', ['subsidiary_id'])


def downgrade():
    for tbl in ['audit_logs', 'service_ticket_approvals', 'service_ticket_parts', 'service_tickets', 'vendors',
                'vehicles', 'subsidiaries', 'user_roles', 'user_groups', 'group_roles', 'role_permissions',
                'users', 'groups', 'roles', 'permissions']:
        op.drop_table(tbl)
