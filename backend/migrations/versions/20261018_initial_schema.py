"""initial schema

Revision ID: ls0001_initial
Revises:
Create Date: 2026-10-18 00:00:00.000000

Creates the LabStock schema:
- users / session_tokens: accounts and bearer sessions
- department_permissions: per-department capability toggles
- inventory_items: per-department stock counters
- inventory_requests: staff requests and their review outcome
- audit_logs: append-only audit trail
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = 'ls0001_initial'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    # ============================================================================
    # users: accounts (never hard-deleted)
    # ============================================================================
    op.create_table(
        'users',
        sa.Column('id', sa.String(length=64), nullable=False),
        sa.Column('name', sa.String(length=120), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('password_hash', sa.String(length=255), nullable=False),
        sa.Column('role', sa.String(length=16), nullable=False),
        sa.Column('department', sa.String(length=64), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('version_id', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_users_email', 'users', ['email'], unique=True)
    op.create_index('ix_users_department', 'users', ['department'])
    op.create_index('ix_users_role_active', 'users', ['role', 'is_active'])

    # ============================================================================
    # session_tokens: hashed bearer sessions
    # ============================================================================
    op.create_table(
        'session_tokens',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.String(length=64), nullable=False),
        sa.Column('token_hash', sa.String(length=64), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('last_used_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('is_revoked', sa.Boolean(), nullable=False),
        sa.Column('revoked_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('revoked_reason', sa.String(length=255), nullable=True),
        sa.Column('user_agent', sa.String(length=512), nullable=True),
        sa.Column('ip_address', sa.String(length=45), nullable=True),
        sa.ForeignKeyConstraint(['user_id'], ['users.id']),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_session_tokens_user_id', 'session_tokens', ['user_id'])
    op.create_index('ix_session_tokens_token_hash', 'session_tokens', ['token_hash'], unique=True)

    # ============================================================================
    # department_permissions
    # ============================================================================
    op.create_table(
        'department_permissions',
        sa.Column('department', sa.String(length=64), nullable=False),
        sa.Column('can_request', sa.Boolean(), nullable=False),
        sa.Column('can_approve', sa.Boolean(), nullable=False),
        sa.Column('can_edit_inventory', sa.Boolean(), nullable=False),
        sa.PrimaryKeyConstraint('department'),
    )

    # ============================================================================
    # inventory_items
    # ============================================================================
    op.create_table(
        'inventory_items',
        sa.Column('id', sa.String(length=64), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('category', sa.String(length=120), nullable=False),
        sa.Column('department', sa.String(length=64), nullable=False),
        sa.Column('current_stock', sa.Integer(), nullable=False),
        sa.Column('min_stock', sa.Integer(), nullable=False),
        sa.Column('unit', sa.String(length=32), nullable=False),
        sa.Column('last_updated', sa.DateTime(timezone=True), nullable=False),
        sa.Column('version_id', sa.Integer(), nullable=False),
        sa.CheckConstraint('current_stock >= 0', name='ck_inventory_items_current_stock_nonneg'),
        sa.CheckConstraint('min_stock >= 0', name='ck_inventory_items_min_stock_nonneg'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_inventory_items_department', 'inventory_items', ['department'])
    op.create_index('ix_inventory_items_department_name', 'inventory_items', ['department', 'name'])

    # ============================================================================
    # inventory_requests: item_id is intentionally not a foreign key
    # ============================================================================
    op.create_table(
        'inventory_requests',
        sa.Column('id', sa.String(length=64), nullable=False),
        sa.Column('requester_id', sa.String(length=64), nullable=False),
        sa.Column('requester_name', sa.String(length=120), nullable=False),
        sa.Column('department', sa.String(length=64), nullable=False),
        sa.Column('item_id', sa.String(length=64), nullable=False),
        sa.Column('item_name', sa.String(length=255), nullable=False),
        sa.Column('unit', sa.String(length=32), nullable=False),
        sa.Column('requested_qty', sa.Integer(), nullable=False),
        sa.Column('approved_qty', sa.Integer(), nullable=True),
        sa.Column('status', sa.String(length=32), nullable=False),
        sa.Column('priority', sa.String(length=16), nullable=False),
        sa.Column('request_date', sa.DateTime(timezone=True), nullable=False),
        sa.Column('reviewed_by', sa.String(length=120), nullable=True),
        sa.Column('reviewed_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('review_note', sa.Text(), nullable=True),
        sa.Column('version_id', sa.Integer(), nullable=False),
        sa.CheckConstraint('requested_qty > 0', name='ck_inventory_requests_requested_qty_pos'),
        sa.CheckConstraint(
            'approved_qty IS NULL OR (approved_qty > 0 AND approved_qty <= requested_qty)',
            name='ck_inventory_requests_approved_qty_bounds',
        ),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_inventory_requests_department', 'inventory_requests', ['department'])
    op.create_index('ix_inventory_requests_item_id', 'inventory_requests', ['item_id'])
    op.create_index('ix_inventory_requests_status', 'inventory_requests', ['status'])
    op.create_index('ix_inventory_requests_requester', 'inventory_requests', ['requester_id'])

    # ============================================================================
    # audit_logs: append-only
    # ============================================================================
    op.create_table(
        'audit_logs',
        sa.Column('id', sa.String(length=64), nullable=False),
        sa.Column('actor_id', sa.String(length=64), nullable=False),
        sa.Column('actor_name', sa.String(length=120), nullable=False),
        sa.Column('action', sa.String(length=64), nullable=False),
        sa.Column('target', sa.String(length=64), nullable=False),
        sa.Column('details', sa.Text(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_audit_logs_action', 'audit_logs', ['action'])
    op.create_index('ix_audit_logs_created', 'audit_logs', ['created_at'])
    op.create_index('ix_audit_logs_actor', 'audit_logs', ['actor_id'])
    op.create_index('ix_audit_logs_target', 'audit_logs', ['target'])

    # ============================================================================
    # admin_roster: single-row counter bumped by every change to the admin set
    # ============================================================================
    roster = op.create_table(
        'admin_roster',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('revision', sa.Integer(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.bulk_insert(roster, [{'id': 1, 'revision': 0}])


def downgrade():
    op.drop_table('admin_roster')
    op.drop_table('audit_logs')
    op.drop_table('inventory_requests')
    op.drop_table('inventory_items')
    op.drop_table('department_permissions')
    op.drop_table('session_tokens')
    op.drop_table('users')
