"""purchase_request_workflow

Revision ID: 4b7e2c91d0a3
Revises:
Create Date: 2026-10-18 09:12:41.338201

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = '4b7e2c91d0a3'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _id() -> sa.Column:
    return sa.Column('id', postgresql.UUID(as_uuid=True), server_default=sa.text('gen_random_uuid()'), nullable=False)


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
    ]


def upgrade() -> None:
    op.create_table(
        'users',
        _id(),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('role', sa.String(50), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('deleted_at', sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id', name='pk_users'),
    )
    op.create_index('ix_users_email', 'users', ['email'], unique=True)

    op.create_table(
        'approval_rules',
        _id(),
        sa.Column('entity_type', sa.String(50), nullable=False),
        sa.Column('amount_min', sa.Numeric(12, 2), nullable=False),
        sa.Column('amount_max', sa.Numeric(12, 2), nullable=True),
        sa.Column('currency', sa.String(3), nullable=False),
        sa.Column('level', sa.Integer(), nullable=False),
        sa.Column('approver_role', sa.String(50), nullable=True),
        sa.Column('specific_approver_id', postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        *_timestamps(),
        sa.CheckConstraint('level >= 1', name='ck_approval_rules_level_positive'),
        sa.ForeignKeyConstraint(['specific_approver_id'], ['users.id'], name='fk_approval_rules_specific_approver_id_users'),
        sa.PrimaryKeyConstraint('id', name='pk_approval_rules'),
    )
    op.create_index('ix_approval_rules_entity_amount', 'approval_rules', ['entity_type', 'amount_min', 'amount_max'])
    op.create_index('ix_approval_rules_level', 'approval_rules', ['level'])

    op.create_table(
        'purchase_orders',
        _id(),
        sa.Column('order_number', sa.String(50), nullable=False),
        sa.Column('pr_id', postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column('supplier_id', postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column('order_date', sa.Date(), nullable=False),
        sa.Column('expected_delivery_date', sa.Date(), nullable=True),
        sa.Column('status', sa.String(20), nullable=False),
        sa.Column('payment_terms', sa.Integer(), nullable=False),
        sa.Column('currency', sa.String(3), nullable=False),
        sa.Column('subtotal', sa.Numeric(12, 2), nullable=False),
        sa.Column('tax_amount', sa.Numeric(12, 2), nullable=False),
        sa.Column('total_amount', sa.Numeric(12, 2), nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('created_by', postgresql.UUID(as_uuid=True), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(['created_by'], ['users.id'], name='fk_purchase_orders_created_by_users'),
        sa.PrimaryKeyConstraint('id', name='pk_purchase_orders'),
    )
    op.create_index('ix_purchase_orders_order_number', 'purchase_orders', ['order_number'], unique=True)
    op.create_index('ix_purchase_orders_pr_id', 'purchase_orders', ['pr_id'])
    op.create_index('ix_purchase_orders_supplier_id', 'purchase_orders', ['supplier_id'])

    op.create_table(
        'purchase_order_items',
        _id(),
        sa.Column('order_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('line_number', sa.Integer(), nullable=False),
        sa.Column('product_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('unit_price', sa.Numeric(10, 2), nullable=False),
        sa.Column('total_price', sa.Numeric(12, 2), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(['order_id'], ['purchase_orders.id'], name='fk_purchase_order_items_order_id_purchase_orders', ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id', name='pk_purchase_order_items'),
    )
    op.create_index('ix_purchase_order_items_order_id', 'purchase_order_items', ['order_id'])

    op.create_table(
        'purchase_requests',
        _id(),
        sa.Column('pr_number', sa.String(50), nullable=False),
        sa.Column('requester_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('supplier_id', postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column('total_amount', sa.Numeric(12, 2), nullable=False),
        sa.Column('currency', sa.String(3), nullable=False),
        sa.Column('status', sa.String(20), nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('submitted_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('approved_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('converted_to_po', postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column('version', sa.Integer(), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(['requester_id'], ['users.id'], name='fk_purchase_requests_requester_id_users'),
        sa.ForeignKeyConstraint(['converted_to_po'], ['purchase_orders.id'], name='fk_purchase_requests_converted_to_po_purchase_orders'),
        sa.PrimaryKeyConstraint('id', name='pk_purchase_requests'),
    )
    op.create_index('ix_purchase_requests_pr_number', 'purchase_requests', ['pr_number'], unique=True)
    op.create_index('ix_purchase_requests_requester_id', 'purchase_requests', ['requester_id'])
    op.create_index('ix_purchase_requests_status', 'purchase_requests', ['status'])

    op.create_table(
        'purchase_request_items',
        _id(),
        sa.Column('pr_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('product_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('unit_price', sa.Numeric(10, 2), nullable=False),
        sa.Column('line_total', sa.Numeric(12, 2), nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(['pr_id'], ['purchase_requests.id'], name='fk_purchase_request_items_pr_id_purchase_requests', ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id', name='pk_purchase_request_items'),
    )
    op.create_index('ix_purchase_request_items_pr_id', 'purchase_request_items', ['pr_id'])

    op.create_table(
        'purchase_request_approvals',
        _id(),
        sa.Column('pr_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('rule_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('level', sa.Integer(), nullable=False),
        sa.Column('approver_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('status', sa.String(20), nullable=False),
        sa.Column('decided_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('comment', sa.Text(), nullable=True),
        sa.Column('notified_at', sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(['pr_id'], ['purchase_requests.id'], name='fk_purchase_request_approvals_pr_id_purchase_requests', ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['rule_id'], ['approval_rules.id'], name='fk_purchase_request_approvals_rule_id_approval_rules'),
        sa.ForeignKeyConstraint(['approver_id'], ['users.id'], name='fk_purchase_request_approvals_approver_id_users'),
        sa.PrimaryKeyConstraint('id', name='pk_purchase_request_approvals'),
        sa.UniqueConstraint('pr_id', 'rule_id', name='uq_pr_approvals_pr_rule'),
    )
    op.create_index('ix_purchase_request_approvals_pr_id', 'purchase_request_approvals', ['pr_id'])
    op.create_index('ix_pr_approvals_approver_status', 'purchase_request_approvals', ['approver_id', 'status'])
    op.create_index('ix_pr_approvals_pr_level', 'purchase_request_approvals', ['pr_id', 'level'])

    op.create_table(
        'notifications',
        _id(),
        sa.Column('user_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('type', sa.String(50), nullable=False),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('message', sa.Text(), nullable=True),
        sa.Column('entity_type', sa.String(50), nullable=True),
        sa.Column('entity_id', postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column('is_read', sa.Boolean(), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], name='fk_notifications_user_id_users'),
        sa.PrimaryKeyConstraint('id', name='pk_notifications'),
    )
    op.create_index('ix_notifications_user_unread', 'notifications', ['user_id', 'is_read'])
    op.create_index('ix_notifications_entity', 'notifications', ['entity_type', 'entity_id'])

    op.create_table(
        'audit_logs',
        _id(),
        sa.Column('actor_id', postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column('action', sa.String(100), nullable=False),
        sa.Column('entity_type', sa.String(100), nullable=False),
        sa.Column('entity_id', postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column('before_state', sa.Text(), nullable=True),
        sa.Column('after_state', sa.Text(), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(['actor_id'], ['users.id'], name='fk_audit_logs_actor_id_users'),
        sa.PrimaryKeyConstraint('id', name='pk_audit_logs'),
    )
    op.create_index('ix_audit_logs_action', 'audit_logs', ['action'])
    op.create_index('ix_audit_logs_entity_type', 'audit_logs', ['entity_type'])
    op.create_index('ix_audit_logs_entity_id', 'audit_logs', ['entity_id'])


def downgrade() -> None:
    op.drop_table('audit_logs')
    op.drop_table('notifications')
    op.drop_table('purchase_request_approvals')
    op.drop_table('purchase_request_items')
    op.drop_table('purchase_requests')
    op.drop_table('purchase_order_items')
    op.drop_table('purchase_orders')
    op.drop_table('approval_rules')
    op.drop_table('users')
