"""repair tickets and audit log

Revision ID: 0001_repair_tickets
Revises: 
Create Date: 2026-10-19
"""
from __future__ import annotations
from alembic import op
import sqlalchemy as sa

revision = '0001_repair_tickets'
down_revision = None
branch_labels = None
depends_on = None

def upgrade():
    op.create_table('repair_tickets',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('ticket_number', sa.String(length=32), nullable=False),
        sa.Column('customer_name', sa.String(length=120), nullable=False),
        sa.Column('customer_email', sa.String(length=255), nullable=True),
        sa.Column('customer_phone', sa.String(length=40), nullable=True),
        sa.Column('device_type', sa.String(length=80), nullable=False),
        sa.Column('device_brand', sa.String(length=80), nullable=False),
        sa.Column('device_model', sa.String(length=120), nullable=False),
        sa.Column('device_imei', sa.String(length=32), nullable=True),
        sa.Column('issue_description', sa.Text(), nullable=False),
        sa.Column('status', sa.String(length=32), nullable=False, server_default='received'),
        sa.Column('priority', sa.String(length=16), nullable=False, server_default='normal'),
        sa.Column('estimated_cost', sa.Numeric(10, 2), nullable=True),
        sa.Column('final_cost', sa.Numeric(10, 2), nullable=True),
        sa.Column('estimated_completion', sa.Date(), nullable=True),
        sa.Column('customer_notes', sa.Text(), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('created_by', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('deleted_at', sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index('ix_repair_tickets_ticket_number', 'repair_tickets', ['ticket_number'], unique=True)
    op.create_index('ix_repair_tickets_customer_name', 'repair_tickets', ['customer_name'])
    op.create_index('ix_repair_tickets_status', 'repair_tickets', ['status'])
    op.create_index('ix_repair_tickets_created_at', 'repair_tickets', ['created_at'])

    op.create_table('audit_logs',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('actor_user_id', sa.Integer(), nullable=False),
        sa.Column('action', sa.String(length=64), nullable=False),
        sa.Column('entity', sa.String(length=64), nullable=True),
        sa.Column('entity_id', sa.String(length=64), nullable=True),
        sa.Column('perms_snapshot', sa.JSON(), nullable=True),
        sa.Column('meta', sa.JSON(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP')),
    )
    op.create_index('ix_audit_logs_actor_user_id', 'audit_logs', ['actor_user_id'])
    op.create_index('ix_audit_logs_action', 'audit_logs', ['action'])


def downgrade():
    op.drop_index('ix_audit_logs_action', table_name='audit_logs')
    op.drop_index('ix_audit_logs_actor_user_id', table_name='audit_logs')
    op.drop_table('audit_logs')
    for ix in ('ix_repair_tickets_created_at', 'ix_repair_tickets_status', 'ix_repair_tickets_customer_name', 'ix_repair_tickets_ticket_number'):
        op.drop_index(ix, table_name='repair_tickets')
    op.drop_table('repair_tickets')
