"""Initial migration

Revision ID: 001
Revises: 
Create Date: 2026-10-19 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Create organizations table
    op.create_table(
        'organizations',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('is_active', sa.Boolean(), default=True),
        sa.Column('created_at', sa.DateTime(), default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), default=sa.func.now(), onupdate=sa.func.now()),
    )

    # Create contacts table
    op.create_table(
        'contacts',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('org_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('organizations.id'), nullable=False),
        sa.Column('first_name', sa.String(255)),
        sa.Column('last_name', sa.String(255)),
        sa.Column('phone', sa.String(32)),
        sa.Column('email', sa.String(255)),
        sa.Column('notes', sa.Text()),
        sa.Column('created_at', sa.DateTime(), default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), default=sa.func.now(), onupdate=sa.func.now()),
    )

    # Create provider_settings table
    op.create_table(
        'provider_settings',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('org_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('organizations.id'), nullable=False),
        sa.Column('api_key', sa.String(255), nullable=False),
        sa.Column('api_token', sa.String(255), nullable=False),
        sa.Column('subdomain', sa.String(255), default='api.exotel.com'),
        sa.Column('account_sid', sa.String(255), nullable=False),
        sa.Column('caller_id', sa.String(32)),
        sa.Column('call_recording_enabled', sa.Boolean(), default=True),
        sa.Column('is_active', sa.Boolean(), default=True),
        sa.Column('last_sync_at', sa.DateTime()),
        sa.Column('last_error', sa.Text()),
        sa.Column('created_at', sa.DateTime(), default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), default=sa.func.now(), onupdate=sa.func.now()),
    )

    # Create call_records table
    op.create_table(
        'call_records',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('org_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('organizations.id'), nullable=False),
        sa.Column('contact_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('contacts.id')),
        sa.Column('agent_id', postgresql.UUID(as_uuid=True)),
        sa.Column('provider_call_id', sa.String(64), unique=True, nullable=False),
        sa.Column('conversation_id', sa.String(64)),
        sa.Column('direction', sa.String(20), default='outbound'),
        sa.Column('from_number', sa.String(32)),
        sa.Column('to_number', sa.String(32)),
        sa.Column('status', sa.String(20), default='unknown'),
        sa.Column('started_at', sa.DateTime()),
        sa.Column('answered_at', sa.DateTime()),
        sa.Column('ended_at', sa.DateTime()),
        sa.Column('call_duration_sec', sa.Integer()),
        sa.Column('conversation_duration_sec', sa.Integer()),
        sa.Column('ring_duration_sec', sa.Integer()),
        sa.Column('recording_url', sa.String(1000)),
        sa.Column('recording_duration_sec', sa.Integer()),
        sa.Column('raw_provider_payload', postgresql.JSON(), default={}),
        sa.Column('last_source', sa.String(20)),
        sa.Column('activity_id', postgresql.UUID(as_uuid=True)),
        sa.Column('created_at', sa.DateTime(), default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), default=sa.func.now(), onupdate=sa.func.now()),
    )

    # Create agent_call_sessions table
    op.create_table(
        'agent_call_sessions',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('org_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('organizations.id'), nullable=False),
        sa.Column('agent_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('contact_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('contacts.id')),
        sa.Column('provider_call_id', sa.String(64), unique=True, nullable=False),
        sa.Column('status', sa.String(20), default='initiating'),
        sa.Column('started_at', sa.DateTime()),
        sa.Column('ended_at', sa.DateTime()),
        sa.Column('created_at', sa.DateTime(), default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), default=sa.func.now(), onupdate=sa.func.now()),
    )

    # Create contact_activities table
    op.create_table(
        'contact_activities',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('org_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('organizations.id'), nullable=False),
        sa.Column('contact_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('contacts.id')),
        sa.Column('call_record_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('call_records.id'), unique=True, nullable=False),
        sa.Column('activity_type', sa.String(50), default='call'),
        sa.Column('subject', sa.String(255)),
        sa.Column('description', sa.Text()),
        sa.Column('created_by', postgresql.UUID(as_uuid=True)),
        sa.Column('completed_at', sa.DateTime()),
        sa.Column('call_duration_sec', sa.Integer()),
        sa.Column('created_at', sa.DateTime(), default=sa.func.now()),
    )

    # Create indexes
    op.create_index('ix_contacts_org_id', 'contacts', ['org_id'])
    op.create_index('ix_contacts_phone', 'contacts', ['phone'])
    op.create_index('ix_provider_settings_org_id', 'provider_settings', ['org_id'])
    op.create_index('ix_provider_settings_account_sid', 'provider_settings', ['account_sid'])
    op.create_index('ix_call_records_org_id', 'call_records', ['org_id'])
    op.create_index('ix_call_records_started_at', 'call_records', ['started_at'])
    op.create_index('ix_agent_call_sessions_agent_id', 'agent_call_sessions', ['agent_id'])


def downgrade() -> None:
    op.drop_table('contact_activities')
    op.drop_table('agent_call_sessions')
    op.drop_table('call_records')
    op.drop_table('provider_settings')
    op.drop_table('contacts')
    op.drop_table('organizations')
