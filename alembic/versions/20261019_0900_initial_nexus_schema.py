"""Initial nexus compliance schema

Revision ID: 20261019_0900_initial_nexus_schema
Revises:
Create Date: 2026-10-19 09:00:00.000000

This migration creates the tables for the nexus compliance platform:
- organizations, users: firms and their role-based accounts
- clients, client_states: client portfolio and per-state monitoring
- nexus_alerts, nexus_activities, alerts, tasks: compliance work items
- generated_dashboards: personalized dashboards addressed by unique URL
- nexus_memos, memo_hash_verifications: sealed memos and integrity checks
- audit_logs: hash-chained audit trail
- pii_detections: PII warning decisions per upload
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers
revision = '20261019_0900_initial_nexus_schema'
down_revision = None
branch_labels = None
depends_on = None


def _timestamps():
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    ]


def _org_fk(nullable: bool = False):
    return sa.Column(
        'organization_id', sa.Uuid(),
        sa.ForeignKey('organizations.id', ondelete='CASCADE'),
        nullable=nullable,
    )


def _client_fk(nullable: bool = False):
    return sa.Column(
        'client_id', sa.Uuid(),
        sa.ForeignKey('clients.id', ondelete='CASCADE'),
        nullable=nullable,
    )


def upgrade() -> None:
    """Create nexus compliance tables."""

    user_role = postgresql.ENUM(
        'MANAGING_PARTNER', 'TAX_MANAGER', 'STAFF_ACCOUNTANT', 'SYSTEM_ADMIN',
        name='userrole',
    )
    user_role.create(op.get_bind(), checkfirst=True)

    op.create_table(
        'organizations',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('slug', sa.String(255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('settings', postgresql.JSONB(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
    )
    op.create_index('ix_organizations_slug', 'organizations', ['slug'], unique=True)

    op.create_table(
        'users',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('hashed_password', sa.String(255), nullable=False),
        sa.Column('first_name', sa.String(100), nullable=False),
        sa.Column('last_name', sa.String(100), nullable=False),
        sa.Column('phone_number', sa.String(20), nullable=True),
        _org_fk(nullable=True),
        sa.Column('role', postgresql.ENUM(name='userrole', create_type=False), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('last_login', sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )
    op.create_index('ix_users_email', 'users', ['email'], unique=True)
    op.create_index('ix_users_organization_id', 'users', ['organization_id'])

    op.create_table(
        'clients',
        sa.Column('id', sa.Uuid(), primary_key=True),
        _org_fk(),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('legal_name', sa.String(255), nullable=True),
        sa.Column('industry', sa.String(100), nullable=True),
        sa.Column('annual_revenue', sa.Numeric(15, 2), nullable=True),
        sa.Column('risk_level', sa.String(20), nullable=False, server_default='medium'),
        sa.Column('penalty_exposure', sa.Numeric(15, 2), nullable=True, server_default='0'),
        sa.Column('quality_score', sa.Integer(), nullable=True),
        sa.Column('status', sa.String(20), nullable=False, server_default='active'),
        sa.Column('tags', postgresql.JSONB(), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('contact_name', sa.String(200), nullable=True),
        sa.Column('contact_email', sa.String(255), nullable=True),
        sa.Column('contact_phone', sa.String(30), nullable=True),
        *_timestamps(),
    )
    op.create_index('ix_clients_organization_id', 'clients', ['organization_id'])

    op.create_table(
        'client_states',
        sa.Column('id', sa.Uuid(), primary_key=True),
        _client_fk(),
        _org_fk(),
        sa.Column('state_code', sa.String(2), nullable=False),
        sa.Column('state_name', sa.String(100), nullable=False),
        sa.Column('status', sa.String(20), nullable=False, server_default='monitoring'),
        sa.Column('threshold_amount', sa.Numeric(15, 2), nullable=True),
        sa.Column('current_amount', sa.Numeric(15, 2), nullable=True),
        sa.Column('registration_required', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('penalty_risk', sa.Numeric(15, 2), nullable=True),
        sa.Column('notes', sa.String(255), nullable=True),
        sa.Column('last_updated', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        *_timestamps(),
    )
    op.create_index('ix_client_states_client_id', 'client_states', ['client_id'])
    op.create_index('ix_client_states_organization_id', 'client_states', ['organization_id'])
    op.create_index('ix_client_states_state_code', 'client_states', ['state_code'])

    op.create_table(
        'nexus_alerts',
        sa.Column('id', sa.Uuid(), primary_key=True),
        _client_fk(),
        _org_fk(),
        sa.Column('state_code', sa.String(2), nullable=True),
        sa.Column('alert_type', sa.String(50), nullable=False),
        sa.Column('priority', sa.String(20), nullable=False, server_default='medium'),
        sa.Column('status', sa.String(20), nullable=False, server_default='open'),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('threshold_amount', sa.Numeric(15, 2), nullable=True),
        sa.Column('current_amount', sa.Numeric(15, 2), nullable=True),
        sa.Column('penalty_risk', sa.Numeric(15, 2), nullable=True),
        sa.Column('deadline', sa.DateTime(timezone=True), nullable=True),
        sa.Column('resolved_at', sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )
    op.create_index('ix_nexus_alerts_client_id', 'nexus_alerts', ['client_id'])
    op.create_index('ix_nexus_alerts_organization_id', 'nexus_alerts', ['organization_id'])
    op.create_index('ix_nexus_alerts_state_code', 'nexus_alerts', ['state_code'])

    op.create_table(
        'nexus_activities',
        sa.Column('id', sa.Uuid(), primary_key=True),
        _client_fk(),
        _org_fk(),
        sa.Column('state_code', sa.String(2), nullable=True),
        sa.Column('activity_type', sa.String(50), nullable=False),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('amount', sa.Numeric(15, 2), nullable=True),
        sa.Column('threshold_amount', sa.Numeric(15, 2), nullable=True),
        sa.Column('status', sa.String(20), nullable=False, server_default='completed'),
        *_timestamps(),
    )
    op.create_index('ix_nexus_activities_client_id', 'nexus_activities', ['client_id'])
    op.create_index('ix_nexus_activities_organization_id', 'nexus_activities', ['organization_id'])

    op.create_table(
        'alerts',
        sa.Column('id', sa.Uuid(), primary_key=True),
        _client_fk(),
        _org_fk(),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('issue', sa.String(255), nullable=True),
        sa.Column('type', sa.String(50), nullable=False, server_default='compliance'),
        sa.Column('priority', sa.String(20), nullable=False, server_default='medium'),
        sa.Column('status', sa.String(20), nullable=False, server_default='new'),
        sa.Column('state_code', sa.String(2), nullable=True),
        sa.Column('current_amount', sa.Numeric(15, 2), nullable=True),
        sa.Column('threshold_amount', sa.Numeric(15, 2), nullable=True),
        sa.Column('penalty_risk', sa.Numeric(15, 2), nullable=True),
        sa.Column('deadline', sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )
    op.create_index('ix_alerts_client_id', 'alerts', ['client_id'])
    op.create_index('ix_alerts_organization_id', 'alerts', ['organization_id'])

    op.create_table(
        'tasks',
        sa.Column('id', sa.Uuid(), primary_key=True),
        _client_fk(nullable=True),
        _org_fk(),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('category', sa.String(50), nullable=False, server_default='compliance'),
        sa.Column('priority', sa.String(20), nullable=False, server_default='medium'),
        sa.Column('status', sa.String(20), nullable=False, server_default='pending'),
        sa.Column('due_date', sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )
    op.create_index('ix_tasks_client_id', 'tasks', ['client_id'])
    op.create_index('ix_tasks_organization_id', 'tasks', ['organization_id'])

    op.create_table(
        'generated_dashboards',
        sa.Column('id', sa.Uuid(), primary_key=True),
        _org_fk(),
        sa.Column('client_name', sa.String(255), nullable=False),
        sa.Column('unique_url', sa.String(255), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('client_info', postgresql.JSONB(), nullable=True),
        sa.Column('key_metrics', postgresql.JSONB(), nullable=True),
        sa.Column('states_monitored', postgresql.JSONB(), nullable=True),
        sa.Column('personalized_data', postgresql.JSONB(), nullable=True),
        sa.Column('generated_clients', postgresql.JSONB(), nullable=True),
        sa.Column('generated_alerts', postgresql.JSONB(), nullable=True),
        sa.Column('generated_tasks', postgresql.JSONB(), nullable=True),
        sa.Column('generated_analytics', postgresql.JSONB(), nullable=True),
        sa.Column('generated_system_health', postgresql.JSONB(), nullable=True),
        sa.Column('generated_nexus_alerts', postgresql.JSONB(), nullable=True),
        sa.Column('generated_nexus_activities', postgresql.JSONB(), nullable=True),
        sa.Column('generated_client_states', postgresql.JSONB(), nullable=True),
        sa.Column('last_updated', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        *_timestamps(),
    )
    op.create_index('ix_generated_dashboards_organization_id', 'generated_dashboards', ['organization_id'])
    op.create_index('ix_generated_dashboards_unique_url', 'generated_dashboards', ['unique_url'], unique=True)

    op.create_table(
        'nexus_memos',
        sa.Column('id', sa.Uuid(), primary_key=True),
        _org_fk(),
        sa.Column('client_id', sa.Uuid(), nullable=False),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('memo_type', sa.String(20), nullable=False, server_default='INITIAL'),
        sa.Column('status', sa.String(20), nullable=False, server_default='DRAFT'),
        sa.Column('sections', postgresql.JSONB(), nullable=False),
        sa.Column('conclusion', sa.Text(), nullable=True),
        sa.Column('recommendations', postgresql.JSONB(), nullable=True),
        sa.Column('attestation', postgresql.JSONB(), nullable=True),
        sa.Column('statute_versions', postgresql.JSONB(), nullable=True),
        sa.Column('is_sealed', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('is_editable', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('sealed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('sealed_by', sa.Uuid(), nullable=True),
        sa.Column('document_hash', sa.String(64), nullable=True),
        sa.Column('content_hash', sa.String(64), nullable=True),
        sa.Column('pdf_hash', sa.String(64), nullable=True),
        sa.Column('is_supplemental', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column(
            'supersedes_memo_id', sa.Uuid(),
            sa.ForeignKey('nexus_memos.id', ondelete='SET NULL'),
            nullable=True,
        ),
        sa.Column('created_by', sa.Uuid(), nullable=True),
        *_timestamps(),
    )
    op.create_index('ix_nexus_memos_organization_id', 'nexus_memos', ['organization_id'])
    op.create_index('ix_nexus_memos_client_id', 'nexus_memos', ['client_id'])

    op.create_table(
        'memo_hash_verifications',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column(
            'memo_id', sa.Uuid(),
            sa.ForeignKey('nexus_memos.id', ondelete='CASCADE'),
            nullable=False,
        ),
        sa.Column('verification_type', sa.String(20), nullable=False),
        sa.Column('verified_by', sa.Uuid(), nullable=True),
        sa.Column('verification_result', sa.String(20), nullable=False),
        sa.Column('computed_hash', sa.String(64), nullable=True),
        sa.Column('stored_hash', sa.String(64), nullable=True),
        sa.Column('details', postgresql.JSONB(), nullable=True),
        sa.Column('verified_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        *_timestamps(),
    )
    op.create_index('ix_memo_hash_verifications_memo_id', 'memo_hash_verifications', ['memo_id'])

    op.create_table(
        'audit_logs',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('organization_id', sa.Uuid(), nullable=True),
        sa.Column('user_id', sa.Uuid(), nullable=True),
        sa.Column('action', sa.String(100), nullable=False),
        sa.Column('entity_type', sa.String(100), nullable=False),
        sa.Column('entity_id', sa.String(100), nullable=False),
        sa.Column('details', postgresql.JSONB(), nullable=True),
        sa.Column('ip_address', sa.String(45), nullable=True),
        sa.Column('user_agent', sa.Text(), nullable=True),
        sa.Column('logged_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('action_hash', sa.String(64), nullable=False),
        sa.Column('previous_action_id', sa.Uuid(), nullable=True),
        *_timestamps(),
    )
    for column in ('organization_id', 'user_id', 'action', 'entity_type', 'entity_id', 'logged_at'):
        op.create_index(f'ix_audit_logs_{column}', 'audit_logs', [column])

    op.create_table(
        'pii_detections',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('upload_id', sa.String(100), nullable=False),
        sa.Column('organization_id', sa.Uuid(), nullable=True),
        sa.Column('user_id', sa.Uuid(), nullable=True),
        sa.Column('action', sa.String(20), nullable=False),
        sa.Column('pii_types', postgresql.JSONB(), nullable=True),
        sa.Column('pii_columns', postgresql.JSONB(), nullable=True),
        sa.Column('severity', sa.String(10), nullable=True),
        sa.Column('total_issues', sa.Integer(), nullable=False, server_default='0'),
        *_timestamps(),
    )
    op.create_index('ix_pii_detections_upload_id', 'pii_detections', ['upload_id'])
    op.create_index('ix_pii_detections_organization_id', 'pii_detections', ['organization_id'])


def downgrade() -> None:
    """Drop nexus compliance tables."""
    for table in (
        'pii_detections',
        'audit_logs',
        'memo_hash_verifications',
        'nexus_memos',
        'generated_dashboards',
        'tasks',
        'alerts',
        'nexus_activities',
        'nexus_alerts',
        'client_states',
        'clients',
        'users',
        'organizations',
    ):
        op.drop_table(table)

    postgresql.ENUM(name='userrole').drop(op.get_bind(), checkfirst=True)
