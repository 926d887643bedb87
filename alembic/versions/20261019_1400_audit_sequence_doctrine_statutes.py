"""Audit chain sequence, dashboard requester, doctrine, statutes and approvals

Revision ID: 20261019_1400_audit_sequence_doctrine_statutes
Revises: 20261019_0900_initial_nexus_schema
Create Date: 2026-10-19 14:00:00.000000

This migration:
- numbers audit_logs entries per entity (backfilled in logged_at order)
  and makes (entity_type, entity_id, sequence_number) unique
- records the requesting firm on generated_dashboards
- creates doctrine_rules, doctrine_approvals, doctrine_version_events and
  doctrine_impact_metrics
- creates statute_overrides
- creates approval_requirements and approvals
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers
revision = '20261019_1400_audit_sequence_doctrine_statutes'
down_revision = '20261019_0900_initial_nexus_schema'
branch_labels = None
depends_on = None


def _timestamps():
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    ]


def _org_fk():
    return sa.Column(
        'organization_id', sa.Uuid(),
        sa.ForeignKey('organizations.id', ondelete='CASCADE'),
        nullable=False,
    )


def _rule_fk():
    return sa.Column(
        'rule_id', sa.Uuid(),
        sa.ForeignKey('doctrine_rules.id', ondelete='CASCADE'),
        nullable=False,
    )


def upgrade() -> None:
    """Add audit sequencing and the doctrine, statute and approval tables."""

    # Audit chain sequence
    op.add_column('audit_logs', sa.Column('sequence_number', sa.Integer(), nullable=True))
    op.execute(
        """
        UPDATE audit_logs SET sequence_number = numbered.seq
        FROM (
            SELECT id, ROW_NUMBER() OVER (
                PARTITION BY entity_type, entity_id ORDER BY logged_at, id
            ) AS seq
            FROM audit_logs
        ) AS numbered
        WHERE audit_logs.id = numbered.id
        """
    )
    op.alter_column('audit_logs', 'sequence_number', nullable=False)
    op.create_unique_constraint(
        'uq_audit_entity_sequence',
        'audit_logs',
        ['entity_type', 'entity_id', 'sequence_number'],
    )

    # Dashboard requester
    op.add_column(
        'generated_dashboards',
        sa.Column(
            'requested_by_organization_id', sa.Uuid(),
            sa.ForeignKey('organizations.id', ondelete='SET NULL'),
            nullable=True,
        ),
    )
    op.create_index(
        'ix_generated_dashboards_requested_by_organization_id',
        'generated_dashboards',
        ['requested_by_organization_id'],
    )

    # Doctrine rules
    op.create_table(
        'doctrine_rules',
        sa.Column('id', sa.Uuid(), primary_key=True),
        _org_fk(),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('state', sa.String(2), nullable=True),
        sa.Column('tax_type', sa.String(50), nullable=True),
        sa.Column('activity_pattern', postgresql.JSONB(), nullable=True),
        sa.Column('posture', sa.String(50), nullable=True),
        sa.Column('decision', sa.String(50), nullable=True),
        sa.Column('scope', sa.String(20), nullable=False),
        sa.Column(
            'client_id', sa.Uuid(),
            sa.ForeignKey('clients.id', ondelete='CASCADE'),
            nullable=True,
        ),
        sa.Column('office_id', sa.String(100), nullable=True),
        sa.Column('status', sa.String(20), nullable=False, server_default='draft'),
        sa.Column('version', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('rationale_internal', sa.Text(), nullable=True),
        sa.Column('review_due_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_by', sa.Uuid(), nullable=True),
        *_timestamps(),
    )
    op.create_index('ix_doctrine_rules_organization_id', 'doctrine_rules', ['organization_id'])
    op.create_index('ix_doctrine_rules_state', 'doctrine_rules', ['state'])
    op.create_index('ix_doctrine_rules_client_id', 'doctrine_rules', ['client_id'])

    op.create_table(
        'doctrine_approvals',
        sa.Column('id', sa.Uuid(), primary_key=True),
        _rule_fk(),
        sa.Column('approver_id', sa.Uuid(), nullable=False),
        sa.Column('approver_role', sa.String(50), nullable=False),
        sa.Column('action', sa.String(20), nullable=False),
        sa.Column('comment', sa.Text(), nullable=True),
        sa.Column('approved_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        *_timestamps(),
    )
    op.create_index('ix_doctrine_approvals_rule_id', 'doctrine_approvals', ['rule_id'])

    op.create_table(
        'doctrine_version_events',
        sa.Column('id', sa.Uuid(), primary_key=True),
        _rule_fk(),
        sa.Column('sequence_number', sa.Integer(), nullable=False),
        sa.Column('from_version', sa.Integer(), nullable=True),
        sa.Column('to_version', sa.Integer(), nullable=False),
        sa.Column('action_type', sa.String(20), nullable=False),
        sa.Column('actor_id', sa.Uuid(), nullable=True),
        sa.Column('reason', sa.Text(), nullable=True),
        sa.Column('previous_snapshot', postgresql.JSONB(), nullable=True),
        sa.Column('new_snapshot', postgresql.JSONB(), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint('rule_id', 'sequence_number', name='uq_doctrine_event_sequence'),
    )
    op.create_index('ix_doctrine_version_events_rule_id', 'doctrine_version_events', ['rule_id'])

    op.create_table(
        'doctrine_impact_metrics',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column(
            'rule_id', sa.Uuid(),
            sa.ForeignKey('doctrine_rules.id', ondelete='CASCADE'),
            nullable=False,
            unique=True,
        ),
        sa.Column('total_clients_affected', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('total_memos_generated', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('total_revenue_covered', sa.Numeric(15, 2), nullable=False, server_default='0'),
        sa.Column('last_applied_at', sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )

    # Statute overrides
    op.create_table(
        'statute_overrides',
        sa.Column('id', sa.Uuid(), primary_key=True),
        _org_fk(),
        sa.Column('state_code', sa.String(2), nullable=False),
        sa.Column('tax_type', sa.String(50), nullable=False),
        sa.Column('change_type', sa.String(50), nullable=False),
        sa.Column('previous_value', sa.String(255), nullable=True),
        sa.Column('new_value', sa.String(255), nullable=True),
        sa.Column('effective_date', sa.Date(), nullable=False),
        sa.Column('source', sa.String(500), nullable=True),
        sa.Column('citation', sa.String(255), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('entered_by', sa.Uuid(), nullable=False),
        sa.Column('validation_status', sa.String(20), nullable=False, server_default='PENDING'),
        sa.Column('validated_by', sa.Uuid(), nullable=True),
        sa.Column('validated_at', sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )
    op.create_index('ix_statute_overrides_organization_id', 'statute_overrides', ['organization_id'])
    op.create_index('ix_statute_overrides_state_code', 'statute_overrides', ['state_code'])
    op.create_index('ix_statute_overrides_validation_status', 'statute_overrides', ['validation_status'])

    # Approvals
    op.create_table(
        'approval_requirements',
        sa.Column('id', sa.Uuid(), primary_key=True),
        _org_fk(),
        sa.Column('action_type', sa.String(100), nullable=False),
        sa.Column('required_role', sa.String(50), nullable=False),
        sa.Column('entity_type', sa.String(50), nullable=True),
        sa.Column('entity_id', sa.String(100), nullable=True),
        sa.Column('client_id', sa.Uuid(), nullable=True),
        *_timestamps(),
    )
    op.create_index('ix_approval_requirements_organization_id', 'approval_requirements', ['organization_id'])
    op.create_index('ix_approval_requirements_entity_id', 'approval_requirements', ['entity_id'])

    op.create_table(
        'approvals',
        sa.Column('id', sa.Uuid(), primary_key=True),
        _org_fk(),
        sa.Column(
            'requirement_id', sa.Uuid(),
            sa.ForeignKey('approval_requirements.id', ondelete='SET NULL'),
            nullable=True,
        ),
        sa.Column('entity_type', sa.String(50), nullable=False),
        sa.Column('entity_id', sa.String(100), nullable=False),
        sa.Column('approval_type', sa.String(100), nullable=False),
        sa.Column('required_role', sa.String(50), nullable=False),
        sa.Column('approved_by', sa.Uuid(), nullable=False),
        sa.Column('approved_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('approval_notes', sa.Text(), nullable=True),
        sa.Column('status', sa.String(20), nullable=False, server_default='APPROVED'),
        *_timestamps(),
    )
    op.create_index('ix_approvals_organization_id', 'approvals', ['organization_id'])
    op.create_index('ix_approvals_requirement_id', 'approvals', ['requirement_id'])
    op.create_index('ix_approvals_entity_id', 'approvals', ['entity_id'])


def downgrade() -> None:
    """Drop the doctrine, statute and approval tables and the audit sequence."""
    for table in (
        'approvals',
        'approval_requirements',
        'statute_overrides',
        'doctrine_impact_metrics',
        'doctrine_version_events',
        'doctrine_approvals',
        'doctrine_rules',
    ):
        op.drop_table(table)

    op.drop_index('ix_generated_dashboards_requested_by_organization_id', table_name='generated_dashboards')
    op.drop_column('generated_dashboards', 'requested_by_organization_id')

    op.drop_constraint('uq_audit_entity_sequence', 'audit_logs', type_='unique')
    op.drop_column('audit_logs', 'sequence_number')
