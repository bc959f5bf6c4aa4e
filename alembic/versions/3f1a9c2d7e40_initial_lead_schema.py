"""Initial schema: clinics, leads, lead_events

Revision ID: 3f1a9c2d7e40
Revises:
Create Date: 2026-03-02 10:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3f1a9c2d7e40'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        'clinics',
        sa.Column('id', sa.Text(), primary_key=True),
        sa.Column('name', sa.Text(), nullable=False),
        sa.Column('email', sa.Text(), nullable=False),
        sa.Column('phone', sa.Text(), nullable=True),
        sa.Column('city_coverage', sa.JSON(), nullable=True),
        sa.Column('active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    op.create_table(
        'leads',
        sa.Column('id', sa.Text(), primary_key=True),
        # Contact
        sa.Column('first_name', sa.Text(), nullable=False),
        sa.Column('last_name', sa.Text(), nullable=False),
        sa.Column('phone', sa.Text(), nullable=False),
        sa.Column('email', sa.Text(), nullable=False),
        sa.Column('city', sa.Text(), nullable=False),
        sa.Column('locale', sa.Text(), nullable=False, server_default='ro'),
        # Qualifiers
        sa.Column('age_range', sa.Text(), nullable=True),
        sa.Column('female_age_exact', sa.Integer(), nullable=True),
        sa.Column('male_age_exact', sa.Integer(), nullable=True),
        sa.Column('tried_ivf', sa.Text(), nullable=True),
        sa.Column('timeline', sa.Text(), nullable=True),
        sa.Column('urgency_level', sa.Text(), nullable=True),
        sa.Column('budget_range', sa.Text(), nullable=True),
        sa.Column('voucher_status', sa.Text(), nullable=True),
        sa.Column('primary_factor', sa.Text(), nullable=True),
        sa.Column('test_status', sa.Text(), nullable=True),
        sa.Column('has_recent_tests', sa.Boolean(), nullable=True),
        sa.Column('tests_list', sa.Text(), nullable=True),
        sa.Column('previous_clinics', sa.Text(), nullable=True),
        sa.Column('availability_windows', sa.Text(), nullable=True),
        sa.Column('best_contact_method', sa.Text(), nullable=True),
        sa.Column('message', sa.Text(), nullable=True),
        # Consent
        sa.Column('gdpr_consent', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('consent_to_share', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('consent_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('ip_hash', sa.Text(), nullable=True),
        sa.Column('user_agent', sa.Text(), nullable=True),
        # Computed
        sa.Column('intent_level', sa.Text(), nullable=False),
        sa.Column('lead_tier', sa.Text(), nullable=False, server_default='D'),
        sa.Column('tier_reason', sa.Text(), nullable=True),
        # Lifecycle
        sa.Column('status', sa.Text(), nullable=False, server_default='NEW'),
        sa.Column('operator_notes', sa.Text(), nullable=True),
        sa.Column('call_attempts', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('assigned_clinic_id', sa.Text(),
                  sa.ForeignKey('clinics.id', ondelete='SET NULL'), nullable=True),
        sa.Column('verified_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('assigned_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('sent_at', sa.DateTime(timezone=True), nullable=True),
        # Nurture
        sa.Column('nurture_stage', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('nurture_next_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('nurture_completed', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index('ix_leads_email', 'leads', ['email'])
    op.create_index('ix_leads_status', 'leads', ['status'])
    op.create_index('ix_leads_nurture_due', 'leads', ['nurture_completed', 'nurture_next_at'])

    op.create_table(
        'lead_events',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('lead_id', sa.Text(), sa.ForeignKey('leads.id', ondelete='CASCADE'), nullable=False),
        sa.Column('type', sa.Text(), nullable=False),
        sa.Column('payload', sa.JSON(), nullable=True),
        sa.Column('actor', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index('ix_lead_events_lead_id', 'lead_events', ['lead_id'])


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_index('ix_lead_events_lead_id', table_name='lead_events')
    op.drop_table('lead_events')
    op.drop_index('ix_leads_nurture_due', table_name='leads')
    op.drop_index('ix_leads_status', table_name='leads')
    op.drop_index('ix_leads_email', table_name='leads')
    op.drop_table('leads')
    op.drop_table('clinics')
