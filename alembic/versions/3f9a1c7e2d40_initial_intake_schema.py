"""Initial intake schema: leads, care_requests, pending_episodes, intake_forms, intakes

Revision ID: 3f9a1c7e2d40
Revises:
Create Date: 2026-09-14 10:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3f9a1c7e2d40'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps():
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    ]


def upgrade() -> None:
    op.create_table(
        'leads',
        sa.Column('id', sa.Text(), primary_key=True),
        sa.Column('name', sa.Text(), server_default=''),
        sa.Column('email', sa.Text(), nullable=True),
        sa.Column('phone', sa.Text(), nullable=True),
        sa.Column('origin_cta', sa.Text(), nullable=True),
        sa.Column('origin_page', sa.Text(), nullable=True),
        sa.Column('pillar_origin', sa.Text(), nullable=True),
        sa.Column('utm_source', sa.Text(), nullable=True),
        sa.Column('utm_medium', sa.Text(), nullable=True),
        sa.Column('utm_campaign', sa.Text(), nullable=True),
        sa.Column('utm_content', sa.Text(), nullable=True),
        sa.Column('funnel_stage', sa.Text(), server_default='new'),
        sa.Column('primary_concern', sa.Text(), nullable=True),
        sa.Column('symptom_summary', sa.Text(), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        *_timestamps(),
    )

    op.create_table(
        'care_requests',
        sa.Column('id', sa.Text(), primary_key=True),
        sa.Column('status', sa.Text(), nullable=False, server_default='SUBMITTED'),
        sa.Column('source', sa.Text(), server_default='WEBSITE'),
        sa.Column('intake_payload', sa.JSON(), nullable=True),
        sa.Column('primary_complaint', sa.Text(), nullable=True),
        sa.Column('assigned_clinician_id', sa.Text(), nullable=True),
        sa.Column('approved_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('episode_id', sa.Text(), nullable=True),
        *_timestamps(),
    )

    op.create_table(
        'pending_episodes',
        sa.Column('id', sa.Text(), primary_key=True),
        sa.Column('patient_name', sa.Text(), server_default=''),
        sa.Column('visit_type', sa.Text(), nullable=True),
        sa.Column('scheduled_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('status', sa.Text(), server_default='pending'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    op.create_table(
        'intake_forms',
        sa.Column('id', sa.Text(), primary_key=True),
        sa.Column('access_code', sa.Text(), nullable=True),
        sa.Column('patient_name', sa.Text(), server_default=''),
        sa.Column('email', sa.Text(), nullable=True),
        sa.Column('phone', sa.Text(), nullable=True),
        sa.Column('date_of_birth', sa.Text(), nullable=True),
        sa.Column('chief_complaint', sa.Text(), nullable=True),
        sa.Column('pain_level', sa.Integer(), nullable=True),
        sa.Column('details', sa.JSON(), nullable=True),
        sa.Column('status', sa.Text(), server_default='pending'),
        sa.Column('submitted_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('converted_to_episode_id', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    op.create_table(
        'intakes',
        sa.Column('id', sa.Text(), primary_key=True),
        sa.Column('lead_id', sa.Text(), nullable=True),
        sa.Column('patient_name', sa.Text(), server_default=''),
        sa.Column('email', sa.Text(), nullable=True),
        sa.Column('responses', sa.JSON(), nullable=True),
        sa.Column('status', sa.Text(), server_default='draft'),
        sa.Column('submitted_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('converted_to_episode_id', sa.Text(), nullable=True),
        *_timestamps(),
    )

    # -- Journey fetch filters/orderings --
    op.create_index('ix_leads_funnel_stage', 'leads', ['funnel_stage'])
    op.create_index('ix_care_requests_status', 'care_requests', ['status'])
    op.create_index('ix_pending_episodes_status', 'pending_episodes', ['status'])
    op.create_index('ix_intake_forms_email', 'intake_forms', ['email'])
    op.create_index('ix_intakes_lead_id', 'intakes', ['lead_id'])


def downgrade() -> None:
    op.drop_index('ix_intakes_lead_id', 'intakes')
    op.drop_index('ix_intake_forms_email', 'intake_forms')
    op.drop_index('ix_pending_episodes_status', 'pending_episodes')
    op.drop_index('ix_care_requests_status', 'care_requests')
    op.drop_index('ix_leads_funnel_stage', 'leads')
    op.drop_table('intakes')
    op.drop_table('intake_forms')
    op.drop_table('pending_episodes')
    op.drop_table('care_requests')
    op.drop_table('leads')
