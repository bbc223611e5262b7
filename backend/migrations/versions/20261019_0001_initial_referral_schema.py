"""Initial referral coordination schema

Revision ID: 5e2a9c41d7b0
Revises:
Create Date: 2026-10-19 00:01:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = '5e2a9c41d7b0'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Directory
    op.create_table('organization',
        sa.Column('organization_id', sa.String(length=32), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=True),
        sa.Column('state', sa.String(length=50), nullable=True),
        sa.Column('credit_balance', sa.Numeric(precision=12, scale=2), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('organization_id'),
    )

    op.create_table('branch',
        sa.Column('branch_id', sa.String(length=32), nullable=False),
        sa.Column('organization_id', sa.String(length=32), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('address', sa.String(length=500), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['organization_id'], ['organization.organization_id'], ),
        sa.PrimaryKeyConstraint('branch_id'),
    )

    op.create_table('department',
        sa.Column('department_id', sa.String(length=32), nullable=False),
        sa.Column('organization_id', sa.String(length=32), nullable=False),
        sa.Column('branch_id', sa.String(length=32), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['organization_id'], ['organization.organization_id'], ),
        sa.ForeignKeyConstraint(['branch_id'], ['branch.branch_id'], ),
        sa.PrimaryKeyConstraint('department_id'),
    )

    op.create_table('staff_user',
        sa.Column('user_id', sa.String(length=32), nullable=False),
        sa.Column('organization_id', sa.String(length=32), nullable=False),
        sa.Column('department_id', sa.String(length=32), nullable=True),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('display_name', sa.String(length=255), nullable=True),
        sa.Column('role', sa.String(length=50), nullable=False, server_default='staff'),
        sa.Column('password_hash', sa.String(length=255), nullable=True),
        sa.Column('status', sa.String(length=50), nullable=False, server_default='active'),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('last_login_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['organization_id'], ['organization.organization_id'], ),
        sa.ForeignKeyConstraint(['department_id'], ['department.department_id'], ),
        sa.PrimaryKeyConstraint('user_id'),
        sa.UniqueConstraint('email'),
    )

    # Referrals
    op.create_table('referral',
        sa.Column('referral_id', sa.String(length=32), nullable=False),
        sa.Column('sender_organization_id', sa.String(length=32), nullable=False),
        sa.Column('sender_user_id', sa.String(length=32), nullable=True),
        sa.Column('sender_json', postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column('patient_first_name', sa.String(length=100), nullable=True),
        sa.Column('patient_last_name', sa.String(length=100), nullable=True),
        sa.Column('patient_dob', sa.String(length=20), nullable=True),
        sa.Column('patient_gender', sa.String(length=20), nullable=True),
        sa.Column('address_of_care', sa.String(length=500), nullable=True),
        sa.Column('speciality_ids', postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column('additional_speciality', sa.String(length=255), nullable=True),
        sa.Column('additional_notes', sa.Text(), nullable=True),
        sa.Column('additional_patient_json', postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column('documents_json', postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column('primary_care_json', postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column('is_draft', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('payment_type', sa.String(length=20), nullable=False, server_default='free'),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.Column('sent_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['sender_organization_id'], ['organization.organization_id'], ),
        sa.ForeignKeyConstraint(['sender_user_id'], ['staff_user.user_id'], ),
        sa.PrimaryKeyConstraint('referral_id'),
    )
    op.create_index('ix_referral_sender_organization_id', 'referral', ['sender_organization_id'])

    op.create_table('referral_insurance',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('referral_id', sa.String(length=32), nullable=False),
        sa.Column('position', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('payer', sa.String(length=255), nullable=False),
        sa.Column('policy', sa.String(length=100), nullable=False),
        sa.Column('plan_group', sa.String(length=100), nullable=False),
        sa.Column('document', sa.String(length=1000), nullable=True),
        sa.ForeignKeyConstraint(['referral_id'], ['referral.referral_id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_referral_insurance_referral_id', 'referral_insurance', ['referral_id'])

    op.create_table('department_status',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('referral_id', sa.String(length=32), nullable=False),
        sa.Column('department_id', sa.String(length=32), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='pending'),
        sa.Column('payment_status', sa.String(length=20), nullable=False, server_default='not_paid'),
        sa.Column('is_paid_by_sender', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('rejection_reason', sa.Text(), nullable=True),
        sa.Column('version', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('department_name', sa.String(length=255), nullable=True),
        sa.Column('organization_id', sa.String(length=32), nullable=True),
        sa.Column('organization_name', sa.String(length=255), nullable=True),
        sa.Column('services_override', postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column('paid_by_user_id', sa.String(length=32), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['referral_id'], ['referral.referral_id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['department_id'], ['department.department_id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('referral_id', 'department_id', name='uq_department_status_referral_department'),
    )
    op.create_index('ix_department_status_referral_id', 'department_status', ['referral_id'])
    op.create_index('ix_department_status_department_id', 'department_status', ['department_id'])

    # Append-only activity log
    op.create_table('referral_activity',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('entry_id', sa.String(length=32), nullable=False),
        sa.Column('referral_id', sa.String(length=32), nullable=False),
        sa.Column('department_id', sa.String(length=32), nullable=True),
        sa.Column('at', sa.DateTime(), nullable=False),
        sa.Column('actor', sa.String(length=255), nullable=False),
        sa.Column('actor_user_id', sa.String(length=32), nullable=True),
        sa.Column('event_type', sa.String(length=50), nullable=False),
        sa.Column('message', sa.Text(), nullable=False),
        sa.Column('metadata_json', postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.ForeignKeyConstraint(['referral_id'], ['referral.referral_id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('entry_id'),
    )
    op.create_index('ix_referral_activity_referral_id', 'referral_activity', ['referral_id'])

    op.create_table('referral_chat_message',
        sa.Column('message_id', sa.String(length=32), nullable=False),
        sa.Column('referral_id', sa.String(length=32), nullable=False),
        sa.Column('department_id', sa.String(length=32), nullable=False),
        sa.Column('from_role', sa.String(length=20), nullable=False),
        sa.Column('from_name', sa.String(length=255), nullable=True),
        sa.Column('sender_user_id', sa.String(length=32), nullable=True),
        sa.Column('text', sa.Text(), nullable=False),
        sa.Column('at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['referral_id'], ['referral.referral_id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('message_id'),
    )
    op.create_index('ix_referral_chat_message_referral_id', 'referral_chat_message', ['referral_id'])
    op.create_index('ix_referral_chat_message_department_id', 'referral_chat_message', ['department_id'])

    # Billing
    op.create_table('referral_payment',
        sa.Column('payment_id', sa.String(length=32), nullable=False),
        sa.Column('referral_id', sa.String(length=32), nullable=False),
        sa.Column('department_id', sa.String(length=32), nullable=True),
        sa.Column('organization_id', sa.String(length=32), nullable=False),
        sa.Column('payer_role', sa.String(length=20), nullable=False),
        sa.Column('source', sa.String(length=20), nullable=False),
        sa.Column('payment_method_id', sa.String(length=255), nullable=True),
        sa.Column('amount', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('fee', sa.Numeric(precision=12, scale=2), nullable=False, server_default='0'),
        sa.Column('total', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('currency', sa.String(length=3), nullable=True),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='initiated'),
        sa.Column('client_secret', sa.String(length=255), nullable=True),
        sa.Column('provider_reference', sa.String(length=255), nullable=True),
        sa.Column('failure_reason', sa.Text(), nullable=True),
        sa.Column('initiated_by_user_id', sa.String(length=32), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('completed_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['referral_id'], ['referral.referral_id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['organization_id'], ['organization.organization_id'], ),
        sa.PrimaryKeyConstraint('payment_id'),
    )
    op.create_index('ix_referral_payment_referral_id', 'referral_payment', ['referral_id'])

    op.create_table('credit_transaction',
        sa.Column('transaction_id', sa.String(length=32), nullable=False),
        sa.Column('organization_id', sa.String(length=32), nullable=False),
        sa.Column('direction', sa.String(length=3), nullable=False),
        sa.Column('amount', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('transaction_type', sa.String(length=50), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('reference_id', sa.String(length=32), nullable=True),
        sa.Column('created_by_user_id', sa.String(length=32), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['organization_id'], ['organization.organization_id'], ),
        sa.PrimaryKeyConstraint('transaction_id'),
    )
    op.create_index('ix_credit_transaction_organization_id', 'credit_transaction', ['organization_id'])


def downgrade() -> None:
    op.drop_index('ix_credit_transaction_organization_id', table_name='credit_transaction')
    op.drop_table('credit_transaction')
    op.drop_index('ix_referral_payment_referral_id', table_name='referral_payment')
    op.drop_table('referral_payment')
    op.drop_index('ix_referral_chat_message_department_id', table_name='referral_chat_message')
    op.drop_index('ix_referral_chat_message_referral_id', table_name='referral_chat_message')
    op.drop_table('referral_chat_message')
    op.drop_index('ix_referral_activity_referral_id', table_name='referral_activity')
    op.drop_table('referral_activity')
    op.drop_index('ix_department_status_department_id', table_name='department_status')
    op.drop_index('ix_department_status_referral_id', table_name='department_status')
    op.drop_table('department_status')
    op.drop_index('ix_referral_insurance_referral_id', table_name='referral_insurance')
    op.drop_table('referral_insurance')
    op.drop_index('ix_referral_sender_organization_id', table_name='referral')
    op.drop_table('referral')
    op.drop_table('staff_user')
    op.drop_table('department')
    op.drop_table('branch')
    op.drop_table('organization')
