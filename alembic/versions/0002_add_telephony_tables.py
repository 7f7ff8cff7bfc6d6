"""add telephony_identities and call_records tables

Revision ID: 0002_telephony
Revises: 0001_crm_core
Create Date: 2026-10-12 10:02:17

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '0002_telephony'
down_revision: Union[str, None] = '0001_crm_core'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Tokens are Fernet-encrypted at the application layer, hence Text
    op.create_table(
        'telephony_identities',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('provider_account_id', sa.String(length=255), nullable=True),
        sa.Column('access_token', sa.Text(), nullable=False),
        sa.Column('refresh_token', sa.Text(), nullable=False),
        sa.Column('token_expires_at', sa.DateTime(), nullable=False),
        sa.Column('refresh_token_expires_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_telephony_identities_id', 'telephony_identities', ['id'], unique=False)
    op.create_index('ix_telephony_identities_user_id', 'telephony_identities', ['user_id'], unique=True)

    op.create_table(
        'call_records',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=True),
        sa.Column('direction', sa.String(length=20), nullable=False),
        sa.Column('status', sa.String(length=50), nullable=False, server_default='unknown'),
        sa.Column('from_number', sa.String(length=50), nullable=True),
        sa.Column('to_number', sa.String(length=50), nullable=True),
        sa.Column('duration_seconds', sa.Integer(), nullable=True),
        sa.Column('recording_url', sa.Text(), nullable=True),
        sa.Column('provider_call_id', sa.String(length=255), nullable=True),
        sa.Column('matched_contact_id', sa.Integer(), nullable=True),
        sa.Column('matched_deal_id', sa.Integer(), nullable=True),
        sa.Column('started_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['matched_contact_id'], ['contacts.id'], ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['matched_deal_id'], ['deals.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_call_records_id', 'call_records', ['id'], unique=False)
    op.create_index('ix_call_records_user_id', 'call_records', ['user_id'], unique=False)
    # Unique index allows many NULLs: records without a provider id are insert-only
    op.create_index('ix_call_records_provider_call_id', 'call_records', ['provider_call_id'], unique=True)
    op.create_index('ix_call_records_matched_contact_id', 'call_records', ['matched_contact_id'], unique=False)
    op.create_index('ix_call_records_matched_deal_id', 'call_records', ['matched_deal_id'], unique=False)
    op.create_index('ix_call_records_created_at', 'call_records', ['created_at'], unique=False)


def downgrade() -> None:
    op.drop_index('ix_call_records_created_at', 'call_records')
    op.drop_index('ix_call_records_matched_deal_id', 'call_records')
    op.drop_index('ix_call_records_matched_contact_id', 'call_records')
    op.drop_index('ix_call_records_provider_call_id', 'call_records')
    op.drop_index('ix_call_records_user_id', 'call_records')
    op.drop_index('ix_call_records_id', 'call_records')
    op.drop_table('call_records')
    op.drop_index('ix_telephony_identities_user_id', 'telephony_identities')
    op.drop_index('ix_telephony_identities_id', 'telephony_identities')
    op.drop_table('telephony_identities')
