"""create users, contacts and deals tables

Revision ID: 0001_crm_core
Revises:
Create Date: 2026-10-12 09:20:41

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '0001_crm_core'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('hashed_password', sa.String(length=255), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_users_id', 'users', ['id'], unique=False)
    op.create_index('ix_users_email', 'users', ['email'], unique=True)

    op.create_table(
        'contacts',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('first_name', sa.String(length=255), nullable=True),
        sa.Column('last_name', sa.String(length=255), nullable=True),
        sa.Column('email', sa.String(length=255), nullable=True),
        sa.Column('phone', sa.String(length=50), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_contacts_id', 'contacts', ['id'], unique=False)
    op.create_index('ix_contacts_email', 'contacts', ['email'], unique=False)
    op.create_index('ix_contacts_phone', 'contacts', ['phone'], unique=False)

    op.create_table(
        'deal_stages',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=100), nullable=False),
        sa.Column('position', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('name'),
    )
    op.create_index('ix_deal_stages_id', 'deal_stages', ['id'], unique=False)

    op.create_table(
        'deals',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('title', sa.String(length=255), nullable=False),
        sa.Column('contact_id', sa.Integer(), nullable=True),
        sa.Column('stage_id', sa.Integer(), nullable=True),
        sa.Column('amount', sa.Numeric(precision=12, scale=2), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.ForeignKeyConstraint(['contact_id'], ['contacts.id'], ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['stage_id'], ['deal_stages.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_deals_id', 'deals', ['id'], unique=False)
    op.create_index('ix_deals_contact_id', 'deals', ['contact_id'], unique=False)
    op.create_index('ix_deals_stage_id', 'deals', ['stage_id'], unique=False)
    op.create_index('ix_deals_created_at', 'deals', ['created_at'], unique=False)

    # Default pipeline
    stages = sa.table(
        'deal_stages',
        sa.column('name', sa.String),
        sa.column('position', sa.Integer),
    )
    op.bulk_insert(
        stages,
        [
            {'name': 'Lead', 'position': 0},
            {'name': 'Qualified', 'position': 1},
            {'name': 'Negotiation', 'position': 2},
            {'name': 'Won', 'position': 3},
            {'name': 'Lost', 'position': 4},
        ],
    )


def downgrade() -> None:
    op.drop_index('ix_deals_created_at', 'deals')
    op.drop_index('ix_deals_stage_id', 'deals')
    op.drop_index('ix_deals_contact_id', 'deals')
    op.drop_index('ix_deals_id', 'deals')
    op.drop_table('deals')
    op.drop_index('ix_deal_stages_id', 'deal_stages')
    op.drop_table('deal_stages')
    op.drop_index('ix_contacts_phone', 'contacts')
    op.drop_index('ix_contacts_email', 'contacts')
    op.drop_index('ix_contacts_id', 'contacts')
    op.drop_table('contacts')
    op.drop_index('ix_users_email', 'users')
    op.drop_index('ix_users_id', 'users')
    op.drop_table('users')
