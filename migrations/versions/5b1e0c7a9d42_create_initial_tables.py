"""create_initial_tables

Revision ID: 5b1e0c7a9d42
Revises: 
Create Date: 2026-10-19 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '5b1e0c7a9d42'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""
    # Create linked_accounts table
    op.create_table('linked_accounts',
        sa.Column('id', sa.String(), nullable=False),
        sa.Column('user_id', sa.String(), nullable=False),
        sa.Column('account_id', sa.String(), nullable=False),
        sa.Column('account_name', sa.String(), nullable=False),
        sa.Column('account_type', sa.String(), nullable=False),
        sa.Column('balance', sa.Integer(), nullable=False),
        sa.Column('access_token', sa.String(), nullable=False),
        sa.Column('refresh_token', sa.String(), nullable=True),
        sa.Column('token_expiry', sa.DateTime(timezone=True), nullable=True),
        sa.Column('reconnect_by', sa.DateTime(timezone=True), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('last_synced', sa.DateTime(timezone=True), nullable=True),
        sa.Column('connected_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('user_id', 'account_id', name='uq_linked_accounts_user_account')
    )
    op.create_index(op.f('ix_linked_accounts_user_id'), 'linked_accounts', ['user_id'], unique=False)

    # Create pots table
    op.create_table('pots',
        sa.Column('id', sa.String(), nullable=False),
        sa.Column('linked_account_id', sa.String(), nullable=False),
        sa.Column('pot_id', sa.String(), nullable=False),
        sa.Column('pot_name', sa.String(), nullable=False),
        sa.Column('balance', sa.Integer(), nullable=False),
        sa.Column('last_synced', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=True),
        sa.ForeignKeyConstraint(['linked_account_id'], ['linked_accounts.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('pot_id')
    )
    op.create_index(op.f('ix_pots_linked_account_id'), 'pots', ['linked_account_id'], unique=False)

    # Create pending_approvals table
    op.create_table('pending_approvals',
        sa.Column('id', sa.String(), nullable=False),
        sa.Column('user_id', sa.String(), nullable=False),
        sa.Column('access_token', sa.String(), nullable=False),
        sa.Column('refresh_token', sa.String(), nullable=False),
        sa.Column('token_expiry', sa.DateTime(timezone=True), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=True),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_pending_approvals_user_id'), 'pending_approvals', ['user_id'], unique=False)

    # Create automations table
    op.create_table('automations',
        sa.Column('id', sa.String(), nullable=False),
        sa.Column('user_id', sa.String(), nullable=False),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('source_credit_card_id', sa.String(), nullable=True),
        sa.Column('destination_pot_id', sa.String(), nullable=False),
        sa.Column('amount', sa.Integer(), nullable=False),
        sa.Column('frequency', sa.String(), nullable=False),
        sa.Column('day_of_week', sa.Integer(), nullable=True),
        sa.Column('day_of_month', sa.Integer(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('next_run_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('last_run_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('last_result', sa.JSON(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=True),
        sa.CheckConstraint('amount > 0', name='ck_automations_amount_positive'),
        sa.CheckConstraint(
            "(frequency = 'weekly' AND day_of_week IS NOT NULL AND day_of_month IS NULL)"
            " OR (frequency = 'monthly' AND day_of_month IS NOT NULL AND day_of_week IS NULL)",
            name='ck_automations_recurrence'
        ),
        sa.ForeignKeyConstraint(['destination_pot_id'], ['pots.id']),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_automations_user_id'), 'automations', ['user_id'], unique=False)
    op.create_index(op.f('ix_automations_next_run_at'), 'automations', ['next_run_at'], unique=False)


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_index(op.f('ix_automations_next_run_at'), table_name='automations')
    op.drop_index(op.f('ix_automations_user_id'), table_name='automations')
    op.drop_table('automations')
    op.drop_index(op.f('ix_pending_approvals_user_id'), table_name='pending_approvals')
    op.drop_table('pending_approvals')
    op.drop_index(op.f('ix_pots_linked_account_id'), table_name='pots')
    op.drop_table('pots')
    op.drop_index(op.f('ix_linked_accounts_user_id'), table_name='linked_accounts')
    op.drop_table('linked_accounts')
