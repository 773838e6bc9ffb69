"""create users, bank catalog, accounts, allocations, budgets and expenses tables

Revision ID: 3c1f9a7d2b10
Revises:
Create Date: 2026-10-19 09:12:44.518207

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3c1f9a7d2b10'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


allocation_type = sa.Enum('Kebutuhan', 'Tabungan', 'Darurat', name='allocationtype')
user_status = sa.Enum('Pelajar', 'Mahasiswa', 'Pekerja', 'Pengangguran', 'Lainnya', name='userstatus')


def upgrade() -> None:
    op.create_table(
        'users',
        sa.Column('db_id', sa.Integer, primary_key=True, autoincrement=True),
        sa.Column('id', sa.Uuid, nullable=False, unique=True),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('username', sa.String(100), nullable=False),
        sa.Column('password_hash', sa.String(255), nullable=False),
        sa.Column('full_name', sa.String(255), nullable=True),
        sa.Column('status', user_status, nullable=True),
        sa.Column('created_at', sa.DateTime, nullable=True),
        sa.Column('updated_at', sa.DateTime, nullable=True),
        sa.UniqueConstraint('email', name='uq_user_email'),
        sa.UniqueConstraint('username', name='uq_user_username'),
    )
    op.create_index('idx_users_email', 'users', ['email'])

    op.create_table(
        'bank_data',
        sa.Column('id', sa.Integer, primary_key=True, autoincrement=True),
        sa.Column('code_name', sa.String(50), nullable=False),
        sa.Column('bank_name', sa.String(255), nullable=False),
        sa.UniqueConstraint('code_name', name='uq_bank_code_name'),
    )

    op.create_table(
        'accounts',
        sa.Column('id', sa.Integer, primary_key=True, autoincrement=True),
        sa.Column('user_id', sa.Integer, sa.ForeignKey('users.db_id', ondelete='CASCADE'), nullable=False),
        sa.Column('bank_id', sa.Integer, sa.ForeignKey('bank_data.id'), nullable=False),
        sa.Column('initial_balance', sa.DECIMAL(15, 2), nullable=True),
        sa.Column('current_balance', sa.DECIMAL(15, 2), nullable=True),
        sa.Column('created_at', sa.DateTime, nullable=True),
        sa.Column('updated_at', sa.DateTime, nullable=True),
    )
    op.create_index('idx_accounts_user_created', 'accounts', ['user_id', 'created_at', 'id'])

    op.create_table(
        'accounts_allocation',
        sa.Column('id', sa.Integer, primary_key=True, autoincrement=True),
        sa.Column('account_id', sa.Integer, sa.ForeignKey('accounts.id', ondelete='CASCADE'), nullable=False),
        sa.Column('type', allocation_type, nullable=False),
        sa.Column('balance_per_type', sa.DECIMAL(15, 2), nullable=False),
        sa.Column('allocation_date', sa.Date, nullable=False),
        sa.Column('created_at', sa.DateTime, nullable=True),
        sa.Column('updated_at', sa.DateTime, nullable=True),
    )
    op.create_index('idx_allocation_account_type_date', 'accounts_allocation', ['account_id', 'type', 'allocation_date'])

    op.create_table(
        'budgets',
        sa.Column('id', sa.Integer, primary_key=True, autoincrement=True),
        sa.Column('user_id', sa.Integer, sa.ForeignKey('users.db_id', ondelete='CASCADE'), nullable=False),
        sa.Column('account_id', sa.Integer, sa.ForeignKey('accounts.id', ondelete='CASCADE'), nullable=False),
        sa.Column('budget_date', sa.Date, nullable=False),
        sa.Column('daily_budget', sa.DECIMAL(15, 2), nullable=True),
        sa.Column('initial_daily_budget', sa.DECIMAL(15, 2), nullable=True),
        sa.Column('daily_saving', sa.DECIMAL(15, 2), nullable=True),
        sa.Column('created_at', sa.DateTime, nullable=True),
        sa.Column('updated_at', sa.DateTime, nullable=True),
        sa.UniqueConstraint('user_id', 'account_id', 'budget_date', name='uq_budget_user_account_date'),
    )
    op.create_index('idx_budgets_user_date', 'budgets', ['user_id', 'budget_date'])

    op.create_table(
        'expenses',
        sa.Column('id', sa.Integer, primary_key=True, autoincrement=True),
        sa.Column('user_id', sa.Integer, sa.ForeignKey('users.db_id', ondelete='CASCADE'), nullable=False),
        sa.Column('account_id', sa.Integer, sa.ForeignKey('accounts.id', ondelete='CASCADE'), nullable=False),
        sa.Column('allocation_type', allocation_type, nullable=True),
        sa.Column('amount', sa.DECIMAL(15, 2), nullable=False),
        sa.Column('note', sa.Text, nullable=True),
        sa.Column('expense_date', sa.Date, nullable=False),
        sa.Column('created_at', sa.DateTime, nullable=True),
    )
    op.create_index('idx_expenses_user_account_date', 'expenses', ['user_id', 'account_id', 'expense_date'])

    op.create_table(
        'monthly_expenses',
        sa.Column('id', sa.Integer, primary_key=True, autoincrement=True),
        sa.Column('user_id', sa.Integer, sa.ForeignKey('users.db_id', ondelete='CASCADE'), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('total_amount', sa.DECIMAL(15, 2), nullable=False),
        sa.Column('month', sa.Integer, nullable=False),
        sa.Column('year', sa.Integer, nullable=False),
        sa.Column('is_active', sa.Boolean, nullable=True),
        sa.Column('created_at', sa.DateTime, nullable=True),
        sa.UniqueConstraint('user_id', 'name', 'month', 'year', name='uq_monthly_expense_user_name_period'),
    )
    op.create_index('idx_monthly_expenses_user_period', 'monthly_expenses', ['user_id', 'month', 'year'])


def downgrade() -> None:
    op.drop_table('monthly_expenses')
    op.drop_table('expenses')
    op.drop_table('budgets')
    op.drop_table('accounts_allocation')
    op.drop_table('accounts')
    op.drop_table('bank_data')
    op.drop_table('users')
    allocation_type.drop(op.get_bind(), checkfirst=True)
    user_status.drop(op.get_bind(), checkfirst=True)
