"""create incomes table

Revision ID: 8d42e6b1c0f3
Revises: 3c1f9a7d2b10
Create Date: 2026-10-26 14:03:17.904512

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '8d42e6b1c0f3'
down_revision: Union[str, Sequence[str], None] = '3c1f9a7d2b10'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


allocation_type = sa.Enum('Kebutuhan', 'Tabungan', 'Darurat', name='allocationtype')
income_source = sa.Enum('Gaji', 'Uang Saku', 'Uang Kaget', 'Hadiah', 'Lainnya', name='incomesource')


def upgrade() -> None:
    op.create_table(
        'incomes',
        sa.Column('id', sa.Integer, primary_key=True, autoincrement=True),
        sa.Column('user_id', sa.Integer, sa.ForeignKey('users.db_id', ondelete='CASCADE'), nullable=False),
        sa.Column('account_id', sa.Integer, sa.ForeignKey('accounts.id', ondelete='CASCADE'), nullable=False),
        sa.Column('allocation_type', allocation_type, nullable=True),
        sa.Column('amount', sa.DECIMAL(15, 2), nullable=False),
        sa.Column('income_source', income_source, nullable=True),
        sa.Column('note', sa.Text, nullable=True),
        sa.Column('received_date', sa.Date, nullable=False),
        sa.Column('created_at', sa.DateTime, nullable=True),
    )
    op.create_index('idx_incomes_user_account_date', 'incomes', ['user_id', 'account_id', 'received_date'])


def downgrade() -> None:
    op.drop_index('idx_incomes_user_account_date', table_name='incomes')
    op.drop_table('incomes')
    income_source.drop(op.get_bind(), checkfirst=True)
