"""create ledger tables

Revision ID: 0001_create_ledger_tables
Revises:
Create Date: 2026-10-19 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = '0001_create_ledger_tables'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

ACCOUNT_TYPES = ('ASSET', 'LIABILITY', 'EQUITY', 'INCOME', 'EXPENSE')
ACCOUNT_CATEGORIES = (
    'current_asset', 'fixed_asset', 'other_asset', 'current_liability',
    'long_term_liability', 'capital', 'retained_earnings', 'other_equity',
    'income', 'expense',
)


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        'accounts',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('code', sa.String(length=64), nullable=False, unique=True),
        sa.Column('name', sa.String(length=150), nullable=False),
        sa.Column(
            'account_type',
            sa.Enum(*ACCOUNT_TYPES, name='account_type_enum'),
            nullable=False,
        ),
        sa.Column(
            'category',
            sa.Enum(*ACCOUNT_CATEGORIES, name='account_category_enum'),
            nullable=True,
        ),
        sa.Column('parent_id', sa.Integer(), sa.ForeignKey('accounts.id'), nullable=True),
        sa.Column('opening_balance', sa.Numeric(19, 4), nullable=False),
        sa.Column('opening_balance_date', sa.Date(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('is_company_wide', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_accounts_parent_id', 'accounts', ['parent_id'])

    op.create_table(
        'journal_entries',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('transaction_id', sa.Uuid(), nullable=False, unique=True),
        sa.Column('entry_date', sa.Date(), nullable=False),
        sa.Column(
            'status',
            sa.Enum('POSTED', 'VOIDED', name='entry_status_enum'),
            nullable=False,
        ),
        sa.Column(
            'source',
            sa.Enum(
                'ACCRUAL', 'PAYMENT', 'ADVANCE_PAYMENT', 'DEPOSIT', 'MANUAL',
                name='entry_source_enum',
            ),
            nullable=False,
        ),
        sa.Column('description', sa.String(length=255), nullable=False),
        sa.Column('residence_id', sa.String(length=64), nullable=True),
        sa.Column('debtor_id', sa.String(length=64), nullable=True),
        sa.Column('metadata', sa.JSON(), nullable=False),
        sa.Column('version_id', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
    )
    op.create_index(
        'ix_journal_entries_entry_date_status_residence',
        'journal_entries',
        ['entry_date', 'status', 'residence_id'],
    )
    op.create_index('ix_journal_entries_debtor_id', 'journal_entries', ['debtor_id'])

    op.create_table(
        'journal_lines',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column(
            'entry_id', sa.Integer(), sa.ForeignKey('journal_entries.id'), nullable=False
        ),
        sa.Column('line_no', sa.Integer(), nullable=False),
        sa.Column('account_code', sa.String(length=64), nullable=False),
        sa.Column('account_name', sa.String(length=150), nullable=False),
        sa.Column(
            'account_type',
            postgresql.ENUM(*ACCOUNT_TYPES, name='account_type_enum', create_type=False),
            nullable=False,
        ),
        sa.Column('debit', sa.Numeric(19, 4), nullable=False),
        sa.Column('credit', sa.Numeric(19, 4), nullable=False),
        sa.Column('outstanding', sa.Numeric(19, 4), nullable=True),
        sa.Column('description', sa.String(length=255), nullable=True),
    )
    op.create_index('ix_journal_lines_entry_id', 'journal_lines', ['entry_id'])
    op.create_index('ix_journal_lines_account_code', 'journal_lines', ['account_code'])


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_index('ix_journal_lines_account_code', table_name='journal_lines')
    op.drop_index('ix_journal_lines_entry_id', table_name='journal_lines')
    op.drop_table('journal_lines')
    op.drop_index('ix_journal_entries_debtor_id', table_name='journal_entries')
    op.drop_index(
        'ix_journal_entries_entry_date_status_residence', table_name='journal_entries'
    )
    op.drop_table('journal_entries')
    op.drop_index('ix_accounts_parent_id', table_name='accounts')
    op.drop_table('accounts')
    sa.Enum(name='entry_source_enum').drop(op.get_bind(), checkfirst=True)
    sa.Enum(name='entry_status_enum').drop(op.get_bind(), checkfirst=True)
    sa.Enum(name='account_category_enum').drop(op.get_bind(), checkfirst=True)
    sa.Enum(name='account_type_enum').drop(op.get_bind(), checkfirst=True)
