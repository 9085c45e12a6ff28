"""
Database models package.

All models must be imported here so that Alembic can discover
them through Base.metadata when generating migrations.
"""

from residence_ledger.models.base import Base
from residence_ledger.models.enums import (
    AccountType,
    AccountCategory,
    EntryStatus,
    EntrySource,
    AllocationType,
)
from residence_ledger.models.account import Account
from residence_ledger.models.journal_entry import JournalEntry, JournalLine

__all__ = [
    "Base",
    "AccountType",
    "AccountCategory",
    "EntryStatus",
    "EntrySource",
    "AllocationType",
    "Account",
    "JournalEntry",
    "JournalLine",
]
