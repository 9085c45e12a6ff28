"""
Shared enumerations for database models.

Using Python enums mapped to database enums ensures that
only valid values can be stored. An invalid account type
or entry status is caught at the database level, not just
in Python validation.
"""

import enum


class AccountType(str, enum.Enum):
    """The five fundamental accounting categories."""
    ASSET = "ASSET"
    LIABILITY = "LIABILITY"
    EQUITY = "EQUITY"
    INCOME = "INCOME"
    EXPENSE = "EXPENSE"


class AccountCategory(str, enum.Enum):
    """
    Explicit balance sheet classification set at provisioning.

    Accounts without a category fall back to the legacy
    code-range/keyword table in services.classification.
    """
    CURRENT_ASSET = "current_asset"
    FIXED_ASSET = "fixed_asset"
    OTHER_ASSET = "other_asset"
    CURRENT_LIABILITY = "current_liability"
    LONG_TERM_LIABILITY = "long_term_liability"
    CAPITAL = "capital"
    RETAINED_EARNINGS = "retained_earnings"
    OTHER_EQUITY = "other_equity"
    INCOME = "income"
    EXPENSE = "expense"


class EntryStatus(str, enum.Enum):
    """Lifecycle of a journal entry. Only POSTED entries count."""
    POSTED = "POSTED"
    VOIDED = "VOIDED"


class EntrySource(str, enum.Enum):
    """Workflow that produced a journal entry."""
    ACCRUAL = "ACCRUAL"
    PAYMENT = "PAYMENT"
    ADVANCE_PAYMENT = "ADVANCE_PAYMENT"
    DEPOSIT = "DEPOSIT"
    MANUAL = "MANUAL"


class AllocationType(str, enum.Enum):
    """How a slice of a payment was applied."""
    SETTLEMENT = "settlement"
    ADVANCE_PAYMENT = "advance_payment"


# Sign convention: these types grow with debits, all others with credits
DEBIT_NORMAL_TYPES = frozenset({AccountType.ASSET, AccountType.EXPENSE})
