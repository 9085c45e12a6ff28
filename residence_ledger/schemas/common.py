"""
Structured warnings shared by every ledger report.

Anomalies found while reading the ledger are never silently
fixed (no clamping, no skipped entries); they are attached to
the result as LedgerWarning objects and logged.
"""

import enum
from decimal import Decimal

from pydantic import BaseModel


class WarningCode(str, enum.Enum):
    UNBALANCED_ENTRY = "UNBALANCED_ENTRY"
    UNKNOWN_ACCOUNT = "UNKNOWN_ACCOUNT"
    LEGACY_CLASSIFICATION = "LEGACY_CLASSIFICATION"
    EQUATION_IMBALANCE = "EQUATION_IMBALANCE"
    OVER_SETTLED = "OVER_SETTLED"
    UNTAGGED_SETTLEMENT = "UNTAGGED_SETTLEMENT"
    ORPHANED_SETTLEMENT = "ORPHANED_SETTLEMENT"
    PERIOD_OVERRIDDEN = "PERIOD_OVERRIDDEN"
    MONTH_FAILED = "MONTH_FAILED"


class LedgerWarning(BaseModel):
    code: WarningCode
    message: str
    entry_id: int | None = None
    account_code: str | None = None
    amount: Decimal | None = None
