"""
Balance sheet classification table.

Accounts are classified by their explicit category first. Only
accounts provisioned without a category (legacy charts) go
through the fallback table below, and every line records which
path classified it so legacy accounts can be found and fixed.

Legacy fallback table:

| Section             | Code range   | Name keywords                                  |
|---------------------|--------------|------------------------------------------------|
| Current asset       | 1000 - 1599  | cash, bank, receivable, inventory, prepaid     |
| Current liability   | 2000 - 2399  | payable, accrued, deposit, tax, short term,    |
|                     |              | advance, deferred                              |
| Capital             | 3000, 3001   | capital                                        |
| Retained earnings   | 3100, 3101   | retained, earnings                             |

Any asset or liability not matched is non-current; any equity
account not matched is "other". Codes are compared on their
numeric base, so "1100-S042" falls in the 1000-1599 range.
"""

from residence_ledger.models.account import Account
from residence_ledger.models.enums import AccountCategory, AccountType

CATEGORY = "category"
LEGACY_FALLBACK = "legacy_fallback"

CURRENT = "current"
NON_CURRENT = "non_current"

CAPITAL = "capital"
RETAINED_EARNINGS = "retained_earnings"
OTHER_EQUITY = "other"

CURRENT_ASSET_CODE_RANGE = (1000, 1599)
CURRENT_LIABILITY_CODE_RANGE = (2000, 2399)
CAPITAL_CODES = frozenset({"3000", "3001"})
RETAINED_EARNINGS_CODES = frozenset({"3100", "3101"})

CURRENT_ASSET_KEYWORDS = ("cash", "bank", "receivable", "inventory", "prepaid")
CURRENT_LIABILITY_KEYWORDS = (
    "payable", "accrued", "deposit", "tax", "short term", "advance", "deferred",
)
CAPITAL_KEYWORDS = ("capital",)
RETAINED_EARNINGS_KEYWORDS = ("retained", "earnings")

_CURRENT_CATEGORIES = {
    AccountCategory.CURRENT_ASSET: CURRENT,
    AccountCategory.FIXED_ASSET: NON_CURRENT,
    AccountCategory.OTHER_ASSET: NON_CURRENT,
    AccountCategory.CURRENT_LIABILITY: CURRENT,
    AccountCategory.LONG_TERM_LIABILITY: NON_CURRENT,
}

_EQUITY_CATEGORIES = {
    AccountCategory.CAPITAL: CAPITAL,
    AccountCategory.RETAINED_EARNINGS: RETAINED_EARNINGS,
    AccountCategory.OTHER_EQUITY: OTHER_EQUITY,
}


def _base_code(code: str) -> int | None:
    head = code.split("-", 1)[0]
    return int(head) if head.isdigit() else None


def _in_range(code: str, code_range: tuple[int, int]) -> bool:
    number = _base_code(code)
    return number is not None and code_range[0] <= number <= code_range[1]


def _has_keyword(name: str, keywords) -> bool:
    lowered = name.lower()
    return any(keyword in lowered for keyword in keywords)


def classify_term(account: Account) -> tuple[str, str]:
    """
    Classify an asset or liability as current or non-current.

    Returns (section, basis).
    """
    if account.category in _CURRENT_CATEGORIES:
        return _CURRENT_CATEGORIES[account.category], CATEGORY

    if account.account_type == AccountType.ASSET:
        code_range, keywords = CURRENT_ASSET_CODE_RANGE, CURRENT_ASSET_KEYWORDS
    else:
        code_range, keywords = (
            CURRENT_LIABILITY_CODE_RANGE, CURRENT_LIABILITY_KEYWORDS
        )

    if _in_range(account.code, code_range) or _has_keyword(account.name, keywords):
        return CURRENT, LEGACY_FALLBACK
    return NON_CURRENT, LEGACY_FALLBACK


def classify_equity(account: Account) -> tuple[str, str]:
    """
    Bucket an equity account into capital, retained earnings or other.

    Returns (bucket, basis).
    """
    if account.category in _EQUITY_CATEGORIES:
        return _EQUITY_CATEGORIES[account.category], CATEGORY

    base = account.code.split("-", 1)[0]
    if base in CAPITAL_CODES or _has_keyword(account.name, CAPITAL_KEYWORDS):
        return CAPITAL, LEGACY_FALLBACK
    if base in RETAINED_EARNINGS_CODES or _has_keyword(
        account.name, RETAINED_EARNINGS_KEYWORDS
    ):
        return RETAINED_EARNINGS, LEGACY_FALLBACK
    return OTHER_EQUITY, LEGACY_FALLBACK
