"""
In-memory stand-ins for the ledger store and account catalog.

They return unsaved ORM objects with the same attributes the
database-backed services return, so the aggregator can be fed
large generated ledgers without a database round trip.
"""

from decimal import Decimal

from residence_ledger.models.account import Account
from residence_ledger.models.enums import AccountType, EntrySource, EntryStatus
from residence_ledger.models.journal_entry import JournalEntry, JournalLine


class InMemoryCatalog:

    def __init__(self):
        self._accounts: dict[str, Account] = {}
        self._next_id = 1

    def add(self, code, name, account_type, category=None, parent_code=None,
            opening_balance=Decimal("0"), opening_balance_date=None,
            is_company_wide=False) -> Account:
        parent = self._accounts.get(parent_code) if parent_code else None
        account = Account(
            id=self._next_id,
            code=code,
            name=name,
            account_type=account_type,
            category=category,
            parent_id=parent.id if parent else None,
            opening_balance=opening_balance,
            opening_balance_date=opening_balance_date,
            is_active=True,
            is_company_wide=is_company_wide,
        )
        self._next_id += 1
        self._accounts[code] = account
        return account

    def get(self, code) -> Account:
        return self._accounts[code]

    def all_accounts(self, session=None) -> list[Account]:
        return [self._accounts[code] for code in sorted(self._accounts)]


class InMemoryStore:

    def __init__(self, catalog: InMemoryCatalog):
        self.catalog = catalog
        self.entries: list[JournalEntry] = []

    def add_entry(self, on, lines, residence_id=None,
                  status=EntryStatus.POSTED, source=EntrySource.MANUAL,
                  check_balance=True) -> JournalEntry:
        """
        lines: (account_code, debit, credit) tuples. Codes unknown to
        the catalog keep their code as the line's account name.
        """
        entry = JournalEntry(
            id=len(self.entries) + 1,
            entry_date=on,
            status=status,
            source=source,
            description="generated",
            residence_id=residence_id,
            entry_metadata={},
        )
        for line_no, (code, debit, credit) in enumerate(lines, start=1):
            try:
                account = self.catalog.get(code)
                name, account_type = account.name, account.account_type
            except KeyError:
                name, account_type = code, type_for_code(code)
            entry.lines.append(JournalLine(
                line_no=line_no,
                account_code=code,
                account_name=name,
                account_type=account_type,
                debit=Decimal(str(debit)),
                credit=Decimal(str(credit)),
            ))
        if check_balance:
            assert entry.total_debit == entry.total_credit
        self.entries.append(entry)
        return entry

    def posted_entries(self, as_of, residence_id=None, session=None):
        return [
            e for e in sorted(self.entries, key=lambda e: (e.entry_date, e.id))
            if e.status == EntryStatus.POSTED
            and e.entry_date <= as_of
            and (residence_id is None or e.residence_id == residence_id)
        ]

    def company_wide_lines(self, account_codes, as_of, exclude_residence_id,
                           session=None):
        codes = set(account_codes)
        return [
            line
            for entry in sorted(self.entries, key=lambda e: (e.entry_date, e.id))
            if entry.status == EntryStatus.POSTED
            and entry.entry_date <= as_of
            and entry.residence_id != exclude_residence_id
            for line in entry.lines
            if line.account_code in codes
        ]


def type_for_code(code):
    """Account type implied by the first digit of an uncatalogued code."""
    return {
        "1": AccountType.ASSET,
        "2": AccountType.LIABILITY,
        "3": AccountType.EQUITY,
        "4": AccountType.INCOME,
    }.get(code[:1], AccountType.EXPENSE)
