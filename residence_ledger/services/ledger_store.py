"""
Ledger store: the append-only journal.

This service enforces the posting rules:
1. Every entry must balance (debits = credits)
2. Entries are append-only; a posted entry can only be voided
3. Lines must reference existing, active accounts
4. A transaction_id can only be posted once (retries are idempotent)

It also owns the queries the reports are built on (entries up
to a date, optionally inside one residence; entries touching an
account) and the unit of work used for atomic multi-entry writes.
"""

from contextlib import contextmanager
from datetime import date
from decimal import Decimal

import structlog
from pydantic_core import to_jsonable_python
from sqlalchemy import select, or_
from sqlalchemy.orm import Session, sessionmaker, selectinload

from residence_ledger.models.base import use_session
from residence_ledger.models.enums import EntrySource, EntryStatus
from residence_ledger.models.journal_entry import JournalEntry, JournalLine
from residence_ledger.schemas.ledger import JournalEntryCreate
from residence_ledger.services.account_catalog import AccountCatalog

logger = structlog.get_logger(__name__)


class LedgerStore:
    """
    All journal reads and writes pass through this service.

    Read methods open a short-lived session per call, so one
    store can serve many threads. Write methods take the
    session of the caller's unit of work when atomicity across
    several entries matters.
    """

    def __init__(self, session_factory: sessionmaker, catalog: AccountCatalog):
        self.session_factory = session_factory
        self.catalog = catalog

    @contextmanager
    def unit_of_work(self):
        """
        One database transaction.

        Commits when the block exits normally; any exception
        rolls back every write made through the yielded session.
        """
        with use_session(self.session_factory) as session:
            yield session

    # --- Writes ---

    def post_entry(
        self, request: JournalEntryCreate, session: Session | None = None
    ) -> JournalEntry:
        """
        Post a balanced journal entry.

        Raises ValueError if an account is missing or inactive or
        the entry does not balance. Nothing is written on failure.
        Posting a transaction_id that already exists returns the
        existing entry.
        """
        with use_session(self.session_factory, session) as db:
            # --- Idempotency ---
            existing = db.execute(
                select(JournalEntry)
                .options(selectinload(JournalEntry.lines))
                .where(JournalEntry.transaction_id == request.transaction_id)
            ).scalar_one_or_none()
            if existing:
                return existing

            # --- Validate accounts ---
            codes = {line.account_code for line in request.lines}
            accounts = self.catalog.get_many(codes, session=db)
            missing = codes - set(accounts)
            if missing:
                raise ValueError(f"Accounts not found: {sorted(missing)}")
            for account in accounts.values():
                if not account.is_active:
                    raise ValueError(f"Account {account.code} is not active")

            # --- Enforce balance rule ---
            total_debits = sum((line.debit for line in request.lines), Decimal("0"))
            total_credits = sum((line.credit for line in request.lines), Decimal("0"))
            if total_debits != total_credits:
                raise ValueError(
                    f"Entry does not balance: "
                    f"debits={total_debits}, credits={total_credits}"
                )

            # --- Create entry ---
            entry = JournalEntry(
                transaction_id=request.transaction_id,
                entry_date=request.entry_date,
                status=EntryStatus.POSTED,
                source=request.source,
                description=request.description,
                residence_id=request.residence_id,
                debtor_id=request.debtor_id,
                entry_metadata=to_jsonable_python(request.metadata),
            )
            for line_no, line_data in enumerate(request.lines, start=1):
                account = accounts[line_data.account_code]
                outstanding = None
                if (
                    request.source == EntrySource.ACCRUAL
                    and line_data.debit > 0
                    and self.catalog.is_receivable(account, session=db)
                ):
                    outstanding = line_data.debit
                entry.lines.append(JournalLine(
                    line_no=line_no,
                    account_code=account.code,
                    account_name=account.name,
                    account_type=account.account_type,
                    debit=line_data.debit,
                    credit=line_data.credit,
                    outstanding=outstanding,
                    description=line_data.description or request.description,
                ))

            db.add(entry)
            db.flush()

            logger.info(
                "journal_entry_posted",
                entry_id=entry.id,
                source=entry.source.value,
                entry_date=entry.entry_date.isoformat(),
                residence_id=entry.residence_id,
                debtor_id=entry.debtor_id,
                amount=str(total_debits),
            )
            return entry

    def void_entry(
        self, entry_id: int, session: Session | None = None
    ) -> JournalEntry:
        """Mark a posted entry VOIDED so no report counts it."""
        with use_session(self.session_factory, session) as db:
            entry = self.get_entry(entry_id, session=db)
            if entry.status == EntryStatus.VOIDED:
                raise ValueError(f"Entry {entry_id} is already voided")
            entry.status = EntryStatus.VOIDED
            db.flush()
            logger.info("journal_entry_voided", entry_id=entry_id)
            return entry

    # --- Reads ---

    def get_entry(
        self, entry_id: int, session: Session | None = None
    ) -> JournalEntry:
        with use_session(self.session_factory, session) as db:
            entry = db.execute(
                select(JournalEntry)
                .options(selectinload(JournalEntry.lines))
                .where(JournalEntry.id == entry_id)
            ).scalar_one_or_none()
            if entry is None:
                raise ValueError(f"Entry {entry_id} not found")
            return entry

    def posted_entries(
        self,
        as_of: date,
        residence_id: str | None = None,
        session: Session | None = None,
    ) -> list[JournalEntry]:
        """POSTED entries dated on or before as_of, oldest first."""
        stmt = (
            select(JournalEntry)
            .options(selectinload(JournalEntry.lines))
            .where(
                JournalEntry.status == EntryStatus.POSTED,
                JournalEntry.entry_date <= as_of,
            )
            .order_by(JournalEntry.entry_date, JournalEntry.id)
        )
        if residence_id is not None:
            stmt = stmt.where(JournalEntry.residence_id == residence_id)

        with use_session(self.session_factory, session) as db:
            return list(db.execute(stmt).scalars().all())

    def company_wide_lines(
        self,
        account_codes,
        as_of: date,
        exclude_residence_id: str,
        session: Session | None = None,
    ) -> list[JournalLine]:
        """
        Lines on shared accounts posted outside one residence.

        Used to keep company-wide property accounts whole on a
        residence-filtered balance sheet.
        """
        codes = set(account_codes)
        if not codes:
            return []

        stmt = (
            select(JournalLine)
            .join(JournalLine.entry)
            .where(
                JournalLine.account_code.in_(codes),
                JournalEntry.status == EntryStatus.POSTED,
                JournalEntry.entry_date <= as_of,
                or_(
                    JournalEntry.residence_id != exclude_residence_id,
                    JournalEntry.residence_id.is_(None),
                ),
            )
            .order_by(JournalEntry.entry_date, JournalEntry.id, JournalLine.line_no)
        )
        with use_session(self.session_factory, session) as db:
            return list(db.execute(stmt).scalars().all())

    def entries_for_account(
        self, account_code: str, session: Session | None = None
    ) -> list[JournalEntry]:
        """
        POSTED entries with at least one line on account_code.

        Always re-reads rows from the database, even inside a
        session that already holds them.
        """
        touching = select(JournalLine.entry_id).where(
            JournalLine.account_code == account_code
        )
        stmt = (
            select(JournalEntry)
            .options(selectinload(JournalEntry.lines))
            .where(
                JournalEntry.status == EntryStatus.POSTED,
                JournalEntry.id.in_(touching),
            )
            .order_by(JournalEntry.entry_date, JournalEntry.id)
            .execution_options(populate_existing=True)
        )
        with use_session(self.session_factory, session) as db:
            return list(db.execute(stmt).scalars().all())

    def lock_line(self, session: Session, line_id: int) -> JournalLine:
        """
        Re-read a line under SELECT ... FOR UPDATE.

        The row lock holds until the unit of work ends. Databases
        without row locks (SQLite) ignore FOR UPDATE.
        """
        return session.execute(
            select(JournalLine)
            .where(JournalLine.id == line_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one()
