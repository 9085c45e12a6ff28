"""
Journal entry and line item models.

A journal entry is one balanced business event: a rent
accrual, a payment settling that accrual, an advance payment,
a deposit. Its lines carry the debits and credits. Entries
are append-only: once posted, only their status (voiding) and,
for accruals, the receivable line's outstanding figure and the
allocation audit trail in metadata ever change.
"""

import uuid
from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import (
    JSON, String, Date, DateTime, Numeric, Integer, ForeignKey, Index,
    Enum as SAEnum, Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from residence_ledger.models.base import Base
from residence_ledger.models.enums import (
    AccountType,
    EntrySource,
    EntryStatus,
)


class JournalEntry(Base):
    """
    A balanced group of line items posted on one date.

    version_id is SQLAlchemy's optimistic concurrency counter:
    two sessions updating the same accrual cannot both commit,
    the second one fails with StaleDataError.
    """

    __tablename__ = "journal_entries"

    id: Mapped[int] = mapped_column(primary_key=True)
    transaction_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, nullable=False, unique=True, default=uuid.uuid4
    )
    entry_date: Mapped[date] = mapped_column(Date, nullable=False)
    status: Mapped[EntryStatus] = mapped_column(
        SAEnum(EntryStatus, name="entry_status_enum"),
        nullable=False,
        default=EntryStatus.POSTED,
    )
    source: Mapped[EntrySource] = mapped_column(
        SAEnum(EntrySource, name="entry_source_enum"),
        nullable=False,
        default=EntrySource.MANUAL,
    )
    description: Mapped[str] = mapped_column(
        String(255), nullable=False
    )
    residence_id: Mapped[str | None] = mapped_column(
        String(64), nullable=True
    )
    debtor_id: Mapped[str | None] = mapped_column(
        String(64), nullable=True, index=True
    )
    # "metadata" is reserved on declarative classes
    entry_metadata: Mapped[dict] = mapped_column(
        "metadata", JSON, nullable=False, default=dict
    )
    version_id: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=datetime.utcnow
    )

    lines: Mapped[list["JournalLine"]] = relationship(
        back_populates="entry",
        order_by="JournalLine.line_no",
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        Index(
            "ix_journal_entries_entry_date_status_residence",
            "entry_date", "status", "residence_id",
        ),
    )
    __mapper_args__ = {"version_id_col": version_id}

    @property
    def total_debit(self) -> Decimal:
        return sum((line.debit for line in self.lines), Decimal("0"))

    @property
    def total_credit(self) -> Decimal:
        return sum((line.credit for line in self.lines), Decimal("0"))

    def __repr__(self) -> str:
        return (
            f"<JournalEntry {self.id} {self.source.value} "
            f"{self.entry_date} {self.status.value}>"
        )


class JournalLine(Base):
    """
    One debit or credit against an account.

    outstanding is only set on receivable debit lines of
    accrual entries: it starts equal to the debit and is
    decremented by the allocation engine as settlements post.
    debit and credit themselves never change after posting.
    """

    __tablename__ = "journal_lines"

    id: Mapped[int] = mapped_column(primary_key=True)
    entry_id: Mapped[int] = mapped_column(
        ForeignKey("journal_entries.id"), nullable=False, index=True
    )
    line_no: Mapped[int] = mapped_column(Integer, nullable=False)
    account_code: Mapped[str] = mapped_column(
        String(64), nullable=False, index=True
    )
    account_name: Mapped[str] = mapped_column(
        String(150), nullable=False
    )
    account_type: Mapped[AccountType] = mapped_column(
        SAEnum(AccountType, name="account_type_enum"),
        nullable=False,
    )
    debit: Mapped[Decimal] = mapped_column(
        Numeric(19, 4), nullable=False, default=Decimal("0")
    )
    credit: Mapped[Decimal] = mapped_column(
        Numeric(19, 4), nullable=False, default=Decimal("0")
    )
    outstanding: Mapped[Decimal | None] = mapped_column(
        Numeric(19, 4), nullable=True
    )
    description: Mapped[str | None] = mapped_column(
        String(255), nullable=True
    )

    entry: Mapped["JournalEntry"] = relationship(back_populates="lines")

    def __repr__(self) -> str:
        return (
            f"<JournalLine {self.account_code} "
            f"Dr {self.debit} Cr {self.credit}>"
        )
