"""
Chart of accounts model.

Every account the ledger posts to (cash, consolidated
receivables, per-debtor receivables, advance payments,
owner capital, rental income) is a row here. Parent/child
links are explicit foreign keys, never inferred from codes.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import (
    String, Boolean, Date, DateTime, Numeric, ForeignKey,
    Enum as SAEnum,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from residence_ledger.models.base import Base
from residence_ledger.models.enums import AccountType, AccountCategory


class Account(Base):
    """
    A single account in the chart of accounts.

    The opening balance is expressed on the account's normal
    side (debit for assets and expenses, credit otherwise) and
    only counts once the report date reaches
    opening_balance_date.
    """

    __tablename__ = "accounts"

    id: Mapped[int] = mapped_column(primary_key=True)
    code: Mapped[str] = mapped_column(
        String(64), unique=True, nullable=False
    )
    name: Mapped[str] = mapped_column(String(150), nullable=False)
    account_type: Mapped[AccountType] = mapped_column(
        SAEnum(AccountType, name="account_type_enum"),
        nullable=False,
    )
    category: Mapped[AccountCategory | None] = mapped_column(
        SAEnum(
            AccountCategory,
            name="account_category_enum",
            values_callable=lambda members: [m.value for m in members],
        ),
        nullable=True,
    )
    parent_id: Mapped[int | None] = mapped_column(
        ForeignKey("accounts.id"), nullable=True, index=True
    )
    opening_balance: Mapped[Decimal] = mapped_column(
        Numeric(19, 4), nullable=False, default=Decimal("0")
    )
    opening_balance_date: Mapped[date | None] = mapped_column(
        Date, nullable=True
    )
    is_active: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=True
    )
    is_company_wide: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=datetime.utcnow
    )

    parent: Mapped[Optional["Account"]] = relationship(
        remote_side="Account.id", back_populates="children"
    )
    children: Mapped[list["Account"]] = relationship(
        back_populates="parent"
    )

    def __repr__(self) -> str:
        return f"<Account {self.code} ({self.account_type.value})>"
