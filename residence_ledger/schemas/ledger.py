"""
Pydantic schemas for the chart of accounts and journal entries.

These define the contract for provisioning accounts and posting
entries, separate from the database models because the API shape
and the storage shape differ (accounts are referenced by code
here, by id in storage).
"""

import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, Field, field_validator, model_validator

from residence_ledger.models.enums import (
    AccountType,
    AccountCategory,
    EntrySource,
    EntryStatus,
)


# --- Request Schemas ---

class AccountCreate(BaseModel):
    """Request to create a chart account."""
    code: str = Field(min_length=1, max_length=64)
    name: str = Field(min_length=1, max_length=150)
    account_type: AccountType
    category: AccountCategory | None = None
    parent_code: str | None = None
    opening_balance: Decimal = Decimal("0")
    opening_balance_date: date | None = None
    is_company_wide: bool = False

    @model_validator(mode="after")
    def opening_balance_needs_date(self) -> "AccountCreate":
        if self.opening_balance != 0 and self.opening_balance_date is None:
            raise ValueError("opening_balance requires opening_balance_date")
        return self


class DebtorAccountsCreate(BaseModel):
    """Request to provision a debtor's receivable and advance accounts."""
    debtor_name: str = Field(min_length=1, max_length=120)


class JournalLineCreate(BaseModel):
    """A single debit or credit line, referencing an account by code."""
    account_code: str = Field(min_length=1, max_length=64)
    debit: Decimal = Field(default=Decimal("0"), ge=0)
    credit: Decimal = Field(default=Decimal("0"), ge=0)
    description: str | None = Field(default=None, max_length=255)

    @model_validator(mode="after")
    def exactly_one_side(self) -> "JournalLineCreate":
        if (self.debit > 0) == (self.credit > 0):
            raise ValueError(
                "a line must carry either a debit or a credit, not both"
            )
        return self


class JournalEntryCreate(BaseModel):
    """
    A complete journal entry: lines that must balance.

    The client may provide a transaction_id (UUID) so that
    retries with the same ID are idempotent.
    """
    transaction_id: uuid.UUID = Field(default_factory=uuid.uuid4)
    entry_date: date
    description: str = Field(min_length=1, max_length=255)
    source: EntrySource = EntrySource.MANUAL
    residence_id: str | None = Field(default=None, max_length=64)
    debtor_id: str | None = Field(default=None, max_length=64)
    metadata: dict[str, Any] = Field(default_factory=dict)
    lines: list[JournalLineCreate] = Field(min_length=2)

    @field_validator("lines")
    @classmethod
    def must_have_debits_and_credits(cls, v: list) -> list:
        if not any(line.debit > 0 for line in v) or not any(
            line.credit > 0 for line in v
        ):
            raise ValueError(
                "entry must contain at least one debit and one credit"
            )
        return v


# --- Response Schemas ---

class AccountResponse(BaseModel):
    """Chart account in API responses."""
    id: int
    code: str
    name: str
    account_type: AccountType
    category: AccountCategory | None
    parent_id: int | None
    opening_balance: Decimal
    opening_balance_date: date | None
    is_active: bool
    is_company_wide: bool
    created_at: datetime

    model_config = {"from_attributes": True}


class JournalLineResponse(BaseModel):
    id: int
    line_no: int
    account_code: str
    account_name: str
    account_type: AccountType
    debit: Decimal
    credit: Decimal
    outstanding: Decimal | None
    description: str | None

    model_config = {"from_attributes": True}


class JournalEntryResponse(BaseModel):
    """Journal entry in API responses."""
    id: int
    transaction_id: uuid.UUID
    entry_date: date
    status: EntryStatus
    source: EntrySource
    description: str
    residence_id: str | None
    debtor_id: str | None
    entry_metadata: dict[str, Any]
    lines: list[JournalLineResponse]

    model_config = {"from_attributes": True}
