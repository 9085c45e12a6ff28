"""
Account catalog: the chart of accounts.

Provides account lookups to the ledger store, the balance
sheet aggregator and the allocation engine, and provisions the
per-debtor accounts:

- receivable "<AR parent>-<debtor>" linked to the consolidated
  receivables account
- advance payment "<advance parent>-<debtor>" linked to the
  consolidated advance payment liability

Links are stored as explicit parent ids. Nothing downstream
ever groups accounts by code prefix.
"""

import structlog
from sqlalchemy import select
from sqlalchemy.orm import Session, sessionmaker

from residence_ledger.config import Settings, get_settings
from residence_ledger.models.account import Account
from residence_ledger.models.base import use_session
from residence_ledger.models.enums import AccountType, AccountCategory
from residence_ledger.schemas.ledger import AccountCreate

logger = structlog.get_logger(__name__)


class AccountCatalog:
    """
    Chart of accounts backed by the accounts table.

    Every method accepts an optional session so it can take
    part in a caller's unit of work; without one it opens and
    commits its own.
    """

    def __init__(
        self,
        session_factory: sessionmaker,
        settings: Settings | None = None,
    ):
        self.session_factory = session_factory
        self.settings = settings or get_settings()

    # --- Codes ---

    def receivable_code(self, debtor_id: str) -> str:
        return f"{self.settings.AR_PARENT_CODE}-{debtor_id}"

    def advance_payment_code(self, debtor_id: str) -> str:
        return f"{self.settings.ADVANCE_PAYMENT_PARENT_CODE}-{debtor_id}"

    # --- Lookups ---

    def get_by_code(
        self, code: str, session: Session | None = None
    ) -> Account | None:
        with use_session(self.session_factory, session) as db:
            return db.execute(
                select(Account).where(Account.code == code)
            ).scalar_one_or_none()

    def require(self, code: str, session: Session | None = None) -> Account:
        """Return the account or raise ValueError if it does not exist."""
        account = self.get_by_code(code, session=session)
        if account is None:
            raise ValueError(f"Account '{code}' not found")
        return account

    def get_many(
        self, codes, session: Session | None = None
    ) -> dict[str, Account]:
        with use_session(self.session_factory, session) as db:
            accounts = db.execute(
                select(Account).where(Account.code.in_(set(codes)))
            ).scalars().all()
            return {a.code: a for a in accounts}

    def all_accounts(self, session: Session | None = None) -> list[Account]:
        with use_session(self.session_factory, session) as db:
            accounts = db.execute(
                select(Account).order_by(Account.code)
            ).scalars().all()
            return list(accounts)

    def children_of(
        self, parent_code: str, session: Session | None = None
    ) -> list[Account]:
        """Accounts whose parent reference names parent_code's account."""
        with use_session(self.session_factory, session) as db:
            parent = self.get_by_code(parent_code, session=db)
            if parent is None:
                return []
            children = db.execute(
                select(Account)
                .where(Account.parent_id == parent.id)
                .order_by(Account.code)
            ).scalars().all()
            return list(children)

    # --- Provisioning ---

    def create_account(
        self, request: AccountCreate, session: Session | None = None
    ) -> Account:
        """
        Create a new chart account.

        Raises ValueError if the code already exists or the
        parent code does not.
        """
        with use_session(self.session_factory, session) as db:
            if self.get_by_code(request.code, session=db) is not None:
                raise ValueError(
                    f"Account with code '{request.code}' already exists"
                )

            parent_id = None
            if request.parent_code:
                parent = self.get_by_code(request.parent_code, session=db)
                if parent is None:
                    raise ValueError(
                        f"Parent account '{request.parent_code}' not found"
                    )
                parent_id = parent.id

            account = Account(
                code=request.code,
                name=request.name,
                account_type=request.account_type,
                category=request.category,
                parent_id=parent_id,
                opening_balance=request.opening_balance,
                opening_balance_date=request.opening_balance_date,
                is_company_wide=request.is_company_wide,
            )
            db.add(account)
            db.flush()

            logger.info(
                "account_created",
                code=account.code,
                account_type=account.account_type.value,
                parent_code=request.parent_code,
            )
            return account

    def ensure_account(
        self, request: AccountCreate, session: Session | None = None
    ) -> Account:
        """Return the account with request.code, creating it if missing."""
        with use_session(self.session_factory, session) as db:
            existing = self.get_by_code(request.code, session=db)
            if existing is not None:
                return existing
            return self.create_account(request, session=db)

    def ensure_debtor_accounts(
        self,
        debtor_id: str,
        debtor_name: str,
        session: Session | None = None,
    ) -> tuple[Account, Account]:
        """
        Provision a debtor's receivable and advance payment accounts.

        Both consolidated parents must already exist. Safe to call
        repeatedly.
        """
        if not debtor_id or not debtor_id.strip():
            raise ValueError("debtor_id is required")
        debtor_id = debtor_id.strip()

        with use_session(self.session_factory, session) as db:
            receivable = self.ensure_account(AccountCreate(
                code=self.receivable_code(debtor_id),
                name=f"Accounts Receivable - {debtor_name}",
                account_type=AccountType.ASSET,
                category=AccountCategory.CURRENT_ASSET,
                parent_code=self.settings.AR_PARENT_CODE,
            ), session=db)
            advance = self.ensure_advance_account(
                debtor_id, debtor_name, session=db
            )
            return receivable, advance

    def ensure_advance_account(
        self,
        debtor_id: str,
        debtor_name: str | None = None,
        session: Session | None = None,
    ) -> Account:
        with use_session(self.session_factory, session) as db:
            return self.ensure_account(AccountCreate(
                code=self.advance_payment_code(debtor_id),
                name=f"Advance Payment Liability - {debtor_name or debtor_id}",
                account_type=AccountType.LIABILITY,
                category=AccountCategory.CURRENT_LIABILITY,
                parent_code=self.settings.ADVANCE_PAYMENT_PARENT_CODE,
            ), session=db)

    def is_receivable(
        self, account: Account, session: Session | None = None
    ) -> bool:
        """True for the consolidated receivable or one of its children."""
        ar_parent = self.get_by_code(
            self.settings.AR_PARENT_CODE, session=session
        )
        if ar_parent is None:
            return False
        return account.id == ar_parent.id or account.parent_id == ar_parent.id
