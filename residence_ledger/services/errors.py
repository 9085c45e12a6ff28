"""
Exceptions raised by ledger services.

Input problems are ValueErrors, like everywhere else in the
services, so the HTTP layer maps them to 400/404 uniformly.
"""


class UnknownDebtorError(ValueError):
    """The debtor has no receivable account in the chart."""

    def __init__(self, debtor_id: str):
        super().__init__(f"Debtor '{debtor_id}' has no receivable account")
        self.debtor_id = debtor_id


class AllocationCommitError(Exception):
    """
    The allocation's unit of work could not be committed.

    Nothing was written; the caller may retry the same payment.
    """

    retryable = True

    def __init__(self, debtor_id: str, allocation_id: str, cause: Exception):
        super().__init__(
            f"Allocation {allocation_id} for debtor '{debtor_id}' "
            f"was rolled back: {cause}"
        )
        self.debtor_id = debtor_id
        self.allocation_id = allocation_id
        self.cause = cause
