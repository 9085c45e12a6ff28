"""
Monthly balance sheet builder.

Runs the aggregator at each month-end of a year. Months are
independent reads, so they run in parallel on a thread pool. A
month that fails is returned as a zeroed placeholder carrying
the error instead of failing the whole year.
"""

import calendar
from concurrent.futures import ThreadPoolExecutor, as_completed
from datetime import date
from decimal import Decimal

import structlog

from residence_ledger.config import Settings, get_settings
from residence_ledger.schemas.balance_sheet import (
    AnnualBalanceSheet,
    AnnualSummary,
    BalanceSheet,
    MonthlyBalanceSheet,
)
from residence_ledger.schemas.common import LedgerWarning, WarningCode
from residence_ledger.services.balance_sheet_service import (
    BalanceSheetService,
    quantize,
)

logger = structlog.get_logger(__name__)

MONTHS_IN_YEAR = 12


def month_end(year: int, month: int) -> date:
    return date(year, month, calendar.monthrange(year, month)[1])


class MonthlyBalanceSheetService:

    def __init__(
        self,
        balance_sheets: BalanceSheetService,
        settings: Settings | None = None,
    ):
        self.balance_sheets = balance_sheets
        self.settings = settings or get_settings()

    def generate_year(
        self, year: int, residence_id: str | None = None
    ) -> AnnualBalanceSheet:
        """
        Build the twelve month-end balance sheets of a year.

        Raises ValueError for an invalid year. Individual month
        failures are reported on the month, not raised.
        """
        if isinstance(year, bool) or not isinstance(year, int):
            raise ValueError(f"year must be an integer, got {year!r}")
        if not 1 <= year <= 9999:
            raise ValueError(f"year {year} is out of range")

        log = logger.bind(year=year, residence_id=residence_id)
        months: dict[int, MonthlyBalanceSheet] = {}

        workers = max(1, min(self.settings.MONTHLY_WORKERS, MONTHS_IN_YEAR))
        with ThreadPoolExecutor(max_workers=workers) as pool:
            futures = {
                pool.submit(
                    self.balance_sheets.compute_balance_sheet,
                    month_end(year, month),
                    residence_id,
                ): month
                for month in range(1, MONTHS_IN_YEAR + 1)
            }
            for future in as_completed(futures):
                month = futures[future]
                period_end = month_end(year, month)
                try:
                    sheet = future.result()
                except Exception as exc:
                    log.error(
                        "monthly_balance_sheet_failed",
                        month=month,
                        period_end=period_end.isoformat(),
                        error=str(exc),
                        exc_info=True,
                    )
                    error = f"{type(exc).__name__}: {exc}"
                    placeholder = BalanceSheet.empty(period_end, residence_id)
                    placeholder.warnings.append(LedgerWarning(
                        code=WarningCode.MONTH_FAILED,
                        message=f"{calendar.month_name[month]} {year} failed: {error}",
                    ))
                    months[month] = MonthlyBalanceSheet(
                        month=month,
                        month_name=calendar.month_name[month],
                        period_end=period_end,
                        status="failed",
                        error=error,
                        balance_sheet=placeholder,
                    )
                    continue

                months[month] = MonthlyBalanceSheet(
                    month=month,
                    month_name=calendar.month_name[month],
                    period_end=period_end,
                    status="ok",
                    balance_sheet=sheet,
                )

        monthly = [months[month] for month in sorted(months)]
        summary = self._annual_summary(monthly)
        log.info(
            "annual_balance_sheet_generated",
            months_failed=summary.months_failed,
            average_total_assets=str(summary.average_total_assets),
        )
        return AnnualBalanceSheet(
            year=year,
            residence_id=residence_id,
            monthly=monthly,
            annual_summary=summary,
        )

    @staticmethod
    def _annual_summary(monthly: list[MonthlyBalanceSheet]) -> AnnualSummary:
        """Mean of the twelve month-end figures; failed months count as zero."""

        def mean(pick) -> Decimal:
            total = sum((pick(m.balance_sheet) for m in monthly), Decimal("0"))
            return quantize(total / MONTHS_IN_YEAR)

        return AnnualSummary(
            average_total_assets=mean(lambda s: s.assets.total),
            average_total_liabilities=mean(lambda s: s.liabilities.total),
            average_total_equity=mean(lambda s: s.equity.total),
            average_current_assets=mean(lambda s: s.assets.total_current),
            average_non_current_assets=mean(lambda s: s.assets.total_non_current),
            average_current_liabilities=mean(
                lambda s: s.liabilities.total_current
            ),
            average_non_current_liabilities=mean(
                lambda s: s.liabilities.total_non_current
            ),
            months_failed=sum(1 for m in monthly if m.status == "failed"),
        )
