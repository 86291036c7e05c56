from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Callable, Optional, Protocol, Sequence

from finance_api.date_range import compute_month_range
from finance_api.errors import InvalidMonth, InvalidYear
from finance_api.report_engine import MonthlyReport, Transaction, build_report

logger = logging.getLogger(__name__)


class TransactionRangeQuery(Protocol):
    def query_by_date_range(self, start: datetime, end: datetime) -> Sequence[Transaction]:
        ...


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class ReportService:
    def __init__(
        self,
        store: TransactionRangeQuery,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self.store = store
        self.clock = clock or utc_now

    def get_monthly_report(self, year: int, month: int) -> MonthlyReport:
        """Build the report for one calendar month.

        Year and month are validated before the store is queried. Store
        errors propagate unchanged and no partial report is produced.
        """
        try:
            start, end = compute_month_range(year, month, current_year=self.clock().year)
        except (InvalidYear, InvalidMonth) as exc:
            logger.warning("Rejected monthly report %s-%s: %s", year, month, exc)
            raise

        transactions = self.store.query_by_date_range(start, end)
        report = build_report(year, month, transactions)
        logger.info(
            "Built monthly report for %s %s with %d transactions",
            report.month_label,
            year,
            report.summary.transaction_count,
        )
        return report

    def get_current_month_report(self) -> MonthlyReport:
        now = self.clock()
        return self.get_monthly_report(now.year, now.month)
