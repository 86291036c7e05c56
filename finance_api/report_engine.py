from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Iterable, Optional

from finance_api.date_range import month_label

ZERO = Decimal("0")
INCOME = "income"
EXPENSE = "expense"


@dataclass(frozen=True)
class Transaction:
    id: int
    kind: str
    amount: Decimal
    currency: str
    category: str
    occurred_at: datetime
    description: str = ""
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


@dataclass(frozen=True)
class CategoryTotal:
    count: int
    totals: dict[str, Decimal] = field(default_factory=dict)


@dataclass(frozen=True)
class ReportSummary:
    transaction_count: int
    income_count: int
    expense_count: int
    category_breakdown: dict[str, CategoryTotal] = field(default_factory=dict)


@dataclass(frozen=True)
class MonthlyReport:
    month_label: str
    year: int
    total_income: dict[str, Decimal]
    total_expense: dict[str, Decimal]
    balance: dict[str, Decimal]
    transactions: tuple[Transaction, ...]
    summary: ReportSummary


def build_report(
    year: int,
    month: int,
    transactions: Iterable[Transaction],
) -> MonthlyReport:
    """Aggregate one month of transactions into per-currency totals.

    Amounts are never converted between currencies. Transactions are kept in
    the order they were received.
    """
    included = tuple(transactions)
    income: dict[str, Decimal] = {}
    expense: dict[str, Decimal] = {}
    category_counts: dict[str, int] = {}
    category_totals: dict[str, dict[str, Decimal]] = {}
    income_count = 0
    expense_count = 0

    for txn in included:
        amount = _coerce_amount(txn.amount)
        if txn.kind == INCOME:
            income[txn.currency] = income.get(txn.currency, ZERO) + amount
            income_count += 1
        else:
            expense[txn.currency] = expense.get(txn.currency, ZERO) + amount
            expense_count += 1

        if txn.category in category_counts:
            category_counts[txn.category] += 1
            totals = category_totals[txn.category]
            totals[txn.currency] = totals.get(txn.currency, ZERO) + amount
        else:
            category_counts[txn.category] = 1
            category_totals[txn.category] = {txn.currency: amount}

    balance = {
        currency: income.get(currency, ZERO) - expense.get(currency, ZERO)
        for currency in _all_currencies(income, expense)
    }
    category_breakdown = {
        category: CategoryTotal(count=count, totals=category_totals[category])
        for category, count in category_counts.items()
    }

    return MonthlyReport(
        month_label=month_label(month),
        year=year,
        total_income=income,
        total_expense=expense,
        balance=balance,
        transactions=included,
        summary=ReportSummary(
            transaction_count=len(included),
            income_count=income_count,
            expense_count=expense_count,
            category_breakdown=category_breakdown,
        ),
    )


def _all_currencies(*totals: dict[str, Decimal]) -> list[str]:
    currencies: list[str] = []
    for mapping in totals:
        for currency in mapping:
            if currency not in currencies:
                currencies.append(currency)
    return currencies


def _coerce_amount(amount: Decimal) -> Decimal:
    if isinstance(amount, Decimal):
        return amount
    return Decimal(str(amount))
