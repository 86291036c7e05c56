from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Callable, Optional

from finance_api.report_engine import EXPENSE, INCOME, Transaction
from finance_api.report_service import utc_now
from finance_api.transaction_store import (
    AMOUNT_PRECISION,
    AMOUNT_SCALE,
    TransactionFilters,
    TransactionStore,
)

logger = logging.getLogger(__name__)

MAX_AMOUNT = Decimal(10) ** (AMOUNT_PRECISION - AMOUNT_SCALE)


class TransactionKind:
    values = {INCOME, EXPENSE}

    @classmethod
    def validate(cls, value: str) -> str:
        normalized = value.strip().lower()
        if normalized not in cls.values:
            raise ValueError("Transaction type must be 'expense' or 'income'.")
        return normalized


@dataclass
class NewTransaction:
    kind: str
    amount: Decimal
    description: str
    category: str
    currency: Optional[str] = None
    date: Optional[str] = None


@dataclass
class TransactionChanges:
    kind: Optional[str] = None
    amount: Optional[Decimal] = None
    currency: Optional[str] = None
    description: Optional[str] = None
    category: Optional[str] = None
    date: Optional[str] = None


def normalize_currency(value: str) -> str:
    normalized = value.strip().upper()
    if len(normalized) != 3 or not normalized.isalpha():
        raise ValueError("Currency must be a valid 3-letter ISO code (e.g., USD, ARS, EUR).")
    return normalized


def parse_transaction_date(
    value: Optional[str],
    clock: Callable[[], datetime] = utc_now,
) -> datetime:
    if value is None:
        return clock()
    try:
        parsed = datetime.strptime(value.strip(), "%Y-%m-%d")
    except ValueError as exc:
        raise ValueError("Invalid date format, use YYYY-MM-DD.") from exc
    return parsed.replace(tzinfo=timezone.utc)


def _validate_amount(amount: Decimal) -> Decimal:
    if not amount.is_finite() or amount <= 0:
        raise ValueError("Amount must be greater than zero.")
    if amount.normalize().as_tuple().exponent < -AMOUNT_SCALE:
        raise ValueError(f"Amount must have at most {AMOUNT_SCALE} decimal places.")
    if amount >= MAX_AMOUNT:
        raise ValueError(f"Amount must be less than {MAX_AMOUNT:,.0f}.")
    return amount


def _require_text(value: str, field_name: str) -> str:
    stripped = value.strip()
    if not stripped:
        raise ValueError(f"{field_name} is required.")
    return stripped


def _validate_id(transaction_id: int) -> None:
    if transaction_id <= 0:
        raise ValueError("Invalid transaction ID.")


class TransactionService:
    def __init__(
        self,
        store: TransactionStore,
        default_currency: str,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self.store = store
        self.default_currency = normalize_currency(default_currency)
        self.clock = clock or utc_now

    def create_transaction(self, payload: NewTransaction) -> Transaction:
        kind = TransactionKind.validate(payload.kind)
        amount = _validate_amount(payload.amount)
        description = _require_text(payload.description, "Description")
        category = _require_text(payload.category, "Category")
        currency = (
            normalize_currency(payload.currency)
            if payload.currency and payload.currency.strip()
            else self.default_currency
        )
        occurred_at = parse_transaction_date(payload.date, self.clock)

        transaction = self.store.create(
            kind=kind,
            amount=amount,
            currency=currency,
            description=description,
            category=category,
            occurred_at=occurred_at,
        )
        logger.info("Created %s transaction %s", transaction.kind, transaction.id)
        return transaction

    def get_transaction(self, transaction_id: int) -> Transaction:
        _validate_id(transaction_id)
        return self.store.get(transaction_id)

    def list_transactions(self, filters: Optional[TransactionFilters] = None) -> list[Transaction]:
        return self.store.find(filters)

    def update_transaction(self, transaction_id: int, payload: TransactionChanges) -> Transaction:
        """Apply only the fields present on ``payload``."""
        _validate_id(transaction_id)
        changes: dict[str, Any] = {}
        if payload.kind is not None:
            changes["kind"] = TransactionKind.validate(payload.kind)
        if payload.amount is not None:
            changes["amount"] = _validate_amount(payload.amount)
        if payload.currency is not None:
            changes["currency"] = normalize_currency(payload.currency)
        if payload.description is not None:
            changes["description"] = _require_text(payload.description, "Description")
        if payload.category is not None:
            changes["category"] = _require_text(payload.category, "Category")
        if payload.date is not None:
            changes["occurred_at"] = parse_transaction_date(payload.date, self.clock)

        if not changes:
            return self.store.get(transaction_id)
        transaction = self.store.update(transaction_id, changes)
        logger.info("Updated transaction %s", transaction_id)
        return transaction

    def delete_transaction(self, transaction_id: int) -> None:
        _validate_id(transaction_id)
        self.store.delete(transaction_id)
        logger.info("Deleted transaction %s", transaction_id)
