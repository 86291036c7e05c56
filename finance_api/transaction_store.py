from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from decimal import Decimal
from typing import Any, Iterator, Mapping, Optional

from sqlalchemy import (
    Column,
    DateTime,
    Integer,
    MetaData,
    Numeric,
    String,
    Table,
    insert,
    select,
    update,
)
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import SQLAlchemyError

from finance_api.errors import StoreUnavailable, TransactionNotFound
from finance_api.report_engine import Transaction

logger = logging.getLogger(__name__)

metadata = MetaData()

AMOUNT_PRECISION = 12
AMOUNT_SCALE = 2

transactions = Table(
    "transactions",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("kind", String(20), nullable=False),
    Column("amount", Numeric(AMOUNT_PRECISION, AMOUNT_SCALE), nullable=False),
    Column("currency", String(3), nullable=False),
    Column("description", String(500), nullable=False, default=""),
    Column("category", String(255), nullable=False),
    Column("occurred_at", DateTime, nullable=False, index=True),
    Column("created_at", DateTime, nullable=False),
    Column("updated_at", DateTime, nullable=False),
)

UPDATABLE_FIELDS = {"kind", "amount", "currency", "description", "category", "occurred_at"}


@dataclass(frozen=True)
class TransactionFilters:
    kind: Optional[str] = None
    category: Optional[str] = None
    currency: Optional[str] = None
    from_date: Optional[date] = None
    to_date: Optional[date] = None


class TransactionStore:
    """SQL-backed transaction records.

    Every call runs in its own database transaction, so a reader sees a
    record either whole or not at all. Timestamps are stored as naive UTC
    and handed back as aware UTC datetimes.
    """

    def __init__(self, engine: Engine) -> None:
        self.engine = engine

    def create_schema(self) -> None:
        with self._begin() as conn:
            metadata.create_all(conn)

    def create(
        self,
        *,
        kind: str,
        amount: Decimal,
        currency: str,
        description: str,
        category: str,
        occurred_at: datetime,
    ) -> Transaction:
        now = _to_storage(datetime.now(timezone.utc))
        with self._begin() as conn:
            result = conn.execute(
                insert(transactions).values(
                    kind=kind,
                    amount=amount,
                    currency=currency,
                    description=description,
                    category=category,
                    occurred_at=_to_storage(occurred_at),
                    created_at=now,
                    updated_at=now,
                )
            )
            transaction_id = result.inserted_primary_key[0]
            created = self._fetch(conn, transaction_id)
        logger.debug(
            "Created transaction %s (%s %s %s, category=%s)",
            created.id,
            created.kind,
            created.amount,
            created.currency,
            created.category,
        )
        return created

    def get(self, transaction_id: int) -> Transaction:
        with self._begin() as conn:
            return self._fetch(conn, transaction_id)

    def find(self, filters: Optional[TransactionFilters] = None) -> list[Transaction]:
        filters = filters or TransactionFilters()
        stmt = select(transactions).order_by(transactions.c.id.asc())
        if filters.kind:
            stmt = stmt.where(transactions.c.kind == filters.kind)
        if filters.category:
            stmt = stmt.where(transactions.c.category == filters.category)
        if filters.currency:
            stmt = stmt.where(transactions.c.currency == filters.currency)
        if filters.from_date is not None:
            stmt = stmt.where(
                transactions.c.occurred_at >= datetime.combine(filters.from_date, time.min)
            )
        if filters.to_date is not None:
            next_day = datetime.combine(filters.to_date + timedelta(days=1), time.min)
            stmt = stmt.where(transactions.c.occurred_at < next_day)
        with self._begin() as conn:
            rows = conn.execute(stmt).mappings().all()
        logger.debug("Listed %d transactions with %s", len(rows), filters)
        return [_row_to_transaction(row) for row in rows]

    def query_by_date_range(self, start: datetime, end: datetime) -> list[Transaction]:
        """Return every transaction with ``start <= occurred_at <= end``, ordered by id."""
        stmt = (
            select(transactions)
            .where(
                transactions.c.occurred_at >= _to_storage(start),
                transactions.c.occurred_at <= _to_storage(end),
            )
            .order_by(transactions.c.id.asc())
        )
        with self._begin() as conn:
            rows = conn.execute(stmt).mappings().all()
        logger.debug(
            "Found %d transactions between %s and %s",
            len(rows),
            start.isoformat(),
            end.isoformat(),
        )
        return [_row_to_transaction(row) for row in rows]

    def update(self, transaction_id: int, changes: Mapping[str, Any]) -> Transaction:
        unknown = set(changes) - UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Cannot update fields: {', '.join(sorted(unknown))}.")
        values = dict(changes)
        if "occurred_at" in values:
            values["occurred_at"] = _to_storage(values["occurred_at"])
        values["updated_at"] = _to_storage(datetime.now(timezone.utc))
        with self._begin() as conn:
            result = conn.execute(
                update(transactions)
                .where(transactions.c.id == transaction_id)
                .values(**values)
            )
            if result.rowcount == 0:
                raise TransactionNotFound(transaction_id)
            updated = self._fetch(conn, transaction_id)
        logger.debug("Updated transaction %s fields %s", transaction_id, sorted(changes))
        return updated

    def delete(self, transaction_id: int) -> None:
        stmt = transactions.delete().where(transactions.c.id == transaction_id)
        with self._begin() as conn:
            result = conn.execute(stmt)
            if result.rowcount == 0:
                raise TransactionNotFound(transaction_id)
        logger.debug("Deleted transaction %s", transaction_id)

    @contextmanager
    def _begin(self) -> Iterator[Connection]:
        try:
            with self.engine.begin() as conn:
                yield conn
        except SQLAlchemyError as exc:
            logger.error("Transaction store failure: %s", exc)
            raise StoreUnavailable("Transaction store unavailable.") from exc

    @staticmethod
    def _fetch(conn: Connection, transaction_id: int) -> Transaction:
        row = conn.execute(
            select(transactions).where(transactions.c.id == transaction_id)
        ).mappings().first()
        if not row:
            raise TransactionNotFound(transaction_id)
        return _row_to_transaction(row)


def _row_to_transaction(row: Mapping[str, Any]) -> Transaction:
    return Transaction(
        id=row["id"],
        kind=row["kind"],
        amount=_coerce_decimal(row["amount"]),
        currency=row["currency"],
        category=row["category"],
        occurred_at=_from_storage(row["occurred_at"]),
        description=row["description"] or "",
        created_at=_from_storage(row["created_at"]),
        updated_at=_from_storage(row["updated_at"]),
    )


def _to_storage(value: datetime) -> datetime:
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    # The monthly range ends at hh:59:59, so sub-second parts would fall outside it.
    return value.replace(microsecond=0)


def _from_storage(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _coerce_decimal(value: Decimal | float | int | str) -> Decimal:
    return value if isinstance(value, Decimal) else Decimal(str(value))
