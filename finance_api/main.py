import logging
import time
from datetime import date, datetime, timezone
from decimal import Decimal

from fastapi import Depends, FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel
from sqlalchemy import create_engine

from finance_api.config import configure_logging, load_settings
from finance_api.errors import StoreUnavailable, TransactionNotFound
from finance_api.report_engine import MonthlyReport, Transaction
from finance_api.report_service import ReportService
from finance_api.transaction_service import (
    NewTransaction,
    TransactionChanges,
    TransactionKind,
    TransactionService,
    normalize_currency,
)
from finance_api.transaction_store import TransactionFilters, TransactionStore

APP_NAME = "personal-finance-api"
APP_VERSION = "1.0.0"
UNLOGGED_PATHS = {"/health"}

settings = load_settings()
configure_logging(settings.environment)
logger = logging.getLogger(__name__)

app = FastAPI(title="Personal Finance API", version=APP_VERSION)

app.add_middleware(
    CORSMiddleware,
    allow_origins=list(settings.cors_origins),
    allow_credentials="*" not in settings.cors_origins,
    allow_methods=["*"],
    allow_headers=["*"],
)

connect_args = {}
if settings.database_url.startswith("sqlite"):
    connect_args = {"check_same_thread": False}

engine = create_engine(settings.database_url, connect_args=connect_args)
transaction_store = TransactionStore(engine)


@app.on_event("startup")
def init_db() -> None:
    transaction_store.create_schema()
    logger.info(
        "Server starting on port %s (environment=%s, default currency=%s)",
        settings.port,
        settings.environment,
        settings.default_currency,
    )


@app.middleware("http")
async def log_requests(request: Request, call_next):
    started = time.perf_counter()
    response = await call_next(request)
    if request.url.path not in UNLOGGED_PATHS:
        logger.info(
            "%s %s -> %s (%.1f ms)",
            request.method,
            request.url.path,
            response.status_code,
            (time.perf_counter() - started) * 1000,
        )
    return response


def get_transaction_store() -> TransactionStore:
    return transaction_store


def get_transaction_service(
    store: TransactionStore = Depends(get_transaction_store),
) -> TransactionService:
    return TransactionService(store, settings.default_currency)


def get_report_service(
    store: TransactionStore = Depends(get_transaction_store),
) -> ReportService:
    return ReportService(store)


class TransactionPayload(BaseModel):
    type: str
    amount: Decimal
    currency: str | None = None
    description: str
    category: str
    date: str | None = None


class TransactionUpdatePayload(BaseModel):
    type: str | None = None
    amount: Decimal | None = None
    currency: str | None = None
    description: str | None = None
    category: str | None = None
    date: str | None = None


class TransactionResponse(BaseModel):
    id: int
    type: str
    amount: Decimal
    currency: str
    description: str
    category: str
    date: datetime
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @classmethod
    def from_transaction(cls, transaction: Transaction) -> "TransactionResponse":
        return cls(
            id=transaction.id,
            type=transaction.kind,
            amount=transaction.amount,
            currency=transaction.currency,
            description=transaction.description,
            category=transaction.category,
            date=transaction.occurred_at,
            created_at=transaction.created_at,
            updated_at=transaction.updated_at,
        )


class CategoryTotalResponse(BaseModel):
    count: int
    totals: dict[str, Decimal]


class ReportSummaryResponse(BaseModel):
    transaction_count: int
    income_count: int
    expense_count: int
    category_breakdown: dict[str, CategoryTotalResponse]


class MonthlyReportResponse(BaseModel):
    month_label: str
    year: int
    total_income: dict[str, Decimal]
    total_expense: dict[str, Decimal]
    balance: dict[str, Decimal]
    transactions: list[TransactionResponse]
    summary: ReportSummaryResponse

    @classmethod
    def from_report(cls, report: MonthlyReport) -> "MonthlyReportResponse":
        summary = report.summary
        return cls(
            month_label=report.month_label,
            year=report.year,
            total_income=report.total_income,
            total_expense=report.total_expense,
            balance=report.balance,
            transactions=[
                TransactionResponse.from_transaction(txn) for txn in report.transactions
            ],
            summary=ReportSummaryResponse(
                transaction_count=summary.transaction_count,
                income_count=summary.income_count,
                expense_count=summary.expense_count,
                category_breakdown={
                    category: CategoryTotalResponse(count=total.count, totals=total.totals)
                    for category, total in summary.category_breakdown.items()
                },
            ),
        )


class MessageResponse(BaseModel):
    message: str


@app.get("/health")
def health() -> dict:
    return {
        "status": "healthy",
        "service": APP_NAME,
        "version": APP_VERSION,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


@app.post("/api/v1/transactions", response_model=TransactionResponse, status_code=201)
def create_transaction(
    payload: TransactionPayload,
    service: TransactionService = Depends(get_transaction_service),
) -> TransactionResponse:
    try:
        transaction = service.create_transaction(
            NewTransaction(
                kind=payload.type,
                amount=payload.amount,
                currency=payload.currency,
                description=payload.description,
                category=payload.category,
                date=payload.date,
            )
        )
    except StoreUnavailable as exc:
        raise HTTPException(status_code=503, detail=str(exc)) from exc
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return TransactionResponse.from_transaction(transaction)


@app.get("/api/v1/transactions", response_model=list[TransactionResponse])
def list_transactions(
    kind: str | None = Query(None, alias="type"),
    category: str | None = Query(None),
    currency: str | None = Query(None),
    from_date: date | None = Query(None),
    to_date: date | None = Query(None),
    service: TransactionService = Depends(get_transaction_service),
) -> list[TransactionResponse]:
    try:
        filters = TransactionFilters(
            kind=TransactionKind.validate(kind) if kind else None,
            category=category.strip() if category else None,
            currency=normalize_currency(currency) if currency else None,
            from_date=from_date,
            to_date=to_date,
        )
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    if from_date and to_date and from_date > to_date:
        raise HTTPException(status_code=400, detail="from_date must be on or before to_date.")

    try:
        results = service.list_transactions(filters)
    except StoreUnavailable as exc:
        raise HTTPException(status_code=503, detail=str(exc)) from exc
    return [TransactionResponse.from_transaction(txn) for txn in results]


@app.get("/api/v1/transactions/{transaction_id}", response_model=TransactionResponse)
def get_transaction(
    transaction_id: int,
    service: TransactionService = Depends(get_transaction_service),
) -> TransactionResponse:
    try:
        transaction = service.get_transaction(transaction_id)
    except TransactionNotFound as exc:
        raise HTTPException(status_code=404, detail="Transaction not found.") from exc
    except StoreUnavailable as exc:
        raise HTTPException(status_code=503, detail=str(exc)) from exc
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return TransactionResponse.from_transaction(transaction)


@app.put("/api/v1/transactions/{transaction_id}", response_model=TransactionResponse)
def update_transaction(
    transaction_id: int,
    payload: TransactionUpdatePayload,
    service: TransactionService = Depends(get_transaction_service),
) -> TransactionResponse:
    try:
        transaction = service.update_transaction(
            transaction_id,
            TransactionChanges(
                kind=payload.type,
                amount=payload.amount,
                currency=payload.currency,
                description=payload.description,
                category=payload.category,
                date=payload.date,
            ),
        )
    except TransactionNotFound as exc:
        raise HTTPException(status_code=404, detail="Transaction not found.") from exc
    except StoreUnavailable as exc:
        raise HTTPException(status_code=503, detail=str(exc)) from exc
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return TransactionResponse.from_transaction(transaction)


@app.delete("/api/v1/transactions/{transaction_id}", response_model=MessageResponse)
def delete_transaction(
    transaction_id: int,
    service: TransactionService = Depends(get_transaction_service),
) -> MessageResponse:
    try:
        service.delete_transaction(transaction_id)
    except TransactionNotFound as exc:
        raise HTTPException(status_code=404, detail="Transaction not found.") from exc
    except StoreUnavailable as exc:
        raise HTTPException(status_code=503, detail=str(exc)) from exc
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return MessageResponse(message="Transaction deleted successfully")


@app.get("/api/v1/reports/monthly/{year}/{month}", response_model=MonthlyReportResponse)
def monthly_report(
    year: int,
    month: int,
    service: ReportService = Depends(get_report_service),
) -> MonthlyReportResponse:
    try:
        report = service.get_monthly_report(year, month)
    except StoreUnavailable as exc:
        raise HTTPException(status_code=503, detail=str(exc)) from exc
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return MonthlyReportResponse.from_report(report)


@app.get("/api/v1/reports/current-month", response_model=MonthlyReportResponse)
def current_month_report(
    service: ReportService = Depends(get_report_service),
) -> MonthlyReportResponse:
    try:
        report = service.get_current_month_report()
    except StoreUnavailable as exc:
        raise HTTPException(status_code=503, detail=str(exc)) from exc
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return MonthlyReportResponse.from_report(report)
