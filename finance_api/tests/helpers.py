from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

from finance_api.transaction_store import TransactionStore


def memory_store(create_schema: bool = True) -> TransactionStore:
    """Store backed by a private in-memory SQLite database."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    store = TransactionStore(engine)
    if create_schema:
        store.create_schema()
    return store
