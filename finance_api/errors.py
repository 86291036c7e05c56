from __future__ import annotations


class InvalidYear(ValueError):
    """Raised when a report year falls outside the supported window."""


class InvalidMonth(ValueError):
    """Raised when a report month is not between 1 and 12."""


class StoreUnavailable(RuntimeError):
    """Raised when the transaction store cannot be reached."""


class TransactionNotFound(LookupError):
    def __init__(self, transaction_id: int) -> None:
        super().__init__(f"Transaction {transaction_id} not found.")
        self.transaction_id = transaction_id
