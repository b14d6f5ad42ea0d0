import sqlite3
from abc import ABC, abstractmethod
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

from gemledger import db
from gemledger.models import ActivityLogEntry


class Repository(ABC):
    """Persistence operations the revert engine issues against the stores."""

    @abstractmethod
    def transaction(self) -> Any:
        """Context manager grouping the following calls into one atomic unit."""
        raise NotImplementedError

    @abstractmethod
    def get_activity_log_entry(self, log_id: int) -> ActivityLogEntry | None:
        raise NotImplementedError

    @abstractmethod
    def get_record(self, record_kind: str, record_id: str) -> Any | None:
        """Returns the invoice, order or expense, or None when it is gone."""
        raise NotImplementedError

    @abstractmethod
    def restock_product(self, sku: str) -> bool:
        raise NotImplementedError

    @abstractmethod
    def delete_ledger_entries_by_source(self, source_ref: str) -> int:
        raise NotImplementedError

    @abstractmethod
    def delete_record(self, record_kind: str, record_id: str) -> None:
        raise NotImplementedError

    @abstractmethod
    def mark_reverted(self, log_id: int) -> bool:
        """Returns False when another revert already consumed the log entry."""
        raise NotImplementedError


class SQLiteRepository(Repository):
    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn
        self._loaders = {
            "invoice": db.get_invoice,
            "order": db.get_order,
            "expense": db.get_expense,
        }
        self._deleters = {
            "invoice": db.delete_invoice,
            "order": db.delete_order,
            "expense": db.delete_expense,
        }

    @contextmanager
    def transaction(self) -> Iterator[None]:
        with self.conn:
            yield

    def get_activity_log_entry(self, log_id: int) -> ActivityLogEntry | None:
        return db.get_activity_log_entry(self.conn, log_id)

    def get_record(self, record_kind: str, record_id: str) -> Any | None:
        return self._loaders[record_kind](self.conn, record_id)

    def restock_product(self, sku: str) -> bool:
        return db.set_product_sold(self.conn, sku, False, commit=False)

    def delete_ledger_entries_by_source(self, source_ref: str) -> int:
        return db.delete_ledger_entries_by_source(self.conn, source_ref, commit=False)

    def delete_record(self, record_kind: str, record_id: str) -> None:
        self._deleters[record_kind](self.conn, record_id, commit=False)

    def mark_reverted(self, log_id: int) -> bool:
        return db.mark_activity_reverted(self.conn, log_id, commit=False)
