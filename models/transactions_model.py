#read access to transactions
from __future__ import annotations
from dataclasses import dataclass, asdict
from typing import Optional, List, Dict, Any, Tuple, TYPE_CHECKING
from datetime import datetime
from decimal import Decimal
import mysql.connector

from core.database import StoreFailure
from core.logging_setup import get_logger
from core.utils import QueryBuilder, to_utc
from models.card_model import last4_digits

if TYPE_CHECKING:
    from features.search import TransactionSearchRequest

logger = get_logger(__name__)

UNCATEGORIZED = "Uncategorized"

# ==========================
# Custom Exceptions
# ==========================

class TransactionError(StoreFailure):
    """Base class for transaction store exceptions."""


class TransactionValidationError(TransactionError):
    """Raised when a stored row does not fit the TransactionRecord shape."""


class DatabaseError(TransactionError):
    """Raised when a database-level error occurs."""


# ==========================
# Dataclass: TransactionRecord
# ==========================

def _optional_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value)
    return text if text else None


def _parse_occurred_at(value: Any) -> datetime:
    if isinstance(value, datetime):
        return to_utc(value)
    if isinstance(value, str):
        text = value.strip()
        if text.endswith(("Z", "z")):
            text = text[:-1] + "+00:00"
        return to_utc(datetime.fromisoformat(text))
    raise ValueError(f"unsupported timestamp {value!r}")


@dataclass(frozen=True)
class TransactionRecord:
    id: str
    kind: str
    amount: float
    occurred_at: datetime
    card_id: Optional[str] = None
    category: Optional[str] = None
    vendor: Optional[str] = None
    counterparty: Optional[str] = None
    description: Optional[str] = None
    card_name: Optional[str] = None
    card_last4: Optional[str] = None

    @property
    def category_label(self) -> str:
        """Category used for grouping; blank categories fall under Uncategorized."""
        return self.category or UNCATEGORIZED

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "TransactionRecord":
        """
        Validate one raw store row into a TransactionRecord.

        Raises:
            TransactionValidationError: If kind, amount or timestamp is unusable
        """
        row_id = row.get("id")
        kind = str(row.get("type") or "").strip().lower()
        if kind not in ("credit", "debit"):
            raise TransactionValidationError(f"Transaction {row_id}: invalid type {row.get('type')!r}")

        raw_amount = row.get("amount")
        try:
            amount = float(raw_amount) if isinstance(raw_amount, (int, float, Decimal, str)) else None
        except ValueError:
            amount = None
        if amount is None or not amount > 0:
            raise TransactionValidationError(f"Transaction {row_id}: amount must be > 0, got {raw_amount!r}")

        try:
            occurred_at = _parse_occurred_at(row.get("transaction_date"))
        except ValueError as e:
            raise TransactionValidationError(f"Transaction {row_id}: invalid transaction_date ({e})")

        return cls(
            id=str(row_id),
            kind=kind,
            amount=amount,
            occurred_at=occurred_at,
            card_id=_optional_text(row.get("card_id")),
            category=_optional_text(row.get("category")),
            vendor=_optional_text(row.get("vendor_name")),
            counterparty=_optional_text(row.get("client_partner_name")),
            description=_optional_text(row.get("description")),
            card_name=_optional_text(row.get("card_name")),
            card_last4=last4_digits(row.get("card_number")) or None,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a JSON-friendly dict for API responses."""
        data = asdict(self)
        data["occurred_at"] = self.occurred_at.isoformat()
        return data


# ==========================
# Model: TransactionModel
# ==========================

class TransactionModel:
    """Read-only access to the transactions table (joined with cards)."""

    BASE_QUERY = """
        SELECT
            t.id, t.type, t.amount, t.transaction_date, t.category,
            t.vendor_name, t.client_partner_name, t.description, t.card_id,
            c.card_name, c.card_number
        FROM transactions t
        LEFT JOIN cards c ON t.card_id = c.id
        WHERE 1=1
    """

    def __init__(self, connection: mysql.connector.MySQLConnection):
        self.conn = connection

    # ------------
    # Internal Helpers
    # ------------

    def _execute(self, query: str, params: Tuple = (), *, fetchone: bool = False):
        """Internal DB executor with error handling."""
        try:
            with self.conn.cursor(dictionary=True) as cursor:
                cursor.execute(query, params)
                return cursor.fetchone() if fetchone else cursor.fetchall()
        except mysql.connector.Error as e:
            raise DatabaseError(f"MySQL Error: {e}") from e

    # ------------
    # Reads
    # ------------

    def search(
        self,
        request: "TransactionSearchRequest",
        *,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
        with_count: bool = False
    ) -> Tuple[List[TransactionRecord], Optional[int]]:
        """
        Fetch transactions matching the request, newest first.

        Returns:
            (records, total) where total is the unpaginated match count
            when with_count is set, else None
        """
        builder = QueryBuilder(self.BASE_QUERY)
        request.apply_to(builder)

        total: Optional[int] = None
        if with_count:
            count_query = f"SELECT COUNT(*) AS total FROM ({builder.query}) AS count_subquery"
            count_row = self._execute(count_query, tuple(builder.params), fetchone=True)
            total = int(count_row["total"]) if count_row else 0

        builder.add_order_by("t.transaction_date DESC, t.id DESC")
        builder.add_limit_offset(limit, offset if limit is not None else None)

        query, params = builder.build()
        rows = self._execute(query, tuple(params))
        logger.debug("transactions_fetched rows=%d limit=%s offset=%s", len(rows), limit, offset)
        return [TransactionRecord.from_row(row) for row in rows], total
