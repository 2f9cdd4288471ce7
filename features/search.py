"""
Search and Filter Service for the Expense Report Service

This module turns request parameters into one transaction predicate and
runs it against the row store:
- Date range (inclusive bounds, each optional)
- Card (exact match)
- Kind (credit / debit)
- Free text (case-insensitive, OR'd across vendor, counterparty, description)

The same TransactionSearchRequest feeds the listing endpoint, both report
aggregations and every export, so all of them see the same rows.
"""

from __future__ import annotations
from typing import Optional, Dict, Any, List, Tuple
from datetime import datetime
from dataclasses import dataclass, field

from core.logging_setup import get_logger
from core.utils import (
    DateRangeValidator,
    QueryBuilder,
    InputSanitizer,
    ValidationPatterns,
    PaginationHelper,
    FormatHelper
)
from models.transactions_model import TransactionModel, TransactionRecord
from models.card_model import CardModel, CardRecord

logger = get_logger(__name__)

# record attribute -> SQL column
SEARCHABLE_FIELDS: Dict[str, str] = {
    'vendor': 't.vendor_name',
    'counterparty': 't.client_partner_name',
    'description': 't.description',
}

MAX_SEARCH_LENGTH = 500


@dataclass(frozen=True)
class DateFilter:
    start: Optional[str] = None
    end: Optional[str] = None
    lower: Optional[datetime] = None
    upper: Optional[datetime] = None

    @property
    def active(self) -> bool:
        return bool(self.start or self.end)


@dataclass(frozen=True)
class TextSearchFilter:
    search_text: Optional[str] = None
    search_fields: Tuple[str, ...] = tuple(SEARCHABLE_FIELDS)


@dataclass(frozen=True)
class CardFilter:
    card_id: Optional[str] = None


@dataclass(frozen=True)
class TransactionTypeFilter:
    kind: Optional[str] = None


@dataclass(frozen=True)
class TransactionSearchRequest:
    date: DateFilter = field(default_factory=DateFilter)
    text: TextSearchFilter = field(default_factory=TextSearchFilter)
    card: CardFilter = field(default_factory=CardFilter)
    tx_type: TransactionTypeFilter = field(default_factory=TransactionTypeFilter)

    def matches(self, record: TransactionRecord) -> bool:
        """Evaluate the predicate against one record in process."""
        if self.date.lower and record.occurred_at < self.date.lower:
            return False
        if self.date.upper and record.occurred_at >= self.date.upper:
            return False
        if self.card.card_id is not None and record.card_id != self.card.card_id:
            return False
        if self.tx_type.kind is not None and record.kind != self.tx_type.kind:
            return False
        if self.text.search_text:
            needle = self.text.search_text.lower()
            haystacks = [getattr(record, name) or "" for name in self.text.search_fields]
            if not any(needle in value.lower() for value in haystacks):
                return False
        return True

    def apply_to(self, builder: QueryBuilder) -> QueryBuilder:
        """Add the same predicate as SQL conditions."""
        builder.add_datetime_range("t.transaction_date", self.date.lower, self.date.upper)
        builder.add_equals("t.card_id", self.card.card_id)
        builder.add_equals("t.type", self.tx_type.kind)
        builder.add_like_any(
            [SEARCHABLE_FIELDS[name] for name in self.text.search_fields],
            self.text.search_text
        )
        return builder

    def describe(self) -> Dict[str, Any]:
        """Summary of active filters."""
        return {
            'date_range': FormatHelper.format_date_range(self.date.start, self.date.end),
            'card_id': self.card.card_id,
            'kind': self.tx_type.kind,
            'search_text': self.text.search_text,
        }


# ================================================================
# Custom Exceptions
# ================================================================
class SearchError(Exception):
    """Base exception for search operations"""
    pass


class InvalidFilter(SearchError):
    """Raised when a filter parameter is malformed"""
    pass


# ================================================================
# Filter Resolver
# ================================================================
def resolve_filters(
    start: Optional[str] = None,
    end: Optional[str] = None,
    card_id: Optional[str] = None,
    kind: Optional[str] = None,
    q: Optional[str] = None
) -> TransactionSearchRequest:
    """
    Build the transaction predicate from raw request parameters.

    Blank parameters count as absent.

    Raises:
        InvalidFilter: If a date bound is malformed or kind is not
            credit/debit
    """
    start = InputSanitizer.sanitize_string(start)
    end = InputSanitizer.sanitize_string(end)
    card_id = InputSanitizer.sanitize_string(card_id)
    search_text = InputSanitizer.strip_wildcards(
        InputSanitizer.sanitize_string(q, max_length=MAX_SEARCH_LENGTH)
    )

    try:
        lower, upper = DateRangeValidator.validate_range(start, end)
        kind = ValidationPatterns.validate_kind(InputSanitizer.sanitize_string(kind))
    except ValueError as e:
        raise InvalidFilter(str(e)) from e

    return TransactionSearchRequest(
        date=DateFilter(start=start, end=end, lower=lower, upper=upper),
        text=TextSearchFilter(search_text=search_text),
        card=CardFilter(card_id=card_id),
        tx_type=TransactionTypeFilter(kind=kind),
    )


# ================================================================
# Main Search Service
# ================================================================
class SearchService:
    """
    Read side of the service: runs transaction predicates and card lookups
    against the row store.
    """

    def __init__(self, transaction_model: TransactionModel, card_model: CardModel):
        self.transaction_model = transaction_model
        self.card_model = card_model

    # ================================================================
    # TRANSACTION SEARCH
    # ================================================================

    def search_transactions(
        self,
        filters: TransactionSearchRequest,
        limit: Optional[int] = None,
        offset: Optional[int] = None
    ) -> Dict[str, Any]:
        """
        Paginated transaction listing, newest first.

        Args:
            filters: Resolved predicate
            limit: Page size, clamped to [1, 200] (default 50)
            offset: Rows to skip (default 0)

        Returns:
            Dict with:
                - results: List of TransactionRecord on this page
                - count: Total rows matching the filters
                - pagination: Pagination metadata
                - filters_applied: Summary of active filters
                - summary: Credit/debit totals of this page

        Raises:
            InvalidFilter: If limit/offset are not integers
            StoreFailure: If the store read fails
        """
        try:
            limit, offset = PaginationHelper.parse_window(limit, offset)
        except ValueError as e:
            raise InvalidFilter(str(e)) from e

        results, total = self.transaction_model.search(
            filters, limit=limit, offset=offset, with_count=True
        )
        total_count = total if total is not None else len(results)

        return {
            'results': results,
            'count': total_count,
            'pagination': PaginationHelper.calculate_pagination(total_count, limit, offset),
            'filters_applied': filters.describe(),
            'summary': self._calculate_transaction_summary(results),
        }

    def fetch_all(self, filters: TransactionSearchRequest, max_rows: int) -> List[TransactionRecord]:
        """Every matching transaction (newest first) up to max_rows, for reports and exports."""
        results, _ = self.transaction_model.search(filters, limit=max_rows, offset=0)
        if len(results) >= max_rows:
            logger.warning("export_row_cap_reached max_rows=%d filters=%s", max_rows, filters.describe())
        return results

    # ================================================================
    # CARD LOOKUPS
    # ================================================================

    def get_card(self, card_id: str) -> Optional[CardRecord]:
        """Single point lookup used for filename context."""
        return self.card_model.get_card(card_id)

    def total_balance(self) -> float:
        """Sum of every card's current balance."""
        return sum(card.balance for card in self.card_model.list_cards())

    # ================================================================
    # HELPERS
    # ================================================================

    def _calculate_transaction_summary(self, results: List[TransactionRecord]) -> Dict[str, Any]:
        """Credit/debit totals and counts for a result set."""
        credit_total = sum(r.amount for r in results if r.kind == 'credit')
        debit_total = sum(r.amount for r in results if r.kind == 'debit')
        return {
            'credit_total': credit_total,
            'debit_total': debit_total,
            'net': credit_total - debit_total,
            'transaction_count': len(results),
        }
