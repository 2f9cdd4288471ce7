"""
Common Helper Functions for the Expense Report Service

This module provides reusable utility functions for:
- Date bound parsing and range validation
- Query building with dynamic filters
- Input sanitization
- Common validation patterns
- Pagination and display formatting
"""

from __future__ import annotations
from typing import Optional, Dict, Any, List, Tuple, Union
from datetime import datetime, date, timedelta, timezone
import re

#============================================================================
# Date Utilities
# ============================================================================

DATE_ONLY_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def to_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes, convert aware ones to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class DateRangeValidator:
    """Parses filter bounds into a half-open UTC interval [lower, upper)."""

    @staticmethod
    def parse_bound(
        bound_input: Union[str, date, datetime, None],
        *,
        upper: bool = False
    ) -> Optional[datetime]:
        """
        Parse one bound of a date range.

        Supported formats:
        - YYYY-MM-DD (whole UTC day)
        - ISO-8601 timestamps, with or without offset ('Z' accepted)
        - date / datetime objects

        Lower bounds return the first instant they cover. Upper bounds
        return the first instant *after* what they cover, so a date-only
        end includes that entire day.

        Raises:
            ValueError: If the string is not a recognizable date or timestamp

        Examples:
            >>> DateRangeValidator.parse_bound("2024-02-04")
            datetime.datetime(2024, 2, 4, 0, 0, tzinfo=datetime.timezone.utc)

            >>> DateRangeValidator.parse_bound("2024-02-04", upper=True)
            datetime.datetime(2024, 2, 5, 0, 0, tzinfo=datetime.timezone.utc)
        """
        if bound_input is None:
            return None

        if isinstance(bound_input, datetime):
            instant = to_utc(bound_input)
            return instant + timedelta(microseconds=1) if upper else instant

        if isinstance(bound_input, date):
            day_start = datetime(bound_input.year, bound_input.month, bound_input.day, tzinfo=timezone.utc)
            return day_start + timedelta(days=1) if upper else day_start

        if not isinstance(bound_input, str):
            raise ValueError(f"Unsupported date value: {bound_input!r}")

        text = bound_input.strip()
        if not text:
            return None

        if DATE_ONLY_PATTERN.match(text):
            try:
                day = datetime.strptime(text, "%Y-%m-%d").date()
            except ValueError:
                raise ValueError(f"Invalid date '{bound_input}'. Expected YYYY-MM-DD")
            return DateRangeValidator.parse_bound(day, upper=upper)

        iso_text = text[:-1] + "+00:00" if text.endswith(("Z", "z")) else text
        try:
            instant = datetime.fromisoformat(iso_text)
        except ValueError:
            raise ValueError(
                f"Invalid date '{bound_input}'. Expected YYYY-MM-DD or an ISO-8601 timestamp"
            )
        return DateRangeValidator.parse_bound(instant, upper=upper)

    @staticmethod
    def validate_range(
        start: Union[str, date, datetime, None],
        end: Union[str, date, datetime, None]
    ) -> Tuple[Optional[datetime], Optional[datetime]]:
        """
        Normalize a date range.

        An inverted range is kept as is; it simply matches no rows.

        Returns:
            Tuple of (lower_inclusive, upper_exclusive) UTC datetimes

        Raises:
            ValueError: If a bound is malformed
        """
        lower = DateRangeValidator.parse_bound(start)
        upper = DateRangeValidator.parse_bound(end, upper=True)
        return lower, upper


# ============================================================================
# Query Building Utilities
# ============================================================================

class QueryBuilder:
    """Dynamic SQL query builder with parameter management."""

    def __init__(self, base_query: str):
        """
        Initialize query builder.

        Args:
            base_query: Base SQL query (usually a SELECT with WHERE 1=1)
        """
        self.query = base_query
        self.params: List[Any] = []

    def add_condition(self, condition: str, *params: Any) -> "QueryBuilder":
        """
        Add a WHERE condition with parameters.

        Args:
            condition: SQL condition (e.g., "t.amount >= %s")
            *params: Parameters for the condition

        Returns:
            Self for method chaining
        """
        self.query += f" AND {condition}"
        self.params.extend(params)
        return self

    def add_equals(self, column: str, value: Optional[Any]) -> "QueryBuilder":
        """Add `column = value` when value is set."""
        if value is not None:
            self.add_condition(f"{column} = %s", value)
        return self

    def add_datetime_range(
        self,
        column: str,
        lower: Optional[datetime],
        upper: Optional[datetime]
    ) -> "QueryBuilder":
        """
        Add a half-open range: lower <= column < upper.

        Bounds are UTC-aware; they are sent as naive UTC values, which is
        how DATETIME columns store them.
        """
        if lower:
            self.add_condition(f"{column} >= %s", lower.replace(tzinfo=None))
        if upper:
            self.add_condition(f"{column} < %s", upper.replace(tzinfo=None))
        return self

    def add_like_any(
        self,
        columns: List[str],
        search_term: Optional[str]
    ) -> "QueryBuilder":
        """
        Add a case-insensitive substring match OR'd across columns.

        Args:
            columns: Column names to search
            search_term: Raw search text, wildcards already stripped

        Returns:
            Self for method chaining
        """
        if search_term and columns:
            clause = " OR ".join(f"LOWER({col}) LIKE %s" for col in columns)
            literal = search_term.lower().replace("\\", "\\\\").replace("_", "\\_")
            pattern = f"%{literal}%"
            self.add_condition(f"({clause})", *([pattern] * len(columns)))
        return self

    def add_order_by(self, order_clause: str) -> "QueryBuilder":
        """
        Add ORDER BY clause.

        Args:
            order_clause: ORDER BY clause (e.g., "t.transaction_date DESC")
        """
        self.query += f" ORDER BY {order_clause}"
        return self

    def add_limit_offset(
        self,
        limit: Optional[int],
        offset: Optional[int] = None
    ) -> "QueryBuilder":
        """Add LIMIT and OFFSET clauses."""
        if limit is not None:
            self.query += " LIMIT %s"
            self.params.append(limit)

        if offset is not None:
            self.query += " OFFSET %s"
            self.params.append(offset)

        return self

    def build(self) -> Tuple[str, List[Any]]:
        """
        Build final query and parameters.

        Returns:
            Tuple of (query_string, parameters)
        """
        return self.query, self.params


# ============================================================================
# Input Sanitization
# ============================================================================

class InputSanitizer:
    """Sanitize and validate user inputs."""

    @staticmethod
    def sanitize_string(
        value: Optional[str],
        max_length: Optional[int] = None
    ) -> Optional[str]:
        """
        Strip whitespace; blank input becomes None.

        Args:
            value: Input string
            max_length: Maximum allowed length

        Returns:
            Sanitized string or None
        """
        if value is None:
            return None

        cleaned = value.strip()
        if not cleaned:
            return None

        if max_length and len(cleaned) > max_length:
            cleaned = cleaned[:max_length]

        return cleaned

    @staticmethod
    def strip_wildcards(value: Optional[str]) -> Optional[str]:
        """Remove LIKE wildcards so a search term matches literally."""
        if value is None:
            return None
        return value.replace("%", "") or None

    @staticmethod
    def validate_enum(
        value: Optional[str],
        allowed_values: List[str],
        case_sensitive: bool = False
    ) -> Optional[str]:
        """
        Validate that value is in allowed list.

        Raises:
            ValueError: If value is not in allowed_values
        """
        if value is None:
            return None

        cleaned = value.strip()

        if not case_sensitive:
            cleaned = cleaned.lower()
            allowed_values = [v.lower() for v in allowed_values]

        if cleaned not in allowed_values:
            raise ValueError(
                f"Invalid value '{value}'. Must be one of: {', '.join(allowed_values)}"
            )

        return cleaned


# ============================================================================
# Validation Patterns
# ============================================================================

class ValidationPatterns:
    """Common validation patterns."""

    TRANSACTION_KINDS = ['credit', 'debit']

    @staticmethod
    def validate_kind(value: str) -> str:
        """Validate transaction kind (credit/debit)."""
        return InputSanitizer.validate_enum(
            value,
            ValidationPatterns.TRANSACTION_KINDS,
            case_sensitive=False
        )


# ============================================================================
# Pagination Helper
# ============================================================================

class PaginationHelper:
    """Helper for pagination calculations."""

    DEFAULT_LIMIT = 50
    MAX_LIMIT = 200

    @staticmethod
    def parse_window(
        limit: Union[str, int, None],
        offset: Union[str, int, None]
    ) -> Tuple[int, int]:
        """
        Clamp a listing window: limit to [1, MAX_LIMIT], offset to >= 0.

        Raises:
            ValueError: If either value is not an integer
        """
        try:
            limit_val = int(limit) if limit not in (None, "") else PaginationHelper.DEFAULT_LIMIT
            offset_val = int(offset) if offset not in (None, "") else 0
        except (TypeError, ValueError):
            raise ValueError(f"limit/offset must be integers, got limit={limit!r} offset={offset!r}")

        limit_val = max(1, min(limit_val, PaginationHelper.MAX_LIMIT))
        offset_val = max(offset_val, 0)
        return limit_val, offset_val

    @staticmethod
    def calculate_pagination(
        total_count: int,
        limit: int,
        offset: int
    ) -> Dict[str, Any]:
        """
        Calculate pagination metadata for a limit/offset window.

        Examples:
            >>> PaginationHelper.calculate_pagination(100, 25, 25)
            {'total_count': 100, 'limit': 25, 'offset': 25, 'has_next': True, 'has_prev': True}
        """
        return {
            'total_count': total_count,
            'limit': limit,
            'offset': offset,
            'has_next': offset + limit < total_count,
            'has_prev': offset > 0
        }


# ============================================================================
# Format Helpers
# ============================================================================

# (thousands separator, decimal separator, symbol goes first)
_LOCALE_NUMBER_FORMATS: Dict[str, Tuple[str, str, bool]] = {
    "en_US": (",", ".", True),
    "en_GB": (",", ".", True),
    "de_DE": (".", ",", False),
    "fr_FR": (" ", ",", False),
    "de_CH": ("'", ".", True),
}


class FormatHelper:
    """Format data for display. Every helper takes its locale explicitly."""

    @staticmethod
    def format_number(value: Union[int, float], locale: str = "en_US", decimals: int = 2) -> str:
        """
        Format a number with the locale's separators.

        Examples:
            >>> FormatHelper.format_number(1234.5, "de_DE")
            '1.234,50'
        """
        group, decimal_sep, _ = _LOCALE_NUMBER_FORMATS.get(locale, _LOCALE_NUMBER_FORMATS["en_US"])
        text = f"{value:,.{decimals}f}"
        return text.replace(",", "\0").replace(".", decimal_sep).replace("\0", group)

    @staticmethod
    def format_currency(amount: Union[int, float], currency: str, locale: str = "en_US") -> str:
        """
        Format amount as currency.

        Examples:
            >>> FormatHelper.format_currency(1234.56, "USD")
            'USD 1,234.56'
            >>> FormatHelper.format_currency(1234.56, "EUR", "de_DE")
            '1.234,56 EUR'
        """
        _, _, prefix = _LOCALE_NUMBER_FORMATS.get(locale, _LOCALE_NUMBER_FORMATS["en_US"])
        number = FormatHelper.format_number(amount, locale)
        return f"{currency} {number}" if prefix else f"{number} {currency}"

    @staticmethod
    def format_timestamp(value: datetime) -> str:
        """UTC 'YYYY-MM-DD HH:MM' used in transaction rows."""
        return to_utc(value).strftime("%Y-%m-%d %H:%M")

    @staticmethod
    def format_date_range(start: Optional[str], end: Optional[str]) -> str:
        """
        Format raw date-range bounds for display.

        Args:
            start: Start bound as given by the caller
            end: End bound as given by the caller
        """
        if start and end:
            return f"{start} to {end}"
        elif start:
            return f"From {start}"
        elif end:
            return f"Until {end}"
        else:
            return "All dates"
