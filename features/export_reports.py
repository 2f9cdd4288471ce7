#CSV, PDF, Excel reports
"""
Export and Report Generation Service for the Expense Report Service

This module turns a resolved filter into a downloadable artifact:
- Transaction exports (raw rows, newest first)
- Monthly summary exports (credit/debit per UTC month, with trend chart)
- Expense-by-category exports (debit totals, with category chart)

Each export is rendered in one of three formats:
- CSV (pandas)
- XLSX (openpyxl)
- PDF (reportlab)

Artifacts are built fully in memory and handed back to the caller; nothing
is written to disk.
"""

from __future__ import annotations
from typing import Optional, Dict, Any, List, Sequence, Callable
from datetime import datetime, timezone
from dataclasses import dataclass
from enum import Enum

from core.config import load_export_settings
from core.logging_setup import get_logger
from core.utils import FormatHelper
from features.search import SearchService, TransactionSearchRequest
from features.aggregation import (
    MonthlyBucket,
    CategoryTotal,
    monthly_buckets,
    category_totals
)
from features.renderers import (
    Cell,
    CSV_MIME_TYPE,
    XLSX_MIME_TYPE,
    render_csv,
    render_workbook
)
from features.document_renderer import LAYOUTS, PDF_MIME_TYPE, render_document
from features.filename import build_export_filename
from models.transactions_model import TransactionRecord

logger = get_logger(__name__)

TRANSACTION_HEADERS = [
    "Date", "Type", "Amount", "Category", "Vendor", "Client/Partner",
    "Description", "Card Name", "Card Last4", "Card ID",
]
MONTHLY_HEADERS = ["Month", "Income (credit)", "Expense (debit)"]
EXPENSE_HEADERS = ["Category", "Total Expense"]


# ================================================================
# Export Configuration
# ================================================================

@dataclass
class ExportConfig:
    """Configuration for export operations."""
    max_rows: int = 50000
    pdf_page_compression: bool = True
    currency: str = "USD"
    locale: str = "en_US"

    @classmethod
    def from_settings(cls, settings: Optional[Dict[str, Any]] = None) -> "ExportConfig":
        """Build from the [export] config section (defaults for missing keys)."""
        settings = load_export_settings() if settings is None else settings
        known = {k: v for k, v in settings.items() if k in cls.__dataclass_fields__}
        return cls(**known)


# ================================================================
# Custom Exceptions
# ================================================================

class ExportError(Exception):
    """Base exception for export operations"""
    pass


class UnsupportedFormat(ExportError):
    """Raised when the requested format token is not recognized"""
    pass


class RenderFailure(ExportError):
    """Raised when a renderer fails on valid input"""
    pass


# ================================================================
# Formats and Artifacts
# ================================================================

class ExportFormat(Enum):
    CSV = "csv"
    SPREADSHEET = "xlsx"
    DOCUMENT = "pdf"

    @classmethod
    def from_token(cls, token: Optional[str]) -> "ExportFormat":
        """
        Parse the format query parameter.

        Missing or blank means CSV; 'excel' is accepted for xlsx.

        Raises:
            UnsupportedFormat: For any other token
        """
        value = (token or "").strip().lower()
        if not value:
            return cls.CSV
        if value == "excel":
            return cls.SPREADSHEET
        try:
            return cls(value)
        except ValueError:
            raise UnsupportedFormat("Unsupported format")

    @property
    def extension(self) -> str:
        return self.value

    @property
    def mime_type(self) -> str:
        if self is ExportFormat.CSV:
            return CSV_MIME_TYPE
        if self is ExportFormat.SPREADSHEET:
            return XLSX_MIME_TYPE
        return PDF_MIME_TYPE


@dataclass(frozen=True)
class ExportArtifact:
    """Generated export: bytes plus what a download response needs."""
    mime_type: str
    filename: str
    content: bytes

    @property
    def content_disposition(self) -> str:
        return f'attachment; filename="{self.filename}"'


@dataclass(frozen=True)
class _Table:
    kind: str
    sheet_name: str
    headers: List[str]
    rows: List[List[Cell]]
    monthly: Sequence[MonthlyBucket] = ()
    categories: Sequence[CategoryTotal] = ()


# ================================================================
# Main Export Service
# ================================================================

class ExportService:
    """
    Centralized export and report generation service.

    Reads through SearchService, aggregates when the export is a report,
    renders in the requested format and names the result.
    """

    def __init__(
        self,
        search_service: SearchService,
        config: Optional[ExportConfig] = None,
        clock: Optional[Callable[[], datetime]] = None
    ):
        self.search_service = search_service
        self.config = config or ExportConfig()
        self.clock = clock or (lambda: datetime.now(timezone.utc))

    # ================================================================
    # REPORT DATA
    # ================================================================

    def monthly_report(self, filters: TransactionSearchRequest) -> List[MonthlyBucket]:
        """Monthly credit/debit buckets of the filtered transactions."""
        return monthly_buckets(self.search_service.fetch_all(filters, self.config.max_rows))

    def expense_report(self, filters: TransactionSearchRequest) -> List[CategoryTotal]:
        """Debit totals per category of the filtered transactions."""
        return category_totals(self.search_service.fetch_all(filters, self.config.max_rows))

    # ================================================================
    # EXPORTS
    # ================================================================

    def export_transactions(self, filters: TransactionSearchRequest, fmt: ExportFormat) -> ExportArtifact:
        """
        Export raw filtered transactions, newest first.

        Raises:
            StoreFailure: If the store read fails
            RenderFailure: If rendering fails
        """
        records = self.search_service.fetch_all(filters, self.config.max_rows)
        table = _Table(
            kind='transactions',
            sheet_name="Transactions",
            headers=TRANSACTION_HEADERS,
            rows=[self._transaction_row(tx) for tx in records],
        )
        return self._export(table, filters, fmt, include_type=True)

    def export_monthly(self, filters: TransactionSearchRequest, fmt: ExportFormat) -> ExportArtifact:
        """Export the monthly summary (trend chart in PDF)."""
        buckets = self.monthly_report(filters)
        table = _Table(
            kind='monthly',
            sheet_name="Monthly",
            headers=MONTHLY_HEADERS,
            rows=[[b.month, b.credit_total, b.debit_total] for b in buckets],
            monthly=buckets,
        )
        return self._export(table, filters, fmt)

    def export_expenses(self, filters: TransactionSearchRequest, fmt: ExportFormat) -> ExportArtifact:
        """Export expense totals per category (category chart in PDF)."""
        totals = self.expense_report(filters)
        table = _Table(
            kind='expenses',
            sheet_name="Expenses",
            headers=EXPENSE_HEADERS,
            rows=[[t.category, t.total] for t in totals],
            categories=totals,
        )
        return self._export(table, filters, fmt)

    # ================================================================
    # HELPERS
    # ================================================================

    @staticmethod
    def _transaction_row(tx: TransactionRecord) -> List[Cell]:
        return [
            FormatHelper.format_timestamp(tx.occurred_at),
            tx.kind,
            tx.amount,
            tx.category_label,
            tx.vendor,
            tx.counterparty,
            tx.description,
            tx.card_name,
            tx.card_last4,
            tx.card_id,
        ]

    def _render(self, table: _Table, fmt: ExportFormat) -> bytes:
        if fmt is ExportFormat.CSV:
            return render_csv(table.headers, table.rows).encode("utf-8")
        elif fmt is ExportFormat.SPREADSHEET:
            return render_workbook(table.headers, table.rows, table.sheet_name)
        elif fmt is ExportFormat.DOCUMENT:
            return render_document(
                LAYOUTS[table.kind],
                table.headers,
                table.rows,
                monthly=table.monthly,
                categories=table.categories,
                currency=self.config.currency,
                locale=self.config.locale,
                page_compression=self.config.pdf_page_compression,
            )
        raise UnsupportedFormat("Unsupported format")

    def _export(
        self,
        table: _Table,
        filters: TransactionSearchRequest,
        fmt: ExportFormat,
        include_type: bool = False
    ) -> ExportArtifact:
        try:
            content = self._render(table, fmt)
        except ExportError:
            raise
        except Exception as e:
            logger.error("export_render_failed kind=%s format=%s error=%s", table.kind, fmt.value, e)
            raise RenderFailure(f"{fmt.value} export failed: {e}") from e

        card = None
        if filters.card.card_id:
            card = self.search_service.get_card(filters.card.card_id)

        name = build_export_filename(
            table.kind, filters, card=card, now=self.clock(), include_type=include_type
        )
        artifact = ExportArtifact(
            mime_type=fmt.mime_type,
            filename=f"{name}.{fmt.extension}",
            content=content,
        )
        logger.info(
            "export_generated kind=%s format=%s rows=%d bytes=%d filename=%s",
            table.kind, fmt.value, len(table.rows), len(content), artifact.filename
        )
        return artifact
