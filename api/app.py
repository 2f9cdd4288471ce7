"""FastAPI entrypoint for the expense report endpoints."""

from __future__ import annotations

from contextlib import asynccontextmanager
from functools import lru_cache
from typing import Any, Dict, Iterator, Optional

from fastapi import Depends, FastAPI, Query
from fastapi.requests import Request
from fastapi.responses import JSONResponse, Response

from core.database import DatabaseConnection, StoreFailure
from core.logging_setup import configure_logging, get_logger
from features.export_reports import (
    ExportArtifact,
    ExportConfig,
    ExportFormat,
    ExportService,
    RenderFailure,
    UnsupportedFormat,
)
from features.search import InvalidFilter, SearchService, TransactionSearchRequest, resolve_filters
from models.card_model import CardModel
from models.transactions_model import TransactionModel

logger = get_logger(__name__)


# ================================================================
# Service wiring
# ================================================================

def get_search_service() -> Iterator[SearchService]:
    """One MySQL connection per request, closed once the response is built."""

    db = DatabaseConnection()
    conn = db.get_connection()
    try:
        yield SearchService(TransactionModel(conn), CardModel(conn))
    finally:
        db.close_connection()


@lru_cache(maxsize=1)
def get_export_config() -> ExportConfig:
    """Read the [export] settings once per process."""

    return ExportConfig.from_settings()


def get_export_service(
    search_service: SearchService = Depends(get_search_service),
    config: ExportConfig = Depends(get_export_config),
) -> ExportService:
    return ExportService(search_service, config)


def request_filters(
    start: Optional[str] = None,
    end: Optional[str] = None,
    card_id: Optional[str] = Query(default=None, alias="cardId"),
    tx_type: Optional[str] = Query(default=None, alias="type"),
    kind: Optional[str] = None,
    q: Optional[str] = None,
) -> TransactionSearchRequest:
    """
    Resolve the shared filter query parameters.

    ``kind`` is an alias of ``type``. Sending both with different values is
    rejected as InvalidFilter.
    """

    type_token = (tx_type or "").strip().lower()
    kind_token = (kind or "").strip().lower()
    if type_token and kind_token and type_token != kind_token:
        raise InvalidFilter(f"Conflicting type filters: type={tx_type!r}, kind={kind!r}")
    return resolve_filters(start=start, end=end, card_id=card_id, kind=type_token or kind_token, q=q)


def export_format(format: Optional[str] = None) -> ExportFormat:
    """Parse the ``format`` query parameter (csv when absent)."""

    return ExportFormat.from_token(format)


def _artifact_response(artifact: ExportArtifact) -> Response:
    return Response(
        content=artifact.content,
        media_type=artifact.mime_type,
        headers={"Content-Disposition": artifact.content_disposition},
    )


# ================================================================
# Application
# ================================================================

@asynccontextmanager
async def lifespan(_app: FastAPI):
    configure_logging()
    yield


app = FastAPI(title="Expense Reports API", lifespan=lifespan)


@app.exception_handler(InvalidFilter)
@app.exception_handler(UnsupportedFormat)
async def handle_bad_request(request: Request, exc: Exception) -> JSONResponse:
    """Malformed filters and unknown export formats."""

    logger.warning(
        "request_rejected method=%s path=%s exception_type=%s message=%s",
        request.method,
        request.url.path,
        type(exc).__name__,
        str(exc),
    )
    return JSONResponse(status_code=400, content={"error": str(exc)})


@app.exception_handler(StoreFailure)
@app.exception_handler(RenderFailure)
async def handle_server_failure(request: Request, exc: Exception) -> JSONResponse:
    """Store read failures and render failures carry their message through."""

    logger.error(
        "request_failed method=%s path=%s exception_type=%s message=%s",
        request.method,
        request.url.path,
        type(exc).__name__,
        str(exc),
    )
    return JSONResponse(status_code=500, content={"error": str(exc)})


@app.exception_handler(Exception)
async def handle_unexpected_exception(request: Request, exc: Exception) -> JSONResponse:
    """Return a JSON 500 response for unhandled exceptions."""

    logger.exception(
        "unhandled_exception method=%s path=%s exception_type=%s message=%s",
        request.method,
        request.url.path,
        type(exc).__name__,
        str(exc),
        exc_info=exc,
    )
    return JSONResponse(status_code=500, content={"error": "Internal Server Error"})


@app.get("/health")
def health() -> Dict[str, str]:
    """Healthcheck endpoint."""

    return {"status": "ok"}


# ================================================================
# Transactions
# ================================================================

@app.get("/api/transactions")
def list_transactions(
    limit: Optional[str] = None,
    offset: Optional[str] = None,
    filters: TransactionSearchRequest = Depends(request_filters),
    search_service: SearchService = Depends(get_search_service),
) -> Dict[str, Any]:
    result = search_service.search_transactions(filters, limit=limit, offset=offset)
    return {
        "data": [record.to_dict() for record in result["results"]],
        "count": result["count"],
        "pagination": result["pagination"],
        "filters_applied": result["filters_applied"],
        "summary": result["summary"],
    }


@app.get("/api/transactions/export")
def export_transactions(
    fmt: ExportFormat = Depends(export_format),
    filters: TransactionSearchRequest = Depends(request_filters),
    export_service: ExportService = Depends(get_export_service),
) -> Response:
    return _artifact_response(export_service.export_transactions(filters, fmt))


# ================================================================
# Reports
# ================================================================

@app.get("/api/reports/monthly")
def monthly_report(
    filters: TransactionSearchRequest = Depends(request_filters),
    export_service: ExportService = Depends(get_export_service),
) -> Dict[str, Any]:
    return {"months": [bucket.to_dict() for bucket in export_service.monthly_report(filters)]}


@app.get("/api/reports/monthly/export")
def export_monthly_report(
    fmt: ExportFormat = Depends(export_format),
    filters: TransactionSearchRequest = Depends(request_filters),
    export_service: ExportService = Depends(get_export_service),
) -> Response:
    return _artifact_response(export_service.export_monthly(filters, fmt))


@app.get("/api/reports/expenses")
def expense_report(
    filters: TransactionSearchRequest = Depends(request_filters),
    export_service: ExportService = Depends(get_export_service),
) -> Dict[str, Any]:
    return {"items": [item.to_dict() for item in export_service.expense_report(filters)]}


@app.get("/api/reports/expenses/export")
def export_expense_report(
    fmt: ExportFormat = Depends(export_format),
    filters: TransactionSearchRequest = Depends(request_filters),
    export_service: ExportService = Depends(get_export_service),
) -> Response:
    return _artifact_response(export_service.export_expenses(filters, fmt))


@app.get("/api/reports/balance")
def balance_report(search_service: SearchService = Depends(get_search_service)) -> Dict[str, float]:
    return {"total": search_service.total_balance()}


def main() -> None:
    """Run the API with uvicorn."""

    import uvicorn

    configure_logging()
    uvicorn.run(app, host="0.0.0.0", port=8000)


if __name__ == "__main__":
    main()
