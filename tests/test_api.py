"""Tests for the HTTP endpoints exposed by api.app."""

import re

import pytest
from fastapi.testclient import TestClient

import api.app as report_api
from api.app import app
from core.database import DatabaseConnectionError
from features.export_reports import ExportConfig
from tests.fakes import TEAM_A, build_search_service, scenario_transactions


client = TestClient(app)


@pytest.fixture
def use_store():
    """Route the service getters to an in-memory store for one test."""

    def _install(records=None, fail_with=None):
        service = build_search_service(
            records if records is not None else scenario_transactions(), fail_with=fail_with
        )
        app.dependency_overrides[report_api.get_search_service] = lambda: service
        app.dependency_overrides[report_api.get_export_config] = lambda: ExportConfig(pdf_page_compression=False)
        return service

    yield _install
    app.dependency_overrides.clear()


def test_health() -> None:
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_list_transactions_returns_data_and_count(use_store) -> None:
    use_store()

    response = client.get("/api/transactions", params={"limit": "2"})

    assert response.status_code == 200
    payload = response.json()
    assert payload["count"] == 3
    assert [row["id"] for row in payload["data"]] == ["t3", "t2"]
    assert payload["data"][0]["occurred_at"] == "2024-03-20T18:45:00+00:00"


def test_list_transactions_filters_by_card_type_and_text(use_store) -> None:
    use_store()

    response = client.get(
        "/api/transactions", params={"cardId": TEAM_A.id, "type": "debit", "q": "lunch"}
    )

    assert response.status_code == 200
    assert [row["id"] for row in response.json()["data"]] == ["t2"]


def test_kind_is_accepted_as_alias_of_type(use_store) -> None:
    use_store()

    response = client.get("/api/transactions", params={"kind": "credit"})

    assert [row["id"] for row in response.json()["data"]] == ["t1"]


def test_conflicting_type_and_kind_returns_400(use_store) -> None:
    use_store()

    response = client.get("/api/transactions", params={"type": "debit", "kind": "credit"})

    assert response.status_code == 400
    assert "Conflicting type filters" in response.json()["error"]


def test_matching_type_and_kind_are_accepted(use_store) -> None:
    use_store()

    response = client.get("/api/transactions", params={"type": "debit", "kind": "DEBIT"})

    assert response.status_code == 200
    assert [row["id"] for row in response.json()["data"]] == ["t3", "t2"]


def test_list_transactions_returns_pagination_filters_and_summary(use_store) -> None:
    use_store()

    response = client.get("/api/transactions", params={"limit": "2", "cardId": TEAM_A.id})

    payload = response.json()
    assert payload["pagination"] == {
        "total_count": 3, "limit": 2, "offset": 0, "has_next": True, "has_prev": False,
    }
    assert payload["filters_applied"]["card_id"] == TEAM_A.id
    assert payload["filters_applied"]["date_range"] == "All dates"
    assert payload["summary"] == {
        "credit_total": 0, "debit_total": 250.0, "net": -250.0, "transaction_count": 2,
    }


def test_malformed_date_returns_400(use_store) -> None:
    use_store()

    response = client.get("/api/reports/monthly", params={"start": "2024-02-30"})

    assert response.status_code == 400
    assert "error" in response.json()


def test_inverted_range_returns_empty_results(use_store) -> None:
    use_store()

    response = client.get("/api/transactions", params={"start": "2024-03-10", "end": "2024-03-01"})

    assert response.status_code == 200
    assert response.json()["data"] == []
    assert response.json()["count"] == 0


def test_inverted_range_exports_no_data_pdf(use_store) -> None:
    use_store()

    response = client.get(
        "/api/transactions/export", params={"start": "2024-03-10", "end": "2024-03-01", "format": "pdf"}
    )

    assert response.status_code == 200
    assert b"No data." in response.content
    assert len(re.findall(rb"/Type /Page\b", response.content)) == 1


def test_non_integer_limit_returns_400(use_store) -> None:
    use_store()

    response = client.get("/api/transactions", params={"limit": "lots"})

    assert response.status_code == 400


def test_unsupported_format_returns_400(use_store) -> None:
    use_store()

    response = client.get("/api/reports/expenses/export", params={"format": "docx"})

    assert response.status_code == 400
    assert response.json() == {"error": "Unsupported format"}


def test_store_failure_returns_500_with_message(use_store) -> None:
    use_store(fail_with="relation transactions does not exist")

    response = client.get("/api/reports/expenses")

    assert response.status_code == 500
    assert response.json() == {"error": "relation transactions does not exist"}


def test_connection_failure_returns_500() -> None:
    def _unreachable():
        raise DatabaseConnectionError("Can't connect to MySQL server")

    app.dependency_overrides[report_api.get_search_service] = _unreachable
    try:
        response = client.get("/api/reports/balance")
    finally:
        app.dependency_overrides.clear()

    assert response.status_code == 500
    assert response.json() == {"error": "Can't connect to MySQL server"}


def test_monthly_report_json(use_store) -> None:
    use_store()

    response = client.get("/api/reports/monthly")

    assert response.json() == {"months": [{"month": "2024-03", "credit": 1000.0, "debit": 250.0}]}


def test_expense_report_json(use_store) -> None:
    use_store()

    response = client.get("/api/reports/expenses", params={"start": "2024-03-02"})

    assert response.json() == {
        "items": [{"category": "Food", "total": 200.0}, {"category": "Travel", "total": 50.0}]
    }


def test_balance_sums_card_balances(use_store) -> None:
    use_store()

    response = client.get("/api/reports/balance")

    assert response.json() == {"total": pytest.approx(1249.5)}


def test_transaction_csv_export_headers(use_store) -> None:
    use_store()

    response = client.get("/api/transactions/export", params={"cardId": TEAM_A.id})

    assert response.status_code == 200
    assert response.headers["content-type"] == "text/csv; charset=utf-8"
    disposition = response.headers["content-disposition"]
    assert re.fullmatch(
        r'attachment; filename="transactions_card-Team_A-1234-\d{4}-\d{2}-\d{2}-\d{2}-\d{2}-\d{2}\.csv"',
        disposition,
    )
    assert response.text.startswith("Date,Type,Amount,Category")


def test_monthly_pdf_export(use_store) -> None:
    use_store()

    response = client.get("/api/reports/monthly/export", params={"format": "pdf"})

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("application/pdf")
    assert response.content.startswith(b"%PDF")
    assert len(re.findall(rb"/Type /Page\b", response.content)) == 1
    assert response.headers["content-disposition"].endswith('.pdf"')


def test_expense_xlsx_export(use_store) -> None:
    use_store()

    response = client.get("/api/reports/expenses/export", params={"format": "excel"})

    assert response.status_code == 200
    assert response.headers["content-type"] == (
        "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
    )
    assert response.headers["content-disposition"].startswith('attachment; filename="expenses-')


def test_empty_pdf_export_says_no_data(use_store) -> None:
    use_store(records=[])

    response = client.get("/api/transactions/export", params={"format": "pdf", "start": "2030-01-01"})

    assert response.status_code == 200
    assert b"No data." in response.content
