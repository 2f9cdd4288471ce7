"""Tests for filter resolution and the search service."""

from datetime import datetime, timezone

import pytest

from core.database import StoreFailure
from core.utils import QueryBuilder
from features.search import InvalidFilter, resolve_filters
from tests.fakes import TEAM_A, build_search_service, make_tx, scenario_transactions, utc


def test_resolve_filters_without_params_matches_everything() -> None:
    filters = resolve_filters()

    assert not filters.date.active
    assert all(filters.matches(tx) for tx in scenario_transactions())
    assert filters.describe()["date_range"] == "All dates"


def test_date_only_end_includes_the_whole_utc_day() -> None:
    filters = resolve_filters(start="2024-03-05", end="2024-03-05")

    assert filters.date.lower == datetime(2024, 3, 5, tzinfo=timezone.utc)
    assert filters.date.upper == datetime(2024, 3, 6, tzinfo=timezone.utc)
    assert filters.matches(make_tx("a", "debit", 1.0, utc(2024, 3, 5, 23, 59, 59)))
    assert not filters.matches(make_tx("b", "debit", 1.0, utc(2024, 3, 6, 0, 0, 0)))
    assert not filters.matches(make_tx("c", "debit", 1.0, utc(2024, 3, 4, 23, 59, 59)))


def test_timestamp_bounds_are_inclusive_and_accept_zulu() -> None:
    filters = resolve_filters(start="2024-03-05T12:30:00Z", end="2024-03-05T12:30:00Z")

    assert filters.matches(make_tx("a", "debit", 1.0, utc(2024, 3, 5, 12, 30)))
    assert not filters.matches(make_tx("b", "debit", 1.0, utc(2024, 3, 5, 12, 30, 1)))


def test_bounds_are_independently_optional() -> None:
    only_start = resolve_filters(start="2024-03-05")
    only_end = resolve_filters(end="2024-03-05")

    assert only_start.date.upper is None
    assert only_end.date.lower is None
    assert only_start.describe()["date_range"] == "From 2024-03-05"
    assert only_end.describe()["date_range"] == "Until 2024-03-05"


@pytest.mark.parametrize(
    "params",
    [
        {"start": "2024-13-01"},
        {"end": "yesterday"},
        {"kind": "refund"},
    ],
)
def test_malformed_filters_raise_invalid_filter(params) -> None:
    with pytest.raises(InvalidFilter):
        resolve_filters(**params)


def test_inverted_range_matches_nothing() -> None:
    filters = resolve_filters(start="2024-03-10", end="2024-03-01")

    assert not any(filters.matches(tx) for tx in scenario_transactions())
    assert not filters.matches(make_tx("x", "debit", 1.0, utc(2024, 3, 5)))


def test_blank_params_count_as_absent() -> None:
    filters = resolve_filters(start="  ", end="", card_id=" ", kind="", q="   ")

    assert filters == resolve_filters()


def test_kind_is_case_insensitive() -> None:
    filters = resolve_filters(kind="DEBIT")

    assert filters.tx_type.kind == "debit"


def test_free_text_is_or_across_vendor_counterparty_and_description() -> None:
    records = [
        make_tx("v", "debit", 1.0, utc(2024, 1, 1), vendor="Coffee Corner"),
        make_tx("p", "credit", 1.0, utc(2024, 1, 2), counterparty="coffee partners"),
        make_tx("d", "debit", 1.0, utc(2024, 1, 3), description="Team COFFEE run"),
        make_tx("x", "debit", 1.0, utc(2024, 1, 4), category="Coffee"),
    ]
    filters = resolve_filters(q="Coffee")

    assert [r.id for r in records if filters.matches(r)] == ["v", "p", "d"]


def test_percent_signs_are_stripped_from_search_text() -> None:
    assert resolve_filters(q="50%").text.search_text == "50"
    assert resolve_filters(q="%%").text.search_text is None


def test_apply_to_builds_parameterized_sql() -> None:
    filters = resolve_filters(start="2024-03-01", end="2024-03-31", card_id="card-a", kind="debit", q="Lunch_")
    query, params = filters.apply_to(QueryBuilder("SELECT * FROM transactions t WHERE 1=1")).build()

    assert "t.transaction_date >= %s" in query
    assert "t.transaction_date < %s" in query
    assert "t.card_id = %s" in query
    assert "t.type = %s" in query
    assert "LOWER(t.vendor_name) LIKE %s OR LOWER(t.client_partner_name) LIKE %s" in query
    assert params[:4] == [datetime(2024, 3, 1), datetime(2024, 4, 1), "card-a", "debit"]
    assert params[4:] == ["%lunch\\_%"] * 3


def test_search_transactions_orders_newest_first_with_count() -> None:
    service = build_search_service(scenario_transactions())

    result = service.search_transactions(resolve_filters(), limit="2", offset="0")

    assert [r.id for r in result["results"]] == ["t3", "t2"]
    assert result["count"] == 3
    assert result["pagination"]["has_next"] is True
    assert result["summary"]["debit_total"] == 250.0


def test_search_transactions_clamps_the_window() -> None:
    service = build_search_service(scenario_transactions())

    result = service.search_transactions(resolve_filters(), limit=5000, offset=-3)

    assert result["pagination"]["limit"] == 200
    assert result["pagination"]["offset"] == 0


def test_search_transactions_rejects_non_integer_window() -> None:
    service = build_search_service(scenario_transactions())

    with pytest.raises(InvalidFilter):
        service.search_transactions(resolve_filters(), limit="ten")


def test_store_failure_propagates() -> None:
    service = build_search_service(fail_with="connection reset")

    with pytest.raises(StoreFailure, match="connection reset"):
        service.fetch_all(resolve_filters(), max_rows=10)


def test_total_balance_sums_every_card() -> None:
    service = build_search_service()

    assert service.total_balance() == pytest.approx(1249.5)
    assert service.get_card(TEAM_A.id) == TEAM_A
    assert service.get_card("missing") is None
