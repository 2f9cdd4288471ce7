"""Tests for export filenames."""

import re

from features.filename import build_export_filename, sanitize_filename, utc_timestamp
from features.search import resolve_filters
from models.card_model import CardRecord
from tests.fakes import TEAM_A, utc

NOW = utc(2024, 3, 5, 14, 7, 9)


def test_timestamp_is_19_character_utc() -> None:
    stamp = utc_timestamp(NOW)

    assert stamp == "2024-03-05-14-07-09"
    assert len(stamp) == 19
    assert re.fullmatch(r"\d{4}-\d{2}-\d{2}-\d{2}-\d{2}-\d{2}", utc_timestamp())


def test_unfiltered_name_is_kind_and_timestamp() -> None:
    assert build_export_filename("monthly", resolve_filters(), now=NOW) == "monthly-2024-03-05-14-07-09"


def test_card_part_uses_name_and_last4() -> None:
    name = build_export_filename("transactions", resolve_filters(card_id=TEAM_A.id), card=TEAM_A, now=NOW)

    assert name == "transactions_card-Team_A-1234-2024-03-05-14-07-09"


def test_card_part_falls_back_to_id_when_lookup_is_empty() -> None:
    name = build_export_filename("expenses", resolve_filters(card_id="c-42"), card=None, now=NOW)

    assert "_card-c-42-" in name


def test_parts_appear_in_fixed_order() -> None:
    filters = resolve_filters(start="2024-01-01", card_id=TEAM_A.id, kind="debit", q="coffee beans and more stuff")

    name = build_export_filename("transactions", filters, card=TEAM_A, now=NOW, include_type=True)

    assert name == (
        "transactions_type-debit_2024-01-01_to_end_card-Team_A-1234_q-coffee_beans_and_mor-"
        "2024-03-05-14-07-09"
    )


def test_type_part_only_when_requested() -> None:
    name = build_export_filename("monthly", resolve_filters(kind="credit"), now=NOW)

    assert name == "monthly-2024-03-05-14-07-09"


def test_missing_start_uses_placeholder() -> None:
    name = build_export_filename("expenses", resolve_filters(end="2024-02-29"), now=NOW)

    assert name.startswith("expenses_start_to_2024-02-29-")


def test_sanitize_replaces_slashes_spaces_and_multibyte_characters() -> None:
    card = CardRecord(id="c9", last4="0042", name="R&D / Café ☕", department=None, balance=0.0)

    name = build_export_filename("transactions", resolve_filters(card_id="c9"), card=card, now=NOW)

    assert re.fullmatch(r"[A-Za-z0-9\-_.]+", name)
    assert "card-R_D___Caf___-0042" in name
    assert sanitize_filename("a/b c.csv") == "a_b_c.csv"
