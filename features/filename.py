"""
Download filenames for export artifacts.

    <kind>[_<part>_<part>...]-<YYYY-MM-DD-HH-mm-ss>

Parts appear in a fixed order: transaction type, date range, card, search
text. Every character outside [A-Za-z0-9-_.] is replaced with '_' so the
name is safe in a Content-Disposition header and on any filesystem.
"""

from __future__ import annotations
from datetime import datetime, timezone
from typing import Optional, List
import re

from features.search import TransactionSearchRequest
from models.card_model import CardRecord

UNSAFE_FILENAME_CHARS = re.compile(r"[^a-zA-Z0-9\-_.]")
SEARCH_TEXT_PREFIX_LEN = 20


def sanitize_filename(name: str) -> str:
    return UNSAFE_FILENAME_CHARS.sub("_", name)


def utc_timestamp(now: Optional[datetime] = None) -> str:
    """UTC time as YYYY-MM-DD-HH-mm-ss (19 characters)."""
    now = now or datetime.now(timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    return now.astimezone(timezone.utc).strftime("%Y-%m-%d-%H-%M-%S")


def filter_parts(
    filters: TransactionSearchRequest,
    card: Optional[CardRecord] = None,
    include_type: bool = False
) -> List[str]:
    """Filename fragments describing the active filters."""
    parts: List[str] = []

    if include_type and filters.tx_type.kind:
        parts.append(f"type-{filters.tx_type.kind}")

    if filters.date.active:
        parts.append(f"{filters.date.start or 'start'}_to_{filters.date.end or 'end'}")

    card_id = filters.card.card_id
    if card_id:
        if card is not None:
            parts.append(f"card-{card.name}-{card.last4}")
        else:
            parts.append(f"card-{card_id}")

    if filters.text.search_text:
        parts.append(f"q-{filters.text.search_text[:SEARCH_TEXT_PREFIX_LEN]}")

    return parts


def build_export_filename(
    kind: str,
    filters: TransactionSearchRequest,
    card: Optional[CardRecord] = None,
    now: Optional[datetime] = None,
    include_type: bool = False
) -> str:
    """
    Build the extension-less download name for one export.

    Args:
        kind: Export kind ('transactions', 'monthly', 'expenses')
        filters: Resolved filters of the request
        card: Result of the card lookup when a card filter is active
        now: Generation time (defaults to the current UTC time)
        include_type: Add the type-<kind> part (transaction export only)

    Examples:
        >>> build_export_filename('transactions', resolve_filters(card_id='c1'), card, now)
        'transactions_card-Team_A-1234-2024-03-05-14-07-09'
    """
    parts = filter_parts(filters, card=card, include_type=include_type)
    suffix = "_" + "_".join(parts) if parts else ""
    return sanitize_filename(f"{kind}{suffix}-{utc_timestamp(now)}")
