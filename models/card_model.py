# models/card_model.py
from __future__ import annotations
from dataclasses import dataclass, asdict
from typing import Optional, Dict, Any, List, Tuple
from decimal import Decimal
import re
import mysql.connector

from core.database import StoreFailure

NON_DIGITS = re.compile(r"\D")


# ==========================
# Exceptions
# ==========================
class CardError(StoreFailure): pass
class CardValidationError(CardError): pass
class CardDataBaseError(CardError): pass


def last4_digits(card_number: Any) -> str:
    """Last four digits of a card number, ignoring spaces, dashes and mask characters."""
    return NON_DIGITS.sub("", str(card_number or ""))[-4:]


# ==========================
# DataClass
# ==========================
@dataclass(frozen=True)
class CardRecord:
    id: str
    last4: str
    name: str
    department: Optional[str]
    balance: float

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "CardRecord":
        """Validate a raw cards row; card_number keeps only its last four digits."""
        raw_balance = row.get("current_balance")
        try:
            balance = float(raw_balance) if isinstance(raw_balance, (int, float, Decimal, str)) else 0.0
        except ValueError:
            raise CardValidationError(f"Card {row.get('id')}: invalid balance {raw_balance!r}")

        return cls(
            id=str(row.get("id")),
            last4=last4_digits(row.get("card_number")),
            name=str(row.get("card_name") or ""),
            department=row.get("department") or None,
            balance=balance,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert dataclass to clean dict for API responses."""
        return asdict(self)


class CardModel:
    """Read-only access to the cards table."""

    def __init__(self, conn: mysql.connector.MySQLConnection):
        self.conn = conn

    # ==========================
    # Internal Helpers
    # ==========================
    def _execute(self, sql: str, params: Tuple[Any, ...], *, fetchone: bool = False):
        """Unified SQL executor with error wrapping"""
        try:
            with self.conn.cursor(dictionary=True) as cursor:
                cursor.execute(sql, params)
                return cursor.fetchone() if fetchone else cursor.fetchall()
        except mysql.connector.Error as e:
            raise CardDataBaseError(f"MySQL Error: {str(e)}") from e

    # ==========================
    # Reads
    # ==========================
    def get_card(self, card_id: str) -> Optional[CardRecord]:
        """Point lookup by id; None when no card matches."""
        row = self._execute(
            "SELECT id, card_name, card_number, department, current_balance FROM cards WHERE id = %s",
            (card_id,),
            fetchone=True,
        )
        return CardRecord.from_row(row) if row else None

    def list_cards(self) -> List[CardRecord]:
        """All cards ordered by name."""
        rows = self._execute(
            "SELECT id, card_name, card_number, department, current_balance FROM cards ORDER BY card_name ASC",
            (),
        )
        return [CardRecord.from_row(row) for row in rows]
