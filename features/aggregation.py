"""
Report aggregation over filtered transactions.

Two derived views, both computed fresh per request with pandas group-bys:
- Monthly buckets: credit/debit totals per UTC calendar month (YYYY-MM),
  ascending by month
- Category totals: debit totals per category label, in chronological order
  of first occurrence (callers that need a ranking sort explicitly)

Sums use float amounts as stored on TransactionRecord.
"""

from __future__ import annotations
from dataclasses import dataclass, asdict
from typing import List, Dict, Any, Iterable

import pandas as pd

from models.transactions_model import TransactionRecord


@dataclass(frozen=True)
class MonthlyBucket:
    month: str
    credit_total: float
    debit_total: float

    def to_dict(self) -> Dict[str, Any]:
        return {'month': self.month, 'credit': self.credit_total, 'debit': self.debit_total}


@dataclass(frozen=True)
class CategoryTotal:
    category: str
    total: float

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def _to_frame(transactions: Iterable[TransactionRecord]) -> pd.DataFrame:
    """Flatten records into the columns the group-bys need."""
    return pd.DataFrame(
        [
            {
                'occurred_at': tx.occurred_at,
                'kind': tx.kind,
                'amount': tx.amount,
                'category': tx.category_label,
            }
            for tx in transactions
        ],
        columns=['occurred_at', 'kind', 'amount', 'category'],
    )


def monthly_buckets(transactions: Iterable[TransactionRecord]) -> List[MonthlyBucket]:
    """
    Bucket transactions by UTC calendar month.

    A transaction at 2024-01-31T23:59:59Z lands in '2024-01', one at
    2024-02-01T00:00:00Z in '2024-02'.
    """
    df = _to_frame(transactions)
    if df.empty:
        return []

    df['month'] = pd.to_datetime(df['occurred_at'], utc=True).dt.strftime('%Y-%m')
    grouped = (
        df.pivot_table(index='month', columns='kind', values='amount', aggfunc='sum', fill_value=0.0)
        .reindex(columns=['credit', 'debit'], fill_value=0.0)
        .sort_index()
    )

    return [
        MonthlyBucket(month=str(month), credit_total=float(row['credit']), debit_total=float(row['debit']))
        for month, row in grouped.iterrows()
    ]


def category_totals(transactions: Iterable[TransactionRecord]) -> List[CategoryTotal]:
    """
    Debit totals per category label, ordered by each label's earliest
    transaction, whatever order the input arrives in.
    """
    df = _to_frame(transactions)
    debits = df[df['kind'] == 'debit'].sort_values('occurred_at', kind='stable')
    if debits.empty:
        return []

    grouped = debits.groupby('category', sort=False)['amount'].sum()
    return [CategoryTotal(category=str(category), total=float(total)) for category, total in grouped.items()]
