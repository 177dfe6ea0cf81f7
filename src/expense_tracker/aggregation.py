"""Sum transaction amounts per category, sub-category and period.

Uncategorized transactions are reported under the ``None`` category unless
``include_uncategorized=False``.
"""

import datetime
from collections import defaultdict
from collections.abc import Iterable
from decimal import Decimal
from typing import Literal

from expense_tracker.models import Transaction

Period = Literal["day", "month", "year"]
PERIODS: tuple[str, ...] = ("day", "month", "year")

CategoryKey = tuple[str | None, str | None]


def period_bucket(value: datetime.date, period: Period) -> str:
    if period == "day":
        return value.isoformat()
    if period == "month":
        return f"{value.year:04d}-{value.month:02d}"
    if period == "year":
        return f"{value.year:04d}"
    raise ValueError(f"unknown period {period!r}; expected one of {', '.join(PERIODS)}")


def _selected(transactions: Iterable[Transaction], include_uncategorized: bool) -> Iterable[Transaction]:
    for transaction in transactions:
        if transaction.category or include_uncategorized:
            yield transaction


def totals_by_subcategory(
    transactions: Iterable[Transaction],
    *,
    include_uncategorized: bool = True,
) -> dict[CategoryKey, Decimal]:
    totals: dict[CategoryKey, Decimal] = defaultdict(Decimal)
    for t in _selected(transactions, include_uncategorized):
        totals[(t.category, t.subcategory)] += t.amount
    return dict(totals)


def totals_by_category(
    transactions: Iterable[Transaction],
    *,
    include_uncategorized: bool = True,
) -> dict[str | None, Decimal]:
    totals: dict[str | None, Decimal] = defaultdict(Decimal)
    for t in _selected(transactions, include_uncategorized):
        totals[t.category] += t.amount
    return dict(totals)


def totals_by_period(
    transactions: Iterable[Transaction],
    period: Period = "month",
    *,
    include_uncategorized: bool = True,
) -> dict[tuple[str, str | None, str | None], Decimal]:
    totals: dict[tuple[str, str | None, str | None], Decimal] = defaultdict(Decimal)
    for t in _selected(transactions, include_uncategorized):
        totals[(period_bucket(t.date, period), t.category, t.subcategory)] += t.amount
    return dict(totals)


def sort_key(key: tuple) -> tuple:
    # ``None`` sorts after the named values at each position.
    return tuple((part is None, (part or "").casefold()) for part in key)
