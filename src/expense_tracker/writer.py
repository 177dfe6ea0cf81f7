"""Write classified transactions and aggregated totals as CSV.

Text fields are written with the casing they were read with. Amounts are
written in plain decimal notation without thousands separators.
"""

import csv
from collections.abc import Iterable, Iterator, Mapping
from contextlib import contextmanager
from decimal import Decimal
from os import PathLike
from typing import TextIO

from expense_tracker.aggregation import sort_key
from expense_tracker.core.settings import DEFAULT_DATE_FORMATS
from expense_tracker.domain.values import format_amount, format_date
from expense_tracker.logger import get_logger
from expense_tracker.models import Transaction

logger = get_logger(__name__)

Target = str | PathLike[str] | TextIO

TEXT_COLUMNS = ("Description", "Category", "Subcategory", "Tag", "Note")


@contextmanager
def _open_target(target: Target) -> Iterator[TextIO]:
    if hasattr(target, "write"):
        yield target
        return
    with open(target, "w", encoding="utf-8", newline="") as handle:
        yield handle


def transaction_header(split_amount: bool = False) -> list[str]:
    amount_columns = ["Amount Out", "Amount In"] if split_amount else ["Amount"]
    return ["Date", *amount_columns, *TEXT_COLUMNS]


def transaction_row(transaction: Transaction, date_format: str, split_amount: bool = False) -> list[str]:
    if split_amount:
        if transaction.amount < 0:
            amounts = [format_amount(-transaction.amount), ""]
        else:
            amounts = ["", format_amount(transaction.amount)]
    else:
        amounts = [format_amount(transaction.amount)]
    return [
        format_date(transaction.date, date_format),
        *amounts,
        transaction.description,
        transaction.category or "",
        transaction.subcategory or "",
        transaction.tag or "",
        transaction.note or "",
    ]


def write_transactions(
    transactions: Iterable[Transaction],
    target: Target,
    *,
    date_format: str = DEFAULT_DATE_FORMATS[0],
    split_amount: bool = False,
    delimiter: str = ",",
) -> int:
    count = 0
    with _open_target(target) as handle:
        writer = csv.writer(handle, delimiter=delimiter, lineterminator="\n")
        writer.writerow(transaction_header(split_amount))
        for transaction in transactions:
            writer.writerow(transaction_row(transaction, date_format, split_amount))
            count += 1
    logger.info("Wrote %d transactions.", count)
    return count


def write_totals(
    totals: Mapping[object, Decimal],
    target: Target,
    *,
    delimiter: str = ",",
) -> int:
    """Write totals produced by :mod:`expense_tracker.aggregation`.

    Keys may be a category name, a ``(category, subcategory)`` pair or a
    ``(period, category, subcategory)`` triple.
    """
    rows = sorted(
        (((key if isinstance(key, tuple) else (key,)), total) for key, total in totals.items()),
        key=lambda item: sort_key(item[0]),
    )
    width = len(rows[0][0]) if rows else 2
    header = {1: ["Category"], 2: ["Category", "Subcategory"], 3: ["Period", "Category", "Subcategory"]}[width]

    with _open_target(target) as handle:
        writer = csv.writer(handle, delimiter=delimiter, lineterminator="\n")
        writer.writerow([*header, "Total"])
        for key, total in rows:
            writer.writerow([*(part or "" for part in key), format_amount(total)])
    return len(rows)
