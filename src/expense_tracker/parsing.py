"""Read bank/expense CSV exports into :class:`Transaction` records.

The first row must be a header. Columns are located by name (case-insensitive,
with a few common aliases), so extra columns and column order do not matter.
The amount is either one signed ``Amount`` column or a pair of ``Amount Out``
and ``Amount In`` columns, in which case the signed amount is ``in - out``.

Malformed rows are collected as :class:`ParseError` instances on the returned
:class:`ParseReport` and the rest of the file is still read, unless
``strict=True`` is passed.
"""

import csv
import io
from collections.abc import Iterable
from dataclasses import dataclass, field
from os import PathLike

from expense_tracker.core.settings import DEFAULT_DATE_FORMATS, Settings
from expense_tracker.domain.text import clean_text, optional_text
from expense_tracker.domain.values import ZERO, parse_amount, parse_date
from expense_tracker.errors import ParseError
from expense_tracker.logger import get_logger
from expense_tracker.models import Transaction

logger = get_logger(__name__)

HEADER_ALIASES: dict[str, tuple[str, ...]] = {
    "date": ("date",),
    "amount": ("amount",),
    "amount_out": ("amount out", "debit", "out"),
    "amount_in": ("amount in", "credit", "in"),
    "description": ("description", "details", "payee", "memo"),
    "category": ("category",),
    "subcategory": ("subcategory", "sub-category", "sub category"),
    "tag": ("tag",),
    "note": ("note", "notes"),
}


@dataclass(frozen=True)
class CsvLayout:
    date_formats: tuple[str, ...] = DEFAULT_DATE_FORMATS
    delimiter: str = ","
    thousands_separator: str = "'"

    @classmethod
    def from_settings(cls, settings: Settings) -> "CsvLayout":
        return cls(
            date_formats=settings.date_formats,
            delimiter=settings.delimiter,
            thousands_separator=settings.thousands_separator,
        )


@dataclass(frozen=True)
class ColumnMap:
    header: tuple[str, ...]
    positions: dict[str, int]

    @property
    def width(self) -> int:
        return len(self.header)

    @property
    def split_amount(self) -> bool:
        return "amount" not in self.positions

    def get(self, row: list[str], name: str) -> str | None:
        index = self.positions.get(name)
        if index is None:
            return None
        return row[index]


@dataclass
class ParseReport:
    transactions: list[Transaction] = field(default_factory=list)
    errors: list[ParseError] = field(default_factory=list)
    rows: int = 0
    columns: ColumnMap | None = None

    @property
    def ok(self) -> bool:
        return not self.errors


def map_header(header: list[str]) -> ColumnMap:
    normalized = [" ".join(name.split()).lower() for name in header]
    positions: dict[str, int] = {}
    for field_name, aliases in HEADER_ALIASES.items():
        for alias in aliases:
            if alias in normalized:
                positions[field_name] = normalized.index(alias)
                break

    missing = [name for name in ("date", "description") if name not in positions]
    has_split = "amount_out" in positions or "amount_in" in positions
    if "amount" not in positions and not has_split:
        missing.append("amount")
    if missing:
        raise ParseError(
            f"CSV header is missing required columns: {', '.join(missing)}",
            line=1,
            value=", ".join(header),
        )
    if "amount" in positions:
        # A signed amount column takes precedence over a split layout.
        positions.pop("amount_out", None)
        positions.pop("amount_in", None)
    return ColumnMap(header=tuple(header), positions=positions)


def _parse_row(row: list[str], columns: ColumnMap, layout: CsvLayout, line: int) -> Transaction:
    if len(row) != columns.width:
        raise ParseError(
            f"expected {columns.width} columns, found {len(row)}",
            line=line,
            value=layout.delimiter.join(row),
        )

    raw_date = columns.get(row, "date") or ""
    try:
        date_value = parse_date(raw_date, layout.date_formats)
    except ValueError as exc:
        raise ParseError(f"invalid date: {exc}", line=line, column="date", value=raw_date) from exc

    if columns.split_amount:
        amounts = {}
        for name in ("amount_out", "amount_in"):
            raw_amount = columns.get(row, name) or ""
            try:
                amounts[name] = parse_amount(raw_amount, layout.thousands_separator)
            except ValueError as exc:
                raise ParseError("invalid amount", line=line, column=name, value=raw_amount) from exc
        amount = amounts.get("amount_in", ZERO) - amounts.get("amount_out", ZERO)
    else:
        raw_amount = columns.get(row, "amount") or ""
        try:
            amount = parse_amount(raw_amount, layout.thousands_separator)
        except ValueError as exc:
            raise ParseError("invalid amount", line=line, column="amount", value=raw_amount) from exc

    return Transaction(
        date=date_value,
        amount=amount,
        description=clean_text(columns.get(row, "description")),
        category=optional_text(columns.get(row, "category")),
        subcategory=optional_text(columns.get(row, "subcategory")),
        tag=optional_text(columns.get(row, "tag")),
        note=optional_text(columns.get(row, "note")),
        line=line,
    )


def _next_row(reader) -> list[str]:
    """Return the next CSV row; a file that is not valid UTF-8 cannot be read further."""
    try:
        return next(reader)
    except UnicodeDecodeError as exc:
        raise ParseError(
            f"input is not valid UTF-8 ({exc.reason})", line=reader.line_num + 1
        ) from exc


def parse_lines(
    lines: Iterable[str],
    layout: CsvLayout | None = None,
    *,
    strict: bool = False,
) -> ParseReport:
    layout = layout or CsvLayout()
    reader = csv.reader(lines, delimiter=layout.delimiter)
    report = ParseReport()

    try:
        header = _next_row(reader)
    except StopIteration:
        raise ParseError("CSV input is empty", line=1) from None
    except csv.Error as exc:
        raise ParseError(f"unreadable header: {exc}", line=1) from exc
    report.columns = map_header(header)
    logger.debug("CSV header: %s", header)

    while True:
        try:
            row = _next_row(reader)
        except StopIteration:
            break
        except csv.Error as exc:
            # the reader drops the rest of the offending record and resumes
            report.rows += 1
            error = ParseError(f"unreadable row: {exc}", line=reader.line_num)
            if strict:
                raise error from exc
            logger.warning("Skipping row: %s", error)
            report.errors.append(error)
            continue
        if not row or all(not cell.strip() for cell in row):
            continue
        report.rows += 1
        try:
            report.transactions.append(_parse_row(row, report.columns, layout, reader.line_num))
        except ParseError as exc:
            if strict:
                raise
            logger.warning("Skipping row: %s", exc)
            report.errors.append(exc)

    logger.info(
        "Parsed %d of %d rows (%d rejected).",
        len(report.transactions),
        report.rows,
        len(report.errors),
    )
    return report


def parse_text(text: str, layout: CsvLayout | None = None, *, strict: bool = False) -> ParseReport:
    return parse_lines(io.StringIO(text, newline=""), layout, strict=strict)


def read_transactions(
    path: str | PathLike[str],
    layout: CsvLayout | None = None,
    *,
    strict: bool = False,
) -> ParseReport:
    """Read a UTF-8 CSV file of transactions. ``OSError`` propagates to the caller."""
    with open(path, encoding="utf-8-sig", newline="") as handle:
        return parse_lines(handle, layout, strict=strict)
