import datetime
from decimal import Decimal, InvalidOperation

ZERO = Decimal("0")


def parse_amount(raw: str, thousands_separator: str = "'") -> Decimal:
    """Parse an amount cell. An empty cell is zero."""
    text = raw.strip()
    if not text:
        return ZERO
    if thousands_separator:
        text = text.replace(thousands_separator, "")
    try:
        value = Decimal(text)
    except InvalidOperation:
        raise ValueError(f"not a number: {raw!r}") from None
    if not value.is_finite():
        raise ValueError(f"not a finite number: {raw!r}")
    return value


def parse_date(raw: str, formats: tuple[str, ...]) -> datetime.date:
    text = raw.strip()
    if not text:
        raise ValueError("empty date")
    for fmt in formats:
        try:
            return datetime.datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    raise ValueError(f"date {raw!r} does not match any of {', '.join(formats)}")


def format_amount(value: Decimal) -> str:
    # Plain notation: Decimal("1E+3") would otherwise render in scientific form.
    return f"{value:f}"


def format_date(value: datetime.date, fmt: str) -> str:
    return value.strftime(fmt)
