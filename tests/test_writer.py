import io
from decimal import Decimal
from pathlib import Path

from expense_tracker.aggregation import totals_by_period, totals_by_subcategory
from expense_tracker.ledger import Ledger
from expense_tracker.store import CategoryStore
from expense_tracker.writer import write_totals, write_transactions

LABELLED_CSV = (
    "Date,Amount Out,Amount In,Description,Category,Subcategory,Tag,Note\n"
    "01.02.2024,12.50,,SUPERMARKET XYZ,Groceries,,,\n"
    "02.02.2024,4.20,,Boulangerie Paul,Groceries,Bakery,breakfast,\n"
    "03.02.2024,,2500.00,Salary March,Income,,,monthly\n"
)


def test_round_trip_preserves_fields(store: CategoryStore) -> None:
    ledger = Ledger(store=store)
    summary = ledger.load_text(LABELLED_CSV)
    out = io.StringIO()

    write_transactions(ledger.transactions, out, split_amount=summary.columns.split_amount)

    assert out.getvalue() == LABELLED_CSV


def test_classified_rows_are_written_with_their_category(store: CategoryStore) -> None:
    ledger = Ledger(store=store)
    ledger.load_text("Date,Amount,Description\n2024-02-01,-12.5,SuperMarket Xyz\n")
    out = io.StringIO()

    write_transactions(ledger.transactions, out, date_format="%Y-%m-%d")

    assert out.getvalue().splitlines() == [
        "Date,Amount,Description,Category,Subcategory,Tag,Note",
        "2024-02-01,-12.5,SuperMarket Xyz,Groceries,,,",
    ]


def test_write_transactions_to_file(tmp_path: Path, store: CategoryStore) -> None:
    ledger = Ledger(store=store)
    ledger.load_text(LABELLED_CSV)
    path = tmp_path / "out.csv"

    count = write_transactions(ledger.transactions, path, split_amount=True)

    assert count == 3
    assert path.read_text(encoding="utf-8") == LABELLED_CSV


def test_write_totals(store: CategoryStore) -> None:
    ledger = Ledger(store=store)
    ledger.load_text(LABELLED_CSV + "04.02.2024,1.00,,Unknown shop,,,,\n")
    out = io.StringIO()

    rows = write_totals(totals_by_subcategory(ledger.transactions), out)

    assert rows == 4
    assert out.getvalue().splitlines() == [
        "Category,Subcategory,Total",
        "Groceries,Bakery,-4.20",
        "Groceries,,-12.50",
        "Income,,2500.00",
        ",,-1.00",
    ]


def test_write_period_totals(store: CategoryStore) -> None:
    ledger = Ledger(store=store)
    ledger.load_text(LABELLED_CSV)
    out = io.StringIO()

    write_totals(totals_by_period(ledger.transactions, "year"), out)

    lines = out.getvalue().splitlines()
    assert lines[0] == "Period,Category,Subcategory,Total"
    assert "2024,Income,,2500.00" in lines


def test_write_category_totals() -> None:
    out = io.StringIO()

    write_totals({"Groceries": Decimal("-3"), None: Decimal("1")}, out)

    assert out.getvalue().splitlines() == ["Category,Total", "Groceries,-3", ",1"]
