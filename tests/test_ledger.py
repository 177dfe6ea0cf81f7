import json
from datetime import date
from decimal import Decimal
from pathlib import Path

import pytest

from expense_tracker.errors import LedgerError, ParseError
from expense_tracker.ledger import Ledger
from expense_tracker.manager import CategorizerService
from expense_tracker.models import Transaction
from expense_tracker.store import CategoryStore

HEADER = "Date,Amount Out,Amount In,Description,Category,Subcategory,Tag,Note\n"


def _tx(category: str | None = None, subcategory: str | None = None) -> Transaction:
    return Transaction(
        date=date(2024, 1, 1),
        amount=Decimal("0"),
        description="",
        category=category,
        subcategory=subcategory,
    )


@pytest.fixture
def tracker() -> Ledger:
    store = CategoryStore()
    store.add_category("Nourriture")
    store.add_subcategory("Nourriture", "Courses")
    store.add_category("Transports")
    return Ledger(store=store)


def test_add_transactions_valid(tracker: Ledger) -> None:
    transactions = [_tx("Nourriture", "Courses"), _tx("Transports"), _tx("nourriture")]

    for transaction in transactions:
        tracker.add_transaction(transaction)

    assert tracker.transactions == transactions
    # Labels take the configured spelling.
    assert tracker.transactions[2].category == "Nourriture"


def test_add_transaction_invalid_category(tracker: Ledger) -> None:
    with pytest.raises(LedgerError, match="invalid category"):
        tracker.add_transaction(_tx("Loisirs"))


def test_add_transaction_invalid_subcategory(tracker: Ledger) -> None:
    with pytest.raises(LedgerError, match="invalid sub-category"):
        tracker.add_transaction(_tx("Nourriture", "Restaurant"))


def test_add_transaction_subcategory_without_category(tracker: Ledger) -> None:
    with pytest.raises(LedgerError):
        tracker.add_transaction(_tx(None, "Courses"))


def test_uncategorized_transactions_are_accepted(tracker: Ledger) -> None:
    tracker.add_transaction(_tx())

    assert tracker.uncategorized() == tracker.transactions


def test_load_classifies_unlabelled_rows(store: CategoryStore) -> None:
    ledger = Ledger(store=store)
    text = HEADER + (
        "01.02.2024,42.10,,SUPERMARKET XYZ,,,,\n"
        "02.02.2024,3.80,,Boulangerie Paul,,,,\n"
        "03.02.2024,,5000.00,Salary,Income,,,\n"
        "04.02.2024,15.00,,Cinema,,,,\n"
    )

    summary = ledger.load_text(text)

    assert summary.rows == 4
    assert summary.added == 4
    assert summary.classified == 2
    assert summary.uncategorized == 1
    assert summary.rejected == 0
    assert [(t.category, t.subcategory) for t in ledger.transactions] == [
        ("Groceries", None),
        ("Groceries", "Bakery"),
        ("Income", None),
        (None, None),
    ]
    assert ledger.total() == Decimal("4939.10")


def test_load_ignores_unknown_labels_and_bad_rows(store: CategoryStore) -> None:
    ledger = Ledger(store=store)
    text = HEADER + (
        "01.02.2024,10.00,,Movie night,Leisure,,,\n"
        "02.02.2024,oops,,Broken,,,,\n"
        "03.02.2024,5.00,,Uber,,,,\n"
    )

    summary = ledger.load_text(text)

    assert summary.added == 1
    assert summary.rejected == 2
    assert len(summary.ignored) == 1 and "line 2" in summary.ignored[0]
    assert summary.parse_errors[0].line == 3
    assert ledger.transactions[0].category == "Transport"


def test_load_generates_categories_from_labels() -> None:
    ledger = Ledger()
    text = HEADER + (
        "01.02.2024,10.00,,Coop,Nourriture,Courses,,\n"
        "02.02.2024,20.00,,Pizzeria,Nourriture,Restaurant,,\n"
        "03.02.2024,2.50,,Bus,Transports,,,\n"
    )

    summary = ledger.load_text(text, generate_categories=True)

    assert summary.added == 3
    assert ledger.store.names() == ["Nourriture", "Transports"]
    assert ledger.store.is_valid("Nourriture", "Restaurant")


def test_load_strict_raises(store: CategoryStore) -> None:
    with pytest.raises(ParseError):
        Ledger(store=store).load_text(HEADER + "bad,1,,x,,,,\n", strict=True)


def test_load_from_file(tmp_path: Path, store: CategoryStore) -> None:
    path = tmp_path / "transactions.csv"
    path.write_text(HEADER + "01.02.2024,1.00,,Migros,,,,\n", encoding="utf-8")

    ledger = Ledger(store=store)
    ledger.load(path)

    assert ledger.transactions[0].category == "Groceries"


def test_learning_uses_configured_spelling(tmp_path: Path, store: CategoryStore) -> None:
    service = CategorizerService(enabled=["rules", "memory"], data_dir=str(tmp_path))
    ledger = Ledger(store=store, service=service)
    text = HEADER + "01.02.2024,7.00,,Corner shop,groceries,bakery,,\n"

    ledger.load_text(text)

    saved = json.loads((tmp_path / "memory.json").read_text(encoding="utf-8"))
    assert saved == {"Corner shop": ["Groceries", "Bakery"]}
    assert (ledger.transactions[0].category, ledger.transactions[0].subcategory) == ("Groceries", "Bakery")
