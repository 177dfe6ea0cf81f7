"""In-memory ledger for one run: the category store plus its transactions."""

from dataclasses import dataclass, field
from decimal import Decimal
from os import PathLike

from expense_tracker.errors import LedgerError, ParseError
from expense_tracker.logger import get_logger
from expense_tracker.manager import CategorizerService
from expense_tracker.models import Transaction
from expense_tracker.parsing import ColumnMap, CsvLayout, ParseReport, parse_text, read_transactions
from expense_tracker.store import CategoryStore

logger = get_logger(__name__)


@dataclass
class LoadSummary:
    rows: int = 0
    added: int = 0
    classified: int = 0
    uncategorized: int = 0
    ignored: list[str] = field(default_factory=list)
    parse_errors: list[ParseError] = field(default_factory=list)
    columns: ColumnMap | None = None

    @property
    def rejected(self) -> int:
        return len(self.ignored) + len(self.parse_errors)


class Ledger:
    def __init__(self, store: CategoryStore | None = None, service: CategorizerService | None = None):
        self.store = store if store is not None else CategoryStore()
        self.service = service if service is not None else CategorizerService(data_dir=None)
        self.transactions: list[Transaction] = []

    def add_transaction(self, transaction: Transaction) -> None:
        """Append a transaction whose category fields are valid for the store.

        Uncategorized transactions are accepted. A sub-category without a
        category, an unknown category or a sub-category that does not belong
        to its category raise :class:`LedgerError`.
        """
        if not transaction.category:
            if transaction.subcategory:
                raise LedgerError(f"sub-category '{transaction.subcategory}' has no category")
            self.transactions.append(transaction)
            return

        if transaction.category not in self.store:
            raise LedgerError(f"invalid category '{transaction.category}'")
        if not self.store.is_valid(transaction.category, transaction.subcategory):
            raise LedgerError(
                f"invalid sub-category '{transaction.subcategory}' "
                f"(not linked to category '{transaction.category}')"
            )
        transaction.category, transaction.subcategory = self.store.canonical(
            transaction.category, transaction.subcategory
        )
        self.transactions.append(transaction)

    def classify(self, transaction: Transaction) -> bool:
        result = self.service.categorize(transaction, self.store)
        if result is None:
            return False
        transaction.category = result.category
        transaction.subcategory = result.subcategory
        return True

    def ingest(self, report: ParseReport, *, generate_categories: bool = False) -> LoadSummary:
        summary = LoadSummary(
            rows=report.rows,
            parse_errors=list(report.errors),
            columns=report.columns,
        )
        labelled = [t for t in report.transactions if t.category]

        if generate_categories:
            self.store.register_labels(labelled)
        trusted = []
        for transaction in labelled:
            if self.store.is_valid(transaction.category, transaction.subcategory):
                transaction.category, transaction.subcategory = self.store.canonical(
                    transaction.category, transaction.subcategory
                )
                trusted.append(transaction)
        self.service.learn(trusted)

        for transaction in report.transactions:
            if not transaction.category and self.classify(transaction):
                summary.classified += 1
            try:
                self.add_transaction(transaction)
            except LedgerError as exc:
                logger.warning("Ignoring transaction on line %s: %s", transaction.line, exc)
                summary.ignored.append(f"line {transaction.line}: {exc}")
                continue
            summary.added += 1
            if not transaction.category:
                summary.uncategorized += 1

        logger.info(
            "Ledger: %d added (%d classified, %d uncategorized), %d ignored, %d unparseable.",
            summary.added,
            summary.classified,
            summary.uncategorized,
            len(summary.ignored),
            len(summary.parse_errors),
        )
        return summary

    def load(
        self,
        path: str | PathLike[str],
        layout: CsvLayout | None = None,
        *,
        generate_categories: bool = False,
        strict: bool = False,
    ) -> LoadSummary:
        report = read_transactions(path, layout, strict=strict)
        return self.ingest(report, generate_categories=generate_categories)

    def load_text(
        self,
        text: str,
        layout: CsvLayout | None = None,
        *,
        generate_categories: bool = False,
        strict: bool = False,
    ) -> LoadSummary:
        report = parse_text(text, layout, strict=strict)
        return self.ingest(report, generate_categories=generate_categories)

    def total(self) -> Decimal:
        return sum((t.amount for t in self.transactions), Decimal("0"))

    def uncategorized(self) -> list[Transaction]:
        return [t for t in self.transactions if not t.category]
