import json
import os
from collections.abc import Iterable

from rapidfuzz import fuzz, process

from expense_tracker.logger import get_logger
from expense_tracker.models import CategorizationResult, Transaction
from expense_tracker.store import CategoryStore

from .base import Classifier

logger = get_logger(__name__)


class MemoryMatcher(Classifier):
    name = "memory"
    trainable = True

    def __init__(self, data_path: str | None = "memory.json", threshold: float = 90.0):
        self.data_path = data_path
        self.threshold = threshold
        self.memory: dict[str, tuple[str, str | None]] = {} # description -> (category, subcategory)
        self.load()

    def load(self) -> None:
        if not self.data_path or not os.path.exists(self.data_path):
            return
        with open(self.data_path, encoding="utf-8") as f:
            try:
                raw = json.load(f)
            except json.JSONDecodeError:
                raw = None
        if not isinstance(raw, dict):
            logger.warning("Ignoring unreadable memory file %s", self.data_path)
            return
        self.memory = {
            description: (label[0], label[1] if len(label) > 1 else None)
            for description, label in raw.items()
            if isinstance(label, list) and label
        }

    def save(self) -> None:
        if not self.data_path:
            return
        with open(self.data_path, "w", encoding="utf-8") as f:
            json.dump({k: list(v) for k, v in self.memory.items()}, f, indent=2, ensure_ascii=False)

    def _result(
        self, label: tuple[str, str | None], store: CategoryStore, confidence: float, source: str
    ) -> CategorizationResult | None:
        category, subcategory = label
        if not store.is_valid(category, subcategory):
            return None
        category, subcategory = store.canonical(category, subcategory)
        return CategorizationResult(
            category=category,
            subcategory=subcategory,
            confidence=confidence,
            source=source,
        )

    def classify(self, transaction: Transaction, store: CategoryStore) -> CategorizationResult | None:
        if not self.memory or not transaction.description:
            return None

        label = self.memory.get(transaction.description)
        if label is not None:
            result = self._result(label, store, 1.0, "memory_exact")
            if result:
                return result

        match = process.extractOne(
            transaction.description,
            self.memory.keys(),
            scorer=fuzz.token_sort_ratio,
            score_cutoff=self.threshold,
        )
        if match:
            description, score, _ = match
            return self._result(self.memory[description], store, score / 100.0, "memory_fuzzy")
        return None

    def learn_many(self, transactions: Iterable[Transaction]) -> None:
        learned = 0
        for transaction in transactions:
            if transaction.category and transaction.description:
                self.memory[transaction.description] = (transaction.category, transaction.subcategory)
                learned += 1
        if learned:
            self.save()
            logger.debug("Memory learned %d descriptions.", learned)

    def clear(self) -> None:
        self.memory = {}
        self.save()
