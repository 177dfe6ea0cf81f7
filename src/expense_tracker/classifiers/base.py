from abc import ABC, abstractmethod
from collections.abc import Iterable

from expense_tracker.models import CategorizationResult, Transaction
from expense_tracker.store import CategoryStore


class Classifier(ABC):
    name: str = "classifier"
    trainable: bool = False

    @abstractmethod
    def classify(self, transaction: Transaction, store: CategoryStore) -> CategorizationResult | None:
        """Attempt to categorize the transaction against the known categories."""
        pass

    def learn(self, transaction: Transaction) -> None:
        """Learn from a transaction that already carries a category."""
        self.learn_many([transaction])

    def learn_many(self, transactions: Iterable[Transaction]) -> None:
        pass

    def clear(self) -> None:
        pass
