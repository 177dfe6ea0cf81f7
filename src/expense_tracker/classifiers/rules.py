from expense_tracker.models import CategorizationResult, Transaction
from expense_tracker.store import CategoryStore

from .base import Classifier


class RuleClassifier(Classifier):
    """Keyword and regex rules from the category configuration."""

    name = "rules"

    def classify(self, transaction: Transaction, store: CategoryStore) -> CategorizationResult | None:
        return store.match(transaction.description)
