import os
from collections.abc import Iterable

from expense_tracker.classifiers.base import Classifier
from expense_tracker.classifiers.memory import MemoryMatcher
from expense_tracker.classifiers.rules import RuleClassifier
from expense_tracker.classifiers.tfidf import TfidfClassifier
from expense_tracker.core.settings import DEFAULT_CLASSIFIERS
from expense_tracker.logger import get_logger
from expense_tracker.models import CategorizationResult, Transaction
from expense_tracker.store import CategoryStore

logger = get_logger(__name__)


class CategorizerService:
    def __init__(self,
                 enabled: Iterable[str] = DEFAULT_CLASSIFIERS,
                 memory_threshold: float = 90.0,
                 tfidf_threshold: float = 0.5,
                 data_dir: str | None = "."):
        enabled = set(enabled)
        self.classifiers: list[Classifier] = []

        # Order is fixed regardless of how the names were listed.
        if "rules" in enabled:
            self.classifiers.append(RuleClassifier())

        if "memory" in enabled:
            self.classifiers.append(MemoryMatcher(
                data_path=os.path.join(data_dir, "memory.json") if data_dir else None,
                threshold=memory_threshold,
            ))

        if "tfidf" in enabled:
            self.classifiers.append(TfidfClassifier(
                data_path=os.path.join(data_dir, "tfidf.pkl") if data_dir else None,
                threshold=tfidf_threshold,
            ))

        logger.info(
            "Classifiers enabled: %s",
            ", ".join(c.name for c in self.classifiers) or "none",
        )

    def categorize(self, transaction: Transaction, store: CategoryStore) -> CategorizationResult | None:
        for classifier in self.classifiers:
            result = classifier.classify(transaction, store)

            if result is None:
                continue
            if not store.is_valid(result.category, result.subcategory):
                logger.debug(
                    f"{classifier.name} suggested unknown category '{result.category}' "
                    f"for line {transaction.line}; ignoring."
                )
                continue

            logger.debug(
                f"{classifier.name} matched '{transaction.description[:50]}' -> "
                f"'{result.category}' (confidence: {result.confidence:.2f})"
            )
            return result

        logger.debug(f"No classifier matched for: '{transaction.description[:50]}'")
        return None

    def learn(self, transactions: Iterable[Transaction]) -> None:
        """
        Teach every trainable classifier from labelled transactions.
        """
        labelled = [t for t in transactions if t.category]
        if not labelled:
            return
        for classifier in self.classifiers:
            if classifier.trainable:
                classifier.learn_many(labelled)
