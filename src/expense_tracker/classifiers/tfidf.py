import os
import pickle
from collections.abc import Iterable

from sklearn.feature_extraction.text import TfidfVectorizer
from sklearn.linear_model import SGDClassifier
from sklearn.pipeline import Pipeline

from expense_tracker.logger import get_logger
from expense_tracker.models import CategorizationResult, Transaction
from expense_tracker.store import CategoryStore

from .base import Classifier

logger = get_logger(__name__)

# Joins category and sub-category into a single class label.
_LABEL_SEPARATOR = "\x1f"


def encode_label(category: str, subcategory: str | None) -> str:
    return f"{category}{_LABEL_SEPARATOR}{subcategory or ''}"


def decode_label(label: str) -> tuple[str, str | None]:
    category, _, subcategory = label.partition(_LABEL_SEPARATOR)
    return category, subcategory or None


def _build_pipeline() -> Pipeline:
    return Pipeline([
        ('tfidf', TfidfVectorizer(analyzer='char_wb', ngram_range=(3, 5), min_df=1)),
        ('clf', SGDClassifier(loss='log_loss', random_state=42))
    ])


class TfidfClassifier(Classifier):
    name = "tfidf"
    trainable = True

    def __init__(self, data_path: str | None = "tfidf.pkl", threshold: float = 0.5):
        self.data_path = data_path
        self.threshold = threshold
        self.pipeline = _build_pipeline()
        self.examples: list[str] = []
        self.labels: list[str] = []
        self.is_fitted = False
        self.load()

    def load(self) -> None:
        if not self.data_path or not os.path.exists(self.data_path):
            return
        try:
            with open(self.data_path, "rb") as f:
                data = pickle.load(f)
        except (pickle.UnpicklingError, EOFError):
            logger.warning("Ignoring unreadable model file %s", self.data_path)
            return
        self.examples = data.get("examples", [])
        self.labels = data.get("labels", [])
        self._fit()

    def save(self) -> None:
        if not self.data_path:
            return
        with open(self.data_path, "wb") as f:
            pickle.dump({
                "examples": self.examples,
                "labels": self.labels
            }, f)

    def _fit(self) -> None:
        # SGD needs at least two classes.
        if len(set(self.labels)) < 2:
            self.is_fitted = False
            return
        self.pipeline.fit(self.examples, self.labels)
        self.is_fitted = True

    def classify(self, transaction: Transaction, store: CategoryStore) -> CategorizationResult | None:
        if not self.is_fitted or not transaction.description:
            return None

        probs = self.pipeline.predict_proba([transaction.description])[0]
        best = probs.argmax()
        confidence = float(probs[best])
        if confidence < self.threshold:
            return None

        category, subcategory = decode_label(self.pipeline.classes_[best])
        if not store.is_valid(category, subcategory):
            return None
        category, subcategory = store.canonical(category, subcategory)
        return CategorizationResult(
            category=category,
            subcategory=subcategory,
            confidence=confidence,
            source="tfidf",
        )

    def learn_many(self, transactions: Iterable[Transaction]) -> None:
        added = 0
        for transaction in transactions:
            if transaction.category and transaction.description:
                self.examples.append(transaction.description)
                self.labels.append(encode_label(transaction.category, transaction.subcategory))
                added += 1
        if not added:
            return
        # Retrain once per batch rather than once per example.
        self._fit()
        self.save()
        logger.debug("TF-IDF trained on %d examples (%d new).", len(self.examples), added)

    def clear(self) -> None:
        self.examples = []
        self.labels = []
        self.is_fitted = False
        self.pipeline = _build_pipeline()
        self.save()
