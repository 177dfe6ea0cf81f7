import json
from collections.abc import Iterable, Iterator
from os import PathLike

from pydantic import BaseModel, Field, ValidationError

from expense_tracker.errors import ConfigError
from expense_tracker.logger import get_logger
from expense_tracker.models import CategorizationResult, Category, SubCategory, Transaction

logger = get_logger(__name__)


class CategoryConfig(BaseModel):
    categories: list[Category] = Field(default_factory=list)


def _format_validation_error(exc: ValidationError) -> str:
    problems = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error["loc"])
        problems.append(f"{location}: {error['msg']}" if location else error["msg"])
    return "; ".join(problems)


class CategoryStore:
    """User-defined categories, their sub-categories and matching rules.

    Names are looked up case-insensitively but keep the casing they were
    defined with. Iteration and rule matching follow definition order.
    """

    def __init__(self, categories: Iterable[Category] | None = None):
        self._categories: dict[str, Category] = {}
        for category in categories or []:
            if category.key in self._categories:
                raise ConfigError(f"duplicate category '{category.name}'")
            self._categories[category.key] = category

    @classmethod
    def load(cls, path: str | PathLike[str]) -> "CategoryStore":
        with open(path, encoding="utf-8") as handle:
            try:
                raw = json.load(handle)
            except UnicodeDecodeError as exc:
                raise ConfigError(f"not valid UTF-8: {exc.reason}", path=str(path)) from exc
            except json.JSONDecodeError as exc:
                raise ConfigError(f"invalid JSON: {exc}", path=str(path)) from exc
        return cls.from_dict(raw, path=str(path))

    @classmethod
    def from_dict(cls, raw: object, path: str | None = None) -> "CategoryStore":
        try:
            config = CategoryConfig.model_validate(raw)
        except ValidationError as exc:
            raise ConfigError(_format_validation_error(exc), path=path) from exc
        try:
            store = cls(config.categories)
        except ConfigError as exc:
            raise ConfigError(exc.message, path=path) from exc
        logger.info("Loaded %d categories%s.", len(store), f" from {path}" if path else "")
        return store

    @classmethod
    def from_transactions(cls, transactions: Iterable[Transaction]) -> "CategoryStore":
        """Build a store from the labels already present on transactions."""
        store = cls()
        store.register_labels(transactions)
        return store

    def register_labels(self, transactions: Iterable[Transaction]) -> None:
        for transaction in transactions:
            if not transaction.category:
                continue
            self.add_category(transaction.category)
            if transaction.subcategory:
                self.add_subcategory(transaction.category, transaction.subcategory)

    def save(self, path: str | PathLike[str]) -> None:
        config = CategoryConfig(categories=list(self._categories.values()))
        with open(path, "w", encoding="utf-8") as handle:
            json.dump(config.model_dump(mode="json"), handle, indent=2, ensure_ascii=False)
            handle.write("\n")

    def __len__(self) -> int:
        return len(self._categories)

    def __iter__(self) -> Iterator[Category]:
        return iter(self._categories.values())

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and name.casefold() in self._categories

    def names(self) -> list[str]:
        return [category.name for category in self._categories.values()]

    def get(self, name: str) -> Category | None:
        return self._categories.get(name.casefold())

    def add_category(self, name: str) -> Category:
        existing = self.get(name)
        if existing is not None:
            return existing
        category = Category(name=name)
        self._categories[category.key] = category
        logger.debug("Added category '%s'.", category.name)
        return category

    def add_subcategory(self, category_name: str, subcategory_name: str) -> SubCategory:
        category = self.get(category_name)
        if category is None:
            raise ConfigError(
                f"sub-category '{subcategory_name}' cannot be added because "
                f"category '{category_name}' does not exist"
            )
        existing = category.get_subcategory(subcategory_name)
        if existing is not None:
            return existing
        subcategory = SubCategory(name=subcategory_name)
        category.subcategories.append(subcategory)
        logger.debug("Added sub-category '%s' to '%s'.", subcategory.name, category.name)
        return subcategory

    def is_valid(self, category_name: str | None, subcategory_name: str | None = None) -> bool:
        if not category_name:
            return not subcategory_name
        category = self.get(category_name)
        if category is None:
            return False
        if subcategory_name is None:
            return True
        return category.get_subcategory(subcategory_name) is not None

    def canonical(
        self, category_name: str, subcategory_name: str | None = None
    ) -> tuple[str, str | None]:
        """Return the configured spelling of a valid category pair."""
        category = self.get(category_name)
        if category is None:
            raise KeyError(category_name)
        if subcategory_name is None:
            return category.name, None
        subcategory = category.get_subcategory(subcategory_name)
        if subcategory is None:
            raise KeyError(subcategory_name)
        return category.name, subcategory.name

    def match(self, description: str) -> CategorizationResult | None:
        """First matching rule wins.

        Categories are tried in definition order. Within a category the
        sub-category rules come before the category's own rules.
        """
        if not description:
            return None
        for category in self._categories.values():
            for subcategory in category.subcategories:
                for rule in subcategory.rules:
                    if rule.matches(description):
                        return CategorizationResult(
                            category=category.name,
                            subcategory=subcategory.name,
                            confidence=1.0,
                            source="rule",
                            rule=rule.pattern,
                        )
            for rule in category.rules:
                if rule.matches(description):
                    return CategorizationResult(
                        category=category.name,
                        confidence=1.0,
                        source="rule",
                        rule=rule.pattern,
                    )
        return None
