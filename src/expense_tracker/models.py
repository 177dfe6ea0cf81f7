import datetime
import re
from decimal import Decimal
from typing import Annotated, Any, Literal

from pydantic import AfterValidator, BaseModel, Field, field_validator, model_validator

RuleKind = Literal["substring", "regex"]


class Transaction(BaseModel):
    date: datetime.date
    amount: Decimal # signed, negative is money out
    description: str
    category: str | None = None
    subcategory: str | None = None
    tag: str | None = None
    note: str | None = None
    line: int | None = None # 1-based line in the source CSV


class Rule(BaseModel):
    pattern: str
    kind: RuleKind = "substring"

    @model_validator(mode="before")
    @classmethod
    def _from_shorthand(cls, value: Any) -> Any:
        # A bare string in the config is a substring rule.
        if isinstance(value, str):
            return {"pattern": value}
        return value

    @field_validator("pattern")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("rule pattern must not be empty")
        return value

    @model_validator(mode="after")
    def _check_regex(self) -> "Rule":
        if self.kind == "regex":
            try:
                re.compile(self.pattern)
            except re.error as exc:
                raise ValueError(f"invalid regex {self.pattern!r}: {exc}") from exc
        return self

    def matches(self, description: str) -> bool:
        if self.kind == "regex":
            return re.search(self.pattern, description, re.IGNORECASE) is not None
        return self.pattern.casefold() in description.casefold()


def _clean_name(value: str) -> str:
    name = " ".join(value.split())
    if not name:
        raise ValueError("name must not be empty")
    return name


Name = Annotated[str, AfterValidator(_clean_name)]


class SubCategory(BaseModel):
    name: Name
    rules: list[Rule] = Field(default_factory=list)

    @property
    def key(self) -> str:
        return self.name.casefold()


class Category(BaseModel):
    name: Name
    rules: list[Rule] = Field(default_factory=list)
    subcategories: list[SubCategory] = Field(default_factory=list)

    @property
    def key(self) -> str:
        return self.name.casefold()

    @model_validator(mode="after")
    def _unique_subcategories(self) -> "Category":
        seen: set[str] = set()
        for sub in self.subcategories:
            if sub.key in seen:
                raise ValueError(f"duplicate sub-category '{sub.name}' in '{self.name}'")
            seen.add(sub.key)
        return self

    def get_subcategory(self, name: str) -> SubCategory | None:
        key = name.casefold()
        for sub in self.subcategories:
            if sub.key == key:
                return sub
        return None


class CategorizationResult(BaseModel):
    category: str
    subcategory: str | None = None
    confidence: float # 0.0 to 1.0
    source: str # "rule", "memory_exact", "memory_fuzzy", "tfidf"
    rule: str | None = None
