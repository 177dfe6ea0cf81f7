import json
import logging
from pathlib import Path

import pytest

from expense_tracker.core.settings import _CONFIG_KEYS
from expense_tracker.store import CategoryStore

CATEGORIES = {
    "categories": [
        {
            "name": "Groceries",
            "rules": ["supermarket", "migros"],
            "subcategories": [
                {"name": "Bakery", "rules": ["bakery", "boulangerie"]},
            ],
        },
        {
            "name": "Transport",
            "rules": [{"pattern": r"\bsbb\b", "kind": "regex"}, "uber"],
            "subcategories": [
                {"name": "Train", "rules": ["cff"]},
                {"name": "Taxi", "rules": []},
            ],
        },
        {"name": "Income", "rules": ["salary"]},
    ]
}


@pytest.fixture(autouse=True)
def _clean_environment(monkeypatch: pytest.MonkeyPatch):
    for key in (*_CONFIG_KEYS, "CONFIG_DIR"):
        monkeypatch.delenv(key, raising=False)
    yield
    # The CLI installs handlers bound to the runner's streams.
    root = logging.getLogger()
    for handler in list(root.handlers):
        if handler.name in {"console", "file"}:
            root.removeHandler(handler)
            handler.close()


@pytest.fixture
def categories_config() -> dict:
    return json.loads(json.dumps(CATEGORIES))


@pytest.fixture
def store(categories_config: dict) -> CategoryStore:
    return CategoryStore.from_dict(categories_config)


@pytest.fixture
def categories_file(tmp_path: Path, categories_config: dict) -> Path:
    path = tmp_path / "categories.json"
    path.write_text(json.dumps(categories_config), encoding="utf-8")
    return path
