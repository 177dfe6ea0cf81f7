import os
from pathlib import Path

import pytest

from expense_tracker.core import settings


def test_read_config_file(tmp_path: Path) -> None:
    path = tmp_path / "config.yaml"
    path.write_text(
        "# comment\n"
        "LOG_LEVEL: debug  # inline comment\n"
        "CURRENCY: \"EUR # not a comment\"\n"
        "DATA_DIR: '/tmp/data'\n"
        "EMPTY:\n"
        "not a setting\n",
        encoding="utf-8",
    )

    values = settings.read_config_file(str(path))

    assert values == {
        "LOG_LEVEL": "debug",
        "CURRENCY": "EUR # not a comment",
        "DATA_DIR": "/tmp/data",
    }


def test_read_config_file_missing() -> None:
    assert settings.read_config_file(None) == {}
    assert settings.read_config_file("/nonexistent/config.yaml") == {}


def test_defaults() -> None:
    loaded = settings.load_settings()

    assert loaded == settings.Settings()
    assert loaded.classifiers == ("rules",)
    assert loaded.date_formats == ("%d.%m.%Y", "%Y-%m-%d")


def test_load_settings_from_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("DATE_FORMATS", "%m/%d/%Y, %Y-%m-%d")
    monkeypatch.setenv("CSV_DELIMITER", "tab")
    monkeypatch.setenv("THOUSANDS_SEPARATOR", ",")
    monkeypatch.setenv("CLASSIFIERS", "tfidf, rules, bogus")
    monkeypatch.setenv("MEMORY_THRESHOLD", "not-a-number")
    monkeypatch.setenv("TFIDF_THRESHOLD", "0.8")
    monkeypatch.setenv("LOG_LEVEL", "warning")

    loaded = settings.load_settings()

    assert loaded.date_formats == ("%m/%d/%Y", "%Y-%m-%d")
    assert loaded.delimiter == "\t"
    assert loaded.thousands_separator == ","
    assert loaded.classifiers == ("rules", "tfidf")
    assert loaded.memory_threshold == 90.0
    assert loaded.tfidf_threshold == 0.8
    assert loaded.log_level == "WARNING"


def test_out_of_range_threshold_uses_default(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("TFIDF_THRESHOLD", "1.5")

    assert settings.load_settings().tfidf_threshold == 0.5


def test_load_environment_does_not_override_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    (tmp_path / "config.yaml").write_text("CURRENCY: EUR\nLOG_LEVEL: DEBUG\n", encoding="utf-8")
    monkeypatch.setenv("CONFIG_DIR", str(tmp_path))
    monkeypatch.setenv("LOG_LEVEL", "ERROR")
    # Register CURRENCY with monkeypatch so the value set from the file is undone.
    monkeypatch.setenv("CURRENCY", "placeholder")
    monkeypatch.delenv("CURRENCY")

    path = settings.load_environment()

    assert path == os.path.join(str(tmp_path), "config.yaml")
    assert os.environ["CURRENCY"] == "EUR"
    assert os.environ["LOG_LEVEL"] == "ERROR"
