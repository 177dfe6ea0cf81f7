"""Command line interface for the expense tracker.

Settings come from the environment, optionally loaded from ``.env`` and
``config.yaml`` (see :mod:`expense_tracker.core.settings`). Logs go to stderr
so CSV written to stdout can be piped.
"""

import sys
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Annotated

import typer

from expense_tracker.aggregation import PERIODS, sort_key, totals_by_period, totals_by_subcategory
from expense_tracker.core.settings import Settings, ensure_dir, load_environment, load_settings, log_settings
from expense_tracker.domain.values import format_amount
from expense_tracker.errors import ConfigError, ExpenseTrackerError
from expense_tracker.ledger import Ledger, LoadSummary
from expense_tracker.logger import get_logger, setup_logging
from expense_tracker.manager import CategorizerService
from expense_tracker.parsing import CsvLayout, read_transactions
from expense_tracker.store import CategoryStore
from expense_tracker.writer import write_totals, write_transactions

logger = get_logger(__name__)

app = typer.Typer(
    no_args_is_help=True,
    add_completion=False,
    help="Categorize CSV bank transactions with user-defined rules and summarize spending.",
)

InputArg = Annotated[
    Path,
    typer.Argument(help="CSV file of transactions.", dir_okay=False, exists=True, readable=True),
]
CategoriesOpt = Annotated[
    Path | None,
    typer.Option("--categories", "-c", help="Category config (JSON). Defaults to CATEGORIES_FILE."),
]
OutputOpt = Annotated[
    Path | None,
    typer.Option("--output", "-o", help="Write CSV here instead of stdout.", dir_okay=False),
]
GenerateOpt = Annotated[
    bool,
    typer.Option(
        "--generate-categories",
        help="Accept categories and sub-categories found in the CSV's own columns.",
    ),
]


@contextmanager
def _exit_on_error() -> Iterator[None]:
    try:
        yield
    except (ExpenseTrackerError, OSError) as exc:
        logger.error("%s", exc)
        raise typer.Exit(1) from exc


def _settings(ctx: typer.Context) -> Settings:
    return ctx.obj


def _build_ledger(settings: Settings, categories: Path | None, generate_categories: bool) -> Ledger:
    path = categories or Path(settings.categories_file)
    if path.exists():
        store = CategoryStore.load(path)
    elif generate_categories:
        logger.info("No category file at %s; starting from the CSV's labels.", path)
        store = CategoryStore()
    else:
        raise ConfigError(
            "category file not found (use --generate-categories to start without one)",
            path=str(path),
        )

    ensure_dir(settings.data_dir)
    service = CategorizerService(
        enabled=settings.classifiers,
        memory_threshold=settings.memory_threshold,
        tfidf_threshold=settings.tfidf_threshold,
        data_dir=settings.data_dir,
    )
    return Ledger(store=store, service=service)


def _log_summary(summary: LoadSummary, ledger: Ledger, currency: str) -> None:
    logger.info("Rows in the CSV (excluding the header): %d", summary.rows)
    logger.info("Valid transactions: %d", summary.added)
    logger.info("Transactions ignored: %d", summary.rejected)
    logger.info("Sum of all transactions: %s %s", format_amount(ledger.total()), currency)


def _label(key: tuple) -> str:
    *prefix, category, subcategory = key
    parts = [*prefix, category or "(uncategorized)"]
    if subcategory:
        parts.append(subcategory)
    return " / ".join(parts)


@app.callback()
def main(
    ctx: typer.Context,
    log_level: Annotated[
        str | None, typer.Option("--log-level", help="Override LOG_LEVEL (DEBUG, INFO, ...).")
    ] = None,
) -> None:
    config_path = load_environment()
    settings = load_settings()
    setup_logging(level=log_level or settings.log_level, log_dir=settings.log_dir)
    logger.debug("Config file: %s", config_path)
    log_settings(settings)
    ctx.obj = settings


@app.command()
def classify(
    ctx: typer.Context,
    input_path: InputArg,
    categories: CategoriesOpt = None,
    output: OutputOpt = None,
    generate_categories: GenerateOpt = False,
    strict: Annotated[bool, typer.Option("--strict", help="Stop at the first malformed row.")] = False,
) -> None:
    """Classify every transaction and write them back as CSV."""
    settings = _settings(ctx)
    layout = CsvLayout.from_settings(settings)
    with _exit_on_error():
        ledger = _build_ledger(settings, categories, generate_categories)
        summary = ledger.load(
            input_path, layout, generate_categories=generate_categories, strict=strict
        )
        split_amount = summary.columns.split_amount if summary.columns else False
        write_transactions(
            ledger.transactions,
            output if output else sys.stdout,
            date_format=layout.date_formats[0],
            split_amount=split_amount,
            delimiter=layout.delimiter,
        )
    _log_summary(summary, ledger, settings.currency)


@app.command()
def summary(
    ctx: typer.Context,
    input_path: InputArg,
    categories: CategoriesOpt = None,
    period: Annotated[
        str | None, typer.Option("--period", "-p", help="Also group by day, month or year.")
    ] = None,
    output: OutputOpt = None,
    generate_categories: GenerateOpt = False,
) -> None:
    """Sum amounts per category and sub-category."""
    settings = _settings(ctx)
    if period is not None and period not in PERIODS:
        raise typer.BadParameter(f"expected one of {', '.join(PERIODS)}", param_hint="--period")

    with _exit_on_error():
        ledger = _build_ledger(settings, categories, generate_categories)
        load_summary = ledger.load(
            input_path, CsvLayout.from_settings(settings), generate_categories=generate_categories
        )
        if period:
            totals = totals_by_period(ledger.transactions, period)
        else:
            totals = totals_by_subcategory(ledger.transactions)

        if output:
            write_totals(totals, output)
        else:
            for key in sorted(totals, key=sort_key):
                typer.echo(f"{_label(key):<50} {format_amount(totals[key]):>14} {settings.currency}")
    _log_summary(load_summary, ledger, settings.currency)


@app.command("categories")
def categories_cmd(
    ctx: typer.Context,
    input_path: InputArg,
    output: Annotated[Path, typer.Option("--output", "-o", help="Where to save the category config.")],
) -> None:
    """Build a category config from the labels in a categorized CSV."""
    settings = _settings(ctx)
    with _exit_on_error():
        report = read_transactions(input_path, CsvLayout.from_settings(settings))
        store = CategoryStore.from_transactions(report.transactions)
        store.save(output)
    logger.info("Saved %d categories to %s", len(store), output)
    typer.echo(f"{len(store)} categories written to {output}")


if __name__ == "__main__":
    app()
