import os
from dataclasses import dataclass

from dotenv import find_dotenv, load_dotenv

from expense_tracker.domain.text import parse_list
from expense_tracker.logger import get_logger

logger = get_logger(__name__)


CONFIG_FILENAME = "config.yaml"

_CONFIG_KEYS = (
    "LOG_LEVEL",
    "LOG_DIR",
    "DATA_DIR",
    "CATEGORIES_FILE",
    "DATE_FORMATS",
    "CSV_DELIMITER",
    "THOUSANDS_SEPARATOR",
    "CURRENCY",
    "CLASSIFIERS",
    "MEMORY_THRESHOLD",
    "TFIDF_THRESHOLD",
)

DEFAULT_DATE_FORMATS = ("%d.%m.%Y", "%Y-%m-%d")
DEFAULT_CLASSIFIERS = ("rules",)
KNOWN_CLASSIFIERS = ("rules", "memory", "tfidf")


@dataclass(frozen=True)
class Settings:
    data_dir: str = "."
    log_dir: str | None = None
    log_level: str = "INFO"
    categories_file: str = "categories.json"
    date_formats: tuple[str, ...] = DEFAULT_DATE_FORMATS
    delimiter: str = ","
    thousands_separator: str = "'"
    currency: str = "CHF"
    classifiers: tuple[str, ...] = DEFAULT_CLASSIFIERS
    memory_threshold: float = 90.0
    tfidf_threshold: float = 0.5


def _resolve_dotenv_path() -> str | None:
    config_dir = os.getenv("CONFIG_DIR")
    if config_dir:
        candidate = os.path.join(config_dir, ".env")
        if os.path.exists(candidate):
            return candidate
    resolved = find_dotenv(usecwd=True)
    return resolved or None


def _resolve_config_path() -> str:
    config_dir = os.getenv("CONFIG_DIR")
    if config_dir:
        return os.path.join(config_dir, CONFIG_FILENAME)
    cwd = os.getcwd()
    candidate = os.path.join(cwd, "config", CONFIG_FILENAME)
    if os.path.exists(candidate):
        return candidate
    return os.path.join(cwd, CONFIG_FILENAME)


def _strip_comment(raw_value: str) -> str:
    quote: str | None = None
    for index, char in enumerate(raw_value):
        if char in {'"', "'"}:
            if quote is None:
                quote = char
            elif quote == char:
                quote = None
        elif char == "#" and quote is None:
            return raw_value[:index]
    return raw_value


def _unquote(raw_value: str) -> str:
    if len(raw_value) >= 2 and raw_value[0] == raw_value[-1] and raw_value[0] in {'"', "'"}:
        return raw_value[1:-1]
    return raw_value


def read_config_file(path: str | None) -> dict[str, str]:
    """Read flat ``KEY: value`` lines; anything else is ignored."""
    if not path or not os.path.exists(path):
        return {}

    values: dict[str, str] = {}
    with open(path, encoding="utf-8") as handle:
        for line in handle:
            stripped = line.strip()
            if not stripped or stripped.startswith("#") or ":" not in stripped:
                continue
            key, raw_value = stripped.split(":", 1)
            key = key.strip()
            value = _unquote(_strip_comment(raw_value).strip())
            if key and value:
                values[key] = value
    return values


def load_environment() -> str:
    """Populate ``os.environ`` from ``.env`` and ``config.yaml``.

    Variables already present in the environment always win. Returns the
    config file path that was consulted.
    """
    dotenv_path = _resolve_dotenv_path()
    if dotenv_path:
        load_dotenv(dotenv_path=dotenv_path, override=False)

    config_path = _resolve_config_path()
    file_values = read_config_file(config_path)
    for key in _CONFIG_KEYS:
        if key not in os.environ and key in file_values:
            os.environ[key] = file_values[key]
    return config_path


def get_env_float(
    name: str,
    default: float,
    min_value: float | None = None,
    max_value: float | None = None,
) -> float:
    raw = os.getenv(name)
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError:
        logger.warning("[ENV] Invalid %s='%s', using default %s.", name, raw, default)
        return default
    if (min_value is not None and value < min_value) or (max_value is not None and value > max_value):
        logger.warning("[ENV] %s='%s' out of range, using default %s.", name, raw, default)
        return default
    return value


def get_env_list(name: str, default: tuple[str, ...]) -> tuple[str, ...]:
    values = parse_list(os.getenv(name))
    return tuple(values) if values else default


def _get_classifiers() -> tuple[str, ...]:
    names = tuple(name.lower() for name in get_env_list("CLASSIFIERS", DEFAULT_CLASSIFIERS))
    unknown = [name for name in names if name not in KNOWN_CLASSIFIERS]
    if unknown:
        logger.warning("[ENV] Ignoring unknown classifiers: %s", ", ".join(unknown))
    known = tuple(name for name in KNOWN_CLASSIFIERS if name in names)
    return known or DEFAULT_CLASSIFIERS


def _get_single_char(name: str, default: str) -> str:
    raw = os.getenv(name)
    if raw is None:
        return default
    if raw.lower() in {"tab", "\\t"}:
        return "\t"
    if len(raw) != 1:
        logger.warning("[ENV] %s must be a single character, using default %r.", name, default)
        return default
    return raw


def load_settings() -> Settings:
    defaults = Settings()
    return Settings(
        data_dir=os.getenv("DATA_DIR", defaults.data_dir),
        log_dir=os.getenv("LOG_DIR") or None,
        log_level=os.getenv("LOG_LEVEL", defaults.log_level).upper(),
        categories_file=os.getenv("CATEGORIES_FILE", defaults.categories_file),
        date_formats=get_env_list("DATE_FORMATS", defaults.date_formats),
        delimiter=_get_single_char("CSV_DELIMITER", defaults.delimiter),
        thousands_separator=os.getenv("THOUSANDS_SEPARATOR", defaults.thousands_separator),
        currency=os.getenv("CURRENCY", defaults.currency),
        classifiers=_get_classifiers(),
        memory_threshold=get_env_float(
            "MEMORY_THRESHOLD", defaults.memory_threshold, min_value=0.0, max_value=100.0
        ),
        tfidf_threshold=get_env_float(
            "TFIDF_THRESHOLD", defaults.tfidf_threshold, min_value=0.0, max_value=1.0
        ),
    )


def ensure_dir(path: str | None) -> None:
    if path and path not in {".", "./"}:
        os.makedirs(path, exist_ok=True)


def log_settings(settings: Settings) -> None:
    logger.info("[ENV] Effective settings:")
    for key, value in vars(settings).items():
        logger.info("[ENV] %s=%r", key, value)
