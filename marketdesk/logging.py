"""
File-based category logging.

Nothing here writes to the console: the terminal belongs to the event
stream. Logging is off until setup_logging() is called with debug=True,
and each message is tagged with a category that --debug-filter can
include ("providers,api") or exclude ("!limiter").
"""

import logging
import sys
import tempfile
from datetime import datetime
from pathlib import Path
from typing import Any

LOGGER_NAME = "marketdesk"

CATEGORIES = frozenset(
    {
        "providers",  # Upstream market-data calls
        "limiter",  # Token bucket waits
        "api",  # Text-generation requests
        "router",  # Entity extraction and task activation
        "runner",  # Task fan-out
        "stream",  # Event stream lifecycle
        "history",  # Chat history writes
        "config",  # Config and prompt overrides
    }
)

_enabled = False
_active: frozenset[str] = frozenset()
_handler: logging.FileHandler | None = None


def parse_debug_filter(debug_filter: str | None) -> frozenset[str]:
    """
    Categories enabled by a filter string.

    Plain names select categories, "!name" removes one. With no plain names
    every category starts selected.
    """
    included: set[str] = set()
    excluded: set[str] = set()
    for part in (debug_filter or "").split(","):
        part = part.strip()
        if not part:
            continue
        if part.startswith("!"):
            excluded.add(part[1:])
        else:
            included.add(part)
    return frozenset((included or CATEGORIES) - excluded)


def _open_log_file(logs_dir: Path) -> Path:
    try:
        logs_dir.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        print(f"Warning: Could not create logs directory: {e}", file=sys.stderr)
        logs_dir = Path(tempfile.gettempdir()) / "marketdesk_logs"
        logs_dir.mkdir(parents=True, exist_ok=True)
    return logs_dir / f"debug_{datetime.now().strftime('%Y%m%d_%H%M%S')}.log"


def setup_logging(
    logs_dir: Path,
    debug: bool = False,
    debug_filter: str | None = None,
) -> Path:
    """
    Route the marketdesk logger to a timestamped file under logs_dir.

    Calling it again replaces the previous handler and filter.
    Returns the log file path.
    """
    global _enabled, _active, _handler

    _enabled = debug
    _active = parse_debug_filter(debug_filter)
    log_file = _open_log_file(logs_dir)

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(logging.DEBUG if debug else logging.INFO)
    # Never bubble up to a console handler
    logger.propagate = False
    if _handler is not None:
        logger.removeHandler(_handler)
        _handler.close()
        _handler = None

    try:
        _handler = logging.FileHandler(log_file, encoding="utf-8")
    except OSError as e:
        print(f"Warning: Could not set up file logging: {e}", file=sys.stderr)
        return log_file

    _handler.setLevel(logging.DEBUG)
    _handler.setFormatter(
        logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s", datefmt="%H:%M:%S")
    )
    logger.addHandler(_handler)
    if debug:
        logger.info("Debug logging started, categories: %s", ", ".join(sorted(_active)))
    return log_file


def log(category: str, message: str, level: str = "debug", **kwargs: Any) -> None:
    """
    Log a message under marketdesk.<category>.

    Keyword arguments are appended as key=value pairs. Dropped unless debug
    logging is on and the category passes the filter.
    """
    if not _enabled or category not in _active:
        return

    if kwargs:
        message = " | ".join([message, *(f"{k}={v}" for k, v in kwargs.items())])
    logger = logging.getLogger(f"{LOGGER_NAME}.{category}")
    getattr(logger, level, logger.debug)(message)


def log_provider_call(provider: str, operation: str, params: dict[str, Any]) -> None:
    log("providers", f"CALL {provider}.{operation}", params=params)


def log_provider_result(
    provider: str, operation: str, status: str, attempts: int = 1, error: str | None = None
) -> None:
    level = "warning" if error else "debug"
    extra = {"error": error} if error else {}
    log(
        "providers",
        f"RESULT {provider}.{operation}",
        level=level,
        status=status,
        attempts=attempts,
        **extra,
    )


def log_api_call(model: str, input_tokens: int, output_tokens: int, json_mode: bool = False) -> None:
    log(
        "api",
        "Claude API call",
        model=model,
        input=input_tokens,
        output=output_tokens,
        json_mode=json_mode,
    )
