"""
Structured logging setup.

Provides both text and JSON logging.
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import UTC, datetime
from enum import Enum
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from yield_history.config.settings import Settings

# =============================================================================
# Constants
# =============================================================================

# Log tags for special message handling
LOG_TAG_FETCH = "[FETCH]"
LOG_TAG_CACHE = "[CACHE]"
LOG_TAG_EVICT = "[EVICT]"

# Extra record attributes copied into JSON lines
JSON_EXTRA_FIELDS = ("pool_id", "status", "generation", "error_code")

__all__ = [
    "setup_logging",
    "get_logger",
    "JSONFormatter",
    "HistoryLogFormatter",
    "LOG_TAG_FETCH",
    "LOG_TAG_CACHE",
    "LOG_TAG_EVICT",
]


class ExtendedEncoder(json.JSONEncoder):
    """JSON encoder for datetimes, enums and other types."""

    def default(self, obj: Any) -> Any:
        if isinstance(obj, datetime):
            return obj.isoformat()
        if isinstance(obj, Enum):
            return obj.value
        if hasattr(obj, "__dict__"):
            return str(obj)
        return super().default(obj)


class JSONFormatter(logging.Formatter):
    """Format log records as JSON lines."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.now(UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        # Add exception info if present
        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        # Add extra fields if present
        for key in JSON_EXTRA_FIELDS:
            if hasattr(record, key):
                log_data[key] = getattr(record, key)

        return json.dumps(log_data, cls=ExtendedEncoder)


def setup_logging(settings: Settings | None = None) -> logging.Logger:
    """
    Set up logging with console, file and optional JSON handlers.

    Returns the root logger.
    """
    if settings is None:
        from yield_history.config.settings import get_settings

        settings = get_settings()

    # Get log level
    level = getattr(logging, settings.logging.level.upper(), logging.INFO)
    if settings.testing_mode and level > logging.DEBUG:
        level = logging.DEBUG

    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    # Clear existing handlers
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    # Console handler (coloured text)
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(HistoryLogFormatter())
    root_logger.addHandler(console_handler)

    # File handler (plain text)
    if settings.logging.file_enabled:
        logs_dir = Path(settings.logging.log_dir)
        logs_dir.mkdir(parents=True, exist_ok=True)

        timestamp = datetime.now(UTC).strftime("%Y%m%d_%H%M%S")
        file_handler = logging.FileHandler(logs_dir / f"yield_history_{timestamp}.log", encoding="utf-8")
        file_handler.setLevel(level)
        file_handler.setFormatter(
            logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s", datefmt="%H:%M:%S")
        )
        root_logger.addHandler(file_handler)

    # JSON file handler (if enabled)
    if settings.logging.json_enabled:
        json_path = Path(settings.logging.json_file)
        json_path.parent.mkdir(parents=True, exist_ok=True)

        max_bytes = int(settings.logging.json_max_bytes or 0)
        backup_count = int(settings.logging.json_backup_count or 0)
        if max_bytes > 0 and backup_count > 0:
            json_handler = RotatingFileHandler(
                json_path,
                maxBytes=max_bytes,
                backupCount=backup_count,
                encoding="utf-8",
            )
        else:
            json_handler = logging.FileHandler(json_path, encoding="utf-8")
        json_handler.setLevel(level)
        json_handler.setFormatter(JSONFormatter())
        root_logger.addHandler(json_handler)

    # Reduce noise from verbose libraries
    for lib in ["asyncio", "aiosqlite", "aiohttp", "urllib3"]:
        logging.getLogger(lib).setLevel(logging.WARNING)

    return root_logger


def get_logger(name: str) -> logging.Logger:
    """Get a named logger."""
    return logging.getLogger(name)


class HistoryLogFormatter(logging.Formatter):
    """
    Console formatter with colours and simplified structure.

    Special tags:
    - [FETCH]: Cyan
    - [CACHE]: Grey (dimmed)
    - [EVICT]: Yellow
    """

    # ANSI Colors
    RESET = "\033[0m"
    GREY = "\033[90m"
    GREEN = "\033[92m"
    YELLOW = "\033[93m"
    RED = "\033[91m"
    BOLD_RED = "\033[1;91m"
    CYAN = "\033[96m"

    def __init__(self):
        super().__init__(datefmt="%H:%M:%S")
        self._formatters: dict[str, logging.Formatter] = {
            "DEBUG": logging.Formatter(f"{self.GREY}%(asctime)s [DEBUG] %(message)s{self.RESET}", datefmt="%H:%M:%S"),
            "INFO": logging.Formatter(f"{self.GREEN}%(asctime)s [INFO]{self.RESET} %(message)s", datefmt="%H:%M:%S"),
            "WARNING": logging.Formatter(
                f"{self.YELLOW}%(asctime)s [WARN] %(message)s{self.RESET}", datefmt="%H:%M:%S"
            ),
            "ERROR": logging.Formatter(f"{self.RED}%(asctime)s [ERROR] %(message)s{self.RESET}", datefmt="%H:%M:%S"),
            "CRITICAL": logging.Formatter(
                f"{self.BOLD_RED}%(asctime)s [CRITICAL] %(message)s{self.RESET}", datefmt="%H:%M:%S"
            ),
            # Special tag formatters
            "FETCH": logging.Formatter(f"{self.CYAN}%(asctime)s [FETCH]{self.RESET} %(message)s", datefmt="%H:%M:%S"),
            "CACHE": logging.Formatter(f"{self.GREY}%(asctime)s [CACHE]{self.RESET} %(message)s", datefmt="%H:%M:%S"),
            "EVICT": logging.Formatter(f"{self.YELLOW}%(asctime)s [EVICT]{self.RESET} %(message)s", datefmt="%H:%M:%S"),
        }

    def format(self, record: logging.LogRecord) -> str:
        msg = record.getMessage()

        # Tagged messages only get the tag colour at INFO and below
        if record.levelno <= logging.INFO:
            for tag, key in ((LOG_TAG_FETCH, "FETCH"), (LOG_TAG_CACHE, "CACHE"), (LOG_TAG_EVICT, "EVICT")):
                if tag in msg:
                    record.msg = msg.replace(tag, "").strip()
                    record.args = ()
                    return self._formatters[key].format(record)

        formatter_key = record.levelname if record.levelname in self._formatters else "INFO"
        return self._formatters[formatter_key].format(record)
