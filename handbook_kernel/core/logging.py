"""
Logging setup for the handbook server.

Console output is human-readable; the optional log directory receives
JSON-structured `combined.log` (everything) and `error.log` (ERROR and up).
"""

import json
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Union

# Attributes every LogRecord has; anything else came in through `extra=`.
_RESERVED_ATTRS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", (), None))) | {
    "message",
    "asctime",
}

_HANDLER_TAG = "_handbook_handler"


class StructuredFormatter(logging.Formatter):
    """Formats each record as one JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key, value in record.__dict__.items():
            if key not in _RESERVED_ATTRS and not key.startswith("_"):
                entry[key] = value

        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(entry, default=str, ensure_ascii=False)


def configure_logging(
    level: Union[str, int] = "info",
    log_dir: Optional[Union[str, Path]] = None,
) -> logging.Logger:
    """
    Configure the `handbook_kernel` logger tree.

    Safe to call more than once: handlers installed by a previous call are
    replaced, not duplicated.
    """
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO

    root = logging.getLogger("handbook_kernel")
    root.setLevel(level)
    for handler in list(root.handlers):
        if getattr(handler, _HANDLER_TAG, False):
            root.removeHandler(handler)
            handler.close()

    console = logging.StreamHandler(sys.stderr)
    console.setFormatter(
        logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
    )
    _attach(root, console)

    if log_dir is not None:
        log_path = Path(log_dir)
        log_path.mkdir(parents=True, exist_ok=True)

        combined = logging.FileHandler(log_path / "combined.log", encoding="utf-8")
        combined.setFormatter(StructuredFormatter())
        _attach(root, combined)

        errors = logging.FileHandler(log_path / "error.log", encoding="utf-8")
        errors.setLevel(logging.ERROR)
        errors.setFormatter(StructuredFormatter())
        _attach(root, errors)

    return root


def _attach(logger: logging.Logger, handler: logging.Handler) -> None:
    setattr(handler, _HANDLER_TAG, True)
    logger.addHandler(handler)
