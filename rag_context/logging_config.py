"""
Logging setup shared by the API, the CLI and the cron script.

Pipeline code attaches context through `extra=` (index_name, namespace,
url, stage, duration, count). Both formats below render those fields:
JSON lines for aggregation, a bracketed suffix for terminals.
"""

import json
import logging
import logging.handlers
import os
import sys
from datetime import datetime, timezone
from typing import Optional


CONTEXT_FIELDS = ("index_name", "namespace", "url", "stage", "duration", "count")

NOISY_LOGGERS = ("urllib3", "httpx", "openai", "google.auth")


def _context(record: logging.LogRecord) -> dict:
    return {
        key: getattr(record, key)
        for key in CONTEXT_FIELDS
        if getattr(record, key, None) is not None
    }


class JSONFormatter(logging.Formatter):
    """One JSON object per record, pipeline context inlined."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "ts": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
            **_context(record),
        }
        if record.exc_info and record.exc_info[0] is not None:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


class ConsoleFormatter(logging.Formatter):
    """Human-readable lines; pipeline context shown as `[index_name=pets stage=upsert]`."""

    def __init__(self):
        super().__init__(
            "%(asctime)s [%(levelname)-8s] %(name)-30s | %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        context = _context(record)
        if not context:
            return line
        # keep tracebacks last
        head, sep, tail = line.partition("\n")
        suffix = " ".join(f"{k}={v!r}" if v == "" else f"{k}={v}" for k, v in context.items())
        return f"{head} [{suffix}]{sep}{tail}"


def setup_logging(
    level: str = "INFO",
    json_output: bool = False,
    log_file: Optional[str] = None,
    max_bytes: int = 10 * 1024 * 1024,
    backup_count: int = 5,
):
    """
    Replace the root handlers with a stdout handler and, when log_file is
    set, a size-rotated file handler sharing the same formatter.
    """
    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper(), logging.INFO))
    root.handlers.clear()

    formatter = JSONFormatter() if json_output else ConsoleFormatter()

    handlers = [logging.StreamHandler(sys.stdout)]
    if log_file:
        os.makedirs(os.path.dirname(log_file) or ".", exist_ok=True)
        handlers.append(logging.handlers.RotatingFileHandler(
            log_file, maxBytes=max_bytes, backupCount=backup_count,
        ))
    for handler in handlers:
        handler.setFormatter(formatter)
        root.addHandler(handler)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    root.debug(f"Logging configured: level={level} json={json_output} file={log_file or 'none'}")


def setup_logging_from_settings(settings=None, level: Optional[str] = None, log_file: Optional[str] = None):
    """Configure logging from LOG_LEVEL / LOG_JSON / LOG_FILE, with optional overrides."""
    from .config import get_settings

    cfg = (settings or get_settings()).logging
    setup_logging(
        level=level or cfg.level,
        json_output=cfg.json_logs,
        log_file=log_file or cfg.log_file,
    )
