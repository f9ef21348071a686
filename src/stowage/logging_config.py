"""Structured logging configuration for stowage.

Logs go to stderr so they never mix with command output on stdout. Records
logged with ``extra={"error": exc}`` carry the error's code and context.
"""

import json
import logging
import sys
from datetime import datetime, timezone

from stowage.errors import StowageError

# Record attributes copied into JSON entries when a caller sets them
_EXTRA_FIELDS = ("url", "bucket", "key", "session_id", "command")

_TEXT_FORMAT = "stowage: %(levelname)s %(name)s: %(message)s"
_DEBUG_TEXT_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def _record_error(record: logging.LogRecord) -> StowageError | None:
    error = getattr(record, "error", None)
    if isinstance(error, StowageError):
        return error
    if record.exc_info and isinstance(record.exc_info[1], StowageError):
        return record.exc_info[1]
    return None


class JSONFormatter(logging.Formatter):
    """Formats log records as single-line JSON objects.

    Fields: timestamp, level, logger, message, the extras in
    ``_EXTRA_FIELDS``, ``error`` (code and context of a ``StowageError``)
    and ``exception`` (traceback, when logged with exc_info).
    """

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key in _EXTRA_FIELDS:
            val = getattr(record, key, None)
            if val is not None:
                entry[key] = val
        error = _record_error(record)
        if error is not None:
            entry["error"] = error.context()
        if record.exc_info and record.exc_info[1] is not None:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def configure_logging(level: str = "WARNING", fmt: str = "text") -> None:
    """Route stowage logs to stderr at ``level``.

    Text output is prefixed like the console's error lines; timestamps are
    only added at DEBUG, where ordering across concurrent copies matters.

    Args:
        level: Log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        fmt: 'text' for human-readable lines or 'json' for one object per line.
    """
    numeric_level = getattr(logging, level.upper(), logging.WARNING)
    root = logging.getLogger()
    root.setLevel(numeric_level)

    for handler in root.handlers[:]:
        root.removeHandler(handler)

    handler = logging.StreamHandler(sys.stderr)
    if fmt == "json":
        handler.setFormatter(JSONFormatter())
    elif numeric_level <= logging.DEBUG:
        handler.setFormatter(logging.Formatter(_DEBUG_TEXT_FORMAT))
    else:
        handler.setFormatter(logging.Formatter(_TEXT_FORMAT))
    root.addHandler(handler)

    # botocore and its HTTP stack log every request at DEBUG
    quiet_level = max(numeric_level, logging.INFO)
    for name in ("botocore", "aiobotocore", "urllib3"):
        logging.getLogger(name).setLevel(quiet_level)
