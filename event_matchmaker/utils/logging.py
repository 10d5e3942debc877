"""
Root-logger setup, called once by the CLI (or by an embedding service).

Library modules only use ``logging.getLogger(__name__)``.  With
``json_format = true`` each record becomes one JSON line, and ``extra=``
fields such as ``error_kind`` or ``item`` are lifted to the top level::

    {"ts": "2026-10-17T09:00:00Z", "level": "WARNING",
     "logger": "event_matchmaker.models.batch", "msg": "...",
     "error_kind": "store_io", "item": "exh-1|vis-1"}
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from event_matchmaker.config import LoggingConfig

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%dT%H:%M:%SZ"

# Set on every LogRecord; anything else arrived through extra=.
_STANDARD_ATTRS = frozenset(
    logging.LogRecord("", 0, "", 0, "", (), None).__dict__.keys()
) | {"message", "asctime", "taskName"}

_QUIET_LOGGERS = ("redis", "asyncio")


class JsonLineFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        created = datetime.fromtimestamp(record.created, tz=timezone.utc)
        payload: dict = {
            "ts": created.strftime(LOG_DATE_FORMAT),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        if record.exc_info:
            payload["exc"] = self.formatException(record.exc_info)
        payload.update(
            (key, val) for key, val in record.__dict__.items()
            if key not in _STANDARD_ATTRS and not key.startswith("_")
        )
        return json.dumps(payload, default=str)


def _attach(handler: logging.Handler, level: int, formatter: logging.Formatter) -> logging.Handler:
    handler.setLevel(level)
    handler.setFormatter(formatter)
    return handler


def configure_logging(config: "LoggingConfig") -> None:
    """Install stdout (and optionally file) handlers on the root logger.

    Repeated calls replace the previous handlers.
    """
    level = getattr(logging, config.level.upper(), logging.INFO)
    formatter = (
        JsonLineFormatter() if config.json_format
        else logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT)
    )

    handlers = [_attach(logging.StreamHandler(sys.stdout), level, formatter)]
    if config.log_file:
        log_path = Path(config.log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(_attach(logging.FileHandler(log_path, encoding="utf-8"), level, formatter))

    logging.basicConfig(level=level, handlers=handlers, force=True)

    # redis logs every reconnect attempt
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
