"""Line-oriented logging: one JSON object per line, or plain text."""

from __future__ import annotations

import json
import logging
import sys
from typing import IO, Any

TEXT_FORMAT = "%(asctime)s [%(levelname)s] %(message)s"
TEXT_DATEFMT = "%H:%M:%S"

# LogRecord attributes that are not user extras
_RESERVED = set(vars(logging.LogRecord("", 0, "", 0, "", (), None))) | {"message", "asctime"}


class JsonLineFormatter(logging.Formatter):
    """Render each record as a single JSON object."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": self.formatTime(record, "%Y-%m-%dT%H:%M:%S"),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        for key, value in record.__dict__.items():
            if key not in _RESERVED and not key.startswith("_"):
                payload[key] = value
        if record.exc_info:
            payload["exc"] = self.formatException(record.exc_info)
        return json.dumps(payload, sort_keys=False, default=str, ensure_ascii=False)


def configure_logging(level: str = "INFO", fmt: str = "json", stream: IO[str] | None = None) -> logging.Handler:
    """Install a single handler on the ``fcsgen`` logger.

    Repeated calls replace the previous handler so a stream never carries
    both renderings.
    """
    if fmt not in ("json", "text"):
        raise ValueError(f"Unknown log format: {fmt!r}")

    handler = logging.StreamHandler(stream or sys.stderr)
    if fmt == "json":
        handler.setFormatter(JsonLineFormatter())
    else:
        handler.setFormatter(logging.Formatter(TEXT_FORMAT, datefmt=TEXT_DATEFMT))

    logger = logging.getLogger("fcsgen")
    for old in list(logger.handlers):
        logger.removeHandler(old)
    logger.addHandler(handler)
    logger.setLevel(level.upper())
    logger.propagate = False
    return handler
