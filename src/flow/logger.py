"""
=============================================================================
APPLICATION LOG SINK
=============================================================================

Every framework module logs through ``logging.getLogger(__name__)``, so all
records end up under the ``flow`` logger. LoggerFactory attaches the sink
to it:

    ┌────────────────────┐     ┌────────────────────────────────────────┐
    │  flow.* loggers    │────►│  TimedRotatingFileHandler              │
    │  BoundLogger       │     │  <path>/<app_name>.log, rotated at     │
    │  (ctx.logger)      │     │  midnight, max_age files kept          │
    └────────────────────┘     ├────────────────────────────────────────┤
                               │  StreamHandler(stdout)                 │
                               └────────────────────────────────────────┘

Line format (text):

    2024-05-01 12:00:00.123[INFO] request incoming {"requestId": 7, "ua": "curl/8"}

With ``format_json`` each line is a JSON object instead:

    {"time": "...", "level": "INFO", "msg": "request incoming", "requestId": 7, ...}

=============================================================================
BOUND LOGGERS
=============================================================================

    factory = LoggerFactory(LoggerConfig(), app_name="shop")
    log = factory.create({"requestId": 7})
    log.info("order created")                   # ... {"requestId": 7}
    log.bind(orderId=42).info("paid")           # ... {"requestId": 7, "orderId": 42}

Binding returns a new logger; the sink is shared.
=============================================================================
"""

import json
import logging
import os
import sys
from datetime import datetime
from logging.handlers import TimedRotatingFileHandler
from typing import Any, Dict, List, Mapping, MutableMapping, Optional, Tuple

from .config import LoggerConfig

ROOT_LOGGER = "flow"
APP_LOGGER = "flow.app"

_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}


def parse_level(level: str) -> int:
    try:
        return _LEVELS[level.lower()]
    except KeyError:
        raise ValueError(f"unknown log level: {level}") from None


class FlowFormatter(logging.Formatter):
    def __init__(self, format_json: bool = False):
        super().__init__()
        self.format_json = format_json

    def formatTime(self, record: logging.LogRecord, datefmt: Optional[str] = None) -> str:
        ts = datetime.fromtimestamp(record.created)
        return ts.strftime("%Y-%m-%d %H:%M:%S.") + f"{int(record.msecs):03d}"

    def format(self, record: logging.LogRecord) -> str:
        fields: Dict[str, Any] = dict(getattr(record, "fields", None) or {})
        message = record.getMessage()
        if record.exc_info:
            message = f"{message}\n{self.formatException(record.exc_info)}"

        timestamp = self.formatTime(record)
        level = record.levelname

        if self.format_json:
            return json.dumps(
                {"time": timestamp, "level": level, "msg": message, **fields},
                ensure_ascii=False,
                default=str,
            )

        line = f"{timestamp}[{level}] {message}"
        if fields:
            line += " " + json.dumps(fields, ensure_ascii=False, default=str)
        return line


class BoundLogger(logging.LoggerAdapter):
    """A logger carrying structured fields on every record."""

    def __init__(self, logger: logging.Logger, fields: Optional[Mapping[str, Any]] = None):
        super().__init__(logger, dict(fields or {}))

    @property
    def fields(self) -> Dict[str, Any]:
        return dict(self.extra)

    def process(self, msg: Any, kwargs: MutableMapping[str, Any]) -> Tuple[Any, MutableMapping[str, Any]]:
        extra = dict(kwargs.get("extra") or {})
        extra["fields"] = {**self.extra, **extra.pop("fields", {})}
        kwargs["extra"] = extra
        return msg, kwargs

    def bind(self, **fields: Any) -> "BoundLogger":
        return BoundLogger(self.logger, {**self.extra, **fields})


class LoggerFactory:
    def __init__(self, config: Optional[LoggerConfig] = None, app_name: str = "flow"):
        self.config = config or LoggerConfig()
        self.app_name = app_name
        self.level = parse_level(self.config.level)
        self.file_path = os.path.join(self.config.path, f"{app_name}.log")

        os.makedirs(self.config.path, exist_ok=True)

        formatter = FlowFormatter(self.config.format_json)
        file_handler = TimedRotatingFileHandler(
            self.file_path,
            when="midnight",
            backupCount=self.config.max_age,
            encoding="utf-8",
        )
        stream_handler = logging.StreamHandler(sys.stdout)

        self._handlers: List[logging.Handler] = [file_handler, stream_handler]
        root = logging.getLogger(ROOT_LOGGER)
        for handler in self._handlers:
            handler.setFormatter(formatter)
            handler.setLevel(self.level)
            root.addHandler(handler)
        root.setLevel(self.level)

    def create(self, fields: Optional[Mapping[str, Any]] = None) -> BoundLogger:
        return BoundLogger(logging.getLogger(APP_LOGGER), fields)

    def close(self) -> None:
        """Detach and close the handlers this factory installed."""
        root = logging.getLogger(ROOT_LOGGER)
        for handler in self._handlers:
            root.removeHandler(handler)
            handler.close()
        self._handlers = []
