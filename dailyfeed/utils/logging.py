"""
DailyFeed Logging Configuration
===============================

Logging for cache builds.

Every record carries the component that emitted it and, where known, the
feed source and the run day. The console shows them inline for humans;
the log file gets one JSON object per line with those fields promoted to
the top level so a single run or source can be grepped out.
"""

import json
import logging
import logging.handlers
import sys
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, MutableMapping, Optional, Tuple

ROOT_LOGGER = "dailyfeed"

# Context fields lifted out of "extra" in JSON output
CONTEXT_FIELDS = ("component", "source_url", "run_date")

# Everything a bare LogRecord carries; the rest was passed through ``extra``
_RECORD_ATTRS = frozenset(vars(logging.makeLogRecord({}))) | {"message", "asctime"}

_LEVEL_COLORS = {
    logging.DEBUG: "\033[2;37m",
    logging.INFO: "\033[32m",
    logging.WARNING: "\033[33m",
    logging.ERROR: "\033[1;31m",
    logging.CRITICAL: "\033[1;35m",
}
_RESET = "\033[0m"

# Chatty third-party loggers
_QUIET_LOGGERS = ("aiohttp", "asyncio", "feedparser", "charset_normalizer")


def _record_extras(record: logging.LogRecord) -> Dict[str, Any]:
    return {k: v for k, v in vars(record).items() if k not in _RECORD_ATTRS}


class StructuredFormatter(logging.Formatter):
    """One JSON document per record."""

    def format(self, record: logging.LogRecord) -> str:
        extras = _record_extras(record)
        entry: Dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
        }
        for name in CONTEXT_FIELDS:
            if name in extras:
                entry[name] = extras.pop(name)
        entry["msg"] = record.getMessage()

        if extras:
            entry["extra"] = extras
        if record.exc_info:
            entry["exc"] = self.formatException(record.exc_info)

        return json.dumps(entry, ensure_ascii=False, default=str)


class ColoredConsoleFormatter(logging.Formatter):
    """``HH:MM:SS LEVEL <component> [source] message`` with the level colored."""

    def __init__(self, use_color: bool = True):
        super().__init__()
        self.use_color = use_color

    def format(self, record: logging.LogRecord) -> str:
        level = f"{record.levelname:<8}"
        if self.use_color:
            level = f"{_LEVEL_COLORS.get(record.levelno, '')}{level}{_RESET}"

        component = getattr(record, "component", None)
        parts = [
            time.strftime("%H:%M:%S", time.localtime(record.created)),
            level,
            f"<{component}>" if component else record.name,
        ]
        source_url = getattr(record, "source_url", None)
        if source_url:
            parts.append(f"[{source_url}]")
        parts.append(record.getMessage())

        line = " ".join(parts)
        if record.exc_info:
            line = f"{line}\n{self.formatException(record.exc_info)}"
        return line


class LoggerAdapter(logging.LoggerAdapter):
    """Adapter whose fixed context is merged under any per-call ``extra``."""

    def process(
        self, msg: Any, kwargs: MutableMapping[str, Any]
    ) -> Tuple[Any, MutableMapping[str, Any]]:
        kwargs["extra"] = {**self.extra, **(kwargs.get("extra") or {})}
        return msg, kwargs

    def bind(self, **context: Any) -> "LoggerAdapter":
        """Adapter on the same logger with additional fixed context."""
        return LoggerAdapter(self.logger, {**self.extra, **context})


def get_logger_for_component(
    component_name: str,
    source_url: Optional[str] = None,
    run_date: Optional[str] = None,
) -> LoggerAdapter:
    """Logger ``dailyfeed.<component_name>`` carrying component context.

    Args:
        component_name: Component name (e.g. 'feed_fetcher', 'bucketer')
        source_url: Feed source the logger is bound to (optional)
        run_date: Day key of the current run (optional)
    """
    context: Dict[str, Any] = {"component": component_name}
    if source_url:
        context["source_url"] = source_url
    if run_date:
        context["run_date"] = run_date
    return LoggerAdapter(logging.getLogger(f"{ROOT_LOGGER}.{component_name}"), context)


def configure_application_logging(
    log_level: str = "INFO",
    log_file: Optional[str] = None,
    enable_console: bool = True,
    structured_logging: bool = False,
    max_file_size_mb: int = 10,
    backup_count: int = 5,
) -> logging.Logger:
    """Install handlers on the ``dailyfeed`` logger, replacing previous ones.

    Console output goes to stderr so stdout stays free for CLI tables. The
    optional log file rotates at ``max_file_size_mb`` and is always JSON.
    """
    root = logging.getLogger(ROOT_LOGGER)
    root.setLevel(log_level.upper())
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()

    if enable_console:
        console = logging.StreamHandler(sys.stderr)
        console.setFormatter(
            StructuredFormatter()
            if structured_logging
            else ColoredConsoleFormatter(use_color=sys.stderr.isatty())
        )
        root.addHandler(console)

    if log_file:
        path = Path(log_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        rotating = logging.handlers.RotatingFileHandler(
            path,
            maxBytes=max_file_size_mb * 1024 * 1024,
            backupCount=backup_count,
            encoding="utf-8",
        )
        rotating.setFormatter(StructuredFormatter())
        root.addHandler(rotating)

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    return root


class PerformanceLogger:
    """Times one pipeline phase and logs its outcome.

    ``duration`` (seconds) is set on exit. Exceptions are logged and
    re-raised.
    """

    def __init__(self, logger, operation: str, **context: Any):
        self.logger = logger
        self.operation = operation
        self.context = context
        self.duration: Optional[float] = None
        self._started: Optional[float] = None

    def __enter__(self) -> "PerformanceLogger":
        self._started = time.perf_counter()
        self.logger.debug(f"Starting {self.operation}", extra=self.context)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        if self._started is None:
            return
        self.duration = time.perf_counter() - self._started
        extra = {**self.context, "duration_seconds": round(self.duration, 4), "success": exc_type is None}
        if exc_type is None:
            self.logger.info(f"Completed {self.operation} in {self.duration:.3f}s", extra=extra)
        else:
            self.logger.error(
                f"Failed {self.operation} after {self.duration:.3f}s: {exc_val}", extra=extra
            )
