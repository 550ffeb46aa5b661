"""Process-wide logging setup.

Everything is declared in one ``dictConfig``: the root logger has a single
``QueueHandler``, and its listener thread feeds the console and rotating
file handlers, so a slow stderr or disk never stalls the event loop. The
context filter is attached to the queue handler because it has to run in
the task that emitted the record, before the record crosses threads.
"""

from __future__ import annotations

import atexit
import logging
import logging.config
from logging.handlers import QueueHandler, QueueListener
from pathlib import Path
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from notification_service.core.settings.logs import LoggingSettings

_QUEUE_HANDLER = "queue"
_TEXT_FORMAT = "%(asctime)s - %(levelname)s - %(name)s - %(message)s"
_TEXT_FORMAT_WITH_FUNC = "%(asctime)s - %(levelname)s - %(name)s - %(funcName)s - %(message)s"

# Chatty third-party loggers capped at WARNING
_QUIET_LOGGERS = ("aiormq", "aio_pika", "faststream.access", "aiosmtplib")

_configured = False
_listener: QueueListener | None = None


def build_logging_config(settings: LoggingSettings) -> dict[str, Any]:
    """``dictConfig`` schema for ``settings``."""
    if settings.json_logs:
        fmt_keys = {"level": "levelname", "logger": "name", "message": "message"}
        if settings.include_function_name:
            fmt_keys["function"] = "funcName"
        formatter: dict[str, Any] = {
            "()": "notification_service.infra.logging.formatters.JSONFormatter",
            "fmt_keys": fmt_keys,
            "static": {"service": settings.service_name},
        }
    else:
        formatter = {
            "format": _TEXT_FORMAT_WITH_FUNC if settings.include_function_name else _TEXT_FORMAT,
            "datefmt": "%Y-%m-%d %H:%M:%S",
        }

    handlers: dict[str, dict[str, Any]] = {}
    if settings.console_enabled:
        handlers["console"] = {
            "class": "logging.StreamHandler",
            "formatter": "default",
            "level": settings.console_level or settings.level,
        }
    if settings.file_enabled:
        handlers["file"] = {
            "class": "logging.handlers.RotatingFileHandler",
            "formatter": "default",
            "level": settings.file_level or settings.level,
            "filename": str(settings.file_path),
            "maxBytes": settings.file_max_bytes,
            "backupCount": settings.file_backup_count,
            "encoding": "utf-8",
        }

    root_handlers: list[str] = []
    if handlers:
        handlers[_QUEUE_HANDLER] = {
            "class": "logging.handlers.QueueHandler",
            "handlers": list(handlers),
            "respect_handler_level": True,
            "filters": ["context"] if settings.include_context else [],
        }
        root_handlers.append(_QUEUE_HANDLER)

    return {
        "version": 1,
        "disable_existing_loggers": False,
        "filters": {"context": {"()": "notification_service.infra.logging.context.ContextInjectingFilter"}},
        "formatters": {"default": formatter},
        "handlers": handlers,
        "root": {"level": settings.level, "handlers": root_handlers},
        "loggers": {name: {"level": "WARNING"} for name in _QUIET_LOGGERS},
    }


def setup_logging(settings: LoggingSettings | None = None, *, force: bool = False) -> None:
    """Configure logging once per process; later calls are no-ops unless ``force``."""
    global _configured, _listener

    if _configured and not force:
        return
    if settings is None:
        from notification_service.core.settings import get_logging_settings

        settings = get_logging_settings()

    shutdown()
    if settings.file_enabled:
        Path(settings.file_path).parent.mkdir(parents=True, exist_ok=True)

    logging.config.dictConfig(build_logging_config(settings))
    logging.captureWarnings(settings.capture_warnings)

    queue_handler = logging.getHandlerByName(_QUEUE_HANDLER)
    if isinstance(queue_handler, QueueHandler) and queue_handler.listener is not None:
        _listener = queue_handler.listener
        _listener.start()
        atexit.unregister(shutdown)
        atexit.register(shutdown)
    _configured = True


def shutdown() -> None:
    """Drain queued records and stop the listener thread. Safe to call repeatedly."""
    global _configured, _listener

    if _listener is not None:
        _listener.stop()
        _listener = None
    _configured = False
