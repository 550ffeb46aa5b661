"""Deferred log messages.

``get_lazy_logger(__name__).debug(lambda: f"... {dump(payload)}")`` only calls
the lambda when DEBUG is enabled for that logger, so per-delivery debug
output costs nothing at INFO.
"""

from __future__ import annotations

import logging
from typing import Any


class LazyLoggerAdapter(logging.LoggerAdapter):
    # LoggerAdapter.debug/info/... all funnel through log()
    def log(self, level: int, msg: Any, *args: Any, **kwargs: Any) -> None:
        if not self.isEnabledFor(level):
            return
        if callable(msg):
            msg = msg()
        args = tuple(arg() if callable(arg) else arg for arg in args)
        super().log(level, msg, *args, **kwargs)


def get_lazy_logger(name: str, **context: Any) -> LazyLoggerAdapter:
    return LazyLoggerAdapter(logging.getLogger(name), context)
