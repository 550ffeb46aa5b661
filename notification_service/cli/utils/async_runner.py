"""Run async click commands on a fresh event loop."""

import asyncio
from collections.abc import Awaitable, Callable
from functools import wraps
from typing import Any


def coro[T](f: Callable[..., Awaitable[T]]) -> Callable[..., T]:
    """Turn an async command body into a plain click callback.

    Each invocation gets its own loop, so the cached database engine is
    disposed before the loop closes; otherwise the next command would reuse
    connections bound to a dead loop.
    """

    async def run_and_dispose(*args: Any, **kwargs: Any) -> T:
        from notification_service.infra.database import close_database

        try:
            return await f(*args, **kwargs)
        finally:
            await close_database()

    @wraps(f)
    def wrapper(*args: Any, **kwargs: Any) -> T:
        return asyncio.run(run_and_dispose(*args, **kwargs))

    return wrapper
