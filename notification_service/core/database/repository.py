"""Generic repository shared by the feature repositories.

Repositories never open or commit transactions. Callers pass the session
and own ``session.begin()``; the repository flushes so generated columns
(``id``, ``created_at``) are populated before it returns.

Example:
    class NotificationRepository(BaseRepository[Notification]):
        def __init__(self) -> None:
            super().__init__(Notification)
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from notification_service.infra.logging import get_lazy_logger

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from sqlalchemy.ext.asyncio import AsyncSession


class BaseRepository[T]:
    """Insert helpers for one mapped class; query methods live on subclasses."""

    __slots__ = ("model", "_lazy")

    def __init__(self, model: type[T]) -> None:
        self.model = model
        self._lazy = get_lazy_logger(f"{__name__}.{model.__name__}")

    async def create(self, session: AsyncSession, instance: T) -> T:
        """Insert one row and reload it with server-generated values."""
        session.add(instance)
        await session.flush()
        await session.refresh(instance)
        self._lazy.debug(lambda: f"insert {self.model.__name__} id={getattr(instance, 'id', None)}")
        return instance

    async def create_many(self, session: AsyncSession, instances: Iterable[T]) -> Sequence[T]:
        """Insert several rows in one flush."""
        rows = list(instances)
        if not rows:
            return rows
        session.add_all(rows)
        await session.flush()
        self._lazy.debug(lambda: f"insert {len(rows)} x {self.model.__name__}")
        return rows


__all__ = ["BaseRepository"]
