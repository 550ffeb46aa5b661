"""Notification worker process.

Startup order: database check, handler registration, email provider check,
broker connection. An unreachable email provider is only logged, since each
send is recorded as failed anyway; any other startup failure exits with code 1.

Shutdown: the first SIGTERM/SIGINT stops consumption, lets in-flight
deliveries finish (bounded by ``RABBIT_GRACEFUL_TIMEOUT``), disposes the
database engine and exits 0. A second signal while shutting down exits
immediately with code 1.
"""

from __future__ import annotations

import asyncio
import logging
import os
import signal
from typing import TYPE_CHECKING

from notification_service.core.exceptions import NotificationServiceError
from notification_service.features.notifications import (
    EmailDeliveryExecutor,
    NotificationEventHandler,
    NotificationService,
    OutcomePublisher,
)
from notification_service.infra.database import close_database, get_session_factory, init_database
from notification_service.infra.logging import shutdown as shutdown_logging
from notification_service.infra.messaging import BrokerConnection, EventDispatcher
from notification_service.infra.tracing import setup_tracing, shutdown_tracing

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    from notification_service.core.settings import AppSettings, EmailSettings, RabbitSettings

logger = logging.getLogger(__name__)

SHUTDOWN_SIGNALS = (signal.SIGTERM, signal.SIGINT)


class NotificationWorker:
    """Wires the broker, dispatcher and notification handler together.

    Args:
        app_settings: Service identity (defaults to get_app_settings()).
        rabbit_settings: Broker settings (defaults to get_rabbit_settings()).
        email_settings: Email settings (defaults to get_email_settings()).
        connection: Optional pre-built broker connection.
        session_factory: Optional session factory (defaults to the process-wide one).
    """

    def __init__(
        self,
        *,
        app_settings: AppSettings | None = None,
        rabbit_settings: RabbitSettings | None = None,
        email_settings: EmailSettings | None = None,
        connection: BrokerConnection | None = None,
        session_factory: async_sessionmaker[AsyncSession] | None = None,
    ) -> None:
        from notification_service.core.settings import (
            get_app_settings,
            get_email_settings,
            get_rabbit_settings,
        )

        self._app_settings = app_settings or get_app_settings()
        self._rabbit_settings = rabbit_settings or get_rabbit_settings()
        self._email_settings = email_settings or get_email_settings()
        self._connection = connection
        self._session_factory = session_factory
        self._dispatcher: EventDispatcher | None = None

    @property
    def connection(self) -> BrokerConnection | None:
        return self._connection

    @property
    def dispatcher(self) -> EventDispatcher | None:
        return self._dispatcher

    async def start(self) -> None:
        """Check the database, register handlers and start consuming.

        Raises:
            PersistenceError: If the database is unreachable.
            BrokerConnectionError: If RabbitMQ is disabled or unreachable.
        """
        logger.info(
            "Starting notification worker",
            extra={
                "service": self._app_settings.service_name,
                "version": self._app_settings.version,
                "environment": self._app_settings.environment,
            },
        )

        if self._session_factory is None:
            await init_database()
            self._session_factory = get_session_factory()

        if self._connection is None:
            self._connection = BrokerConnection(self._rabbit_settings)

        executor = EmailDeliveryExecutor(self._email_settings)
        handler = NotificationEventHandler(
            NotificationService(self._session_factory),
            executor,
            OutcomePublisher(self._connection, self._app_settings.service_name),
        )
        self._dispatcher = EventDispatcher(self._connection)
        handler.register(self._dispatcher)

        if not self._email_settings.is_configured:
            logger.warning("Email channel is disabled; notifications will be recorded as failed")
        elif not await executor.health_check():
            logger.warning(
                "Email provider is unreachable; sends will fail until it recovers",
                extra={"backend": self._email_settings.backend},
            )

        await self._dispatcher.start_consuming()
        logger.info("Notification worker started", extra=self._connection.health())

    async def stop(self) -> None:
        """Drain the broker and release the database. Safe to call more than once."""
        logger.info("Stopping notification worker")
        if self._connection is not None:
            await self._connection.close()
        await close_database()
        logger.info("Notification worker stopped")


async def run_worker(worker: NotificationWorker | None = None) -> int:
    """Run the worker until a shutdown signal arrives.

    Returns:
        Process exit code.
    """
    worker = worker or NotificationWorker()
    try:
        await worker.start()
    except NotificationServiceError as e:
        logger.critical("Notification worker failed to start", extra={"error": str(e), **e.details})
        await worker.stop()
        return 1

    stop_requested = asyncio.Event()
    loop = asyncio.get_running_loop()

    def on_signal(sig: signal.Signals) -> None:
        if stop_requested.is_set():
            logger.warning("Shutdown already in progress, forcing exit", extra={"signal": sig.name})
            shutdown_logging()
            os._exit(1)
        logger.info("Shutdown signal received", extra={"signal": sig.name})
        stop_requested.set()

    for sig in SHUTDOWN_SIGNALS:
        loop.add_signal_handler(sig, on_signal, sig)

    try:
        await stop_requested.wait()
        await worker.stop()
    finally:
        for sig in SHUTDOWN_SIGNALS:
            loop.remove_signal_handler(sig)
    return 0


def main() -> int:
    """Run the worker process with tracing configured."""
    setup_tracing()
    try:
        return asyncio.run(run_worker())
    finally:
        shutdown_tracing()


__all__ = ["NotificationWorker", "main", "run_worker"]
