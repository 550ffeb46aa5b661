"""Tests for the worker process wiring."""

from __future__ import annotations

import asyncio
import os
import signal
from unittest.mock import AsyncMock, MagicMock

import pytest

from notification_service.core.events import CONSUMED_EVENT_TYPES
from notification_service.core.exceptions import BrokerConnectionError
from notification_service.core.settings import get_app_settings, get_email_settings, get_rabbit_settings
from notification_service.worker import NotificationWorker, run_worker


@pytest.fixture
def worker(mock_broker, session_factory) -> NotificationWorker:
    mock_broker.health = MagicMock(return_value={"status": "healthy", "is_connected": True})
    return NotificationWorker(
        app_settings=get_app_settings(),
        rabbit_settings=get_rabbit_settings(),
        email_settings=get_email_settings(),
        connection=mock_broker,
        session_factory=session_factory,
    )


@pytest.mark.asyncio
async def test_start_registers_handlers_and_consumes(worker, mock_broker) -> None:
    await worker.start()

    assert worker.dispatcher is not None
    assert worker.dispatcher.is_consuming is True
    assert set(worker.dispatcher.handlers) == set(CONSUMED_EVENT_TYPES)
    topics, callback = mock_broker.subscribe.call_args.args
    assert sorted(topics) == sorted(event_type.value for event_type in CONSUMED_EVENT_TYPES)
    assert callback == worker.dispatcher.dispatch
    mock_broker.connect.assert_awaited_once()


@pytest.mark.asyncio
async def test_stop_closes_connection(worker, mock_broker) -> None:
    await worker.start()
    await worker.stop()

    mock_broker.close.assert_awaited_once()


@pytest.mark.asyncio
async def test_run_worker_exits_1_when_startup_fails(worker, mock_broker) -> None:
    mock_broker.connect.side_effect = BrokerConnectionError("RabbitMQ unreachable", details={"url": "amqp://x"})

    assert await run_worker(worker) == 1
    mock_broker.close.assert_awaited_once()


@pytest.mark.asyncio
async def test_run_worker_propagates_unexpected_errors() -> None:
    worker = MagicMock()
    worker.start = AsyncMock(side_effect=RuntimeError("bug"))

    with pytest.raises(RuntimeError):
        await run_worker(worker)


@pytest.mark.asyncio
async def test_start_continues_when_email_provider_is_unreachable(worker, mock_broker, monkeypatch) -> None:
    from notification_service.features.notifications import EmailDeliveryExecutor

    monkeypatch.setattr(EmailDeliveryExecutor, "health_check", AsyncMock(return_value=False))

    await worker.start()

    assert worker.dispatcher.is_consuming is True
    mock_broker.connect.assert_awaited_once()


def _signalling_worker(*, stop=None) -> MagicMock:
    """Worker double that raises SIGTERM against this process once started."""
    worker = MagicMock()

    async def start() -> None:
        asyncio.get_running_loop().call_later(0.01, os.kill, os.getpid(), signal.SIGTERM)

    worker.start = AsyncMock(side_effect=start)
    worker.stop = stop or AsyncMock()
    return worker


@pytest.mark.asyncio
async def test_run_worker_stops_and_exits_0_on_sigterm() -> None:
    worker = _signalling_worker()

    exit_code = await asyncio.wait_for(run_worker(worker), timeout=5)

    assert exit_code == 0
    worker.stop.assert_awaited_once()


@pytest.mark.asyncio
async def test_second_signal_during_shutdown_forces_exit_1(monkeypatch) -> None:
    import notification_service.worker as worker_module

    forced_exit = MagicMock()
    monkeypatch.setattr(worker_module.os, "_exit", forced_exit)
    monkeypatch.setattr(worker_module, "shutdown_logging", MagicMock())

    async def slow_stop() -> None:
        os.kill(os.getpid(), signal.SIGINT)
        await asyncio.sleep(0.1)

    worker = _signalling_worker(stop=AsyncMock(side_effect=slow_stop))

    exit_code = await asyncio.wait_for(run_worker(worker), timeout=5)

    forced_exit.assert_called_once_with(1)
    worker_module.shutdown_logging.assert_called_once()
    worker.stop.assert_awaited_once()
    assert exit_code == 0
