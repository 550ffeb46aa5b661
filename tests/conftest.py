"""Pytest configuration and shared fixtures.

Organization:
    - Environment: defaults so no broker, database or SMTP server is needed
    - Database Fixtures: in-memory SQLite engine and session factory
    - Event Fixtures: inbound payloads and parsed events
    - Messaging Fixtures: broker doubles and event contexts
"""

from __future__ import annotations

import json
import os
from collections.abc import AsyncGenerator, Iterator
from typing import TYPE_CHECKING, Any
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncEngine

    from notification_service.core.events import Event
    from notification_service.infra.messaging import EventContext

# Ensure tests run without external infrastructure
os.environ.setdefault("APP_ENVIRONMENT", "test")
os.environ.setdefault("DB_DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("RABBIT_ENABLED", "false")
os.environ.setdefault("EMAIL_BACKEND", "console")
os.environ.setdefault("OTEL_ENABLED", "false")
os.environ.setdefault("LOG_JSON", "false")


@pytest.fixture(autouse=True)
def _reset_settings_caches() -> Iterator[None]:
    """Reload settings and the cached email provider for every test."""
    from notification_service.core.settings import clear_all_caches
    from notification_service.infra.email import reset_email_provider

    clear_all_caches()
    reset_email_provider()
    yield
    clear_all_caches()
    reset_email_provider()


# ============================================================================
# Database Fixtures
# ============================================================================


@pytest.fixture
async def db_engine() -> AsyncGenerator[AsyncEngine]:
    """Async engine on a shared in-memory SQLite database with all tables created.

    StaticPool keeps a single connection so every session sees the same data.
    """
    from notification_service.core.database import Base
    from notification_service.features.notifications import models  # noqa: F401

    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    try:
        yield engine
    finally:
        await engine.dispose()


@pytest.fixture
def session_factory(db_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Session factory bound to the test engine."""
    return async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)


@pytest.fixture
async def db_session(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession]:
    """Single session for repository-level tests."""
    async with session_factory() as session:
        yield session


# ============================================================================
# Event Fixtures
# ============================================================================


@pytest.fixture
def order_payload() -> dict[str, Any]:
    """A well-formed ``order.placed`` envelope."""
    return {
        "eventType": "order.placed",
        "userId": "user-123",
        "userEmail": "jane@example.com",
        "timestamp": "2024-05-01T10:00:00Z",
        "data": {"orderId": "o-1", "orderNumber": "A-1001", "amount": 59.99},
    }


@pytest.fixture
def order_event(order_payload: dict[str, Any]) -> Event:
    from notification_service.core.events import parse_event

    return parse_event(order_payload)


@pytest.fixture
def make_message():
    """Build an ``InboundMessage`` from a payload (dict, str or bytes)."""
    from notification_service.infra.messaging import InboundMessage

    def _make(
        payload: dict[str, Any] | str | bytes,
        *,
        headers: dict[str, Any] | None = None,
        routing_key: str | None = None,
        correlation_id: str | None = None,
        redelivered: bool = False,
    ) -> InboundMessage:
        if isinstance(payload, dict):
            body = json.dumps(payload).encode()
            routing_key = routing_key or payload.get("eventType")
        elif isinstance(payload, str):
            body = payload.encode()
        else:
            body = payload
        return InboundMessage(
            body=body,
            headers=headers or {},
            routing_key=routing_key,
            correlation_id=correlation_id,
            message_id="msg-1",
            redelivered=redelivered,
        )

    return _make


# ============================================================================
# Messaging Fixtures
# ============================================================================


TRACEPARENT = "00-4bf92f3577b34da6a3ce929d0e0e4736-00f067aa0ba902b7-01"


@pytest.fixture
def event_context() -> EventContext:
    """Context of a delivery that carried a traceparent and a correlation id."""
    from notification_service.infra.messaging import EventContext
    from notification_service.infra.tracing import parse_traceparent

    return EventContext(
        correlation_id="corr-123",
        trace_context=parse_traceparent(TRACEPARENT),
        routing_key="order.placed",
    )


@pytest.fixture
def mock_broker() -> MagicMock:
    """Stand-in for ``BrokerConnection``: records subscriptions and publishes."""
    broker = MagicMock()
    broker.subscribe = MagicMock()
    broker.connect = AsyncMock()
    broker.close = AsyncMock()
    broker.publish = AsyncMock()
    return broker
