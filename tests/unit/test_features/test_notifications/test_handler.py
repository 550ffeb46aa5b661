"""End-to-end tests for NotificationEventHandler over an in-memory store."""

from __future__ import annotations

from unittest.mock import AsyncMock

import pytest
from sqlalchemy import select

from notification_service.core.events import CONSUMED_EVENT_TYPES, parse_event
from notification_service.core.exceptions import (
    ChannelDisabledError,
    PersistenceError,
    TemplateRenderError,
)
from notification_service.features.notifications import (
    NO_RECIPIENT_REASON,
    DeliveryResult,
    Notification,
    NotificationEventHandler,
    NotificationService,
    NotificationStatus,
    OutcomePublisher,
)
from notification_service.infra.messaging import Ack, Disposition, Drop, EventDispatcher, Requeue


class FakeExecutor:
    """Delivery executor double with a scripted result."""

    channel = "email"

    def __init__(self, result: DeliveryResult | None = None, *, enabled: bool = True, error=None) -> None:
        self.result = result or DeliveryResult(success=True, provider="fake", message_id="m-1")
        self.is_enabled = enabled
        self.error = error
        self.sent: list[tuple[str, str]] = []

    async def send(self, notification, recipient):
        if self.error is not None:
            raise self.error
        self.sent.append((notification.notification_id, recipient))
        return self.result


@pytest.fixture
def service(session_factory) -> NotificationService:
    return NotificationService(session_factory)


@pytest.fixture
def publisher(mock_broker) -> OutcomePublisher:
    return OutcomePublisher(mock_broker, service_name="notification-service")


async def _only_notification(session_factory) -> Notification:
    async with session_factory() as session:
        result = await session.execute(select(Notification))
        return result.scalar_one()


def _published(mock_broker) -> tuple[str, dict]:
    mock_broker.publish.assert_awaited_once()
    topic, envelope = mock_broker.publish.await_args.args
    return topic, envelope


@pytest.mark.unit
class TestHandle:
    async def test_successful_delivery(self, service, publisher, session_factory, mock_broker, order_event, event_context):
        executor = FakeExecutor()
        handler = NotificationEventHandler(service, executor, publisher)

        result = await handler.handle(order_event, event_context)

        assert result == Ack()
        notification = await _only_notification(session_factory)
        assert notification.status == "sent"
        assert notification.attempts == 1
        assert executor.sent == [(notification.notification_id, "jane@example.com")]

        topic, envelope = _published(mock_broker)
        assert topic == "notification.sent"
        assert envelope["data"]["data"]["notificationId"] == notification.notification_id
        assert envelope["correlationid"] == "corr-123"

    async def test_provider_failure_records_failed(self, service, publisher, session_factory, mock_broker, order_event, event_context):
        executor = FakeExecutor(DeliveryResult(success=False, error_message="SMTP connection failed", provider="fake"))
        handler = NotificationEventHandler(service, executor, publisher)

        assert await handler.handle(order_event, event_context) == Ack()

        notification = await _only_notification(session_factory)
        assert notification.status == "failed"
        assert notification.error_message == "SMTP connection failed"
        topic, envelope = _published(mock_broker)
        assert topic == "notification.failed"
        assert envelope["data"]["data"]["errorMessage"] == "SMTP connection failed"

    async def test_failure_without_message_uses_default_reason(self, service, publisher, session_factory, order_event, event_context):
        handler = NotificationEventHandler(service, FakeExecutor(DeliveryResult(success=False)), publisher)

        await handler.handle(order_event, event_context)

        notification = await _only_notification(session_factory)
        assert notification.error_message == "Email sending failed"

    async def test_no_recipient_is_failed_without_sending(self, service, publisher, session_factory, mock_broker, event_context):
        executor = FakeExecutor()
        handler = NotificationEventHandler(service, executor, publisher)
        event = parse_event({"eventType": "payment.received", "userId": "user-9", "data": {"amount": 20}})

        assert await handler.handle(event, event_context) == Ack()

        notification = await _only_notification(session_factory)
        assert notification.status == "failed"
        assert notification.error_message == NO_RECIPIENT_REASON
        assert executor.sent == []
        topic, _ = _published(mock_broker)
        assert topic == "notification.failed"

    async def test_disabled_executor_is_failed(self, service, publisher, session_factory, order_event, event_context):
        handler = NotificationEventHandler(service, FakeExecutor(enabled=False), publisher)

        await handler.handle(order_event, event_context)

        notification = await _only_notification(session_factory)
        assert notification.status == "failed"
        assert notification.error_message == NO_RECIPIENT_REASON

    async def test_channel_disabled_during_send_is_failed(self, service, publisher, session_factory, order_event, event_context):
        executor = FakeExecutor(error=ChannelDisabledError("email", reason="not configured"))
        handler = NotificationEventHandler(service, executor, publisher)

        assert await handler.handle(order_event, event_context) == Ack()

        notification = await _only_notification(session_factory)
        assert notification.error_message == NO_RECIPIENT_REASON

    async def test_publish_failure_still_acks(self, service, publisher, session_factory, mock_broker, order_event, event_context):
        mock_broker.publish.side_effect = ConnectionError("channel closed")
        handler = NotificationEventHandler(service, FakeExecutor(), publisher)

        assert await handler.handle(order_event, event_context) == Ack()

        notification = await _only_notification(session_factory)
        assert notification.status == "sent"

    async def test_render_error_drops(self, publisher, mock_broker, order_event, event_context):
        service = AsyncMock(spec=NotificationService)
        service.create_notification.side_effect = TemplateRenderError("bad template", template_name="t")
        handler = NotificationEventHandler(service, FakeExecutor(), publisher)

        result = await handler.handle(order_event, event_context)

        assert isinstance(result, Drop)
        mock_broker.publish.assert_not_awaited()

    async def test_store_failure_requeues(self, publisher, mock_broker, order_event, event_context):
        service = AsyncMock(spec=NotificationService)
        service.create_notification.side_effect = PersistenceError("Notification store create failed")
        executor = FakeExecutor()
        handler = NotificationEventHandler(service, executor, publisher)

        result = await handler.handle(order_event, event_context)

        assert isinstance(result, Requeue)
        assert executor.sent == []
        mock_broker.publish.assert_not_awaited()

    async def test_status_update_failure_requeues(self, service, publisher, mock_broker, order_event, event_context):
        handler = NotificationEventHandler(service, FakeExecutor(), publisher)
        service.update_status = AsyncMock(side_effect=PersistenceError("Notification store update_status failed"))

        result = await handler.handle(order_event, event_context)

        assert isinstance(result, Requeue)
        mock_broker.publish.assert_not_awaited()

    async def test_already_settled_notification_acks_without_publishing(
        self, service, publisher, mock_broker, order_event, event_context
    ):
        original_create = service.create_notification

        async def create_and_settle(event, channel):
            notification_id = await original_create(event, channel)
            await service.update_status(notification_id, NotificationStatus.SENT)
            return notification_id

        service.create_notification = create_and_settle
        handler = NotificationEventHandler(service, FakeExecutor(), publisher)

        assert await handler.handle(order_event, event_context) == Ack()
        mock_broker.publish.assert_not_awaited()


@pytest.mark.unit
class TestRegistration:
    def test_registers_every_consumed_event_type(self, service, publisher):
        dispatcher = EventDispatcher()
        handler = NotificationEventHandler(service, FakeExecutor(), publisher)

        handler.register(dispatcher)

        assert set(dispatcher.handlers) == set(CONSUMED_EVENT_TYPES)

    async def test_dispatch_through_registered_handler(
        self, service, publisher, session_factory, mock_broker, make_message, order_payload
    ):
        dispatcher = EventDispatcher()
        NotificationEventHandler(service, FakeExecutor(), publisher).register(dispatcher)
        traceparent = "00-4bf92f3577b34da6a3ce929d0e0e4736-00f067aa0ba902b7-01"

        disposition = await dispatcher.dispatch(
            make_message(order_payload, headers={"traceparent": traceparent, "x-correlation-id": "corr-9"})
        )

        assert disposition is Disposition.ACK
        notification = await _only_notification(session_factory)
        assert notification.status == "sent"
        _, envelope = _published(mock_broker)
        assert envelope["correlationid"] == "corr-9"
        assert envelope["traceparent"].split("-")[1] == "4bf92f3577b34da6a3ce929d0e0e4736"
