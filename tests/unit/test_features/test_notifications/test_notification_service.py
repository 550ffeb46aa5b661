"""Tests for NotificationService."""

from __future__ import annotations

import pytest
from sqlalchemy.exc import OperationalError

from notification_service.core.events import parse_event
from notification_service.core.exceptions import (
    InvalidStatusTransitionError,
    NotificationNotFoundError,
    PersistenceError,
    TemplateRenderError,
)
from notification_service.features.notifications import (
    NotificationChannel,
    NotificationService,
    NotificationStatus,
    NotificationTemplate,
)


@pytest.fixture
def service(session_factory) -> NotificationService:
    return NotificationService(session_factory)


@pytest.mark.asyncio
async def test_create_notification_renders_default_template(service, order_event) -> None:
    notification_id = await service.create_notification(order_event)

    notification = await service.get_notification(notification_id)
    assert notification.status == "pending"
    assert notification.attempts == 0
    assert notification.channel == "email"
    assert notification.user_id == "user-123"
    assert notification.recipient_email == "jane@example.com"
    assert notification.subject == "Order Confirmation - A-1001"
    assert notification.message == "Your order #A-1001 has been placed successfully! Total: $59.99"
    assert notification.event_data == {"orderId": "o-1", "orderNumber": "A-1001", "amount": 59.99}
    assert notification.template_id is None


@pytest.mark.asyncio
async def test_create_notification_prefers_stored_template(service, session_factory, order_event) -> None:
    async with session_factory() as session, session.begin():
        template = NotificationTemplate(
            name="custom_order",
            event_type="order.placed",
            channel="email",
            subject_template="Thanks for order {{ orderNumber }}",
            message_template="Hi {{ userEmail }}",
            is_active=True,
        )
        session.add(template)
    template_id = template.id

    notification = await service.get_notification(await service.create_notification(order_event))

    assert notification.subject == "Thanks for order A-1001"
    assert notification.message == "Hi jane@example.com"
    assert notification.template_id == template_id


@pytest.mark.asyncio
async def test_create_notification_leaves_no_row_when_rendering_fails(
    service, session_factory, order_event
) -> None:
    async with session_factory() as session, session.begin():
        session.add(
            NotificationTemplate(
                name="broken",
                event_type="order.placed",
                channel="email",
                message_template="{% if %}",
                is_active=True,
            )
        )

    with pytest.raises(TemplateRenderError):
        await service.create_notification(order_event)

    assert await service.get_stats() == {"pending": 0, "sent": 0, "failed": 0}


@pytest.mark.asyncio
async def test_get_notification_unknown_id(service) -> None:
    with pytest.raises(NotificationNotFoundError) as exc_info:
        await service.get_notification("missing")

    assert exc_info.value.notification_id == "missing"


@pytest.mark.asyncio
async def test_update_status_sent(service, order_event) -> None:
    notification_id = await service.create_notification(order_event)

    notification = await service.update_status(notification_id, NotificationStatus.SENT)

    assert notification.status == "sent"
    assert notification.attempts == 1
    assert notification.sent_at is not None
    assert notification.failed_at is None
    assert notification.error_message is None


@pytest.mark.asyncio
async def test_update_status_failed_records_reason(service, order_event) -> None:
    notification_id = await service.create_notification(order_event)

    notification = await service.update_status(notification_id, "failed", "SMTP connection failed")

    assert notification.status == "failed"
    assert notification.attempts == 1
    assert notification.failed_at is not None
    assert notification.error_message == "SMTP connection failed"


@pytest.mark.asyncio
async def test_update_status_rejects_second_terminal_transition(service, order_event) -> None:
    notification_id = await service.create_notification(order_event)
    await service.update_status(notification_id, NotificationStatus.SENT)

    with pytest.raises(InvalidStatusTransitionError) as exc_info:
        await service.update_status(notification_id, NotificationStatus.FAILED, "late failure")

    assert exc_info.value.current_status == "sent"
    assert exc_info.value.target_status == "failed"
    notification = await service.get_notification(notification_id)
    assert notification.status == "sent"
    assert notification.attempts == 1
    assert notification.error_message is None


@pytest.mark.asyncio
async def test_update_status_rejects_pending_target(service, order_event) -> None:
    notification_id = await service.create_notification(order_event)

    with pytest.raises(InvalidStatusTransitionError):
        await service.update_status(notification_id, NotificationStatus.PENDING)


@pytest.mark.asyncio
async def test_update_status_unknown_id(service) -> None:
    with pytest.raises(NotificationNotFoundError):
        await service.update_status("missing", NotificationStatus.SENT)


@pytest.mark.asyncio
async def test_list_for_user_newest_first_and_clamped(service) -> None:
    ids = []
    for number in ("A-1", "A-2", "A-3"):
        event = parse_event(
            {"eventType": "order.placed", "userId": "user-1", "data": {"orderNumber": number}}
        )
        ids.append(await service.create_notification(event))
    await service.create_notification(parse_event({"eventType": "order.placed", "userId": "user-2"}))

    listed = await service.list_for_user("user-1")
    assert [n.notification_id for n in listed] == list(reversed(ids))

    assert len(await service.list_for_user("user-1", limit=0)) == 1
    assert len(await service.list_for_user("user-1", limit=2, offset=-5)) == 2
    assert await service.list_for_user("nobody") == []


@pytest.mark.asyncio
async def test_get_stats_zero_fills_every_status(service, order_event) -> None:
    assert await service.get_stats() == {"pending": 0, "sent": 0, "failed": 0}

    first = await service.create_notification(order_event)
    await service.create_notification(order_event)
    await service.create_notification(parse_event({"eventType": "order.placed", "userId": "other"}))
    await service.update_status(first, NotificationStatus.FAILED, "boom")

    assert await service.get_stats() == {"pending": 2, "sent": 0, "failed": 1}
    assert await service.get_stats("user-123") == {"pending": 1, "sent": 0, "failed": 1}


@pytest.mark.asyncio
async def test_store_failure_surfaces_as_persistence_error(order_event) -> None:
    def broken_factory():
        raise OperationalError("SELECT 1", {}, Exception("connection refused"))

    service = NotificationService(broken_factory)

    with pytest.raises(PersistenceError) as exc_info:
        await service.create_notification(order_event)

    assert exc_info.value.details["operation"] == "create"


def test_email_is_the_only_channel() -> None:
    assert list(NotificationChannel) == [NotificationChannel.EMAIL]
    with pytest.raises(ValueError):
        NotificationChannel("sms")
