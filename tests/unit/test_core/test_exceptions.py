"""Tests for core exceptions."""

from notification_service.core import exceptions as exc


def test_details_are_rendered_in_str() -> None:
    error = exc.PersistenceError("Notification store create failed", details={"operation": "create"})
    assert str(error) == "Notification store create failed (operation='create')"
    assert error.message == "Notification store create failed"


def test_error_without_details_renders_message_only() -> None:
    assert str(exc.BrokerConnectionError("RabbitMQ is not enabled")) == "RabbitMQ is not enabled"


def test_notification_not_found_carries_id() -> None:
    error = exc.NotificationNotFoundError("n-1")
    assert isinstance(error, exc.NotFoundError)
    assert error.notification_id == "n-1"
    assert error.details == {"model": "Notification", "notification_id": "n-1"}


def test_invalid_transition_fields() -> None:
    error = exc.InvalidStatusTransitionError("n-1", "sent", "failed")
    assert error.current_status == "sent"
    assert error.target_status == "failed"
    assert "from sent to failed" in error.message


def test_channel_disabled_reason_is_optional() -> None:
    assert exc.ChannelDisabledError("email").details == {"channel": "email"}
    assert exc.ChannelDisabledError("email", reason="off").reason == "off"


def test_template_render_error_details() -> None:
    error = exc.TemplateRenderError("boom", template_name="Order Placed")
    assert error.details == {"template": "Order Placed"}
