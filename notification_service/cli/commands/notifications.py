"""Notification record commands."""

import json
import sys

import click

from notification_service.cli.utils import coro, error, header, info, table
from notification_service.core.exceptions import NotificationNotFoundError, NotificationServiceError


@click.group(name="notifications")
def notifications() -> None:
    """Inspect delivered and failed notifications."""


@notifications.command()
@click.option("--user-id", default=None, help="Only count this user's notifications")
@click.option("--json", "as_json", is_flag=True, help="Print JSON instead of a table")
@coro
async def stats(user_id: str | None, as_json: bool) -> None:
    """Show notification counts per status."""
    from notification_service.features.notifications import NotificationService
    from notification_service.infra.database import get_session_factory

    try:
        counts = await NotificationService(get_session_factory()).get_stats(user_id)
    except NotificationServiceError as e:
        error(f"Failed to load statistics: {e}")
        sys.exit(1)

    if as_json:
        click.echo(json.dumps({"userId": user_id, **counts, "total": sum(counts.values())}, indent=2))
        return

    header(f"Notifications for {user_id}" if user_id else "Notifications")
    table(["STATUS", "COUNT"], [*counts.items(), ("total", sum(counts.values()))])


def _isoformat(value) -> str | None:
    return value.isoformat() if value is not None else None


def _notification_payload(row) -> dict:
    return {
        "notificationId": row.notification_id,
        "eventType": row.event_type,
        "userId": row.user_id,
        "recipientEmail": row.recipient_email,
        "channel": row.channel,
        "status": row.status,
        "attempts": row.attempts,
        "subject": row.subject,
        "message": row.message,
        "errorMessage": row.error_message,
        "createdAt": _isoformat(row.created_at),
        "sentAt": _isoformat(row.sent_at),
        "failedAt": _isoformat(row.failed_at),
    }


@notifications.command(name="list")
@click.option("--user-id", required=True, help="Owner of the notifications")
@click.option("--limit", type=click.IntRange(1, 1000), default=50, show_default=True)
@click.option("--offset", type=click.IntRange(min=0), default=0, show_default=True)
@click.option("--json", "as_json", is_flag=True, help="Print JSON instead of a table")
@coro
async def list_notifications(user_id: str, limit: int, offset: int, as_json: bool) -> None:
    """List a user's notifications, newest first."""
    from notification_service.features.notifications import NotificationService
    from notification_service.infra.database import get_session_factory

    try:
        rows = await NotificationService(get_session_factory()).list_for_user(user_id, limit=limit, offset=offset)
    except NotificationServiceError as e:
        error(f"Failed to list notifications: {e}")
        sys.exit(1)

    if as_json:
        click.echo(json.dumps([_notification_payload(row) for row in rows], indent=2))
        return

    if not rows:
        info(f"No notifications for {user_id}")
        return

    header(f"Notifications for {user_id} ({len(rows)})")
    table(
        ["ID", "EVENT TYPE", "STATUS", "SUBJECT", "CREATED"],
        [
            (row.notification_id, row.event_type, row.status, row.subject or "-", _isoformat(row.created_at))
            for row in rows
        ],
    )


@notifications.command(name="show")
@click.argument("notification_id")
@click.option("--json", "as_json", is_flag=True, help="Print JSON")
@coro
async def show_notification(notification_id: str, as_json: bool) -> None:
    """Show one notification with its rendered content."""
    from notification_service.features.notifications import NotificationService
    from notification_service.infra.database import get_session_factory

    try:
        row = await NotificationService(get_session_factory()).get_notification(notification_id)
    except NotificationNotFoundError:
        error(f"Notification {notification_id} not found")
        sys.exit(1)
    except NotificationServiceError as e:
        error(f"Failed to load notification: {e}")
        sys.exit(1)

    payload = _notification_payload(row)
    if as_json:
        click.echo(json.dumps(payload, indent=2))
        return

    message = payload.pop("message")
    header(f"Notification {notification_id}")
    table(["FIELD", "VALUE"], [(key, "-" if value is None else value) for key, value in payload.items()])
    click.echo()
    click.echo(message)
