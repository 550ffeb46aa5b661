"""Notification template commands.

Example:bash
    notification-service templates show order.placed
    notification-service templates upsert order.placed --name "Order Placed" \\
        --subject "Order {{ orderNumber }}" --message-file order_placed.txt
    notification-service templates render order.placed --var orderNumber=ORD-1
    notification-service templates deactivate order.placed
"""

import json
import sys

import click
from sqlalchemy.exc import SQLAlchemyError

from notification_service.cli.utils import coro, error, header, info, success, table
from notification_service.core.exceptions import NotFoundError, NotificationServiceError, TemplateRenderError

_channel_option = click.option("--channel", default="email", show_default=True, help="Delivery channel")


def _template_payload(row) -> dict:
    return {
        "id": row.id,
        "name": row.name,
        "eventType": row.event_type,
        "channel": row.channel,
        "subjectTemplate": row.subject_template,
        "messageTemplate": row.message_template,
        "isActive": row.is_active,
    }


@click.group(name="templates")
def templates() -> None:
    """Notification template management."""


@templates.command(name="list")
@click.option("--channel", default=None, help="Only templates for this channel")
@click.option("--active-only", is_flag=True, help="Hide deactivated templates")
@click.option(
    "--format",
    "output_format",
    type=click.Choice(["table", "json"]),
    default="table",
    help="Output format",
)
@coro
async def list_templates(channel: str | None, active_only: bool, output_format: str) -> None:
    """List stored notification templates."""
    from notification_service.features.notifications.templates import NotificationTemplateService
    from notification_service.infra.database import get_session_factory

    try:
        async with get_session_factory()() as session:
            rows = await NotificationTemplateService().list_templates(
                session, channel=channel, active_only=active_only
            )
    except (NotificationServiceError, SQLAlchemyError, OSError) as e:
        error(f"Failed to list templates: {e}")
        sys.exit(1)

    if output_format == "json":
        click.echo(json.dumps([_template_payload(row) for row in rows], indent=2))
        return

    if not rows:
        info("No templates stored; run 'notification-service db init' to seed the defaults")
        return

    header(f"Notification templates ({len(rows)})")
    table(
        ["EVENT TYPE", "CHANNEL", "NAME", "ACTIVE"],
        [(row.event_type, row.channel, row.name, "yes" if row.is_active else "no") for row in rows],
    )


@templates.command(name="show")
@click.argument("event_type")
@_channel_option
@click.option("--json", "as_json", is_flag=True, help="Print JSON")
@coro
async def show_template(event_type: str, channel: str, as_json: bool) -> None:
    """Show the template an EVENT_TYPE renders with (stored or built-in)."""
    from notification_service.features.notifications.templates import NotificationTemplateService
    from notification_service.infra.database import get_session_factory

    try:
        async with get_session_factory()() as session:
            resolved = await NotificationTemplateService().resolve(session, event_type, channel)
    except (NotificationServiceError, SQLAlchemyError, OSError) as e:
        error(f"Failed to load template: {e}")
        sys.exit(1)

    source = "built-in" if resolved.is_default else "stored"
    if as_json:
        click.echo(
            json.dumps(
                {
                    "eventType": event_type,
                    "channel": channel,
                    "name": resolved.name,
                    "source": source,
                    "templateId": resolved.template_id,
                    "subjectTemplate": resolved.subject_template,
                    "messageTemplate": resolved.message_template,
                },
                indent=2,
            )
        )
        return

    header(f"{event_type} ({channel}): {resolved.name} [{source}]")
    click.echo(f"Subject: {resolved.subject_template or '-'}")
    click.echo()
    click.echo(resolved.message_template)


@templates.command(name="upsert")
@click.argument("event_type")
@_channel_option
@click.option("--name", required=True, help="Template name")
@click.option("--subject", default=None, help="Jinja2 subject template")
@click.option("--message", default=None, help="Jinja2 message template")
@click.option(
    "--message-file",
    type=click.File("r", encoding="utf-8"),
    default=None,
    help="Read the message template from a file ('-' for stdin)",
)
@click.option("--inactive", is_flag=True, help="Store the template deactivated")
@coro
async def upsert_template(
    event_type: str,
    channel: str,
    name: str,
    subject: str | None,
    message: str | None,
    message_file,
    inactive: bool,
) -> None:
    """Create or replace the stored template for EVENT_TYPE."""
    from notification_service.features.notifications.templates import NotificationTemplateService
    from notification_service.infra.database import get_session_factory

    if (message is None) == (message_file is None):
        raise click.UsageError("Give exactly one of --message or --message-file")
    message_template = message if message is not None else message_file.read()

    try:
        async with get_session_factory()() as session, session.begin():
            row, created = await NotificationTemplateService().upsert_template(
                session,
                event_type=event_type,
                channel=channel,
                name=name,
                subject_template=subject,
                message_template=message_template,
                is_active=not inactive,
            )
    except TemplateRenderError as e:
        error(str(e))
        sys.exit(1)
    except (NotificationServiceError, SQLAlchemyError, OSError) as e:
        error(f"Failed to store template: {e}")
        sys.exit(1)

    success(f"{'Created' if created else 'Updated'} template {row.name} for {event_type} ({channel})")


@templates.command(name="deactivate")
@click.argument("event_type")
@_channel_option
@coro
async def deactivate_template(event_type: str, channel: str) -> None:
    """Stop using the stored template for EVENT_TYPE; the built-in one takes over."""
    from notification_service.features.notifications.templates import NotificationTemplateService
    from notification_service.infra.database import get_session_factory

    try:
        async with get_session_factory()() as session, session.begin():
            row = await NotificationTemplateService().deactivate_template(session, event_type, channel)
    except NotFoundError:
        error(f"No stored template for {event_type} ({channel})")
        sys.exit(1)
    except (NotificationServiceError, SQLAlchemyError, OSError) as e:
        error(f"Failed to deactivate template: {e}")
        sys.exit(1)

    success(f"Deactivated template {row.name} for {event_type} ({channel})")


def _parse_variables(pairs: tuple[str, ...], vars_json: str | None) -> dict:
    variables: dict = {}
    if vars_json:
        try:
            variables = json.loads(vars_json)
        except json.JSONDecodeError as e:
            raise click.BadParameter(f"not valid JSON: {e}", param_hint="--vars-json") from e
        if not isinstance(variables, dict):
            raise click.BadParameter("must be a JSON object", param_hint="--vars-json")
    for pair in pairs:
        key, sep, value = pair.partition("=")
        if not sep or not key:
            raise click.BadParameter(f"expected KEY=VALUE, got {pair!r}", param_hint="--var")
        variables[key] = value
    return variables


@templates.command(name="render")
@click.argument("event_type")
@_channel_option
@click.option("--var", "pairs", multiple=True, metavar="KEY=VALUE", help="Template variable (repeatable)")
@click.option("--vars-json", default=None, help="Template variables as a JSON object")
@click.option("--json", "as_json", is_flag=True, help="Print JSON")
@coro
async def render_template(
    event_type: str,
    channel: str,
    pairs: tuple[str, ...],
    vars_json: str | None,
    as_json: bool,
) -> None:
    """Render the template for EVENT_TYPE with sample variables."""
    from notification_service.features.notifications.templates import NotificationTemplateService
    from notification_service.infra.database import get_session_factory

    variables = _parse_variables(pairs, vars_json)
    try:
        async with get_session_factory()() as session:
            rendered, resolved = await NotificationTemplateService().render(
                session, event_type, channel, {"eventType": event_type, **variables}
            )
    except TemplateRenderError as e:
        error(str(e))
        sys.exit(1)
    except (NotificationServiceError, SQLAlchemyError, OSError) as e:
        error(f"Failed to render template: {e}")
        sys.exit(1)

    if as_json:
        click.echo(
            json.dumps(
                {
                    "template": resolved.name,
                    "source": "built-in" if resolved.is_default else "stored",
                    "variables": variables,
                    "subject": rendered.subject,
                    "message": rendered.message,
                },
                indent=2,
            )
        )
        return

    header(f"{resolved.name}: {rendered.subject or '(no subject)'}")
    click.echo(rendered.message)
