"""Main CLI entry point for notification-service management commands."""

import click

from notification_service.cli.commands import database, notifications, templates, worker
from notification_service.infra.logging import setup_logging


@click.group()
@click.version_option(version="1.0.0", prog_name="notification-service")
@click.pass_context
def cli(ctx: click.Context) -> None:
    """Notification Service CLI - worker and management commands.

    \b
    Command Groups:
      worker         Consume events and deliver notifications
      db             Database schema and template seeding
      templates      Notification template management
      notifications  Notification statistics

    \b
    Quick Start:
      notification-service db init                      # Create tables, seed templates
      notification-service worker                       # Start consuming
      notification-service notifications stats --user-id u-1
    """
    ctx.ensure_object(dict)


cli.add_command(worker.worker)
cli.add_command(database.db)
cli.add_command(templates.templates)
cli.add_command(notifications.notifications)


def main() -> None:
    """Entry point for CLI."""
    setup_logging()
    cli(obj={})


if __name__ == "__main__":
    main()
