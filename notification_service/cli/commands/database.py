"""Database management commands.

Example:bash
    # Create tables and seed the built-in templates
    notification-service db init

    # Only check connectivity
    notification-service db init --no-seed
"""

import sys

import click
from sqlalchemy.exc import SQLAlchemyError

from notification_service.cli.utils import coro, error, info, success, warning
from notification_service.core.exceptions import NotificationServiceError


@click.group(name="db")
def db() -> None:
    """Database management commands."""


@db.command()
@click.option("--seed/--no-seed", default=True, show_default=True, help="Seed built-in templates")
@coro
async def init(seed: bool) -> None:
    """Create missing tables and seed the default notification templates."""
    from notification_service.core.settings import get_db_settings
    from notification_service.features.notifications.templates import NotificationTemplateService
    from notification_service.infra.database import get_session_factory, init_database

    info(f"Connecting to: {get_db_settings().safe_url}")
    try:
        await init_database(create_schema=True)
        success("Database schema is up to date")

        if seed:
            async with get_session_factory()() as session, session.begin():
                inserted = await NotificationTemplateService().seed_defaults(session)
            success(f"Seeded {inserted} default template(s)")
        else:
            warning("Skipped seeding; events without a stored template use the built-in defaults")
    except (NotificationServiceError, SQLAlchemyError) as e:
        error(f"Database initialization failed: {e}")
        sys.exit(1)
