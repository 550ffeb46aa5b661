"""Run the notification consumer."""

import sys

import click


@click.command()
def worker() -> None:
    """Consume domain events and deliver notifications until stopped.

    \b
    Stops gracefully on SIGTERM/SIGINT; a second signal forces exit.
    """
    from notification_service.worker import main as run

    sys.exit(run())
