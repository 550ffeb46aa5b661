"""Main entry point for notification-service.

Routing logic:
- ``--worker``: run the event consumer directly (container entrypoint)
- anything else: run the management CLI
"""

from __future__ import annotations

import sys
from typing import NoReturn


def run_worker() -> NoReturn:
    """Run the notification worker until a shutdown signal arrives."""
    from notification_service.infra.logging import setup_logging
    from notification_service.worker import main as worker_main

    setup_logging()
    sys.exit(worker_main())


def run_cli() -> NoReturn:
    """Run the CLI interface."""
    from notification_service.cli.main import main as cli_main

    cli_main()
    sys.exit(0)


def main() -> NoReturn:
    """Main entry point - routes to the worker or the CLI based on arguments."""
    if "--worker" in sys.argv:
        sys.argv.remove("--worker")
        run_worker()
    else:
        run_cli()


if __name__ == "__main__":
    main()
