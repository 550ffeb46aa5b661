"""Tests for the notification-service management CLI.

Commands run against a throwaway SQLite file so the schema, seeding and
queries go through the real database layer.
"""

import asyncio
import json

from click.testing import CliRunner
import pytest

from notification_service.cli.main import cli
from notification_service.core.settings import clear_all_caches


@pytest.fixture
def cli_runner():
    return CliRunner()


@pytest.fixture
def sqlite_db(tmp_path, monkeypatch):
    """Point the process-wide database at a temporary SQLite file."""
    monkeypatch.setenv("DB_DATABASE_URL", f"sqlite+aiosqlite:///{tmp_path / 'cli.db'}")
    clear_all_caches()
    return tmp_path / "cli.db"


@pytest.fixture
def seeded_db(cli_runner, sqlite_db):
    result = cli_runner.invoke(cli, ["db", "init"])
    assert result.exit_code == 0, result.output
    return sqlite_db


def test_version(cli_runner):
    result = cli_runner.invoke(cli, ["--version"])

    assert result.exit_code == 0
    assert "notification-service" in result.output
    assert "1.0.0" in result.output


def test_help_lists_command_groups(cli_runner):
    result = cli_runner.invoke(cli, ["--help"])

    assert result.exit_code == 0
    for command in ("worker", "db", "templates", "notifications"):
        assert command in result.output


class TestDbInit:
    def test_creates_schema_and_seeds_templates(self, cli_runner, sqlite_db):
        result = cli_runner.invoke(cli, ["db", "init"])

        assert result.exit_code == 0, result.output
        assert "Database schema is up to date" in result.output
        assert "Seeded 19 default template(s)" in result.output
        assert sqlite_db.exists()

    def test_second_run_inserts_nothing(self, cli_runner, seeded_db):
        result = cli_runner.invoke(cli, ["db", "init"])

        assert result.exit_code == 0, result.output
        assert "Seeded 0 default template(s)" in result.output

    def test_no_seed(self, cli_runner, sqlite_db):
        result = cli_runner.invoke(cli, ["db", "init", "--no-seed"])

        assert result.exit_code == 0, result.output
        assert "Seeded" not in result.output
        assert "Skipped seeding" in result.output


class TestTemplatesList:
    def test_json_output(self, cli_runner, seeded_db):
        result = cli_runner.invoke(cli, ["templates", "list", "--format", "json"])

        assert result.exit_code == 0, result.output
        rows = json.loads(result.stdout)
        assert len(rows) == 19
        order_placed = next(row for row in rows if row["eventType"] == "order.placed")
        assert order_placed["name"] == "Order Placed"
        assert order_placed["channel"] == "email"
        assert order_placed["subjectTemplate"] == "Order Confirmation - {{ orderNumber }}"
        assert order_placed["isActive"] is True

    def test_table_output(self, cli_runner, seeded_db):
        result = cli_runner.invoke(cli, ["templates", "list", "--active-only"])

        assert result.exit_code == 0, result.output
        assert "Notification templates (19)" in result.output
        assert "EVENT TYPE" in result.output
        assert "order.placed" in result.output

    def test_channel_filter(self, cli_runner, seeded_db):
        result = cli_runner.invoke(cli, ["templates", "list", "--channel", "sms", "--format", "json"])

        assert result.exit_code == 0, result.output
        assert json.loads(result.stdout) == []

    def test_missing_schema_fails(self, cli_runner, sqlite_db):
        result = cli_runner.invoke(cli, ["templates", "list"])

        assert result.exit_code == 1
        assert "Failed to list templates" in result.output


class TestNotificationStats:
    def test_json_output(self, cli_runner, seeded_db):
        result = cli_runner.invoke(cli, ["notifications", "stats", "--json"])

        assert result.exit_code == 0, result.output
        assert json.loads(result.stdout) == {
            "userId": None,
            "pending": 0,
            "sent": 0,
            "failed": 0,
            "total": 0,
        }

    def test_table_output_for_user(self, cli_runner, seeded_db):
        result = cli_runner.invoke(cli, ["notifications", "stats", "--user-id", "user-123"])

        assert result.exit_code == 0, result.output
        assert "Notifications for user-123" in result.output
        assert "pending" in result.output
        assert "total" in result.output

    def test_store_failure(self, cli_runner, sqlite_db):
        result = cli_runner.invoke(cli, ["notifications", "stats"])

        assert result.exit_code == 1
        assert "Failed to load statistics" in result.output


def _store_notification(db_path, **overrides) -> str:
    """Insert a notification into the CLI database and return its id."""
    from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

    from notification_service.features.notifications import Notification

    values = {
        "event_type": "order.placed",
        "user_id": "user-123",
        "recipient_email": "user@example.com",
        "channel": "email",
        "subject": "Order Confirmation - ORD-1",
        "message": "Thanks for your order ORD-1",
        "status": "failed",
        "attempts": 1,
        "error_message": "SMTP connection failed",
        "event_data": {"orderNumber": "ORD-1"},
        **overrides,
    }

    async def insert() -> str:
        engine = create_async_engine(f"sqlite+aiosqlite:///{db_path}")
        try:
            async with async_sessionmaker(engine, expire_on_commit=False)() as session, session.begin():
                notification = Notification(**values)
                session.add(notification)
            return notification.notification_id
        finally:
            await engine.dispose()

    return asyncio.run(insert())


class TestNotificationLookup:
    def test_list_for_user_json(self, cli_runner, seeded_db):
        first = _store_notification(seeded_db)
        _store_notification(seeded_db, user_id="someone-else")

        result = cli_runner.invoke(cli, ["notifications", "list", "--user-id", "user-123", "--json"])

        assert result.exit_code == 0, result.output
        rows = json.loads(result.stdout)
        assert [row["notificationId"] for row in rows] == [first]
        assert rows[0]["status"] == "failed"
        assert rows[0]["errorMessage"] == "SMTP connection failed"

    def test_list_applies_limit_and_offset(self, cli_runner, seeded_db):
        for _ in range(3):
            _store_notification(seeded_db)

        result = cli_runner.invoke(
            cli, ["notifications", "list", "--user-id", "user-123", "--limit", "2", "--offset", "2", "--json"]
        )

        assert result.exit_code == 0, result.output
        assert len(json.loads(result.stdout)) == 1

    def test_list_table_without_rows(self, cli_runner, seeded_db):
        result = cli_runner.invoke(cli, ["notifications", "list", "--user-id", "nobody"])

        assert result.exit_code == 0, result.output
        assert "No notifications for nobody" in result.output

    def test_list_requires_user_id(self, cli_runner, seeded_db):
        result = cli_runner.invoke(cli, ["notifications", "list"])

        assert result.exit_code == 2

    def test_show(self, cli_runner, seeded_db):
        notification_id = _store_notification(seeded_db)

        result = cli_runner.invoke(cli, ["notifications", "show", notification_id])

        assert result.exit_code == 0, result.output
        assert f"Notification {notification_id}" in result.output
        assert "Thanks for your order ORD-1" in result.output
        assert "SMTP connection failed" in result.output

    def test_show_unknown_id(self, cli_runner, seeded_db):
        result = cli_runner.invoke(cli, ["notifications", "show", "does-not-exist"])

        assert result.exit_code == 1
        assert "Notification does-not-exist not found" in result.output


class TestTemplateManagement:
    def test_show_built_in_when_nothing_stored(self, cli_runner, seeded_db):
        cli_runner.invoke(cli, ["templates", "deactivate", "order.placed"])

        result = cli_runner.invoke(cli, ["templates", "show", "order.placed", "--json"])

        assert result.exit_code == 0, result.output
        shown = json.loads(result.stdout)
        assert shown["source"] == "built-in"
        assert shown["name"] == "Order Placed"
        assert shown["templateId"] is None

    def test_upsert_replaces_stored_template(self, cli_runner, seeded_db):
        result = cli_runner.invoke(
            cli,
            [
                "templates",
                "upsert",
                "order.placed",
                "--name",
                "Custom Order",
                "--subject",
                "Order {{ orderNumber }} is in",
                "--message",
                "Hello {{ username }}",
            ],
        )

        assert result.exit_code == 0, result.output
        assert "Updated template Custom Order for order.placed (email)" in result.output

        shown = json.loads(cli_runner.invoke(cli, ["templates", "show", "order.placed", "--json"]).stdout)
        assert shown["source"] == "stored"
        assert shown["subjectTemplate"] == "Order {{ orderNumber }} is in"
        assert shown["messageTemplate"] == "Hello {{ username }}"

    def test_upsert_creates_from_file(self, cli_runner, seeded_db, tmp_path):
        body = tmp_path / "body.txt"
        body.write_text("Welcome back {{ username }}", encoding="utf-8")

        result = cli_runner.invoke(
            cli,
            ["templates", "upsert", "auth.login", "--channel", "push", "--name", "Push Login", "--message-file", str(body)],
        )

        assert result.exit_code == 0, result.output
        assert "Created template Push Login for auth.login (push)" in result.output

    def test_upsert_rejects_invalid_template(self, cli_runner, seeded_db):
        result = cli_runner.invoke(
            cli, ["templates", "upsert", "order.placed", "--name", "Broken", "--message", "{% if %}"]
        )

        assert result.exit_code == 1
        assert "Invalid template" in result.output
        shown = json.loads(cli_runner.invoke(cli, ["templates", "show", "order.placed", "--json"]).stdout)
        assert shown["name"] == "Order Placed"

    def test_upsert_needs_exactly_one_message_source(self, cli_runner, seeded_db):
        result = cli_runner.invoke(cli, ["templates", "upsert", "order.placed", "--name", "x"])

        assert result.exit_code == 2
        assert "--message" in result.output

    def test_deactivate(self, cli_runner, seeded_db):
        result = cli_runner.invoke(cli, ["templates", "deactivate", "order.placed"])

        assert result.exit_code == 0, result.output
        assert "Deactivated template Order Placed" in result.output
        rows = json.loads(cli_runner.invoke(cli, ["templates", "list", "--active-only", "--format", "json"]).stdout)
        assert "order.placed" not in {row["eventType"] for row in rows}

    def test_deactivate_unknown(self, cli_runner, seeded_db):
        result = cli_runner.invoke(cli, ["templates", "deactivate", "order.placed", "--channel", "push"])

        assert result.exit_code == 1
        assert "No stored template for order.placed (push)" in result.output

    def test_render_with_variables(self, cli_runner, seeded_db):
        result = cli_runner.invoke(
            cli,
            ["templates", "render", "order.placed", "--var", "orderNumber=ORD-42", "--json"],
        )

        assert result.exit_code == 0, result.output
        rendered = json.loads(result.stdout)
        assert rendered["subject"] == "Order Confirmation - ORD-42"
        assert rendered["variables"] == {"orderNumber": "ORD-42"}

    def test_render_rejects_bad_variable(self, cli_runner, seeded_db):
        result = cli_runner.invoke(cli, ["templates", "render", "order.placed", "--var", "orderNumber"])

        assert result.exit_code == 2
        assert "KEY=VALUE" in result.output
