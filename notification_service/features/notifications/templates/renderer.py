"""Jinja2 template rendering for notifications."""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any

from jinja2 import TemplateError, select_autoescape
from jinja2.sandbox import SandboxedEnvironment

from notification_service.core.exceptions import TemplateRenderError
from notification_service.infra.logging import get_lazy_logger

_EMAIL_HTML_LAYOUT = """\
<!DOCTYPE html>
<html>
<head>
  <meta charset="utf-8">
  <meta name="viewport" content="width=device-width, initial-scale=1.0">
  <title>{{ subject or "Notification from AI Outlet" }}</title>
  <style>
    body { font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, Helvetica, Arial, sans-serif;
           line-height: 1.6; color: #333; max-width: 600px; margin: 0 auto; padding: 20px; background-color: #f5f5f5; }
    .email-container { background-color: white; border-radius: 8px; overflow: hidden; }
    .header { background-color: {{ color }}; color: white; padding: 30px 20px; text-align: center; }
    .content { padding: 30px 20px; }
    .event-badge { background-color: #e7f3ff; color: #0066cc; padding: 8px 16px; border-radius: 20px;
                   font-size: 14px; display: inline-block; margin-bottom: 20px; }
    .footer { background-color: #2c3e50; color: #bdc3c7; padding: 20px; text-align: center; font-size: 14px; }
  </style>
</head>
<body>
  <div class="email-container">
    <div class="header"><h1>{{ icon }} AI Outlet</h1></div>
    <div class="content">
      <div class="event-badge">{{ event_type }}</div>
      <div class="message">
      {% for line in message.splitlines() %}
        {{ line }}<br>
      {% endfor %}
      </div>
    </div>
    <div class="footer"><p>This is an automated notification from AI Outlet.</p></div>
  </div>
</body>
</html>
"""

_EVENT_ICONS = {
    "order.placed": "🛍️",
    "order.delivered": "📦",
    "order.cancelled": "❌",
    "payment.received": "💳",
    "payment.failed": "⚠️",
    "profile.password_changed": "🔒",
    "profile.notification_preferences_updated": "⚙️",
    "profile.bank_details_updated": "🏦",
}

_EVENT_COLORS = {
    "order.placed": "#4CAF50",
    "order.delivered": "#2196F3",
    "order.cancelled": "#f44336",
    "payment.received": "#4CAF50",
    "payment.failed": "#ff9800",
    "profile.password_changed": "#9c27b0",
    "profile.notification_preferences_updated": "#607d8b",
    "profile.bank_details_updated": "#795548",
}


@dataclass(frozen=True, slots=True)
class RenderedContent:
    """Output of rendering one template against one event."""

    subject: str | None
    message: str


class TemplateRenderer:
    """Jinja2 template renderer with security sandboxing.

    Uses SandboxedEnvironment so stored templates cannot execute arbitrary
    code. Plain-text templates render without autoescaping; variables that are
    missing from the context render as empty strings.
    """

    def __init__(self) -> None:
        self._logger = get_lazy_logger(__name__)

        self._text_env = SandboxedEnvironment(autoescape=False, trim_blocks=True, lstrip_blocks=True)
        self._html_env = SandboxedEnvironment(
            autoescape=select_autoescape(enabled_extensions=("html", "xml"), default_for_string=True),
            trim_blocks=True,
            lstrip_blocks=True,
        )
        for env in (self._text_env, self._html_env):
            env.filters["json"] = json.dumps

        self._layout = self._html_env.from_string(_EMAIL_HTML_LAYOUT)

    def render(
        self,
        name: str,
        subject_template: str | None,
        message_template: str,
        context: dict[str, Any],
    ) -> RenderedContent:
        """Render a subject/message pair.

        Raises:
            TemplateRenderError: On template syntax errors or sandbox violations.
        """
        try:
            subject = self._render_string(subject_template, context) if subject_template else None
            message = self._render_string(message_template, context)
        except (TemplateError, TypeError, ValueError) as exc:
            msg = f"Failed to render template {name}: {exc}"
            raise TemplateRenderError(msg, template_name=name) from exc

        if subject is not None:
            # Header values cannot span lines
            subject = " ".join(subject.split())

        self._logger.debug(lambda: f"Rendered template {name}: subject={subject!r}")
        return RenderedContent(subject=subject or None, message=message)

    def render_email_html(self, message: str, event_type: str, subject: str | None = None) -> str:
        """Wrap a rendered plain-text message in the branded HTML email layout."""
        return self._layout.render(
            message=message,
            event_type=event_type,
            subject=subject,
            icon=_EVENT_ICONS.get(event_type, "🔔"),
            color=_EVENT_COLORS.get(event_type, "#6c757d"),
        )

    def validate(self, template_str: str) -> None:
        """Check that ``template_str`` compiles.

        Raises:
            TemplateRenderError: On syntax errors.
        """
        try:
            self._text_env.parse(template_str)
        except TemplateError as exc:
            raise TemplateRenderError(f"Invalid template: {exc}") from exc

    def _render_string(self, template_str: str, context: dict[str, Any]) -> str:
        return self._text_env.from_string(template_str).render(**context)


_renderer: TemplateRenderer | None = None


def get_template_renderer() -> TemplateRenderer:
    """Get or create the singleton TemplateRenderer instance."""
    global _renderer
    if _renderer is None:
        _renderer = TemplateRenderer()
    return _renderer


__all__ = ["RenderedContent", "TemplateRenderer", "get_template_renderer"]
