"""Notification templates: built-in defaults, Jinja2 rendering and resolution."""

from __future__ import annotations

from .defaults import DEFAULT_TEMPLATES, DefaultTemplate, get_default_template
from .renderer import RenderedContent, TemplateRenderer, get_template_renderer
from .service import NotificationTemplateService, ResolvedTemplate

__all__ = [
    "DEFAULT_TEMPLATES",
    "DefaultTemplate",
    "NotificationTemplateService",
    "RenderedContent",
    "ResolvedTemplate",
    "TemplateRenderer",
    "get_default_template",
    "get_template_renderer",
]
