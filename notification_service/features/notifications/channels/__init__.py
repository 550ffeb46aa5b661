"""Delivery channels for notifications."""

from __future__ import annotations

from .base import DeliveryExecutor, DeliveryResult
from .email import DEFAULT_FAILURE_REASON, EmailDeliveryExecutor

__all__ = [
    "DEFAULT_FAILURE_REASON",
    "DeliveryExecutor",
    "DeliveryResult",
    "EmailDeliveryExecutor",
]
