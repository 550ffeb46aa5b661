"""Inbound domain events consumed by the notification worker.

Producers publish JSON envelopes of the form::

    {"eventType": "order.placed", "userId": "u-1", "userEmail": "a@b.c",
     "timestamp": "2024-05-01T10:00:00Z", "data": {"orderNumber": "A-1"}}

The envelope is parsed into a tagged union keyed by ``eventType``: one model
per domain family (auth, user, order, payment, profile) with a typed ``data``
payload. Payloads whose ``eventType`` is missing or outside the consumed set
become an ``UnsupportedEvent`` instead of failing deserialization, so the
dispatcher can acknowledge and move on.

Usage:
    event = parse_event(json.loads(body))
    if isinstance(event, UnsupportedEvent):
        ...
    elif isinstance(event, OrderEvent):
        event.data.order_number
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Annotated, Any, ClassVar

from pydantic import (
    BaseModel,
    ConfigDict,
    Discriminator,
    Field,
    Tag,
    TypeAdapter,
    ValidationError,
    field_validator,
)
from pydantic.alias_generators import to_camel

from notification_service.core.exceptions import EventValidationError


class EventFamily(str, Enum):
    """Domain family an event type belongs to (its first dotted segment)."""

    AUTH = "auth"
    USER = "user"
    ORDER = "order"
    PAYMENT = "payment"
    PROFILE = "profile"
    NOTIFICATION = "notification"


class EventType(str, Enum):
    """Closed set of event types known to the service."""

    # Auth service
    AUTH_USER_REGISTERED = "auth.user.registered"
    AUTH_LOGIN = "auth.login"
    AUTH_EMAIL_VERIFICATION_REQUESTED = "auth.email.verification.requested"
    AUTH_PASSWORD_RESET_REQUESTED = "auth.password.reset.requested"
    AUTH_PASSWORD_RESET_COMPLETED = "auth.password.reset.completed"
    AUTH_ACCOUNT_REACTIVATION_REQUESTED = "auth.account.reactivation.requested"

    # User service
    USER_CREATED = "user.user.created"
    USER_UPDATED = "user.user.updated"
    USER_DELETED = "user.user.deleted"
    USER_EMAIL_VERIFIED = "user.email.verified"
    USER_PASSWORD_CHANGED = "user.password.changed"

    # Order service
    ORDER_PLACED = "order.placed"
    ORDER_CANCELLED = "order.cancelled"
    ORDER_DELIVERED = "order.delivered"

    # Payment service
    PAYMENT_RECEIVED = "payment.received"
    PAYMENT_FAILED = "payment.failed"

    # Profile
    PROFILE_PASSWORD_CHANGED = "profile.password_changed"
    PROFILE_NOTIFICATION_PREFERENCES_UPDATED = "profile.notification_preferences_updated"
    PROFILE_BANK_DETAILS_UPDATED = "profile.bank_details_updated"

    # Outcomes published by this service
    NOTIFICATION_SENT = "notification.sent"
    NOTIFICATION_FAILED = "notification.failed"

    @property
    def family(self) -> EventFamily:
        return EventFamily(self.value.split(".", 1)[0])

    @property
    def is_outcome(self) -> bool:
        return self.family is EventFamily.NOTIFICATION


CONSUMED_EVENT_TYPES: frozenset[EventType] = frozenset(
    event_type for event_type in EventType if not event_type.is_outcome
)

# Envelope keys that identify the recipient; lifted out of ``data`` when the
# producer nested them there.
_IDENTITY_KEYS = ("userId", "userEmail", "userPhone", "username", "email")


class _EventModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="allow",
        frozen=True,
        coerce_numbers_to_str=True,
    )


# ──────────────────────────────────────────────────────────────
# Family payloads
# ──────────────────────────────────────────────────────────────


class AuthEventData(_EventModel):
    username: str | None = None
    email: str | None = None
    verification_token: str | None = None
    reset_token: str | None = None
    reactivation_token: str | None = None
    ip_address: str | None = None
    user_agent: str | None = None
    verification_url: str | None = None
    reset_url: str | None = None
    reactivation_url: str | None = None


class UserEventData(_EventModel):
    user_id: str | None = None
    email: str | None = None
    name: str | None = None
    is_email_verified: bool | None = None
    role: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class OrderEventData(_EventModel):
    order_id: str | None = None
    order_number: str | None = None
    amount: int | float | None = None
    items: list[Any] | None = None


class PaymentEventData(_EventModel):
    order_id: str | None = None
    payment_id: str | None = None
    amount: int | float | None = None
    reason: str | None = None


class ProfileEventData(_EventModel):
    field: str | None = None
    old_value: Any = None
    new_value: Any = None


# ──────────────────────────────────────────────────────────────
# Envelopes
# ──────────────────────────────────────────────────────────────


class BaseEvent(_EventModel):
    """Common envelope shared by every consumed event.

    Attributes:
        event_type: Routing identity of the event.
        user_id: Recipient identifier (falls back to email or username).
        user_email: Preferred recipient address.
        user_phone: Recipient phone number, unused by the email channel.
        username: Login name, set by auth events.
        email: Secondary recipient address.
        timestamp: When the producer emitted the event.
        data: Family-specific payload.
    """

    family: ClassVar[EventFamily]

    event_type: EventType
    user_id: str = Field(min_length=1)
    user_email: str | None = None
    user_phone: str | None = None
    username: str | None = None
    email: str | None = None
    timestamp: datetime | None = None
    data: _EventModel = Field(default_factory=_EventModel)

    @field_validator("event_type")
    @classmethod
    def _check_family(cls, value: EventType) -> EventType:
        if value.family is not cls.family:
            raise ValueError(f"{value.value} is not a {cls.family.value} event")
        return value

    @property
    def recipient_email(self) -> str | None:
        """Address the email channel delivers to."""
        return self.user_email or self.email

    def event_data(self) -> dict[str, Any]:
        """JSON-safe copy of ``data`` (extra producer keys included)."""
        return self.data.model_dump(mode="json", by_alias=True, exclude_none=True)

    def template_context(self) -> dict[str, Any]:
        """Flat variable mapping for template rendering.

        Envelope fields and extra top-level keys come first; ``data`` keys
        override them.
        """
        envelope = self.model_dump(mode="json", by_alias=True, exclude_none=True, exclude={"data"})
        return {**envelope, **self.event_data()}


class AuthEvent(BaseEvent):
    family: ClassVar[EventFamily] = EventFamily.AUTH
    data: AuthEventData = Field(default_factory=AuthEventData)


class UserEvent(BaseEvent):
    family: ClassVar[EventFamily] = EventFamily.USER
    data: UserEventData = Field(default_factory=UserEventData)


class OrderEvent(BaseEvent):
    family: ClassVar[EventFamily] = EventFamily.ORDER
    data: OrderEventData = Field(default_factory=OrderEventData)


class PaymentEvent(BaseEvent):
    family: ClassVar[EventFamily] = EventFamily.PAYMENT
    data: PaymentEventData = Field(default_factory=PaymentEventData)


class ProfileEvent(BaseEvent):
    family: ClassVar[EventFamily] = EventFamily.PROFILE
    data: ProfileEventData = Field(default_factory=ProfileEventData)


def _event_family(value: Any) -> str | None:
    if isinstance(value, dict):
        raw = value.get("eventType", value.get("event_type"))
    else:
        raw = getattr(value, "event_type", None)
    try:
        return EventType(raw).family.value
    except ValueError:
        return None


Event = Annotated[
    Annotated[AuthEvent, Tag(EventFamily.AUTH.value)]
    | Annotated[UserEvent, Tag(EventFamily.USER.value)]
    | Annotated[OrderEvent, Tag(EventFamily.ORDER.value)]
    | Annotated[PaymentEvent, Tag(EventFamily.PAYMENT.value)]
    | Annotated[ProfileEvent, Tag(EventFamily.PROFILE.value)],
    Discriminator(_event_family),
]

_event_adapter: TypeAdapter[Event] = TypeAdapter(Event)


@dataclass(frozen=True, slots=True)
class UnsupportedEvent:
    """A payload the worker does not consume.

    Attributes:
        event_type: The ``eventType`` value, if there was one.
        payload: The normalized payload.
        reason: Why it was not parsed into a typed event.
    """

    event_type: str | None
    payload: dict[str, Any] = field(default_factory=dict)
    reason: str = "unsupported event type"


# ──────────────────────────────────────────────────────────────
# Parsing
# ──────────────────────────────────────────────────────────────


def normalize_envelope(payload: Mapping[str, Any]) -> dict[str, Any]:
    """Bring producer variants onto the canonical envelope shape.

    - ``{"topic": t, "data": {...}}`` becomes ``{"eventType": t, ...data}``.
    - A ``data`` object nested inside ``data`` is merged into its parent.
    - Identity keys (``userId``, ``userEmail``, ``email``, ...) found only in
      ``data`` are copied to the top level.
    - A missing ``userId`` falls back to ``userEmail``, ``email`` or
      ``username``, in that order.

    The input mapping is never modified.
    """
    body: dict[str, Any] = dict(payload)

    if body.get("topic") and isinstance(body.get("data"), dict):
        body = {"eventType": body["topic"], **body["data"]}

    data = body.get("data")
    if isinstance(data, dict):
        nested = data.get("data")
        if isinstance(nested, dict):
            data = {**{k: v for k, v in data.items() if k != "data"}, **nested}
        body["data"] = data
        for key in _IDENTITY_KEYS:
            if not body.get(key) and data.get(key):
                body[key] = data[key]
    elif data is None:
        body.pop("data", None)

    if not body.get("userId"):
        fallback = body.get("userEmail") or body.get("email") or body.get("username")
        if fallback:
            body["userId"] = fallback

    return body


def parse_event(payload: Mapping[str, Any]) -> Event | UnsupportedEvent:
    """Normalize ``payload`` and parse it into a typed event.

    Returns:
        The typed event, or ``UnsupportedEvent`` when ``eventType`` is missing,
        unknown, or an outcome type this service only publishes.

    Raises:
        EventValidationError: A consumed event type whose fields fail
            validation (e.g. no recipient identity at all).
    """
    body = normalize_envelope(payload)
    raw_type = body.get("eventType")

    if not isinstance(raw_type, str) or not raw_type:
        return UnsupportedEvent(event_type=None, payload=body, reason="missing eventType")

    try:
        event_type = EventType(raw_type)
    except ValueError:
        return UnsupportedEvent(event_type=raw_type, payload=body, reason="unknown event type")

    if event_type not in CONSUMED_EVENT_TYPES:
        return UnsupportedEvent(event_type=raw_type, payload=body, reason="event type is not consumed")

    try:
        return _event_adapter.validate_python(body)
    except ValidationError as e:
        raise EventValidationError(
            f"Invalid {raw_type} event",
            details={
                "event_type": raw_type,
                "errors": [
                    {"loc": ".".join(str(part) for part in err["loc"]), "msg": err["msg"]}
                    for err in e.errors(include_url=False)
                ],
            },
        ) from e


__all__ = [
    "CONSUMED_EVENT_TYPES",
    "AuthEvent",
    "AuthEventData",
    "BaseEvent",
    "Event",
    "EventFamily",
    "EventType",
    "OrderEvent",
    "OrderEventData",
    "PaymentEvent",
    "PaymentEventData",
    "ProfileEvent",
    "ProfileEventData",
    "UnsupportedEvent",
    "UserEvent",
    "UserEventData",
    "normalize_envelope",
    "parse_event",
]
