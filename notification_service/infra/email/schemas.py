"""Email message model handed to providers."""

from __future__ import annotations

from pydantic import BaseModel, EmailStr, Field


class EmailMessage(BaseModel):
    """One outbound email.

    Building it validates the addresses, so a malformed recipient surfaces
    as a ``ValidationError`` before any provider is involved. ``from_*``
    left unset means the configured sender.
    """

    to: list[EmailStr] = Field(min_length=1)
    subject: str = Field(min_length=1, max_length=500)
    body_text: str | None = None
    body_html: str | None = None

    from_email: EmailStr | None = None
    from_name: str | None = Field(default=None, max_length=100)

    # Extra MIME headers, e.g. X-Notification-Id
    headers: dict[str, str] = Field(default_factory=dict)
    tags: list[str] = Field(default_factory=list)

    @property
    def all_recipients(self) -> list[str]:
        return [str(address) for address in self.to]


__all__ = ["EmailMessage"]
