"""Built-in email templates.

Used when the ``notification_templates`` table has no active row for an event
type, and seeded into that table by ``notification-service db init``.
Placeholders use Jinja2 syntax over the flattened event (envelope fields
overlaid with ``data`` keys, camelCase).
"""

from __future__ import annotations

from dataclasses import dataclass

from notification_service.core.events import EventType

_SIGNATURE = "\n\nBest regards,\nThe AI Outlet Team"


@dataclass(frozen=True, slots=True)
class DefaultTemplate:
    name: str
    event_type: str
    subject_template: str | None
    message_template: str
    channel: str = "email"


GENERIC_SUBJECT = "Notification from AI Outlet"
GENERIC_MESSAGE = "You have a new notification: {{ eventType }}"


DEFAULT_TEMPLATES: tuple[DefaultTemplate, ...] = (
    # Auth
    DefaultTemplate(
        name="auth_user_registered_email",
        event_type=EventType.AUTH_USER_REGISTERED.value,
        subject_template="Welcome to AI Outlet!",
        message_template=(
            "Hi there,\n\nWelcome to AI Outlet! Your account has been successfully created.\n\n"
            "Username: {{ username }}\nEmail: {{ email }}\n\n"
            "Please verify your email address to activate your account." + _SIGNATURE
        ),
    ),
    DefaultTemplate(
        name="auth_email_verification_email",
        event_type=EventType.AUTH_EMAIL_VERIFICATION_REQUESTED.value,
        subject_template="Verify Your Email Address",
        message_template=(
            "Hi {{ username }},\n\nPlease verify your email address by clicking the link below:\n\n"
            "Verification Link: {{ verificationUrl }}\n\nThis link will expire in 24 hours.\n\n"
            "If you didn't request this verification, please ignore this email." + _SIGNATURE
        ),
    ),
    DefaultTemplate(
        name="auth_password_reset_requested_email",
        event_type=EventType.AUTH_PASSWORD_RESET_REQUESTED.value,
        subject_template="Password Reset Request",
        message_template=(
            "Hi {{ username }},\n\nWe received a request to reset your password.\n\n"
            "Reset Link: {{ resetUrl }}\n\nThis link will expire in 1 hour.\n\n"
            "If you didn't request this password reset, please ignore this email "
            "and your password will remain unchanged." + _SIGNATURE
        ),
    ),
    DefaultTemplate(
        name="auth_password_reset_completed_email",
        event_type=EventType.AUTH_PASSWORD_RESET_COMPLETED.value,
        subject_template="Password Successfully Reset",
        message_template=(
            "Hi {{ username }},\n\nYour password has been successfully reset.\n\n"
            "Email: {{ email }}\nTime: {{ timestamp }}\n\n"
            "If you didn't make this change, please contact our support team immediately." + _SIGNATURE
        ),
    ),
    DefaultTemplate(
        name="auth_login_email",
        event_type=EventType.AUTH_LOGIN.value,
        subject_template="New Login to Your Account",
        message_template=(
            "Hi {{ username }},\n\nA new login to your account was detected.\n\n"
            "Time: {{ timestamp }}\nIP Address: {{ ipAddress }}\nDevice: {{ userAgent }}\n\n"
            "If this wasn't you, please reset your password immediately." + _SIGNATURE
        ),
    ),
    DefaultTemplate(
        name="auth_account_reactivation_email",
        event_type=EventType.AUTH_ACCOUNT_REACTIVATION_REQUESTED.value,
        subject_template="Account Reactivation Request",
        message_template=(
            "Hi {{ username }},\n\nWe received a request to reactivate your account.\n\n"
            "Reactivation Link: {{ reactivationUrl }}\n\nThis link will expire in 24 hours.\n\n"
            "If you didn't request this, please ignore this email." + _SIGNATURE
        ),
    ),
    # User
    DefaultTemplate(
        name="user_created_email",
        event_type=EventType.USER_CREATED.value,
        subject_template="Welcome to AI Outlet, {{ name }}!",
        message_template=(
            "Hi {{ name }},\n\nThank you for joining AI Outlet! We're thrilled to have you "
            "as part of our community.\n\n"
            "Your account has been successfully created with the email: {{ email }}"
            "{% if not isEmailVerified %}\n\n"
            "Action Required: Please verify your email address to unlock all features."
            "{% endif %}" + _SIGNATURE
        ),
    ),
    DefaultTemplate(
        name="user_updated_email",
        event_type=EventType.USER_UPDATED.value,
        subject_template="Your Account Was Updated",
        message_template=(
            "Hi {{ name or email }},\n\nYour AI Outlet account details were updated.\n\n"
            "If you didn't make this change, please contact our support team immediately." + _SIGNATURE
        ),
    ),
    DefaultTemplate(
        name="user_deleted_email",
        event_type=EventType.USER_DELETED.value,
        subject_template="Your Account Has Been Deleted",
        message_template=(
            "Hi {{ name or email }},\n\nYour AI Outlet account has been deleted. "
            "We're sorry to see you go." + _SIGNATURE
        ),
    ),
    DefaultTemplate(
        name="user_email_verified_email",
        event_type=EventType.USER_EMAIL_VERIFIED.value,
        subject_template="Email Verified Successfully!",
        message_template=(
            "Hi {{ name }},\n\nGreat news! Your email address {{ email }} has been successfully verified.\n\n"
            "You now have full access to all AI Outlet features.\n\n"
            "Thank you for verifying your account!" + _SIGNATURE
        ),
    ),
    DefaultTemplate(
        name="user_password_changed_email",
        event_type=EventType.USER_PASSWORD_CHANGED.value,
        subject_template="Your Password Has Been Changed",
        message_template=(
            "Hi {{ name }},\n\nThis is to confirm that your password for your AI Outlet account "
            "({{ email }}) was successfully changed.\n\nDate: {{ timestamp }}\n\n"
            "If you did not change your password, please secure your account immediately.\n\n"
            "If you made this change, you can safely ignore this email." + _SIGNATURE
        ),
    ),
    # Order
    DefaultTemplate(
        name="Order Placed",
        event_type=EventType.ORDER_PLACED.value,
        subject_template="Order Confirmation - {{ orderNumber }}",
        message_template="Your order #{{ orderNumber }} has been placed successfully! Total: ${{ amount }}",
    ),
    DefaultTemplate(
        name="Order Delivered",
        event_type=EventType.ORDER_DELIVERED.value,
        subject_template="Order Delivered - {{ orderNumber }}",
        message_template="Your order #{{ orderNumber }} has been delivered successfully!",
    ),
    DefaultTemplate(
        name="Order Cancelled",
        event_type=EventType.ORDER_CANCELLED.value,
        subject_template="Order Cancelled - {{ orderNumber }}",
        message_template="Your order #{{ orderNumber }} has been cancelled.",
    ),
    # Payment
    DefaultTemplate(
        name="Payment Received",
        event_type=EventType.PAYMENT_RECEIVED.value,
        subject_template="Payment Confirmation",
        message_template="Payment of ${{ amount }} has been received for your order.",
    ),
    DefaultTemplate(
        name="Payment Failed",
        event_type=EventType.PAYMENT_FAILED.value,
        subject_template="Payment Failed",
        message_template="Payment failed for your order. Please try again.",
    ),
    # Profile
    DefaultTemplate(
        name="Password Changed",
        event_type=EventType.PROFILE_PASSWORD_CHANGED.value,
        subject_template="Password Changed",
        message_template="Your password has been changed successfully.",
    ),
    DefaultTemplate(
        name="Preferences Updated",
        event_type=EventType.PROFILE_NOTIFICATION_PREFERENCES_UPDATED.value,
        subject_template="Notification Preferences Updated",
        message_template="Your notification preferences have been updated.",
    ),
    DefaultTemplate(
        name="Bank Details Updated",
        event_type=EventType.PROFILE_BANK_DETAILS_UPDATED.value,
        subject_template="Bank Details Updated",
        message_template="Your bank details have been updated successfully.",
    ),
)

_BY_KEY: dict[tuple[str, str], DefaultTemplate] = {(t.event_type, t.channel): t for t in DEFAULT_TEMPLATES}


def get_default_template(event_type: str, channel: str = "email") -> DefaultTemplate:
    """Built-in template for ``event_type``, or the generic one."""
    template = _BY_KEY.get((event_type, channel))
    if template is not None:
        return template
    return DefaultTemplate(
        name="generic",
        event_type=event_type,
        subject_template=GENERIC_SUBJECT,
        message_template=GENERIC_MESSAGE,
        channel=channel,
    )


__all__ = [
    "DEFAULT_TEMPLATES",
    "GENERIC_MESSAGE",
    "GENERIC_SUBJECT",
    "DefaultTemplate",
    "get_default_template",
]
