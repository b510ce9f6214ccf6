"""HTML and plain-text bodies for transactional emails."""
from html import escape
from urllib.parse import urlencode

from readstack.config import settings

_BUTTON_HTML = """\
<div style="font-family: Arial, sans-serif; max-width: 500px; margin: auto; border: 1px solid #eee; border-radius: 8px; padding: 24px; background: #fafafa;">
  <h2 style="color: #222; text-align: center;">{heading}</h2>
  <p style="font-size: 16px; color: #555;">Hello <strong>{name}</strong>,</p>
  <p style="font-size: 16px; color: #555;">{intro}</p>
  <a href="{link}" target="_blank"
     style="display: block; width: fit-content; margin: 20px auto; padding: 12px 20px;
            background-color: #4B7BF5; color: #fff; text-decoration: none;
            border-radius: 6px; font-weight: bold; text-align: center;">{button}</a>
  <p style="font-size: 14px; color: #777;">This link will expire in <strong>{hours} hours</strong>.</p>
  <hr style="border: none; border-top: 1px solid #eee; margin: 24px 0;">
  <p style="font-size: 12px; color: #aaa; text-align: center;">{footer}</p>
</div>
"""


def _link(path: str, email: str, token: str) -> str:
    return f"{settings.CLIENT_URL.rstrip('/')}{path}?{urlencode({'email': email, 'token': token})}"


def verification_email(name: str, email: str, token: str) -> tuple[str, str, str]:
    """Return ``(subject, html, text)`` for the sign-up verification email."""
    link = _link("/auth/verify-email", email, token)
    hours = settings.VERIFICATION_TOKEN_EXPIRE_HOURS
    html = _BUTTON_HTML.format(
        heading="Welcome to <span style=\"color: #4B7BF5;\">Read Stack</span>",
        name=escape(name),
        intro="Thanks for signing up! Please verify your email by clicking the button below:",
        link=escape(link),
        button="Verify Email",
        hours=hours,
        footer="If you did not create a Read Stack account, you can safely ignore this email.",
    )
    text = (
        f"Hello {name},\n\nThanks for signing up! Verify your email here:\n{link}\n\n"
        f"This link will expire in {hours} hours."
    )
    return "Verify your ReadStack email", html, text


def password_reset_email(name: str, email: str, token: str) -> tuple[str, str, str]:
    """Return ``(subject, html, text)`` for the password reset email."""
    link = _link("/auth/reset-password", email, token)
    hours = settings.RESET_TOKEN_EXPIRE_HOURS
    html = _BUTTON_HTML.format(
        heading="Reset your password",
        name=escape(name),
        intro="We received a request to reset your password. Click the button below to choose a new one:",
        link=escape(link),
        button="Reset Password",
        hours=hours,
        footer="If you did not request a password reset, you can safely ignore this email.",
    )
    text = (
        f"Hello {name},\n\nReset your password here:\n{link}\n\n"
        f"This link will expire in {hours} hours."
    )
    return "Reset your ReadStack password", html, text
