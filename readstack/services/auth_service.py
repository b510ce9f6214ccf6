"""
Auth workflow: sign-up, email verification, sign-in and password reset.

Per-user lifecycle: Unregistered -> PendingVerification -> Verified.
``is_verified`` is only ever switched on.

Every function returns a :class:`~readstack.errors.Result`.  Failure
messages on the credential paths are kept uniform so a caller cannot tell
"no such account" from "wrong password" or "bad token" from "expired
token".
"""
import logging
from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession

from readstack import security, templates
from readstack.errors import (
    DuplicateEmailError,
    Err,
    ErrorKind,
    InvalidTokenError,
    MailDeliveryError,
    Ok,
    PasswordHashError,
    Result,
)
from readstack.mailer import Mailer
from readstack.schemas import ResetPasswordRequest, SignInRequest, SignUpRequest
from readstack.stores import user_store

logger = logging.getLogger(__name__)

USER_ALREADY_EXISTS = "User already exists. Please sign in."
USER_PENDING_VERIFICATION = "User already registered but not verified. Please verify your email."
INVALID_CREDENTIALS = "Invalid credentials"
EMAIL_NOT_VERIFIED = "Email not verified. Please verify your email."
INVALID_VERIFICATION_LINK = "Verification link is invalid or expired. Please request a new one."
INVALID_RESET_LINK = "Reset link is invalid or expired. Please request a new one."
RESET_REQUESTED = "If an account exists for this email, a password reset link has been sent."


@dataclass(frozen=True)
class Session:
    email: str
    access_token: str
    refresh_token: str


def _issue_session(user_id: int, email: str) -> Session:
    return Session(
        email=email,
        access_token=security.create_access_token(user_id),
        refresh_token=security.create_refresh_token(user_id),
    )


def _display_name(first_name: str, last_name: str) -> str:
    return f"{first_name} {last_name}".strip()


async def sign_up(db: AsyncSession, mailer: Mailer, data: SignUpRequest) -> Result[dict]:
    """
    Register a pending user and email them a verification link.

    The mail send is part of the operation: if it fails the caller gets an
    INTERNAL error and the request transaction is rolled back, so no
    unreachable pending account is left behind.
    """
    if data.password != data.confirm_password:
        return Err(ErrorKind.VALIDATION, "Passwords do not match")

    existing = await user_store.find_by_email(db, data.email)
    if existing is not None:
        if existing.is_verified:
            return Err(ErrorKind.CONFLICT, USER_ALREADY_EXISTS)
        return Err(ErrorKind.CONFLICT, USER_PENDING_VERIFICATION)

    try:
        password_hash = await security.hash_password(data.password)
    except PasswordHashError as exc:
        return Err(ErrorKind.VALIDATION, str(exc))

    try:
        user = await user_store.create(
            db,
            email=data.email,
            password_hash=password_hash,
            first_name=data.first_name,
            last_name=data.last_name,
            phone=data.phone,
            dob=data.dob,
            preferences=data.preferences,
        )
    except DuplicateEmailError:
        # A concurrent sign-up for the same address won the insert
        return Err(ErrorKind.CONFLICT, USER_PENDING_VERIFICATION)

    token = security.create_verification_token(user.email)
    subject, html, text = templates.verification_email(
        _display_name(user.first_name, user.last_name), user.email, token
    )
    try:
        await mailer.send(user.email, subject, html, text)
    except MailDeliveryError:
        logger.exception("Verification email to %s failed", user.email)
        return Err(ErrorKind.INTERNAL, "Failed to send verification email")

    logger.info("User %s signed up, verification pending", user.id)
    return Ok({"email": user.email})


async def verify_email(db: AsyncSession, email: str, token: str) -> Result[Session]:
    user = await user_store.find_by_email(db, email)
    if user is None:
        return Err(ErrorKind.NOT_FOUND, "User not found. Please register again.")
    if user.is_verified:
        return Err(ErrorKind.VALIDATION, "Already verified email, please login")

    try:
        token_email = security.verify_verification_token(token)
    except InvalidTokenError:
        return Err(ErrorKind.UNAUTHORIZED, INVALID_VERIFICATION_LINK)
    if token_email != email:
        return Err(ErrorKind.UNAUTHORIZED, INVALID_VERIFICATION_LINK)

    await user_store.mark_verified(db, user)
    logger.info("User %s verified their email", user.id)
    return Ok(_issue_session(user.id, user.email))


async def sign_in(db: AsyncSession, data: SignInRequest) -> Result[Session]:
    """
    Authenticate by email and password.

    The password is checked before the verification state, and an unknown
    email costs the same bcrypt work as a wrong password, so only someone
    holding the correct password learns that the account is unverified.
    """
    user = await user_store.find_by_email(db, data.email)
    if user is None:
        await security.burn_password_check(data.password)
        return Err(ErrorKind.VALIDATION, INVALID_CREDENTIALS)

    if not await security.verify_password(data.password, user.password):
        return Err(ErrorKind.VALIDATION, INVALID_CREDENTIALS)

    if not user.is_verified:
        return Err(ErrorKind.UNAUTHORIZED, EMAIL_NOT_VERIFIED)

    return Ok(_issue_session(user.id, user.email))


def logout(refresh_token: str | None) -> Result[str]:
    """The session lives only in the refresh cookie; there is nothing server-side to revoke."""
    if not refresh_token:
        return Err(ErrorKind.VALIDATION, "No token provided")
    return Ok("Logged out successfully")


async def request_password_reset(db: AsyncSession, mailer: Mailer, email: str) -> Result[str]:
    """Email a reset link if the account exists; the reply is identical either way."""
    user = await user_store.find_by_email(db, email)
    if user is None:
        logger.info("Password reset requested for unknown email")
        return Ok(RESET_REQUESTED)

    token = security.create_reset_token(user.email, user.password)
    subject, html, text = templates.password_reset_email(
        _display_name(user.first_name, user.last_name), user.email, token
    )
    try:
        await mailer.send(user.email, subject, html, text)
    except MailDeliveryError:
        logger.exception("Password reset email to user %s failed", user.id)
        return Err(ErrorKind.INTERNAL, "Failed to send password reset email")
    return Ok(RESET_REQUESTED)


async def reset_password(db: AsyncSession, data: ResetPasswordRequest) -> Result[str]:
    """
    Consume a reset token and store a new password hash.

    The token embeds a fingerprint of the hash it was issued against, so it
    stops working as soon as the password changes.
    """
    if data.new_password != data.confirm_password:
        return Err(ErrorKind.VALIDATION, "Passwords do not match")

    try:
        token_email, fingerprint = security.verify_reset_token(data.token)
    except InvalidTokenError:
        return Err(ErrorKind.UNAUTHORIZED, INVALID_RESET_LINK)

    user = await user_store.find_by_email(db, data.email)
    if (
        user is None
        or token_email != data.email
        or fingerprint != security.password_fingerprint(user.password)
    ):
        return Err(ErrorKind.UNAUTHORIZED, INVALID_RESET_LINK)

    try:
        password_hash = await security.hash_password(data.new_password)
    except PasswordHashError as exc:
        return Err(ErrorKind.VALIDATION, str(exc))

    await user_store.update_password(db, user, password_hash)
    logger.info("User %s reset their password", user.id)
    return Ok("Password reset successfully")
