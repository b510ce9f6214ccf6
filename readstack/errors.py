"""
Typed workflow results and the exceptions raised by low-level primitives.

Workflows never raise for business-rule violations; they return either
``Ok(value)`` or ``Err(kind, message)``.  The HTTP layer turns an ``Err``
into a status code with :func:`unwrap`, which is the only place the error
taxonomy meets transport concerns.
"""
from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Generic, TypeVar, Union

from fastapi import HTTPException

T = TypeVar("T")


class ErrorKind(str, enum.Enum):
    VALIDATION = "validation"
    UNAUTHORIZED = "unauthorized"
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    INTERNAL = "internal"


STATUS_CODES: dict[ErrorKind, int] = {
    ErrorKind.VALIDATION: 400,
    ErrorKind.UNAUTHORIZED: 401,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.CONFLICT: 409,
    ErrorKind.INTERNAL: 500,
}

# Shown instead of the real message for anything classified as INTERNAL.
GENERIC_ERROR_MESSAGE = "Something went wrong. Please try again later."


@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T


@dataclass(frozen=True)
class Err:
    kind: ErrorKind
    message: str

    @property
    def status_code(self) -> int:
        return STATUS_CODES[self.kind]


Result = Union[Ok[T], Err]


def unwrap(result: Result[T]) -> T:
    """
    Return the value of an ``Ok`` or raise the matching ``HTTPException``.

    Messages of known kinds are surfaced verbatim; ``INTERNAL`` messages are
    replaced with a generic one so internals never leak to the caller.
    """
    if isinstance(result, Ok):
        return result.value
    detail = GENERIC_ERROR_MESSAGE if result.kind is ErrorKind.INTERNAL else result.message
    raise HTTPException(status_code=result.status_code, detail=detail)


# ---------------------------------------------------------------------------
# Primitive-level exceptions (converted to Err by the workflows)
# ---------------------------------------------------------------------------

class PasswordHashError(ValueError):
    """Raised when a password cannot be hashed (e.g. it is empty)."""


class InvalidTokenError(Exception):
    """Raised for any token that is malformed, tampered with, expired or of the wrong kind."""


class DuplicateEmailError(Exception):
    """Raised when an insert collides with an existing account email."""


class MailDeliveryError(Exception):
    """Raised when an email could not be handed to the mail transport."""


class AssetHostError(Exception):
    """Raised when the image host rejects or fails an upload/delete."""
