"""
User profile workflow.

Every representation returned from here is built by ``_user_to_dict``,
which never includes the password hash.
"""
import logging

from sqlalchemy.ext.asyncio import AsyncSession

from readstack import security
from readstack.errors import Err, ErrorKind, Ok, PasswordHashError, Result
from readstack.models import User
from readstack.schemas import ChangePasswordRequest, ProfileUpdate
from readstack.stores import user_store

logger = logging.getLogger(__name__)

USER_NOT_FOUND = "User not found"


def _user_to_dict(user: User) -> dict:
    return {
        "id": user.id,
        "email": user.email,
        "first_name": user.first_name,
        "last_name": user.last_name,
        "phone": user.phone,
        "dob": user.dob.isoformat() if user.dob else None,
        "preferences": list(user.preferences or []),
        "is_verified": user.is_verified,
        "created_at": user.created_at.isoformat() if user.created_at else None,
        "updated_at": user.updated_at.isoformat() if user.updated_at else None,
    }


async def get_profile(db: AsyncSession, user_id: int) -> Result[dict]:
    user = await user_store.find_by_id(db, user_id)
    if user is None:
        return Err(ErrorKind.NOT_FOUND, USER_NOT_FOUND)
    return Ok(_user_to_dict(user))


async def update_profile(db: AsyncSession, user_id: int, data: ProfileUpdate) -> Result[dict]:
    """Apply the whitelisted profile fields that were actually sent."""
    user = await user_store.find_by_id(db, user_id)
    if user is None:
        return Err(ErrorKind.NOT_FOUND, USER_NOT_FOUND)

    fields = {k: v for k, v in data.model_dump(exclude_unset=True).items() if v is not None}
    if fields:
        user = await user_store.update_profile(db, user, fields)
    return Ok(_user_to_dict(user))


async def change_password(db: AsyncSession, user_id: int, data: ChangePasswordRequest) -> Result[str]:
    user = await user_store.find_by_id(db, user_id)
    if user is None:
        return Err(ErrorKind.NOT_FOUND, USER_NOT_FOUND)

    if not await security.verify_password(data.current_password, user.password):
        return Err(ErrorKind.VALIDATION, "Current password is incorrect")

    try:
        password_hash = await security.hash_password(data.new_password)
    except PasswordHashError as exc:
        return Err(ErrorKind.VALIDATION, str(exc))

    await user_store.update_password(db, user, password_hash)
    logger.info("User %s changed their password", user.id)
    return Ok("Password changed successfully")


async def update_preferences(db: AsyncSession, user_id: int, preferences: list[str]) -> Result[dict]:
    """Replace the preference list wholesale."""
    user = await user_store.find_by_id(db, user_id)
    if user is None:
        return Err(ErrorKind.NOT_FOUND, USER_NOT_FOUND)
    user = await user_store.replace_preferences(db, user, preferences)
    return Ok(_user_to_dict(user))
