from datetime import date

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from readstack.errors import DuplicateEmailError
from readstack.models import User

# Only these columns may be changed through a profile update.
PROFILE_FIELDS: frozenset[str] = frozenset({"first_name", "last_name", "phone", "dob"})


async def find_by_email(db: AsyncSession, email: str) -> User | None:
    result = await db.execute(select(User).where(User.email == email))
    return result.scalar_one_or_none()


async def find_by_id(db: AsyncSession, user_id: int) -> User | None:
    return await db.get(User, user_id)


async def create(
    db: AsyncSession,
    *,
    email: str,
    password_hash: str,
    first_name: str,
    last_name: str,
    phone: str,
    dob: date,
    preferences: list[str],
) -> User:
    user = User(
        email=email,
        password=password_hash,
        first_name=first_name,
        last_name=last_name,
        phone=phone,
        dob=dob,
        preferences=preferences,
        is_verified=False,
    )
    db.add(user)
    try:
        await db.flush()
    except IntegrityError as exc:
        # Lost a race with a concurrent sign-up; the session now needs a rollback.
        raise DuplicateEmailError(email) from exc
    await db.refresh(user)
    return user


async def mark_verified(db: AsyncSession, user: User) -> User:
    """Flip the verified flag on.  No store function ever turns it off."""
    user.is_verified = True
    await db.flush()
    await db.refresh(user)
    return user


async def update_password(db: AsyncSession, user: User, password_hash: str) -> User:
    user.password = password_hash
    await db.flush()
    await db.refresh(user)
    return user


async def update_profile(db: AsyncSession, user: User, fields: dict) -> User:
    for name, value in fields.items():
        if name not in PROFILE_FIELDS:
            raise ValueError(f"{name!r} cannot be changed through a profile update")
        setattr(user, name, value)
    await db.flush()
    await db.refresh(user)
    return user


async def replace_preferences(db: AsyncSession, user: User, preferences: list[str]) -> User:
    user.preferences = list(preferences)
    await db.flush()
    await db.refresh(user)
    return user
