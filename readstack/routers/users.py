from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from readstack.database import get_db
from readstack.dependencies import get_current_user_id
from readstack.errors import unwrap
from readstack.schemas import (
    ChangePasswordRequest,
    MessageResponse,
    PreferencesUpdate,
    ProfileUpdate,
    UserResponse,
)
from readstack.services import user_service

router = APIRouter(prefix="/users", tags=["users"])


@router.get("/profile", response_model=UserResponse)
async def get_profile(
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    return unwrap(await user_service.get_profile(db, user_id))


@router.patch("/profile", response_model=UserResponse)
async def update_profile(
    data: ProfileUpdate,
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    return unwrap(await user_service.update_profile(db, user_id, data))


@router.patch("/password", response_model=MessageResponse)
async def change_password(
    data: ChangePasswordRequest,
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    message = unwrap(await user_service.change_password(db, user_id, data))
    return MessageResponse(message=message)


@router.patch("/preferences", response_model=UserResponse)
async def update_preferences(
    data: PreferencesUpdate,
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    return unwrap(await user_service.update_preferences(db, user_id, data.preferences))
