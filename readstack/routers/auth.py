from fastapi import APIRouter, Cookie, Depends, Query, Response
from sqlalchemy.ext.asyncio import AsyncSession

from readstack.config import settings
from readstack.database import get_db
from readstack.errors import unwrap
from readstack.mailer import Mailer, get_mailer
from readstack.schemas import (
    ForgotPasswordRequest,
    MessageResponse,
    ResetPasswordRequest,
    SessionResponse,
    SignInRequest,
    SignUpRequest,
    SignUpResponse,
)
from readstack.services import auth_service

router = APIRouter(prefix="/auth", tags=["auth"])


def _set_refresh_cookie(response: Response, token: str) -> None:
    response.set_cookie(
        settings.REFRESH_COOKIE_NAME,
        token,
        max_age=settings.REFRESH_TOKEN_EXPIRE_DAYS * 24 * 60 * 60,
        httponly=True,
        secure=settings.is_production,
        samesite="strict" if settings.is_production else "lax",
        path="/",
    )


@router.post("/signUp", status_code=201, response_model=SignUpResponse)
async def sign_up(
    data: SignUpRequest,
    db: AsyncSession = Depends(get_db),
    mailer: Mailer = Depends(get_mailer),
):
    result = unwrap(await auth_service.sign_up(db, mailer, data))
    return SignUpResponse(
        email=result["email"],
        message="Success! A verification link was sent to your inbox.",
    )


@router.patch("/verify-email", response_model=SessionResponse)
async def verify_email(
    response: Response,
    email: str = Query(..., min_length=1),
    token: str = Query(..., min_length=1),
    db: AsyncSession = Depends(get_db),
):
    session = unwrap(await auth_service.verify_email(db, email, token))
    _set_refresh_cookie(response, session.refresh_token)
    return SessionResponse(
        email=session.email,
        access_token=session.access_token,
        refresh_token=session.refresh_token,
        message="Email verified successfully",
    )


@router.post("/signIn", response_model=SessionResponse)
async def sign_in(
    data: SignInRequest,
    response: Response,
    db: AsyncSession = Depends(get_db),
):
    session = unwrap(await auth_service.sign_in(db, data))
    _set_refresh_cookie(response, session.refresh_token)
    return SessionResponse(
        email=session.email,
        access_token=session.access_token,
        refresh_token=session.refresh_token,
        message="Sign in successfully completed",
    )


@router.post("/forgot-password", response_model=MessageResponse)
async def forgot_password(
    data: ForgotPasswordRequest,
    db: AsyncSession = Depends(get_db),
    mailer: Mailer = Depends(get_mailer),
):
    message = unwrap(await auth_service.request_password_reset(db, mailer, data.email))
    return MessageResponse(message=message)


@router.post("/reset-password", response_model=MessageResponse)
async def reset_password(data: ResetPasswordRequest, db: AsyncSession = Depends(get_db)):
    message = unwrap(await auth_service.reset_password(db, data))
    return MessageResponse(message=message)


@router.post("/logout", response_model=MessageResponse)
async def logout(
    response: Response,
    refresh_token: str | None = Cookie(None, alias=settings.REFRESH_COOKIE_NAME),
):
    message = unwrap(auth_service.logout(refresh_token))
    response.delete_cookie(
        settings.REFRESH_COOKIE_NAME,
        path="/",
        httponly=True,
        secure=settings.is_production,
        samesite="strict" if settings.is_production else "lax",
    )
    return MessageResponse(message=message)
