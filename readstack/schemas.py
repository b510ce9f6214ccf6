import re
from datetime import date
from typing import Any

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator
from pydantic.alias_generators import to_camel

from readstack.models import ARTICLE_CATEGORIES

_PHONE_RE = re.compile(r"^\+?[0-9]{7,15}$")
_PASSWORD_RE = re.compile(r"^(?=.*[A-Za-z])(?=.*\d)[A-Za-z\d@$!%*#?&]{6,}$")
_TAG_RE = re.compile(r"<[^>]*>")


class _Request(BaseModel):
    # The web client posts camelCase; snake_case is accepted as well.
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


def _check_password(value: str) -> str:
    if not _PASSWORD_RE.match(value):
        raise ValueError(
            "Password must be at least 6 characters long and contain at least one letter and one number"
        )
    return value


def _check_category(value: str) -> str:
    if value not in ARTICLE_CATEGORIES:
        raise ValueError(f"Invalid category; expected one of: {', '.join(ARTICLE_CATEGORIES)}")
    return value


def normalize_preferences(values: list[str]) -> list[str]:
    """Validate each tag against the category list and drop repeats, keeping first-seen order."""
    seen: list[str] = []
    for v in values:
        _check_category(v)
        if v not in seen:
            seen.append(v)
    return seen


def extract_text(content: Any) -> str:
    """
    Return the visible text of an article body.

    Accepts either an HTML string (tags are stripped) or a rich-text JSON
    document, whose ``text`` leaves are collected depth-first.
    """
    if isinstance(content, str):
        return _TAG_RE.sub("", content)
    if isinstance(content, dict):
        parts = [content["text"]] if isinstance(content.get("text"), str) else []
        # Only nested nodes carry text; sibling strings are node metadata ("type", marks, ...)
        parts.extend(extract_text(v) for v in content.values() if isinstance(v, (dict, list)))
        return " ".join(p for p in parts if p)
    if isinstance(content, list):
        return " ".join(p for p in (extract_text(item) for item in content) if p)
    return ""


def _check_content(value: Any) -> Any:
    if not extract_text(value).strip():
        raise ValueError("Content cannot be empty")
    return value


# --- Auth ---

class SignUpRequest(_Request):
    first_name: str = Field(min_length=1, max_length=100)
    last_name: str = Field(min_length=1, max_length=100)
    email: EmailStr
    phone: str
    dob: date
    password: str
    confirm_password: str = Field(min_length=1)
    preferences: list[str] = []

    @field_validator("phone")
    @classmethod
    def validate_phone(cls, v: str) -> str:
        if not _PHONE_RE.match(v):
            raise ValueError("Invalid phone number")
        return v

    @field_validator("password")
    @classmethod
    def validate_password(cls, v: str) -> str:
        return _check_password(v)

    @field_validator("preferences")
    @classmethod
    def validate_preferences(cls, v: list[str]) -> list[str]:
        return normalize_preferences(v)


class SignInRequest(_Request):
    email: EmailStr
    password: str = Field(min_length=1)


class ForgotPasswordRequest(_Request):
    email: EmailStr


class ResetPasswordRequest(_Request):
    email: EmailStr
    token: str = Field(min_length=1)
    new_password: str
    confirm_password: str = Field(min_length=1)

    @field_validator("new_password")
    @classmethod
    def validate_new_password(cls, v: str) -> str:
        return _check_password(v)


class SignUpResponse(BaseModel):
    email: str
    message: str


class SessionResponse(BaseModel):
    email: str
    access_token: str
    refresh_token: str
    message: str


class MessageResponse(BaseModel):
    message: str


# --- Users ---

class ProfileUpdate(_Request):
    first_name: str | None = Field(None, min_length=1, max_length=100)
    last_name: str | None = Field(None, min_length=1, max_length=100)
    phone: str | None = None
    dob: date | None = None

    @field_validator("phone")
    @classmethod
    def validate_phone(cls, v: str | None) -> str | None:
        if v is not None and not _PHONE_RE.match(v):
            raise ValueError("Invalid phone number")
        return v


class ChangePasswordRequest(_Request):
    current_password: str = Field(min_length=1)
    new_password: str

    @field_validator("new_password")
    @classmethod
    def validate_new_password(cls, v: str) -> str:
        return _check_password(v)


class PreferencesUpdate(_Request):
    preferences: list[str]

    @field_validator("preferences")
    @classmethod
    def validate_preferences(cls, v: list[str]) -> list[str]:
        return normalize_preferences(v)


class UserResponse(BaseModel):
    id: int
    email: str
    first_name: str
    last_name: str
    phone: str
    dob: date
    preferences: list[str]
    is_verified: bool
    model_config = ConfigDict(from_attributes=True)


# --- Articles ---

class ArticleCreate(_Request):
    title: str = Field(min_length=3, max_length=150)
    content: Any
    category: str
    featured_image: str | None = None
    featured_image_id: str | None = None

    @field_validator("category")
    @classmethod
    def validate_category(cls, v: str) -> str:
        return _check_category(v)

    @field_validator("content")
    @classmethod
    def validate_content(cls, v: Any) -> Any:
        return _check_content(v)


class ArticleUpdate(_Request):
    title: str | None = Field(None, min_length=3, max_length=150)
    content: Any = None
    category: str | None = None
    featured_image: str | None = None
    featured_image_id: str | None = None

    @field_validator("category")
    @classmethod
    def validate_category(cls, v: str | None) -> str | None:
        return v if v is None else _check_category(v)

    @field_validator("content")
    @classmethod
    def validate_content(cls, v: Any) -> Any:
        return v if v is None else _check_content(v)


class UploadedImageResponse(BaseModel):
    url: str
    public_id: str


class BlockResponse(BaseModel):
    article_id: int
    blocked: bool
    message: str


# --- Pagination ---

class PaginatedResponse(BaseModel):
    items: list
    total: int
    page: int
    limit: int
    pages: int
