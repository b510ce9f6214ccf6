"""Fakes and builders shared by the test modules."""
import re
from datetime import date

from sqlalchemy.ext.asyncio import AsyncSession

from readstack import security
from readstack.assets import UploadedAsset
from readstack.errors import AssetHostError, MailDeliveryError
from readstack.models import User

SIGNUP_PAYLOAD = {
    "firstName": "Ada",
    "lastName": "Lovelace",
    "email": "ada@example.com",
    "phone": "+15551234567",
    "dob": "1990-12-10",
    "password": "abc123",
    "confirmPassword": "abc123",
    "preferences": ["Technology"],
}

RICH_TEXT = {
    "type": "doc",
    "content": [
        {"type": "paragraph", "content": [{"type": "text", "text": "Hello readers"}]},
    ],
}


class FakeMailer:
    """Records every message; raises MailDeliveryError when ``fail`` is set."""

    def __init__(self) -> None:
        self.sent: list[dict] = []
        self.fail = False

    async def send(self, to_email: str, subject: str, html_body: str, text_body: str) -> None:
        if self.fail:
            raise MailDeliveryError(f"Could not deliver email to {to_email}")
        self.sent.append({"to": to_email, "subject": subject, "html": html_body, "text": text_body})

    def last_token(self) -> str:
        match = re.search(r"token=([^&\s]+)", self.sent[-1]["text"])
        assert match is not None
        return match.group(1)


class FakeAssetHost:
    def __init__(self) -> None:
        self.uploaded: list[str] = []
        self.deleted: list[str] = []
        self.fail_delete = False

    async def upload(self, data: bytes, filename: str, content_type: str) -> UploadedAsset:
        public_id = f"readstack/articles/{len(self.uploaded) + 1}"
        self.uploaded.append(public_id)
        return UploadedAsset(url=f"https://img.example.com/{public_id}.png", public_id=public_id)

    async def delete(self, public_id: str) -> None:
        if self.fail_delete:
            raise AssetHostError(f"Could not delete asset {public_id}")
        self.deleted.append(public_id)


async def create_user(
    db: AsyncSession,
    email: str = "reader@example.com",
    password: str = "abc123",
    verified: bool = True,
) -> User:
    user = User(
        email=email,
        password=await security.hash_password(password),
        first_name="Test",
        last_name="Reader",
        phone="5551234567",
        dob=date(1990, 1, 1),
        preferences=[],
        is_verified=verified,
    )
    db.add(user)
    await db.flush()
    await db.refresh(user)
    return user


async def auth_headers(db: AsyncSession, email: str) -> tuple[int, dict]:
    """Create and commit a verified user; return its id and bearer headers."""
    user = await create_user(db, email=email)
    await db.commit()
    return user.id, {"Authorization": f"Bearer {security.create_access_token(user.id)}"}


def article_payload(title: str = "First Article", category: str = "Technology", **extra) -> dict:
    return {"title": title, "content": RICH_TEXT, "category": category, **extra}


class FakeRedis:
    """Just enough of redis.asyncio.Redis for CacheManager."""

    def __init__(self) -> None:
        self.store: dict[str, str] = {}

    async def get(self, key: str):
        return self.store.get(key)

    async def set(self, key: str, value: str, ex: int | None = None) -> None:
        self.store[key] = value

    async def delete(self, key: str) -> None:
        self.store.pop(key, None)

    async def aclose(self) -> None:
        self.store.clear()
