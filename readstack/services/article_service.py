"""
Article workflow: CRUD with ownership checks plus the reaction toggles.

Design notes
------------
- Only the author may update or delete an article; anyone signed in may
  read, react to, or hide it.
- Like and dislike are upserts, not flips: ``toggle_like`` always ends in
  the Liked state (calling it twice leaves the user in ``likes`` once),
  ``toggle_dislike`` always ends in Disliked.  A user is never in both sets.
- Block is a real flip of the caller's own hide flag.  An article hidden by
  a viewer is left out of that viewer's feed and answers 404 to them on a
  direct fetch or a like/dislike; nobody else is affected.
- Hosted images are cleaned up best-effort and only once the request
  transaction has committed (see ``readstack.database.after_commit``):
  failing to delete an old asset is logged and never fails the edit or
  delete that triggered it.
- Single-article reads use the Redis cache-aside layer; every write that
  changes the public representation invalidates the entry.
"""
import logging
import math
from functools import partial

from sqlalchemy.ext.asyncio import AsyncSession

from readstack.assets import AssetHost
from readstack.cache import CacheManager
from readstack.config import settings
from readstack.database import after_commit
from readstack.errors import AssetHostError, Err, ErrorKind, Ok, Result
from readstack.models import Article, VoteValue
from readstack.schemas import ArticleCreate, ArticleUpdate, PaginatedResponse
from readstack.stores import article_store

logger = logging.getLogger(__name__)

ARTICLE_NOT_FOUND = "Article not found"
NOT_AUTHOR = "Unauthorized"


# ---------------------------------------------------------------------------
# Serialisation helpers
# ---------------------------------------------------------------------------

def _serialize_author(author) -> dict | None:
    if author is None:
        return None
    return {
        "id": author.id,
        "first_name": author.first_name,
        "last_name": author.last_name,
        "email": author.email,
    }


def _article_to_dict(article: Article) -> dict:
    votes = sorted(article.votes, key=lambda v: v.user_id)
    return {
        "id": article.id,
        "title": article.title,
        "content": article.content,
        "category": article.category,
        "featured_image": article.featured_image,
        "featured_image_id": article.featured_image_id,
        "author_id": article.author_id,
        "author": _serialize_author(article.author),
        "likes": [v.user_id for v in votes if v.value == VoteValue.LIKE.value],
        "dislikes": [v.user_id for v in votes if v.value == VoteValue.DISLIKE.value],
        "created_at": article.created_at.isoformat() if article.created_at else None,
        "updated_at": article.updated_at.isoformat() if article.updated_at else None,
    }


async def _discard_asset(asset_host: AssetHost, public_id: str) -> None:
    try:
        await asset_host.delete(public_id)
    except AssetHostError as exc:
        logger.warning("Could not delete hosted asset %s: %s", public_id, exc)


# ---------------------------------------------------------------------------
# Create / upload
# ---------------------------------------------------------------------------

async def create_article(db: AsyncSession, author_id: int, data: ArticleCreate) -> Result[dict]:
    article = await article_store.create(db, author_id, data.model_dump())
    logger.info("User %s created article %s", author_id, article.id)
    return Ok(_article_to_dict(article))


async def upload_image(
    asset_host: AssetHost,
    data: bytes,
    filename: str,
    content_type: str | None,
) -> Result[dict]:
    if content_type not in settings.ALLOWED_IMAGE_TYPES:
        return Err(ErrorKind.VALIDATION, "Only JPG, PNG, WEBP images allowed")
    if not data:
        return Err(ErrorKind.VALIDATION, "No image uploaded")
    if len(data) > settings.MAX_UPLOAD_BYTES:
        return Err(ErrorKind.VALIDATION, "Image is too large")

    try:
        asset = await asset_host.upload(data, filename, content_type)
    except AssetHostError:
        logger.exception("Image upload failed")
        return Err(ErrorKind.INTERNAL, "Image upload failed")
    return Ok({"url": asset.url, "public_id": asset.public_id})


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------

async def get_feed(
    db: AsyncSession,
    viewer_id: int,
    page: int = 1,
    limit: int = 10,
    category: str | None = None,
) -> Result[PaginatedResponse]:
    """One page of the feed as seen by *viewer_id*, newest first."""
    articles, total = await article_store.find_available(
        db, viewer_id, offset=(page - 1) * limit, limit=limit, category=category
    )
    return Ok(
        PaginatedResponse(
            items=[_article_to_dict(a) for a in articles],
            total=total,
            page=page,
            limit=limit,
            pages=math.ceil(total / limit) if total > 0 else 0,
        )
    )


async def get_article(
    db: AsyncSession, cache: CacheManager, article_id: int, viewer_id: int
) -> Result[dict]:
    # The hide check runs before the cache so a cached entry is never served to a blocker.
    if await article_store.is_blocked_by(db, article_id, viewer_id):
        return Err(ErrorKind.NOT_FOUND, ARTICLE_NOT_FOUND)

    cache_key = cache.article_key(article_id)
    cached = await cache.get(cache_key)
    if cached:
        return Ok(cached)

    article = await article_store.find_by_id(db, article_id)
    if article is None:
        return Err(ErrorKind.NOT_FOUND, ARTICLE_NOT_FOUND)

    data = _article_to_dict(article)
    await cache.set(cache_key, data, ttl=settings.CACHE_TTL_DETAIL)
    return Ok(data)


async def get_my_articles(db: AsyncSession, user_id: int) -> Result[list[dict]]:
    articles = await article_store.find_by_author(db, user_id)
    return Ok([_article_to_dict(a) for a in articles])


# ---------------------------------------------------------------------------
# Author-only writes
# ---------------------------------------------------------------------------

async def update_article(
    db: AsyncSession,
    cache: CacheManager,
    asset_host: AssetHost,
    article_id: int,
    user_id: int,
    data: ArticleUpdate,
) -> Result[dict]:
    """
    Partially update an article owned by *user_id*.

    Only fields present in the payload change.  When a different
    ``featured_image_id`` replaces an existing one, the old asset is
    removed from the image host once the transaction commits.  The image
    URL and its asset id are cleared together.
    """
    article = await article_store.find_by_id(db, article_id)
    if article is None:
        return Err(ErrorKind.NOT_FOUND, ARTICLE_NOT_FOUND)
    if article.author_id != user_id:
        return Err(ErrorKind.UNAUTHORIZED, NOT_AUTHOR)

    fields = data.model_dump(exclude_unset=True)
    # title/content/category cannot be cleared, only replaced
    for required in ("title", "content", "category"):
        if required in fields and fields[required] is None:
            del fields[required]
    if "featured_image_id" in fields and fields["featured_image_id"] is None:
        fields["featured_image"] = None
    elif "featured_image" in fields and fields["featured_image"] is None:
        fields["featured_image_id"] = None

    old_asset_id = article.featured_image_id
    article = await article_store.update(db, article, fields)
    await cache.invalidate_article(article_id)

    if (
        "featured_image_id" in fields
        and old_asset_id
        and fields["featured_image_id"] != old_asset_id
    ):
        after_commit(db, partial(_discard_asset, asset_host, old_asset_id))

    return Ok(_article_to_dict(article))


async def delete_article(
    db: AsyncSession,
    cache: CacheManager,
    asset_host: AssetHost,
    article_id: int,
    user_id: int,
) -> Result[str]:
    article = await article_store.find_by_id(db, article_id)
    if article is None:
        return Err(ErrorKind.NOT_FOUND, ARTICLE_NOT_FOUND)
    if article.author_id != user_id:
        return Err(ErrorKind.UNAUTHORIZED, NOT_AUTHOR)

    asset_id = article.featured_image_id
    await article_store.delete_article(db, article)
    await cache.invalidate_article(article_id)
    if asset_id:
        after_commit(db, partial(_discard_asset, asset_host, asset_id))

    logger.info("User %s deleted article %s", user_id, article_id)
    return Ok("Article deleted successfully")


# ---------------------------------------------------------------------------
# Reactions
# ---------------------------------------------------------------------------

async def _vote(
    db: AsyncSession, cache: CacheManager, article_id: int, user_id: int, value: VoteValue
) -> Result[dict]:
    # A viewer who hid the article cannot reach it through a reaction either.
    if not await article_store.exists(db, article_id) or await article_store.is_blocked_by(
        db, article_id, user_id
    ):
        return Err(ErrorKind.NOT_FOUND, ARTICLE_NOT_FOUND)

    await article_store.set_vote(db, article_id, user_id, value)
    await cache.invalidate_article(article_id)

    article = await article_store.find_by_id(db, article_id)
    return Ok(_article_to_dict(article))


async def toggle_like(
    db: AsyncSession, cache: CacheManager, article_id: int, user_id: int
) -> Result[dict]:
    """Move *user_id* into ``likes`` (and out of ``dislikes``).  Idempotent."""
    return await _vote(db, cache, article_id, user_id, VoteValue.LIKE)


async def toggle_dislike(
    db: AsyncSession, cache: CacheManager, article_id: int, user_id: int
) -> Result[dict]:
    """Move *user_id* into ``dislikes`` (and out of ``likes``).  Idempotent."""
    return await _vote(db, cache, article_id, user_id, VoteValue.DISLIKE)


async def toggle_block(db: AsyncSession, article_id: int, user_id: int) -> Result[dict]:
    """Flip whether *user_id* hides *article_id*; reports the new state."""
    if not await article_store.exists(db, article_id):
        return Err(ErrorKind.NOT_FOUND, ARTICLE_NOT_FOUND)

    blocked = await article_store.toggle_block(db, article_id, user_id)
    return Ok({
        "article_id": article_id,
        "blocked": blocked,
        "message": "Article blocked" if blocked else "Article unblocked",
    })
