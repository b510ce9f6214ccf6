"""
Article persistence.

Vote and block membership are mutated with single-statement upserts and
deletes against the membership tables rather than read-modify-write on the
article row, so concurrent reactions from different users are all kept.
"""
from typing import Any

from sqlalchemy import delete, func, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import joinedload, selectinload

from readstack.models import Article, ArticleBlock, ArticleVote, VoteValue

# Columns an author may change after creation; author_id is not among them.
EDITABLE_FIELDS: frozenset[str] = frozenset(
    {"title", "content", "category", "featured_image", "featured_image_id"}
)


def _insert(db: AsyncSession, model):
    """Dialect-specific INSERT that supports ON CONFLICT."""
    if db.bind.dialect.name == "postgresql":
        return postgresql.insert(model)
    return sqlite.insert(model)


def _visible_to(viewer_id: int):
    blocked = (
        select(ArticleBlock.article_id)
        .where(ArticleBlock.article_id == Article.id, ArticleBlock.user_id == viewer_id)
        .exists()
    )
    return ~blocked


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------

async def find_by_id(db: AsyncSession, article_id: int) -> Article | None:
    """Load one article with author and votes, refreshing any stale identity-map copy."""
    q = (
        select(Article)
        .where(Article.id == article_id)
        .options(joinedload(Article.author), selectinload(Article.votes))
        .execution_options(populate_existing=True)
    )
    result = await db.execute(q)
    return result.unique().scalar_one_or_none()


async def exists(db: AsyncSession, article_id: int) -> bool:
    result = await db.execute(select(Article.id).where(Article.id == article_id))
    return result.scalar_one_or_none() is not None


async def find_available(
    db: AsyncSession,
    viewer_id: int,
    *,
    offset: int,
    limit: int,
    category: str | None = None,
) -> tuple[list[Article], int]:
    """
    Return one page of articles not hidden by *viewer_id*, newest first,
    together with the total count under the same predicate.
    """
    filters = [_visible_to(viewer_id)]
    if category is not None:
        filters.append(Article.category == category)

    count_q = select(func.count()).select_from(Article).where(*filters)
    total: int = (await db.execute(count_q)).scalar_one()

    q = (
        select(Article)
        .where(*filters)
        .options(joinedload(Article.author), selectinload(Article.votes))
        .order_by(Article.created_at.desc(), Article.id.desc())
        .offset(offset)
        .limit(limit)
    )
    result = await db.execute(q)
    return list(result.unique().scalars().all()), total


async def find_by_author(db: AsyncSession, author_id: int) -> list[Article]:
    q = (
        select(Article)
        .where(Article.author_id == author_id)
        .options(joinedload(Article.author), selectinload(Article.votes))
        .order_by(Article.created_at.desc(), Article.id.desc())
    )
    result = await db.execute(q)
    return list(result.unique().scalars().all())


async def is_blocked_by(db: AsyncSession, article_id: int, user_id: int) -> bool:
    q = select(ArticleBlock.article_id).where(
        ArticleBlock.article_id == article_id, ArticleBlock.user_id == user_id
    )
    return (await db.execute(q)).first() is not None


# ---------------------------------------------------------------------------
# Writes
# ---------------------------------------------------------------------------

async def create(db: AsyncSession, author_id: int, fields: dict[str, Any]) -> Article:
    article = Article(author_id=author_id, **fields)
    db.add(article)
    await db.flush()
    return await find_by_id(db, article.id)


async def update(db: AsyncSession, article: Article, fields: dict[str, Any]) -> Article:
    for name, value in fields.items():
        if name not in EDITABLE_FIELDS:
            raise ValueError(f"{name!r} is not an editable article field")
        setattr(article, name, value)
    await db.flush()
    return await find_by_id(db, article.id)


async def delete_article(db: AsyncSession, article: Article) -> None:
    await db.execute(delete(ArticleVote).where(ArticleVote.article_id == article.id))
    await db.execute(delete(ArticleBlock).where(ArticleBlock.article_id == article.id))
    await db.delete(article)
    await db.flush()


async def set_vote(db: AsyncSession, article_id: int, user_id: int, value: VoteValue) -> None:
    """
    Put *user_id* into the like or dislike set of *article_id*.

    A single upsert on the (article, user) key: adding to one set and
    removing from the other happen in the same statement.
    """
    stmt = _insert(db, ArticleVote).values(
        article_id=article_id, user_id=user_id, value=value.value
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=[ArticleVote.article_id, ArticleVote.user_id],
        set_={"value": value.value},
    )
    await db.execute(stmt)


async def toggle_block(db: AsyncSession, article_id: int, user_id: int) -> bool:
    """
    Flip *user_id*'s membership in the article's blocked-by set.

    Returns the new membership: True when the article is now hidden.
    """
    removed = await db.execute(
        delete(ArticleBlock).where(
            ArticleBlock.article_id == article_id, ArticleBlock.user_id == user_id
        )
    )
    if removed.rowcount:
        return False

    stmt = _insert(db, ArticleBlock).values(article_id=article_id, user_id=user_id)
    await db.execute(
        stmt.on_conflict_do_nothing(index_elements=[ArticleBlock.article_id, ArticleBlock.user_id])
    )
    return True
