from fastapi import APIRouter, Depends, File, Query, UploadFile
from sqlalchemy.ext.asyncio import AsyncSession

from readstack.assets import AssetHost, get_asset_host
from readstack.cache import CacheManager, get_cache
from readstack.config import settings
from readstack.database import get_db
from readstack.dependencies import PaginationParams, get_current_user_id
from readstack.errors import unwrap
from readstack.models import ARTICLE_CATEGORIES
from readstack.schemas import (
    ArticleCreate,
    ArticleUpdate,
    BlockResponse,
    MessageResponse,
    PaginatedResponse,
    UploadedImageResponse,
)
from readstack.services import article_service

router = APIRouter(prefix="/articles", tags=["articles"])


@router.post("", status_code=201)
async def create_article(
    data: ArticleCreate,
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    return unwrap(await article_service.create_article(db, user_id, data))


@router.post("/upload-image", response_model=UploadedImageResponse)
async def upload_image(
    image: UploadFile = File(...),
    user_id: int = Depends(get_current_user_id),
    asset_host: AssetHost = Depends(get_asset_host),
):
    # Read one byte past the limit so oversized files are detected without buffering them whole.
    data = await image.read(settings.MAX_UPLOAD_BYTES + 1)
    return unwrap(
        await article_service.upload_image(
            asset_host, data, image.filename or "upload", image.content_type
        )
    )


@router.get("/feed", response_model=PaginatedResponse)
async def get_feed(
    pagination: PaginationParams = Depends(),
    category: str | None = Query(None, description="Only articles in this category."),
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    if category is not None and category not in ARTICLE_CATEGORIES:
        category = None
    return unwrap(
        await article_service.get_feed(db, user_id, pagination.page, pagination.limit, category)
    )


@router.get("/my-articles")
async def get_my_articles(
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    return unwrap(await article_service.get_my_articles(db, user_id))


@router.get("/{article_id}")
async def get_article(
    article_id: int,
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    cache: CacheManager = Depends(get_cache),
):
    return unwrap(await article_service.get_article(db, cache, article_id, user_id))


@router.patch("/{article_id}")
async def update_article(
    article_id: int,
    data: ArticleUpdate,
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    cache: CacheManager = Depends(get_cache),
    asset_host: AssetHost = Depends(get_asset_host),
):
    return unwrap(
        await article_service.update_article(db, cache, asset_host, article_id, user_id, data)
    )


@router.delete("/{article_id}", response_model=MessageResponse)
async def delete_article(
    article_id: int,
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    cache: CacheManager = Depends(get_cache),
    asset_host: AssetHost = Depends(get_asset_host),
):
    message = unwrap(
        await article_service.delete_article(db, cache, asset_host, article_id, user_id)
    )
    return MessageResponse(message=message)


@router.post("/{article_id}/like")
async def like_article(
    article_id: int,
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    cache: CacheManager = Depends(get_cache),
):
    return unwrap(await article_service.toggle_like(db, cache, article_id, user_id))


@router.post("/{article_id}/dislike")
async def dislike_article(
    article_id: int,
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    cache: CacheManager = Depends(get_cache),
):
    return unwrap(await article_service.toggle_dislike(db, cache, article_id, user_id))


@router.patch("/{article_id}/block", response_model=BlockResponse)
async def toggle_block(
    article_id: int,
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    return unwrap(await article_service.toggle_block(db, article_id, user_id))
