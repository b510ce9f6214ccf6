import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from readstack.assets import CloudinaryAssetHost
from readstack.cache import CacheManager
from readstack.config import settings
from readstack.database import Database
from readstack.logging_config import configure_logging
from readstack.mailer import SMTPMailer
from readstack.middleware import RequestContextMiddleware, request_id_var
from readstack.routers import articles, auth, users

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging()
    app.state.db = Database(settings.DATABASE_URL, echo=settings.DEBUG)
    app.state.cache = CacheManager(settings.REDIS_URL)
    await app.state.cache.connect()
    app.state.mailer = SMTPMailer.from_settings(settings)
    app.state.asset_host = CloudinaryAssetHost.from_settings(settings)
    logger.info("ReadStack API started (env=%s)", settings.APP_ENV)
    try:
        yield
    finally:
        await app.state.asset_host.aclose()
        await app.state.cache.disconnect()
        await app.state.db.dispose()


app = FastAPI(
    title="ReadStack API",
    description="Blogging platform backend: accounts, articles and reader reactions",
    version="1.0.0",
    lifespan=lifespan,
)

# Middleware
app.add_middleware(RequestContextMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    # Refresh token travels in a cookie, so origins must be explicit
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    # Malformed input is a plain 400, same as workflow-level validation failures.
    return JSONResponse(
        status_code=400,
        content={"detail": "Validation error", "errors": jsonable_encoder(exc.errors())},
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(
        "Unhandled error on %s %s (rid=%s)",
        request.method,
        request.url.path,
        request_id_var.get(),
        exc_info=exc,
    )
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


# Routers
app.include_router(auth.router)
app.include_router(articles.router)
app.include_router(users.router)


@app.get("/health")
async def health(request: Request):
    cache = getattr(request.app.state, "cache", None)
    return {
        "status": "healthy",
        "version": "1.0.0",
        "cache": cache.stats if cache is not None else None,
    }
