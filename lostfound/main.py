"""Application factory and ASGI entry point."""
import logging
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from prometheus_fastapi_instrumentator import Instrumentator

from . import __version__
from .config import get_settings
from .database import Base, SessionLocal, engine
from .errors import register_exception_handlers
from .logging_middleware import add_audit_middleware, configure_logging
from .rate_limit import apply_rate_limiter
from .routers import admin, announcements, auth, claims, comments, items, posts, reports, residents, system, upload, users
from .services.users import ensure_sysadmin

logger = logging.getLogger(__name__)
settings = get_settings()


@asynccontextmanager
async def lifespan(_: FastAPI):
    if settings.run_db_migrations:
        Base.metadata.create_all(bind=engine)
    if settings.bootstrap_sysadmin:
        db = SessionLocal()
        try:
            ensure_sysadmin(db, settings)
        finally:
            db.close()
    logger.info("Lost & found service started")
    yield


def create_app() -> FastAPI:
    configure_logging(settings.log_level)
    fastapi_app = FastAPI(title="Community Lost & Found", version=__version__, lifespan=lifespan)
    fastapi_app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    apply_rate_limiter(fastapi_app)
    add_audit_middleware(fastapi_app, "lostfound")
    register_exception_handlers(fastapi_app)
    Instrumentator().instrument(fastapi_app).expose(fastapi_app, include_in_schema=False)

    for router in (
        auth.router,
        users.router,
        admin.router,
        residents.router,
        system.router,
        items.lost_items_router,
        items.found_items_router,
        claims.router,
        reports.router,
        comments.item_comments_router,
        comments.post_comments_router,
        posts.router,
        announcements.router,
        upload.router,
    ):
        fastapi_app.include_router(router)

    upload_root = Path(settings.upload_dir)
    upload_root.mkdir(parents=True, exist_ok=True)
    fastapi_app.mount(f"/{upload_root.name}", StaticFiles(directory=upload_root), name="uploads")

    @fastapi_app.get("/health", tags=["health"])
    def health() -> dict[str, str]:
        return {"status": "ok", "service": "lostfound"}

    return fastapi_app


app = create_app()
