import asyncio
import logging
from contextlib import asynccontextmanager
from datetime import datetime

import httpx
import uvicorn
from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from linksecure.core.blob_store import BlobStore, MinioBlobStore
from linksecure.core.config import settings
from linksecure.core.database import DATABASE_URL, Base, engine, get_db
from linksecure.core.errors import install_error_handlers
from linksecure.dependencies import get_blob_store
from linksecure.monitoring.setup import setup_monitoring
from linksecure.routes import files, links, secure, secure_links, short_redirect, team, users
from linksecure.services.blob_proxy import BlobProxy
from linksecure.tasks.cleanup import cleanup_loop

logger = logging.getLogger("linksecure")

@asynccontextmanager
async def lifespan(app: FastAPI):
    try:
        async with engine.begin() as conn:
            if DATABASE_URL.startswith("sqlite"):
                await conn.execute(text("PRAGMA journal_mode=WAL;"))
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database initialized: %s tables", len(Base.metadata.tables))
    except Exception as e:
        logger.error(f"Database initialization failed: {e}")
        raise

    blob_store = MinioBlobStore.from_settings()
    try:
        blob_store.initialize_bucket()
        logger.info("MinIO initialized")
    except Exception as e:
        logger.error(f"MinIO initialization failed: {e}")
        raise

    app.state.blob_store = blob_store
    app.state.blob_proxy = BlobProxy(httpx.AsyncClient(timeout=httpx.Timeout(30.0, read=None)))

    cleanup_task = asyncio.create_task(cleanup_loop(blob_store))
    logger.info("Background cleanup task started")

    yield

    cleanup_task.cancel()
    try:
        await cleanup_task
    except asyncio.CancelledError:
        logger.info("Cleanup task cancelled")
    await app.state.blob_proxy.aclose()
    logger.info("Application shutdown complete")

app = FastAPI(
    title="LinkSecure",
    version="1.0.0",
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["Content-Disposition", "Content-Length", "Content-Range", "X-LinkSecure-Watermark"],
)

install_error_handlers(app)

# /files/secure-links must be matched before /files/{file_id}
_routers = [secure_links, files, links, secure, team, users]
for _router in _routers:
    app.include_router(_router)
    app.include_router(_router, prefix="/api", include_in_schema=False)
app.include_router(short_redirect)

setup_monitoring(app)

@app.get("/health")
async def health_check(db: AsyncSession = Depends(get_db), blob_store: BlobStore = Depends(get_blob_store)):
    try:
        await db.execute(text("SELECT 1"))
        db_status = "ok"
    except Exception as e:
        logger.warning("Health check: database unavailable: %s", e)
        db_status = "error"

    try:
        await blob_store.ping()
        storage_status = "ok"
    except Exception as e:
        logger.warning("Health check: storage unavailable: %s", e)
        storage_status = "error"

    return {
        "status": "running",
        "timestamp": datetime.utcnow().isoformat(),
        "database": db_status,
        "storage": storage_status
    }

if __name__ == "__main__":
    uvicorn.run(
        app,
        host="0.0.0.0",
        port=8000,
        log_level="info",
        timeout_keep_alive=60,
        limit_concurrency=100
    )
