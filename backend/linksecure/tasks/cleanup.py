import asyncio
import logging
from datetime import datetime, timedelta

from sqlalchemy.ext.asyncio import async_sessionmaker

from linksecure.core.blob_store import BlobStore
from linksecure.core.config import settings
from linksecure.core.database import SessionLocal
from linksecure.core.errors import StorageError
from linksecure.monitoring.setup import report_cleanup
from linksecure.stores import files as files_store
from linksecure.stores import link_mappings as mappings_store
from linksecure.stores import secure_links as links_store

logger = logging.getLogger(__name__)


async def _retry_blob_delete(blob_store: BlobStore, path: str) -> bool:
    """Retry wrapper for blob deletion."""
    attempts = settings.CLEANUP_RETRY_ATTEMPTS
    for attempt in range(1, attempts + 1):
        try:
            await blob_store.delete(path)
            return True
        except StorageError as e:
            logger.warning("Blob delete failed (attempt %s/%s) path=%s err=%s", attempt, attempts, path, e)
            if attempt < attempts:
                await asyncio.sleep(settings.CLEANUP_RETRY_BACKOFF_SECS * attempt)
    return False


async def run_cleanup_once(blob_store: BlobStore, session_factory: async_sessionmaker = SessionLocal) -> dict:
    """One sweep: retire dead links, expire overdue short links, purge old trash."""
    started = datetime.utcnow()
    files_purged = 0
    failed = 0

    async with session_factory() as db:
        now = datetime.utcnow()
        links_deactivated = await links_store.deactivate_unusable(db, now)
        mappings_expired = await mappings_store.expire_overdue(db, now)
        await db.commit()

        cutoff = now - timedelta(days=settings.TRASH_RETENTION_DAYS)
        for f in await files_store.list_trashed_before(db, cutoff, settings.CLEANUP_MAX_RECORDS_PER_LOOP):
            if await _retry_blob_delete(blob_store, f.storage_path):
                await files_store.purge_file(db, f.id)
                await db.commit()
                files_purged += 1
            else:
                failed += 1
                logger.error("Failed to delete blob after retries: %s", f.storage_path)

    duration = (datetime.utcnow() - started).total_seconds()
    report_cleanup(files_purged, links_deactivated + mappings_expired, failed, duration)
    logger.info(
        "cleanup_summary files_purged=%s links_deactivated=%s mappings_expired=%s failed_deletes=%s "
        "duration=%.3fs",
        files_purged, links_deactivated, mappings_expired, failed, duration,
    )
    return {
        "files_purged": files_purged,
        "links_deactivated": links_deactivated,
        "mappings_expired": mappings_expired,
        "failed_deletes": failed,
    }


async def cleanup_loop(blob_store: BlobStore, session_factory: async_sessionmaker = SessionLocal):
    interval = settings.CLEANUP_INTERVAL_SECONDS
    logger.info(
        "Cleanup task started: interval=%s max_per_loop=%s", interval, settings.CLEANUP_MAX_RECORDS_PER_LOOP
    )
    while True:
        try:
            await run_cleanup_once(blob_store, session_factory)
            await asyncio.sleep(interval)
        except asyncio.CancelledError:
            logger.info("Cleanup task cancelled by shutdown")
            raise
        except Exception as e:
            logger.exception("Cleanup loop error: %s", e)
            await asyncio.sleep(min(60, interval))
