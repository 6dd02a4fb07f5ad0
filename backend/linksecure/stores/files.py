from datetime import datetime

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from linksecure.models.access_grant import AccessGrant, AccessGrantEvent, AccessRequest
from linksecure.models.file import ACCESS_DOWNLOAD, ACCESS_SHARE, ACCESS_VIEW, File, FileAccessEvent
from linksecure.models.secure_link import SecureLink, SecureLinkAccessEvent

_COUNTERS = {
    ACCESS_VIEW: File.view_count,
    ACCESS_DOWNLOAD: File.download_count,
    ACCESS_SHARE: File.share_count,
}


def device_from_user_agent(user_agent: str | None) -> str:
    ua = user_agent or ""
    if "Mobile" in ua:
        return "Mobile"
    if "Tablet" in ua or "iPad" in ua:
        return "Tablet"
    return "Desktop"


async def get_file(db: AsyncSession, file_id: str) -> File | None:
    res = await db.execute(
        select(File).where(File.id == file_id).execution_options(populate_existing=True)
    )
    return res.scalars().first()


async def get_file_by_storage_path(db: AsyncSession, storage_path: str) -> File | None:
    res = await db.execute(
        select(File).where(File.storage_path == storage_path).execution_options(populate_existing=True)
    )
    return res.scalars().first()


async def list_owned_files(db: AsyncSession, owner_id: str, deleted: bool = False) -> list[File]:
    order = File.deleted_at.desc() if deleted else File.created_at.desc()
    res = await db.execute(
        select(File).where(File.owner_id == owner_id, File.is_deleted == deleted).order_by(order)
    )
    return list(res.scalars().all())


async def record_file_access(
    db: AsyncSession,
    file_id: str,
    access_type: str,
    user_id: str | None = None,
    ip_address: str | None = None,
    user_agent: str | None = None,
) -> FileAccessEvent:
    now = datetime.utcnow()
    counter = _COUNTERS[access_type]
    await db.execute(
        update(File)
        .where(File.id == file_id)
        .values({counter: counter + 1, File.last_accessed_at: now})
        .execution_options(synchronize_session=False)
    )
    event = FileAccessEvent(
        file_id=file_id,
        accessed_at=now,
        access_type=access_type,
        user_id=user_id,
        ip_address=ip_address,
        user_agent=user_agent,
        device=device_from_user_agent(user_agent),
    )
    db.add(event)
    return event


async def list_file_history(db: AsyncSession, file_id: str, limit: int = 100) -> list[FileAccessEvent]:
    res = await db.execute(
        select(FileAccessEvent)
        .where(FileAccessEvent.file_id == file_id)
        .order_by(FileAccessEvent.accessed_at.desc(), FileAccessEvent.id.desc())
        .limit(limit)
    )
    return list(res.scalars().all())


async def list_trashed_before(db: AsyncSession, cutoff: datetime, limit: int) -> list[File]:
    res = await db.execute(
        select(File).where(File.is_deleted == True, File.deleted_at <= cutoff).limit(limit)  # noqa: E712
    )
    return list(res.scalars().all())


async def purge_file(db: AsyncSession, file_id: str) -> None:
    """Remove the record and everything hanging off it; the blob is the caller's job."""
    link_ids = select(SecureLink.id).where(SecureLink.file_id == file_id)
    grant_ids = select(AccessGrant.id).where(AccessGrant.file_id == file_id)
    statements = [
        delete(SecureLinkAccessEvent).where(SecureLinkAccessEvent.link_id.in_(link_ids)),
        delete(SecureLink).where(SecureLink.file_id == file_id),
        delete(AccessGrantEvent).where(AccessGrantEvent.grant_id.in_(grant_ids)),
        delete(AccessGrant).where(AccessGrant.file_id == file_id),
        delete(AccessRequest).where(AccessRequest.file_id == file_id),
        delete(FileAccessEvent).where(FileAccessEvent.file_id == file_id),
        delete(File).where(File.id == file_id),
    ]
    for stmt in statements:
        await db.execute(stmt.execution_options(synchronize_session=False))


async def list_accessible_files(
    db: AsyncSession, user_id: str, page: int = 1, limit: int = 10
) -> tuple[list[File], int]:
    """Owned files plus files shared with the user through an active grant."""
    shared_ids = select(AccessGrant.file_id).where(
        AccessGrant.user_id == user_id, AccessGrant.is_active == True  # noqa: E712
    )
    where = (File.is_deleted == False) & ((File.owner_id == user_id) | File.id.in_(shared_ids))  # noqa: E712
    total = (await db.execute(select(func.count()).select_from(File).where(where))).scalar_one()
    res = await db.execute(
        select(File).where(where).order_by(File.created_at.desc()).offset((page - 1) * limit).limit(limit)
    )
    return list(res.scalars().all()), total
