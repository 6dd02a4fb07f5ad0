from datetime import datetime

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from linksecure.models.access_grant import REQUEST_PENDING, AccessGrant, AccessGrantEvent, AccessRequest


async def grants_for_file(db: AsyncSession, file_id: str, active_only: bool = True) -> list[AccessGrant]:
    stmt = select(AccessGrant).where(AccessGrant.file_id == file_id)
    if active_only:
        stmt = stmt.where(AccessGrant.is_active == True)  # noqa: E712
    res = await db.execute(stmt.order_by(AccessGrant.granted_at).execution_options(populate_existing=True))
    return list(res.scalars().all())


async def get_grant(db: AsyncSession, file_id: str, user_id: str) -> AccessGrant | None:
    res = await db.execute(
        select(AccessGrant)
        .where(AccessGrant.file_id == file_id, AccessGrant.user_id == user_id)
        .execution_options(populate_existing=True)
    )
    return res.scalars().first()


async def upsert_grant(db: AsyncSession, file_id: str, user_id: str, role: str, granted_by: str) -> AccessGrant:
    """One row per (file, user): re-granting updates and reactivates in place."""
    grant = await get_grant(db, file_id, user_id)
    now = datetime.utcnow()
    if grant is None:
        grant = AccessGrant(
            file_id=file_id, user_id=user_id, role=role, granted_by=granted_by, granted_at=now, is_active=True
        )
        db.add(grant)
    else:
        grant.role = role
        grant.granted_by = granted_by
        grant.granted_at = now
        grant.is_active = True
    await db.flush()
    return grant


async def deactivate_grant(db: AsyncSession, file_id: str, user_id: str) -> bool:
    res = await db.execute(
        update(AccessGrant)
        .where(AccessGrant.file_id == file_id, AccessGrant.user_id == user_id, AccessGrant.is_active == True)  # noqa: E712
        .values(is_active=False)
        .execution_options(synchronize_session=False)
    )
    return res.rowcount == 1


def add_grant_event(
    db: AsyncSession, grant_id: str, access_type: str, ip_address: str | None, user_agent: str | None, now: datetime
) -> AccessGrantEvent:
    event = AccessGrantEvent(
        grant_id=grant_id, accessed_at=now, access_type=access_type, ip_address=ip_address, user_agent=user_agent
    )
    db.add(event)
    return event


async def touch_grant(db: AsyncSession, grant_id: str, now: datetime) -> None:
    await db.execute(
        update(AccessGrant)
        .where(AccessGrant.id == grant_id)
        .values(last_accessed_at=now)
        .execution_options(synchronize_session=False)
    )


async def get_request(db: AsyncSession, request_id: str) -> AccessRequest | None:
    res = await db.execute(
        select(AccessRequest).where(AccessRequest.id == request_id).execution_options(populate_existing=True)
    )
    return res.scalars().first()


async def pending_request(db: AsyncSession, file_id: str, user_id: str) -> AccessRequest | None:
    res = await db.execute(
        select(AccessRequest).where(
            AccessRequest.file_id == file_id,
            AccessRequest.user_id == user_id,
            AccessRequest.status == REQUEST_PENDING,
        )
    )
    return res.scalars().first()


async def requests_by_user(db: AsyncSession, user_id: str) -> list[AccessRequest]:
    res = await db.execute(
        select(AccessRequest).where(AccessRequest.user_id == user_id).order_by(AccessRequest.created_at.desc())
    )
    return list(res.scalars().all())


async def requests_for_file(db: AsyncSession, file_id: str, status: str | None = REQUEST_PENDING) -> list[AccessRequest]:
    stmt = select(AccessRequest).where(AccessRequest.file_id == file_id)
    if status is not None:
        stmt = stmt.where(AccessRequest.status == status)
    res = await db.execute(stmt.order_by(AccessRequest.created_at.desc()))
    return list(res.scalars().all())
