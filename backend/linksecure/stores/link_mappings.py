from datetime import datetime

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from linksecure.models.link_mapping import STATUS_ACTIVE, STATUS_EXPIRED, STATUS_REVOKED, LinkMapping


async def get_by_short_code(db: AsyncSession, short_code: str) -> LinkMapping | None:
    res = await db.execute(
        select(LinkMapping)
        .where(LinkMapping.short_code == short_code)
        .execution_options(populate_existing=True)
    )
    return res.scalars().first()


async def short_code_exists(db: AsyncSession, short_code: str) -> bool:
    res = await db.execute(select(LinkMapping.id).where(LinkMapping.short_code == short_code))
    return res.first() is not None


async def increment_access(db: AsyncSession, short_code: str, now: datetime) -> bool:
    res = await db.execute(
        update(LinkMapping)
        .where(
            LinkMapping.short_code == short_code,
            LinkMapping.status == STATUS_ACTIVE,
            LinkMapping.expires_at >= now,
        )
        .values(access_count=LinkMapping.access_count + 1, last_accessed_at=now)
        .execution_options(synchronize_session=False)
    )
    return res.rowcount == 1


async def mark_expired(db: AsyncSession, short_code: str) -> bool:
    res = await db.execute(
        update(LinkMapping)
        .where(LinkMapping.short_code == short_code, LinkMapping.status == STATUS_ACTIVE)
        .values(status=STATUS_EXPIRED)
        .execution_options(synchronize_session=False)
    )
    return res.rowcount == 1


async def revoke(db: AsyncSession, short_code: str) -> bool:
    res = await db.execute(
        update(LinkMapping)
        .where(LinkMapping.short_code == short_code, LinkMapping.status != STATUS_REVOKED)
        .values(status=STATUS_REVOKED)
        .execution_options(synchronize_session=False)
    )
    return res.rowcount == 1


async def expire_overdue(db: AsyncSession, now: datetime) -> int:
    res = await db.execute(
        update(LinkMapping)
        .where(LinkMapping.status == STATUS_ACTIVE, LinkMapping.expires_at < now)
        .values(status=STATUS_EXPIRED)
        .execution_options(synchronize_session=False)
    )
    return res.rowcount or 0


async def list_for_owner(db: AsyncSession, owner_id: str, include_expired: bool = False) -> list[LinkMapping]:
    stmt = select(LinkMapping).where(LinkMapping.owner_id == owner_id)
    if not include_expired:
        stmt = stmt.where(LinkMapping.status == STATUS_ACTIVE, LinkMapping.expires_at > datetime.utcnow())
    res = await db.execute(stmt.order_by(LinkMapping.created_at.desc()))
    return list(res.scalars().all())
