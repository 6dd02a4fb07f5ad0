from datetime import datetime

from sqlalchemy import and_, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from linksecure.models.secure_link import SecureLink, SecureLinkAccessEvent


def _usable_clause(now: datetime):
    return and_(
        SecureLink.is_active == True,  # noqa: E712
        SecureLink.expires_at >= now,
        or_(SecureLink.max_access_count == None, SecureLink.access_count < SecureLink.max_access_count),  # noqa: E711
    )


async def get_by_token(db: AsyncSession, token: str) -> SecureLink | None:
    res = await db.execute(
        select(SecureLink).where(SecureLink.token == token).execution_options(populate_existing=True)
    )
    return res.scalars().first()


async def get_by_id(db: AsyncSession, link_id: str) -> SecureLink | None:
    res = await db.execute(
        select(SecureLink).where(SecureLink.id == link_id).execution_options(populate_existing=True)
    )
    return res.scalars().first()


async def increment_access(db: AsyncSession, token: str, now: datetime) -> bool:
    """Consume one use; the WHERE clause is the quota check, so racing requests cannot overshoot."""
    res = await db.execute(
        update(SecureLink)
        .where(SecureLink.token == token, _usable_clause(now))
        .values(access_count=SecureLink.access_count + 1, last_accessed_at=now)
        .execution_options(synchronize_session=False)
    )
    return res.rowcount == 1


def add_access_event(
    db: AsyncSession,
    link_id: str,
    access_type: str,
    ip_address: str | None,
    user_agent: str | None,
    visitor_email: str | None = None,
    now: datetime | None = None,
) -> SecureLinkAccessEvent:
    event = SecureLinkAccessEvent(
        link_id=link_id,
        accessed_at=now or datetime.utcnow(),
        access_type=access_type,
        ip_address=ip_address,
        user_agent=user_agent,
        visitor_email=visitor_email,
    )
    db.add(event)
    return event


async def deactivate(db: AsyncSession, link_id: str) -> bool:
    res = await db.execute(
        update(SecureLink)
        .where(SecureLink.id == link_id, SecureLink.is_active == True)  # noqa: E712
        .values(is_active=False)
        .execution_options(synchronize_session=False)
    )
    return res.rowcount == 1


async def deactivate_unusable(db: AsyncSession, now: datetime) -> int:
    res = await db.execute(
        update(SecureLink)
        .where(SecureLink.is_active == True, ~_usable_clause(now))  # noqa: E712
        .values(is_active=False)
        .execution_options(synchronize_session=False)
    )
    return res.rowcount or 0


async def list_for_creator(
    db: AsyncSession, creator_id: str, page: int = 1, limit: int = 10
) -> tuple[list[SecureLink], int]:
    total = (
        await db.execute(select(func.count()).select_from(SecureLink).where(SecureLink.created_by == creator_id))
    ).scalar_one()
    res = await db.execute(
        select(SecureLink)
        .where(SecureLink.created_by == creator_id)
        .order_by(SecureLink.created_at.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    )
    return list(res.scalars().all()), total


async def list_access_events(db: AsyncSession, link_id: str, limit: int = 100) -> list[SecureLinkAccessEvent]:
    res = await db.execute(
        select(SecureLinkAccessEvent)
        .where(SecureLinkAccessEvent.link_id == link_id)
        .order_by(SecureLinkAccessEvent.accessed_at.desc(), SecureLinkAccessEvent.id.desc())
        .limit(limit)
    )
    return list(res.scalars().all())
