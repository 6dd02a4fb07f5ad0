"""Short-code links that point straight at a blob path.

Expiry is computed on read: a link past ``expires_at`` is flipped to
``expired`` the first time anybody touches it, so the status column and the
clock never disagree for longer than one request.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta

from sqlalchemy.ext.asyncio import AsyncSession

from linksecure.core.blob_store import BlobStore, clean_blob_path
from linksecure.core.config import settings
from linksecure.core.errors import (
    Forbidden,
    InvalidOrExpired,
    LinkSecureError,
    NotFound,
    Unauthorized,
    ValidationFailed,
)
from linksecure.core.security import create_download_token, download_token_matches
from linksecure.models.link_mapping import STATUS_ACTIVE, STATUS_REVOKED, LinkMapping
from linksecure.monitoring.setup import KIND_SHORT, report_link_access, report_link_created, report_password_failure
from linksecure.services.authorization import LinkCapability, Operation, decide
from linksecure.services.passwords import hash_password, verify_password
from linksecure.services.short_codes import generate_unique_short_code, is_valid_short_code
from linksecure.stores import files as files_store
from linksecure.stores import link_mappings as mappings_store
from linksecure.utils.urls import join_url

logger = logging.getLogger(__name__)


def clamp_expiry_minutes(minutes: int | None) -> int:
    if minutes is None:
        minutes = settings.SHORT_LINK_DEFAULT_EXPIRY_MINUTES
    clamped = max(settings.SHORT_LINK_MIN_EXPIRY_MINUTES, min(settings.SHORT_LINK_MAX_EXPIRY_MINUTES, int(minutes)))
    if clamped != minutes:
        logger.info("Short link expiry adjusted from %s to %s minutes", minutes, clamped)
    return clamped


def short_link_url(base_url: str, short_code: str) -> str:
    return join_url(base_url, f"/s/{short_code}")


@dataclass
class ContentGrant:
    mapping: LinkMapping
    signed_url: str


class ShortLinkResolver:
    def __init__(self, db: AsyncSession, blob_store: BlobStore):
        self.db = db
        self.blob_store = blob_store

    async def create(
        self,
        owner_id: str,
        blob_path: str,
        base_url: str,
        expiry_minutes: int | None = None,
        metadata: dict | None = None,
        password: str | None = None,
    ) -> tuple[LinkMapping, str]:
        blob_path = clean_blob_path(blob_path)
        if not await self.blob_store.exists(blob_path):
            raise NotFound("The specified file does not exist in storage")

        # grants are not consulted: only the owner of a file record may shorten its blob
        file = await files_store.get_file_by_storage_path(self.db, blob_path)
        if file is not None:
            decide(file, owner_id).require(Operation.SHARE)

        minutes = clamp_expiry_minutes(expiry_minutes)
        short_code = await generate_unique_short_code(
            lambda code: mappings_store.short_code_exists(self.db, code)
        )
        metadata = metadata or {}
        now = datetime.utcnow()
        mapping = LinkMapping(
            short_code=short_code,
            blob_path=blob_path,
            owner_id=owner_id,
            created_at=now,
            expires_at=now + timedelta(minutes=minutes),
            status=STATUS_ACTIVE,
            access_count=0,
            password_hash=hash_password(password) if password else None,
            original_file_name=metadata.get("original_file_name"),
            file_size=metadata.get("file_size"),
            mime_type=metadata.get("mime_type"),
        )
        self.db.add(mapping)
        await self.db.commit()

        report_link_created(KIND_SHORT)
        logger.info("Short link %s created by %s (expires in %s min)", short_code, owner_id, minutes)
        return mapping, short_link_url(base_url, short_code)

    async def resolve(self, short_code: str) -> LinkMapping:
        """Walk the state machine up to ``active``; raises for every other state."""
        if not is_valid_short_code(short_code):
            raise ValidationFailed("Invalid short code format")

        mapping = await mappings_store.get_by_short_code(self.db, short_code)
        if mapping is None:
            raise NotFound("Link not found")
        if mapping.status == STATUS_REVOKED:
            raise InvalidOrExpired("This link has been revoked")
        if mapping.status != STATUS_ACTIVE or mapping.is_expired():
            if await mappings_store.mark_expired(self.db, short_code):
                await self.db.commit()
                logger.info("Short link %s marked expired", short_code)
            raise InvalidOrExpired("This link has expired")

        file = await files_store.get_file_by_storage_path(self.db, mapping.blob_path)
        if file is not None:
            decide(file, None, capability=LinkCapability(blob_path=mapping.blob_path)).require(Operation.VIEW)
        return mapping

    async def check(self, short_code: str) -> dict:
        mapping = await self.resolve(short_code)
        return {
            "short_code": mapping.short_code,
            "requires_password": bool(mapping.password_hash),
            "expires_at": mapping.expires_at,
            **mapping.metadata_dict,
        }

    async def verify(self, short_code: str, password: str | None) -> str:
        mapping = await self.resolve(short_code)
        if not mapping.password_hash:
            raise ValidationFailed("This link is not password protected")
        if not verify_password(password or "", mapping.password_hash):
            report_password_failure(KIND_SHORT)
            logger.info("Wrong password for short link %s", short_code)
            raise Forbidden("Incorrect password")
        return create_download_token(short_code)

    async def grant_content(self, short_code: str, download_token: str | None = None) -> ContentGrant:
        """Authorise one content fetch and count it.

        Returns a signed URL that lives for ``REDIRECT_URL_TTL_SECONDS``; the
        caller either proxies it or redirects to it.
        """
        try:
            mapping = await self.resolve(short_code)
            if mapping.password_hash:
                if not download_token or not download_token_matches(download_token, short_code):
                    raise Unauthorized("Password required", requiresPassword=True)

            if not await mappings_store.increment_access(self.db, short_code, datetime.utcnow()):
                await self.db.rollback()
                raise InvalidOrExpired("This link has expired")
            await self.db.commit()

            signed_url = await self.blob_store.signed_url(
                mapping.blob_path, timedelta(seconds=settings.REDIRECT_URL_TTL_SECONDS)
            )
        except LinkSecureError as e:
            report_link_access(KIND_SHORT, type(e).__name__)
            raise
        report_link_access(KIND_SHORT, "served")
        return ContentGrant(mapping=mapping, signed_url=signed_url)

    async def _owned(self, short_code: str, requester_id: str, action: str) -> LinkMapping:
        if not is_valid_short_code(short_code):
            raise ValidationFailed("Invalid short code format")
        mapping = await mappings_store.get_by_short_code(self.db, short_code)
        if mapping is None:
            raise NotFound("Link not found")
        if mapping.owner_id != requester_id:
            raise Forbidden(f"Only the link owner can {action} it")
        return mapping

    async def revoke(self, short_code: str, requester_id: str) -> LinkMapping:
        await self._owned(short_code, requester_id, "revoke")
        if await mappings_store.revoke(self.db, short_code):
            await self.db.commit()
            logger.info("Short link %s revoked by %s", short_code, requester_id)
        return await mappings_store.get_by_short_code(self.db, short_code)

    async def info(self, short_code: str, requester_id: str) -> LinkMapping:
        return await self._owned(short_code, requester_id, "inspect")

    async def list_links(self, owner_id: str, include_expired: bool = False) -> list[LinkMapping]:
        return await mappings_store.list_for_owner(self.db, owner_id, include_expired)
