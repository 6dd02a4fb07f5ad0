"""Secure-link lifecycle: create, validate, record access, revoke.

A secure link is a bearer token for one file with its own policy (password,
visitor email, preview, watermark, expiry, use limit). Validation never
consumes a use; only :meth:`LinkLifecycleService.record_access` does, and only
for callers without standing access to the file.
"""
import logging
import math
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta

from pydantic import EmailStr, TypeAdapter, ValidationError
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from linksecure.core.blob_store import BlobStore
from linksecure.core.config import settings
from linksecure.core.errors import (
    AssociatedResourceMissing,
    Conflict,
    Forbidden,
    Gone,
    InvalidOrExpired,
    LinkSecureError,
    NotFound,
    Unauthorized,
    ValidationFailed,
)
from linksecure.models.file import ACCESS_DOWNLOAD, ACCESS_SHARE, ACCESS_VIEW, File
from linksecure.models.secure_link import SecureLink, SecureLinkAccessEvent
from linksecure.monitoring.setup import KIND_SECURE, report_link_access, report_link_created, report_password_failure
from linksecure.services.authorization import (
    REASON_DELETED,
    AccessDecision,
    LinkCapability,
    Operation,
    Via,
    decide,
)
from linksecure.services.passwords import hash_password, verify_password
from linksecure.stores import files as files_store
from linksecure.stores import grants as grants_store
from linksecure.stores import secure_links as links_store
from linksecure.utils.urls import join_url

logger = logging.getLogger(__name__)

_email_adapter = TypeAdapter(EmailStr)

_OPERATION_FOR_ACCESS = {ACCESS_VIEW: Operation.VIEW, ACCESS_DOWNLOAD: Operation.DOWNLOAD}


def new_link_token() -> str:
    # 32 random bytes, well past the 128-bit floor
    return secrets.token_urlsafe(32)


def clamp_expiry_hours(hours: int | None) -> int:
    if hours is None:
        hours = settings.SECURE_LINK_DEFAULT_EXPIRY_HOURS
    return max(settings.SECURE_LINK_MIN_EXPIRY_HOURS, min(settings.SECURE_LINK_MAX_EXPIRY_HOURS, int(hours)))


def mediated_path(token: str) -> str:
    return f"/secure/{token}"


@dataclass
class LinkPolicy:
    password: str | None = None
    require_email: bool = False
    allow_preview: bool = True
    watermark_enabled: bool = False
    expires_in_hours: int | None = None
    max_access_count: int | None = None


@dataclass
class CreatedLink:
    link: SecureLink
    secure_url: str
    mediated: bool


@dataclass
class ValidatedLink:
    link: SecureLink
    file: File


@dataclass
class GrantedAccess:
    link: SecureLink
    file: File
    decision: AccessDecision
    visitor_email: str | None = None


class LinkLifecycleService:
    def __init__(self, db: AsyncSession, blob_store: BlobStore):
        self.db = db
        self.blob_store = blob_store

    async def create(self, file_id: str, creator_id: str, policy: LinkPolicy, base_url: str) -> CreatedLink:
        file = await files_store.get_file(self.db, file_id)
        if file is None:
            raise NotFound("File not found")
        decision = decide(file, creator_id)
        if decision.reason == REASON_DELETED:
            raise Gone("File is in trash")
        # issuing a link is a temporary public disclosure, only the owner may do it
        if decision.via is not Via.OWNER:
            raise Forbidden("Only the file owner can create secure links")
        if file.is_public:
            raise Conflict("File is already public and does not need a secure link")

        if policy.max_access_count is not None and policy.max_access_count < 1:
            raise ValidationFailed("max_access_count must be a positive integer")

        hours = clamp_expiry_hours(policy.expires_in_hours)
        storage_path = file.storage_path
        signed_url = await self.blob_store.signed_url(storage_path, timedelta(hours=hours))
        password_hash = hash_password(policy.password) if policy.password else None

        link = None
        for attempt in (1, 2):
            now = datetime.utcnow()
            link = SecureLink(
                token=new_link_token(),
                file_id=file_id,
                created_by=creator_id,
                created_at=now,
                expires_at=now + timedelta(hours=hours),
                is_active=True,
                access_count=0,
                max_access_count=policy.max_access_count,
                password_hash=password_hash,
                require_email=bool(policy.require_email),
                allow_preview=bool(policy.allow_preview),
                watermark_enabled=bool(policy.watermark_enabled),
            )
            self.db.add(link)
            await files_store.record_file_access(self.db, file_id, ACCESS_SHARE, creator_id)
            try:
                await self.db.commit()
                break
            except IntegrityError:
                await self.db.rollback()
                if attempt == 2:
                    raise
                logger.warning("Secure link token collision for file %s, regenerating", file_id)

        report_link_created(KIND_SECURE)
        mediated = link.requires_mediation
        secure_url = join_url(base_url, mediated_path(link.token)) if mediated else signed_url
        logger.info(
            "Secure link %s created for file %s (expires in %sh, mediated=%s)", link.id, file_id, hours, mediated
        )
        return CreatedLink(link=link, secure_url=secure_url, mediated=mediated)

    async def validate(self, token: str) -> ValidatedLink:
        link = await links_store.get_by_token(self.db, token)
        if link is None:
            raise NotFound("Invalid or expired link")

        now = datetime.utcnow()
        if not link.is_usable(now):
            if link.is_active and await links_store.deactivate(self.db, link.id):
                await self.db.commit()
                logger.info("Secure link %s deactivated on access (expired or exhausted)", link.id)
            raise InvalidOrExpired("This link has expired or reached its access limit")

        file = await files_store.get_file(self.db, link.file_id)
        if file is None:
            raise AssociatedResourceMissing("The file behind this link no longer exists")
        if file.is_deleted:
            raise Gone("File is in trash")
        return ValidatedLink(link=link, file=file)

    async def record_access(
        self,
        token: str,
        ip_address: str | None,
        user_agent: str | None,
        access_type: str,
        visitor_email: str | None = None,
    ) -> None:
        """Consume one use of the link and append to its log.

        The conditional increment is the quota check: when two requests race
        for the last use, exactly one of them gets it.
        """
        now = datetime.utcnow()
        link = await links_store.get_by_token(self.db, token)
        if link is None or not await links_store.increment_access(self.db, token, now):
            await self.db.rollback()
            raise InvalidOrExpired("This link has expired or reached its access limit")
        links_store.add_access_event(self.db, link.id, access_type, ip_address, user_agent, visitor_email, now)
        await self.db.commit()

    async def record_direct_access(
        self,
        file: File,
        decision: AccessDecision,
        actor_id: str,
        ip_address: str | None,
        user_agent: str | None,
        access_type: str,
    ) -> None:
        await files_store.record_file_access(self.db, file.id, access_type, actor_id, ip_address, user_agent)
        if decision.grant is not None:
            now = datetime.utcnow()
            grants_store.add_grant_event(self.db, decision.grant.id, access_type, ip_address, user_agent, now)
            await grants_store.touch_grant(self.db, decision.grant.id, now)
        await self.db.commit()

    def check_policy(
        self, link: SecureLink, access_type: str, password: str | None, visitor_email: str | None
    ) -> str | None:
        """Run the link's own gates; returns the normalised visitor email, if any."""
        if link.password_hash:
            if not verify_password(password or "", link.password_hash):
                if password:
                    report_password_failure(KIND_SECURE)
                    logger.info("Wrong password for secure link %s", link.id)
                raise Unauthorized("Valid password is required", requiresPassword=True)

        email = None
        if link.require_email:
            if not visitor_email:
                raise ValidationFailed("Visitor email is required", requiresEmail=True)
            try:
                email = str(_email_adapter.validate_python(visitor_email.strip()))
            except ValidationError:
                raise ValidationFailed("Please provide a valid email address", requiresEmail=True)

        if access_type == ACCESS_VIEW and not link.allow_preview:
            raise Forbidden("Preview is disabled for this link")
        return email

    async def open(
        self,
        token: str,
        actor_id: str | None,
        access_type: str,
        password: str | None = None,
        visitor_email: str | None = None,
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> GrantedAccess:
        """Everything that must happen before bytes of a secure link go out.

        Validation, policy gates, the access decision and exactly one history
        record, in that order. Owners and grantees are logged on the file and
        leave the link's quota alone; everybody else consumes a use.
        """
        try:
            validated = await self.validate(token)
            link, file = validated.link, validated.file
            email = self.check_policy(link, access_type, password, visitor_email)

            grants = await grants_store.grants_for_file(self.db, file.id) if actor_id else []
            decision = decide(file, actor_id, grants, LinkCapability(file_id=file.id))
            decision.require(_OPERATION_FOR_ACCESS[access_type])

            if decision.direct:
                await self.record_direct_access(file, decision, actor_id, ip_address, user_agent, access_type)
                outcome = "direct"
            else:
                await self.record_access(token, ip_address, user_agent, access_type, email)
                outcome = "served"
        except LinkSecureError as e:
            report_link_access(KIND_SECURE, type(e).__name__)
            raise
        report_link_access(KIND_SECURE, outcome)
        return GrantedAccess(link=link, file=file, decision=decision, visitor_email=email)

    async def content_url(self, file: File) -> str:
        """Fresh short-lived URL for proxying one response; never shown to the client."""
        return await self.blob_store.signed_url(
            file.storage_path, timedelta(seconds=settings.REDIRECT_URL_TTL_SECONDS)
        )

    async def revoke(self, link_id: str, requester_id: str) -> SecureLink:
        link = await links_store.get_by_id(self.db, link_id)
        if link is None:
            raise NotFound("Secure link not found")
        if link.created_by != requester_id:
            raise Forbidden("Only the link creator can revoke it")
        if await links_store.deactivate(self.db, link.id):
            await self.db.commit()
            logger.info("Secure link %s revoked by %s", link.id, requester_id)
        return await links_store.get_by_id(self.db, link_id)

    async def list_links(self, creator_id: str, page: int = 1, limit: int = 10) -> dict:
        links, total = await links_store.list_for_creator(self.db, creator_id, page, limit)
        return {
            "links": links,
            "total": total,
            "page": page,
            "pages": math.ceil(total / limit) if limit else 0,
        }

    async def details(self, link_id: str, requester_id: str) -> tuple[SecureLink, list[SecureLinkAccessEvent]]:
        link = await links_store.get_by_id(self.db, link_id)
        if link is None:
            raise NotFound("Secure link not found")
        if link.created_by != requester_id:
            raise Forbidden("You do not have access to this secure link")
        events = await links_store.list_access_events(self.db, link.id)
        return link, events
