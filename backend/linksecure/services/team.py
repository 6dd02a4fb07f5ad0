"""Per-user grants on a file and the request/approve flow that leads to them.

Managing grants needs the admin role on the file (owner or admin grantee).
The owner is never granted explicitly and cannot request access to their
own file.
"""
import logging
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from linksecure.core.errors import AssociatedResourceMissing, Conflict, NotFound, ValidationFailed
from linksecure.models.access_grant import REQUEST_APPROVED, REQUEST_DENIED, REQUEST_PENDING, AccessGrant, AccessRequest
from linksecure.models.file import ACCESS_SHARE, ACCESS_VIEW, File
from linksecure.models.user import User
from linksecure.services.authorization import ROLES, AccessDecision, Operation, decide
from linksecure.stores import files as files_store
from linksecure.stores import grants as grants_store

logger = logging.getLogger(__name__)

ACTION_APPROVE = "approve"
ACTION_DENY = "deny"


def _check_role(role: str | None) -> str:
    if role not in ROLES:
        raise ValidationFailed("Access level must be view, edit, or admin")
    return role


class TeamService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def _file(self, file_id: str) -> File:
        file = await files_store.get_file(self.db, file_id)
        if file is None:
            raise NotFound("The requested file does not exist")
        return file

    async def _decide(self, file: File, actor_id: str) -> AccessDecision:
        grants = await grants_store.grants_for_file(self.db, file.id)
        return decide(file, actor_id, grants)

    async def _managed_file(self, file_id: str, actor_id: str) -> File:
        file = await self._file(file_id)
        (await self._decide(file, actor_id)).require(Operation.SHARE)
        return file

    async def _user(self, user_id: str | None = None, email: str | None = None) -> User:
        if user_id:
            stmt = select(User).where(User.id == user_id)
        elif email:
            stmt = select(User).where(User.email == email.strip().lower())
        else:
            raise ValidationFailed("Either email or user_id is required")
        user = (await self.db.execute(stmt)).scalars().first()
        if user is None or not user.is_active:
            raise NotFound("No registered user found")
        return user

    async def _upsert(self, file: File, user_id: str, role: str, actor_id: str) -> AccessGrant:
        grant = await grants_store.upsert_grant(self.db, file.id, user_id, role, actor_id)
        await files_store.record_file_access(self.db, file.id, ACCESS_SHARE, actor_id)
        return grant

    async def grant(
        self,
        actor_id: str,
        file_id: str,
        role: str,
        email: str | None = None,
        user_id: str | None = None,
    ) -> tuple[AccessGrant, User]:
        role = _check_role(role)
        file = await self._managed_file(file_id, actor_id)
        target = await self._user(user_id, email)
        if target.id == file.owner_id:
            raise ValidationFailed("The file owner already has full access")
        if target.id == actor_id:
            raise ValidationFailed("You cannot grant access to yourself")

        grant = await self._upsert(file, target.id, role, actor_id)
        await self.db.commit()
        logger.info("Granted %s on file %s to %s", role, file.id, target.id)
        return grant, target

    async def update_role(self, actor_id: str, file_id: str, user_id: str, role: str) -> AccessGrant:
        role = _check_role(role)
        file = await self._managed_file(file_id, actor_id)
        grant = await grants_store.get_grant(self.db, file.id, user_id)
        if grant is None or not grant.is_active:
            raise NotFound("User does not have access to this file")
        grant.role = role
        grant.granted_by = actor_id
        grant.granted_at = datetime.utcnow()
        await self.db.commit()
        return grant

    async def remove(self, actor_id: str, file_id: str, user_id: str) -> None:
        file = await self._managed_file(file_id, actor_id)
        if await grants_store.get_grant(self.db, file.id, user_id) is None:
            raise NotFound("User does not have access to this file")
        if await grants_store.deactivate_grant(self.db, file.id, user_id):
            await self.db.commit()
            logger.info("Access to file %s removed for %s", file.id, user_id)

    async def members(self, actor_id: str, file_id: str) -> list[tuple[AccessGrant, User]]:
        file = await self._managed_file(file_id, actor_id)
        grants = await grants_store.grants_for_file(self.db, file.id)
        if not grants:
            return []
        res = await self.db.execute(select(User).where(User.id.in_([g.user_id for g in grants])))
        users = {u.id: u for u in res.scalars().all()}
        return [(g, users[g.user_id]) for g in grants if g.user_id in users]

    async def access(
        self, actor_id: str, file_id: str, ip_address: str | None, user_agent: str | None
    ) -> tuple[File, AccessDecision]:
        """Checked open of a file from the team view; recorded like any direct view."""
        file = await self._file(file_id)
        decision = (await self._decide(file, actor_id)).require(Operation.VIEW)
        now = datetime.utcnow()
        await files_store.record_file_access(self.db, file.id, ACCESS_VIEW, actor_id, ip_address, user_agent)
        if decision.grant is not None:
            grants_store.add_grant_event(self.db, decision.grant.id, ACCESS_VIEW, ip_address, user_agent, now)
            await grants_store.touch_grant(self.db, decision.grant.id, now)
        await self.db.commit()
        return file, decision

    async def request_access(
        self, actor_id: str, file_id: str, requested_role: str, message: str | None = None
    ) -> AccessRequest:
        requested_role = _check_role(requested_role)
        file = await self._file(file_id)
        if file.owner_id == actor_id:
            raise ValidationFailed("You cannot request access to your own file")
        grant = await grants_store.get_grant(self.db, file.id, actor_id)
        if grant is not None and grant.is_active:
            raise Conflict("You already have access to this file")
        if await grants_store.pending_request(self.db, file.id, actor_id) is not None:
            raise Conflict("You already have a pending access request for this file")

        request = AccessRequest(
            file_id=file.id,
            user_id=actor_id,
            requested_role=requested_role,
            message=message,
            status=REQUEST_PENDING,
            created_at=datetime.utcnow(),
        )
        self.db.add(request)
        await self.db.commit()
        return request

    async def my_requests(self, actor_id: str) -> list[AccessRequest]:
        return await grants_store.requests_by_user(self.db, actor_id)

    async def file_requests(self, actor_id: str, file_id: str) -> list[AccessRequest]:
        file = await self._managed_file(file_id, actor_id)
        return await grants_store.requests_for_file(self.db, file.id)

    async def manage_request(
        self, actor_id: str, request_id: str, action: str, role: str | None = None
    ) -> AccessRequest:
        if action not in (ACTION_APPROVE, ACTION_DENY):
            raise ValidationFailed("Action must be approve or deny")
        request = await grants_store.get_request(self.db, request_id)
        if request is None:
            raise NotFound("Access request not found")
        file = await files_store.get_file(self.db, request.file_id)
        if file is None:
            raise AssociatedResourceMissing("Associated file not found")
        (await self._decide(file, actor_id)).require(Operation.SHARE)
        if request.status != REQUEST_PENDING:
            raise Conflict(f"Access request is already {request.status}")

        if action == ACTION_APPROVE:
            await self._upsert(file, request.user_id, _check_role(role or request.requested_role), actor_id)
            request.status = REQUEST_APPROVED
        else:
            request.status = REQUEST_DENIED
        request.actioned_by = actor_id
        request.actioned_at = datetime.utcnow()
        await self.db.commit()
        logger.info("Access request %s %s by %s", request.id, request.status, actor_id)
        return request
