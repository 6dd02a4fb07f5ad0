import logging
import math
import uuid
from datetime import datetime, timedelta

from sqlalchemy.ext.asyncio import AsyncSession

from linksecure.core.blob_store import BlobStore
from linksecure.core.config import settings
from linksecure.core.errors import Conflict, NotFound, StorageError
from linksecure.models.file import ACCESS_DOWNLOAD, ACCESS_VIEW, File, FileAccessEvent
from linksecure.services.authorization import AccessDecision, Operation, decide, decide_trash
from linksecure.stores import files as files_store
from linksecure.stores import grants as grants_store

logger = logging.getLogger(__name__)

_EDITABLE_FIELDS = ("description", "tags", "category")


def storage_path_for(owner_id: str, filename: str) -> str:
    return f"{owner_id}/{uuid.uuid4()}_{filename or 'file.bin'}"


def normalise_tags(tags) -> list[str]:
    if tags is None:
        return []
    if isinstance(tags, str):
        tags = tags.split(",")
    return [tag.strip() for tag in tags if tag and tag.strip()]


class FileService:
    def __init__(self, db: AsyncSession, blob_store: BlobStore):
        self.db = db
        self.blob_store = blob_store

    async def _load(self, file_id: str) -> File:
        file = await files_store.get_file(self.db, file_id)
        if file is None:
            raise NotFound("The requested file does not exist")
        return file

    async def authorize(self, file_id: str, actor_id: str, operation: Operation) -> tuple[File, AccessDecision]:
        file = await self._load(file_id)
        grants = await grants_store.grants_for_file(self.db, file.id)
        decision = decide(file, actor_id, grants).require(operation)
        return file, decision

    async def _record(
        self,
        file: File,
        decision: AccessDecision,
        actor_id: str,
        access_type: str,
        ip_address: str | None,
        user_agent: str | None,
    ) -> None:
        await files_store.record_file_access(self.db, file.id, access_type, actor_id, ip_address, user_agent)
        if decision.grant is not None:
            now = datetime.utcnow()
            grants_store.add_grant_event(self.db, decision.grant.id, access_type, ip_address, user_agent, now)
            await grants_store.touch_grant(self.db, decision.grant.id, now)
        await self.db.commit()

    async def upload(
        self,
        owner_id: str,
        filename: str,
        content_type: str | None,
        data: bytes,
        description: str | None = None,
        tags=None,
        category: str | None = None,
        is_public: bool = False,
    ) -> File:
        content_type = content_type or "application/octet-stream"
        path = await self.blob_store.put(storage_path_for(owner_id, filename), data, content_type)
        f = File(
            id=str(uuid.uuid4()),
            filename=filename or path.rsplit("/", 1)[-1],
            content_type=content_type,
            size=len(data),
            owner_id=owner_id,
            storage_path=path,
            is_public=is_public,
            description=description,
            tags=normalise_tags(tags),
            category=category,
            created_at=datetime.utcnow(),
        )
        self.db.add(f)
        try:
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            # do not leave an orphaned blob behind a failed insert
            await self.blob_store.delete(path)
            raise
        logger.info("File %s uploaded by %s (%s bytes)", f.id, owner_id, f.size)
        return f

    async def list_mine(self, user_id: str, page: int = 1, limit: int = 10) -> dict:
        files, total = await files_store.list_accessible_files(self.db, user_id, page, limit)
        pages = math.ceil(total / limit) if limit else 0
        return {
            "files": files,
            "total": total,
            "page": page,
            "pages": pages,
            "has_next": page < pages,
            "has_prev": page > 1,
        }

    async def view(self, file_id: str, actor_id: str, ip_address: str | None, user_agent: str | None) -> File:
        file, decision = await self.authorize(file_id, actor_id, Operation.VIEW)
        await self._record(file, decision, actor_id, ACCESS_VIEW, ip_address, user_agent)
        return await self._load(file_id)

    async def download(
        self, file_id: str, actor_id: str, ip_address: str | None, user_agent: str | None
    ) -> tuple[File, str]:
        file, decision = await self.authorize(file_id, actor_id, Operation.DOWNLOAD)
        if not await self.blob_store.exists(file.storage_path):
            logger.error("Blob missing for file %s", file.id)
            raise StorageError(f"Object missing for file {file.id}")
        signed_url = await self.blob_store.signed_url(
            file.storage_path, timedelta(seconds=settings.REDIRECT_URL_TTL_SECONDS)
        )
        await self._record(file, decision, actor_id, ACCESS_DOWNLOAD, ip_address, user_agent)
        return file, signed_url

    async def update(self, file_id: str, actor_id: str, changes: dict) -> File:
        operation = Operation.SHARE if "is_public" in changes else Operation.EDIT
        file, _ = await self.authorize(file_id, actor_id, operation)
        for field in _EDITABLE_FIELDS:
            if field in changes:
                value = changes[field]
                setattr(file, field, normalise_tags(value) if field == "tags" else value)
        if "is_public" in changes and changes["is_public"] is not None:
            file.is_public = bool(changes["is_public"])
        file.updated_at = datetime.utcnow()
        await self.db.commit()
        return file

    async def soft_delete(self, file_id: str, actor_id: str) -> File:
        file, _ = await self.authorize(file_id, actor_id, Operation.DELETE)
        file.is_deleted = True
        file.deleted_at = datetime.utcnow()
        file.deleted_by = actor_id
        await self.db.commit()
        logger.info("File %s moved to trash by %s", file.id, actor_id)
        return file

    async def trash(self, owner_id: str) -> list[File]:
        return await files_store.list_owned_files(self.db, owner_id, deleted=True)

    async def restore(self, file_id: str, actor_id: str) -> File:
        file = await self._load(file_id)
        decide_trash(file, actor_id).require(Operation.DELETE)
        if not file.is_deleted:
            raise Conflict("File is not in trash")
        file.is_deleted = False
        file.deleted_at = None
        file.deleted_by = None
        await self.db.commit()
        logger.info("File %s restored by %s", file.id, actor_id)
        return file

    async def purge(self, file_id: str, actor_id: str) -> None:
        """Permanent delete: blob first, then the record and everything attached to it."""
        file = await self._load(file_id)
        decide_trash(file, actor_id).require(Operation.DELETE)
        await self.blob_store.delete(file.storage_path)
        await files_store.purge_file(self.db, file.id)
        await self.db.commit()
        logger.info("File %s permanently deleted by %s", file_id, actor_id)

    async def history(self, file_id: str, actor_id: str, limit: int = 100) -> tuple[File, list[FileAccessEvent]]:
        file, _ = await self.authorize(file_id, actor_id, Operation.SHARE)
        return file, await files_store.list_file_history(self.db, file.id, limit)
