from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from linksecure.core.blob_store import BlobStore
from linksecure.core.database import get_db
from linksecure.services.blob_proxy import BlobProxy
from linksecure.services.files import FileService
from linksecure.services.secure_links import LinkLifecycleService
from linksecure.services.short_links import ShortLinkResolver
from linksecure.services.team import TeamService


def get_blob_store(request: Request) -> BlobStore:
    return request.app.state.blob_store


def get_blob_proxy(request: Request) -> BlobProxy:
    return request.app.state.blob_proxy


def get_link_service(
    db: AsyncSession = Depends(get_db), blob_store: BlobStore = Depends(get_blob_store)
) -> LinkLifecycleService:
    return LinkLifecycleService(db, blob_store)


def get_short_link_resolver(
    db: AsyncSession = Depends(get_db), blob_store: BlobStore = Depends(get_blob_store)
) -> ShortLinkResolver:
    return ShortLinkResolver(db, blob_store)


def get_file_service(
    db: AsyncSession = Depends(get_db), blob_store: BlobStore = Depends(get_blob_store)
) -> FileService:
    return FileService(db, blob_store)


def get_team_service(db: AsyncSession = Depends(get_db)) -> TeamService:
    return TeamService(db)
