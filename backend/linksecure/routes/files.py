
from fastapi import APIRouter, Depends, Form, HTTPException, Query, Request, UploadFile, status

from linksecure.core.config import settings
from linksecure.core.security import get_current_user
from linksecure.dependencies import get_blob_proxy, get_file_service
from linksecure.models.user import User
from linksecure.schemas.file import (
    FileAccessEventInfo,
    FileHistoryResponse,
    FileInfo,
    FileListResponse,
    FileUpdate,
    TrashedFileInfo,
    TrashListResponse,
)
from linksecure.services.blob_proxy import DISPOSITION_ATTACHMENT, BlobProxy
from linksecure.services.files import FileService
from linksecure.utils.urls import client_ip

router = APIRouter(prefix="/files", tags=["Files"])


async def _read_limited(upload: UploadFile, limit: int) -> bytes:
    chunks = []
    total = 0
    while True:
        chunk = await upload.read(1024 * 1024)
        if not chunk:
            break
        total += len(chunk)
        if total > limit:
            raise HTTPException(status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE, detail="File too large")
        chunks.append(chunk)
    return b"".join(chunks)


@router.post("/upload", response_model=FileInfo, status_code=status.HTTP_201_CREATED)
async def upload_file(
    file: UploadFile,
    description: str | None = Form(None),
    tags: str | None = Form(None),
    category: str | None = Form(None),
    is_public: bool = Form(False),
    service: FileService = Depends(get_file_service),
    current_user: User = Depends(get_current_user),
):
    data = await _read_limited(file, settings.MAX_FILE_SIZE)
    f = await service.upload(
        current_user.id,
        file.filename,
        file.content_type,
        data,
        description=description,
        tags=tags,
        category=category,
        is_public=is_public,
    )
    return FileInfo.model_validate(f)


@router.get("/my-files", response_model=FileListResponse)
async def my_files(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    service: FileService = Depends(get_file_service),
    current_user: User = Depends(get_current_user),
):
    result = await service.list_mine(current_user.id, page, limit)
    result["files"] = [FileInfo.model_validate(f) for f in result["files"]]
    return FileListResponse(**result)


@router.get("/trash/list", response_model=TrashListResponse)
async def trash_list(
    service: FileService = Depends(get_file_service),
    current_user: User = Depends(get_current_user),
):
    files = await service.trash(current_user.id)
    return TrashListResponse(files=[TrashedFileInfo.model_validate(f) for f in files])


@router.get("/{file_id}", response_model=FileInfo)
async def get_file(
    file_id: str,
    request: Request,
    service: FileService = Depends(get_file_service),
    current_user: User = Depends(get_current_user),
):
    f = await service.view(file_id, current_user.id, client_ip(request), request.headers.get("user-agent"))
    return FileInfo.model_validate(f)


@router.get("/{file_id}/download")
async def download_file(
    file_id: str,
    request: Request,
    service: FileService = Depends(get_file_service),
    proxy: BlobProxy = Depends(get_blob_proxy),
    current_user: User = Depends(get_current_user),
):
    f, signed_url = await service.download(
        file_id, current_user.id, client_ip(request), request.headers.get("user-agent")
    )
    return await proxy.stream(
        signed_url,
        f.filename,
        f.content_type,
        DISPOSITION_ATTACHMENT,
        range_header=request.headers.get("range"),
    )


@router.put("/{file_id}", response_model=FileInfo)
async def update_file(
    file_id: str,
    payload: FileUpdate,
    service: FileService = Depends(get_file_service),
    current_user: User = Depends(get_current_user),
):
    changes = payload.model_dump(exclude_unset=True)
    f = await service.update(file_id, current_user.id, changes)
    return FileInfo.model_validate(f)


@router.delete("/{file_id}")
async def delete_file(
    file_id: str,
    service: FileService = Depends(get_file_service),
    current_user: User = Depends(get_current_user),
):
    f = await service.soft_delete(file_id, current_user.id)
    return {"message": "File moved to trash", "id": f.id, "deleted_at": f.deleted_at}


@router.post("/{file_id}/restore")
async def restore_file(
    file_id: str,
    service: FileService = Depends(get_file_service),
    current_user: User = Depends(get_current_user),
):
    f = await service.restore(file_id, current_user.id)
    return {"message": "File restored", "id": f.id}


@router.delete("/{file_id}/permanent")
async def purge_file(
    file_id: str,
    service: FileService = Depends(get_file_service),
    current_user: User = Depends(get_current_user),
):
    await service.purge(file_id, current_user.id)
    return {"message": "File permanently deleted", "id": file_id}


@router.get("/{file_id}/history", response_model=FileHistoryResponse)
async def file_history(
    file_id: str,
    limit: int = Query(100, ge=1, le=1000),
    service: FileService = Depends(get_file_service),
    current_user: User = Depends(get_current_user),
):
    f, events = await service.history(file_id, current_user.id, limit)
    return FileHistoryResponse(
        file_id=f.id,
        filename=f.filename,
        download_count=f.download_count,
        last_accessed_at=f.last_accessed_at,
        events=[FileAccessEventInfo.model_validate(e) for e in events],
    )
