from datetime import datetime

from pydantic import BaseModel, Field


class FileInfo(BaseModel):
    id: str
    filename: str
    content_type: str | None
    size: int
    owner_id: str
    is_public: bool
    description: str | None = None
    tags: list[str] = []
    category: str | None = None
    view_count: int = 0
    download_count: int = 0
    share_count: int = 0
    last_accessed_at: datetime | None = None
    created_at: datetime
    updated_at: datetime | None = None

    class Config:
        from_attributes = True

class TrashedFileInfo(FileInfo):
    deleted_at: datetime | None = None
    deleted_by: str | None = None

class FileListResponse(BaseModel):
    files: list[FileInfo]
    total: int
    page: int
    pages: int
    has_next: bool
    has_prev: bool

class TrashListResponse(BaseModel):
    files: list[TrashedFileInfo]

class FileUpdate(BaseModel):
    description: str | None = None
    tags: list[str] | str | None = None
    category: str | None = None
    is_public: bool | None = None

class FileAccessEventInfo(BaseModel):
    accessed_at: datetime
    access_type: str
    user_id: str | None = None
    ip_address: str | None = None
    user_agent: str | None = None
    device: str | None = None

    class Config:
        from_attributes = True

class FileHistoryResponse(BaseModel):
    file_id: str
    filename: str
    download_count: int
    last_accessed_at: datetime | None = None
    events: list[FileAccessEventInfo] = Field(default_factory=list)
