from datetime import datetime

from pydantic import BaseModel, Field


class LinkMetadata(BaseModel):
    original_file_name: str | None = None
    file_size: int | None = Field(default=None, ge=0)
    mime_type: str | None = None

class ShortLinkCreate(BaseModel):
    owner_id: str = Field(min_length=1)
    blob_path: str = Field(min_length=1)
    expiry_minutes: int | None = None
    metadata: LinkMetadata | None = None
    password: str | None = None

class ShortLinkCreated(BaseModel):
    link: str
    short_code: str
    expires_at: datetime
    blob_path: str

class ShortLinkInfo(BaseModel):
    short_code: str
    blob_path: str
    owner_id: str
    created_at: datetime
    expires_at: datetime
    status: str
    is_expired: bool
    access_count: int
    last_accessed_at: datetime | None = None
    requires_password: bool
    metadata: LinkMetadata
    link_url: str | None = None

    @classmethod
    def from_mapping(cls, mapping, link_url: str | None = None) -> "ShortLinkInfo":
        return cls(
            short_code=mapping.short_code,
            blob_path=mapping.blob_path,
            owner_id=mapping.owner_id,
            created_at=mapping.created_at,
            expires_at=mapping.expires_at,
            status=mapping.status,
            is_expired=mapping.is_expired(),
            access_count=mapping.access_count,
            last_accessed_at=mapping.last_accessed_at,
            requires_password=bool(mapping.password_hash),
            metadata=LinkMetadata(**mapping.metadata_dict),
            link_url=link_url,
        )

class ShortLinkRevoked(BaseModel):
    message: str
    link: ShortLinkInfo

class ShortLinkList(BaseModel):
    count: int
    links: list[ShortLinkInfo]

class ShortLinkCheck(BaseModel):
    short_code: str
    requires_password: bool
    expires_at: datetime
    original_file_name: str | None = None
    file_size: int | None = None
    mime_type: str | None = None

class VerifyRequest(BaseModel):
    password: str | None = None

class VerifyResponse(BaseModel):
    downloadToken: str
    expires_in: int
