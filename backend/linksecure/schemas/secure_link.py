from datetime import datetime

from pydantic import BaseModel, Field


class SecureLinkCreate(BaseModel):
    expires_in_hours: int | None = None
    max_access_count: int | None = Field(default=None, ge=1)
    password: str | None = None
    require_email: bool = False
    allow_preview: bool = True
    watermark_enabled: bool = False

class SecureLinkPolicies(BaseModel):
    password_protected: bool
    require_email: bool
    allow_preview: bool
    watermark_enabled: bool

class SecureLinkInfo(BaseModel):
    id: str
    file_id: str
    created_by: str
    created_at: datetime
    expires_at: datetime
    is_active: bool
    access_count: int
    max_access_count: int | None = None
    last_accessed_at: datetime | None = None
    policies: SecureLinkPolicies

    @classmethod
    def from_link(cls, link) -> "SecureLinkInfo":
        return cls(
            id=link.id,
            file_id=link.file_id,
            created_by=link.created_by,
            created_at=link.created_at,
            expires_at=link.expires_at,
            is_active=link.is_active,
            access_count=link.access_count,
            max_access_count=link.max_access_count,
            last_accessed_at=link.last_accessed_at,
            policies=SecureLinkPolicies(
                password_protected=bool(link.password_hash),
                require_email=link.require_email,
                allow_preview=link.allow_preview,
                watermark_enabled=link.watermark_enabled,
            ),
        )

class SecureLinkCreated(SecureLinkInfo):
    token: str
    secure_url: str
    mediated: bool

class SecureLinkList(BaseModel):
    links: list[SecureLinkInfo]
    total: int
    page: int
    pages: int

class SecureLinkAccessEventInfo(BaseModel):
    accessed_at: datetime
    access_type: str
    ip_address: str | None = None
    user_agent: str | None = None
    visitor_email: str | None = None

    class Config:
        from_attributes = True

class SecureLinkDetails(SecureLinkInfo):
    events: list[SecureLinkAccessEventInfo] = []

class SecureAccessInfo(BaseModel):
    file_name: str
    file_size: int
    mime_type: str | None
    expires_at: datetime
    access_count: int
    max_access_count: int | None = None
    is_active: bool
    policies: SecureLinkPolicies
