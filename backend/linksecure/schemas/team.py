from datetime import datetime
from typing import Literal

from pydantic import BaseModel, EmailStr

Role = Literal["view", "edit", "admin"]


class GrantCreate(BaseModel):
    file_id: str
    role: Role
    email: EmailStr | None = None
    user_id: str | None = None

class GrantUpdate(BaseModel):
    file_id: str
    user_id: str
    role: Role

class MemberInfo(BaseModel):
    user_id: str
    email: str
    display_name: str | None = None
    role: str
    granted_by: str
    granted_at: datetime
    last_accessed_at: datetime | None = None

class FileAccessCheck(BaseModel):
    file_id: str

class FileAccessResult(BaseModel):
    access_level: str
    via: str
    file_id: str
    filename: str
    size: int
    content_type: str | None

class AccessRequestCreate(BaseModel):
    file_id: str
    requested_role: Role
    message: str | None = None

class AccessRequestInfo(BaseModel):
    id: str
    file_id: str
    user_id: str
    requested_role: str
    message: str | None = None
    status: str
    actioned_by: str | None = None
    actioned_at: datetime | None = None
    created_at: datetime

    class Config:
        from_attributes = True

class AccessRequestManage(BaseModel):
    action: Literal["approve", "deny"]
    role: Role | None = None
