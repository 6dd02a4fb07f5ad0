from datetime import datetime

from pydantic import BaseModel


class UserResponse(BaseModel):
    id: str
    email: str
    display_name: str | None = None
    created_at: datetime | None = None
    is_active: bool

    class Config:
        from_attributes = True
