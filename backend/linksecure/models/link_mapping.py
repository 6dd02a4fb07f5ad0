import uuid
from datetime import datetime

from sqlalchemy import Column, DateTime, Index, Integer, String

from linksecure.core.database import Base

STATUS_ACTIVE = "active"
STATUS_EXPIRED = "expired"
STATUS_REVOKED = "revoked"


class LinkMapping(Base):
    """Short code -> blob path, independent of file records."""

    __tablename__ = "link_mappings"
    __table_args__ = (
        Index("ix_link_mappings_owner_created", "owner_id", "created_at"),
        Index("ix_link_mappings_expiry_status", "expires_at", "status"),
    )

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    short_code = Column(String(8), unique=True, index=True, nullable=False)
    blob_path = Column(String, nullable=False)
    owner_id = Column(String(36), index=True, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    expires_at = Column(DateTime, nullable=False)
    status = Column(String(16), default=STATUS_ACTIVE, nullable=False)
    access_count = Column(Integer, default=0, nullable=False)
    last_accessed_at = Column(DateTime, nullable=True)
    password_hash = Column(String, nullable=True)

    original_file_name = Column(String, nullable=True)
    file_size = Column(Integer, nullable=True)
    mime_type = Column(String, nullable=True)

    def is_expired(self, now: datetime | None = None) -> bool:
        return (now or datetime.utcnow()) > self.expires_at

    @property
    def metadata_dict(self) -> dict:
        return {
            "original_file_name": self.original_file_name,
            "file_size": self.file_size,
            "mime_type": self.mime_type,
        }
