import uuid
from datetime import datetime

from sqlalchemy import JSON, Boolean, Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship

from linksecure.core.database import Base

ACCESS_VIEW = "view"
ACCESS_DOWNLOAD = "download"
ACCESS_SHARE = "share"


class File(Base):
    __tablename__ = "files"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    filename = Column(String, index=True, nullable=False)
    content_type = Column(String, nullable=False, default="application/octet-stream")
    size = Column(Integer, nullable=False, default=0)
    owner_id = Column(String(36), ForeignKey("users.id"), index=True, nullable=False)
    storage_path = Column(String, unique=True, nullable=False)
    is_public = Column(Boolean, default=False, nullable=False)

    description = Column(Text, nullable=True)
    tags = Column(JSON, nullable=False, default=list)
    category = Column(String, nullable=True)

    view_count = Column(Integer, default=0, nullable=False)
    download_count = Column(Integer, default=0, nullable=False)
    share_count = Column(Integer, default=0, nullable=False)
    last_accessed_at = Column(DateTime, nullable=True)

    is_deleted = Column(Boolean, default=False, nullable=False, index=True)
    deleted_at = Column(DateTime, nullable=True)
    deleted_by = Column(String(36), nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    access_events = relationship(
        "FileAccessEvent", back_populates="file", cascade="all, delete-orphan", passive_deletes=True
    )


class FileAccessEvent(Base):
    """The file's own access history; direct (owner/grantee/public) access lands here."""

    __tablename__ = "file_access_events"

    id = Column(Integer, primary_key=True, autoincrement=True)
    file_id = Column(String(36), ForeignKey("files.id", ondelete="CASCADE"), index=True, nullable=False)
    accessed_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    access_type = Column(String(16), nullable=False)
    user_id = Column(String(36), nullable=True)
    ip_address = Column(String, nullable=True)
    user_agent = Column(String, nullable=True)
    device = Column(String(16), nullable=True)

    file = relationship("File", back_populates="access_events")
