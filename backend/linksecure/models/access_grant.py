import uuid
from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import relationship

from linksecure.core.database import Base

REQUEST_PENDING = "pending"
REQUEST_APPROVED = "approved"
REQUEST_DENIED = "denied"


class AccessGrant(Base):
    __tablename__ = "access_grants"
    __table_args__ = (UniqueConstraint("file_id", "user_id", name="uq_access_grant_file_user"),)

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    file_id = Column(String(36), ForeignKey("files.id", ondelete="CASCADE"), index=True, nullable=False)
    user_id = Column(String(36), ForeignKey("users.id"), index=True, nullable=False)
    granted_by = Column(String(36), ForeignKey("users.id"), nullable=False)
    role = Column(String(16), nullable=False)
    granted_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    last_accessed_at = Column(DateTime, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)

    events = relationship(
        "AccessGrantEvent", back_populates="grant", cascade="all, delete-orphan", passive_deletes=True
    )


class AccessGrantEvent(Base):
    __tablename__ = "access_grant_events"

    id = Column(Integer, primary_key=True, autoincrement=True)
    grant_id = Column(String(36), ForeignKey("access_grants.id", ondelete="CASCADE"), index=True, nullable=False)
    accessed_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    access_type = Column(String(16), nullable=False)
    ip_address = Column(String, nullable=True)
    user_agent = Column(String, nullable=True)

    grant = relationship("AccessGrant", back_populates="events")


class AccessRequest(Base):
    __tablename__ = "access_requests"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    file_id = Column(String(36), ForeignKey("files.id", ondelete="CASCADE"), index=True, nullable=False)
    user_id = Column(String(36), ForeignKey("users.id"), index=True, nullable=False)
    requested_role = Column(String(16), nullable=False)
    message = Column(Text, nullable=True)
    status = Column(String(16), nullable=False, default=REQUEST_PENDING, index=True)
    actioned_by = Column(String(36), nullable=True)
    actioned_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
