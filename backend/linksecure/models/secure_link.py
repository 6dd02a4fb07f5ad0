import uuid
from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Index, Integer, String
from sqlalchemy.orm import relationship

from linksecure.core.database import Base


class SecureLink(Base):
    __tablename__ = "secure_links"
    __table_args__ = (
        Index("ix_secure_links_file_creator", "file_id", "created_by"),
        Index("ix_secure_links_active_expiry", "is_active", "expires_at"),
    )

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    token = Column(String(64), unique=True, index=True, nullable=False)
    file_id = Column(String(36), ForeignKey("files.id", ondelete="CASCADE"), nullable=False)
    created_by = Column(String(36), ForeignKey("users.id"), nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)
    expires_at = Column(DateTime, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    access_count = Column(Integer, default=0, nullable=False)
    max_access_count = Column(Integer, nullable=True)
    last_accessed_at = Column(DateTime, nullable=True)

    # policy, fixed at creation
    password_hash = Column(String, nullable=True)
    require_email = Column(Boolean, default=False, nullable=False)
    allow_preview = Column(Boolean, default=True, nullable=False)
    watermark_enabled = Column(Boolean, default=False, nullable=False)

    file = relationship("File")
    access_events = relationship(
        "SecureLinkAccessEvent", back_populates="link", cascade="all, delete-orphan", passive_deletes=True
    )

    def is_usable(self, now: datetime | None = None) -> bool:
        now = now or datetime.utcnow()
        if not self.is_active or now > self.expires_at:
            return False
        return self.max_access_count is None or self.access_count < self.max_access_count

    @property
    def requires_mediation(self) -> bool:
        return bool(
            self.password_hash or self.require_email or self.watermark_enabled or not self.allow_preview
        )


class SecureLinkAccessEvent(Base):
    __tablename__ = "secure_link_access_events"

    id = Column(Integer, primary_key=True, autoincrement=True)
    link_id = Column(String(36), ForeignKey("secure_links.id", ondelete="CASCADE"), index=True, nullable=False)
    accessed_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    access_type = Column(String(16), nullable=False)
    ip_address = Column(String, nullable=True)
    user_agent = Column(String, nullable=True)
    visitor_email = Column(String, nullable=True)

    link = relationship("SecureLink", back_populates="access_events")
