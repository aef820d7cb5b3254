"""In-app notification inbox entries."""

from __future__ import annotations

from sqlalchemy import Column, DateTime, ForeignKey, Index, String, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from sqlalchemy.types import JSON
import ulid

from ..database import Base


class Notification(Base):
    __tablename__ = "notifications"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    user_id = Column(String(26), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    type = Column(String(100), nullable=False)
    title = Column(String(255), nullable=False)
    body = Column(Text, nullable=True)
    data = Column(JSON, nullable=True)
    status = Column(String(20), nullable=False, default="DELIVERED")
    sent_at = Column(DateTime, nullable=True)
    read_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, nullable=False, server_default=func.now())

    user = relationship("User", foreign_keys=[user_id])

    __table_args__ = (Index("ix_notifications_user_read_at", "user_id", "read_at"),)

    def __repr__(self) -> str:
        return f"<Notification {self.id}: {self.type} -> {self.user_id}>"
