from sqlalchemy import Column, Enum, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship
from enum import Enum as PyEnum

from app.db.base import AbstractSQLModel
from app.db.mixins import TimestampsMixin
from app.core.utils.db_fields import TZAwareDateTime


class NotificationChannel(PyEnum):
    email = "email"
    in_app = "in_app"


class NotificationStatus(PyEnum):
    pending = "pending"
    sent = "sent"
    failed = "failed"


class Notifications(AbstractSQLModel, TimestampsMixin):
    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    channel = Column(
        Enum(NotificationChannel), nullable=False, default=NotificationChannel.email
    )
    subject = Column(String(150), nullable=False)
    body = Column(Text, nullable=False)
    related_event_id = Column(
        Integer, ForeignKey("events.id", ondelete="SET NULL"), nullable=True, index=True
    )
    scheduled_at = Column(TZAwareDateTime(timezone=True), nullable=True)
    sent_at = Column(TZAwareDateTime(timezone=True), nullable=True)
    status = Column(
        Enum(NotificationStatus),
        nullable=False,
        default=NotificationStatus.pending,
        index=True,
    )
    error_message = Column(String(500), nullable=True)

    user = relationship("Users", back_populates="notifications")
