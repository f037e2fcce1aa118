import enum
from sqlalchemy import Column, Enum, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship

from app.db.base import AbstractSQLModel
from app.db.mixins import TimestampsMixin
from app.core.utils.db_fields import TZAwareDateTime


class ApprovalStatus(enum.Enum):
    pending = "pending"
    approved = "approved"
    rejected = "rejected"


class Organizations(AbstractSQLModel, TimestampsMixin):
    __tablename__ = "organizations"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(100), nullable=False, unique=True)
    description = Column(Text, nullable=True)
    contact_email = Column(String(100), nullable=False)
    contact_phone = Column(String(20), nullable=True)
    website = Column(String(255), nullable=True)
    approval_status = Column(
        Enum(ApprovalStatus),
        nullable=False,
        default=ApprovalStatus.pending,
        index=True,
    )
    approved_by = Column(
        Integer,
        ForeignKey("users.id", ondelete="SET NULL", use_alter=True),
        nullable=True,
    )
    approved_at = Column(TZAwareDateTime(timezone=True), nullable=True)
    rejection_reason = Column(String(255), nullable=True)

    events = relationship("Events", back_populates="organization")
    approver = relationship("Users", foreign_keys=[approved_by])
