import enum
from datetime import datetime, timezone
from sqlalchemy import Column, Enum, ForeignKey, Integer, Numeric
from sqlalchemy.orm import relationship

from app.db.base import AbstractSQLModel
from app.core.utils.db_fields import TZAwareDateTime


class AttendanceStatus(enum.Enum):
    completed = "completed"
    no_show = "no_show"
    excused = "excused"


class EventAttendance(AbstractSQLModel):
    __tablename__ = "event_attendance"

    id = Column(Integer, primary_key=True, autoincrement=True)
    signup_id = Column(
        Integer,
        ForeignKey("signups.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    marked_by = Column(
        Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True
    )
    marked_at = Column(
        TZAwareDateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    hours = Column(Numeric(5, 2, asdecimal=False), nullable=True)
    status = Column(
        Enum(AttendanceStatus), nullable=False, default=AttendanceStatus.completed
    )

    signup = relationship("Signups", back_populates="attendance")
    marker = relationship("Users", foreign_keys=[marked_by])
