import enum
from sqlalchemy import (
    Column,
    Enum,
    ForeignKey,
    Integer,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship
from datetime import datetime, timezone

from app.db.base import AbstractSQLModel
from app.db.mixins import TimestampsMixin
from app.core.utils.db_fields import TZAwareDateTime


class SignupStatus(enum.Enum):
    registered = "registered"
    canceled = "canceled"


class Signups(AbstractSQLModel, TimestampsMixin):
    __tablename__ = "signups"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    event_id = Column(
        Integer, ForeignKey("events.id", ondelete="CASCADE"), nullable=False, index=True
    )
    signup_date = Column(
        TZAwareDateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    status = Column(
        Enum(SignupStatus), nullable=False, default=SignupStatus.registered
    )

    user = relationship("Users", back_populates="signups")
    event = relationship("Events", back_populates="signups")
    attendance = relationship("EventAttendance", back_populates="signup", uselist=False)
    certificate = relationship("Certificates", back_populates="signup", uselist=False)

    __table_args__ = (
        UniqueConstraint("user_id", "event_id", name="uq_signups_user_event"),
    )
