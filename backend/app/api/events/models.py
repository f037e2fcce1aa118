from sqlalchemy import (
    Column,
    Date,
    ForeignKey,
    Integer,
    String,
    Text,
    Time,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from app.db.base import AbstractSQLModel
from app.db.mixins import TimestampsMixin


class Events(AbstractSQLModel, TimestampsMixin):
    __tablename__ = "events"

    id = Column(Integer, primary_key=True, autoincrement=True)
    organization_id = Column(
        Integer, ForeignKey("organizations.id"), nullable=False, index=True
    )
    title = Column(String(100), nullable=False)
    description = Column(Text, nullable=True)
    event_date = Column(Date, nullable=False, index=True)
    event_time = Column(Time, nullable=False)
    event_length_hours = Column(Integer, nullable=False, default=1)
    location_name = Column(String(100), nullable=False)
    address = Column(Text, nullable=False)
    city = Column(String(100), nullable=False)
    state = Column(String(2), nullable=False)
    num_needed = Column(Integer, nullable=False)
    num_signed_up = Column(Integer, nullable=False, default=0)
    created_by = Column(
        Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )

    organization = relationship("Organizations", back_populates="events")
    creator = relationship("Users", foreign_keys=[created_by])
    signups = relationship("Signups", back_populates="event")

    __table_args__ = (
        UniqueConstraint(
            "organization_id",
            "event_date",
            "event_time",
            "location_name",
            "title",
            name="uq_events_organization_slot",
        ),
    )
