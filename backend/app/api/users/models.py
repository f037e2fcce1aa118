import enum
from sqlalchemy import (
    Column,
    Enum,
    ForeignKey,
    Integer,
    String,
)
from sqlalchemy.orm import relationship

from app.db.base import AbstractSQLModel
from app.db.mixins import TimestampsMixin
from app.core.utils.db_fields import TZAwareDateTime


class UserRoles(enum.Enum):
    volunteer = "volunteer"
    organizer = "organizer"
    admin = "admin"


class Users(AbstractSQLModel, TimestampsMixin):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    first_name = Column(String(50), nullable=False)
    last_name = Column(String(50), nullable=False)
    email = Column(String(100), nullable=False, unique=True)
    password = Column(String(255), nullable=False)
    role = Column(Enum(UserRoles), nullable=False, default=UserRoles.volunteer)
    last_login = Column(TZAwareDateTime(timezone=True), nullable=True)
    organization_id = Column(
        Integer,
        ForeignKey("organizations.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    organization = relationship("Organizations", foreign_keys=[organization_id])
    signups = relationship("Signups", back_populates="user")
    notifications = relationship("Notifications", back_populates="user")

    def __repr__(self):
        return self.email
