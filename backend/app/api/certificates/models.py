from datetime import datetime, timezone
from sqlalchemy import CHAR, Column, ForeignKey, Integer, String
from sqlalchemy.orm import relationship

from app.db.base import AbstractSQLModel
from app.core.utils.db_fields import TZAwareDateTime


class Certificates(AbstractSQLModel):
    __tablename__ = "certificates"

    id = Column(Integer, primary_key=True, autoincrement=True)
    signup_id = Column(
        Integer,
        ForeignKey("signups.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    # stored normalised (trimmed, uppercase) so uniqueness is case-insensitive
    certificate_uid = Column(CHAR(12), nullable=False, unique=True)
    verification_hash = Column(CHAR(64), nullable=False, unique=True)
    issued_at = Column(
        TZAwareDateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    signed_by = Column(
        Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True
    )
    pdf_path = Column(String(255), nullable=True)

    signup = relationship("Signups", back_populates="certificate")
    signer = relationship("Users", foreign_keys=[signed_by])
