from datetime import datetime, timezone
from sqlalchemy import JSON, BigInteger, Column, Index, Integer, String

from app.db.base import AbstractSQLModel
from app.core.utils.db_fields import TZAwareDateTime


class AuditLog(AbstractSQLModel):
    __tablename__ = "audit_log"

    id = Column(
        BigInteger().with_variant(Integer, "sqlite"),
        primary_key=True,
        autoincrement=True,
    )
    occurred_at = Column(
        TZAwareDateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        index=True,
    )
    # no foreign key: audit rows outlive the users they mention
    actor_user_id = Column(Integer, nullable=True, index=True)
    action = Column(String(50), nullable=False)
    entity_type = Column(String(30), nullable=False)
    entity_id = Column(Integer, nullable=True)
    details = Column(JSON, nullable=True)
    ip_address = Column(String(45), nullable=True)

    __table_args__ = (Index("ix_audit_log_entity", "entity_type", "entity_id"),)
