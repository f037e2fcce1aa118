from datetime import datetime
from typing import Any, Dict, Optional

from app.core.response.base_model import CustomBaseModel


class AuditLogResponse(CustomBaseModel):
    id: int
    occurred_at: datetime
    actor_user_id: Optional[int] = None
    action: str
    entity_type: str
    entity_id: Optional[int] = None
    details: Optional[Dict[str, Any]] = None
    ip_address: Optional[str] = None
