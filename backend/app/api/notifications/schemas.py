from datetime import datetime

from app.api.notifications.models import NotificationChannel, NotificationStatus
from app.core.response.base_model import CustomBaseModel


class NotificationSchema(CustomBaseModel):
    id: int
    user_id: int
    channel: NotificationChannel
    subject: str
    body: str
    related_event_id: int | None = None
    scheduled_at: datetime | None = None
    sent_at: datetime | None = None
    status: NotificationStatus
    created_at: datetime
