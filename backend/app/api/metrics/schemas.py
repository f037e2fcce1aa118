from datetime import date
from typing import List

from app.core.response.base_model import CustomBaseModel


class VolunteerMonth(CustomBaseModel):
    year_month: str
    events_attended: int = 0
    hours_attended: float = 0


class VolunteerMetrics(CustomBaseModel):
    total_events_registered: int = 0
    events_attended: int = 0
    no_show_count: int = 0
    excused_count: int = 0
    total_hours_attended: float = 0
    upcoming_events_count: int = 0
    canceled_by_volunteer_count: int = 0
    history_by_month: List[VolunteerMonth] = []


class OrganizerMonth(CustomBaseModel):
    year_month: str
    events_held: int = 0
    volunteer_hours: float = 0


class TopEvent(CustomBaseModel):
    event_id: int
    title: str
    event_date: date
    registered_count: int = 0
    attended_count: int = 0
    fill_rate: float = 0
    volunteer_hours: float = 0


class OrganizerMetrics(CustomBaseModel):
    organization_id: int
    total_events_created: int = 0
    total_active_upcoming_events: int = 0
    total_volunteers_registered: int = 0
    total_volunteer_hours_delivered: float = 0
    average_fill_rate: float = 0
    attendance_rate: float = 0
    no_show_rate: float = 0
    excused_rate: float = 0
    events_by_month: List[OrganizerMonth] = []
    top_events_by_attendance: List[TopEvent] = []


class UsageMonth(CustomBaseModel):
    year_month: str
    new_users: int = 0
    new_organizations: int = 0
    events_created: int = 0
    volunteer_hours: float = 0


class AdminMetrics(CustomBaseModel):
    total_users: int = 0
    total_volunteers: int = 0
    total_organizers: int = 0
    total_admins: int = 0
    total_organizations: int = 0
    pending_organizations: int = 0
    total_events: int = 0
    total_completed_events: int = 0
    total_volunteer_hours: float = 0
    new_users_last_30_days: int = 0
    new_organizations_last_30_days: int = 0
    active_users_last_7_days: int = 0
    active_users_last_30_days: int = 0
    active_users_last_90_days: int = 0
    active_users_last_365_days: int = 0
    usage_by_month: List[UsageMonth] = []
