from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

from sqlalchemy import func, select

from app.api.audit import service as audit_service
from app.api.audit.models import AuditLog
from app.api.events.models import Events
from app.api.notifications import service as notification_service
from app.api.notifications.models import (
    NotificationChannel,
    NotificationStatus,
    Notifications,
)

from conftest import auth_headers


def broken_sessions():
    def factory():
        raise RuntimeError("audit database is down")

    return SimpleNamespace(AsyncSessionLocal=factory)


async def test_audit_failure_does_not_fail_the_request(
    client, session, monkeypatch, volunteer, event
):
    monkeypatch.setattr(audit_service, "db_core", broken_sessions())
    response = await client.post(
        "/api/v1/signups",
        json={"event_id": event.id},
        headers=auth_headers(volunteer),
    )
    assert response.status_code == 201
    assert await session.scalar(
        select(Events.num_signed_up).where(Events.id == event.id)
    ) == 1
    assert await session.scalar(select(func.count(AuditLog.id))) == 0


async def test_record_audit_event_swallows_errors(monkeypatch):
    monkeypatch.setattr(audit_service, "db_core", broken_sessions())
    assert await audit_service.record_audit_event(action="create", entity_type="event") is None


async def test_signup_is_audited(client, session, volunteer, event):
    await client.post(
        "/api/v1/signups",
        json={"event_id": event.id},
        headers=auth_headers(volunteer),
    )
    entry = await session.scalar(select(AuditLog).where(AuditLog.entity_type == "signup"))
    assert entry.action == "create"
    assert entry.actor_user_id == volunteer.id
    assert entry.details == {"event_id": event.id, "user_id": volunteer.id}


async def test_audit_log_listing_is_admin_only(client, admin, volunteer, event):
    await client.post(
        "/api/v1/signups", json={"event_id": event.id}, headers=auth_headers(volunteer)
    )
    denied = await client.get("/api/v1/audit-logs", headers=auth_headers(volunteer))
    assert denied.status_code == 403

    response = await client.get(
        "/api/v1/audit-logs",
        params={"entity_type": "signup"},
        headers=auth_headers(admin),
    )
    assert response.status_code == 200
    assert response.json()["total"] == 1


async def test_purge_removes_only_expired_rows(session):
    now = datetime.now(timezone.utc)
    session.add_all(
        [
            AuditLog(action="old", entity_type="auth", occurred_at=now - timedelta(days=120)),
            AuditLog(action="new", entity_type="auth", occurred_at=now - timedelta(days=5)),
        ]
    )
    await session.commit()

    assert await audit_service.purge_expired_audit_logs(session, 90) == 1
    remaining = (await session.execute(select(AuditLog.action))).scalars().all()
    assert remaining == ["new"]


async def test_failed_email_marks_notification_failed(
    client, session, monkeypatch, volunteer, event
):
    def failing_send_email(**kwargs):
        raise RuntimeError("SES rejected the message")

    monkeypatch.setattr(notification_service, "send_email", failing_send_email)
    response = await client.post(
        "/api/v1/signups", json={"event_id": event.id}, headers=auth_headers(volunteer)
    )
    assert response.status_code == 201

    notification = await session.scalar(select(Notifications))
    assert notification.status == NotificationStatus.failed
    assert "SES rejected" in notification.error_message


async def test_scheduled_notifications_wait_for_their_time(session, volunteer, sent_emails):
    later = datetime.now(timezone.utc) + timedelta(hours=2)
    due_id = await notification_service.queue_notification(
        session, volunteer.id, "Due now", "body"
    )
    later_id = await notification_service.queue_notification(
        session, volunteer.id, "Later", "body", scheduled_at=later
    )

    assert await notification_service.deliver_notification(later_id) == NotificationStatus.pending
    counts = await notification_service.process_pending_notifications(session)
    assert counts == {"sent": 1, "failed": 0, "total": 1}
    assert [email["subject"] for email in sent_emails] == ["Due now"]
    assert due_id != later_id


async def test_in_app_notifications_skip_email(session, volunteer, sent_emails):
    notification_id = await notification_service.queue_notification(
        session, volunteer.id, "Hello", "body", channel=NotificationChannel.in_app
    )
    assert await notification_service.deliver_notification(notification_id) == NotificationStatus.sent
    assert sent_emails == []


async def test_event_reminders_are_queued_once(
    session, volunteer, make_event, make_signup, approved_org
):
    event = await make_event(approved_org.id, days_ahead=1)
    await make_signup(volunteer, event)

    assert await notification_service.queue_event_reminders(session, event.event_date) == 1
    assert await notification_service.queue_event_reminders(session, event.event_date) == 0
    reminder = await session.scalar(select(Notifications))
    assert reminder.subject == f"Reminder: {event.title}"
    assert event.title in reminder.body


async def test_users_list_only_their_notifications(
    client, session, volunteer, make_user
):
    other = await make_user()
    await notification_service.queue_notification(session, volunteer.id, "Mine", "body")
    await notification_service.queue_notification(session, other.id, "Theirs", "body")

    response = await client.get("/api/v1/notifications", headers=auth_headers(volunteer))
    assert response.status_code == 200
    assert [item["subject"] for item in response.json()["items"]] == ["Mine"]
