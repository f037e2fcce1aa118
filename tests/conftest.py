import os
import tempfile
import uuid
from datetime import date, time, timedelta

DB_PATH = os.path.join(
    tempfile.gettempdir(), f"volunteersync-test-{uuid.uuid4().hex}.sqlite3"
)
os.environ.setdefault("APP_SECRET_KEY", "test-secret-key")
os.environ["APP_DATABASE_URL"] = f"sqlite+aiosqlite:///{DB_PATH}"
os.environ.pop("APP_DISCORD_ERROR_WEBHOOK", None)

import pytest
from httpx import ASGITransport, AsyncClient

from app.api.audit import service as audit_service
from app.api.auth.service import create_token_for_user
from app.api.events.attendance.models import AttendanceStatus, EventAttendance
from app.api.events.models import Events
from app.api.events.signups.models import SignupStatus, Signups
from app.api.orgs.models import ApprovalStatus, Organizations
from app.api.users import service as users_service
from app.api.users.models import UserRoles
from app.db import core as db_core
from app.db.base import AbstractSQLModel
from volunteersync import application

PASSWORD = "correct-horse-battery"


@pytest.fixture(autouse=True)
async def database():
    async with db_core.engine.begin() as conn:
        await conn.run_sync(AbstractSQLModel.metadata.create_all)
    yield
    await audit_service.wait_for_pending_audits()
    async with db_core.engine.begin() as conn:
        await conn.run_sync(AbstractSQLModel.metadata.drop_all)
    # pooled aiosqlite connections are bound to the test's event loop
    await db_core.engine.dispose()


@pytest.fixture(scope="session", autouse=True)
def remove_database_file():
    yield
    if os.path.exists(DB_PATH):
        os.remove(DB_PATH)


@pytest.fixture(autouse=True)
def sent_emails(monkeypatch):
    """Capture outgoing email instead of calling SES."""
    sent = []

    def fake_send_email(recipients, subject, body_text=None, body_html=None, sender=None):
        sent.append({"to": recipients, "subject": subject, "body": body_text})
        return {"MessageId": f"test-{len(sent)}"}

    monkeypatch.setattr("app.api.notifications.service.send_email", fake_send_email)
    return sent


@pytest.fixture
async def session():
    async with db_core.AsyncSessionLocal() as session:
        yield session


@pytest.fixture
async def client():
    transport = ASGITransport(app=application)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


def auth_headers(user) -> dict:
    token = create_token_for_user(user)
    return {"Authorization": f"Bearer {token.access_token}"}


@pytest.fixture
def make_user(session):
    async def factory(role=UserRoles.volunteer, organization_id=None, email=None):
        user = await users_service.create_user(
            session,
            first_name="Test",
            last_name=role.value.title(),
            email=email or f"{role.value}-{uuid.uuid4().hex[:8]}@example.com",
            password=PASSWORD,
            role=role,
            organization_id=organization_id,
        )
        return user

    return factory


@pytest.fixture
def make_org(session):
    async def factory(status=ApprovalStatus.approved, name=None):
        org = Organizations(
            name=name or f"Org {uuid.uuid4().hex[:8]}",
            contact_email="contact@example.org",
            approval_status=status,
        )
        session.add(org)
        await session.commit()
        return org

    return factory


@pytest.fixture
def make_event(session):
    async def factory(organization_id, days_ahead=7, num_needed=5, **overrides):
        values = dict(
            organization_id=organization_id,
            title=f"Beach cleanup {uuid.uuid4().hex[:6]}",
            event_date=date.today() + timedelta(days=days_ahead),
            event_time=time(9, 0),
            event_length_hours=3,
            location_name="North Beach",
            address="1 Shore Rd",
            city="Springfield",
            state="IL",
            num_needed=num_needed,
            num_signed_up=0,
        )
        values.update(overrides)
        event = Events(**values)
        session.add(event)
        await session.commit()
        return event

    return factory


@pytest.fixture
async def approved_org(make_org):
    return await make_org()


@pytest.fixture
async def admin(make_user):
    return await make_user(UserRoles.admin)


@pytest.fixture
async def organizer(make_user, approved_org):
    return await make_user(UserRoles.organizer, organization_id=approved_org.id)


@pytest.fixture
async def volunteer(make_user):
    return await make_user(UserRoles.volunteer)


@pytest.fixture
async def event(make_event, approved_org):
    return await make_event(approved_org.id)


@pytest.fixture
def make_signup(session):
    async def factory(user, event, status=SignupStatus.registered):
        signup = Signups(user_id=user.id, event_id=event.id, status=status)
        session.add(signup)
        if status == SignupStatus.registered:
            event.num_signed_up += 1
            session.add(event)
        await session.commit()
        return signup

    return factory


@pytest.fixture
def mark(session):
    async def factory(signup, status=AttendanceStatus.completed, hours=None):
        attendance = EventAttendance(signup_id=signup.id, status=status, hours=hours)
        session.add(attendance)
        await session.commit()
        return attendance

    return factory
