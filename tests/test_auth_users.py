import asyncio

from sqlalchemy import select

from app.api.audit import service as audit_service
from app.api.audit.models import AuditLog
from app.api.users.models import UserRoles, Users

from conftest import PASSWORD, auth_headers


async def audit_actions(session, entity_type=None):
    query = select(AuditLog.action).order_by(AuditLog.id)
    if entity_type:
        query = query.where(AuditLog.entity_type == entity_type)
    return list((await session.execute(query)).scalars())


async def test_login_returns_token_and_records_login(client, session, volunteer):
    response = await client.post(
        "/api/v1/auth/token",
        data={"username": volunteer.email.upper(), "password": PASSWORD},
    )
    assert response.status_code == 200
    token = response.json()["access_token"]

    me = await client.get(
        "/api/v1/auth/me", headers={"Authorization": f"Bearer {token}"}
    )
    assert me.status_code == 200
    assert me.json()["email"] == volunteer.email
    assert "password" not in me.json()
    assert await audit_actions(session, "auth") == ["login"]


async def test_wrong_password_is_401_and_audited(client, session, volunteer):
    response = await client.post(
        "/api/v1/auth/token",
        data={"username": volunteer.email, "password": "not-the-password"},
    )
    assert response.status_code == 401
    await audit_service.wait_for_pending_audits()
    assert await audit_actions(session, "auth") == ["login_failed"]


async def test_missing_token_is_401(client, session):
    response = await client.get("/api/v1/users")
    assert response.status_code == 401
    assert response.json()["message"] == "Access token is required"
    await audit_service.wait_for_pending_audits()
    assert await audit_actions(session, "auth") == ["unauthorized_access"]


async def test_invalid_token_is_401(client):
    response = await client.get(
        "/api/v1/users", headers={"Authorization": "Bearer not-a-jwt"}
    )
    assert response.status_code == 401
    assert response.headers["WWW-Authenticate"] == "Bearer"


async def test_unauthorized_response_does_not_wait_for_audit(client, monkeypatch):
    release = asyncio.Event()

    async def slow_audit(**event):
        await release.wait()

    monkeypatch.setattr(audit_service, "record_audit_event", slow_audit)
    response = await asyncio.wait_for(
        client.get("/api/v1/users", headers={"Authorization": "Bearer not-a-jwt"}),
        timeout=5,
    )
    assert response.status_code == 401
    assert len(audit_service._pending_audits) == 1
    release.set()
    await audit_service.wait_for_pending_audits()


async def test_wrong_role_is_403(client, volunteer):
    response = await client.get("/api/v1/users", headers=auth_headers(volunteer))
    assert response.status_code == 403
    assert response.json()["error_code"] == "INSUFFICIENT_PERMISSIONS"


async def test_register_never_creates_admin(client):
    response = await client.post(
        "/api/v1/users/register",
        json={
            "first_name": "Ada",
            "last_name": "Admin",
            "email": "ada@example.com",
            "password": PASSWORD,
            "role": "admin",
        },
    )
    assert response.status_code == 400


async def test_register_rejects_duplicate_email(client, volunteer):
    response = await client.post(
        "/api/v1/users/register",
        json={
            "first_name": "Dup",
            "last_name": "Licate",
            "email": volunteer.email,
            "password": PASSWORD,
        },
    )
    assert response.status_code == 400
    assert "email" in response.json()["errors"]


async def test_organizer_promotes_volunteer_into_own_organization(
    client, session, organizer, volunteer, approved_org
):
    response = await client.put(
        f"/api/v1/users/{volunteer.id}",
        json={"role": "organizer", "organization_id": approved_org.id},
        headers=auth_headers(organizer),
    )
    assert response.status_code == 200
    assert response.json()["role"] == "organizer"
    assert response.json()["organization_id"] == approved_org.id
    assert await audit_actions(session, "user") == ["role_change"]


async def test_organizer_cannot_promote_into_other_organization(
    client, organizer, volunteer, make_org
):
    other = await make_org()
    response = await client.put(
        f"/api/v1/users/{volunteer.id}",
        json={"role": "organizer", "organization_id": other.id},
        headers=auth_headers(organizer),
    )
    assert response.status_code == 403


async def test_organizer_cannot_grant_admin(client, organizer, volunteer):
    response = await client.put(
        f"/api/v1/users/{volunteer.id}",
        json={"role": "admin"},
        headers=auth_headers(organizer),
    )
    assert response.status_code == 403


async def test_last_admin_cannot_be_demoted(client, admin):
    response = await client.put(
        f"/api/v1/users/{admin.id}",
        json={"role": "volunteer"},
        headers=auth_headers(admin),
    )
    assert response.status_code == 403
    assert "only remaining admin" in response.json()["message"]


async def test_admin_can_be_demoted_when_another_exists(client, session, admin, make_user):
    other = await make_user(UserRoles.admin)
    response = await client.put(
        f"/api/v1/users/{other.id}",
        json={"role": "volunteer"},
        headers=auth_headers(admin),
    )
    assert response.status_code == 200
    assert response.json()["role"] == "volunteer"


async def test_admin_deletes_user(client, session, admin, volunteer):
    response = await client.delete(
        f"/api/v1/users/{volunteer.id}", headers=auth_headers(admin)
    )
    assert response.status_code == 200
    assert response.json() == {"affected_count": 1}
    assert await session.scalar(select(Users).where(Users.id == volunteer.id)) is None


async def test_admin_cannot_delete_self(client, admin):
    response = await client.delete(
        f"/api/v1/users/{admin.id}", headers=auth_headers(admin)
    )
    assert response.status_code == 400


async def test_organizer_sees_summary_of_other_users(client, organizer, volunteer):
    response = await client.get(
        f"/api/v1/users/{volunteer.id}", headers=auth_headers(organizer)
    )
    assert response.status_code == 200
    assert set(response.json()) == {"id", "first_name", "last_name", "email"}


async def test_volunteer_cannot_view_other_users(client, volunteer, make_user):
    other = await make_user()
    response = await client.get(
        f"/api/v1/users/{other.id}", headers=auth_headers(volunteer)
    )
    assert response.status_code == 403
