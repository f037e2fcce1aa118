from datetime import date, timedelta

import pytest

from app.api.orgs.models import ApprovalStatus
from app.api.users.models import UserRoles

from conftest import auth_headers


def event_payload(organization_id, **overrides):
    payload = {
        "organization_id": organization_id,
        "title": "Food bank shift",
        "event_date": (date.today() + timedelta(days=10)).isoformat(),
        "event_time": "10:00:00",
        "event_length_hours": 4,
        "location_name": "Community Hall",
        "address": "12 Main St",
        "city": "Springfield",
        "state": "il",
        "num_needed": 8,
    }
    payload.update(overrides)
    return payload


async def test_organizer_creates_event_for_approved_organization(
    client, organizer, approved_org
):
    response = await client.post(
        "/api/v1/events",
        json=event_payload(approved_org.id),
        headers=auth_headers(organizer),
    )
    assert response.status_code == 201
    body = response.json()
    assert body["num_signed_up"] == 0
    assert body["state"] == "IL"
    assert body["created_by"] == organizer.id


@pytest.mark.parametrize("status", [ApprovalStatus.pending, ApprovalStatus.rejected])
async def test_unapproved_organization_cannot_create_events(
    client, make_org, make_user, status
):
    org = await make_org(status=status)
    organizer = await make_user(UserRoles.organizer, organization_id=org.id)
    response = await client.post(
        "/api/v1/events",
        json=event_payload(org.id),
        headers=auth_headers(organizer),
    )
    assert response.status_code == 403
    body = response.json()
    assert body["error_code"] == "ORGANIZATION_NOT_APPROVED"
    assert status.value in body["message"]


async def test_gate_applies_to_admins(client, admin, make_org):
    org = await make_org(status=ApprovalStatus.pending)
    response = await client.post(
        "/api/v1/events", json=event_payload(org.id), headers=auth_headers(admin)
    )
    assert response.status_code == 403
    assert response.json()["error_code"] == "ORGANIZATION_NOT_APPROVED"


async def test_volunteer_cannot_create_events(client, volunteer, approved_org):
    response = await client.post(
        "/api/v1/events",
        json=event_payload(approved_org.id),
        headers=auth_headers(volunteer),
    )
    assert response.status_code == 403
    assert response.json()["error_code"] == "INSUFFICIENT_PERMISSIONS"


async def test_organizer_cannot_create_events_for_other_organization(
    client, organizer, make_org
):
    other = await make_org()
    response = await client.post(
        "/api/v1/events", json=event_payload(other.id), headers=auth_headers(organizer)
    )
    assert response.status_code == 403
    assert response.json()["error_code"] == "INSUFFICIENT_PERMISSIONS"


async def test_update_is_gated_too(client, session, organizer, approved_org, event):
    approved_org.approval_status = ApprovalStatus.rejected
    session.add(approved_org)
    await session.commit()

    response = await client.put(
        f"/api/v1/events/{event.id}",
        json={"title": "Renamed"},
        headers=auth_headers(organizer),
    )
    assert response.status_code == 403
    assert "Cannot update events" in response.json()["message"]


async def test_duplicate_event_slot_is_rejected(client, organizer, approved_org):
    payload = event_payload(approved_org.id)
    first = await client.post(
        "/api/v1/events", json=payload, headers=auth_headers(organizer)
    )
    assert first.status_code == 201
    second = await client.post(
        "/api/v1/events", json=payload, headers=auth_headers(organizer)
    )
    assert second.status_code == 400
    assert "title" in second.json()["errors"]


async def test_organization_approval_flow(client, admin, make_user):
    volunteer = await make_user(UserRoles.volunteer)
    created = await client.post(
        "/api/v1/orgs",
        json={"name": "Helping Hands", "contact_email": "hi@helping.org"},
        headers=auth_headers(await make_user(UserRoles.organizer)),
    )
    assert created.status_code == 201
    org = created.json()
    assert org["approval_status"] == "pending"

    approved = await client.put(
        f"/api/v1/orgs/{org['id']}/approval",
        json={"approval_status": "approved", "rejection_reason": "ignored"},
        headers=auth_headers(admin),
    )
    assert approved.status_code == 200
    assert approved.json()["approval_status"] == "approved"
    assert approved.json()["approved_by"] == admin.id
    assert approved.json()["rejection_reason"] is None

    # volunteers cannot approve
    denied = await client.put(
        f"/api/v1/orgs/{org['id']}/approval",
        json={"approval_status": "rejected"},
        headers=auth_headers(volunteer),
    )
    assert denied.status_code == 403


async def test_organizer_creating_organization_is_linked(client, session, make_user):
    organizer = await make_user(UserRoles.organizer)
    response = await client.post(
        "/api/v1/orgs",
        json={"name": "River Rescue", "contact_email": "team@river.org"},
        headers=auth_headers(organizer),
    )
    assert response.status_code == 201
    await session.refresh(organizer)
    assert organizer.organization_id == response.json()["id"]


async def test_public_event_search(client, make_event, approved_org):
    await make_event(approved_org.id, city="Shelbyville")
    await make_event(approved_org.id, city="Springfield")
    response = await client.get("/api/v1/events/search", params={"city": "shelbyville"})
    assert response.status_code == 200
    body = response.json()
    assert body["total"] == 1
    assert body["items"][0]["city"] == "Shelbyville"
