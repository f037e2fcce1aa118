from sqlalchemy import func, select

from app.api.events.attendance.models import EventAttendance
from app.api.users.models import UserRoles

from conftest import auth_headers


async def post_mark(client, user, signup_id, **payload):
    return await client.post(
        "/api/v1/attendance",
        json={"signup_id": signup_id, **payload},
        headers=auth_headers(user),
    )


async def test_first_mark_creates_row(client, organizer, volunteer, event, make_signup):
    signup = await make_signup(volunteer, event)
    response = await post_mark(client, organizer, signup.id, status="completed", hours=3)
    assert response.status_code == 201
    body = response.json()
    assert body["status"] == "completed"
    assert body["hours"] == 3
    assert body["marked_by"] == organizer.id


async def test_marking_again_updates_the_same_row(
    client, session, organizer, volunteer, event, make_signup
):
    signup = await make_signup(volunteer, event)
    first = await post_mark(client, organizer, signup.id, status="completed", hours=3)
    second = await post_mark(client, organizer, signup.id, status="no_show", hours=0)
    assert second.status_code == 200
    assert second.json()["id"] == first.json()["id"]
    assert second.json()["status"] == "no_show"

    rows = await session.scalar(
        select(func.count(EventAttendance.id)).where(
            EventAttendance.signup_id == signup.id
        )
    )
    assert rows == 1


async def test_omitted_hours_are_kept(client, organizer, volunteer, event, make_signup):
    signup = await make_signup(volunteer, event)
    await post_mark(client, organizer, signup.id, status="completed", hours=2.5)
    response = await post_mark(client, organizer, signup.id, status="excused")
    assert response.status_code == 200
    assert response.json()["status"] == "excused"
    assert response.json()["hours"] == 2.5


async def test_explicit_null_clears_hours(client, organizer, volunteer, event, make_signup):
    signup = await make_signup(volunteer, event)
    await post_mark(client, organizer, signup.id, status="completed", hours=2)
    response = await post_mark(client, organizer, signup.id, status="completed", hours=None)
    assert response.json()["hours"] is None


async def test_invalid_status_is_400(client, organizer, volunteer, event, make_signup):
    signup = await make_signup(volunteer, event)
    response = await post_mark(client, organizer, signup.id, status="attended")
    assert response.status_code == 400
    assert "status" in response.json()["errors"]


async def test_negative_hours_are_rejected(client, organizer, volunteer, event, make_signup):
    signup = await make_signup(volunteer, event)
    response = await post_mark(client, organizer, signup.id, status="completed", hours=-1)
    assert response.status_code == 400


async def test_unknown_signup_is_404(client, organizer):
    response = await post_mark(client, organizer, 4242, status="completed")
    assert response.status_code == 404


async def test_volunteer_cannot_mark(client, volunteer, event, make_signup):
    signup = await make_signup(volunteer, event)
    response = await post_mark(client, volunteer, signup.id, status="completed")
    assert response.status_code == 403


async def test_organizer_of_other_organization_cannot_mark(
    client, make_org, make_user, volunteer, event, make_signup
):
    other_org = await make_org()
    outsider = await make_user(UserRoles.organizer, organization_id=other_org.id)
    signup = await make_signup(volunteer, event)
    response = await post_mark(client, outsider, signup.id, status="completed")
    assert response.status_code == 403


async def test_volunteer_reads_own_attendance(
    client, organizer, volunteer, event, make_signup
):
    signup = await make_signup(volunteer, event)
    await post_mark(client, organizer, signup.id, status="completed", hours=1)
    response = await client.get(
        f"/api/v1/attendance/signup/{signup.id}", headers=auth_headers(volunteer)
    )
    assert response.status_code == 200
    assert response.json()["signup_id"] == signup.id


async def test_event_attendance_sheet(client, organizer, volunteer, event, make_signup):
    signup = await make_signup(volunteer, event)
    await post_mark(client, organizer, signup.id, status="excused")
    response = await client.get(
        f"/api/v1/attendance/event/{event.id}", headers=auth_headers(organizer)
    )
    assert response.status_code == 200
    assert response.json()[0]["attendance"]["status"] == "excused"


async def test_certified_attendance_stays_completed(
    client, session, organizer, volunteer, event, make_signup
):
    signup = await make_signup(volunteer, event)
    marked = await post_mark(client, organizer, signup.id, status="completed", hours=3)
    issued = await client.post(
        "/api/v1/certificates",
        json={"signup_id": signup.id},
        headers=auth_headers(organizer),
    )
    assert issued.status_code == 201
    attendance_id = marked.json()["id"]

    downgrade = await post_mark(client, organizer, signup.id, status="no_show")
    assert downgrade.status_code == 409
    update = await client.put(
        f"/api/v1/attendance/{attendance_id}",
        json={"status": "excused"},
        headers=auth_headers(organizer),
    )
    assert update.status_code == 409
    removed = await client.delete(
        f"/api/v1/attendance/{attendance_id}", headers=auth_headers(organizer)
    )
    assert removed.status_code == 409

    hours_only = await client.put(
        f"/api/v1/attendance/{attendance_id}",
        json={"status": "completed", "hours": 4},
        headers=auth_headers(organizer),
    )
    assert hours_only.status_code == 200
    status = await session.scalar(
        select(EventAttendance.status).where(EventAttendance.id == attendance_id)
    )
    assert status.value == "completed"

    verified = await client.get(
        f"/api/v1/certificates/verify/{issued.json()['certificate_uid']}"
    )
    assert verified.json()["attendance"]["status"] == "completed"
