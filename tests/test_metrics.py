import pytest

from app.api.events.attendance.models import AttendanceStatus
from app.api.events.signups.models import SignupStatus
from app.api.metrics.service import clamp_rate
from app.api.users.models import UserRoles

from conftest import auth_headers


@pytest.mark.parametrize(
    "numerator, denominator, expected",
    [
        (1, 4, 0.25),
        (5, 4, 1.0),
        (-1, 4, 0.0),
        (3, 0, 0.0),
        (3, -2, 0.0),
        (0, 0, 0.0),
    ],
)
def test_clamp_rate(numerator, denominator, expected):
    assert clamp_rate(numerator, denominator) == expected


@pytest.fixture
async def activity(make_user, make_event, make_signup, mark, approved_org, volunteer):
    """
    One past event with a completed and a no-show signup, one upcoming
    event, and a past event whose only signup was canceled.
    """
    past = await make_event(approved_org.id, days_ahead=-10, num_needed=4)
    upcoming = await make_event(approved_org.id, days_ahead=5, num_needed=2)
    quiet = await make_event(approved_org.id, days_ahead=-10, num_needed=5)
    other = await make_user()

    attended = await make_signup(volunteer, past)
    await mark(attended, AttendanceStatus.completed)
    missed = await make_signup(other, past)
    await mark(missed, AttendanceStatus.no_show)
    await make_signup(volunteer, upcoming)
    await make_signup(volunteer, quiet, status=SignupStatus.canceled)
    return {"past": past, "upcoming": upcoming, "quiet": quiet}


async def test_volunteer_metrics(client, volunteer, activity):
    response = await client.get("/api/v1/metrics/volunteer", headers=auth_headers(volunteer))
    assert response.status_code == 200
    body = response.json()
    assert body["total_events_registered"] == 2
    assert body["events_attended"] == 1
    assert body["no_show_count"] == 0
    assert body["total_hours_attended"] == 3
    assert body["upcoming_events_count"] == 1
    assert body["canceled_by_volunteer_count"] == 1
    month = activity["past"].event_date.strftime("%Y-%m")
    assert body["history_by_month"] == [
        {"year_month": month, "events_attended": 1, "hours_attended": 3.0}
    ]


async def test_recorded_hours_override_event_length(
    client, volunteer, make_event, make_signup, mark, approved_org
):
    past = await make_event(approved_org.id, days_ahead=-3)
    signup = await make_signup(volunteer, past)
    await mark(signup, AttendanceStatus.completed, hours=1.5)
    response = await client.get("/api/v1/metrics/volunteer", headers=auth_headers(volunteer))
    assert response.json()["total_hours_attended"] == 1.5


async def test_organizer_metrics(client, organizer, activity):
    response = await client.get("/api/v1/metrics/organizer", headers=auth_headers(organizer))
    assert response.status_code == 200
    body = response.json()
    assert body["organization_id"] == organizer.organization_id
    assert body["total_events_created"] == 3
    assert body["total_active_upcoming_events"] == 1
    assert body["total_volunteers_registered"] == 3
    assert body["total_volunteer_hours_delivered"] == 3
    assert body["average_fill_rate"] == pytest.approx(2 / 9)
    assert body["attendance_rate"] == pytest.approx(1 / 3)
    assert body["no_show_rate"] == pytest.approx(1 / 3)
    assert body["excused_rate"] == 0
    assert body["events_by_month"][0]["events_held"] == 2
    top = body["top_events_by_attendance"]
    assert [item["event_id"] for item in top] == [
        activity["past"].id,
        activity["quiet"].id,
    ]
    assert top[0]["fill_rate"] == 0.5
    assert top[0]["volunteer_hours"] == 3
    assert top[1]["fill_rate"] == 0


async def test_fill_rate_is_clamped(
    client, organizer, make_user, make_event, make_signup, approved_org
):
    tiny = await make_event(approved_org.id, days_ahead=-2, num_needed=1)
    for _ in range(3):
        await make_signup(await make_user(), tiny)
    response = await client.get("/api/v1/metrics/organizer", headers=auth_headers(organizer))
    body = response.json()
    assert body["average_fill_rate"] == 1.0
    assert body["top_events_by_attendance"][0]["fill_rate"] == 1.0


async def test_organizer_without_organization_is_400(client, make_user):
    orphan = await make_user(UserRoles.organizer)
    response = await client.get("/api/v1/metrics/organizer", headers=auth_headers(orphan))
    assert response.status_code == 400


async def test_admin_picks_organization(client, admin, approved_org, activity):
    missing = await client.get("/api/v1/metrics/organizer", headers=auth_headers(admin))
    assert missing.status_code == 400

    unknown = await client.get(
        "/api/v1/metrics/organizer",
        params={"organization_id": 9999},
        headers=auth_headers(admin),
    )
    assert unknown.status_code == 404

    response = await client.get(
        "/api/v1/metrics/organizer",
        params={"organization_id": approved_org.id},
        headers=auth_headers(admin),
    )
    assert response.status_code == 200
    assert response.json()["total_events_created"] == 3


async def test_organizer_query_is_pinned_to_own_organization(client, organizer, make_org):
    other = await make_org()
    response = await client.get(
        "/api/v1/metrics/organizer",
        params={"organization_id": other.id},
        headers=auth_headers(organizer),
    )
    assert response.status_code == 200
    assert response.json()["organization_id"] == organizer.organization_id


async def test_volunteer_metrics_are_volunteer_only(client, organizer):
    response = await client.get("/api/v1/metrics/volunteer", headers=auth_headers(organizer))
    assert response.status_code == 403


async def test_admin_metrics(client, admin, organizer, volunteer, activity):
    response = await client.get("/api/v1/metrics/admin", headers=auth_headers(admin))
    assert response.status_code == 200
    body = response.json()
    # admin, organizer, volunteer and the second volunteer from the fixture
    assert body["total_users"] == 4
    assert body["total_admins"] == 1
    assert body["total_organizers"] == 1
    assert body["total_volunteers"] == 2
    assert body["total_organizations"] == 1
    assert body["pending_organizations"] == 0
    assert body["total_events"] == 3
    assert body["total_completed_events"] == 2
    assert body["total_volunteer_hours"] == 3
    assert body["new_users_last_30_days"] == 4
    assert body["active_users_last_7_days"] == 0
    assert sum(month["new_users"] for month in body["usage_by_month"]) == 4


async def test_admin_metrics_require_admin(client, organizer):
    response = await client.get("/api/v1/metrics/admin", headers=auth_headers(organizer))
    assert response.status_code == 403
