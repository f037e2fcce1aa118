import asyncio

from sqlalchemy import func, select

from app.api.events.models import Events
from app.api.events.signups.models import SignupStatus, Signups
from app.api.events.signups import service as signups_service
from app.api.notifications.models import NotificationStatus, Notifications
from app.core.auth.policy import Principal
from app.db import core as db_core
from app.response import CustomHTTPException

from conftest import auth_headers


async def signed_up(session, event_id):
    return await session.scalar(
        select(Events.num_signed_up).where(Events.id == event_id)
    )


async def signup(client, user, event_id, **extra):
    return await client.post(
        "/api/v1/signups",
        json={"event_id": event_id, **extra},
        headers=auth_headers(user),
    )


async def test_signup_increments_counter(client, session, volunteer, event, sent_emails):
    response = await signup(client, volunteer, event.id)
    assert response.status_code == 201
    body = response.json()
    assert body["status"] == "registered"
    assert body["user_id"] == volunteer.id
    assert body["event"]["num_signed_up"] == 1
    assert await signed_up(session, event.id) == 1

    notification = await session.scalar(select(Notifications))
    assert notification.status == NotificationStatus.sent
    assert notification.related_event_id == event.id
    assert sent_emails[0]["to"] == volunteer.email


async def test_duplicate_signup_is_rejected(client, session, volunteer, event):
    assert (await signup(client, volunteer, event.id)).status_code == 201
    response = await signup(client, volunteer, event.id)
    assert response.status_code == 400
    assert response.json()["error_code"] == "DUPLICATE_SIGNUP"
    assert response.json()["message"] == "User is already signed up for this event"
    assert await signed_up(session, event.id) == 1


async def test_counter_tracks_several_volunteers(client, session, make_user, event):
    for _ in range(3):
        assert (await signup(client, await make_user(), event.id)).status_code == 201
    assert await signed_up(session, event.id) == 3


async def test_signup_for_missing_event_is_404(client, volunteer):
    response = await signup(client, volunteer, 9999)
    assert response.status_code == 404


async def test_volunteer_cannot_sign_up_someone_else(client, volunteer, make_user, event):
    other = await make_user()
    response = await signup(client, volunteer, event.id, user_id=other.id)
    assert response.status_code == 403


async def test_admin_signs_up_another_user(client, session, admin, volunteer, event):
    response = await signup(client, admin, event.id, user_id=volunteer.id)
    assert response.status_code == 201
    assert response.json()["user_id"] == volunteer.id


async def test_cancel_decrements_counter(client, session, volunteer, event):
    created = (await signup(client, volunteer, event.id)).json()
    response = await client.delete(
        f"/api/v1/signups/{created['id']}", headers=auth_headers(volunteer)
    )
    assert response.status_code == 200
    assert await signed_up(session, event.id) == 0
    assert await session.scalar(select(Signups).where(Signups.id == created["id"])) is None


async def test_counter_never_goes_negative(client, session, volunteer, make_event, approved_org):
    event = await make_event(approved_org.id, num_signed_up=0)
    stale = Signups(user_id=volunteer.id, event_id=event.id, status=SignupStatus.registered)
    session.add(stale)
    await session.commit()

    response = await client.delete(
        f"/api/v1/signups/{stale.id}", headers=auth_headers(volunteer)
    )
    assert response.status_code == 200
    assert await signed_up(session, event.id) == 0


async def test_canceled_signup_does_not_decrement(
    client, session, volunteer, make_event, approved_org
):
    event = await make_event(approved_org.id, num_signed_up=2)
    canceled = Signups(user_id=volunteer.id, event_id=event.id, status=SignupStatus.canceled)
    session.add(canceled)
    await session.commit()

    response = await client.delete(
        f"/api/v1/signups/{canceled.id}", headers=auth_headers(volunteer)
    )
    assert response.status_code == 200
    assert await signed_up(session, event.id) == 2


async def test_other_volunteer_cannot_cancel(client, volunteer, make_user, event):
    created = (await signup(client, volunteer, event.id)).json()
    other = await make_user()
    response = await client.delete(
        f"/api/v1/signups/{created['id']}", headers=auth_headers(other)
    )
    assert response.status_code == 403


async def test_organizer_lists_event_signups(client, organizer, volunteer, event):
    await signup(client, volunteer, event.id)
    response = await client.get(
        f"/api/v1/signups/event/{event.id}", headers=auth_headers(organizer)
    )
    assert response.status_code == 200
    assert [item["user_id"] for item in response.json()] == [volunteer.id]
    assert response.json()[0]["attendance"] is None


async def test_deleting_event_removes_signups(client, session, organizer, volunteer, event):
    await signup(client, volunteer, event.id)
    response = await client.delete(
        f"/api/v1/events/{event.id}", headers=auth_headers(organizer)
    )
    assert response.status_code == 200
    remaining = await session.scalar(select(Signups).where(Signups.event_id == event.id))
    assert remaining is None


def principal_for(user) -> Principal:
    return Principal(
        user_id=user.id,
        email=user.email,
        role=user.role,
        organization_id=user.organization_id,
    )


async def in_own_session(operation, user, *args):
    """Run a signup service call the way a separate request would."""
    async with db_core.AsyncSessionLocal() as own:
        try:
            await operation(own, principal_for(user), *args)
        except CustomHTTPException as exc:
            return exc.status_code
        return "ok"


async def registered_rows(session, event_id):
    return await session.scalar(
        select(func.count(Signups.id)).where(
            Signups.event_id == event_id, Signups.status == SignupStatus.registered
        )
    )


async def test_concurrent_cancels_decrement_once(
    session, volunteer, make_user, event, make_signup
):
    mine = await make_signup(volunteer, event)
    await make_signup(await make_user(), event)

    results = await asyncio.gather(
        in_own_session(signups_service.delete_signup, volunteer, mine.id),
        in_own_session(signups_service.delete_signup, volunteer, mine.id),
    )
    assert sorted(results, key=str) == [404, "ok"]
    assert await signed_up(session, event.id) == 1
    assert await registered_rows(session, event.id) == 1


async def test_counter_matches_rows_after_concurrent_creates_and_cancels(
    session, make_user, event, make_signup
):
    staying = [await make_user() for _ in range(3)]
    leaving = [await make_user() for _ in range(2)]
    leaving_signups = [await make_signup(user, event) for user in leaving]

    operations = [
        in_own_session(signups_service.create_signup, user, event.id, None)
        for user in staying
    ]
    # the same user twice races on the unique (user, event) pair
    operations.append(
        in_own_session(signups_service.create_signup, staying[0], event.id, None)
    )
    for user, signup in zip(leaving, leaving_signups):
        operations.append(in_own_session(signups_service.delete_signup, user, signup.id))
        operations.append(in_own_session(signups_service.delete_signup, user, signup.id))

    results = await asyncio.gather(*operations)
    assert results.count("ok") == 3 + 2
    assert await registered_rows(session, event.id) == 3
    assert await signed_up(session, event.id) == 3


async def test_concurrent_purges_decrement_only_removed_rows(
    session, make_user, event, make_signup
):
    for _ in range(2):
        await make_signup(await make_user(), event)

    async def purge():
        async with db_core.AsyncSessionLocal() as own:
            removed = await signups_service.purge_signups(
                own, Signups.event_id == event.id
            )
            await own.commit()
            return removed

    assert sum(await asyncio.gather(purge(), purge())) == 2
    assert await signed_up(session, event.id) == 0
