from typing import List
from fastapi import APIRouter, BackgroundTasks, Request, Response, status

from app.db.core import SessionDep
from app.api.events.attendance import service
from app.api.events.attendance.schemas import (
    AttendanceMark,
    AttendancePublic,
    AttendanceUpdate,
)
from app.api.events.signups import service as signup_service
from app.api.events.signups.schemas import SignupWithAttendance
from app.api.audit.service import schedule_audit
from app.core.auth.dependencies import DependsAuth
from app.core.response.schemas import AffectedResult

router = APIRouter(prefix="/attendance")


@router.post(
    "",
    response_model=AttendancePublic,
    status_code=status.HTTP_201_CREATED,
    summary="Mark attendance for a signup",
)
async def mark_attendance(
    request: Request,
    response: Response,
    data: AttendanceMark,
    session: SessionDep,
    user: DependsAuth,
    background_tasks: BackgroundTasks,
):
    attendance, created = await service.mark_attendance(
        session,
        user,
        data.signup_id,
        data.status,
        data.hours,
        hours_set="hours" in data.model_fields_set,
    )
    if not created:
        response.status_code = status.HTTP_200_OK
    schedule_audit(
        background_tasks,
        request,
        user,
        "mark" if created else "update",
        "attendance",
        attendance.id,
        {
            "signup_id": attendance.signup_id,
            "status": attendance.status.value,
            "hours": attendance.hours,
        },
    )
    return attendance


@router.get(
    "/event/{event_id}",
    response_model=List[SignupWithAttendance],
    summary="Attendance sheet of an event",
)
async def event_attendance(event_id: int, session: SessionDep, user: DependsAuth):
    return await signup_service.list_event_signups(session, user, event_id)


@router.get(
    "/signup/{signup_id}",
    response_model=AttendancePublic,
    summary="Attendance of one signup",
)
async def signup_attendance(signup_id: int, session: SessionDep, user: DependsAuth):
    return await service.get_signup_attendance(session, user, signup_id)


@router.put(
    "/{attendance_id}",
    response_model=AttendancePublic,
    summary="Update an attendance record",
)
async def update_attendance(
    request: Request,
    attendance_id: int,
    data: AttendanceUpdate,
    session: SessionDep,
    user: DependsAuth,
    background_tasks: BackgroundTasks,
):
    attendance = await service.update_attendance(
        session,
        user,
        attendance_id,
        data.status,
        data.hours,
        hours_set="hours" in data.model_fields_set,
    )
    schedule_audit(
        background_tasks,
        request,
        user,
        "update",
        "attendance",
        attendance.id,
        {
            "signup_id": attendance.signup_id,
            "status": attendance.status.value,
            "hours": attendance.hours,
        },
    )
    return attendance


@router.delete("/{attendance_id}", summary="Delete an attendance record")
async def delete_attendance(
    request: Request,
    attendance_id: int,
    session: SessionDep,
    user: DependsAuth,
    background_tasks: BackgroundTasks,
) -> AffectedResult:
    attendance = await service.delete_attendance(session, user, attendance_id)
    schedule_audit(
        background_tasks,
        request,
        user,
        "delete",
        "attendance",
        attendance_id,
        {"signup_id": attendance.signup_id},
    )
    return AffectedResult(affected_count=1)
