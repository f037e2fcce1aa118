from typing import List
from fastapi import APIRouter, BackgroundTasks, Request, status

from app.db.core import SessionDep
from app.api.certificates import service
from app.api.certificates.schemas import (
    CertificateIssue,
    CertificatePublic,
    CertificateUpdate,
    CertificateVerification,
)
from app.api.audit.service import schedule_audit
from app.api.notifications.service import notify_user
from app.core.auth.dependencies import AdminAuth, DependsAuth, OrganizerAuth
from app.core.auth.policy import Action, Target, enforce
from app.core.response.schemas import AffectedResult

router = APIRouter(prefix="/certificates")


@router.post(
    "",
    response_model=CertificatePublic,
    status_code=status.HTTP_201_CREATED,
    summary="Issue a certificate",
)
async def issue_certificate(
    request: Request,
    data: CertificateIssue,
    session: SessionDep,
    user: OrganizerAuth,
    background_tasks: BackgroundTasks,
):
    certificate = await service.issue_certificate(session, user, data)
    signup = certificate.signup
    schedule_audit(
        background_tasks,
        request,
        user,
        "issue",
        "certificate",
        certificate.id,
        {
            "signup_id": certificate.signup_id,
            "certificate_uid": certificate.certificate_uid,
            "user_id": signup.user_id,
            "event_id": signup.event_id,
        },
    )
    background_tasks.add_task(
        notify_user,
        user_id=signup.user_id,
        subject=f"Your certificate for {signup.event.title}",
        template_path="certificate_issued.txt",
        context={
            "first_name": signup.user.first_name,
            "event_title": signup.event.title,
            "certificate_uid": certificate.certificate_uid,
        },
        related_event_id=signup.event_id,
    )
    return certificate


@router.get("", response_model=List[CertificatePublic], summary="List all certificates")
async def list_certificates(session: SessionDep, admin: AdminAuth):
    enforce(admin, Action.list_certificates)
    return await service.list_certificates(session)


@router.get(
    "/verify/{certificate_uid}",
    response_model=CertificateVerification,
    summary="Verify a certificate",
)
async def verify_certificate(certificate_uid: str, session: SessionDep):
    return await service.verify_certificate(session, certificate_uid)


@router.get(
    "/uid/{certificate_uid}",
    response_model=CertificatePublic,
    summary="Get a certificate by its uid",
)
async def get_certificate_by_uid(
    certificate_uid: str, session: SessionDep, user: DependsAuth
):
    certificate = await service.get_certificate_by_uid(session, certificate_uid)
    enforce(user, Action.view_certificate, service.certificate_target(certificate))
    return certificate


@router.get(
    "/user/{user_id}",
    response_model=List[CertificatePublic],
    summary="List the certificates of a user",
)
async def list_user_certificates(user_id: int, session: SessionDep, user: DependsAuth):
    enforce(user, Action.view_certificate, Target(user_id=user_id))
    return await service.list_user_certificates(session, user_id)


@router.get(
    "/event/{event_id}",
    response_model=List[CertificatePublic],
    summary="List the certificates of an event",
)
async def list_event_certificates(event_id: int, session: SessionDep, user: DependsAuth):
    return await service.list_event_certificates(session, user, event_id)


@router.get(
    "/{certificate_id}", response_model=CertificatePublic, summary="Get a certificate"
)
async def get_certificate(certificate_id: int, session: SessionDep, user: DependsAuth):
    certificate = await service.get_certificate_or_404(session, certificate_id)
    enforce(user, Action.view_certificate, service.certificate_target(certificate))
    return certificate


@router.put(
    "/{certificate_id}",
    response_model=CertificatePublic,
    summary="Update the pdf of a certificate",
)
async def update_certificate(
    request: Request,
    certificate_id: int,
    data: CertificateUpdate,
    session: SessionDep,
    user: OrganizerAuth,
    background_tasks: BackgroundTasks,
):
    certificate = await service.update_certificate(
        session, user, certificate_id, data.pdf_path
    )
    schedule_audit(
        background_tasks,
        request,
        user,
        "update",
        "certificate",
        certificate.id,
        {"pdf_path": certificate.pdf_path},
    )
    return certificate


@router.delete("/{certificate_id}", summary="Delete a certificate")
async def delete_certificate(
    request: Request,
    certificate_id: int,
    session: SessionDep,
    user: OrganizerAuth,
    background_tasks: BackgroundTasks,
) -> AffectedResult:
    certificate = await service.delete_certificate(session, user, certificate_id)
    schedule_audit(
        background_tasks,
        request,
        user,
        "delete",
        "certificate",
        certificate_id,
        {
            "signup_id": certificate.signup_id,
            "certificate_uid": certificate.certificate_uid,
        },
    )
    return AffectedResult(affected_count=1)
