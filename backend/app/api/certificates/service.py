import hmac
import logging

from sqlalchemy import exists, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import joinedload

from app.response import CustomHTTPException, not_found
from app.api.certificates.models import Certificates
from app.api.certificates.schemas import (
    CertificateIssue,
    CertificateVerification,
    VerifiedAttendance,
    VerifiedEvent,
    VerifiedUser,
)
from app.api.events.attendance.models import AttendanceStatus, EventAttendance
from app.api.events.models import Events
from app.api.events.signups.models import Signups
from app.api.events.signups.service import get_signup_or_404, signup_target
from app.core.auth.policy import Action, Principal, Target, enforce
from app.core.utils.keys import (
    compute_verification_hash,
    generate_certificate_uid,
    normalize_certificate_uid,
)
from app.core.validations.schema import raise_unique_violation, validate_unique

logger = logging.getLogger(__name__)

UNIQUE_FIELDS = ("signup_id", "certificate_uid", "verification_hash")
TAMPERED = (
    "Certificate verification failed. "
    "The certificate may have been tampered with."
)


def _with_context(query):
    return query.options(
        joinedload(Certificates.signup).joinedload(Signups.user),
        joinedload(Certificates.signup)
        .joinedload(Signups.event)
        .joinedload(Events.organization),
        joinedload(Certificates.signup).joinedload(Signups.attendance),
    )


async def _unused_uid(session: AsyncSession) -> str:
    for _ in range(5):
        uid = generate_certificate_uid()
        if not await session.scalar(
            select(exists().where(Certificates.certificate_uid == uid))
        ):
            return uid
    raise RuntimeError("could not generate an unused certificate uid")


async def issue_certificate(
    session: AsyncSession, principal: Principal, data: CertificateIssue
) -> Certificates:
    """
    Issue the certificate of a completed signup.

    The verification hash is derived from the uid here; a hash sent by the
    client is only accepted when it is the same value.
    """
    signup = await get_signup_or_404(session, data.signup_id)
    enforce(principal, Action.issue_certificate, signup_target(signup))

    attendance = await session.scalar(
        select(EventAttendance).where(EventAttendance.signup_id == signup.id)
    )
    if not attendance or attendance.status != AttendanceStatus.completed:
        raise CustomHTTPException(
            status_code=400,
            message="Certificates can only be issued for completed attendance",
            error_code="ATTENDANCE_NOT_COMPLETED",
        )

    uid = data.certificate_uid or await _unused_uid(session)
    verification_hash = compute_verification_hash(uid)
    if data.verification_hash is not None and not hmac.compare_digest(
        data.verification_hash.strip().lower(), verification_hash
    ):
        raise CustomHTTPException(
            status_code=400,
            message="Invalid Request",
            errors={
                "verification_hash": "verification_hash does not match certificate_uid"
            },
        )

    await validate_unique(
        session,
        unique={
            "signup_id": (Certificates, signup.id),
            "certificate_uid": (Certificates, uid),
            "verification_hash": (Certificates, verification_hash),
        },
    )
    certificate = Certificates(
        signup_id=signup.id,
        certificate_uid=uid,
        verification_hash=verification_hash,
        signed_by=principal.user_id,
        pdf_path=data.pdf_path,
    )
    session.add(certificate)
    try:
        await session.commit()
    except IntegrityError as e:
        await session.rollback()
        raise_unique_violation(e, UNIQUE_FIELDS)
    logger.info("certificate %s issued for signup %s", uid, signup.id)
    return await get_certificate_or_404(session, certificate.id)


async def get_certificate_or_404(session: AsyncSession, certificate_id: int):
    certificate = await session.scalar(
        _with_context(select(Certificates)).where(Certificates.id == certificate_id)
    )
    if not certificate:
        raise not_found("Certificate")
    return certificate


async def get_certificate_by_uid(session: AsyncSession, uid: str) -> Certificates:
    normalized = normalize_certificate_uid(uid)
    certificate = await session.scalar(
        _with_context(select(Certificates)).where(
            func.upper(func.trim(Certificates.certificate_uid)) == normalized
        )
    )
    if not certificate:
        raise not_found("Certificate")
    return certificate


async def verify_certificate(session: AsyncSession, uid: str) -> CertificateVerification:
    """
    Public verification: 404 when the uid is unknown, 403 when the stored
    hash does not match the uid.
    """
    certificate = await get_certificate_by_uid(session, uid)
    expected = compute_verification_hash(uid)
    if not hmac.compare_digest(expected, certificate.verification_hash or ""):
        logger.warning("certificate %s failed verification", certificate.id)
        raise CustomHTTPException(
            status_code=403, message=TAMPERED, error_code="CERTIFICATE_TAMPERED"
        )
    signup = certificate.signup
    return CertificateVerification(
        certificate_uid=certificate.certificate_uid,
        issued_at=certificate.issued_at,
        signed_by=certificate.signed_by,
        pdf_path=certificate.pdf_path,
        user=VerifiedUser.model_validate(signup.user),
        event=VerifiedEvent.model_validate(signup.event),
        attendance=(
            VerifiedAttendance.model_validate(signup.attendance)
            if signup.attendance
            else None
        ),
    )


def certificate_target(certificate: Certificates) -> Target:
    return signup_target(certificate.signup)


async def list_certificates(session: AsyncSession):
    result = await session.execute(
        select(Certificates).order_by(Certificates.issued_at.desc())
    )
    return result.scalars().all()


async def list_user_certificates(session: AsyncSession, user_id: int):
    result = await session.execute(
        select(Certificates)
        .join(Signups, Certificates.signup_id == Signups.id)
        .where(Signups.user_id == user_id)
        .order_by(Certificates.issued_at.desc())
    )
    return result.scalars().all()


async def list_event_certificates(
    session: AsyncSession, principal: Principal, event_id: int
):
    event = await session.get(Events, event_id)
    if not event:
        raise not_found("Event")
    enforce(
        principal,
        Action.view_certificate,
        Target(organization_id=event.organization_id),
    )
    result = await session.execute(
        select(Certificates)
        .join(Signups, Certificates.signup_id == Signups.id)
        .where(Signups.event_id == event_id)
        .order_by(Certificates.issued_at.desc())
    )
    return result.scalars().all()


async def update_certificate(
    session: AsyncSession, principal: Principal, certificate_id: int, pdf_path
) -> Certificates:
    """Only the pdf path can change; uid and hash are write-once."""
    certificate = await get_certificate_or_404(session, certificate_id)
    enforce(principal, Action.manage_certificate, certificate_target(certificate))
    certificate.pdf_path = pdf_path
    session.add(certificate)
    await session.commit()
    return certificate


async def delete_certificate(
    session: AsyncSession, principal: Principal, certificate_id: int
) -> Certificates:
    certificate = await get_certificate_or_404(session, certificate_id)
    enforce(principal, Action.manage_certificate, certificate_target(certificate))
    await session.delete(certificate)
    await session.commit()
    return certificate
