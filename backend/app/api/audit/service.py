import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional, Set

from fastapi import Request
from fastapi.encoders import jsonable_encoder
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.audit.models import AuditLog
from app.core.response.pagination import _PaginationParams, paginate
from app.api.audit.schemas import AuditLogResponse
from app.db import core as db_core

logger = logging.getLogger(__name__)


def client_ip(request: Request) -> Optional[str]:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else None


async def record_audit_event(
    action: str,
    entity_type: str,
    actor_user_id: Optional[int] = None,
    entity_id: Optional[int] = None,
    details: Optional[Dict[str, Any]] = None,
    ip_address: Optional[str] = None,
) -> None:
    """
    Write one audit row in its own session.

    Never raises: a failing audit write is logged and dropped so it cannot
    undo or fail the operation being audited.
    """
    try:
        async with db_core.AsyncSessionLocal() as session:
            session.add(
                AuditLog(
                    actor_user_id=actor_user_id,
                    action=action,
                    entity_type=entity_type,
                    entity_id=entity_id,
                    details=jsonable_encoder(details) if details else None,
                    ip_address=ip_address,
                )
            )
            await session.commit()
        logger.info(
            "audit %s %s:%s by %s", action, entity_type, entity_id, actor_user_id
        )
    except Exception:
        logger.exception(
            "failed to record audit event %s %s:%s", action, entity_type, entity_id
        )


async def list_audit_logs(
    session: AsyncSession,
    pagination: _PaginationParams,
    entity_type: Optional[str] = None,
    entity_id: Optional[int] = None,
    actor_user_id: Optional[int] = None,
    action: Optional[str] = None,
):
    query = select(AuditLog)
    if entity_type:
        query = query.where(AuditLog.entity_type == entity_type)
    if entity_id is not None:
        query = query.where(AuditLog.entity_id == entity_id)
    if actor_user_id is not None:
        query = query.where(AuditLog.actor_user_id == actor_user_id)
    if action:
        query = query.where(AuditLog.action == action)
    query = query.order_by(AuditLog.occurred_at.desc(), AuditLog.id.desc())
    return await paginate(query, AuditLogResponse, pagination, session)


async def purge_expired_audit_logs(session: AsyncSession, retention_days: int) -> int:
    cutoff = datetime.now(timezone.utc) - timedelta(days=retention_days)
    result = await session.execute(delete(AuditLog).where(AuditLog.occurred_at < cutoff))
    await session.commit()
    logger.info("purged %s audit rows older than %s", result.rowcount, cutoff)
    return result.rowcount


def schedule_audit(
    background_tasks,
    request: Request,
    actor,
    action: str,
    entity_type: str,
    entity_id: Optional[int] = None,
    details: Optional[Dict[str, Any]] = None,
):
    """Queue :func:`record_audit_event` to run after the response is sent."""
    background_tasks.add_task(
        record_audit_event,
        action=action,
        entity_type=entity_type,
        actor_user_id=actor.user_id if actor else None,
        entity_id=entity_id,
        details=details,
        ip_address=client_ip(request),
    )


_pending_audits: Set[asyncio.Task] = set()


def audit_in_background(**event) -> asyncio.Task:
    """
    Run :func:`record_audit_event` as a task on the running loop without
    waiting for it. Used where no response (and so no BackgroundTasks) is
    available, such as a dependency that is about to raise.
    """
    task = asyncio.create_task(record_audit_event(**event))
    _pending_audits.add(task)
    task.add_done_callback(_pending_audits.discard)
    return task


async def wait_for_pending_audits():
    if _pending_audits:
        await asyncio.gather(*_pending_audits)
