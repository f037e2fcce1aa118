from typing import Iterable

from sqlalchemy import exists, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.response import CustomHTTPException


async def validate_relations(session: AsyncSession, validation: dict[str, tuple]):
    errors = {}
    for key, (schema, value) in validation.items():
        if value is None:
            continue
        if not await session.scalar(select(exists().where(schema.id == value))):
            errors[key] = f"invalid {key}"
    if errors:
        raise CustomHTTPException(
            status_code=400, message="Invalid Request", errors=errors
        )
    return True


async def validate_unique(session: AsyncSession, **kwargs):
    """
    Check unique columns before an insert or update.

    ``unique`` maps a column name to ``(model, value)``; ``unique_together``
    is a list of such dicts that must collide on every column at once.
    ``exclude_id`` skips the row being updated.
    """
    unique = kwargs.get("unique", {})
    exclude_id = kwargs.get("exclude_id")
    errors = {}
    for key, (schema, value) in unique.items():
        if value is None or value == "":
            continue
        condition = getattr(schema, key) == value
        if exclude_id is not None:
            condition = condition & (schema.id != exclude_id)
        if await session.scalar(select(exists().where(condition))):
            errors[key] = f"{key} already exists"

    unique_together = kwargs.get("unique_together", [])
    for entry in unique_together:
        if not isinstance(entry, dict):
            continue
        query = exists()
        skip = False
        model = None
        for key, (schema, value) in entry.items():
            if value is None:
                skip = True
                break
            model = schema
            query = query.where(getattr(schema, key) == value)
        if skip:
            continue
        if exclude_id is not None and model is not None:
            query = query.where(model.id != exclude_id)
        if await session.scalar(select(query)):
            key = list(entry.keys())[0]
            errors[key] = f"{key} already exists"
    if errors:
        raise CustomHTTPException(
            status_code=400, message="Invalid Request", errors=errors
        )
    return True


def integrity_error_field(exc: IntegrityError, fields: Iterable[str]) -> str | None:
    """
    Best effort mapping of a unique violation to the column that caused it.

    PostgreSQL names the constraint (``uq_certificates_certificate_uid``),
    SQLite names the column (``certificates.certificate_uid``); both contain
    the column name.
    """
    text = str(getattr(exc, "orig", exc))
    # longest first so "signup_id" does not shadow a longer name
    for field in sorted(fields, key=len, reverse=True):
        if field in text:
            return field
    return None


def raise_unique_violation(exc: IntegrityError, fields: Iterable[str], message=None):
    field = integrity_error_field(exc, fields)
    if field is None:
        raise CustomHTTPException(
            status_code=400, message=message or "Invalid Request"
        ) from exc
    raise CustomHTTPException(
        status_code=400,
        message=message or "Invalid Request",
        errors={field: f"{field} already exists"},
    ) from exc
