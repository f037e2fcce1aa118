from typing import Annotated, Generic, TypeVar, List, Type
from pydantic import BaseModel
from sqlalchemy import Select, func, select
from sqlalchemy.ext.asyncio import AsyncSession
from fastapi import Depends, Query as GetQuery

T = TypeVar("T")
M = TypeVar("M", bound=BaseModel)


class _PaginationParams(BaseModel):
    """Pagination parameters as a Pydantic model"""

    page: int = 1
    limit: int = 20


def get_pagination_params(
    page: Annotated[int, GetQuery(ge=1)] = 1,
    limit: Annotated[int, GetQuery(ge=1, le=100)] = 20,
) -> _PaginationParams:
    return _PaginationParams(page=page, limit=limit)


class PaginatedResponse(BaseModel, Generic[T]):
    total: int
    page: int
    limit: int
    items: List[T]


async def paginate(
    query: Select,
    schema: Type[M],
    pagination: _PaginationParams,
    db_session: AsyncSession,
) -> PaginatedResponse[M]:
    """
    Run ``query`` for one page and validate each row into ``schema``.
    """
    count_query = select(func.count()).select_from(query.order_by(None).subquery())
    total = await db_session.scalar(count_query)

    offset = (pagination.page - 1) * pagination.limit
    result = await db_session.execute(query.offset(offset).limit(pagination.limit))
    items = [schema.model_validate(item) for item in result.scalars().all()]

    return PaginatedResponse[M](
        total=total or 0,
        page=pagination.page,
        limit=pagination.limit,
        items=items,
    )


PaginationParams = Annotated[_PaginationParams, Depends(get_pagination_params)]
