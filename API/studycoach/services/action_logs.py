"""Queries over the ai_action_log table."""
from __future__ import annotations

from sqlalchemy import asc, desc, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from studycoach.models.entities import AiActionLog
from studycoach.schemas.action_log import ActionLogCreate, ActionLogRead, PaginatedActionLogs, Pagination


async def create_action_log(db: AsyncSession, data: ActionLogCreate) -> ActionLogRead:
    row = AiActionLog(**data.model_dump())
    db.add(row)
    await db.commit()
    await db.refresh(row)
    return ActionLogRead.model_validate(row)


async def list_action_logs(
    db: AsyncSession,
    *,
    user_id: int | None = None,
    dashboard_id: int | None = None,
    session_id: str | None = None,
    limit: int = 100,
) -> list[ActionLogRead]:
    stmt = select(AiActionLog).order_by(desc(AiActionLog.created_at), desc(AiActionLog.id)).limit(limit)
    if user_id is not None:
        stmt = stmt.where(AiActionLog.user_id == user_id)
    if dashboard_id is not None:
        stmt = stmt.where(AiActionLog.dashboard_id == dashboard_id)
    if session_id:
        stmt = stmt.where(AiActionLog.session_id == session_id)
    result = await db.execute(stmt)
    return [ActionLogRead.model_validate(row) for row in result.scalars().all()]


async def list_session_action_logs(db: AsyncSession, session_id: str) -> list[ActionLogRead]:
    stmt = (
        select(AiActionLog)
        .where(AiActionLog.session_id == session_id)
        .order_by(asc(AiActionLog.created_at), asc(AiActionLog.id))
    )
    result = await db.execute(stmt)
    return [ActionLogRead.model_validate(row) for row in result.scalars().all()]


async def list_all_action_logs(
    db: AsyncSession,
    *,
    user_id: int | None = None,
    dashboard_id: int | None = None,
    limit: int = 100,
    offset: int = 0,
) -> PaginatedActionLogs:
    filters = []
    if user_id is not None:
        filters.append(AiActionLog.user_id == user_id)
    if dashboard_id is not None:
        filters.append(AiActionLog.dashboard_id == dashboard_id)

    stmt = (
        select(AiActionLog)
        .where(*filters)
        .order_by(desc(AiActionLog.created_at), desc(AiActionLog.id))
        .limit(limit)
        .offset(offset)
    )
    rows = (await db.execute(stmt)).scalars().all()
    total = (await db.execute(select(func.count(AiActionLog.id)).where(*filters))).scalar() or 0

    return PaginatedActionLogs(
        logs=[ActionLogRead.model_validate(row) for row in rows],
        pagination=build_pagination(total=total, limit=limit, offset=offset, page_size=len(rows)),
    )


def build_pagination(*, total: int, limit: int, offset: int, page_size: int) -> Pagination:
    return Pagination(total=total, limit=limit, offset=offset, has_more=offset + page_size < total)
