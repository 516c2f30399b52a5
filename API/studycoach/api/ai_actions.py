from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from studycoach.core.auth import require_admin
from studycoach.memory.database import get_db
from studycoach.schemas.action_log import ActionLogCreate, ActionLogList, ActionLogRead, PaginatedActionLogs
from studycoach.services import action_logs

router = APIRouter(prefix="/ai-actions", tags=["ai-actions"])


@router.post("", response_model=ActionLogRead, status_code=201)
async def create_ai_action(payload: ActionLogCreate, db: AsyncSession = Depends(get_db)):
    return await action_logs.create_action_log(db, payload)


@router.get("", response_model=ActionLogList)
async def list_ai_actions(
    user_id: int | None = None,
    dashboard_id: int | None = None,
    session_id: str | None = None,
    limit: int = Query(default=100, ge=1, le=1000),
    db: AsyncSession = Depends(get_db),
):
    logs = await action_logs.list_action_logs(
        db,
        user_id=user_id,
        dashboard_id=dashboard_id,
        session_id=session_id,
        limit=limit,
    )
    return ActionLogList(logs=logs)


@router.get("/session/{session_id}", response_model=ActionLogList)
async def list_session_ai_actions(session_id: str, db: AsyncSession = Depends(get_db)):
    return ActionLogList(logs=await action_logs.list_session_action_logs(db, session_id))


@router.get("/admin/all", response_model=PaginatedActionLogs, dependencies=[Depends(require_admin)])
async def list_all_ai_actions(
    user_id: int | None = None,
    dashboard_id: int | None = None,
    limit: int = Query(default=100, ge=1, le=1000),
    offset: int = Query(default=0, ge=0),
    db: AsyncSession = Depends(get_db),
):
    return await action_logs.list_all_action_logs(
        db,
        user_id=user_id,
        dashboard_id=dashboard_id,
        limit=limit,
        offset=offset,
    )
