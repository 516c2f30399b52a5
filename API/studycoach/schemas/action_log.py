from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

ActionType = Literal["get_next_step", "evaluate_response", "provide_hint", "decide_next_action"]


class ActionLogCreate(BaseModel):
    dashboard_id: int
    session_id: str
    action_type: ActionType
    user_id: int | None = None

    request_messages: list[dict[str, Any]] | None = None
    response_data: dict[str, Any] | None = None
    tool_call_data: dict[str, Any] | None = None
    reasoning: str | None = None

    question_id: str | None = None
    topic: str | None = None
    mastery_level: int | None = Field(default=None, ge=0, le=100)

    duration_ms: int | None = Field(default=None, ge=0)


class ActionLogRead(ActionLogCreate):
    model_config = ConfigDict(from_attributes=True)

    id: int
    created_at: datetime | None = None


class ActionLogList(BaseModel):
    logs: list[ActionLogRead]


class Pagination(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    total: int
    limit: int
    offset: int
    has_more: bool = Field(serialization_alias="hasMore")


class PaginatedActionLogs(BaseModel):
    logs: list[ActionLogRead]
    pagination: Pagination
