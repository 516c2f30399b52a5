from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class StartStudySessionRequest(BaseModel):
    topics: list[str] = Field(min_length=1)
    dashboard_id: int | None = None
    api_key: str | None = None


class SubmitStudyAnswerRequest(BaseModel):
    answer: str
    wait_for_decision: bool = False


class StudySessionSnapshot(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    session: dict[str, Any]
    view: str
    is_loading: bool = Field(alias="isLoading")
    error: str | None = None
