from datetime import datetime

from sqlalchemy import JSON, DateTime, Index, Integer, String, Text, func
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from studycoach.models.base import Base

JSONPayload = JSON().with_variant(JSONB(), "postgresql")


class AiActionLog(Base):
    __tablename__ = "ai_action_log"
    __table_args__ = (
        Index("idx_ai_action_log_session_id", "session_id"),
        Index("idx_ai_action_log_dashboard_id", "dashboard_id"),
        Index("idx_ai_action_log_user_id", "user_id"),
        Index("idx_ai_action_log_created_at", "created_at"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    dashboard_id: Mapped[int] = mapped_column(Integer, nullable=False)
    session_id: Mapped[str] = mapped_column(String(128), nullable=False)
    action_type: Mapped[str] = mapped_column(String(32), nullable=False)
    request_messages: Mapped[list | None] = mapped_column(JSONPayload, nullable=True)
    response_data: Mapped[dict | None] = mapped_column(JSONPayload, nullable=True)
    tool_call_data: Mapped[dict | None] = mapped_column(JSONPayload, nullable=True)
    reasoning: Mapped[str | None] = mapped_column(Text, nullable=True)
    question_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    topic: Mapped[str | None] = mapped_column(String(255), nullable=True)
    mastery_level: Mapped[int | None] = mapped_column(Integer, nullable=True)
    duration_ms: Mapped[int | None] = mapped_column(Integer, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
