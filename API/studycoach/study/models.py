"""Study session data model.

Every model serializes with camelCase aliases so snapshots and tool arguments
match the wire contract used by the agent and by HTTP clients. Records that are
immutable once created are frozen; the aggregate ``StudySessionState`` is also
frozen and is replaced wholesale on every transition.
"""
from __future__ import annotations

import itertools
import math
import time
import uuid
from datetime import datetime, timezone
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

QuestionType = Literal["multiple-choice", "true-false", "short-answer", "flashcard"]
DifficultyLevel = Literal["easy", "medium", "hard"]
NextAction = Literal["continue_session", "suggest_hint", "end_session"]
Recommendation = Literal["continue", "change-difficulty", "end-session"]

CLOSED_FORM_TYPES = ("multiple-choice", "true-false")

_question_counter = itertools.count(1)


class StudyModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def new_question_id() -> str:
    return f"q-{int(time.time() * 1000)}-{next(_question_counter)}"


def new_session_id() -> str:
    return f"session-{int(time.time() * 1000)}-{uuid.uuid4().hex[:8]}"


def coerce_is_correct(value: Any) -> bool:
    # Tool backends may send isCorrect as the string "true".
    return value is True or value == "true"


class TopicMastery(StudyModel):
    topic: str
    level: int = Field(default=0, ge=0, le=100)
    questions_answered: int = Field(default=0, ge=0)
    questions_correct: int = Field(default=0, ge=0)
    last_asked: str | None = None


class AnswerOption(StudyModel):
    text: str
    explanation: str = ""


class StudyQuestion(StudyModel):
    id: str
    type: QuestionType
    topic: str
    difficulty: DifficultyLevel
    question: str
    options: list[AnswerOption] | None = None
    correct_answer: str | None = None
    hint: str | None = None


class UserAnswer(StudyModel):
    question_id: str
    answer: str
    timestamp: str


class EvaluationResult(StudyModel):
    question_id: str
    is_correct: bool
    explanation: str
    correct_answer: str | None = None
    mastery_updates: list[TopicMastery] = Field(default_factory=list)


class HintPayload(StudyModel):
    hint: str
    reasoning: str = ""


class PendingEvaluation(StudyModel):
    question: StudyQuestion
    answer: UserAnswer
    evaluation: EvaluationResult
    next_question: StudyQuestion | None = None


class PendingHintSuggestion(StudyModel):
    hint: str
    reasoning: str = ""
    next_question: StudyQuestion | None = None


class PendingSessionEnd(StudyModel):
    session_summary: str
    reasoning: str = ""


class StudySessionState(StudyModel):
    session_id: str = Field(default_factory=new_session_id)
    dashboard_id: int | None = None
    active: bool = False
    topics: list[str] = Field(default_factory=list)
    mastery_levels: list[TopicMastery] = Field(default_factory=list)
    current_question: StudyQuestion | None = None
    question_history: list[StudyQuestion] = Field(default_factory=list)
    answer_history: list[UserAnswer] = Field(default_factory=list)
    evaluation_history: list[EvaluationResult] = Field(default_factory=list)
    pending_evaluation: PendingEvaluation | None = None
    pending_hint: HintPayload | None = None
    pending_hint_suggestion: PendingHintSuggestion | None = None
    pending_session_end: PendingSessionEnd | None = None
    user_declined_session_end: bool = False

    def mastery_for(self, topic: str | None) -> TopicMastery | None:
        for entry in self.mastery_levels:
            if entry.topic == topic:
                return entry
        return None

    def last_question(self) -> StudyQuestion | None:
        return self.question_history[-1] if self.question_history else None


# ---------------------------------------------------------------------------
# Tool-call argument contracts
# ---------------------------------------------------------------------------


class NextStepArgs(StudyModel):
    question_type: QuestionType
    topic: str
    difficulty: DifficultyLevel
    question: str
    options: list[AnswerOption] | None = None
    correct_answer: str | None = None
    hint: str | None = None
    reasoning: str = ""


class MasteryUpdate(StudyModel):
    topic: str
    new_level: float | None = None
    reasoning: str = ""

    @field_validator("new_level", mode="before")
    @classmethod
    def _numeric_only(cls, value: Any) -> float | None:
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            return None
        if math.isnan(value):
            return None
        return float(value)


class EvaluateResponseArgs(StudyModel):
    is_correct: bool
    explanation: str
    correct_answer: str | None = None
    mastery_updates: list[MasteryUpdate] = Field(default_factory=list)
    recommendation: Recommendation = "continue"

    @field_validator("is_correct", mode="before")
    @classmethod
    def _coerce(cls, value: Any) -> bool:
        return coerce_is_correct(value)


class ProvideHintArgs(StudyModel):
    hint: str
    reasoning: str = ""


class DecideNextActionArgs(StudyModel):
    action: NextAction
    reasoning: str = ""
    hint_text: str | None = None
    session_summary: str | None = None


class HintResponse(StudyModel):
    hint: ProvideHintArgs | None = None
    ai_message: str | None = None


def question_from_args(args: NextStepArgs, question_id: str | None = None) -> StudyQuestion:
    return StudyQuestion(
        id=question_id or new_question_id(),
        type=args.question_type,
        topic=args.topic,
        difficulty=args.difficulty,
        question=args.question,
        options=args.options,
        correct_answer=args.correct_answer,
        hint=args.hint,
    )
