"""Study session routes.

Each route drives one ``StudySessionMachine`` operation and answers with the
session snapshot. Agent failures never surface as HTTP errors here: the
machine records them in ``error`` and the snapshot carries them.
"""
from fastapi import APIRouter, HTTPException

from studycoach.audit.action_logger import build_action_log_sink
from studycoach.core.errors import SessionConfigurationError
from studycoach.core.logging import DOMAIN_SESSION, get_domain_logger
from studycoach.core.settings import settings
from studycoach.orchestrator.engine import StudySessionMachine
from studycoach.orchestrator.registry import registry
from studycoach.schemas.study_session import (
    StartStudySessionRequest,
    StudySessionSnapshot,
    SubmitStudyAnswerRequest,
)

router = APIRouter(prefix="/study-sessions", tags=["study-sessions"])
logger = get_domain_logger(__name__, DOMAIN_SESSION)

action_log = build_action_log_sink()


def build_study_machine(payload: StartStudySessionRequest) -> StudySessionMachine:
    topics = [topic.strip() for topic in payload.topics if topic.strip()]
    machine: StudySessionMachine | None = None

    def _ended():
        logger.info("Study session %s ended", machine.session_id if machine else "unknown")

    def _completed():
        logger.info("Study session %s completed with all topics mastered", machine.session_id if machine else "unknown")

    machine = StudySessionMachine(
        topics,
        api_key=payload.api_key or settings.agent_api_key,
        dashboard_id=payload.dashboard_id,
        action_log=action_log,
        on_session_end=_ended,
        on_complete=_completed,
    )
    return machine


def _get_machine(session_id: str) -> StudySessionMachine:
    machine = registry.get(session_id)
    if machine is None:
        raise HTTPException(status_code=404, detail="Study session not found")
    return machine


def _snapshot(machine: StudySessionMachine) -> StudySessionSnapshot:
    return StudySessionSnapshot.model_validate(machine.snapshot())


@router.post("", response_model=StudySessionSnapshot, status_code=201)
async def start_study_session(payload: StartStudySessionRequest):
    try:
        machine = build_study_machine(payload)
    except SessionConfigurationError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    registry.add(machine)
    await machine.start_session()
    return _snapshot(machine)


@router.get("/{session_id}", response_model=StudySessionSnapshot)
async def get_study_session(session_id: str):
    return _snapshot(_get_machine(session_id))


@router.post("/{session_id}/answer", response_model=StudySessionSnapshot)
async def submit_study_answer(session_id: str, payload: SubmitStudyAnswerRequest):
    machine = _get_machine(session_id)
    await machine.submit_answer(payload.answer)
    if payload.wait_for_decision:
        await machine.wait_for_decision()
    return _snapshot(machine)


@router.post("/{session_id}/confirm", response_model=StudySessionSnapshot)
async def confirm_study_evaluation(session_id: str):
    machine = _get_machine(session_id)
    await machine.confirm_evaluation()
    return _snapshot(machine)


@router.post("/{session_id}/reject-evaluation", response_model=StudySessionSnapshot)
async def reject_study_evaluation(session_id: str):
    machine = _get_machine(session_id)
    machine.reject_evaluation()
    return _snapshot(machine)


@router.post("/{session_id}/hint", response_model=StudySessionSnapshot)
async def request_study_hint(session_id: str):
    machine = _get_machine(session_id)
    await machine.request_hint_for_question()
    return _snapshot(machine)


@router.post("/{session_id}/hint/accept", response_model=StudySessionSnapshot)
async def accept_study_hint(session_id: str):
    machine = _get_machine(session_id)
    machine.accept_hint()
    return _snapshot(machine)


@router.post("/{session_id}/hint/reject", response_model=StudySessionSnapshot)
async def reject_study_hint(session_id: str):
    machine = _get_machine(session_id)
    machine.reject_hint()
    return _snapshot(machine)


@router.post("/{session_id}/hint-suggestion/accept", response_model=StudySessionSnapshot)
async def accept_study_hint_suggestion(session_id: str):
    machine = _get_machine(session_id)
    machine.accept_hint_suggestion()
    return _snapshot(machine)


@router.post("/{session_id}/hint-suggestion/reject", response_model=StudySessionSnapshot)
async def reject_study_hint_suggestion(session_id: str):
    machine = _get_machine(session_id)
    machine.reject_hint_suggestion()
    return _snapshot(machine)


@router.post("/{session_id}/session-end/accept", response_model=StudySessionSnapshot)
async def accept_study_session_end(session_id: str):
    machine = _get_machine(session_id)
    machine.accept_session_end()
    return _snapshot(machine)


@router.post("/{session_id}/session-end/reject", response_model=StudySessionSnapshot)
async def reject_study_session_end(session_id: str):
    machine = _get_machine(session_id)
    await machine.reject_session_end()
    return _snapshot(machine)


@router.post("/{session_id}/end", response_model=StudySessionSnapshot)
async def end_study_session(session_id: str):
    machine = _get_machine(session_id)
    machine.end_session()
    return _snapshot(machine)


@router.post("/{session_id}/clear-error", response_model=StudySessionSnapshot)
async def clear_study_session_error(session_id: str):
    machine = _get_machine(session_id)
    machine.clear_error()
    return _snapshot(machine)
