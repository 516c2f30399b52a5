from enum import Enum

from studycoach.study.models import StudySessionState


class SessionView(str, Enum):
    NOT_STARTED = "not_started"
    AWAITING_QUESTION = "awaiting_question"
    QUESTION_ACTIVE = "question_active"
    HINT_PENDING = "hint_pending"
    EVALUATION_PENDING = "evaluation_pending"
    HINT_SUGGESTION_PENDING = "hint_suggestion_pending"
    SESSION_END_PENDING = "session_end_pending"
    ENDED = "ended"


def resolve_view(state: StudySessionState, started: bool = False) -> SessionView:
    """Map a session state onto the single view the learner should see.

    Pending prompts are checked in a fixed precedence, so a session-end
    recommendation hides a pending evaluation that is still attached to the
    state. ``started`` separates a session that has never run from one that
    has ended, since both carry ``active=False``.
    """
    if state.pending_session_end is not None:
        return SessionView.SESSION_END_PENDING
    if state.pending_hint_suggestion is not None:
        return SessionView.HINT_SUGGESTION_PENDING
    if not state.active:
        return SessionView.ENDED if started else SessionView.NOT_STARTED
    if state.pending_hint is not None:
        return SessionView.HINT_PENDING
    if state.pending_evaluation is not None:
        return SessionView.EVALUATION_PENDING
    if state.current_question is not None:
        return SessionView.QUESTION_ACTIVE
    return SessionView.AWAITING_QUESTION
