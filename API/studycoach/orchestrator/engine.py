"""Study session state machine.

``StudySessionMachine`` owns one ``StudySessionState`` and is its only writer.
Every operation reads the current state, awaits the agent if it must, and then
replaces the whole state in one assignment. Agent calls are never cancelled;
a generation counter marks results from calls started before a hard stop so
they can be dropped instead of applied.
"""
from __future__ import annotations

import asyncio
import json
from collections.abc import Callable
from datetime import datetime, timezone
from typing import Any

from studycoach.agent.client import AgentClient
from studycoach.agent.services import StudyAgent
from studycoach.audit.action_logger import ActionLogSink
from studycoach.core.errors import InvariantViolation, PreconditionError, SessionConfigurationError, describe_error
from studycoach.core.logging import DOMAIN_SESSION, get_domain_logger
from studycoach.orchestrator.states import SessionView, resolve_view
from studycoach.study.mastery import (
    all_topics_mastered,
    apply_mastery_updates,
    calculate_mastery_level,
    initialize_mastery,
    update_mastery_counters,
)
from studycoach.study.models import (
    EvaluationResult,
    HintPayload,
    PendingEvaluation,
    PendingHintSuggestion,
    PendingSessionEnd,
    StudyQuestion,
    StudySessionState,
    TopicMastery,
    UserAnswer,
    question_from_args,
    utc_now_iso,
)

logger = get_domain_logger(__name__, DOMAIN_SESSION)

DEFAULT_SESSION_SUMMARY = "Session complete!"
MASTERY_REACHED_REASONING = "All topics have reached the mastery threshold. Great work!"
HINT_DECLINED_FALLBACK = "The AI suggests trying without a hint first."


def _mastery_summary(mastery_levels: list[TopicMastery]) -> str:
    lines = "\n".join(f"{m.topic}: {m.level}% mastery" for m in mastery_levels)
    return f"Congratulations! You've achieved mastery in all topics:\n\n{lines}"


class StudySessionMachine:
    def __init__(
        self,
        topics: list[str],
        *,
        agent: StudyAgent | None = None,
        api_key: str | None = None,
        dashboard_id: int | None = None,
        action_log: ActionLogSink | None = None,
        on_session_end: Callable[[], Any] | None = None,
        on_complete: Callable[[], Any] | None = None,
    ):
        if agent is None:
            if not api_key:
                raise SessionConfigurationError("An agent API key is required to start a study session")
            agent = StudyAgent(AgentClient(api_key=api_key), action_log)
        self.agent = agent
        self.on_session_end = on_session_end
        self.on_complete = on_complete

        topics = list(topics)
        self.state = StudySessionState(
            dashboard_id=dashboard_id,
            topics=topics,
            mastery_levels=initialize_mastery(topics),
        )
        self.is_loading = False
        self.deciding = False
        self.error: str | None = None
        self.started = False
        self._generation = 0
        self._decision_task: asyncio.Task | None = None
        # Held by every learner-driven async operation; the background decision does not take it.
        self._lock = asyncio.Lock()

    @property
    def session_id(self) -> str:
        return self.state.session_id

    @property
    def view(self) -> SessionView:
        return resolve_view(self.state, self.started)

    @property
    def busy(self) -> bool:
        return self.is_loading or self.deciding

    def snapshot(self) -> dict[str, Any]:
        return {
            "session": self.state.to_wire(),
            "view": self.view.value,
            "isLoading": self.busy,
            "error": self.error,
        }

    def clear_error(self) -> None:
        self.error = None

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _commit(
        self,
        new_state: StudySessionState,
        event: str,
        payload: dict | None = None,
        from_view: SessionView | None = None,
    ) -> None:
        from_view = from_view or self.view
        self.state = new_state
        self._log_state_transition(from_view, self.view, event, payload)

    def _log_state_transition(
        self,
        from_view: SessionView,
        to_view: SessionView,
        event: str,
        payload: dict | None = None,
    ) -> None:
        log_obj = {
            "type": "state_transition",
            "session_id": self.state.session_id,
            "generation": self._generation,
            "from_state": from_view.value,
            "to_state": to_view.value,
            "event": event,
            "payload": payload or {},
            "ts": datetime.now(timezone.utc).isoformat(),
        }
        logger.info(json.dumps(log_obj))

    def _is_stale(self, generation: int, event: str) -> bool:
        if generation != self._generation:
            logger.info("Discarding %s result for session=%s from superseded generation", event, self.session_id)
            return True
        return False

    def _fail(self, exc: Exception, fallback: str) -> None:
        self.error = describe_error(exc, fallback)
        logger.warning("Session %s operation failed: %s", self.session_id, self.error)

    def _invoke(self, callback: Callable[[], Any] | None, name: str) -> None:
        if callback is None:
            return
        try:
            callback()
        except Exception as exc:
            logger.warning("%s callback failed for session=%s: %s", name, self.session_id, exc)

    async def _fetch_question(self, state: StudySessionState) -> StudyQuestion:
        args = await self.agent.request_next_step(state)
        return question_from_args(args)

    # ------------------------------------------------------------------
    # Session lifecycle
    # ------------------------------------------------------------------

    async def start_session(self) -> None:
        async with self._lock:
            if self.started:
                logger.info("Session %s already started; ignoring start", self.session_id)
                return

            generation = self._generation
            self.is_loading = True
            self.error = None
            try:
                question = await self._fetch_question(self.state)
                if self._is_stale(generation, "start_session"):
                    return
                from_view = self.view
                self.started = True
                self._commit(
                    self.state.model_copy(
                        update={
                            "active": True,
                            "current_question": question,
                            "question_history": [*self.state.question_history, question],
                        }
                    ),
                    "start_session",
                    {"question_id": question.id, "topic": question.topic},
                    from_view=from_view,
                )
            except Exception as exc:
                self._fail(exc, "Failed to start session")
            finally:
                self.is_loading = False

    async def submit_answer(self, answer: str) -> None:
        async with self._lock:
            question = self.state.current_question
            if question is None:
                self._fail(PreconditionError("No current question"), "No current question")
                return
            if self.state.pending_evaluation is not None:
                self._fail(PreconditionError("An evaluation is already pending"), "An evaluation is already pending")
                return

            generation = self._generation
            self.is_loading = True
            self.error = None
            try:
                user_answer = UserAnswer(question_id=question.id, answer=answer, timestamp=utc_now_iso())
                evaluation_args = await self.agent.request_evaluation(self.state, answer)
                if self._is_stale(generation, "submit_answer"):
                    return

                prev = self.state
                proposed = apply_mastery_updates(prev.mastery_levels, evaluation_args.mastery_updates)
                evaluation = EvaluationResult(
                    question_id=question.id,
                    is_correct=evaluation_args.is_correct,
                    explanation=evaluation_args.explanation,
                    correct_answer=evaluation_args.correct_answer,
                    mastery_updates=proposed,
                )
                updated_mastery = update_mastery_counters(
                    proposed, question.topic, evaluation.is_correct, user_answer.timestamp
                )
                self._commit(
                    prev.model_copy(
                        update={
                            "answer_history": [*prev.answer_history, user_answer],
                            "evaluation_history": [*prev.evaluation_history, evaluation],
                            "mastery_levels": updated_mastery,
                            "pending_evaluation": PendingEvaluation(
                                question=question, answer=user_answer, evaluation=evaluation
                            ),
                        }
                    ),
                    "submit_answer",
                    {"question_id": question.id, "is_correct": evaluation.is_correct},
                )
            except Exception as exc:
                self._fail(exc, "Failed to evaluate answer")
                return
            finally:
                self.is_loading = False

            self._decision_task = asyncio.create_task(self.execute_autonomous_decision(updated_mastery))

    async def wait_for_decision(self) -> None:
        task = self._decision_task
        if task is not None and not task.done():
            await asyncio.shield(task)

    async def execute_autonomous_decision(self, updated_mastery: list[TopicMastery] | None = None) -> None:
        generation = self._generation
        pending = self.state.pending_evaluation
        question_id = pending.question.id if pending else None

        def superseded(event: str) -> bool:
            if self._is_stale(generation, event):
                return True
            current = self.state.pending_evaluation
            if (current.question.id if current else None) != question_id:
                logger.info("Dropping %s for session=%s: evaluation changed while deciding", event, self.session_id)
                return True
            return False

        self.deciding = True
        try:
            base = self.state
            if updated_mastery is not None:
                base = base.model_copy(update={"mastery_levels": updated_mastery})
            mastery = base.mastery_levels

            decision = await self.agent.request_next_action(base)
            if superseded(f"decision:{decision.action}"):
                return
            logger.info("Autonomous decision for session=%s: %s (%s)", self.session_id, decision.action, decision.reasoning)

            if decision.action == "continue_session":
                if all_topics_mastered(mastery) and not self.state.user_declined_session_end:
                    self._commit(
                        self.state.model_copy(
                            update={
                                "pending_session_end": PendingSessionEnd(
                                    session_summary=_mastery_summary(mastery),
                                    reasoning=MASTERY_REACHED_REASONING,
                                )
                            }
                        ),
                        "decision_mastery_override",
                    )
                    return

                next_question = await self._fetch_question(base)
                if superseded("preload_question"):
                    return
                current = self.state
                if current.pending_evaluation is None:
                    logger.info("No pending evaluation to attach preloaded question to in session=%s", self.session_id)
                    return
                self._commit(
                    current.model_copy(
                        update={
                            "pending_evaluation": current.pending_evaluation.model_copy(
                                update={"next_question": next_question}
                            )
                        }
                    ),
                    "preload_question",
                    {"next_question_id": next_question.id},
                )

            elif decision.action == "suggest_hint":
                next_question = await self._fetch_question(base)
                if superseded("suggest_hint"):
                    return
                self._commit(
                    self.state.model_copy(
                        update={
                            "pending_hint_suggestion": PendingHintSuggestion(
                                hint=decision.hint_text or "",
                                reasoning=decision.reasoning,
                                next_question=next_question,
                            )
                        }
                    ),
                    "suggest_hint",
                    {"next_question_id": next_question.id},
                )

            elif decision.action == "end_session":
                self._commit(
                    self.state.model_copy(
                        update={
                            "pending_session_end": PendingSessionEnd(
                                session_summary=decision.session_summary or DEFAULT_SESSION_SUMMARY,
                                reasoning=decision.reasoning,
                            )
                        }
                    ),
                    "recommend_end_session",
                )
        except Exception as exc:
            if generation == self._generation:
                self._fail(exc, "Failed to get AI decision")
        finally:
            self.deciding = False

    async def confirm_evaluation(self) -> None:
        async with self._lock:
            if self.state.pending_evaluation is None:
                return

            generation = self._generation
            self.is_loading = True
            self.error = None
            try:
                # A running decision may be about to preload the next question.
                await self.wait_for_decision()
                self.error = None
                if self._is_stale(generation, "confirm_evaluation"):
                    return

                prev = self.state
                if prev.pending_evaluation is None:
                    return
                if prev.pending_session_end is not None or prev.pending_hint_suggestion is not None:
                    logger.info("Session %s has a pending recommendation; confirmation deferred to it", self.session_id)
                    return

                preloaded = prev.pending_evaluation.next_question
                cleared = prev.model_copy(update={"pending_evaluation": None, "current_question": None})

                if all_topics_mastered(prev.mastery_levels):
                    self._commit(cleared.model_copy(update={"active": False}), "confirm_evaluation_complete")
                    self._invoke(self.on_complete, "on_complete")
                    return

                if preloaded is not None:
                    self._commit(
                        cleared.model_copy(
                            update={
                                "current_question": preloaded,
                                "question_history": [*cleared.question_history, preloaded],
                            }
                        ),
                        "confirm_evaluation",
                        {"question_id": preloaded.id, "preloaded": True},
                    )
                    return

                next_question = await self._fetch_question(cleared)
                if self._is_stale(generation, "confirm_evaluation"):
                    return
                latest = self.state
                self._commit(
                    latest.model_copy(
                        update={
                            "pending_evaluation": None,
                            "current_question": next_question,
                            "question_history": [*latest.question_history, next_question],
                        }
                    ),
                    "confirm_evaluation",
                    {"question_id": next_question.id, "preloaded": False},
                )
            except Exception as exc:
                self._fail(exc, "Failed to get next question")
            finally:
                self.is_loading = False

    def reject_evaluation(self) -> None:
        """Discard the pending evaluation and let the learner answer the same question again."""
        prev = self.state
        pending = prev.pending_evaluation
        if pending is None:
            return

        self._generation += 1
        answer_history = prev.answer_history[:-1]
        last_asked = answer_history[-1].timestamp if answer_history else None
        reverted: list[TopicMastery] = []
        for entry in prev.mastery_levels:
            if entry.topic != pending.question.topic:
                reverted.append(entry)
                continue
            answered = max(0, entry.questions_answered - 1)
            correct = max(0, entry.questions_correct - (1 if pending.evaluation.is_correct else 0))
            reverted.append(
                entry.model_copy(
                    update={
                        "questions_answered": answered,
                        "questions_correct": correct,
                        "level": calculate_mastery_level(correct, answered),
                        "last_asked": last_asked,
                    }
                )
            )

        self._commit(
            prev.model_copy(
                update={
                    "answer_history": answer_history,
                    "evaluation_history": prev.evaluation_history[:-1],
                    "mastery_levels": reverted,
                    "pending_evaluation": None,
                    "pending_hint_suggestion": None,
                    "pending_session_end": None,
                }
            ),
            "reject_evaluation",
            {"question_id": pending.question.id},
        )

    # ------------------------------------------------------------------
    # Hints
    # ------------------------------------------------------------------

    async def request_hint_for_question(self) -> None:
        async with self._lock:
            if self.state.current_question is None:
                self._fail(PreconditionError("No current question"), "No current question")
                return

            generation = self._generation
            self.is_loading = True
            self.error = None
            try:
                response = await self.agent.request_hint(self.state)
                if self._is_stale(generation, "request_hint"):
                    return
                if response.hint is not None:
                    self._commit(
                        self.state.model_copy(
                            update={
                                "pending_hint": HintPayload(
                                    hint=response.hint.hint, reasoning=response.hint.reasoning
                                )
                            }
                        ),
                        "hint_offered",
                    )
                else:
                    self.error = response.ai_message or HINT_DECLINED_FALLBACK
            except Exception as exc:
                self._fail(exc, "Failed to get hint")
            finally:
                self.is_loading = False

    def accept_hint(self) -> None:
        prev = self.state
        if prev.pending_hint is None or prev.current_question is None:
            return
        question = prev.current_question.model_copy(update={"hint": prev.pending_hint.hint})
        self._commit(
            prev.model_copy(update={"current_question": question, "pending_hint": None}),
            "accept_hint",
        )

    def reject_hint(self) -> None:
        if self.state.pending_hint is None:
            return
        self._commit(self.state.model_copy(update={"pending_hint": None}), "reject_hint")

    def _promote_suggested_question(self, *, with_hint: bool, event: str) -> None:
        prev = self.state
        suggestion = prev.pending_hint_suggestion
        if suggestion is None:
            return
        if suggestion.next_question is None:
            violation = InvariantViolation("No preloaded question in hint suggestion")
            logger.error("%s: session=%s", violation, self.session_id)
            return

        question = suggestion.next_question
        if with_hint:
            question = question.model_copy(update={"hint": suggestion.hint})
        self._commit(
            prev.model_copy(
                update={
                    "pending_hint_suggestion": None,
                    "pending_evaluation": None,
                    "current_question": question,
                    "question_history": [*prev.question_history, question],
                }
            ),
            event,
            {"question_id": question.id},
        )

    def accept_hint_suggestion(self) -> None:
        self._promote_suggested_question(with_hint=True, event="accept_hint_suggestion")

    def reject_hint_suggestion(self) -> None:
        self._promote_suggested_question(with_hint=False, event="reject_hint_suggestion")

    # ------------------------------------------------------------------
    # Ending
    # ------------------------------------------------------------------

    def accept_session_end(self) -> None:
        if self.state.pending_session_end is None:
            return
        self._generation += 1
        self._commit(
            self.state.model_copy(
                update={
                    "active": False,
                    "pending_session_end": None,
                    "pending_evaluation": None,
                    "current_question": None,
                }
            ),
            "accept_session_end",
        )
        self._invoke(self.on_session_end, "on_session_end")
        self._invoke(self.on_complete, "on_complete")

    async def reject_session_end(self) -> None:
        """Keep studying. The end prompt stays in place until the next question has loaded."""
        async with self._lock:
            if self.state.pending_session_end is None:
                return

            generation = self._generation
            self.is_loading = True
            self.error = None
            try:
                declined = self.state.model_copy(
                    update={
                        "pending_session_end": None,
                        "pending_evaluation": None,
                        "current_question": None,
                        "user_declined_session_end": True,
                    }
                )
                question = await self._fetch_question(declined)
                if self._is_stale(generation, "reject_session_end"):
                    return
                latest = self.state
                self._commit(
                    latest.model_copy(
                        update={
                            "pending_session_end": None,
                            "pending_evaluation": None,
                            "user_declined_session_end": True,
                            "current_question": question,
                            "question_history": [*latest.question_history, question],
                        }
                    ),
                    "reject_session_end",
                    {"question_id": question.id},
                )
            except Exception as exc:
                self._fail(exc, "Failed to load question")
            finally:
                self.is_loading = False

    def end_session(self) -> None:
        from_view = self.view
        self._generation += 1
        self.started = True
        self._commit(
            self.state.model_copy(
                update={
                    "active": False,
                    "current_question": None,
                    "pending_evaluation": None,
                    "pending_hint": None,
                    "pending_hint_suggestion": None,
                    "pending_session_end": None,
                }
            ),
            "end_session",
            from_view=from_view,
        )
        self._invoke(self.on_session_end, "on_session_end")
