"""Agent skills used by the session orchestrator.

Each skill builds its messages, calls the agent, decodes the tool arguments
and hands an audit record to the action log sink without awaiting it.
"""
from __future__ import annotations

import time
from typing import Any

from studycoach.agent.client import AgentClient, decode_tool_arguments, extract_tool_call, force_tool
from studycoach.agent.schemas import AgentMessage, AgentResponse
from studycoach.agent.tools import decide_next_action, evaluate_response, next_step, provide_hint
from studycoach.audit.action_logger import ActionLogSink, NullActionLogSink
from studycoach.core.errors import AgentResponseError, PreconditionError
from studycoach.core.logging import DOMAIN_AGENT, get_domain_logger
from studycoach.schemas.action_log import ActionLogCreate
from studycoach.study.models import (
    DecideNextActionArgs,
    EvaluateResponseArgs,
    HintResponse,
    NextStepArgs,
    ProvideHintArgs,
    StudySessionState,
)

logger = get_domain_logger(__name__, DOMAIN_AGENT)


def _elapsed_ms(started: float) -> int:
    return int(round((time.perf_counter() - started) * 1000))


class StudyAgent:
    def __init__(self, client: AgentClient, action_log: ActionLogSink | None = None):
        self.client = client
        self.action_log = action_log or NullActionLogSink()

    def _log_action(
        self,
        state: StudySessionState,
        *,
        action_type: str,
        messages: list[AgentMessage],
        response: AgentResponse | None,
        tool_call_data: dict[str, Any],
        reasoning: str | None,
        duration_ms: int,
        question_id: str | None = None,
        topic: str | None = None,
    ) -> None:
        if state.dashboard_id is None:
            return
        mastery = state.mastery_for(topic)
        record = ActionLogCreate(
            dashboard_id=state.dashboard_id,
            session_id=state.session_id,
            action_type=action_type,
            request_messages=[m.model_dump(exclude_none=True) for m in messages],
            response_data=response.model_dump(exclude_none=True) if response is not None else None,
            tool_call_data=tool_call_data,
            reasoning=reasoning,
            question_id=question_id,
            topic=topic,
            mastery_level=mastery.level if mastery else 0,
            duration_ms=duration_ms,
        )
        self.action_log.log_ai_action(record)

    async def request_next_step(self, state: StudySessionState) -> NextStepArgs:
        started = time.perf_counter()
        messages = next_step.build_messages(state)
        response = await self.client.call_agent_with_tools(
            messages, [next_step.TOOL], force_tool(next_step.TOOL_NAME)
        )
        duration = _elapsed_ms(started)
        args = decode_tool_arguments(extract_tool_call(response, next_step.TOOL_NAME), NextStepArgs)
        if args.topic not in state.topics:
            logger.warning("Agent chose topic %r outside session topics %s", args.topic, state.topics)

        self._log_action(
            state,
            action_type="get_next_step",
            messages=messages,
            response=response,
            tool_call_data=args.to_wire(),
            reasoning=args.reasoning,
            duration_ms=duration,
            topic=args.topic,
        )
        return args

    async def request_evaluation(self, state: StudySessionState, answer: str) -> EvaluateResponseArgs:
        question = state.current_question
        if question is None:
            raise PreconditionError("No current question")

        if evaluate_response.supports_local_evaluation(question):
            result = evaluate_response.evaluate_locally(question, answer)
            self._log_action(
                state,
                action_type="evaluate_response",
                messages=[],
                response=None,
                tool_call_data={**result.to_wire(), "source": "local"},
                reasoning=result.explanation,
                duration_ms=0,
                question_id=question.id,
                topic=question.topic,
            )
            return result

        started = time.perf_counter()
        messages = evaluate_response.build_messages(state, answer)
        response = await self.client.call_agent_with_tools(
            messages, [evaluate_response.TOOL], force_tool(evaluate_response.TOOL_NAME)
        )
        duration = _elapsed_ms(started)
        args = decode_tool_arguments(
            extract_tool_call(response, evaluate_response.TOOL_NAME), EvaluateResponseArgs
        )

        self._log_action(
            state,
            action_type="evaluate_response",
            messages=messages,
            response=response,
            tool_call_data=args.to_wire(),
            reasoning=args.explanation,
            duration_ms=duration,
            question_id=question.id,
            topic=question.topic,
        )
        return args

    async def request_hint(self, state: StudySessionState) -> HintResponse:
        question = state.current_question
        if question is None:
            raise PreconditionError("No current question for hint")

        started = time.perf_counter()
        messages = provide_hint.build_messages(state)
        response = await self.client.call_agent_with_tools(messages, [provide_hint.TOOL], "auto")
        duration = _elapsed_ms(started)

        message = response.first_message()
        if message is None:
            raise AgentResponseError("Agent returned no choices for hint request")

        if not message.tool_calls:
            reasoning, user_message = provide_hint.parse_hint_decline(message.content)
            logger.info("Agent declined hint for question=%s: %s", question.id, reasoning)
            self._log_action(
                state,
                action_type="provide_hint",
                messages=messages,
                response=response,
                tool_call_data={"hint": None, "decision": "no_hint_needed", "userMessage": user_message},
                reasoning=reasoning,
                duration_ms=duration,
                question_id=question.id,
                topic=question.topic,
            )
            return HintResponse(hint=None, ai_message=user_message)

        args = decode_tool_arguments(extract_tool_call(response, provide_hint.TOOL_NAME), ProvideHintArgs)
        self._log_action(
            state,
            action_type="provide_hint",
            messages=messages,
            response=response,
            tool_call_data=args.to_wire(),
            reasoning=args.reasoning,
            duration_ms=duration,
            question_id=question.id,
            topic=question.topic,
        )
        return HintResponse(hint=args)

    async def request_next_action(self, state: StudySessionState) -> DecideNextActionArgs:
        started = time.perf_counter()
        messages = decide_next_action.build_messages(state)
        response = await self.client.call_agent_with_tools(messages, [decide_next_action.TOOL], "required")
        duration = _elapsed_ms(started)
        args = decode_tool_arguments(
            extract_tool_call(response, decide_next_action.TOOL_NAME), DecideNextActionArgs
        )

        last_question = state.last_question()
        self._log_action(
            state,
            action_type="decide_next_action",
            messages=messages,
            response=response,
            tool_call_data=args.to_wire(),
            reasoning=args.reasoning,
            duration_ms=duration,
            question_id=last_question.id if last_question else None,
            topic=last_question.topic if last_question else None,
        )
        return args
