from __future__ import annotations

import pytest

from studycoach.agent.client import force_tool
from studycoach.agent.tools.provide_hint import DEFAULT_DECLINE_MESSAGE
from studycoach.core.errors import AgentResponseError
from studycoach.study.mastery import initialize_mastery
from studycoach.study.models import AnswerOption, StudyQuestion, StudySessionState

from agent_fakes import RecordingSink, decision, evaluation, next_step, scripted_agent, text_response, tool_response


def _state(question: StudyQuestion | None = None, dashboard_id: int | None = None) -> StudySessionState:
    return StudySessionState(
        session_id="session-test",
        dashboard_id=dashboard_id,
        active=True,
        topics=["A", "B"],
        mastery_levels=initialize_mastery(["A", "B"]),
        current_question=question,
        question_history=[question] if question else [],
    )


def _mc_question() -> StudyQuestion:
    return StudyQuestion(
        id="q-1",
        type="multiple-choice",
        topic="A",
        difficulty="easy",
        question="2 + 2?",
        options=[AnswerOption(text="3"), AnswerOption(text="4", explanation="Four.")],
        correct_answer="4",
    )


def _short_question() -> StudyQuestion:
    return StudyQuestion(id="q-2", type="short-answer", topic="B", difficulty="medium", question="Explain B.")


@pytest.mark.asyncio
async def test_request_next_step_forces_tool_choice():
    agent, client = scripted_agent(next_step("B"))
    args = await agent.request_next_step(_state())
    assert args.topic == "B"
    assert args.options[1].text == "4"
    assert client.calls[0]["tool_choice"] == force_tool("get_next_study_step")


@pytest.mark.asyncio
async def test_request_evaluation_grades_closed_form_locally():
    agent, client = scripted_agent()
    result = await agent.request_evaluation(_state(_mc_question()), "4")
    assert result.is_correct is True
    assert result.explanation == "Four."
    assert client.calls == []


@pytest.mark.asyncio
async def test_request_evaluation_calls_agent_for_open_questions():
    agent, client = scripted_agent(evaluation("true", topic="B", new_level=70))
    result = await agent.request_evaluation(_state(_short_question()), "B is a thing")
    assert result.is_correct is True
    assert result.mastery_updates[0].new_level == 70
    assert client.tool_names == ["evaluate_study_response"]
    assert "User's Answer: B is a thing" in client.calls[0]["messages"][1].content


@pytest.mark.asyncio
async def test_request_hint_returns_tool_arguments():
    agent, client = scripted_agent(tool_response("provide_hint", {"hint": "Count on your fingers", "reasoning": "r"}))
    response = await agent.request_hint(_state(_mc_question()))
    assert response.hint.hint == "Count on your fingers"
    assert response.ai_message is None
    assert client.calls[0]["tool_choice"] == "auto"


@pytest.mark.asyncio
async def test_request_hint_decline_parses_free_text():
    agent, _ = scripted_agent(text_response("REASONING: foo\nMESSAGE: bar"))
    response = await agent.request_hint(_state(_mc_question()))
    assert response.hint is None
    assert response.ai_message == "bar"


@pytest.mark.asyncio
async def test_request_hint_decline_with_unparseable_text_uses_default_message():
    agent, _ = scripted_agent(text_response("nope"))
    response = await agent.request_hint(_state(_mc_question()))
    assert response.hint is None
    assert response.ai_message == DEFAULT_DECLINE_MESSAGE


@pytest.mark.asyncio
async def test_request_hint_rejects_unexpected_tool():
    agent, _ = scripted_agent(tool_response("decide_next_action", {"action": "end_session"}))
    with pytest.raises(AgentResponseError):
        await agent.request_hint(_state(_mc_question()))


@pytest.mark.asyncio
async def test_request_next_action_requires_a_tool_call():
    agent, client = scripted_agent(decision("suggest_hint", hintText="Think about parity"))
    result = await agent.request_next_action(_state(_mc_question()))
    assert result.action == "suggest_hint"
    assert result.hint_text == "Think about parity"
    assert client.calls[0]["tool_choice"] == "required"


@pytest.mark.asyncio
async def test_actions_are_logged_only_for_dashboard_sessions():
    sink = RecordingSink()
    agent, _ = scripted_agent(next_step("A"), next_step("A"), sink=sink)

    await agent.request_next_step(_state())
    await sink.drain()
    assert sink.records == []

    await agent.request_next_step(_state(dashboard_id=7))
    await sink.drain()
    assert len(sink.records) == 1
    record = sink.records[0]
    assert record.action_type == "get_next_step"
    assert record.dashboard_id == 7
    assert record.session_id == "session-test"
    assert record.topic == "A"
    assert record.duration_ms >= 0
    assert record.tool_call_data["questionType"] == "multiple-choice"


@pytest.mark.asyncio
async def test_local_evaluation_is_logged_with_local_source():
    sink = RecordingSink()
    agent, _ = scripted_agent(sink=sink)
    await agent.request_evaluation(_state(_mc_question(), dashboard_id=3), "3")
    await sink.drain()
    assert sink.records[0].action_type == "evaluate_response"
    assert sink.records[0].tool_call_data["source"] == "local"
    assert sink.records[0].tool_call_data["isCorrect"] is False
    assert sink.records[0].question_id == "q-1"


@pytest.mark.asyncio
async def test_failing_sink_never_breaks_the_agent_call():
    sink = RecordingSink(fail=True)
    agent, _ = scripted_agent(next_step("A"), sink=sink)
    args = await agent.request_next_step(_state(dashboard_id=1))
    await sink.drain()
    assert args.topic == "A"
    assert sink.pending == 0
