from __future__ import annotations

import json

import httpx
import pytest

from studycoach.agent.client import AgentClient, decode_tool_arguments, extract_tool_call, force_tool
from studycoach.agent.schemas import user_message
from studycoach.core.errors import AgentResponseError, AgentServiceError
from studycoach.study.models import DecideNextActionArgs, EvaluateResponseArgs

from agent_fakes import text_response, tool_response

ENDPOINT = "http://agent.test/v1/chat/completions"
TOOLS = [{"type": "function", "function": {"name": "decide_next_action", "parameters": {"type": "object"}}}]


def _client(handler) -> AgentClient:
    return AgentClient(
        api_key="sk-test-123",
        endpoint=ENDPOINT,
        model="test-model",
        timeout=5,
        transport=httpx.MockTransport(handler),
    )


@pytest.mark.asyncio
async def test_call_agent_with_tools_sends_contract_payload():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["auth"] = request.headers.get("authorization")
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json=tool_response("decide_next_action", {"action": "end_session"}).model_dump())

    response = await _client(handler).call_agent_with_tools(
        [user_message("hello")], TOOLS, force_tool("decide_next_action")
    )

    assert seen["url"] == ENDPOINT
    assert seen["auth"] == "Bearer sk-test-123"
    assert seen["body"]["model"] == "test-model"
    assert seen["body"]["messages"] == [{"role": "user", "content": "hello"}]
    assert seen["body"]["tools"] == TOOLS
    assert seen["body"]["tool_choice"] == {"type": "function", "function": {"name": "decide_next_action"}}
    assert response.first_message().tool_calls[0].function.name == "decide_next_action"


@pytest.mark.asyncio
async def test_non_2xx_raises_with_status_and_body():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(503, text="backend overloaded")

    with pytest.raises(AgentServiceError) as exc_info:
        await _client(handler).call_agent_with_tools([user_message("hi")], TOOLS, "required")

    assert exc_info.value.status == 503
    assert exc_info.value.body == "backend overloaded"
    assert str(exc_info.value) == "Agent API error: 503 - backend overloaded"
    assert not isinstance(exc_info.value, AgentResponseError)


@pytest.mark.asyncio
async def test_transport_failure_raises_agent_service_error():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(AgentServiceError):
        await _client(handler).call_agent_with_tools([user_message("hi")], TOOLS)


@pytest.mark.asyncio
async def test_non_json_body_raises_response_error():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, text="<html>gateway</html>")

    with pytest.raises(AgentResponseError):
        await _client(handler).call_agent_with_tools([user_message("hi")], TOOLS)


def test_extract_tool_call_requires_expected_tool():
    with pytest.raises(AgentResponseError):
        extract_tool_call(text_response("no tools here"), "decide_next_action")
    with pytest.raises(AgentResponseError, match="unexpected tool"):
        extract_tool_call(tool_response("provide_hint", {"hint": "x"}), "decide_next_action")


def test_decode_tool_arguments_rejects_malformed_json():
    call = extract_tool_call(tool_response("decide_next_action", "{not json"), "decide_next_action")
    with pytest.raises(AgentResponseError, match="not valid JSON"):
        decode_tool_arguments(call, DecideNextActionArgs)


def test_decode_tool_arguments_rejects_non_object_and_schema_mismatch():
    array_call = extract_tool_call(tool_response("decide_next_action", "[1, 2]"), "decide_next_action")
    with pytest.raises(AgentResponseError, match="JSON object"):
        decode_tool_arguments(array_call, DecideNextActionArgs)

    bad_action = extract_tool_call(
        tool_response("decide_next_action", {"action": "dance", "reasoning": "?"}), "decide_next_action"
    )
    with pytest.raises(AgentResponseError, match="tool schema"):
        decode_tool_arguments(bad_action, DecideNextActionArgs)


def test_decode_evaluation_coerces_string_booleans():
    call = extract_tool_call(
        tool_response("evaluate_study_response", {"isCorrect": "true", "explanation": "ok"}),
        "evaluate_study_response",
    )
    assert decode_tool_arguments(call, EvaluateResponseArgs).is_correct is True

    call = extract_tool_call(
        tool_response("evaluate_study_response", {"isCorrect": "false", "explanation": "no"}),
        "evaluate_study_response",
    )
    assert decode_tool_arguments(call, EvaluateResponseArgs).is_correct is False
