"""Tool-calling chat-completion client for the tutoring agent endpoint.

The endpoint is treated as opaque: one POST per call, bearer auth, no retries.
Callers decide what a failure means for the operation in flight.
"""
from __future__ import annotations

import json
from typing import Any, TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from studycoach.agent.schemas import AgentMessage, AgentResponse, AgentToolCall, ToolChoice
from studycoach.core.errors import AgentResponseError, AgentServiceError
from studycoach.core.logging import DOMAIN_AGENT, get_domain_logger
from studycoach.core.settings import settings

logger = get_domain_logger(__name__, DOMAIN_AGENT)

ArgsModel = TypeVar("ArgsModel", bound=BaseModel)


def force_tool(name: str) -> dict[str, Any]:
    return {"type": "function", "function": {"name": name}}


class AgentClient:
    def __init__(
        self,
        *,
        api_key: str,
        endpoint: str | None = None,
        model: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.api_key = api_key
        self.endpoint = endpoint or settings.agent_endpoint
        self.model = model or settings.agent_model
        self.timeout = timeout if timeout is not None else settings.agent_timeout_seconds
        self._transport = transport

    def _build_payload(
        self,
        messages: list[AgentMessage],
        tools: list[dict[str, Any]],
        tool_choice: ToolChoice,
    ) -> dict[str, Any]:
        return {
            "model": self.model,
            "messages": [m.model_dump(exclude_none=True) for m in messages],
            "tools": tools,
            "tool_choice": tool_choice,
        }

    async def call_agent_with_tools(
        self,
        messages: list[AgentMessage],
        tools: list[dict[str, Any]],
        tool_choice: ToolChoice = "auto",
    ) -> AgentResponse:
        payload = self._build_payload(messages, tools, tool_choice)
        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.api_key}",
        }
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(self.endpoint, json=payload, headers=headers)
        except httpx.HTTPError as exc:
            logger.warning("Agent endpoint unreachable: %s", exc)
            raise AgentServiceError(f"Agent API unreachable: {exc}") from exc

        if not response.is_success:
            body = response.text
            logger.warning("Agent API error status=%s", response.status_code)
            raise AgentServiceError(
                f"Agent API error: {response.status_code} - {body}",
                status=response.status_code,
                body=body,
            )

        try:
            return AgentResponse.model_validate(response.json())
        except (ValueError, ValidationError) as exc:
            raise AgentResponseError(
                "Agent API returned a malformed response",
                status=response.status_code,
                body=response.text,
            ) from exc


def extract_tool_call(response: AgentResponse, expected_name: str) -> AgentToolCall:
    message = response.first_message()
    tool_calls = (message.tool_calls if message else None) or []
    if not tool_calls:
        raise AgentResponseError(f"Agent did not call {expected_name} tool")
    tool_call = tool_calls[0]
    if tool_call.function.name != expected_name:
        raise AgentResponseError(
            f"Agent called unexpected tool {tool_call.function.name!r} (expected {expected_name})"
        )
    return tool_call


def decode_tool_arguments(tool_call: AgentToolCall, model: type[ArgsModel]) -> ArgsModel:
    raw = tool_call.function.arguments or "{}"
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise AgentResponseError(
            f"Arguments for {tool_call.function.name} are not valid JSON",
            body=raw,
        ) from exc
    if not isinstance(data, dict):
        raise AgentResponseError(f"Arguments for {tool_call.function.name} must be a JSON object", body=raw)
    try:
        return model.model_validate(data)
    except ValidationError as exc:
        raise AgentResponseError(
            f"Arguments for {tool_call.function.name} do not match the tool schema: {exc.error_count()} error(s)",
            body=raw,
        ) from exc
