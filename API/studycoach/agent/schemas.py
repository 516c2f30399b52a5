from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field


class AgentToolFunctionCall(BaseModel):
    name: str
    arguments: str = ""


class AgentToolCall(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: str = ""
    type: Literal["function"] = "function"
    function: AgentToolFunctionCall


class AgentMessage(BaseModel):
    model_config = ConfigDict(extra="allow")

    role: Literal["system", "user", "assistant", "tool"]
    content: str | None = None
    tool_calls: list[AgentToolCall] | None = None
    tool_call_id: str | None = None
    name: str | None = None


class AgentChoice(BaseModel):
    model_config = ConfigDict(extra="allow")

    index: int = 0
    message: AgentMessage
    finish_reason: str | None = None


class AgentResponse(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: str = ""
    object: str = ""
    created: int = 0
    model: str = ""
    choices: list[AgentChoice] = Field(default_factory=list)

    def first_message(self) -> AgentMessage | None:
        return self.choices[0].message if self.choices else None


ToolChoice = Literal["auto", "required"] | dict[str, Any]


def system_message(content: str) -> AgentMessage:
    return AgentMessage(role="system", content=content)


def user_message(content: str) -> AgentMessage:
    return AgentMessage(role="user", content=content)
