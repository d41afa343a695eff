"""Conversation history message models."""

from typing import Annotated, Any, Literal

from pydantic import BaseModel, Field


class ToolCall(BaseModel):
    """A tool call announced by the assistant."""

    id: str
    name: str
    input: dict[str, Any]


class SystemMessage(BaseModel):
    """The system instruction that opens every history."""

    role: Literal["system"] = "system"
    content: str


class UserMessage(BaseModel):
    """A line of user input."""

    role: Literal["user"] = "user"
    content: str


class AssistantMessage(BaseModel):
    """Assistant text, optionally announcing tool calls."""

    role: Literal["assistant"] = "assistant"
    content: str = ""
    tool_calls: list[ToolCall] = Field(default_factory=list)


class ToolMessage(BaseModel):
    """The result of a tool call, fed back to the model."""

    role: Literal["tool"] = "tool"
    tool_call_id: str
    content: str
    is_error: bool = False


ConversationMessage = Annotated[
    SystemMessage | UserMessage | AssistantMessage | ToolMessage,
    Field(discriminator="role"),
]
