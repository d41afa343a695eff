"""LLM-related data models and types (provider-agnostic)."""

from dataclasses import dataclass, field
from typing import Any, Literal

from pydantic import BaseModel


# Content block types
class TextBlock(BaseModel):
    """Text content block."""

    type: Literal["text"] = "text"
    text: str

    class Config:
        extra = "ignore"  # Ignore any additional fields from Anthropic


class ToolUseBlock(BaseModel):
    """Tool use content block."""

    type: Literal["tool_use"] = "tool_use"
    id: str
    name: str
    input: dict[str, Any]

    class Config:
        extra = "ignore"


class ToolResultBlock(BaseModel):
    """Tool result content block."""

    type: Literal["tool_result"] = "tool_result"
    tool_use_id: str
    content: str
    is_error: bool = False

    class Config:
        extra = "ignore"


ContentBlock = TextBlock | ToolUseBlock | ToolResultBlock


class LLMMessage(BaseModel):
    """A message for LLM conversation."""

    role: Literal["user", "assistant"]
    content: str | list[ContentBlock]


class LLMToolDefinition(BaseModel):
    """Tool declaration sent to the model alongside the history."""

    name: str
    description: str
    input_schema: dict[str, Any]


@dataclass
class StreamFragment:
    """One incremental piece of a streamed model turn.

    Carries at most one of a content delta, a tool name (with the provider's
    call id) or a tool argument delta. Tool fields are keyed by ``index``,
    the position of the call among the calls of this turn.
    """

    index: int = 0
    content: str | None = None
    tool_call_id: str | None = None
    tool_name: str | None = None
    arguments: str | None = None
    stop_reason: str | None = None

    @property
    def is_tool_fragment(self) -> bool:
        return self.tool_name is not None or self.arguments is not None


@dataclass
class ToolCallRequest:
    """A tool call whose stream has finished and is ready for dispatch."""

    index: int
    id: str
    name: str
    arguments: str


@dataclass
class ToolCallResult:
    """Outcome of dispatching a tool call."""

    tool_call_id: str
    name: str
    output: str
    is_error: bool = False
    arguments: dict[str, Any] = field(default_factory=dict)


@dataclass
class LLMUsage:
    """Token/resource usage information from LLM provider."""

    input_tokens: int = 0
    output_tokens: int = 0
    total_tokens: int = 0

    cache_creation_input_tokens: int = 0
    cache_read_input_tokens: int = 0

    def add(self, other: "LLMUsage") -> None:
        """Accumulate another usage record into this one."""
        self.input_tokens += other.input_tokens
        self.output_tokens += other.output_tokens
        self.total_tokens += other.total_tokens
        self.cache_creation_input_tokens += other.cache_creation_input_tokens
        self.cache_read_input_tokens += other.cache_read_input_tokens


@dataclass
class LLMResponse:
    """Provider-agnostic response from LLM service."""

    content: list[ContentBlock]
    stop_reason: str | None
    usage: LLMUsage | None
    model: str
    provider: str = "anthropic"

    @property
    def text(self) -> str:
        """Concatenated text of all text blocks."""
        return "".join(block.text for block in self.content if isinstance(block, TextBlock))


@dataclass
class AgentLoopResult:
    """Result from executing an agent loop."""

    content: list[ContentBlock]
    stop_reason: str | None
    messages: list[LLMMessage]
    turns: int
    usage: LLMUsage | None
    tool_results: list[ToolCallResult] = field(default_factory=list)

    @property
    def text(self) -> str:
        return "".join(block.text for block in self.content if isinstance(block, TextBlock))
