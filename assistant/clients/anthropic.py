"""Anthropic API client with rate limiting and error handling."""

import asyncio
import json
import time
from collections.abc import AsyncIterator
from dataclasses import dataclass
from typing import Any, Literal

import tiktoken
from anthropic import APIError, AsyncAnthropic
from anthropic.types import ContentBlock as AnthropicContentBlock
from anthropic.types import Message
from limits import parse
from limits.storage import MemoryStorage
from limits.strategies import MovingWindowRateLimiter
from pydantic import BaseModel

from assistant.config import Settings
from assistant.exceptions import ModelCallError
from assistant.models.llm import ContentBlock, StreamFragment, TextBlock, ToolResultBlock, ToolUseBlock
from assistant.models.messages import (
    AssistantMessage,
    ConversationMessage,
    SystemMessage,
    ToolMessage,
    UserMessage,
)
from assistant.utils.logging import get_logger

logger = get_logger(__name__)


class CacheControl(BaseModel):
    """Cache control configuration for prompt caching."""

    type: Literal["ephemeral"] = "ephemeral"
    ttl: Literal["5m", "1h"] = "5m"


class AnthropicMessage(BaseModel):
    """Message format for Anthropic API."""

    role: Literal["user", "assistant"]
    content: str | list[ContentBlock]


class AnthropicTool(BaseModel):
    """Tool definition for Anthropic API."""

    name: str
    description: str
    input_schema: dict[str, Any]
    cache_control: CacheControl | None = None


@dataclass
class TokenUsage:
    """Token usage information from Anthropic API."""

    input_tokens: int = 0
    output_tokens: int = 0
    total_tokens: int = 0

    cache_creation_input_tokens: int = 0
    cache_read_input_tokens: int = 0


@dataclass
class AnthropicResponse:
    """Structured response from Anthropic API."""

    content: list[ContentBlock]
    stop_reason: str | None
    usage: TokenUsage
    model: str


@dataclass
class AnthropicConfig:
    """Configuration for Anthropic API client."""

    model: str
    max_tokens: int = 1000
    temperature: float = 0.0
    top_p: float | None = None
    max_retries: int = 0

    # Token limits for validation and truncation
    max_message_tokens: int = 2000  # Maximum tokens per individual message
    max_conversation_tokens: int = 200000
    token_headroom: int = 2000  # Reserve tokens for response

    @classmethod
    def from_settings(cls, settings: Settings) -> "AnthropicConfig":
        return cls(
            model=settings.model,
            max_tokens=settings.max_tokens,
            temperature=settings.temperature,
            top_p=settings.top_p,
            max_retries=settings.max_retries,
        )


class AnthropicRateLimiter:
    """Client-side pacing using the limits library. Waits, never retries."""

    def __init__(self, requests_per_minute: int = 50, tokens_per_minute: int = 40_000):
        """Initialize rate limiter.

        Args:
            requests_per_minute: Maximum requests per minute
            tokens_per_minute: Maximum tokens per minute
        """
        self.storage = MemoryStorage()
        self.limiter = MovingWindowRateLimiter(self.storage)

        self.request_limit = parse(f"{requests_per_minute}/minute")
        self.token_limit = parse(f"{tokens_per_minute}/minute")

    async def check_rate_limit(self, estimated_tokens: int, identifier: str = "anthropic") -> None:
        """Wait until the request fits within the request and token windows."""
        logger.debug(f"Checking rate limit for {estimated_tokens} tokens, identifier: {identifier}")

        if not self.limiter.hit(self.request_limit, identifier):
            await self._wait_for_window(self.request_limit, identifier, "Request")

        token_identifier = f"{identifier}_tokens"
        cost = max(1, min(estimated_tokens, self.token_limit.amount))
        if not self.limiter.hit(self.token_limit, token_identifier, cost=cost):
            await self._wait_for_window(self.token_limit, token_identifier, "Token")

    async def _wait_for_window(self, limit, identifier: str, label: str) -> None:
        window_stats = self.limiter.get_window_stats(limit, identifier)
        if window_stats:
            # reset_time is epoch seconds
            wait_time = max(0.0, window_stats.reset_time - time.time())
            if wait_time > 0:
                logger.warning(f"{label} rate limit exceeded, waiting {wait_time:.2f}s")
                await asyncio.sleep(wait_time)


def to_anthropic_messages(history: list[ConversationMessage]) -> tuple[str, list[AnthropicMessage]]:
    """Convert conversation history into a system prompt and Anthropic messages.

    Messages before the first user message are dropped (the API requires the
    conversation to open with a user turn), as are tool results whose tool
    call is no longer in the history. Consecutive messages with the same role
    are merged.
    """
    system_parts: list[str] = []
    converted: list[AnthropicMessage] = []
    announced_calls: set[str] = set()
    started = False

    for message in history:
        if isinstance(message, SystemMessage):
            system_parts.append(message.content)
            continue

        if not started:
            if not isinstance(message, UserMessage):
                continue
            started = True

        blocks: list[ContentBlock] = []
        role: Literal["user", "assistant"]

        if isinstance(message, UserMessage):
            role = "user"
            blocks.append(TextBlock(text=message.content))
        elif isinstance(message, AssistantMessage):
            role = "assistant"
            if message.content:
                blocks.append(TextBlock(text=message.content))
            for call in message.tool_calls:
                announced_calls.add(call.id)
                blocks.append(ToolUseBlock(id=call.id, name=call.name, input=call.input))
        elif isinstance(message, ToolMessage):
            if message.tool_call_id not in announced_calls:
                logger.debug(f"Dropping orphaned tool result for call {message.tool_call_id}")
                continue
            role = "user"
            blocks.append(
                ToolResultBlock(
                    tool_use_id=message.tool_call_id,
                    content=message.content,
                    is_error=message.is_error,
                )
            )
        else:
            continue

        if not blocks:
            continue

        if converted and converted[-1].role == role and isinstance(converted[-1].content, list):
            converted[-1].content.extend(blocks)
        else:
            converted.append(AnthropicMessage(role=role, content=blocks))

    return "\n\n".join(system_parts), converted


class AnthropicClient:
    """Low-level Anthropic API client with rate limiting and error handling."""

    api_key: str
    client: AsyncAnthropic
    config: AnthropicConfig
    rate_limiter: AnthropicRateLimiter

    def __init__(
        self,
        api_key: str,
        config: AnthropicConfig,
        base_url: str | None = None,
        client: AsyncAnthropic | None = None,
        rate_limiter: AnthropicRateLimiter | None = None,
    ):
        """Initialize Anthropic client.

        Args:
            api_key: Anthropic API key
            config: Client configuration
            base_url: Optional endpoint override
            client: Preconfigured SDK client (mainly for tests)
            rate_limiter: Shared rate limiter
        """
        if not api_key:
            raise ValueError("An Anthropic API key is required")

        self.api_key = api_key
        self.config = config
        self.client = client or AsyncAnthropic(
            api_key=api_key,
            base_url=base_url,
            max_retries=config.max_retries,
        )
        self.rate_limiter = rate_limiter or AnthropicRateLimiter()
        self._tokenizer: tiktoken.Encoding | None = None
        self._tokenizer_loaded = False

    @classmethod
    def from_settings(cls, settings: Settings) -> "AnthropicClient":
        return cls(
            api_key=settings.api_key,
            config=AnthropicConfig.from_settings(settings),
            base_url=settings.base_url,
        )

    @property
    def tokenizer(self) -> tiktoken.Encoding | None:
        """Tokenizer used for estimates, loaded on first use."""
        if not self._tokenizer_loaded:
            self._tokenizer_loaded = True
            try:
                # Close approximation for Claude
                self._tokenizer = tiktoken.encoding_for_model("gpt-4")
            except Exception as e:
                logger.warning(f"Tokenizer unavailable, falling back to character estimate: {e}")
                self._tokenizer = None
        return self._tokenizer

    @tokenizer.setter
    def tokenizer(self, value) -> None:
        self._tokenizer = value
        self._tokenizer_loaded = True

    async def create_message(
        self,
        messages: list[AnthropicMessage],
        system_prompt: str,
        tools: list[AnthropicTool] | None = None,
        **kwargs,
    ) -> AnthropicResponse:
        """Create a message with the Anthropic API.

        Args:
            messages: Conversation history
            system_prompt: System prompt
            tools: Available tools
            **kwargs: Overrides for model, max_tokens, temperature, top_p

        Returns:
            Structured Anthropic response

        Raises:
            ModelCallError: If the request fails
        """
        request_params = await self._prepare_request(messages, system_prompt, tools, **kwargs)

        logger.debug(f"Making Anthropic API call with model: {request_params['model']}")
        try:
            response: Message = await self.client.messages.create(**request_params)
        except APIError as e:
            logger.error(f"Anthropic request failed: {e}")
            raise ModelCallError(f"Model request failed: {e}") from e

        usage = TokenUsage()
        if response.usage:
            usage = TokenUsage(
                input_tokens=response.usage.input_tokens,
                output_tokens=response.usage.output_tokens,
                total_tokens=response.usage.input_tokens + response.usage.output_tokens,
                cache_creation_input_tokens=response.usage.cache_creation_input_tokens or 0,
                cache_read_input_tokens=response.usage.cache_read_input_tokens or 0,
            )

        logger.debug(
            f"Response received - Stop reason: {response.stop_reason}, Content blocks: {len(response.content)}"
        )

        return AnthropicResponse(
            content=self._convert_content_blocks(response.content),
            stop_reason=response.stop_reason,
            usage=usage,
            model=response.model,
        )

    async def stream_message(
        self,
        messages: list[AnthropicMessage],
        system_prompt: str,
        tools: list[AnthropicTool] | None = None,
        **kwargs,
    ) -> AsyncIterator[StreamFragment]:
        """Stream a message, yielding fragments in arrival order.

        Raises:
            ModelCallError: If the request or the stream fails
        """
        request_params = await self._prepare_request(messages, system_prompt, tools, **kwargs)

        logger.debug(f"Opening Anthropic stream with model: {request_params['model']}")
        call_indexes: dict[int, int] = {}
        try:
            stream = await self.client.messages.create(**request_params, stream=True)
            async for event in stream:
                fragment = self.convert_stream_event(event, call_indexes)
                if fragment is not None:
                    yield fragment
        except APIError as e:
            logger.error(f"Anthropic stream failed: {e}")
            raise ModelCallError(f"Model stream failed: {e}") from e

    @staticmethod
    def convert_stream_event(event: Any, call_indexes: dict[int, int]) -> StreamFragment | None:
        """Translate one raw stream event into a fragment.

        ``call_indexes`` maps content block indexes to tool call indexes and is
        filled in as tool_use blocks open.
        """
        event_type = getattr(event, "type", None)

        if event_type == "content_block_start":
            block = event.content_block
            if block.type == "tool_use":
                call_index = len(call_indexes)
                call_indexes[event.index] = call_index
                return StreamFragment(index=call_index, tool_call_id=block.id, tool_name=block.name)
            if block.type == "text" and getattr(block, "text", ""):
                return StreamFragment(content=block.text)
            return None

        if event_type == "content_block_delta":
            delta = event.delta
            if delta.type == "text_delta":
                return StreamFragment(content=delta.text)
            if delta.type == "input_json_delta":
                call_index = call_indexes.get(event.index, event.index)
                return StreamFragment(index=call_index, arguments=delta.partial_json)
            return None

        if event_type == "message_delta":
            return StreamFragment(stop_reason=getattr(event.delta, "stop_reason", None))

        return None

    async def _prepare_request(
        self,
        messages: list[AnthropicMessage],
        system_prompt: str,
        tools: list[AnthropicTool] | None,
        **kwargs,
    ) -> dict[str, Any]:
        truncated_messages = self.truncate_conversation(messages, system_prompt, tools)

        estimated_tokens = self._estimate_tokens(truncated_messages, system_prompt)
        logger.debug(f"Estimated tokens: {estimated_tokens}")
        await self.rate_limiter.check_rate_limit(estimated_tokens)

        logger.debug(f"Creating message with {len(truncated_messages)} messages, {len(tools) if tools else 0} tools")

        request_params: dict[str, Any] = {
            "model": kwargs.get("model", self.config.model),
            "max_tokens": kwargs.get("max_tokens", self.config.max_tokens),
            "temperature": kwargs.get("temperature", self.config.temperature),
            "system": system_prompt,
            "messages": [msg.model_dump(exclude_none=True) for msg in truncated_messages],
        }
        top_p = kwargs.get("top_p", self.config.top_p)
        if top_p is not None:
            request_params["top_p"] = top_p
        if tools:
            request_params["tools"] = [tool.model_dump(exclude_none=True) for tool in tools]
        return request_params

    def _convert_content_blocks(self, anthropic_content: list[AnthropicContentBlock]) -> list[ContentBlock]:
        """Convert Anthropic content blocks to our ContentBlock types."""
        converted_blocks: list[ContentBlock] = []
        for block in anthropic_content:
            block_dict = block.model_dump() if hasattr(block, "model_dump") else dict(vars(block))

            if block_dict.get("type") == "text":
                converted_blocks.append(TextBlock.model_validate(block_dict))
            elif block_dict.get("type") == "tool_use":
                converted_blocks.append(ToolUseBlock.model_validate(block_dict))
            else:
                logger.warning(f"Unknown content block type: {block_dict.get('type')}")

        return converted_blocks

    @staticmethod
    def _message_text(message: AnthropicMessage) -> str:
        if isinstance(message.content, str):
            return message.content

        parts: list[str] = []
        for block in message.content:
            if isinstance(block, TextBlock):
                parts.append(block.text)
            elif isinstance(block, ToolResultBlock):
                parts.append(block.content)
            elif isinstance(block, ToolUseBlock):
                parts.append(block.name + json.dumps(block.input))
        return "".join(parts)

    def _estimate_tokens(self, messages: list[AnthropicMessage], system_prompt: str) -> int:
        """Estimate token count for rate limiting."""
        text_content = system_prompt + "".join(self._message_text(message) for message in messages)
        return self.estimate_message_tokens(text_content)

    def estimate_message_tokens(self, message: str) -> int:
        """Estimate token count for a single message.

        Args:
            message: Message content

        Returns:
            Estimated token count
        """
        tokenizer = self.tokenizer
        if tokenizer is None:
            # Roughly 4 characters per token
            return len(message) // 4
        return len(tokenizer.encode(message))

    def validate_message_tokens(self, message: str) -> None:
        """Validate that a message doesn't exceed token limits.

        Args:
            message: Message content

        Raises:
            ValueError: If message exceeds token limit
        """
        token_count = self.estimate_message_tokens(message)
        if token_count > self.config.max_message_tokens:
            raise ValueError(
                f"Message exceeds token limit: {token_count} tokens > {self.config.max_message_tokens} limit"
            )

    def truncate_conversation(
        self, messages: list[AnthropicMessage], system_prompt: str, tools: list[AnthropicTool] | None = None
    ) -> list[AnthropicMessage]:
        """Truncate conversation from the beginning to fit within token limits.

        The result always opens with a user message that is not a bare tool result.

        Args:
            messages: Conversation messages
            system_prompt: System prompt
            tools: Available tools

        Returns:
            Truncated message list that fits within limits
        """
        if not messages:
            return messages

        available_tokens = self.config.max_conversation_tokens - self.config.token_headroom

        system_tokens = self.estimate_message_tokens(system_prompt)

        tool_tokens = 0
        if tools:
            tool_content = "".join(tool.name + tool.description + str(tool.input_schema) for tool in tools)
            tool_tokens = self.estimate_message_tokens(tool_content)

        available_tokens -= system_tokens + tool_tokens

        truncated_messages: list[AnthropicMessage] = []
        current_tokens = 0

        for message in reversed(messages):
            message_tokens = self.estimate_message_tokens(self._message_text(message))

            if current_tokens + message_tokens <= available_tokens:
                truncated_messages.insert(0, message)
                current_tokens += message_tokens
            else:
                break

        if len(truncated_messages) < len(messages):
            while truncated_messages and not self._opens_conversation(truncated_messages[0]):
                truncated_messages.pop(0)
            logger.warning(
                f"Truncated conversation from {len(messages)} to {len(truncated_messages)} messages "
                f"to fit within {available_tokens} token limit"
            )

        return truncated_messages

    @staticmethod
    def _opens_conversation(message: AnthropicMessage) -> bool:
        if message.role != "user":
            return False
        if isinstance(message.content, str):
            return True
        return not any(isinstance(block, ToolResultBlock) for block in message.content)
