"""LLM service for high-level AI operations like agent loops."""

import json
from typing import TYPE_CHECKING

from assistant.clients.anthropic import (
    AnthropicClient,
    AnthropicMessage,
    AnthropicResponse,
    AnthropicTool,
    CacheControl,
)
from assistant.models.llm import (
    AgentLoopResult,
    ContentBlock,
    LLMMessage,
    LLMResponse,
    LLMToolDefinition,
    LLMUsage,
    TextBlock,
    ToolCallRequest,
    ToolCallResult,
    ToolResultBlock,
    ToolUseBlock,
)
from assistant.utils.logging import get_logger

if TYPE_CHECKING:
    from assistant.tools.registry import ToolsRegistry

logger = get_logger(__name__)


def to_anthropic_tools(declarations: list[LLMToolDefinition]) -> list[AnthropicTool]:
    """Convert tool declarations, marking the last one for prompt caching."""
    anthropic_tools = []
    for i, declaration in enumerate(declarations):
        cache_control = CacheControl(type="ephemeral", ttl="5m") if i == len(declarations) - 1 else None
        anthropic_tools.append(
            AnthropicTool(
                name=declaration.name,
                description=declaration.description,
                input_schema=declaration.input_schema,
                cache_control=cache_control,
            )
        )
    return anthropic_tools


class LLMService:
    """High-level LLM service for one-shot completions and assistant runs."""

    def __init__(self, client: AnthropicClient):
        """Initialize LLM service.

        Args:
            client: Anthropic client
        """
        self.client = client

    def _convert_anthropic_response(self, anthropic_response: AnthropicResponse) -> LLMResponse:
        """Convert Anthropic response to provider-agnostic LLM response."""
        usage = None
        if anthropic_response.usage:
            usage = LLMUsage(
                input_tokens=anthropic_response.usage.input_tokens,
                output_tokens=anthropic_response.usage.output_tokens,
                total_tokens=anthropic_response.usage.total_tokens,
                cache_creation_input_tokens=anthropic_response.usage.cache_creation_input_tokens,
                cache_read_input_tokens=anthropic_response.usage.cache_read_input_tokens,
            )

        return LLMResponse(
            content=anthropic_response.content,
            stop_reason=anthropic_response.stop_reason,
            usage=usage,
            model=anthropic_response.model,
            provider="anthropic",
        )

    async def complete(self, prompt: str, system_prompt: str, **kwargs) -> LLMResponse:
        """Send a single user prompt without tools."""
        response = await self.client.create_message(
            messages=[AnthropicMessage(role="user", content=prompt)],
            system_prompt=system_prompt,
            **kwargs,
        )
        return self._convert_anthropic_response(response)

    async def complete_text(self, prompt: str, system_prompt: str, **kwargs) -> str:
        """Send a single user prompt and return the trimmed reply text ("" if none)."""
        response = await self.complete(prompt, system_prompt, **kwargs)
        return response.text.strip()

    async def execute_agent_loop(
        self,
        messages: list[LLMMessage],
        system_prompt: str,
        tools: "ToolsRegistry",
        max_turns: int = 10,
        **kwargs,
    ) -> AgentLoopResult:
        """Run the model until it stops requesting tools.

        Every tool call of a turn is dispatched, in order, and all results go
        back to the model in one message.

        Args:
            messages: Initial conversation messages
            system_prompt: System prompt
            tools: Registry that declares and dispatches the tools
            max_turns: Maximum number of model turns
            **kwargs: Additional parameters for the Anthropic API

        Returns:
            Structured result with conversation history and metadata
        """
        declarations = tools.declarations()
        logger.info(
            f"Starting agent loop with {len(messages)} initial messages, {len(declarations)} tools, "
            f"max_turns: {max_turns}"
        )
        current_messages = messages.copy()
        anthropic_tools = to_anthropic_tools(declarations)
        dispatched: list[ToolCallResult] = []
        turns = 0

        usage = LLMUsage()

        while turns < max_turns:
            turns += 1
            logger.debug(f"Agent loop turn {turns}/{max_turns}")

            anthropic_messages = [AnthropicMessage(role=msg.role, content=msg.content) for msg in current_messages]
            response = self._convert_anthropic_response(
                await self.client.create_message(
                    messages=anthropic_messages,
                    system_prompt=system_prompt,
                    tools=anthropic_tools,
                    **kwargs,
                )
            )
            if response.usage:
                usage.add(response.usage)

            logger.debug(f"LLM response - Stop reason: {response.stop_reason}")

            tool_use_blocks = [block for block in response.content if isinstance(block, ToolUseBlock)]
            if response.stop_reason == "tool_use" and tool_use_blocks:
                logger.info(f"LLM wants to use {len(tool_use_blocks)} tools")
                current_messages.append(LLMMessage(role="assistant", content=response.content))

                tool_results: list[ContentBlock] = []
                for index, tool_block in enumerate(tool_use_blocks):
                    result = await tools.dispatch(
                        ToolCallRequest(
                            index=index,
                            id=tool_block.id,
                            name=tool_block.name,
                            arguments=json.dumps(tool_block.input),
                        )
                    )
                    dispatched.append(result)
                    tool_results.append(
                        ToolResultBlock(
                            tool_use_id=tool_block.id,
                            content=result.output,
                            is_error=result.is_error,
                        )
                    )

                current_messages.append(LLMMessage(role="user", content=tool_results))
                continue

            content = response.content
            if tool_use_blocks:
                # Calls without a tool_use stop (e.g. cut off by max_tokens) would never get results
                logger.warning(
                    f"Dropping {len(tool_use_blocks)} tool call(s) from a reply that stopped with "
                    f"{response.stop_reason}"
                )
                content = [block for block in content if not isinstance(block, ToolUseBlock)]

            logger.info(f"Agent loop completed successfully in {turns} turns")
            if content:
                current_messages.append(LLMMessage(role="assistant", content=content))
            return AgentLoopResult(
                content=content,
                stop_reason=response.stop_reason,
                messages=current_messages,
                turns=turns,
                usage=usage,
                tool_results=dispatched,
            )

        logger.warning(f"Agent loop reached max turns ({max_turns})")
        return AgentLoopResult(
            content=[
                TextBlock(
                    type="text",
                    text=(
                        "I apologize, but our conversation has reached the maximum number of turns. "
                        "Please start a new conversation."
                    ),
                )
            ],
            stop_reason="max_turns",
            messages=current_messages,
            turns=turns,
            usage=usage,
            tool_results=dispatched,
        )
