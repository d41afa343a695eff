"""Tests for the LLM service and the non-streaming assistant run."""

from unittest.mock import AsyncMock, Mock

import pytest

from assistant.clients.anthropic import AnthropicResponse, TokenUsage
from assistant.exceptions import ModelCallError
from assistant.models.llm import LLMMessage, LLMToolDefinition, TextBlock, ToolResultBlock, ToolUseBlock
from assistant.services.concerts import InMemoryConcertService
from assistant.services.conversation import AssistantRunSession
from assistant.services.llm import LLMService, to_anthropic_tools
from assistant.tools.registry import create_concert_registry


def response(content, stop_reason="end_turn", input_tokens=10, output_tokens=5) -> AnthropicResponse:
    return AnthropicResponse(
        content=content,
        stop_reason=stop_reason,
        usage=TokenUsage(input_tokens=input_tokens, output_tokens=output_tokens, total_tokens=input_tokens + output_tokens),
        model="claude-test",
    )


@pytest.fixture
def client():
    """Anthropic client with a mocked create_message."""
    client = Mock()
    client.create_message = AsyncMock()
    return client


@pytest.fixture
def registry():
    """Concert tools over the default seed data."""
    return create_concert_registry(InMemoryConcertService())


class TestCompletion:
    """Tests for single-prompt completions."""

    @pytest.mark.asyncio
    async def test_complete_text_strips(self, client):
        """Test the reply text is trimmed."""
        client.create_message.return_value = response([TextBlock(text="  A summary.\n")])
        service = LLMService(client)

        assert await service.complete_text("prompt", "system", max_tokens=400) == "A summary."
        kwargs = client.create_message.await_args.kwargs
        assert kwargs["system_prompt"] == "system"
        assert kwargs["max_tokens"] == 400
        assert kwargs["messages"][0].content == "prompt"

    @pytest.mark.asyncio
    async def test_complete_text_without_text_blocks(self, client):
        """Test a reply with no text is empty."""
        client.create_message.return_value = response([])

        assert await LLMService(client).complete_text("prompt", "system") == ""

    def test_last_tool_is_cached(self):
        """Test only the final tool declaration carries cache control."""
        tools = to_anthropic_tools(
            [
                LLMToolDefinition(name="A", description="a", input_schema={"type": "object"}),
                LLMToolDefinition(name="B", description="b", input_schema={"type": "object"}),
            ]
        )

        assert tools[0].cache_control is None
        assert tools[1].cache_control.type == "ephemeral"


class TestAgentLoop:
    """Tests for the multi-call agent loop."""

    @pytest.mark.asyncio
    async def test_every_tool_call_is_dispatched(self, client, registry):
        """Test all calls of one turn run and go back together."""
        client.create_message.side_effect = [
            response(
                [
                    TextBlock(text="Searching both cities."),
                    ToolUseBlock(id="t1", name="SearchConcerts", input={"band": "Iron Maiden", "location": "Zurich"}),
                    ToolUseBlock(id="t2", name="SearchConcerts", input={"band": "Iron Maiden", "location": "Basel"}),
                ],
                stop_reason="tool_use",
            ),
            response([TextBlock(text="Three concerts found.")], input_tokens=20, output_tokens=7),
        ]
        messages = [LLMMessage(role="user", content=[TextBlock(text="Iron Maiden in Zurich or Basel?")])]

        result = await LLMService(client).execute_agent_loop(messages, "system", registry)

        assert result.text == "Three concerts found."
        assert result.turns == 2
        assert [tool_result.tool_call_id for tool_result in result.tool_results] == ["t1", "t2"]
        assert all(not tool_result.is_error for tool_result in result.tool_results)
        assert result.usage.input_tokens == 30
        assert result.usage.output_tokens == 12

        tool_message = result.messages[2]
        assert tool_message.role == "user"
        assert [block.tool_use_id for block in tool_message.content] == ["t1", "t2"]
        assert all(isinstance(block, ToolResultBlock) for block in tool_message.content)
        assert result.messages[-1].role == "assistant"

        second_call = client.create_message.await_args_list[1].kwargs
        assert [tool.name for tool in second_call["tools"]] == ["SearchConcerts", "BookTicket"]
        assert len(second_call["messages"]) == 3

    @pytest.mark.asyncio
    async def test_failed_call_is_reported_to_model(self, client, registry):
        """Test dispatch failures become error tool results."""
        client.create_message.side_effect = [
            response([ToolUseBlock(id="t1", name="BookTicket", input={"id": 42})], stop_reason="tool_use"),
            response([TextBlock(text="That concert does not exist.")]),
        ]

        result = await LLMService(client).execute_agent_loop(
            [LLMMessage(role="user", content="Book concert 42")], "system", registry
        )

        assert result.tool_results[0].is_error is True
        assert result.messages[2].content[0].is_error is True
        assert "No such concert!" in result.messages[2].content[0].content

    @pytest.mark.asyncio
    async def test_max_turns(self, client, registry):
        """Test the loop stops with an apology after max_turns."""
        client.create_message.return_value = response(
            [ToolUseBlock(id="t1", name="BookTicket", input={"id": 1})], stop_reason="tool_use"
        )

        result = await LLMService(client).execute_agent_loop(
            [LLMMessage(role="user", content="Book")], "system", registry, max_turns=2
        )

        assert result.stop_reason == "max_turns"
        assert result.turns == 2
        assert client.create_message.await_count == 2
        assert "maximum number of turns" in result.text


class TestAssistantRunSession:
    """Tests for the assistant run session."""

    @pytest.mark.asyncio
    async def test_history_carries_over(self, client, registry):
        """Test the second question is sent with the first exchange."""
        client.create_message.side_effect = [
            response([TextBlock(text="Hello!")]),
            response([TextBlock(text="Goodbye!")]),
        ]
        session = AssistantRunSession(LLMService(client), registry, "system")

        await session.ask("Hi")
        result = await session.ask("Bye")

        assert result.text == "Goodbye!"
        sent = client.create_message.await_args_list[1].kwargs["messages"]
        assert [message.role for message in sent] == ["user", "assistant", "user"]
        assert len(session.messages) == 4

    @pytest.mark.asyncio
    async def test_cut_off_tool_call_is_not_recorded(self, client, registry):
        """Test a reply cut off mid tool call does not poison later requests."""
        client.create_message.side_effect = [
            response(
                [
                    TextBlock(text="Let me search."),
                    ToolUseBlock(id="t1", name="SearchConcerts", input={"band": "Iron Maiden"}),
                ],
                stop_reason="max_tokens",
            ),
            response([TextBlock(text="You're welcome!")]),
        ]
        session = AssistantRunSession(LLMService(client), registry, "system")

        first = await session.ask("Iron Maiden in Zurich?")
        await session.ask("Thanks")

        assert first.text == "Let me search."
        assert first.tool_results == []
        sent = client.create_message.await_args_list[1].kwargs["messages"]
        assert [message.role for message in sent] == ["user", "assistant", "user"]
        assert not any(
            isinstance(block, ToolUseBlock)
            for message in sent
            if isinstance(message.content, list)
            for block in message.content
        )

    @pytest.mark.asyncio
    async def test_model_failure_leaves_session_unchanged(self, client, registry):
        """Test a failed request does not record the question."""
        client.create_message.side_effect = ModelCallError("Model request failed: overloaded")
        session = AssistantRunSession(LLMService(client), registry, "system")

        with pytest.raises(ModelCallError):
            await session.ask("Hi")

        assert session.messages == []

    @pytest.mark.asyncio
    async def test_max_turns_is_not_recorded(self, client, registry):
        """Test a run cut off by max_turns is not kept."""
        client.create_message.return_value = response(
            [ToolUseBlock(id="t1", name="BookTicket", input={"id": 1})], stop_reason="tool_use"
        )
        session = AssistantRunSession(LLMService(client), registry, "system", max_turns=1)

        result = await session.ask("Book forever")

        assert result.stop_reason == "max_turns"
        assert session.messages == []
