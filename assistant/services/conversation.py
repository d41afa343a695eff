"""Streaming conversation loop with tool calling and bounded history."""

from enum import StrEnum
from typing import Protocol

from cuid2 import cuid_wrapper

from assistant.clients.anthropic import AnthropicClient, to_anthropic_messages
from assistant.exceptions import ModelCallError
from assistant.models.llm import (
    AgentLoopResult,
    LLMMessage,
    StreamFragment,
    TextBlock,
    ToolCallRequest,
    ToolCallResult,
)
from assistant.models.messages import AssistantMessage, ToolCall, ToolMessage
from assistant.services.history import MessageHistory
from assistant.services.llm import LLMService, to_anthropic_tools
from assistant.tools.registry import ToolsRegistry
from assistant.utils.logging import get_logger

logger = get_logger(__name__)

cuid = cuid_wrapper()


class TurnState(StrEnum):
    """Where the conversation loop is within a user turn."""

    AWAITING_INPUT = "awaiting_input"
    STREAMING_RESPONSE = "streaming_response"
    TOOL_CALL_PENDING = "tool_call_pending"
    TURN_COMPLETE = "turn_complete"


class ConversationRenderer(Protocol):
    """Output surface for a conversation."""

    def assistant_delta(self, text: str) -> None: ...

    def assistant_done(self) -> None: ...

    def tool_started(self, call: ToolCallRequest) -> None: ...

    def tool_finished(self, result: ToolCallResult) -> None: ...

    def error(self, message: str) -> None: ...


class StreamAccumulator:
    """Per-turn accumulation state for a streamed model reply.

    Fragments must be added in arrival order: argument text is only
    meaningful once every fragment for a call has been concatenated.
    """

    def __init__(self):
        self._text: list[str] = []
        self._order: list[int] = []
        self._names: dict[int, str] = {}
        self._ids: dict[int, str] = {}
        self._arguments: dict[int, list[str]] = {}
        self.stop_reason: str | None = None

    def add(self, fragment: StreamFragment) -> None:
        if fragment.content:
            self._text.append(fragment.content)

        if fragment.stop_reason:
            self.stop_reason = fragment.stop_reason

        if not fragment.is_tool_fragment and fragment.tool_call_id is None:
            return

        index = fragment.index
        if index not in self._order:
            self._order.append(index)

        # First non-empty name wins
        if fragment.tool_name and not self._names.get(index):
            self._names[index] = fragment.tool_name
        if fragment.tool_call_id and index not in self._ids:
            self._ids[index] = fragment.tool_call_id
        if fragment.arguments:
            self._arguments.setdefault(index, []).append(fragment.arguments)

    @property
    def text(self) -> str:
        return "".join(self._text)

    def arguments(self, index: int) -> str:
        return "".join(self._arguments.get(index, []))

    def completed_calls(self) -> list[ToolCallRequest]:
        """Calls with both a name and argument text, in discovery order."""
        calls = []
        for index in self._order:
            name = self._names.get(index)
            arguments = self.arguments(index)
            if name and arguments:
                calls.append(
                    ToolCallRequest(index=index, id=self._ids.get(index) or cuid(), name=name, arguments=arguments)
                )
        return calls

    def first_call(self) -> ToolCallRequest | None:
        """The call to act on. Any further calls of the turn are dropped."""
        calls = self.completed_calls()
        if not calls:
            return None
        if len(calls) > 1:
            dropped = ", ".join(call.name for call in calls[1:])
            logger.warning(f"Model requested {len(calls)} tool calls; only {calls[0].name} runs, dropped: {dropped}")
        return calls[0]


class ConversationLoop:
    """Drives one interactive session against a streaming model.

    After a successful tool call the result is fed back to the model for a
    further turn; this repeats until the model answers without a tool call or
    ``max_turns`` model turns have run for the current user input.
    """

    def __init__(
        self,
        client: AnthropicClient,
        tools: ToolsRegistry,
        history: MessageHistory,
        renderer: ConversationRenderer,
        max_turns: int = 10,
    ):
        self.client = client
        self.tools = tools
        self.history = history
        self.renderer = renderer
        self.max_turns = max_turns
        self.state = TurnState.AWAITING_INPUT
        self._anthropic_tools = to_anthropic_tools(tools.declarations())

    async def handle_user_input(self, text: str) -> None:
        """Run every model turn needed to answer one line of user input."""
        try:
            self.client.validate_message_tokens(text)
        except ValueError as e:
            self.renderer.error(str(e))
            return

        self.history.add_user(text)

        for turn in range(1, self.max_turns + 1):
            self.history.trim()
            self.state = TurnState.STREAMING_RESPONSE
            logger.debug(f"Model turn {turn}/{self.max_turns}, history length {len(self.history)}")

            accumulator = StreamAccumulator()
            try:
                await self._stream_turn(accumulator)
            except ModelCallError as e:
                # Partial output of a failed turn never reaches the history
                logger.error(f"Model turn failed: {e}")
                self.renderer.error(str(e))
                self.state = TurnState.AWAITING_INPUT
                return

            call = accumulator.first_call()
            if call is None:
                self._complete_turn(accumulator)
                return

            self.state = TurnState.TOOL_CALL_PENDING
            if not await self._run_tool_call(call, accumulator):
                self.state = TurnState.AWAITING_INPUT
                return

        logger.warning(f"Stopped after {self.max_turns} model turns for one input")
        self.renderer.error(f"Stopped after {self.max_turns} model turns without a final answer.")
        self.state = TurnState.AWAITING_INPUT

    async def _stream_turn(self, accumulator: StreamAccumulator) -> None:
        system_prompt, messages = to_anthropic_messages(self.history.messages)
        async for fragment in self.client.stream_message(messages, system_prompt, self._anthropic_tools):
            accumulator.add(fragment)
            if fragment.content:
                self.renderer.assistant_delta(fragment.content)

    def _complete_turn(self, accumulator: StreamAccumulator) -> None:
        self.state = TurnState.TURN_COMPLETE
        text = accumulator.text
        if text:
            self.history.add_assistant(AssistantMessage(content=text))
        self.renderer.assistant_done()
        self.state = TurnState.AWAITING_INPUT

    async def _run_tool_call(self, call: ToolCallRequest, accumulator: StreamAccumulator) -> bool:
        """Dispatch a call and record it. Returns False when the dispatch failed."""
        if accumulator.text:
            self.renderer.assistant_done()
        self.renderer.tool_started(call)
        result = await self.tools.dispatch(call)
        self.renderer.tool_finished(result)

        if result.is_error:
            # Failed dispatches leave no announcement or result behind
            if accumulator.text:
                self.history.add_assistant(AssistantMessage(content=accumulator.text))
            return False

        self.history.add_assistant(
            AssistantMessage(
                content=accumulator.text,
                tool_calls=[ToolCall(id=call.id, name=call.name, input=result.arguments)],
            )
        )
        self.history.add_tool_result(ToolMessage(tool_call_id=call.id, content=result.output))
        return True


class AssistantRunSession:
    """Non-streaming assistant that runs every tool call the model asks for."""

    def __init__(self, llm: LLMService, tools: ToolsRegistry, system_prompt: str, max_turns: int = 10):
        self.llm = llm
        self.tools = tools
        self.system_prompt = system_prompt
        self.max_turns = max_turns
        self.messages: list[LLMMessage] = []

    async def ask(self, text: str) -> AgentLoopResult:
        """Send one user message and run the model until it answers.

        Raises:
            ModelCallError: If a model request fails; the session is left unchanged
        """
        messages = [*self.messages, LLMMessage(role="user", content=[TextBlock(text=text)])]
        result = await self.llm.execute_agent_loop(messages, self.system_prompt, self.tools, max_turns=self.max_turns)

        logger.info(f"Assistant run finished in {result.turns} turn(s) with {len(result.tool_results)} tool call(s)")
        if result.stop_reason != "max_turns":
            self.messages = result.messages
        return result
