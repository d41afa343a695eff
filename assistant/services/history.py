"""Bounded conversation history."""

from collections.abc import Iterator

from assistant.models.messages import (
    AssistantMessage,
    ConversationMessage,
    SystemMessage,
    ToolMessage,
    UserMessage,
)
from assistant.utils.logging import get_logger

logger = get_logger(__name__)


class MessageHistory:
    """Sliding-window message log that always keeps the system instruction first."""

    def __init__(self, system_prompt: str, limit: int = 15, seed: list[ConversationMessage] | None = None):
        """Initialize history.

        Args:
            system_prompt: Instruction kept at index 0 for the whole session
            limit: Maximum number of messages, system message included
            seed: Messages appended after the system instruction (e.g. an intro)
        """
        if limit < 2:
            raise ValueError("History limit must leave room for at least one message after the system prompt")

        self.limit = limit
        self._messages: list[ConversationMessage] = [SystemMessage(content=system_prompt)]
        for message in seed or []:
            self.append(message)

    @property
    def system_prompt(self) -> str:
        return self._messages[0].content

    @property
    def messages(self) -> list[ConversationMessage]:
        """A copy of the current history."""
        return list(self._messages)

    def __len__(self) -> int:
        return len(self._messages)

    def __iter__(self) -> Iterator[ConversationMessage]:
        return iter(self._messages)

    def append(self, message: ConversationMessage) -> None:
        if isinstance(message, SystemMessage):
            raise ValueError("Only the initial system instruction may use the system role")
        self._messages.append(message)

    def add_user(self, content: str) -> None:
        self.append(UserMessage(content=content))

    def add_assistant(self, message: AssistantMessage) -> None:
        self.append(message)

    def add_tool_result(self, message: ToolMessage) -> None:
        self.append(message)

    def trim(self) -> int:
        """Evict the oldest non-system messages until the history fits the limit.

        The latest user message is never evicted: once it is the oldest
        message left, eviction continues with the messages after it. A tool
        announcement is evicted together with its results.

        Returns:
            Number of messages evicted
        """
        evicted = 0
        while len(self._messages) > self.limit:
            index = 1
            if self._messages[index] is self._latest_user_message():
                index = 2
            if index >= len(self._messages):
                break

            removed = self._messages.pop(index)
            evicted += 1

            if isinstance(removed, AssistantMessage) and removed.tool_calls:
                call_ids = {call.id for call in removed.tool_calls}
                while (
                    index < len(self._messages)
                    and isinstance(self._messages[index], ToolMessage)
                    and self._messages[index].tool_call_id in call_ids
                ):
                    del self._messages[index]
                    evicted += 1

        if evicted:
            logger.debug(f"Evicted {evicted} message(s) from history, {len(self._messages)} remain")
        return evicted

    def _latest_user_message(self) -> UserMessage | None:
        for message in reversed(self._messages):
            if isinstance(message, UserMessage):
                return message
        return None
