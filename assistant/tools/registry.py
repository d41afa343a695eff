"""Tools registry: the catalogue of callable tools and the dispatch boundary."""

import json
from typing import Any

from pydantic import BaseModel, ValidationError

from assistant.exceptions import (
    AssistantError,
    InvalidEnumValueError,
    MalformedArgumentsError,
    MissingRequiredParameterError,
    UnknownToolError,
)
from assistant.models.llm import LLMToolDefinition, ToolCallRequest, ToolCallResult
from assistant.services.concerts import ConcertService
from assistant.services.papers import PaperService
from assistant.tools.base import ToolDefinition
from assistant.tools.concerts import create_book_ticket_tool, create_search_concerts_tool
from assistant.tools.papers import create_fetch_papers_tool, create_summarize_paper_tool
from assistant.utils.logging import get_logger

logger = get_logger(__name__)

_ENUM_ERROR_TYPES = {"literal_error", "enum"}


class ToolsRegistry:
    """Immutable catalogue of tools.

    Resolves (name, raw argument text) pairs into validated handler calls.
    """

    def __init__(self, tools: list[ToolDefinition]):
        """Initialize the registry.

        Raises:
            ValueError: If two tools share a name
        """
        self._tools: dict[str, ToolDefinition] = {}
        for tool in tools:
            if tool.name in self._tools:
                raise ValueError(f"Duplicate tool name: {tool.name}")
            self._tools[tool.name] = tool

    def declarations(self) -> list[LLMToolDefinition]:
        """Tool declarations to send with each model turn."""
        return [tool.declaration() for tool in self._tools.values()]

    def get_tool_names(self) -> list[str]:
        """Get list of all registered tool names."""
        return list(self._tools.keys())

    def parse_arguments(self, name: str, raw_arguments: str) -> tuple[ToolDefinition, BaseModel, dict[str, Any]]:
        """Resolve a tool and validate its arguments without calling it.

        Returns:
            The tool, its validated input and the decoded argument object

        Raises:
            UnknownToolError: If no tool has this name
            MalformedArgumentsError: If the text is not a JSON object of the declared types
            MissingRequiredParameterError: If required parameters are absent
            InvalidEnumValueError: If an enumerated parameter has an undeclared value
        """
        tool = self._tools.get(name)
        if tool is None:
            raise UnknownToolError(name)

        try:
            arguments = json.loads(raw_arguments)
        except (json.JSONDecodeError, TypeError) as e:
            raise MalformedArgumentsError(name, f"not valid JSON ({e})") from e

        if not isinstance(arguments, dict):
            raise MalformedArgumentsError(name, "expected a JSON object")

        try:
            params = tool.parse_input(arguments)
        except ValidationError as e:
            raise self._classify_validation_error(tool, arguments, e) from e

        return tool, params, arguments

    async def invoke(self, name: str, raw_arguments: str) -> str:
        """Validate arguments and call the tool.

        Raises:
            DispatchError: If the call cannot be resolved (see ``parse_arguments``)
            AssistantError: Whatever the underlying service raises
        """
        tool, params, _ = self.parse_arguments(name, raw_arguments)
        logger.debug(f"Executing tool: {name} with input: {params!r}")
        return await tool.handler(params)

    async def dispatch(self, call: ToolCallRequest) -> ToolCallResult:
        """Run a tool call, turning every failure into an error result."""
        arguments: dict[str, Any] = {}
        try:
            tool, params, arguments = self.parse_arguments(call.name, call.arguments)
            logger.debug(f"Executing tool: {call.name} with input: {params!r}")
            output = await tool.handler(params)
        except AssistantError as e:
            logger.error(f"Tool {call.name} failed: {e}")
            return ToolCallResult(
                tool_call_id=call.id, name=call.name, output=f"Error: {e}", is_error=True, arguments=arguments
            )
        except Exception as e:
            logger.exception(f"Tool {call.name} raised an unexpected error")
            return ToolCallResult(
                tool_call_id=call.id, name=call.name, output=f"Error: {e!s}", is_error=True, arguments=arguments
            )

        logger.debug(f"Tool {call.name} succeeded: {output[:100]}...")
        return ToolCallResult(tool_call_id=call.id, name=call.name, output=output, arguments=arguments)

    @staticmethod
    def _classify_validation_error(
        tool: ToolDefinition, arguments: dict[str, Any], error: ValidationError
    ) -> AssistantError:
        errors = error.errors()

        missing = [str(err["loc"][0]) for err in errors if err["type"] == "missing" and err["loc"]]
        if missing:
            return MissingRequiredParameterError(tool.name, missing)

        for err in errors:
            if err["type"] in _ENUM_ERROR_TYPES and err["loc"]:
                parameter = str(err["loc"][0])
                schema = tool.get_json_schema().get("properties", {}).get(parameter, {})
                allowed = [str(value) for value in schema.get("enum", [])]
                return InvalidEnumValueError(tool.name, parameter, arguments.get(parameter), allowed)

        detail = "; ".join(f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}" for err in errors)
        return MalformedArgumentsError(tool.name, detail)


def create_arxiv_registry(paper_service: PaperService) -> ToolsRegistry:
    """Registry with the paper listing and summary tools."""
    return ToolsRegistry(
        [
            create_fetch_papers_tool(paper_service),
            create_summarize_paper_tool(paper_service),
        ]
    )


def create_concert_registry(concert_service: ConcertService) -> ToolsRegistry:
    """Registry with the concert search and booking tools."""
    return ToolsRegistry(
        [
            create_search_concerts_tool(concert_service),
            create_book_ticket_tool(concert_service),
        ]
    )
