"""Base types and definitions for tools."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel

from assistant.models.llm import LLMToolDefinition

ToolHandler = Callable[[Any], Awaitable[str]]


@dataclass(frozen=True)
class ToolDefinition:
    """Definition of a tool available to the assistant."""

    name: str
    description: str
    input_schema_class: type[BaseModel]
    handler: ToolHandler

    def get_json_schema(self) -> dict[str, Any]:
        """Get JSON schema for this tool's input."""
        return self.input_schema_class.model_json_schema(by_alias=True)

    def parse_input(self, raw_input: dict[str, Any]) -> BaseModel:
        """Parse and validate tool input."""
        return self.input_schema_class.model_validate(raw_input)

    def declaration(self) -> LLMToolDefinition:
        """Declaration advertised to the model."""
        return LLMToolDefinition(name=self.name, description=self.description, input_schema=self.get_json_schema())
