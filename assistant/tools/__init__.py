"""Tools the assistants can call."""

from assistant.tools.registry import ToolsRegistry, create_arxiv_registry, create_concert_registry

__all__ = ["ToolsRegistry", "create_arxiv_registry", "create_concert_registry"]
