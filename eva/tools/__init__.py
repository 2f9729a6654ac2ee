"""Tools for the conversational AI assistant."""

from eva.tools.base import ToolDefinition, ToolScope
from eva.tools.registry import ToolsRegistry

__all__ = ["ToolDefinition", "ToolScope", "ToolsRegistry"]
