"""Base types and definitions for tools."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any

from pydantic import BaseModel

from eva.models.llm import ToolOutput
from eva.storage.base import DataStore

ToolHandler = Callable[[Any], Awaitable[ToolOutput]]


@dataclass
class ToolDefinition:
    """Definition of a tool available to the AI assistant.

    `requires_confirmation` is the tool's confirmation policy: results of such
    tools are proposals that a human must approve before anything is written.
    """

    name: str
    description: str
    input_schema_class: type[BaseModel]
    handler: ToolHandler
    requires_confirmation: bool = False

    def get_json_schema(self) -> dict[str, Any]:
        """Get JSON schema for this tool's input."""
        return self.input_schema_class.model_json_schema()

    def parse_input(self, raw_input: dict[str, Any]) -> BaseModel:
        """Parse and validate tool input."""
        return self.input_schema_class.model_validate(raw_input)


@dataclass
class MatterIdCache:
    """Per-request memo of the matters linked to a client contact."""

    matter_ids: list[str] | None = None


@dataclass
class ToolScope:
    """Data access handle plus the identity every tool query is bound to."""

    store: DataStore
    tenant_id: str
    user_id: str | None = None
    contact_id: str | None = None
    matter_cache: MatterIdCache = field(default_factory=MatterIdCache)


class EmptyInput(BaseModel):
    """Input schema for tools that take no parameters."""


def format_brl(amount: float) -> str:
    """Format an amount the way invoices show it (R$ 1.234,56)."""
    formatted = f"{amount:,.2f}".replace(",", "_").replace(".", ",").replace("_", ".")
    return f"R$ {formatted}"
