"""Tools registry scoped to a single caller."""

from typing import Any, assert_never

from pydantic import ValidationError

from eva.exceptions import StoreError
from eva.models.caller import Caller, ClientCaller, StaffCaller
from eva.models.llm import LLMTool, ToolOutput
from eva.storage.base import DataStore
from eva.tools.base import ToolDefinition, ToolScope
from eva.tools.client import CLIENT_TOOL_FACTORIES
from eva.tools.staff_read import READ_TOOL_FACTORIES
from eva.tools.staff_write import WRITE_TOOL_FACTORIES
from eva.utils.logging import get_logger
from eva.utils.validation import describe_validation_error

logger = get_logger(__name__)


class ToolsRegistry:
    """Registry of the tools one caller may use during one request.

    The tenant (and, for clients, the contact) is bound here once; no tool
    receives an identity from the model.
    """

    def __init__(self, store: DataStore, caller: Caller):
        """Initialize the registry and register the caller's tool set."""
        self.caller = caller
        self._tools: dict[str, ToolDefinition] = {}
        self._register_default_tools(store)

    def _register_default_tools(self, store: DataStore) -> None:
        match self.caller:
            case StaffCaller(tenant_id=tenant_id, user_id=user_id) as staff:
                scope = ToolScope(store=store, tenant_id=tenant_id, user_id=user_id)
                factories = READ_TOOL_FACTORIES + WRITE_TOOL_FACTORIES if staff.can_write else READ_TOOL_FACTORIES
            case ClientCaller(tenant_id=tenant_id, contact_id=contact_id):
                scope = ToolScope(store=store, tenant_id=tenant_id, contact_id=contact_id)
                factories = CLIENT_TOOL_FACTORIES
            case _:
                assert_never(self.caller)

        for factory in factories:
            self.register_tool(factory(scope))

    def register_tool(self, tool: ToolDefinition) -> None:
        """Register a new tool in the registry."""
        self._tools[tool.name] = tool

    async def execute(self, name: str, params: dict[str, Any]) -> ToolOutput:
        """Validate input and run a tool.

        Never raises: validation problems, store failures and unexpected errors
        come back as `{"error": ...}` so the model can react conversationally.
        """
        tool = self._tools.get(name)
        if tool is None:
            return {"error": f"Ferramenta desconhecida: {name}"}

        try:
            parsed_params = tool.parse_input(params)
        except ValidationError as e:
            logger.info(f"Invalid input for tool {name}: {e}")
            return {"error": f"Parâmetros inválidos: {describe_validation_error(e)}"}

        try:
            result = await tool.handler(parsed_params)
        except StoreError as e:
            logger.warning(f"Tool {name} query failed: {e}")
            return {"error": f"Erro ao consultar dados: {e}"}
        except Exception as e:
            logger.error(f"Tool {name} failed unexpectedly: {e}", exc_info=True)
            return {"error": f"Erro inesperado ao executar {name}."}

        if tool.requires_confirmation and "error" not in result:
            result = {"requiresConfirmation": True, **result}
        return result

    def get_llm_tools(self) -> dict[str, LLMTool]:
        """Get LLM tools with both schemas and callables bound to this registry."""

        def create_tool_callable(name: str):
            async def tool_callable(params: dict[str, Any]) -> ToolOutput:
                return await self.execute(name, params)

            return tool_callable

        return {
            name: LLMTool(
                name=tool.name,
                description=tool.description,
                input_schema=tool.get_json_schema(),
                callable=create_tool_callable(name),
            )
            for name, tool in self._tools.items()
        }

    def get_tool_names(self) -> list[str]:
        """Get list of all registered tool names."""
        return list(self._tools.keys())

    def has_tool(self, name: str) -> bool:
        """Check if a tool is registered."""
        return name in self._tools

    def requires_confirmation(self, name: str) -> bool:
        """Confirmation policy of a registered tool."""
        tool = self._tools.get(name)
        return bool(tool and tool.requires_confirmation)
