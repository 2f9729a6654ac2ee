"""Human approval of write-tool proposals."""

from dataclasses import dataclass
from datetime import UTC, datetime

from eva.exceptions import InvalidRequestError, NotFoundError, PermissionDeniedError
from eva.models.caller import StaffCaller
from eva.storage.base import DataStore, Query, Row
from eva.tools.staff_write import WRITE_ACTIONS
from eva.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass
class ConfirmationResult:
    message: str
    data: Row | None = None


class ConfirmationService:
    """Applies or rejects a pending tool execution.

    The change applied is the proposal stored with the execution, never one
    supplied by the client at confirmation time.
    """

    def __init__(self, store: DataStore):
        self.store = store

    async def confirm(self, caller: StaffCaller, tool_execution_id: str, approved: bool) -> ConfirmationResult:
        """Resolve a pending execution.

        Args:
            caller: Staff member deciding; must belong to the execution's firm
            tool_execution_id: The `ai_tool_executions` row to resolve
            approved: Whether to apply the proposal

        Returns:
            Outcome message and, when applied, the written row

        Raises:
            NotFoundError: If the execution is not in the caller's firm
            InvalidRequestError: If it is not pending or its proposal is unusable
            PermissionDeniedError: If the caller lacks write access or the proposal targets another firm
        """
        if not caller.can_write:
            raise PermissionDeniedError("Acesso negado")

        execution = await self.store.select_one(
            "ai_tool_executions",
            Query().eq("id", tool_execution_id).eq("law_firm_id", caller.tenant_id),
        )
        if not execution:
            raise NotFoundError("Execução de ferramenta não encontrada")
        if execution.get("status") != "pending":
            raise InvalidRequestError("Esta ação já foi processada")

        if not approved:
            await self._claim(execution, "rejected")
            logger.info(f"Tool execution {tool_execution_id} rejected by {caller.user_id}")
            return ConfirmationResult(message="Ação cancelada pelo usuário")

        output = execution.get("tool_output") or {}
        action_name = output.get("action")
        data = output.get("data")
        action = WRITE_ACTIONS.get(action_name or "")
        if action is None or not isinstance(data, dict):
            raise InvalidRequestError("Ação desconhecida")
        if data.get("law_firm_id") and data["law_firm_id"] != caller.tenant_id:
            raise PermissionDeniedError("Acesso negado")
        entity_id = output.get("entityId")
        if action.operation == "update" and not entity_id:
            raise InvalidRequestError("Dados insuficientes para executar a ação")

        await self._claim(execution, "executed")
        try:
            if action.operation == "insert":
                written = await self.store.insert(action.table, {**data, "law_firm_id": caller.tenant_id})
            else:
                rows = await self.store.update(
                    action.table, data, Query().eq("id", entity_id).eq("law_firm_id", caller.tenant_id)
                )
                if not rows:
                    raise NotFoundError("Registro não encontrado")
                written = rows[0]
        except Exception:
            await self._release(execution)
            raise

        logger.info(f"Tool execution {tool_execution_id} ({action_name}) applied to {action.table}")
        return ConfirmationResult(message="Ação executada com sucesso", data=written)

    def _execution_query(self, execution: Row, status: str) -> Query:
        return Query().eq("id", execution["id"]).eq("law_firm_id", execution["law_firm_id"]).eq("status", status)

    async def _claim(self, execution: Row, status: str) -> None:
        """Move the execution out of `pending`; only one concurrent caller can win.

        Raises:
            InvalidRequestError: If another request resolved it first
        """
        values: Row = {"status": status}
        if status == "executed":
            values["executed_at"] = datetime.now(UTC).isoformat()
        rows = await self.store.update("ai_tool_executions", values, self._execution_query(execution, "pending"))
        if len(rows) != 1:
            raise InvalidRequestError("Esta ação já foi processada")

    async def _release(self, execution: Row) -> None:
        """Put a claimed execution back to `pending` after its write failed."""
        logger.warning(f"Tool execution {execution['id']} failed to apply; returning it to pending")
        await self.store.update(
            "ai_tool_executions",
            {"status": "pending", "executed_at": None},
            self._execution_query(execution, "executed"),
        )
