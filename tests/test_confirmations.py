"""Tests for approving and rejecting write proposals."""

import asyncio
from typing import Any

import pytest

from eva.exceptions import InvalidRequestError, NotFoundError, PermissionDeniedError
from eva.models.caller import StaffCaller
from eva.services.confirmations import ConfirmationService
from eva.storage.memory import InMemoryDataStore
from tests.conftest import FIRM_A, FIRM_B, seed_tables

LAWYER = StaffCaller(tenant_id=FIRM_A, user_id="lawyer-1", role="lawyer")


async def pending_execution(store, tool_output: dict[str, Any], law_firm_id: str = FIRM_A) -> str:
    row = await store.insert(
        "ai_tool_executions",
        {
            "law_firm_id": law_firm_id,
            "tool_name": tool_output.get("action", "create_task"),
            "tool_input": {},
            "tool_output": tool_output,
            "status": "pending",
            "requires_confirmation": True,
        },
    )
    return row["id"]


def create_task_proposal(**data: Any) -> dict[str, Any]:
    return {
        "action": "create_task",
        "data": {"law_firm_id": FIRM_A, "title": "Protocolar recurso", "status": "pending", **data},
        "displayMessage": "Criar tarefa",
        "requiresConfirmation": True,
    }


class YieldingStore(InMemoryDataStore):
    """In-memory store that hands control back to the event loop on every call, like a network store."""

    async def select(self, table, query=None):
        await asyncio.sleep(0)
        return await super().select(table, query)

    async def insert(self, table, row):
        await asyncio.sleep(0)
        return await super().insert(table, row)

    async def update(self, table, values, query):
        await asyncio.sleep(0)
        return await super().update(table, values, query)


class TestConfirmationService:
    @pytest.mark.asyncio
    async def test_approving_insert_writes_the_stored_proposal(self, store):
        execution_id = await pending_execution(store, create_task_proposal())

        result = await ConfirmationService(store).confirm(LAWYER, execution_id, approved=True)

        assert result.message == "Ação executada com sucesso"
        assert result.data["title"] == "Protocolar recurso"
        assert result.data["law_firm_id"] == FIRM_A
        assert store.rows("tasks", title="Protocolar recurso")
        execution = store.rows("ai_tool_executions", id=execution_id)[0]
        assert execution["status"] == "executed"
        assert execution["executed_at"]

    @pytest.mark.asyncio
    async def test_rejecting_writes_nothing(self, store):
        execution_id = await pending_execution(store, create_task_proposal())
        tasks_before = len(store.rows("tasks"))

        result = await ConfirmationService(store).confirm(LAWYER, execution_id, approved=False)

        assert result.message == "Ação cancelada pelo usuário"
        assert result.data is None
        assert len(store.rows("tasks")) == tasks_before
        assert store.rows("ai_tool_executions", id=execution_id)[0]["status"] == "rejected"

    @pytest.mark.asyncio
    async def test_execution_is_resolved_only_once(self, store):
        service = ConfirmationService(store)
        execution_id = await pending_execution(store, create_task_proposal())
        await service.confirm(LAWYER, execution_id, approved=True)

        with pytest.raises(InvalidRequestError, match="já foi processada"):
            await service.confirm(LAWYER, execution_id, approved=True)
        assert len(store.rows("tasks", title="Protocolar recurso")) == 1

    @pytest.mark.asyncio
    async def test_execution_of_another_firm_is_not_found(self, store):
        execution_id = await pending_execution(store, create_task_proposal(), law_firm_id=FIRM_B)

        with pytest.raises(NotFoundError):
            await ConfirmationService(store).confirm(LAWYER, execution_id, approved=True)
        assert store.rows("ai_tool_executions", id=execution_id)[0]["status"] == "pending"

    @pytest.mark.asyncio
    async def test_proposal_targeting_another_firm_is_refused(self, store):
        execution_id = await pending_execution(store, create_task_proposal(law_firm_id=FIRM_B))

        with pytest.raises(PermissionDeniedError):
            await ConfirmationService(store).confirm(LAWYER, execution_id, approved=True)
        assert not store.rows("tasks", title="Protocolar recurso")

    @pytest.mark.asyncio
    async def test_read_only_staff_cannot_confirm(self, store):
        execution_id = await pending_execution(store, create_task_proposal())
        staff = StaffCaller(tenant_id=FIRM_A, user_id="staff-1", role="staff")

        with pytest.raises(PermissionDeniedError):
            await ConfirmationService(store).confirm(staff, execution_id, approved=True)

    @pytest.mark.asyncio
    async def test_approving_update_changes_the_target_row(self, store):
        execution_id = await pending_execution(
            store,
            {"action": "update_matter_status", "entityId": "matter-2", "data": {"status": "active"}},
        )

        result = await ConfirmationService(store).confirm(LAWYER, execution_id, approved=True)

        assert result.data["id"] == "matter-2"
        assert store.rows("matters", id="matter-2")[0]["status"] == "active"

    @pytest.mark.asyncio
    async def test_update_of_other_firm_row_is_not_found(self, store):
        execution_id = await pending_execution(
            store,
            {"action": "update_matter_status", "entityId": "matter-b", "data": {"status": "closed"}},
        )

        with pytest.raises(NotFoundError):
            await ConfirmationService(store).confirm(LAWYER, execution_id, approved=True)
        assert store.rows("matters", id="matter-b")[0]["status"] == "active"
        assert store.rows("ai_tool_executions", id=execution_id)[0]["status"] == "pending"

    @pytest.mark.asyncio
    async def test_unknown_action_is_rejected(self, store):
        execution_id = await pending_execution(store, {"action": "drop_tables", "data": {}})

        with pytest.raises(InvalidRequestError, match="Ação desconhecida"):
            await ConfirmationService(store).confirm(LAWYER, execution_id, approved=True)


class TestConcurrentConfirmation:
    """Two requests resolving the same execution at once."""

    @pytest.mark.asyncio
    async def test_concurrent_approvals_apply_once(self):
        store = YieldingStore(seed_tables())
        service = ConfirmationService(store)
        execution_id = await pending_execution(store, create_task_proposal(title="Lançar horas"))

        results = await asyncio.gather(
            service.confirm(LAWYER, execution_id, approved=True),
            service.confirm(LAWYER, execution_id, approved=True),
            return_exceptions=True,
        )

        applied = [result for result in results if not isinstance(result, Exception)]
        refused = [result for result in results if isinstance(result, InvalidRequestError)]
        assert len(applied) == 1
        assert len(refused) == 1
        assert len(store.rows("tasks", title="Lançar horas")) == 1
        assert store.rows("ai_tool_executions", id=execution_id)[0]["status"] == "executed"

    @pytest.mark.asyncio
    async def test_concurrent_approve_and_reject_resolve_once(self):
        store = YieldingStore(seed_tables())
        service = ConfirmationService(store)
        execution_id = await pending_execution(store, create_task_proposal(title="Lançar horas"))

        results = await asyncio.gather(
            service.confirm(LAWYER, execution_id, approved=False),
            service.confirm(LAWYER, execution_id, approved=True),
            return_exceptions=True,
        )

        assert sum(isinstance(result, InvalidRequestError) for result in results) == 1
        status = store.rows("ai_tool_executions", id=execution_id)[0]["status"]
        tasks = store.rows("tasks", title="Lançar horas")
        assert (status, len(tasks)) in {("rejected", 0), ("executed", 1)}
