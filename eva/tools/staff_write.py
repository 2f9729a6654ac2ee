"""Write tools for staff callers with write access.

None of these tools writes anything. Each validates its target inside the
tenant and returns a proposal; the change is applied only when a human
approves the recorded tool execution.
"""

from dataclasses import dataclass
from datetime import UTC, date, datetime
from typing import Literal

from pydantic import BaseModel, Field

from eva.models.llm import ToolOutput
from eva.storage.base import Query
from eva.tools.base import ToolDefinition, ToolScope, format_brl
from eva.tools.staff_read import MatterStatus, TaskPriority, TaskStatus


@dataclass(frozen=True)
class WriteAction:
    """How an approved proposal is applied."""

    table: str
    operation: Literal["insert", "update"]


WRITE_ACTIONS: dict[str, WriteAction] = {
    "create_task": WriteAction("tasks", "insert"),
    "update_task_status": WriteAction("tasks", "update"),
    "create_time_entry": WriteAction("time_entries", "insert"),
    "create_calendar_event": WriteAction("tasks", "insert"),
    "update_matter_status": WriteAction("matters", "update"),
}

MATTER_STATUS_LABELS = {
    "active": "ativo",
    "closed": "encerrado",
    "on_hold": "suspenso",
    "settled": "acordo",
    "dismissed": "arquivado",
}

TASK_STATUS_LABELS = {
    "pending": "pendente",
    "in_progress": "em andamento",
    "completed": "concluída",
    "cancelled": "cancelada",
}


async def _find_matter(scope: ToolScope, matter_id: str, columns: str = "id, title") -> dict | None:
    return await scope.store.select_one(
        "matters", Query().select(columns).eq("id", matter_id).eq("law_firm_id", scope.tenant_id)
    )


class CreateTaskInput(BaseModel):
    title: str = Field(..., min_length=3, max_length=200, description="Título da tarefa")
    description: str | None = Field(default=None, max_length=2000, description="Descrição da tarefa")
    matter_id: str | None = Field(default=None, alias="matterId", description="ID do processo vinculado")
    due_date: date | None = Field(default=None, alias="dueDate", description="Prazo no formato YYYY-MM-DD")
    priority: TaskPriority = Field(default="medium", description="Prioridade da tarefa")
    assigned_to: str | None = Field(default=None, alias="assignedTo", description="ID do responsável")

    model_config = {"populate_by_name": True}


def create_create_task_tool(scope: ToolScope) -> ToolDefinition:
    async def handler(params: CreateTaskInput) -> ToolOutput:
        matter_title = None
        if params.matter_id:
            matter = await _find_matter(scope, params.matter_id)
            if not matter:
                return {"error": "Processo não encontrado ou sem permissão."}
            matter_title = matter.get("title")

        data = {
            "law_firm_id": scope.tenant_id,
            "title": params.title,
            "description": params.description,
            "matter_id": params.matter_id,
            "due_date": params.due_date.isoformat() if params.due_date else None,
            "priority": params.priority,
            "status": "pending",
            "task_type": "general",
            "assigned_to": params.assigned_to or scope.user_id,
            "created_by": scope.user_id,
        }
        where = f' no processo "**{matter_title}**"' if matter_title else ""
        due = f" com prazo em {params.due_date.strftime('%d/%m/%Y')}" if params.due_date else ""
        return {
            "action": "create_task",
            "data": data,
            "displayMessage": f'Criar tarefa "**{params.title}**"{where}{due}',
        }

    return ToolDefinition(
        name="create_task",
        description="Cria uma nova tarefa, opcionalmente vinculada a um processo. Retorna dados para confirmação.",
        input_schema_class=CreateTaskInput,
        handler=handler,
        requires_confirmation=True,
    )


class UpdateTaskStatusInput(BaseModel):
    task_id: str = Field(..., min_length=1, alias="taskId", description="ID da tarefa")
    status: TaskStatus = Field(..., description="Novo status da tarefa")

    model_config = {"populate_by_name": True}


def create_update_task_status_tool(scope: ToolScope) -> ToolDefinition:
    async def handler(params: UpdateTaskStatusInput) -> ToolOutput:
        task = await scope.store.select_one(
            "tasks", Query().select("id, title, status").eq("id", params.task_id).eq("law_firm_id", scope.tenant_id)
        )
        if not task:
            return {"error": "Tarefa não encontrada ou sem permissão."}
        if task.get("status") == params.status:
            return {"error": f"A tarefa já está com status {TASK_STATUS_LABELS[params.status]}."}

        data: dict = {"status": params.status}
        if params.status == "completed":
            data["completed_at"] = datetime.now(UTC).isoformat()
        return {
            "action": "update_task_status",
            "entityId": task["id"],
            "data": data,
            "displayMessage": (
                f'Alterar status da tarefa "**{task.get("title")}**" para **{TASK_STATUS_LABELS[params.status]}**'
            ),
        }

    return ToolDefinition(
        name="update_task_status",
        description="Altera o status de uma tarefa existente. Retorna dados para confirmação.",
        input_schema_class=UpdateTaskStatusInput,
        handler=handler,
        requires_confirmation=True,
    )


class CreateTimeEntryInput(BaseModel):
    matter_id: str = Field(..., min_length=1, alias="matterId", description="ID do processo vinculado")
    description: str = Field(..., min_length=3, description="Descrição do trabalho realizado")
    hours_worked: float = Field(..., ge=0.1, le=24, alias="hoursWorked", description="Horas trabalhadas (ex: 1.5)")
    work_date: date | None = Field(default=None, alias="workDate", description="Data do trabalho (padrão: hoje)")
    is_billable: bool = Field(default=True, alias="isBillable", description="Se as horas são faturáveis")

    model_config = {"populate_by_name": True}


def create_create_time_entry_tool(scope: ToolScope) -> ToolDefinition:
    async def handler(params: CreateTimeEntryInput) -> ToolOutput:
        matter = await _find_matter(scope, params.matter_id, "id, title, hourly_rate")
        if not matter:
            return {"error": "Processo não encontrado ou sem permissão."}

        work_date = params.work_date or datetime.now(UTC).date()
        hourly_rate = matter.get("hourly_rate") or 0
        total_amount = params.hours_worked * hourly_rate
        amount = f" ({format_brl(total_amount)})" if total_amount else ""
        return {
            "action": "create_time_entry",
            "data": {
                "law_firm_id": scope.tenant_id,
                "matter_id": matter["id"],
                "user_id": scope.user_id,
                "description": params.description,
                "hours_worked": params.hours_worked,
                "work_date": work_date.isoformat(),
                "is_billable": params.is_billable,
                "hourly_rate": hourly_rate,
                "total_amount": total_amount,
                "created_by": scope.user_id,
            },
            "displayMessage": (
                f'Registrar **{params.hours_worked}h** no processo "**{matter.get("title")}**" '
                f"- {params.description}{amount}"
            ),
        }

    return ToolDefinition(
        name="create_time_entry",
        description="Registra horas trabalhadas em um processo. Retorna dados para confirmação.",
        input_schema_class=CreateTimeEntryInput,
        handler=handler,
        requires_confirmation=True,
    )


class CreateCalendarEventInput(BaseModel):
    title: str = Field(..., min_length=3, max_length=200, description="Título do compromisso")
    event_date: date = Field(..., alias="eventDate", description="Data do compromisso (YYYY-MM-DD)")
    matter_id: str | None = Field(default=None, alias="matterId", description="ID do processo vinculado")
    description: str | None = Field(default=None, max_length=2000, description="Detalhes do compromisso")

    model_config = {"populate_by_name": True}


def create_create_calendar_event_tool(scope: ToolScope) -> ToolDefinition:
    async def handler(params: CreateCalendarEventInput) -> ToolOutput:
        if params.matter_id and not await _find_matter(scope, params.matter_id):
            return {"error": "Processo não encontrado ou sem permissão."}

        return {
            "action": "create_calendar_event",
            "data": {
                "law_firm_id": scope.tenant_id,
                "title": params.title,
                "description": params.description,
                "matter_id": params.matter_id,
                "due_date": params.event_date.isoformat(),
                "task_type": "calendar_event",
                "status": "pending",
                "priority": "medium",
                "assigned_to": scope.user_id,
                "created_by": scope.user_id,
            },
            "displayMessage": f'Agendar "**{params.title}**" em {params.event_date.strftime("%d/%m/%Y")}',
        }

    return ToolDefinition(
        name="create_calendar_event",
        description=(
            "Agenda um compromisso (audiência, reunião, prazo) na agenda do escritório. "
            "Retorna dados para confirmação."
        ),
        input_schema_class=CreateCalendarEventInput,
        handler=handler,
        requires_confirmation=True,
    )


class UpdateMatterStatusInput(BaseModel):
    matter_id: str = Field(..., min_length=1, alias="matterId", description="ID do processo")
    status: MatterStatus = Field(..., description="Novo status do processo")

    model_config = {"populate_by_name": True}


def create_update_matter_status_tool(scope: ToolScope) -> ToolDefinition:
    async def handler(params: UpdateMatterStatusInput) -> ToolOutput:
        matter = await _find_matter(scope, params.matter_id, "id, title, status")
        if not matter:
            return {"error": "Processo não encontrado ou sem permissão."}
        if matter.get("status") == params.status:
            return {"error": f"O processo já está com status {MATTER_STATUS_LABELS[params.status]}."}

        return {
            "action": "update_matter_status",
            "entityId": matter["id"],
            "data": {"status": params.status},
            "displayMessage": (
                f'Alterar status do processo "**{matter.get("title")}**" para **{MATTER_STATUS_LABELS[params.status]}**'
            ),
        }

    return ToolDefinition(
        name="update_matter_status",
        description="Altera o status de um processo. Retorna dados para confirmação.",
        input_schema_class=UpdateMatterStatusInput,
        handler=handler,
        requires_confirmation=True,
    )


WRITE_TOOL_FACTORIES = (
    create_create_task_tool,
    create_update_task_status_tool,
    create_create_time_entry_tool,
    create_create_calendar_event_tool,
    create_update_matter_status_tool,
)
