"""Firm-wide read tools for staff callers.

Every query is filtered by the tenant bound into the `ToolScope`.
"""

from datetime import UTC, datetime, timedelta
from typing import Literal

from pydantic import BaseModel, Field

from eva.models.llm import ToolOutput
from eva.storage.base import Query
from eva.tools.base import EmptyInput, ToolDefinition, ToolScope, format_brl

MatterStatus = Literal["active", "closed", "on_hold", "settled", "dismissed"]
TaskStatus = Literal["pending", "in_progress", "completed", "cancelled"]
TaskPriority = Literal["low", "medium", "high", "urgent"]
InvoiceStatus = Literal["draft", "sent", "viewed", "paid", "overdue", "cancelled"]

OPEN_TASK_STATUSES = ("pending", "in_progress")
OPEN_INVOICE_STATUSES = ("sent", "viewed", "overdue")


class QueryMattersInput(BaseModel):
    search: str | None = Field(default=None, max_length=200, description="Texto para buscar no título ou número")
    status: MatterStatus | None = Field(default=None, description="Status do processo")
    priority: TaskPriority | None = Field(default=None, description="Prioridade do processo")
    limit: int = Field(default=10, ge=1, le=20, description="Número máximo de resultados")


def create_query_matters_tool(scope: ToolScope) -> ToolDefinition:
    async def handler(params: QueryMattersInput) -> ToolOutput:
        query = (
            Query()
            .select(
                "id, title, matter_number, status, priority, court_name, process_number, "
                "opened_date, next_court_date, responsible_lawyer_id"
            )
            .eq("law_firm_id", scope.tenant_id)
            .order("updated_at", descending=True)
            .limit(params.limit)
        )
        if params.search:
            query.search(["title", "matter_number"], params.search)
        if params.status:
            query.eq("status", params.status)
        if params.priority:
            query.eq("priority", params.priority)

        rows = await scope.store.select("matters", query)
        if not rows:
            return {"message": "Nenhum processo encontrado com os filtros informados.", "results": []}
        return {"message": f"{len(rows)} processo(s) encontrado(s).", "results": rows}

    return ToolDefinition(
        name="query_matters",
        description=(
            "Busca processos do escritório por texto, status ou prioridade. "
            "Use para listar processos ativos, encontrar um processo pelo nome ou número."
        ),
        input_schema_class=QueryMattersInput,
        handler=handler,
    )


class QueryClientsInput(BaseModel):
    search: str | None = Field(default=None, max_length=200, description="Nome, empresa ou email do cliente")
    client_status: str | None = Field(default=None, description="Status do cliente (ex: active, prospect)")
    limit: int = Field(default=10, ge=1, le=20, description="Número máximo de resultados")


def create_query_clients_tool(scope: ToolScope) -> ToolDefinition:
    async def handler(params: QueryClientsInput) -> ToolOutput:
        query = (
            Query()
            .select("id, full_name, company_name, contact_type, email, phone, client_status")
            .eq("law_firm_id", scope.tenant_id)
            .order("updated_at", descending=True)
            .limit(params.limit)
        )
        if params.search:
            query.search(["full_name", "company_name", "email"], params.search)
        if params.client_status:
            query.eq("client_status", params.client_status)

        rows = await scope.store.select("contacts", query)
        if not rows:
            return {"message": "Nenhum cliente encontrado com os filtros informados.", "results": []}
        return {"message": f"{len(rows)} cliente(s) encontrado(s).", "results": rows}

    return ToolDefinition(
        name="query_clients",
        description=(
            "Busca clientes (pessoas físicas ou jurídicas) do escritório por nome, empresa, email ou status."
        ),
        input_schema_class=QueryClientsInput,
        handler=handler,
    )


class QueryTasksInput(BaseModel):
    search: str | None = Field(default=None, max_length=200, description="Texto para buscar no título da tarefa")
    status: TaskStatus | None = Field(default=None, description="Status da tarefa")
    priority: TaskPriority | None = Field(default=None, description="Prioridade da tarefa")
    matter_id: str | None = Field(default=None, alias="matterId", description="ID do processo para filtrar tarefas")
    overdue: bool | None = Field(default=None, description="Se true, retorna apenas tarefas com prazo vencido")
    limit: int = Field(default=10, ge=1, le=20, description="Número máximo de resultados")

    model_config = {"populate_by_name": True}


def create_query_tasks_tool(scope: ToolScope) -> ToolDefinition:
    async def handler(params: QueryTasksInput) -> ToolOutput:
        query = (
            Query()
            .select(
                "id, title, description, status, priority, task_type, due_date, assigned_to, matter_id, is_billable"
            )
            .eq("law_firm_id", scope.tenant_id)
            .order("due_date")
            .limit(params.limit)
        )
        if params.search:
            query.ilike("title", f"%{params.search}%")
        if params.status:
            query.eq("status", params.status)
        if params.priority:
            query.eq("priority", params.priority)
        if params.matter_id:
            query.eq("matter_id", params.matter_id)
        if params.overdue:
            query.lt("due_date", datetime.now(UTC).isoformat()).in_("status", list(OPEN_TASK_STATUSES))

        rows = await scope.store.select("tasks", query)
        if not rows:
            return {"message": "Nenhuma tarefa encontrada com os filtros informados.", "results": []}
        return {"message": f"{len(rows)} tarefa(s) encontrada(s).", "results": rows}

    return ToolDefinition(
        name="query_tasks",
        description=(
            "Busca tarefas do escritório por status, prioridade, processo ou prazo. "
            "Use para listar tarefas pendentes, atrasadas ou de um processo específico."
        ),
        input_schema_class=QueryTasksInput,
        handler=handler,
    )


class QueryDocumentsInput(BaseModel):
    search: str | None = Field(default=None, max_length=200, description="Texto para buscar no nome do documento")
    matter_id: str | None = Field(default=None, alias="matterId", description="ID do processo")
    category: str | None = Field(default=None, description="Categoria do documento")
    limit: int = Field(default=10, ge=1, le=20, description="Número máximo de resultados")

    model_config = {"populate_by_name": True}


def create_query_documents_tool(scope: ToolScope) -> ToolDefinition:
    async def handler(params: QueryDocumentsInput) -> ToolOutput:
        query = (
            Query()
            .select("id, name, description, file_type, category, matter_id, access_level, created_at")
            .eq("law_firm_id", scope.tenant_id)
            .order("created_at", descending=True)
            .limit(params.limit)
        )
        if params.search:
            query.ilike("name", f"%{params.search}%")
        if params.matter_id:
            query.eq("matter_id", params.matter_id)
        if params.category:
            query.eq("category", params.category)

        rows = await scope.store.select("documents", query)
        if not rows:
            return {"message": "Nenhum documento encontrado.", "results": []}
        return {"message": f"{len(rows)} documento(s) encontrado(s).", "results": rows}

    return ToolDefinition(
        name="query_documents",
        description="Busca documentos do escritório por nome, processo ou categoria.",
        input_schema_class=QueryDocumentsInput,
        handler=handler,
    )


class QueryInvoicesInput(BaseModel):
    status: InvoiceStatus | None = Field(default=None, description="Status da fatura")
    contact_id: str | None = Field(default=None, alias="contactId", description="ID do cliente")
    matter_id: str | None = Field(default=None, alias="matterId", description="ID do processo")
    limit: int = Field(default=10, ge=1, le=20, description="Número máximo de resultados")

    model_config = {"populate_by_name": True}


def summarize_invoices(rows: list[dict]) -> tuple[float, float]:
    total = sum(row.get("total_amount") or 0 for row in rows)
    outstanding = sum(row.get("outstanding_amount") or 0 for row in rows)
    return total, outstanding


def create_query_invoices_tool(scope: ToolScope) -> ToolDefinition:
    async def handler(params: QueryInvoicesInput) -> ToolOutput:
        query = (
            Query()
            .select(
                "id, invoice_number, title, status, total_amount, paid_amount, outstanding_amount, "
                "due_date, issue_date, contact_id, matter_id"
            )
            .eq("law_firm_id", scope.tenant_id)
            .order("due_date", descending=True)
            .limit(params.limit)
        )
        if params.status:
            query.eq("status", params.status)
        if params.contact_id:
            query.eq("contact_id", params.contact_id)
        if params.matter_id:
            query.eq("matter_id", params.matter_id)

        rows = await scope.store.select("invoices", query)
        if not rows:
            return {"message": "Nenhuma fatura encontrada.", "results": []}

        total, outstanding = summarize_invoices(rows)
        return {
            "message": (
                f"{len(rows)} fatura(s) encontrada(s). Total: {format_brl(total)}. "
                f"Em aberto: {format_brl(outstanding)}."
            ),
            "results": rows,
            "summary": {"totalAmount": total, "totalOutstanding": outstanding, "count": len(rows)},
        }

    return ToolDefinition(
        name="query_invoices",
        description=(
            "Busca faturas do escritório por status, cliente ou processo. "
            "Use para encontrar faturas em aberto, vencidas ou um resumo financeiro."
        ),
        input_schema_class=QueryInvoicesInput,
        handler=handler,
    )


class QueryCalendarInput(BaseModel):
    days_ahead: int = Field(default=30, ge=1, le=90, alias="daysAhead", description="Dias à frente para buscar")
    include_task_deadlines: bool = Field(
        default=True, alias="includeTaskDeadlines", description="Incluir prazos de tarefas"
    )

    model_config = {"populate_by_name": True}


def create_query_calendar_tool(scope: ToolScope) -> ToolDefinition:
    async def handler(params: QueryCalendarInput) -> ToolOutput:
        now = datetime.now(UTC)
        until = now + timedelta(days=params.days_ahead)
        events: list[dict] = []

        matters = await scope.store.select(
            "matters",
            Query()
            .select("id, title, next_court_date")
            .eq("law_firm_id", scope.tenant_id)
            .eq("status", "active")
            .gte("next_court_date", now.isoformat())
            .lte("next_court_date", until.isoformat())
            .order("next_court_date"),
        )
        for matter in matters:
            events.append(
                {
                    "type": "audiência",
                    "title": matter["title"],
                    "date": matter["next_court_date"],
                    "entityId": matter["id"],
                    "entityType": "matter",
                }
            )

        if params.include_task_deadlines:
            tasks = await scope.store.select(
                "tasks",
                Query()
                .select("id, title, due_date, priority, status")
                .eq("law_firm_id", scope.tenant_id)
                .in_("status", list(OPEN_TASK_STATUSES))
                .gte("due_date", now.isoformat())
                .lte("due_date", until.isoformat())
                .order("due_date")
                .limit(20),
            )
            for task in tasks:
                events.append(
                    {
                        "type": "prazo",
                        "title": task["title"],
                        "date": task["due_date"],
                        "entityId": task["id"],
                        "entityType": "task",
                    }
                )

        events.sort(key=lambda event: str(event["date"]))
        if not events:
            return {"message": f"Nenhum evento encontrado nos próximos {params.days_ahead} dias.", "results": []}
        return {"message": f"{len(events)} evento(s) nos próximos {params.days_ahead} dias.", "results": events}

    return ToolDefinition(
        name="query_calendar",
        description="Busca próximas audiências e prazos de tarefas do escritório dentro de um número de dias.",
        input_schema_class=QueryCalendarInput,
        handler=handler,
    )


def create_firm_dashboard_stats_tool(scope: ToolScope) -> ToolDefinition:
    async def handler(params: EmptyInput) -> ToolOutput:
        tenant = scope.tenant_id
        store = scope.store
        now = datetime.now(UTC).isoformat()

        active_matters = await store.count("matters", Query().eq("law_firm_id", tenant).eq("status", "active"))
        clients = await store.count("contacts", Query().eq("law_firm_id", tenant))
        open_tasks = await store.count(
            "tasks", Query().eq("law_firm_id", tenant).in_("status", list(OPEN_TASK_STATUSES))
        )
        overdue_tasks = await store.count(
            "tasks", Query().eq("law_firm_id", tenant).in_("status", list(OPEN_TASK_STATUSES)).lt("due_date", now)
        )
        open_invoices = await store.select(
            "invoices",
            Query()
            .select("outstanding_amount")
            .eq("law_firm_id", tenant)
            .in_("status", list(OPEN_INVOICE_STATUSES)),
        )
        outstanding = sum(row.get("outstanding_amount") or 0 for row in open_invoices)

        return {
            "message": "Indicadores do escritório carregados.",
            "stats": {
                "activeMatters": active_matters,
                "clients": clients,
                "openTasks": open_tasks,
                "overdueTasks": overdue_tasks,
                "openInvoices": len(open_invoices),
                "totalOutstanding": outstanding,
            },
        }

    return ToolDefinition(
        name="firm_dashboard_stats",
        description=(
            "Retorna indicadores gerais do escritório: processos ativos, clientes, tarefas e valores em aberto."
        ),
        input_schema_class=EmptyInput,
        handler=handler,
    )


class MatterSummaryInput(BaseModel):
    matter_id: str = Field(..., min_length=1, alias="matterId", description="ID do processo")

    model_config = {"populate_by_name": True}


def create_matter_summary_tool(scope: ToolScope) -> ToolDefinition:
    async def handler(params: MatterSummaryInput) -> ToolOutput:
        tenant = scope.tenant_id
        store = scope.store
        matter = await store.select_one(
            "matters", Query().eq("id", params.matter_id).eq("law_firm_id", tenant)
        )
        if not matter:
            return {"error": "Processo não encontrado ou sem permissão de acesso."}

        tasks = await store.select(
            "tasks",
            Query()
            .select("id, title, status, priority, due_date")
            .eq("matter_id", matter["id"])
            .eq("law_firm_id", tenant)
            .order("due_date")
            .limit(10),
        )
        documents = await store.select(
            "documents",
            Query()
            .select("id, name, file_type, category, created_at")
            .eq("matter_id", matter["id"])
            .eq("law_firm_id", tenant)
            .order("created_at", descending=True)
            .limit(10),
        )
        invoices = await store.select(
            "invoices",
            Query()
            .select("id, invoice_number, status, total_amount, due_date")
            .eq("matter_id", matter["id"])
            .eq("law_firm_id", tenant)
            .order("due_date", descending=True)
            .limit(5),
        )
        links = await store.select(
            "matter_contacts",
            Query()
            .select("contact_id, relationship_type")
            .eq("matter_id", matter["id"])
            .eq("law_firm_id", tenant)
            .limit(10),
        )
        contacts = []
        if links:
            contacts = await store.select(
                "contacts",
                Query()
                .select("id, full_name, company_name, contact_type, email")
                .eq("law_firm_id", tenant)
                .in_("id", [link["contact_id"] for link in links]),
            )

        pending = sum(1 for task in tasks if task.get("status") in OPEN_TASK_STATUSES)
        total_invoiced, _ = summarize_invoices(invoices)

        return {
            "message": f'Resumo do processo "{matter.get("title")}" carregado.',
            "matter": {
                "id": matter["id"],
                "title": matter.get("title"),
                "matterNumber": matter.get("matter_number"),
                "status": matter.get("status"),
                "priority": matter.get("priority"),
                "billingMethod": matter.get("billing_method"),
                "courtName": matter.get("court_name"),
                "processNumber": matter.get("process_number"),
                "openedDate": matter.get("opened_date"),
                "nextCourtDate": matter.get("next_court_date"),
            },
            "contacts": contacts,
            "tasks": {"total": len(tasks), "pending": pending, "items": tasks},
            "documents": {"total": len(documents), "items": documents},
            "invoices": {"total": len(invoices), "totalAmount": total_invoiced, "items": invoices},
        }

    return ToolDefinition(
        name="matter_summary",
        description=(
            "Obtém o resumo completo de um processo específico, incluindo contatos vinculados, "
            "tarefas, documentos e faturas."
        ),
        input_schema_class=MatterSummaryInput,
        handler=handler,
    )


READ_TOOL_FACTORIES = (
    create_query_matters_tool,
    create_query_clients_tool,
    create_query_tasks_tool,
    create_query_documents_tool,
    create_query_invoices_tool,
    create_query_calendar_tool,
    create_firm_dashboard_stats_tool,
    create_matter_summary_tool,
)
