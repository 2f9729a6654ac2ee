"""Read-only tools for the client portal.

Every lookup is restricted to the caller's own contact: matters are reached
only through `matter_contacts` rows of that contact, invoices by the contact
id itself. No firm-wide query and no write tool is exposed here.
"""

from typing import Literal

from pydantic import BaseModel, Field

from eva.models.llm import ToolOutput
from eva.storage.base import Query
from eva.tools.base import ToolDefinition, ToolScope, format_brl
from eva.tools.staff_read import InvoiceStatus, MatterStatus, summarize_invoices

ClientTaskStatus = Literal["pending", "in_progress", "completed", "cancelled"]


async def get_client_matter_ids(scope: ToolScope) -> list[str]:
    """Matter ids linked to the caller's contact, memoized for the request."""
    cache = scope.matter_cache
    if cache.matter_ids is not None:
        return cache.matter_ids

    links = await scope.store.select(
        "matter_contacts",
        Query().select("matter_id").eq("contact_id", scope.contact_id).eq("law_firm_id", scope.tenant_id),
    )
    cache.matter_ids = [link["matter_id"] for link in links]
    return cache.matter_ids


class QueryMyMattersInput(BaseModel):
    search: str | None = Field(default=None, max_length=200, description="Texto para buscar no título do processo")
    status: MatterStatus | None = Field(default=None, description="Status do processo")
    limit: int = Field(default=5, ge=1, le=10, description="Número máximo de resultados")


def create_query_my_matters_tool(scope: ToolScope) -> ToolDefinition:
    async def handler(params: QueryMyMattersInput) -> ToolOutput:
        matter_ids = await get_client_matter_ids(scope)
        if not matter_ids:
            return {"message": "Nenhum processo encontrado para este cliente.", "results": []}

        query = (
            Query()
            .select(
                "id, title, matter_number, status, priority, court_name, process_number, opened_date, next_court_date"
            )
            .eq("law_firm_id", scope.tenant_id)
            .in_("id", matter_ids)
            .order("updated_at", descending=True)
            .limit(params.limit)
        )
        if params.search:
            query.search(["title", "matter_number"], params.search)
        if params.status:
            query.eq("status", params.status)

        rows = await scope.store.select("matters", query)
        if not rows:
            return {"message": "Nenhum processo encontrado com os filtros informados.", "results": []}
        return {"message": f"{len(rows)} processo(s) encontrado(s).", "results": rows}

    return ToolDefinition(
        name="query_my_matters",
        description="Busca os processos do cliente. Retorna apenas processos vinculados a este cliente.",
        input_schema_class=QueryMyMattersInput,
        handler=handler,
    )


class QueryMyTasksInput(BaseModel):
    status: ClientTaskStatus | None = Field(default=None, description="Status da tarefa")
    limit: int = Field(default=5, ge=1, le=10, description="Número máximo de resultados")


def create_query_my_tasks_tool(scope: ToolScope) -> ToolDefinition:
    async def handler(params: QueryMyTasksInput) -> ToolOutput:
        matter_ids = await get_client_matter_ids(scope)
        if not matter_ids:
            return {"message": "Nenhuma tarefa encontrada.", "results": []}

        query = (
            Query()
            .select("id, title, status, priority, due_date, task_type, matter_id")
            .eq("law_firm_id", scope.tenant_id)
            .in_("matter_id", matter_ids)
            .order("due_date")
            .limit(params.limit)
        )
        if params.status:
            query.eq("status", params.status)

        rows = await scope.store.select("tasks", query)
        if not rows:
            return {"message": "Nenhuma tarefa encontrada.", "results": []}
        return {"message": f"{len(rows)} tarefa(s) encontrada(s).", "results": rows}

    return ToolDefinition(
        name="query_my_tasks",
        description="Busca tarefas dos processos do cliente. Retorna apenas tarefas dos processos deste cliente.",
        input_schema_class=QueryMyTasksInput,
        handler=handler,
    )


class QueryMyInvoicesInput(BaseModel):
    status: InvoiceStatus | None = Field(default=None, description="Status da fatura")
    limit: int = Field(default=5, ge=1, le=10, description="Número máximo de resultados")


def create_query_my_invoices_tool(scope: ToolScope) -> ToolDefinition:
    async def handler(params: QueryMyInvoicesInput) -> ToolOutput:
        query = (
            Query()
            .select(
                "id, invoice_number, title, status, total_amount, paid_amount, outstanding_amount, due_date, issue_date"
            )
            .eq("law_firm_id", scope.tenant_id)
            .eq("contact_id", scope.contact_id)
            .order("due_date", descending=True)
            .limit(params.limit)
        )
        if params.status:
            query.eq("status", params.status)

        rows = await scope.store.select("invoices", query)
        if not rows:
            return {"message": "Nenhuma fatura encontrada.", "results": []}

        total, outstanding = summarize_invoices(rows)
        return {
            "message": f"{len(rows)} fatura(s). Total: {format_brl(total)}. Em aberto: {format_brl(outstanding)}.",
            "results": rows,
            "summary": {"totalAmount": total, "totalOutstanding": outstanding, "count": len(rows)},
        }

    return ToolDefinition(
        name="query_my_invoices",
        description="Busca faturas do cliente. Retorna apenas faturas deste cliente.",
        input_schema_class=QueryMyInvoicesInput,
        handler=handler,
    )


class QueryMyDocumentsInput(BaseModel):
    search: str | None = Field(default=None, max_length=200, description="Texto para buscar no nome do documento")
    limit: int = Field(default=5, ge=1, le=10, description="Número máximo de resultados")


def create_query_my_documents_tool(scope: ToolScope) -> ToolDefinition:
    async def handler(params: QueryMyDocumentsInput) -> ToolOutput:
        matter_ids = await get_client_matter_ids(scope)
        if not matter_ids:
            return {"message": "Nenhum documento encontrado.", "results": []}

        query = (
            Query()
            .select("id, name, description, file_type, category, created_at")
            .eq("law_firm_id", scope.tenant_id)
            .in_("matter_id", matter_ids)
            .eq("access_level", "client")
            .order("created_at", descending=True)
            .limit(params.limit)
        )
        if params.search:
            query.ilike("name", f"%{params.search}%")

        rows = await scope.store.select("documents", query)
        if not rows:
            return {"message": "Nenhum documento encontrado.", "results": []}
        return {"message": f"{len(rows)} documento(s) encontrado(s).", "results": rows}

    return ToolDefinition(
        name="query_my_documents",
        description=(
            "Busca documentos dos processos do cliente. Retorna apenas documentos liberados para o cliente "
            "e vinculados aos seus processos."
        ),
        input_schema_class=QueryMyDocumentsInput,
        handler=handler,
    )


CLIENT_TOOL_FACTORIES = (
    create_query_my_matters_tool,
    create_query_my_tasks_tool,
    create_query_my_invoices_tool,
    create_query_my_documents_tool,
)
