"""Page context summaries appended to the staff system prompt."""

from datetime import date, datetime

from eva.models.conversation import PageContext
from eva.storage.base import DataStore, Query

MAX_CONTEXT_MESSAGES = 20
MAX_CONTEXT_MESSAGE_LENGTH = 500


def format_date_br(value: str | None) -> str | None:
    """Render an ISO date or timestamp as DD/MM/YYYY."""
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value) if "T" in value else date.fromisoformat(value)
    except ValueError:
        return value
    return parsed.strftime("%d/%m/%Y")


def _format_time(value: str | None) -> str:
    if not value:
        return "--:--"
    try:
        return datetime.fromisoformat(value).strftime("%H:%M")
    except ValueError:
        return "--:--"


def _lines(*lines: str | None) -> str:
    return "\n".join(line for line in lines if line)


async def build_context_info(store: DataStore, tenant_id: str | None, page_context: PageContext | None) -> str | None:
    """Summarize the entity the user is looking at, if any.

    Args:
        store: Data store
        tenant_id: Caller's firm; no context is built without one
        page_context: Route and entity reported by the client

    Returns:
        Markdown-ish summary, or None when there is nothing to add
    """
    if not page_context or not page_context.entity_type or not page_context.entity_id or not tenant_id:
        return None

    entity_id = page_context.entity_id
    match page_context.entity_type:
        case "matter":
            return await build_matter_context(store, entity_id, tenant_id)
        case "client":
            return await build_client_context(store, entity_id, tenant_id)
        case "task":
            return await build_task_context(store, entity_id, tenant_id)
        case "conversation":
            return await build_conversation_context(store, entity_id, tenant_id)
        case _:
            return None


async def build_matter_context(store: DataStore, matter_id: str, tenant_id: str) -> str | None:
    matter = await store.select_one(
        "matters",
        Query()
        .select(
            "title, matter_number, status, priority, billing_method, court_name, process_number, "
            "opened_date, next_court_date"
        )
        .eq("id", matter_id)
        .eq("law_firm_id", tenant_id),
    )
    if not matter:
        return None

    next_court_date = format_date_br(matter.get("next_court_date"))
    return _lines(
        "O usuário está visualizando o processo:",
        f"- **Título**: {matter.get('title')}",
        f"- **Número**: {matter.get('matter_number')}",
        f"- **Status**: {matter.get('status') or 'não definido'}",
        f"- **Prioridade**: {matter.get('priority') or 'não definida'}",
        f"- **Método de cobrança**: {matter.get('billing_method') or 'não definido'}",
        f"- **Tribunal**: {matter['court_name']}" if matter.get("court_name") else None,
        f"- **Número do processo**: {matter['process_number']}" if matter.get("process_number") else None,
        f"- **Próxima audiência**: {next_court_date}" if next_court_date else None,
    )


async def build_client_context(store: DataStore, contact_id: str, tenant_id: str) -> str | None:
    contact = await store.select_one(
        "contacts",
        Query()
        .select("full_name, company_name, contact_type, email, phone, client_status, cpf, cnpj")
        .eq("id", contact_id)
        .eq("law_firm_id", tenant_id),
    )
    if not contact:
        return None

    is_company = contact.get("contact_type") == "company"
    name = contact.get("company_name") if is_company else contact.get("full_name")
    document = contact.get("cnpj") if is_company else contact.get("cpf")
    return _lines(
        "O usuário está visualizando o cliente:",
        f"- **Nome**: {name or 'não informado'}",
        f"- **Tipo**: {'Pessoa Jurídica' if is_company else 'Pessoa Física'}",
        f"- **Documento**: {document}" if document else None,
        f"- **Email**: {contact.get('email') or 'não informado'}",
        f"- **Status**: {contact.get('client_status') or 'não definido'}",
    )


async def build_task_context(store: DataStore, task_id: str, tenant_id: str) -> str | None:
    task = await store.select_one(
        "tasks",
        Query()
        .select("title, description, status, priority, due_date, task_type")
        .eq("id", task_id)
        .eq("law_firm_id", tenant_id),
    )
    if not task:
        return None

    due_date = format_date_br(task.get("due_date"))
    return _lines(
        "O usuário está visualizando a tarefa:",
        f"- **Título**: {task.get('title')}",
        f"- **Status**: {task.get('status') or 'pendente'}",
        f"- **Prioridade**: {task.get('priority') or 'não definida'}",
        f"- **Tipo**: {task.get('task_type') or 'geral'}",
        f"- **Prazo**: {due_date}" if due_date else None,
        f"- **Descrição**: {task['description']}" if task.get("description") else None,
    )


async def build_conversation_context(store: DataStore, conversation_id: str, tenant_id: str) -> str | None:
    """Summarize a client-facing conversation with its most recent messages."""
    conversation = await store.select_one(
        "conversations",
        Query().select("title, topic, conversation_type").eq("id", conversation_id).eq("law_firm_id", tenant_id),
    )
    if not conversation:
        return None

    title = conversation.get("title") or "Sem título"
    conversation_type = conversation.get("conversation_type") or "chat"

    messages = await store.select(
        "messages",
        Query()
        .select("content, sender_type, created_at")
        .eq("conversation_id", conversation_id)
        .eq("law_firm_id", tenant_id)
        .order("created_at", descending=True)
        .limit(MAX_CONTEXT_MESSAGES),
    )
    if not messages:
        return f"Conversa: {title}\nTipo: {conversation_type}\nNenhuma mensagem anterior."

    lines = []
    for message in reversed(messages):
        sender = "Cliente" if message.get("sender_type") == "contact" else "Escritório"
        content = message.get("content") or ""
        if len(content) > MAX_CONTEXT_MESSAGE_LENGTH:
            content = content[:MAX_CONTEXT_MESSAGE_LENGTH] + "..."
        lines.append(f"[{_format_time(message.get('created_at'))}] {sender}: {content}")

    return (
        f"Conversa: {title}\n"
        f"Tópico: {conversation.get('topic') or 'geral'}\n"
        f"Tipo: {conversation_type}\n\n"
        f"### Histórico recente (últimas {len(messages)} mensagens):\n" + "\n".join(lines)
    )
