"""Persistence of AI conversations, AI messages and client-facing threads."""

import math
from datetime import UTC, datetime
from typing import Any, Literal

from eva.config import AssistantConfig
from eva.exceptions import InvalidRequestError, NotFoundError
from eva.models.conversation import ConversationListResponse, ConversationUpdateRequest
from eva.models.llm import LLMMessage
from eva.storage.base import DataStore, Query, Row
from eva.utils.logging import get_logger

logger = get_logger(__name__)

ContextType = Literal["chat", "client_portal", "proactive", "chat_ghost"]

CONTEXT_TITLES: dict[str, str] = {
    "client_portal": "Portal",
    "proactive": "Notificações proativas",
    "chat_ghost": "Ghost-write",
}

CONVERSATION_LIST_COLUMNS = (
    "id, title, status, context_type, provider, model, total_tokens_used, created_at, updated_at"
)
MESSAGE_COLUMNS = "id, role, content, tool_calls, tool_results, tokens_input, tokens_output, created_at"
SENDER_ROLES = ["admin", "lawyer"]


class ConversationService:
    """Store-backed conversation operations shared by the assistant pipelines."""

    def __init__(self, store: DataStore, config: AssistantConfig):
        self.store = store
        self.config = config

    # AI conversations

    async def create_ai_conversation(
        self,
        tenant_id: str,
        user_id: str,
        title: str,
        context_type: str | None = "chat",
        context_entity_id: str | None = None,
    ) -> Row:
        """Create an active AI conversation owned by `user_id`."""
        row = await self.store.insert(
            "ai_conversations",
            {
                "law_firm_id": tenant_id,
                "user_id": user_id,
                "title": title,
                "status": "active",
                "context_type": context_type or "chat",
                "context_entity_id": context_entity_id,
                "provider": self.config.default_provider,
                "model": self.config.default_model,
                "total_tokens_used": 0,
            },
        )
        logger.info(f"Created AI conversation {row['id']} ({row['context_type']}) for user {user_id}")
        return row

    async def get_ai_conversation(self, conversation_id: str, user_id: str, tenant_id: str | None = None) -> Row:
        """Load a non-deleted AI conversation owned by the caller.

        Raises:
            NotFoundError: If it does not exist, belongs to someone else, or was deleted
        """
        query = Query().eq("id", conversation_id).eq("user_id", user_id).neq("status", "deleted")
        if tenant_id:
            query.eq("law_firm_id", tenant_id)
        conversation = await self.store.select_one("ai_conversations", query)
        if not conversation:
            raise NotFoundError("Conversa não encontrada")
        return conversation

    async def get_ai_conversation_with_messages(self, conversation_id: str, user_id: str) -> Row:
        conversation = await self.get_ai_conversation(conversation_id, user_id)
        conversation["messages"] = await self.store.select(
            "ai_messages",
            Query().select(MESSAGE_COLUMNS).eq("conversation_id", conversation_id).order("created_at"),
        )
        return conversation

    async def list_ai_conversations(self, user_id: str, page: int = 1, per_page: int = 20) -> ConversationListResponse:
        """List the caller's conversations, most recently updated first."""
        page = max(page, 1)
        per_page = min(max(per_page, 1), 100)

        base = Query().eq("user_id", user_id).neq("status", "deleted")
        total = await self.store.count("ai_conversations", base)
        rows = await self.store.select(
            "ai_conversations",
            Query(filters=list(base.filters))
            .select(CONVERSATION_LIST_COLUMNS)
            .order("updated_at", descending=True)
            .offset((page - 1) * per_page)
            .limit(per_page),
        )
        return ConversationListResponse(
            data=rows,
            count=total,
            page=page,
            per_page=per_page,
            total_pages=math.ceil(total / per_page),
        )

    async def update_ai_conversation(
        self, conversation_id: str, user_id: str, changes: ConversationUpdateRequest
    ) -> Row:
        """Rename, archive or reactivate a conversation.

        Raises:
            InvalidRequestError: If no field was given
            NotFoundError: If the conversation is not the caller's
        """
        values = changes.model_dump(exclude_none=True)
        if not values:
            raise InvalidRequestError("Nenhum campo para atualizar")

        await self.get_ai_conversation(conversation_id, user_id)
        rows = await self.store.update(
            "ai_conversations", values, Query().eq("id", conversation_id).eq("user_id", user_id)
        )
        return rows[0]

    async def delete_ai_conversation(self, conversation_id: str, user_id: str) -> None:
        """Soft delete: the row stays, with status `deleted`."""
        await self.get_ai_conversation(conversation_id, user_id)
        await self.store.update(
            "ai_conversations", {"status": "deleted"}, Query().eq("id", conversation_id).eq("user_id", user_id)
        )
        logger.info(f"Soft deleted AI conversation {conversation_id}")

    async def resolve_or_create_ai_conversation(
        self, tenant_id: str, user_id: str, context_type: ContextType, first_query: str = ""
    ) -> str:
        """Reuse the user's latest active conversation of a context type, or start one.

        Portal questions, ghost-write drafts and proactive logs each get their own thread so they
        never bleed into the interactive chat history.
        """
        existing = await self.store.select_one(
            "ai_conversations",
            Query()
            .select("id")
            .eq("user_id", user_id)
            .eq("law_firm_id", tenant_id)
            .eq("status", "active")
            .eq("context_type", context_type)
            .order("updated_at", descending=True),
        )
        if existing:
            return existing["id"]

        prefix = CONTEXT_TITLES.get(context_type, "Chat")
        title = f"{prefix}: {first_query[:80]}" if first_query else prefix
        conversation = await self.create_ai_conversation(tenant_id, user_id, title, context_type=context_type)
        return conversation["id"]

    async def increment_tokens(self, conversation_id: str, tokens: int) -> int:
        """Add `tokens` to the running counter and return the new total.

        Read-then-update; concurrent turns may race, which only affects this
        informational counter.
        """
        current = await self.store.select_one(
            "ai_conversations", Query().select("total_tokens_used").eq("id", conversation_id)
        )
        total = ((current or {}).get("total_tokens_used") or 0) + max(tokens, 0)
        await self.store.update("ai_conversations", {"total_tokens_used": total}, Query().eq("id", conversation_id))
        return total

    # AI messages

    async def add_message(
        self,
        conversation_id: str,
        tenant_id: str,
        role: Literal["user", "assistant", "system"],
        content: str,
        **fields: Any,
    ) -> Row:
        """Append a message to an AI conversation and mark the conversation as updated.

        Extra columns go in `fields`.
        """
        row = {"conversation_id": conversation_id, "law_firm_id": tenant_id, "role": role, "content": content}
        row.update({key: value for key, value in fields.items() if value is not None})
        message = await self.store.insert("ai_messages", row)
        await self.store.update(
            "ai_conversations",
            {"updated_at": message.get("created_at") or datetime.now(UTC).isoformat()},
            Query().eq("id", conversation_id).eq("law_firm_id", tenant_id),
        )
        return message

    async def load_history(self, conversation_id: str, limit: int | None = None) -> list[LLMMessage]:
        """Most recent user/assistant messages of a conversation, oldest first."""
        rows = await self.store.select(
            "ai_messages",
            Query()
            .select("role, content")
            .eq("conversation_id", conversation_id)
            .in_("role", ["user", "assistant"])
            .order("created_at", descending=True)
            .limit(limit or self.config.max_history_messages),
        )
        return [
            LLMMessage(role=row["role"], content=row["content"]) for row in reversed(rows) if row.get("content")
        ]

    # Client-facing threads

    async def resolve_staff_sender(self, tenant_id: str, matter_id: str | None = None) -> str | None:
        """Staff member a client-facing message is attributed to.

        The matter's responsible lawyer when known, else any admin or lawyer of the firm.
        """
        if matter_id:
            matter = await self.store.select_one(
                "matters",
                Query().select("responsible_lawyer_id").eq("id", matter_id).eq("law_firm_id", tenant_id),
            )
            if matter and matter.get("responsible_lawyer_id"):
                return matter["responsible_lawyer_id"]

        fallback = await self.store.select_one(
            "users", Query().select("id").eq("law_firm_id", tenant_id).in_("user_type", SENDER_ROLES)
        )
        return fallback["id"] if fallback else None

    async def resolve_client_conversation(self, tenant_id: str, contact_id: str) -> str:
        """Reuse the contact's most recently updated active thread, or open a new one."""
        existing = await self.store.select_one(
            "conversations",
            Query()
            .select("id")
            .eq("law_firm_id", tenant_id)
            .eq("contact_id", contact_id)
            .eq("status", "active")
            .order("updated_at", descending=True),
        )
        if existing:
            return existing["id"]

        contact = await self.store.select_one(
            "contacts",
            Query().select("full_name, company_name").eq("id", contact_id).eq("law_firm_id", tenant_id),
        )
        contact_name = (contact or {}).get("full_name") or (contact or {}).get("company_name") or "Cliente"
        conversation = await self.store.insert(
            "conversations",
            {
                "law_firm_id": tenant_id,
                "title": f"Conversa com {contact_name}",
                "contact_id": contact_id,
                "conversation_type": "chat",
                "status": "active",
            },
        )
        logger.info(f"Created client conversation {conversation['id']} for contact {contact_id}")
        return conversation["id"]

    async def post_client_message(
        self, tenant_id: str, conversation_id: str, contact_id: str, sender_id: str, content: str
    ) -> Row:
        """Post a message into a client thread as an ordinary staff message."""
        message = await self.store.insert(
            "messages",
            {
                "law_firm_id": tenant_id,
                "conversation_id": conversation_id,
                "contact_id": contact_id,
                "content": content,
                "message_type": "text",
                "sender_id": sender_id,
                "sender_type": "user",
                "status": "sent",
            },
        )
        await self.store.update(
            "conversations",
            {"updated_at": datetime.now(UTC).isoformat()},
            Query().eq("id", conversation_id).eq("law_firm_id", tenant_id),
        )
        return message
