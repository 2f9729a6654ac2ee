"""Chat orchestration for the staff assistant and the client portal."""

from datetime import UTC, datetime
from typing import Any

from eva.config import AssistantConfig
from eva.exceptions import EvaError, NotFoundError, RateLimitExceededError
from eva.models.caller import Caller, ClientCaller, StaffCaller, UserProfile
from eva.models.conversation import (
    ChatMessageOut,
    ChatRequest,
    ChatResponse,
    ClientQAResponse,
    GhostWriteRequest,
    GhostWriteResponse,
)
from eva.models.llm import AgentLoopResult, LLMMessage
from eva.services.context import build_context_info, build_conversation_context
from eva.services.conversations import ConversationService
from eva.services.firms import load_firm
from eva.services.llm import LLMService
from eva.services.prompts import build_client_qa_prompt, build_ghost_write_prompt, build_system_prompt
from eva.services.rate_limiter import RateLimiter
from eva.storage.base import DataStore, Query
from eva.tools.registry import ToolsRegistry
from eva.utils.logging import get_logger

logger = get_logger(__name__)


def serialize_tool_calls(result: AgentLoopResult) -> list[dict[str, Any]]:
    return [
        {"toolUseId": call.tool_use_id, "toolName": call.tool_name, "input": call.input} for call in result.tool_calls
    ]


def serialize_tool_results(result: AgentLoopResult, execution_ids: dict[str, str]) -> list[dict[str, Any]]:
    return [
        {
            "toolUseId": item.tool_use_id,
            "toolName": item.tool_name,
            "executionId": execution_ids.get(item.tool_use_id),
            "output": item.output,
        }
        for item in result.tool_results
    ]


class ChatOrchestrator:
    """Runs one assistant turn from the inbound message to the persisted reply."""

    def __init__(
        self,
        store: DataStore,
        llm_service: LLMService,
        config: AssistantConfig,
        rate_limiter: RateLimiter | None = None,
        conversations: ConversationService | None = None,
    ):
        """Initialize the orchestrator.

        Args:
            store: Data store for conversations, audit rows and tool queries
            llm_service: Service running the bounded agent loop
            config: Assistant limits (history size, tokens, temperature, steps)
            rate_limiter: Quota check (built from `config` when omitted)
            conversations: Conversation persistence (built from `store` when omitted)
        """
        self.store = store
        self.llm_service = llm_service
        self.config = config
        self.rate_limiter = rate_limiter or RateLimiter(store, config)
        self.conversations = conversations or ConversationService(store, config)

    async def _enforce_rate_limit(self, user_id: str) -> None:
        result = await self.rate_limiter.check(user_id)
        if not result.allowed:
            raise RateLimitExceededError(result.error or "Limite de mensagens atingido.")

    async def _run_agent(self, caller: Caller, messages: list[LLMMessage], system_prompt: str) -> AgentLoopResult:
        registry = ToolsRegistry(self.store, caller)
        try:
            return await self.llm_service.execute_agent_loop(
                messages=messages,
                system_prompt=system_prompt,
                tools=registry.get_llm_tools(),
                max_steps=self.config.max_steps,
                model=self.config.default_model,
                max_tokens=self.config.max_tokens,
                temperature=self.config.temperature,
            )
        except EvaError:
            raise
        except Exception as e:
            logger.error(f"Model invocation failed: {e}", exc_info=True)
            raise EvaError(str(e) or "Erro ao processar mensagem", original_error=e) from e

    async def _record_tool_executions(
        self, conversation_id: str, tenant_id: str, result: AgentLoopResult
    ) -> dict[str, str]:
        """Write one audit row per tool result and return their ids keyed by tool_use_id."""
        inputs = {call.tool_use_id: call.input for call in result.tool_calls}
        execution_ids: dict[str, str] = {}
        for item in result.tool_results:
            pending = item.requires_confirmation
            row = await self.store.insert(
                "ai_tool_executions",
                {
                    "conversation_id": conversation_id,
                    "law_firm_id": tenant_id,
                    "tool_name": item.tool_name,
                    "tool_use_id": item.tool_use_id,
                    "tool_input": inputs.get(item.tool_use_id),
                    "tool_output": item.output,
                    "status": "pending" if pending else "executed",
                    "requires_confirmation": pending,
                    "executed_at": None if pending else datetime.now(UTC).isoformat(),
                },
            )
            execution_ids[item.tool_use_id] = row["id"]
        return execution_ids

    async def handle_turn(self, caller: StaffCaller, profile: UserProfile, request: ChatRequest) -> ChatResponse:
        """Process one staff chat message.

        The user message is stored before the model runs, so it survives a
        failed model call and the next retry sees it in history.

        Raises:
            RateLimitExceededError: If the caller's quota for the window is used up
            NotFoundError: If `conversationId` is not one of the caller's conversations
            EvaError: If the model call fails
        """
        await self._enforce_rate_limit(caller.user_id)

        if request.conversation_id:
            conversation = await self.conversations.get_ai_conversation(
                request.conversation_id, caller.user_id, caller.tenant_id
            )
            conversation_id = conversation["id"]
        else:
            conversation = await self.conversations.create_ai_conversation(
                caller.tenant_id, caller.user_id, request.message[:100]
            )
            conversation_id = conversation["id"]

        context_info = await build_context_info(self.store, caller.tenant_id, request.page_context)
        firm = await load_firm(self.store, caller.tenant_id, self.config.default_firm_name)
        page = request.page_context
        system_prompt = build_system_prompt(
            firm_name=firm.name if firm else self.config.default_firm_name,
            user_name=profile.display_name,
            user_role=caller.role,
            current_page=(page.route if page and page.route else "/"),
            context_info=context_info,
        )

        history = await self.conversations.load_history(conversation_id, self.config.max_history_messages)
        await self.conversations.add_message(conversation_id, caller.tenant_id, "user", request.message)

        logger.info(f"Running chat turn in conversation {conversation_id} with {len(history)} history messages")
        result = await self._run_agent(
            caller, [*history, LLMMessage(role="user", content=request.message)], system_prompt
        )

        execution_ids = await self._record_tool_executions(conversation_id, caller.tenant_id, result)

        tool_calls = serialize_tool_calls(result) or None
        tool_results = serialize_tool_results(result, execution_ids) or None
        tokens_input = result.usage.input_tokens
        tokens_output = result.usage.output_tokens
        saved = await self.conversations.add_message(
            conversation_id,
            caller.tenant_id,
            "assistant",
            result.text,
            tool_calls=tool_calls,
            tool_results=tool_results,
            tokens_input=tokens_input,
            tokens_output=tokens_output,
        )
        await self.conversations.increment_tokens(conversation_id, tokens_input + tokens_output)

        return ChatResponse(
            conversation_id=conversation_id,
            message=ChatMessageOut(
                id=saved.get("id"),
                content=result.text,
                tool_calls=tool_calls,
                tool_results=tool_results,
                tokens_input=tokens_input,
                tokens_output=tokens_output,
            ),
        )

    async def answer_client_question(self, profile: UserProfile, query: str) -> ClientQAResponse:
        """Answer a portal question with the client-scoped tools.

        A non-empty answer is also posted into the client's message thread,
        attributed to the responsible lawyer.
        """
        await self._enforce_rate_limit(profile.id)

        contact = await self.store.select_one(
            "contacts",
            Query().select("id, law_firm_id, full_name, company_name, contact_type").eq("user_id", profile.id),
        )
        if not contact:
            raise NotFoundError("Perfil de contato não encontrado.")
        tenant_id = contact.get("law_firm_id")
        if not tenant_id:
            raise NotFoundError("Escritório não encontrado.")

        caller = ClientCaller(tenant_id=tenant_id, contact_id=contact["id"])

        link = await self.store.select_one(
            "matter_contacts",
            Query().select("matter_id").eq("contact_id", caller.contact_id).eq("law_firm_id", tenant_id),
        )
        sender_id = await self.conversations.resolve_staff_sender(tenant_id, link["matter_id"] if link else None)

        firm = await load_firm(self.store, tenant_id, self.config.default_firm_name)
        if contact.get("contact_type") == "company":
            client_name = contact.get("company_name") or contact.get("full_name") or "Cliente"
        else:
            client_name = contact.get("full_name") or "Cliente"
        system_prompt = build_client_qa_prompt(
            firm_name=firm.name if firm else self.config.default_firm_name, client_name=client_name
        )

        ai_conversation_id = await self.conversations.resolve_or_create_ai_conversation(
            tenant_id, profile.id, "client_portal", query
        )
        await self.conversations.add_message(
            ai_conversation_id, tenant_id, "user", query, source_type="client_portal"
        )

        result = await self._run_agent(caller, [LLMMessage(role="user", content=query)], system_prompt)
        content = result.text

        client_conversation_id = None
        if content.strip() and sender_id:
            client_conversation_id = await self.conversations.resolve_client_conversation(tenant_id, caller.contact_id)
            await self.conversations.post_client_message(
                tenant_id, client_conversation_id, caller.contact_id, sender_id, content
            )
        elif not sender_id:
            logger.warning(f"No staff sender found in firm {tenant_id}; portal answer not posted to the client thread")

        await self.conversations.add_message(
            ai_conversation_id,
            tenant_id,
            "assistant",
            content,
            tokens_input=result.usage.input_tokens,
            tokens_output=result.usage.output_tokens,
            source_type="client_portal",
            source_conversation_id=client_conversation_id,
        )
        await self.conversations.increment_tokens(ai_conversation_id, result.usage.total_tokens)

        return ClientQAResponse(content=content)

    async def ghost_write(
        self, caller: StaffCaller, profile: UserProfile, request: GhostWriteRequest
    ) -> GhostWriteResponse:
        """Draft a reply the staff member can send in a client conversation.

        The draft is not posted anywhere; it is logged to the caller's
        `chat_ghost` AI conversation with the client conversation as source.

        Raises:
            RateLimitExceededError: If the caller's quota for the window is used up
            NotFoundError: If the client conversation is not in the caller's firm
            EvaError: If the model call fails
        """
        await self._enforce_rate_limit(caller.user_id)

        source_conversation_id = request.conversation_id or ""
        conversation_context = await build_conversation_context(self.store, source_conversation_id, caller.tenant_id)
        if conversation_context is None:
            raise NotFoundError("Conversa não encontrada")

        firm = await load_firm(self.store, caller.tenant_id, self.config.default_firm_name)
        system_prompt = build_ghost_write_prompt(
            firm_name=firm.name if firm else self.config.default_firm_name,
            user_name=profile.display_name,
            user_role=caller.role,
            conversation_context=conversation_context,
        )

        ai_conversation_id = await self.conversations.resolve_or_create_ai_conversation(
            caller.tenant_id, caller.user_id, "chat_ghost", request.query
        )
        await self.conversations.add_message(
            ai_conversation_id,
            caller.tenant_id,
            "user",
            request.query,
            source_type="chat_ghost",
            source_conversation_id=source_conversation_id,
        )

        logger.info(f"Drafting reply for client conversation {source_conversation_id}")
        result = await self._run_agent(caller, [LLMMessage(role="user", content=request.query)], system_prompt)
        await self._record_tool_executions(ai_conversation_id, caller.tenant_id, result)

        await self.conversations.add_message(
            ai_conversation_id,
            caller.tenant_id,
            "assistant",
            result.text,
            tokens_input=result.usage.input_tokens,
            tokens_output=result.usage.output_tokens,
            source_type="chat_ghost",
            source_conversation_id=source_conversation_id,
        )
        await self.conversations.increment_tokens(ai_conversation_id, result.usage.total_tokens)

        return GhostWriteResponse(content=result.text)
