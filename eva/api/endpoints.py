"""API endpoints for the EVA assistant service."""

from datetime import UTC, datetime
from typing import Annotated, Any, TypeVar

from fastapi import APIRouter, Depends, Header, Query, Request
from pydantic import BaseModel, ValidationError

from eva import __version__
from eva.api.dependencies import (
    PortalUserDep,
    ProfileDep,
    StaffDep,
    get_chat_orchestrator,
    get_confirmation_service,
    get_conversation_service,
    get_deadline_scanner,
    get_notification_engine,
    get_rate_limiter,
)
from eva.config import Settings, get_settings
from eva.exceptions import AuthenticationError, ConfigurationError, InvalidRequestError, RateLimitExceededError
from eva.models.conversation import (
    ChatRequest,
    ChatResponse,
    ClientQARequest,
    ClientQAResponse,
    ConversationCreateRequest,
    ConversationListResponse,
    ConversationUpdateRequest,
    GhostWriteRequest,
    GhostWriteResponse,
    HealthResponse,
    NotifyRequest,
    ToolConfirmationRequest,
)
from eva.models.notifications import VALID_EVENT_TYPES, NotificationEvent
from eva.services.chat import ChatOrchestrator
from eva.services.confirmations import ConfirmationService
from eva.services.conversations import ConversationService
from eva.services.deadlines import DeadlineScanner
from eva.services.notifications import NotificationEngine
from eva.services.rate_limiter import RateLimiter
from eva.utils.logging import get_logger
from eva.utils.validation import describe_validation_error

logger = get_logger(__name__)

router = APIRouter()

ChatDep = Annotated[ChatOrchestrator, Depends(get_chat_orchestrator)]
ConversationsDep = Annotated[ConversationService, Depends(get_conversation_service)]

MISSING_BODY_ERRORS = {"missing", "model_type", "model_attributes_type"}


async def read_json_body(request: Request, required: bool = True) -> Any:
    """Decode the request body, reporting malformed JSON as a 400."""
    try:
        return await request.json()
    except ValueError as e:
        if not required:
            return {}
        raise InvalidRequestError("JSON inválido") from e


M = TypeVar("M", bound=BaseModel)


def parse_body(model: type[M], body: Any, default_error: str) -> M:
    """Validate a decoded body.

    A validator message is reported as is. A missing or null required field, or a
    body that is not an object, gets `default_error`; any other failure names the
    offending fields.
    """
    try:
        return model.model_validate(body)
    except ValidationError as e:
        errors = e.errors()
        for error in errors:
            if error.get("type") == "value_error" and "error" in error.get("ctx", {}):
                raise InvalidRequestError(str(error["ctx"]["error"])) from e
        if any(error.get("type") in MISSING_BODY_ERRORS or error.get("input") is None for error in errors):
            raise InvalidRequestError(default_error) from e
        raise InvalidRequestError(f"Dados inválidos: {describe_validation_error(e)}") from e


@router.post("/api/ai/chat", response_model=ChatResponse, response_model_exclude_none=True, tags=["Chat"])
async def chat(request: Request, caller: StaffDep, profile: ProfileDep, orchestrator: ChatDep) -> ChatResponse:
    """Run one assistant turn for a staff member."""
    body = await read_json_body(request)
    chat_request = parse_body(ChatRequest, body, "Mensagem é obrigatória")
    logger.info(f"Chat message from user {caller.user_id}: {chat_request.message[:50]}...")
    return await orchestrator.handle_turn(caller, profile, chat_request)


@router.post("/api/ai/client-qa", response_model=ClientQAResponse, tags=["Chat"])
async def client_qa(request: Request, profile: PortalUserDep, orchestrator: ChatDep) -> ClientQAResponse:
    """Answer a question asked in the client portal."""
    body = await read_json_body(request)
    qa_request = parse_body(ClientQARequest, body, "Query é obrigatória")
    return await orchestrator.answer_client_question(profile, qa_request.query)


@router.post("/api/ai/chat-ghost", response_model=GhostWriteResponse, tags=["Chat"])
async def chat_ghost(
    request: Request, caller: StaffDep, profile: ProfileDep, orchestrator: ChatDep
) -> GhostWriteResponse:
    """Draft a reply for the caller to send in a client conversation."""
    body = await read_json_body(request)
    ghost_request = parse_body(GhostWriteRequest, body, "Query é obrigatória")
    return await orchestrator.ghost_write(caller, profile, ghost_request)


@router.post("/api/ai/eva-notify", tags=["Notifications"])
async def eva_notify(
    request: Request,
    caller: StaffDep,
    rate_limiter: Annotated[RateLimiter, Depends(get_rate_limiter)],
    engine: Annotated[NotificationEngine, Depends(get_notification_engine)],
) -> dict[str, Any]:
    """Trigger a proactive notification for the caller's firm."""
    rate_limit = await rate_limiter.check(caller.user_id)
    if not rate_limit.allowed:
        raise RateLimitExceededError(rate_limit.error or "Limite de mensagens atingido.")

    body = await read_json_body(request)
    notify = parse_body(NotifyRequest, body, "eventType é obrigatório")
    if notify.event_type not in VALID_EVENT_TYPES:
        raise InvalidRequestError(f"eventType inválido. Valores aceitos: {', '.join(VALID_EVENT_TYPES)}")

    result = await engine.process(
        NotificationEvent(
            event_type=notify.event_type,
            law_firm_id=caller.tenant_id,
            matter_id=notify.matter_id,
            contact_id=notify.contact_id,
            metadata=notify.metadata,
        )
    )
    return {"success": True, "outcome": result.outcome.value}


@router.get("/api/cron/eva-deadlines", tags=["Notifications"])
async def eva_deadlines(
    scanner: Annotated[DeadlineScanner, Depends(get_deadline_scanner)],
    settings: Annotated[Settings, Depends(get_settings)],
    authorization: Annotated[str | None, Header()] = None,
) -> dict[str, Any]:
    """Daily job: notify clients about court dates in the next few days."""
    if not settings.cron_secret:
        logger.error("CRON_SECRET not configured")
        raise ConfigurationError("Serviço não configurado")
    if authorization != f"Bearer {settings.cron_secret}":
        raise AuthenticationError("Não autorizado")

    result = await scanner.run()
    return {"success": True, "total": result.total, "processed": result.processed, "skipped": result.skipped}


@router.post("/api/ai/tools/confirm", tags=["Tools"])
async def confirm_tool(
    request: Request,
    caller: StaffDep,
    confirmations: Annotated[ConfirmationService, Depends(get_confirmation_service)],
) -> dict[str, Any]:
    """Approve or reject a pending write proposal."""
    body = await read_json_body(request)
    confirmation = parse_body(ToolConfirmationRequest, body, 'Campos "toolExecutionId" e "approved" são obrigatórios')
    result = await confirmations.confirm(caller, confirmation.tool_execution_id, confirmation.approved)
    response: dict[str, Any] = {"message": result.message}
    if result.data is not None:
        response["data"] = result.data
    return response


@router.get("/api/ai/conversations", response_model=ConversationListResponse, tags=["Conversations"])
async def list_conversations(
    caller: StaffDep,
    conversations: ConversationsDep,
    page: Annotated[int, Query(ge=1)] = 1,
    per_page: Annotated[int, Query(ge=1, le=100)] = 20,
) -> ConversationListResponse:
    return await conversations.list_ai_conversations(caller.user_id, page, per_page)


@router.post("/api/ai/conversations", status_code=201, tags=["Conversations"])
async def create_conversation(request: Request, caller: StaffDep, conversations: ConversationsDep) -> dict[str, Any]:
    """Create an empty AI conversation. The body is optional."""
    body = await read_json_body(request, required=False)
    create = parse_body(ConversationCreateRequest, body or {}, "Dados inválidos")
    data = await conversations.create_ai_conversation(
        caller.tenant_id,
        caller.user_id,
        create.title or "Nova conversa",
        context_type=create.context_type,
        context_entity_id=create.context_entity_id,
    )
    return {"data": data}


@router.get("/api/ai/conversations/{conversation_id}", tags=["Conversations"])
async def get_conversation(conversation_id: str, caller: StaffDep, conversations: ConversationsDep) -> dict[str, Any]:
    return {"data": await conversations.get_ai_conversation_with_messages(conversation_id, caller.user_id)}


@router.patch("/api/ai/conversations/{conversation_id}", tags=["Conversations"])
async def update_conversation(
    conversation_id: str, request: Request, caller: StaffDep, conversations: ConversationsDep
) -> dict[str, Any]:
    body = await read_json_body(request)
    changes = parse_body(ConversationUpdateRequest, body, "Dados inválidos")
    return {"data": await conversations.update_ai_conversation(conversation_id, caller.user_id, changes)}


@router.delete("/api/ai/conversations/{conversation_id}", tags=["Conversations"])
async def delete_conversation(
    conversation_id: str, caller: StaffDep, conversations: ConversationsDep
) -> dict[str, str]:
    await conversations.delete_ai_conversation(conversation_id, caller.user_id)
    return {"message": "Conversa excluída"}


@router.get("/health", response_model=HealthResponse, tags=["Health"])
async def health_check() -> HealthResponse:
    """Health check endpoint."""
    return HealthResponse(
        status="healthy",
        timestamp=datetime.now(UTC),
        version=__version__,
    )
