"""FastAPI dependencies: store, services and caller identity."""

from functools import lru_cache
from typing import Annotated

from fastapi import Depends, Header

from eva.config import AssistantConfig, get_settings
from eva.exceptions import AuthenticationError, ConfigurationError, PermissionDeniedError
from eva.models.caller import PORTAL_ROLES, StaffCaller, UserProfile
from eva.services.chat import ChatOrchestrator
from eva.services.confirmations import ConfirmationService
from eva.services.conversations import ConversationService
from eva.services.deadlines import DeadlineScanner
from eva.services.llm import LLMService, get_llm_service
from eva.services.notifications import NotificationEngine
from eva.services.rate_limiter import RateLimiter
from eva.storage import DataStore, InMemoryDataStore, Query, SupabaseStore
from eva.utils.logging import bind_log_context, get_logger

logger = get_logger(__name__)


@lru_cache
def get_store() -> DataStore:
    """Build the process-wide data store from settings."""
    settings = get_settings()
    if settings.store_backend == "memory":
        logger.warning("Using in-memory data store; data is lost on restart")
        return InMemoryDataStore()
    if not settings.supabase_url or not settings.supabase_service_role_key:
        raise ConfigurationError("SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY are required for the supabase backend")
    return SupabaseStore(
        settings.supabase_url, settings.supabase_service_role_key, timeout=settings.http_timeout
    )


async def close_store() -> None:
    """Release the process-wide store, closing its HTTP client when it has one."""
    if get_store.cache_info().currsize == 0:
        return
    store = get_store()
    if isinstance(store, SupabaseStore):
        await store.aclose()
        logger.info("Closed data store HTTP client")
    get_store.cache_clear()


def get_assistant_config() -> AssistantConfig:
    return get_settings().assistant_config()


StoreDep = Annotated[DataStore, Depends(get_store)]
ConfigDep = Annotated[AssistantConfig, Depends(get_assistant_config)]
LLMServiceDep = Annotated[LLMService, Depends(get_llm_service)]


async def get_current_profile(
    store: StoreDep,
    x_user_id: Annotated[str | None, Header()] = None,
) -> UserProfile:
    """Resolve the authenticated user forwarded by the auth gateway.

    Raises:
        AuthenticationError: If the header is missing or names no user
    """
    if not x_user_id:
        raise AuthenticationError("Não autorizado")
    row = await store.select_one(
        "users",
        Query()
        .select("id, law_firm_id, user_type, full_name, first_name, last_name")
        .eq("id", x_user_id),
    )
    if not row:
        raise AuthenticationError("Não autorizado")
    bind_log_context(row.get("law_firm_id"), row["id"])
    return UserProfile.model_validate(row)


ProfileDep = Annotated[UserProfile, Depends(get_current_profile)]


def require_staff(profile: ProfileDep) -> StaffCaller:
    """Staff identity of the caller; clients and firm-less users are refused."""
    caller = profile.staff_caller()
    if caller is None:
        raise PermissionDeniedError("Acesso negado")
    return caller


def require_portal_user(profile: ProfileDep) -> UserProfile:
    if profile.user_type not in PORTAL_ROLES:
        raise PermissionDeniedError("Acesso negado")
    return profile


StaffDep = Annotated[StaffCaller, Depends(require_staff)]
PortalUserDep = Annotated[UserProfile, Depends(require_portal_user)]


def get_conversation_service(store: StoreDep, config: ConfigDep) -> ConversationService:
    return ConversationService(store, config)


def get_rate_limiter(store: StoreDep, config: ConfigDep) -> RateLimiter:
    return RateLimiter(store, config)


def get_chat_orchestrator(store: StoreDep, llm_service: LLMServiceDep, config: ConfigDep) -> ChatOrchestrator:
    return ChatOrchestrator(store, llm_service, config)


def get_confirmation_service(store: StoreDep) -> ConfirmationService:
    return ConfirmationService(store)


def get_notification_engine(store: StoreDep, llm_service: LLMServiceDep, config: ConfigDep) -> NotificationEngine:
    return NotificationEngine(store, llm_service, config)


def get_deadline_scanner(
    store: StoreDep, engine: Annotated[NotificationEngine, Depends(get_notification_engine)], config: ConfigDep
) -> DeadlineScanner:
    return DeadlineScanner(store, engine, config)
