"""Per-user assistant quota derived from the message log."""

from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

from eva.config import AssistantConfig
from eva.storage.base import DataStore, Query
from eva.utils.logging import get_logger

logger = get_logger(__name__)

RATE_LIMIT_MESSAGE = "Limite de mensagens atingido. Tente novamente em alguns minutos."

# Conversation ids inlined per count request, keeping request URLs short
CONVERSATION_BATCH_SIZE = 50


@dataclass(frozen=True)
class RateLimitResult:
    allowed: bool
    error: str | None = None


class RateLimiter:
    """Counts the user's recent AI messages against a rolling window.

    There is no counter of its own: the count is read from `ai_messages`, so
    it always agrees with persisted history and resets as messages age out.
    Appending a message touches its conversation, so only conversations
    updated inside the window are counted.
    """

    def __init__(self, store: DataStore, config: AssistantConfig):
        self.store = store
        self.max_messages = config.rate_limit_max_messages
        self.window = timedelta(minutes=config.rate_limit_window_minutes)

    async def check(self, user_id: str, now: datetime | None = None) -> RateLimitResult:
        """Check whether `user_id` may send another message.

        Args:
            user_id: Authenticated user id
            now: Reference time (defaults to the current UTC time)

        Returns:
            RateLimitResult with a user-facing error when the quota is used up
        """
        window_start = (now or datetime.now(UTC)) - self.window
        since = window_start.isoformat()

        # Only conversations touched inside the window can hold messages inside it
        conversations = await self.store.select(
            "ai_conversations",
            Query().select("id").eq("user_id", user_id).gte("updated_at", since).order("updated_at", descending=True),
        )
        conversation_ids = [conversation["id"] for conversation in conversations]

        count = 0
        for start in range(0, len(conversation_ids), CONVERSATION_BATCH_SIZE):
            count += await self.store.count(
                "ai_messages",
                Query()
                .in_("conversation_id", conversation_ids[start : start + CONVERSATION_BATCH_SIZE])
                .eq("role", "user")
                .gte("created_at", since),
            )
            if count >= self.max_messages:
                logger.info(f"Rate limit reached for user {user_id}: {count}/{self.max_messages}")
                return RateLimitResult(allowed=False, error=RATE_LIMIT_MESSAGE)
        return RateLimitResult(allowed=True)
