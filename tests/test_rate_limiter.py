"""Tests for the per-user message quota."""

from datetime import UTC, datetime, timedelta

import httpx
import pytest

from eva.config import AssistantConfig
from eva.services.conversations import ConversationService
from eva.services.rate_limiter import CONVERSATION_BATCH_SIZE, RateLimiter
from eva.storage.supabase import SupabaseStore
from tests.conftest import FIRM_A


def postgrest_store(conversation_count: int, messages_per_batch: int, seen: list[httpx.Request]) -> SupabaseStore:
    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        if request.url.path.endswith("/ai_conversations"):
            return httpx.Response(200, json=[{"id": f"conv-{i:05d}-{'x' * 24}"} for i in range(conversation_count)])
        return httpx.Response(200, headers={"content-range": f"*/{messages_per_batch}"})

    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return SupabaseStore("https://project.supabase.co", "service-key", client=client)


class TestRateLimiter:
    @pytest.mark.asyncio
    async def test_many_conversations_keep_requests_short(self):
        seen: list[httpx.Request] = []
        limiter = RateLimiter(postgrest_store(400, 0, seen), AssistantConfig(rate_limit_max_messages=5))

        result = await limiter.check("lawyer-1")

        assert result.allowed
        counts = [request for request in seen if request.method == "HEAD"]
        assert len(counts) == 400 // CONVERSATION_BATCH_SIZE
        assert all(len(str(request.url)) < 4096 for request in seen)

    @pytest.mark.asyncio
    async def test_conversation_lookup_is_bounded_by_window(self):
        seen: list[httpx.Request] = []
        limiter = RateLimiter(postgrest_store(1, 0, seen), AssistantConfig(rate_limit_window_minutes=60))
        now = datetime(2025, 3, 7, 12, 0, tzinfo=UTC)

        await limiter.check("lawyer-1", now=now)

        lookup = seen[0]
        assert lookup.url.params["user_id"] == "eq.lawyer-1"
        assert lookup.url.params["updated_at"] == "gte.2025-03-07T11:00:00+00:00"

    @pytest.mark.asyncio
    async def test_stops_counting_once_quota_is_reached(self):
        seen: list[httpx.Request] = []
        limiter = RateLimiter(postgrest_store(400, 10, seen), AssistantConfig(rate_limit_max_messages=5))

        result = await limiter.check("lawyer-1")

        assert not result.allowed
        assert len([request for request in seen if request.method == "HEAD"]) == 1

    @pytest.mark.asyncio
    async def test_counts_user_messages_in_recent_conversations(self, store):
        config = AssistantConfig(rate_limit_max_messages=2)
        conversations = ConversationService(store, config)
        conversation = await conversations.create_ai_conversation(FIRM_A, "lawyer-1", "Chat")
        await conversations.add_message(conversation["id"], FIRM_A, "user", "1")
        await conversations.add_message(conversation["id"], FIRM_A, "assistant", "ok")

        limiter = RateLimiter(store, config)
        assert (await limiter.check("lawyer-1")).allowed

        await conversations.add_message(conversation["id"], FIRM_A, "user", "2")
        result = await limiter.check("lawyer-1")
        assert not result.allowed
        assert result.error

    @pytest.mark.asyncio
    async def test_old_conversations_are_ignored(self, store):
        stale = (datetime.now(UTC) - timedelta(days=2)).isoformat()
        await store.insert(
            "ai_conversations",
            {"id": "old-conv", "law_firm_id": FIRM_A, "user_id": "lawyer-1", "updated_at": stale},
        )
        for _ in range(3):
            await store.insert(
                "ai_messages", {"conversation_id": "old-conv", "role": "user", "content": "x", "created_at": stale}
            )

        limiter = RateLimiter(store, AssistantConfig(rate_limit_max_messages=2))
        assert (await limiter.check("lawyer-1")).allowed
