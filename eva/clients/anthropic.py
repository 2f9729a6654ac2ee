"""Anthropic API client with throttling, retries and context-window truncation."""

import asyncio
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, Literal, TypeVar

import tiktoken
from anthropic import APIError, APIStatusError, AsyncAnthropic
from anthropic.types import Message
from limits import parse
from limits.storage import MemoryStorage
from limits.strategies import MovingWindowRateLimiter
from pydantic import BaseModel

from eva.exceptions import ConfigurationError
from eva.models.llm import ContentBlock, LLMResponse, LLMUsage, TextBlock, ToolResultBlock, ToolUseBlock
from eva.utils.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


class AnthropicMessage(BaseModel):
    """Message format for Anthropic API."""

    role: Literal["user", "assistant"]
    content: str | list[ContentBlock]


class AnthropicTool(BaseModel):
    """Tool definition for Anthropic API."""

    name: str
    description: str
    input_schema: dict[str, Any]


@dataclass
class AnthropicConfig:
    """Configuration for Anthropic API client."""

    model: str = "claude-sonnet-4-20250514"
    max_tokens: int = 2048
    temperature: float = 0.3
    max_retries: int = 3
    retry_delay: float = 1.0

    # Token limits for truncation
    max_conversation_tokens: int = 200000
    token_headroom: int = 4000

    requests_per_minute: int = 50
    tokens_per_minute: int = 40_000


class AnthropicRateLimiter:
    """Provider-side throttle shared by every caller of the client.

    This protects the API key's quota; per-user assistant quotas are enforced
    separately against the message log.
    """

    def __init__(self, requests_per_minute: int = 50, tokens_per_minute: int = 40_000):
        """Initialize the throttle.

        Args:
            requests_per_minute: Maximum requests per minute
            tokens_per_minute: Maximum estimated input tokens per minute
        """
        self.storage = MemoryStorage()
        self.limiter = MovingWindowRateLimiter(self.storage)

        self.request_limit = parse(f"{requests_per_minute}/minute")
        self.token_limit = parse(f"{tokens_per_minute}/minute")

    async def _wait_for(self, limit, identifier: str, cost: int) -> None:
        if self.limiter.hit(limit, identifier, cost=cost):
            return
        window_stats = self.limiter.get_window_stats(limit, identifier)
        wait_time = max(0.0, window_stats.reset_time - time.time())
        if wait_time > 0:
            logger.warning(f"Provider throttle reached for {identifier}, waiting {wait_time:.2f}s")
            await asyncio.sleep(wait_time)

    async def acquire(self, estimated_tokens: int, identifier: str = "anthropic") -> None:
        """Wait until a request of `estimated_tokens` fits in the current window."""
        logger.debug(f"Checking provider throttle for {estimated_tokens} tokens, identifier: {identifier}")
        await self._wait_for(self.request_limit, identifier, cost=1)
        await self._wait_for(self.token_limit, f"{identifier}_tokens", cost=max(1, estimated_tokens))


class AnthropicClient:
    """Low-level Anthropic API client."""

    tokenizer: tiktoken.Encoding | None = None
    client: AsyncAnthropic
    config: AnthropicConfig
    rate_limiter: AnthropicRateLimiter

    def __init__(self, api_key: str | None = None, config: AnthropicConfig | None = None):
        """Initialize Anthropic client.

        Args:
            api_key: Anthropic API key (defaults to the ANTHROPIC_API_KEY setting)
            config: Client configuration
        """
        from eva.config import get_settings

        anthropic_api_key = api_key or get_settings().anthropic_api_key
        if not anthropic_api_key:
            raise ConfigurationError("ANTHROPIC_API_KEY environment variable is required")

        self.client = AsyncAnthropic(api_key=anthropic_api_key)
        self.config = config or AnthropicConfig()
        self.rate_limiter = AnthropicRateLimiter(self.config.requests_per_minute, self.config.tokens_per_minute)

        try:
            # Close approximation for Claude
            self.tokenizer = tiktoken.encoding_for_model("gpt-4")
        except Exception:
            self.tokenizer = None

    async def create_message(
        self,
        messages: list[AnthropicMessage],
        system_prompt: str,
        tools: list[AnthropicTool] | None = None,
        **kwargs,
    ) -> LLMResponse:
        """Create a message with the Claude API.

        Args:
            messages: Conversation history
            system_prompt: System prompt
            tools: Available tools (omitted from the request when empty)
            **kwargs: Overrides for model, max_tokens and temperature

        Returns:
            Provider-agnostic response
        """
        truncated_messages = self.truncate_conversation(messages, system_prompt, tools)

        estimated_tokens = self._estimate_tokens(truncated_messages, system_prompt)
        await self.rate_limiter.acquire(estimated_tokens)

        request_params: dict[str, Any] = {
            "model": kwargs.get("model", self.config.model),
            "max_tokens": kwargs.get("max_tokens", self.config.max_tokens),
            "temperature": kwargs.get("temperature", self.config.temperature),
            "system": system_prompt,
            "messages": [msg.model_dump() for msg in truncated_messages],
        }
        if tools:
            request_params["tools"] = [tool.model_dump() for tool in tools]

        logger.debug(
            f"Calling {request_params['model']} with {len(truncated_messages)} messages, {len(tools or [])} tools"
        )
        response: Message = await self._request_with_retries(lambda: self.client.messages.create(**request_params))

        usage = LLMUsage()
        if response.usage:
            usage = LLMUsage(
                input_tokens=response.usage.input_tokens,
                output_tokens=response.usage.output_tokens,
                cache_creation_input_tokens=response.usage.cache_creation_input_tokens or 0,
                cache_read_input_tokens=response.usage.cache_read_input_tokens or 0,
            )

        logger.debug(f"Response received - Stop reason: {response.stop_reason}, blocks: {len(response.content)}")

        return LLMResponse(
            content=self._convert_content_blocks(response.content),
            stop_reason=response.stop_reason,
            usage=usage,
            model=response.model,
        )

    async def _request_with_retries(self, call: Callable[[], Awaitable[T]]) -> T:
        """Execute an API request, retrying rate-limit and server errors."""
        for attempt in range(self.config.max_retries):
            last_attempt = attempt == self.config.max_retries - 1
            try:
                return await call()

            except APIStatusError as e:
                if e.status_code == 429 and not last_attempt:
                    retry_after = int(e.response.headers.get("retry-after", 60))
                    if retry_after < 120:
                        logger.warning(f"Provider rate limited the request, retrying in {retry_after}s")
                        await asyncio.sleep(retry_after)
                        continue
                elif e.status_code >= 500 and not last_attempt:
                    await asyncio.sleep(self.config.retry_delay * (2**attempt))
                    continue
                raise

            except APIError:
                # Connection and timeout errors
                if not last_attempt:
                    await asyncio.sleep(self.config.retry_delay * (2**attempt))
                    continue
                raise

        raise RuntimeError(f"Failed to complete request after {self.config.max_retries} attempts")

    def _convert_content_blocks(self, anthropic_content: list[Any]) -> list[ContentBlock]:
        """Convert Anthropic content blocks to our ContentBlock types."""
        converted_blocks: list[ContentBlock] = []
        for block in anthropic_content:
            block_dict = block.model_dump() if hasattr(block, "model_dump") else dict(block)
            block_type = block_dict.get("type")
            if block_type == "text":
                converted_blocks.append(TextBlock.model_validate(block_dict))
            elif block_type == "tool_use":
                converted_blocks.append(ToolUseBlock.model_validate(block_dict))
            else:
                logger.warning(f"Skipping unsupported content block type: {block_type}")
        return converted_blocks

    def _message_text(self, message: AnthropicMessage) -> str:
        if isinstance(message.content, str):
            return message.content
        parts: list[str] = []
        for block in message.content:
            if isinstance(block, TextBlock):
                parts.append(block.text)
            elif isinstance(block, ToolUseBlock):
                parts.append(str(block.input))
            else:
                parts.append(block.content)
        return "".join(parts)

    @staticmethod
    def _is_tool_result_turn(message: AnthropicMessage) -> bool:
        return (
            message.role == "user"
            and not isinstance(message.content, str)
            and all(isinstance(block, ToolResultBlock) for block in message.content)
        )

    def _estimate_tokens(self, messages: list[AnthropicMessage], system_prompt: str) -> int:
        """Estimate the input token count of a request."""
        text_content = system_prompt + "".join(self._message_text(message) for message in messages)
        return self.estimate_text_tokens(text_content)

    def estimate_text_tokens(self, text: str) -> int:
        """Estimate token count for a piece of text.

        Falls back to roughly four characters per token without a tokenizer.
        """
        try:
            return len(self.tokenizer.encode(text)) if self.tokenizer else len(text) // 4
        except Exception:
            return len(text) // 4

    def truncate_conversation(
        self, messages: list[AnthropicMessage], system_prompt: str, tools: list[AnthropicTool] | None = None
    ) -> list[AnthropicMessage]:
        """Drop the oldest messages until the request fits in the context window.

        The newest message is always kept.
        """
        if not messages:
            return messages

        available_tokens = self.config.max_conversation_tokens - self.config.token_headroom
        available_tokens -= self.estimate_text_tokens(system_prompt)
        if tools:
            tool_content = "".join(tool.name + tool.description + str(tool.input_schema) for tool in tools)
            available_tokens -= self.estimate_text_tokens(tool_content)

        truncated_messages: list[AnthropicMessage] = []
        current_tokens = 0

        for message in reversed(messages):
            message_tokens = self.estimate_text_tokens(self._message_text(message))
            if truncated_messages and current_tokens + message_tokens > available_tokens:
                break
            truncated_messages.insert(0, message)
            current_tokens += message_tokens

        # A replay must open with a user turn that does not answer a dropped tool call
        while len(truncated_messages) > 1 and (
            truncated_messages[0].role == "assistant" or self._is_tool_result_turn(truncated_messages[0])
        ):
            truncated_messages.pop(0)

        if len(truncated_messages) < len(messages):
            logger.warning(
                f"Truncated conversation from {len(messages)} to {len(truncated_messages)} messages "
                f"to fit within {available_tokens} token limit"
            )

        return truncated_messages


_anthropic_client: AnthropicClient | None = None


def get_anthropic_client() -> AnthropicClient:
    """Get or create Anthropic client instance."""
    global _anthropic_client
    if _anthropic_client is None:
        _anthropic_client = AnthropicClient()
    return _anthropic_client
