"""LLM-related data models and types (provider-agnostic)."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict


# Content block types
class TextBlock(BaseModel):
    """Text content block."""

    model_config = ConfigDict(extra="ignore")

    type: Literal["text"] = "text"
    text: str


class ToolUseBlock(BaseModel):
    """Tool use content block."""

    model_config = ConfigDict(extra="ignore")

    type: Literal["tool_use"] = "tool_use"
    id: str
    name: str
    input: dict[str, Any]


class ToolResultBlock(BaseModel):
    """Tool result content block."""

    model_config = ConfigDict(extra="ignore")

    type: Literal["tool_result"] = "tool_result"
    tool_use_id: str
    content: str
    is_error: bool = False


ContentBlock = TextBlock | ToolUseBlock | ToolResultBlock


class LLMMessage(BaseModel):
    """A message for LLM conversation."""

    role: Literal["user", "assistant"]
    content: str | list[ContentBlock]


ToolOutput = dict[str, Any]


@dataclass
class LLMTool:
    """Tool with both schema and callable."""

    name: str
    description: str
    input_schema: dict[str, Any]
    callable: Callable[[dict[str, Any]], Awaitable[ToolOutput]]


@dataclass
class LLMUsage:
    """Token usage summed over one or more provider calls."""

    input_tokens: int = 0
    output_tokens: int = 0

    cache_creation_input_tokens: int = 0
    cache_read_input_tokens: int = 0

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens

    def add(self, other: "LLMUsage") -> None:
        """Accumulate another usage record into this one."""
        self.input_tokens += other.input_tokens
        self.output_tokens += other.output_tokens
        self.cache_creation_input_tokens += other.cache_creation_input_tokens
        self.cache_read_input_tokens += other.cache_read_input_tokens


@dataclass
class LLMResponse:
    """Provider-agnostic response from a single model call."""

    content: list[ContentBlock]
    stop_reason: str | None
    usage: LLMUsage
    model: str
    provider: str = "anthropic"

    @property
    def text(self) -> str:
        return "".join(block.text for block in self.content if isinstance(block, TextBlock))


class ToolCallRecord(BaseModel):
    """A tool call issued by the model during one step."""

    tool_use_id: str
    tool_name: str
    input: dict[str, Any]


class ToolResultRecord(BaseModel):
    """The output a tool returned for a call."""

    tool_use_id: str
    tool_name: str
    output: ToolOutput

    @property
    def requires_confirmation(self) -> bool:
        return bool(self.output.get("requiresConfirmation"))


@dataclass
class AgentStep:
    """One model call inside the agent loop and the tools it triggered."""

    text: str
    stop_reason: str | None
    tool_calls: list[ToolCallRecord] = field(default_factory=list)
    tool_results: list[ToolResultRecord] = field(default_factory=list)


@dataclass
class AgentLoopResult:
    """Result from executing an agent loop."""

    text: str
    stop_reason: str | None
    steps: list[AgentStep]
    usage: LLMUsage

    @property
    def tool_calls(self) -> list[ToolCallRecord]:
        return [call for step in self.steps for call in step.tool_calls]

    @property
    def tool_results(self) -> list[ToolResultRecord]:
        return [result for step in self.steps for result in step.tool_results]
