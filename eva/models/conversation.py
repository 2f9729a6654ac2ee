"""Request and response models for the assistant API."""

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class PageContext(BaseModel):
    """Where the user currently is in the application."""

    route: str | None = None
    entity_type: str | None = Field(default=None, alias="entityType")
    entity_id: str | None = Field(default=None, alias="entityId")

    model_config = ConfigDict(populate_by_name=True)


class ChatRequest(BaseModel):
    """Request body for the chat endpoint."""

    message: str
    conversation_id: str | None = Field(default=None, alias="conversationId")
    page_context: PageContext | None = Field(default=None, alias="pageContext")

    model_config = ConfigDict(populate_by_name=True)

    @field_validator("message")
    @classmethod
    def validate_message(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("Mensagem é obrigatória")
        return v


class ChatMessageOut(BaseModel):
    """Assistant message returned to the caller."""

    id: str | None
    content: str
    tool_calls: list[dict[str, Any]] | None = Field(default=None, serialization_alias="toolCalls")
    tool_results: list[dict[str, Any]] | None = Field(default=None, serialization_alias="toolResults")
    tokens_input: int = Field(serialization_alias="tokensInput")
    tokens_output: int = Field(serialization_alias="tokensOutput")


class ChatResponse(BaseModel):
    """Response body for a successful chat turn."""

    conversation_id: str = Field(serialization_alias="conversationId")
    message: ChatMessageOut


class ClientQARequest(BaseModel):
    """Request body for the client portal question endpoint."""

    query: str

    @field_validator("query")
    @classmethod
    def validate_query(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("Query é obrigatória")
        return v


class ClientQAResponse(BaseModel):
    """Answer shown in the client portal."""

    content: str


class GhostWriteRequest(ClientQARequest):
    """Request body for drafting a staff reply inside a client conversation."""

    conversation_id: str | None = Field(default=None, alias="conversationId")

    model_config = ConfigDict(populate_by_name=True)

    @model_validator(mode="after")
    def require_conversation(self) -> "GhostWriteRequest":
        if not self.conversation_id:
            raise ValueError("conversationId é obrigatório")
        return self


class GhostWriteResponse(BaseModel):
    """Draft reply for the staff member to review before sending."""

    content: str


class ConversationCreateRequest(BaseModel):
    """Request body for explicitly creating an AI conversation."""

    title: str | None = None
    context_type: str | None = Field(default=None, alias="contextType")
    context_entity_id: str | None = Field(default=None, alias="contextEntityId")

    model_config = ConfigDict(populate_by_name=True)


class ConversationUpdateRequest(BaseModel):
    """Fields of an AI conversation the owner may change."""

    title: str | None = None
    status: Literal["active", "archived"] | None = None


class ConversationListResponse(BaseModel):
    """One page of the caller's AI conversations."""

    data: list[dict[str, Any]]
    count: int
    page: int
    per_page: int
    total_pages: int


class ToolConfirmationRequest(BaseModel):
    """Human decision on a pending tool execution."""

    tool_execution_id: str = Field(alias="toolExecutionId")
    approved: bool

    model_config = ConfigDict(populate_by_name=True)


class NotifyRequest(BaseModel):
    """Request body for triggering a proactive notification."""

    event_type: str = Field(alias="eventType")
    matter_id: str | None = Field(default=None, alias="matterId")
    contact_id: str | None = Field(default=None, alias="contactId")
    metadata: dict[str, Any] = Field(default_factory=dict)

    model_config = ConfigDict(populate_by_name=True)


class HealthResponse(BaseModel):
    """Response model for health check endpoint."""

    status: str
    timestamp: datetime
    version: str
