"""Shared fixtures: a seeded in-memory store and a scripted model client."""

from datetime import UTC, datetime, timedelta
from typing import Any

import pytest
from fastapi.testclient import TestClient

from eva.api.dependencies import get_assistant_config, get_store
from eva.config import AssistantConfig
from eva.main import app
from eva.models.llm import LLMResponse, LLMUsage, TextBlock, ToolUseBlock
from eva.services.llm import LLMService, get_llm_service
from eva.storage.memory import InMemoryDataStore

FIRM_A = "firm-a"
FIRM_B = "firm-b"
FIRM_C = "firm-c"

NEXT_COURT_DATE = (datetime.now(UTC).date() + timedelta(days=2)).isoformat()


def seed_tables() -> dict[str, list[dict[str, Any]]]:
    return {
        "law_firms": [
            {
                "id": FIRM_A,
                "name": "Silva & Associados",
                "features": {
                    "version": 1,
                    "eva_notifications": {
                        "matter_status_change": True,
                        "new_document": True,
                        "upcoming_deadline": True,
                        "task_completed": False,
                    },
                },
            },
            {"id": FIRM_B, "name": "Escritório B", "features": None},
            {"id": FIRM_C, "name": "Escritório C", "features": {"eva_notifications": {"new_document": True}}},
        ],
        "users": [
            {"id": "lawyer-1", "law_firm_id": FIRM_A, "user_type": "lawyer", "full_name": "Ana Silva"},
            {"id": "admin-1", "law_firm_id": FIRM_A, "user_type": "admin", "first_name": "Bruno", "last_name": "Reis"},
            {"id": "staff-1", "law_firm_id": FIRM_A, "user_type": "staff", "full_name": "Clara Dias"},
            {"id": "client-user-1", "law_firm_id": FIRM_A, "user_type": "client", "full_name": "Carlos Souza"},
            {"id": "client-user-2", "law_firm_id": FIRM_A, "user_type": "client", "full_name": "Beatriz Lima"},
            {"id": "lawyer-b", "law_firm_id": FIRM_B, "user_type": "lawyer", "full_name": "Pedro Alves"},
        ],
        "contacts": [
            {
                "id": "contact-1",
                "law_firm_id": FIRM_A,
                "user_id": "client-user-1",
                "full_name": "Carlos Souza",
                "contact_type": "individual",
                "email": "carlos@example.com",
                "client_status": "active",
                "cpf": "123.456.789-00",
            },
            {
                "id": "contact-2",
                "law_firm_id": FIRM_A,
                "user_id": "client-user-2",
                "full_name": "Beatriz Lima",
                "contact_type": "individual",
                "client_status": "active",
            },
            {"id": "contact-b", "law_firm_id": FIRM_B, "full_name": "Cliente B", "contact_type": "individual"},
            {"id": "contact-c", "law_firm_id": FIRM_C, "company_name": "Empresa C", "contact_type": "company"},
        ],
        "matters": [
            {
                "id": "matter-1",
                "law_firm_id": FIRM_A,
                "title": "Ação Trabalhista Souza",
                "matter_number": "2024-001",
                "status": "active",
                "priority": "high",
                "responsible_lawyer_id": "lawyer-1",
                "hourly_rate": 300.0,
                "next_court_date": NEXT_COURT_DATE,
            },
            {
                "id": "matter-2",
                "law_firm_id": FIRM_A,
                "title": "Divórcio Lima",
                "matter_number": "2024-002",
                "status": "on_hold",
                "priority": "medium",
                "responsible_lawyer_id": None,
            },
            {
                "id": "matter-3",
                "law_firm_id": FIRM_A,
                "title": "Consultoria sem cliente",
                "matter_number": "2024-003",
                "status": "active",
            },
            {
                "id": "matter-b",
                "law_firm_id": FIRM_B,
                "title": "Processo Firma B",
                "matter_number": "B-001",
                "status": "active",
            },
        ],
        "matter_contacts": [
            {"matter_id": "matter-1", "contact_id": "contact-1", "law_firm_id": FIRM_A},
            {"matter_id": "matter-2", "contact_id": "contact-2", "law_firm_id": FIRM_A},
            {"matter_id": "matter-b", "contact_id": "contact-b", "law_firm_id": FIRM_B},
        ],
        "tasks": [
            {
                "id": "task-1",
                "law_firm_id": FIRM_A,
                "matter_id": "matter-1",
                "title": "Preparar contestação",
                "status": "pending",
                "priority": "high",
                "due_date": NEXT_COURT_DATE,
            },
            {
                "id": "task-2",
                "law_firm_id": FIRM_A,
                "matter_id": "matter-2",
                "title": "Reunião de conciliação",
                "status": "pending",
                "priority": "medium",
            },
        ],
        "documents": [
            {"id": "doc-1", "law_firm_id": FIRM_A, "matter_id": "matter-1", "name": "Petição inicial.pdf",
             "access_level": "client"},
            {"id": "doc-2", "law_firm_id": FIRM_A, "matter_id": "matter-1", "name": "Estratégia interna.docx",
             "access_level": "internal"},
            {"id": "doc-3", "law_firm_id": FIRM_A, "matter_id": "matter-2", "name": "Acordo.pdf",
             "access_level": "client"},
        ],
        "invoices": [
            {"id": "inv-1", "law_firm_id": FIRM_A, "contact_id": "contact-1", "invoice_number": "F-001",
             "status": "sent", "total_amount": 1500.0, "outstanding_amount": 1500.0},
            {"id": "inv-2", "law_firm_id": FIRM_A, "contact_id": "contact-2", "invoice_number": "F-002",
             "status": "paid", "total_amount": 800.0, "outstanding_amount": 0.0},
        ],
    }


def text_response(text: str, input_tokens: int = 10, output_tokens: int = 5) -> LLMResponse:
    return LLMResponse(
        content=[TextBlock(text=text)] if text else [],
        stop_reason="end_turn",
        usage=LLMUsage(input_tokens=input_tokens, output_tokens=output_tokens),
        model="claude-test",
    )


def tool_response(
    name: str, tool_input: dict[str, Any], tool_use_id: str = "toolu_1", input_tokens: int = 20, output_tokens: int = 8
) -> LLMResponse:
    return LLMResponse(
        content=[ToolUseBlock(id=tool_use_id, name=name, input=tool_input)],
        stop_reason="tool_use",
        usage=LLMUsage(input_tokens=input_tokens, output_tokens=output_tokens),
        model="claude-test",
    )


class FakeAnthropicClient:
    """Stands in for `AnthropicClient`, replaying scripted responses.

    Scripted exceptions are raised instead of returned. Once the script runs
    out, a plain text response is returned.
    """

    def __init__(self, responses: list[LLMResponse | Exception] | None = None):
        self.responses = list(responses or [])
        self.calls: list[dict[str, Any]] = []

    def script(self, *responses: LLMResponse | Exception) -> None:
        self.responses.extend(responses)

    async def create_message(self, messages, system_prompt, tools=None, **kwargs) -> LLMResponse:
        self.calls.append(
            {"messages": list(messages), "system_prompt": system_prompt, "tools": tools, "kwargs": kwargs}
        )
        if not self.responses:
            return text_response("Certo.")
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


@pytest.fixture
def store() -> InMemoryDataStore:
    return InMemoryDataStore(seed_tables())


@pytest.fixture
def fake_client() -> FakeAnthropicClient:
    return FakeAnthropicClient()


@pytest.fixture
def llm_service(fake_client) -> LLMService:
    return LLMService(client=fake_client)


@pytest.fixture
def config() -> AssistantConfig:
    return AssistantConfig(rate_limit_max_messages=5)


@pytest.fixture
def api(store, llm_service, config):
    """TestClient wired to the seeded store and the scripted model."""
    app.dependency_overrides[get_store] = lambda: store
    app.dependency_overrides[get_llm_service] = lambda: llm_service
    app.dependency_overrides[get_assistant_config] = lambda: config
    with TestClient(app) as client:
        yield client
    app.dependency_overrides.clear()
