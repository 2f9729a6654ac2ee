"""Tests for API endpoints."""

import asyncio

import pytest

from eva.config import Settings, get_settings
from eva.main import app
from tests.conftest import FIRM_A, text_response, tool_response

LAWYER = {"X-User-Id": "lawyer-1"}
STAFF = {"X-User-Id": "staff-1"}
CLIENT = {"X-User-Id": "client-user-1"}
OTHER_FIRM_LAWYER = {"X-User-Id": "lawyer-b"}


class TestHealthEndpoint:
    """Tests for the health check endpoint."""

    def test_health_check_response_structure(self, api):
        response = api.get("/health")
        data = response.json()

        assert response.status_code == 200
        assert data["status"] == "healthy"
        assert data["version"] == "0.1.0"
        assert "timestamp" in data

    def test_health_check_needs_no_identity(self, api):
        assert api.get("/health").status_code == 200


class TestAuthentication:
    """Tests for caller resolution."""

    def test_missing_user_header_is_401(self, api, store):
        response = api.post("/api/ai/chat", json={"message": "Olá"})

        assert response.status_code == 401
        assert response.json() == {"error": "Não autorizado"}
        assert store.rows("ai_conversations") == []

    def test_unknown_user_is_401(self, api):
        response = api.post("/api/ai/chat", json={"message": "Olá"}, headers={"X-User-Id": "ghost"})
        assert response.status_code == 401

    def test_client_cannot_use_staff_chat(self, api):
        response = api.post("/api/ai/chat", json={"message": "Olá"}, headers=CLIENT)

        assert response.status_code == 403
        assert response.json()["error"] == "Acesso negado"


class TestChatEndpoint:
    """Tests for POST /api/ai/chat."""

    def test_chat_returns_conversation_and_message(self, api, fake_client):
        fake_client.script(text_response("Você tem 3 processos ativos.", 40, 12))

        response = api.post("/api/ai/chat", json={"message": "Quantos processos ativos?"}, headers=LAWYER)
        data = response.json()

        assert response.status_code == 200
        assert data["conversationId"]
        assert data["message"]["content"] == "Você tem 3 processos ativos."
        assert data["message"]["tokensInput"] == 40
        assert data["message"]["tokensOutput"] == 12
        assert "toolCalls" not in data["message"]

    def test_invalid_json_is_400(self, api, store):
        response = api.post(
            "/api/ai/chat", content=b"{not json", headers={**LAWYER, "Content-Type": "application/json"}
        )

        assert response.status_code == 400
        assert response.json() == {"error": "JSON inválido"}
        assert store.rows("ai_conversations") == []

    @pytest.mark.parametrize("body", [{}, {"message": ""}, {"message": "   "}, {"message": None}, ["oi"]])
    def test_missing_message_is_400(self, api, store, fake_client, body):
        response = api.post("/api/ai/chat", json=body, headers=LAWYER)

        assert response.status_code == 400
        assert response.json() == {"error": "Mensagem é obrigatória"}
        assert store.rows("ai_conversations") == []
        assert fake_client.calls == []

    def test_invalid_field_is_named_in_error(self, api, store, fake_client):
        response = api.post("/api/ai/chat", json={"message": "oi", "pageContext": "x"}, headers=LAWYER)

        assert response.status_code == 400
        assert response.json()["error"].startswith("Dados inválidos: pageContext")
        assert fake_client.calls == []

    def test_rate_limited_caller_gets_429(self, api, store, config, fake_client):
        for i in range(config.rate_limit_max_messages):
            assert api.post("/api/ai/chat", json={"message": f"Pergunta {i}"}, headers=LAWYER).status_code == 200
        calls_before = len(fake_client.calls)

        response = api.post("/api/ai/chat", json={"message": "Mais uma"}, headers=LAWYER)

        assert response.status_code == 429
        assert "Limite de mensagens" in response.json()["error"]
        assert len(fake_client.calls) == calls_before
        assert len(store.rows("ai_messages", role="user")) == config.rate_limit_max_messages

    def test_write_proposal_is_returned_for_confirmation(self, api, fake_client):
        fake_client.script(
            tool_response("create_task", {"title": "Revisar contrato", "matterId": "matter-1"}),
            text_response("Posso criar a tarefa? Confirme abaixo."),
        )

        response = api.post("/api/ai/chat", json={"message": "Crie uma tarefa"}, headers=LAWYER)
        message = response.json()["message"]

        assert response.status_code == 200
        assert message["toolCalls"][0]["toolName"] == "create_task"
        assert message["toolResults"][0]["output"]["requiresConfirmation"] is True
        assert message["toolResults"][0]["executionId"]

    def test_foreign_conversation_id_is_404(self, api):
        first = api.post("/api/ai/chat", json={"message": "Olá"}, headers=LAWYER).json()

        response = api.post(
            "/api/ai/chat",
            json={"message": "Olá", "conversationId": first["conversationId"]},
            headers={"X-User-Id": "admin-1"},
        )

        assert response.status_code == 404


class TestClientQAEndpoint:
    """Tests for POST /api/ai/client-qa."""

    def test_client_question_is_answered(self, api, fake_client):
        fake_client.script(text_response("Seu processo está ativo."))

        response = api.post("/api/ai/client-qa", json={"query": "Como está meu processo?"}, headers=CLIENT)

        assert response.status_code == 200
        assert response.json() == {"content": "Seu processo está ativo."}

    def test_empty_query_is_400(self, api):
        response = api.post("/api/ai/client-qa", json={"query": " "}, headers=CLIENT)

        assert response.status_code == 400
        assert response.json() == {"error": "Query é obrigatória"}

    def test_user_without_contact_is_404(self, api):
        response = api.post("/api/ai/client-qa", json={"query": "Oi"}, headers=LAWYER)
        assert response.status_code == 404


class TestGhostWriteEndpoint:
    """Tests for POST /api/ai/chat-ghost."""

    @pytest.fixture
    def thread_id(self, store) -> str:
        conversation = asyncio.run(
            store.insert("conversations", {"law_firm_id": FIRM_A, "contact_id": "contact-1", "status": "active"})
        )
        return conversation["id"]

    def test_draft_is_returned(self, api, fake_client, thread_id):
        fake_client.script(text_response("Prezado Carlos, seguem as novidades."))

        body = {"query": "Escreva uma atualização", "conversationId": thread_id}
        response = api.post("/api/ai/chat-ghost", json=body, headers=LAWYER)

        assert response.status_code == 200
        assert response.json() == {"content": "Prezado Carlos, seguem as novidades."}

    @pytest.mark.parametrize(
        ("body", "error"),
        [
            ({"conversationId": "conv-1"}, "Query é obrigatória"),
            ({"query": "  ", "conversationId": "conv-1"}, "Query é obrigatória"),
            ({"query": "Rascunho"}, "conversationId é obrigatório"),
        ],
    )
    def test_required_fields(self, api, fake_client, body, error):
        response = api.post("/api/ai/chat-ghost", json=body, headers=LAWYER)

        assert response.status_code == 400
        assert response.json() == {"error": error}
        assert fake_client.calls == []

    def test_client_cannot_ghost_write(self, api, thread_id):
        response = api.post("/api/ai/chat-ghost", json={"query": "Oi", "conversationId": thread_id}, headers=CLIENT)
        assert response.status_code == 403

    def test_other_firm_conversation_is_404(self, api, thread_id):
        response = api.post(
            "/api/ai/chat-ghost", json={"query": "Oi", "conversationId": thread_id}, headers=OTHER_FIRM_LAWYER
        )
        assert response.status_code == 404


class TestConversationEndpoints:
    """Tests for the AI conversation CRUD routes."""

    def test_create_list_get_update_delete(self, api):
        created = api.post("/api/ai/conversations", json={"title": "Pesquisa"}, headers=LAWYER)
        assert created.status_code == 201
        conversation_id = created.json()["data"]["id"]
        assert created.json()["data"]["context_type"] == "chat"

        listing = api.get("/api/ai/conversations", headers=LAWYER).json()
        assert listing["count"] == 1
        assert listing["data"][0]["id"] == conversation_id

        fetched = api.get(f"/api/ai/conversations/{conversation_id}", headers=LAWYER).json()
        assert fetched["data"]["messages"] == []

        renamed = api.patch(f"/api/ai/conversations/{conversation_id}", json={"title": "Renomeada"}, headers=LAWYER)
        assert renamed.json()["data"]["title"] == "Renomeada"

        deleted = api.delete(f"/api/ai/conversations/{conversation_id}", headers=LAWYER)
        assert deleted.json() == {"message": "Conversa excluída"}
        assert api.get(f"/api/ai/conversations/{conversation_id}", headers=LAWYER).status_code == 404
        assert api.get("/api/ai/conversations", headers=LAWYER).json()["count"] == 0

    def test_create_without_body_uses_default_title(self, api):
        response = api.post("/api/ai/conversations", headers=LAWYER)

        assert response.status_code == 201
        assert response.json()["data"]["title"] == "Nova conversa"

    def test_other_users_conversation_is_404(self, api):
        conversation_id = api.post("/api/ai/conversations", json={}, headers=LAWYER).json()["data"]["id"]

        assert api.get(f"/api/ai/conversations/{conversation_id}", headers=STAFF).status_code == 404
        assert api.delete(f"/api/ai/conversations/{conversation_id}", headers=STAFF).status_code == 404

    def test_empty_update_is_400(self, api):
        conversation_id = api.post("/api/ai/conversations", json={}, headers=LAWYER).json()["data"]["id"]

        response = api.patch(f"/api/ai/conversations/{conversation_id}", json={}, headers=LAWYER)

        assert response.status_code == 400
        assert response.json() == {"error": "Nenhum campo para atualizar"}


class TestConfirmEndpoint:
    """Tests for POST /api/ai/tools/confirm."""

    def test_confirm_applies_pending_proposal(self, api, store, fake_client):
        fake_client.script(
            tool_response("create_task", {"title": "Ligar para o cliente"}),
            text_response("Confirme a criação da tarefa."),
        )
        api.post("/api/ai/chat", json={"message": "Crie uma tarefa"}, headers=LAWYER)
        execution = store.rows("ai_tool_executions", tool_name="create_task")[0]

        response = api.post(
            "/api/ai/tools/confirm", json={"toolExecutionId": execution["id"], "approved": True}, headers=LAWYER
        )

        assert response.status_code == 200
        assert response.json()["message"] == "Ação executada com sucesso"
        assert store.rows("tasks", title="Ligar para o cliente")

    def test_missing_fields_is_400(self, api):
        response = api.post("/api/ai/tools/confirm", json={"approved": True}, headers=LAWYER)
        assert response.status_code == 400

    def test_invalid_approved_value_names_the_field(self, api):
        response = api.post(
            "/api/ai/tools/confirm", json={"toolExecutionId": "x", "approved": "talvez"}, headers=LAWYER
        )

        assert response.status_code == 400
        assert response.json()["error"].startswith("Dados inválidos: approved")

    def test_staff_role_cannot_confirm(self, api):
        response = api.post("/api/ai/tools/confirm", json={"toolExecutionId": "x", "approved": True}, headers=STAFF)
        assert response.status_code == 403


class TestNotifyEndpoint:
    """Tests for POST /api/ai/eva-notify."""

    def test_invalid_event_type_is_400(self, api):
        response = api.post("/api/ai/eva-notify", json={"eventType": "birthday"}, headers=LAWYER)

        assert response.status_code == 400
        assert "eventType inválido" in response.json()["error"]

    def test_notification_reports_outcome(self, api, store):
        response = api.post(
            "/api/ai/eva-notify",
            json={"eventType": "new_document", "matterId": "matter-1", "metadata": {"document_name": "Laudo.pdf"}},
            headers=LAWYER,
        )

        assert response.status_code == 200
        assert response.json() == {"success": True, "outcome": "sent"}
        assert store.rows("messages", contact_id="contact-1")

    def test_event_is_scoped_to_callers_firm(self, api, store):
        response = api.post(
            "/api/ai/eva-notify",
            json={"eventType": "matter_status_change", "matterId": "matter-1"},
            headers=OTHER_FIRM_LAWYER,
        )

        assert response.json()["outcome"] == "skipped_disabled"
        assert store.rows("messages") == []


@pytest.fixture
def cron_secret():
    settings = Settings().model_copy(update={"cron_secret": "s3cret"})
    app.dependency_overrides[get_settings] = lambda: settings
    yield "s3cret"
    app.dependency_overrides.pop(get_settings, None)


class TestDeadlineCron:
    """Tests for GET /api/cron/eva-deadlines."""

    def test_wrong_secret_is_401(self, api, cron_secret):
        response = api.get("/api/cron/eva-deadlines", headers={"Authorization": "Bearer nope"})
        assert response.status_code == 401

    def test_scan_runs_with_secret(self, api, store, cron_secret):
        response = api.get("/api/cron/eva-deadlines", headers={"Authorization": f"Bearer {cron_secret}"})

        assert response.status_code == 200
        assert response.json() == {"success": True, "total": 1, "processed": 1, "skipped": 0}
        assert store.rows("messages", contact_id="contact-1")

    def test_unconfigured_secret_is_500(self, api):
        settings = Settings().model_copy(update={"cron_secret": ""})
        app.dependency_overrides[get_settings] = lambda: settings

        response = api.get("/api/cron/eva-deadlines", headers={"Authorization": "Bearer "})

        assert response.status_code == 500
        assert response.json() == {"error": "Serviço não configurado"}


def test_firm_b_lawyer_sees_no_firm_a_conversations(api):
    api.post("/api/ai/conversations", json={"title": "A"}, headers=LAWYER)
    listing = api.get("/api/ai/conversations", headers=OTHER_FIRM_LAWYER).json()

    assert listing["count"] == 0
