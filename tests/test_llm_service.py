"""Tests for the bounded agent loop."""

import json

import pytest

from eva.models.llm import LLMMessage, LLMTool, ToolResultBlock
from eva.services.llm import LLMService, serialize_tool_output
from tests.conftest import FakeAnthropicClient, text_response, tool_response


def echo_tool(calls: list[dict]) -> LLMTool:
    async def run(params: dict) -> dict:
        calls.append(params)
        return {"message": "ok", "results": [params]}

    return LLMTool(
        name="echo",
        description="Echo the input",
        input_schema={"type": "object", "properties": {}},
        callable=run,
    )


def user(text: str) -> list[LLMMessage]:
    return [LLMMessage(role="user", content=text)]


class TestAgentLoop:
    """Tests for LLMService.execute_agent_loop."""

    @pytest.mark.asyncio
    async def test_single_step_without_tools(self):
        client = FakeAnthropicClient([text_response("Olá!", input_tokens=12, output_tokens=3)])
        result = await LLMService(client=client).execute_agent_loop(user("Oi"), "system", {})

        assert result.text == "Olá!"
        assert result.stop_reason == "end_turn"
        assert len(result.steps) == 1
        assert result.usage.input_tokens == 12
        assert result.usage.output_tokens == 3
        assert client.calls[0]["tools"] is None

    @pytest.mark.asyncio
    async def test_tool_call_then_answer(self):
        calls: list[dict] = []
        client = FakeAnthropicClient(
            [
                tool_response("echo", {"q": "x"}, tool_use_id="toolu_a", input_tokens=20, output_tokens=8),
                text_response("Pronto", input_tokens=30, output_tokens=4),
            ]
        )
        result = await LLMService(client=client).execute_agent_loop(
            user("Busque"), "system", {"echo": echo_tool(calls)}
        )

        assert calls == [{"q": "x"}]
        assert result.text == "Pronto"
        assert len(result.steps) == 2
        assert result.tool_calls[0].tool_use_id == "toolu_a"
        assert result.tool_results[0].tool_use_id == "toolu_a"
        assert result.tool_results[0].output["message"] == "ok"
        assert result.usage.input_tokens == 50
        assert result.usage.output_tokens == 12

        second_request = client.calls[1]["messages"]
        assert [message.role for message in second_request] == ["user", "assistant", "user"]
        result_block = second_request[-1].content[0]
        assert isinstance(result_block, ToolResultBlock)
        assert result_block.tool_use_id == "toolu_a"
        assert json.loads(result_block.content)["message"] == "ok"

    @pytest.mark.asyncio
    async def test_loop_stops_at_max_steps(self):
        calls: list[dict] = []
        client = FakeAnthropicClient(
            [tool_response("echo", {"n": i}, tool_use_id=f"toolu_{i}") for i in range(10)]
        )
        result = await LLMService(client=client).execute_agent_loop(
            user("Loop"), "system", {"echo": echo_tool(calls)}, max_steps=3
        )

        assert len(client.calls) == 3
        assert len(result.steps) == 3
        assert result.stop_reason == "max_steps"
        assert len(calls) == 3

    @pytest.mark.asyncio
    async def test_unknown_tool_returns_error_to_model(self):
        client = FakeAnthropicClient([tool_response("missing", {}), text_response("Desculpe")])
        result = await LLMService(client=client).execute_agent_loop(user("x"), "system", {})

        assert "error" in result.tool_results[0].output
        assert client.calls[1]["messages"][-1].content[0].is_error is True

    @pytest.mark.asyncio
    async def test_max_steps_must_be_positive(self):
        with pytest.raises(ValueError):
            await LLMService(client=FakeAnthropicClient()).execute_agent_loop(user("x"), "system", {}, max_steps=0)

    @pytest.mark.asyncio
    async def test_provider_kwargs_are_forwarded(self):
        client = FakeAnthropicClient()
        await LLMService(client=client).execute_agent_loop(user("x"), "system", {}, max_tokens=99, temperature=0.1)
        assert client.calls[0]["kwargs"] == {"max_tokens": 99, "temperature": 0.1}


class TestGenerateText:
    """Tests for single-step generation."""

    @pytest.mark.asyncio
    async def test_generate_text_returns_text_and_usage(self):
        client = FakeAnthropicClient([text_response("Mensagem", input_tokens=7, output_tokens=2)])
        text, usage = await LLMService(client=client).generate_text("system", user("Gere"), max_tokens=500)

        assert text == "Mensagem"
        assert usage.total_tokens == 9
        assert client.calls[0]["tools"] is None
        assert client.calls[0]["kwargs"]["max_tokens"] == 500


def test_serialize_tool_output_keeps_accents():
    assert serialize_tool_output({"message": "ação"}) == '{"message": "ação"}'
