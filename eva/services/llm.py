"""LLM service for high-level AI operations like agent loops."""

import json
from typing import Any

from eva.clients.anthropic import AnthropicClient, AnthropicMessage, AnthropicTool, get_anthropic_client
from eva.models.llm import (
    AgentLoopResult,
    AgentStep,
    ContentBlock,
    LLMMessage,
    LLMTool,
    LLMUsage,
    ToolCallRecord,
    ToolOutput,
    ToolResultBlock,
    ToolResultRecord,
    ToolUseBlock,
)
from eva.utils.logging import get_logger

logger = get_logger(__name__)


def serialize_tool_output(output: ToolOutput) -> str:
    """Render a tool output as the JSON text the model reads."""
    return json.dumps(output, ensure_ascii=False, default=str)


class LLMService:
    """High-level LLM service for agent operations."""

    def __init__(self, client: AnthropicClient | None = None):
        """Initialize LLM service.

        Args:
            client: Anthropic client (defaults to global instance)
        """
        self.client = client or get_anthropic_client()

    async def _run_tool(self, tools: dict[str, LLMTool], block: ToolUseBlock) -> ToolOutput:
        tool = tools.get(block.name)
        if tool is None:
            logger.error(f"Unknown tool requested: {block.name}")
            return {"error": f"Ferramenta desconhecida: {block.name}"}
        logger.debug(f"Executing tool: {block.name} with input: {block.input}")
        return await tool.callable(block.input)

    async def execute_agent_loop(
        self,
        messages: list[LLMMessage],
        system_prompt: str,
        tools: dict[str, LLMTool],
        max_steps: int = 5,
        **kwargs: Any,
    ) -> AgentLoopResult:
        """Execute a bounded agent loop with tool calling.

        Each step is one model call. The loop ends when the model stops asking
        for tools or after `max_steps` calls, whichever comes first.

        Args:
            messages: Replayed history plus the new user message
            system_prompt: System prompt
            tools: Tools available to the model, keyed by name
            max_steps: Maximum number of model calls
            **kwargs: Additional parameters for the provider (max_tokens, temperature, model)

        Returns:
            Final text, per-step trace of tool calls and results, summed usage
        """
        if max_steps < 1:
            raise ValueError("max_steps must be at least 1")

        logger.info(f"Starting agent loop with {len(messages)} messages, {len(tools)} tools, max_steps: {max_steps}")
        current_messages = [AnthropicMessage(role=msg.role, content=msg.content) for msg in messages]
        anthropic_tools = [
            AnthropicTool(name=tool.name, description=tool.description, input_schema=tool.input_schema)
            for tool in tools.values()
        ]

        steps: list[AgentStep] = []
        usage = LLMUsage()

        for step_number in range(1, max_steps + 1):
            logger.debug(f"Agent loop step {step_number}/{max_steps}")
            response = await self.client.create_message(
                messages=current_messages,
                system_prompt=system_prompt,
                tools=anthropic_tools or None,
                **kwargs,
            )
            usage.add(response.usage)

            step = AgentStep(text=response.text, stop_reason=response.stop_reason)
            steps.append(step)

            tool_use_blocks = [block for block in response.content if isinstance(block, ToolUseBlock)]
            if response.stop_reason != "tool_use" or not tool_use_blocks:
                logger.info(f"Agent loop completed in {step_number} steps")
                return AgentLoopResult(text=step.text, stop_reason=response.stop_reason, steps=steps, usage=usage)

            logger.info(f"Model requested {len(tool_use_blocks)} tool call(s)")
            result_blocks: list[ContentBlock] = []
            for block in tool_use_blocks:
                output = await self._run_tool(tools, block)
                step.tool_calls.append(ToolCallRecord(tool_use_id=block.id, tool_name=block.name, input=block.input))
                step.tool_results.append(ToolResultRecord(tool_use_id=block.id, tool_name=block.name, output=output))
                result_blocks.append(
                    ToolResultBlock(
                        tool_use_id=block.id,
                        content=serialize_tool_output(output),
                        is_error="error" in output,
                    )
                )

            current_messages.append(AnthropicMessage(role="assistant", content=response.content))
            current_messages.append(AnthropicMessage(role="user", content=result_blocks))

        logger.warning(f"Agent loop reached max steps ({max_steps})")
        return AgentLoopResult(text=steps[-1].text, stop_reason="max_steps", steps=steps, usage=usage)

    async def generate_text(
        self,
        system_prompt: str,
        messages: list[LLMMessage],
        **kwargs: Any,
    ) -> tuple[str, LLMUsage]:
        """Single model call without tools.

        Returns:
            Generated text and token usage
        """
        response = await self.client.create_message(
            messages=[AnthropicMessage(role=msg.role, content=msg.content) for msg in messages],
            system_prompt=system_prompt,
            **kwargs,
        )
        return response.text, response.usage


_llm_service: LLMService | None = None


def get_llm_service() -> LLMService:
    """Get or create LLM service instance."""
    global _llm_service
    if _llm_service is None:
        _llm_service = LLMService()
    return _llm_service
