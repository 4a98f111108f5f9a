"""Minimal chat-completions loop that lets a model drive loaded tools."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from openai import AsyncOpenAI, OpenAIError

from langdag.config import AgentConfig
from langdag.errors import LangdagError
from langdag.tools.tool import Tools

logger = logging.getLogger(__name__)


class AgentError(LangdagError):
    """Raised when the model conversation can't complete."""


async def run_agent(
    tools: Tools,
    question: str,
    config: Optional[AgentConfig] = None,
    client: Optional[AsyncOpenAI] = None,
) -> str:
    """
    Ask ``question`` with ``tools`` available and return the final answer.

    Every tool call the model makes is dispatched and its JSON result fed
    back, until the model replies without tool calls. A failing tool call
    aborts the run.
    """
    config = config or AgentConfig()
    if client is None:
        try:
            client = AsyncOpenAI()
        except OpenAIError as exc:
            raise AgentError(f"cannot create OpenAI client: {exc}") from exc

    messages: List[Dict[str, Any]] = []
    if config.system_prompt:
        messages.append({"role": "system", "content": config.system_prompt})
    messages.append({"role": "user", "content": question})

    params: Dict[str, Any] = {"model": config.model}
    if tools:
        params["tools"] = tools.openai_tools()
    if config.seed is not None:
        params["seed"] = config.seed

    for _ in range(config.max_turns):
        try:
            completion = await client.chat.completions.create(messages=messages, **params)
        except OpenAIError as exc:
            raise AgentError(f"chat completion failed: {exc}") from exc
        message = completion.choices[0].message
        if not message.tool_calls:
            return message.content or ""

        messages.append(message.model_dump(exclude_none=True))
        for tool_call in message.tool_calls:
            logger.info("invoking tool: %s(%s)", tool_call.function.name, tool_call.function.arguments)
            response = await tools.dispatch(tool_call.function.name, tool_call.function.arguments)
            messages.append({"role": "tool", "tool_call_id": tool_call.id, "content": response})

    raise AgentError(f"no answer after {config.max_turns} turns")
