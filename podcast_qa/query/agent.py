"""
Conversational agent over the podcast archive.

The agent runs an explicit loop against the chat-completions API: send the
conversation with the tool catalogue, await every tool call of that turn
concurrently, append the results and continue until the model answers in
plain text. The whole answer is bounded by a wall-clock deadline; a timeout
or a provider failure produces a polite "I don't have that information"
answer instead of an exception.
"""

import asyncio
import logging
from typing import Optional, Sequence

from openai import AsyncOpenAI

from podcast_qa.config import PodcastQAConfig
from podcast_qa.exceptions import MissingCredentialError
from podcast_qa.llm.prompts import NO_INFORMATION_ANSWER, chat_system_prompt
from podcast_qa.observability import record_output, trace_span
from .tools import Tool, call_tool


logger = logging.getLogger("agent")


class PodcastChatAgent:
    """Tool-calling chat agent.

    Args:
        client: Async OpenAI client.
        tools: Tools the model may call.
        model: Chat model name.
        system_prompt: System instructions.
        timeout_seconds: Deadline for one complete answer.
        max_tool_rounds: Tool-calling turns allowed before forcing an answer.
    """

    def __init__(
        self,
        client: AsyncOpenAI,
        tools: Sequence[Tool],
        model: str = "gpt-4o",
        system_prompt: Optional[str] = None,
        timeout_seconds: float = 30.0,
        max_tool_rounds: int = 5,
    ):
        self.client = client
        self.tools = {tool.name: tool for tool in tools}
        self.model = model
        self.system_prompt = system_prompt or chat_system_prompt("the podcast")
        self.timeout_seconds = timeout_seconds
        self.max_tool_rounds = max_tool_rounds

    @classmethod
    def from_config(
        cls, client: AsyncOpenAI, tools: Sequence[Tool], config: PodcastQAConfig
    ) -> "PodcastChatAgent":
        return cls(
            client,
            tools,
            model=config.chat_model,
            system_prompt=chat_system_prompt(config.podcast_name, config.host_names),
            timeout_seconds=config.chat_timeout_seconds,
            max_tool_rounds=config.chat_max_tool_rounds,
        )

    async def answer(self, messages: Sequence[dict]) -> str:
        """Answer the last user message of a conversation.

        Args:
            messages: Conversation history as chat-completions messages
                (without the system prompt).

        Returns:
            str: The assistant's answer.

        Raises:
            MissingCredentialError: Credentials problems are not hidden.
        """
        with trace_span("agent.answer", input={"messages": list(messages)}) as span:
            try:
                answer = await asyncio.wait_for(
                    self._run(messages), timeout=self.timeout_seconds
                )
            except asyncio.TimeoutError:
                logger.warning(f"Answer exceeded {self.timeout_seconds}s deadline")
                answer = NO_INFORMATION_ANSWER
            except MissingCredentialError:
                raise
            except Exception as e:
                logger.error(f"Agent failed: {type(e).__name__}: {e}", exc_info=True)
                answer = NO_INFORMATION_ANSWER
            record_output(span, answer)
        return answer

    async def ask(self, question: str) -> str:
        return await self.answer([{"role": "user", "content": question}])

    async def _run(self, messages: Sequence[dict]) -> str:
        conversation = [{"role": "system", "content": self.system_prompt}, *messages]
        tool_specs = [tool.to_openai() for tool in self.tools.values()]

        for round_number in range(self.max_tool_rounds + 1):
            request = {"model": self.model, "messages": conversation}
            if round_number < self.max_tool_rounds and tool_specs:
                request["tools"] = tool_specs

            response = await self.client.chat.completions.create(**request)
            message = response.choices[0].message

            if not message.tool_calls:
                return message.content or NO_INFORMATION_ANSWER

            conversation.append(
                {
                    "role": "assistant",
                    "content": message.content,
                    "tool_calls": [
                        {
                            "id": call.id,
                            "type": "function",
                            "function": {
                                "name": call.function.name,
                                "arguments": call.function.arguments,
                            },
                        }
                        for call in message.tool_calls
                    ],
                }
            )
            logger.info(
                f"Round {round_number + 1}: calling "
                f"{', '.join(call.function.name for call in message.tool_calls)}"
            )
            results = await asyncio.gather(
                *(
                    call_tool(self.tools, call.function.name, call.function.arguments)
                    for call in message.tool_calls
                )
            )
            for call, result in zip(message.tool_calls, results):
                conversation.append(
                    {"role": "tool", "tool_call_id": call.id, "content": result}
                )

        return NO_INFORMATION_ANSWER
