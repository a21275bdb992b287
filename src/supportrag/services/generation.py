"""Chat completion backends for the support assistant."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Protocol, Sequence

from langchain_core.language_models.chat_models import BaseChatModel
from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, SystemMessage
from langchain_openai import ChatOpenAI

from supportrag.metrics.observability import PipelineMetrics, TimedSection
from supportrag.models import ChatMessage

LOGGER = logging.getLogger(__name__)

_MESSAGE_TYPES = {
    "system": SystemMessage,
    "user": HumanMessage,
    "assistant": AIMessage,
}


@dataclass(frozen=True)
class GenerationConfig:
    """Configuration for answer generation."""

    model: str = "gpt-3.5-turbo"
    api_key: str | None = None
    temperature: float | None = None


class ChatBackend(Protocol):
    """Protocol describing chat completion behaviour."""

    def complete(self, messages: Sequence[ChatMessage]) -> str:
        """Return the generated text for the role-tagged messages."""


class OpenAIChatBackend:
    """Chat backend calling OpenAI chat models through LangChain."""

    def __init__(self, config: GenerationConfig | None = None, *, client: BaseChatModel | None = None) -> None:
        self._config = config or GenerationConfig()
        if client is not None:
            self._client = client
        else:
            kwargs: dict[str, Any] = {"model": self._config.model, "api_key": self._config.api_key}
            if self._config.temperature is not None:
                kwargs["temperature"] = self._config.temperature
            self._client = ChatOpenAI(**kwargs)
            LOGGER.info("Using chat model %s", self._config.model)

    def complete(self, messages: Sequence[ChatMessage]) -> str:
        with TimedSection(PipelineMetrics.observe_generation):
            response = self._client.invoke(to_langchain_messages(messages))
        return message_text(response)


def to_langchain_messages(messages: Sequence[ChatMessage]) -> list[BaseMessage]:
    return [_MESSAGE_TYPES[message.role](content=message.content) for message in messages]


def message_text(message: BaseMessage) -> str:
    """Return the text of a chat response, whether plain or content blocks."""

    content = message.content
    if isinstance(content, str):
        return content
    for block in content or []:
        if isinstance(block, str):
            return block
        if isinstance(block, dict) and block.get("text"):
            return str(block["text"])
    return ""
