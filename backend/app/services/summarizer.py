"""
Summarizer — reduces the aggregated text to a short summary.

Backends:
  truncate  Placeholder: "Summary: <first max_chars chars>..."
            Deterministic, no network; the default.
  openai    LangChain chat model (ChatOpenAI) with a fixed system prompt.

Both raise SummarizationError on failure; callers never see provider
exceptions.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod

from langchain_core.language_models.chat_models import BaseChatModel
from langchain_core.messages import HumanMessage, SystemMessage

from app.core.config import Settings, SummarizerBackend
from app.core.errors import ConfigurationError, SummarizationError

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You summarize case files. The input is text extracted from several "
    "documents and recordings; each block starts with a header naming its "
    "source file. Write a concise, factual summary of the whole case in at "
    "most two paragraphs. Do not invent facts that are not in the text."
)

EMPTY_INPUT_SUMMARY = "No extractable content was found."


class Summarizer(ABC):

    @abstractmethod
    async def summarize(self, text: str) -> str:
        """Return a summary of text."""


class TruncatingSummarizer(Summarizer):

    def __init__(self, max_chars: int = 100) -> None:
        self._max_chars = max_chars

    async def summarize(self, text: str) -> str:
        return f"Summary: {text[:self._max_chars]}..."


class ChatModelSummarizer(Summarizer):
    """Summarize with any LangChain chat model."""

    def __init__(self, model: BaseChatModel, system_prompt: str = SYSTEM_PROMPT) -> None:
        self._model = model
        self._system_prompt = system_prompt

    async def summarize(self, text: str) -> str:
        if not text.strip():
            return EMPTY_INPUT_SUMMARY

        messages = [SystemMessage(content=self._system_prompt), HumanMessage(content=text)]
        try:
            reply = await self._model.ainvoke(messages)
        except Exception as exc:
            logger.error("Summarizer model call failed: %s", exc, exc_info=True)
            raise SummarizationError("Summarization backend failed") from exc

        content = reply.content if isinstance(reply.content, str) else str(reply.content)
        logger.info("Summary generated | input_chars=%d output_chars=%d", len(text), len(content))
        return content.strip()


def build_summarizer(settings: Settings) -> Summarizer:
    cfg = settings.summarizer
    if cfg.backend is SummarizerBackend.TRUNCATE:
        return TruncatingSummarizer(max_chars=cfg.max_chars)

    if not cfg.api_key:
        raise ConfigurationError("summarizer.api_key is required for the openai backend")

    from langchain_openai import ChatOpenAI  # deferred: only needed for this backend

    model = ChatOpenAI(
        model=cfg.model,
        api_key=cfg.api_key,
        temperature=cfg.temperature,
    )
    return ChatModelSummarizer(model)
