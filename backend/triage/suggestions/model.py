"""Single-shot reply generation with Gemini."""

from __future__ import annotations

import logging
from typing import Protocol

from langchain_core.messages import HumanMessage
from langchain_google_genai import ChatGoogleGenerativeAI

from triage.config import settings
from triage.errors import SuggestionFailure

logger = logging.getLogger(__name__)


class ReplyGenerator(Protocol):
    async def generate_reply(self, prompt: str) -> str: ...


class ReplyModel:
    """Wraps ``ChatGoogleGenerativeAI`` for one prompt in, one text out."""

    def __init__(
        self,
        model: str | None = None,
        *,
        api_key: str | None = None,
        temperature: float | None = None,
    ) -> None:
        self.model = model or settings.gemini_model
        self._api_key = api_key if api_key is not None else settings.google_api_key
        self._temperature = (
            temperature if temperature is not None else settings.suggestion_temperature
        )
        self._llm: ChatGoogleGenerativeAI | None = None

    @property
    def llm(self) -> ChatGoogleGenerativeAI:
        """Lazy-initialize the Gemini client."""
        if self._llm is None:
            if not self._api_key:
                raise SuggestionFailure("GOOGLE_API_KEY is not configured")
            self._llm = ChatGoogleGenerativeAI(
                model=self.model,
                google_api_key=self._api_key,
                temperature=self._temperature,
            )
            logger.info("ReplyModel initialised with model=%s", self.model)
        return self._llm

    async def generate_reply(self, prompt: str) -> str:
        """Send ``prompt`` and return the raw response text."""
        response = await self.llm.ainvoke([HumanMessage(content=prompt)])
        content = response.content
        if isinstance(content, list):
            # Gemini may return content parts; keep the text ones
            content = "".join(
                part if isinstance(part, str) else part.get("text", "")
                for part in content
            )
        return content
