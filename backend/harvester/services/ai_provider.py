import json
import logging
from abc import ABC, abstractmethod
from typing import Dict

from bs4 import BeautifulSoup
from openai import AsyncOpenAI

from harvester.core.config import Settings, get_settings

logger = logging.getLogger(__name__)


class AIProvider(ABC):
    @abstractmethod
    async def chat(self, messages: list[Dict[str, str]]) -> str:  # pragma: no cover - interface
        raise NotImplementedError


class MockProvider(AIProvider):
    """Offline provider: answers with the plain text of each labelled section."""

    async def chat(self, messages: list[Dict[str, str]]) -> str:
        last_user = next((m for m in reversed(messages) if m["role"] == "user"), {"content": ""})
        soup = BeautifulSoup(last_user.get("content", ""), "html.parser")

        def section_text(section_id: str) -> str:
            node = soup.find("section", id=section_id)
            return node.get_text(" ", strip=True) if node else ""

        description = {
            key: text
            for key, text in (("about", section_text("description")), ("details", section_text("description2")))
            if text
        }
        return json.dumps(
            {
                "title": section_text("title") or "-",
                "primaryPrice": section_text("primaryPrice") or "-",
                "approxPrice": section_text("approxPrice") or "-",
                "description": description,
            }
        )


class OpenAIProvider(AIProvider):
    """Chat completions against any OpenAI-compatible endpoint (DeepSeek by default)."""

    def __init__(self, api_key: str, model: str, base_url: str | None = None, timeout: float = 120) -> None:
        if not api_key:
            raise ValueError("AI_API_KEY not provided")
        self.model = model
        self.client = AsyncOpenAI(api_key=api_key, base_url=base_url, timeout=timeout, max_retries=0)

    async def chat(self, messages: list[Dict[str, str]]) -> str:
        response = await self.client.chat.completions.create(model=self.model, messages=messages)
        choices = response.choices or []
        content = choices[0].message.content if choices else None
        return content or "{}"


def get_ai_provider(settings: Settings | None = None) -> AIProvider:
    settings = settings or get_settings()
    provider = settings.ai_provider.strip().lower()
    if provider == "openai":
        return OpenAIProvider(
            api_key=settings.ai_api_key or "",
            model=settings.ai_model,
            base_url=settings.ai_base_url,
            timeout=settings.ai_timeout_seconds,
        )
    if provider != "mock":
        logger.warning("Unknown AI provider %r, using mock provider", settings.ai_provider)
    return MockProvider()
