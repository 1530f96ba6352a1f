import logging
from typing import Optional, Protocol

import openai
from openai import AsyncOpenAI

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You are an emotion analysis assistant. Extract the 1-3 most relevant emotion "
    "keywords from the user's sentence. If a list of available labels is provided, "
    "choose only from that list. Return only the keywords, separated by commas, "
    "with no explanation."
)


class ConnectorError(Exception):
    """Network, auth or malformed-response failure from the classifier backend."""


class ClassifierConnector(Protocol):
    async def classify(self, prompt: str, allowed_labels: Optional[list[str]] = None) -> str: ...

    async def embed(self, label: str) -> list[float]: ...


class OpenAIConnector:
    """Classifier connector for any OpenAI-compatible endpoint.

    Works against OpenAI itself, OpenRouter/OneAPI style proxies and local
    servers such as Ollama (``llm_base_url=http://localhost:11434/v1``).
    Every SDK failure is re-raised as ConnectorError.
    """

    def __init__(self, settings, client: Optional[AsyncOpenAI] = None):
        self.settings = settings
        self._client = client or AsyncOpenAI(
            api_key=settings.llm_api_key or "not-needed",
            base_url=settings.llm_base_url,
            timeout=settings.llm_timeout_s,
        )

    async def classify(self, prompt: str, allowed_labels: Optional[list[str]] = None) -> str:
        try:
            response = await self._client.chat.completions.create(
                model=self.settings.llm_model,
                messages=[
                    {"role": "system", "content": SYSTEM_PROMPT},
                    {"role": "user", "content": prompt},
                ],
                temperature=0.3,
                max_tokens=50,
            )
        except openai.OpenAIError as e:
            raise ConnectorError(f"Classification request failed: {e}") from e

        if not response.choices:
            raise ConnectorError("Classification response has no choices")
        content = response.choices[0].message.content
        if content is None:
            raise ConnectorError("Classification response has no content")
        logger.debug("Classifier response: %r", content)
        return content

    async def embed(self, label: str) -> list[float]:
        try:
            response = await self._client.embeddings.create(
                model=self.settings.llm_embedding_model,
                input=label,
            )
        except openai.OpenAIError as e:
            raise ConnectorError(f"Embedding request failed for {label!r}: {e}") from e

        if not response.data:
            raise ConnectorError(f"Embedding response for {label!r} is empty")
        return [float(x) for x in response.data[0].embedding]

    async def close(self):
        await self._client.close()
