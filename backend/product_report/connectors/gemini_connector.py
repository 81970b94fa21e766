"""
Google Gemini Embeddings Connector
Text embeddings (text-embedding-004, 768 dimensions) over the REST API
"""
import asyncio
import logging
from typing import List

import httpx

from product_report.core.config import get_settings
from product_report.core.exceptions import ConfigurationError, ExternalServiceError

logger = logging.getLogger(__name__)

GEMINI_API_BASE = "https://generativelanguage.googleapis.com/v1beta"
EMBEDDING_MODEL = "text-embedding-004"
EMBEDDING_DIMENSIONS = 768

BATCH_SIZE = 10
BATCH_PAUSE_SECONDS = 0.1


class GeminiConnector:
    """Connector for the Gemini embedContent endpoint"""

    def __init__(self, api_key: str = None, transport: httpx.AsyncBaseTransport = None):
        self.api_key = api_key if api_key is not None else get_settings().GEMINI_API_KEY
        self.transport = transport
        self.url = f"{GEMINI_API_BASE}/models/{EMBEDDING_MODEL}:embedContent"
        self.timeout = 30.0

    def _require_key(self):
        if not self.api_key:
            raise ConfigurationError("GEMINI_API_KEY environment variable is not set")

    async def _embed_with(self, client: httpx.AsyncClient, text: str) -> List[float]:
        response = await client.post(
            self.url,
            params={'key': self.api_key},
            json={
                'model': f"models/{EMBEDDING_MODEL}",
                'content': {'parts': [{'text': text}]},
            },
        )

        if response.status_code >= 400:
            raise ExternalServiceError("gemini", response.text[:200], status_code=response.status_code)

        values = (response.json().get('embedding') or {}).get('values')
        if not values:
            raise ExternalServiceError("gemini", "response contained no embedding")
        return values

    async def embed(self, text: str) -> List[float]:
        """
        Embed a single text

        Raises:
            ConfigurationError: GEMINI_API_KEY is not set
            ExternalServiceError: Gemini answered with an error
        """
        self._require_key()
        async with httpx.AsyncClient(transport=self.transport, timeout=self.timeout) as client:
            return await self._embed_with(client, text)

    async def embed_many(self, texts: List[str]) -> List[List[float]]:
        """
        Embed texts in parallel batches of 10, pausing briefly between batches

        Returns:
            Embeddings in the same order as texts
        """
        self._require_key()
        if not texts:
            return []

        embeddings: List[List[float]] = []
        async with httpx.AsyncClient(transport=self.transport, timeout=self.timeout) as client:
            for start in range(0, len(texts), BATCH_SIZE):
                batch = texts[start:start + BATCH_SIZE]
                embeddings.extend(await asyncio.gather(
                    *(self._embed_with(client, text) for text in batch)
                ))

                if start + BATCH_SIZE < len(texts):
                    await asyncio.sleep(BATCH_PAUSE_SECONDS)

        return embeddings
