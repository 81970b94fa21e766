"""
Unit tests for GeminiConnector against a mocked HTTP transport
"""
import json
from unittest.mock import AsyncMock, patch

import httpx
import pytest

from product_report.connectors.gemini_connector import GeminiConnector
from product_report.core.exceptions import ConfigurationError, ExternalServiceError


def embedding_transport(status_code: int = 200, values=None):
    def handler(request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        text = body['content']['parts'][0]['text']
        if status_code >= 400:
            return httpx.Response(status_code, text="quota exceeded")
        return httpx.Response(200, json={'embedding': {'values': values if values is not None else [float(len(text))]}})
    return httpx.MockTransport(handler)


class TestGeminiConnector:

    @pytest.mark.asyncio
    async def test_requires_api_key(self):
        with pytest.raises(ConfigurationError, match="GEMINI_API_KEY"):
            await GeminiConnector(api_key="").embed("oat milk")

    @pytest.mark.asyncio
    async def test_embed(self):
        connector = GeminiConnector(api_key="g_key", transport=embedding_transport())

        assert await connector.embed("abc") == [3.0]

    @pytest.mark.asyncio
    async def test_error_status_raises(self):
        connector = GeminiConnector(api_key="g_key", transport=embedding_transport(status_code=429))

        with pytest.raises(ExternalServiceError) as exc:
            await connector.embed("abc")
        assert exc.value.status_code == 429

    @pytest.mark.asyncio
    async def test_empty_embedding_raises(self):
        connector = GeminiConnector(api_key="g_key", transport=embedding_transport(values=[]))

        with pytest.raises(ExternalServiceError, match="no embedding"):
            await connector.embed("abc")

    @pytest.mark.asyncio
    @patch('product_report.connectors.gemini_connector.asyncio.sleep', new_callable=AsyncMock)
    async def test_embed_many_keeps_order_and_pauses_between_batches(self, mock_sleep):
        connector = GeminiConnector(api_key="g_key", transport=embedding_transport())
        texts = ["x" * n for n in range(1, 24)]

        embeddings = await connector.embed_many(texts)

        assert embeddings == [[float(n)] for n in range(1, 24)]
        assert mock_sleep.await_count == 2
