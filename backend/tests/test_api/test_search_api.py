"""
API tests for semantic search
"""
from unittest.mock import AsyncMock, MagicMock

import pytest

from product_report.api import search
from product_report.core.exceptions import ConfigurationError
from product_report.domain.product import EmbeddingStats, SimilarProduct
from product_report.main import app

COMPLETE = EmbeddingStats(total_products=10, with_embeddings=10, without_embeddings=0, percent_complete=100)
PARTIAL = EmbeddingStats(total_products=10, with_embeddings=5, without_embeddings=5, percent_complete=50)
NONE_YET = EmbeddingStats(total_products=10, with_embeddings=0, without_embeddings=10, percent_complete=0)


@pytest.fixture
def embedding_service(client):
    service = MagicMock()
    service.get_stats.return_value = COMPLETE
    service.search = AsyncMock(return_value=[
        SimilarProduct(id=1, name="Oat Milk", brand="Acme", similarity=0.91, verdict="recommend")
    ])
    app.dependency_overrides[search.get_embedding_service] = lambda: service
    return service


class TestValidation:

    @pytest.mark.parametrize("body,message", [
        ({}, "Query string is required"),
        ({"query": 42}, "Query string is required"),
        ({"query": "a"}, "Query must be at least 2 characters"),
        ({"query": "a" * 501}, "Query must be less than 500 characters"),
        ({"query": "milk", "verdictFilter": "great"}, "Invalid verdictFilter. Must be: recommend, caution, or avoid"),
        ({"query": "milk", "verdictFilter": ["avoid"]}, "Invalid verdictFilter. Must be: recommend, caution, or avoid"),
        ({"query": "milk", "verdictFilter": {"a": 1}}, "Invalid verdictFilter. Must be: recommend, caution, or avoid"),
    ])
    def test_bad_bodies(self, client, embedding_service, body, message):
        response = client.post("/api/search/semantic", json=body)

        assert response.status_code == 400
        assert response.json() == {"error": message}
        embedding_service.search.assert_not_awaited()

    def test_invalid_json_is_treated_as_empty(self, client, embedding_service):
        response = client.post(
            "/api/search/semantic", content="{not json", headers={"Content-Type": "application/json"}
        )

        assert response.status_code == 400
        assert response.json()["error"] == "Query string is required"

    def test_get_requires_q(self, client, embedding_service):
        response = client.get("/api/search/semantic")

        assert response.status_code == 400
        assert response.json() == {"error": 'Query parameter "q" is required'}


class TestSearch:

    def test_results_without_stats_when_complete(self, client, embedding_service):
        response = client.post("/api/search/semantic", json={"query": "oat milk", "limit": 500})

        body = response.json()
        assert response.status_code == 200
        assert body["count"] == 1
        assert body["query"] == "oat milk"
        assert body["results"][0]["imageUrl"] is None
        assert "embeddingStats" not in body
        assert embedding_service.search.await_args.kwargs["limit"] == 50

    def test_partial_coverage_includes_stats(self, client, embedding_service):
        embedding_service.get_stats.return_value = PARTIAL

        body = client.post("/api/search/semantic", json={"query": "oat milk"}).json()

        assert body["embeddingStats"]["percentComplete"] == 50

    def test_no_embeddings_yet(self, client, embedding_service):
        embedding_service.get_stats.return_value = NONE_YET

        body = client.post("/api/search/semantic", json={"query": "oat milk"}).json()

        assert body["results"] == []
        assert body["message"] == "Semantic search not yet available. Embeddings are being generated."
        embedding_service.search.assert_not_awaited()

    def test_filters_are_passed_through(self, client, embedding_service):
        client.post("/api/search/semantic", json={
            "query": "oat milk",
            "limit": 0,
            "minSimilarity": 0.5,
            "verdictFilter": "avoid",
            "excludeIds": [3, "x", 4],
        })

        kwargs = embedding_service.search.await_args.kwargs
        assert kwargs == {"limit": 1, "min_similarity": 0.5, "exclude_ids": [3, 4], "verdict": "avoid"}

    def test_get_form(self, client, embedding_service):
        response = client.get("/api/search/semantic", params={"q": "oat milk", "limit": "5", "verdict": "caution"})

        assert response.status_code == 200
        kwargs = embedding_service.search.await_args.kwargs
        assert (kwargs["limit"], kwargs["verdict"]) == (5, "caution")

    def test_out_of_range_limits_are_clamped(self, client, embedding_service):
        client.post(
            "/api/search/semantic",
            content='{"query": "oat milk", "limit": 1e400}',
            headers={"Content-Type": "application/json"},
        )
        assert embedding_service.search.await_args.kwargs["limit"] == 50

        response = client.get("/api/search/semantic", params={"q": "oat milk", "limit": "1e400"})

        assert response.status_code == 200
        assert embedding_service.search.await_args.kwargs["limit"] == 50

    def test_non_numeric_get_limit_uses_default(self, client, embedding_service):
        client.get("/api/search/semantic", params={"q": "oat milk", "limit": "lots"})

        assert embedding_service.search.await_args.kwargs["limit"] == 20

    def test_missing_key_is_503(self, client, embedding_service):
        embedding_service.search.side_effect = ConfigurationError("GEMINI_API_KEY environment variable is not set")

        response = client.post("/api/search/semantic", json={"query": "oat milk"})

        assert response.status_code == 503
        assert response.json() == {"error": "Semantic search is not configured"}

    def test_openai_key_message_is_503(self, client, embedding_service):
        embedding_service.search.side_effect = RuntimeError("OPENAI_API_KEY environment variable is not set")

        response = client.post("/api/search/semantic", json={"query": "oat milk"})

        assert response.status_code == 503
        assert response.json() == {"error": "Semantic search is not configured"}

    def test_other_failures_are_500(self, client, embedding_service):
        embedding_service.search.side_effect = RuntimeError("connection reset")

        response = client.post("/api/search/semantic", json={"query": "oat milk"})

        assert response.status_code == 500
        assert response.json() == {"error": "Search failed. Please try again."}


class TestRateLimit:

    def test_thirty_per_minute_per_ip(self, client, embedding_service):
        headers = {"x-forwarded-for": "203.0.113.9"}

        statuses = [
            client.post("/api/search/semantic", json={"query": "oat milk"}, headers=headers).status_code
            for _ in range(31)
        ]

        assert statuses[:30] == [200] * 30
        assert statuses[30] == 429

        other = client.post("/api/search/semantic", json={"query": "oat milk"}, headers={"x-forwarded-for": "198.51.100.1"})
        assert other.status_code == 200
