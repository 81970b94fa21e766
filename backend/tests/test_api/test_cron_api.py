"""
API tests for the scheduled job endpoints
"""
from datetime import date
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from product_report.api import cron
from product_report.domain.brand import ArchetypeRunResult, BrandAnalyticsRunResult, TrustResult
from product_report.domain.product import EmbeddingInput, EmbeddingStats
from product_report.main import app


class TestCronAuth:

    @pytest.mark.parametrize("path", [
        "/api/cron/brand-trust",
        "/api/cron/calculate-archetypes",
        "/api/cron/generate-embeddings",
        "/api/cron/brand-analytics",
    ])
    def test_missing_or_wrong_secret_is_401(self, client, path):
        assert client.get(path).status_code == 401
        assert client.get(path, headers={"Authorization": "Bearer wrong"}).status_code == 401

    def test_unconfigured_secret_refuses_empty_bearer(self, client, monkeypatch):
        from product_report.core.config import get_settings

        monkeypatch.setenv("CRON_SECRET", "")
        get_settings.cache_clear()

        response = client.get("/api/cron/brand-trust", headers={"Authorization": "Bearer "})

        assert response.status_code == 401


class TestBrandTrustCron:

    def test_summary(self, client, cron_headers):
        service = MagicMock()
        service.recalculate_all.return_value = TrustResult(brands_processed=0, errors=["Failed to calculate X: y"])
        app.dependency_overrides[cron.get_brand_trust_service] = lambda: service

        response = client.get("/api/cron/brand-trust", headers=cron_headers)

        body = response.json()
        assert response.status_code == 200
        assert body["brandsProcessed"] == 0
        assert body["averageTrustScore"] == 0
        assert body["errors"] == ["Failed to calculate X: y"]
        assert body["timestamp"].endswith("Z")

    def test_failure_is_500(self, client, cron_headers):
        service = MagicMock()
        service.recalculate_all.side_effect = Exception("DATABASE_URL not configured")
        app.dependency_overrides[cron.get_brand_trust_service] = lambda: service

        response = client.get("/api/cron/brand-trust", headers=cron_headers)

        assert response.status_code == 500
        assert response.json()["success"] is False


class TestArchetypeCron:

    def test_result_is_flattened(self, client, cron_headers):
        service = MagicMock()
        service.run.return_value = ArchetypeRunResult(categories_processed=3, products_updated=4, products_cleared=1)
        app.dependency_overrides[cron.get_archetype_service] = lambda: service

        body = client.get("/api/cron/calculate-archetypes", headers=cron_headers).json()

        assert body["success"] is True
        assert body["categoriesProcessed"] == 3
        assert body["productsUpdated"] == 4
        assert body["productsCleared"] == 1
        assert body["errors"] == []


class TestBrandAnalyticsCron:

    def test_summary(self, client, cron_headers):
        service = MagicMock()
        service.aggregate_daily.return_value = BrandAnalyticsRunResult(
            day=date(2026, 10, 18), brands_found=3, processed=2, skipped=1
        )
        app.dependency_overrides[cron.get_brand_analytics_service] = lambda: service

        response = client.get("/api/cron/brand-analytics", headers=cron_headers)

        body = response.json()
        assert response.status_code == 200
        assert body["success"] is True
        assert (body["processed"], body["skipped"], body["errors"]) == (2, 1, 0)
        assert body["date"] == "2026-10-18"

    def test_no_brands(self, client, cron_headers):
        service = MagicMock()
        service.aggregate_daily.return_value = BrandAnalyticsRunResult(day=date(2026, 10, 18))
        app.dependency_overrides[cron.get_brand_analytics_service] = lambda: service

        body = client.get("/api/cron/brand-analytics", headers=cron_headers).json()

        assert body == {"success": True, "message": "No brands to process", "processed": 0}

    def test_failure_is_500(self, client, cron_headers):
        service = MagicMock()
        service.aggregate_daily.side_effect = Exception("DATABASE_URL not configured")
        app.dependency_overrides[cron.get_brand_analytics_service] = lambda: service

        response = client.get("/api/cron/brand-analytics", headers=cron_headers)

        assert response.status_code == 500
        assert response.json()["error"] == "DATABASE_URL not configured"


class TestEmbeddingCron:

    @pytest.fixture
    def gemini_key(self, monkeypatch):
        from product_report.core.config import get_settings

        monkeypatch.setenv("GEMINI_API_KEY", "g_key")
        get_settings.cache_clear()

    def test_without_gemini_key_is_503(self, client, cron_headers):
        response = client.get("/api/cron/generate-embeddings", headers=cron_headers)

        assert response.status_code == 503
        assert response.json() == {"error": "GEMINI_API_KEY not configured"}

    @patch('product_report.core.cron.create_audit_log')
    def test_nothing_to_embed(self, mock_audit, client, cron_headers, gemini_key):
        service = MagicMock()
        service.get_stats.return_value = EmbeddingStats(total_products=2, with_embeddings=2, percent_complete=100)
        service.find_products_without_embeddings.return_value = []
        app.dependency_overrides[cron.get_embedding_service] = lambda: service

        body = client.get("/api/cron/generate-embeddings", headers=cron_headers).json()

        assert body["success"] is True
        assert body["jobName"] == "generate-embeddings"
        assert body["data"]["message"] == "All products have embeddings"

    @patch('product_report.core.cron.create_audit_log')
    def test_processes_batch_with_api_key(self, mock_audit, client, gemini_key):
        service = MagicMock()
        service.get_stats.side_effect = [
            EmbeddingStats(total_products=3, with_embeddings=1, without_embeddings=2, percent_complete=33.3),
            EmbeddingStats(total_products=3, with_embeddings=3, without_embeddings=0, percent_complete=100),
        ]
        service.find_products_without_embeddings.return_value = [
            EmbeddingInput(id=1, name="A", brand="X"),
            EmbeddingInput(id=2, name="B", brand="Y"),
        ]
        service.embed_products = AsyncMock(return_value=[MagicMock(), MagicMock()])
        app.dependency_overrides[cron.get_embedding_service] = lambda: service

        response = client.get(
            "/api/cron/generate-embeddings",
            params={"batchSize": 500},
            headers={"x-api-key": "test-payload-secret"},
        )

        data = response.json()["data"]
        assert response.status_code == 200
        assert data["processed"] == 2
        assert data["remaining"] == 0
        assert data["statsBefore"]["withoutEmbeddings"] == 2
        service.find_products_without_embeddings.assert_called_once_with(100)
