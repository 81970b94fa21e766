"""
Cron API - scheduled jobs triggered by an external scheduler

Endpoints:
- GET /api/cron/brand-trust           - Weekly Brand Trust Index recalculation
- GET /api/cron/calculate-archetypes  - Nightly premium / value badges
- GET /api/cron/generate-embeddings   - Hourly embeddings for new products
- GET /api/cron/brand-analytics       - Daily per-brand analytics snapshots

Security:
- All jobs require `Authorization: Bearer <CRON_SECRET>`
- generate-embeddings also accepts `x-api-key: <PAYLOAD_API_SECRET>`
"""
import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import JSONResponse

from product_report.core.config import get_settings
from product_report.core.cron import (
    circuit_breaker,
    run_cron_job,
    verify_cron_secret,
    verify_cron_secret_or_api_key,
)
from product_report.services.archetype_service import ArchetypeService
from product_report.services.brand_analytics_service import BrandAnalyticsService
from product_report.services.brand_trust_service import BrandTrustService
from product_report.services.embedding_service import EmbeddingService

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/cron", tags=["Cron"])

DEFAULT_EMBEDDING_BATCH = 50
MAX_EMBEDDING_BATCH = 100


def get_brand_trust_service() -> BrandTrustService:
    return BrandTrustService()


def get_archetype_service() -> ArchetypeService:
    return ArchetypeService()


def get_embedding_service() -> EmbeddingService:
    return EmbeddingService()


def get_brand_analytics_service() -> BrandAnalyticsService:
    return BrandAnalyticsService()


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat().replace('+00:00', 'Z')


def _cron_failure(error: Exception) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "success": False,
            "error": str(error) or "Cron failed",
            "timestamp": _timestamp(),
        }
    )


@router.get("/brand-trust", dependencies=[Depends(verify_cron_secret)])
async def brand_trust_cron(service: BrandTrustService = Depends(get_brand_trust_service)):
    """Recalculate trust scores for every brand"""
    try:
        logger.info("Brand trust cron: starting weekly brand trust calculation...")
        result = service.recalculate_all()
    except Exception as e:
        logger.error(f"Brand trust cron: error: {e}")
        return _cron_failure(e)

    logger.info(
        f"Brand trust cron: complete, {result.brands_processed} brands updated, "
        f"avg score: {result.average_trust_score}"
    )
    return {
        "timestamp": _timestamp(),
        "brandsProcessed": result.brands_processed,
        "averageTrustScore": result.average_trust_score,
        "errors": result.errors,
    }


@router.get("/calculate-archetypes", dependencies=[Depends(verify_cron_secret)])
async def calculate_archetypes_cron(service: ArchetypeService = Depends(get_archetype_service)):
    """Assign premium and value archetypes in every category"""
    try:
        logger.info("Archetype cron: starting nightly archetype calculation...")
        result = service.run()
    except Exception as e:
        logger.error(f"Archetype cron: error: {e}")
        return _cron_failure(e)

    logger.info(
        f"Archetype cron: complete, {result.categories_processed} categories processed, "
        f"{result.products_updated} products updated, {result.products_cleared} badges cleared"
    )
    if result.errors:
        logger.warning(f"Archetype cron: {len(result.errors)} errors occurred: {result.errors}")

    return {
        "success": True,
        "timestamp": _timestamp(),
        **result.to_json_dict(),
    }


@router.get("/generate-embeddings", dependencies=[Depends(verify_cron_secret_or_api_key)])
async def generate_embeddings_cron(
    batch_size: int = Query(DEFAULT_EMBEDDING_BATCH, alias="batchSize"),
    service: EmbeddingService = Depends(get_embedding_service)
):
    """Embed up to batchSize published products that have no embedding"""
    if not get_settings().GEMINI_API_KEY:
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"error": "GEMINI_API_KEY not configured"}
        )

    limit = min(max(1, batch_size), MAX_EMBEDDING_BATCH)

    async def job():
        stats_before = service.get_stats()
        products = service.find_products_without_embeddings(limit)

        if not products:
            return {
                "message": "All products have embeddings",
                "stats": stats_before.to_json_dict(),
            }

        logger.info(f"Embeddings cron: processing {len(products)} products...")
        results = await circuit_breaker.call("gemini", lambda: service.embed_products(products))
        stats_after = service.get_stats()

        return {
            "message": f"Generated embeddings for {len(results)} products",
            "processed": len(results),
            "statsBefore": stats_before.to_json_dict(),
            "statsAfter": stats_after.to_json_dict(),
            "remaining": stats_after.without_embeddings,
        }

    try:
        return await run_cron_job("generate-embeddings", job)
    except Exception as e:
        logger.error(f"Embeddings cron: error: {e}")
        return _cron_failure(e)


@router.get("/brand-analytics", dependencies=[Depends(verify_cron_secret)])
async def brand_analytics_cron(service: BrandAnalyticsService = Depends(get_brand_analytics_service)):
    """Write today's analytics snapshot for every brand that has none yet"""
    try:
        logger.info("Brand analytics cron: starting daily aggregation...")
        result = service.aggregate_daily()
    except Exception as e:
        logger.error(f"Brand analytics cron: error: {e}")
        return _cron_failure(e)

    if result.brands_found == 0:
        return {"success": True, "message": "No brands to process", "processed": 0}

    return {
        "success": True,
        "processed": result.processed,
        "skipped": result.skipped,
        "errors": result.errors,
        "date": result.day.isoformat(),
        "timestamp": _timestamp(),
    }
