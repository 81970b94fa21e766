"""
Semantic Search API - product search over pgvector embeddings

Endpoints:
- POST /api/search/semantic  - JSON body {query, limit, minSimilarity, verdictFilter, excludeIds}
- GET  /api/search/semantic  - ?q=&limit=&verdict=

Public, limited to 30 requests per minute per client IP.
"""
import json
import logging
import math
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query, Request, status
from fastapi.responses import JSONResponse

from product_report.core.exceptions import ConfigurationError
from product_report.core.rate_limit import RATE_LIMITS, get_client_ip, rate_limiter
from product_report.domain.product import Verdict
from product_report.services.embedding_service import EmbeddingService

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/search", tags=["Search"])

DEFAULT_LIMIT = 20
MAX_LIMIT = 50
DEFAULT_MIN_SIMILARITY = 0.3
MIN_QUERY_LENGTH = 2
MAX_QUERY_LENGTH = 500

VALID_VERDICTS = {v.value for v in Verdict}


def get_embedding_service() -> EmbeddingService:
    return EmbeddingService()


def _error(message: str, status_code: int) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


def _as_float(value: Any, default: float) -> float:
    try:
        return float(value)
    except (TypeError, ValueError, OverflowError):
        return default


def _as_id_list(value: Any) -> List[int]:
    if not isinstance(value, list):
        return []
    return [item for item in value if isinstance(item, int) and not isinstance(item, bool)]


def clamp_limit(value: Any) -> int:
    """Limit clamped to 1-50; non-numeric values fall back to the default"""
    number = _as_float(value, DEFAULT_LIMIT)
    if math.isnan(number):
        return DEFAULT_LIMIT
    return int(min(max(1, number), MAX_LIMIT))


def validate_search_body(body: Dict) -> Optional[str]:
    """Validation error message for a search body, or None when valid"""
    query = body.get("query")
    if not query or not isinstance(query, str):
        return "Query string is required"
    if len(query) < MIN_QUERY_LENGTH:
        return "Query must be at least 2 characters"
    if len(query) > MAX_QUERY_LENGTH:
        return "Query must be less than 500 characters"

    verdict = body.get("verdictFilter")
    if verdict and not (isinstance(verdict, str) and verdict in VALID_VERDICTS):
        return "Invalid verdictFilter. Must be: recommend, caution, or avoid"
    return None


async def run_semantic_search(request: Request, body: Dict, service: EmbeddingService) -> JSONResponse:
    """Rate limit, validate and execute a search body"""
    ip = get_client_ip(request, default="unknown")
    config = RATE_LIMITS["semantic_search"]
    if not rate_limiter.check(f"semantic:{ip}", config.max_requests, config.window_seconds).allowed:
        logger.info(f"Semantic search: rate limit exceeded for {ip}")
        return _error("Rate limit exceeded. Please try again later.", status.HTTP_429_TOO_MANY_REQUESTS)

    validation_error = validate_search_body(body)
    if validation_error:
        return _error(validation_error, status.HTTP_400_BAD_REQUEST)

    query = body["query"]

    try:
        stats = service.get_stats()

        if stats.with_embeddings == 0:
            return JSONResponse(content={
                "results": [],
                "query": query,
                "count": 0,
                "message": "Semantic search not yet available. Embeddings are being generated.",
                "embeddingStats": stats.to_json_dict(),
            })

        results = await service.search(
            query,
            limit=clamp_limit(body.get("limit", DEFAULT_LIMIT)),
            min_similarity=_as_float(body.get("minSimilarity", DEFAULT_MIN_SIMILARITY), DEFAULT_MIN_SIMILARITY),
            exclude_ids=_as_id_list(body.get("excludeIds", [])),
            verdict=body.get("verdictFilter") or None,
        )

    except Exception as e:
        logger.error(f"Semantic search error: {e}")
        if isinstance(e, ConfigurationError) or "GEMINI_API_KEY" in str(e) or "OPENAI_API_KEY" in str(e):
            return _error("Semantic search is not configured", status.HTTP_503_SERVICE_UNAVAILABLE)
        return _error("Search failed. Please try again.", status.HTTP_500_INTERNAL_SERVER_ERROR)

    content = {
        "results": [r.to_json_dict() for r in results],
        "query": query,
        "count": len(results),
    }
    if stats.percent_complete < 100:
        content["embeddingStats"] = stats.to_json_dict()

    return JSONResponse(content=content)


@router.post("/semantic")
async def semantic_search(request: Request, service: EmbeddingService = Depends(get_embedding_service)):
    """
    Semantic product search.

    A body that is not valid JSON is treated as empty. `limit` is clamped to
    1-50. `embeddingStats` is included while embeddings are incomplete.
    """
    try:
        body = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        body = {}
    if not isinstance(body, dict):
        body = {}

    return await run_semantic_search(request, body, service)


@router.get("/semantic")
async def semantic_search_get(
    request: Request,
    q: Optional[str] = Query(None),
    limit: Optional[str] = Query(None),
    verdict: Optional[str] = Query(None),
    service: EmbeddingService = Depends(get_embedding_service)
):
    """Query-string form of the POST endpoint"""
    if not q:
        return _error('Query parameter "q" is required', status.HTTP_400_BAD_REQUEST)

    body = {
        "query": q,
        "limit": limit if limit is not None else DEFAULT_LIMIT,
        "verdictFilter": verdict,
    }
    return await run_semantic_search(request, body, service)
