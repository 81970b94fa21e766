"""
Business Analytics API - admin dashboard data and export

Endpoints:
- GET /api/business-analytics         - Aggregated dashboard payload (admin)
- GET /api/business-analytics/export  - CSV or JSON download (admin)
"""
import logging

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse, StreamingResponse

from product_report.core.auth import TokenUser, require_admin
from product_report.services.business_analytics_service import BusinessAnalyticsService
from product_report.services.export_service import export_filename, to_csv, to_json

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/business-analytics", tags=["Business Analytics"])


def get_business_analytics_service() -> BusinessAnalyticsService:
    return BusinessAnalyticsService()


@router.get("")
async def get_business_analytics(
    user: TokenUser = Depends(require_admin),
    service: BusinessAnalyticsService = Depends(get_business_analytics_service)
):
    """
    Revenue, trials, experiments, churn, referrals and MRR prediction.

    Served from the aggregated cache (cacheHit true) for up to a minute.
    Failing sources appear in `errors` with a null value.
    """
    response = await service.get_dashboard()
    return JSONResponse(content=response.to_json_dict())


@router.get("/export")
async def export_business_analytics(
    format: str = Query("json", description="csv or json"),
    user: TokenUser = Depends(require_admin),
    service: BusinessAnalyticsService = Depends(get_business_analytics_service)
):
    """
    Download fresh analytics (never cached) as CSV or JSON.

    Unknown formats fall back to JSON.
    """
    data = await service.collect()
    logger.info(f"BusinessAnalytics: export requested by {user.email} as {format}")

    if format == "csv":
        return StreamingResponse(
            iter([to_csv(data)]),
            media_type="text/csv",
            headers={
                "Content-Disposition": f'attachment; filename="{export_filename("csv")}"'
            }
        )

    return StreamingResponse(
        iter([to_json(data)]),
        media_type="application/json",
        headers={
            "Content-Disposition": f'attachment; filename="{export_filename("json")}"'
        }
    )
