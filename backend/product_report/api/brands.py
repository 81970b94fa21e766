"""
Brand API - Brand Trust Index

Endpoints:
- POST /api/brand/trust  - Recalculate one brand or all brands (admin or cron)
- POST /api/brand/sync   - Create brand rows from product brand names (authenticated)
"""
import json
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Request, status
from fastapi.responses import JSONResponse

from product_report.core.auth import TokenUser, get_current_user, get_current_user_optional
from product_report.core.cron import is_valid_cron_secret
from product_report.services.brand_trust_service import BrandTrustService

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/brand", tags=["Brands"])


def get_brand_trust_service() -> BrandTrustService:
    return BrandTrustService()


async def require_admin_or_cron(
    authorization: Optional[str] = Header(None),
    user: Optional[TokenUser] = Depends(get_current_user_optional)
) -> Optional[TokenUser]:
    """Admin session, or the scheduler's cron secret (returns None then)"""
    if is_valid_cron_secret(authorization):
        return None

    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
            headers={"WWW-Authenticate": "Bearer"}
        )

    if not user.has_admin_access:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Forbidden - Admin access required"
        )
    return user


@router.post("/trust")
async def calculate_brand_trust(
    request: Request,
    caller: Optional[TokenUser] = Depends(require_admin_or_cron),
    service: BrandTrustService = Depends(get_brand_trust_service)
):
    """
    Body: {"brandId": 12} or {"recalculateAll": true}

    An unknown brand is reported in `errors`, not as a 404.
    """
    try:
        body = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        body = {}
    if not isinstance(body, dict):
        body = {}

    brand_id = body.get("brandId")
    recalculate_all = bool(body.get("recalculateAll", False))

    if not brand_id and not recalculate_all:
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"error": "Either brandId or recalculateAll=true is required"}
        )

    try:
        if brand_id:
            result = service.recalculate_brand(int(brand_id))
        else:
            result = service.recalculate_all()
    except Exception as e:
        logger.error(f"Brand trust calculation error: {e}")
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"success": False, "error": str(e) or "Calculation failed"}
        )

    logger.info(f"Brand trust: processed {result.brands_processed} brands")
    return JSONResponse(content=result.to_json_dict())


@router.post("/sync")
async def sync_brands(
    user: TokenUser = Depends(get_current_user),
    service: BrandTrustService = Depends(get_brand_trust_service)
):
    """Create a brand for every distinct product brand name missing one"""
    try:
        counts = service.sync_brands_from_products()
    except Exception as e:
        logger.error(f"Brand sync error: {e}")
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"success": False, "error": str(e) or "Sync failed"}
        )

    return {"success": True, **counts}
