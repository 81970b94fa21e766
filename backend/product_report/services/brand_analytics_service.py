"""
Brand Analytics Service - daily brand snapshots

For every brand without a snapshot for today, records its verdict
distribution, current trust score and grade, the trust score change since
yesterday's snapshot, its product count and average product score.
"""
import logging
from datetime import date, datetime, timedelta, timezone
from typing import List, Optional

from product_report.domain.brand import (
    Brand,
    BrandAnalyticsRunResult,
    BrandAnalyticsSnapshot,
    VerdictBreakdown,
)
from product_report.domain.product import ProductSummary, Verdict
from product_report.repositories.brand_analytics_repository import BrandAnalyticsRepository
from product_report.repositories.brand_repository import BrandRepository
from product_report.repositories.product_repository import ProductRepository
from product_report.services.metrics_calculator import round_half_up

logger = logging.getLogger(__name__)

MAX_BRANDS = 1000


def verdict_breakdown(products: List[ProductSummary]) -> VerdictBreakdown:
    return VerdictBreakdown(
        recommend_count=sum(1 for p in products if p.verdict == Verdict.RECOMMEND),
        caution_count=sum(1 for p in products if p.verdict == Verdict.CAUTION),
        avoid_count=sum(1 for p in products if p.verdict == Verdict.AVOID),
    )


def average_product_score(products: List[ProductSummary]) -> int:
    """Rounded mean of the scored products; 0 when none are scored"""
    scores = [p.overall_score for p in products if p.overall_score is not None]
    if not scores:
        return 0
    return round_half_up(sum(scores) / len(scores))


def build_snapshot(
    brand: Brand,
    products: List[ProductSummary],
    day: date,
    yesterday: Optional[BrandAnalyticsSnapshot] = None,
) -> BrandAnalyticsSnapshot:
    trust_score = brand.trust_score or 0
    change = trust_score - yesterday.trust_score if yesterday and yesterday.trust_score else 0

    return BrandAnalyticsSnapshot(
        brand_id=brand.id,
        brand_name=brand.name,
        day=day,
        verdict_breakdown=verdict_breakdown(products),
        trust_score=trust_score,
        trust_grade=brand.trust_grade or 'C',
        trust_score_change=change,
        product_count=len(products),
        tested_product_count=len(products),
        average_product_score=average_product_score(products),
    )


class BrandAnalyticsService:

    def __init__(
        self,
        brands: BrandRepository = None,
        products: ProductRepository = None,
        snapshots: BrandAnalyticsRepository = None,
    ):
        self.brands = brands or BrandRepository()
        self.products = products or ProductRepository()
        self.snapshots = snapshots or BrandAnalyticsRepository()

    def aggregate_daily(self, today: Optional[date] = None) -> BrandAnalyticsRunResult:
        """Write today's snapshot for every brand; per-brand failures are counted, not raised"""
        today = today or datetime.now(timezone.utc).date()
        yesterday = today - timedelta(days=1)
        result = BrandAnalyticsRunResult(day=today)

        brands = self.brands.find_all(limit=MAX_BRANDS)
        result.brands_found = len(brands)
        logger.info(f"Brand analytics: processing {len(brands)} brands")

        for brand in brands:
            try:
                if self.snapshots.find_snapshot(brand.id, today) is not None:
                    result.skipped += 1
                    continue

                products = self.products.find_by_brand(brand.name)
                previous = self.snapshots.find_snapshot(brand.id, yesterday)
                self.snapshots.create_snapshot(build_snapshot(brand, products, today, previous))
                result.processed += 1

            except Exception as e:
                logger.error(f"Brand analytics: error processing {brand.name}: {e}")
                result.errors += 1

        logger.info(f"Brand analytics: complete, {result.processed} processed, {result.errors} errors")
        return result
