"""
Brand Trust Service - Brand Trust Index calculation

A 0-100 score per brand, weighted from:
- Ingredient quality (35%): share of avoid / caution verdicts
- Recall history (25%): recalls, with class I recalls penalized extra
- Transparency (15%): share of products with ingredient data
- Consistency (15%): fixed until price history is tracked
- Responsiveness (10%): verified reaction reports on the brand's products
"""
import logging
import re
from datetime import datetime, timezone
from typing import Dict, List, Optional

from product_report.domain.brand import Brand, TrustBreakdown, TrustCalculation, TrustResult, TrustStats
from product_report.domain.product import ProductSummary, Verdict
from product_report.repositories.audit_log_repository import create_audit_log
from product_report.repositories.brand_repository import BrandRepository
from product_report.repositories.product_repository import ProductRepository
from product_report.services.metrics_calculator import round_half_up

logger = logging.getLogger(__name__)

WEIGHTS = {
    'ingredient_quality': 0.35,
    'recall_history': 0.25,
    'transparency': 0.15,
    'consistency': 0.15,
    'responsiveness': 0.10,
}

# TODO: derive from price history once shrinkflation tracking lands
CONSISTENCY_SCORE = 80


def trust_grade(score: int) -> str:
    if score >= 85:
        return 'A'
    if score >= 70:
        return 'B'
    if score >= 55:
        return 'C'
    if score >= 40:
        return 'D'
    return 'F'


def slugify(name: str) -> str:
    return re.sub(r'[^a-z0-9]+', '-', name.lower())


def neutral_calculation(brand: Brand) -> TrustCalculation:
    """Score for a brand with no products"""
    return TrustCalculation(
        brand_id=brand.id,
        brand_name=brand.name,
        trust_score=50,
        trust_grade='C',
        breakdown=TrustBreakdown(
            ingredient_quality=50,
            recall_history=100,
            transparency=50,
            consistency=50,
            responsiveness=50,
        ),
        stats=TrustStats(product_count=0, avoid_count=0, recall_count=len(brand.recalls)),
    )


def score_brand(brand: Brand, products: List[ProductSummary], verified_reports: int) -> TrustCalculation:
    """Pure trust calculation from a brand, its products and report count"""
    product_count = len(products)
    if product_count == 0:
        return neutral_calculation(brand)

    avoid_count = sum(1 for p in products if p.verdict == Verdict.AVOID)
    caution_count = sum(1 for p in products if p.verdict == Verdict.CAUTION)

    components: Dict[str, float] = {
        'ingredient_quality': max(
            0, 100 - (avoid_count / product_count) * 100 - (caution_count / product_count) * 30
        ),
        'recall_history': max(0, 100 - len(brand.recalls) * 15 - brand.severe_recall_count * 20),
        'transparency': sum(1 for p in products if p.has_ingredient_data) / product_count * 100,
        'consistency': CONSISTENCY_SCORE,
        'responsiveness': max(0, 80 - verified_reports * 5),
    }

    score = round_half_up(sum(components[name] * weight for name, weight in WEIGHTS.items()))

    return TrustCalculation(
        brand_id=brand.id,
        brand_name=brand.name,
        trust_score=score,
        trust_grade=trust_grade(score),
        breakdown=TrustBreakdown(**{name: round_half_up(value) for name, value in components.items()}),
        stats=TrustStats(
            product_count=product_count,
            avoid_count=avoid_count,
            recall_count=len(brand.recalls),
        ),
    )


class BrandTrustService:

    def __init__(self, brands: BrandRepository = None, products: ProductRepository = None):
        self.brands = brands or BrandRepository()
        self.products = products or ProductRepository()

    def calculate(self, brand_id: int) -> Optional[TrustCalculation]:
        """Trust calculation for one brand; None when the brand does not exist"""
        brand = self.brands.find_by_id(brand_id)
        if brand is None:
            return None

        products = self.products.find_by_brand(brand.name)
        reports = self.brands.count_verified_reaction_reports(brand.name) if products else 0
        return score_brand(brand, products, reports)

    def _calculate_and_store(self, brand_id: int) -> Optional[TrustCalculation]:
        calculation = self.calculate(brand_id)
        if calculation is not None:
            self.brands.update_trust(calculation, datetime.now(timezone.utc))
        return calculation

    def recalculate_brand(self, brand_id: int) -> TrustResult:
        result = TrustResult()
        calculation = self._calculate_and_store(brand_id)

        if calculation is None:
            result.errors.append(f"Brand {brand_id} not found")
        else:
            result.calculations.append(calculation)
            result.brands_processed = 1

        self._audit(result)
        return result

    def recalculate_all(self) -> TrustResult:
        """Recalculate every brand; per-brand failures are collected, not raised"""
        result = TrustResult()

        for brand in self.brands.find_all():
            try:
                calculation = self._calculate_and_store(brand.id)
            except Exception as e:
                logger.error(f"Brand trust: failed to calculate {brand.name}: {e}")
                result.errors.append(f"Failed to calculate {brand.name}: {e}")
                continue

            if calculation is not None:
                result.calculations.append(calculation)
                result.brands_processed += 1

        self._audit(result)
        logger.info(f"Brand trust: processed {result.brands_processed} brands")
        return result

    def _audit(self, result: TrustResult):
        create_audit_log(
            action='freshness_check',
            source_type='system',
            metadata={
                'type': 'brand_trust_calculation',
                'brandsProcessed': result.brands_processed,
                'averageTrustScore': result.average_trust_score,
            },
        )

    def sync_brands_from_products(self) -> Dict[str, int]:
        """
        Create a brand row for every product brand name that has none

        Returns:
            {"uniqueBrandsFound", "created", "existing"}
        """
        names = self.products.find_distinct_brand_names()
        created = 0
        existing = 0

        for name in names:
            if self.brands.find_by_name(name) is None:
                self.brands.create(name, slugify(name))
                created += 1
            else:
                existing += 1

        logger.info(f"Brand sync: {created} created, {existing} existing")
        return {
            'uniqueBrandsFound': len(names),
            'created': created,
            'existing': existing,
        }
