"""
Brand Domain Models

Brand rows plus the Brand Trust Index computed from their products.
"""
import math
from datetime import date, datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from product_report.domain.analytics import CamelModel


class Recall(BaseModel):
    severity: Optional[str] = Field(None, description="class_i, class_ii or class_iii")


class Brand(BaseModel):
    id: int
    name: str
    slug: Optional[str] = None
    trust_score: Optional[int] = None
    trust_grade: Optional[str] = None
    trust_score_last_calculated: Optional[datetime] = None
    recalls: List[Recall] = Field(default_factory=list)

    model_config = ConfigDict(from_attributes=True)

    @property
    def severe_recall_count(self) -> int:
        return sum(1 for recall in self.recalls if recall.severity == "class_i")


class TrustBreakdown(CamelModel):
    ingredient_quality: int
    recall_history: int
    transparency: int
    consistency: int
    responsiveness: int


class TrustStats(CamelModel):
    product_count: int
    avoid_count: int
    recall_count: int


class TrustCalculation(CamelModel):
    brand_id: int
    brand_name: str
    trust_score: int = Field(..., ge=0, le=100)
    trust_grade: str = Field(..., pattern="^[ABCDF]$")
    breakdown: TrustBreakdown
    stats: TrustStats


class TrustResult(CamelModel):
    success: bool = True
    brands_processed: int = 0
    calculations: List[TrustCalculation] = Field(default_factory=list)
    errors: List[str] = Field(default_factory=list)

    @property
    def average_trust_score(self) -> int:
        if not self.calculations:
            return 0
        mean = sum(c.trust_score for c in self.calculations) / len(self.calculations)
        return math.floor(mean + 0.5)


class ArchetypeRunResult(CamelModel):
    categories_processed: int = 0
    products_updated: int = 0
    products_cleared: int = 0
    errors: List[str] = Field(default_factory=list)


class VerdictBreakdown(CamelModel):
    recommend_count: int = 0
    caution_count: int = 0
    avoid_count: int = 0
    avoid_hit_count: int = 0


class BrandAnalyticsSnapshot(CamelModel):
    """One brand's daily analytics row"""
    brand_id: int
    brand_name: str
    day: date
    verdict_breakdown: VerdictBreakdown = Field(default_factory=VerdictBreakdown)
    trust_score: int = 0
    trust_grade: str = 'C'
    trust_score_change: int = 0
    product_count: int = 0
    tested_product_count: int = 0
    average_product_score: int = 0


class BrandAnalyticsRunResult(CamelModel):
    day: date
    brands_found: int = 0
    processed: int = 0
    skipped: int = 0
    errors: int = 0
