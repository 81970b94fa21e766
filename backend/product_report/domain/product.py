"""
Product Domain Models

Products are owned by the CMS; this service reads the fields it needs for
archetype badges and semantic search, and writes badges and embeddings back.
"""
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from product_report.domain.analytics import CamelModel


class Verdict(str, Enum):
    RECOMMEND = "recommend"
    CAUTION = "caution"
    AVOID = "avoid"


PRICE_VALUES = {"$": 1, "$$": 2, "$$$": 3, "$$$$": 4}
DEFAULT_PRICE_VALUE = 2
DEFAULT_OVERALL_SCORE = 50


class ProductBadges(BaseModel):
    archetype_override: bool = False
    is_archetype_premium: bool = False
    is_archetype_value: bool = False


class ProductSummary(BaseModel):
    """
    Product as seen by the archetype and brand trust calculators

    Fields:
        price_range: "$" to "$$$$"; missing means "$$"
        overall_score: 0-100; missing means 50
        ingredients_raw: raw ingredient label text, used for transparency
        ingredient_count: number of parsed ingredients linked to the product
    """
    id: int
    name: str
    brand: Optional[str] = None
    verdict: Optional[Verdict] = None
    price_range: Optional[str] = None
    overall_score: Optional[float] = Field(None, ge=0, le=100)
    ingredients_raw: Optional[str] = None
    ingredient_count: int = 0
    badges: ProductBadges = Field(default_factory=ProductBadges)

    model_config = ConfigDict(from_attributes=True)

    @property
    def price_value(self) -> int:
        return PRICE_VALUES.get(self.price_range or "$$", DEFAULT_PRICE_VALUE)

    @property
    def score_price_ratio(self) -> float:
        """Score per price unit; higher means better value"""
        score = self.overall_score or DEFAULT_OVERALL_SCORE
        return score / self.price_value

    @property
    def has_ingredient_data(self) -> bool:
        return bool(self.ingredients_raw) or self.ingredient_count > 0


class EmbeddingInput(BaseModel):
    """Fields combined into the text that gets embedded"""
    id: int
    name: str
    brand: str
    summary: Optional[str] = None
    verdict_reason: Optional[str] = None
    category: Optional[str] = None


class CategoryRef(BaseModel):
    name: str


class SimilarProduct(CamelModel):
    id: int
    name: str
    brand: Optional[str] = None
    similarity: float
    verdict: Optional[str] = None
    image_url: Optional[str] = None
    category: Optional[CategoryRef] = None


class EmbeddingStats(CamelModel):
    total_products: int = 0
    with_embeddings: int = 0
    without_embeddings: int = 0
    percent_complete: float = 0
