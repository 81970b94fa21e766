"""
Domain Layer - Business Entities

Pydantic models for analytics payloads, products and brands.
"""
from product_report.domain.analytics import BusinessAnalyticsResponse, DataSourceError
from product_report.domain.brand import Brand, TrustCalculation
from product_report.domain.product import EmbeddingInput, ProductSummary, SimilarProduct, Verdict

__all__ = [
    'BusinessAnalyticsResponse',
    'DataSourceError',
    'Brand',
    'TrustCalculation',
    'EmbeddingInput',
    'ProductSummary',
    'SimilarProduct',
    'Verdict',
]
