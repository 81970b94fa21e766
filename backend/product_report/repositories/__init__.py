"""
Repository Layer - Data Access

This layer handles all database queries and returns domain models.
Repositories abstract away SQL details from business logic.
"""
from product_report.repositories.analytics_repository import AnalyticsRepository
from product_report.repositories.audit_log_repository import AuditLogRepository
from product_report.repositories.brand_analytics_repository import BrandAnalyticsRepository
from product_report.repositories.brand_repository import BrandRepository
from product_report.repositories.product_repository import ProductRepository

__all__ = [
    'AnalyticsRepository',
    'AuditLogRepository',
    'BrandAnalyticsRepository',
    'BrandRepository',
    'ProductRepository'
]
