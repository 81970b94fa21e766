"""
Business Analytics Service - aggregates the admin dashboard payload

Pulls RevenueCat, Mixpanel, Statsig and the internal metrics concurrently.
A failing source becomes an entry in `errors` instead of failing the
request; the assembled response is cached for CACHE_TTL.AGGREGATED.
"""
import asyncio
import logging
import time
from datetime import datetime, timezone
from typing import Any, List, Tuple

from product_report.connectors.mixpanel_connector import MixpanelConnector
from product_report.connectors.revenuecat_connector import RevenueCatConnector
from product_report.connectors.statsig_connector import StatsigConnector
from product_report.core.cache import CACHE_KEYS, CACHE_TTL, AnalyticsCache, analytics_cache
from product_report.domain.analytics import BusinessAnalyticsResponse, DataSourceError
from product_report.services.metrics_calculator import MetricsCalculator

logger = logging.getLogger(__name__)


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace('+00:00', 'Z')


# (response field, source, fallback message, value when failed)
_SOURCES: List[Tuple[str, str, str, Any]] = [
    ('revenue', 'revenuecat', 'Failed to fetch revenue data', None),
    ('trials', 'mixpanel', 'Failed to fetch trial data', None),
    ('experiments', 'statsig', 'Failed to fetch experiments', []),
    ('churn', 'internal', 'Failed to calculate churn', None),
    ('referrals', 'internal', 'Failed to calculate referrals', None),
    ('predicted_mrr', 'internal', 'Failed to predict MRR', None),
]


class BusinessAnalyticsService:

    def __init__(
        self,
        revenuecat: RevenueCatConnector = None,
        mixpanel: MixpanelConnector = None,
        statsig: StatsigConnector = None,
        metrics: MetricsCalculator = None,
        cache: AnalyticsCache = None
    ):
        self.cache = cache or analytics_cache
        self.revenuecat = revenuecat or RevenueCatConnector(cache=self.cache)
        self.mixpanel = mixpanel or MixpanelConnector(cache=self.cache)
        self.statsig = statsig or StatsigConnector(cache=self.cache)
        self.metrics = metrics or MetricsCalculator(revenuecat=self.revenuecat, cache=self.cache)

    async def collect(self) -> BusinessAnalyticsResponse:
        """
        Fetch every source concurrently, never raising for a source failure

        Returns:
            Fresh response with cache_hit False and one error per failed source
        """
        results = await asyncio.gather(
            self.revenuecat.fetch_revenue(),
            self.mixpanel.fetch_trials(),
            self.statsig.fetch_experiments(),
            self.metrics.calculate_churn_by_cohort(),
            self.metrics.calculate_referral_attribution(),
            self.metrics.predict_mrr(),
            return_exceptions=True,
        )

        values = {}
        errors: List[DataSourceError] = []

        for (field, source, fallback_message, failed_value), result in zip(_SOURCES, results):
            if isinstance(result, BaseException):
                logger.warning(f"BusinessAnalytics: {source} source failed: {result}")
                errors.append(DataSourceError(
                    source=source,
                    message=str(result) or fallback_message,
                    timestamp=_now_iso(),
                ))
                values[field] = failed_value
            else:
                values[field] = result

        return BusinessAnalyticsResponse(
            **values,
            last_updated=_now_iso(),
            cache_hit=False,
            errors=errors,
        )

    async def get_dashboard(self) -> BusinessAnalyticsResponse:
        """Cached full response (cache_hit True), or a fresh aggregation"""
        cached = self.cache.get(CACHE_KEYS.FULL_RESPONSE)
        if cached is not None:
            return cached.model_copy(update={'cache_hit': True})

        start = time.monotonic()
        response = await self.collect()
        self.cache.set(CACHE_KEYS.FULL_RESPONSE, response, CACHE_TTL.AGGREGATED)

        duration_ms = round((time.monotonic() - start) * 1000)
        logger.info(
            f"BusinessAnalytics: generated response in {duration_ms}ms "
            f"with {len(response.errors)} errors"
        )
        return response
