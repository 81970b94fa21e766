"""
RevenueCat REST Connector
Fetches subscription and revenue figures from the RevenueCat V1 API

API Docs: https://www.revenuecat.com/reference/overview
"""
import logging
from datetime import date, timedelta
from typing import Dict, List, Optional

import httpx

from product_report.core.cache import CACHE_KEYS, CACHE_TTL, AnalyticsCache, analytics_cache
from product_report.core.config import get_settings
from product_report.core.exceptions import ConfigurationError
from product_report.domain.analytics import DailyRevenue, RevenueMetrics, SubscriptionCounts

logger = logging.getLogger(__name__)

REVENUECAT_API_BASE = "https://api.revenuecat.com/v1"


def empty_daily_history(days: int = 7, today: Optional[date] = None) -> List[DailyRevenue]:
    """Zeroed history for the last `days` days, oldest first, ending today"""
    today = today or date.today()
    return [
        DailyRevenue(date=(today - timedelta(days=offset)).isoformat(), amount=0)
        for offset in range(days - 1, -1, -1)
    ]


def percent_change(current: float, previous: float) -> float:
    """Percent change rounded to one decimal; 0 when previous is 0"""
    if previous <= 0:
        return 0
    return round(((current - previous) / previous) * 100, 1)


class RevenueCatConnector:
    """
    Connector for the RevenueCat developer overview endpoint

    Handles:
    - Revenue metrics for the dashboard
    - Current MRR for predictions
    - Subscription counts for churn and growth
    """

    def __init__(
        self,
        api_key: str = None,
        cache: AnalyticsCache = None,
        transport: httpx.AsyncBaseTransport = None
    ):
        self.api_key = api_key if api_key is not None else get_settings().REVENUECAT_API_KEY
        self.cache = cache or analytics_cache
        self.transport = transport
        self.base_url = REVENUECAT_API_BASE
        self.timeout = 15.0

    def _headers(self) -> Dict[str, str]:
        return {
            'Authorization': f'Bearer {self.api_key}',
            'Content-Type': 'application/json'
        }

    async def _fetch_overview(self) -> Optional[Dict]:
        """
        GET /developers/me

        Returns:
            Parsed JSON, or None on a non-2xx response or transport error
        """
        try:
            async with httpx.AsyncClient(transport=self.transport, timeout=self.timeout) as client:
                response = await client.get(f"{self.base_url}/developers/me", headers=self._headers())

            if response.status_code >= 400:
                logger.warning(f"RevenueCat overview API returned {response.status_code}")
                return None

            return response.json()

        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"RevenueCat: error fetching overview: {e}")
            return None

    def _fallback_metrics(self) -> RevenueMetrics:
        return RevenueMetrics(daily_history=empty_daily_history())

    async def fetch_revenue(self) -> RevenueMetrics:
        """
        Revenue metrics for the dashboard

        Raises:
            ConfigurationError: REVENUECAT_API_KEY is not set
        """
        cached = self.cache.get(CACHE_KEYS.REVENUE)
        if cached is not None:
            return cached

        if not self.api_key:
            raise ConfigurationError("REVENUECAT_API_KEY not configured")

        overview = await self._fetch_overview()
        if overview is None:
            logger.info("RevenueCat: overview API not available, using zeroed history")
            return self._fallback_metrics()

        revenue = overview.get('revenue') or {}
        daily = revenue.get('last_24_hours') or 0
        weekly = revenue.get('last_7_days') or 0

        # The overview has no per-day breakdown
        daily_history = empty_daily_history()
        previous_daily = daily_history[-2].amount or daily

        result = RevenueMetrics(
            daily=daily,
            weekly=weekly,
            daily_change=percent_change(daily, previous_daily),
            weekly_change=0,
            daily_history=daily_history,
            active_subscribers=overview.get('active_subscribers_count') or 0,
        )

        self.cache.set(CACHE_KEYS.REVENUE, result, CACHE_TTL.REVENUECAT)
        return result

    async def get_current_mrr(self) -> float:
        """Current MRR in USD; 0 when unavailable"""
        if not self.api_key:
            return 0

        overview = await self._fetch_overview()
        if overview is None:
            return 0

        return (overview.get('mrr') or {}).get('value') or 0

    async def get_subscription_counts(self) -> SubscriptionCounts:
        """Active, trial and churned subscriber counts; zeros when unavailable"""
        if not self.api_key:
            return SubscriptionCounts()

        overview = await self._fetch_overview()
        if overview is None:
            return SubscriptionCounts()

        subscribers = overview.get('subscribers') or {}
        return SubscriptionCounts(
            active=overview.get('active_subscribers_count') or 0,
            trials=overview.get('active_trials_count') or 0,
            churned_24h=subscribers.get('churned_last_24_hours') or 0,
            churned_7d=subscribers.get('churned_last_7_days') or 0,
        )
