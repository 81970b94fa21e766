"""
Mixpanel Events Connector
Trial starts, conversions and paywall funnel counts from the Mixpanel
event segmentation API

API Docs: https://developer.mixpanel.com/reference/overview
"""
import asyncio
import json
import logging
from datetime import date, timedelta
from typing import Dict, List, Optional, Tuple

import httpx

from product_report.core.cache import CACHE_KEYS, CACHE_TTL, AnalyticsCache, analytics_cache
from product_report.core.config import get_settings
from product_report.domain.analytics import DailyTrials, FunnelConversions, TrialMetrics

logger = logging.getLogger(__name__)

MIXPANEL_API_BASE = "https://mixpanel.com/api/2.0"

# Event names sent by the mobile app
TRIAL_STARTED = "Trial Started"
SUBSCRIPTION_STARTED = "Subscription Started"
PAYWALL_SHOWN = "Paywall Shown"
PAYWALL_CONVERTED = "Paywall Converted"

LOOKBACK_DAYS = 7


def date_range(today: Optional[date] = None) -> Tuple[date, date]:
    """(today - 7 days, today); both ends inclusive"""
    today = today or date.today()
    return today - timedelta(days=LOOKBACK_DAYS), today


def empty_trial_history(from_date: date, to_date: date) -> List[DailyTrials]:
    days = (to_date - from_date).days
    return [
        DailyTrials(date=(from_date + timedelta(days=offset)).isoformat())
        for offset in range(days + 1)
    ]


def empty_trial_metrics(today: Optional[date] = None) -> TrialMetrics:
    from_date, to_date = date_range(today)
    return TrialMetrics(trial_history=empty_trial_history(from_date, to_date))


class MixpanelConnector:
    """
    Connector for Mixpanel event counts

    Handles:
    - Weekly trial metrics with daily history
    - Paywall funnel conversions
    """

    def __init__(
        self,
        api_secret: str = None,
        cache: AnalyticsCache = None,
        transport: httpx.AsyncBaseTransport = None
    ):
        self.api_secret = api_secret if api_secret is not None else get_settings().MIXPANEL_API_SECRET
        self.cache = cache or analytics_cache
        self.transport = transport
        self.base_url = MIXPANEL_API_BASE
        self.timeout = 20.0

    async def _query_events(self, events: List[str], from_date: date, to_date: date) -> Optional[Dict]:
        """
        Daily counts for the given events

        Returns:
            {event_name: {"YYYY-MM-DD": count}} or None on failure
        """
        params = {
            'from_date': from_date.isoformat(),
            'to_date': to_date.isoformat(),
            'event': json.dumps(events),
        }

        try:
            async with httpx.AsyncClient(transport=self.transport, timeout=self.timeout) as client:
                response = await client.get(
                    f"{self.base_url}/events",
                    params=params,
                    auth=(self.api_secret, ""),
                    headers={'Accept': 'application/json'}
                )

            if response.status_code >= 400:
                logger.error(f"Mixpanel events API error: {response.status_code}")
                return None

            data = response.json()
            return (data.get('data') or {}).get('values') or {}

        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Mixpanel: error querying {events}: {e}")
            return None

    async def count_event(self, event_name: str, from_date: date, to_date: date) -> int:
        """Total occurrences of one event over the range; 0 on failure"""
        values = await self._query_events([event_name], from_date, to_date)
        if not values:
            return 0
        return sum(count or 0 for count in (values.get(event_name) or {}).values())

    async def daily_trials(self, from_date: date, to_date: date) -> List[DailyTrials]:
        values = await self._query_events([TRIAL_STARTED, SUBSCRIPTION_STARTED], from_date, to_date)
        history = empty_trial_history(from_date, to_date)
        if values is None:
            return history

        started = values.get(TRIAL_STARTED) or {}
        converted = values.get(SUBSCRIPTION_STARTED) or {}
        for day in history:
            day.started = started.get(day.date) or 0
            day.converted = converted.get(day.date) or 0
        return history

    async def fetch_trials(self) -> TrialMetrics:
        """Trial metrics over the last week; empty metrics when unavailable"""
        cached = self.cache.get(CACHE_KEYS.TRIALS)
        if cached is not None:
            return cached

        if not self.api_secret:
            logger.warning("Mixpanel: MIXPANEL_API_SECRET not configured")
            return empty_trial_metrics()

        from_date, to_date = date_range()

        try:
            started, converted, history = await asyncio.gather(
                self.count_event(TRIAL_STARTED, from_date, to_date),
                self.count_event(SUBSCRIPTION_STARTED, from_date, to_date),
                self.daily_trials(from_date, to_date),
            )
        except Exception as e:
            logger.error(f"Mixpanel: error fetching trial metrics: {e}")
            return empty_trial_metrics()

        conversion_rate = converted / started if started > 0 else 0

        result = TrialMetrics(
            started=started,
            active=max(0, started - converted),
            converted=converted,
            conversion_rate=round(conversion_rate, 3),
            trial_history=history,
        )

        self.cache.set(CACHE_KEYS.TRIALS, result, CACHE_TTL.MIXPANEL)
        return result

    async def get_funnel_conversions(self) -> FunnelConversions:
        """Paywall shown vs. converted over the last week"""
        if not self.api_secret:
            return FunnelConversions()

        from_date, to_date = date_range()
        shown, converted = await asyncio.gather(
            self.count_event(PAYWALL_SHOWN, from_date, to_date),
            self.count_event(PAYWALL_CONVERTED, from_date, to_date),
        )

        return FunnelConversions(
            paywall_shown=shown,
            paywall_converted=converted,
            conversion_rate=converted / shown if shown > 0 else 0,
        )
