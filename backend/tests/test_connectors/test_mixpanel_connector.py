"""
Unit tests for MixpanelConnector against a mocked HTTP transport
"""
import json
from datetime import date

import httpx
import pytest

from product_report.connectors.mixpanel_connector import (
    PAYWALL_CONVERTED,
    PAYWALL_SHOWN,
    SUBSCRIPTION_STARTED,
    TRIAL_STARTED,
    MixpanelConnector,
    date_range,
)
from product_report.core.cache import CACHE_KEYS, AnalyticsCache


def events_transport(daily_counts: dict, status_code: int = 200):
    """Answers /events with the requested events' daily counts"""
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.headers['authorization'].startswith("Basic ")
        requested = json.loads(request.url.params['event'])
        values = {name: daily_counts[name] for name in requested if name in daily_counts}
        return httpx.Response(status_code, json={'data': {'values': values}})
    return httpx.MockTransport(handler)


class TestDateRange:

    def test_seven_days_back(self):
        assert date_range(date(2026, 10, 18)) == (date(2026, 10, 11), date(2026, 10, 18))


class TestFetchTrials:

    @pytest.mark.asyncio
    async def test_counts_and_history(self):
        today = date.today().isoformat()
        cache = AnalyticsCache()
        connector = MixpanelConnector(
            api_secret="mp_secret",
            cache=cache,
            transport=events_transport({
                TRIAL_STARTED: {today: 5},
                SUBSCRIPTION_STARTED: {today: 2},
            }),
        )

        trials = await connector.fetch_trials()

        assert (trials.started, trials.converted, trials.active) == (5, 2, 3)
        assert trials.conversion_rate == 0.4
        assert len(trials.trial_history) == 8
        assert trials.trial_history[-1].started == 5
        assert trials.trial_history[0].started == 0
        assert cache.has(CACHE_KEYS.TRIALS)

    @pytest.mark.asyncio
    async def test_more_conversions_than_starts_keeps_active_at_zero(self):
        today = date.today().isoformat()
        connector = MixpanelConnector(
            api_secret="mp_secret",
            cache=AnalyticsCache(),
            transport=events_transport({TRIAL_STARTED: {today: 1}, SUBSCRIPTION_STARTED: {today: 3}}),
        )

        trials = await connector.fetch_trials()

        assert trials.active == 0

    @pytest.mark.asyncio
    async def test_without_secret_returns_empty_metrics(self):
        connector = MixpanelConnector(api_secret="", cache=AnalyticsCache())

        trials = await connector.fetch_trials()

        assert trials.started == 0
        assert len(trials.trial_history) == 8

    @pytest.mark.asyncio
    async def test_api_error_counts_as_zero(self):
        connector = MixpanelConnector(
            api_secret="mp_secret", cache=AnalyticsCache(), transport=events_transport({}, status_code=500)
        )

        trials = await connector.fetch_trials()

        assert trials.started == 0
        assert trials.conversion_rate == 0


class TestFunnel:

    @pytest.mark.asyncio
    async def test_paywall_conversion(self):
        today = date.today().isoformat()
        connector = MixpanelConnector(
            api_secret="mp_secret",
            cache=AnalyticsCache(),
            transport=events_transport({PAYWALL_SHOWN: {today: 20}, PAYWALL_CONVERTED: {today: 5}}),
        )

        funnel = await connector.get_funnel_conversions()

        assert (funnel.paywall_shown, funnel.paywall_converted) == (20, 5)
        assert funnel.conversion_rate == 0.25
