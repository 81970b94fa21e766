"""
Unit tests for internal business metrics

Pure aggregation functions are tested directly; MetricsCalculator is tested
with a mocked AnalyticsRepository and RevenueCat connector.
"""
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest

from product_report.core.cache import CACHE_KEYS, AnalyticsCache
from product_report.domain.analytics import ChurnMetrics, SubscriptionCounts, Trend
from product_report.services.metrics_calculator import (
    MetricsCalculator,
    attribution_from_referrals,
    churn_from_fingerprints,
    cohort_month,
    project_mrr,
    round_half_up,
)


class TestHelpers:

    def test_round_half_up(self):
        assert round_half_up(2.5) == 3
        assert round_half_up(0.5) == 1
        assert round_half_up(0.1235, 3) == pytest.approx(0.124)
        assert isinstance(round_half_up(4.4), int)

    def test_cohort_month(self):
        assert cohort_month("2026-03-31T23:30:00Z") == "2026-03"
        assert cohort_month(datetime(2026, 1, 5, tzinfo=timezone.utc)) == "2026-01"
        assert cohort_month(None) is None


class TestChurn:

    def test_groups_by_first_seen_month(self):
        fingerprints = [
            {'first_seen': '2026-01-03T10:00:00Z', 'subscription_status': 'premium'},
            {'first_seen': '2026-01-20T10:00:00Z', 'subscription_status': 'cancelled'},
            {'first_seen': None, 'created_at': '2026-02-01T00:00:00Z', 'subscription_status': 'expired'},
            {'first_seen': None, 'created_at': None, 'subscription_status': 'churned'},
        ]

        result = churn_from_fingerprints(fingerprints)

        assert [c.cohort_month for c in result.by_cohort] == ['2026-02', '2026-01']
        january = result.by_cohort[1]
        assert (january.total_users, january.churned, january.retained) == (2, 1, 1)
        assert january.churn_rate == 0.5
        assert result.overall == pytest.approx(0.667)

    def test_keeps_six_most_recent_cohorts(self):
        fingerprints = [
            {'first_seen': f'2025-{month:02d}-01T00:00:00Z', 'subscription_status': 'premium'}
            for month in range(1, 13)
        ]

        result = churn_from_fingerprints(fingerprints)

        assert [c.cohort_month for c in result.by_cohort] == [
            '2025-12', '2025-11', '2025-10', '2025-09', '2025-08', '2025-07'
        ]

    def test_no_fingerprints(self):
        result = churn_from_fingerprints([])

        assert result.overall == 0
        assert result.by_cohort == []


class TestReferralAttribution:

    def test_totals_sources_and_commissions(self):
        referrals = [
            {'referrer_id': 1, 'referral_code': 'AAA', 'status': 'active', 'source': 'web', 'total_commission_paid': 5},
            {'referrer_id': 1, 'referral_code': 'AAA', 'status': 'pending', 'source': 'web', 'total_commission_paid': None},
            {'referrer_id': 2, 'referral_code': 'BBB', 'status': 'active', 'source': None, 'total_commission_paid': 2.5},
            {'referrer_id': 2, 'referral_code': 'BBB', 'status': 'active', 'source': 'link', 'total_commission_paid': 0},
        ]
        payouts = [
            {'amount': 10, 'status': 'paid'},
            {'amount': 4, 'status': 'pending'},
            {'amount': 1, 'status': 'processing'},
            {'amount': 99, 'status': 'failed'},
        ]

        result = attribution_from_referrals(referrals, payouts)

        assert (result.total_referrals, result.active_referrals, result.pending_referrals) == (4, 3, 1)
        sources = {s.source: s for s in result.by_source}
        assert sources['web'].count == 2
        assert sources['web'].conversion_rate == 0.5
        assert sources['mobile'].conversions == 1
        assert result.commission_paid == 10
        assert result.commission_pending == 5
        assert [r.referrer_id for r in result.top_referrers] == ['2', '1']
        assert result.top_referrers[0].total_commission == 2.5


class TestProjectMrr:

    def test_growth_with_actual_conversion(self):
        result = project_mrr(current_mrr=1000, active=100, trials=10, churned_7d=1, conversion_rate=0.5)

        # growth 10*0.5*4/100 = 0.2, churn 4/100 = 0.04
        assert result.growth_rate == 0.16
        assert result.trend == Trend.UP
        assert result.predicted_30_day == 1160
        assert result.predicted_90_day == 1561
        assert result.confidence == 0.63

    def test_default_rate_lowers_confidence(self):
        result = project_mrr(current_mrr=0, active=0, trials=0, churned_7d=0, conversion_rate=None)

        assert result.confidence == 0.4
        assert result.trend == Trend.STABLE

    def test_declining(self):
        result = project_mrr(current_mrr=500, active=50, trials=0, churned_7d=5, conversion_rate=0.2)

        assert result.trend == Trend.DOWN
        assert result.predicted_30_day == 300

    def test_confidence_is_capped(self):
        result = project_mrr(current_mrr=100, active=100000, trials=0, churned_7d=0, conversion_rate=0.3)

        assert result.confidence == 0.95


class TestMetricsCalculator:

    @pytest.mark.asyncio
    async def test_churn_is_cached(self):
        repository = MagicMock()
        repository.find_device_fingerprints.return_value = [
            {'first_seen': '2026-01-03T10:00:00Z', 'subscription_status': 'cancelled'}
        ]
        cache = AnalyticsCache()
        calculator = MetricsCalculator(repository=repository, revenuecat=MagicMock(), cache=cache)

        first = await calculator.calculate_churn_by_cohort()
        second = await calculator.calculate_churn_by_cohort()

        assert first.overall == 1
        assert second is first
        repository.find_device_fingerprints.assert_called_once()
        assert cache.has(CACHE_KEYS.CHURN)

    @pytest.mark.asyncio
    async def test_churn_error_yields_zero_value_uncached(self):
        repository = MagicMock()
        repository.find_device_fingerprints.side_effect = Exception("connection refused")
        cache = AnalyticsCache()
        calculator = MetricsCalculator(repository=repository, revenuecat=MagicMock(), cache=cache)

        result = await calculator.calculate_churn_by_cohort()

        assert result == ChurnMetrics()
        assert not cache.has(CACHE_KEYS.CHURN)

    @pytest.mark.asyncio
    async def test_predict_mrr_uses_actual_conversion_rate(self):
        repository = MagicMock()
        repository.count_trial_users.return_value = {'trials': 4, 'premium': 2}
        revenuecat = MagicMock()
        revenuecat.get_current_mrr = AsyncMock(return_value=1000)
        revenuecat.get_subscription_counts = AsyncMock(
            return_value=SubscriptionCounts(active=100, trials=10, churned_7d=1)
        )
        calculator = MetricsCalculator(repository=repository, revenuecat=revenuecat, cache=AnalyticsCache())

        result = await calculator.predict_mrr()

        assert result.predicted_30_day == 1160
        assert result.confidence == 0.63

    def test_actual_conversion_rate_without_trials(self):
        repository = MagicMock()
        repository.count_trial_users.return_value = {'trials': 0, 'premium': 0}
        calculator = MetricsCalculator(repository=repository, revenuecat=MagicMock(), cache=AnalyticsCache())

        assert calculator.actual_conversion_rate() is None
