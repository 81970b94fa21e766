"""
Metrics Calculator - internal business metrics from CMS tables

- Churn by cohort (device fingerprints)
- Referral attribution (referrals, referral payouts)
- MRR prediction (RevenueCat figures + trial conversion from users)

Each result is cached with the internal TTL. Failures are logged and yield
the zero value so the dashboard still renders.
"""
import logging
import math
from collections import OrderedDict
from datetime import datetime, timezone
from typing import Dict, List, Optional

from product_report.connectors.revenuecat_connector import RevenueCatConnector
from product_report.core.cache import CACHE_KEYS, CACHE_TTL, AnalyticsCache, analytics_cache
from product_report.domain.analytics import (
    ChurnMetrics,
    CohortChurn,
    MRRPrediction,
    ReferralMetrics,
    ReferralSource,
    TopReferrer,
    Trend,
)
from product_report.repositories.analytics_repository import AnalyticsRepository

logger = logging.getLogger(__name__)

CHURNED_STATUSES = {'cancelled', 'expired', 'churned'}
MAX_COHORTS = 6
TOP_REFERRERS = 5
DEFAULT_CONVERSION_RATE = 0.3
TREND_THRESHOLD = 0.02


def round_half_up(value: float, digits: int = 0) -> float:
    """Round with halves going up (2.5 -> 3), unlike round()'s banker's rounding"""
    factor = 10 ** digits
    rounded = math.floor(value * factor + 0.5) / factor
    return int(rounded) if digits == 0 else rounded


def cohort_month(value) -> Optional[str]:
    """YYYY-MM (UTC) of a timestamp given as datetime or ISO string"""
    if value is None:
        return None
    if isinstance(value, str):
        value = datetime.fromisoformat(value.replace('Z', '+00:00'))
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc)
    return value.strftime('%Y-%m')


def churn_from_fingerprints(fingerprints: List[Dict]) -> ChurnMetrics:
    """Group fingerprints by first-seen month and compute churn per cohort"""
    cohorts: Dict[str, Dict[str, int]] = {}

    for fp in fingerprints:
        month = cohort_month(fp.get('first_seen') or fp.get('created_at'))
        if not month:
            continue

        cohort = cohorts.setdefault(month, {'total': 0, 'churned': 0})
        cohort['total'] += 1
        if fp.get('subscription_status') in CHURNED_STATUSES:
            cohort['churned'] += 1

    by_cohort = [
        CohortChurn(
            cohort_month=month,
            total_users=stats['total'],
            churned=stats['churned'],
            churn_rate=round_half_up(stats['churned'] / stats['total'], 3) if stats['total'] else 0,
            retained=stats['total'] - stats['churned'],
        )
        for month, stats in sorted(cohorts.items(), reverse=True)[:MAX_COHORTS]
    ]

    total_users = sum(c.total_users for c in by_cohort)
    total_churned = sum(c.churned for c in by_cohort)
    overall = total_churned / total_users if total_users else 0

    return ChurnMetrics(overall=round_half_up(overall, 3), by_cohort=by_cohort)


def attribution_from_referrals(referrals: List[Dict], payouts: List[Dict]) -> ReferralMetrics:
    """Totals by status and source, top referrers, commission paid vs pending"""
    active_total = 0
    pending_total = 0
    sources: Dict[str, Dict[str, int]] = OrderedDict()
    referrers: Dict[str, Dict] = OrderedDict()

    for ref in referrals:
        status = ref.get('status')
        source = ref.get('source') or 'mobile'
        referrer_id = ref.get('referrer_id')
        is_active = status == 'active'

        if is_active:
            active_total += 1
        elif status == 'pending':
            pending_total += 1

        source_stats = sources.setdefault(source, {'count': 0, 'conversions': 0})
        source_stats['count'] += 1
        if is_active:
            source_stats['conversions'] += 1

        if referrer_id:
            referrer = referrers.setdefault(str(referrer_id), {
                'code': ref.get('referral_code') or '',
                'total': 0,
                'active': 0,
                'commission': 0.0,
            })
            referrer['total'] += 1
            if is_active:
                referrer['active'] += 1
            referrer['commission'] += float(ref.get('total_commission_paid') or 0)

    by_source = [
        ReferralSource(
            source=source,
            count=stats['count'],
            conversions=stats['conversions'],
            conversion_rate=round_half_up(stats['conversions'] / stats['count'], 3) if stats['count'] else 0,
        )
        for source, stats in sources.items()
    ]

    top_referrers = sorted(
        (
            TopReferrer(
                referrer_id=referrer_id,
                referral_code=stats['code'],
                total_referrals=stats['total'],
                active_referrals=stats['active'],
                total_commission=stats['commission'],
            )
            for referrer_id, stats in referrers.items()
        ),
        key=lambda r: r.active_referrals,
        reverse=True,
    )[:TOP_REFERRERS]

    commission_paid = 0.0
    commission_pending = 0.0
    for payout in payouts:
        amount = float(payout.get('amount') or 0)
        if payout.get('status') == 'paid':
            commission_paid += amount
        elif payout.get('status') in ('pending', 'processing'):
            commission_pending += amount

    return ReferralMetrics(
        total_referrals=len(referrals),
        active_referrals=active_total,
        pending_referrals=pending_total,
        by_source=by_source,
        commission_pending=commission_pending,
        commission_paid=commission_paid,
        top_referrers=top_referrers,
    )


def project_mrr(
    current_mrr: float,
    active: int,
    trials: int,
    churned_7d: int,
    conversion_rate: Optional[float]
) -> MRRPrediction:
    """
    Project MRR 30 and 90 days out from weekly trial conversions and churn.

    conversion_rate None means no trial history; the default rate is used
    and confidence starts lower.
    """
    has_actual_data = conversion_rate is not None
    rate = conversion_rate if has_actual_data else DEFAULT_CONVERSION_RATE

    monthly_growth = (trials * rate * 4) / max(active, 1)
    monthly_churn = (churned_7d * 4) / max(active, 1)
    net_growth = monthly_growth - monthly_churn

    if net_growth > TREND_THRESHOLD:
        trend = Trend.UP
    elif net_growth < -TREND_THRESHOLD:
        trend = Trend.DOWN
    else:
        trend = Trend.STABLE

    base_confidence = 0.6 if has_actual_data else 0.4
    confidence = min(0.95, base_confidence + (active / 1000) * 0.3)

    return MRRPrediction(
        current=round_half_up(current_mrr),
        predicted_30_day=round_half_up(current_mrr * (1 + net_growth)),
        predicted_90_day=round_half_up(current_mrr * (1 + net_growth) ** 3),
        confidence=round_half_up(confidence, 2),
        trend=trend,
        growth_rate=round_half_up(net_growth, 3),
    )


class MetricsCalculator:
    """Internal metrics, each cached for CACHE_TTL.INTERNAL"""

    def __init__(
        self,
        repository: AnalyticsRepository = None,
        revenuecat: RevenueCatConnector = None,
        cache: AnalyticsCache = None
    ):
        self.repository = repository or AnalyticsRepository()
        self.revenuecat = revenuecat or RevenueCatConnector()
        self.cache = cache or analytics_cache

    async def calculate_churn_by_cohort(self) -> ChurnMetrics:
        cached = self.cache.get(CACHE_KEYS.CHURN)
        if cached is not None:
            return cached

        try:
            result = churn_from_fingerprints(self.repository.find_device_fingerprints())
        except Exception as e:
            logger.error(f"MetricsCalculator: error calculating churn: {e}")
            return ChurnMetrics()

        self.cache.set(CACHE_KEYS.CHURN, result, CACHE_TTL.INTERNAL)
        return result

    async def calculate_referral_attribution(self) -> ReferralMetrics:
        cached = self.cache.get(CACHE_KEYS.REFERRALS)
        if cached is not None:
            return cached

        try:
            result = attribution_from_referrals(
                self.repository.find_referrals(),
                self.repository.find_referral_payouts(),
            )
        except Exception as e:
            logger.error(f"MetricsCalculator: error calculating referrals: {e}")
            return ReferralMetrics()

        self.cache.set(CACHE_KEYS.REFERRALS, result, CACHE_TTL.INTERNAL)
        return result

    def actual_conversion_rate(self) -> Optional[float]:
        """Share of users with a trial start who are premium; None without data"""
        try:
            counts = self.repository.count_trial_users()
        except Exception as e:
            logger.error(f"MetricsCalculator: error calculating conversion rate: {e}")
            return None

        if counts['trials'] == 0:
            return None

        rate = counts['premium'] / counts['trials']
        logger.info(
            f"MetricsCalculator: actual conversion rate {rate * 100:.1f}% "
            f"({counts['premium']}/{counts['trials']})"
        )
        return rate

    async def predict_mrr(self) -> MRRPrediction:
        cached = self.cache.get(CACHE_KEYS.MRR)
        if cached is not None:
            return cached

        try:
            current_mrr = await self.revenuecat.get_current_mrr()
            counts = await self.revenuecat.get_subscription_counts()
            result = project_mrr(
                current_mrr=current_mrr,
                active=counts.active,
                trials=counts.trials,
                churned_7d=counts.churned_7d,
                conversion_rate=self.actual_conversion_rate(),
            )
        except Exception as e:
            logger.error(f"MetricsCalculator: error predicting MRR: {e}")
            return MRRPrediction()

        self.cache.set(CACHE_KEYS.MRR, result, CACHE_TTL.INTERNAL)
        return result
