"""
Analytics Export Service

Renders a BusinessAnalyticsResponse as a downloadable CSV report or
pretty-printed JSON.
"""
import csv
import io
import json
from datetime import date, datetime, timezone
from typing import List, Optional

from product_report.domain.analytics import BusinessAnalyticsResponse


def _money(value: float) -> str:
    return f"${value:.2f}"


def _percent(rate: float, digits: int = 1) -> str:
    return f"{rate * 100:.{digits}f}%"


def _number(value: float) -> str:
    """Render whole floats without a trailing .0"""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def export_filename(extension: str, today: Optional[date] = None) -> str:
    today = today or datetime.now(timezone.utc).date()
    return f"analytics-export-{today.isoformat()}.{extension}"


def to_json(data: BusinessAnalyticsResponse) -> str:
    return json.dumps(data.to_json_dict(), indent=2)


def to_csv(data: BusinessAnalyticsResponse, generated_at: Optional[str] = None) -> str:
    """
    Sectioned CSV report

    Sections, in order: revenue metrics, daily revenue history, trial
    metrics, churn by cohort, MRR prediction, referral metrics, referral
    sources, experiments. A missing source leaves its section with only the
    header row.
    """
    generated_at = generated_at or datetime.now(timezone.utc).isoformat().replace('+00:00', 'Z')

    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator='\n')

    def section(title: str, header: List[str], rows: List[List], last: bool = False):
        writer.writerow([f"=== {title} ==="])
        writer.writerow(header)
        writer.writerows(rows)
        if not last:
            writer.writerow([])

    writer.writerow(["Business Analytics Export"])
    writer.writerow([f"Generated: {generated_at}"])
    writer.writerow([])

    revenue = data.revenue
    section("REVENUE METRICS", ["Metric", "Value"], [
        ["Daily Revenue", _money(revenue.daily)],
        ["Weekly Revenue", _money(revenue.weekly)],
        ["Daily Change", f"{_number(revenue.daily_change)}%"],
        ["Weekly Change", f"{_number(revenue.weekly_change)}%"],
        ["Active Subscribers", revenue.active_subscribers],
    ] if revenue else [])

    section("DAILY REVENUE HISTORY", ["Date", "Amount"], [
        [day.date, _money(day.amount)] for day in revenue.daily_history
    ] if revenue else [])

    trials = data.trials
    section("TRIAL METRICS", ["Metric", "Value"], [
        ["Active Trials", trials.active],
        ["Trials Started (Week)", trials.started],
        ["Converted", trials.converted],
        ["Conversion Rate", _percent(trials.conversion_rate)],
    ] if trials else [])

    section("CHURN BY COHORT", ["Cohort Month", "Total Users", "Churned", "Churn Rate", "Retained"], [
        [c.cohort_month, c.total_users, c.churned, _percent(c.churn_rate), c.retained]
        for c in data.churn.by_cohort
    ] if data.churn else [])

    mrr = data.predicted_mrr
    section("MRR PREDICTION", ["Metric", "Value"], [
        ["Current MRR", f"${_number(mrr.current)}"],
        ["30-Day Prediction", f"${_number(mrr.predicted_30_day)}"],
        ["90-Day Prediction", f"${_number(mrr.predicted_90_day)}"],
        ["Growth Rate", _percent(mrr.growth_rate)],
        ["Confidence", _percent(mrr.confidence, 0)],
        ["Trend", mrr.trend.value],
    ] if mrr else [])

    referrals = data.referrals
    section("REFERRAL METRICS", ["Metric", "Value"], [
        ["Total Referrals", referrals.total_referrals],
        ["Active Referrals", referrals.active_referrals],
        ["Pending Referrals", referrals.pending_referrals],
        ["Commission Paid", _money(referrals.commission_paid)],
        ["Commission Pending", _money(referrals.commission_pending)],
    ] if referrals else [])

    section("REFERRAL BY SOURCE", ["Source", "Count", "Conversions", "Conversion Rate"], [
        [s.source, s.count, s.conversions, _percent(s.conversion_rate)]
        for s in referrals.by_source
    ] if referrals else [])

    section(
        "EXPERIMENTS",
        ["Experiment", "Status", "Variant", "Conversion Rate", "Sample Size", "Winning"],
        [
            [
                experiment.name,
                experiment.status.value,
                variant.name,
                _percent(variant.conversion_rate, 2),
                variant.sample_size,
                "Yes" if variant.is_winning else "No",
            ]
            for experiment in data.experiments
            for variant in experiment.variants
        ],
        last=True,
    )

    return buffer.getvalue()
