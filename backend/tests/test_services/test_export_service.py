"""
Unit tests for the analytics CSV / JSON export
"""
import json
from datetime import date

from product_report.domain.analytics import (
    BusinessAnalyticsResponse,
    ChurnMetrics,
    CohortChurn,
    DailyRevenue,
    ExperimentResults,
    ExperimentStatus,
    ExperimentVariant,
    MRRPrediction,
    ReferralMetrics,
    ReferralSource,
    RevenueMetrics,
    TrialMetrics,
    Trend,
)
from product_report.services.export_service import export_filename, to_csv, to_json


def full_response() -> BusinessAnalyticsResponse:
    return BusinessAnalyticsResponse(
        revenue=RevenueMetrics(
            daily=12.5,
            weekly=80,
            daily_change=4.2,
            weekly_change=0,
            daily_history=[DailyRevenue(date="2026-10-17", amount=12.5)],
            active_subscribers=40,
        ),
        trials=TrialMetrics(started=10, active=8, converted=2, conversion_rate=0.2),
        experiments=[
            ExperimentResults(
                name="paywall_v2",
                status=ExperimentStatus.RUNNING,
                variants=[
                    ExperimentVariant(name="control", conversion_rate=0.1, sample_size=100),
                    ExperimentVariant(name="test", conversion_rate=0.1234, sample_size=90, is_winning=True),
                ],
            )
        ],
        churn=ChurnMetrics(overall=0.25, by_cohort=[
            CohortChurn(cohort_month="2026-09", total_users=4, churned=1, churn_rate=0.25, retained=3)
        ]),
        referrals=ReferralMetrics(
            total_referrals=3,
            active_referrals=2,
            pending_referrals=1,
            commission_paid=10,
            commission_pending=2.5,
            by_source=[ReferralSource(source="web", count=3, conversions=2, conversion_rate=0.667)],
        ),
        predicted_mrr=MRRPrediction(
            current=1000, predicted_30_day=1160, predicted_90_day=1561,
            confidence=0.63, trend=Trend.UP, growth_rate=0.16,
        ),
        last_updated="2026-10-18T00:00:00Z",
    )


class TestExportFilename:

    def test_dated_filename(self):
        assert export_filename("csv", today=date(2026, 10, 18)) == "analytics-export-2026-10-18.csv"


class TestCsv:

    def test_sections_in_order(self):
        csv_text = to_csv(full_response(), generated_at="2026-10-18T00:00:00Z")
        titles = [line for line in csv_text.splitlines() if line.startswith("===")]

        assert csv_text.splitlines()[:2] == ["Business Analytics Export", "Generated: 2026-10-18T00:00:00Z"]
        assert titles == [
            "=== REVENUE METRICS ===",
            "=== DAILY REVENUE HISTORY ===",
            "=== TRIAL METRICS ===",
            "=== CHURN BY COHORT ===",
            "=== MRR PREDICTION ===",
            "=== REFERRAL METRICS ===",
            "=== REFERRAL BY SOURCE ===",
            "=== EXPERIMENTS ===",
        ]

    def test_value_formatting(self):
        lines = to_csv(full_response()).splitlines()

        assert "Daily Revenue,$12.50" in lines
        assert "Daily Change,4.2%" in lines
        assert "Weekly Change,0%" in lines
        assert "Conversion Rate,20.0%" in lines
        assert "2026-09,4,1,25.0%,3" in lines
        assert "Current MRR,$1000" in lines
        assert "Confidence,63%" in lines
        assert "Trend,up" in lines
        assert "Commission Pending,$2.50" in lines
        assert "web,3,2,66.7%" in lines
        assert "paywall_v2,running,test,12.34%,90,Yes" in lines
        assert "paywall_v2,running,control,10.00%,100,No" in lines

    def test_missing_sources_leave_header_only_sections(self):
        empty = BusinessAnalyticsResponse(last_updated="2026-10-18T00:00:00Z")
        lines = to_csv(empty, generated_at="x").splitlines()

        revenue_index = lines.index("=== REVENUE METRICS ===")
        assert lines[revenue_index + 1] == "Metric,Value"
        assert lines[revenue_index + 2] == ""
        assert lines[-1] == "Experiment,Status,Variant,Conversion Rate,Sample Size,Winning"


class TestJson:

    def test_pretty_printed_camel_case(self):
        text = to_json(full_response())

        assert text.startswith("{\n  ")
        assert json.loads(text)["predictedMRR"]["predicted90Day"] == 1561
