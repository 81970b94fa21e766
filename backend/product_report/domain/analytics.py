"""
Business Analytics Domain Models

Shapes of the admin business analytics dashboard payload. Python attributes
are snake_case; the JSON sent to the dashboard is camelCase.
"""
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base model serialized with camelCase aliases"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_json_dict(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json")


class ExperimentStatus(str, Enum):
    RUNNING = "running"
    COMPLETED = "completed"
    PAUSED = "paused"


class Trend(str, Enum):
    UP = "up"
    DOWN = "down"
    STABLE = "stable"


class DailyRevenue(CamelModel):
    date: str = Field(..., description="YYYY-MM-DD")
    amount: float = 0


class RevenueMetrics(CamelModel):
    daily: float = 0
    weekly: float = 0
    daily_change: float = Field(0, description="Percent change vs. previous day")
    weekly_change: float = Field(0, description="Percent change vs. previous week")
    daily_history: List[DailyRevenue] = Field(default_factory=list)
    active_subscribers: int = 0


class DailyTrials(CamelModel):
    date: str
    started: int = 0
    converted: int = 0


class TrialMetrics(CamelModel):
    started: int = 0
    active: int = 0
    converted: int = 0
    conversion_rate: float = 0
    trial_history: List[DailyTrials] = Field(default_factory=list)


class ExperimentVariant(CamelModel):
    name: str
    conversion_rate: float = 0
    statistical_significance: float = Field(0, ge=0, le=1)
    is_winning: bool = False
    sample_size: int = 0


class ExperimentResults(CamelModel):
    name: str
    status: ExperimentStatus
    variants: List[ExperimentVariant] = Field(default_factory=list)


class CohortChurn(CamelModel):
    cohort_month: str = Field(..., description="YYYY-MM")
    total_users: int
    churned: int
    churn_rate: float
    retained: int


class ChurnMetrics(CamelModel):
    overall: float = 0
    by_cohort: List[CohortChurn] = Field(default_factory=list)


class ReferralSource(CamelModel):
    source: str = Field(..., description="mobile, web or link")
    count: int
    conversions: int
    conversion_rate: float


class TopReferrer(CamelModel):
    referrer_id: str
    referral_code: str = ""
    total_referrals: int = 0
    active_referrals: int = 0
    total_commission: float = 0


class ReferralMetrics(CamelModel):
    total_referrals: int = 0
    active_referrals: int = 0
    pending_referrals: int = 0
    by_source: List[ReferralSource] = Field(default_factory=list)
    commission_pending: float = 0
    commission_paid: float = 0
    top_referrers: List[TopReferrer] = Field(default_factory=list)


class MRRPrediction(CamelModel):
    current: float = 0
    predicted_30_day: float = Field(0, alias="predicted30Day")
    predicted_90_day: float = Field(0, alias="predicted90Day")
    confidence: float = Field(0, ge=0, le=1)
    trend: Trend = Trend.STABLE
    growth_rate: float = 0


class SubscriptionCounts(CamelModel):
    active: int = 0
    trials: int = 0
    churned_24h: int = Field(0, alias="churned24h")
    churned_7d: int = Field(0, alias="churned7d")


class FunnelConversions(CamelModel):
    paywall_shown: int = 0
    paywall_converted: int = 0
    conversion_rate: float = 0


class DataSourceError(CamelModel):
    source: str = Field(..., description="revenuecat, mixpanel, statsig or internal")
    message: str
    timestamp: str


class BusinessAnalyticsResponse(CamelModel):
    revenue: Optional[RevenueMetrics] = None
    trials: Optional[TrialMetrics] = None
    experiments: List[ExperimentResults] = Field(default_factory=list)
    churn: Optional[ChurnMetrics] = None
    referrals: Optional[ReferralMetrics] = None
    predicted_mrr: Optional[MRRPrediction] = Field(None, alias="predictedMRR")
    last_updated: str
    cache_hit: bool = False
    errors: List[DataSourceError] = Field(default_factory=list)
