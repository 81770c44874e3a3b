from pydantic import BaseModel, Field, validator
from typing import Optional, List, Dict, Any
from datetime import datetime

from revenue.models.models import (
    SubscriptionTier, RevenueSource, ContentType, BonusType, PayoutStatus
)
from revenue.share import record_performance_score


# Request schemas
class MonthlyRecordCreate(BaseModel):
    instructor_id: int
    month: int = Field(..., ge=1, le=12)
    year: int = Field(..., ge=2000, le=9999)
    subscription_tier: SubscriptionTier = SubscriptionTier.basic


class RevenueCreate(BaseModel):
    amount: float = Field(..., ge=0)
    source: RevenueSource
    content_id: Optional[str] = None
    content_type: Optional[ContentType] = None
    student_id: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)

    @validator('content_id', 'student_id', pre=True)
    def reference_as_string(cls, v):
        return None if v is None else str(v)


class BonusCreate(BaseModel):
    bonus_type: BonusType = Field(..., alias='type')
    amount: float = Field(..., ge=0)
    description: Optional[str] = None

    class Config:
        populate_by_name = True


class TierUpdate(BaseModel):
    subscription_tier: SubscriptionTier


class MetricsUpdate(BaseModel):
    total_views: Optional[int] = Field(None, ge=0)
    total_engagement: Optional[float] = Field(None, ge=0)
    quality_score: Optional[float] = Field(None, ge=0, le=100)
    total_courses: Optional[int] = Field(None, ge=0)
    total_tutorials: Optional[int] = Field(None, ge=0)
    total_students: Optional[int] = Field(None, ge=0)
    average_rating: Optional[float] = Field(None, ge=0, le=5)
    completion_rate: Optional[float] = Field(None, ge=0, le=100)
    retention_rate: Optional[float] = Field(None, ge=0, le=100)

    class Config:
        extra = 'forbid'


class MonthlyShareRequest(BaseModel):
    total_subscription_revenue: float = Field(..., ge=0)


class PayoutCreate(BaseModel):
    transfer_reference: str = Field(..., min_length=1, max_length=255)


class PayoutFailure(BaseModel):
    reason: str = Field(..., min_length=1)


# Response schemas
class RevenueHistoryInDB(BaseModel):
    id: int
    amount: float
    source: RevenueSource
    content_id: Optional[str] = None
    content_type: Optional[ContentType] = None
    student_id: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = Field(None, alias='event_metadata')
    date: datetime

    class Config:
        from_attributes = True
        use_enum_values = True


class RevenueBonusInDB(BaseModel):
    id: int
    bonus_type: BonusType
    amount: float
    description: Optional[str] = None
    date: datetime

    class Config:
        from_attributes = True
        use_enum_values = True


class RevenueBreakdown(BaseModel):
    from_subscriptions: float = 0.0
    from_direct_sales: float = 0.0
    from_live_sessions: float = 0.0
    bonuses: float = 0.0


class MonthlyRevenue(BaseModel):
    total_earned: float = 0.0
    total_views: int = 0
    total_engagement: float = 0.0
    quality_score: float = 0.0
    new_content_bonus: float = 0.0
    month: int
    year: int


class ContentMetrics(BaseModel):
    total_courses: int = 0
    total_tutorials: int = 0
    total_students: int = 0
    average_rating: float = 0.0
    completion_rate: float = 0.0
    retention_rate: float = 0.0


class PayoutInfo(BaseModel):
    status: PayoutStatus
    amount: float = 0.0
    transfer_reference: Optional[str] = None
    payout_date: Optional[datetime] = None
    failure_reason: Optional[str] = None

    class Config:
        use_enum_values = True


class InstructorRevenueResponse(BaseModel):
    id: int
    instructor_id: int
    subscription_tier: SubscriptionTier
    revenue_share_percentage: float
    monthly_revenue: MonthlyRevenue
    content_metrics: ContentMetrics
    revenue_breakdown: RevenueBreakdown
    payout: PayoutInfo
    total_earnings: float
    performance_score: float
    bonuses: List[RevenueBonusInDB] = []
    history: List[RevenueHistoryInDB] = []
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        use_enum_values = True

    @classmethod
    def from_record(cls, record, include_logs=True):
        return cls(
            id=record.id,
            instructor_id=record.instructor_id,
            subscription_tier=record.subscription_tier,
            revenue_share_percentage=record.revenue_share_percentage,
            monthly_revenue=MonthlyRevenue(
                total_earned=record.total_earned,
                total_views=record.total_views,
                total_engagement=record.total_engagement,
                quality_score=record.quality_score,
                new_content_bonus=record.new_content_bonus,
                month=record.month,
                year=record.year,
            ),
            content_metrics=ContentMetrics(
                total_courses=record.total_courses,
                total_tutorials=record.total_tutorials,
                total_students=record.total_students,
                average_rating=record.average_rating,
                completion_rate=record.completion_rate,
                retention_rate=record.retention_rate,
            ),
            revenue_breakdown=RevenueBreakdown(
                from_subscriptions=record.from_subscriptions,
                from_direct_sales=record.from_direct_sales,
                from_live_sessions=record.from_live_sessions,
                bonuses=record.bonuses_total,
            ),
            payout=PayoutInfo(
                status=record.payout_status,
                amount=record.payout_amount,
                transfer_reference=record.payout_transfer_id,
                payout_date=record.payout_date,
                failure_reason=record.payout_failure_reason,
            ),
            total_earnings=record.total_earnings,
            performance_score=record_performance_score(record),
            bonuses=[RevenueBonusInDB.from_orm(b) for b in record.bonuses] if include_logs else [],
            history=[RevenueHistoryInDB.from_orm(h) for h in record.history] if include_logs else [],
            created_at=record.created_at,
            updated_at=record.updated_at,
        )


class PayoutSummary(BaseModel):
    month: int
    year: int
    total_payouts: float
    total_instructors: int
    average_payout: float
