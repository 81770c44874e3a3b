from enum import Enum

from sqlalchemy import (
    Column, Integer, BigInteger, String, Float, DateTime, Text, JSON,
    ForeignKey, UniqueConstraint, Index, func
)
from sqlalchemy.orm import relationship
from sqlalchemy.types import Enum as SQLAlchemyEnum

from database.base import Base


class SubscriptionTier(str, Enum):
    basic = "basic"
    pro = "pro"
    premium = "premium"


class RevenueSource(str, Enum):
    subscription = "subscription"
    direct_sale = "direct_sale"
    live_session = "live_session"
    bonus = "bonus"


class ContentType(str, Enum):
    course = "course"
    tutorial = "tutorial"
    live_session = "live_session"


class BonusType(str, Enum):
    quality = "quality"
    engagement = "engagement"
    new_content = "new_content"
    student_retention = "student_retention"
    top_performer = "top_performer"


class PayoutStatus(str, Enum):
    pending = "pending"
    processing = "processing"
    completed = "completed"
    failed = "failed"


# Share of earnings kept by the instructor, by tier
TIER_SHARE_PERCENTAGES = {
    SubscriptionTier.basic: 70,
    SubscriptionTier.pro: 80,
    SubscriptionTier.premium: 85,
}


class InstructorRevenue(Base):
    """Revenue ledger for one instructor in one calendar month"""
    __tablename__ = "instructor_revenues"
    __table_args__ = (
        UniqueConstraint("instructor_id", "month", "year", name="uq_instructor_revenue_period"),
        Index("idx_instructor_revenue_payout", "payout_status", "payout_date"),
        Index("idx_instructor_revenue_tier", "subscription_tier"),
    )

    id = Column(BigInteger().with_variant(Integer, "sqlite"), primary_key=True, index=True)
    instructor_id = Column(BigInteger().with_variant(Integer, "sqlite"), ForeignKey("instructors.id"), nullable=False, index=True)
    month = Column(Integer, nullable=False)
    year = Column(Integer, nullable=False)

    subscription_tier = Column(SQLAlchemyEnum(SubscriptionTier), nullable=False, default=SubscriptionTier.basic)
    revenue_share_percentage = Column(Float, nullable=False, default=TIER_SHARE_PERCENTAGES[SubscriptionTier.basic])

    # Monthly aggregate
    total_earned = Column(Float, nullable=False, default=0.0)
    total_views = Column(Integer, nullable=False, default=0)
    total_engagement = Column(Float, nullable=False, default=0.0)
    quality_score = Column(Float, nullable=False, default=0.0)  # 0-100
    new_content_bonus = Column(Float, nullable=False, default=0.0)

    # Content metrics
    total_courses = Column(Integer, nullable=False, default=0)
    total_tutorials = Column(Integer, nullable=False, default=0)
    total_students = Column(Integer, nullable=False, default=0)
    average_rating = Column(Float, nullable=False, default=0.0)
    completion_rate = Column(Float, nullable=False, default=0.0)
    retention_rate = Column(Float, nullable=False, default=0.0)

    # Revenue breakdown accumulators
    from_subscriptions = Column(Float, nullable=False, default=0.0)
    from_direct_sales = Column(Float, nullable=False, default=0.0)
    from_live_sessions = Column(Float, nullable=False, default=0.0)
    bonuses_total = Column(Float, nullable=False, default=0.0)

    # Payout
    payout_status = Column(SQLAlchemyEnum(PayoutStatus), nullable=False, default=PayoutStatus.pending)
    payout_amount = Column(Float, nullable=False, default=0.0)
    payout_transfer_id = Column(String(255), nullable=True)
    payout_date = Column(DateTime, nullable=True)
    payout_failure_reason = Column(Text, nullable=True)

    created_at = Column(DateTime, nullable=False, server_default=func.current_timestamp())
    updated_at = Column(DateTime, nullable=False, server_default=func.current_timestamp(), onupdate=func.current_timestamp())

    # Relationships
    instructor = relationship("Instructor", back_populates="revenue_records")
    history = relationship(
        "RevenueHistory",
        back_populates="revenue",
        order_by="RevenueHistory.id",
        cascade="all, delete-orphan",
    )
    bonuses = relationship(
        "RevenueBonus",
        back_populates="revenue",
        order_by="RevenueBonus.id",
        cascade="all, delete-orphan",
    )

    @property
    def total_earnings(self):
        return (
            (self.from_subscriptions or 0.0)
            + (self.from_direct_sales or 0.0)
            + (self.from_live_sessions or 0.0)
            + (self.bonuses_total or 0.0)
        )

    def __repr__(self):
        return (
            f"<InstructorRevenue(id={self.id}, instructor_id={self.instructor_id}, "
            f"period={self.year}-{self.month:02d}, total_earned={self.total_earned})>"
        )


class RevenueHistory(Base):
    """Append-only log of individual revenue events"""
    __tablename__ = "instructor_revenue_history"

    id = Column(BigInteger().with_variant(Integer, "sqlite"), primary_key=True, index=True)
    revenue_id = Column(BigInteger().with_variant(Integer, "sqlite"), ForeignKey("instructor_revenues.id"), nullable=False, index=True)
    amount = Column(Float, nullable=False)
    source = Column(SQLAlchemyEnum(RevenueSource), nullable=False)
    content_id = Column(String(64), nullable=True)
    content_type = Column(SQLAlchemyEnum(ContentType), nullable=True)
    student_id = Column(String(64), nullable=True)
    # "metadata" is reserved on declarative classes
    event_metadata = Column("metadata", JSON, nullable=True)
    date = Column(DateTime, nullable=False, server_default=func.current_timestamp())

    revenue = relationship("InstructorRevenue", back_populates="history")

    def __repr__(self):
        return f"<RevenueHistory(id={self.id}, revenue_id={self.revenue_id}, source={self.source}, amount={self.amount})>"


class RevenueBonus(Base):
    """Append-only log of performance bonuses"""
    __tablename__ = "instructor_revenue_bonuses"

    id = Column(BigInteger().with_variant(Integer, "sqlite"), primary_key=True, index=True)
    revenue_id = Column(BigInteger().with_variant(Integer, "sqlite"), ForeignKey("instructor_revenues.id"), nullable=False, index=True)
    bonus_type = Column(SQLAlchemyEnum(BonusType), nullable=False)
    amount = Column(Float, nullable=False)
    description = Column(Text, nullable=True)
    date = Column(DateTime, nullable=False, server_default=func.current_timestamp())

    revenue = relationship("InstructorRevenue", back_populates="bonuses")

    def __repr__(self):
        return f"<RevenueBonus(id={self.id}, revenue_id={self.revenue_id}, type={self.bonus_type}, amount={self.amount})>"
