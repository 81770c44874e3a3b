import logging
import math
from datetime import datetime
from decimal import Decimal
from typing import Optional, Dict, Any, List

from pydantic import ValidationError as SchemaValidationError
from sqlalchemy import update, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from instructors.models.models import Instructor
from revenue.exceptions import (
    ValidationError, RecordNotFoundError, DuplicateRecordError, PayoutStateError
)
from revenue.models.models import (
    InstructorRevenue, RevenueHistory, RevenueBonus,
    SubscriptionTier, RevenueSource, ContentType, BonusType, PayoutStatus,
    TIER_SHARE_PERCENTAGES,
)
from revenue.models.schemas import MetricsUpdate
from revenue.share import record_monthly_share, round_half_up

logger = logging.getLogger(__name__)

# Breakdown accumulator credited by each revenue source
SOURCE_ACCUMULATORS = {
    RevenueSource.subscription: InstructorRevenue.from_subscriptions,
    RevenueSource.direct_sale: InstructorRevenue.from_direct_sales,
    RevenueSource.live_session: InstructorRevenue.from_live_sessions,
    RevenueSource.bonus: InstructorRevenue.bonuses_total,
}

# Allowed payout transitions: target status -> required current status
PAYOUT_TRANSITIONS = {
    PayoutStatus.processing: PayoutStatus.pending,
    PayoutStatus.completed: PayoutStatus.processing,
    PayoutStatus.failed: PayoutStatus.processing,
}


def _coerce_enum(enum_cls, value, label):
    try:
        return enum_cls(value)
    except ValueError:
        allowed = [e.value for e in enum_cls]
        raise ValidationError(f"Invalid {label} '{value}'. Must be one of {allowed}")


def _validate_amount(amount) -> float:
    if isinstance(amount, bool) or not isinstance(amount, (int, float, Decimal)):
        raise ValidationError(f"Amount must be a number, got {amount!r}")
    try:
        finite = math.isfinite(amount)
    except ValueError:
        # Signalling NaN decimals refuse float conversion
        finite = False
    if not finite or amount < 0:
        raise ValidationError(f"Amount must be a finite, non-negative number, got {amount}")
    return float(amount)


def _validate_period(month, year):
    if not isinstance(month, int) or not 1 <= month <= 12:
        raise ValidationError(f"Month must be between 1 and 12, got {month!r}")
    if not isinstance(year, int) or year < 2000:
        raise ValidationError(f"Invalid year {year!r}")


class RevenueLedgerService:
    """
    Per-instructor, per-month revenue ledger.

    Accumulators are only ever changed through single UPDATE statements with
    server-side increments, and payout transitions are compare-and-set on the
    status column, so concurrent requests against the same record cannot lose
    updates.
    """

    def __init__(self, db: Session):
        self.db = db

    # Records
    def get_record(self, record_id: int) -> InstructorRevenue:
        # Accumulators are changed by UPDATE statements, possibly from other
        # sessions, so the cached copy is always refreshed from the row
        record = self.db.get(InstructorRevenue, record_id, populate_existing=True)
        if not record:
            raise RecordNotFoundError(f"Revenue record {record_id} not found")
        return record

    def get_monthly_revenue(self, instructor_id: int, month: int, year: int) -> Optional[InstructorRevenue]:
        return (
            self.db.query(InstructorRevenue)
            .filter(InstructorRevenue.instructor_id == instructor_id)
            .filter(InstructorRevenue.month == month)
            .filter(InstructorRevenue.year == year)
            .populate_existing()
            .first()
        )

    def create_monthly_record(self, instructor_id: int, month: int, year: int,
                              subscription_tier=SubscriptionTier.basic) -> InstructorRevenue:
        """Open the ledger for one instructor and month"""
        _validate_period(month, year)
        tier = _coerce_enum(SubscriptionTier, subscription_tier, "subscription tier")
        if not self.db.get(Instructor, instructor_id):
            raise RecordNotFoundError(f"Instructor {instructor_id} not found")

        record = InstructorRevenue(
            instructor_id=instructor_id,
            month=month,
            year=year,
            subscription_tier=tier,
            revenue_share_percentage=TIER_SHARE_PERCENTAGES[tier],
        )
        self.db.add(record)
        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            if self.get_monthly_revenue(instructor_id, month, year):
                raise DuplicateRecordError(
                    f"Revenue record already exists for instructor {instructor_id} in {year}-{month:02d}"
                )
            # Otherwise the instructor foreign key failed
            raise RecordNotFoundError(f"Instructor {instructor_id} not found")

        self.db.refresh(record)
        logger.info(f"Opened revenue record {record.id} for instructor {instructor_id} ({year}-{month:02d}, {tier.value})")
        return record

    def get_or_create_monthly_record(self, instructor_id: int, month: int, year: int,
                                     subscription_tier=SubscriptionTier.basic):
        """Returns (record, created)"""
        record = self.get_monthly_revenue(instructor_id, month, year)
        if record:
            return record, False
        try:
            return self.create_monthly_record(instructor_id, month, year, subscription_tier), True
        except DuplicateRecordError:
            # Another worker opened it between the lookup and the insert
            return self.get_monthly_revenue(instructor_id, month, year), False

    # Accruals
    def add_revenue(self, record_id: int, amount, source, content_id=None, content_type=None,
                    student_id=None, metadata: Optional[Dict[str, Any]] = None) -> InstructorRevenue:
        """Credit a revenue event to its breakdown accumulator and log it"""
        amount = _validate_amount(amount)
        source = _coerce_enum(RevenueSource, source, "revenue source")
        if content_type is not None:
            content_type = _coerce_enum(ContentType, content_type, "content type")

        accumulator = SOURCE_ACCUMULATORS[source]
        try:
            self._update_record(record_id, {
                accumulator: accumulator + amount,
                InstructorRevenue.total_earned: InstructorRevenue.total_earned + amount,
            })
            self.db.add(RevenueHistory(
                revenue_id=record_id,
                amount=amount,
                source=source,
                content_id=None if content_id is None else str(content_id),
                content_type=content_type,
                student_id=None if student_id is None else str(student_id),
                event_metadata=metadata or {},
            ))
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        logger.info(f"Added {amount:.2f} ({source.value}) to revenue record {record_id}")
        return self.get_record(record_id)

    def add_bonus(self, record_id: int, bonus_type, amount, description: Optional[str] = None) -> InstructorRevenue:
        """Log a performance bonus and credit it to the bonus accumulator"""
        amount = _validate_amount(amount)
        bonus_type = _coerce_enum(BonusType, bonus_type, "bonus type")

        increments = {
            InstructorRevenue.bonuses_total: InstructorRevenue.bonuses_total + amount,
            InstructorRevenue.total_earned: InstructorRevenue.total_earned + amount,
        }
        if bonus_type == BonusType.new_content:
            increments[InstructorRevenue.new_content_bonus] = InstructorRevenue.new_content_bonus + amount

        try:
            self._update_record(record_id, increments)
            self.db.add(RevenueBonus(
                revenue_id=record_id,
                bonus_type=bonus_type,
                amount=amount,
                description=description,
            ))
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        logger.info(f"Added {bonus_type.value} bonus of {amount:.2f} to revenue record {record_id}")
        return self.get_record(record_id)

    def _update_record(self, record_id: int, values):
        result = self.db.execute(
            update(InstructorRevenue)
            .where(InstructorRevenue.id == record_id)
            .values(values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise RecordNotFoundError(f"Revenue record {record_id} not found")

    # Tier and metrics
    def update_tier(self, record_id: int, subscription_tier) -> InstructorRevenue:
        """Change the tier; the share percentage is written in the same statement"""
        tier = _coerce_enum(SubscriptionTier, subscription_tier, "subscription tier")
        try:
            self._update_record(record_id, {
                InstructorRevenue.subscription_tier: tier,
                InstructorRevenue.revenue_share_percentage: TIER_SHARE_PERCENTAGES[tier],
            })
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        logger.info(f"Revenue record {record_id} moved to {tier.value} tier ({TIER_SHARE_PERCENTAGES[tier]}%)")
        return self.get_record(record_id)

    def update_metrics(self, record_id: int, **metrics) -> InstructorRevenue:
        unknown = set(metrics) - set(MetricsUpdate.__fields__)
        if unknown:
            raise ValidationError(f"Unknown metrics: {sorted(unknown)}")

        try:
            parsed = MetricsUpdate(**metrics)
        except SchemaValidationError as e:
            raise ValidationError(str(e))

        values = {
            getattr(InstructorRevenue, name): value
            for name, value in parsed.dict(exclude_none=True).items()
        }
        if not values:
            return self.get_record(record_id)

        try:
            self._update_record(record_id, values)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        return self.get_record(record_id)

    def compute_monthly_share(self, record_id: int, total_subscription_revenue) -> float:
        total = _validate_amount(total_subscription_revenue)
        return record_monthly_share(self.get_record(record_id), total)

    # Payout
    def process_payout(self, record_id: int, transfer_reference: str) -> InstructorRevenue:
        """pending -> processing, snapshotting the current total earnings"""
        if not transfer_reference:
            raise ValidationError("A transfer reference is required to process a payout")

        self._transition_payout(record_id, PayoutStatus.processing, {
            InstructorRevenue.payout_amount: (
                InstructorRevenue.from_subscriptions
                + InstructorRevenue.from_direct_sales
                + InstructorRevenue.from_live_sessions
                + InstructorRevenue.bonuses_total
            ),
            InstructorRevenue.payout_transfer_id: transfer_reference,
            InstructorRevenue.payout_date: datetime.utcnow(),
        })
        logger.info(f"Payout for revenue record {record_id} is processing (transfer {transfer_reference})")
        return self.get_record(record_id)

    def complete_payout(self, record_id: int) -> InstructorRevenue:
        self._transition_payout(record_id, PayoutStatus.completed)
        logger.info(f"Payout for revenue record {record_id} completed")
        return self.get_record(record_id)

    def fail_payout(self, record_id: int, reason: str) -> InstructorRevenue:
        self._transition_payout(record_id, PayoutStatus.failed, {
            InstructorRevenue.payout_failure_reason: reason,
        })
        logger.warning(f"Payout for revenue record {record_id} failed: {reason}")
        return self.get_record(record_id)

    def _transition_payout(self, record_id: int, target: PayoutStatus, extra_values=None):
        required = PAYOUT_TRANSITIONS[target]
        values = {InstructorRevenue.payout_status: target}
        values.update(extra_values or {})

        try:
            result = self.db.execute(
                update(InstructorRevenue)
                .where(InstructorRevenue.id == record_id)
                .where(InstructorRevenue.payout_status == required)
                .values(values)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 1:
                self.db.commit()
                return
            self.db.rollback()
        except Exception:
            self.db.rollback()
            raise

        current = self.get_record(record_id).payout_status
        raise PayoutStateError(
            f"Cannot move payout of revenue record {record_id} from {current.value} to {target.value}",
            current_status=current,
        )

    # Reports
    def get_top_performers(self, month: int, year: int, limit: int = 10) -> List[Dict[str, Any]]:
        rows = (
            self.db.query(InstructorRevenue, Instructor)
            .join(Instructor, Instructor.id == InstructorRevenue.instructor_id)
            .filter(InstructorRevenue.month == month)
            .filter(InstructorRevenue.year == year)
            .order_by(InstructorRevenue.total_earned.desc(), InstructorRevenue.id.asc())
            .limit(limit)
            .all()
        )
        return [
            {
                "record_id": record.id,
                "instructor_id": instructor.id,
                "name": instructor.name,
                "email": instructor.email,
                "subscription_tier": record.subscription_tier.value,
                "total_earned": record.total_earned,
            }
            for record, instructor in rows
        ]

    def calculate_total_payouts(self, month: int, year: int) -> Dict[str, Any]:
        total, count, average = (
            self.db.query(
                func.coalesce(func.sum(InstructorRevenue.total_earned), 0.0),
                func.count(InstructorRevenue.id),
                func.coalesce(func.avg(InstructorRevenue.total_earned), 0.0),
            )
            .filter(InstructorRevenue.month == month)
            .filter(InstructorRevenue.year == year)
            .one()
        )
        return {
            "month": month,
            "year": year,
            "total_payouts": round_half_up(total),
            "total_instructors": count,
            "average_payout": round_half_up(average),
        }

    def rollover_monthly_records(self, month: int, year: int) -> int:
        """Open the month's record for every active instructor; returns how many were created"""
        _validate_period(month, year)
        instructors = (
            self.db.query(Instructor)
            .filter(Instructor.is_active == True)  # noqa: E712
            .filter(Instructor.deleted_at.is_(None))
            .order_by(Instructor.id.asc())
            .all()
        )

        created = 0
        for instructor in instructors:
            _, was_created = self.get_or_create_monthly_record(
                instructor.id, month, year, instructor.subscription_tier
            )
            if was_created:
                created += 1

        logger.info(f"Rollover for {year}-{month:02d}: {created} new revenue records for {len(instructors)} active instructors")
        return created
