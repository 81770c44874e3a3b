"""
Pure revenue-share arithmetic.

Everything here is computed on read from a record's current values, so the
tier percentage and performance score can never drift from the fields they
are derived from.
"""

from decimal import Decimal, ROUND_HALF_UP

from revenue.models.models import SubscriptionTier, TIER_SHARE_PERCENTAGES

# Part of total subscription revenue that goes into the content pool
CONTENT_POOL_RATE = Decimal("0.6")

PERFORMANCE_WEIGHTS = {
    "engagement": Decimal("0.4"),
    "retention": Decimal("0.3"),
    "quality": Decimal("0.2"),
    "new_content": Decimal("0.1"),
}

_CENT = Decimal("0.01")


def tier_share_percentage(tier) -> int:
    """Revenue share percentage for a subscription tier (70/80/85)"""
    try:
        return TIER_SHARE_PERCENTAGES[SubscriptionTier(tier)]
    except ValueError:
        raise ValueError(f"Unknown subscription tier: {tier}")


def _as_ratio(value) -> Decimal:
    # Metrics are percentages; anything outside 0-100 is clamped
    ratio = Decimal(str(value or 0)) / 100
    return min(max(ratio, Decimal(0)), Decimal(1))


def performance_score(engagement, retention_rate, quality_score, new_content_bonus) -> float:
    """Weighted performance score in the 0-100 range"""
    score = (
        _as_ratio(engagement) * PERFORMANCE_WEIGHTS["engagement"]
        + _as_ratio(retention_rate) * PERFORMANCE_WEIGHTS["retention"]
        + _as_ratio(quality_score) * PERFORMANCE_WEIGHTS["quality"]
        + (1 if (new_content_bonus or 0) > 0 else 0) * PERFORMANCE_WEIGHTS["new_content"]
    ) * 100
    return float(score)


def round_half_up(value) -> float:
    return float(Decimal(str(value)).quantize(_CENT, rounding=ROUND_HALF_UP))


def compute_monthly_share(total_subscription_revenue, engagement, retention_rate,
                          quality_score, new_content_bonus, tier) -> float:
    """
    Instructor's share of the month's subscription revenue.

    base share = total * 0.6, scaled by the performance score and then by the
    tier's share percentage, rounded half-up to cents.
    """
    base_share = Decimal(str(total_subscription_revenue)) * CONTENT_POOL_RATE
    score = Decimal(str(performance_score(engagement, retention_rate, quality_score, new_content_bonus)))
    instructor_share = base_share * score / 100
    final_share = instructor_share * Decimal(tier_share_percentage(tier)) / 100
    return float(final_share.quantize(_CENT, rounding=ROUND_HALF_UP))


def record_performance_score(record) -> float:
    return performance_score(
        record.total_engagement,
        record.retention_rate,
        record.quality_score,
        record.new_content_bonus,
    )


def record_monthly_share(record, total_subscription_revenue) -> float:
    return compute_monthly_share(
        total_subscription_revenue,
        engagement=record.total_engagement,
        retention_rate=record.retention_rate,
        quality_score=record.quality_score,
        new_content_bonus=record.new_content_bonus,
        tier=record.subscription_tier,
    )
