from datetime import datetime

from revenue.models.models import InstructorRevenue, SubscriptionTier
from tasks_revenue import current_period, rollover_monthly_records


def test_current_period():
    assert current_period(datetime(2025, 12, 31, 23, 59)) == (12, 2025)
    assert current_period(datetime(2026, 1, 1)) == (1, 2026)


def test_rollover_task_opens_records(db, make_instructor):
    make_instructor(tier=SubscriptionTier.pro)
    make_instructor()
    make_instructor(is_active=False)

    result = rollover_monthly_records.apply(kwargs={"month": 5, "year": 2025}).get()

    assert result == {"month": 5, "year": 2025, "created": 2}
    percentages = sorted(
        r.revenue_share_percentage
        for r in db.query(InstructorRevenue).filter_by(month=5, year=2025)
    )
    assert percentages == [70, 80]

    again = rollover_monthly_records.apply(kwargs={"month": 5, "year": 2025}).get()
    assert again["created"] == 0
