import logging
from functools import wraps

from flask import Blueprint, request, jsonify
from flask_jwt_extended import jwt_required
from pydantic import ValidationError as SchemaValidationError

from database.db_connector import get_db
from revenue.exceptions import (
    ValidationError, RecordNotFoundError, DuplicateRecordError, PayoutStateError
)
from revenue.models.schemas import (
    MonthlyRecordCreate, RevenueCreate, BonusCreate, TierUpdate, MetricsUpdate,
    MonthlyShareRequest, PayoutCreate, PayoutFailure, InstructorRevenueResponse, PayoutSummary
)
from revenue.services.ledger_service import RevenueLedgerService

logger = logging.getLogger(__name__)

revenue_bp = Blueprint('revenue', __name__)

ERROR_STATUS = {
    ValidationError: 400,
    SchemaValidationError: 400,
    RecordNotFoundError: 404,
    DuplicateRecordError: 409,
    PayoutStateError: 409,
}


def with_ledger(view):
    """Open a session for the request and map ledger errors to responses"""
    @wraps(view)
    def wrapper(*args, **kwargs):
        db = get_db()
        try:
            return view(RevenueLedgerService(db), *args, **kwargs)
        except tuple(ERROR_STATUS) as e:
            status_code = next(code for exc, code in ERROR_STATUS.items() if isinstance(e, exc))
            if isinstance(e, PayoutStateError):
                logger.warning(str(e))
            return jsonify({
                "status": "error",
                "message": str(e)
            }), status_code
        except Exception as e:
            db.rollback()
            logger.error(f"Revenue request failed: {str(e)}")
            return jsonify({
                "status": "error",
                "message": "Internal server error"
            }), 500
        finally:
            db.close()
    return wrapper


def _record_response(record, status_code=200):
    return jsonify({
        "status": "success",
        "data": InstructorRevenueResponse.from_record(record).dict()
    }), status_code


def _period_args():
    month = request.args.get('month', type=int)
    year = request.args.get('year', type=int)
    if month is None or year is None:
        raise ValidationError("month and year query parameters are required")
    return month, year


@revenue_bp.route('/revenue/records', methods=['POST'])
@jwt_required()
@with_ledger
def create_monthly_record(ledger):
    """Open a revenue record for an instructor and month"""
    data = MonthlyRecordCreate(**(request.get_json() or {}))
    record = ledger.create_monthly_record(
        data.instructor_id, data.month, data.year, data.subscription_tier
    )
    return _record_response(record, 201)


@revenue_bp.route('/revenue/instructors/<int:instructor_id>/<int:year>/<int:month>', methods=['GET'])
@jwt_required()
@with_ledger
def get_monthly_revenue(ledger, instructor_id, year, month):
    record = ledger.get_monthly_revenue(instructor_id, month, year)
    if not record:
        raise RecordNotFoundError(f"No revenue record for instructor {instructor_id} in {year}-{month:02d}")
    return _record_response(record)


@revenue_bp.route('/revenue/records/<int:record_id>/revenue', methods=['POST'])
@jwt_required()
@with_ledger
def add_revenue(ledger, record_id):
    data = RevenueCreate(**(request.get_json() or {}))
    record = ledger.add_revenue(
        record_id,
        data.amount,
        data.source,
        content_id=data.content_id,
        content_type=data.content_type,
        student_id=data.student_id,
        metadata=data.metadata,
    )
    return _record_response(record, 201)


@revenue_bp.route('/revenue/records/<int:record_id>/bonuses', methods=['POST'])
@jwt_required()
@with_ledger
def add_bonus(ledger, record_id):
    data = BonusCreate(**(request.get_json() or {}))
    record = ledger.add_bonus(record_id, data.bonus_type, data.amount, data.description)
    return _record_response(record, 201)


@revenue_bp.route('/revenue/records/<int:record_id>/tier', methods=['PUT'])
@jwt_required()
@with_ledger
def update_tier(ledger, record_id):
    data = TierUpdate(**(request.get_json() or {}))
    return _record_response(ledger.update_tier(record_id, data.subscription_tier))


@revenue_bp.route('/revenue/records/<int:record_id>/metrics', methods=['PUT'])
@jwt_required()
@with_ledger
def update_metrics(ledger, record_id):
    data = MetricsUpdate(**(request.get_json() or {}))
    return _record_response(ledger.update_metrics(record_id, **data.dict(exclude_none=True)))


@revenue_bp.route('/revenue/records/<int:record_id>/share', methods=['POST'])
@jwt_required()
@with_ledger
def compute_monthly_share(ledger, record_id):
    """Preview the performance-weighted share of a month's subscription revenue"""
    data = MonthlyShareRequest(**(request.get_json() or {}))
    share = ledger.compute_monthly_share(record_id, data.total_subscription_revenue)
    return jsonify({
        "status": "success",
        "data": {
            "record_id": record_id,
            "total_subscription_revenue": data.total_subscription_revenue,
            "monthly_share": share
        }
    })


@revenue_bp.route('/revenue/records/<int:record_id>/payout', methods=['POST'])
@jwt_required()
@with_ledger
def process_payout(ledger, record_id):
    data = PayoutCreate(**(request.get_json() or {}))
    return _record_response(ledger.process_payout(record_id, data.transfer_reference))


@revenue_bp.route('/revenue/records/<int:record_id>/payout/complete', methods=['POST'])
@jwt_required()
@with_ledger
def complete_payout(ledger, record_id):
    return _record_response(ledger.complete_payout(record_id))


@revenue_bp.route('/revenue/records/<int:record_id>/payout/fail', methods=['POST'])
@jwt_required()
@with_ledger
def fail_payout(ledger, record_id):
    data = PayoutFailure(**(request.get_json() or {}))
    return _record_response(ledger.fail_payout(record_id, data.reason))


@revenue_bp.route('/revenue/top-performers', methods=['GET'])
@jwt_required()
@with_ledger
def get_top_performers(ledger):
    month, year = _period_args()
    limit = min(max(request.args.get('limit', 10, type=int), 1), 100)
    return jsonify({
        "status": "success",
        "data": ledger.get_top_performers(month, year, limit)
    })


@revenue_bp.route('/revenue/payouts/summary', methods=['GET'])
@jwt_required()
@with_ledger
def get_payout_summary(ledger):
    month, year = _period_args()
    summary = PayoutSummary(**ledger.calculate_total_payouts(month, year))
    return jsonify({
        "status": "success",
        "data": summary.dict()
    })
