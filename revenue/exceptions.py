class RevenueError(Exception):
    """Base class for revenue ledger errors"""


class ValidationError(RevenueError):
    """Invalid amount, source, bonus type or metric; nothing was written"""


class RecordNotFoundError(RevenueError):
    pass


class DuplicateRecordError(RevenueError):
    """A ledger already exists for this instructor and month"""


class PayoutStateError(RevenueError):
    """Payout transition not allowed from the record's current status"""

    def __init__(self, message, current_status=None):
        super().__init__(message)
        self.current_status = current_status
