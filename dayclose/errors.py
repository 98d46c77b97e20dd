"""Failures raised by day lifecycle transitions.

Calculations never raise; only Open, Close and Reopen do. Every class derives
from ``ValueError`` so callers that only care about "the request was refused"
can keep catching that.
"""


class DayOperationError(ValueError):
    pass


class ValidationError(DayOperationError):
    pass


class NotFoundError(DayOperationError):
    pass


class ConflictError(DayOperationError):
    pass


class InvalidStateError(DayOperationError):
    pass


class AdminRequiredError(InvalidStateError):
    pass
