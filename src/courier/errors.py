"""Courier errors.

Validation errors are raised before any state is touched. Persistence and
delivery errors are raised by collaborators and logged by the managers.
"""


class SchedulingError(ValueError):
    """Scheduling operation error with stable error code."""

    code = "scheduling_error"

    def __init__(self, message: str) -> None:
        super().__init__(message)


class DuplicateNameError(SchedulingError):
    code = "duplicate_name"


class NotFoundError(SchedulingError):
    code = "not_found"


class InvalidScheduleError(SchedulingError):
    code = "invalid_schedule"


class InvalidPositionError(SchedulingError):
    code = "invalid_position"


class InvalidDurationError(SchedulingError):
    code = "invalid_duration"


class AmbiguousRecipientError(SchedulingError):
    code = "ambiguous_recipient"


class PersistenceError(SchedulingError):
    """Key/value write or read failed."""

    code = "persistence_failure"


class DeliveryError(SchedulingError):
    """The destination rejected a post."""

    code = "delivery_failure"


class InvalidNameError(SchedulingError):
    code = "invalid_name"
