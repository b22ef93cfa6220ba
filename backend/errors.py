"""Error taxonomy for the priorities backend.

Storage failures are not wrapped: sqlite3.Error propagates to the caller,
which decides whether to retry.
"""


class PrioritiesError(Exception):
    """Base class for domain errors."""


class InvalidScheduleError(PrioritiesError, ValueError):
    """A cron expression could not be parsed."""

    def __init__(self, schedule: str, reason: str = ""):
        self.schedule = schedule
        self.reason = reason
        message = f"Invalid cron expression: {schedule!r}"
        if reason:
            message += f" ({reason})"
        super().__init__(message)


class NotFoundError(PrioritiesError):
    """Unknown template, priority or day record."""


class InvalidOperationError(PrioritiesError):
    """The operation is not allowed in the entity's current state."""


class CapacityExhaustedError(PrioritiesError):
    """No day with a free priority slot inside the search horizon."""


class RelocationCancelledError(PrioritiesError):
    """The forward scan was abandoned before anything was written."""
