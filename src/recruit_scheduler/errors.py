"""Error taxonomy shared by the stores, the scheduler and the API layer."""


class SchedulerError(Exception):
    """Base class for errors surfaced to API callers."""

    kind = "SchedulerError"
    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict[str, str]:
        return {"error": self.kind, "message": self.message}


class ValidationError(SchedulerError):
    """A required field is missing or malformed."""

    kind = "ValidationError"
    status_code = 400


class NotFoundError(SchedulerError):
    """An id does not resolve to a stored record."""

    kind = "NotFoundError"
    status_code = 404


class ConflictError(SchedulerError):
    """A state-machine transition was rejected."""

    kind = "ConflictError"
    status_code = 409


class AutomationRunInProgressError(ConflictError):
    """Another automation pass holds the dispatcher lock."""

    kind = "AutomationRunInProgress"


class TransientStoreError(SchedulerError):
    """A store call timed out or lost its connection after all retries."""

    kind = "TransientStoreError"
    status_code = 503


class RuleEvaluationError(SchedulerError):
    """A single automation rule category failed."""

    kind = "RuleEvaluationError"
    status_code = 500

    def __init__(self, category: str, message: str) -> None:
        super().__init__(f"{category}: {message}")
        self.category = category
