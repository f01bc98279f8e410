"""Error taxonomy for recurring detection and matching."""


class RecurringError(Exception):
    """Base exception for recurring-detection errors."""

    pass


class ValidationError(RecurringError):
    """A required field is missing or malformed. Raised before any write."""

    pass


class NotFoundError(RecurringError):
    """A referenced series, bill or paycheck does not exist for the user."""

    def __init__(self, resource_name: str, resource_id: object | None = None) -> None:
        self.resource_name = resource_name
        self.resource_id = resource_id
        super().__init__(f"{resource_name} not found")


class UnauthorizedError(RecurringError):
    """No resolvable user identity."""

    pass


class InfrastructureError(RecurringError):
    """The store is unavailable or an injected dependency is malformed.

    Fatal for the whole invocation; never swallowed by per-item error handling.
    """

    pass
