"""
Error taxonomy for the service cart engine.

Every error raised by the engine derives from CartError so callers
(the API layer, the refresher) can handle the family in one place.
"""
from typing import Optional


class CartError(Exception):
    """Base class for cart engine errors."""


class ValidationError(CartError):
    """A required field is missing or invalid. ``field`` names it."""

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field


class UnknownServiceError(ValidationError):
    """A service id does not exist in the active catalog."""

    def __init__(self, service_id: str):
        super().__init__(f"Service '{service_id}' is not in the catalog", field="serviceId")
        self.service_id = service_id


class NoEligibleProviderError(CartError):
    """No provider can be notified for the selected services."""

    def __init__(self, message: str = "No service providers available for the selected services. "
                                      "Please try different services."):
        super().__init__(message)


class FeedFetchError(CartError):
    """Fetching the offerings or roster feed failed."""


class PersistenceCorruptionError(CartError):
    """The stored cart record could not be parsed."""


class SubmissionError(CartError):
    """The submission collaborator rejected the request or raised."""


class SubmissionInProgressError(CartError):
    """A submission is already in flight."""

    def __init__(self, message: str = "A service request submission is already in progress"):
        super().__init__(message)
