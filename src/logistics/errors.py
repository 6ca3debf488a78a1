"""Error taxonomy for the logistics domain.

Input problems reuse protean's ``ValidationError`` and missing records reuse
``ObjectNotFoundError``. The classes below cover the remaining outcomes that
callers need to tell apart.
"""


class LogisticsError(Exception):
    """Base class for logistics domain failures."""

    def __init__(self, message: str, **context):
        super().__init__(message)
        self.message = message
        self.context = context


class NoFulfillableItems(LogisticsError):
    """No line item of the order maps to a hub that can ship it."""


class NoZoneConfigured(LogisticsError):
    """The zone catalog is empty, so no destination zone can be resolved."""


class CourierUnavailable(LogisticsError):
    """A courier call failed (auth, network, timeout or a rejected request)."""


class ReturnForbidden(LogisticsError):
    """The customer does not own the order they are trying to return."""


class ReturnWindowExceeded(LogisticsError):
    """The order is older than the configured return window."""


class RefundFailed(LogisticsError):
    """The commerce backend did not issue the refund."""
