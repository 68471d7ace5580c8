"""
Typed failures raised by the QR asset core.

Callers (admin tooling, public registration flows) catch QRAssetError and map
each subclass onto their own response; nothing here is swallowed internally.
"""


class QRAssetError(Exception):
    """Base class for all QR asset failures"""

    def __init__(self, message, token=None):
        super().__init__(message)
        self.message = message
        self.token = token


class ExhaustedRetries(QRAssetError):
    """Uniqueness target not met within the attempt bound"""

    def __init__(self, message, requested=0, obtained=0, attempts=0):
        super().__init__(message)
        self.requested = requested
        self.obtained = obtained
        self.attempts = attempts


class AlreadyAssigned(QRAssetError):
    """Register attempted on a token that is not UNREGISTERED"""

    def __init__(self, token, current_status):
        super().__init__(
            f"QR asset {token} is already assigned (current status: {current_status})",
            token=token,
        )
        self.current_status = current_status


class BindingConflict(QRAssetError):
    """Register attempted on a venue resource that already has a REGISTERED asset"""

    def __init__(self, token, venue_id, resource_scope, resource_id):
        super().__init__(
            f"Venue {venue_id} {resource_scope} {resource_id} is already bound to another QR asset",
            token=token,
        )
        self.venue_id = venue_id
        self.resource_scope = resource_scope
        self.resource_id = resource_id


class InvalidStateError(QRAssetError):
    """Transition attempted from a status that does not allow it"""

    def __init__(self, token, current_status, expected_status):
        super().__init__(
            f"QR asset {token} must be {expected_status} (current status: {current_status})",
            token=token,
        )
        self.current_status = current_status
        self.expected_status = expected_status


class NotFound(QRAssetError):
    """Unknown token or venue"""

    def __init__(self, message, token=None, venue_id=None):
        super().__init__(message, token=token)
        self.venue_id = venue_id


class ValidationError(QRAssetError, ValueError):
    """Malformed token, scope or resource combination"""
