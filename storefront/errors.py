"""Error kinds raised by the order and payment code.

Every error carries a stable ``kind`` and the HTTP status it maps to; the
handlers in ``storefront.main`` turn them into JSON responses.
"""


class StorefrontError(Exception):
    status_code = 500
    kind = "InternalError"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(StorefrontError):
    status_code = 400
    kind = "ValidationError"


class InvalidStatus(ValidationError):
    kind = "InvalidStatus"


class NotFound(StorefrontError):
    status_code = 404
    kind = "NotFound"


class InsufficientStock(StorefrontError):
    status_code = 400
    kind = "InsufficientStock"


class Unauthorized(StorefrontError):
    status_code = 401
    kind = "Unauthorized"


class Forbidden(StorefrontError):
    status_code = 403
    kind = "Forbidden"


class InvalidState(StorefrontError):
    status_code = 400
    kind = "InvalidState"


class WebhookAuthenticationFailed(StorefrontError):
    status_code = 400
    kind = "WebhookAuthenticationFailed"


class DependencyFailure(StorefrontError):
    status_code = 502
    kind = "DependencyFailure"
