from typing import Optional, Any


class TokiError(Exception):
    """
    Base exception for the Toki bot.

    `retryable` tells callers whether the same request may succeed later.
    """
    retryable = False

    def __init__(self, message: str, code: str = "INTERNAL_ERROR", status_code: int = 500, details: Optional[Any] = None):
        self.message = message
        self.code = code
        self.status_code = status_code
        self.details = details
        super().__init__(self.message)


class ValidationError(TokiError):
    """
    Raised when an inbound payload or command parameters are malformed.
    """
    def __init__(self, message: str = "Validation error", details: Optional[Any] = None):
        super().__init__(message, code="VALIDATION_ERROR", status_code=422, details=details)


class NotFoundError(TokiError):
    """
    Raised when a user or resource is absent.
    """
    def __init__(self, message: str = "Resource not found", details: Optional[Any] = None):
        super().__init__(message, code="NOT_FOUND", status_code=404, details=details)


class AuthenticationError(TokiError):
    """
    Raised when webhook verification fails.
    """
    def __init__(self, message: str = "Authentication failed", details: Optional[Any] = None):
        super().__init__(message, code="AUTHENTICATION_FAILED", status_code=403, details=details)


class UpstreamTimeout(TokiError):
    """
    Raised when the backend, card issuer or channel is unreachable within the
    configured timeout. Safe to retry.
    """
    retryable = True

    def __init__(self, message: str = "Upstream service unavailable", details: Optional[Any] = None):
        super().__init__(message, code="UPSTREAM_TIMEOUT", status_code=503, details=details)


class UpstreamRejection(TokiError):
    """
    Raised when the backend explicitly rejects a command (e.g. wrong state).
    """
    def __init__(self, message: str = "Upstream service rejected the request", details: Optional[Any] = None):
        super().__init__(message, code="UPSTREAM_REJECTED", status_code=409, details=details)


class TransportSendFailure(TokiError):
    """
    Raised when an outbound WhatsApp message could not be delivered.
    """
    retryable = True

    def __init__(self, message: str = "Failed to send message", details: Optional[Any] = None):
        super().__init__(message, code="SEND_FAILED", status_code=502, details=details)
