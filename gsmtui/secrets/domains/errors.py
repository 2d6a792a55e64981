"""Classified failures raised by the Secret Manager adapter."""
import logging

from google.api_core import exceptions as api_exceptions
from google.auth import exceptions as auth_exceptions

logger = logging.getLogger(__name__)


class ClientError(Exception):
    """Base class for adapter failures."""
    kind = "Unknown"

    def __init__(self, message: str, cause: Exception = None):
        super().__init__(message)
        self.cause = cause


class UnauthenticatedError(ClientError):
    """No valid credentials (missing ADC, expired token, no gcloud account)."""
    kind = "Unauthenticated"


class NotFoundError(ClientError):
    kind = "NotFound"


class PermissionDeniedError(ClientError):
    kind = "PermissionDenied"


class TransientError(ClientError):
    """Failure expected to succeed on retry (rate limiting, network blips)."""
    kind = "Transient"


class UnknownError(ClientError):
    kind = "Unknown"


_TRANSIENT_API_ERRORS = (
    api_exceptions.ServiceUnavailable,
    api_exceptions.DeadlineExceeded,
    api_exceptions.TooManyRequests,
    api_exceptions.ResourceExhausted,
    api_exceptions.InternalServerError,
    api_exceptions.GatewayTimeout,
    api_exceptions.Aborted,
)


def classify_error(exc: Exception) -> ClientError:
    """
    Map a google-cloud / google-auth exception to a ClientError.

    Args:
        exc: Exception raised by the underlying client

    Returns:
        ClientError subclass instance carrying the original message
    """
    if isinstance(exc, ClientError):
        return exc

    message = getattr(exc, "message", None) or str(exc)

    if isinstance(exc, (api_exceptions.Unauthenticated,
                        auth_exceptions.DefaultCredentialsError,
                        auth_exceptions.RefreshError)):
        return UnauthenticatedError(message, exc)
    if isinstance(exc, api_exceptions.PermissionDenied):
        return PermissionDeniedError(message, exc)
    if isinstance(exc, api_exceptions.NotFound):
        return NotFoundError(message, exc)
    if isinstance(exc, _TRANSIENT_API_ERRORS):
        return TransientError(message, exc)
    if isinstance(exc, auth_exceptions.TransportError):
        return TransientError(message, exc)

    logger.error(f"Unclassified Secret Manager error: {exc!r}", exc_info=exc)
    return UnknownError(message, exc)
