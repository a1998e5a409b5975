"""
Error Types
Typed failures raised by the catalog gateway and watch-state layer
"""
import time
from email.utils import parsedate_to_datetime
from typing import Any, Dict, Optional

# TMDB payload code for "Your request count is over the allowed limit"
PROVIDER_RATE_LIMIT_CODE = 25


class MavidaError(Exception):
    """Base class for all Mavida errors"""


class ValidationError(MavidaError):
    """Malformed local input, e.g. a missing id or a page below 1"""


class StorageError(MavidaError):
    """Persisting local state failed"""


class CatalogError(MavidaError):
    """Failure talking to the external catalog API"""

    retryable = False

    def __init__(
        self,
        message: str,
        status_code: int = 0,
        provider_code: Optional[int] = None,
    ):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.provider_code = provider_code

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(status_code={self.status_code}, "
            f"provider_code={self.provider_code}, message={self.message!r})"
        )


class NetworkError(CatalogError):
    """Transport failure, no usable response"""

    retryable = True


class AuthError(CatalogError):
    """401/403 from the provider"""


class NotFoundError(CatalogError):
    """404 from the provider"""


class RateLimitedError(CatalogError):
    """429 from the provider"""

    retryable = True

    def __init__(self, message: str, status_code: int = 429,
                 provider_code: Optional[int] = None, retry_after: Optional[float] = None):
        super().__init__(message, status_code=status_code, provider_code=provider_code)
        # seconds the provider asked us to wait, from Retry-After
        self.retry_after = retry_after


class ServerError(CatalogError):
    """5xx from the provider"""

    retryable = True


def classify_status(
    status: int,
    payload: Optional[Dict[str, Any]] = None,
    reason: Optional[str] = None,
    retry_after: Optional[float] = None,
) -> CatalogError:
    """
    Map a non-2xx response to a typed catalog error

    Args:
        status: HTTP status code
        payload: Decoded provider error body, if any
        reason: HTTP reason phrase used when the body has no message
        retry_after: Parsed Retry-After delay, kept on rate limit errors

    Returns:
        CatalogError subclass instance (not raised)
    """
    provider_code = None
    message = reason or f"HTTP {status}"
    if isinstance(payload, dict):
        raw_code = payload.get("status_code")
        if isinstance(raw_code, int):
            provider_code = raw_code
        message = payload.get("status_message") or message

    if status == 429 or provider_code == PROVIDER_RATE_LIMIT_CODE:
        error_cls = RateLimitedError
    elif status in (401, 403):
        error_cls = AuthError
    elif status == 404:
        error_cls = NotFoundError
    elif 500 <= status < 600:
        error_cls = ServerError
    else:
        error_cls = CatalogError

    if error_cls is RateLimitedError:
        return RateLimitedError(
            message, status_code=status, provider_code=provider_code, retry_after=retry_after
        )
    return error_cls(message, status_code=status, provider_code=provider_code)


def is_retryable(error: BaseException) -> bool:
    """True for transient failures worth another attempt"""
    return isinstance(error, CatalogError) and error.retryable


def parse_retry_after(header: Optional[str]) -> Optional[float]:
    """Seconds to wait from a Retry-After header (delta-seconds or HTTP date)"""
    if not header:
        return None
    header = header.strip()
    if header.isdigit():
        return float(header)
    try:
        when = parsedate_to_datetime(header)
    except (TypeError, ValueError):
        return None
    if when is None:
        return None
    return max(0.0, when.timestamp() - time.time())
