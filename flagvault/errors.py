"""
Error types for FlagVault SDK.

Provides structured error handling with categories for better error management.
"""

from enum import Enum
from typing import Optional

import httpx


class ErrorCategory(str, Enum):
    """Categories of errors for classification."""

    PARAMETER = "parameter"
    CONFIGURATION = "configuration"
    AUTH = "auth"
    NETWORK = "network"
    TIMEOUT = "timeout"
    NOT_FOUND = "not_found"
    API = "api"
    CAPABILITY = "capability"
    UNKNOWN = "unknown"


class FlagVaultError(Exception):
    """Base exception for all FlagVault SDK errors."""

    def __init__(
        self,
        message: str,
        category: ErrorCategory = ErrorCategory.UNKNOWN,
        status_code: Optional[int] = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category
        self.status_code = status_code

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(message={self.message!r}, category={self.category})"


class ParameterError(FlagVaultError, ValueError):
    """Raised when a caller passes an invalid argument (e.g. an empty flag key)."""

    def __init__(self, message: str = "Invalid parameter"):
        super().__init__(message, category=ErrorCategory.PARAMETER)


class ConfigurationError(FlagVaultError, ValueError):
    """Raised when the SDK is constructed with an invalid configuration."""

    def __init__(self, message: str = "Invalid configuration"):
        super().__init__(message, category=ErrorCategory.CONFIGURATION)


class AuthenticationError(FlagVaultError):
    """Raised when authentication fails (401/403)."""

    def __init__(self, message: str = "Authentication failed", status_code: int = 401):
        super().__init__(message, category=ErrorCategory.AUTH, status_code=status_code)


class NetworkError(FlagVaultError):
    """Raised when the API cannot be reached."""

    def __init__(
        self,
        message: str = "Network error",
        category: ErrorCategory = ErrorCategory.NETWORK,
    ):
        super().__init__(message, category=category)


class RequestTimeoutError(NetworkError):
    """Raised when a request exceeds the configured timeout."""

    def __init__(self, message: str = "Request timed out"):
        super().__init__(message, category=ErrorCategory.TIMEOUT)


class APIError(FlagVaultError):
    """Raised when the API returns an error response."""

    def __init__(
        self,
        message: str = "API error",
        status_code: Optional[int] = None,
        category: ErrorCategory = ErrorCategory.API,
    ):
        super().__init__(message, category=category, status_code=status_code)


class FlagNotFoundError(APIError):
    """Raised when a flag does not exist (404)."""

    def __init__(self, message: str = "Flag not found"):
        super().__init__(message, status_code=404, category=ErrorCategory.NOT_FOUND)


class InvalidResponseError(APIError):
    """Raised when a response body cannot be parsed."""

    def __init__(self, message: str = "Invalid response body", status_code: Optional[int] = None):
        super().__init__(message, status_code=status_code)


class CapabilityUnavailableError(FlagVaultError, ImportError):
    """Raised when an optional integration's framework is not installed."""

    def __init__(self, message: str):
        super().__init__(message, category=ErrorCategory.CAPABILITY)


def classify_status(status_code: int, message: Optional[str] = None) -> FlagVaultError:
    """
    Classify a non-2xx HTTP status into a FlagVaultError.

    Args:
        status_code: HTTP status code of the response
        message: Optional message, defaults to one derived from the status

    Returns:
        A classified FlagVaultError
    """
    message = message or f"HTTP {status_code}"

    if status_code == 401 or status_code == 403:
        return AuthenticationError(message, status_code)
    if status_code == 404:
        return FlagNotFoundError(message)
    return APIError(message, status_code=status_code)


def classify_error(error: Exception) -> FlagVaultError:
    """
    Classify an exception into a FlagVaultError.

    Args:
        error: The original exception

    Returns:
        A classified FlagVaultError
    """
    if isinstance(error, FlagVaultError):
        return error

    if isinstance(error, httpx.TimeoutException):
        return RequestTimeoutError(f"Request timed out: {error}")

    if isinstance(error, httpx.TransportError):
        return NetworkError(f"Failed to connect to API: {error}")

    if isinstance(error, httpx.HTTPStatusError):
        return classify_status(error.response.status_code, str(error))

    if isinstance(error, ValueError):
        return InvalidResponseError(f"Invalid JSON response: {error}")

    return FlagVaultError(str(error))
