"""
Custom exception classes for the fleet.
Provides structured error handling across all components.
"""

from typing import Any, Optional, Dict


class WorkerFleetException(Exception):
    """Base exception class for the worker fleet."""

    def __init__(
        self,
        message: str,
        code: str = "UNKNOWN_ERROR",
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(self.message)


class ConfigurationError(WorkerFleetException):
    """Raised when there's a configuration error."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, "CONFIGURATION_ERROR", details)


class ExternalServiceError(WorkerFleetException):
    """Raised when a remote HTTP call fails after retries."""

    def __init__(
        self,
        message: str,
        status: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
        code: str = "EXTERNAL_SERVICE_ERROR",
    ):
        self.status = status
        super().__init__(message, code, details)


class UnauthorizedError(ExternalServiceError):
    """Raised when the remote rejects the bearer credential (HTTP 401)."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, status=401, details=details, code="UNAUTHORIZED")


class CredentialError(WorkerFleetException):
    """Raised when a credential could not be obtained."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, "CREDENTIAL_ERROR", details)


class SessionError(WorkerFleetException):
    """Raised on invalid session state transitions or sends."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, "SESSION_ERROR", details)
