"""
Exception hierarchy for the Hotel Dashboard API client.

This module defines structured exceptions with error codes, context information,
and recovery suggestions so every failure can be normalized into a uniform result.
"""

from datetime import datetime
from typing import Optional, Dict, Any, List
from enum import Enum


class ErrorCode(Enum):
    """Standardized error codes for the Hotel Dashboard client."""

    # Authentication and Authorization Errors (1000-1099)
    AUTH_TOKEN_EXPIRED = "AUTH_1002"
    AUTH_INSUFFICIENT_PERMISSIONS = "AUTH_1003"

    # Network and Communication Errors (2000-2099)
    NETWORK_CONNECTION_FAILED = "NETWORK_2001"
    NETWORK_TIMEOUT = "NETWORK_2002"

    # Request Errors (3000-3099)
    REQUEST_FAILED = "REQUEST_3001"
    REQUEST_NOT_FOUND = "REQUEST_3002"
    REQUEST_CONFLICT = "REQUEST_3003"

    # Validation Errors (4000-4099)
    VALIDATION_INVALID_INPUT = "VALIDATION_4001"

    # Credential Storage Errors (7000-7099)
    STORAGE_WRITE_FAILED = "STORAGE_7002"

    # Configuration Errors (8000-8099)
    CONFIG_FILE_NOT_FOUND = "CONFIG_8001"
    CONFIG_INVALID_VALUE = "CONFIG_8004"

    # Server and Internal Errors (9000-9099)
    INTERNAL_UNEXPECTED_ERROR = "INTERNAL_9001"
    INTERNAL_SERVER_ERROR = "INTERNAL_9003"


class ErrorSeverity(Enum):
    """Error severity levels for logging and handling."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class RecoveryAction(Enum):
    """Suggested recovery actions for errors."""
    RETRY_WITH_BACKOFF = "retry_with_backoff"
    REFRESH_TOKEN = "refresh_token"
    LOGIN_AGAIN = "login_again"
    USER_INTERVENTION = "user_intervention"
    CONTACT_ADMIN = "contact_admin"


GENERIC_ERROR_MESSAGE = "Something went wrong"


class HotelDashboardError(Exception):
    """
    Base exception class for all Hotel Dashboard client errors.

    Provides structured error information including error codes, context,
    and recovery suggestions for consistent error handling.
    """

    def __init__(
        self,
        message: str,
        error_code: ErrorCode,
        severity: ErrorSeverity = ErrorSeverity.MEDIUM,
        context: Optional[Dict[str, Any]] = None,
        recovery_actions: Optional[List[RecoveryAction]] = None,
        cause: Optional[Exception] = None,
        user_message: Optional[str] = None
    ):
        super().__init__(message)

        self.message = message
        self.error_code = error_code
        self.severity = severity
        self.context = context or {}
        self.recovery_actions = recovery_actions or []
        self.cause = cause
        self.user_message = user_message or message
        self.timestamp = datetime.now()

        if cause:
            self.context['cause_type'] = type(cause).__name__
            self.context['cause_message'] = str(cause)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary format for serialization."""
        return {
            'error': {
                'code': self.error_code.value,
                'message': self.message,
                'user_message': self.user_message,
                'severity': self.severity.value,
                'timestamp': self.timestamp.isoformat(),
                'context': self.context,
                'recovery_actions': [action.value for action in self.recovery_actions],
                'cause': {
                    'type': self.context.get('cause_type'),
                    'message': self.context.get('cause_message')
                } if self.cause else None
            }
        }


class APIRequestError(HotelDashboardError):
    """
    A request reached the server and came back with a non-2xx status.

    Keeps the HTTP status and the decoded server payload so the response
    normalizer can surface the server's own message and field errors.
    """

    def __init__(
        self,
        message: str,
        status: int,
        payload: Optional[Dict[str, Any]] = None,
        error_code: ErrorCode = ErrorCode.REQUEST_FAILED,
        **kwargs
    ):
        context = kwargs.pop('context', {})
        context['status'] = status
        kwargs.setdefault('recovery_actions', [RecoveryAction.USER_INTERVENTION])

        super().__init__(
            message=message,
            error_code=error_code,
            context=context,
            **kwargs
        )
        self.status = status
        self.payload = payload if isinstance(payload, dict) else {}


class AuthenticationError(APIRequestError):
    """Authorization-denied responses (401)."""

    def __init__(self, message: str, status: int = 401, payload: Optional[Dict[str, Any]] = None, **kwargs):
        kwargs.setdefault('error_code', ErrorCode.AUTH_TOKEN_EXPIRED)
        super().__init__(
            message=message,
            status=status,
            payload=payload,
            severity=ErrorSeverity.HIGH,
            recovery_actions=[RecoveryAction.REFRESH_TOKEN, RecoveryAction.LOGIN_AGAIN],
            **kwargs
        )


class ValidationError(APIRequestError):
    """Server-side validation failures carrying per-field errors."""

    def __init__(self, message: str, status: int = 400, payload: Optional[Dict[str, Any]] = None, **kwargs):
        kwargs.setdefault('error_code', ErrorCode.VALIDATION_INVALID_INPUT)
        super().__init__(
            message=message,
            status=status,
            payload=payload,
            severity=ErrorSeverity.LOW,
            **kwargs
        )


class ServerError(APIRequestError):
    """Server-side errors (5xx)."""

    def __init__(self, message: str, status: int = 500, payload: Optional[Dict[str, Any]] = None, **kwargs):
        kwargs.setdefault('error_code', ErrorCode.INTERNAL_SERVER_ERROR)
        super().__init__(
            message=message,
            status=status,
            payload=payload,
            severity=ErrorSeverity.HIGH,
            recovery_actions=[RecoveryAction.RETRY_WITH_BACKOFF, RecoveryAction.CONTACT_ADMIN],
            **kwargs
        )


class NetworkError(HotelDashboardError):
    """The request never produced an HTTP response (connection, DNS, timeout)."""

    def __init__(self, message: str, error_code: ErrorCode = ErrorCode.NETWORK_CONNECTION_FAILED, **kwargs):
        super().__init__(
            message=message,
            error_code=error_code,
            severity=ErrorSeverity.MEDIUM,
            recovery_actions=[RecoveryAction.RETRY_WITH_BACKOFF],
            **kwargs
        )


class CredentialStoreError(HotelDashboardError):
    """Credential persistence failures."""

    def __init__(self, message: str, error_code: ErrorCode = ErrorCode.STORAGE_WRITE_FAILED, **kwargs):
        super().__init__(
            message=message,
            error_code=error_code,
            severity=ErrorSeverity.HIGH,
            recovery_actions=[RecoveryAction.USER_INTERVENTION, RecoveryAction.LOGIN_AGAIN],
            **kwargs
        )


class ConfigurationError(HotelDashboardError):
    """Configuration related errors."""

    def __init__(self, message: str, error_code: ErrorCode = ErrorCode.CONFIG_INVALID_VALUE, config_key: Optional[str] = None, **kwargs):
        context = kwargs.pop('context', {})
        if config_key:
            context['config_key'] = config_key

        super().__init__(
            message=message,
            error_code=error_code,
            severity=ErrorSeverity.HIGH,
            recovery_actions=[RecoveryAction.USER_INTERVENTION, RecoveryAction.CONTACT_ADMIN],
            context=context,
            **kwargs
        )


def error_for_status(status: int, payload: Optional[Dict[str, Any]] = None) -> APIRequestError:
    """
    Build the structured exception for a non-2xx HTTP response.

    Args:
        status: HTTP status code
        payload: Decoded response body (may be empty)

    Returns:
        APIRequestError subclass matching the status
    """
    message = f"Request failed with status code {status}"

    if status == 401:
        return AuthenticationError(message, status=status, payload=payload)
    if status == 403:
        return APIRequestError(
            message, status=status, payload=payload,
            error_code=ErrorCode.AUTH_INSUFFICIENT_PERMISSIONS
        )
    if status == 404:
        return APIRequestError(
            message, status=status, payload=payload,
            error_code=ErrorCode.REQUEST_NOT_FOUND
        )
    if status == 409:
        return APIRequestError(
            message, status=status, payload=payload,
            error_code=ErrorCode.REQUEST_CONFLICT
        )
    if status in (400, 422):
        return ValidationError(message, status=status, payload=payload)
    if status >= 500:
        return ServerError(message, status=status, payload=payload)

    return APIRequestError(message, status=status, payload=payload)


def handle_exception(
    exception: Exception,
    context: Optional[Dict[str, Any]] = None,
    default_error_code: ErrorCode = ErrorCode.INTERNAL_UNEXPECTED_ERROR
) -> HotelDashboardError:
    """
    Convert a generic exception to a structured HotelDashboardError.

    Args:
        exception: The original exception
        context: Additional context information
        default_error_code: Default error code if specific mapping not found

    Returns:
        Structured HotelDashboardError
    """
    if isinstance(exception, HotelDashboardError):
        return exception

    if isinstance(exception, TimeoutError):
        return NetworkError(
            message=str(exception) or "Request timed out",
            error_code=ErrorCode.NETWORK_TIMEOUT,
            context=context,
            cause=exception
        )

    if isinstance(exception, ConnectionError):
        return NetworkError(
            message=str(exception),
            error_code=ErrorCode.NETWORK_CONNECTION_FAILED,
            context=context,
            cause=exception
        )

    return HotelDashboardError(
        message=str(exception) or GENERIC_ERROR_MESSAGE,
        error_code=default_error_code,
        context=context,
        cause=exception,
        user_message=GENERIC_ERROR_MESSAGE
    )
