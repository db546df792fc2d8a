"""
Core data models for the Hotel Dashboard API client.

This module defines the value types that flow through the authenticated
request pipeline: credential pairs, request descriptors, the server response
envelope, and the uniform result returned to callers.
"""

from dataclasses import dataclass, field, replace
from typing import Any, Dict, Generic, List, Mapping, Optional, TypeVar, Union
from enum import Enum


T = TypeVar('T')


class HTTPMethod(Enum):
    """HTTP methods used against the backend API."""
    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    PATCH = "PATCH"
    DELETE = "DELETE"


@dataclass(frozen=True)
class CredentialPair:
    """An access token and the refresh token issued with it."""
    access_token: str
    refresh_token: str

    def __post_init__(self):
        if not self.access_token:
            raise ValueError("Access token cannot be empty")
        if not self.refresh_token:
            raise ValueError("Refresh token cannot be empty")

    @classmethod
    def from_payload(cls, data: Any) -> Optional['CredentialPair']:
        """
        Build a pair from a server ``data`` object.

        Returns None unless both ``accessToken`` and ``refreshToken`` are
        present and non-empty.
        """
        if not isinstance(data, Mapping):
            return None

        access_token = data.get('accessToken')
        refresh_token = data.get('refreshToken')
        if not access_token or not refresh_token:
            return None

        return cls(access_token=str(access_token), refresh_token=str(refresh_token))

    def to_dict(self) -> Dict[str, str]:
        return {
            'access_token': self.access_token,
            'refresh_token': self.refresh_token
        }

    def __repr__(self) -> str:
        # Keep tokens out of logs and tracebacks
        return "CredentialPair(access_token=***, refresh_token=***)"


@dataclass(frozen=True)
class MultipartField:
    """One part of a multipart/form-data body."""
    name: str
    value: Union[str, bytes]
    filename: Optional[str] = None
    content_type: Optional[str] = None


@dataclass(frozen=True)
class RequestDescriptor:
    """
    Description of one outbound API call.

    Descriptors are immutable. Replaying a request after a token refresh
    uses ``mark_retried()``, which returns a new descriptor.
    """
    method: str
    url: str
    body: Any = None
    params: Optional[Mapping[str, Any]] = None
    is_multipart: bool = False
    skip_auth_refresh: bool = False
    retried: bool = False
    authenticated: bool = True

    def __post_init__(self):
        if not self.url:
            raise ValueError("Request URL cannot be empty")
        object.__setattr__(self, 'method', self.method.upper())
        if self.is_multipart and self.body is not None:
            if not all(isinstance(part, MultipartField) for part in self.body):
                raise ValueError("Multipart bodies must be a sequence of MultipartField")
            object.__setattr__(self, 'body', tuple(self.body))

    def mark_retried(self) -> 'RequestDescriptor':
        """Return a copy of this descriptor flagged as already retried."""
        return replace(self, retried=True)


@dataclass
class ResponseEnvelope:
    """The backend's response envelope with every field optional."""
    success: Optional[bool] = None
    message: Optional[str] = None
    data: Any = None
    errors: Optional[Dict[str, Any]] = None

    @classmethod
    def from_payload(cls, payload: Any) -> 'ResponseEnvelope':
        """Parse a decoded JSON body; non-object bodies yield an empty envelope."""
        if not isinstance(payload, Mapping):
            return cls()

        success = payload.get('success')
        message = payload.get('message')
        errors = payload.get('errors')

        return cls(
            success=success if isinstance(success, bool) else None,
            message=message if isinstance(message, str) else None,
            data=payload.get('data'),
            errors=errors if isinstance(errors, Mapping) else None
        )


@dataclass
class ApiResult(Generic[T]):
    """Uniform result returned by every API call."""
    success: bool
    message: str
    data: Optional[T] = None
    errors: Dict[str, List[str]] = field(default_factory=dict)

    def field_errors(self, field_name: str) -> List[str]:
        """Get the error messages reported for one field."""
        return self.errors.get(field_name, [])

    def to_dict(self) -> Dict[str, Any]:
        return {
            'success': self.success,
            'message': self.message,
            'data': self.data,
            'errors': self.errors
        }


FieldErrors = Dict[str, List[str]]