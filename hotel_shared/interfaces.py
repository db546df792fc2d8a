"""
Core interfaces for the Hotel Dashboard API client.

This module defines the abstract interfaces that components must implement
to ensure consistent behavior across the system.
"""

from abc import ABC, abstractmethod
from typing import Any, Optional

from .models import ApiResult, CredentialPair, RequestDescriptor


class ICredentialStore(ABC):
    """
    Interface for persisting the access/refresh token pair.

    Implementations must write and read the pair as a single unit so that a
    caller never observes tokens from two different sessions.
    """

    @abstractmethod
    def get(self) -> Optional[CredentialPair]:
        """Get the stored credential pair, or None when unauthenticated."""
        pass

    @abstractmethod
    def set(self, access_token: str, refresh_token: str) -> None:
        """Replace the stored credential pair."""
        pass

    @abstractmethod
    def remove(self) -> None:
        """Remove any stored credentials."""
        pass


class IAPIClient(ABC):
    """Interface for the authenticated API client."""

    @abstractmethod
    async def request(self, descriptor: RequestDescriptor) -> ApiResult:
        """Execute one API call and return its uniform result."""
        pass

    @abstractmethod
    async def call_public(self, method: str, url: str, body: Any = None, is_multipart: bool = False) -> ApiResult:
        """Execute an unauthenticated API call that never refreshes tokens."""
        pass

    @abstractmethod
    def reset_refresh(self) -> None:
        """Abandon any in-flight token refresh."""
        pass


class IConfigurationManager(ABC):
    """Interface for configuration management."""

    @abstractmethod
    def get_api_url(self) -> str:
        """Get backend API base URL."""
        pass

    @abstractmethod
    def get_language(self) -> str:
        """Get locale code sent as Accept-Language."""
        pass

    @abstractmethod
    def set_config(self, key: str, value: Any) -> None:
        """Set configuration value."""
        pass

    @abstractmethod
    def get_config(self, key: str, default: Any = None) -> Any:
        """Get configuration value."""
        pass
