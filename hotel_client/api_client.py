"""
HTTP API Client for the Hotel Dashboard.

This module provides the authenticated request pipeline used for every call to
the backend API: bearer-token attachment, transparent token refresh and retry
on 401 responses, and normalization of every outcome into an ApiResult.
"""

import asyncio
import logging
from typing import Optional, Dict, Any, Mapping

import aiohttp
from aiohttp import ClientSession, ClientTimeout, ClientError, FormData

from hotel_shared.exceptions import (
    AuthenticationError, ErrorCode, HotelDashboardError, NetworkError,
    error_for_status, handle_exception
)
from hotel_shared.interfaces import IAPIClient, ICredentialStore
from hotel_shared.logging_config import AuditLogger, log_structured_error
from hotel_shared.models import ApiResult, HTTPMethod, RequestDescriptor
from hotel_client.auth.refresh import RefreshCancelled, RefreshCoordinator
from hotel_client.auth.token_storage import create_token_storage
from hotel_client.normalizer import normalize_envelope, normalize_error

logger = logging.getLogger(__name__)


DEFAULT_REFRESH_PATH = '/api/{lang}/auth/refresh-token'
REFRESH_ENDPOINT_MARKER = '/auth/refresh-token'


class HotelDashboardAPIClient(IAPIClient):
    """
    HTTP API client for the Hotel Dashboard backend.

    Attaches the stored access token to each request. A 401 response triggers
    one shared token refresh, after which the request is replayed once with
    the new access token. If no refresh is possible the stored credentials are
    removed and the original failure is returned.
    """

    def __init__(
        self,
        base_url: str,
        credential_store: ICredentialStore,
        language: str = 'en',
        timeout: float = 30.0,
        refresh_timeout: float = 15.0,
        refresh_path: Optional[str] = None,
        session: Optional[ClientSession] = None
    ):
        self.base_url = base_url.rstrip('/')
        self.language = language
        self.timeout = ClientTimeout(total=timeout)
        self.refresh_path = refresh_path or DEFAULT_REFRESH_PATH.format(lang=language)
        self.credential_store = credential_store

        self._audit_logger = AuditLogger()
        self.refresh_coordinator = RefreshCoordinator(
            credential_store,
            self._exchange_refresh_token,
            timeout=refresh_timeout,
            audit_logger=self._audit_logger
        )

        # Session management
        self._session = session
        self._owns_session = session is None

        logger.info(f"API client initialized for server: {self.base_url}")

    @classmethod
    def from_config(
        cls,
        config,
        credential_store: Optional[ICredentialStore] = None,
        session: Optional[ClientSession] = None
    ) -> 'HotelDashboardAPIClient':
        """
        Build a client from a ClientConfiguration.

        Args:
            config: ClientConfiguration instance
            credential_store: Store to use instead of the configured backend
            session: Existing aiohttp session to reuse

        Returns:
            Configured API client
        """
        if credential_store is None:
            credential_store = create_token_storage(config)

        return cls(
            base_url=config.get_api_url(),
            credential_store=credential_store,
            language=config.get_language(),
            timeout=config.get_request_timeout(),
            refresh_timeout=config.get_refresh_timeout(),
            refresh_path=config.get_refresh_path(),
            session=session
        )

    async def __aenter__(self):
        """Async context manager entry."""
        await self._ensure_session()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        await self.close()

    async def _ensure_session(self) -> ClientSession:
        """Ensure HTTP session is available."""
        if self._session is None or self._session.closed:
            connector = aiohttp.TCPConnector(
                limit=10,
                limit_per_host=5,
                keepalive_timeout=30,
                enable_cleanup_closed=True
            )
            self._session = ClientSession(
                connector=connector,
                timeout=self.timeout,
                headers={'User-Agent': 'HotelDashboardClient/1.0'}
            )
            self._owns_session = True
        return self._session

    async def close(self) -> None:
        """Close the HTTP session if this client created it."""
        self.reset_refresh()
        if self._owns_session and self._session and not self._session.closed:
            await self._session.close()
            self._session = None

    # Request pipeline

    async def request(self, descriptor: RequestDescriptor) -> ApiResult:
        """
        Execute one API call.

        Args:
            descriptor: What to send

        Returns:
            ApiResult for the call; failures are reported with success=False
            rather than raised
        """
        try:
            payload = await self._dispatch(descriptor)
        except HotelDashboardError as e:
            log_structured_error(logger, e, level=logging.WARNING)
            return normalize_error(e)
        except Exception as e:
            error = handle_exception(e, context={'method': descriptor.method, 'url': descriptor.url})
            log_structured_error(logger, error)
            return normalize_error(error)

        return normalize_envelope(payload)

    async def _dispatch(self, descriptor: RequestDescriptor, access_token: Optional[str] = None) -> Any:
        """Send a request, refreshing credentials and replaying it once on 401."""
        if access_token is None and descriptor.authenticated:
            access_token = self._current_access_token()

        try:
            return await self._send(descriptor, access_token)
        except AuthenticationError as error:
            if not self._should_refresh(descriptor):
                raise

            # Flag the replay before refreshing so a failing refresh can never loop
            retry_descriptor = descriptor.mark_retried()

            try:
                pair = await self.refresh_coordinator.refresh()
            except RefreshCancelled:
                # Abandoned by close() or logout
                logger.info(f"Token refresh cancelled, not retrying {descriptor.method} {descriptor.url}")
                raise error

            if pair is None:
                self._clear_credentials("token refresh failed")
                raise error

            logger.info(f"Retrying {descriptor.method} {descriptor.url} with refreshed token")
            return await self._dispatch(retry_descriptor, access_token=pair.access_token)

    def reset_refresh(self) -> None:
        """Abandon any in-flight token refresh."""
        self.refresh_coordinator.reset()

    def _should_refresh(self, descriptor: RequestDescriptor) -> bool:
        return (
            descriptor.authenticated
            and not descriptor.skip_auth_refresh
            and not descriptor.retried
            and not self._is_refresh_url(descriptor.url)
        )

    def _is_refresh_url(self, url: str) -> bool:
        return REFRESH_ENDPOINT_MARKER in url

    def _current_access_token(self) -> Optional[str]:
        pair = self.credential_store.get()
        return pair.access_token if pair else None

    def _clear_credentials(self, reason: str) -> None:
        try:
            self.credential_store.remove()
        except HotelDashboardError as e:
            log_structured_error(logger, e)
        self._audit_logger.log_credentials_cleared(reason)

    async def _send(self, descriptor: RequestDescriptor, access_token: Optional[str]) -> Any:
        """
        Issue a single HTTP request.

        Returns:
            Decoded JSON body of a 2xx response (None when empty)

        Raises:
            APIRequestError: On a non-2xx response
            NetworkError: When no response was received
        """
        session = await self._ensure_session()
        url = self._build_url(descriptor.url)
        headers = self._build_headers(descriptor, access_token)

        logger.debug(
            f"Making {descriptor.method} request to {url}"
            f"{' (retry after refresh)' if descriptor.retried else ''}"
        )

        try:
            async with session.request(
                descriptor.method,
                url,
                params=descriptor.params,
                headers=headers,
                timeout=self.timeout,
                **self._build_body(descriptor)
            ) as response:
                status = response.status
                payload = await self._read_payload(response)

        except (ClientError, asyncio.TimeoutError, OSError) as e:
            raise self._network_error(e, url)

        if 200 <= status < 300:
            return payload

        raise error_for_status(status, payload if isinstance(payload, dict) else None)

    async def _exchange_refresh_token(self, refresh_token: str):
        """
        POST the refresh token to the refresh endpoint.

        This is a plain call outside the request pipeline so a failing refresh
        is never itself intercepted.

        Returns:
            Tuple of HTTP status and decoded body
        """
        session = await self._ensure_session()
        url = self._build_url(self.refresh_path)

        try:
            async with session.post(
                url,
                json={'refreshToken': refresh_token},
                headers={
                    'Content-Type': 'application/json',
                    'Accept': 'application/json',
                    'Accept-Language': self.language
                },
                timeout=self.timeout
            ) as response:
                return response.status, await self._read_payload(response)

        except (ClientError, asyncio.TimeoutError, OSError) as e:
            raise self._network_error(e, url)

    def _build_url(self, url: str) -> str:
        if url.startswith(('http://', 'https://')):
            return url
        return f"{self.base_url}/{url.lstrip('/')}"

    def _build_headers(self, descriptor: RequestDescriptor, access_token: Optional[str]) -> Dict[str, str]:
        headers = {
            'Accept': 'application/json',
            'Accept-Language': self.language
        }
        # Multipart bodies get their Content-Type (with boundary) from aiohttp
        if not descriptor.is_multipart:
            headers['Content-Type'] = 'application/json'
        if access_token:
            headers['Authorization'] = f'Bearer {access_token}'
        return headers

    def _build_body(self, descriptor: RequestDescriptor) -> Dict[str, Any]:
        if descriptor.body is None:
            return {}

        if descriptor.is_multipart:
            # FormData is single-use, so it is rebuilt for every send
            form = FormData()
            for part in descriptor.body:
                form.add_field(
                    part.name,
                    part.value,
                    filename=part.filename,
                    content_type=part.content_type
                )
            return {'data': form}

        return {'json': descriptor.body}

    async def _read_payload(self, response) -> Any:
        """Decode a JSON response body, or None when the body is not JSON."""
        try:
            return await response.json(content_type=None)
        except ValueError:
            logger.debug(f"Non-JSON response body (status {response.status})")
            return None

    def _network_error(self, error: BaseException, url: str) -> NetworkError:
        if isinstance(error, asyncio.TimeoutError):
            logger.warning(f"Request to {url} timed out")
            return NetworkError(
                f"Request timed out after {self.timeout.total}s",
                error_code=ErrorCode.NETWORK_TIMEOUT,
                context={'url': url},
                cause=error
            )

        logger.warning(f"Network error calling {url}: {error}")
        return NetworkError(
            str(error) or f"Network request to {url} failed",
            context={'url': url},
            cause=error
        )

    # Convenience wrappers

    async def get(self, url: str, params: Optional[Mapping[str, Any]] = None, **options) -> ApiResult:
        return await self.request(RequestDescriptor(HTTPMethod.GET.value, url, params=params, **options))

    async def post(self, url: str, body: Any = None, **options) -> ApiResult:
        return await self.request(RequestDescriptor(HTTPMethod.POST.value, url, body=body, **options))

    async def put(self, url: str, body: Any = None, **options) -> ApiResult:
        return await self.request(RequestDescriptor(HTTPMethod.PUT.value, url, body=body, **options))

    async def patch(self, url: str, body: Any = None, **options) -> ApiResult:
        return await self.request(RequestDescriptor(HTTPMethod.PATCH.value, url, body=body, **options))

    async def delete(self, url: str, **options) -> ApiResult:
        return await self.request(RequestDescriptor(HTTPMethod.DELETE.value, url, **options))

    async def call_public(self, method: str, url: str, body: Any = None, is_multipart: bool = False) -> ApiResult:
        """
        Execute a call that sends no credentials and never refreshes tokens.

        Used for the login, registration and OTP endpoints.
        """
        return await self.request(RequestDescriptor(
            method,
            url,
            body=body,
            is_multipart=is_multipart,
            skip_auth_refresh=True,
            authenticated=False
        ))

    def is_authenticated(self) -> bool:
        """Check whether credentials are currently stored."""
        return self.credential_store.get() is not None
