"""
Single-flight token refresh for the Hotel Dashboard API client.

When several requests fail with 401 at about the same time, exactly one
refresh-token exchange is performed and every waiting request observes its
outcome.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Mapping, Optional, Tuple

from hotel_shared.exceptions import CredentialStoreError
from hotel_shared.interfaces import ICredentialStore
from hotel_shared.logging_config import AuditLogger
from hotel_shared.models import CredentialPair

logger = logging.getLogger(__name__)


class RefreshCancelled(Exception):
    """The in-flight refresh was abandoned by reset() before it settled."""


# Posts a refresh token to the refresh endpoint, bypassing the request
# pipeline. Returns the HTTP status and the decoded body.
RefreshExchange = Callable[[str], Awaitable[Tuple[int, Any]]]


class RefreshCoordinator:
    """
    Owns the in-flight refresh handle shared by all requests of a client.

    The handle is checked and created without any suspension point in
    between, so concurrent callers on one event loop can never both decide to
    start a refresh. The handle is cleared as soon as the refresh settles.
    """

    def __init__(
        self,
        credential_store: ICredentialStore,
        exchange: RefreshExchange,
        timeout: float = 15.0,
        audit_logger: Optional[AuditLogger] = None
    ):
        self.credential_store = credential_store
        self.timeout = timeout
        self._exchange = exchange
        self._audit_logger = audit_logger or AuditLogger()
        self._inflight: Optional[asyncio.Task] = None

    @property
    def is_refreshing(self) -> bool:
        """Whether a refresh is currently in flight."""
        return self._inflight is not None

    async def refresh(self) -> Optional[CredentialPair]:
        """
        Refresh the credential pair, joining an in-flight refresh if any.

        Returns:
            The new pair, or None when no refresh was possible

        Raises:
            RefreshCancelled: If reset() abandoned the refresh
        """
        task = self._inflight
        if task is None:
            task = asyncio.ensure_future(self._run())
            self._inflight = task
        else:
            logger.debug("Joining in-flight token refresh")

        try:
            # A cancelled waiter must not cancel the refresh for everyone else
            return await asyncio.shield(task)
        except asyncio.CancelledError:
            if task.cancelled():
                raise RefreshCancelled("Token refresh was cancelled")
            raise

    def reset(self) -> None:
        """Cancel any in-flight refresh and clear the handle."""
        task = self._inflight
        self._inflight = None
        if task is not None and not task.done():
            task.cancel()
            logger.info("In-flight token refresh cancelled")

    async def _run(self) -> Optional[CredentialPair]:
        try:
            return await self._refresh_tokens()
        finally:
            if self._inflight is asyncio.current_task():
                self._inflight = None

    async def _refresh_tokens(self) -> Optional[CredentialPair]:
        current = self.credential_store.get()
        if current is None:
            logger.info("No refresh token stored, cannot refresh credentials")
            return None

        logger.info("Refreshing access token")

        try:
            status, payload = await asyncio.wait_for(
                self._exchange(current.refresh_token),
                timeout=self.timeout
            )
        except asyncio.TimeoutError:
            logger.error(f"Token refresh timed out after {self.timeout}s")
            self._audit_logger.log_token_refresh(False, current.refresh_token, "timeout")
            return None
        except Exception as e:
            logger.error(f"Token refresh request failed: {e}")
            self._audit_logger.log_token_refresh(False, current.refresh_token, str(e))
            return None

        if not 200 <= status < 300:
            logger.warning(f"Token refresh rejected with status {status}")
            self._audit_logger.log_token_refresh(False, current.refresh_token, f"status {status}")
            return None

        data = payload.get('data') if isinstance(payload, Mapping) else None
        new_pair = CredentialPair.from_payload(data)
        if new_pair is None:
            logger.warning("Token refresh response did not include both tokens")
            self._audit_logger.log_token_refresh(False, current.refresh_token, "incomplete response")
            return None

        try:
            self.credential_store.set(new_pair.access_token, new_pair.refresh_token)
        except CredentialStoreError as e:
            logger.error(f"Could not persist refreshed credentials: {e}")
            self._audit_logger.log_token_refresh(False, current.refresh_token, "storage failure")
            return None

        self._audit_logger.log_token_refresh(True, current.refresh_token)
        logger.info("Access token refreshed")
        return new_pair
