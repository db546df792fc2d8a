"""
Token Manager for the Hotel Dashboard API client.

This module drives the authentication flows that create or destroy stored
credentials: password login with optional one-time-passcode verification,
registration OTP verification, and logout.
"""

import logging
from datetime import datetime, timezone
from typing import Optional, Dict, Any, Callable, List

from jose import jwt, JWTError

from hotel_shared.exceptions import CredentialStoreError
from hotel_shared.interfaces import IAPIClient, ICredentialStore
from hotel_shared.logging_config import AuditLogger, log_structured_error
from hotel_shared.models import ApiResult, CredentialPair, HTTPMethod

logger = logging.getLogger(__name__)


class TokenManager:
    """
    Manages the authenticated session of a hotel operator.

    Successful login or OTP verification stores the issued credential pair;
    logout removes it. The credential store remains the only source of truth
    for whether the operator is authenticated.
    """

    def __init__(self, api_client: IAPIClient, credential_store: ICredentialStore, language: str = 'en'):
        self.api_client = api_client
        self.credential_store = credential_store
        self.language = language

        self._auth_callbacks: List[Callable[[bool], None]] = []
        self._audit_logger = AuditLogger()

        logger.info("Token manager initialized")

    def _auth_path(self, endpoint: str) -> str:
        return f"/api/{self.language}/auth/{endpoint}"

    def add_auth_callback(self, callback: Callable[[bool], None]) -> None:
        """
        Add callback for authentication state changes.

        Args:
            callback: Function called with authentication status (bool)
        """
        self._auth_callbacks.append(callback)

    def _notify_auth_change(self, is_authenticated: bool) -> None:
        """Notify callbacks of authentication state change."""
        for callback in self._auth_callbacks:
            try:
                callback(is_authenticated)
            except Exception as e:
                logger.error(f"Error in auth callback: {e}")

    async def login(self, email: str, password: str) -> ApiResult:
        """
        Log in with email and password.

        When the account has two-factor authentication enabled the server
        answers with ``requiresOtp`` and no tokens; nothing is stored and the
        caller continues with verify_otp().

        Returns:
            ApiResult of the login call
        """
        result = await self.api_client.call_public(
            HTTPMethod.POST.value,
            self._auth_path('login'),
            {'email': email, 'password': password}
        )

        if not result.success:
            self._audit_logger.log_authentication('login', email, success=False, failure_reason=result.message)
            return result

        if self.requires_otp(result):
            logger.info("Login requires one-time passcode verification")
            self._audit_logger.log_authentication('login', email, success=True)
            return result

        return self._complete_login('login', email, result)

    async def verify_otp(self, email: str, otp: str) -> ApiResult:
        """Verify the one-time passcode sent after a two-factor login."""
        result = await self.api_client.call_public(
            HTTPMethod.POST.value,
            self._auth_path('verify-otp'),
            {'email': email, 'otp': otp}
        )

        if not result.success:
            self._audit_logger.log_authentication('verify_otp', email, success=False, failure_reason=result.message)
            return result

        return self._complete_login('verify_otp', email, result)

    async def register(self, registration: Dict[str, Any]) -> ApiResult:
        """
        Start registration of a new hotel account.

        The server emails a passcode; the account is created, and credentials
        issued, by verify_registration_otp().
        """
        result = await self.api_client.call_public(
            HTTPMethod.POST.value,
            self._auth_path('register'),
            registration
        )
        self._audit_logger.log_authentication(
            'register', registration.get('email'), success=result.success,
            failure_reason=None if result.success else result.message
        )
        return result

    async def verify_registration_otp(self, registration: Dict[str, Any]) -> ApiResult:
        """Verify the registration passcode and store the issued credentials."""
        email = registration.get('email')
        result = await self.api_client.call_public(
            HTTPMethod.POST.value,
            self._auth_path('verify-registration-otp'),
            registration
        )

        if not result.success:
            self._audit_logger.log_authentication(
                'verify_registration_otp', email, success=False, failure_reason=result.message
            )
            return result

        return self._complete_login('verify_registration_otp', email, result)

    @staticmethod
    def requires_otp(result: ApiResult) -> bool:
        """Check whether a login result asks for passcode verification."""
        return isinstance(result.data, dict) and bool(result.data.get('requiresOtp'))

    def _complete_login(self, action: str, email: Optional[str], result: ApiResult) -> ApiResult:
        pair = CredentialPair.from_payload(result.data)
        if pair is None:
            logger.warning(f"{action} succeeded but the response carried no credential pair")
            self._audit_logger.log_authentication(action, email, success=False, failure_reason="no tokens issued")
            return result

        try:
            self.credential_store.set(pair.access_token, pair.refresh_token)
        except CredentialStoreError as e:
            log_structured_error(logger, e)
            self._audit_logger.log_error(e, account=email)
            return ApiResult(success=False, message=e.user_message, data=None, errors={})

        expires_at = self.get_token_expiration()
        if expires_at:
            logger.info(f"Authenticated; access token expires at {expires_at.isoformat()}")
        else:
            logger.info("Authenticated")

        self._audit_logger.log_authentication(action, email, success=True)
        self._notify_auth_change(True)
        return result

    def logout(self) -> None:
        """
        Logout and clear authentication state.
        """
        logger.info("Logging out and clearing authentication state")

        self.api_client.reset_refresh()

        self.credential_store.remove()

        self._audit_logger.log_authentication('logout', success=True)
        self._audit_logger.log_credentials_cleared("logout")
        self._notify_auth_change(False)

    def is_authenticated(self) -> bool:
        """Check whether credentials are stored."""
        return self.credential_store.get() is not None

    def get_token_expiration(self) -> Optional[datetime]:
        """
        Read the expiration time of the stored access token.

        The token is decoded without verification; only the client-side
        ``exp`` claim is inspected.

        Returns:
            Expiration datetime (UTC) or None if unknown
        """
        pair = self.credential_store.get()
        if pair is None:
            return None

        try:
            payload = jwt.get_unverified_claims(pair.access_token)
        except JWTError as e:
            logger.debug(f"Access token is not a readable JWT: {e}")
            return None

        exp = payload.get('exp')
        if not isinstance(exp, (int, float)):
            return None

        return datetime.fromtimestamp(exp, tz=timezone.utc)
