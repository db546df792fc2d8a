"""
Tests for the authentication session manager.
"""

from datetime import datetime, timezone

import pytest
from jose import jwt
from unittest.mock import AsyncMock, Mock

from hotel_client.auth.token_manager import TokenManager
from hotel_shared.exceptions import CredentialStoreError
from hotel_shared.models import ApiResult


def ok(data=None, message='ok'):
    return ApiResult(success=True, message=message, data=data)


@pytest.fixture
def api_client():
    client = Mock()
    client.call_public = AsyncMock()
    return client


class TestLogin:
    """Test login and OTP verification flows."""

    @pytest.mark.asyncio
    async def test_login_stores_tokens(self, api_client, empty_store):
        api_client.call_public.return_value = ok({'accessToken': 'A1', 'refreshToken': 'R1'})
        manager = TokenManager(api_client, empty_store, language='de')
        states = []
        manager.add_auth_callback(states.append)

        result = await manager.login('owner@hotel.test', 'pw')

        assert result.success is True
        api_client.call_public.assert_awaited_once_with(
            'POST', '/api/de/auth/login', {'email': 'owner@hotel.test', 'password': 'pw'}
        )
        assert empty_store.get().access_token == 'A1'
        assert manager.is_authenticated() is True
        assert states == [True]

    @pytest.mark.asyncio
    async def test_login_requiring_otp_stores_nothing(self, api_client, empty_store):
        api_client.call_public.return_value = ok({'requiresOtp': True})
        manager = TokenManager(api_client, empty_store)

        result = await manager.login('owner@hotel.test', 'pw')

        assert manager.requires_otp(result) is True
        assert empty_store.get() is None

    @pytest.mark.asyncio
    async def test_failed_login(self, api_client, empty_store):
        api_client.call_public.return_value = ApiResult(success=False, message='Invalid credentials')
        manager = TokenManager(api_client, empty_store)

        result = await manager.login('owner@hotel.test', 'wrong')

        assert result.message == 'Invalid credentials'
        assert empty_store.get() is None

    @pytest.mark.asyncio
    async def test_verify_otp_stores_tokens(self, api_client, empty_store):
        api_client.call_public.return_value = ok({'accessToken': 'A1', 'refreshToken': 'R1'})
        manager = TokenManager(api_client, empty_store)

        await manager.verify_otp('owner@hotel.test', '123456')

        api_client.call_public.assert_awaited_once_with(
            'POST', '/api/en/auth/verify-otp', {'email': 'owner@hotel.test', 'otp': '123456'}
        )
        assert empty_store.get().refresh_token == 'R1'

    @pytest.mark.asyncio
    async def test_storage_failure_reported(self, api_client):
        """Test a login whose tokens cannot be stored is reported as failed."""
        store = Mock()
        store.set.side_effect = CredentialStoreError('keyring locked', user_message='Could not save your session')
        api_client.call_public.return_value = ok({'accessToken': 'A1', 'refreshToken': 'R1'})
        manager = TokenManager(api_client, store)
        callback = Mock()
        manager.add_auth_callback(callback)

        result = await manager.login('owner@hotel.test', 'pw')

        assert result.success is False
        assert result.message == 'Could not save your session'
        callback.assert_not_called()


class TestRegistration:
    """Test registration flows."""

    @pytest.mark.asyncio
    async def test_register_stores_nothing(self, api_client, empty_store):
        api_client.call_public.return_value = ok(message='Passcode sent')
        manager = TokenManager(api_client, empty_store)
        registration = {'email': 'new@hotel.test', 'password': 'pw', 'hotelName': 'Seaside'}

        result = await manager.register(registration)

        assert result.message == 'Passcode sent'
        api_client.call_public.assert_awaited_once_with('POST', '/api/en/auth/register', registration)
        assert empty_store.get() is None

    @pytest.mark.asyncio
    async def test_verify_registration_otp_stores_tokens(self, api_client, empty_store):
        api_client.call_public.return_value = ok({'accessToken': 'A1', 'refreshToken': 'R1'})
        manager = TokenManager(api_client, empty_store)

        await manager.verify_registration_otp({'email': 'new@hotel.test', 'otp': '654321'})

        assert api_client.call_public.await_args.args[1] == '/api/en/auth/verify-registration-otp'
        assert empty_store.get().access_token == 'A1'


class TestSession:
    """Test logout, callbacks and token inspection."""

    def test_logout_clears_credentials(self, api_client, credential_store):
        manager = TokenManager(api_client, credential_store)
        states = []
        manager.add_auth_callback(states.append)

        manager.logout()

        assert credential_store.get() is None
        assert manager.is_authenticated() is False
        api_client.reset_refresh.assert_called_once()
        assert states == [False]

    def test_failing_callback_does_not_break_logout(self, api_client, credential_store):
        manager = TokenManager(api_client, credential_store)
        manager.add_auth_callback(Mock(side_effect=RuntimeError('ui gone')))

        manager.logout()

        assert credential_store.get() is None

    def test_token_expiration(self, api_client, empty_store):
        exp = int(datetime(2030, 1, 1, tzinfo=timezone.utc).timestamp())
        empty_store.set(jwt.encode({'sub': 'owner', 'exp': exp}, 'secret', algorithm='HS256'), 'R1')
        manager = TokenManager(api_client, empty_store)

        assert manager.get_token_expiration() == datetime(2030, 1, 1, tzinfo=timezone.utc)

    def test_token_expiration_unknown(self, api_client, credential_store, empty_store):
        """Test opaque tokens and empty stores have no expiration."""
        assert TokenManager(api_client, credential_store).get_token_expiration() is None
        assert TokenManager(api_client, empty_store).get_token_expiration() is None
