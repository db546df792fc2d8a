"""
Shared fixtures for the Hotel Dashboard client tests.

Provides an in-process stand-in for an aiohttp ClientSession so the request
pipeline can be exercised without a server. Each test supplies an async
handler that receives the recorded call and returns a FakeResponse (or raises
to simulate a transport failure).
"""

import json

import pytest

from hotel_client.auth.token_storage import MemoryTokenStorage


INVALID_JSON = object()


class FakeResponse:
    """Minimal aiohttp response: a status and a JSON body."""

    def __init__(self, status=200, payload=None):
        self.status = status
        self._payload = payload

    async def json(self, content_type='application/json'):
        if self._payload is INVALID_JSON:
            raise json.JSONDecodeError("Expecting value", "<html>", 0)
        return self._payload


class FakeCall:
    """One recorded HTTP call."""

    def __init__(self, method, url, kwargs):
        self.method = method
        self.url = url
        self.headers = kwargs.get('headers') or {}
        self.json = kwargs.get('json')
        self.data = kwargs.get('data')
        self.params = kwargs.get('params')
        self.timeout = kwargs.get('timeout')

    @property
    def authorization(self):
        return self.headers.get('Authorization')


class _PendingResponse:
    def __init__(self, handler, call):
        self._handler = handler
        self._call = call

    async def __aenter__(self):
        return await self._handler(self._call)

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        return False


class FakeSession:
    """Records requests and answers them through an async handler."""

    def __init__(self, handler):
        self.handler = handler
        self.calls = []
        self.closed = False

    def request(self, method, url, **kwargs):
        call = FakeCall(method, url, kwargs)
        self.calls.append(call)
        return _PendingResponse(self.handler, call)

    def post(self, url, **kwargs):
        return self.request('POST', url, **kwargs)

    async def close(self):
        self.closed = True

    def calls_to(self, fragment):
        return [call for call in self.calls if fragment in call.url]


def envelope(data=None, message=None, success=True, errors=None):
    """Build a server response envelope."""
    body = {'success': success, 'data': data}
    if message is not None:
        body['message'] = message
    if errors is not None:
        body['errors'] = errors
    return body


@pytest.fixture
def credential_store():
    """Credential store pre-loaded with the first session's tokens."""
    store = MemoryTokenStorage()
    store.set('A1', 'R1')
    return store


@pytest.fixture
def empty_store():
    return MemoryTokenStorage()
