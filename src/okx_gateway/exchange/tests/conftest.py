"""
Test fixtures for the exchange layer.

IMPORTANT: All HTTP traffic goes through FakeSession.
Never hit real OKX APIs in tests.
"""

import json

import pytest

from okx_gateway.exchange import OkxRestClient


class FakeResponse:
    """Minimal aiohttp response stand-in."""

    def __init__(self, status=200, payload=None, body=None):
        self.status = status
        self._payload = payload if payload is not None else {"code": "0", "msg": "", "data": []}
        self._body = body if body is not None else json.dumps(self._payload)

    async def text(self):
        return self._body

    async def json(self, content_type="application/json"):
        return json.loads(self._body)

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        return False


class FakeSession:
    """
    Records requests and replays queued responses.

    Queue entries are FakeResponse objects or exceptions to raise.
    """

    def __init__(self, *responses):
        self.responses = list(responses)
        self.requests = []
        self.closed = False

    def request(self, method, url, data=None, headers=None):
        self.requests.append({"method": method, "url": url, "data": data, "headers": headers})
        result = self.responses.pop(0) if self.responses else FakeResponse()
        if isinstance(result, BaseException):
            raise result
        return result

    async def close(self):
        self.closed = True


@pytest.fixture
def fake_session():
    return FakeSession()


@pytest.fixture
def queue_responses(fake_session):
    """
    Queue responses on the fake session.

    Each item is a status code, a (status, payload) or (status, payload, body)
    tuple, or an exception.
    """
    def _queue(*items):
        for item in items:
            if isinstance(item, BaseException):
                fake_session.responses.append(item)
            elif isinstance(item, tuple):
                fake_session.responses.append(FakeResponse(*item))
            else:
                fake_session.responses.append(FakeResponse(item))
    return _queue


@pytest.fixture
def client(fake_session):
    """Authenticated client on a fake session, with no retry delay."""
    return OkxRestClient(
        api_key="test-key",
        secret_key="test-secret",
        passphrase="test-pass",
        session=fake_session,
        retry_delay=0,
    )


@pytest.fixture
def public_client(fake_session):
    """Client without credentials."""
    return OkxRestClient(session=fake_session, retry_delay=0)
