"""Pytest configuration and shared fixtures."""

import pytest

from kether.chat.client import ChatRoomClient
from kether.chat.transport import NotificationHub, Transport
from kether.config import KetherSettings


class FakeTransport(Transport):
    """In-memory transport: records requests, replies from a script, fans out via a hub.

    ``responses`` maps a request type to a response instance, an exception
    to raise, or a callable building the response from the request.
    ``on_call`` runs after a request is recorded, before the reply.
    """

    def __init__(self):
        self.hub = NotificationHub()
        self.requests = []
        self.responses = {}
        self.on_call = None

    def respond(self, request_type, response) -> None:
        self.responses[request_type] = response

    async def call(self, request):
        self.requests.append(request)
        if self.on_call is not None:
            self.on_call(request)
        response = self.responses.get(type(request))
        if isinstance(response, BaseException):
            raise response
        if callable(response):
            return response(request)
        return response

    def subscribe(self, kind):
        return self.hub.subscribe(kind)


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def settings():
    """Fast settings: short echo timeout, no throttle, tiny backoff."""
    return KetherSettings(echo_timeout=0.2, notification_throttle=0.0, stream_backoff=0.01)


@pytest.fixture
def client(transport, settings):
    return ChatRoomClient(transport, settings)
