"""
Shared fixtures for the proxy tests.
"""

import httpx
import pytest
from fastapi.testclient import TestClient

from athere_proxy.config import AppSettings
from athere_proxy.main import create_app


class RecordingTransport(httpx.MockTransport):
    """MockTransport that remembers every request it was asked to send."""

    def __init__(self, handler):
        self.requests = []

        def recording_handler(request):
            self.requests.append(request)
            return handler(request)

        super().__init__(recording_handler)


@pytest.fixture
def settings():
    """Settings with a configured credential and no static assets."""
    return AppSettings(anthropic_api_key="sk-test-secret")


@pytest.fixture
def make_client():
    """Build a TestClient around create_app with injected upstream transports."""
    clients = []

    def _make(app_settings, claude_handler=None, fetch_handler=None):
        claude_transport = RecordingTransport(claude_handler or (lambda request: httpx.Response(200, json={})))
        fetch_transport = RecordingTransport(fetch_handler or (lambda request: httpx.Response(200, text="ok")))
        app = create_app(app_settings, claude_transport=claude_transport, fetch_transport=fetch_transport)
        client = TestClient(app)
        client.__enter__()
        clients.append(client)
        return client, claude_transport, fetch_transport

    yield _make

    for client in clients:
        client.__exit__(None, None, None)
