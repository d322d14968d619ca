"""
Pytest fixtures for keyhole proxy tests
"""

import httpx
import pytest

from core.registry import UpstreamConfig, UpstreamRegistry


class RecordingLogger:
    """RequestLogger that keeps every call for assertions"""

    def __init__(self):
        self.forwards = []
        self.not_found = []
        self.errors = []

    def log_forward(self, identifier, verb, uri, status):
        self.forwards.append((identifier, verb, uri, status))

    def log_not_found(self, identifier):
        self.not_found.append(identifier)

    def log_error(self, identifier, status, message):
        self.errors.append((identifier, status, message))


class StubUpstream:
    """Call-counting handler for httpx.MockTransport"""

    def __init__(self, handler=None):
        self.requests = []
        self._handler = handler or (lambda request: httpx.Response(200, text="ok"))

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self._handler(request)

    @property
    def calls(self) -> int:
        return len(self.requests)

    @property
    def last(self) -> httpx.Request:
        return self.requests[-1]


@pytest.fixture
def registry() -> UpstreamRegistry:
    """Registry with one keyed and one keyless upstream"""
    return UpstreamRegistry.from_configs([
        UpstreamConfig(identifier="weather", metadata="Weather API", secret="XYZ"),
        UpstreamConfig(identifier="status", metadata="Status page"),
    ])


@pytest.fixture
def request_logger() -> RecordingLogger:
    return RecordingLogger()


@pytest.fixture
def stub_upstream() -> StubUpstream:
    return StubUpstream()
