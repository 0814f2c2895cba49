import json
from types import SimpleNamespace

import pytest

from chatdispatch import EndpointConfig, Token, TransportResponse


class ScriptedTransport:
    """Replays a script of responses/exceptions; the last entry repeats forever."""

    def __init__(self, script):
        self.script = list(script)
        self.calls = []

    def _next(self, url, headers, payload):
        self.calls.append((url, dict(headers), payload))
        item = self.script.pop(0) if len(self.script) > 1 else self.script[0]
        if isinstance(item, BaseException):
            raise item
        return item


class AsyncScriptedTransport(ScriptedTransport):
    async def send(self, url, headers, payload):
        return self._next(url, headers, payload)

    async def aclose(self):
        pass


class SyncScriptedTransport(ScriptedTransport):
    def send(self, url, headers, payload):
        return self._next(url, headers, payload)

    def close(self):
        pass


class StubTokenSource:
    """Hands out numbered tokens; entries in `failures` raise instead."""

    def __init__(self, mode, failures=()):
        self.mode = mode
        self.failures = dict(failures)
        self.fetches = 0

    def fetch(self):
        self.fetches += 1
        if self.fetches in self.failures:
            raise self.failures[self.fetches]
        return Token(f"tok-{self.fetches}", self.mode)

    async def afetch(self):
        return self.fetch()

    def close(self):
        pass

    async def aclose(self):
        pass


def ok(body=None):
    return TransportResponse(200, {}, json.dumps(body if body is not None else {"id": "cmpl"}))


def rate_limited(message="Rate limit reached", headers=None):
    return TransportResponse(429, headers or {}, json.dumps({"error": {"message": message}}))


@pytest.fixture
def endpoint():
    return EndpointConfig("https://unit.openai.azure.com/", "gpt4o-prod")


@pytest.fixture
def sleeps():
    recorded = []

    async def _sleep(delay):
        recorded.append(delay)

    _sleep.delays = recorded
    return _sleep


@pytest.fixture
def sync_sleeps():
    recorded = []

    def _sleep(delay):
        recorded.append(delay)

    _sleep.delays = recorded
    return _sleep


@pytest.fixture
def responses():
    """Builders for canned TransportResponse objects."""
    return SimpleNamespace(ok=ok, rate_limited=rate_limited)


@pytest.fixture
def async_transport():
    return AsyncScriptedTransport


@pytest.fixture
def sync_transport():
    return SyncScriptedTransport


@pytest.fixture
def token_source():
    return StubTokenSource
