"""Shared fakes for hub and provider tests.

- FakeClock: controllable time source for every clock-injected component
- RecordingTransport: in-memory transport that records VendorCalls and
  answers from a (method, path) route table
"""
from __future__ import annotations
from datetime import datetime, timedelta, timezone
from typing import Any

import pytest

from hub.integrations.transport import VendorCall

T0 = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)


class FakeClock:
    def __init__(self, now: datetime = T0):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **delta: float) -> None:
        self.now += timedelta(**delta)


class RecordingTransport:
    """
    Answers calls from routes keyed by (method, path).

    A route value may be a plain response, an exception instance (raised),
    or a callable taking the VendorCall. Unrouted calls get ``default``.
    """

    def __init__(self, default: Any = None):
        self.calls: list[VendorCall] = []
        self.routes: dict[tuple[str, str], Any] = {}
        self.default = {} if default is None else default

    def respond(self, method: str, path: str, response: Any) -> None:
        self.routes[(method, path)] = response

    async def __call__(self, call: VendorCall) -> Any:
        self.calls.append(call)
        response = self.routes.get((call.method, call.path), self.default)
        if isinstance(response, BaseException):
            raise response
        if callable(response):
            return response(call)
        return response

    @property
    def last(self) -> VendorCall:
        return self.calls[-1]


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def transport() -> RecordingTransport:
    return RecordingTransport()
