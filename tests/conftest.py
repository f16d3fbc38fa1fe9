"""Shared fixtures: a NutClient wired to an in-memory transport."""

import pytest

from nut_client import NutClient
from nut_client.errors import TransportError


class FakeTransport:
    """Records writes and lets tests push server text synchronously."""

    def __init__(self):
        self.on_connect = None
        self.on_data = None
        self.on_error = None
        self.on_close = None
        self.connected = False
        self.writes = []
        self.closed = False

    def open(self):
        self.connected = True
        self.on_connect()
        return True

    def write(self, data):
        if not self.connected:
            raise TransportError("Not connected")
        self.writes.append(data)

    def close(self):
        if not self.connected:
            return
        self.connected = False
        self.closed = True
        self.on_close(False)

    # test helpers
    def deliver(self, text):
        self.on_data(text)

    def fail(self, exc):
        self.connected = False
        self.on_error(exc)
        self.on_close(True)


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def client(transport):
    c = NutClient("upsd.test", 3493)
    c._attach(transport)
    c.connect()
    return c
