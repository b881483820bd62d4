import socket
import threading

import pytest


class FakeConnection:
    def __init__(self, address):
        self.address = address
        self.closed = False

    def close(self):
        self.closed = True


class FakeNetwork:
    """Stands in for socket.create_connection; ports in open_ports accept."""

    def __init__(self):
        self.open_ports = set()
        self.attempts = []
        self.connections = []
        self.hooks = {}
        self._lock = threading.Lock()

    def create_connection(self, address, timeout=None, *args, **kwargs):
        host, port = address
        with self._lock:
            self.attempts.append(port)
        hook = self.hooks.get(port)
        if hook is not None:
            hook(port)
        if port in self.open_ports:
            conn = FakeConnection(address)
            with self._lock:
                self.connections.append(conn)
            return conn
        raise ConnectionRefusedError(111, "Connection refused")


class Recorder:
    """Collects the two scan callbacks."""

    def __init__(self):
        self.results = []
        self.progress = []

    def on_result(self, message):
        self.results.append(message)

    def on_progress(self, percent):
        self.progress.append(percent)


@pytest.fixture
def fake_network(monkeypatch):
    network = FakeNetwork()
    monkeypatch.setattr(socket, "create_connection", network.create_connection)
    return network


@pytest.fixture
def recorder():
    return Recorder()
