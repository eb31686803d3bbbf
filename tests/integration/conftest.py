"""Integration fixtures; every test in tests/integration/ gets the integration marker."""

import threading
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import List, Tuple

import pytest

API_PREFIX = "/2018-06-01/runtime"


def pytest_collection_modifyitems(config, items):
    """Add integration marker to all tests in the integration directory"""
    for item in items:
        if "tests/integration" in str(item.fspath):
            item.add_marker(pytest.mark.integration)


class ControlPlane:
    """
    Local runtime API serving queued events and recording every request.

    When the queue is empty the next-invocation call blocks (a long poll)
    until ``release`` is set, then answers 410 Gone.
    """

    def __init__(self):
        self.events: List[Tuple[str, bytes]] = []
        self.requests: List[Tuple[str, str, dict, bytes]] = []
        self.release = threading.Event()
        self.waiting = threading.Event()
        self.lock = threading.Lock()
        self.server = ThreadingHTTPServer(("127.0.0.1", 0), self._handler_class())
        self.thread = threading.Thread(target=self.server.serve_forever, daemon=True)

    @property
    def authority(self) -> str:
        host, port = self.server.server_address[:2]
        return f"{host}:{port}"

    def enqueue(self, request_id: str, body: bytes) -> None:
        with self.lock:
            self.events.append((request_id, body))

    def posts(self) -> List[Tuple[str, bytes]]:
        with self.lock:
            return [(path, body) for method, path, _, body in self.requests if method == "POST"]

    def _next_event(self):
        with self.lock:
            return self.events.pop(0) if self.events else None

    def _handler_class(self):
        plane = self

        class Handler(BaseHTTPRequestHandler):
            def log_message(self, format, *args):
                pass

            def _record(self, body: bytes) -> None:
                with plane.lock:
                    plane.requests.append((self.command, self.path, dict(self.headers), body))

            def _reply(self, status: int, body: bytes = b"", headers=None) -> None:
                self.send_response(status)
                for name, value in (headers or {}).items():
                    self.send_header(name, value)
                self.send_header("Content-Length", str(len(body)))
                self.end_headers()
                self.wfile.write(body)

            def do_GET(self):
                self._record(b"")
                if self.path != f"{API_PREFIX}/invocation/next":
                    self._reply(404)
                    return

                event = plane._next_event()
                while event is None and not plane.release.is_set():
                    plane.waiting.set()
                    plane.release.wait(0.05)
                    event = plane._next_event()

                if event is None:
                    self._reply(410, b"environment shutting down")
                    return

                request_id, body = event
                self._reply(
                    200,
                    body,
                    {
                        "Lambda-Runtime-Aws-Request-Id": request_id,
                        "Lambda-Runtime-Deadline-Ms": "1700000000000",
                        "Content-Type": "application/octet-stream",
                    },
                )

            def do_POST(self):
                length = int(self.headers.get("Content-Length", 0))
                body = self.rfile.read(length) if length else b""
                self._record(body)
                self._reply(202, b'{"status":"OK"}', {"Content-Type": "application/json"})

        return Handler


@pytest.fixture
def control_plane():
    plane = ControlPlane()
    plane.thread.start()
    yield plane
    plane.release.set()
    plane.server.shutdown()
    plane.server.server_close()
