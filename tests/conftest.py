import logging
import sys
import textwrap
import zipfile
from pathlib import Path
from typing import List, Optional

import pytest

from lambda_bootstrap.handler_protocol import InvocationEvent


ECHO_HANDLER = """
class EchoHandler:
    def __init__(self):
        self.calls = 0

    def handle(self, payload):
        self.calls += 1
        return payload
"""

FAILING_HANDLER = """
class FailingHandler:
    def handle(self, payload):
        raise ValueError("boom: " + payload.decode())
"""


@pytest.fixture(autouse=True)
def isolated_imports():
    """Restore sys.path and drop modules imported from task roots after each test."""
    saved_path = list(sys.path)
    saved_modules = set(sys.modules)
    yield
    added_entries = [entry for entry in sys.path if entry not in saved_path]
    sys.path[:] = saved_path
    for name in set(sys.modules) - saved_modules:
        module_file = getattr(sys.modules[name], "__file__", None) or ""
        if any(module_file.startswith(entry) for entry in added_entries):
            del sys.modules[name]


@pytest.fixture(autouse=True)
def restore_root_logger():
    """Drop the bootstrap's stderr handler and restore levels after each test."""
    root = logging.getLogger()
    urllib3_logger = logging.getLogger("urllib3")
    levels = (root.level, urllib3_logger.level)
    yield
    for handler in [h for h in root.handlers if h.name == "lambda_bootstrap"]:
        root.removeHandler(handler)
    root.setLevel(levels[0])
    urllib3_logger.setLevel(levels[1])


@pytest.fixture
def task_root(tmp_path):
    """Empty task root directory."""
    root = tmp_path / "task"
    root.mkdir()
    return root


@pytest.fixture
def write_module():
    """Write a Python module (dedented) under a directory."""

    def _write(directory: Path, relative_path: str, source: str) -> Path:
        path = directory / relative_path
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(textwrap.dedent(source))
        return path

    return _write


@pytest.fixture
def write_archive():
    """Write a zip archive containing the given {path: source} modules."""

    def _write(archive_path: Path, modules: dict) -> Path:
        archive_path.parent.mkdir(parents=True, exist_ok=True)
        with zipfile.ZipFile(archive_path, "w") as zf:
            for name, source in modules.items():
                zf.writestr(name, textwrap.dedent(source))
        return archive_path

    return _write


class FakeRuntimeApiClient:
    """In-memory stand-in for RuntimeApiClient recording every call."""

    def __init__(self, events: Optional[List] = None):
        # Items are InvocationEvent instances or exceptions to raise on fetch
        self.events = list(events or [])
        self.calls: List[tuple] = []

    def fetch_next(self) -> InvocationEvent:
        self.calls.append(("fetch_next",))
        if not self.events:
            raise StopLoop()
        item = self.events.pop(0)
        if isinstance(item, BaseException):
            raise item
        return item

    def post_response(self, request_id: str, result: bytes) -> None:
        self.calls.append(("post_response", request_id, result))

    def post_invocation_error(self, request_id: str, message: str, error_type: str) -> None:
        self.calls.append(("post_invocation_error", request_id, message, error_type))

    def post_init_error(self, message: str, error_type: str) -> None:
        self.calls.append(("post_init_error", message, error_type))

    def close(self) -> None:
        self.calls.append(("close",))


class StopLoop(BaseException):
    """Raised by the fake client once its events are exhausted."""


@pytest.fixture
def make_event():
    def _make(request_id: str, body: bytes = b"", **headers) -> InvocationEvent:
        all_headers = {"Lambda-Runtime-Aws-Request-Id": [request_id]}
        for name, value in headers.items():
            all_headers[name.replace("_", "-")] = [value]
        return InvocationEvent(request_id=request_id, headers=all_headers, body=body)

    return _make


@pytest.fixture
def fake_client_factory():
    return FakeRuntimeApiClient


@pytest.fixture
def stop_loop():
    return StopLoop


@pytest.fixture
def echo_handler_source():
    return ECHO_HANDLER


@pytest.fixture
def failing_handler_source():
    return FAILING_HANDLER
