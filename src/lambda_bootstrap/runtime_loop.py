"""
Invocation loop: resolve the handler once, then fetch, invoke and report
forever, one invocation at a time.

A failed invocation is reported and the loop moves on to the next fetch;
only a failed initialization ends the process.
"""

import logging
import time
from enum import Enum
from pathlib import Path
from typing import Callable, Optional, Union

from .constants import (
    FETCH_BACKOFF_INITIAL,
    FETCH_BACKOFF_MAX,
    INIT_ERROR_TYPE,
    RUNTIME_ERROR_TYPE,
)
from .errors import InitError, InvocationError, TransportError
from .handler_protocol import ResolvedHandler
from .handler_resolver import resolve
from .runtime_api_client import RuntimeApiClient

log = logging.getLogger(__name__)


class RuntimeState(str, Enum):
    INITIALIZING = "INITIALIZING"
    READY = "READY"
    FETCHING = "FETCHING"
    INVOKING = "INVOKING"
    REPORTING = "REPORTING"
    FAILED_INIT = "FAILED_INIT"


class RuntimeLoop:
    """Owns the runtime API client and the resolved handler for the process lifetime."""

    def __init__(
        self,
        client: RuntimeApiClient,
        handler: ResolvedHandler,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.client = client
        self.handler = handler
        self.state = RuntimeState.READY
        self.invocations = 0
        self.failures = 0
        self._sleep = sleep
        self._backoff = FETCH_BACKOFF_INITIAL

    @classmethod
    def initialize(
        cls,
        client: RuntimeApiClient,
        task_root: Union[str, Path],
        handler_ref: str,
        **kwargs,
    ) -> Optional["RuntimeLoop"]:
        """
        Resolve the handler and build the loop.

        On failure the init error is posted once and None is returned; the
        caller must not enter the event loop.
        """
        log.debug(f"State {RuntimeState.INITIALIZING.value}: resolving {handler_ref!r}")
        try:
            handler = resolve(task_root, handler_ref)
        except InitError as e:
            log.error(f"State {RuntimeState.FAILED_INIT.value}: {e}", exc_info=True)
            try:
                client.post_init_error(str(e), INIT_ERROR_TYPE)
            except TransportError as post_error:
                log.error(f"Failed to report init error: {post_error}")
            return None

        return cls(client, handler, **kwargs)

    def run(self) -> None:
        """Process invocations until the process is stopped from outside."""
        log.info("Entering invocation loop")
        while True:
            self.run_once()

    def run_once(self) -> None:
        """Perform one fetch, invoke and report cycle."""
        self.state = RuntimeState.FETCHING
        try:
            event = self.client.fetch_next()
        except TransportError as e:
            log.error(f"Failed to fetch next invocation, retrying in {self._backoff:.1f}s: {e}")
            self._back_off()
            return
        except Exception as e:
            log.error(f"Unexpected error fetching next invocation: {e}", exc_info=True)
            self._back_off()
            return

        self._backoff = FETCH_BACKOFF_INITIAL
        request_id = event.request_id
        self.invocations += 1
        log.debug(f"Invocation {request_id} received ({len(event.body)} bytes)")

        self.state = RuntimeState.INVOKING
        try:
            result = self.handler.invoke(event.body)
        except Exception as e:
            # Non-InvocationError exceptions come from foreign handler
            # implementations; they are reported the same way.
            self.failures += 1
            if isinstance(e, InvocationError):
                message = e.message
            else:
                message = str(e) or type(e).__name__
            log.error(f"Invocation {request_id} failed: {message}", exc_info=True)
            self._report(
                request_id,
                self.client.post_invocation_error,
                request_id,
                message,
                RUNTIME_ERROR_TYPE,
            )
        else:
            self._report(request_id, self.client.post_response, request_id, result)

        self.state = RuntimeState.FETCHING

    def _back_off(self) -> None:
        self._sleep(self._backoff)
        self._backoff = min(self._backoff * 2, FETCH_BACKOFF_MAX)

    def _report(self, request_id: str, post: Callable[..., None], *args) -> None:
        self.state = RuntimeState.REPORTING
        try:
            post(*args)
        except TransportError as e:
            log.error(f"Failed to report outcome of {request_id}: {e}")
        except Exception as e:
            log.error(f"Unexpected error reporting {request_id}: {e}", exc_info=True)
