"""
HTTP client for the control-plane runtime API.

Each operation is a single blocking round trip without a client-side
timeout: the next-invocation call is a long poll that only returns once the
control plane has work. Failures are raised as TransportError and never
retried here.
"""

import logging
from typing import Dict, List, Optional
from urllib.parse import quote

import requests

from .constants import (
    ERROR_TYPE_HEADER,
    INIT_ERROR_PATH,
    INVOCATION_ERROR_PATH,
    INVOCATION_RESPONSE_PATH,
    NEXT_INVOCATION_PATH,
    REQUEST_ID_HEADER,
    RUNTIME_API_VERSION,
)
from .errors import TransportError
from .handler_protocol import ErrorEnvelope, InvocationEvent

log = logging.getLogger(__name__)


def collect_headers(response: requests.Response) -> Dict[str, List[str]]:
    """
    Map each response header name to its ordered list of values.

    requests folds repeated headers into one comma-joined value, so the
    urllib3 header dict is read directly when it is available.
    """
    raw_headers = getattr(response.raw, "headers", None)
    if raw_headers is not None and hasattr(raw_headers, "getlist"):
        return {name: list(raw_headers.getlist(name)) for name in raw_headers}

    return {name: [value] for name, value in response.headers.items()}


class RuntimeApiClient:
    """Client for the four runtime API operations."""

    def __init__(self, runtime_api: str, session: Optional[requests.Session] = None):
        """
        Args:
            runtime_api: host:port authority of the control plane
            session: Optional preconfigured session (one is created otherwise)
        """
        self.runtime_api = runtime_api
        self.base_url = f"http://{runtime_api}/{RUNTIME_API_VERSION}"
        self.session = session or requests.Session()

    def _url(self, path: str) -> str:
        return f"{self.base_url}{path}"

    def _request(self, method: str, url: str, **kwargs) -> requests.Response:
        try:
            # No timeout: the control plane decides how long a call takes
            response = self.session.request(method, url, timeout=None, **kwargs)
        except requests.RequestException as e:
            raise TransportError(url, f"{method} failed: {e}") from e

        if not response.ok:
            raise TransportError(
                url,
                f"{method} returned {response.status_code}: {response.text[:200]}",
                status_code=response.status_code,
            )

        return response

    def fetch_next(self) -> InvocationEvent:
        """
        Block until the control plane hands out the next invocation.

        Raises:
            TransportError: On HTTP failure or when the request id header is missing
        """
        url = self._url(NEXT_INVOCATION_PATH)
        response = self._request("GET", url)

        event = InvocationEvent(
            request_id="",
            headers=collect_headers(response),
            body=response.content,
        )
        request_id = event.header(REQUEST_ID_HEADER)
        if not request_id:
            raise TransportError(url, f"Response is missing the {REQUEST_ID_HEADER} header")

        return event.model_copy(update={"request_id": request_id})

    def post_response(self, request_id: str, result: bytes) -> None:
        """Report a successful invocation result."""
        url = self._url(INVOCATION_RESPONSE_PATH.format(request_id=quote(request_id, safe="")))
        self._request("POST", url, data=result)
        log.debug(f"Posted response for {request_id} ({len(result)} bytes)")

    def post_invocation_error(self, request_id: str, message: str, error_type: str) -> None:
        """Report a failed invocation."""
        url = self._url(INVOCATION_ERROR_PATH.format(request_id=quote(request_id, safe="")))
        self._post_error(url, message, error_type)
        log.debug(f"Posted {error_type} for {request_id}")

    def post_init_error(self, message: str, error_type: str) -> None:
        """Report that the handler could not be initialized."""
        url = self._url(INIT_ERROR_PATH)
        self._post_error(url, message, error_type)
        log.debug(f"Posted init error {error_type}")

    def _post_error(self, url: str, message: str, error_type: str) -> None:
        envelope = ErrorEnvelope(errorMessage=message, errorType=error_type)
        self._request(
            "POST",
            url,
            data=envelope.to_json().encode("utf-8"),
            headers={
                "Content-Type": "application/json",
                ERROR_TYPE_HEADER: error_type,
            },
        )

    def close(self) -> None:
        self.session.close()

    def __enter__(self) -> "RuntimeApiClient":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
